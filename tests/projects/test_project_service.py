import pytest

from src.epms.epms.access.model import AccessContext
from src.epms.epms.core.exceptions import AuthorizationError, NotFoundError, ValidationError
from src.epms.epms.projects.model import Project
from src.epms.epms.projects.service import ProjectService, format_project_code
from src.epms.epms.users.department_model import Department

ADMIN = AccessContext(user_id=1, is_admin=True, is_dept_manager=True)
MEMBER = AccessContext(user_id=4, accessible_project_ids=frozenset({1}))


class FakeDepartments:
    def __init__(self):
        self.rows = {
            1: Department(1, "Engineering", 9, None, None, None),
            2: Department(2, "Legacy", None, None, None, None, status="inactive"),
        }

    def get_by_id(self, department_id):
        return self.rows.get(department_id)

    def list_active(self):
        return [{"id": d.department_id, "name": d.name} for d in self.rows.values() if d.status == "active"]


class FakeActivity:
    def __init__(self):
        self.entries = []

    def log(self, **kwargs):
        self.entries.append(kwargs)

    def list_for_project(self, project_id, *, limit=50):
        self.last_limit = limit
        return [e for e in self.entries if e["project_id"] == project_id][:limit]


class FakeProjects:
    def __init__(self, highest_code=0):
        self.highest_code = highest_code
        self.rows = {}
        self.members = []
        self.updates = []

    def get(self, project_id):
        row = self.rows.get(project_id)
        if not row:
            return None
        return Project(project_id, row["code"], row["name"], row["status"], row["department_id"],
                       row["owner_id"], row["manager_id"], row["created_by"])

    def get_detail(self, project_id):
        return self.rows.get(project_id)

    def list_members(self, project_id):
        return [{"user_id": u} for p, u, _ in self.members if p == project_id]

    def list_phases(self, project_id):
        return []

    def list_milestones(self, project_id):
        return []

    def list_projects(self, ctx, *, status=None, department_id=None, search=None):
        self.last_query = {"status": status, "department_id": department_id, "search": search}
        return list(self.rows.values())

    def summarize(self, ctx):
        return {"total": len(self.rows)}

    def max_code_number(self):
        return self.highest_code

    def create(self, **fields):
        project_id = len(self.rows) + 1
        self.rows[project_id] = dict(fields)
        return project_id

    def add_member(self, project_id, user_id, *, role_name):
        self.members.append((project_id, user_id, role_name))

    def update(self, project_id, changes):
        self.updates.append((project_id, dict(changes)))
        return True

    def soft_delete(self, project_id):
        return self.rows.pop(project_id, None) is not None


def _svc(highest_code=0):
    return ProjectService(FakeProjects(highest_code), FakeDepartments(), FakeActivity())


def test_format_project_code():
    assert format_project_code(7) == "PRJ-007"
    assert format_project_code(1234) == "PRJ-1234"


def test_create_assigns_next_code_and_defaults():
    svc = _svc(highest_code=12)
    out = svc.create_project(user_id=4, data={"name": "Portal", "department_id": 1})

    assert out == {"id": 1, "code": "PRJ-013", "name": "Portal"}
    row = svc._projects.rows[1]
    assert row["status"] == "planning"
    assert row["priority"] == "medium"
    assert row["health"] == "not_started"
    assert row["methodology"] == "agile"
    assert row["manager_id"] == 9
    assert row["owner_id"] == 4


def test_create_adds_creator_department_manager_and_requested_manager():
    svc = _svc()
    svc.create_project(user_id=4, data={"name": "Portal", "department_id": 1, "manager_id": 6})
    assert [m[1] for m in svc._projects.members] == [4, 9, 6]
    assert svc._projects.rows[1]["manager_id"] == 6


@pytest.mark.parametrize(
    "data,message",
    [
        ({"department_id": 1}, "name is required"),
        ({"name": "x"}, "Department is required"),
        ({"name": "x", "department_id": 2}, "Invalid department"),
        ({"name": "x", "department_id": 3}, "Invalid department"),
        ({"name": "x", "department_id": 1, "status": "paused"}, "Invalid status"),
    ],
)
def test_create_validation(data, message):
    with pytest.raises(ValidationError, match=message):
        _svc().create_project(user_id=4, data=data)


def test_update_checks_access_progress_and_department():
    svc = _svc()
    svc.create_project(user_id=1, data={"name": "Portal", "department_id": 1})

    with pytest.raises(AuthorizationError):
        svc.update_project(AccessContext(user_id=5), user_id=5, project_id=1, data={"name": "x"})
    with pytest.raises(ValidationError, match="between 0 and 100"):
        svc.update_project(MEMBER, user_id=4, project_id=1, data={"progress_percentage": 120})
    with pytest.raises(ValidationError, match="Invalid department"):
        svc.update_project(MEMBER, user_id=4, project_id=1, data={"department_id": 2})

    svc.update_project(MEMBER, user_id=4, project_id=1, data={"start_date": "2024-01-01", "health": "at_risk"})
    changes = svc._projects.updates[-1][1]
    assert str(changes["planned_start_date"]) == "2024-01-01"
    assert changes["health"] == "at_risk"


def test_get_and_delete_missing_project():
    svc = _svc()
    with pytest.raises(NotFoundError):
        svc.get_project(ADMIN, 5)
    with pytest.raises(NotFoundError):
        svc.delete_project(ADMIN, user_id=1, project_id=5)


def test_get_project_includes_members():
    svc = _svc()
    svc.create_project(user_id=4, data={"name": "Portal", "department_id": 1})
    out = svc.get_project(MEMBER, 1)
    assert [m["user_id"] for m in out["members"]] == [4, 9]


def test_list_projects_includes_departments():
    svc = _svc()
    out = svc.list_projects(ADMIN, search="  ", department_id="1")
    assert svc._projects.last_query == {"status": None, "department_id": 1, "search": None}
    assert out["departments"] == [{"id": 1, "name": "Engineering"}]


def test_activity_limit_is_clamped():
    svc = _svc()
    svc.list_activity(ADMIN, 1, limit="1000")
    assert svc._activity.last_limit == 200
    svc.list_activity(ADMIN, 1)
    assert svc._activity.last_limit == 50
