import pytest

from src.epms.epms.core.exceptions import ConflictError, NotFoundError, ValidationError
from src.epms.epms.users.department_model import Department
from src.epms.epms.users.model import UserProfile
from src.epms.epms.users.service import DepartmentService, ProfileService


class FakeDepartments:
    def __init__(self):
        self.rows = {1: Department(1, "Engineering", 9, None, None, None)}
        self.children = set()
        self.deleted = []

    def get_by_id(self, department_id):
        return self.rows.get(department_id)

    def find_id_by_name(self, name, *, exclude_id=None):
        return next((i for i, d in self.rows.items() if d.name == name and i != exclude_id), None)

    def list_page(self, *, search, status, limit, offset):
        return [{"id": i} for i in self.rows][offset:offset + limit]

    def count(self, *, search, status):
        return len(self.rows)

    def list_active(self):
        return [{"id": i} for i in self.rows]

    def create(self, **fields):
        new_id = max(self.rows) + 1
        self.rows[new_id] = Department(new_id, fields["name"], fields["manager_id"], fields["parent_id"],
                                       fields["analytic_account"], fields["description"], fields["status"])
        return new_id

    def update(self, department_id, changes):
        return True

    def has_children(self, department_id):
        return department_id in self.children

    def soft_delete(self, department_id):
        self.deleted.append(department_id)
        return True


class FakeUsers:
    def __init__(self):
        self.changes = None

    def get_profile(self, user_id):
        if user_id != 3:
            return None
        c = self.changes or {}
        return UserProfile(
            user_id=3, uuid=None, email="m@epms.local", first_name=c.get("first_name"), last_name=None,
            display_name=None, avatar_url=None, phone=None, job_title=None, department=None,
            timezone=c.get("timezone", "UTC"), locale="en", date_format="YYYY-MM-DD", time_format="24h",
            status="active", last_login_at=None, created_at=None,
        )

    def update_profile(self, user_id, changes):
        if user_id != 3:
            return False
        self.changes = dict(changes)
        return True


@pytest.fixture()
def departments():
    return DepartmentService(FakeDepartments())


def test_create_department_rejects_duplicate_and_unknown_parent(departments):
    with pytest.raises(ConflictError):
        departments.create_department({"name": "Engineering"})
    with pytest.raises(ValidationError, match="Parent department not found"):
        departments.create_department({"name": "QA", "parent_id": 77})
    with pytest.raises(ValidationError, match="Department name is required"):
        departments.create_department({"name": " "})
    assert departments.create_department({"name": "QA", "parent_id": 1}) == 2


def test_update_department_returns_changed_fields(departments):
    changes = departments.update_department(1, {"name": "Platform", "manager_id": 9})
    assert changes == {"name": {"old": "Engineering", "new": "Platform"}}


def test_update_department_rules(departments):
    with pytest.raises(NotFoundError):
        departments.update_department(5, {"name": "x"})
    with pytest.raises(ValidationError, match="own parent"):
        departments.update_department(1, {"name": "Engineering", "parent_id": 1})


def test_delete_department_with_children_is_refused(departments):
    departments._departments.children.add(1)
    with pytest.raises(ValidationError, match="sub-departments"):
        departments.delete_department(1)
    departments._departments.children.clear()
    departments.delete_department(1)
    assert departments._departments.deleted == [1]


def test_list_departments_paginates(departments):
    out = departments.list_departments(page=None, limit=None, search=" ", status=None)
    assert out["pagination"] == {"page": 1, "limit": 50, "total": 1, "totalPages": 1}


def test_profile_update_escapes_and_defaults():
    users = FakeUsers()
    profile = ProfileService(users).update_profile(3, {"first_name": "<Sam>", "timezone": ""})

    assert users.changes["first_name"] == "&lt;Sam&gt;"
    assert users.changes["timezone"] == "UTC"
    assert users.changes["phone"] is None
    assert profile.first_name == "&lt;Sam&gt;"


def test_profile_of_unknown_user():
    svc = ProfileService(FakeUsers())
    with pytest.raises(NotFoundError):
        svc.get_profile(4)
    with pytest.raises(NotFoundError):
        svc.update_profile(4, {})
