import pytest

from src.epms.epms.access.model import AccessContext
from src.epms.epms.core.exceptions import AuthorizationError, NotFoundError, ValidationError
from src.epms.epms.projects.model import Project
from src.epms.epms.tasks.model import Task
from src.epms.epms.tasks.service import TaskService

MEMBER = AccessContext(user_id=2, accessible_project_ids=frozenset({10}))


class FakeProjects:
    def get(self, project_id):
        if project_id == 10:
            return Project(10, "WEB", "Website", "active", 1, 1, 1, 1)
        if project_id == 11:
            return Project(11, "", "No code", "active", 1, 1, 1, 1)
        return None


class FakeActivity:
    def __init__(self):
        self.entries = []

    def log(self, **kwargs):
        self.entries.append(kwargs)


class FakeTasks:
    def __init__(self):
        self.rows = {}
        self.assignees = {}
        self.updates = []

    def get(self, task_id):
        row = self.rows.get(task_id)
        if not row:
            return None
        return Task(task_id, row["project_id"], row["task_key"], row["title"], row["status"])

    def get_detail(self, task_id):
        return self.rows.get(task_id)

    def list_comments(self, task_id):
        return [{"id": 1, "content": "LGTM"}]

    def list_dependencies(self, task_id):
        return []

    def list_subtasks(self, task_id):
        return []

    def list_tasks(self, ctx, *, filters):
        self.last_filters = dict(filters)
        return list(self.rows.values())

    def summarize(self, ctx, *, project_id=None):
        return {"total": len(self.rows)}

    def count_for_project(self, project_id):
        return sum(1 for r in self.rows.values() if r["project_id"] == project_id)

    def create(self, **fields):
        task_id = len(self.rows) + 1
        self.rows[task_id] = dict(fields)
        return task_id

    def replace_assignees(self, task_id, user_ids):
        self.assignees[task_id] = list(user_ids)

    def update(self, task_id, changes):
        self.updates.append((task_id, dict(changes)))
        self.rows[task_id].update(changes)
        return True

    def soft_delete(self, task_id):
        return self.rows.pop(task_id, None) is not None


@pytest.fixture()
def svc():
    return TaskService(FakeTasks(), FakeProjects(), FakeActivity())


def test_create_numbers_keys_per_project(svc):
    first = svc.create_task(MEMBER, user_id=2, data={"project_id": 10, "title": "Login"})
    second = svc.create_task(MEMBER, user_id=2, data={"project_id": 10, "title": "Logout", "assignee_ids": [3, "3", 4]})

    assert first["task_key"] == "WEB-1"
    assert second["task_key"] == "WEB-2"
    row = svc._tasks.rows[first["id"]]
    assert row["status"] == "to_do"
    assert row["priority"] == "medium"
    assert row["type"] == "task"
    assert svc._tasks.assignees == {second["id"]: [3, 4]}


def test_create_uses_default_prefix_without_project_code():
    svc = TaskService(FakeTasks(), FakeProjects(), FakeActivity())
    ctx = AccessContext(user_id=1, is_admin=True)
    assert svc.create_task(ctx, user_id=1, data={"project_id": 11, "title": "x"})["task_key"] == "TSK-1"


@pytest.mark.parametrize(
    "data,message",
    [
        ({"project_id": 10}, "title is required"),
        ({"title": "x"}, "Project is required"),
        ({"project_id": 10, "title": "x", "priority": "urgent"}, "Invalid priority"),
        ({"project_id": 10, "title": "x", "assignee_ids": "3"}, "must be a list"),
    ],
)
def test_create_validation(svc, data, message):
    with pytest.raises(ValidationError, match=message):
        svc.create_task(MEMBER, user_id=2, data=data)


def test_create_in_foreign_or_missing_project(svc):
    with pytest.raises(AuthorizationError):
        svc.create_task(MEMBER, user_id=2, data={"project_id": 11, "title": "x"})
    with pytest.raises(NotFoundError):
        svc.create_task(AccessContext(user_id=1, is_admin=True), user_id=1, data={"project_id": 12, "title": "x"})


def test_moving_to_done_stamps_completion(svc):
    task_id = svc.create_task(MEMBER, user_id=2, data={"project_id": 10, "title": "x"})["id"]

    svc.update_task(MEMBER, user_id=2, task_id=task_id, data={"status": "done"})
    changes = svc._tasks.updates[-1][1]
    assert changes["completed_at"] is not None
    assert changes["progress_percentage"] == 100

    svc.update_task(MEMBER, user_id=2, task_id=task_id, data={"status": "in_review"})
    assert svc._tasks.updates[-1][1] == {"status": "in_review", "completed_at": None}


def test_update_replaces_assignees_only_when_given(svc):
    task_id = svc.create_task(MEMBER, user_id=2, data={"project_id": 10, "title": "x", "assignee_ids": [5]})["id"]
    svc.update_task(MEMBER, user_id=2, task_id=task_id, data={"title": "y"})
    assert svc._tasks.assignees[task_id] == [5]
    svc.update_task(MEMBER, user_id=2, task_id=task_id, data={"assignee_ids": []})
    assert svc._tasks.assignees[task_id] == []


def test_get_task_includes_comments_and_checks_access(svc):
    task_id = svc.create_task(MEMBER, user_id=2, data={"project_id": 10, "title": "x"})["id"]
    assert svc.get_task(MEMBER, task_id)["comments"][0]["content"] == "LGTM"

    outsider = AccessContext(user_id=3)
    with pytest.raises(AuthorizationError):
        svc.get_task(outsider, task_id)
    with pytest.raises(NotFoundError):
        svc.get_task(MEMBER, 404)


def test_list_parses_filters(svc):
    out = svc.list_tasks(MEMBER, {"project_id": "10", "status": " ", "search": "login"})
    assert svc._tasks.last_filters["project_id"] == 10
    assert svc._tasks.last_filters["status"] is None
    assert svc._tasks.last_filters["search"] == "login"
    assert out["summary"] == {"total": 0}


def test_delete_logs_activity(svc):
    task_id = svc.create_task(MEMBER, user_id=2, data={"project_id": 10, "title": "x"})["id"]
    svc.delete_task(MEMBER, user_id=2, task_id=task_id)
    assert task_id not in svc._tasks.rows
    assert svc._activity.entries[-1]["description"] == "Deleted task: WEB-1"
