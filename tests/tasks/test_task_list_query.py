from src.epms.epms.access.model import AccessContext
from src.epms.epms.tasks.mysql_task_repository import MySQLTaskRepository

MEMBER = AccessContext(user_id=8, accessible_project_ids=frozenset({3}))


class RecordingCursor:
    def __init__(self, rows):
        self.rows = rows
        self.executed = []

    def execute(self, sql, params=()):
        self.executed.append((" ".join(sql.split()), tuple(params)))

    def fetchall(self):
        return self.rows

    def close(self):
        pass


class RecordingConnection:
    def __init__(self, cursor):
        self._cursor = cursor

    def cursor(self, dictionary=True):
        return self._cursor

    def commit(self):
        pass

    def rollback(self):
        pass

    def close(self):
        pass


class FakeConnFactory:
    def __init__(self, rows=()):
        self.cursor = RecordingCursor(list(rows))

    def connect(self):
        return RecordingConnection(self.cursor)


def test_assignee_filter_keeps_every_assignee_on_the_row():
    factory = FakeConnFactory(rows=[{"id": 1, "assignee_ids": "8,9", "assignee_names": "Terry,Sam"}])
    repo = MySQLTaskRepository(factory)

    rows = repo.list_tasks(MEMBER, filters={"assignee_id": 8})

    sql, params = factory.cursor.executed[0]
    assert "EXISTS (SELECT 1 FROM task_assignees x WHERE x.task_id = t.id AND x.user_id=%s)" in sql
    assert "AND ta.user_id=%s" not in sql
    assert params == (3, 8)
    assert rows[0]["assignee_ids"] == [8, 9]


def test_project_and_status_filters_are_parameterised():
    factory = FakeConnFactory()
    repo = MySQLTaskRepository(factory)

    repo.list_tasks(MEMBER, filters={"project_id": 3, "status": "done", "priority": "all"})

    sql, params = factory.cursor.executed[0]
    assert "AND t.project_id=%s" in sql
    assert "AND t.status=%s" in sql
    assert "t.priority=%s" not in sql
    assert params == (3, 3, "done")
