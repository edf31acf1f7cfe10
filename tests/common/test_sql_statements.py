from src.epms.epms.database.bootstrap import (
    REQUIRED_TABLES,
    _strip_create_db_and_use,
    iter_sql_statements,
    missing_tables,
)


def test_splits_on_semicolons_outside_quotes():
    sql = """
    -- roles
    INSERT INTO roles(name) VALUES ('A;B');
    INSERT INTO roles(name) VALUES ("C");
    SELECT 'it\\'s; fine'
    """
    assert list(iter_sql_statements(sql)) == [
        "INSERT INTO roles(name) VALUES ('A;B')",
        'INSERT INTO roles(name) VALUES ("C")',
        "SELECT 'it\\'s; fine'",
    ]


def test_create_database_and_use_lines_are_dropped():
    sql = "CREATE DATABASE IF NOT EXISTS epms_system;\nUSE epms_system;\nCREATE TABLE t (id INT);\n"
    assert list(iter_sql_statements(_strip_create_db_and_use(sql))) == ["CREATE TABLE t (id INT)"]


def test_missing_tables_reports_required_tables_not_present():
    present = [t.upper() for t in REQUIRED_TABLES if t != "cr_approvals"] + ["expenses"]
    assert missing_tables(present) == ["cr_approvals"]
    assert missing_tables(REQUIRED_TABLES) == []
    assert missing_tables([], required=("b", "a")) == ["a", "b"]
