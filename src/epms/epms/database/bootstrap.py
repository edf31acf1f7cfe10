from __future__ import annotations

import logging
import re
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Optional

import mysql.connector

from ..auth.passwords import hash_password

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DBTarget:
    host: str
    port: int
    user: str
    password: str
    database: str


@dataclass(frozen=True)
class DemoUser:
    name: str
    email: str
    password: str
    role: str
    department: str
    job_title: str


DEMO_USERS = (
    DemoUser("System Admin", "admin@epms.local", "Admin@12345", "Super Admin", "Engineering", "Administrator"),
    DemoUser("Paula Manager", "pm@epms.local", "Manager@12345", "Project Manager", "Engineering", "Project Manager"),
    DemoUser("Dana Ops", "ops.manager@epms.local", "Manager@12345", "Manager", "Operations", "Operations Lead"),
    DemoUser("Terry Member", "member@epms.local", "Member@12345", "Team Member", "Engineering", "Developer"),
)


# Tables the API cannot run without.
REQUIRED_TABLES = (
    "users", "roles", "user_roles", "departments",
    "projects", "project_members", "project_activity_log",
    "tasks", "task_assignees", "sprints", "risks",
    "change_requests", "cr_approvals", "cr_activity_log",
    "time_entries", "project_budgets", "assets", "asset_audit_log", "audit_logs",
)


def _as_target(db_config: dict) -> DBTarget:
    return DBTarget(
        host=str(db_config.get("host", "localhost")),
        port=int(db_config.get("port", 3306)),
        user=str(db_config.get("user", "root")),
        password=str(db_config.get("password", "")),
        database=str(db_config.get("database", "epms_system")),
    )


def _connect(target: DBTarget, *, with_database: bool = True):
    kwargs = dict(host=target.host, port=target.port, user=target.user, password=target.password, use_pure=True)
    if with_database:
        kwargs["database"] = target.database
    return mysql.connector.connect(**kwargs)


def _strip_create_db_and_use(sql: str) -> str:
    # schema.sql names a database; the configured one wins.
    sql = re.sub(r"(?im)^\s*CREATE\s+DATABASE\b.*?;\s*$", "", sql)
    sql = re.sub(r"(?im)^\s*USE\b.*?;\s*$", "", sql)
    return sql


def _strip_comments(sql: str) -> str:
    return "\n".join(line for line in sql.splitlines() if not line.lstrip().startswith("--"))


def iter_sql_statements(sql: str) -> Iterable[str]:
    """Split a SQL script on ``;`` while respecting quoted strings."""
    buf: list[str] = []
    in_single = False
    in_double = False
    escape = False

    for ch in _strip_comments(sql):
        if escape:
            buf.append(ch)
            escape = False
            continue
        if ch == "\\":
            buf.append(ch)
            escape = True
            continue
        if ch == "'" and not in_double:
            in_single = not in_single
        elif ch == '"' and not in_single:
            in_double = not in_double
        elif ch == ";" and not in_single and not in_double:
            stmt = "".join(buf).strip()
            buf.clear()
            if stmt:
                yield stmt
            continue
        buf.append(ch)

    tail = "".join(buf).strip()
    if tail:
        yield tail


def _exec_script(db_config: dict, path: Path) -> None:
    target = _as_target(db_config)
    sql = _strip_create_db_and_use(path.read_text(encoding="utf-8"))
    conn = _connect(target)
    try:
        cur = conn.cursor()
        for stmt in iter_sql_statements(sql):
            cur.execute(stmt)
        conn.commit()
    finally:
        conn.close()


def ensure_database_exists(db_config: dict) -> None:
    target = _as_target(db_config)
    conn = _connect(target, with_database=False)
    try:
        cur = conn.cursor()
        cur.execute(
            f"CREATE DATABASE IF NOT EXISTS `{target.database}` CHARACTER SET utf8mb4 COLLATE utf8mb4_unicode_ci"
        )
        conn.commit()
    finally:
        conn.close()


def apply_schema(db_config: dict, *, schema_path: str | Path) -> None:
    ensure_database_exists(db_config)
    _exec_script(db_config, Path(schema_path))
    logger.info("Schema applied from %s", schema_path)


def apply_seed_sql(db_config: dict, *, seed_path: str | Path) -> None:
    _exec_script(db_config, Path(seed_path))
    logger.info("Seed applied from %s", seed_path)


def ensure_demo_users(db_config: dict, *, bcrypt_rounds: int = 12) -> None:
    """Upsert the demo accounts, their roles and a demo project they share."""
    target = _as_target(db_config)
    conn = _connect(target)
    try:
        cur = conn.cursor(dictionary=True)

        def lookup_id(table: str, value: str) -> Optional[int]:
            cur.execute(f"SELECT id FROM {table} WHERE name=%s LIMIT 1", (value,))
            row = cur.fetchone()
            return int(row["id"]) if row else None

        user_ids = {}
        for demo in DEMO_USERS:
            department_id = lookup_id("departments", demo.department)
            role_id = lookup_id("roles", demo.role)
            if role_id is None:
                raise RuntimeError(f"Missing role {demo.role}; apply seed.sql first")
            first_name, _, last_name = demo.name.partition(" ")
            password_hash = hash_password(demo.password, rounds=bcrypt_rounds)

            cur.execute("SELECT id FROM users WHERE email=%s", (demo.email,))
            existing = cur.fetchone()
            if existing:
                user_id = int(existing["id"])
                cur.execute(
                    """
                    UPDATE users
                    SET name=%s, first_name=%s, last_name=%s, password=%s, department_id=%s, department=%s,
                        job_title=%s, status='active', deleted_at=NULL, updated_at=NOW()
                    WHERE id=%s
                    """,
                    (demo.name, first_name, last_name, password_hash, department_id, demo.department,
                     demo.job_title, user_id),
                )
            else:
                cur.execute(
                    """
                    INSERT INTO users (uuid, name, email, password, first_name, last_name, department_id,
                                       department, job_title)
                    VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s)
                    """,
                    (str(uuid.uuid4()), demo.name, demo.email, password_hash, first_name, last_name,
                     department_id, demo.department, demo.job_title),
                )
                user_id = int(cur.lastrowid)
            cur.execute("DELETE FROM user_roles WHERE user_id=%s", (user_id,))
            cur.execute("INSERT INTO user_roles (user_id, role_id) VALUES (%s, %s)", (user_id, role_id))
            user_ids[demo.email] = user_id

        cur.execute(
            "UPDATE departments SET manager_id=%s WHERE name='Operations' AND manager_id IS NULL",
            (user_ids["ops.manager@epms.local"],),
        )

        cur.execute("SELECT id FROM projects WHERE code='PRJ-001'")
        if not cur.fetchone():
            cur.execute(
                """
                INSERT INTO projects (uuid, code, name, description, status, owner_id, manager_id,
                                      department_id, created_by, planned_start_date, planned_end_date, budget)
                VALUES (UUID(), 'PRJ-001', 'Demo Rollout', 'Sample project for the demo accounts', 'active',
                        %s, %s, %s, %s, CURDATE(), DATE_ADD(CURDATE(), INTERVAL 90 DAY), 50000)
                """,
                (user_ids["pm@epms.local"], user_ids["pm@epms.local"], lookup_id("departments", "Engineering"),
                 user_ids["admin@epms.local"]),
            )
            project_id = int(cur.lastrowid)
            cur.executemany(
                "INSERT IGNORE INTO project_members (project_id, user_id, role_name) VALUES (%s, %s, %s)",
                [
                    (project_id, user_ids["pm@epms.local"], "Project Manager"),
                    (project_id, user_ids["member@epms.local"], "Team Member"),
                ],
            )

        conn.commit()
        logger.info("Demo users ready: %s", ", ".join(sorted(user_ids)))
    finally:
        conn.close()


def missing_tables(existing: Iterable[str], required: Iterable[str] = REQUIRED_TABLES) -> list[str]:
    present = {name.lower() for name in existing}
    return sorted(set(required) - present)


def list_tables(db_config: dict) -> list[str]:
    conn = _connect(_as_target(db_config))
    try:
        cur = conn.cursor()
        cur.execute("SHOW TABLES")
        return [row[0] for row in cur.fetchall()]
    finally:
        conn.close()
