from __future__ import annotations

import json
from typing import Any, List, Mapping, Optional, Sequence, Tuple

from ..core.enums import AssetStatus
from ..database.connection import DatabaseConnection
from ..database.mysql_base import build_set_clause, db_cursor, fetch_scalar, fetchall, fetchone, placeholders
from .model import Asset
from .repository import AssetRepository

ASSET_COLUMNS = (
    "asset_tag",
    "name",
    "description",
    "category_id",
    "department_id",
    "serial_number",
    "model",
    "manufacturer",
    "purchase_date",
    "purchase_cost",
    "current_value",
    "salvage_value",
    "useful_life_months",
    "depreciation_method",
    "depreciation_start_date",
    "warranty_expiry",
    "status",
    "condition_status",
    "assigned_to",
    "barcode",
    "notes",
)


def _where(filters: Mapping[str, Any]) -> Tuple[str, List[Any]]:
    sql = "WHERE a.deleted_at IS NULL"
    args: List[Any] = []
    if filters.get("search"):
        like = f"%{filters['search']}%"
        sql += " AND (a.name LIKE %s OR a.asset_tag LIKE %s OR a.serial_number LIKE %s OR a.model LIKE %s)"
        args += [like, like, like, like]
    status = filters.get("status")
    if status and status != "all":
        sql += " AND a.status=%s"
        args.append(status)
    if filters.get("category_id") is not None:
        sql += " AND a.category_id=%s"
        args.append(filters["category_id"])
    if filters.get("department_id") is not None:
        sql += " AND a.department_id=%s"
        args.append(filters["department_id"])
    return sql, args


class MySQLAssetRepository(AssetRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def get(self, asset_id: int) -> Optional[Asset]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                "SELECT id, asset_tag, name, status FROM assets WHERE id=%s AND deleted_at IS NULL",
                (asset_id,),
            )
            row = fetchone(cur)
            if not row:
                return None
            return Asset(
                asset_id=int(row["id"]),
                asset_tag=row["asset_tag"],
                name=row["name"],
                status=row.get("status") or AssetStatus.AVAILABLE.value,
            )

    def get_detail(self, asset_id: int) -> Optional[dict]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                SELECT a.*, c.name AS category_name, d.name AS department_name,
                       u.name AS assigned_to_name, u.email AS assigned_to_email, cr.name AS created_by_name
                FROM assets a
                LEFT JOIN asset_categories c ON c.id = a.category_id
                LEFT JOIN departments d ON d.id = a.department_id
                LEFT JOIN users u ON u.id = a.assigned_to
                LEFT JOIN users cr ON cr.id = a.created_by
                WHERE a.id=%s AND a.deleted_at IS NULL
                """,
                (asset_id,),
            )
            return fetchone(cur)

    def find_id_by_tag(self, asset_tag: str, *, exclude_id: Optional[int] = None) -> Optional[int]:
        sql = "SELECT id FROM assets WHERE asset_tag=%s AND deleted_at IS NULL"
        args: List[Any] = [asset_tag]
        if exclude_id is not None:
            sql += " AND id<>%s"
            args.append(exclude_id)
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(sql + " LIMIT 1", tuple(args))
            row = fetchone(cur)
            return int(row["id"]) if row else None

    def list_page(self, *, filters: Mapping[str, Any], limit: int, offset: int) -> Sequence[dict]:
        where_sql, args = _where(filters)
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT a.*, c.name AS category_name, d.name AS department_name,
                       u.name AS assigned_to_name, u.email AS assigned_to_email
                FROM assets a
                LEFT JOIN asset_categories c ON c.id = a.category_id
                LEFT JOIN departments d ON d.id = a.department_id
                LEFT JOIN users u ON u.id = a.assigned_to
                {where_sql}
                ORDER BY a.created_at DESC
                LIMIT %s OFFSET %s
                """,
                (*args, int(limit), int(offset)),
            )
            return fetchall(cur)

    def count(self, *, filters: Mapping[str, Any]) -> int:
        where_sql, args = _where(filters)
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"SELECT COUNT(*) AS value FROM assets a {where_sql}", tuple(args))
            return int(fetch_scalar(cur))

    def count_by_status(self) -> dict:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                SELECT status, COUNT(*) AS cnt, COALESCE(SUM(current_value), 0) AS value
                FROM assets
                WHERE deleted_at IS NULL
                GROUP BY status
                """
            )
            rows = fetchall(cur)
        summary = {s.value: 0 for s in AssetStatus}
        summary["total"] = 0
        summary["total_value"] = 0.0
        for row in rows:
            summary[row["status"]] = int(row["cnt"])
            summary["total"] += int(row["cnt"])
            summary["total_value"] += float(row["value"] or 0)
        return summary

    def create(self, fields: Mapping[str, Any], *, created_by: int) -> int:
        columns = [c for c in ASSET_COLUMNS if c in fields] + ["created_by"]
        values = [fields[c] for c in columns[:-1]] + [created_by]
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"INSERT INTO assets({', '.join(columns)}) VALUES({placeholders(len(columns))})",
                tuple(values),
            )
            return int(cur.lastrowid)

    def update(self, asset_id: int, changes: Mapping[str, Any]) -> bool:
        if not changes:
            return False
        set_sql, params = build_set_clause(changes, allowed=ASSET_COLUMNS)
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"UPDATE assets SET {set_sql}, updated_at=NOW() WHERE id=%s AND deleted_at IS NULL",
                (*params, asset_id),
            )
            return cur.rowcount > 0

    def soft_delete(self, asset_id: int) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute("UPDATE assets SET deleted_at=NOW() WHERE id=%s AND deleted_at IS NULL", (asset_id,))
            return cur.rowcount > 0

    def log_audit(
        self,
        asset_id: int,
        *,
        action: str,
        performed_by: int,
        new_values: Optional[Mapping[str, Any]] = None,
    ) -> None:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                INSERT INTO asset_audit_log(asset_id, entity_type, entity_id, action, new_values, performed_by)
                VALUES(%s, 'asset', %s, %s, %s, %s)
                """,
                (
                    asset_id,
                    asset_id,
                    action,
                    json.dumps(dict(new_values), default=str) if new_values else None,
                    performed_by,
                ),
            )
