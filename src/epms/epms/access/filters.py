"""SQL fragments that restrict queries to the projects a user may see.

Each builder returns ``(sql, params)`` ready to be AND-ed into a WHERE clause
of a mysql-connector query (``%s`` placeholders).
"""

from __future__ import annotations

from typing import Any, List, Tuple

from ..database.mysql_base import placeholders
from .model import AccessContext


def _in_filter(ctx: AccessContext, column: str) -> Tuple[str, List[Any]]:
    if ctx.is_admin:
        return "1=1", []
    if not ctx.accessible_project_ids:
        return "0=1", []
    ids = sorted(ctx.accessible_project_ids)
    return f"{column} IN ({placeholders(len(ids))})", ids


def build_project_access_filter(ctx: AccessContext, alias: str = "p") -> Tuple[str, List[Any]]:
    return _in_filter(ctx, f"{alias}.id")


def build_entity_access_filter(ctx: AccessContext, alias: str = "e") -> Tuple[str, List[Any]]:
    return _in_filter(ctx, f"{alias}.project_id")


def can_access_project(ctx: AccessContext, project_id: int) -> bool:
    if ctx.is_admin:
        return True
    return int(project_id) in ctx.accessible_project_ids
