from __future__ import annotations

import json
import logging
import secrets
import time
from dataclasses import asdict
from math import ceil
from typing import Any, Dict, Optional

from ..common.validators import parse_pagination
from ..core.enums import AuditAction
from .model import AuditEntry
from .repository import AuditRepository

logger = logging.getLogger(__name__)
audit_logger = logging.getLogger("epms.audit")


def _new_entry_id() -> str:
    return f"log-{int(time.time() * 1000)}-{secrets.token_hex(5)}"


def diff_changes(before: Dict[str, Any], after: Dict[str, Any]) -> Dict[str, Dict[str, Any]]:
    """Return ``{field: {"old": x, "new": y}}`` for fields whose value changed."""
    out: Dict[str, Dict[str, Any]] = {}
    for key, new in after.items():
        old = before.get(key)
        if old != new:
            out[key] = {"old": old, "new": new}
    return out


class AuditService:
    """Writes the audit trail.

    A failing insert (missing table, DB hiccup) never breaks the request that
    triggered it; the entry goes to the ``epms.audit`` logger instead.
    """

    def __init__(self, repo: AuditRepository):
        self._repo = repo

    def log(self, entry: AuditEntry) -> Optional[str]:
        entry_id = _new_entry_id()
        try:
            self._repo.insert(entry_id, entry)
            return entry_id
        except Exception:
            logger.warning("Audit insert failed, writing to log instead", exc_info=True)
            payload = asdict(entry)
            payload["action"] = entry.action.value
            payload["id"] = entry_id
            audit_logger.info("[AUDIT] %s", json.dumps(payload, default=str))
            return None

    def log_action(
        self,
        action: AuditAction,
        *,
        resource_type: str,
        user_email: str,
        user_id: Optional[int] = None,
        user_role: Optional[str] = None,
        resource_id: Any = None,
        resource_name: Optional[str] = None,
        changes: Optional[Dict[str, Dict[str, Any]]] = None,
        metadata: Optional[Dict[str, Any]] = None,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> Optional[str]:
        return self.log(
            AuditEntry(
                action=action,
                resource_type=resource_type,
                user_email=user_email,
                user_id=user_id,
                user_role=user_role,
                resource_id=None if resource_id is None else str(resource_id),
                resource_name=resource_name,
                changes=changes,
                metadata=dict(metadata or {}),
                ip_address=ip_address,
                user_agent=user_agent,
            )
        )

    def list_logs(
        self,
        *,
        page: Any = 1,
        limit: Any = 50,
        user_id: Optional[int] = None,
        action: Optional[str] = None,
        resource_type: Optional[str] = None,
    ) -> dict:
        page_n, limit_n = parse_pagination(page, limit, default_limit=50)
        rows = self._repo.list_recent(
            user_id=user_id,
            action=action,
            resource_type=resource_type,
            limit=limit_n,
            offset=(page_n - 1) * limit_n,
        )
        total = self._repo.count(user_id=user_id, action=action, resource_type=resource_type)
        return {
            "logs": list(rows),
            "pagination": {"page": page_n, "limit": limit_n, "total": total, "totalPages": ceil(total / limit_n)},
        }
