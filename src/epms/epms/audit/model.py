from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from ..core.enums import AuditAction


@dataclass(frozen=True)
class AuditEntry:
    """One row of the security/audit trail."""

    action: AuditAction
    resource_type: str
    user_email: str
    user_id: Optional[int] = None
    user_role: Optional[str] = None
    resource_id: Optional[str] = None
    resource_name: Optional[str] = None
    changes: Optional[Dict[str, Dict[str, Any]]] = None
    metadata: Dict[str, Any] = field(default_factory=dict)
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
