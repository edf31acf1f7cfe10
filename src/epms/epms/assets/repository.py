from __future__ import annotations

from typing import Any, Mapping, Optional, Protocol, Sequence

from .model import Asset


class AssetRepository(Protocol):
    def get(self, asset_id: int) -> Optional[Asset]:
        raise NotImplementedError

    def get_detail(self, asset_id: int) -> Optional[dict]:
        raise NotImplementedError

    def find_id_by_tag(self, asset_tag: str, *, exclude_id: Optional[int] = None) -> Optional[int]:
        raise NotImplementedError

    def list_page(self, *, filters: Mapping[str, Any], limit: int, offset: int) -> Sequence[dict]:
        raise NotImplementedError

    def count(self, *, filters: Mapping[str, Any]) -> int:
        raise NotImplementedError

    def count_by_status(self) -> dict:
        raise NotImplementedError

    def create(self, fields: Mapping[str, Any], *, created_by: int) -> int:
        raise NotImplementedError

    def update(self, asset_id: int, changes: Mapping[str, Any]) -> bool:
        raise NotImplementedError

    def soft_delete(self, asset_id: int) -> bool:
        raise NotImplementedError

    def log_audit(
        self,
        asset_id: int,
        *,
        action: str,
        performed_by: int,
        new_values: Optional[Mapping[str, Any]] = None,
    ) -> None:
        """Append a row to asset_audit_log."""
        raise NotImplementedError
