from __future__ import annotations

from math import ceil
from typing import Any, Dict, Mapping

from ..common.sanitize import sanitize_string, strip_dangerous_tags
from ..common.validators import (
    optional_text,
    parse_optional_date,
    parse_optional_float,
    parse_optional_int,
    parse_pagination,
)
from ..core.enums import AssetStatus
from ..core.exceptions import ConflictError, NotFoundError, ValidationError
from .model import Asset
from .repository import AssetRepository

DEFAULT_ASSET_PAGE_SIZE = 50
DEFAULT_CONDITION = "new"
DEFAULT_DEPRECIATION_METHOD = "straight_line"

_TEXT_FIELDS = ("serial_number", "model", "manufacturer", "barcode", "condition_status", "depreciation_method")
_LONG_TEXT_FIELDS = ("description", "notes")
_INT_FIELDS = ("category_id", "department_id", "useful_life_months", "assigned_to")
_MONEY_FIELDS = ("purchase_cost", "current_value", "salvage_value")
_DATE_FIELDS = ("purchase_date", "depreciation_start_date", "warranty_expiry")


def _clean(data: Mapping[str, Any], *, partial: bool) -> Dict[str, Any]:
    out: Dict[str, Any] = {}

    def present(field: str) -> bool:
        return field in data or not partial

    for field in ("asset_tag", "name"):
        if present(field):
            out[field] = sanitize_string(optional_text(data.get(field)))
    for field in _TEXT_FIELDS:
        if present(field):
            out[field] = sanitize_string(optional_text(data.get(field)))
    for field in _LONG_TEXT_FIELDS:
        if present(field):
            out[field] = strip_dangerous_tags(optional_text(data.get(field)))
    for field in _INT_FIELDS:
        if present(field):
            out[field] = parse_optional_int(data.get(field), field)
    for field in _MONEY_FIELDS:
        if present(field):
            amount = parse_optional_float(data.get(field), field)
            if amount is not None and amount < 0:
                raise ValidationError(f"{field} cannot be negative")
            out[field] = amount
    for field in _DATE_FIELDS:
        if present(field):
            out[field] = parse_optional_date(data.get(field), field)
    if present("status"):
        status = optional_text(data.get("status"))
        if status is not None:
            try:
                status = AssetStatus(status).value
            except ValueError:
                raise ValidationError("Invalid status")
        out["status"] = status
    return out


class AssetService:
    def __init__(self, assets: AssetRepository):
        self._assets = assets

    def _get(self, asset_id: int) -> Asset:
        asset = self._assets.get(int(asset_id))
        if not asset:
            raise NotFoundError("Asset not found")
        return asset

    def list_assets(self, args: Mapping[str, Any]) -> dict:
        page, limit = parse_pagination(args.get("page"), args.get("limit"), default_limit=DEFAULT_ASSET_PAGE_SIZE)
        filters = {
            "search": optional_text(args.get("search")),
            "status": optional_text(args.get("status")),
            "category_id": parse_optional_int(args.get("category_id"), "category_id"),
            "department_id": parse_optional_int(args.get("department_id"), "department_id"),
        }
        total = self._assets.count(filters=filters)
        return {
            "assets": list(self._assets.list_page(filters=filters, limit=limit, offset=(page - 1) * limit)),
            "summary": self._assets.count_by_status(),
            "pagination": {"page": page, "limit": limit, "total": total, "totalPages": ceil(total / limit)},
        }

    def get_asset(self, asset_id: int) -> dict:
        detail = self._assets.get_detail(int(asset_id))
        if not detail:
            raise NotFoundError("Asset not found")
        return detail

    def create_asset(self, *, user_id: int, data: Mapping[str, Any]) -> dict:
        fields = _clean(data, partial=False)
        if not fields["asset_tag"] or not fields["name"]:
            raise ValidationError("Asset tag and name are required")
        if self._assets.find_id_by_tag(fields["asset_tag"]):
            raise ConflictError("Asset tag already exists")

        fields["purchase_cost"] = fields["purchase_cost"] or 0.0
        if fields["current_value"] is None:
            fields["current_value"] = fields["purchase_cost"]
        fields["salvage_value"] = fields["salvage_value"] or 0.0
        fields["status"] = fields["status"] or AssetStatus.AVAILABLE.value
        fields["condition_status"] = fields["condition_status"] or DEFAULT_CONDITION
        fields["depreciation_method"] = fields["depreciation_method"] or DEFAULT_DEPRECIATION_METHOD
        fields["depreciation_start_date"] = fields["depreciation_start_date"] or fields["purchase_date"]

        asset_id = self._assets.create(fields, created_by=user_id)
        self._assets.log_audit(
            asset_id,
            action="created",
            performed_by=user_id,
            new_values={"asset_tag": fields["asset_tag"], "name": fields["name"], "status": fields["status"]},
        )
        return {"id": asset_id}

    def update_asset(self, *, user_id: int, asset_id: int, data: Mapping[str, Any]) -> None:
        asset = self._get(asset_id)
        changes = _clean(data, partial=True)
        for field in ("asset_tag", "name"):
            if field in changes and not changes[field]:
                raise ValidationError("Asset tag and name are required")
        if changes.get("status") is None:
            changes.pop("status", None)
        if "asset_tag" in changes and self._assets.find_id_by_tag(changes["asset_tag"], exclude_id=asset.asset_id):
            raise ConflictError("Asset tag already exists")
        if not changes:
            return
        self._assets.update(asset.asset_id, changes)
        self._assets.log_audit(
            asset.asset_id,
            action="updated",
            performed_by=user_id,
            new_values={k: changes[k] for k in ("name", "status") if k in changes},
        )

    def delete_asset(self, *, user_id: int, asset_id: int) -> None:
        asset = self._get(asset_id)
        if asset.status == AssetStatus.ASSIGNED.value:
            raise ValidationError("Cannot delete an assigned asset")
        self._assets.soft_delete(asset.asset_id)
        self._assets.log_audit(asset.asset_id, action="deleted", performed_by=user_id)
