from datetime import date

import pytest

from src.epms.epms.assets.model import Asset
from src.epms.epms.assets.service import AssetService
from src.epms.epms.core.exceptions import ConflictError, NotFoundError, ValidationError


class FakeAssets:
    def __init__(self):
        self.rows = {}
        self.audit = []

    def get(self, asset_id):
        row = self.rows.get(asset_id)
        return Asset(asset_id, row["asset_tag"], row["name"], row["status"]) if row else None

    def get_detail(self, asset_id):
        return self.rows.get(asset_id)

    def find_id_by_tag(self, asset_tag, *, exclude_id=None):
        return next(
            (i for i, r in self.rows.items() if r["asset_tag"] == asset_tag and i != exclude_id),
            None,
        )

    def list_page(self, *, filters, limit, offset):
        self.last_filters = dict(filters)
        return list(self.rows.values())[offset:offset + limit]

    def count(self, *, filters):
        return len(self.rows)

    def count_by_status(self):
        return {"total": len(self.rows)}

    def create(self, fields, *, created_by):
        asset_id = len(self.rows) + 1
        self.rows[asset_id] = dict(fields, created_by=created_by)
        return asset_id

    def update(self, asset_id, changes):
        self.rows[asset_id].update(changes)
        return True

    def soft_delete(self, asset_id):
        return self.rows.pop(asset_id, None) is not None

    def log_audit(self, asset_id, *, action, performed_by, new_values=None):
        self.audit.append((asset_id, action))


@pytest.fixture()
def svc():
    return AssetService(FakeAssets())


def _laptop(svc, **extra):
    data = {"asset_tag": "LT-001", "name": "Laptop", "purchase_cost": "1200", "purchase_date": "2024-01-15"}
    data.update(extra)
    return svc.create_asset(user_id=1, data=data)["id"]


def test_create_fills_defaults(svc):
    asset_id = _laptop(svc)
    row = svc._assets.rows[asset_id]

    assert row["status"] == "available"
    assert row["current_value"] == 1200.0
    assert row["salvage_value"] == 0.0
    assert row["condition_status"] == "new"
    assert row["depreciation_method"] == "straight_line"
    assert row["depreciation_start_date"] == date(2024, 1, 15)
    assert svc._assets.audit == [(asset_id, "created")]


def test_duplicate_tag_conflicts(svc):
    _laptop(svc)
    with pytest.raises(ConflictError):
        _laptop(svc)


def test_create_validation(svc):
    with pytest.raises(ValidationError, match="Asset tag and name"):
        svc.create_asset(user_id=1, data={"name": "No tag"})
    with pytest.raises(ValidationError, match="cannot be negative"):
        svc.create_asset(user_id=1, data={"asset_tag": "X", "name": "Y", "purchase_cost": -1})
    with pytest.raises(ValidationError, match="Invalid status"):
        svc.create_asset(user_id=1, data={"asset_tag": "X", "name": "Y", "status": "lost"})


def test_update_is_partial(svc):
    asset_id = _laptop(svc, notes="first")
    svc.update_asset(user_id=1, asset_id=asset_id, data={"status": "maintenance"})

    row = svc._assets.rows[asset_id]
    assert row["status"] == "maintenance"
    assert row["notes"] == "first"
    assert row["purchase_cost"] == 1200.0


def test_update_rejects_tag_of_other_asset(svc):
    first = _laptop(svc)
    second = _laptop(svc, asset_tag="LT-002")
    svc.update_asset(user_id=1, asset_id=first, data={"asset_tag": "LT-001"})
    with pytest.raises(ConflictError):
        svc.update_asset(user_id=1, asset_id=second, data={"asset_tag": "LT-001"})
    with pytest.raises(ValidationError):
        svc.update_asset(user_id=1, asset_id=second, data={"name": ""})


def test_assigned_asset_cannot_be_deleted(svc):
    asset_id = _laptop(svc, status="assigned", assigned_to=4)
    with pytest.raises(ValidationError, match="assigned"):
        svc.delete_asset(user_id=1, asset_id=asset_id)

    svc.update_asset(user_id=1, asset_id=asset_id, data={"status": "available", "assigned_to": None})
    svc.delete_asset(user_id=1, asset_id=asset_id)
    assert svc._assets.audit[-1] == (asset_id, "deleted")
    with pytest.raises(NotFoundError):
        svc.get_asset(asset_id)


def test_list_paginates_with_default_page_size(svc):
    _laptop(svc)
    out = svc.list_assets({})
    assert out["pagination"] == {"page": 1, "limit": 50, "total": 1, "totalPages": 1}
    assert out["summary"] == {"total": 1}
