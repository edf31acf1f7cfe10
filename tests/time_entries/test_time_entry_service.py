from datetime import date

import pytest

from src.epms.epms.access.model import AccessContext
from src.epms.epms.core.exceptions import AuthorizationError, NotFoundError, ValidationError
from src.epms.epms.time_entries.model import TimeEntry
from src.epms.epms.time_entries.service import TimeEntryService, hours_to_minutes

STAFF = AccessContext(user_id=2, accessible_project_ids=frozenset({10}))
OTHER_STAFF = AccessContext(user_id=3, accessible_project_ids=frozenset({10}))
MANAGER = AccessContext(user_id=7, is_dept_manager=True, accessible_project_ids=frozenset({10}))


class FakeActivity:
    def __init__(self):
        self.entries = []

    def log(self, **kwargs):
        self.entries.append(kwargs)


class FakeEntries:
    def __init__(self):
        self.rows = {}
        self.reviews = []

    def get(self, entry_id):
        row = self.rows.get(entry_id)
        if not row:
            return None
        return TimeEntry(
            entry_id=entry_id,
            user_id=row["user_id"],
            project_id=row["project_id"],
            entry_date=row["entry_date"],
            duration_minutes=row["duration_minutes"],
            status=row["status"],
        )

    def get_detail(self, entry_id):
        return self.rows.get(entry_id)

    def list_entries(self, ctx, *, owner_id, filters):
        self.last_query = (owner_id, dict(filters))
        return [r for r in self.rows.values() if owner_id is None or r["user_id"] == owner_id]

    def summarize(self, ctx, *, owner_id):
        return {"total_minutes": sum(r["duration_minutes"] for r in self.rows.values())}

    def create(self, **fields):
        entry_id = len(self.rows) + 1
        self.rows[entry_id] = dict(fields)
        return entry_id

    def update(self, entry_id, changes):
        self.rows[entry_id].update(changes)
        return True

    def set_status(self, entry_id, status):
        self.rows[entry_id]["status"] = status
        return True

    def review(self, entry_id, *, status, reviewer_id, rejection_reason):
        self.reviews.append((entry_id, status, reviewer_id, rejection_reason))
        self.rows[entry_id]["status"] = status
        return True

    def delete(self, entry_id):
        return self.rows.pop(entry_id, None) is not None


@pytest.fixture()
def svc():
    return TimeEntryService(FakeEntries(), FakeActivity())


def _log(svc, hours="2.5", ctx=STAFF):
    return svc.create_entry(ctx, user_id=ctx.user_id, data={"project_id": 10, "date": "2024-05-02", "hours": hours})["id"]


@pytest.mark.parametrize("hours,minutes", [(1, 60), ("1.5", 90), (0.26, 16), (24, 1440)])
def test_hours_to_minutes(hours, minutes):
    assert hours_to_minutes(hours) == minutes


@pytest.mark.parametrize("hours", [0, -1, "24.5", "nan", "inf", float("nan")])
def test_hours_out_of_range(hours):
    with pytest.raises(ValidationError):
        hours_to_minutes(hours)


def test_create_starts_as_draft(svc):
    out = svc.create_entry(STAFF, user_id=2, data={"project_id": 10, "date": "2024-05-02", "hours": "2.5", "is_billable": "true"})
    row = svc._entries.rows[out["id"]]
    assert out["duration_minutes"] == 150
    assert row["status"] == "draft"
    assert row["entry_date"] == date(2024, 5, 2)
    assert row["is_billable"] is True
    assert svc._activity.entries[0]["description"] == "Logged 2.5h"


def test_create_requires_fields(svc):
    with pytest.raises(ValidationError, match="Project, date, and hours required"):
        svc.create_entry(STAFF, user_id=2, data={"project_id": 10, "date": "2024-05-02"})


def test_staff_cannot_see_colleague_entries(svc):
    entry_id = _log(svc)
    with pytest.raises(AuthorizationError):
        svc.get_entry(OTHER_STAFF, entry_id)
    assert svc.get_entry(MANAGER, entry_id)["user_id"] == 2
    with pytest.raises(NotFoundError):
        svc.get_entry(STAFF, 404)


def test_staff_listing_is_scoped_to_self(svc):
    _log(svc)
    svc.list_entries(STAFF, {"user_id": "3"})
    assert svc._entries.last_query[0] == 2
    assert svc._entries.last_query[1]["user_id"] is None

    svc.list_entries(MANAGER, {"user_id": "3"})
    assert svc._entries.last_query == (None, svc._entries.last_query[1])
    assert svc._entries.last_query[1]["user_id"] == 3


def test_submit_then_approve(svc):
    entry_id = _log(svc)
    svc.update_entry(STAFF, user_id=2, entry_id=entry_id, data={"status": "submitted"})
    assert svc._entries.rows[entry_id]["status"] == "submitted"

    svc.update_entry(MANAGER, user_id=7, entry_id=entry_id, data={"status": "approved"})
    assert svc._entries.reviews == [(entry_id, "approved", 7, None)]

    with pytest.raises(ValidationError, match="Cannot edit approved"):
        svc.update_entry(STAFF, user_id=2, entry_id=entry_id, data={"hours": 1})
    with pytest.raises(ValidationError, match="Cannot delete approved"):
        svc.delete_entry(STAFF, user_id=2, entry_id=entry_id)


def test_review_requires_submitted_entry_and_manager(svc):
    entry_id = _log(svc)
    with pytest.raises(ValidationError, match="Only submitted"):
        svc.review_entry(MANAGER, reviewer_id=7, entry_id=entry_id, status="approved")
    svc.submit_entry(STAFF, user_id=2, entry_id=entry_id)
    with pytest.raises(AuthorizationError, match="Only managers"):
        svc.review_entry(STAFF, reviewer_id=2, entry_id=entry_id, status="approved")


def test_rejection_gets_default_reason_and_can_be_resubmitted(svc):
    entry_id = _log(svc)
    svc.submit_entry(STAFF, user_id=2, entry_id=entry_id)
    svc.review_entry(MANAGER, reviewer_id=7, entry_id=entry_id, status="rejected")
    assert svc._entries.reviews[-1][3] == "Rejected"

    svc.submit_entry(STAFF, user_id=2, entry_id=entry_id)
    assert svc._entries.rows[entry_id]["status"] == "submitted"
    with pytest.raises(ValidationError, match="Only draft or rejected"):
        svc.submit_entry(STAFF, user_id=2, entry_id=entry_id)


def test_only_owner_submits_or_deletes(svc):
    entry_id = _log(svc)
    with pytest.raises(AuthorizationError):
        svc.submit_entry(MANAGER, user_id=7, entry_id=entry_id)
    with pytest.raises(AuthorizationError):
        svc.delete_entry(MANAGER, user_id=7, entry_id=entry_id)
    svc.delete_entry(STAFF, user_id=2, entry_id=entry_id)
    assert entry_id not in svc._entries.rows


def test_update_edits_fields(svc):
    entry_id = _log(svc)
    svc.update_entry(STAFF, user_id=2, entry_id=entry_id, data={"hours": "1", "is_billable": False, "date": "2024-05-03"})
    row = svc._entries.rows[entry_id]
    assert row["duration_minutes"] == 60
    assert row["is_billable"] == 0
    assert row["date"] == date(2024, 5, 3)
