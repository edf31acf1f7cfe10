import pytest

from src.epms.epms.access.model import AccessContext
from src.epms.epms.change_requests.model import Approval, ChangeRequest
from src.epms.epms.change_requests.service import ChangeRequestService
from src.epms.epms.core.exceptions import AuthorizationError, NotFoundError, ValidationError
from src.epms.epms.projects.model import Project

PM = AccessContext(user_id=5, accessible_project_ids=frozenset({10}))


class FakeProjects:
    def get(self, project_id):
        return Project(project_id, "OPS", "Ops", "active", 1, 5, 5, 5) if project_id in (10, 11) else None


class FakeRequests:
    def __init__(self):
        self.rows = {}
        self.statuses = []
        self.updates = []

    def get(self, cr_id):
        row = self.rows.get(cr_id)
        if not row:
            return None
        return ChangeRequest(cr_id, row["project_id"], row["change_key"], row["title"], row["status"], row["requested_by"])

    def get_detail(self, cr_id):
        return self.rows.get(cr_id)

    def list_page(self, ctx, *, filters, limit, offset):
        self.last_filters = dict(filters)
        return list(self.rows.values())[offset:offset + limit]

    def count(self, ctx, *, filters):
        return len(self.rows)

    def count_for_project(self, project_id):
        return sum(1 for r in self.rows.values() if r["project_id"] == project_id)

    def create(self, fields):
        cr_id = len(self.rows) + 1
        self.rows[cr_id] = dict(fields)
        return cr_id

    def update(self, cr_id, changes, *, submit=False):
        self.updates.append((cr_id, dict(changes), submit))
        if submit:
            self.rows[cr_id]["status"] = "submitted"
        return True

    def set_status(self, cr_id, status, *, decided=False):
        self.statuses.append((cr_id, status, decided))
        self.rows[cr_id]["status"] = status

    def soft_delete(self, cr_id):
        return self.rows.pop(cr_id, None) is not None


class FakeApprovals:
    def __init__(self):
        self.approvals = []
        self.activity = []

    def list_for_request(self, cr_id):
        return [vars(a) for a in self.approvals if a.cr_id == cr_id]

    def find_pending(self, cr_id, approver_id):
        return next(
            (a for a in self.approvals if a.cr_id == cr_id and a.approver_id == approver_id and a.status == "pending"),
            None,
        )

    def record_decision(self, approval_id, *, decision, comments, conditions):
        self.approvals = [
            Approval(a.approval_id, a.cr_id, a.approver_id, decision) if a.approval_id == approval_id else a
            for a in self.approvals
        ]

    def count_pending(self, cr_id):
        return sum(1 for a in self.approvals if a.cr_id == cr_id and a.status == "pending")

    def add_approvers(self, cr_id, approver_ids):
        existing = {a.approver_id for a in self.approvals if a.cr_id == cr_id}
        added = 0
        for uid in approver_ids:
            if uid not in existing:
                self.approvals.append(Approval(len(self.approvals) + 1, cr_id, uid, "pending"))
                added += 1
        return added

    def log_activity(self, cr_id, *, user_id, action, description):
        self.activity.append((cr_id, action))

    def list_activity(self, cr_id):
        return [{"action": a} for c, a in self.activity if c == cr_id]


@pytest.fixture()
def svc():
    return ChangeRequestService(FakeRequests(), FakeApprovals(), FakeProjects())


def _submitted(svc):
    return svc.create_request(
        PM, user_id=5, data={"project_id": 10, "title": "Add SSO", "description": "Use SAML", "submit": True}
    )["id"]


def test_create_draft_applies_defaults(svc):
    out = svc.create_request(PM, user_id=5, data={"project_id": 10, "title": "Add SSO", "description": "SAML"})

    assert out == {"id": 1, "change_key": "OPS-CR-1", "status": "draft"}
    row = svc._requests.rows[1]
    assert row["category"] == "scope"
    assert row["priority"] == "medium"
    assert row["impact_level"] == "moderate"
    assert row["urgency"] == "normal"
    assert row["submitted_at"] is None
    assert svc._approvals.activity == [(1, "created")]


def test_create_submitted_stamps_submission(svc):
    cr_id = _submitted(svc)
    assert svc._requests.rows[cr_id]["status"] == "submitted"
    assert svc._requests.rows[cr_id]["submitted_date"] is not None


@pytest.mark.parametrize(
    "data",
    [{"title": "x", "description": "y"}, {"project_id": 10, "title": "x"}, {"project_id": 10, "description": "y"}],
)
def test_create_requires_project_title_and_description(svc, data):
    with pytest.raises(ValidationError, match="required"):
        svc.create_request(PM, user_id=5, data=data)


def test_create_rejects_bad_priority_and_foreign_project(svc):
    with pytest.raises(ValidationError, match="Invalid priority"):
        svc.create_request(PM, user_id=5, data={"project_id": 10, "title": "x", "description": "y", "priority": "asap"})
    with pytest.raises(AuthorizationError):
        svc.create_request(PM, user_id=5, data={"project_id": 11, "title": "x", "description": "y"})


def test_update_submits_draft_once(svc):
    cr_id = svc.create_request(PM, user_id=5, data={"project_id": 10, "title": "x", "description": "y"})["id"]

    svc.update_request(PM, user_id=5, cr_id=cr_id, data={"submit": True})
    svc.update_request(PM, user_id=5, cr_id=cr_id, data={"submit": True})

    assert svc._requests.updates == [(cr_id, {}, True)]
    with pytest.raises(ValidationError, match="Title cannot be empty"):
        svc.update_request(PM, user_id=5, cr_id=cr_id, data={"title": "  "})


def test_assigning_approvers_moves_submitted_to_review(svc):
    cr_id = _submitted(svc)

    added = svc.assign_approvers(PM, user_id=5, cr_id=cr_id, data={"approver_ids": [7, "8", 7]})

    assert added == 2
    assert svc._requests.statuses == [(cr_id, "under_review", False)]
    assert svc.assign_approvers(PM, user_id=5, cr_id=cr_id, data={"approver_ids": [7]}) == 0
    with pytest.raises(ValidationError, match="non-empty list"):
        svc.assign_approvers(PM, user_id=5, cr_id=cr_id, data={"approver_ids": []})


def test_all_approvals_approve_the_request(svc):
    cr_id = _submitted(svc)
    svc.assign_approvers(PM, user_id=5, cr_id=cr_id, data={"approver_ids": [7, 8]})
    ctx = AccessContext(user_id=7, is_admin=True)

    assert svc.decide(ctx, user_id=7, cr_id=cr_id, data={"decision": "approved"}) == "approved"
    assert svc._requests.rows[cr_id]["status"] == "under_review"

    svc.decide(ctx, user_id=8, cr_id=cr_id, data={"decision": "approved", "comments": "ok"})
    assert svc._requests.statuses[-1] == (cr_id, "approved", True)


def test_single_rejection_rejects_the_request(svc):
    cr_id = _submitted(svc)
    svc.assign_approvers(PM, user_id=5, cr_id=cr_id, data={"approver_ids": [7, 8]})

    svc.decide(PM, user_id=8, cr_id=cr_id, data={"decision": "rejected"})

    assert svc._requests.rows[cr_id]["status"] == "rejected"
    with pytest.raises(ValidationError, match="already decided"):
        svc.assign_approvers(PM, user_id=5, cr_id=cr_id, data={"approver_ids": [9]})


def test_deferral_only_closes_own_approval(svc):
    cr_id = _submitted(svc)
    svc.assign_approvers(PM, user_id=5, cr_id=cr_id, data={"approver_ids": [7]})
    svc.decide(PM, user_id=7, cr_id=cr_id, data={"decision": "deferred"})
    assert svc._requests.rows[cr_id]["status"] == "under_review"


def test_decide_requires_valid_decision_and_pending_approval(svc):
    cr_id = _submitted(svc)
    with pytest.raises(ValidationError, match="Invalid decision"):
        svc.decide(PM, user_id=5, cr_id=cr_id, data={"decision": "maybe"})
    with pytest.raises(ValidationError, match="No pending approval"):
        svc.decide(PM, user_id=5, cr_id=cr_id, data={"decision": "approved"})
    with pytest.raises(NotFoundError):
        svc.decide(PM, user_id=5, cr_id=99, data={"decision": "approved"})


def test_list_filters_my_requests_and_paginates(svc):
    _submitted(svc)
    out = svc.list_requests(PM, user_id=5, args={"myRequests": "true", "limit": "10"})
    assert svc._requests.last_filters["requested_by"] == 5
    assert out["pagination"] == {"page": 1, "limit": 10, "total": 1, "totalPages": 1}
