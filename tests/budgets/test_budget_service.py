import pytest

from src.epms.epms.access.model import AccessContext
from src.epms.epms.budgets.model import Budget
from src.epms.epms.budgets.service import BudgetService, permissions_for_update, utilization_percent
from src.epms.epms.core.exceptions import AuthorizationError, NotFoundError, ValidationError

PM = AccessContext(user_id=5, accessible_project_ids=frozenset({10}))
EDITOR = ("budgets.view", "budgets.edit")
APPROVER = ("budgets.view", "budgets.approve")


class FakeBudgets:
    def __init__(self):
        self.rows = {}
        self.updates = []

    def get(self, budget_id):
        row = self.rows.get(budget_id)
        if not row:
            return None
        return Budget(
            budget_id=budget_id,
            project_id=row["project_id"],
            fiscal_year=row["fiscal_year"],
            total_budget=row["total_budget"],
            approved_budget=row["approved_budget"],
            actual_spent=row.get("actual_spent", 0.0),
            status=row["status"],
        )

    def get_detail(self, budget_id):
        return self.rows.get(budget_id)

    def list_budgets(self, ctx, *, project_id=None):
        return list(self.rows.values())

    def overview(self, ctx):
        return {"total_budget": 2000.0, "actual_spent": 500.0, "remaining": 1500.0}

    def create(self, **fields):
        budget_id = len(self.rows) + 1
        self.rows[budget_id] = dict(fields)
        return budget_id

    def update(self, budget_id, changes, *, approved_by=None):
        self.updates.append((budget_id, dict(changes), approved_by))
        return True

    def delete(self, budget_id):
        return self.rows.pop(budget_id, None) is not None


@pytest.fixture()
def svc():
    return BudgetService(FakeBudgets())


@pytest.mark.parametrize("spent,total,expected", [(500, 2000, 25.0), (1, 3, 33.3), (10, 0, 0.0), (300, 200, 150.0)])
def test_utilization_percent(spent, total, expected):
    assert utilization_percent(spent, total) == expected


def test_list_adds_utilization_to_overview(svc):
    out = svc.list_budgets(PM)
    assert out["overview"]["utilization"] == 25.0


def test_create_defaults_to_draft_and_approved_total(svc):
    out = svc.create_budget(PM, data={"project_id": 10, "total_budget": "1000", "fiscal_year": "2025"})

    row = svc._budgets.rows[out["id"]]
    assert out["remaining"] == 1000.0
    assert row["status"] == "draft"
    assert row["approved_budget"] == 1000.0
    assert row["fiscal_year"] == 2025


@pytest.mark.parametrize(
    "data,message",
    [
        ({"project_id": 10}, "total budget required"),
        ({"project_id": 10, "total_budget": 0}, "total budget required"),
        ({"project_id": 10, "total_budget": -5}, "cannot be negative"),
        ({"project_id": 10, "total_budget": "nan"}, "finite number"),
        ({"project_id": 10, "total_budget": "inf"}, "finite number"),
        ({"project_id": 10, "total_budget": 100, "approved_budget": "-inf"}, "finite number"),
    ],
)
def test_create_validation(svc, data, message):
    with pytest.raises(ValidationError, match=message):
        svc.create_budget(PM, data=data)


def test_create_for_foreign_project_is_forbidden(svc):
    with pytest.raises(AuthorizationError):
        svc.create_budget(PM, data={"project_id": 11, "total_budget": 100})


def test_spending_recomputes_remaining(svc):
    budget_id = svc.create_budget(PM, data={"project_id": 10, "total_budget": 1000})["id"]

    svc.update_budget(PM, user_id=5, budget_id=budget_id, data={"actual_spent": "250.5"}, permissions=EDITOR)

    assert svc._budgets.updates[-1] == (budget_id, {"actual_spent": 250.5, "remaining": 749.5}, None)


def test_approval_records_approver(svc):
    budget_id = svc.create_budget(PM, data={"project_id": 10, "total_budget": 1000})["id"]
    svc.update_budget(PM, user_id=5, budget_id=budget_id, data={"status": "approved"}, permissions=APPROVER)
    assert svc._budgets.updates[-1] == (budget_id, {"status": "approved"}, 5)

    with pytest.raises(ValidationError, match="Invalid status"):
        svc.update_budget(PM, user_id=5, budget_id=budget_id, data={"status": "frozen"}, permissions=EDITOR)


def test_missing_budget(svc):
    with pytest.raises(NotFoundError):
        svc.delete_budget(PM, 42)


def test_update_rejects_non_finite_spending(svc):
    budget_id = svc.create_budget(PM, data={"project_id": 10, "total_budget": 1000})["id"]

    with pytest.raises(ValidationError, match="actual_spent must be a finite number"):
        svc.update_budget(PM, user_id=5, budget_id=budget_id, data={"actual_spent": "inf"}, permissions=EDITOR)
    assert svc._budgets.updates == []


@pytest.mark.parametrize(
    "data,needed",
    [
        ({"status": "approved"}, ["budgets.approve"]),
        ({"status": "closed"}, ["budgets.edit"]),
        ({"total_budget": 1}, ["budgets.edit"]),
        ({"notes": "x", "status": "approved"}, ["budgets.edit", "budgets.approve"]),
        ({}, []),
    ],
)
def test_permissions_for_update(data, needed):
    assert permissions_for_update(data) == needed


def test_approver_without_edit_rights_cannot_change_amounts(svc):
    budget_id = svc.create_budget(PM, data={"project_id": 10, "total_budget": 1000})["id"]

    with pytest.raises(AuthorizationError, match="Insufficient permissions"):
        svc.update_budget(PM, user_id=7, budget_id=budget_id, data={"total_budget": 1}, permissions=APPROVER)
    with pytest.raises(AuthorizationError):
        svc.update_budget(
            PM, user_id=7, budget_id=budget_id, data={"status": "approved", "notes": "ok"}, permissions=APPROVER
        )
    assert svc._budgets.updates == []


def test_editor_cannot_approve(svc):
    budget_id = svc.create_budget(PM, data={"project_id": 10, "total_budget": 1000})["id"]

    with pytest.raises(AuthorizationError):
        svc.update_budget(PM, user_id=5, budget_id=budget_id, data={"status": "approved"}, permissions=EDITOR)
