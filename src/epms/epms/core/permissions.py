"""Permission catalog and the default permissions granted to each role.

Permissions are plain strings of the form ``<resource>.<action>``. They are
embedded in the access token at sign-in, so changing a role's grants only
takes effect on the user's next login or refresh.
"""

from __future__ import annotations

from typing import Dict, Iterable, List

from .constants import DEFAULT_ROLE_NAME


def _crud(resource: str, label: str, *extra: str) -> Dict[str, str]:
    out = {
        f"{resource}.view": f"View {label}",
        f"{resource}.create": f"Create {label}",
        f"{resource}.edit": f"Edit {label}",
        f"{resource}.delete": f"Delete {label}",
    }
    for action in extra:
        out[f"{resource}.{action}"] = f"{action.capitalize()} {label}"
    return out


PERMISSIONS: Dict[str, str] = {
    **_crud("users", "users"),
    **_crud("roles", "roles"),
    **_crud("projects", "projects"),
    **_crud("tasks", "tasks"),
    **_crud("sprints", "sprints"),
    **_crud("risks", "risks"),
    **_crud("issues", "issues"),
    **_crud("audits", "audits", "approve"),
    **_crud("reports", "reports", "export"),
    **_crud("action_plans", "action plans"),
    **_crud("change_requests", "change requests", "approve"),
    **_crud("releases", "releases"),
    **_crud("budgets", "budgets", "approve"),
    **_crud("expenses", "expenses", "approve"),
    **_crud("timesheets", "timesheets", "approve"),
    **_crud("assets", "assets"),
    "settings.view": "View settings",
    "settings.edit": "Edit settings",
    "dashboard.view": "View dashboard",
    "dashboard.analytics": "View analytics",
}


DEFAULT_ROLE_PERMISSIONS: Dict[str, List[str]] = {
    "Super Admin": list(PERMISSIONS),
    "Admin": [
        "users.view", "users.create", "users.edit",
        "roles.view",
        "projects.view", "projects.create", "projects.edit", "projects.delete",
        "tasks.view", "tasks.create", "tasks.edit", "tasks.delete",
        "sprints.view", "sprints.create", "sprints.edit", "sprints.delete",
        "risks.view", "risks.create", "risks.edit", "risks.delete",
        "issues.view", "issues.create", "issues.edit", "issues.delete",
        "audits.view", "audits.create", "audits.edit", "audits.approve",
        "reports.view", "reports.create", "reports.edit", "reports.export",
        "action_plans.view", "action_plans.create", "action_plans.edit",
        "change_requests.view", "change_requests.create", "change_requests.edit", "change_requests.approve",
        "releases.view", "releases.create", "releases.edit", "releases.delete",
        "budgets.view", "budgets.create", "budgets.edit", "budgets.approve",
        "expenses.view", "expenses.create", "expenses.edit", "expenses.approve",
        "timesheets.view", "timesheets.create", "timesheets.edit", "timesheets.approve",
        "assets.view", "assets.create", "assets.edit", "assets.delete",
        "settings.view",
        "dashboard.view", "dashboard.analytics",
    ],
    "Project Manager": [
        "users.view",
        "projects.view", "projects.create", "projects.edit",
        "tasks.view", "tasks.create", "tasks.edit", "tasks.delete",
        "sprints.view", "sprints.create", "sprints.edit", "sprints.delete",
        "risks.view", "risks.create", "risks.edit",
        "issues.view", "issues.create", "issues.edit",
        "reports.view", "reports.create", "reports.edit",
        "change_requests.view", "change_requests.create", "change_requests.edit",
        "releases.view", "releases.create", "releases.edit",
        "budgets.view", "budgets.create", "budgets.edit",
        "expenses.view", "expenses.create", "expenses.edit", "expenses.approve",
        "timesheets.view", "timesheets.edit", "timesheets.approve",
        "dashboard.view", "dashboard.analytics",
    ],
    "Manager": [
        "users.view",
        "projects.view", "projects.edit",
        "tasks.view", "tasks.create", "tasks.edit",
        "sprints.view", "sprints.edit",
        "risks.view", "risks.create", "risks.edit",
        "issues.view", "issues.create", "issues.edit",
        "audits.view", "audits.create", "audits.edit",
        "reports.view", "reports.create", "reports.edit",
        "action_plans.view", "action_plans.create", "action_plans.edit",
        "change_requests.view", "change_requests.create", "change_requests.edit",
        "releases.view", "releases.edit",
        "budgets.view", "budgets.edit",
        "expenses.view", "expenses.create", "expenses.edit",
        "timesheets.view", "timesheets.edit", "timesheets.approve",
        "dashboard.view", "dashboard.analytics",
    ],
    "Team Member": [
        "projects.view",
        "tasks.view", "tasks.create", "tasks.edit",
        "sprints.view",
        "risks.view", "risks.create",
        "issues.view", "issues.create",
        "reports.view",
        "change_requests.view", "change_requests.create",
        "releases.view",
        "expenses.view", "expenses.create",
        "timesheets.view", "timesheets.create", "timesheets.edit",
        "dashboard.view",
    ],
    "Auditor": [
        "projects.view",
        "tasks.view",
        "audits.view", "audits.create",
        "reports.view", "reports.create",
        "action_plans.view",
        "change_requests.view",
        "dashboard.view",
    ],
    "Viewer": [
        "projects.view",
        "tasks.view",
        "sprints.view",
        "audits.view",
        "reports.view",
        "change_requests.view",
        "releases.view",
        "budgets.view",
        "expenses.view",
        "timesheets.view",
        "dashboard.view",
    ],
}

# "Administrator" is the seeded admin role name in older databases.
DEFAULT_ROLE_PERMISSIONS["Administrator"] = list(DEFAULT_ROLE_PERMISSIONS["Admin"])


def permissions_for_role(role_name: str) -> List[str]:
    perms = DEFAULT_ROLE_PERMISSIONS.get(role_name)
    if perms is None:
        perms = DEFAULT_ROLE_PERMISSIONS[DEFAULT_ROLE_NAME]
    return list(perms)


def has_any_permission(granted: Iterable[str], required: Iterable[str]) -> bool:
    have = set(granted)
    return any(p in have for p in required)


def has_all_permissions(granted: Iterable[str], required: Iterable[str]) -> bool:
    have = set(granted)
    return all(p in have for p in required)
