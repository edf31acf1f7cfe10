from __future__ import annotations

from dataclasses import dataclass

from .access.mysql_access_repository import MySQLAccessRepository
from .access.service import ProjectAccessService
from .assets.mysql_asset_repository import MySQLAssetRepository
from .assets.service import AssetService
from .audit.mysql_audit_repository import MySQLAuditRepository
from .audit.service import AuditService
from .auth.csrf import CsrfTokenService
from .auth.middleware import AuthGuard
from .auth.rate_limiter import RateLimiter
from .auth.service import AuthService
from .auth.settings import AuthSettings
from .auth.tokens import TokenService
from .budgets.mysql_budget_repository import MySQLBudgetRepository
from .budgets.service import BudgetService
from .change_requests.mysql_change_request_repository import MySQLApprovalRepository, MySQLChangeRequestRepository
from .change_requests.service import ChangeRequestService
from .database.connection import DBConfig, DatabaseConnection
from .projects.mysql_activity_repository import MySQLActivityRepository
from .projects.mysql_project_repository import MySQLProjectRepository
from .projects.service import ProjectService
from .risks.mysql_risk_repository import MySQLRiskRepository
from .risks.service import RiskService
from .sprints.mysql_sprint_repository import MySQLSprintRepository
from .sprints.service import SprintService
from .tasks.mysql_task_repository import MySQLTaskRepository
from .tasks.service import TaskService
from .time_entries.mysql_time_entry_repository import MySQLTimeEntryRepository
from .time_entries.service import TimeEntryService
from .users.mysql_department_repository import MySQLDepartmentRepository
from .users.mysql_account_repository import MySQLRoleRepository, MySQLUserAccountRepository
from .users.mysql_user_repository import MySQLUserRepository
from .users.service import DepartmentService, ProfileService, RoleService, UserAdminService


@dataclass(frozen=True)
class Container:
    conn: DatabaseConnection

    auth_settings: AuthSettings
    token_service: TokenService
    csrf_service: CsrfTokenService
    login_limiter: RateLimiter
    api_limiter: RateLimiter
    password_limiter: RateLimiter
    auth_guard: AuthGuard

    audit_service: AuditService
    access_service: ProjectAccessService
    auth_service: AuthService
    profile_service: ProfileService
    department_service: DepartmentService
    user_admin_service: UserAdminService
    role_service: RoleService

    project_service: ProjectService
    task_service: TaskService
    sprint_service: SprintService
    risk_service: RiskService
    change_request_service: ChangeRequestService
    time_entry_service: TimeEntryService
    budget_service: BudgetService
    asset_service: AssetService


def build_container(*, db_config: dict, auth_settings: AuthSettings) -> Container:
    config = DBConfig(
        host=str(db_config["host"]),
        port=int(db_config.get("port", 3306)),
        user=str(db_config["user"]),
        password=str(db_config["password"]),
        database=str(db_config["database"]),
        pool_size=int(db_config.get("pool_size", 10)),
    )
    conn = DatabaseConnection.get_instance(config)

    users_repo = MySQLUserRepository(conn)
    departments_repo = MySQLDepartmentRepository(conn)
    roles_repo = MySQLRoleRepository(conn)
    projects_repo = MySQLProjectRepository(conn)
    activity_repo = MySQLActivityRepository(conn)

    token_service = TokenService(auth_settings)
    csrf_service = CsrfTokenService(auth_settings)
    login_limiter = RateLimiter(auth_settings.login_limit)
    api_limiter = RateLimiter(auth_settings.api_limit)
    password_limiter = RateLimiter(auth_settings.password_reset_limit)
    auth_guard = AuthGuard(token_service, csrf_service, api_limiter, auth_settings)

    audit_service = AuditService(MySQLAuditRepository(conn))
    auth_service = AuthService(
        users_repo,
        token_service,
        csrf_service,
        login_limiter,
        password_limiter,
        audit_service,
        auth_settings,
    )

    return Container(
        conn=conn,
        auth_settings=auth_settings,
        token_service=token_service,
        csrf_service=csrf_service,
        login_limiter=login_limiter,
        api_limiter=api_limiter,
        password_limiter=password_limiter,
        auth_guard=auth_guard,
        audit_service=audit_service,
        access_service=ProjectAccessService(MySQLAccessRepository(conn)),
        auth_service=auth_service,
        profile_service=ProfileService(users_repo),
        department_service=DepartmentService(departments_repo),
        user_admin_service=UserAdminService(
            MySQLUserAccountRepository(conn),
            roles_repo,
            password_policy=auth_settings.password,
            bcrypt_rounds=auth_settings.bcrypt_rounds,
        ),
        role_service=RoleService(roles_repo),
        project_service=ProjectService(projects_repo, departments_repo, activity_repo),
        task_service=TaskService(MySQLTaskRepository(conn), projects_repo, activity_repo),
        sprint_service=SprintService(MySQLSprintRepository(conn), activity_repo),
        risk_service=RiskService(MySQLRiskRepository(conn), projects_repo, activity_repo),
        change_request_service=ChangeRequestService(
            MySQLChangeRequestRepository(conn),
            MySQLApprovalRepository(conn),
            projects_repo,
        ),
        time_entry_service=TimeEntryService(MySQLTimeEntryRepository(conn), activity_repo),
        budget_service=BudgetService(MySQLBudgetRepository(conn)),
        asset_service=AssetService(MySQLAssetRepository(conn)),
    )
