from collections.abc import AsyncGenerator

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from .admin.services.audit_service import AuditService
from .auth.principal import Principal
from .crud.admin import AdminRepository
from .crud.role import RoleRepository
from .database import get_session
from .domain.ports.rbac_store import AdminStore, RoleStore
from .security.token_inspection import ExpiredTokenError, InvalidTokenError, validate_access_token
from .services.admin.account_service import AccountService
from .services.admin.permission_service import PermissionService
from .services.admin.role_service import RoleService

bearer_scheme = HTTPBearer(auto_error=False)

SESSION_EXPIRED_MESSAGE = "Your session has expired. Please sign in again."
INVALID_TOKEN_MESSAGE = "Your sign-in token is invalid. Please sign in again."


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    async for session in get_session():
        yield session


def get_role_store(db: AsyncSession = Depends(get_db)) -> RoleStore:
    return RoleRepository(db)


def get_admin_store(db: AsyncSession = Depends(get_db)) -> AdminStore:
    return AdminRepository(db)


def get_audit_service() -> AuditService:
    return AuditService()


def get_permission_service(
    roles: RoleStore = Depends(get_role_store),
    admins: AdminStore = Depends(get_admin_store),
    audit: AuditService = Depends(get_audit_service),
) -> PermissionService:
    return PermissionService(roles, admins, audit)


def get_role_service(
    roles: RoleStore = Depends(get_role_store),
    admins: AdminStore = Depends(get_admin_store),
    permissions: PermissionService = Depends(get_permission_service),
    audit: AuditService = Depends(get_audit_service),
) -> RoleService:
    return RoleService(roles, admins, permissions, audit)


def get_account_service(
    roles: RoleStore = Depends(get_role_store),
    admins: AdminStore = Depends(get_admin_store),
    permissions: PermissionService = Depends(get_permission_service),
    audit: AuditService = Depends(get_audit_service),
) -> AccountService:
    return AccountService(roles, admins, permissions, audit)


async def get_current_principal(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> Principal:
    """Resolve the bearer token into a principal.

    Never raises: a missing or unusable token yields an anonymous principal
    and the access gate turns that into a displayable denial.
    """
    if credentials is None or credentials.scheme.lower() != "bearer":
        return Principal.anonymous()

    try:
        payload = validate_access_token(credentials.credentials)
    except ExpiredTokenError:
        return Principal.anonymous(SESSION_EXPIRED_MESSAGE)
    except InvalidTokenError:
        return Principal.anonymous(INVALID_TOKEN_MESSAGE)

    return Principal.authenticated(payload["sub"])
