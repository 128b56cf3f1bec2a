"""
Admin router: custom role administration and subordinate account management.

Every endpoint authorizes through ``RoleService`` / ``AccountService``, which
run the access gate for the request principal and audit their writes.
"""
from __future__ import annotations

from fastapi import APIRouter, Depends, Response, status

from app.auth.principal import Principal
from app.dependencies import get_account_service, get_current_principal, get_role_service
from app.schemas.admin import AdminCreate, AdminResponse, AdminRoleUpdate, AdminStatusUpdate
from app.schemas.role import RoleCreate, RoleList, RoleResponse, RoleUpdate
from app.services.admin.account_service import AccountService
from app.services.admin.role_service import RoleService

router = APIRouter(
    prefix="/admin",
    tags=["admin-core"],
)


@router.get("/roles", response_model=RoleList)
async def list_roles(
    principal: Principal = Depends(get_current_principal),
    roles: RoleService = Depends(get_role_service),
) -> RoleList:
    """Required permission: roleManagement.read"""
    items = await roles.list_roles(principal)
    return RoleList(
        items=[RoleResponse.model_validate(role) for role in items],
        total=len(items),
    )


@router.post("/roles", response_model=RoleResponse, status_code=status.HTTP_201_CREATED)
async def create_role(
    payload: RoleCreate,
    principal: Principal = Depends(get_current_principal),
    roles: RoleService = Depends(get_role_service),
) -> RoleResponse:
    """Required permission: roleManagement.create"""
    role = await roles.create_role(principal, **payload.model_dump())
    return RoleResponse.model_validate(role)


@router.patch("/roles/{role_id}", response_model=RoleResponse)
async def update_role(
    role_id: str,
    payload: RoleUpdate,
    principal: Principal = Depends(get_current_principal),
    roles: RoleService = Depends(get_role_service),
) -> RoleResponse:
    """Required permission: roleManagement.update"""
    role = await roles.update_role(principal, role_id, payload.model_dump(exclude_unset=True))
    return RoleResponse.model_validate(role)


@router.delete("/roles/{role_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_role(
    role_id: str,
    principal: Principal = Depends(get_current_principal),
    roles: RoleService = Depends(get_role_service),
) -> Response:
    """Required permission: roleManagement.delete"""
    await roles.delete_role(principal, role_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/users", response_model=AdminResponse, status_code=status.HTTP_201_CREATED)
async def create_user(
    payload: AdminCreate,
    principal: Principal = Depends(get_current_principal),
    accounts: AccountService = Depends(get_account_service),
) -> AdminResponse:
    """Required permission: userManagement.create, plus a role that may manage users"""
    account = await accounts.create_subordinate(
        principal,
        admin_id=payload.id,
        email=payload.email,
        display_name=payload.display_name,
        role_id=payload.role_id,
        permissions=payload.permissions,
    )
    return AdminResponse.model_validate(account)


@router.patch("/users/{admin_id}/status", response_model=AdminResponse)
async def set_user_status(
    admin_id: str,
    payload: AdminStatusUpdate,
    principal: Principal = Depends(get_current_principal),
    accounts: AccountService = Depends(get_account_service),
) -> AdminResponse:
    """Required permission: userManagement.update"""
    account = await accounts.set_status(principal, admin_id, payload.status)
    return AdminResponse.model_validate(account)


@router.patch("/users/{admin_id}/role", response_model=AdminResponse)
async def assign_user_role(
    admin_id: str,
    payload: AdminRoleUpdate,
    principal: Principal = Depends(get_current_principal),
    accounts: AccountService = Depends(get_account_service),
) -> AdminResponse:
    """Required permission: userManagement.assignRoles"""
    account = await accounts.assign_role(principal, admin_id, payload.role_id)
    return AdminResponse.model_validate(account)
