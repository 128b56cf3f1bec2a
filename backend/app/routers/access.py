from fastapi import APIRouter, Depends, Query

from ..admin.dependencies import require_access
from ..auth.gate import AUTHENTICATED, RequireLevel, RequirePermission, Requirement
from ..auth.principal import Principal
from ..auth.resolver import AccessDecision, role_has_wildcard
from ..dependencies import get_current_principal, get_permission_service
from ..errors import ValidationError
from ..schemas.access import (
    AccessCheckRequest,
    AccessDecisionResponse,
    AccessProfileResponse,
)
from ..services.admin.permission_service import AccessContext, PermissionService

router = APIRouter(prefix="/access", tags=["access"])


def _permission_requirement(resource: str, action: str) -> RequirePermission:
    try:
        return RequirePermission(resource, action)  # type: ignore[arg-type]
    except ValueError as exc:
        raise ValidationError(str(exc)) from exc


def _requirement_from(payload: AccessCheckRequest) -> Requirement:
    wants_permission = payload.resource is not None or payload.action is not None
    if payload.max_level is not None and wants_permission:
        raise ValidationError("Specify either max_level or resource/action, not both")
    if payload.max_level is not None:
        return RequireLevel(payload.max_level)
    if wants_permission:
        if payload.resource is None or payload.action is None:
            raise ValidationError("Both resource and action are required")
        return _permission_requirement(payload.resource, payload.action)
    return AUTHENTICATED


def _decision_response(decision: AccessDecision) -> AccessDecisionResponse:
    return AccessDecisionResponse(
        granted=decision.granted,
        kind=decision.kind.value if decision.kind else None,
        message=decision.message,
    )


@router.get("/authorize", response_model=AccessDecisionResponse)
async def authorize(
    resource: str = Query(..., min_length=1),
    action: str = Query(..., min_length=1),
    principal: Principal = Depends(get_current_principal),
    permissions: PermissionService = Depends(get_permission_service),
) -> AccessDecisionResponse:
    """Fine-grained ``resource.action`` decision for in-page checks."""
    requirement = _permission_requirement(resource, action)
    decision = await permissions.check_access(principal, requirement)
    return _decision_response(decision)


@router.post("/check", response_model=AccessDecisionResponse)
async def check(
    payload: AccessCheckRequest,
    principal: Principal = Depends(get_current_principal),
    permissions: PermissionService = Depends(get_permission_service),
) -> AccessDecisionResponse:
    """Page-level gate decision; ``message`` is meant for verbatim display."""
    decision = await permissions.check_access(principal, _requirement_from(payload))
    return _decision_response(decision)


@router.get("/me", response_model=AccessProfileResponse)
async def me(
    context: AccessContext = Depends(require_access(AUTHENTICATED)),
    permissions: PermissionService = Depends(get_permission_service),
) -> AccessProfileResponse:
    effective = await permissions.effective_permissions(context.principal)
    role = context.role
    return AccessProfileResponse(
        id=context.account.id,
        status=context.account.status,
        role_id=role.id if role else None,
        role_name=role.name if role else None,
        role_level=role.level if role else None,
        permissions=effective.names(),
        can_manage_users=bool(role and (role_has_wildcard(role) or role.can_manage_users)),
    )
