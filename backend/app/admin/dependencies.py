"""
Admin dependencies: requirement-based access enforcement for routes.

Each route declares its requirement; the dependency runs the access gate for
the request's principal, audits denials and raises the matching ``AppError``.
"""
from __future__ import annotations

from typing import Awaitable, Callable

from fastapi import Depends, Request

from app.auth.gate import AUTHENTICATED, Requirement
from app.auth.principal import Principal
from app.dependencies import get_current_principal, get_permission_service
from app.services.admin.permission_service import AccessContext, PermissionService


def require_access(
    requirement: Requirement = AUTHENTICATED,
) -> Callable[..., Awaitable[AccessContext]]:
    """
    Enforce ``requirement`` for the current principal.

    Returns:
        Dependency resolving to the granted ``AccessContext``
    """
    async def dependency(
        request: Request,
        principal: Principal = Depends(get_current_principal),
        permissions: PermissionService = Depends(get_permission_service),
    ) -> AccessContext:
        return await permissions.require(
            principal,
            requirement,
            request_method=request.method,
            request_path=request.url.path,
        )

    return dependency
