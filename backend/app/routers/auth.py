from fastapi import APIRouter, Depends

from ..auth.principal import Principal
from ..dependencies import get_account_service, get_current_principal
from ..schemas.admin import AdminResponse
from ..services.admin.account_service import AccountService

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/login-recorded", response_model=AdminResponse)
async def login_recorded(
    principal: Principal = Depends(get_current_principal),
    accounts: AccountService = Depends(get_account_service),
) -> AdminResponse:
    """Called once by the UI right after the identity provider signs a user in."""
    account = await accounts.record_login(principal)
    return AdminResponse.model_validate(account)
