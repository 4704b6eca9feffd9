"""API key router."""

from fastapi import APIRouter, Depends, status

from supply_auth.dependencies.auth import get_api_key_account, get_current_account
from supply_auth.dependencies.services import get_api_key_manager
from supply_auth.models import Account
from supply_auth.schemas.api_keys import ApiKeyCreate, ApiKeyCreated, ApiKeyList, ApiKeyRead
from supply_auth.schemas.auth import AccountInfo, MessageResponse, ValidateResponse
from supply_auth.services.auth import ApiKeyManager

router = APIRouter(prefix="/auth/api-keys", tags=["api-keys"])


@router.post("", response_model=ApiKeyCreated, status_code=status.HTTP_201_CREATED)
def create_api_key(
    data: ApiKeyCreate,
    current_account: Account = Depends(get_current_account),
    manager: ApiKeyManager = Depends(get_api_key_manager),
) -> ApiKeyCreated:
    issued = manager.create(current_account.id, data.name, data.description, data.expires_at)
    return ApiKeyCreated(api_key=ApiKeyRead.model_validate(issued.info), key=issued.key)


@router.get("", response_model=ApiKeyList)
def list_api_keys(
    current_account: Account = Depends(get_current_account),
    manager: ApiKeyManager = Depends(get_api_key_manager),
) -> ApiKeyList:
    keys = manager.list_keys(current_account.id)
    return ApiKeyList(api_keys=[ApiKeyRead.model_validate(k) for k in keys])


@router.delete("/{key_id}", response_model=MessageResponse)
def revoke_api_key(
    key_id: str,
    current_account: Account = Depends(get_current_account),
    manager: ApiKeyManager = Depends(get_api_key_manager),
) -> MessageResponse:
    manager.revoke(current_account.id, key_id)
    return MessageResponse(message="API key revoked")


@router.get("/verify", response_model=ValidateResponse)
def verify_api_key(account: Account = Depends(get_api_key_account)) -> ValidateResponse:
    """Resolve the X-API-Key header to its owner."""
    return ValidateResponse(account=AccountInfo.model_validate(account))
