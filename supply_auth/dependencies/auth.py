"""Authentication dependencies for protected routes."""

from fastapi import Depends, Header
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from supply_auth.models import Account
from supply_auth.services.auth import ApiKeyManager, SessionIssuer
from supply_auth.services.auth.errors import InvalidTokenError

from .services import get_api_key_manager, get_session_issuer

# Missing credentials are reported through the auth error envelope, not FastAPI's default
security = HTTPBearer(auto_error=False)


def get_current_account(
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
    issuer: SessionIssuer = Depends(get_session_issuer),
) -> Account:
    """
    Get current authenticated account from a session access token.

    Pending-second-factor tokens are rejected.

    Usage:
        @router.get("/protected")
        def protected_route(account: Account = Depends(get_current_account)):
            return {"account_id": account.id}
    """
    if credentials is None:
        raise InvalidTokenError("Missing bearer token")
    return issuer.validate_token(credentials.credentials)


def get_api_key_account(
    x_api_key: str | None = Header(None, alias="X-API-Key"),
    manager: ApiKeyManager = Depends(get_api_key_manager),
) -> Account:
    """Get the account owning the presented X-API-Key."""
    if not x_api_key:
        raise InvalidTokenError("Missing API key")
    return manager.verify(x_api_key)


def get_account_from_any_credential(
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
    x_api_key: str | None = Header(None, alias="X-API-Key"),
    issuer: SessionIssuer = Depends(get_session_issuer),
    manager: ApiKeyManager = Depends(get_api_key_manager),
) -> Account:
    """Bearer token first, then X-API-Key."""
    if credentials is not None:
        return issuer.validate_token(credentials.credentials)
    if x_api_key:
        return manager.verify(x_api_key)
    raise InvalidTokenError("Missing credentials")
