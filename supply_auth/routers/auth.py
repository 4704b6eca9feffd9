"""Authentication router."""

import logging

from fastapi import APIRouter, Depends, Request, status

from supply_auth.dependencies.auth import get_account_from_any_credential, get_current_account
from supply_auth.dependencies.services import get_session_issuer
from supply_auth.models import Account
from supply_auth.rate_limiter import limiter
from supply_auth.schemas.auth import (
    AccountInfo,
    ChangePasswordRequest,
    LoginRequest,
    LoginResponse,
    MessageResponse,
    OAuthCallbackRequest,
    OAuthUrlResponse,
    ProfileUpdate,
    RegisterRequest,
    SecondFactorLoginRequest,
    TempTokenRequest,
    TokenPairResponse,
    TokenRefresh,
    ValidateResponse,
)
from supply_auth.schemas.mfa import EmailCodeSentResponse
from supply_auth.services.auth import SecondFactorType, SessionIssuer

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["authentication"])


@router.post("/register", response_model=LoginResponse, status_code=status.HTTP_201_CREATED)
@limiter.limit("5/minute")
def register(
    request: Request,
    data: RegisterRequest,
    issuer: SessionIssuer = Depends(get_session_issuer),
) -> LoginResponse:
    """Create a password account and return a session."""
    result = issuer.register(data.email, data.password, data.name)
    logger.info(f"Account registered: {result.account.id}")
    return LoginResponse.from_result(result)


@router.post("/login", response_model=LoginResponse)
@limiter.limit("10/minute")
def login(
    request: Request,
    data: LoginRequest,
    issuer: SessionIssuer = Depends(get_session_issuer),
) -> LoginResponse:
    """Password login. May answer with a temp token when a second factor is required."""
    return LoginResponse.from_result(issuer.login(data.email, data.password))


@router.post("/login/2fa", response_model=LoginResponse)
@limiter.limit("10/minute")
def complete_login(
    request: Request,
    data: SecondFactorLoginRequest,
    issuer: SessionIssuer = Depends(get_session_issuer),
) -> LoginResponse:
    """Exchange a temp token and a second-factor code for a session."""
    result = issuer.complete_login_with_second_factor(
        data.temp_token, data.code, SecondFactorType(data.factor)
    )
    return LoginResponse.from_result(result)


@router.post("/login/2fa/email-code", response_model=EmailCodeSentResponse)
@limiter.limit("5/minute")
def send_login_email_code(
    request: Request,
    data: TempTokenRequest,
    issuer: SessionIssuer = Depends(get_session_issuer),
) -> EmailCodeSentResponse:
    expires_in = issuer.send_login_email_code(data.temp_token)
    return EmailCodeSentResponse(
        message="Verification code sent", expires_in_minutes=expires_in
    )


@router.post("/refresh", response_model=TokenPairResponse)
def refresh_tokens(
    data: TokenRefresh,
    issuer: SessionIssuer = Depends(get_session_issuer),
) -> TokenPairResponse:
    """Rotate a refresh token into a new access/refresh pair."""
    return TokenPairResponse.from_pair(issuer.refresh_tokens(data.refresh_token))


@router.post("/logout", response_model=MessageResponse)
def logout(
    data: TokenRefresh,
    issuer: SessionIssuer = Depends(get_session_issuer),
) -> MessageResponse:
    issuer.logout(data.refresh_token)
    return MessageResponse(message="Logged out successfully")


@router.get("/validate", response_model=ValidateResponse)
def validate(current_account: Account = Depends(get_current_account)) -> ValidateResponse:
    return ValidateResponse(account=AccountInfo.model_validate(current_account))


@router.get("/me", response_model=AccountInfo)
def get_me(current_account: Account = Depends(get_account_from_any_credential)) -> Account:
    """Get current account info (bearer token or API key)."""
    return current_account


@router.put("/me", response_model=AccountInfo)
def update_me(
    data: ProfileUpdate,
    current_account: Account = Depends(get_current_account),
    issuer: SessionIssuer = Depends(get_session_issuer),
) -> Account:
    return issuer.update_profile(
        current_account.id, name=data.name, preferred_auth_method=data.preferred_auth_method
    )


@router.post("/change-password", response_model=MessageResponse)
@limiter.limit("5/minute")
def change_password(
    request: Request,
    data: ChangePasswordRequest,
    current_account: Account = Depends(get_current_account),
    issuer: SessionIssuer = Depends(get_session_issuer),
) -> MessageResponse:
    """Change password; every existing refresh token is revoked."""
    issuer.change_password(current_account.id, data.current_password, data.new_password)
    return MessageResponse(message="Password changed successfully. Please sign in again.")


@router.get("/oauth/{provider}/url", response_model=OAuthUrlResponse)
def get_oauth_url(
    provider: str,
    state: str | None = None,
    issuer: SessionIssuer = Depends(get_session_issuer),
) -> OAuthUrlResponse:
    return OAuthUrlResponse(provider=provider, auth_url=issuer.get_oauth_auth_url(provider, state))


@router.post("/oauth/{provider}/callback", response_model=LoginResponse)
@limiter.limit("10/minute")
def oauth_callback(
    request: Request,
    provider: str,
    data: OAuthCallbackRequest,
    issuer: SessionIssuer = Depends(get_session_issuer),
) -> LoginResponse:
    """Finish an OAuth2 sign-in with the authorization code from the provider redirect.

    ``state`` is checked by the client that generated it.
    """
    return LoginResponse.from_result(issuer.oauth_login(provider, data.code, data.redirect_uri))
