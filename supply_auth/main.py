"""Main FastAPI application."""

import logging

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from supply_auth.config import settings
from supply_auth.rate_limiter import limiter
from supply_auth.routers import api_keys, auth, mfa
from supply_auth.services.auth.errors import AuthError, ErrorKind, RateLimitedError

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper()),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)

logger = logging.getLogger(__name__)

STATUS_BY_KIND = {
    ErrorKind.INVALID_CREDENTIALS: status.HTTP_401_UNAUTHORIZED,
    ErrorKind.ACCOUNT_DEACTIVATED: status.HTTP_403_FORBIDDEN,
    ErrorKind.PASSWORD_LOGIN_UNAVAILABLE: status.HTTP_400_BAD_REQUEST,
    ErrorKind.PASSWORD_TOO_LONG: status.HTTP_400_BAD_REQUEST,
    ErrorKind.EMAIL_ALREADY_REGISTERED: status.HTTP_409_CONFLICT,
    ErrorKind.INVALID_TOKEN: status.HTTP_401_UNAUTHORIZED,
    ErrorKind.INVALID_OR_EXPIRED_TEMP_TOKEN: status.HTTP_401_UNAUTHORIZED,
    ErrorKind.INVALID_SECOND_FACTOR: status.HTTP_401_UNAUTHORIZED,
    ErrorKind.RATE_LIMITED: status.HTTP_429_TOO_MANY_REQUESTS,
    ErrorKind.DISPATCH_FAILED: status.HTTP_502_BAD_GATEWAY,
    ErrorKind.INVALID_OR_EXPIRED_CODE: status.HTTP_400_BAD_REQUEST,
    ErrorKind.OAUTH_EXCHANGE_FAILED: status.HTTP_400_BAD_REQUEST,
    ErrorKind.UNSUPPORTED_PROVIDER: status.HTTP_400_BAD_REQUEST,
    ErrorKind.ACCOUNT_LINK_CONFLICT: status.HTTP_409_CONFLICT,
    ErrorKind.UPSTREAM_UNAVAILABLE: status.HTTP_503_SERVICE_UNAVAILABLE,
    ErrorKind.INVALID_REFRESH_TOKEN: status.HTTP_401_UNAUTHORIZED,
    ErrorKind.REFRESH_TOKEN_EXPIRED: status.HTTP_401_UNAUTHORIZED,
    ErrorKind.API_KEY_INVALID: status.HTTP_401_UNAUTHORIZED,
    ErrorKind.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorKind.ALREADY_ENABLED: status.HTTP_409_CONFLICT,
    ErrorKind.NOT_ENABLED: status.HTTP_400_BAD_REQUEST,
    ErrorKind.INTERNAL_FAILURE: status.HTTP_500_INTERNAL_SERVER_ERROR,
}

# Create FastAPI app
app = FastAPI(
    title="Hospital Supply Auth API",
    description="Authentication and session issuance for the hospital supply platform",
    version="0.1.0",
    docs_url="/docs",
    redoc_url="/redoc",
)

# Add rate limiter to app state and exception handler
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)


@app.exception_handler(AuthError)
async def auth_error_handler(request: Request, exc: AuthError) -> JSONResponse:
    """Expected auth outcomes become a typed error envelope."""
    body = {"success": False, "error": exc.kind.value, "message": exc.message}
    headers = None
    if isinstance(exc, RateLimitedError):
        body["retry_after"] = exc.retry_after
        headers = {"Retry-After": str(exc.retry_after)}
    elif exc.kind in (ErrorKind.INVALID_TOKEN, ErrorKind.INVALID_CREDENTIALS):
        headers = {"WWW-Authenticate": "Bearer"}
    return JSONResponse(
        status_code=STATUS_BY_KIND.get(exc.kind, status.HTTP_400_BAD_REQUEST),
        content=body,
        headers=headers,
    )


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    """Anything unexpected is logged and reported without internals."""
    logger.exception(f"Unhandled error on {request.method} {request.url.path}")
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "success": False,
            "error": ErrorKind.INTERNAL_FAILURE.value,
            "message": "An internal error occurred",
        },
    )


# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy"}


app.include_router(auth.router, prefix="/api")
app.include_router(mfa.router, prefix="/api")
app.include_router(api_keys.router, prefix="/api")


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000, reload=True)
