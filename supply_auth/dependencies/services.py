"""Per-request wiring of the authentication services.

Collaborators that tests replace (database session, dispatcher, identity
provider client, clock) each have their own dependency so they can be
swapped with ``app.dependency_overrides``.
"""

from collections.abc import Callable
from datetime import datetime
from functools import lru_cache

from fastapi import BackgroundTasks, Depends
from sqlalchemy.orm import Session

from supply_auth.config import settings
from supply_auth.database import get_db
from supply_auth.services.auth import (
    ApiKeyManager,
    IdentityProviderClient,
    MultiFactorVerifier,
    SessionIssuer,
    TokenCodec,
    build_provider_configs,
)
from supply_auth.services.email_service import (
    Notification,
    NotificationDispatcher,
    NotificationQueue,
    SendGridDispatcher,
    deliver_best_effort,
)
from supply_auth.services.repositories import AccountStore, SqlAccountStore
from supply_auth.timeutils import utcnow


class BackgroundTaskQueue(NotificationQueue):
    """Runs best-effort notifications after the response has been sent."""

    def __init__(self, background_tasks: BackgroundTasks, dispatcher: NotificationDispatcher):
        self._background_tasks = background_tasks
        self._dispatcher = dispatcher

    def enqueue(self, notification: Notification) -> None:
        self._background_tasks.add_task(deliver_best_effort, self._dispatcher, notification)


def get_clock() -> Callable[[], datetime]:
    return utcnow


def get_dispatcher() -> NotificationDispatcher:
    return SendGridDispatcher(settings)


@lru_cache(maxsize=1)
def get_identity_provider() -> IdentityProviderClient:
    """One client per process; provider configuration is fixed at startup."""
    return IdentityProviderClient(
        build_provider_configs(settings), timeout=settings.oauth_http_timeout_seconds
    )


def get_account_store(db: Session = Depends(get_db)) -> AccountStore:
    return SqlAccountStore(db)


def get_notification_queue(
    background_tasks: BackgroundTasks,
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
) -> NotificationQueue:
    return BackgroundTaskQueue(background_tasks, dispatcher)


def get_token_codec(clock: Callable[[], datetime] = Depends(get_clock)) -> TokenCodec:
    return TokenCodec(settings.jwt_secret_key, settings.jwt_algorithm, clock=clock)


def get_multi_factor_verifier(
    store: AccountStore = Depends(get_account_store),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
    notifications: NotificationQueue = Depends(get_notification_queue),
    clock: Callable[[], datetime] = Depends(get_clock),
) -> MultiFactorVerifier:
    return MultiFactorVerifier(store, dispatcher, settings, clock=clock, notifications=notifications)


def get_session_issuer(
    store: AccountStore = Depends(get_account_store),
    codec: TokenCodec = Depends(get_token_codec),
    verifier: MultiFactorVerifier = Depends(get_multi_factor_verifier),
    idp_client: IdentityProviderClient = Depends(get_identity_provider),
    notifications: NotificationQueue = Depends(get_notification_queue),
    clock: Callable[[], datetime] = Depends(get_clock),
) -> SessionIssuer:
    return SessionIssuer(
        store, codec, verifier, idp_client, notifications, settings, clock=clock
    )


def get_api_key_manager(
    store: AccountStore = Depends(get_account_store),
    clock: Callable[[], datetime] = Depends(get_clock),
) -> ApiKeyManager:
    return ApiKeyManager(store, settings, clock=clock)
