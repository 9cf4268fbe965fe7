"""
FastAPI dependencies - Dependency injection factories.

This module builds the storage backend at startup and provides Depends()
factories for injecting domain services and the authenticated principal
into routes.
"""

import logging
from dataclasses import dataclass
from typing import Any

from fastapi import Depends, Request
from fastapi.security import HTTPBasic, HTTPBasicCredentials
from psycopg_pool import ConnectionPool

from src.adapters.accounts import InMemoryAccountDirectory, PostgresAccountDirectory
from src.adapters.notifications.console import ConsoleNotificationDispatcher
from src.adapters.repository import (
    InMemoryReportStore,
    InMemoryVerificationStore,
    PostgresReportStore,
    PostgresVerificationStore,
    run_migrations,
)
from src.api.errors import to_http_exception
from src.config.settings import Settings, get_settings
from src.domain.exceptions import AuthenticationRequired, PermissionDenied
from src.domain.identifiers import normalize_id
from src.domain.listing import ListingService
from src.domain.models import Principal
from src.domain.moderation import ModerationEngine
from src.domain.ports import ActorRole

logger = logging.getLogger(__name__)


@dataclass
class Backend:
    """Adapters shared by every request, created once in the lifespan."""

    verifications: Any
    reports: Any
    accounts: InMemoryAccountDirectory | PostgresAccountDirectory
    notifier: ConsoleNotificationDispatcher
    pool: ConnectionPool | None = None

    def check_health(self) -> None:
        """Raise if the database is unreachable; memory backends are always healthy."""
        if self.pool is None:
            return
        with self.pool.connection() as conn:
            conn.execute("SELECT 1")

    def close(self) -> None:
        if self.pool is not None:
            self.pool.close()
            logger.info("Database connection pool closed")


def build_backend(settings: Settings) -> Backend:
    """Create stores and collaborators for the configured storage backend."""
    notifier = ConsoleNotificationDispatcher()

    if settings.storage_backend == "memory":
        logger.info("Using in-memory storage backend")
        return Backend(
            verifications=InMemoryVerificationStore(),
            reports=InMemoryReportStore(),
            accounts=InMemoryAccountDirectory(bcrypt_cost=settings.bcrypt_cost),
            notifier=notifier,
        )

    logger.info("Connecting to database...")
    # Create connection pool with explicit sizing
    pool = ConnectionPool(
        conninfo=settings.database_url,
        min_size=settings.pool_min_size,
        max_size=settings.pool_max_size,
    )

    logger.info("Running database migrations...")
    run_migrations(pool)

    return Backend(
        verifications=PostgresVerificationStore(pool),
        reports=PostgresReportStore(pool),
        accounts=PostgresAccountDirectory(pool, bcrypt_cost=settings.bcrypt_cost),
        notifier=notifier,
        pool=pool,
    )


def bootstrap_admin(backend: Backend, settings: Settings) -> bool:
    """
    Seed the bootstrap admin if configured.

    Safe to run on every startup: an existing principal is left untouched.

    Returns:
        True if the admin was created by this call

    Raises:
        ValidationError: If the configured id or API key is unusable
    """
    if not settings.bootstrap_admin_id or not settings.bootstrap_admin_api_key:
        return False

    admin = Principal(
        id=normalize_id(settings.bootstrap_admin_id, "bootstrap admin id"),
        role=ActorRole.ADMIN,
        display_name="Bootstrap admin",
        can_manage_breeders=True,
        can_manage_reports=True,
    )
    created = backend.accounts.ensure_principal(admin, settings.bootstrap_admin_api_key)
    if created:
        logger.info("Bootstrap admin %s created", admin.id)
    else:
        logger.info("Bootstrap admin %s already present", admin.id)
    return created


def get_backend(request: Request) -> Backend:
    """
    Get backend from app state.

    The backend is created during app lifespan startup and stored in app.state.
    """
    return request.app.state.backend


def get_moderation_engine(request: Request) -> ModerationEngine:
    """
    Create the moderation engine with injected dependencies.

    Wires together the entity stores, account directory and notifier.
    """
    backend = get_backend(request)
    settings = get_settings()
    return ModerationEngine(
        verifications=backend.verifications,
        reports=backend.reports,
        account_status=backend.accounts,
        notifier=backend.notifier,
        version_conflict_retries=settings.version_conflict_retries,
        auto_reject_overdue_documents=settings.auto_reject_overdue_documents,
    )


def get_listing_service(request: Request) -> ListingService:
    """Create the listing service over the shared entity stores."""
    backend = get_backend(request)
    settings = get_settings()
    return ListingService(
        verifications=backend.verifications,
        reports=backend.reports,
        max_page_size=settings.max_page_size,
        timeout_ms=settings.listing_timeout_ms,
    )


# HTTP BASIC AUTH security scheme for OpenAPI documentation
http_basic = HTTPBasic()


def get_current_principal(
    request: Request,
    credentials: HTTPBasicCredentials = Depends(http_basic),
) -> Principal:
    """
    Resolve HTTP BASIC AUTH credentials to a principal.

    The username is the principal id and the password its API key. Unknown
    ids, wrong keys and suspended accounts all get the same 401.
    """
    principal_id = credentials.username.strip().lower()
    principal = get_backend(request).accounts.authenticate(principal_id, credentials.password)
    if principal is None:
        raise to_http_exception(AuthenticationRequired("Invalid credentials"))
    return principal


def require_admin(principal: Principal = Depends(get_current_principal)) -> Principal:
    """Reject non-admin principals with 403 naming the required and current role."""
    if not principal.is_admin:
        raise to_http_exception(
            PermissionDenied(f"Admin role required; current role: {principal.role.value}")
        )
    return principal


def require_breeder(principal: Principal = Depends(get_current_principal)) -> Principal:
    if principal.role != ActorRole.BREEDER:
        raise to_http_exception(
            PermissionDenied(f"Breeder role required; current role: {principal.role.value}")
        )
    return principal
