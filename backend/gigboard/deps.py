"""Shared dependencies for all Gigboard API routers.

Centralises the cache singleton, the authentication dependency and the
mapping from domain exceptions to HTTP errors so that every router module
can ``from gigboard.deps import …`` without pulling in ``main``.
"""

import logging

from fastapi import HTTPException, status

from gigboard.auth import get_current_user  # noqa: F401
from gigboard.cache import InMemoryCache
from gigboard.database import get_db  # noqa: F401
from gigboard.exceptions import (
    AlreadyExistsError,
    ForbiddenError,
    GigboardError,
    InsufficientQuotaError,
    InvalidStateError,
    InvalidTransitionError,
    NotFoundError,
    ValidationError,
)
from gigboard.services.cache_service import CacheCoordinator

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Cache (singleton)
# ---------------------------------------------------------------------------
_cache_coordinator = CacheCoordinator(InMemoryCache())


def get_cache() -> CacheCoordinator:
    """FastAPI dependency returning the process-wide cache coordinator."""
    return _cache_coordinator


# ---------------------------------------------------------------------------
# Error mapping
# ---------------------------------------------------------------------------
ERROR_STATUS: dict[type[GigboardError], int] = {
    ValidationError: status.HTTP_400_BAD_REQUEST,
    ForbiddenError: status.HTTP_403_FORBIDDEN,
    NotFoundError: status.HTTP_404_NOT_FOUND,
    AlreadyExistsError: status.HTTP_409_CONFLICT,
    InsufficientQuotaError: status.HTTP_409_CONFLICT,
    InvalidTransitionError: status.HTTP_409_CONFLICT,
    InvalidStateError: status.HTTP_409_CONFLICT,
}


def status_for(exc: GigboardError) -> int:
    for exc_type in type(exc).__mro__:
        if exc_type in ERROR_STATUS:
            return ERROR_STATUS[exc_type]
    return status.HTTP_400_BAD_REQUEST


def http_error(exc: GigboardError) -> HTTPException:
    """Translate a domain exception into an ``HTTPException``."""
    code = status_for(exc)
    if code == status.HTTP_403_FORBIDDEN:
        logger.warning("Forbidden: %s", exc)
    return HTTPException(status_code=code, detail=exc.to_dict())


def _safe_error(operation: str, e: Exception) -> str:
    """Log the full exception but return a safe message without internal details."""
    logger.exception("Error during %s", operation)
    return f"{operation} failed. Please try again or contact support."
