"""Bearer-token identity verification.

Tokens are HS256 JWTs signed with ``JWT_SECRET`` via python-jose and carry
the subject identity (``sub``, a UUID) and the account role (``role``:
freelancer, client or admin).  Token issuance belongs to the identity
provider; :func:`create_access_token` exists for local development and
tests.
"""

import logging
import os
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any

from fastapi import HTTPException, Request, status
from jose import JWTError, jwt

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# JWT configuration
# ---------------------------------------------------------------------------
JWT_SECRET = os.getenv("JWT_SECRET", "gigboard-dev-secret-change-in-production")
JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
JWT_EXPIRY_HOURS = 24

ROLES = ("freelancer", "client", "admin")


def create_access_token(user_id: uuid.UUID | str, role: str, email: str = "") -> str:
    """Create a signed JWT containing the user's id and role."""
    now = datetime.now(timezone.utc)
    payload = {
        "sub": str(user_id),
        "role": role,
        "email": email,
        "exp": now + timedelta(hours=JWT_EXPIRY_HOURS),
        "iat": now,
    }
    return jwt.encode(payload, JWT_SECRET, algorithm=JWT_ALGORITHM)


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


async def get_current_user(request: Request) -> dict[str, Any]:
    """FastAPI dependency -- extract and validate the Bearer JWT.

    Returns ``{"id": UUID, "role": str, "email": str}``.
    """
    auth_header = request.headers.get("Authorization", "")
    token = auth_header[7:] if auth_header.startswith("Bearer ") else None
    if not token:
        raise _unauthorized("Authorization token is required")

    try:
        payload = jwt.decode(token, JWT_SECRET, algorithms=[JWT_ALGORITHM])
    except JWTError as exc:
        logger.warning("JWT validation failed: %s", exc)
        raise _unauthorized("Invalid or expired token") from exc

    try:
        user_id = uuid.UUID(payload.get("sub", ""))
    except ValueError as exc:
        raise _unauthorized("Invalid token payload") from exc

    role = payload.get("role", "")
    if role not in ROLES:
        raise _unauthorized("Invalid token payload")

    return {"id": user_id, "role": role, "email": payload.get("email", "")}
