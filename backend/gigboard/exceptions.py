"""
Typed exception hierarchy for Gigboard services.

Services raise these; routers (and the global handler in ``security.py``)
translate them to HTTP responses.  Every class carries a machine-readable
``code`` and the structured context needed to act on the failure, so
callers catch by type rather than by parsing messages.

    GigboardError
    |
    +-- ValidationError
    +-- ForbiddenError
    +-- NotFoundError
    +-- AlreadyExistsError
    |   +-- AlreadyProvisionedError
    +-- InsufficientQuotaError
    +-- InvalidTransitionError
    +-- InvalidStateError
"""

from typing import Any, Optional


class GigboardError(Exception):
    """Base exception for all Gigboard domain errors."""

    code: str = "GIGBOARD_ERROR"

    def to_dict(self) -> dict[str, Any]:
        """Structured payload for API responses and log lines."""
        context = {
            k: (str(v) if v is not None else None)
            for k, v in vars(self).items()
            if not k.startswith("_")
        }
        return {"code": self.code, "message": str(self), **context}


class ValidationError(GigboardError):
    """Input violates a domain invariant the request schema cannot express."""

    code: str = "VALIDATION_ERROR"

    def __init__(self, message: str, field: Optional[str] = None):
        self.field = field
        super().__init__(message)


class ForbiddenError(GigboardError):
    """Role or ownership check failed."""

    code: str = "FORBIDDEN"

    def __init__(self, message: str, actor_id: Any = None):
        self.actor_id = actor_id
        super().__init__(message)


class NotFoundError(GigboardError):
    """Referenced entity does not exist."""

    code: str = "NOT_FOUND"

    def __init__(self, entity: str, entity_id: Any):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity} not found: {entity_id}")


class AlreadyExistsError(GigboardError):
    """Uniqueness constraint on an identity was violated."""

    code: str = "ALREADY_EXISTS"

    def __init__(self, entity: str, entity_id: Any):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity} already exists: {entity_id}")


class AlreadyProvisionedError(AlreadyExistsError):
    """A profile (and its proposal account) already exists for the freelancer."""

    code: str = "ALREADY_PROVISIONED"

    def __init__(self, freelancer_id: Any):
        super().__init__("Profile", freelancer_id)


class InsufficientQuotaError(GigboardError):
    """A debit would take the proposal balance below zero."""

    code: str = "INSUFFICIENT_QUOTA"

    def __init__(self, freelancer_id: Any, balance: int, requested: int):
        self.freelancer_id = freelancer_id
        self.balance = balance
        self.requested = requested
        super().__init__(
            f"Insufficient proposal quota for {freelancer_id}: "
            f"balance {balance}, requested {requested}"
        )


class InvalidTransitionError(GigboardError):
    """Requested status change is not an edge of the status graph."""

    code: str = "INVALID_TRANSITION"

    def __init__(self, entity_id: Any, from_status: str, to_status: str):
        self.entity_id = entity_id
        self.from_status = from_status
        self.to_status = to_status
        super().__init__(
            f"Cannot transition {entity_id} from '{from_status}' to '{to_status}'"
        )


class InvalidStateError(GigboardError):
    """Operation is not allowed while the entity is in its current state."""

    code: str = "INVALID_STATE"

    def __init__(self, entity_id: Any, status: str, message: str):
        self.entity_id = entity_id
        self.status = status
        super().__init__(message)
