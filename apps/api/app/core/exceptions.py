"""Domain error taxonomy.

Services raise these; the outermost request boundary turns each kind into a
structured JSON error with the kind's status code.
"""


class DomainError(Exception):
    """Base exception for domain errors."""

    status_code = 500
    kind = "internal"

    def __init__(self, detail: str | None = None):
        self.detail = detail or self.default_detail()
        super().__init__(self.detail)

    @classmethod
    def default_detail(cls) -> str:
        return "Internal server error"


class ValidationFailedError(DomainError):
    """Missing or malformed input, rejected before touching the store."""

    status_code = 400
    kind = "validation"

    @classmethod
    def default_detail(cls) -> str:
        return "Invalid request"


class UnauthorizedError(DomainError):
    """No valid bearer credential."""

    status_code = 401
    kind = "unauthorized"

    @classmethod
    def default_detail(cls) -> str:
        return "Unauthorized"


class ForbiddenError(DomainError):
    """Authenticated, but outside the caller's site scope or role."""

    status_code = 403
    kind = "forbidden"

    @classmethod
    def default_detail(cls) -> str:
        return "Forbidden"


class NotFoundError(DomainError):
    """Referenced entity does not exist."""

    status_code = 404
    kind = "not_found"

    @classmethod
    def default_detail(cls) -> str:
        return "Not found"


class ConflictError(DomainError):
    """Derived-id or natural-key collision. Nothing was written."""

    status_code = 409
    kind = "conflict"

    @classmethod
    def default_detail(cls) -> str:
        return "Already exists"


class StoreUnavailableError(DomainError):
    """Backing store is not ready."""

    status_code = 503
    kind = "unavailable"

    @classmethod
    def default_detail(cls) -> str:
        return "Storage backend is not ready"
