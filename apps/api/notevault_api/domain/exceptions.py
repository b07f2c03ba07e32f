from __future__ import annotations


class NotevaultError(Exception):
    code = "error"


class ValidationError(NotevaultError, ValueError):
    """Raised on the client side, before any remote call is made."""

    code = "validation_error"

    def __init__(self, field: str, message: str) -> None:
        super().__init__(f"{field}: {message}")
        self.field = field
        self.message = message


class NotFound(NotevaultError, LookupError):
    code = "not_found"

    def __init__(self, entity: str, entity_id: str) -> None:
        super().__init__(f"{entity}_not_found")
        self.entity = entity
        self.entity_id = entity_id


class StoreUnavailable(NotevaultError, RuntimeError):
    code = "store_unavailable"

    def __init__(self, reason: str = "store_unavailable", *, retryable: bool = False) -> None:
        super().__init__(reason)
        self.reason = reason
        self.retryable = retryable


class Unauthorized(NotevaultError, PermissionError):
    code = "unauthorized"

    def __init__(self, reason: str = "unauthorized") -> None:
        super().__init__(reason)
        self.reason = reason
