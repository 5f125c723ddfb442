"""
Error taxonomy shared by the sweeps, the read path and the stock audit log.

Sweeps collect these per entry and never let them escape; operation-scoped
calls (a single product update, a single delete) raise them to the caller.
"""

from typing import Any, Optional


class ConsistencyError(Exception):
    """Base for every record/blob consistency failure."""

    pass


class InvalidReference(ConsistencyError):
    """A product holds an image reference that cannot be turned into a blob key."""

    def __init__(self, reference: Any, reason: str, product_id: Any = None) -> None:
        self.reference = reference
        self.reason = reason
        self.product_id = product_id
        super().__init__(f"Referência de imagem inválida {reference!r}: {reason}")


class NotFound(ConsistencyError):
    """Blob or record already gone. Delete operations treat this as success."""

    pass


class PermissionDenied(ConsistencyError):
    pass


class IOFailure(ConsistencyError):
    pass


class Conflict(ConsistencyError):
    """Record changed between read and conditional write."""

    pass


class AuditAppendFailure(ConsistencyError):
    """The inventory log entry could not be written; the stock change failed as a whole."""

    def __init__(self, message: str, compensated: bool = False, cause: Optional[BaseException] = None) -> None:
        self.compensated = compensated
        self.cause = cause
        super().__init__(message)
