"""
Errors raised by record operations.

Single-record requests surface these to the caller. Bulk requests convert
each one into a Multistatus entry and carry on with the next record.
"""

from recordgate.backend.base import NO_RECORDS_MATCH, BackendError
from recordgate.core.message import Multistatus, Reference

# Synthetic statuses; the 42xxx range is not used by backends
CONFLICT_STATUS = 42409
MISSING_IDENTIFIER_STATUS = 42400


class RecordOperationError(Exception):
    """
    Base class for per-record failures.

    Attributes:
        status: Status code recorded in a multistatus entry
        reason: Human readable reason
        http_status: Status for a transport layer to respond with
        reference: Request record this failure belongs to, when known
    """

    http_status = 500

    def __init__(self, status: int, reason: str, reference: Reference | None = None):
        self.status = status
        self.reason = reason
        self.reference = reference
        super().__init__(f"[{status}] {reason}")

    def to_multistatus(self, default_reference: Reference | None = None) -> Multistatus:
        """Build the multistatus entry reporting this failure."""
        return Multistatus(
            status=self.status,
            reason=self.reason,
            reference=self.reference or default_reference,
        )


class NotFoundError(RecordOperationError):
    """Unique-key or literal-id resolution found no record."""

    http_status = 404

    def __init__(self, reason: str = "No records match the request", reference: Reference | None = None):
        super().__init__(NO_RECORDS_MATCH, reason, reference)


class ConflictError(RecordOperationError):
    """Unique-key resolution matched more than one record."""

    http_status = 409

    def __init__(self, match_count: int, reference: Reference | None = None):
        self.match_count = match_count
        super().__init__(CONFLICT_STATUS, f"{match_count} conflicting records found", reference)


class BackendFailure(RecordOperationError):
    """The backend reported an error; code and message are kept verbatim."""

    http_status = 500

    @classmethod
    def from_backend(cls, error: BackendError, reference: Reference | None = None) -> "BackendFailure":
        return cls(error.code, error.message, reference)


class ValidationFailure(RecordOperationError):
    """A request record lacks a usable identifier, or the request is malformed."""

    http_status = 400

    def __init__(self, reason: str, reference: Reference | None = None):
        super().__init__(MISSING_IDENTIFIER_STATUS, reason, reference)
