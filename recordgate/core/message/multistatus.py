"""
Multistatus model representing the outcome of one failed record in a bulk request.
"""

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

# Wire keys of the 'multistatus' section
MULTISTATUS_RECORD_ID = "recordID"
MULTISTATUS_INDEX = "index"
MULTISTATUS_STATUS = "Status"
MULTISTATUS_REASON = "Reason"


class ById(BaseModel):
    """Reference to a request record by its record id (or unique-key id)."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["recordID"] = "recordID"
    record_id: str


class ByIndex(BaseModel):
    """Reference to a request record by its position in the original request."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["index"] = "index"
    index: int = Field(..., ge=0)


Reference = ById | ByIndex


class Multistatus(BaseModel):
    """
    Per-record failure outcome.

    Attributes:
        status: Backend-native or synthetic status code
        reason: Human readable reason
        reference: Which request record failed; None when unknown
    """

    status: int
    reason: str = ""
    reference: ById | ByIndex | None = None

    def to_row(self) -> dict[str, Any]:
        """Export as a 'multistatus' section row."""
        row: dict[str, Any] = {}
        if isinstance(self.reference, ById):
            row[MULTISTATUS_RECORD_ID] = self.reference.record_id
        elif isinstance(self.reference, ByIndex):
            row[MULTISTATUS_INDEX] = self.reference.index
        row[MULTISTATUS_STATUS] = self.status
        row[MULTISTATUS_REASON] = self.reason
        return row

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "Multistatus":
        """Import a 'multistatus' section row, ignoring unknown keys."""
        reference: ById | ByIndex | None = None
        if row.get(MULTISTATUS_RECORD_ID) is not None:
            reference = ById(record_id=str(row[MULTISTATUS_RECORD_ID]))
        elif row.get(MULTISTATUS_INDEX) is not None:
            reference = ByIndex(index=int(row[MULTISTATUS_INDEX]))

        return cls(
            status=row.get(MULTISTATUS_STATUS, 0),
            reason=str(row.get(MULTISTATUS_REASON, "")),
            reference=reference,
        )
