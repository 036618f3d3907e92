"""
Record: a Row plus identity metadata.
"""

from collections.abc import Mapping
from typing import Any, Callable

from .row import Row

# Wire keys of the 'meta' section
META_RECORD_ID = "recordID"
META_HREF = "href"

RecordIdListener = Callable[["Record", str | None, str | None], None]


class Record(Row):
    """
    A Row of field data identified by an opaque backend record id.

    Attributes:
        record_id: Backend identifier, or None for a record not yet created
        href: Optional navigation link for the record
    """

    def __init__(
        self,
        record_id: str | None = None,
        href: str | None = None,
        data: Mapping[str, Any] | None = None,
    ):
        super().__init__(data)
        self._record_id = record_id
        self.href = href
        self._id_listener: RecordIdListener | None = None

    @property
    def record_id(self) -> str | None:
        return self._record_id

    @record_id.setter
    def record_id(self, value: str | None) -> None:
        old = self._record_id
        self._record_id = value
        if self._id_listener is not None and old != value:
            self._id_listener(self, old, value)

    def _bind(self, listener: RecordIdListener | None) -> None:
        """Attach the owning Message's id index listener."""
        self._id_listener = listener

    def get_meta(self) -> dict[str, Any]:
        """Return the 'meta' section row for this record."""
        meta: dict[str, Any] = {}
        if self._record_id is not None:
            meta[META_RECORD_ID] = self._record_id
        if self.href is not None:
            meta[META_HREF] = self.href
        return meta

    def __eq__(self, other: object) -> bool:
        if isinstance(other, Record):
            return (
                self._record_id == other._record_id
                and self.href == other.href
                and self.get_data() == other.get_data()
            )
        return super().__eq__(other)

    def __repr__(self) -> str:
        return f"Record(record_id={self._record_id!r}, href={self.href!r}, data={self.get_data()!r})"
