"""
Section views over a Message.

A Section stores no rows of its own. It names one category of Message data
and reads or writes that data through the owning Message on every access,
so any number of simultaneous views stay consistent with the Message.
"""

from collections.abc import Iterator
from enum import Enum
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from .message import Message


class SectionName(str, Enum):
    """
    Known sections, declared in reporting priority order.
    """

    META = "meta"
    DATA = "data"
    INFO = "info"
    META_FIELD = "metaField"
    MULTISTATUS = "multistatus"
    NAV = "nav"

    @property
    def dimensions(self) -> int:
        """1 for a single key/value row, 2 for a list of rows."""
        return _DIMENSIONS[self]

    @classmethod
    def parse(cls, name: "str | SectionName") -> "SectionName":
        """
        Resolve a section name.

        Raises:
            ValueError: If name is not a known section
        """
        try:
            return cls(name)
        except ValueError:
            raise ValueError(f"Unknown section: {name!r}") from None

    def __str__(self) -> str:
        return self.value


_DIMENSIONS = {
    SectionName.META: 2,
    SectionName.DATA: 2,
    SectionName.INFO: 1,
    SectionName.META_FIELD: 2,
    SectionName.MULTISTATUS: 2,
    SectionName.NAV: 1,
}


class Section:
    """
    A dimension-typed projection of one Message section.

    1-D sections (info, nav) have exactly one row. 2-D sections have one row
    per Record, metaField entry or multistatus entry, in insertion order.
    """

    def __init__(self, message: "Message", name: SectionName):
        self._message = message
        self._name = name
        self._dimensions = name.dimensions

    @property
    def name(self) -> SectionName:
        return self._name

    def get_dimensions(self) -> int:
        return self._dimensions

    def __len__(self) -> int:
        return self._message._section_row_count(self._name)

    def __iter__(self) -> Iterator[dict[str, Any]]:
        for index in range(len(self)):
            yield self.get_row(index)

    def get_row(self, index: int) -> dict[str, Any]:
        """
        Return a snapshot of one row.

        Raises:
            IndexError: If the row does not exist
        """
        if index < 0 or index >= len(self):
            raise IndexError(f"{self._name} section has no row {index}")
        return self._message._section_row(self._name, index)

    def set_value(self, index: int, key: str, value: Any) -> None:
        """Write one value through to the owning Message."""
        if index < 0 or index >= len(self):
            raise IndexError(f"{self._name} section has no row {index}")
        self._message._set_section_value(self._name, index, key, value)

    def export(self) -> dict[str, Any] | list[dict[str, Any]]:
        """
        Export the section: a flat mapping for 1-D sections, a list of
        mappings for 2-D sections.
        """
        rows = list(self)
        if self._dimensions == 1:
            return rows[0] if rows else {}
        return rows

    def __repr__(self) -> str:
        return f"Section(name={self._name.value!r}, dimensions={self._dimensions}, rows={len(self)})"
