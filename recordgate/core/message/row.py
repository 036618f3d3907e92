"""
Row: an ordered mapping of field name to scalar value.
"""

from collections.abc import Iterator, Mapping, MutableMapping
from typing import Any


class Row(MutableMapping):
    """
    One flat tuple of fields.

    Keys are unique and keep insertion order. Repeating fields use the
    "name[n]" wire convention and are ordinary keys here.
    """

    def __init__(self, data: Mapping[str, Any] | None = None):
        self._data: dict[str, Any] = {}
        if data is not None:
            self.set_data(data)

    def __getitem__(self, key: str) -> Any:
        return self._data[key]

    def __setitem__(self, key: str, value: Any) -> None:
        self._data[key] = value

    def __delitem__(self, key: str) -> None:
        del self._data[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._data)

    def __len__(self) -> int:
        return len(self._data)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, Row):
            return type(self) is type(other) and self._data == other._data
        if isinstance(other, Mapping):
            return self._data == dict(other)
        return NotImplemented

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self._data!r})"

    def set_data(self, data: Mapping[str, Any]) -> None:
        """Replace all fields with the contents of data."""
        self._data = dict(data)

    def get_data(self) -> dict[str, Any]:
        """Return a copy of the fields as a plain dict."""
        return dict(self._data)
