"""
Message: the container carrying request and response data between wire
formats and backends.

In general:
    Request: import format -> Message -> backend
    Response: backend -> Message -> export format
"""

from collections.abc import Mapping, Sequence
from functools import partial
from typing import Any

from .multistatus import (
    MULTISTATUS_INDEX,
    MULTISTATUS_REASON,
    MULTISTATUS_RECORD_ID,
    MULTISTATUS_STATUS,
    ById,
    ByIndex,
    Multistatus,
)
from .record import META_HREF, META_RECORD_ID, Record
from .row import Row
from .section import Section, SectionName

# Key of a 'metaField' row holding the field name
META_FIELD_NAME = "name"


class Message:
    """
    Aggregate of Records, field metadata, multistatus entries, info and nav.

    Sections are derived views: 'meta' and 'data' are both projections of
    the Record collection, so they always have the same length and row i of
    each describes the same Record.
    """

    def __init__(self):
        self._info: dict[str, Any] = {}
        self._navs: dict[str, Any] = {}
        self._records: list[Record] = []
        self._meta_fields: dict[str, Row] = {}
        self._multistatus: list[Multistatus] = []
        self._record_id_map: dict[str, int] = {}

    # --- info / nav --- #

    def set_info(self, key: str, value: Any) -> None:
        self._info[key] = value

    def get_info(self, key: str) -> Any:
        return self._info.get(key)

    def unset_info(self, key: str) -> None:
        self._info.pop(key, None)

    def get_infos(self) -> dict[str, Any]:
        return dict(self._info)

    def set_nav(self, name: str, href: Any) -> None:
        self._navs[name] = href

    def get_nav(self, name: str) -> Any:
        return self._navs.get(name)

    def get_navs(self) -> dict[str, Any]:
        return dict(self._navs)

    # --- records --- #

    def add_record(self, record: Record) -> None:
        """
        Append a Record, indexing its record id when it has one.

        Args:
            record: Record to take ownership of
        """
        position = len(self._records)
        self._records.append(record)
        record._bind(partial(self._on_record_id_change, position))
        if record.record_id is not None:
            self._record_id_map[record.record_id] = position

    def get_record(self, index: int) -> Record | None:
        """Return the Record at index, or None if there is none."""
        if 0 <= index < len(self._records):
            return self._records[index]
        return None

    def get_record_by_record_id(self, record_id: str) -> Record | None:
        """
        Find a Record by its record id in constant time.

        A missing index entry, or one that no longer agrees with the Record
        it points at, triggers a full rebuild of the index before the lookup
        is retried.
        """
        position = self._record_id_map.get(record_id)
        if position is not None and position < len(self._records) \
                and self._records[position].record_id == record_id:
            return self._records[position]

        self.rebuild_record_id_index()
        position = self._record_id_map.get(record_id)
        return self._records[position] if position is not None else None

    def set_record_id(self, index: int, record_id: str | None) -> None:
        """
        Assign the record id of the Record at index.

        Raises:
            IndexError: If there is no Record at index
        """
        self._records[index].record_id = record_id

    def get_record_count(self) -> int:
        return len(self._records)

    def get_records(self) -> list[Record]:
        return list(self._records)

    def rebuild_record_id_index(self) -> None:
        """Rebuild the record id index from the Record collection."""
        self._record_id_map = {}
        for position, record in enumerate(self._records):
            if record.record_id is not None:
                self._record_id_map[record.record_id] = position

    def _on_record_id_change(self, position: int, record: Record, old: str | None, new: str | None) -> None:
        if old is not None and self._record_id_map.get(old) == position:
            del self._record_id_map[old]
            # another Record may still carry the old id
            for other_position, other in enumerate(self._records):
                if other_position != position and other.record_id == old:
                    self._record_id_map[old] = other_position
                    break
        if new is not None:
            self._record_id_map[new] = position

    # --- metaField --- #

    def set_meta_field(self, field_name: str, meta_field: Mapping[str, Any]) -> bool:
        """
        Cache the metadata row for field_name.

        An existing entry is never overwritten.

        Returns:
            True if the row was stored, False if field_name was already cached
        """
        if field_name in self._meta_fields:
            return False
        row = meta_field if isinstance(meta_field, Row) else Row(meta_field)
        self._meta_fields[field_name] = row
        return True

    def get_meta_field(self, field_name: str) -> Row | None:
        return self._meta_fields.get(field_name)

    def get_meta_field_count(self) -> int:
        return len(self._meta_fields)

    def get_meta_fields(self) -> dict[str, Row]:
        return dict(self._meta_fields)

    # --- multistatus --- #

    def add_multistatus(self, multistatus: Multistatus) -> None:
        self._multistatus.append(multistatus)

    def get_multistatus(self, index: int) -> Multistatus | None:
        if 0 <= index < len(self._multistatus):
            return self._multistatus[index]
        return None

    def get_multistatus_count(self) -> int:
        return len(self._multistatus)

    def get_multistatuses(self) -> list[Multistatus]:
        return list(self._multistatus)

    # --- sections --- #

    def get_section_names(self) -> list[SectionName]:
        """
        Return the non-empty sections in priority order:
        meta, data, info, metaField, multistatus, nav.
        """
        names = []
        if self._records:
            names.append(SectionName.META)
            names.append(SectionName.DATA)
        if self._info:
            names.append(SectionName.INFO)
        if self._meta_fields:
            names.append(SectionName.META_FIELD)
        if self._multistatus:
            names.append(SectionName.MULTISTATUS)
        if self._navs:
            names.append(SectionName.NAV)
        return names

    def get_section(self, name: str | SectionName) -> Section:
        """
        Build a Section view.

        Raises:
            ValueError: If name is not a known section
        """
        return Section(self, SectionName.parse(name))

    def set_section(self, name: str | SectionName, section_data: Any) -> None:
        """
        Import section data.

        1-D sections (info, nav) accept either a flat mapping or a list
        holding a single mapping. For 'meta' and 'data', row i updates the
        Record at index i, creating Records positionally where none exist.

        Raises:
            ValueError: If name is not a known section or the data has the
                wrong shape
        """
        section = SectionName.parse(name)

        if section is SectionName.META:
            for index, row in enumerate(_as_rows(section, section_data)):
                record = self._record_at(index)
                for key, value in row.items():
                    if key == META_RECORD_ID:
                        record.record_id = None if value is None else str(value)
                    elif key == META_HREF:
                        record.href = value

        elif section is SectionName.DATA:
            for index, row in enumerate(_as_rows(section, section_data)):
                self._record_at(index).set_data(row)

        elif section is SectionName.INFO:
            for key, value in _as_flat(section, section_data).items():
                self.set_info(key, value)

        elif section is SectionName.META_FIELD:
            for row in _as_rows(section, section_data):
                if row.get(META_FIELD_NAME) is not None:
                    self.set_meta_field(row[META_FIELD_NAME], Row(row))

        elif section is SectionName.MULTISTATUS:
            for row in _as_rows(section, section_data):
                self.add_multistatus(Multistatus.from_row(dict(row)))

        elif section is SectionName.NAV:
            for key, value in _as_flat(section, section_data).items():
                self.set_nav(key, value)

        else:
            raise ValueError(f"Unhandled section: {section!r}")

    def export_array(self) -> dict[str, Any]:
        """
        Export all non-empty sections keyed by section name.

        1-D sections export as a flat mapping, 2-D sections as a list of
        mappings.
        """
        return {name.value: self.get_section(name).export() for name in self.get_section_names()}

    def import_array(self, array: Mapping[str, Any]) -> None:
        """Import sections produced by export_array()."""
        for name, section_data in array.items():
            self.set_section(name, section_data)

    def __str__(self) -> str:
        lines = []
        for name in self.get_section_names():
            lines.append(f"{name.value}:")
            section = self.get_section(name)
            if section.get_dimensions() == 1:
                for key, value in section.export().items():
                    lines.append(f'  {key}="{_escape(value)}"')
            else:
                for index, row in enumerate(section):
                    lines.append(f"  {index}:")
                    for key, value in row.items():
                        lines.append(f'    {key}="{_escape(value)}"')
            lines.append("")
        return "".join(line + "\n" for line in lines)

    # --- section plumbing used by Section views --- #

    def _record_at(self, index: int) -> Record:
        record = self.get_record(index)
        if record is None:
            record = Record()
            self.add_record(record)
        return record

    def _section_row_count(self, section: SectionName) -> int:
        if section is SectionName.META or section is SectionName.DATA:
            return len(self._records)
        if section is SectionName.INFO or section is SectionName.NAV:
            return 1
        if section is SectionName.META_FIELD:
            return len(self._meta_fields)
        if section is SectionName.MULTISTATUS:
            return len(self._multistatus)
        raise ValueError(f"Unhandled section: {section!r}")

    def _section_row(self, section: SectionName, index: int) -> dict[str, Any]:
        if section is SectionName.META:
            return self._records[index].get_meta()
        if section is SectionName.DATA:
            return self._records[index].get_data()
        if section is SectionName.INFO:
            return dict(self._info)
        if section is SectionName.META_FIELD:
            return list(self._meta_fields.values())[index].get_data()
        if section is SectionName.MULTISTATUS:
            return self._multistatus[index].to_row()
        if section is SectionName.NAV:
            return dict(self._navs)
        raise ValueError(f"Unhandled section: {section!r}")

    def _set_section_value(self, section: SectionName, index: int, key: str, value: Any) -> None:
        if section is SectionName.META:
            if key == META_RECORD_ID:
                self.set_record_id(index, None if value is None else str(value))
            elif key == META_HREF:
                self._records[index].href = value
            else:
                raise ValueError(f"meta section has no field {key!r}")

        elif section is SectionName.DATA:
            self._records[index][key] = value

        elif section is SectionName.INFO:
            self.set_info(key, value)

        elif section is SectionName.META_FIELD:
            if key == META_FIELD_NAME:
                raise ValueError("metaField rows are keyed by name, which cannot be changed")
            list(self._meta_fields.values())[index][key] = value

        elif section is SectionName.MULTISTATUS:
            entry = self._multistatus[index]
            if key == MULTISTATUS_STATUS:
                entry.status = int(value)
            elif key == MULTISTATUS_REASON:
                entry.reason = str(value)
            elif key == MULTISTATUS_RECORD_ID:
                entry.reference = ById(record_id=str(value))
            elif key == MULTISTATUS_INDEX:
                entry.reference = ByIndex(index=int(value))
            else:
                raise ValueError(f"multistatus section has no field {key!r}")

        elif section is SectionName.NAV:
            self.set_nav(key, value)

        else:
            raise ValueError(f"Unhandled section: {section!r}")


def _as_rows(section: SectionName, section_data: Any) -> list[Mapping[str, Any]]:
    """Normalise 2-D section data to a list of mappings."""
    if isinstance(section_data, Mapping):
        return [section_data]
    if isinstance(section_data, Sequence) and not isinstance(section_data, str):
        rows = list(section_data)
        for row in rows:
            if not isinstance(row, Mapping):
                raise ValueError(f"{section.value} rows must be mappings, got {type(row).__name__}")
        return rows
    raise ValueError(f"{section.value} section data must be a list of mappings")


def _as_flat(section: SectionName, section_data: Any) -> Mapping[str, Any]:
    """Normalise 1-D section data, accepting a single row wrapped in a list."""
    if isinstance(section_data, Mapping):
        return section_data
    if isinstance(section_data, Sequence) and not isinstance(section_data, str):
        if len(section_data) == 0:
            return {}
        if len(section_data) == 1 and isinstance(section_data[0], Mapping):
            return section_data[0]
    raise ValueError(f"{section.value} section data must be a mapping or a list holding one mapping")


def _escape(value: Any) -> str:
    if value is None:
        return ""
    return str(value).replace("\\", "\\\\").replace('"', '\\"').replace("'", "\\'")
