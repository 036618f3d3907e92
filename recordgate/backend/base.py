"""
Base interface for record backends.

A backend is a session-scoped handle to a record-oriented database able to
find, create, update and delete flat records by id. All backends must
inherit from RecordBackend.
"""

from abc import ABC, abstractmethod
from typing import Any

from recordgate.core.models import BackendRecord, FieldDescriptor, ScriptHooks

# Backend status codes shared by all implementations
NO_RECORDS_MATCH = 401
STORE_ERROR = 500
FIELD_MISSING = 102
SCRIPT_MISSING = 104
LAYOUT_MISSING = 105

# Field name -> scalar, or repetition index -> scalar for repeating fields
RepetitionValues = dict[str, Any]


class BackendError(Exception):
    """Raised when the backend reports an error."""

    def __init__(self, code: int, message: str):
        self.code = code
        self.message = message
        super().__init__(f"[{code}] {message}")


class RecordBackend(ABC):
    """
    Abstract base class for record backends.

    The current database is a property of the handle and is selected before
    every call, so one handle must not be shared between threads.
    """

    def __init__(self):
        self.database: str | None = None

    def use_database(self, database: str) -> None:
        """Select the database used by subsequent calls."""
        self.database = database

    @abstractmethod
    def describe_layout(self, layout: str) -> list[FieldDescriptor]:
        """
        Return field metadata for a layout, in layout order.

        Raises:
            BackendError: If the layout does not exist
        """

    @abstractmethod
    def find_by_unique_key(self, layout: str, field: str, value: str) -> list[BackendRecord]:
        """
        Find records whose field equals value.

        Raises:
            BackendError: Code 401 when no record matches
        """

    @abstractmethod
    def find_by_id(self, layout: str, record_id: str) -> BackendRecord:
        """
        Fetch one record by its literal id.

        Raises:
            BackendError: Code 401 when the record does not exist
        """

    @abstractmethod
    def create(
        self, layout: str, values: RepetitionValues, hooks: ScriptHooks | None = None
    ) -> list[BackendRecord]:
        """
        Create a record, running the hook scripts around the write.

        Returns:
            The created record(s)
        """

    @abstractmethod
    def update(
        self, layout: str, record_id: str, values: RepetitionValues, hooks: ScriptHooks | None = None
    ) -> None:
        """
        Update fields of an existing record.

        Raises:
            BackendError: Code 401 when the record does not exist
        """

    @abstractmethod
    def delete(self, layout: str, record_id: str, hooks: ScriptHooks | None = None) -> None:
        """
        Delete a record.

        Raises:
            BackendError: Code 401 when the record does not exist
        """

    @abstractmethod
    def run_script(self, layout: str, script: str, parameter: str | None = None) -> list[BackendRecord]:
        """
        Run a named backend script with at most one string parameter.

        Returns:
            Zero or more records; callers must not assume anything more
        """

    @abstractmethod
    def get_container_data(self, reference: str) -> bytes:
        """Fetch the content behind a container field reference."""

    def get_container_url(self, reference: str) -> str | None:
        """Return a fetchable URL for a container reference, if the backend serves one."""
        return None

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(database={self.database!r})"


def merge_values(
    descriptors: dict[str, FieldDescriptor], stored: dict[str, list[Any]], values: RepetitionValues
) -> None:
    """
    Write repetition-form values into a stored field -> repetitions mapping.

    Raises:
        BackendError: Code 102 for unknown fields or repetitions
    """
    for name, value in values.items():
        descriptor = descriptors.get(name)
        if descriptor is None:
            raise BackendError(FIELD_MISSING, f"Field is missing: {name}")

        repetitions = value if isinstance(value, dict) else {0: value}
        current = stored.setdefault(name, [])
        for repetition, repetition_value in repetitions.items():
            repetition = int(repetition)
            if repetition < 0 or repetition >= descriptor.max_repeat:
                raise BackendError(FIELD_MISSING, f"Field repetition is missing: {name}[{repetition}]")
            while len(current) <= repetition:
                current.append(None)
            current[repetition] = repetition_value
