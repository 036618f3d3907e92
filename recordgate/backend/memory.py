"""
In-process record backend.

Keeps records per (database, layout) in dictionaries, with the same error
codes as the networked backends. Used by tests and for local diagnostics.
"""

import copy
from typing import Any, Callable

from recordgate.core.models import BackendRecord, FieldDescriptor, ScriptHook, ScriptHooks

from .base import (
    FIELD_MISSING,
    LAYOUT_MISSING,
    NO_RECORDS_MATCH,
    SCRIPT_MISSING,
    BackendError,
    RecordBackend,
    RepetitionValues,
    merge_values,
)

ScriptFunction = Callable[["InMemoryBackend", str, str | None], list[BackendRecord] | None]


class InMemoryBackend(RecordBackend):
    """
    Record backend holding all data in memory.

    Record ids are decimal strings assigned from a per-layout counter.
    Scripts are registered Python callables; every script execution,
    including write hooks, is appended to script_log.
    """

    def __init__(
        self,
        layouts: dict[str, list[FieldDescriptor]] | None = None,
        container_base_url: str | None = None,
    ):
        super().__init__()
        self.layouts: dict[str, list[FieldDescriptor]] = dict(layouts or {})
        self.container_base_url = container_base_url
        self.script_log: list[tuple[str, str, str | None]] = []
        self.calls: list[tuple[str, str]] = []
        self._stores: dict[tuple[str | None, str], dict[str, dict[str, list[Any]]]] = {}
        self._next_ids: dict[tuple[str | None, str], int] = {}
        self._scripts: dict[str, ScriptFunction] = {}
        self._containers: dict[str, bytes] = {}

    # --- setup helpers --- #

    def register_layout(self, layout: str, fields: list[FieldDescriptor]) -> None:
        self.layouts[layout] = list(fields)

    def register_script(self, name: str, function: ScriptFunction) -> None:
        self._scripts[name] = function

    def put_container(self, layout: str, record_id: str, field: str, filename: str,
                      data: bytes, repetition: int = 0) -> str:
        """
        Store container content and write its reference into the record.

        Returns:
            The container reference stored in the field
        """
        reference = f"/containers/{self.database}/{layout}/{record_id}/{field}/{repetition}/{filename}?v=1"
        self._containers[reference] = data
        self.update(layout, record_id, {field: {repetition: reference}})
        return reference

    # --- RecordBackend implementation --- #

    def describe_layout(self, layout: str) -> list[FieldDescriptor]:
        self.calls.append(("describe_layout", layout))
        return list(self._layout_fields(layout).values())

    def find_by_unique_key(self, layout: str, field: str, value: str) -> list[BackendRecord]:
        self.calls.append(("find", layout))
        fields = self._layout_fields(layout)
        if field not in fields:
            raise BackendError(FIELD_MISSING, f"Field is missing: {field}")

        matches = [
            self._export(record_id, stored)
            for record_id, stored in self._store(layout).items()
            if stored.get(field) and stored[field][0] is not None and str(stored[field][0]) == value
        ]
        if not matches:
            raise BackendError(NO_RECORDS_MATCH, "No records match the request")
        return matches

    def find_by_id(self, layout: str, record_id: str) -> BackendRecord:
        self.calls.append(("find_by_id", layout))
        store = self._store(layout)
        if record_id not in store:
            raise BackendError(NO_RECORDS_MATCH, "No records match the request")
        return self._export(record_id, store[record_id])

    def create(
        self, layout: str, values: RepetitionValues, hooks: ScriptHooks | None = None
    ) -> list[BackendRecord]:
        self.calls.append(("create", layout))
        fields = self._layout_fields(layout)
        self._run_hook("pre", layout, hooks.pre if hooks else None)

        stored: dict[str, list[Any]] = {name: [] for name in fields}
        merge_values(fields, stored, values)

        key = (self.database, layout)
        record_id = str(self._next_ids.get(key, 1))
        self._next_ids[key] = int(record_id) + 1
        self._store(layout)[record_id] = stored

        self._run_hook("post", layout, hooks.post if hooks else None)
        return [self._export(record_id, stored)]

    def update(
        self, layout: str, record_id: str, values: RepetitionValues, hooks: ScriptHooks | None = None
    ) -> None:
        self.calls.append(("update", layout))
        fields = self._layout_fields(layout)
        store = self._store(layout)
        if record_id not in store:
            raise BackendError(NO_RECORDS_MATCH, "No records match the request")

        self._run_hook("pre", layout, hooks.pre if hooks else None)
        # Validate against a copy so a bad field leaves the record untouched
        updated = copy.deepcopy(store[record_id])
        merge_values(fields, updated, values)
        store[record_id] = updated
        self._run_hook("post", layout, hooks.post if hooks else None)

    def delete(self, layout: str, record_id: str, hooks: ScriptHooks | None = None) -> None:
        self.calls.append(("delete", layout))
        store = self._store(layout)
        if record_id not in store:
            raise BackendError(NO_RECORDS_MATCH, "No records match the request")

        self._run_hook("pre", layout, hooks.pre if hooks else None)
        del store[record_id]
        self._run_hook("post", layout, hooks.post if hooks else None)

    def run_script(self, layout: str, script: str, parameter: str | None = None) -> list[BackendRecord]:
        self.calls.append(("script", layout))
        self._layout_fields(layout)
        return self._execute_script("call", layout, script, parameter)

    def get_container_data(self, reference: str) -> bytes:
        try:
            return self._containers[reference]
        except KeyError:
            raise BackendError(NO_RECORDS_MATCH, f"Container not found: {reference}") from None

    def get_container_url(self, reference: str) -> str | None:
        if self.container_base_url is None:
            return None
        return self.container_base_url.rstrip("/") + reference

    # --- internals --- #

    def _layout_fields(self, layout: str) -> dict[str, FieldDescriptor]:
        if layout not in self.layouts:
            raise BackendError(LAYOUT_MISSING, f"Layout is missing: {layout}")
        return {descriptor.name: descriptor for descriptor in self.layouts[layout]}

    def _store(self, layout: str) -> dict[str, dict[str, list[Any]]]:
        return self._stores.setdefault((self.database, layout), {})

    def _export(self, record_id: str, stored: dict[str, list[Any]]) -> BackendRecord:
        return BackendRecord(record_id=record_id, fields=copy.deepcopy(stored))

    def _run_hook(self, phase: str, layout: str, hook: ScriptHook | None) -> None:
        if hook is not None:
            self._execute_script(phase, layout, hook.script, hook.parameter)

    def _execute_script(self, phase: str, layout: str, script: str, parameter: str | None) -> list[BackendRecord]:
        function = self._scripts.get(script)
        if function is None:
            raise BackendError(SCRIPT_MISSING, f"Script is missing: {script}")
        self.script_log.append((phase, script, parameter))
        return list(function(self, layout, parameter) or [])
