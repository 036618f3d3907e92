"""
Record operations engine.

Drives a backend through create, read, update and delete for every record
of a request Message and collects results and failures into a response
Message.
"""

from typing import Any, Callable

from recordgate.backend.base import NO_RECORDS_MATCH, BackendError, RecordBackend
from recordgate.core.message import ById, ByIndex, Message, Record, Reference
from recordgate.core.models import BackendRecord, OperationOptions, ScriptHooks
from recordgate.observability.logger import get_logger, log_operation
from recordgate.observability.metrics import (
    backend_call_duration_seconds,
    increment_counter,
    record_backend_error,
    record_multistatus,
    record_operation_outcome,
    script_calls_total,
    track_duration,
    update_fallback_total,
)

from .containers import encode_container
from .errors import (
    BackendFailure,
    ConflictError,
    NotFoundError,
    RecordOperationError,
    ValidationFailure,
)
from .repetitions import from_repetitions, to_repetitions
from .schema_cache import SchemaCache

logger = get_logger(__name__)

UNIQUE_KEY_SEPARATOR = "="


def is_unique_key(record_id: str) -> bool:
    """
    True for "field=value" identifiers.

    The separator must follow at least one character of field name.
    """
    return record_id.find(UNIQUE_KEY_SEPARATOR) > 0


class _HookToken:
    """
    One-shot holder for the script hooks of one request.

    The first backend write takes the hooks; every later write gets None.
    """

    def __init__(self, hooks: ScriptHooks | None):
        self._hooks = hooks if hooks is not None and not hooks.is_empty() else None

    def take(self) -> ScriptHooks | None:
        hooks, self._hooks = self._hooks, None
        return hooks


class RecordOperations:
    """
    Record-level operations against one layout of one backend database.

    Records are processed strictly in request order. For a single-record
    request any failure raises a RecordOperationError; for a bulk request
    each failure becomes a multistatus entry and processing continues.
    """

    def __init__(
        self,
        backend: RecordBackend,
        database: str,
        layout: str,
        options: OperationOptions | None = None,
    ):
        """
        Initialize the engine for one request.

        Args:
            backend: Session-scoped backend handle
            database: Database selected before every backend call
            layout: Layout all records belong to
            options: Request switches (defaults to a bulk request)
        """
        self.backend = backend
        self.database = database
        self.layout = layout
        self.options = options or OperationOptions()

        self._handlers: dict[str, Callable[..., None]] = {
            "create": self._create_record,
            "read": self._read_record,
            "update": self._update_record,
            "delete": self._delete_record,
        }

    # --- bulk entry points --- #

    def create_records(self, request: Message, hooks: ScriptHooks | None = None) -> Message:
        """
        Create one backend record per request record.

        Success adds a Record to the response: the full created record, or
        only its record id when data is suppressed. Failures reference the
        request record by index, since no record id exists yet.
        """
        return self._run("create", request, hooks)

    def read_records(self, request: Message) -> Message:
        """
        Read the record identified by each request record.

        Success adds a data/meta row per record and fills the metaField
        section once.
        """
        return self._run("read", request, None)

    def update_records(self, request: Message, hooks: ScriptHooks | None = None) -> Message:
        """
        Update the record identified by each request record.

        Nothing is added to the response on success unless the update fell
        back to a create, which adds the created record.
        """
        return self._run("update", request, hooks)

    def delete_records(self, request: Message, hooks: ScriptHooks | None = None) -> Message:
        """Delete the record identified by each request record."""
        return self._run("delete", request, hooks)

    def call_script(self, script: str, parameter: str | None = None) -> Message:
        """
        Run a backend script in the context of the layout.

        Backends may return records even when the script performs no find,
        so the response holds zero or more records and nothing more can be
        assumed about them. Errors always raise; there is no multistatus.

        Raises:
            RecordOperationError: If the backend reports an error
        """
        response = Message()
        schema = SchemaCache()

        with log_operation("call script", logger=logger, layout=self.layout, script=script):
            try:
                records = self._backend_call("script", self.backend.run_script, self.layout, script, parameter)
            except BackendError as error:
                increment_counter(script_calls_total, 1, layout=self.layout, status="failure")
                raise self._failure_from(error, None) from error

            if not self.options.suppress_data:
                for backend_record in records:
                    self._parse_record(response, backend_record, schema)

        increment_counter(script_calls_total, 1, layout=self.layout, status="success")
        return response

    # --- per-request driver --- #

    def _run(self, operation: str, request: Message, hooks: ScriptHooks | None) -> Message:
        records = request.get_records()
        if self.options.is_single and len(records) != 1:
            raise ValidationFailure(f"Single record request requires exactly one record, got {len(records)}")

        handler = self._handlers[operation]
        response = Message()
        token = _HookToken(hooks)
        schema = SchemaCache()

        with log_operation(
            f"{operation} records",
            logger=logger,
            layout=self.layout,
            database=self.database,
            record_count=len(records),
        ):
            for index, record in enumerate(records):
                try:
                    handler(response, record, index, token, schema)
                except RecordOperationError as error:
                    default_reference = self._default_reference(operation, record, index)
                    logger.warning(
                        f"{operation} failed for request record {index}",
                        extra={
                            "layout": self.layout,
                            "status_code": error.status,
                            "reason": error.reason,
                        },
                    )
                    if self.options.is_single:
                        record_operation_outcome(self.layout, operation, 0, 1)
                        raise
                    response.add_multistatus(error.to_multistatus(default_reference))
                    record_multistatus(self.layout, operation, error.status)

        failed = response.get_multistatus_count()
        record_operation_outcome(self.layout, operation, len(records) - failed, failed)
        return response

    @staticmethod
    def _default_reference(operation: str, record: Record, index: int) -> Reference:
        if operation != "create" and record.record_id:
            return ById(record_id=record.record_id)
        return ByIndex(index=index)

    # --- per-record operations --- #

    def _create_record(
        self, response: Message, record: Record, index: int, token: _HookToken, schema: SchemaCache
    ) -> None:
        reference = ByIndex(index=index)
        values = to_repetitions(record.get_data())

        try:
            created = self._backend_call("create", self.backend.create, self.layout, values, token.take())
        except BackendError as error:
            raise BackendFailure.from_backend(error, reference) from error

        for backend_record in created:
            if self.options.suppress_data:
                response.add_record(Record(backend_record.record_id))
            else:
                self._parse_record(response, backend_record, schema, reference)

    def _read_record(
        self, response: Message, record: Record, index: int, token: _HookToken, schema: SchemaCache
    ) -> None:
        record_id = self._require_record_id(record, index)
        reference = ById(record_id=record_id)
        backend_record = self._resolve(record_id, reference)
        self._parse_record(response, backend_record, schema, reference)

    def _update_record(
        self, response: Message, record: Record, index: int, token: _HookToken, schema: SchemaCache
    ) -> None:
        record_id = self._require_record_id(record, index)
        reference = ById(record_id=record_id)
        # Only consulted on "no matching record"; the create path never
        # comes back here, so a fallback happens at most once per record.
        fallback_available = self.options.update_else_create

        current: BackendRecord | None = None
        if is_unique_key(record_id):
            try:
                current = self._resolve(record_id, reference)
            except NotFoundError:
                if not fallback_available:
                    raise
                self._fallback_to_create(response, record, index, token, schema)
                return
            record_id = current.record_id

        values = record.get_data()
        if self.options.update_append:
            if current is None:
                current = self._resolve(record_id, reference)
            values = self._append_values(current, values, schema, reference)

        try:
            self._backend_call(
                "update", self.backend.update, self.layout, record_id, to_repetitions(values), token.take()
            )
        except BackendError as error:
            if error.code == NO_RECORDS_MATCH and fallback_available:
                self._fallback_to_create(response, record, index, token, schema)
                return
            raise self._failure_from(error, reference) from error

    def _delete_record(
        self, response: Message, record: Record, index: int, token: _HookToken, schema: SchemaCache
    ) -> None:
        record_id = self._require_record_id(record, index)
        reference = ById(record_id=record_id)

        if is_unique_key(record_id):
            record_id = self._resolve(record_id, reference).record_id

        try:
            self._backend_call("delete", self.backend.delete, self.layout, record_id, token.take())
        except BackendError as error:
            raise self._failure_from(error, reference) from error

    def _fallback_to_create(
        self, response: Message, record: Record, index: int, token: _HookToken, schema: SchemaCache
    ) -> None:
        logger.info(
            f"No record matches {record.record_id!r}, creating instead",
            extra={"layout": self.layout, "request_index": index},
        )
        increment_counter(update_fallback_total, 1, layout=self.layout)
        self._create_record(response, record, index, token, schema)

    # --- identity resolution --- #

    def _require_record_id(self, record: Record, index: int) -> str:
        if not record.record_id:
            raise ValidationFailure("Request record has no recordID", ByIndex(index=index))
        return record.record_id

    def _resolve(self, record_id: str, reference: Reference) -> BackendRecord:
        """
        Resolve a literal or "field=value" record id to one backend record.

        Raises:
            NotFoundError: No record matches
            ConflictError: A unique key matches more than one record
            BackendFailure: Any other backend error
        """
        if not is_unique_key(record_id):
            try:
                return self._backend_call("find_by_id", self.backend.find_by_id, self.layout, record_id)
            except BackendError as error:
                raise self._failure_from(error, reference) from error

        field, value = record_id.split(UNIQUE_KEY_SEPARATOR, 1)
        try:
            matches = self._backend_call("find", self.backend.find_by_unique_key, self.layout, field, value)
        except BackendError as error:
            raise self._failure_from(error, reference) from error

        if not matches:
            raise NotFoundError(reference=reference)
        if len(matches) > 1:
            raise ConflictError(len(matches), reference)
        return matches[0]

    # --- parsing --- #

    def _parse_record(
        self,
        response: Message,
        backend_record: BackendRecord,
        schema: SchemaCache,
        reference: Reference | None = None,
    ) -> None:
        """
        Add a backend record to the response, filling the metaField section
        the first time the layout schema is loaded.
        """
        try:
            self._load_schema(schema)
            if not schema.reported:
                for field_name in backend_record.field_names():
                    response.set_meta_field(field_name, schema.get(field_name).to_meta_row())
                schema.reported = True

            record = Record(backend_record.record_id)
            for field_name, value in self._expand_fields(backend_record, schema, encode_containers=True).items():
                record[field_name] = value
        except BackendError as error:
            raise self._failure_from(error, reference) from error

        response.add_record(record)

    def _expand_fields(
        self, backend_record: BackendRecord, schema: SchemaCache, encode_containers: bool
    ) -> dict[str, Any]:
        """
        Flatten backend fields, expanding repetitions to "name[i]" keys in
        ascending index order when a field has more than one repetition.
        """
        fields: dict[str, Any] = {}
        for field_name in backend_record.field_names():
            descriptor = schema.get(field_name)
            values = [backend_record.get_value(field_name, repetition) for repetition in range(descriptor.max_repeat)]
            if encode_containers and descriptor.result_type == "container":
                values = [encode_container(self.backend, value, self.options.container_encoding) for value in values]
            fields[field_name] = values if descriptor.max_repeat > 1 else values[0]
        return from_repetitions(fields)

    def _append_values(
        self, current: BackendRecord, values: dict[str, Any], schema: SchemaCache, reference: Reference
    ) -> dict[str, Any]:
        """Concatenate each request value after the current field value."""
        try:
            self._load_schema(schema)
        except BackendError as error:
            raise self._failure_from(error, reference) from error
        current_values = self._expand_fields(current, schema, encode_containers=False)
        return {
            field_name: _text(current_values.get(field_name)) + _text(value)
            for field_name, value in values.items()
        }

    # --- backend plumbing --- #

    def _load_schema(self, schema: SchemaCache) -> None:
        if not schema.populated:
            schema.load(self._backend_call("describe_layout", self.backend.describe_layout, self.layout))

    def _backend_call(self, call: str, method: Callable[..., Any], *args: Any) -> Any:
        self.backend.use_database(self.database)
        try:
            with track_duration(backend_call_duration_seconds, call=call):
                return method(*args)
        except BackendError as error:
            record_backend_error(call, error.code)
            raise

    @staticmethod
    def _failure_from(error: BackendError, reference: Reference | None) -> RecordOperationError:
        if error.code == NO_RECORDS_MATCH:
            return NotFoundError(error.message, reference)
        return BackendFailure.from_backend(error, reference)


def _text(value: Any) -> str:
    return "" if value is None else str(value)
