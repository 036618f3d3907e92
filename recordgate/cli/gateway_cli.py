"""
Command line gateway to record operations.

Usage:
    recordgate create --layout <layout> [--input <request.json>] [options]
    recordgate read --layout <layout> [--input <request.json>] [options]
    recordgate update --layout <layout> [--input <request.json>] [options]
    recordgate delete --layout <layout> [--input <request.json>] [options]
    recordgate script --layout <layout> --script <name> [--parameter <value>]
    recordgate init-db [--config <gateway.yaml>]
    recordgate echo --layout <layout> [--input <request.json>]

Requests and responses are JSON documents of message sections, for example
{"data": [{"email": "a@example.com"}], "meta": [{"recordID": "email=a@example.com"}]}.
When --input is omitted or "-", the request is read from stdin.
"""

import argparse
import json
import sys
from contextlib import contextmanager
from typing import Any, TextIO

from recordgate.backend.base import RecordBackend
from recordgate.backend.connection import DatabaseConnectionPool
from recordgate.backend.postgres import PostgresBackend
from recordgate.core.config import GatewayConfigLoader
from recordgate.core.message import ById, ByIndex, Message
from recordgate.core.models import (
    ContainerEncoding,
    GatewaySettings,
    OperationOptions,
    ScriptHook,
    ScriptHooks,
)
from recordgate.core.operations import RecordOperationError, RecordOperations
from recordgate.observability.logger import get_logger, setup_logger
from recordgate.observability.metrics import start_metrics_server

logger = get_logger(__name__)

RECORD_COMMANDS = ("create", "read", "update", "delete")


class CommandError(Exception):
    """A command could not run; carries the HTTP status to report."""

    def __init__(self, message: str, http_status: int = 400):
        self.message = message
        self.http_status = http_status
        super().__init__(message)


def load_request(path: str | None, stdin: TextIO | None = None) -> Message:
    """
    Read a request Message from a JSON file, or stdin for None or "-".

    Raises:
        CommandError: If the document is not valid JSON or has unknown sections
    """
    try:
        if path is None or path == "-":
            text = (stdin or sys.stdin).read()
        else:
            with open(path) as f:
                text = f.read()
    except OSError as e:
        raise CommandError(f"Cannot read request: {e}") from e

    message = Message()
    if not text.strip():
        return message

    try:
        document = json.loads(text)
    except json.JSONDecodeError as e:
        raise CommandError(f"Request is not valid JSON: {e}") from e
    if not isinstance(document, dict):
        raise CommandError("Request must be a JSON object of message sections")

    try:
        message.import_array(document)
    except (TypeError, ValueError) as e:
        raise CommandError(f"Invalid request: {e}") from e
    return message


def build_options(args: argparse.Namespace, settings: GatewaySettings) -> OperationOptions:
    """Overlay command line switches on the configured operation defaults."""
    overrides: dict[str, Any] = {}
    if args.single:
        overrides["is_single"] = True
    if args.suppress_data:
        overrides["suppress_data"] = True
    if args.update_else_create:
        overrides["update_else_create"] = True
    if args.append:
        overrides["update_append"] = True
    if args.container_encoding:
        overrides["container_encoding"] = ContainerEncoding(args.container_encoding)
    return settings.operation_defaults.model_copy(update=overrides)


def build_hooks(args: argparse.Namespace) -> ScriptHooks | None:
    """Build pre/post write hooks from the command line, if any were given."""
    pre = ScriptHook(script=args.pre_script, parameter=args.pre_parameter) if args.pre_script else None
    post = ScriptHook(script=args.post_script, parameter=args.post_parameter) if args.post_script else None
    if pre is None and post is None:
        return None
    return ScriptHooks(pre=pre, post=post)


def error_document(error: RecordOperationError | CommandError) -> dict[str, Any]:
    """JSON document reporting a failed command."""
    if isinstance(error, CommandError):
        return {"error": {"http_status": error.http_status, "reason": error.message}}

    document: dict[str, Any] = {
        "http_status": error.http_status,
        "status": error.status,
        "reason": error.reason,
    }
    if isinstance(error.reference, ById):
        document["recordID"] = error.reference.record_id
    elif isinstance(error.reference, ByIndex):
        document["index"] = error.reference.index
    return {"error": document}


def run_record_command(
    args: argparse.Namespace,
    settings: GatewaySettings,
    backend: RecordBackend,
    request: Message,
) -> Message:
    """
    Run create, read, update or delete for every record of the request.

    Raises:
        RecordOperationError: For a failing single-record request
    """
    engine = RecordOperations(
        backend,
        database=args.database or settings.default_database,
        layout=args.layout,
        options=build_options(args, settings),
    )

    if args.command == "create":
        return engine.create_records(request, build_hooks(args))
    if args.command == "read":
        return engine.read_records(request)
    if args.command == "update":
        return engine.update_records(request, build_hooks(args))
    return engine.delete_records(request, build_hooks(args))


def run_script_command(args: argparse.Namespace, settings: GatewaySettings, backend: RecordBackend) -> Message:
    """Run a named backend script on the layout."""
    engine = RecordOperations(
        backend,
        database=args.database or settings.default_database,
        layout=args.layout,
        options=build_options(args, settings),
    )
    return engine.call_script(args.script, args.parameter)


def init_db_command(args: argparse.Namespace, settings: GatewaySettings, backend: PostgresBackend) -> dict[str, Any]:
    """Create the record store tables and register every configured layout."""
    database = args.database or settings.default_database
    backend.ensure_schema()
    backend.use_database(database)
    for layout, fields in settings.layouts.items():
        backend.register_layout(layout, fields)
    return {"database": database, "layouts": sorted(settings.layouts)}


def echo_command(args: argparse.Namespace, settings: GatewaySettings, request: Message, out: TextIO) -> None:
    """
    Dump the parsed parameters and request message.

    Raises:
        CommandError: If diagnostics are disabled in settings
    """
    if not settings.diagnostics:
        raise CommandError("Diagnostics are disabled", http_status=403)

    options = build_options(args, settings)
    parameters = {
        "database": args.database or settings.default_database,
        "layout": args.layout,
        **options.model_dump(mode="json"),
    }

    out.write("------------ Parameters -------------\n")
    for key, value in parameters.items():
        out.write(f'{key}="{value}"\n')
    out.write("\n------------ Message -------------\n")
    out.write(str(request))


@contextmanager
def open_backend(settings: GatewaySettings):
    """Open a PostgreSQL backend for the configured record store."""
    pool = DatabaseConnectionPool(settings.database)
    pool.open()
    try:
        yield PostgresBackend(pool)
    finally:
        pool.close()


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser for all subcommands."""
    parser = argparse.ArgumentParser(
        prog="recordgate",
        description="Record operations gateway",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Create two contacts from a request file
  recordgate create --layout contacts --input request.json

  # Update by unique key, creating the record when none matches
  echo '{"meta": [{"recordID": "email=a@example.com"}], "data": [{"phone": "555"}]}' \\
      | recordgate update --layout contacts --update-else-create

  # Create the record store schema for the configured layouts
  recordgate init-db --config config/gateway.yaml
        """
    )

    parser.add_argument(
        "--config",
        default=None,
        help="Path to gateway YAML configuration"
    )
    parser.add_argument(
        "--env-file",
        default=None,
        help="Optional .env file with RECORDGATE_* / DB_* overrides"
    )
    parser.add_argument(
        "--database",
        default=None,
        help="Database to select on the backend (default: settings.default_database)"
    )
    parser.add_argument(
        "--metrics-port",
        type=int,
        default=None,
        help="Expose Prometheus metrics on this port while running"
    )
    parser.add_argument(
        "--log-level",
        default=None,
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Log level (default: LOG_LEVEL or INFO)"
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    for command in RECORD_COMMANDS + ("echo",):
        command_parser = subparsers.add_parser(command, help=f"{command.capitalize()} records")
        _add_layout_arguments(command_parser)
        command_parser.add_argument(
            "--input",
            default=None,
            help="Request JSON file (default: stdin)"
        )
        if command != "read":
            command_parser.add_argument("--pre-script", default=None, help="Script run before the first write")
            command_parser.add_argument("--pre-parameter", default=None, help="Parameter for --pre-script")
            command_parser.add_argument("--post-script", default=None, help="Script run after the first write")
            command_parser.add_argument("--post-parameter", default=None, help="Parameter for --post-script")

    script_parser = subparsers.add_parser("script", help="Run a backend script")
    _add_layout_arguments(script_parser)
    script_parser.add_argument(
        "--script",
        required=True,
        help="Script name"
    )
    script_parser.add_argument(
        "--parameter",
        default=None,
        help="Script parameter"
    )

    subparsers.add_parser("init-db", help="Create tables and register configured layouts")

    return parser


def _add_layout_arguments(command_parser: argparse.ArgumentParser) -> None:
    command_parser.add_argument(
        "--layout",
        required=True,
        help="Layout the records belong to"
    )
    command_parser.add_argument(
        "--single",
        action="store_true",
        help="Single record request: failures are errors, not multistatus entries"
    )
    command_parser.add_argument(
        "--suppress-data",
        action="store_true",
        help="Return only record ids for created records"
    )
    command_parser.add_argument(
        "--update-else-create",
        action="store_true",
        help="Create records that an update cannot find"
    )
    command_parser.add_argument(
        "--append",
        action="store_true",
        help="Append update values to current field values"
    )
    command_parser.add_argument(
        "--container-encoding",
        default=None,
        choices=[encoding.value for encoding in ContainerEncoding],
        help="Container field encoding (default: settings)"
    )


def _write_json(document: Any, out: TextIO) -> None:
    out.write(json.dumps(document, indent=2, default=str))
    out.write("\n")


def dispatch(
    args: argparse.Namespace,
    settings: GatewaySettings,
    backend: RecordBackend,
    stdin: TextIO | None = None,
    out: TextIO | None = None,
) -> int:
    """
    Run one parsed command against a backend and write its JSON output.

    Returns:
        Process exit code
    """
    out = out or sys.stdout
    try:
        if args.command == "echo":
            echo_command(args, settings, load_request(args.input, stdin), out)
        elif args.command == "script":
            _write_json(run_script_command(args, settings, backend).export_array(), out)
        elif args.command == "init-db":
            _write_json(init_db_command(args, settings, backend), out)
        else:
            request = load_request(args.input, stdin)
            _write_json(run_record_command(args, settings, backend, request).export_array(), out)
    except (RecordOperationError, CommandError) as e:
        _write_json(error_document(e), out)
        return 1
    return 0


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 1

    setup_logger(level=args.log_level)

    try:
        settings = GatewayConfigLoader(args.config, args.env_file).load()
    except (FileNotFoundError, ValueError) as e:
        logger.error(f"Configuration failed: {e}")
        _write_json(error_document(CommandError(str(e), http_status=500)), sys.stdout)
        return 1

    if args.metrics_port:
        start_metrics_server(args.metrics_port)

    if args.command == "echo":
        return dispatch(args, settings, backend=None)

    try:
        with open_backend(settings) as backend:
            return dispatch(args, settings, backend)
    except KeyboardInterrupt:
        logger.info("Interrupted")
        return 130
    except Exception as e:
        logger.error(f"Command failed: {e}", exc_info=True)
        _write_json(error_document(CommandError(str(e), http_status=500)), sys.stdout)
        return 1


if __name__ == "__main__":
    sys.exit(main())
