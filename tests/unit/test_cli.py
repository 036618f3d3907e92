"""
Unit tests for the gateway command line.

Commands run against the in-memory backend through dispatch(); main() is
exercised for the paths that need no database.
"""

import io
import json

import pytest

from recordgate.cli.gateway_cli import build_hooks, build_options, build_parser, dispatch, main
from recordgate.core.models import ContainerEncoding, GatewaySettings, OperationOptions


def run(backend, argv, settings=None, stdin_text=""):
    args = build_parser().parse_args(argv)
    out = io.StringIO()
    code = dispatch(args, settings or GatewaySettings(default_database="crm"), backend, io.StringIO(stdin_text), out)
    return code, out.getvalue()


class TestParser:
    """Tests for argument parsing and option building"""

    def test_options_overlay_settings(self):
        """Test that command line switches add to configured defaults"""
        settings = GatewaySettings(operation_defaults=OperationOptions(update_else_create=True))
        args = build_parser().parse_args(["update", "--layout", "contacts", "--append", "--container-encoding", "raw"])

        options = build_options(args, settings)

        assert options.update_else_create is True
        assert options.update_append is True
        assert options.container_encoding is ContainerEncoding.RAW
        assert options.is_single is False

    def test_hooks(self):
        """Test building hooks from script options"""
        no_hooks = build_parser().parse_args(["create", "--layout", "contacts"])
        assert build_hooks(no_hooks) is None

        args = build_parser().parse_args(
            ["delete", "--layout", "contacts", "--post-script", "audit", "--post-parameter", "p"]
        )
        hooks = build_hooks(args)
        assert hooks.pre is None
        assert hooks.post.script == "audit"
        assert hooks.post.parameter == "p"

    def test_global_database_option(self):
        """Test that --database precedes the subcommand"""
        args = build_parser().parse_args(["--database", "sales", "read", "--layout", "contacts"])
        assert args.database == "sales"
        assert args.command == "read"


class TestRecordCommands:
    """Tests for create, read, update and delete through the CLI"""

    def test_create_from_file(self, memory_backend, tmp_path):
        """Test creating records from a request file"""
        request_file = tmp_path / "request.json"
        request_file.write_text(json.dumps({"data": [{"email": "a@example.com"}, {"email": "b@example.com"}]}))

        code, output = run(memory_backend, ["create", "--layout", "contacts", "--suppress-data",
                                            "--input", str(request_file)])

        assert code == 0
        assert json.loads(output) == {"meta": [{"recordID": "1"}, {"recordID": "2"}], "data": [{}, {}]}

    def test_read_from_stdin(self, seeded_backend):
        """Test reading records named in a request on stdin"""
        code, output = run(
            seeded_backend,
            ["read", "--layout", "contacts"],
            stdin_text=json.dumps({"meta": [{"recordID": "email=ada@example.com"}, {"recordID": "99"}]}),
        )

        document = json.loads(output)
        assert code == 0
        assert document["meta"] == [{"recordID": "1"}]
        assert document["data"][0]["name"] == "Ada"
        assert document["multistatus"] == [
            {"recordID": "99", "Status": 401, "Reason": "No records match the request"}
        ]
        assert [row["name"] for row in document["metaField"]] == ["email", "name", "phone", "photo"]

    def test_single_error_document(self, seeded_backend):
        """Test that a single-record failure prints an error document and fails"""
        code, output = run(
            seeded_backend,
            ["update", "--layout", "contacts", "--single"],
            stdin_text=json.dumps({"meta": [{"recordID": "email=bob@example.com"}], "data": [{"name": "B"}]}),
        )

        assert code == 1
        assert json.loads(output) == {
            "error": {
                "http_status": 409,
                "status": 42409,
                "reason": "2 conflicting records found",
                "recordID": "email=bob@example.com",
            }
        }

    def test_update_else_create(self, seeded_backend):
        """Test update-else-create from the command line"""
        code, output = run(
            seeded_backend,
            ["update", "--layout", "contacts", "--update-else-create"],
            stdin_text=json.dumps({"meta": [{"recordID": "email=new@example.com"}],
                                   "data": [{"email": "new@example.com"}]}),
        )

        assert code == 0
        assert json.loads(output)["meta"] == [{"recordID": "4"}]

    def test_delete(self, seeded_backend):
        """Test deleting a record"""
        code, output = run(seeded_backend, ["delete", "--layout", "contacts"],
                           stdin_text='{"meta": [{"recordID": "1"}]}')

        assert code == 0
        assert json.loads(output) == {}

    def test_invalid_json(self, memory_backend):
        """Test that malformed requests are rejected with status 400"""
        code, output = run(memory_backend, ["create", "--layout", "contacts"], stdin_text="{not json")

        assert code == 1
        assert json.loads(output)["error"]["http_status"] == 400

    def test_unknown_section(self, memory_backend):
        """Test that requests with unknown sections are rejected"""
        code, output = run(memory_backend, ["create", "--layout", "contacts"], stdin_text='{"rows": []}')

        assert code == 1
        assert "Unknown section" in json.loads(output)["error"]["reason"]


class TestScriptCommand:
    """Tests for the script subcommand"""

    def test_script(self, seeded_backend):
        """Test running a script and printing its records"""
        seeded_backend.register_script(
            "by_name", lambda backend, layout, parameter: backend.find_by_unique_key(layout, "name", parameter)
        )

        code, output = run(seeded_backend, ["script", "--layout", "contacts", "--script", "by_name",
                                            "--parameter", "Robert"])

        assert code == 0
        assert json.loads(output)["meta"] == [{"recordID": "3"}]

    def test_missing_script(self, seeded_backend):
        """Test that a missing script prints an error document"""
        code, output = run(seeded_backend, ["script", "--layout", "contacts", "--script", "nope"])

        assert code == 1
        assert json.loads(output)["error"]["status"] == 104


class TestEchoCommand:
    """Tests for the diagnostic echo dump"""

    def test_echo_requires_diagnostics(self, memory_backend):
        """Test that echo is refused when diagnostics are disabled"""
        code, output = run(memory_backend, ["echo", "--layout", "contacts"], stdin_text="{}")

        assert code == 1
        assert json.loads(output)["error"] == {"http_status": 403, "reason": "Diagnostics are disabled"}

    def test_echo_dump(self, memory_backend):
        """Test the parameter and message dump"""
        settings = GatewaySettings(diagnostics=True, default_database="crm")

        code, output = run(
            memory_backend,
            ["echo", "--layout", "contacts", "--single"],
            settings=settings,
            stdin_text='{"meta": [{"recordID": "1"}], "data": [{"email": "a@example.com"}]}',
        )

        assert code == 0
        assert 'layout="contacts"' in output
        assert 'is_single="True"' in output
        assert '    email="a@example.com"\n' in output
        assert memory_backend.calls == []


class TestMain:
    """Tests for the main entry point"""

    def test_no_command(self, capsys):
        """Test that running without a command prints help and fails"""
        assert main([]) == 1
        assert "usage" in capsys.readouterr().out

    def test_missing_config(self, tmp_path, capsys):
        """Test that a missing configuration file is reported as JSON"""
        code = main(["--config", str(tmp_path / "missing.yaml"), "read", "--layout", "contacts"])

        assert code == 1
        assert json.loads(capsys.readouterr().out)["error"]["http_status"] == 500

    def test_echo_from_config(self, tmp_path, capsys, monkeypatch, clean_env):
        """Test the echo command end to end without a database"""
        config = tmp_path / "gateway.yaml"
        config.write_text("settings:\n  diagnostics: true\n  default_database: crm\n")
        monkeypatch.setattr("sys.stdin", io.StringIO('{"info": {"X-Test": "1"}}'))

        code = main(["--config", str(config), "echo", "--layout", "contacts"])

        output = capsys.readouterr().out
        assert code == 0
        assert 'database="crm"' in output
        assert 'X-Test="1"' in output

    def test_unparseable_arguments(self):
        """Test that missing required options exit through argparse"""
        with pytest.raises(SystemExit):
            main(["read"])
