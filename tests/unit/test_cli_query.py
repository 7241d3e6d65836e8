"""Tests for the headless ``tdsweb query`` command."""

from __future__ import annotations

import base64
import io
import json
from unittest.mock import patch

from tdsweb.cli import build_parser, main
from tdsweb.domains.query.cli.commands import cmd_query
from tdsweb.domains.shell.app.client import QueryClient

from tests.mocks import LOGIN_REPLY, FakeTransport, ManualScheduler, make_settings

RESULT_FRAMES = [
    {"type": "table", "columns": [{"name": "id"}, {"name": "name"}]},
    {"type": "row", "columns": [1, "a"]},
    {"type": "row", "columns": [2, None]},
    {"type": "query_finished"},
]


class FakeServer:
    """Scripted replies to the client's requests."""

    def __init__(self, query_frames=None, password="p"):
        self.query_frames = RESULT_FRAMES if query_frames is None else query_frames
        self.password = password
        self.received: list[dict] = []

    def __call__(self, message: dict) -> list[dict]:
        self.received.append(message)
        if message["type"] == "login":
            if message["password"] != self.password:
                return [{"type": "error", "message": "Login failed for user 'alice'."}]
            return [LOGIN_REPLY]
        if message["type"] == "query":
            return list(self.query_frames)
        if message["type"] == "change_database":
            return [
                {
                    "type": "message",
                    "msgno": 5701,
                    "severity": 10,
                    "state": 2,
                    "line_number": 1,
                    "message": f"Changed database context to '{message['database']}'.",
                }
            ]
        return []


def _factory(transport: FakeTransport):
    def create(settings, presenter):
        return QueryClient.create(settings, presenter, transport=transport, scheduler=ManualScheduler())

    return create


def _run(argv, tmp_path, server=None, transport=None, **kwargs):
    args = build_parser().parse_args(argv)
    transport = transport or FakeTransport(responder=server or FakeServer())
    out = io.StringIO()
    code = cmd_query(args, make_settings(tmp_path), client_factory=_factory(transport), out=out, **kwargs)
    return code, out.getvalue(), transport


class TestQueryCommand:
    def test_table_output(self, tmp_path):
        code, out, transport = _run(["query", "-u", "alice", "-p", "p", "-q", "SELECT id, name FROM t"], tmp_path)
        assert code == 0
        lines = out.splitlines()
        assert lines[0] == "id | name"
        assert lines[2].rstrip() == "1  | a"
        assert lines[3] == "2  | NULL"
        assert "(2 rows returned)" in out
        assert transport.close_calls == 1

    def test_json_output(self, tmp_path):
        code, out, _ = _run(["query", "-u", "alice", "-p", "p", "-q", "SELECT 1", "--format", "json"], tmp_path)
        assert code == 0
        assert json.loads(out) == [{"id": 1, "name": "a"}, {"id": 2, "name": None}]

    def test_csv_output(self, tmp_path):
        code, out, _ = _run(["query", "-u", "alice", "-p", "p", "-q", "SELECT 1", "-o", "csv"], tmp_path)
        assert code == 0
        assert out.splitlines() == ["id,name", "1,a", "2,"]

    def test_multiple_result_sets_as_json(self, tmp_path):
        frames = [
            {"type": "table", "columns": [{"name": "a"}]},
            {"type": "row", "columns": [1]},
            {"type": "table", "columns": [{"name": "b"}]},
            {"type": "row", "columns": [2]},
            {"type": "query_finished"},
        ]
        code, out, _ = _run(
            ["query", "-u", "alice", "-p", "p", "-q", "SELECT 1; SELECT 2", "-o", "json"],
            tmp_path,
            server=FakeServer(query_frames=frames),
        )
        assert code == 0
        assert json.loads(out) == [[{"a": 1}], [{"b": 2}]]

    def test_rows_affected(self, tmp_path):
        frames = [{"type": "row_count", "count": 3}, {"type": "query_finished"}]
        code, out, _ = _run(
            ["query", "-u", "alice", "-p", "p", "-q", "UPDATE t SET x = 1"],
            tmp_path,
            server=FakeServer(query_frames=frames),
        )
        assert code == 0
        assert "Rows affected: 3" in out

    def test_login_failure(self, tmp_path, capsys):
        code, out, transport = _run(["query", "-u", "alice", "-p", "wrong", "-q", "SELECT 1"], tmp_path)
        assert code == 1
        assert "Login failed for user 'alice'." in capsys.readouterr().err
        assert transport.count("query") == 0

    def test_query_error(self, tmp_path, capsys):
        frames = [{"type": "error", "message": "Invalid object name 'nope'."}]
        code, _, _ = _run(
            ["query", "-u", "alice", "-p", "p", "-q", "SELECT * FROM nope"],
            tmp_path,
            server=FakeServer(query_frames=frames),
        )
        assert code == 1
        assert "Invalid object name 'nope'." in capsys.readouterr().err

    def test_unreachable_server(self, tmp_path, capsys):
        code, _, _ = _run(
            ["query", "-u", "alice", "-p", "p", "-q", "SELECT 1"],
            tmp_path,
            transport=FakeTransport(fail_open=True),
        )
        assert code == 1
        assert "Could not connect to ws://localhost:52441/ws" in capsys.readouterr().err

    def test_changes_database_before_query(self, tmp_path, capsys):
        server = FakeServer()
        code, _, _ = _run(["query", "-u", "alice", "-p", "p", "-d", "db2", "-q", "SELECT 1"], tmp_path, server=server)
        assert code == 0
        assert [m["type"] for m in server.received] == ["login", "change_database", "query"]
        assert "Changed database context to 'db2'." in capsys.readouterr().err

    def test_password_prompt(self, tmp_path):
        prompts: list[str] = []

        def prompt(text: str) -> str:
            prompts.append(text)
            return "p"

        code, _, _ = _run(["query", "-u", "alice", "-q", "SELECT 1"], tmp_path, prompt_password=prompt)
        assert code == 0
        assert prompts == ["Password for alice: "]

    def test_export_saved(self, tmp_path):
        frames = [
            {"type": "query_finished", "data": base64.b64encode(b"xlsx").decode(), "filename": "report.xlsx"},
        ]
        code, out, transport = _run(
            ["query", "-u", "alice", "-p", "p", "-q", "SELECT 1", "--export"],
            tmp_path,
            server=FakeServer(query_frames=frames),
        )
        assert code == 0
        assert transport.sent_messages[-1]["export"] == "excel"
        assert (tmp_path / "report.xlsx").read_bytes() == b"xlsx"
        assert f"Export saved to {tmp_path / 'report.xlsx'}" in out

    def test_export_failure_exits_nonzero(self, tmp_path, capsys):
        blocker = tmp_path / "not-a-dir"
        blocker.write_text("")
        frames = [{"type": "query_finished", "data": base64.b64encode(b"xlsx").decode()}]
        args = build_parser().parse_args(["query", "-u", "alice", "-p", "p", "-q", "SELECT 1", "--export"])
        transport = FakeTransport(responder=FakeServer(query_frames=frames))
        code = cmd_query(args, make_settings(blocker), client_factory=_factory(transport), out=io.StringIO())
        assert code == 1
        assert "Could not save export.xlsx" in capsys.readouterr().err

    def test_query_from_file(self, tmp_path):
        sql = tmp_path / "q.sql"
        sql.write_text("SELECT id, name FROM t")
        server = FakeServer()
        code, _, _ = _run(["query", "-u", "alice", "-p", "p", "-f", str(sql)], tmp_path, server=server)
        assert code == 0
        assert server.received[-1]["query"] == "SELECT id, name FROM t"

    def test_missing_query(self, tmp_path, capsys):
        code, _, transport = _run(["query", "-u", "alice", "-p", "p"], tmp_path)
        assert code == 1
        assert "Either --query or --file must be provided." in capsys.readouterr().out
        assert transport.open_calls == 0

    def test_missing_file(self, tmp_path, capsys):
        code, _, _ = _run(["query", "-u", "alice", "-p", "p", "-f", str(tmp_path / "none.sql")], tmp_path)
        assert code == 1
        assert "not found" in capsys.readouterr().out


class TestMain:
    def test_bad_server_url(self, capsys):
        code = main(["--server", "ftp://example.com", "query", "-u", "alice", "-p", "p", "-q", "SELECT 1"])
        assert code == 1
        assert "Unsupported server URL scheme" in capsys.readouterr().out

    def test_no_command_launches_tui(self, tmp_path):
        with patch("tdsweb.domains.shell.app.main.TdswebApp") as app_cls:
            code = main(["--server", "https://db.example.com", "--export-dir", str(tmp_path)])
        assert code == 0
        settings = app_cls.call_args.kwargs["settings"]
        assert settings.endpoint == "wss://db.example.com/ws"
        assert settings.export_dir == tmp_path
        app_cls.return_value.run.assert_called_once()

    def test_settings_flag_selects_file(self, tmp_path):
        path = tmp_path / "custom.json"
        path.write_text(json.dumps({"server_url": "https://stored"}))
        with patch("tdsweb.domains.shell.app.main.TdswebApp") as app_cls:
            main(["--settings", str(path)])
        assert app_cls.call_args.kwargs["settings"].endpoint == "wss://stored/ws"
