"""CLI query command: log in, run one query, print the results, exit."""

from __future__ import annotations

import asyncio
import csv
import getpass
import json
import sys
from collections.abc import Callable
from typing import TYPE_CHECKING, Any, TextIO

from tdsweb.domains.query.domain.state import format_row_count
from tdsweb.domains.shell.app.client import QueryClient
from tdsweb.shared.core import notifications as n
from tdsweb.shared.core.notifications import ErrorKind

if TYPE_CHECKING:
    from tdsweb.config import ClientSettings
    from tdsweb.domains.query.domain.state import ResultSet, ResultStream
    from tdsweb.shared.core.protocols import Presenter

    ClientFactory = Callable[[ClientSettings, Presenter], QueryClient]

MAX_COL_WIDTH = 50


def _cell_text(value: Any) -> str:
    return "NULL" if value is None else str(value)


def _fit(text: str, width: int) -> str:
    if len(text) > width:
        text = text[: width - 2] + ".."
    return text.ljust(width)


def _output_table(result: ResultSet, out: TextIO) -> None:
    """Print one result set as an aligned text table."""
    columns = list(result.columns)
    # Widths come from the header and the first 100 rows only.
    widths = [min(len(col), MAX_COL_WIDTH) for col in columns]
    for row in result.rows[:100]:
        for i, value in enumerate(row[: len(columns)]):
            widths[i] = min(MAX_COL_WIDTH, max(widths[i], len(_cell_text(value))))

    header = " | ".join(col[:width].ljust(width) for col, width in zip(columns, widths))
    print(header, file=out)
    print("-" * len(header), file=out)
    for row in result.rows:
        print(" | ".join(_fit(_cell_text(value), width) for value, width in zip(row, widths)), file=out)

    print(f"\n({format_row_count(len(result.rows))} returned)", file=out)


def _output_csv(result: ResultSet, out: TextIO) -> None:
    writer = csv.writer(out)
    writer.writerow(result.columns)
    for row in result.rows:
        writer.writerow(str(val) if val is not None else "" for val in row)


def _output_json(result_sets: list[ResultSet], out: TextIO) -> None:
    payload = [[dict(zip(rs.columns, row)) for row in rs.rows] for rs in result_sets]
    # A single result set prints as a flat array of objects.
    print(json.dumps(payload[0] if len(payload) == 1 else payload, indent=2, default=str), file=out)


def print_results(result_sets: list[ResultSet], fmt: str, out: TextIO) -> None:
    if fmt == "json":
        if result_sets:
            _output_json(result_sets, out)
        return
    for index, result in enumerate(result_sets):
        if index:
            print(file=out)
        if fmt == "csv":
            _output_csv(result, out)
        else:
            _output_table(result, out)


class HeadlessRun:
    """Presenter that drives a single login -> query -> exit sequence.

    Args:
        username: Login name.
        password: Login password.
        query: Query text to run once logged in.
        database: Database to switch to before running the query.
        export: Request an export payload instead of rows.
        err: Stream for notices and errors.
    """

    def __init__(
        self,
        username: str,
        password: str,
        query: str,
        *,
        database: str | None = None,
        export: bool = False,
        err: TextIO | None = None,
    ):
        self.username = username
        self.password = password
        self.query = query
        self.database = database
        self.export = export
        self.err = err or sys.stderr
        self.client: QueryClient | None = None
        self.done: asyncio.Future[int] | None = None
        self.export_path: str | None = None
        self.results: ResultStream | None = None
        self.export_failed = False
        self._connected_once = False

    def notify(self, notification: n.Notification) -> None:
        client = self.client
        if client is None:
            return
        if isinstance(notification, n.Connected):
            self._connected_once = True
            client.login(self.username, self.password)
        elif isinstance(notification, n.LoggedIn):
            session = notification.session
            if self.database and self.database != session.database:
                client.change_database(self.database)
            if not client.submit_query(self.query, export=self.export):
                self._finish(1, "Query was not sent.")
        elif isinstance(notification, n.LoginFailed):
            self._finish(1, f"Login failed: {notification.message}")
        elif isinstance(notification, n.LoggedOut):
            self._finish(1, "Logged out by server.")
        elif isinstance(notification, n.Disconnected):
            if self._connected_once:
                self._finish(1, "Connection lost.")
            else:
                self._finish(1, f"Could not connect to {client.connection.url}.")
        elif isinstance(notification, n.MessageLogged):
            notice = notification.notice
            prefix = f"Msg {notice.msgno}, Level {notice.severity}: " if notice.is_error else ""
            print(f"{prefix}{notice.text}", file=self.err)
        elif isinstance(notification, n.RowCountLogged):
            print(f"({format_row_count(notification.count)} affected)", file=self.err)
        elif isinstance(notification, n.ExportReady):
            self.export_path = str(notification.path)
        elif isinstance(notification, n.ErrorNotice):
            if notification.kind is ErrorKind.EXPORT:
                self.export_failed = True
            print(f"Error: {notification.message}", file=self.err)
        elif isinstance(notification, n.QueryFailed):
            self._finish(1, notification.message)
        elif isinstance(notification, n.QueryFinished):
            self._finish(0)

    def _finish(self, code: int, message: str | None = None) -> None:
        # Keep the results; stopping the client resets the executor.
        if self.client is not None and self.results is None:
            self.results = self.client.results
        if message:
            print(f"Error: {message}", file=self.err)
        if self.done is not None and not self.done.done():
            self.done.set_result(code)


async def run_headless(
    settings: ClientSettings,
    run: HeadlessRun,
    client_factory: ClientFactory | None = None,
) -> int:
    """Connect, run ``run``'s query and return its exit code."""
    run.done = asyncio.get_running_loop().create_future()
    factory = client_factory or QueryClient.create
    client = factory(settings, run)
    run.client = client
    client.start()
    try:
        return await run.done
    finally:
        client.stop()


def _read_query(args: Any) -> str | None:
    if args.query:
        return args.query
    if args.file:
        try:
            with open(args.file, encoding="utf-8") as f:
                return f.read()
        except FileNotFoundError:
            print(f"Error: File '{args.file}' not found.")
            return None
        except OSError as e:
            print(f"Error reading file: {e}")
            return None
    print("Error: Either --query or --file must be provided.")
    return None


def cmd_query(
    args: Any,
    settings: ClientSettings,
    *,
    client_factory: ClientFactory | None = None,
    prompt_password: Callable[[str], str] = getpass.getpass,
    out: TextIO | None = None,
) -> int:
    """Execute one query against the service.

    Args:
        args: Parsed command-line arguments.
        settings: Client settings (endpoint, timers, export directory).
        client_factory: Optional factory for the client. Useful for testing.
        prompt_password: Prompts for a password when none was given.
        out: Stream for result output (default: stdout).

    Returns:
        Exit code (0 for success, 1 for error).
    """
    out = out or sys.stdout
    query = _read_query(args)
    if query is None:
        return 1
    if not query.strip():
        print("Error: Query is empty.")
        return 1

    password = args.password
    if password is None:
        password = prompt_password(f"Password for {args.username}: ")

    run = HeadlessRun(
        args.username,
        password,
        query,
        database=args.database,
        export=args.export,
    )
    code = asyncio.run(run_headless(settings, run, client_factory))
    # The export is saved after query_finished, so its outcome is known only now.
    if code == 0 and run.export_failed:
        code = 1

    results = run.results
    if results is not None and results.result_sets:
        print_results(results.result_sets, args.format, out)
    elif code == 0 and results is not None and results.rows_affected:
        print(f"Query executed successfully. Rows affected: {results.rows_affected}", file=out)
    if run.export_path:
        print(f"Export saved to {run.export_path}", file=out)
    return code
