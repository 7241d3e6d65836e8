"""Main Textual application for tdsweb."""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import TYPE_CHECKING, Any

from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.containers import Horizontal, Vertical, VerticalScroll
from textual.widgets import Button, DataTable, Input, OptionList, RichLog, Static, TextArea
from textual.widgets.option_list import Option

from tdsweb.domains.query.domain.state import format_row_count
from tdsweb.domains.shell.store.settings import save_setting
from tdsweb.domains.shell.ui.cells import format_cell, format_notice
from tdsweb.shared.core import notifications as n

from .client import QueryClient

if TYPE_CHECKING:
    from tdsweb.config import ClientSettings
    from tdsweb.shared.core.protocols import Presenter

    ClientFactory = Callable[[ClientSettings, Presenter], QueryClient]

logger = logging.getLogger(__name__)


class AppPresenter:
    """Forwards core notifications to the app.

    ``App.notify`` already means "show a toast" in Textual, so the app is
    not a presenter itself.
    """

    def __init__(self, app: TdswebApp):
        self._app = app

    def notify(self, notification: n.Notification) -> None:
        self._app.handle_notification(notification)


class TdswebApp(App):
    """Terminal front end for the query service."""

    TITLE = "tdsweb"

    CSS = """
    Screen {
        background: $surface;
    }

    #status {
        height: 1;
        padding: 0 1;
        background: $panel;
    }

    #status.error {
        color: $error;
        text-style: bold;
    }

    #login-form {
        height: auto;
        padding: 0 1;
    }

    #login-form Input {
        width: 30;
    }

    #login-form.hidden {
        display: none;
    }

    #content {
        height: 1fr;
    }

    #sidebar {
        width: 30;
        border: round $border;
        padding: 0 1;
    }

    #database-list {
        height: 1fr;
    }

    #main-panel {
        width: 1fr;
    }

    #query-area {
        height: 40%;
        border: round $border;
    }

    #query-input {
        height: 1fr;
        border: none;
    }

    #query-buttons {
        height: auto;
    }

    #results-area {
        height: 1fr;
        border: round $border;
    }

    #results-area DataTable {
        height: auto;
        max-height: 20;
        margin-bottom: 1;
    }

    #message-log {
        height: 8;
        border: round $border;
    }
    """

    BINDINGS = [
        Binding("f5", "run_query", "Run"),
        Binding("escape", "cancel_query", "Cancel"),
        Binding("ctrl+q", "quit", "Quit", priority=True),
    ]

    def __init__(
        self,
        settings: ClientSettings | None = None,
        client_factory: ClientFactory | None = None,
    ):
        super().__init__()
        if settings is None:
            from tdsweb.config import load_client_settings

            settings = load_client_settings()
        self.settings = settings
        self._client_factory = client_factory or QueryClient.create
        self.client: QueryClient | None = None
        self._status_message = ""
        self._status_is_error = False
        self._result_tables: list[DataTable] = []
        self._results_table_counter = 0  # Unique ids across queries
        self._log_lines: list[str] = []
        self._notification_handlers: dict[type, Callable[[Any], None]] = {
            n.Connected: self._on_connected,
            n.Disconnected: self._on_disconnected,
            n.LoginStarted: self._on_login_started,
            n.LoggedIn: self._on_logged_in,
            n.LoginFailed: self._on_login_failed,
            n.LoggedOut: self._on_logged_out,
            n.DatabaseChangeRequested: self._on_database_change_requested,
            n.QueryStarted: self._on_query_started,
            n.CancelRequested: self._on_cancel_requested,
            n.TableStarted: self._on_table_started,
            n.RowAppended: self._on_row_appended,
            n.MessageLogged: self._on_message_logged,
            n.RowCountLogged: self._on_row_count_logged,
            n.QueryFinished: self._on_query_finished,
            n.QueryFailed: self._on_query_failed,
            n.ExportReady: self._on_export_ready,
            n.ErrorNotice: self._on_error_notice,
        }

    def compose(self) -> ComposeResult:
        yield Static("", id="status")
        with Horizontal(id="login-form"):
            yield Input(value=self.settings.username, placeholder="Username", id="username", disabled=True)
            yield Input(placeholder="Password", password=True, id="password", disabled=True)
            yield Button("Login", id="login-button", variant="primary", disabled=True)
        with Horizontal(id="content"):
            with Vertical(id="sidebar"):
                yield Static("Databases", id="database-title")
                yield OptionList(id="database-list", disabled=True)
                yield Button("Logout", id="logout-button", disabled=True)
            with Vertical(id="main-panel"):
                with Vertical(id="query-area"):
                    yield TextArea(id="query-input", disabled=True)
                    with Horizontal(id="query-buttons"):
                        yield Button("Run", id="run-button", variant="primary", disabled=True)
                        yield Button("Export", id="export-button", disabled=True)
                        yield Button("Cancel", id="cancel-button", variant="error", disabled=True)
                yield VerticalScroll(id="results-area")
                yield RichLog(id="message-log", wrap=True)

    def on_mount(self) -> None:
        self._set_status(f"Connecting to {self.settings.endpoint}...")
        self.client = self._client_factory(self.settings, AppPresenter(self))
        self.client.start()

    def on_unmount(self) -> None:
        if self.client is not None:
            self.client.stop()

    # Read-only views used by the status bar and tests

    @property
    def status_message(self) -> str:
        return self._status_message

    @property
    def status_is_error(self) -> bool:
        return self._status_is_error

    @property
    def result_tables(self) -> list[DataTable]:
        return list(self._result_tables)

    @property
    def log_lines(self) -> list[str]:
        return list(self._log_lines)

    # User intents

    def on_button_pressed(self, event: Button.Pressed) -> None:
        button_id = event.button.id
        if button_id == "login-button":
            self._submit_login()
        elif button_id == "logout-button":
            self.action_logout()
        elif button_id == "run-button":
            self.action_run_query()
        elif button_id == "export-button":
            self.action_export_query()
        elif button_id == "cancel-button":
            self.action_cancel_query()

    def on_input_submitted(self, event: Input.Submitted) -> None:
        if event.input.id == "username":
            self.query_one("#password", Input).focus()
        elif event.input.id == "password":
            self._submit_login()

    def on_option_list_option_selected(self, event: OptionList.OptionSelected) -> None:
        if event.option_list.id == "database-list" and self.client is not None:
            name = event.option.id
            if name and name != self.client.current_session.database:
                self.client.change_database(name)

    def action_run_query(self) -> None:
        self._submit_query(export=False)

    def action_export_query(self) -> None:
        self._submit_query(export=True)

    def action_cancel_query(self) -> None:
        if self.client is not None:
            self.client.cancel_query()

    def action_logout(self) -> None:
        if self.client is not None:
            self.client.logout()

    def _submit_login(self) -> None:
        if self.client is None:
            return
        username = self.query_one("#username", Input).value.strip()
        password = self.query_one("#password", Input).value
        if not username:
            self._set_status("Enter a username.", error=True)
            return
        self.client.login(username, password)

    def _submit_query(self, export: bool) -> None:
        if self.client is None:
            return
        text = self.query_one("#query-input", TextArea).text
        # Whitespace-only queries are ignored like empty ones.
        self.client.submit_query(text if text.strip() else "", export=export)

    # Notifications

    def handle_notification(self, notification: n.Notification) -> None:
        handler = self._notification_handlers.get(type(notification))
        if handler is not None:
            handler(notification)

    def _on_connected(self, notification: n.Connected) -> None:
        self._set_status("Connected.")
        self._set_login_enabled(True)

    def _on_disconnected(self, notification: n.Disconnected) -> None:
        message = "Disconnected."
        if notification.reconnect_delay_ms:
            message += f" Reconnecting in {notification.reconnect_delay_ms / 1000:g} s..."
        self._set_status(message, error=True)
        self._set_login_enabled(False)
        self._show_login_form(True)
        self._set_session_controls(False)
        self._set_query_running(False, enabled=False)
        self._clear_databases()

    def _on_login_started(self, notification: n.LoginStarted) -> None:
        self._set_status(f"Logging in as {notification.username}...")
        self._set_login_enabled(False)

    def _on_logged_in(self, notification: n.LoggedIn) -> None:
        session = notification.session
        where = f" on {session.server}" if session.server else ""
        self._set_status(f"Logged in as {session.username}{where}.")
        self._remember_username(session.username)
        self.query_one("#password", Input).value = ""
        self._show_login_form(False)
        self._populate_databases(session.available_databases, session.database)
        self._set_session_controls(True)
        self._set_query_running(False, enabled=True)
        self.query_one("#query-input", TextArea).focus()

    def _on_login_failed(self, notification: n.LoginFailed) -> None:
        self._set_status(notification.message, error=True)
        self._set_login_enabled(True)

    def _on_logged_out(self, notification: n.LoggedOut) -> None:
        self._set_status("Logged out.")
        self._show_login_form(True)
        self._set_login_enabled(True)
        self._set_session_controls(False)
        self._set_query_running(False, enabled=False)
        self._clear_databases()

    def _on_database_change_requested(self, notification: n.DatabaseChangeRequested) -> None:
        self._set_status(f"Switching to database {notification.name}.")
        self.query_one("#database-title", Static).update(f"Databases ({notification.name})")

    def _on_query_started(self, notification: n.QueryStarted) -> None:
        self._clear_results()
        self._set_status("Exporting..." if notification.export else "Running query...")
        self._set_query_running(True, enabled=True)

    def _on_cancel_requested(self, notification: n.CancelRequested) -> None:
        self._set_status("Cancelling...")
        self.query_one("#cancel-button", Button).disabled = True

    def _on_table_started(self, notification: n.TableStarted) -> None:
        self._results_table_counter += 1
        table: DataTable = DataTable(id=f"results-table-{self._results_table_counter}", zebra_stripes=True)
        table.add_columns(*notification.columns)
        self._result_tables.append(table)
        self.query_one("#results-area", VerticalScroll).mount(table)

    def _on_row_appended(self, notification: n.RowAppended) -> None:
        if not self._result_tables:
            return
        self._result_tables[-1].add_row(*(format_cell(v) for v in notification.values))

    def _on_message_logged(self, notification: n.MessageLogged) -> None:
        self._write_log(format_notice(notification.notice))

    def _on_row_count_logged(self, notification: n.RowCountLogged) -> None:
        self._write_log(f"({format_row_count(notification.count)} affected)")

    def _on_query_finished(self, notification: n.QueryFinished) -> None:
        if notification.cancelled:
            self._set_status("Query cancelled.")
        else:
            self._set_status(f"Query finished ({format_row_count(notification.rows)} returned).")
        self._set_query_running(False, enabled=True)

    def _on_query_failed(self, notification: n.QueryFailed) -> None:
        self._set_status(notification.message, error=True)
        self._set_query_running(False, enabled=True)

    def _on_export_ready(self, notification: n.ExportReady) -> None:
        self._set_status(f"Saved {notification.filename} to {notification.path}.")

    def _on_error_notice(self, notification: n.ErrorNotice) -> None:
        self._set_status(notification.message, error=True)

    # Widget state helpers

    def _remember_username(self, username: str) -> None:
        if not username or username == self.settings.username:
            return
        try:
            save_setting("username", username)
            self.settings = self.settings.with_overrides(username=username)
        except OSError as e:
            logger.warning(f"Could not save username to settings: {e}")

    def _set_status(self, message: str, error: bool = False) -> None:
        self._status_message = message
        self._status_is_error = error
        status = self.query_one("#status", Static)
        status.update(message)
        status.set_class(error, "error")

    def _set_login_enabled(self, enabled: bool) -> None:
        for selector in ("#username", "#password", "#login-button"):
            self.query_one(selector).disabled = not enabled

    def _show_login_form(self, visible: bool) -> None:
        self.query_one("#login-form").set_class(not visible, "hidden")

    def _set_session_controls(self, enabled: bool) -> None:
        self.query_one("#database-list", OptionList).disabled = not enabled
        self.query_one("#logout-button", Button).disabled = not enabled

    def _set_query_running(self, running: bool, enabled: bool) -> None:
        self.query_one("#query-input", TextArea).disabled = running or not enabled
        self.query_one("#run-button", Button).disabled = running or not enabled
        self.query_one("#export-button", Button).disabled = running or not enabled
        self.query_one("#cancel-button", Button).disabled = not running

    def _populate_databases(self, databases: tuple[str, ...], current: str | None) -> None:
        option_list = self.query_one("#database-list", OptionList)
        option_list.clear_options()
        option_list.add_options([Option(name, id=name) for name in databases])
        if current in databases:
            option_list.highlighted = databases.index(current)
        title = f"Databases ({current})" if current else "Databases"
        self.query_one("#database-title", Static).update(title)

    def _clear_databases(self) -> None:
        self.query_one("#database-list", OptionList).clear_options()
        self.query_one("#database-title", Static).update("Databases")

    def _clear_results(self) -> None:
        self._result_tables.clear()
        self._log_lines.clear()
        self.query_one("#results-area", VerticalScroll).remove_children()
        self.query_one("#message-log", RichLog).clear()

    def _write_log(self, line: Any) -> None:
        self._log_lines.append(line.plain if hasattr(line, "plain") else str(line))
        self.query_one("#message-log", RichLog).write(line)
