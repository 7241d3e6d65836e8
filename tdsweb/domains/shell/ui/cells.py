"""Cell and log formatting for result rendering."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from rich.text import Text

if TYPE_CHECKING:
    from tdsweb.domains.protocol.messages import ServerNotice

NULL_DISPLAY = "NULL"
NULL_STYLE = "dim italic"
ERROR_STYLE = "bold red"


def format_cell(value: Any) -> Text:
    """Render one row value.

    SQL NULL is shown as a styled ``NULL`` marker so it can't be mistaken
    for the string ``"NULL"`` or an empty string.
    """
    if value is None:
        return Text(NULL_DISPLAY, style=NULL_STYLE)
    if isinstance(value, bool):
        return Text("1" if value else "0")
    return Text(str(value))


def is_null_cell(cell: Any) -> bool:
    return isinstance(cell, Text) and cell.plain == NULL_DISPLAY and cell.style == NULL_STYLE


def format_notice(notice: ServerNotice) -> Text:
    """Render a server message the way SQL Server tools print them."""
    if not notice.is_error:
        return Text(notice.text)
    header = f"Msg {notice.msgno}, Level {notice.severity}, State {notice.state}"
    if notice.proc_name:
        header += f", Procedure {notice.proc_name}"
    header += f", Line {notice.line_number}"
    return Text(f"{header}\n{notice.text}", style=ERROR_STYLE)
