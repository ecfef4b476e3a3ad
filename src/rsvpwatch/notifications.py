"""Outcome reporting: Rich console output + desktop notification."""

from __future__ import annotations

import subprocess
import sys

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from rsvpwatch.errors import AcquisitionError, RsvpError
from rsvpwatch.models import AcquisitionResult, ClassSession, ReservationState

console = Console()

_TITLES = {
    ReservationState.REGISTERED: "RSVP CONFIRMED",
    ReservationState.WAITLISTED: "ON THE WAIT LIST",
}


def success_message(result: AcquisitionResult) -> str:
    return f"Successfully submitted RSVP request, with RSVP status: {result.state.value}"


def failure_message(error: RsvpError) -> str:
    return f"Unable to RSVP: {error}"


def display_result(result: AcquisitionResult) -> None:
    """Display a successful acquisition with Rich formatting."""
    table = _table()
    if result.session:
        _add_session_rows(table, result.session)
    table.add_row("Status", result.state.value)
    table.add_row("Attempts", str(result.attempts))
    table.add_row("Elapsed", f"{result.elapsed_seconds:.1f}s")

    title = _TITLES.get(result.state, result.state.value.upper())
    console.print(Panel(table, title=title, border_style="green"))
    _desktop_notify(title.title(), success_message(result))


def display_failure(error: RsvpError, session: ClassSession | None = None) -> None:
    """Display a failed acquisition, naming the terminal phase when there is one."""
    table = _table()
    if session:
        _add_session_rows(table, session)
    table.add_row("Error", str(error))
    if isinstance(error, AcquisitionError):
        if error.phase is not None:
            table.add_row("Outcome", error.phase.value)
        table.add_row("Attempts", str(error.attempts))

    console.print(Panel(table, title="RSVP FAILED", border_style="red"))
    _desktop_notify("RSVP Failed", failure_message(error))


def _table() -> Table:
    table = Table(show_header=False, box=None, padding=(0, 2))
    table.add_column(style="bold")
    table.add_column()
    return table


def _add_session_rows(table: Table, session: ClassSession) -> None:
    table.add_row("Class", session.display_title)
    table.add_row("Starts", session.start.strftime("%a %Y-%m-%d %H:%M"))
    if session.coaches:
        table.add_row("Coach", session.coaches)


def _applescript_string(text: str) -> str:
    escaped = text.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


def _desktop_notify(title: str, message: str) -> None:
    """Send a macOS notification via osascript."""
    if sys.platform != "darwin":
        return
    try:
        script = (
            f"display notification {_applescript_string(message)} "
            f"with title {_applescript_string(title)}"
        )
        subprocess.run(
            ["osascript", "-e", script],
            capture_output=True,
            timeout=5,
        )
    except (OSError, subprocess.SubprocessError):
        pass  # Non-critical
