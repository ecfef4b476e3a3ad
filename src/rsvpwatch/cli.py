"""Click CLI commands for rsvpwatch."""

from __future__ import annotations

import asyncio
import logging
import sys
from datetime import date, datetime, timedelta
from zoneinfo import ZoneInfo

import click
import orjson
from rich.console import Console
from rich.table import Table

from rsvpwatch.acquisition import AcquisitionLoop
from rsvpwatch.api import PortalClient
from rsvpwatch.auth import AuthManager
from rsvpwatch.clock import SystemClock
from rsvpwatch.config import load_config
from rsvpwatch.errors import RsvpError
from rsvpwatch.models import ClassRequest, ClassSession, RsvpConfig, SessionCredentials
from rsvpwatch.notifications import display_failure, display_result
from rsvpwatch.planner import find_session, plan_runs, schedule_range
from rsvpwatch.registration import RegistrationController
from rsvpwatch.timing import registration_window

console = Console()


def _setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )


def _load_config_or_exit(config_file: str) -> RsvpConfig:
    try:
        return load_config(config_file)
    except RsvpError as e:
        console.print(f"[red]{e}[/red]")
        sys.exit(1)


def _selected_requests(config: RsvpConfig, class_name: str | None) -> list[ClassRequest]:
    if class_name is None:
        return config.requests
    return [r for r in config.requests if class_name in r.class_name]


async def _login(client: PortalClient) -> SessionCredentials:
    auth = AuthManager()
    return await auth.login(client, auth.load_credentials())


async def _fetch_sessions(
    client: PortalClient,
    credentials: SessionCredentials,
    config: RsvpConfig,
    requests: list[ClassRequest],
) -> list[ClassSession]:
    start, end = schedule_range(requests)
    # feed end date is exclusive
    return await client.get_schedule(
        credentials, config.schedule_name, start, end + timedelta(days=1)
    )


@click.group()
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging.")
def main(verbose: bool) -> None:
    """rsvpwatch: grab a class spot the moment RSVPs open."""
    _setup_logging(verbose)


@main.command()
@click.option("--config", "config_file", type=click.Path(exists=True), help="Config for portal URL.")
def configure(config_file: str | None) -> None:
    """Store portal credentials securely in the OS keyring."""
    username = click.prompt("Portal username")
    password = click.prompt("Portal password", hide_input=True)

    auth = AuthManager()
    auth.store_credentials(username, password)

    console.print("[green]Credentials stored.[/green] Verifying...")
    config = _load_config_or_exit(config_file) if config_file else RsvpConfig()

    async def _verify() -> None:
        async with PortalClient(config.portal_url, config.timezone) as client:
            await client.login(username, password)
            console.print(f"[green]Logged in as {username}[/green]")

    try:
        asyncio.run(_verify())
    except RsvpError as e:
        console.print(f"[red]Verification failed: {e}[/red]")
        console.print("Credentials were still saved. You can fix them with 'rsvpwatch configure'.")


@main.command()
@click.argument("config_file", type=click.Path(exists=True))
def test_auth(config_file: str) -> None:
    """Test stored credentials against the portal."""
    config = _load_config_or_exit(config_file)

    async def _test() -> None:
        async with PortalClient(config.portal_url, config.timezone) as client:
            credentials = await _login(client)
            console.print("[green]Authentication successful![/green]")
            console.print(f"CSRF token: {credentials.csrf_token[:8]}...")

    try:
        asyncio.run(_test())
    except RsvpError as e:
        console.print(f"[red]Auth test failed: {e}[/red]")
        sys.exit(1)


@main.command()
@click.argument("config_file", type=click.Path(exists=True))
@click.option("--days", default=7, show_default=True, help="How many days to list.")
def schedule(config_file: str, days: int) -> None:
    """List upcoming classes and when their RSVP window opens."""
    config = _load_config_or_exit(config_file)
    lead_time = config.acquisition.to_settings().lead_time
    today = date.today()

    async def _list() -> list[ClassSession]:
        async with PortalClient(config.portal_url, config.timezone) as client:
            credentials = await _login(client)
            return await client.get_schedule(
                credentials, config.schedule_name, today, today + timedelta(days=days)
            )

    try:
        sessions = asyncio.run(_list())
    except RsvpError as e:
        console.print(f"[red]{e}[/red]")
        sys.exit(1)

    table = Table(title=config.schedule_name)
    table.add_column("ID")
    table.add_column("Class")
    table.add_column("Starts")
    table.add_column("RSVP opens")
    for s in sorted(sessions, key=lambda s: s.start):
        table.add_row(
            str(s.id),
            s.display_title,
            s.start.strftime("%a %m-%d %H:%M"),
            registration_window(s.start, lead_time).strftime("%a %m-%d %H:%M"),
        )
    console.print(table)


@main.command()
@click.argument("config_file", type=click.Path(exists=True))
@click.option("--json", "as_json", is_flag=True, help="Print task events for an external scheduler.")
def plan(config_file: str, as_json: bool) -> None:
    """Match configured requests to classes and show when each run should start."""
    config = _load_config_or_exit(config_file)
    lead_time = config.acquisition.to_settings().lead_time
    tz = ZoneInfo(config.timezone)

    async def _plan():
        async with PortalClient(config.portal_url, config.timezone) as client:
            credentials = await _login(client)
            sessions = await _fetch_sessions(client, credentials, config, config.requests)
            return plan_runs(credentials, sessions, config.requests, lead_time, datetime.now(tz))

    try:
        runs = asyncio.run(_plan())
    except RsvpError as e:
        console.print(f"[red]{e}[/red]")
        sys.exit(1)

    if as_json:
        click.echo(orjson.dumps(
            [{"trigger_at": r.trigger_at.isoformat(), "event": r.task.to_event()} for r in runs],
            option=orjson.OPT_INDENT_2,
        ).decode())
        return

    table = Table(title="Planned RSVP runs")
    table.add_column("Class")
    table.add_column("Starts")
    table.add_column("RSVP opens")
    table.add_column("Run at")
    for r in runs:
        opens = "[green]open now[/green]" if r.in_window else r.window_opens.strftime("%a %m-%d %H:%M")
        table.add_row(
            r.task.session.display_title,
            r.task.session.start.strftime("%a %m-%d %H:%M"),
            opens,
            r.trigger_at.astimezone(tz).strftime("%a %m-%d %H:%M"),
        )
    console.print(table)

    planned = {id(r.request) for r in runs}
    for request in config.requests:
        if id(request) not in planned:
            console.print(
                f"[yellow]No class matches '{request.class_name}' at {request.start:%a %m-%d %H:%M}[/yellow]"
            )


@main.command()
@click.argument("config_file", type=click.Path(exists=True))
@click.option("--class", "class_name", help="Only requests whose class name contains this.")
def status(config_file: str, class_name: str | None) -> None:
    """Show the current RSVP status of each requested class."""
    config = _load_config_or_exit(config_file)
    requests = _selected_requests(config, class_name)

    async def _status() -> list[tuple[ClassSession, str]]:
        rows = []
        async with PortalClient(config.portal_url, config.timezone) as client:
            credentials = await _login(client)
            sessions = await _fetch_sessions(client, credentials, config, requests)
            controller = RegistrationController(client)
            for request in requests:
                session = find_session(request, sessions)
                state = await controller.check(credentials, session)
                rows.append((session, state.value))
        return rows

    try:
        rows = asyncio.run(_status())
    except RsvpError as e:
        console.print(f"[red]{e}[/red]")
        sys.exit(1)

    table = Table()
    table.add_column("Class")
    table.add_column("Starts")
    table.add_column("Status")
    for session, state in rows:
        table.add_row(session.display_title, session.start.strftime("%a %m-%d %H:%M"), state)
    console.print(table)


@main.command()
@click.argument("config_file", type=click.Path(exists=True))
@click.option("--class", "class_name", help="Only requests whose class name contains this.")
def rsvp(config_file: str, class_name: str | None) -> None:
    """Wait for the RSVP window of each requested class and grab a spot.

    Requests run concurrently, each with its own attempt counter and deadline.
    """
    config = _load_config_or_exit(config_file)
    requests = _selected_requests(config, class_name)
    if not requests:
        console.print("[yellow]No matching requests in config.[/yellow]")
        return
    settings = config.acquisition.to_settings()

    clock = SystemClock()
    offset = clock.check_ntp_offset()
    if offset is not None:
        if abs(offset) > 0.5:
            console.print(
                f"[yellow]System clock is off by {offset:.1f}s; "
                f"correcting RSVP timing for it.[/yellow]"
            )
        else:
            console.print(f"Clock offset: {offset*1000:.0f}ms (OK)")

    async def _rsvp() -> list[tuple[ClassSession, object]]:
        async with PortalClient(config.portal_url, config.timezone) as client:
            credentials = await _login(client)
            sessions = await _fetch_sessions(client, credentials, config, requests)
            targets = [find_session(r, sessions) for r in requests]
            controller = RegistrationController(client)
            outcomes = await asyncio.gather(
                *(
                    AcquisitionLoop(controller, settings, clock).run(credentials, s)
                    for s in targets
                ),
                return_exceptions=True,
            )
            return list(zip(targets, outcomes))

    try:
        results = asyncio.run(_rsvp())
    except KeyboardInterrupt:
        console.print("\n[yellow]RSVP cancelled.[/yellow]")
        sys.exit(130)
    except RsvpError as e:
        console.print(f"[red]{e}[/red]")
        sys.exit(1)

    failed = False
    for session, outcome in results:
        if isinstance(outcome, RsvpError):
            display_failure(outcome, session)
            failed = True
        elif isinstance(outcome, BaseException):
            console.print(f"[red]Unexpected error for {session.display_title}: {outcome}[/red]")
            failed = True
        else:
            display_result(outcome)

    if failed:
        sys.exit(1)
