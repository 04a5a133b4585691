from __future__ import annotations

import logging
from pathlib import Path

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.table import Table

from studtrack.config import get_settings
from studtrack.doctor import run_doctor
from studtrack.domain.errors import NormalizationError, ReportWriteError, UnknownScopeError
from studtrack.domain.models import AttendanceStatus, Batch, OfflineParticipant, OnlineParticipant
from studtrack.export import json as json_export
from studtrack.export.formatting import format_hours_minutes, format_percent
from studtrack.services import StudTrackService

app = typer.Typer(help="StudTrack - meeting attendance and engagement analytics")
console = Console()

INPUT_ARGUMENT = typer.Argument(..., exists=True, dir_okay=False, readable=True, help="Meetings JSON file")


@app.callback()
def main(verbose: bool = typer.Option(False, "--verbose", "-v", help="Log at INFO level")) -> None:
    """Configure logging for every command."""

    level = "INFO" if verbose else get_settings().log_level.upper()
    logging.basicConfig(
        level=level if isinstance(logging.getLevelName(level), int) else "WARNING",
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


def _load(service: StudTrackService, input_file: Path) -> Batch:
    try:
        return service.load(input_file)
    except NormalizationError as exc:
        console.print(f"[red]invalid meeting data:[/red] {escape(str(exc))}")
        raise typer.Exit(code=2) from exc


@app.command()
def doctor(
    input_file: Path | None = typer.Argument(None, help="Optional meetings JSON file to validate"),
) -> None:
    """Check configuration and input data."""

    settings = get_settings()
    checks = run_doctor(settings, input_file)

    table = Table(title="StudTrack doctor")
    table.add_column("Check")
    table.add_column("Status")
    table.add_column("Detail")

    failed = False
    for check in checks:
        status = check.status.upper()
        color = {"ok": "green", "warn": "yellow", "fail": "red"}.get(check.status, "white")
        table.add_row(check.name, f"[{color}]{status}[/{color}]", escape(check.detail))
        if check.status == "fail":
            failed = True

    console.print(table)
    if failed:
        raise typer.Exit(code=1)


@app.command()
def summary(input_file: Path = INPUT_ARGUMENT) -> None:
    """Print a per-meeting overview of time, attendance and chat volume."""

    service = StudTrackService()
    batch = _load(service, input_file)
    if not batch.meetings:
        console.print("[yellow]No meetings found.[/yellow]")
        return

    for meeting in batch.meetings:
        title = f"{meeting.title} ({meeting.date}) - {meeting.kind.value.upper()}"
        if meeting.location:
            title += f" at {meeting.location}"
        table = Table(title=escape(title))
        table.add_column("Participant")
        table.add_column("Detail")
        for participant in meeting.participants:
            if isinstance(participant, OnlineParticipant):
                seconds = sum(s.duration_seconds for s in participant.sessions)
                table.add_row(escape(participant.name), f"{seconds // 60} minutes {seconds % 60} seconds")
            elif isinstance(participant, OfflineParticipant) and participant.attendance is not None:
                attendance = participant.attendance
                detail = attendance.status
                if attendance.attended and attendance.late_by_minutes > 0:
                    detail += f" (late by {attendance.late_by_minutes} minutes)"
                if attendance.attended and attendance.early_leave_minutes > 0:
                    detail += f" (left {attendance.early_leave_minutes} minutes early)"
                table.add_row(escape(participant.name), escape(detail))
        console.print(table)
        if meeting.is_online:
            console.print(f"Chat messages: {service.chat_count(meeting)}")
        else:
            console.print(f"Activities recorded: {len(meeting.activities)}")
        console.print("")


@app.command("chat-patterns")
def chat_patterns(
    input_file: Path = INPUT_ARGUMENT,
    meeting: str | None = typer.Option(None, "--meeting", help="Restrict to one meeting id"),
) -> None:
    """Score chat senders and flag spam-like messaging."""

    service = StudTrackService()
    batch = _load(service, input_file)
    try:
        analyses = service.chat_patterns(batch, meeting_id=meeting)
    except UnknownScopeError as exc:
        console.print(f"[red]chat-patterns failed:[/red] {escape(str(exc))}")
        raise typer.Exit(code=2) from exc

    if not analyses:
        console.print("[yellow]No online meetings with chat messages found.[/yellow]")
        return

    for analysis in analyses:
        table = Table(title=escape(f"{analysis.meeting.title} ({analysis.meeting.date})"))
        table.add_column("Participant")
        table.add_column("Messages", justify="right")
        table.add_column("Pattern")
        table.add_column("Spam Score", justify="right")
        for pattern in analysis.patterns:
            flag = "[red]SPAM DETECTED[/red]" if pattern.is_spam else "Normal"
            table.add_row(escape(pattern.sender), str(pattern.message_count), flag, f"{pattern.score:.1f}")
        console.print(table)
        console.print(f"- Most active: {escape(analysis.most_active or 'None')}")
        console.print(f"- Total messages: {analysis.total_messages}")
        console.print("")


@app.command()
def activities(input_file: Path = INPUT_ARGUMENT) -> None:
    """Summarize logged activities and attendance for offline meetings."""

    service = StudTrackService()
    batch = _load(service, input_file)
    analyses = service.activity_breakdown(batch)
    if not analyses:
        console.print("[yellow]No offline meetings with activities found.[/yellow]")
        return

    for analysis in analyses:
        meeting = analysis.meeting
        title = f"{meeting.title} ({meeting.date})"
        if meeting.location:
            title += f" at {meeting.location}"
        table = Table(title=escape(title))
        table.add_column("Participant")
        table.add_column("Activities", justify="right")
        table.add_column("Most Common Activity")
        for item in analysis.participants:
            table.add_row(escape(item.name), str(item.activity_count), escape(item.most_common))
        console.print(table)

        counts = analysis.status_counts
        console.print(
            f"- Present: {counts.get(AttendanceStatus.PRESENT, 0)}, Late: {counts.get(AttendanceStatus.LATE, 0)}, "
            f"Absent: {counts.get(AttendanceStatus.ABSENT, 0)}"
        )
        rate = analysis.attendance_rate
        console.print(f"- Attendance Rate: {format_percent(rate) if rate is not None else 'N/A'}")
        console.print("")


@app.command()
def scopes(input_file: Path = INPUT_ARGUMENT) -> None:
    """List the scopes accepted by `view --meeting`."""

    service = StudTrackService()
    batch = _load(service, input_file)
    for scope_label in batch.scope_labels():
        console.print(f"- {escape(scope_label)}")


@app.command()
def view(
    input_file: Path = INPUT_ARGUMENT,
    meeting: str | None = typer.Option(None, "--meeting", help="Meeting id or scope label; default is all meetings"),
    output_format: str = typer.Option("table", "--format", help="table|json"),
    output: Path | None = typer.Option(None, "--output", help="Write JSON to this file (requires --format json)"),
) -> None:
    """Show the per-participant views behind the dashboard charts."""

    fmt = output_format.lower().strip()
    if fmt not in {"table", "json"}:
        console.print("[red]view failed:[/red] Unsupported format. Use: table, json")
        raise typer.Exit(code=2)
    if output is not None and fmt != "json":
        console.print("[red]view failed:[/red] --output requires --format json")
        raise typer.Exit(code=2)

    service = StudTrackService()
    batch = _load(service, input_file)
    try:
        if output is not None:
            path = service.export_scope_view(batch, meeting, output)
            console.print(f"[green]View written:[/green] {path}")
            return
        scope_view = service.scope_view(batch, meeting)
    except (UnknownScopeError, OSError) as exc:
        console.print(f"[red]view failed:[/red] {escape(str(exc))}")
        raise typer.Exit(code=2) from exc

    if fmt == "json":
        typer.echo(json_export.dumps_payload(json_export.build_scope_payload(scope_view)))
        return

    table = Table(title=escape(scope_view.label))
    table.add_column("Participant")
    table.add_column("Total Time")
    table.add_column("Sessions", justify="right")
    table.add_column("Chat Messages", justify="right")
    names = list(dict.fromkeys([*scope_view.total_time, *(scope_view.chat_counts or {})]))
    for name in names:
        seconds = scope_view.total_time.get(name)
        chat_count = (scope_view.chat_counts or {}).get(name)
        table.add_row(
            escape(name),
            format_hours_minutes(seconds) if seconds is not None else "-",
            str(len(scope_view.sessions.get(name, []))),
            str(chat_count) if chat_count is not None else "-",
        )
    console.print(table)

    if scope_view.attendance_status_counts is not None:
        console.print("Attendance status:")
        for status, count in scope_view.attendance_status_counts.items():
            console.print(f"- {escape(status.upper())}: {count}")
    if scope_view.activity_label_counts is not None:
        console.print("Activities:")
        for activity_label, count in scope_view.activity_label_counts.items():
            console.print(f"- {escape(activity_label)}: {count}")


@app.command()
def report(
    input_file: Path = INPUT_ARGUMENT,
    output: Path | None = typer.Option(None, "--output", help="Report file path"),
) -> None:
    """Write the comprehensive attendance report."""

    service = StudTrackService()
    batch = _load(service, input_file)
    try:
        path = service.generate_report(batch, output)
    except ReportWriteError as exc:
        console.print(f"[red]report failed:[/red] {escape(str(exc))}")
        raise typer.Exit(code=2) from exc
    console.print(f"[green]Report written:[/green] {path}")


if __name__ == "__main__":
    app()
