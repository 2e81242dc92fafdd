# cli.py
"""
Flask CLI commands for session housekeeping.
"""

from datetime import datetime

import click
from flask.cli import with_appcontext

from session_attendance.extensions import db


@click.command("close-expired-sessions")
@click.option("--dry-run", is_flag=True, help="Show what would be closed without making changes")
@with_appcontext
def close_expired_sessions(dry_run):
    """
    Close sessions whose end time has passed but are still flagged open.

    Example usage:
        flask close-expired-sessions
        flask close-expired-sessions --dry-run
    """
    from session_attendance.services.session_registry import SessionRegistryService

    try:
        expired = SessionRegistryService.close_expired_sessions(dry_run=dry_run)
    except Exception as e:
        db.session.rollback()
        click.echo(f"Error closing expired sessions: {str(e)}", err=True)
        raise

    if not expired:
        click.echo("No expired sessions found.")
        return

    for session in expired:
        click.echo(f"{session.code:<8} {session.session_date} {session.start_time}-{session.end_time} "
                   f"course={session.course_id}")

    if dry_run:
        click.echo(f"\nDRY RUN - {len(expired)} sessions would be closed.")
    else:
        click.echo(f"\nClosed {len(expired)} expired sessions.")


@click.command("list-open-sessions")
@click.option("--date", "on_date", default=None, help="Date to list (YYYY-MM-DD), defaults to today")
@with_appcontext
def list_open_sessions(on_date):
    """List sessions flagged open on a given date."""
    from session_attendance.models import ClassSession

    try:
        target = datetime.strptime(on_date, "%Y-%m-%d").date() if on_date else datetime.now().date()
    except ValueError:
        click.echo("Error: --date must be in YYYY-MM-DD format", err=True)
        return

    sessions = (
        ClassSession.query
        .filter_by(session_date=target, is_open=True)
        .order_by(ClassSession.start_time)
        .all()
    )

    if not sessions:
        click.echo(f"No open sessions on {target}")
        return

    click.echo(f"{'Code':<8} {'Start':<10} {'End':<10} {'Room':<12} {'Course':<36}")
    click.echo("-" * 80)
    for session in sessions:
        click.echo(f"{session.code:<8} {str(session.start_time):<10} {str(session.end_time):<10} "
                   f"{(session.room_label or '-'):<12} {session.course_id:<36}")


@click.command("session-qr")
@click.argument("session_id")
@click.argument("output_path", type=click.Path(dir_okay=False, writable=True))
@with_appcontext
def session_qr(session_id, output_path):
    """Write a session's check-in QR code to a PNG file."""
    from session_attendance.services.qr_code_service import QRCodeService

    result = QRCodeService.render_session_qr(session_id)
    if not result['success']:
        click.echo(f"Error: {result['message']}", err=True)
        return

    with open(output_path, 'wb') as handle:
        handle.write(result['png'])

    click.echo(f"QR code for session {session_id} written to {output_path}")


def register_cli_commands(app):
    """Register all CLI commands with the app."""
    app.cli.add_command(close_expired_sessions)
    app.cli.add_command(list_open_sessions)
    app.cli.add_command(session_qr)
