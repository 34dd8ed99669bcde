"""Flask CLI commands for refresh-token maintenance."""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager

import click
from flask import current_app
from flask.cli import with_appcontext

from sessionauth.services._shared.errors import StorageUnavailable

LOGGER = logging.getLogger(__name__)


def _engine():
    from sessionauth.api.deps import build_rotation_engine

    return build_rotation_engine(current_app._get_current_object())  # type: ignore[attr-defined]


@contextmanager
def _store_errors() -> Iterator[None]:
    """Report an unreachable store as a CLI error instead of a traceback."""
    try:
        yield
    except StorageUnavailable as exc:
        raise click.ClickException(str(exc)) from exc


@click.group("tokens")
@click.option("--verbose", is_flag=True, help="Enable verbose logging for token commands.")
def tokens_cli(verbose: bool) -> None:
    """Refresh-token and session maintenance commands."""
    if verbose:
        logging.getLogger("sessionauth").setLevel(logging.DEBUG)


@tokens_cli.command("sweep")
@with_appcontext
def sweep_command() -> None:
    """Hard-delete expired refresh tokens and sessions."""
    with _store_errors():
        result = _engine().sweep_expired()
    click.echo(
        f"Swept tokens={result.tokens_deleted} sessions={result.sessions_deleted}"
    )


@tokens_cli.command("sessions")
@click.argument("user_id")
@with_appcontext
def sessions_command(user_id: str) -> None:
    """List the active sessions of USER_ID."""
    with _store_errors():
        entries = _engine().list_sessions(user_id)
    if not entries:
        click.echo("  (no active sessions)")
        return
    for entry in entries:
        click.echo(
            f"  {entry.session_id}  created={entry.created_at.isoformat()}"
            f"  rotated={entry.last_rotated_at.isoformat()}"
            f"  expires={entry.expires_at.isoformat()}"
            f"  ip={entry.ip_address or '-'}"
        )


@tokens_cli.command("revoke-session")
@click.argument("session_id")
@with_appcontext
def revoke_session_command(session_id: str) -> None:
    """Revoke every token of SESSION_ID and close it."""
    with _store_errors():
        ids = _engine().invalidate_session(session_id)
    LOGGER.info(
        "Session revoked from CLI",
        extra={"event": "session.revoked_cli", "session_id": session_id},
    )
    click.echo(f"Revoked session {session_id} ({len(ids)} tokens)")
