"""CredGuard CLI - Main entry point with command registration.

This module defines the main typer app, applies global options, and
registers the verification and issuance commands.
"""

from typing import Optional

import typer

from credguard import __version__
from credguard.cli import issue, verify
from credguard.cli.output import OutputFormat, output
from credguard.cli.utils import EXIT_REMOTE_FAILURE, fail, get_state, run_async
from credguard.config import LOG_FORMAT, LOG_LEVEL
from credguard.exceptions import CredGuardError
from credguard.logging_config import configure_logging
from credguard.models import HealthStatus

app = typer.Typer(
    name="credguard",
    help="CredGuard CLI - Verify credentials and issue them from documents.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)


def version_callback(value: bool) -> None:
    """Show version and exit."""
    if value:
        typer.echo(f"credguard version {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    ctx: typer.Context,
    version: bool = typer.Option(
        None,
        "--version",
        "-V",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
    api_url: Optional[str] = typer.Option(
        None,
        "--api-url",
        help="CredGuard backend base URL [env: CREDGUARD_API_URL]",
    ),
    log_level: str = typer.Option(LOG_LEVEL, "--log-level", help="Log level (DEBUG, INFO, WARNING, ...)"),
    log_format: str = typer.Option(LOG_FORMAT, "--log-format", help="Log format: json or text"),
) -> None:
    """CredGuard CLI - Verify credentials and issue them from documents.

    Results are printed to stdout as JSON by default; errors and logs go
    to stderr.

    Exit codes: 0 success, 1 rejected or failed remotely, 2 invalid
    input, 3 I/O or transport error.

    Examples:
        credguard verify diploma.pdf
        credguard issue passport.pdf --type PASSPORT --wallet did:example:123
        credguard --api-url https://credguard.example.com health
    """
    configure_logging(log_level, log_format)
    state = get_state(ctx)
    if api_url:
        state.settings.api_url = api_url


@app.command("health")
def health_cmd(
    ctx: typer.Context,
    format: OutputFormat = typer.Option(
        OutputFormat.json,
        "--format",
        "-f",
        help="Output format",
    ),
) -> None:
    """Check that the backend is reachable and healthy."""
    state = get_state(ctx)

    async def _run() -> HealthStatus:
        async with state.build_client() as client:
            return await client.health()

    try:
        health = run_async(_run())
    except CredGuardError as e:
        fail(e)

    output(health.to_wire(), format, table_title="Backend health")
    if not health.is_ok:
        raise typer.Exit(EXIT_REMOTE_FAILURE)


app.command("verify")(verify.verify_cmd)
app.command("verify-json")(verify.verify_json_cmd)
app.command("issue")(issue.issue_cmd)
app.command("status")(issue.status_cmd)
app.command("revoke")(issue.revoke_cmd)
app.command("connection")(issue.connection_cmd)


if __name__ == "__main__":
    app()
