"""Credential issuance commands.

Commands:
    credguard issue <file> --type T --wallet DID   Issue from a document
    credguard status <exchange-id>                 Credential exchange status
    credguard revoke <credential-id>               Revoke a credential
    credguard connection <connection-id>           Wallet connection status
"""

from pathlib import Path
from typing import Any, Awaitable, Callable, Optional, TypeVar

import typer

from credguard.cli.output import OutputFormat, output, output_error
from credguard.cli.utils import (
    EXIT_INPUT_ERROR,
    EXIT_IO_ERROR,
    EXIT_REMOTE_FAILURE,
    CliState,
    fail,
    get_state,
    run_async,
)
from credguard.exceptions import CredGuardError
from credguard.issuance import IssuanceOrchestrator, IssuanceSnapshot
from credguard.models import DocumentType
from credguard.upload import UploadFile

T = TypeVar("T")


def _with_orchestrator(
    state: CliState,
    call: Callable[[IssuanceOrchestrator], Awaitable[T]],
    listener: Optional[Callable[[IssuanceSnapshot], Any]] = None,
) -> T:
    async def _run() -> T:
        async with state.build_client() as client:
            orchestrator = IssuanceOrchestrator(
                client,
                poller_factory=state.build_poller,
                listener=listener,
            )
            return await call(orchestrator)

    try:
        return run_async(_run())
    except CredGuardError as e:
        fail(e)


def _progress_listener() -> Callable[[IssuanceSnapshot], None]:
    """Echo state changes and new exchange statuses to stderr."""
    seen: dict[str, Any] = {"state": None, "status": None}

    def listener(snapshot: IssuanceSnapshot) -> None:
        if snapshot.state is not seen["state"]:
            seen["state"] = snapshot.state
            typer.echo(f"[{snapshot.state.value}]", err=True)
        status = snapshot.last_status.status if snapshot.last_status else None
        if status is not None and status != seen["status"]:
            seen["status"] = status
            typer.echo(f"  exchange status: {status}", err=True)

    return listener


def issue_cmd(
    ctx: typer.Context,
    file: Path = typer.Argument(..., help="Document to extract attributes from"),
    document_type: DocumentType = typer.Option(
        ...,
        "--type",
        "-t",
        case_sensitive=False,
        help="Document type",
    ),
    wallet: Optional[str] = typer.Option(
        None,
        "--wallet",
        "-w",
        envvar="CREDGUARD_WALLET_DID",
        help="Holder wallet DID (e.g. did:example:123)",
    ),
    preview: bool = typer.Option(False, "--preview", help="Extract attributes only; mint nothing"),
    run_async_issuance: bool = typer.Option(
        False,
        "--async",
        help="Use asynchronous issuance and poll the exchange until it settles",
    ),
    poll_interval: Optional[float] = typer.Option(None, "--poll-interval", help="Initial poll delay (seconds)"),
    max_attempts: Optional[int] = typer.Option(None, "--max-attempts", help="Maximum status polls"),
    progress: bool = typer.Option(False, "--progress", help="Report workflow progress on stderr"),
    format: OutputFormat = typer.Option(
        OutputFormat.json,
        "--format",
        "-f",
        help="Output format",
    ),
) -> None:
    """Issue a verifiable credential from a physical document.

    Synchronous issuance prints the full outcome (document, credential,
    and wallet issuance details). With --async the job is acknowledged
    first and its exchange is polled until a terminal status.

    Examples:
        credguard issue passport.pdf --type PASSPORT --wallet did:example:123
        credguard issue degree.png -t DEGREE_CERTIFICATE -w did:example:9 --preview
        credguard issue licence.jpg -t DRIVERS_LICENSE -w did:example:7 --async
    """
    if preview and run_async_issuance:
        output_error(
            code="INVALID_INPUT",
            message="--preview cannot be combined with --async",
            exit_code=EXIT_INPUT_ERROR,
        )
    if max_attempts is not None and max_attempts < 1:
        output_error(code="INVALID_INPUT", message="--max-attempts must be at least 1", exit_code=EXIT_INPUT_ERROR)

    state = get_state(ctx)
    if poll_interval is not None:
        state.settings.poll_interval = poll_interval
    if max_attempts is not None:
        state.settings.poll_max_attempts = max_attempts

    try:
        upload = UploadFile.from_path(file)
    except OSError as e:
        output_error(code="IO_ERROR", message=f"Error reading {file}: {e}", exit_code=EXIT_IO_ERROR)

    listener = _progress_listener() if progress else None

    if not run_async_issuance:
        outcome = _with_orchestrator(
            state,
            lambda o: o.submit_for_issuance(upload, document_type, wallet, preview_only=preview),
            listener,
        )
        output(outcome.to_wire(), format, table_title="Issuance")
        if not outcome.success:
            raise typer.Exit(EXIT_REMOTE_FAILURE)
        return

    async def _issue_async(orchestrator: IssuanceOrchestrator) -> dict[str, Any]:
        job = await orchestrator.submit_for_issuance_async(upload, document_type, wallet)
        try:
            status = await orchestrator.wait_for_completion()
        except CredGuardError as e:
            return {"job": job, "status": job.last_status, "error": e}
        return {"job": job, "status": status, "error": None}

    result = _with_orchestrator(state, _issue_async, listener)
    job = result["job"]
    if result["error"] is not None:
        fail(result["error"], details={"jobId": job.job_id})

    status = result["status"]
    output(
        {
            "jobId": job.job_id,
            "jobState": job.state.value,
            "status": status.to_wire() if status is not None else None,
        },
        format,
        table_title="Issuance job",
    )


def status_cmd(
    ctx: typer.Context,
    exchange_id: str = typer.Argument(..., help="Credential exchange (job) id"),
    format: OutputFormat = typer.Option(
        OutputFormat.json,
        "--format",
        "-f",
        help="Output format",
    ),
) -> None:
    """Show the current status of a credential exchange."""
    status = _with_orchestrator(get_state(ctx), lambda o: o.get_status(exchange_id))
    output(status.to_wire(), format, table_title="Credential status")


def revoke_cmd(
    ctx: typer.Context,
    credential_id: str = typer.Argument(..., help="Credential id to revoke"),
    format: OutputFormat = typer.Option(
        OutputFormat.json,
        "--format",
        "-f",
        help="Output format",
    ),
) -> None:
    """Revoke a previously issued credential."""
    _with_orchestrator(get_state(ctx), lambda o: o.revoke(credential_id))
    output({"credentialId": credential_id, "revoked": True}, format)


def connection_cmd(
    ctx: typer.Context,
    connection_id: str = typer.Argument(..., help="Wallet connection id"),
    format: OutputFormat = typer.Option(
        OutputFormat.json,
        "--format",
        "-f",
        help="Output format",
    ),
) -> None:
    """Show the raw status text of a wallet connection."""
    text = _with_orchestrator(get_state(ctx), lambda o: o.get_connection_status(connection_id))
    output({"connectionId": connection_id, "status": text}, format)

