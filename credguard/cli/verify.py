"""Credential verification commands.

Commands:
    credguard verify <file>          Upload a credential file and verify it
    credguard verify-json <file|->   Verify a structured credential (JSON)
"""

from pathlib import Path

import typer
from pydantic import ValidationError

from credguard.cli.output import OutputFormat, output, output_error
from credguard.cli.utils import (
    EXIT_INPUT_ERROR,
    EXIT_IO_ERROR,
    EXIT_REMOTE_FAILURE,
    CliState,
    fail,
    get_state,
    read_json_input,
    run_async,
)
from credguard.exceptions import CredGuardError
from credguard.models import VerificationRequest, VerificationVerdict
from credguard.upload import UploadFile
from credguard.verification import VerificationOrchestrator


def _report(verdict: VerificationVerdict, format: OutputFormat) -> None:
    output(verdict.to_wire(), format, table_title="Verification")
    if not verdict.valid:
        raise typer.Exit(EXIT_REMOTE_FAILURE)


def _verify(state: CliState, submit) -> VerificationVerdict:
    async def _run() -> VerificationVerdict:
        async with state.build_client() as client:
            return await submit(VerificationOrchestrator(client))

    try:
        return run_async(_run())
    except CredGuardError as e:
        fail(e)


def verify_cmd(
    ctx: typer.Context,
    file: Path = typer.Argument(..., help="Credential file to upload (PDF, image, JSON, ...)"),
    format: OutputFormat = typer.Option(
        OutputFormat.json,
        "--format",
        "-f",
        help="Output format",
    ),
) -> None:
    """Upload a credential file; the backend extracts and verifies it.

    Exits 1 when the backend rejects the credential.

    Examples:
        credguard verify diploma.pdf
        credguard verify badge.json --format pretty
    """
    try:
        upload = UploadFile.from_path(file)
    except OSError as e:
        output_error(code="IO_ERROR", message=f"Error reading {file}: {e}", exit_code=EXIT_IO_ERROR)

    verdict = _verify(get_state(ctx), lambda orchestrator: orchestrator.submit_for_verification(upload))
    _report(verdict, format)


def verify_json_cmd(
    ctx: typer.Context,
    source: str = typer.Argument(..., help="Credential JSON file, or '-' for stdin"),
    format: OutputFormat = typer.Option(
        OutputFormat.json,
        "--format",
        "-f",
        help="Output format",
    ),
) -> None:
    """Verify an already-structured credential.

    The JSON object carries id, type, issuer {id, displayName},
    subject, issuedAt, optional expiresAt, and claims.

    Examples:
        credguard verify-json credential.json
        cat credential.json | credguard verify-json -
    """
    data = read_json_input(source)

    try:
        request = VerificationRequest.model_validate(data)
    except ValidationError as e:
        output_error(
            code="INVALID_CREDENTIAL",
            message=f"Invalid credential: {e.error_count()} validation error(s)",
            details={"errors": [f"{'.'.join(map(str, err['loc']))}: {err['msg']}" for err in e.errors()]},
            exit_code=EXIT_INPUT_ERROR,
        )

    verdict = _verify(get_state(ctx), lambda orchestrator: orchestrator.submit_credential(request))
    _report(verdict, format)
