"""Shared utilities for the CredGuard CLI.

This module provides common functionality for:
- Reading JSON input from stdin or files
- Running async functions from sync CLI context
- Mapping client errors onto exit codes
"""

import asyncio
import json
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Coroutine, Optional, TypeVar

import httpx
import typer

from credguard.cli.output import output_error
from credguard.client import CredGuardClient
from credguard.config import ClientSettings
from credguard.exceptions import CredGuardError, ErrorKind
from credguard.poller import StatusFetcher, StatusPoller

# Exit codes
EXIT_SUCCESS = 0
EXIT_REMOTE_FAILURE = 1
EXIT_INPUT_ERROR = 2
EXIT_IO_ERROR = 3

_EXIT_CODES = {
    ErrorKind.INVALID_INPUT: EXIT_INPUT_ERROR,
    ErrorKind.MISSING_INPUT: EXIT_INPUT_ERROR,
    ErrorKind.MISSING_WALLET_ID: EXIT_INPUT_ERROR,
    ErrorKind.TRANSPORT_ERROR: EXIT_IO_ERROR,
}

T = TypeVar("T")


@dataclass
class CliState:
    """Per-invocation state stored on the typer context object.

    ``transport`` is only set by tests, to route requests to a mock.
    """

    settings: ClientSettings = field(default_factory=ClientSettings)
    transport: Optional[httpx.AsyncBaseTransport] = None

    def build_client(self) -> CredGuardClient:
        return CredGuardClient(
            base_url=self.settings.api_url,
            timeout=self.settings.timeout,
            upload_timeout=self.settings.upload_timeout,
            transport=self.transport,
        )

    def build_poller(self, fetch: StatusFetcher) -> StatusPoller:
        return StatusPoller(
            fetch,
            interval=self.settings.poll_interval,
            max_interval=self.settings.poll_max_interval,
            backoff=self.settings.poll_backoff,
            max_attempts=self.settings.poll_max_attempts,
        )


def get_state(ctx: typer.Context) -> CliState:
    return ctx.ensure_object(CliState)


def run_async(coro: Coroutine[Any, Any, T]) -> T:
    """Run async function from sync CLI context."""
    return asyncio.run(coro)


def exit_code_for(kind: ErrorKind) -> int:
    """Exit code for an error kind; remote-side failures map to 1."""
    return _EXIT_CODES.get(kind, EXIT_REMOTE_FAILURE)


def fail(error: CredGuardError, details: Optional[dict[str, Any]] = None) -> None:
    """Report a client error on stderr and exit with its mapped code."""
    status_code = getattr(error, "status_code", None)
    if status_code is not None:
        details = {**(details or {}), "statusCode": status_code}
    output_error(
        code=error.kind.value,
        message=error.message,
        details=details,
        exit_code=exit_code_for(error.kind),
    )


def read_json_input(source: str) -> Any:
    """Read JSON from a file path or stdin ("-").

    Raises:
        typer.Exit: 3 on I/O errors, 2 on invalid JSON
    """
    try:
        if source == "-":
            content = sys.stdin.read()
        else:
            content = Path(source).read_text(encoding="utf-8")
    except OSError as e:
        output_error(code="IO_ERROR", message=f"Error reading input: {e}", exit_code=EXIT_IO_ERROR)

    try:
        return json.loads(content)
    except json.JSONDecodeError as e:
        output_error(code="INVALID_JSON", message=f"Invalid JSON: {e}", exit_code=EXIT_INPUT_ERROR)
