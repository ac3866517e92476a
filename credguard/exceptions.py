# Copyright (c) Rich Connexions Ltd. All rights reserved.
# Licensed under the MIT License. See LICENSE for details.
"""CredGuard client exceptions mapped to a single error taxonomy."""

from enum import Enum
from typing import Optional


class ErrorKind(str, Enum):
    """Error taxonomy shared by both orchestrators."""

    INVALID_INPUT = "INVALID_INPUT"
    MISSING_INPUT = "MISSING_INPUT"
    MISSING_WALLET_ID = "MISSING_WALLET_ID"
    TRANSPORT_ERROR = "TRANSPORT_ERROR"
    REMOTE_ERROR = "REMOTE_ERROR"
    MALFORMED_RESPONSE = "MALFORMED_RESPONSE"
    POLLING_TIMEOUT = "POLLING_TIMEOUT"
    POLLING_CANCELLED = "POLLING_CANCELLED"


class CredGuardError(Exception):
    """Base exception for all CredGuard client failures.

    Every subclass carries a :class:`ErrorKind` and a single human-readable
    message suitable for showing to the user as-is.
    """

    kind: ErrorKind = ErrorKind.REMOTE_ERROR

    def __init__(self, message: str, kind: Optional[ErrorKind] = None):
        self.message = message
        if kind is not None:
            self.kind = kind
        super().__init__(message)


class UploadRejectedError(CredGuardError):
    """Candidate upload was rejected before any network call."""

    kind = ErrorKind.INVALID_INPUT

    @classmethod
    def missing_file(cls) -> "UploadRejectedError":
        return cls("No file provided", kind=ErrorKind.MISSING_INPUT)

    @classmethod
    def invalid_file(cls, reason: str = "expected a file with a name and size") -> "UploadRejectedError":
        return cls(f"Invalid file provided: {reason}", kind=ErrorKind.INVALID_INPUT)

    @classmethod
    def missing_wallet_id(cls) -> "UploadRejectedError":
        return cls(
            "Please provide a wallet DID before uploading a document.",
            kind=ErrorKind.MISSING_WALLET_ID,
        )


class TransportError(CredGuardError):
    """Request never reached the backend, or no response came back."""

    kind = ErrorKind.TRANSPORT_ERROR


class RemoteError(CredGuardError):
    """Backend answered with a non-2xx status (or a terminal failure status)."""

    kind = ErrorKind.REMOTE_ERROR

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.status_code = status_code
        super().__init__(message)


class MalformedResponseError(CredGuardError):
    """2xx response whose body does not match the expected shape."""

    kind = ErrorKind.MALFORMED_RESPONSE


class PollingTimeoutError(CredGuardError):
    """Status poller ran out of attempts before a terminal status."""

    kind = ErrorKind.POLLING_TIMEOUT

    def __init__(self, exchange_id: str, attempts: int):
        self.exchange_id = exchange_id
        self.attempts = attempts
        super().__init__(
            f"Credential exchange {exchange_id} did not reach a terminal status "
            f"after {attempts} attempts"
        )


class PollingCancelledError(CredGuardError):
    """Status poller was cancelled by the caller."""

    kind = ErrorKind.POLLING_CANCELLED

    def __init__(self, exchange_id: str):
        self.exchange_id = exchange_id
        super().__init__(f"Polling for credential exchange {exchange_id} was cancelled")


class InvalidTransitionError(RuntimeError):
    """Workflow state machine was asked to make an illegal transition."""

    def __init__(self, machine: str, current: str, target: str):
        self.machine = machine
        self.current = current
        self.target = target
        super().__init__(f"{machine}: illegal transition {current} -> {target}")
