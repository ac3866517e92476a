# Copyright (c) Rich Connexions Ltd. All rights reserved.
# Licensed under the MIT License. See LICENSE for details.
"""CredGuard client.

Async client and workflow orchestrators for the CredGuard credential
verification and issuance backend.
"""

from credguard.client import CredGuardClient, close_client, get_client, reset_client
from credguard.exceptions import (
    CredGuardError,
    ErrorKind,
    MalformedResponseError,
    PollingCancelledError,
    PollingTimeoutError,
    RemoteError,
    TransportError,
    UploadRejectedError,
)
from credguard.issuance import IssuanceOrchestrator, IssuanceState
from credguard.models import (
    AsyncJob,
    CredentialStatus,
    DocumentStatus,
    DocumentType,
    IssuanceOutcome,
    VerificationRequest,
    VerificationVerdict,
)
from credguard.normalizer import normalize_error
from credguard.poller import StatusPoller
from credguard.upload import UploadFile, UploadValidator
from credguard.verification import VerificationOrchestrator, VerificationState

__version__ = "0.1.0"

__all__ = [
    "AsyncJob",
    "CredGuardClient",
    "CredGuardError",
    "CredentialStatus",
    "DocumentStatus",
    "DocumentType",
    "ErrorKind",
    "IssuanceOrchestrator",
    "IssuanceOutcome",
    "IssuanceState",
    "MalformedResponseError",
    "PollingCancelledError",
    "PollingTimeoutError",
    "RemoteError",
    "StatusPoller",
    "TransportError",
    "UploadFile",
    "UploadRejectedError",
    "UploadValidator",
    "VerificationOrchestrator",
    "VerificationRequest",
    "VerificationState",
    "VerificationVerdict",
    "close_client",
    "get_client",
    "normalize_error",
    "reset_client",
]
