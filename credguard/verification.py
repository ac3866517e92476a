# Copyright (c) Rich Connexions Ltd. All rights reserved.
# Licensed under the MIT License. See LICENSE for details.
"""Verification workflow.

Drives the synchronous "submit credential -> interpret verdict" flow:

    IDLE -> SUBMITTING -> SUCCEEDED | FAILED

Two submission variants produce the same :class:`VerificationVerdict`:

* :meth:`VerificationOrchestrator.submit_for_verification` uploads a
  file; the backend extracts the credential first.
* :meth:`VerificationOrchestrator.submit_credential` posts an
  already-structured credential as JSON.

Only one submission is honoured at a time. A new submission supersedes
any in flight; when the superseded request completes later its result
(success or failure) is dropped and the call returns ``None``.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Optional

from credguard.client import CredGuardClient
from credguard.exceptions import CredGuardError, ErrorKind, UploadRejectedError
from credguard.models import VerificationRequest, VerificationVerdict
from credguard.upload import UploadValidator
from credguard.workflow import StateMachine, SubmissionSequencer

log = logging.getLogger(__name__)


class VerificationState(str, Enum):
    IDLE = "Idle"
    SUBMITTING = "Submitting"
    SUCCEEDED = "Succeeded"
    FAILED = "Failed"


_TRANSITIONS = {
    VerificationState.IDLE: frozenset({VerificationState.SUBMITTING}),
    VerificationState.SUBMITTING: frozenset({
        VerificationState.SUBMITTING,
        VerificationState.SUCCEEDED,
        VerificationState.FAILED,
    }),
    VerificationState.SUCCEEDED: frozenset({VerificationState.SUBMITTING}),
    VerificationState.FAILED: frozenset({VerificationState.SUBMITTING}),
}


@dataclass(frozen=True)
class VerificationSnapshot:
    """Immutable view of the workflow handed to listeners."""

    state: VerificationState
    verdict: Optional[VerificationVerdict] = None
    error: Optional[str] = None
    error_kind: Optional[ErrorKind] = None
    sequence: int = 0


Listener = Callable[[VerificationSnapshot], Any]


class VerificationOrchestrator:
    """State machine around credential verification requests."""

    def __init__(
        self,
        client: CredGuardClient,
        *,
        validator: Optional[UploadValidator] = None,
        listener: Optional[Listener] = None,
    ):
        self._client = client
        self._validator = validator or UploadValidator()
        self._listener = listener
        self._machine = StateMachine("verification", VerificationState.IDLE, _TRANSITIONS)
        self._sequencer = SubmissionSequencer()
        self._verdict: Optional[VerificationVerdict] = None
        self._error: Optional[str] = None
        self._error_kind: Optional[ErrorKind] = None

    @property
    def state(self) -> VerificationState:
        return self._machine.state

    @property
    def verdict(self) -> Optional[VerificationVerdict]:
        return self._verdict

    @property
    def error(self) -> Optional[str]:
        return self._error

    @property
    def error_kind(self) -> Optional[ErrorKind]:
        return self._error_kind

    def snapshot(self) -> VerificationSnapshot:
        return VerificationSnapshot(
            state=self.state,
            verdict=self._verdict,
            error=self._error,
            error_kind=self._error_kind,
            sequence=self._sequencer.latest,
        )

    def _notify(self) -> None:
        if self._listener is not None:
            self._listener(self.snapshot())

    # -------------------------------------------------------------------------
    # Submissions
    # -------------------------------------------------------------------------

    async def submit_for_verification(self, upload: Any) -> Optional[VerificationVerdict]:
        """Upload a credential file and verify it.

        Raises:
            UploadRejectedError: before any network call, without
                changing workflow state.
            CredGuardError: transport, remote, or malformed-response
                failure of the current submission.

        Returns:
            The verdict, or ``None`` if this submission was superseded.
        """
        upload_file = self._validator.validate(upload)
        return await self._submit(
            lambda: self._client.upload_and_verify(upload_file),
            label=upload_file.name,
        )

    async def submit_credential(self, request: VerificationRequest) -> Optional[VerificationVerdict]:
        """Verify an already-structured credential. Same contract as above."""
        if request is None:
            raise UploadRejectedError.missing_file()
        if not isinstance(request, VerificationRequest):
            raise UploadRejectedError.invalid_file(
                f"expected a VerificationRequest, got {type(request).__name__}"
            )
        return await self._submit(
            lambda: self._client.verify_credential(request),
            label=request.id,
        )

    async def _submit(
        self,
        call: Callable[[], Awaitable[VerificationVerdict]],
        label: str,
    ) -> Optional[VerificationVerdict]:
        sequence = self._sequencer.next()
        self._machine.transition(VerificationState.SUBMITTING)
        self._verdict = None
        self._error = None
        self._error_kind = None
        self._notify()
        log.info(f"Verification #{sequence} submitted for {label}")

        try:
            verdict = await call()
        except CredGuardError as e:
            if not self._sequencer.is_current(sequence):
                log.debug(f"Verification #{sequence} superseded; dropping failure: {e.message}")
                return None
            self._machine.transition(VerificationState.FAILED)
            self._error = e.message
            self._error_kind = e.kind
            self._notify()
            log.warning(f"Verification #{sequence} failed ({e.kind.value}): {e.message}")
            raise

        if not self._sequencer.is_current(sequence):
            log.debug(f"Verification #{sequence} superseded; dropping verdict")
            return None

        self._machine.transition(VerificationState.SUCCEEDED)
        self._verdict = verdict
        self._notify()
        log.info(f"Verification #{sequence} completed for {label}: valid={verdict.valid}")
        return verdict

    def reset(self) -> None:
        """Discard results and make any in-flight submission stale."""
        self._sequencer.invalidate()
        self._machine.reset()
        self._verdict = None
        self._error = None
        self._error_kind = None
        self._notify()
