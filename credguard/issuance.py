# Copyright (c) Rich Connexions Ltd. All rights reserved.
# Licensed under the MIT License. See LICENSE for details.
"""Issuance workflow.

Drives "submit document -> extract -> issue -> (poll) -> done":

    IDLE -> UPLOADING -> EXTRACTING -> DONE                      (preview)
    IDLE -> UPLOADING -> EXTRACTING -> ISSUING -> DONE           (synchronous)
    IDLE -> UPLOADING -> EXTRACTING -> ISSUING -> POLLING -> DONE (asynchronous)

Any non-terminal state may move to FAILED. A new submission from any
state starts over at UPLOADING and supersedes whatever was in flight,
including a running status poller.

Synchronous issuance blocks on one request whose response is the full
:class:`IssuanceOutcome`. Asynchronous issuance returns an
:class:`AsyncJob` as soon as the backend acknowledges the job; a
:class:`StatusPoller` task then tracks the exchange and reports each
intermediate status to the listener. :meth:`IssuanceOrchestrator.reset`
cancels polling and discards everything.
"""

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Optional, Union

from credguard.client import CredGuardClient
from credguard.exceptions import (
    CredGuardError,
    ErrorKind,
    MalformedResponseError,
    PollingCancelledError,
    RemoteError,
    UploadRejectedError,
)
from credguard.models import (
    AsyncJob,
    CredentialStatus,
    DocumentStatus,
    DocumentType,
    IssuanceOutcome,
    JobState,
)
from credguard.poller import StatusFetcher, StatusPoller, classify_status
from credguard.upload import UploadValidator
from credguard.workflow import StateMachine, SubmissionSequencer

log = logging.getLogger(__name__)


class IssuanceState(str, Enum):
    IDLE = "Idle"
    UPLOADING = "Uploading"
    EXTRACTING = "Extracting"
    ISSUING = "Issuing"
    POLLING = "Polling"
    DONE = "Done"
    FAILED = "Failed"


_S = IssuanceState
_TRANSITIONS = {
    _S.IDLE: frozenset({_S.UPLOADING}),
    _S.UPLOADING: frozenset({_S.UPLOADING, _S.EXTRACTING, _S.FAILED}),
    _S.EXTRACTING: frozenset({_S.UPLOADING, _S.ISSUING, _S.DONE, _S.FAILED}),
    _S.ISSUING: frozenset({_S.UPLOADING, _S.POLLING, _S.DONE, _S.FAILED}),
    _S.POLLING: frozenset({_S.UPLOADING, _S.DONE, _S.FAILED}),
    _S.DONE: frozenset({_S.UPLOADING}),
    _S.FAILED: frozenset({_S.UPLOADING}),
}


@dataclass(frozen=True)
class IssuanceSnapshot:
    """Immutable view of the workflow handed to listeners."""

    state: IssuanceState
    outcome: Optional[IssuanceOutcome] = None
    job_id: Optional[str] = None
    job_state: Optional[JobState] = None
    last_status: Optional[CredentialStatus] = None
    error: Optional[str] = None
    error_kind: Optional[ErrorKind] = None
    sequence: int = 0


Listener = Callable[[IssuanceSnapshot], Any]
PollerFactory = Callable[[StatusFetcher], StatusPoller]

_PollResult = tuple[Optional[CredentialStatus], Optional[CredGuardError]]


def _coerce_document_type(value: Union[DocumentType, str]) -> DocumentType:
    try:
        return DocumentType(value)
    except ValueError:
        raise UploadRejectedError(
            f"Unknown document type: {value!r}", kind=ErrorKind.INVALID_INPUT
        ) from None


def enforce_outcome_invariants(
    outcome: IssuanceOutcome,
    preview_only: bool,
    document_type: Optional[DocumentType] = None,
) -> IssuanceOutcome:
    """Apply the issuance-block invariants to a backend outcome.

    ``issuance`` is present iff this was a real (non-preview) issuance
    that succeeded. A stray block is stripped. A missing one, or a
    document reported as issued without one, means the response is
    malformed. When ``document_type`` is given, a document echoed back
    under a different type is logged but not rejected.
    """
    if outcome.issuance is not None and (preview_only or not outcome.success):
        log.warning("Discarding issuance details from a preview or unsuccessful outcome")
        outcome = outcome.model_copy(update={"issuance": None})

    if not preview_only and outcome.success and outcome.issuance is None:
        raise MalformedResponseError("Credential issuance succeeded but no issuance details were returned")

    document = outcome.document
    if document is None:
        return outcome

    if document.status.reached(DocumentStatus.CREDENTIAL_ISSUED) and outcome.issuance is None:
        raise MalformedResponseError("Document reported as issued but no issuance details were returned")

    if document_type is not None and document.document_type != document_type.display_name:
        log.warning(
            f"Backend returned document {document.id} as {document.document_type!r}, "
            f"expected {document_type.display_name!r}"
        )

    return outcome


class IssuanceOrchestrator:
    """State machine around document-based credential issuance."""

    def __init__(
        self,
        client: CredGuardClient,
        *,
        validator: Optional[UploadValidator] = None,
        poller_factory: Optional[PollerFactory] = None,
        listener: Optional[Listener] = None,
    ):
        self._client = client
        self._validator = validator or UploadValidator()
        self._poller_factory = poller_factory or (lambda fetch: StatusPoller(fetch))
        self._listener = listener
        self._machine = StateMachine("issuance", IssuanceState.IDLE, _TRANSITIONS)
        self._sequencer = SubmissionSequencer()

        self._outcome: Optional[IssuanceOutcome] = None
        self._job: Optional[AsyncJob] = None
        self._last_status: Optional[CredentialStatus] = None
        self._error: Optional[str] = None
        self._error_kind: Optional[ErrorKind] = None
        self._poller: Optional[StatusPoller] = None
        self._poll_task: Optional[asyncio.Task] = None

    # -------------------------------------------------------------------------
    # Observation
    # -------------------------------------------------------------------------

    @property
    def state(self) -> IssuanceState:
        return self._machine.state

    @property
    def outcome(self) -> Optional[IssuanceOutcome]:
        return self._outcome

    @property
    def job(self) -> Optional[AsyncJob]:
        """The active async job; discarded once the workflow is terminal."""
        return self._job

    @property
    def last_status(self) -> Optional[CredentialStatus]:
        return self._last_status

    @property
    def error(self) -> Optional[str]:
        return self._error

    @property
    def error_kind(self) -> Optional[ErrorKind]:
        return self._error_kind

    @property
    def is_polling(self) -> bool:
        return self._poll_task is not None and not self._poll_task.done()

    def snapshot(self) -> IssuanceSnapshot:
        return IssuanceSnapshot(
            state=self.state,
            outcome=self._outcome,
            job_id=self._job.job_id if self._job else None,
            job_state=self._job.state if self._job else None,
            last_status=self._last_status,
            error=self._error,
            error_kind=self._error_kind,
            sequence=self._sequencer.latest,
        )

    def _notify(self) -> None:
        if self._listener is not None:
            self._listener(self.snapshot())

    def _advance(self, target: IssuanceState) -> None:
        self._machine.transition(target)
        self._notify()

    # -------------------------------------------------------------------------
    # Internal helpers
    # -------------------------------------------------------------------------

    def _stop_polling(self) -> None:
        if self._poller is not None:
            self._poller.cancel()
        if self._poll_task is not None and not self._poll_task.done():
            self._poll_task.cancel()
        self._poller = None
        self._poll_task = None

    def _begin(self) -> int:
        self._stop_polling()
        sequence = self._sequencer.next()
        self._machine.transition(IssuanceState.UPLOADING)
        self._outcome = None
        self._job = None
        self._last_status = None
        self._error = None
        self._error_kind = None
        self._notify()
        return sequence

    def _record_failure(self, error: CredGuardError) -> None:
        self._error = error.message
        self._error_kind = error.kind
        self._job = None
        self._advance(IssuanceState.FAILED)

    # -------------------------------------------------------------------------
    # Synchronous issuance
    # -------------------------------------------------------------------------

    async def submit_for_issuance(
        self,
        upload: Any,
        document_type: Union[DocumentType, str],
        wallet_did: Optional[str],
        preview_only: bool = False,
    ) -> Optional[IssuanceOutcome]:
        """Extract attributes from a document and, unless previewing, issue.

        Raises:
            UploadRejectedError: missing file, invalid file, unknown
                document type, or missing wallet DID (no network call).
            CredGuardError: transport, remote, or malformed-response
                failure of the current submission.

        Returns:
            The outcome, or ``None`` if this submission was superseded.
        """
        upload_file = self._validator.validate_for_issuance(upload, wallet_did)
        doc_type = _coerce_document_type(document_type)

        sequence = self._begin()
        log.info(
            f"Issuance #{sequence} submitted for {upload_file.name!r} "
            f"({doc_type.value}, preview={preview_only})"
        )

        try:
            outcome = await self._client.issue_from_document(
                upload_file, doc_type, wallet_did, preview_only=preview_only
            )
            outcome = enforce_outcome_invariants(outcome, preview_only, doc_type)
        except CredGuardError as e:
            if not self._sequencer.is_current(sequence):
                log.debug(f"Issuance #{sequence} superseded; dropping failure: {e.message}")
                return None
            log.warning(f"Issuance #{sequence} failed ({e.kind.value}): {e.message}")
            self._record_failure(e)
            raise

        if not self._sequencer.is_current(sequence):
            log.debug(f"Issuance #{sequence} superseded; dropping outcome")
            return None

        self._outcome = outcome
        self._advance(IssuanceState.EXTRACTING)
        if outcome.issuance is not None:
            self._advance(IssuanceState.ISSUING)
        self._advance(IssuanceState.DONE)

        if outcome.success:
            log.info(f"Issuance #{sequence} completed: {outcome.message}")
        else:
            log.warning(f"Issuance #{sequence} completed unsuccessfully: {outcome.message}")
        return outcome

    # -------------------------------------------------------------------------
    # Asynchronous issuance
    # -------------------------------------------------------------------------

    async def submit_for_issuance_async(
        self,
        upload: Any,
        document_type: Union[DocumentType, str],
        wallet_did: Optional[str],
    ) -> Optional[AsyncJob]:
        """Start asynchronous issuance and begin polling its status.

        Returns as soon as the backend acknowledges the job; use
        :meth:`wait_for_completion` to await the terminal status.
        Preview mode is not available asynchronously.

        Returns:
            The job handle, or ``None`` if this submission was superseded.
        """
        upload_file = self._validator.validate_for_issuance(upload, wallet_did)
        doc_type = _coerce_document_type(document_type)

        sequence = self._begin()
        log.info(f"Async issuance #{sequence} submitted for {upload_file.name!r} ({doc_type.value})")

        try:
            job_id = await self._client.issue_from_document_async(upload_file, doc_type, wallet_did)
        except CredGuardError as e:
            if not self._sequencer.is_current(sequence):
                log.debug(f"Async issuance #{sequence} superseded; dropping failure: {e.message}")
                return None
            log.warning(f"Async issuance #{sequence} failed ({e.kind.value}): {e.message}")
            self._record_failure(e)
            raise

        if not self._sequencer.is_current(sequence):
            log.debug(f"Async issuance #{sequence} superseded; dropping job acknowledgement")
            return None

        job = AsyncJob(job_id=job_id)
        self._job = job
        self._advance(IssuanceState.EXTRACTING)
        self._advance(IssuanceState.ISSUING)

        poller = self._poller_factory(self._client.get_status)
        self._poller = poller
        job.state = JobState.POLLING
        self._advance(IssuanceState.POLLING)
        self._poll_task = asyncio.create_task(self._run_poll(sequence, job, poller))
        return job

    async def _run_poll(self, sequence: int, job: AsyncJob, poller: StatusPoller) -> _PollResult:
        def on_update(status: CredentialStatus) -> None:
            if not self._sequencer.is_current(sequence):
                return
            job.last_status = status
            self._last_status = status
            self._notify()

        try:
            status = await poller.poll(job.job_id, on_update)
        except PollingCancelledError:
            return None, None
        except CredGuardError as e:
            if not self._sequencer.is_current(sequence):
                return None, None
            job.state = JobState.FAILED
            log.warning(f"Polling for job {job.job_id} failed ({e.kind.value}): {e.message}")
            self._record_failure(e)
            return None, e

        if not self._sequencer.is_current(sequence):
            return None, None

        if classify_status(status.status) is JobState.COMPLETED:
            job.state = JobState.COMPLETED
            self._job = None
            self._advance(IssuanceState.DONE)
            log.info(f"Async issuance job {job.job_id} completed with status {status.status!r}")
            return status, None

        job.state = JobState.FAILED
        error = RemoteError(status.message or f"Credential issuance ended with status {status.status}")
        log.warning(f"Async issuance job {job.job_id} ended with status {status.status!r}")
        self._record_failure(error)
        return status, error

    async def wait_for_completion(self) -> Optional[CredentialStatus]:
        """Await the running poll task.

        Returns:
            The terminal status of a completed job, or ``None`` when
            nothing is being polled or polling was cancelled/superseded.

        Raises:
            CredGuardError: the job failed, was revoked, or polling
                timed out.
        """
        task = self._poll_task
        if task is None:
            return None
        await asyncio.wait({task})
        if task.cancelled():
            return None
        status, error = task.result()
        if error is not None:
            raise error
        return status

    # -------------------------------------------------------------------------
    # Pass-through operations
    # -------------------------------------------------------------------------

    async def get_status(self, exchange_id: str) -> CredentialStatus:
        """Fetch the current status of a credential exchange."""
        return await self._client.get_status(exchange_id)

    async def revoke(self, credential_id: str) -> None:
        """Revoke a previously issued credential."""
        await self._client.revoke(credential_id)

    async def get_connection_status(self, connection_id: str) -> str:
        """Fetch the raw wallet connection status text."""
        return await self._client.get_connection_status(connection_id)

    # -------------------------------------------------------------------------
    # Reset
    # -------------------------------------------------------------------------

    def reset(self) -> None:
        """Cancel polling, drop in-flight results, and return to IDLE."""
        self._stop_polling()
        self._sequencer.invalidate()
        self._machine.reset()
        self._outcome = None
        self._job = None
        self._last_status = None
        self._error = None
        self._error_kind = None
        self._notify()
