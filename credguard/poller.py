# Copyright (c) Rich Connexions Ltd. All rights reserved.
# Licensed under the MIT License. See LICENSE for details.
"""Credential exchange status polling.

:class:`StatusPoller` repeatedly fetches the status of one credential
exchange until the backend reports a terminal status, the attempt budget
runs out, or the caller cancels.

Rules:
- Stops on the first terminal status without issuing another request.
- ``TransportError`` / ``RemoteError`` on a single poll are transient:
  logged and retried after the next delay.
- ``MalformedResponseError`` is fatal only to that poll; the loop
  carries on with its state untouched.
- After :meth:`StatusPoller.cancel`, no further request is made and a
  response that was already in flight is discarded.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional

from credguard.config import (
    POLL_BACKOFF_FACTOR,
    POLL_INTERVAL_SECONDS,
    POLL_MAX_ATTEMPTS,
    POLL_MAX_INTERVAL_SECONDS,
)
from credguard.exceptions import (
    MalformedResponseError,
    PollingCancelledError,
    PollingTimeoutError,
    RemoteError,
    TransportError,
)
from credguard.models import CredentialStatus, JobState

log = logging.getLogger(__name__)

# Backend exchange states, lower-cased. "error" is not terminal: the
# backend reports it when the exchange could not be read.
COMPLETED_STATUSES = frozenset({"issued", "credential_acked", "done"})
FAILED_STATUSES = frozenset({"failed", "abandoned"})
REVOKED_STATUSES = frozenset({"revoked", "credential_revoked"})

StatusFetcher = Callable[[str], Awaitable[CredentialStatus]]
StatusCallback = Callable[[CredentialStatus], Any]


def classify_status(status: Optional[str]) -> Optional[JobState]:
    """Map a backend status value to a terminal job state.

    Returns ``None`` for non-terminal (or unknown) statuses. Revoked
    exchanges count as failed jobs.
    """
    if not status:
        return None
    value = status.strip().lower()
    if value in COMPLETED_STATUSES:
        return JobState.COMPLETED
    if value in FAILED_STATUSES or value in REVOKED_STATUSES:
        return JobState.FAILED
    return None


def is_terminal(status: Optional[str]) -> bool:
    return classify_status(status) is not None


class StatusPoller:
    """Bounded, cancellable polling loop with exponential backoff."""

    def __init__(
        self,
        fetch: StatusFetcher,
        *,
        interval: float = POLL_INTERVAL_SECONDS,
        max_interval: float = POLL_MAX_INTERVAL_SECONDS,
        backoff: float = POLL_BACKOFF_FACTOR,
        max_attempts: int = POLL_MAX_ATTEMPTS,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self._fetch = fetch
        self._interval = interval
        self._max_interval = max_interval
        self._backoff = backoff
        self._max_attempts = max_attempts
        self._sleep = sleep
        self._cancelled = False
        self.attempts = 0

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self) -> None:
        """Stop polling. Takes effect at the next suspension point."""
        self._cancelled = True

    def _check_cancelled(self, exchange_id: str) -> None:
        if self._cancelled:
            log.debug(f"Polling for {exchange_id} cancelled after {self.attempts} attempts")
            raise PollingCancelledError(exchange_id)

    async def poll(
        self,
        exchange_id: str,
        on_update: Optional[StatusCallback] = None,
    ) -> CredentialStatus:
        """Poll until a terminal status and return it.

        Raises:
            PollingCancelledError: :meth:`cancel` was called.
            PollingTimeoutError: ``max_attempts`` polls without a
                terminal status.
        """
        delay = self._interval

        for attempt in range(1, self._max_attempts + 1):
            self._check_cancelled(exchange_id)
            self.attempts = attempt

            try:
                status = await self._fetch(exchange_id)
            except (TransportError, RemoteError) as e:
                self._check_cancelled(exchange_id)
                log.warning(
                    f"Status poll {attempt}/{self._max_attempts} for {exchange_id} "
                    f"failed ({e.kind.value}): {e.message}"
                )
            except MalformedResponseError as e:
                self._check_cancelled(exchange_id)
                log.warning(
                    f"Status poll {attempt}/{self._max_attempts} for {exchange_id} "
                    f"returned a malformed body: {e.message}"
                )
            else:
                # Discard a response that arrived after cancellation
                self._check_cancelled(exchange_id)
                if on_update is not None:
                    on_update(status)
                if is_terminal(status.status):
                    log.info(
                        f"Credential exchange {exchange_id} reached terminal status "
                        f"{status.status!r} after {attempt} polls"
                    )
                    return status
                log.debug(f"Credential exchange {exchange_id} status {status.status!r}")

            if attempt < self._max_attempts:
                await self._sleep(delay)
                delay = min(delay * self._backoff, self._max_interval)

        raise PollingTimeoutError(exchange_id, self._max_attempts)
