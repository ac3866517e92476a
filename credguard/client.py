# Copyright (c) Rich Connexions Ltd. All rights reserved.
# Licensed under the MIT License. See LICENSE for details.
"""CredGuard backend HTTP client.

Async HTTP client for the CredGuard verification and issuance API. Each
method maps to exactly one backend endpoint and returns a parsed DTO.

Error mapping:
- ``httpx.RequestError`` (connect failure, timeout, protocol error)
  -> :class:`TransportError`
- Non-2xx response -> :class:`RemoteError` with the message produced by
  :func:`normalize_error`
- 2xx response whose body does not parse as the declared DTO
  -> :class:`MalformedResponseError`

No authentication headers are sent; that is left to a proxy in front of
the backend.
"""

import logging
import re
from typing import Optional, TypeVar
from urllib.parse import quote

import httpx
from pydantic import BaseModel

from credguard.config import API_URL, REQUEST_TIMEOUT, UPLOAD_TIMEOUT
from credguard.exceptions import MalformedResponseError, RemoteError, TransportError
from credguard.models import (
    CredentialStatus,
    DocumentType,
    HealthStatus,
    IssuanceOutcome,
    VerificationRequest,
    VerificationVerdict,
)
from credguard.normalizer import normalize_error
from credguard.upload import UploadFile

log = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)

VERIFY_PATH = "/api/credentials/verify"
UPLOAD_PATH = "/api/credentials/upload"
ISSUE_PATH = "/api/credentials/issuance/issue-from-document"
ISSUE_ASYNC_PATH = "/api/credentials/issuance/issue-from-document/async"
STATUS_PATH = "/api/credentials/issuance/status/{exchange_id}"
REVOKE_PATH = "/api/credentials/issuance/revoke/{credential_id}"
CONNECTION_STATUS_PATH = "/api/credentials/issuance/connection/{connection_id}/status"
HEALTH_PATH = "/health"

_JOB_ID_PATTERN = re.compile(r"Job ID: ([^\r\n]+)")


def parse_job_id(text: str) -> str:
    """Extract the job id from the async issuance acknowledgement.

    The backend answers with free text such as
    ``"Credential issuance started. Job ID: job-123"``. When the pattern
    is absent the whole text is used as the id, so a change in the
    acknowledgement wording degrades instead of failing.
    """
    match = _JOB_ID_PATTERN.search(text)
    return match.group(1).strip() if match else text


def _segment(value: str) -> str:
    """Percent-encode a single path segment."""
    return quote(value, safe="")


# =============================================================================
# Singleton
# =============================================================================

_client: Optional["CredGuardClient"] = None


def get_client() -> "CredGuardClient":
    """Get or create the CredGuard client singleton."""
    global _client
    if _client is None:
        _client = CredGuardClient()
    return _client


def reset_client() -> None:
    """Reset the singleton (for testing). Does NOT close it."""
    global _client
    _client = None


async def close_client() -> None:
    """Close the singleton HTTP client (call during shutdown)."""
    global _client
    if _client is not None:
        await _client.close()
        _client = None


# =============================================================================
# Client
# =============================================================================


class CredGuardClient:
    """Async HTTP client for the CredGuard backend."""

    def __init__(
        self,
        base_url: str = API_URL,
        timeout: float = REQUEST_TIMEOUT,
        upload_timeout: float = UPLOAD_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._upload_timeout = upload_timeout
        self._http = httpx.AsyncClient(
            base_url=self.base_url,
            headers={"Accept": "application/json"},
            timeout=httpx.Timeout(timeout, connect=10.0),
            transport=transport,
        )

    async def __aenter__(self) -> "CredGuardClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        await self._http.aclose()

    # -------------------------------------------------------------------------
    # Internal request helpers
    # -------------------------------------------------------------------------

    async def _request(
        self,
        method: str,
        path: str,
        *,
        json: dict | None = None,
        data: dict | None = None,
        files: dict | None = None,
        timeout: float | None = None,
    ) -> httpx.Response:
        """Send a request and map transport failures and non-2xx statuses.

        Returns only 2xx responses.
        """
        try:
            response = await self._http.request(
                method,
                path,
                json=json,
                data=data,
                files=files,
                timeout=timeout or self._timeout,
            )
        except httpx.RequestError as e:
            message = normalize_error(e)
            log.warning(f"CredGuard {method} {path} failed: {message}")
            raise TransportError(message) from e

        log.debug(f"CredGuard {method} {path} -> {response.status_code}")
        if not response.is_success:
            message = normalize_error(response)
            log.warning(f"CredGuard {method} {path} returned {response.status_code}: {message[:200]}")
            raise RemoteError(message, status_code=response.status_code)
        return response

    def _parse(self, model: type[M], response: httpx.Response) -> M:
        """Parse a JSON body as ``model`` or raise MalformedResponseError."""
        try:
            return model.model_validate(response.json())
        except ValueError as e:
            log.warning(
                f"CredGuard response for {response.request.url.path} is not a valid "
                f"{model.__name__}: {e}"
            )
            raise MalformedResponseError(
                f"Unexpected response from server: not a valid {model.__name__}"
            ) from e

    @staticmethod
    def _issuance_fields(
        document_type: DocumentType,
        wallet_did: str,
        preview_only: Optional[bool] = None,
    ) -> dict[str, str]:
        fields = {
            "documentType": DocumentType(document_type).value,
            "walletDid": wallet_did,
        }
        if preview_only is not None:
            fields["previewOnly"] = "true" if preview_only else "false"
        return fields

    # =========================================================================
    # Verification
    # =========================================================================

    async def verify_credential(self, request: VerificationRequest) -> VerificationVerdict:
        """Verify an already-structured credential (JSON body)."""
        resp = await self._request("POST", VERIFY_PATH, json=request.to_wire())
        return self._parse(VerificationVerdict, resp)

    async def upload_and_verify(self, upload: UploadFile) -> VerificationVerdict:
        """Upload a file; the backend extracts the credential then verifies it."""
        log.debug(
            f"upload_and_verify: sending file name={upload.name!r} "
            f"size={upload.size} type={upload.content_type}"
        )
        resp = await self._request(
            "POST",
            UPLOAD_PATH,
            files={"file": upload.as_multipart()},
            timeout=self._upload_timeout,
        )
        return self._parse(VerificationVerdict, resp)

    # =========================================================================
    # Issuance
    # =========================================================================

    async def issue_from_document(
        self,
        upload: UploadFile,
        document_type: DocumentType,
        wallet_did: str,
        preview_only: Optional[bool] = None,
    ) -> IssuanceOutcome:
        """Extract attributes from a document and (unless preview) issue a credential."""
        fields = self._issuance_fields(document_type, wallet_did, preview_only)
        log.debug(
            f"issue_from_document: sending file name={upload.name!r} size={upload.size} "
            f"type={upload.content_type} documentType={fields['documentType']} "
            f"walletDid={wallet_did} previewOnly={preview_only}"
        )
        resp = await self._request(
            "POST",
            ISSUE_PATH,
            data=fields,
            files={"file": upload.as_multipart()},
            timeout=self._upload_timeout,
        )
        return self._parse(IssuanceOutcome, resp)

    async def issue_from_document_async(
        self,
        upload: UploadFile,
        document_type: DocumentType,
        wallet_did: str,
    ) -> str:
        """Start asynchronous issuance and return the backend job id.

        The acknowledgement is read as text regardless of its declared
        content type.
        """
        fields = self._issuance_fields(document_type, wallet_did)
        resp = await self._request(
            "POST",
            ISSUE_ASYNC_PATH,
            data=fields,
            files={"file": upload.as_multipart()},
            timeout=self._upload_timeout,
        )
        job_id = parse_job_id(resp.text)
        log.info(f"Async credential issuance started for {upload.name!r}: job {job_id}")
        return job_id

    async def get_status(self, exchange_id: str) -> CredentialStatus:
        """Get the status of a credential exchange."""
        resp = await self._request("GET", STATUS_PATH.format(exchange_id=_segment(exchange_id)))
        return self._parse(CredentialStatus, resp)

    async def revoke(self, credential_id: str) -> None:
        """Revoke a previously issued credential. Success is any 2xx."""
        await self._request("POST", REVOKE_PATH.format(credential_id=_segment(credential_id)))
        log.info(f"Credential {credential_id} revoked")

    async def get_connection_status(self, connection_id: str) -> str:
        """Get the raw wallet connection status text."""
        resp = await self._request(
            "GET", CONNECTION_STATUS_PATH.format(connection_id=_segment(connection_id))
        )
        return resp.text

    # =========================================================================
    # Operational
    # =========================================================================

    async def health(self) -> HealthStatus:
        """Check backend health."""
        resp = await self._request("GET", HEALTH_PATH)
        return self._parse(HealthStatus, resp)

    async def is_healthy(self) -> bool:
        """Quick health check: True if the backend is reachable and reports OK."""
        try:
            health = await self.health()
        except (TransportError, RemoteError, MalformedResponseError):
            return False
        return health.is_ok
