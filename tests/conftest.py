# Copyright (c) Rich Connexions Ltd. All rights reserved.
# Licensed under the MIT License. See LICENSE for details.
"""Shared test fixtures for the CredGuard client test suite.

Provides httpx mock transports standing in for the backend, canned
backend payloads, and a client wired to the mock transport.
"""

from __future__ import annotations

import json
from typing import Any, Optional

import httpx
import pytest

from credguard.client import CredGuardClient, reset_client

BASE_URL = "http://credguard.test"


# =========================================================================
# Mock transports
# =========================================================================


class MockTransport(httpx.AsyncBaseTransport):
    """Mock HTTP transport that returns queued responses in order.

    Each request body is read eagerly so tests can inspect multipart
    payloads after the call returns.
    """

    def __init__(self):
        self.responses: list[httpx.Response | Exception] = []
        self.requests: list[httpx.Request] = []
        self._call_count = 0

    def add_response(
        self,
        status_code: int = 200,
        json_data: Any = None,
        text: Optional[str] = None,
        content: bytes = b"",
        headers: Optional[dict] = None,
    ) -> None:
        """Queue a response to be returned by the next request."""
        headers = dict(headers or {})
        if json_data is not None:
            content = json.dumps(json_data).encode()
            headers.setdefault("content-type", "application/json")
        elif text is not None:
            content = text.encode()
            headers.setdefault("content-type", "text/plain;charset=UTF-8")
        self.responses.append(httpx.Response(status_code=status_code, content=content, headers=headers))

    def add_error(self, error: Exception) -> None:
        """Queue a transport-level exception for the next request."""
        self.responses.append(error)

    @property
    def call_count(self) -> int:
        return self._call_count

    async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
        await request.aread()
        self.requests.append(request)
        if self._call_count < len(self.responses):
            resp = self.responses[self._call_count]
            self._call_count += 1
            if isinstance(resp, Exception):
                raise resp
            return resp
        return httpx.Response(
            500,
            content=b'{"message": "No mock response queued"}',
            headers={"content-type": "application/json"},
        )


class TimeoutTransport(httpx.AsyncBaseTransport):
    """Transport that always times out."""

    async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("Mock timeout", request=request)


class ConnectErrorTransport(httpx.AsyncBaseTransport):
    """Transport that always fails to connect."""

    async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("Connection refused", request=request)


# =========================================================================
# Canned backend payloads
# =========================================================================

CREDENTIAL = {
    "id": "cred-001",
    "type": "UniversityDegreeCredential",
    "issuer": {"id": "did:web:university.example", "displayName": "Example University", "trusted": True},
    "subject": "did:example:alice",
    "issuedAt": "2024-06-01T12:00:00Z",
    "expiresAt": "2030-06-01T12:00:00Z",
    "claims": {"degree": "BSc Computer Science"},
}

VALID_VERDICT = {
    "valid": True,
    "issuerTrusted": True,
    "signatureValid": True,
    "notExpired": True,
    "errors": [],
    "warnings": [],
    "explanation": "Credential is valid and issued by a trusted issuer.",
    "credential": CREDENTIAL,
}

INVALID_VERDICT = {
    "valid": False,
    "issuerTrusted": False,
    "signatureValid": False,
    "notExpired": True,
    "errors": ["Issuer is not trusted", "Signature verification failed"],
    "warnings": [],
    "explanation": "Credential failed verification.",
    "credential": None,
}

DOCUMENT_ISSUED = {
    "id": "doc-42",
    "documentType": "Passport",
    "fileName": "passport.pdf",
    "status": "Credential Issued",
    "extractedAttributes": {"fullName": "Alice Example", "passportNumber": "X1234567"},
    "uploadedAt": "2024-06-01T12:00:00",
}

ISSUED_CREDENTIAL = {
    "id": "urn:uuid:3b1c6f5e-0000-4000-8000-000000000001",
    "context": ["https://www.w3.org/2018/credentials/v1"],
    "type": ["VerifiableCredential", "PassportCredential"],
    "issuer": "did:web:credguard.example",
    "credentialSubject": {"id": "did:example:123", "fullName": "Alice Example"},
    "issuanceDate": "2024-06-01T12:00:01Z",
    "expirationDate": "2034-06-01T12:00:01Z",
    "status": "issued",
}

ISSUANCE_INFO = {
    "credentialExchangeId": "exch-7",
    "offerUrl": "https://wallet.example/offer?c_i=abc",
    "connectionId": "conn-9",
    "walletDid": "did:example:123",
    "processingTimeMs": 1840,
    "processedAt": "2024-06-01T12:00:02",
}

ISSUED_OUTCOME = {
    "success": True,
    "message": "Credential issued successfully",
    "document": DOCUMENT_ISSUED,
    "credential": ISSUED_CREDENTIAL,
    "issuance": ISSUANCE_INFO,
}

PREVIEW_OUTCOME = {
    "success": True,
    "message": "Document processed; preview only",
    "document": {**DOCUMENT_ISSUED, "status": "Attributes Extracted"},
    "credential": ISSUED_CREDENTIAL,
    "issuance": None,
}

ASYNC_ACK = "Credential issuance started. Job ID: job-1718000000000"


def status_payload(status: str, exchange_id: str = "job-1718000000000", **extra: Any) -> dict[str, Any]:
    """Build a credential exchange status body."""
    body = {
        "credentialId": extra.pop("credential_id", "cred-77"),
        "exchangeId": exchange_id,
        "status": status,
        "message": extra.pop("message", f"Credential exchange is {status}"),
        "active": status in ("credential_acked", "issued", "active"),
    }
    body.update(extra)
    return body


HEALTH = {"status": "OK", "service": "credguard-backend", "version": "1.0.0"}


# =========================================================================
# Fixtures
# =========================================================================


@pytest.fixture(autouse=True)
def _reset_singleton():
    """Reset the module-level client singleton around every test."""
    reset_client()
    yield
    reset_client()


@pytest.fixture
def mock_transport() -> MockTransport:
    return MockTransport()


@pytest.fixture
def client(mock_transport: MockTransport) -> CredGuardClient:
    """Client wired to the mock transport."""
    return CredGuardClient(base_url=BASE_URL, transport=mock_transport)


@pytest.fixture
def pdf_file(tmp_path):
    """A 2MB PDF-looking file on disk."""
    path = tmp_path / "passport.pdf"
    path.write_bytes(b"%PDF-1.7\n" + b"\x00" * (2 * 1024 * 1024 - 9))
    return path
