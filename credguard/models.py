# Copyright (c) Rich Connexions Ltd. All rights reserved.
# Licensed under the MIT License. See LICENSE for details.
"""CredGuard backend DTO models.

Request/response models defining the API contract between this client
and the CredGuard backend. Attributes are snake_case; the wire format is
camelCase through explicit aliases. Models accept either spelling on
input and are serialized with ``by_alias=True``.

Timestamps are kept as the ISO-8601 strings the backend sends.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


class _WireModel(BaseModel):
    """Base for read-only DTOs received from the backend."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    def to_wire(self) -> dict[str, Any]:
        """Serialize with camelCase keys, as the backend expects."""
        return self.model_dump(by_alias=True, mode="json")


# =============================================================================
# Enumerations
# =============================================================================


class DocumentType(str, Enum):
    """Physical document types accepted for credential issuance."""

    PASSPORT = "PASSPORT"
    DRIVERS_LICENSE = "DRIVERS_LICENSE"
    DEGREE_CERTIFICATE = "DEGREE_CERTIFICATE"
    BIRTH_CERTIFICATE = "BIRTH_CERTIFICATE"
    OTHER = "OTHER"

    @property
    def display_name(self) -> str:
        """Name the backend uses in ``DocumentInfo.documentType``."""
        return _DOCUMENT_TYPE_NAMES[self]


_DOCUMENT_TYPE_NAMES = {
    DocumentType.PASSPORT: "Passport",
    DocumentType.DRIVERS_LICENSE: "Driver's License",
    DocumentType.DEGREE_CERTIFICATE: "Degree Certificate",
    DocumentType.BIRTH_CERTIFICATE: "Birth Certificate",
    DocumentType.OTHER: "Other Document",
}


class DocumentStatus(str, Enum):
    """Processing status of a document through the issuance pipeline."""

    UPLOADED = "Uploaded"
    PROCESSING = "Processing"
    EXTRACTED = "Attributes Extracted"
    CREDENTIAL_ISSUED = "Credential Issued"
    FAILED = "Processing Failed"

    @property
    def rank(self) -> int:
        """Pipeline position; ``FAILED`` sorts before everything else."""
        return _PIPELINE_ORDER.index(self) if self in _PIPELINE_ORDER else -1

    def reached(self, other: "DocumentStatus") -> bool:
        """Whether this status is at or beyond ``other`` in the pipeline."""
        return self.rank >= other.rank >= 0


_PIPELINE_ORDER = (
    DocumentStatus.UPLOADED,
    DocumentStatus.PROCESSING,
    DocumentStatus.EXTRACTED,
    DocumentStatus.CREDENTIAL_ISSUED,
)


class JobState(str, Enum):
    """Lifecycle of an asynchronous issuance job."""

    SUBMITTED = "Submitted"
    POLLING = "Polling"
    COMPLETED = "Completed"
    FAILED = "Failed"


# =============================================================================
# Verification DTOs
# =============================================================================


class Issuer(_WireModel):
    """Credential issuer as seen by the verification engine."""

    id: str = Field(..., description="Issuer identifier")
    display_name: str = Field(..., alias="displayName", description="Human-readable issuer name")
    trusted: bool = Field(False, description="Whether the issuer is in the trust registry")


class Credential(_WireModel):
    """A credential as returned inside a verification verdict."""

    id: str = Field(..., description="Credential identifier")
    type: str = Field(..., description="Credential type")
    issuer: Issuer
    subject: str = Field(..., description="Credential subject")
    issued_at: str = Field(..., alias="issuedAt", description="ISO8601 issuance timestamp")
    expires_at: Optional[str] = Field(None, alias="expiresAt", description="ISO8601 expiry timestamp")
    claims: dict[str, Any] = Field(default_factory=dict, description="Credential claims")


class VerificationRequest(Credential):
    """Body of ``POST /api/credentials/verify``; mirrors :class:`Credential`."""


class VerificationVerdict(_WireModel):
    """Outcome of one verification request."""

    valid: bool
    issuer_trusted: bool = Field(..., alias="issuerTrusted")
    signature_valid: bool = Field(..., alias="signatureValid")
    not_expired: bool = Field(..., alias="notExpired")
    errors: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
    explanation: Optional[str] = None
    credential: Optional[Credential] = None


# =============================================================================
# Issuance DTOs
# =============================================================================


class DocumentInfo(_WireModel):
    """The processed physical document."""

    id: str
    document_type: str = Field(..., alias="documentType", description="Document type display name")
    file_name: Optional[str] = Field(None, alias="fileName")
    status: DocumentStatus
    extracted_attributes: dict[str, Any] = Field(default_factory=dict, alias="extractedAttributes")
    uploaded_at: Optional[str] = Field(None, alias="uploadedAt")


class IssuedCredentialInfo(_WireModel):
    """The verifiable credential built from the document."""

    id: str
    context: list[str] = Field(default_factory=list)
    type: list[str] = Field(default_factory=list)
    issuer: Optional[str] = None
    credential_subject: dict[str, Any] = Field(default_factory=dict, alias="credentialSubject")
    issuance_date: Optional[str] = Field(None, alias="issuanceDate")
    expiration_date: Optional[str] = Field(None, alias="expirationDate")
    status: Optional[str] = None


class IssuanceInfo(_WireModel):
    """Wallet exchange details; present only when a credential was minted."""

    credential_exchange_id: Optional[str] = Field(None, alias="credentialExchangeId")
    offer_url: Optional[str] = Field(None, alias="offerUrl")
    connection_id: Optional[str] = Field(None, alias="connectionId")
    wallet_did: Optional[str] = Field(None, alias="walletDid")
    processing_time_ms: Optional[int] = Field(None, alias="processingTimeMs")
    processed_at: Optional[str] = Field(None, alias="processedAt")


class IssuanceOutcome(_WireModel):
    """Terminal result of one issuance attempt."""

    success: bool
    message: Optional[str] = None
    document: Optional[DocumentInfo] = None
    credential: Optional[IssuedCredentialInfo] = None
    issuance: Optional[IssuanceInfo] = None


class CredentialStatus(_WireModel):
    """Status of a credential exchange."""

    credential_id: Optional[str] = Field(None, alias="credentialId")
    exchange_id: str = Field(..., alias="exchangeId")
    status: str
    message: Optional[str] = None
    active: bool = False


class HealthStatus(_WireModel):
    """Backend health check response."""

    status: str
    service: str
    version: str

    @property
    def is_ok(self) -> bool:
        return self.status.upper() in ("OK", "UP")


# =============================================================================
# Client-side job tracking
# =============================================================================


@dataclass
class AsyncJob:
    """Handle for an asynchronous issuance job.

    ``job_id`` is whatever the backend acknowledged; it doubles as the
    exchange id used for status polling.
    """

    job_id: str
    state: JobState = JobState.SUBMITTED
    last_status: Optional[CredentialStatus] = None

    @property
    def is_terminal(self) -> bool:
        return self.state in (JobState.COMPLETED, JobState.FAILED)
