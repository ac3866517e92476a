# Copyright (c) Rich Connexions Ltd. All rights reserved.
# Licensed under the MIT License. See LICENSE for details.
"""CredGuard client configuration.

Defaults may be overridden via environment variables. The CLI builds a
:class:`ClientSettings` snapshot from these values and applies its own
command-line overrides on top.
"""

import os
from dataclasses import dataclass

# =============================================================================
# BACKEND API
# =============================================================================

# Base URL of the CredGuard backend
API_URL: str = os.getenv("CREDGUARD_API_URL", "http://localhost:8080")

# Timeout for JSON requests (seconds)
REQUEST_TIMEOUT: float = float(os.getenv("CREDGUARD_TIMEOUT", "30.0"))

# Timeout for multipart uploads; extraction + issuance can take a while
UPLOAD_TIMEOUT: float = float(os.getenv("CREDGUARD_UPLOAD_TIMEOUT", "120.0"))

# =============================================================================
# STATUS POLLING
# =============================================================================

POLL_INTERVAL_SECONDS: float = float(os.getenv("CREDGUARD_POLL_INTERVAL", "2.0"))
POLL_MAX_INTERVAL_SECONDS: float = float(os.getenv("CREDGUARD_POLL_MAX_INTERVAL", "10.0"))
POLL_BACKOFF_FACTOR: float = float(os.getenv("CREDGUARD_POLL_BACKOFF", "1.5"))
POLL_MAX_ATTEMPTS: int = int(os.getenv("CREDGUARD_POLL_MAX_ATTEMPTS", "30"))

# =============================================================================
# LOGGING
# =============================================================================

LOG_LEVEL: str = os.getenv("CREDGUARD_LOG_LEVEL", "INFO")
LOG_FORMAT: str = os.getenv("CREDGUARD_LOG_FORMAT", "json")


@dataclass
class ClientSettings:
    """Runtime settings for one client/orchestrator stack."""

    api_url: str = API_URL
    timeout: float = REQUEST_TIMEOUT
    upload_timeout: float = UPLOAD_TIMEOUT
    poll_interval: float = POLL_INTERVAL_SECONDS
    poll_max_interval: float = POLL_MAX_INTERVAL_SECONDS
    poll_backoff: float = POLL_BACKOFF_FACTOR
    poll_max_attempts: int = POLL_MAX_ATTEMPTS
