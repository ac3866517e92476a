# Copyright (c) Rich Connexions Ltd. All rights reserved.
# Licensed under the MIT License. See LICENSE for details.
"""Error message normalization.

Converts heterogeneous failure payloads into a single human-readable
message. The backend answers errors in several shapes:

* A verification verdict with an ``errors`` array (HTTP 400 for an
  invalid credential, or validation failures).
* An issuance outcome or error object with a ``message`` field.
* Plain text (async issuance, revocation, connection status).
* Nothing useful at all (proxies, crashes).

Transport failures arrive as exceptions instead of responses.

Policy, in priority order, for an ``httpx.Response``:

1. JSON content type and an object with a non-empty ``errors`` array:
   join the items with ``"; "``.
2. Else a non-empty string ``message`` field: use it.
3. Else any other parsed JSON value: stringify it.
4. Non-JSON content type: the raw response text if non-empty.
5. Fallback: ``"HTTP error! status: <code>"``.

:func:`normalize_error` never raises. Any failure while inspecting the
response falls through to the next rule, and total failure falls
through to rule 5.
"""

import json
import logging
from typing import Any

import httpx

log = logging.getLogger(__name__)

UNKNOWN_ERROR = "Unknown error"


def _fallback(response: httpx.Response) -> str:
    return f"HTTP error! status: {response.status_code}"


def _is_empty(body: Any) -> bool:
    """Empty-ish JSON values that carry no message (null, false, 0, "")."""
    if body is None or body is False:
        return True
    if isinstance(body, str):
        return body == ""
    if isinstance(body, (int, float)) and not isinstance(body, bool):
        return body == 0
    return False


def _message_from_json(body: Any) -> str | None:
    if _is_empty(body):
        return None

    if isinstance(body, dict):
        errors = body.get("errors")
        if isinstance(errors, list) and errors:
            return "; ".join("" if item is None else str(item) for item in errors)
        message = body.get("message")
        if isinstance(message, str) and message:
            return message
        return json.dumps(body, separators=(",", ":"), ensure_ascii=False)

    if isinstance(body, list):
        return json.dumps(body, separators=(",", ":"), ensure_ascii=False)
    if isinstance(body, str):
        return body
    return json.dumps(body)


def _message_from_response(response: httpx.Response) -> str:
    content_type = response.headers.get("content-type", "")

    if "application/json" in content_type:
        try:
            body = response.json()
        except ValueError:
            log.debug(f"Error body declared JSON but did not parse (status {response.status_code})")
            return _fallback(response)
        return _message_from_json(body) or _fallback(response)

    try:
        text = response.text
    except (UnicodeDecodeError, LookupError):
        return _fallback(response)
    return text if text else _fallback(response)


def normalize_error(source: Any) -> str:
    """Normalize a failed response or exception into one message.

    Args:
        source: An ``httpx.Response``, an exception, or anything else.

    Returns:
        A single non-empty message. Never raises.
    """
    if isinstance(source, httpx.Response):
        try:
            return _message_from_response(source)
        except Exception:
            log.debug("Error normalization failed; using status fallback", exc_info=True)
            try:
                return _fallback(source)
            except Exception:
                return UNKNOWN_ERROR

    if isinstance(source, BaseException):
        try:
            text = str(source)
        except Exception:
            text = ""
        return text or type(source).__name__

    return UNKNOWN_ERROR
