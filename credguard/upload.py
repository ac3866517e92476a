# Copyright (c) Rich Connexions Ltd. All rights reserved.
# Licensed under the MIT License. See LICENSE for details.
"""Upload gatekeeping.

Validates a candidate upload (and, for issuance, the wallet DID) before
any network call is made. The validator is a pure gate: it does not look
at file content, MIME type, or size limits. Those are advisory concerns
for whatever UI sits on top.

Accepted inputs, in order of preference:

1. An :class:`UploadFile` value.
2. A readable binary file handle (``open(path, "rb")``).
3. Any object exposing a string ``name`` and a numeric ``size``
   (:class:`SupportsUpload`). This covers test doubles and
   framework-specific upload wrappers.
"""

import io
import logging
import mimetypes
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional, Protocol, Union, runtime_checkable

from credguard.exceptions import UploadRejectedError

log = logging.getLogger(__name__)

DEFAULT_CONTENT_TYPE = "application/octet-stream"


@runtime_checkable
class SupportsUpload(Protocol):
    """Capability interface for upload-like objects."""

    name: str
    size: int


@dataclass(frozen=True)
class UploadFile:
    """A validated upload ready to be sent as a multipart ``file`` part."""

    name: str
    content: bytes
    content_type: str = DEFAULT_CONTENT_TYPE

    @property
    def size(self) -> int:
        return len(self.content)

    @classmethod
    def from_path(cls, path: Union[str, Path]) -> "UploadFile":
        """Read a file from disk into an upload."""
        file_path = Path(path)
        return cls(
            name=file_path.name,
            content=file_path.read_bytes(),
            content_type=guess_content_type(file_path.name),
        )

    def as_multipart(self) -> tuple[str, bytes, str]:
        """The ``(filename, content, content_type)`` triple httpx expects."""
        return (self.name, self.content, self.content_type)


def guess_content_type(file_name: str) -> str:
    """Guess a MIME type from the file name, defaulting to octet-stream."""
    content_type, _ = mimetypes.guess_type(file_name)
    return content_type or DEFAULT_CONTENT_TYPE


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _from_file_handle(handle: io.IOBase) -> UploadFile:
    try:
        readable = handle.readable()
    except (ValueError, OSError) as e:
        raise UploadRejectedError.invalid_file(f"file handle is unusable ({e})") from e
    if not readable:
        raise UploadRejectedError.invalid_file("file handle is not readable")
    name = getattr(handle, "name", None)
    if not isinstance(name, str) or not name:
        raise UploadRejectedError.invalid_file("file handle has no name")
    try:
        content = handle.read()
    except (ValueError, OSError) as e:
        raise UploadRejectedError.invalid_file(f"could not read {os.path.basename(name)!r} ({e})") from e
    if isinstance(content, str):
        raise UploadRejectedError.invalid_file("file must be opened in binary mode")
    base_name = os.path.basename(name)
    return UploadFile(name=base_name, content=content, content_type=guess_content_type(base_name))


def _from_duck_type(candidate: Any) -> UploadFile:
    name = getattr(candidate, "name", None)
    size = getattr(candidate, "size", None)
    if not isinstance(name, str) or not _is_number(size):
        raise UploadRejectedError.invalid_file()

    content = b""
    reader = getattr(candidate, "read", None)
    if callable(reader):
        data = reader()
        if isinstance(data, str):
            data = data.encode("utf-8")
        if isinstance(data, (bytes, bytearray)):
            content = bytes(data)
    else:
        log.debug(f"Upload {name!r} exposes no read(); sending empty content")

    content_type = getattr(candidate, "content_type", None) or getattr(candidate, "type", None)
    if not isinstance(content_type, str) or not content_type:
        content_type = guess_content_type(name)
    return UploadFile(name=name, content=content, content_type=content_type)


class UploadValidator:
    """Gate for verification and issuance uploads."""

    def validate(self, upload: Any) -> UploadFile:
        """Validate an upload and normalize it to :class:`UploadFile`.

        Raises:
            UploadRejectedError: ``MISSING_INPUT`` when nothing was
                supplied, ``INVALID_INPUT`` when the object is not
                upload-like.
        """
        if upload is None:
            raise UploadRejectedError.missing_file()
        if isinstance(upload, UploadFile):
            return upload
        if isinstance(upload, io.IOBase):
            return _from_file_handle(upload)
        return _from_duck_type(upload)

    def validate_for_issuance(self, upload: Any, wallet_did: Optional[str]) -> UploadFile:
        """Validate an issuance upload.

        The wallet DID is checked first: without it the upload control
        is blocked, so no file is even considered.
        """
        if not isinstance(wallet_did, str) or not wallet_did.strip():
            raise UploadRejectedError.missing_wallet_id()
        return self.validate(upload)
