"""Multipart upload encoding for configuration pushes."""

from contextlib import ExitStack
from dataclasses import dataclass, field

import httpx

from cortex_cli.operator.errors import CantMakeRequestError, DuplicateUploadNameError, ReadFileError

PART_CONTENT_TYPE = "application/octet-stream"


@dataclass
class UploadInput:
    file_paths: dict[str, str] = field(default_factory=dict)  # logical name -> path on disk
    bytes: dict[str, bytes] = field(default_factory=dict)  # logical name -> content


def encode_upload(upload_input: UploadInput) -> tuple[bytes, str]:
    """Encode an UploadInput as multipart/form-data.

    Returns the body and the Content-Type header value (with boundary).
    Each part uses its logical name as both field name and filename and is
    typed application/octet-stream regardless of extension. Every opened
    file is closed before returning, including on failure.
    """
    if not upload_input.file_paths and not upload_input.bytes:
        raise CantMakeRequestError("nothing to upload")

    for name in upload_input.file_paths:
        if name in upload_input.bytes:
            raise DuplicateUploadNameError(name)

    with ExitStack() as stack:
        files = []
        for name, path in upload_input.file_paths.items():
            try:
                file = stack.enter_context(open(path, "rb"))
            except OSError as e:
                raise ReadFileError(path) from e
            files.append((name, (name, file, PART_CONTENT_TYPE)))

        for name, content in upload_input.bytes.items():
            files.append((name, (name, content, PART_CONTENT_TYPE)))

        try:
            request = httpx.Request("POST", "http://multipart.invalid/", files=files)
            body = request.read()
        except OSError as e:
            raise CantMakeRequestError(str(e)) from e

    return body, request.headers["Content-Type"]
