"""Unified error types for operator communication.

Everything raised above the transport layer is a ``CortexError`` carrying a
single human-readable message. httpx and websockets exceptions are chained as
``__cause__`` but never escape to callers.
"""

import json

import httpx

ERR_CANT_MAKE_REQUEST = "unable to make request"
ERR_READ = "unable to read response"
ERR_MARSHAL_JSON = "unable to serialize request data as json"
ERR_ZIP_CONFIG = "failed to zip configuration file"


class CortexError(Exception):
    """Base class for every error surfaced to CLI callers."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def __str__(self) -> str:
        return self.message


class ConfigError(CortexError):
    pass


class CantMakeRequestError(CortexError):
    def __init__(self, detail: str = ""):
        message = f"{ERR_CANT_MAKE_REQUEST}: {detail}" if detail else ERR_CANT_MAKE_REQUEST
        super().__init__(message)


class FailedToConnectError(CortexError):
    def __init__(self, url: str):
        super().__init__(f"failed to connect to {url}")
        self.url = url


class ReadResponseError(CortexError):
    def __init__(self):
        super().__init__(ERR_READ)


class ReadFileError(CortexError):
    def __init__(self, path: str):
        super().__init__(f"unable to read file {path}")
        self.path = path


class MarshalJSONError(CortexError):
    def __init__(self):
        super().__init__(ERR_MARSHAL_JSON)


class DuplicateUploadNameError(CortexError):
    def __init__(self, name: str):
        super().__init__(f"upload name {name!r} is used by both a file path and in-memory content")
        self.name = name


class ArchiveError(CortexError):
    def __init__(self):
        super().__init__(ERR_ZIP_CONFIG)


class OperatorError(CortexError):
    """Non-success response from the operator (message is the server's text)."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


def error_message_from_body(body: bytes) -> str:
    """Extract the message of a ``{"error": "..."}`` envelope.

    Falls back to the raw body text when the body isn't an envelope or the
    ``error`` field is missing or empty.
    """
    text = body.decode(errors="replace")
    try:
        payload = json.loads(text)
    except ValueError:
        return text

    if isinstance(payload, dict):
        error = payload.get("error")
        if isinstance(error, str) and error:
            return error
    return text


def clean_url(url: str | httpx.URL) -> str:
    """Strip user-info, query and fragment so the URL is safe to print."""
    try:
        parsed = httpx.URL(str(url))
    except httpx.InvalidURL:
        return ""
    if not parsed.scheme:
        return parsed.path
    # netloc is host[:port] without user-info
    return f"{parsed.scheme}://{parsed.netloc.decode('ascii')}{parsed.path}"
