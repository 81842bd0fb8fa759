"""Operator HTTP client: authenticated requests with unified error handling."""

import asyncio
import json
from collections.abc import Mapping
from typing import Any

import httpx

from cortex_cli.clients.models import ClientConfig
from cortex_cli.config.consts import AUTH_HEADER, VERSION_HEADER
from cortex_cli.logging.audit import RequestTimer, get_audit_logger
from cortex_cli.operator.archive import ZipInput, zip_to_mem
from cortex_cli.operator.errors import (
    FailedToConnectError,
    MarshalJSONError,
    OperatorError,
    ReadResponseError,
    clean_url,
    error_message_from_body,
)
from cortex_cli.operator.request import operator_request
from cortex_cli.operator.transport import build_http_client
from cortex_cli.operator.upload import UploadInput, encode_upload

QueryParams = Mapping[str, str]


class OperatorClient:
    """Sends requests to the Cortex operator.

    Every request carries the auth and version headers. Success returns the raw
    response body; every failure is raised as a CortexError subclass.
    """

    def __init__(self, config: ClientConfig, transport: httpx.AsyncBaseTransport | None = None):
        self.config = config
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = build_http_client(self.config.request_timeout, transport=self._transport)
        return self._client

    def auth_headers(self) -> dict[str, str]:
        return {
            AUTH_HEADER: self.config.auth_header(),
            VERSION_HEADER: self.config.cortex_version,
        }

    async def get(self, endpoint: str, *q_params: QueryParams) -> bytes:
        request = operator_request(self.config, "GET", endpoint, q_params=q_params)
        return await self._make_request(request)

    async def post_json_data(self, endpoint: str, request_data: Any, *q_params: QueryParams) -> bytes:
        try:
            json_request_data = json.dumps(request_data).encode()
        except (TypeError, ValueError) as e:
            raise MarshalJSONError() from e
        return await self.post_json(endpoint, json_request_data, *q_params)

    async def post_json(self, endpoint: str, json_request_data: bytes, *q_params: QueryParams) -> bytes:
        request = operator_request(self.config, "POST", endpoint, body=json_request_data, q_params=q_params)
        request.headers["Content-Type"] = "application/json"
        return await self._make_request(request)

    async def upload(self, endpoint: str, upload_input: UploadInput, *q_params: QueryParams) -> bytes:
        body, content_type = encode_upload(upload_input)
        request = operator_request(self.config, "POST", endpoint, body=body, q_params=q_params)
        request.headers["Content-Type"] = content_type
        return await self._make_request(request)

    async def upload_zip(
        self, endpoint: str, zip_input: ZipInput, file_name: str, *q_params: QueryParams
    ) -> bytes:
        zip_bytes = zip_to_mem(zip_input)
        upload_input = UploadInput(bytes={file_name: zip_bytes})
        return await self.upload(endpoint, upload_input, *q_params)

    async def _make_request(self, request: httpx.Request) -> bytes:
        request.headers.update(self.auth_headers())
        url = clean_url(request.url)
        logger = get_audit_logger()

        try:
            with RequestTimer() as timer:
                status_code, body = await asyncio.wait_for(
                    self._send(request), timeout=self.config.request_timeout
                )
        except (httpx.TransportError, TimeoutError) as e:
            logger.debug(
                "Operator unreachable",
                extra={"audit_data": {"method": request.method, "url": url, "error": type(e).__name__}},
            )
            raise FailedToConnectError(url) from e

        logger.debug(
            "Operator request",
            extra={"audit_data": {
                "method": request.method,
                "url": url,
                "status": status_code,
                "latency_ms": timer.elapsed_ms,
                "headers": dict(request.headers),
            }},
        )

        if status_code != 200:
            if body is None:
                raise ReadResponseError()
            raise OperatorError(error_message_from_body(body), status_code=status_code)

        if body is None:
            raise ReadResponseError()
        return body

    async def _send(self, request: httpx.Request) -> tuple[int, bytes | None]:
        """Dispatch and read the full body. Body is None if reading it failed."""
        response = await self._get_client().send(request, stream=True)
        try:
            try:
                body = await response.aread()
            except httpx.HTTPError:
                return response.status_code, None
            return response.status_code, body
        finally:
            await response.aclose()

    async def close(self) -> None:
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None
