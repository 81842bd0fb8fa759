"""Request builder: base URL + endpoint + merged query parameters."""

from collections.abc import Iterable, Mapping

import httpx

from cortex_cli.clients.models import ClientConfig
from cortex_cli.operator.errors import CantMakeRequestError


def merge_query_params(url: httpx.URL, q_params: Iterable[Mapping[str, str]]) -> httpx.URL:
    """Merge each mapping into the URL's query. Later mappings win on duplicate keys."""
    values = dict(url.params)
    for param_map in q_params:
        for key, value in param_map.items():
            values[key] = value
    return url.copy_with(params=values)


def operator_request(
    config: ClientConfig,
    method: str,
    endpoint: str,
    body: bytes | None = None,
    q_params: Iterable[Mapping[str, str]] = (),
) -> httpx.Request:
    """Build an unauthenticated request against the operator.

    Auth and version headers are attached at dispatch time, so the same URL
    construction also serves the websocket handshake.
    """
    try:
        url = httpx.URL(config.cortex_url + endpoint)
    except httpx.InvalidURL as e:
        raise CantMakeRequestError(str(e)) from e

    if url.scheme not in ("http", "https") or not url.host:
        raise CantMakeRequestError(f"invalid operator url {config.cortex_url!r}")

    url = merge_query_params(url, q_params)
    return httpx.Request(method, url, content=body)
