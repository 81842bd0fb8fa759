"""HTTP and TLS policy shared by every operator connection.

The operator runs on a self-managed cluster with a self-signed certificate,
so certificate verification is off for both HTTP requests and websocket
handshakes.
"""

import ssl

import httpx


def build_http_client(timeout: float, transport: httpx.AsyncBaseTransport | None = None) -> httpx.AsyncClient:
    """Create the process-wide client. Never mutated after construction."""
    return httpx.AsyncClient(
        verify=False,
        timeout=httpx.Timeout(timeout),
        transport=transport,
    )


def insecure_ssl_context() -> ssl.SSLContext:
    """SSL context for wss:// handshakes, matching the HTTP client's trust-all policy."""
    context = ssl.create_default_context()
    context.check_hostname = False
    context.verify_mode = ssl.CERT_NONE
    return context
