"""Factory for the process-wide operator client."""

from cortex_cli.clients.models import ClientConfig
from cortex_cli.operator.client import OperatorClient

_client: OperatorClient | None = None


def get_operator_client() -> OperatorClient:
    """Get the operator client singleton, building it from settings on first use.

    Raises ConfigError if the CLI isn't configured.
    """
    global _client
    if _client is not None:
        return _client

    _client = OperatorClient(ClientConfig.from_settings())
    return _client


async def close_operator_client() -> None:
    global _client
    if _client is not None:
        await _client.close()
        _client = None
