"""Shared fixtures for the cortex CLI test suite."""

import httpx
import pytest

from cortex_cli.clients.models import ClientConfig
from cortex_cli.config.settings import get_settings
from cortex_cli.operator.client import OperatorClient

OPERATOR_URL = "http://operator.test"


@pytest.fixture
def client_config() -> ClientConfig:
    """A configured CLI pointing at a fake operator."""
    return ClientConfig(
        cortex_url=OPERATOR_URL,
        aws_access_key_id="AKIATEST",
        aws_secret_access_key="secret/key+1",
    )


@pytest.fixture
def override_settings(monkeypatch):
    """Factory fixture: set env vars and clear settings cache.

    Usage:
        override_settings(CORTEX_URL="https://operator", LOG_LEVEL="DEBUG")
    """
    def _override(**kwargs):
        for key, value in kwargs.items():
            monkeypatch.setenv(key.upper(), str(value))
        # Clear lru_cache so Settings re-reads env
        get_settings.cache_clear()

    yield _override

    # Always clear cache on teardown so other tests get fresh settings
    get_settings.cache_clear()


@pytest.fixture
def operator_client(client_config):
    """Factory fixture: OperatorClient whose requests are answered by `handler`.

    The handler receives each httpx.Request and returns an httpx.Response
    (or raises an httpx exception to simulate transport failures).
    """
    def _make(handler) -> OperatorClient:
        return OperatorClient(client_config, transport=httpx.MockTransport(handler))

    return _make
