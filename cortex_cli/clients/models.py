"""Client configuration model."""

from dataclasses import dataclass

from cortex_cli.config.consts import AUTH_SCHEME, CORTEX_VERSION
from cortex_cli.config.settings import Settings, get_settings
from cortex_cli.operator.errors import ConfigError


@dataclass(frozen=True)
class ClientConfig:
    cortex_url: str
    aws_access_key_id: str
    aws_secret_access_key: str
    cortex_version: str = CORTEX_VERSION
    request_timeout: float = 20.0

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> "ClientConfig":
        """Build a validated config. Raises ConfigError if anything required is unset."""
        settings = settings or get_settings()

        missing = [
            env_name
            for env_name, value in (
                ("CORTEX_URL", settings.cortex_url),
                ("AWS_ACCESS_KEY_ID", settings.aws_access_key_id),
                ("AWS_SECRET_ACCESS_KEY", settings.aws_secret_access_key),
            )
            if not value
        ]
        if missing:
            raise ConfigError(f"cortex is not configured, set {', '.join(missing)}")

        return cls(
            cortex_url=settings.cortex_url.rstrip("/"),
            aws_access_key_id=settings.aws_access_key_id,
            aws_secret_access_key=settings.aws_secret_access_key,
            request_timeout=settings.request_timeout,
        )

    def auth_header(self) -> str:
        return f"{AUTH_SCHEME} {self.aws_access_key_id}|{self.aws_secret_access_key}"
