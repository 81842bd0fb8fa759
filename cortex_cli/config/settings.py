"""CLI and operator settings loaded from environment variables."""

from functools import lru_cache

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Operator endpoint
    cortex_url: str = ""

    # Credentials forwarded in the Authorization header
    aws_access_key_id: str = ""
    aws_secret_access_key: str = ""

    # Applies to every operator request and to the log stream handshake
    request_timeout: float = 20.0

    # Logging
    log_level: str = "WARNING"
    audit_log_file: str = ""  # Empty = stderr only

    # Operator side: comma-separated names of apps considered deployed
    deployed_apps: str = ""

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}

    @property
    def deployed_apps_list(self) -> list[str]:
        return [a.strip() for a in self.deployed_apps.split(",") if a.strip()]


@lru_cache
def get_settings() -> Settings:
    return Settings()
