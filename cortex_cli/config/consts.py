"""Protocol constants shared by the CLI and the operator."""

CORTEX_VERSION = "0.6.0"

AUTH_HEADER = "Authorization"
VERSION_HEADER = "CortexAPIVersion"
AUTH_SCHEME = "CortexAWS"

LOGS_ENDPOINT = "/logs/read"
