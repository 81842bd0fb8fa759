"""Live log streaming from the operator over a websocket.

A session connects, spawns one reader task that prints frames in arrival
order, and waits for whichever comes first: the reader finishing (server
closed the stream or a read failed) or a user interrupt (SIGINT). On
interrupt a normal-closure close frame is sent before returning.
"""

import asyncio
import enum
import re
import signal
import sys
from datetime import datetime
from typing import TextIO

from websockets.asyncio.client import ClientConnection, connect
from websockets.exceptions import ConnectionClosed, ConnectionClosedOK, InvalidHandshake, InvalidStatus, InvalidURI

from cortex_cli.clients.models import ClientConfig
from cortex_cli.config.consts import AUTH_HEADER, LOGS_ENDPOINT, VERSION_HEADER
from cortex_cli.logging.audit import get_audit_logger
from cortex_cli.operator.errors import (
    CortexError,
    FailedToConnectError,
    OperatorError,
    clean_url,
    error_message_from_body,
)
from cortex_cli.operator.request import operator_request
from cortex_cli.operator.transport import insecure_ssl_context

COMPLETION_MARKER_RE = re.compile(r"^workload: (?P<workload_id>\w+), completed: (?P<timestamp>\S+)")
RFC3339_RE = re.compile(r"\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}(\.\d+)?(Z|[+-]\d{2}:\d{2})")


class SessionState(enum.Enum):
    CONNECTING = "connecting"
    STREAMING = "streaming"
    DRAINING = "draining"
    CLOSED = "closed"


class SessionOutcome(enum.Enum):
    STREAM_ENDED = "stream_ended"  # peer closed the connection normally
    READ_ERROR = "read_error"
    INTERRUPTED = "interrupted"


def parse_rfc3339(value: str) -> datetime | None:
    """Parse an RFC3339 timestamp. Returns None if invalid or missing an offset.

    Other ISO 8601 forms (week dates, basic format, reduced precision) are
    rejected even though ``datetime.fromisoformat`` would take them.
    """
    if RFC3339_RE.fullmatch(value) is None:
        return None
    try:
        return datetime.fromisoformat(value)
    except ValueError:
        return None


def local_timestamp_human(dt: datetime) -> str:
    """Render a timestamp in local time, e.g. 'Monday, January 1, 2024 at 1:00am UTC'."""
    local = dt.astimezone()
    hour = local.hour % 12 or 12
    meridiem = "am" if local.hour < 12 else "pm"
    return f"{local:%A, %B} {local.day}, {local.year} at {hour}:{local:%M}{meridiem} {local:%Z}".rstrip()


def format_log_frame(message: str) -> str:
    """Rewrite completion markers into a human-readable line.

    Anything else, including a marker with an unparsable timestamp, is
    returned unchanged.
    """
    match = COMPLETION_MARKER_RE.match(message)
    if match is None:
        return message

    timestamp = parse_rfc3339(match.group("timestamp"))
    if timestamp is None:
        return message
    return "\nCompleted on " + local_timestamp_human(timestamp)


def logs_ws_url(config: ClientConfig, app_name: str, resource_name: str, resource_type: str, verbose: bool) -> str:
    request = operator_request(
        config,
        "GET",
        LOGS_ENDPOINT,
        q_params=[{
            "resourceName": resource_name,
            "resourceType": resource_type,
            "appName": app_name,
            "verbose": "true" if verbose else "false",
        }],
    )
    # http -> ws, https -> wss
    return str(request.url).replace("http", "ws", 1)


class LogStreamSession:
    """One end-to-end log stream, from handshake to close. Not reusable."""

    def __init__(
        self,
        config: ClientConfig,
        app_name: str,
        resource_name: str,
        resource_type: str,
        verbose: bool = False,
        output: TextIO | None = None,
        interrupt: asyncio.Event | None = None,
    ):
        self.config = config
        self.app_name = app_name
        self.resource_name = resource_name
        self.resource_type = resource_type
        self.verbose = verbose
        self.state = SessionState.CONNECTING
        self._output = output or sys.stdout
        self._interrupt = interrupt
        self._connection: ClientConnection | None = None

    def _headers(self) -> dict[str, str]:
        return {
            AUTH_HEADER: self.config.auth_header(),
            VERSION_HEADER: self.config.cortex_version,
        }

    async def connect(self) -> None:
        """Open the websocket. Raises FailedToConnectError or OperatorError."""
        ws_url = logs_ws_url(self.config, self.app_name, self.resource_name, self.resource_type, self.verbose)
        url = clean_url(ws_url)

        kwargs = {}
        if ws_url.startswith("wss"):
            kwargs["ssl"] = insecure_ssl_context()

        try:
            self._connection = await connect(
                ws_url,
                additional_headers=self._headers(),
                open_timeout=self.config.request_timeout,
                **kwargs,
            )
        except InvalidStatus as e:
            body = e.response.body or b""
            if not body.strip():
                raise FailedToConnectError(url) from e
            raise OperatorError(error_message_from_body(body), status_code=e.response.status_code) from e
        except (OSError, TimeoutError, InvalidURI, InvalidHandshake) as e:
            raise FailedToConnectError(url) from e

        self.state = SessionState.STREAMING
        get_audit_logger().debug(
            "Log stream connected",
            extra={"audit_data": {"url": url, "app_name": self.app_name, "resource": self.resource_name}},
        )

    async def _read_frames(self) -> SessionOutcome:
        assert self._connection is not None
        try:
            while True:
                message = await self._connection.recv()
                if isinstance(message, bytes):
                    message = message.decode(errors="replace")
                print(format_log_frame(message), file=self._output, flush=True)
        except ConnectionClosedOK:
            return SessionOutcome.STREAM_ENDED
        except ConnectionClosed as e:
            get_audit_logger().warning(
                "Log stream read failed",
                extra={"audit_data": {"app_name": self.app_name, "error": str(e)}},
            )
            return SessionOutcome.READ_ERROR

    def _install_interrupt_handler(self, loop: asyncio.AbstractEventLoop, interrupt: asyncio.Event) -> bool:
        try:
            loop.add_signal_handler(signal.SIGINT, interrupt.set)
        except (NotImplementedError, RuntimeError):
            # Windows event loops, or not running in the main thread
            return False
        return True

    async def run(self) -> SessionOutcome:
        """Connect if needed, stream until closed or interrupted, then release the connection."""
        if self._connection is None:
            try:
                await self.connect()
            except CortexError:
                self.state = SessionState.CLOSED
                raise
        assert self._connection is not None

        loop = asyncio.get_running_loop()
        interrupt = self._interrupt
        handler_installed = False
        if interrupt is None:
            interrupt = asyncio.Event()
            handler_installed = self._install_interrupt_handler(loop, interrupt)

        reader = asyncio.create_task(self._read_frames())
        interrupted = asyncio.create_task(interrupt.wait())
        try:
            done, _ = await asyncio.wait({reader, interrupted}, return_when=asyncio.FIRST_COMPLETED)
            self.state = SessionState.DRAINING

            if reader in done:
                outcome = reader.result()
            else:
                await self._connection.close(code=1000)
                outcome = SessionOutcome.INTERRUPTED
        finally:
            if handler_installed:
                loop.remove_signal_handler(signal.SIGINT)
            for task in (reader, interrupted):
                if not task.done():
                    task.cancel()
            await asyncio.gather(reader, interrupted, return_exceptions=True)
            await self._connection.close()
            self.state = SessionState.CLOSED

        get_audit_logger().debug(
            "Log stream closed",
            extra={"audit_data": {"app_name": self.app_name, "outcome": outcome.value}},
        )
        return outcome


async def stream_logs(
    config: ClientConfig,
    app_name: str,
    resource_name: str,
    resource_type: str,
    verbose: bool = False,
) -> SessionOutcome:
    session = LogStreamSession(config, app_name, resource_name, resource_type, verbose)
    return await session.run()
