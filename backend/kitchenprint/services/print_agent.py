"""
Print-agent client

The print-agent is a helper process on the same host that owns the physical
printer transports (raw TCP on port 9100 for network printers, the OS queue
for USB printers). We talk to it over one persistent WebSocket connection
with a simple request/response protocol:

    -> {"action": "print", "data": {"printer_name": "192.168.1.50", "type": "Network", ...}}
    <- {"status": "success"} | {"status": "error", "message": "..."}

    -> {"action": "list"}
    <- {"type": "printer_list", "printers": [{"name": "...", "type": "USB"}]}

The protocol has no request ids, so requests are serialized with a lock and
a timed-out request drops the connection rather than risk reading its late
answer as the reply to the next request.
"""
import asyncio
import json
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

from websockets.asyncio.client import connect
from websockets.exceptions import ConnectionClosed, InvalidHandshake, InvalidURI
from websockets.protocol import State

from kitchenprint.exceptions import PrintAgentError, PrintAgentTimeout
from kitchenprint.logging_config import get_logger

logger = get_logger(__name__)


@dataclass
class ConnectionStatus:
    url: str
    connected: bool
    error: Optional[str] = None
    reconnect_attempts: int = 0
    max_attempts: int = 0
    next_retry_in: Optional[float] = None


@dataclass(frozen=True)
class ReconnectPolicy:
    """Exponential backoff between failed connection attempts"""
    initial_delay: float = 2.0
    max_delay: float = 30.0
    multiplier: float = 1.5
    max_attempts: int = 20

    def delay_for(self, failed_attempts: int) -> float:
        exponent = max(failed_attempts - 1, 0)
        return min(self.initial_delay * (self.multiplier ** exponent), self.max_delay)


class PrintAgentClient:
    """Persistent connection to the local print-agent."""

    def __init__(
        self,
        url: str,
        *,
        request_timeout: float = 30.0,
        list_timeout: float = 10.0,
        connect_timeout: float = 5.0,
        reconnect: Optional[ReconnectPolicy] = None,
        connector: Callable = connect,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.url = url
        self.request_timeout = request_timeout
        self.list_timeout = list_timeout
        self.connect_timeout = connect_timeout
        self.reconnect = reconnect or ReconnectPolicy()
        self._connector = connector
        self._clock = clock
        self._ws = None
        self._lock = asyncio.Lock()
        self._failed_attempts = 0
        self._retry_at: Optional[float] = None
        self._last_error: Optional[str] = None

    @classmethod
    def from_settings(cls, settings) -> "PrintAgentClient":
        return cls(
            settings.PRINT_AGENT_URL,
            request_timeout=settings.PRINT_AGENT_TIMEOUT_SECONDS,
            list_timeout=settings.PRINT_AGENT_LIST_TIMEOUT_SECONDS,
            connect_timeout=settings.PRINT_AGENT_CONNECT_TIMEOUT_SECONDS,
            reconnect=ReconnectPolicy(
                initial_delay=settings.PRINT_AGENT_RECONNECT_INITIAL_DELAY,
                max_delay=settings.PRINT_AGENT_RECONNECT_MAX_DELAY,
                multiplier=settings.PRINT_AGENT_RECONNECT_MULTIPLIER,
                max_attempts=settings.PRINT_AGENT_RECONNECT_MAX_ATTEMPTS,
            ),
        )

    # ------------------------------------------------------------------
    # Connection lifecycle
    # ------------------------------------------------------------------

    @property
    def connected(self) -> bool:
        return self._ws is not None and self._ws.state is State.OPEN

    def connection_status(self) -> ConnectionStatus:
        next_retry_in = None
        if self._retry_at is not None and not self.connected:
            next_retry_in = round(max(self._retry_at - self._clock(), 0.0), 1)
        return ConnectionStatus(
            url=self.url,
            connected=self.connected,
            error=self._last_error,
            reconnect_attempts=self._failed_attempts,
            max_attempts=self.reconnect.max_attempts,
            next_retry_in=next_retry_in,
        )

    def reset_backoff(self) -> None:
        """Allow an immediate connection attempt (operator-triggered reconnect)."""
        self._failed_attempts = 0
        self._retry_at = None

    async def _ensure_connected(self) -> None:
        if self.connected:
            return

        if self._failed_attempts >= self.reconnect.max_attempts > 0:
            raise PrintAgentError(
                "Print agent unreachable, reconnection attempts exhausted",
                details={"url": self.url, "attempts": self._failed_attempts},
            )
        if self._retry_at is not None and self._clock() < self._retry_at:
            raise PrintAgentError(
                "Print agent not connected",
                details={"url": self.url, "last_error": self._last_error},
            )

        try:
            self._ws = await self._connector(self.url, open_timeout=self.connect_timeout)
        except (OSError, TimeoutError, InvalidHandshake, InvalidURI) as e:
            self._ws = None
            self._failed_attempts += 1
            delay = self.reconnect.delay_for(self._failed_attempts)
            self._retry_at = self._clock() + delay
            self._last_error = f"Could not connect to print agent: {e}"
            logger.warning(
                "Print agent connection failed",
                extra={
                    "url": self.url,
                    "attempt": self._failed_attempts,
                    "retry_in": delay,
                    "error": str(e),
                },
            )
            raise PrintAgentError(self._last_error, details={"url": self.url}) from e

        if self._failed_attempts:
            logger.info("Print agent reconnected", extra={"url": self.url, "attempts": self._failed_attempts})
        else:
            logger.info("Print agent connected", extra={"url": self.url})
        self._failed_attempts = 0
        self._retry_at = None
        self._last_error = None

    async def connect(self) -> bool:
        """Try to connect now; returns whether the channel is open."""
        async with self._lock:
            try:
                await self._ensure_connected()
            except PrintAgentError:
                return False
        return True

    async def _drop_connection(self, reason: str) -> None:
        ws, self._ws = self._ws, None
        self._last_error = reason
        if ws is not None:
            try:
                await ws.close()
            except (OSError, ConnectionClosed):
                pass

    async def close(self) -> None:
        async with self._lock:
            await self._drop_connection("Closed")
            self._last_error = None

    # ------------------------------------------------------------------
    # Requests
    # ------------------------------------------------------------------

    async def _request(
        self,
        message: Dict[str, Any],
        is_reply: Callable[[Dict[str, Any]], bool],
        timeout: float,
    ) -> Dict[str, Any]:
        async with self._lock:
            await self._ensure_connected()
            try:
                async with asyncio.timeout(timeout):
                    await self._ws.send(json.dumps(message))
                    while True:
                        raw = await self._ws.recv()
                        try:
                            reply = json.loads(raw)
                        except (TypeError, ValueError):
                            logger.warning("Ignoring malformed print agent message", extra={"raw": str(raw)[:200]})
                            continue
                        if isinstance(reply, dict) and is_reply(reply):
                            return reply
            except TimeoutError as e:
                await self._drop_connection("Timed out waiting for print agent")
                raise PrintAgentTimeout(
                    f"Print agent did not answer within {timeout:g}s",
                    details={"url": self.url, "action": message.get("action")},
                ) from e
            except ConnectionClosed as e:
                await self._drop_connection("Connection to print agent closed")
                raise PrintAgentError(
                    "Connection to print agent closed",
                    details={"url": self.url, "action": message.get("action")},
                ) from e

    async def print(self, data: Dict[str, Any]) -> Dict[str, Any]:
        """Submit one print request; raises PrintAgentError when the agent reports a failure."""
        reply = await self._request(
            {"action": "print", "data": data},
            lambda r: "status" in r,
            self.request_timeout,
        )
        if reply.get("status") != "success":
            raise PrintAgentError(
                reply.get("message") or "Print agent reported an error",
                status_code=502,
                error_code="PRINT_AGENT_ERROR",
                details={"printer_name": data.get("printer_name")},
            )
        return reply

    async def list_printers(self) -> List[Dict[str, Any]]:
        """Printers the agent can see (OS queues and discovered network devices)."""
        reply = await self._request(
            {"action": "list"},
            lambda r: r.get("type") == "printer_list",
            self.list_timeout,
        )
        return list(reply.get("printers") or [])
