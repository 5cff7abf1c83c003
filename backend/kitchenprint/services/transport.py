"""
Print transport

Thin boundary between the dispatch coordinator and whatever physically
delivers bytes to a printer. Content is opaque here. Every delivery
problem comes back as a failed SendResult, never as an exception.
"""
import base64
from dataclasses import dataclass
from typing import Optional, Protocol

from kitchenprint.exceptions import PrintAgentError
from kitchenprint.logging_config import get_logger
from kitchenprint.models.printer import ConnectionType, Printer
from kitchenprint.services.print_agent import PrintAgentClient

logger = get_logger(__name__)

DEFAULT_NETWORK_PORT = 9100

# Print-agent discriminators
_AGENT_TYPES = {
    ConnectionType.NETWORK: "Network",
    ConnectionType.USB: "USB",
}


@dataclass(frozen=True)
class PrintTarget:
    """Where to deliver: IP address (host[:port]) or exact OS queue name."""
    printer_id: int
    printer_name: str
    connection_type: ConnectionType
    address: str
    paper_width: int = 80
    font_size: int = 1

    @classmethod
    def from_printer(cls, printer: Printer, default_port: int = DEFAULT_NETWORK_PORT) -> "PrintTarget":
        address = printer.system_name
        if printer.connection_type == ConnectionType.NETWORK and printer.port and printer.port != default_port:
            address = f"{printer.system_name}:{printer.port}"
        return cls(
            printer_id=printer.id,
            printer_name=printer.name,
            connection_type=ConnectionType(printer.connection_type),
            address=address,
            paper_width=printer.paper_width,
        )


@dataclass(frozen=True)
class SendResult:
    success: bool
    error: Optional[str] = None

    @classmethod
    def ok(cls) -> "SendResult":
        return cls(True)

    @classmethod
    def failed(cls, error: str) -> "SendResult":
        return cls(False, error)


class PrintTransport(Protocol):
    async def send(self, target: PrintTarget, content: bytes) -> SendResult:
        ...


class PrintAgentTransport:
    """Delivers through the local print-agent over its WebSocket channel."""

    def __init__(self, client: PrintAgentClient):
        self.client = client

    @staticmethod
    def build_request(target: PrintTarget, content: bytes) -> dict:
        return {
            "printer_name": target.address,
            "type": _AGENT_TYPES[target.connection_type],
            "content": base64.b64encode(content).decode("ascii"),
            "encoding": "base64",
            "font_size": target.font_size,
            "paper_width": target.paper_width,
        }

    async def send(self, target: PrintTarget, content: bytes) -> SendResult:
        try:
            await self.client.print(self.build_request(target, content))
        except PrintAgentError as e:
            logger.warning(
                "Print agent delivery failed",
                extra={"printer_id": target.printer_id, "address": target.address, "error": e.message},
            )
            return SendResult.failed(e.message)
        return SendResult.ok()


class NullTransport:
    """Used when the print agent is disabled: every send fails."""

    def __init__(self, reason: str = "Print agent is disabled"):
        self.reason = reason

    async def send(self, target: PrintTarget, content: bytes) -> SendResult:
        return SendResult.failed(self.reason)
