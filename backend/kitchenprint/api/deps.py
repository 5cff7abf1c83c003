"""
Shared API dependencies
"""
from typing import Optional

from kitchenprint.core.settings import settings
from kitchenprint.services.print_agent import PrintAgentClient
from kitchenprint.services.transport import NullTransport, PrintAgentTransport, PrintTransport

# One agent connection per process, opened lazily on first use
_print_agent: Optional[PrintAgentClient] = None


def get_print_agent() -> Optional[PrintAgentClient]:
    """The process-wide print-agent client, or None when the agent is disabled."""
    global _print_agent
    if not settings.PRINT_AGENT_ENABLED:
        return None
    if _print_agent is None:
        _print_agent = PrintAgentClient.from_settings(settings)
    return _print_agent


def get_transport() -> PrintTransport:
    agent = get_print_agent()
    if agent is None:
        return NullTransport()
    return PrintAgentTransport(agent)


async def close_print_agent() -> None:
    global _print_agent
    if _print_agent is not None:
        await _print_agent.close()
        _print_agent = None
