"""
Printer API Endpoints

Printer configuration, the explicit connectivity test, and print-agent
diagnostics.
"""
from dataclasses import asdict
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from kitchenprint.api.deps import get_print_agent, get_transport
from kitchenprint.db.session import get_db
from kitchenprint.exceptions import PrintAgentError, PrintFailedError
from kitchenprint.schemas.dispatch import DispatchResult
from kitchenprint.schemas.printer import (
    AgentPrinter,
    PrintAgentStatusResponse,
    PrinterCreate,
    PrinterResponse,
    PrinterToggle,
    PrinterUpdate,
)
from kitchenprint.services import printer_config
from kitchenprint.services.dispatch import DispatchCoordinator
from kitchenprint.services.print_agent import PrintAgentClient
from kitchenprint.services.transport import PrintTransport

router = APIRouter()


# ============================================================================
# Print agent
# ============================================================================

@router.get("/agent/status", response_model=PrintAgentStatusResponse)
async def print_agent_status(
    reconnect: bool = Query(False, description="Reset the backoff and try to connect now"),
    agent: Optional[PrintAgentClient] = Depends(get_print_agent),
):
    """Connection state of the local print agent"""
    if agent is None:
        return PrintAgentStatusResponse(enabled=False)
    if reconnect:
        agent.reset_backoff()
        await agent.connect()
    return PrintAgentStatusResponse(enabled=True, **asdict(agent.connection_status()))


@router.get("/agent/devices", response_model=List[AgentPrinter])
async def print_agent_devices(agent: Optional[PrintAgentClient] = Depends(get_print_agent)):
    """Printers the print agent can reach (for picking a USB queue name)"""
    if agent is None:
        raise PrintAgentError("Print agent is disabled")
    printers = await agent.list_printers()
    return [AgentPrinter(name=p.get("name", ""), type=p.get("type")) for p in printers if p.get("name")]


# ============================================================================
# Printers
# ============================================================================

@router.get("", response_model=List[PrinterResponse])
async def list_printers(
    branch_id: str = Query(..., min_length=1),
    active_only: bool = False,
    db: Session = Depends(get_db),
):
    return printer_config.list_printers(db, branch_id, active_only=active_only)


@router.post("", response_model=PrinterResponse, status_code=status.HTTP_201_CREATED)
async def create_printer(data: PrinterCreate, db: Session = Depends(get_db)):
    return printer_config.create_printer(db, data)


@router.get("/{printer_id}", response_model=PrinterResponse)
async def get_printer(printer_id: int, db: Session = Depends(get_db)):
    return printer_config.get_printer(db, printer_id)


@router.patch("/{printer_id}", response_model=PrinterResponse)
async def update_printer(printer_id: int, data: PrinterUpdate, db: Session = Depends(get_db)):
    return printer_config.update_printer(db, printer_id, data)


@router.post("/{printer_id}/toggle", response_model=PrinterResponse)
async def toggle_printer(printer_id: int, data: PrinterToggle, db: Session = Depends(get_db)):
    """Enable or disable a printer"""
    return printer_config.set_printer_active(db, printer_id, data.active)


@router.delete("/{printer_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_printer(printer_id: int, db: Session = Depends(get_db)):
    """Delete a printer and its print job history"""
    printer_config.delete_printer(db, printer_id)


@router.post("/{printer_id}/test", response_model=DispatchResult)
async def test_printer(
    printer_id: int,
    db: Session = Depends(get_db),
    transport: PrintTransport = Depends(get_transport),
):
    """
    Print a test page and wait for the result.

    Unlike automatic dispatch this surfaces a delivery failure as an error
    (502) so the operator sees it immediately.
    """
    coordinator = DispatchCoordinator(db, transport)
    result = await coordinator.print_test_page(printer_id)
    if not result.success:
        errors = [c.error for o in result.outcomes for c in o.copies if c.error]
        raise PrintFailedError(
            errors[0] if errors else "Test print failed",
            details=result.model_dump(mode="json"),
        )
    return result
