"""
Dispatch API Endpoints

Called by the order service:
- after new order items are persisted (best-effort, never fails the order flow)
- when a user asks for a control ticket (blocking, failures are reported)
"""
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from kitchenprint.api.deps import get_transport
from kitchenprint.db.session import get_db
from kitchenprint.exceptions import PrintFailedError, RoutingError
from kitchenprint.logging_config import get_logger
from kitchenprint.schemas.dispatch import ControlTicketRequest, DispatchResult, StationPrintRequest
from kitchenprint.schemas.printer import BranchPrintCapabilities
from kitchenprint.services.dispatch import DispatchCoordinator
from kitchenprint.services.routing import RoutingResolver
from kitchenprint.services.transport import PrintTransport

router = APIRouter()
logger = get_logger(__name__)


@router.post("/station", response_model=DispatchResult)
async def dispatch_station_print(
    request: StationPrintRequest,
    db: Session = Depends(get_db),
    transport: PrintTransport = Depends(get_transport),
):
    """
    Print newly added items on the station printers.

    Always answers 200: a routing failure comes back as success=false with
    an error message, per-printer failures as counts and details.
    """
    coordinator = DispatchCoordinator(db, transport)
    try:
        return await coordinator.dispatch_station_print(request)
    except RoutingError as e:
        logger.error(
            "Station print routing failed",
            extra={"branch_id": request.branch_id, "order_id": request.order_id, "error": e.message},
        )
        return DispatchResult(error=e.message)


@router.post("/control-ticket", response_model=DispatchResult)
async def dispatch_control_ticket(
    request: ControlTicketRequest,
    db: Session = Depends(get_db),
    transport: PrintTransport = Depends(get_transport),
):
    """
    Print a control ticket on the branch's billing printers.

    503 when printer configuration cannot be loaded, 502 when any copy
    failed (the full result is in the error details).
    """
    coordinator = DispatchCoordinator(db, transport)
    result = await coordinator.dispatch_control_print(request)
    if result.failure_count:
        raise PrintFailedError(
            f"Control ticket failed on {result.failure_count} of "
            f"{result.success_count + result.failure_count} copies",
            details=result.model_dump(mode="json"),
        )
    return result


@router.get("/capabilities", response_model=BranchPrintCapabilities)
async def branch_capabilities(branch_id: str = Query(..., min_length=1), db: Session = Depends(get_db)):
    """Whether the branch has any printers, and any billing printers (to show print buttons)"""
    resolver = RoutingResolver(db)
    return BranchPrintCapabilities(
        branch_id=branch_id,
        has_printers=resolver.has_printers(branch_id),
        has_billing_printers=resolver.has_billing_printers(branch_id),
    )
