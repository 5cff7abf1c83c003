"""
Dispatch Coordinator

Turns one print request into per-printer, per-copy delivery attempts:

    route -> format (once per printer) -> for each copy:
        create PENDING job -> transport.send -> mark SENT/FAILED -> record printer status

Distinct printers run concurrently in a TaskGroup; copies for the same
printer run one after another so they come out in order. A failure on one
printer never stops the others. Only a routing failure (printer
configuration cannot be loaded) aborts the call, before any job exists.

Printer status is written after each attempt but never consulted when
choosing targets.
"""
import asyncio
from dataclasses import asdict, dataclass
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from sqlalchemy.orm import Session

from kitchenprint.core.settings import settings
from kitchenprint.exceptions import BusinessRuleError, NotFoundError, TicketLayoutError
from kitchenprint.logging_config import audit_log, get_logger
from kitchenprint.models.print_job import PrintJobType
from kitchenprint.models.printer import ConnectionType, Printer
from kitchenprint.schemas.dispatch import (
    ControlTicketRequest,
    CopyOutcome,
    DispatchResult,
    PrinterOutcome,
    StationPrintRequest,
)
from kitchenprint.services.device_status import DeviceStatusTracker
from kitchenprint.services.escpos import TicketDocument
from kitchenprint.services.print_job_store import PrintJobStore
from kitchenprint.services.routing import ProductCatalog, RoutingResolver
from kitchenprint.services.ticket_formatter import (
    ComandaLine,
    ComandaTicket,
    ControlTicket,
    ControlTicketLine,
    PrinterInfo,
    TicketLayout,
    compute_totals,
    render_comanda,
    render_control_ticket,
    render_test_page,
)
from kitchenprint.services.transport import PrintTarget, PrintTransport, SendResult

logger = get_logger(__name__)


@dataclass
class PrinterPlan:
    """What one printer is going to print"""
    printer: Printer
    target: PrintTarget
    copies: int
    render: Callable[[], TicketDocument]
    snapshot: Dict[str, Any]


class DispatchCoordinator:
    def __init__(
        self,
        db: Session,
        transport: PrintTransport,
        catalog: Optional[ProductCatalog] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.db = db
        self.transport = transport
        self.resolver = RoutingResolver(db, catalog)
        self.jobs = PrintJobStore(db)
        self.device_status = DeviceStatusTracker(db)
        self.clock = clock or datetime.now

    def _layout(self, printer: Printer) -> TicketLayout:
        return TicketLayout.from_printer(printer, currency_symbol=settings.CURRENCY_SYMBOL)

    def _plan(self, printer: Printer, copies: int, render: Callable[[TicketLayout], TicketDocument],
              snapshot: Dict[str, Any]) -> PrinterPlan:
        return PrinterPlan(
            printer=printer,
            target=PrintTarget.from_printer(printer, default_port=settings.NETWORK_PRINTER_PORT),
            copies=copies,
            render=lambda: render(self._layout(printer)),
            snapshot=snapshot,
        )

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    async def dispatch_station_print(self, request: StationPrintRequest) -> DispatchResult:
        """
        Print newly added order items on the station printers.

        Raises RoutingError when the printer configuration cannot be loaded.
        A branch without eligible printers yields an empty, successful result.
        """
        targets = self.resolver.resolve_station_targets(request.branch_id, request.items)
        if not targets:
            logger.info(
                "No station printers for order items",
                extra={"branch_id": request.branch_id, "order_id": request.order_id},
            )
            return DispatchResult()

        printed_at = self.clock()
        plans = []
        for target in targets:
            ticket = ComandaTicket(
                order_code=request.order_code,
                table_name=request.table_name,
                items=[ComandaLine(name=i.name, quantity=i.quantity, notes=i.notes) for i in target.items],
                station_name=target.station_name,
                notes=request.notes,
            )
            snapshot = {"document": "comanda", "printed_at": printed_at.isoformat(), **asdict(ticket)}
            plans.append(self._plan(
                target.printer,
                target.printer.copies,
                lambda layout, ticket=ticket: render_comanda(layout, ticket, printed_at),
                snapshot,
            ))

        result = await self._fan_out(plans, PrintJobType.STATION_ORDER, request.order_id)
        audit_log(
            "PRINT_DISPATCHED",
            branch_id=request.branch_id,
            resource_type="order",
            resource_id=request.order_id,
            details=_audit_details(result),
        )
        return result

    async def dispatch_control_print(self, request: ControlTicketRequest) -> DispatchResult:
        """Print a full control ticket on every billing printer of the branch."""
        printers = self.resolver.resolve_billing_targets(request.branch_id)
        if not printers:
            logger.info(
                "No billing printers for control ticket",
                extra={"branch_id": request.branch_id, "order_id": request.order_id},
            )
            return DispatchResult()

        printed_at = self.clock()
        ticket = ControlTicket(
            order_code=request.order_code,
            table_name=request.table_name,
            items=[
                ControlTicketLine(name=i.name, quantity=i.quantity, unit_price=i.price, notes=i.notes)
                for i in request.items
            ],
            totals=compute_totals(request.subtotal, request.discount_percentage, request.tax_percentage),
            waiter_name=request.waiter_name,
            order_type=request.order_type,
            customer_name=request.customer_name,
            business_name=settings.BUSINESS_NAME,
            notes=request.notes,
        )
        snapshot = {"document": "control_ticket", "printed_at": printed_at.isoformat(), **asdict(ticket)}
        plans = [
            self._plan(
                printer,
                printer.copies,
                lambda layout: render_control_ticket(layout, ticket, printed_at),
                snapshot,
            )
            for printer in printers
        ]

        result = await self._fan_out(plans, PrintJobType.FULL_ORDER, request.order_id)
        audit_log(
            "CONTROL_TICKET_PRINTED",
            branch_id=request.branch_id,
            resource_type="order",
            resource_id=request.order_id,
            details=_audit_details(result),
        )
        return result

    async def print_test_page(self, printer_id: int) -> DispatchResult:
        """Send one test page to a single printer, whatever its print mode."""
        printer = self.db.get(Printer, printer_id)
        if printer is None:
            raise NotFoundError("Printer", printer_id)
        if not printer.active:
            raise BusinessRuleError(
                f"Printer '{printer.name}' is inactive",
                details={"printer_id": printer_id},
            )

        printed_at = self.clock()
        info = PrinterInfo(
            printer_name=printer.name,
            connection_type=ConnectionType(printer.connection_type).value,
            system_name=printer.system_name,
            port=printer.port if printer.connection_type == ConnectionType.NETWORK else None,
            station_name=printer.station_name,
        )
        snapshot = {"document": "test_page", "printed_at": printed_at.isoformat(), **asdict(info)}
        plan = self._plan(printer, 1, lambda layout: render_test_page(layout, info, printed_at), snapshot)

        result = await self._fan_out([plan], PrintJobType.TEST, None)
        audit_log(
            "TEST_PRINT",
            branch_id=printer.branch_id,
            resource_type="printer",
            resource_id=printer_id,
            details=_audit_details(result),
        )
        return result

    # ------------------------------------------------------------------
    # Fan-out
    # ------------------------------------------------------------------

    async def _fan_out(self, plans: List[PrinterPlan], job_type: PrintJobType,
                       order_id: Optional[str]) -> DispatchResult:
        async with asyncio.TaskGroup() as tg:
            tasks = [tg.create_task(self._print_on(plan, job_type, order_id)) for plan in plans]
        result = DispatchResult(outcomes=[task.result() for task in tasks])
        logger.info(
            "Dispatch finished",
            extra={
                "job_type": job_type.value,
                "order_id": order_id,
                "printers": len(plans),
                "success_count": result.success_count,
                "failure_count": result.failure_count,
            },
        )
        return result

    async def _print_on(self, plan: PrinterPlan, job_type: PrintJobType,
                        order_id: Optional[str]) -> PrinterOutcome:
        outcome = PrinterOutcome(printer_id=plan.target.printer_id, printer_name=plan.target.printer_name)

        content: Optional[bytes] = None
        render_error: Optional[str] = None
        try:
            content = plan.render().to_bytes()
        except TicketLayoutError as e:
            render_error = e.message
        except Exception as e:
            logger.exception("Ticket rendering failed", extra={"printer_id": plan.target.printer_id})
            render_error = f"Rendering failed: {e}"

        for copy_number in range(1, max(plan.copies, 1) + 1):
            outcome.copies.append(
                await self._send_copy(plan, job_type, order_id, copy_number, content, render_error)
            )
        return outcome

    async def _send_copy(
        self,
        plan: PrinterPlan,
        job_type: PrintJobType,
        order_id: Optional[str],
        copy_number: int,
        content: Optional[bytes],
        render_error: Optional[str],
    ) -> CopyOutcome:
        printer_id = plan.target.printer_id
        job = None
        job_id = None
        try:
            job = self.jobs.create_pending(plan.printer, job_type, order_id, copy_number, plan.snapshot)
            job_id = job.id

            if render_error is not None:
                self.jobs.mark_failed(job, render_error)
                return CopyOutcome(copy_number=copy_number, job_id=job_id, success=False, error=render_error)

            result: SendResult = await self.transport.send(plan.target, content)
            if result.success:
                self.jobs.mark_sent(job)
            else:
                self.jobs.mark_failed(job, result.error)
            self.device_status.record_outcome(printer_id, result.success)

            logger.info(
                "Print copy sent" if result.success else "Print copy failed",
                extra={
                    "printer_id": printer_id,
                    "job_id": job_id,
                    "order_id": order_id,
                    "copy_number": copy_number,
                    "error": result.error,
                },
            )
            return CopyOutcome(copy_number=copy_number, job_id=job_id, success=result.success, error=result.error)

        except Exception as e:
            logger.exception(
                "Unexpected error while printing",
                extra={"printer_id": printer_id, "order_id": order_id, "copy_number": copy_number},
            )
            self.db.rollback()
            error = f"Unexpected error: {e}"
            if job is not None:
                try:
                    if not job.is_terminal:
                        self.jobs.mark_failed(job, error)
                    if render_error is None:
                        self.device_status.record_outcome(printer_id, False)
                except Exception:
                    logger.exception("Could not record print job failure", extra={"job_id": job_id})
            return CopyOutcome(copy_number=copy_number, job_id=job_id, success=False, error=error)


def _audit_details(result: DispatchResult) -> Dict[str, Any]:
    return {
        "success_count": result.success_count,
        "failure_count": result.failure_count,
        "printers": [outcome.printer_id for outcome in result.outcomes],
    }
