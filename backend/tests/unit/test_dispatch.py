"""
Unit tests for the dispatch coordinator

The transport is stubbed; everything else (routing, formatting, job store,
status tracker) runs against in-memory SQLite.
"""
import json
from datetime import datetime
from decimal import Decimal
from unittest.mock import MagicMock

import pytest
from sqlalchemy.exc import OperationalError

from kitchenprint.exceptions import BusinessRuleError, NotFoundError, RoutingError
from kitchenprint.models.print_job import PrintJob, PrintJobStatus, PrintJobType
from kitchenprint.models.printer import PrintMode, PrinterStatus
from kitchenprint.schemas.dispatch import (
    ControlTicketItem,
    ControlTicketRequest,
    RoutableItem,
    StationPrintRequest,
)
from kitchenprint.services.dispatch import DispatchCoordinator


BRANCH_ID = "branch-1"
PRINTED_AT = datetime(2024, 5, 17, 21, 30, 5)


def coordinator(db, transport):
    return DispatchCoordinator(db, transport, clock=lambda: PRINTED_AT)


def station_request(items=None, **kw):
    return StationPrintRequest(
        branch_id=BRANCH_ID,
        order_id=kw.pop("order_id", "ord_1"),
        order_code="A-0042",
        table_name="7",
        items=items if items is not None else [
            RoutableItem(product_id="p1", name="Burger", quantity=2, category_id="mains"),
        ],
        **kw,
    )


def control_request(**kw):
    return ControlTicketRequest(
        branch_id=BRANCH_ID,
        order_id="ord_1",
        order_code="A-0042",
        table_name="7",
        waiter_name="Lucía",
        items=[
            ControlTicketItem(name="Parrillada", quantity=2, price=Decimal("350.00")),
            ControlTicketItem(name="Vino", quantity=1, price=Decimal("300.00")),
        ],
        subtotal=Decimal("1000.00"),
        discount_percentage=kw.pop("discount_percentage", Decimal("10")),
        **kw,
    )


def jobs_for(db, printer_id):
    return (
        db.query(PrintJob)
        .filter(PrintJob.printer_id == printer_id)
        .order_by(PrintJob.copy_number)
        .all()
    )


class TestStationDispatch:
    """dispatch_station_print"""

    @pytest.mark.asyncio
    async def test_routes_items_to_each_station(self, db_session, make_station, make_printer, transport):
        grill = make_station("Grill", ["mains"])
        bar = make_station("Bar", ["drinks"])
        printer_a = make_printer("A", station=grill)
        printer_b = make_printer("B", station=bar)
        printer_c = make_printer("C")
        items = [
            RoutableItem(name="Burger", quantity=1, category_id="mains"),
            RoutableItem(name="Cola", quantity=1, category_id="drinks"),
            RoutableItem(name="Fries", quantity=1, category_id="mains"),
        ]

        result = await coordinator(db_session, transport).dispatch_station_print(station_request(items))

        assert result.success is True
        assert result.success_count == 3
        assert [o.printer_id for o in result.outcomes] == [printer_a.id, printer_b.id, printer_c.id]

        grill_ticket = transport.sent_to(printer_a.id)[0]
        assert b"Burger" in grill_ticket and b"Fries" in grill_ticket and b"Cola" not in grill_ticket
        bar_ticket = transport.sent_to(printer_b.id)[0]
        assert b"Cola" in bar_ticket and b"Burger" not in bar_ticket
        all_ticket = transport.sent_to(printer_c.id)[0]
        assert all(name in all_ticket for name in (b"Burger", b"Cola", b"Fries"))

    @pytest.mark.asyncio
    async def test_copies_produce_one_job_each(self, db_session, make_printer, transport):
        printer = make_printer("Kitchen", copies=3)

        result = await coordinator(db_session, transport).dispatch_station_print(station_request())

        jobs = jobs_for(db_session, printer.id)
        assert [j.copy_number for j in jobs] == [1, 2, 3]
        assert all(j.status == PrintJobStatus.SENT for j in jobs)
        assert all(j.job_type == PrintJobType.STATION_ORDER for j in jobs)
        assert [c.copy_number for c in result.outcomes[0].copies] == [1, 2, 3]
        assert len(transport.sent_to(printer.id)) == 3

    @pytest.mark.asyncio
    async def test_partial_failure_is_isolated(self, db_session, make_printer, make_transport):
        first = make_printer("First")
        second = make_printer("Second")
        third = make_printer("Third")
        transport = make_transport(fail_for={second.id}, error="Connection refused")

        result = await coordinator(db_session, transport).dispatch_station_print(station_request())

        assert result.success_count == 2
        assert result.failure_count == 1
        assert result.success is False
        for printer_id, status in ((first.id, PrintJobStatus.SENT),
                                   (second.id, PrintJobStatus.FAILED),
                                   (third.id, PrintJobStatus.SENT)):
            jobs = jobs_for(db_session, printer_id)
            assert len(jobs) == 1
            assert jobs[0].status == status

        failed_job = jobs_for(db_session, second.id)[0]
        assert failed_job.error == "Connection refused"
        assert failed_job.attempts == 1

    @pytest.mark.asyncio
    async def test_printer_status_follows_outcome(self, db_session, make_printer, make_transport):
        good = make_printer("Good")
        bad = make_printer("Bad")

        await coordinator(db_session, make_transport(fail_for={bad.id})).dispatch_station_print(station_request())

        db_session.refresh(good)
        db_session.refresh(bad)
        assert good.status == PrinterStatus.ONLINE
        assert bad.status == PrinterStatus.ERROR

    @pytest.mark.asyncio
    async def test_error_status_does_not_stop_attempts(self, db_session, make_printer, transport):
        printer = make_printer("Flaky", status=PrinterStatus.ERROR)

        result = await coordinator(db_session, transport).dispatch_station_print(station_request())

        assert result.success_count == 1
        assert len(transport.sent_to(printer.id)) == 1

    @pytest.mark.asyncio
    async def test_no_targets_is_a_successful_noop(self, db_session, make_station, make_printer, transport):
        make_printer("Billing only", print_mode=PrintMode.FULL_ORDER)
        make_printer("Empty station", station=make_station("Pastry", []))

        result = await coordinator(db_session, transport).dispatch_station_print(station_request())

        assert result.success is True
        assert result.outcomes == []
        assert result.success_count == 0
        assert db_session.query(PrintJob).count() == 0
        assert transport.sends == []

    @pytest.mark.asyncio
    async def test_routing_failure_creates_no_jobs(self, transport):
        db = MagicMock()
        db.query.side_effect = OperationalError("SELECT", {}, Exception("database is down"))

        with pytest.raises(RoutingError):
            await coordinator(db, transport).dispatch_station_print(station_request())

        db.add.assert_not_called()
        assert transport.sends == []

    @pytest.mark.asyncio
    async def test_kitchen_ticket_never_contains_prices(self, db_session, make_printer, transport):
        printer = make_printer("Kitchen")
        items = [RoutableItem(name="Burger", quantity=1, unit_price=Decimal("12.50"))]

        await coordinator(db_session, transport).dispatch_station_print(station_request(items))

        content = transport.sent_to(printer.id)[0]
        assert b"12.50" not in content
        assert "12.50" not in jobs_for(db_session, printer.id)[0].content

    @pytest.mark.asyncio
    async def test_job_content_is_a_snapshot(self, db_session, make_station, make_printer, transport):
        printer = make_printer("Grill printer", station=make_station("Grill", ["mains"]))

        await coordinator(db_session, transport).dispatch_station_print(station_request(notes="Rush"))

        snapshot = json.loads(jobs_for(db_session, printer.id)[0].content)
        assert snapshot["document"] == "comanda"
        assert snapshot["station_name"] == "Grill"
        assert snapshot["items"] == [{"name": "Burger", "quantity": 2, "notes": None}]
        assert snapshot["notes"] == "Rush"
        assert snapshot["printed_at"] == PRINTED_AT.isoformat()

    @pytest.mark.asyncio
    async def test_unexpected_transport_error_is_contained(self, db_session, make_printer, make_transport):
        exploding = make_printer("Exploding")
        healthy = make_printer("Healthy")
        transport = make_transport(raise_for={exploding.id})

        result = await coordinator(db_session, transport).dispatch_station_print(station_request())

        assert result.success_count == 1
        assert result.failure_count == 1
        failed = jobs_for(db_session, exploding.id)[0]
        assert failed.status == PrintJobStatus.FAILED
        assert "transport exploded" in failed.error
        assert jobs_for(db_session, healthy.id)[0].status == PrintJobStatus.SENT

    @pytest.mark.asyncio
    async def test_raising_transport_marks_printer_error(self, db_session, make_printer, make_transport):
        exploding = make_printer("Exploding")
        healthy = make_printer("Healthy")
        transport = make_transport(raise_for={exploding.id})

        await coordinator(db_session, transport).dispatch_station_print(station_request())

        db_session.refresh(exploding)
        db_session.refresh(healthy)
        assert exploding.status == PrinterStatus.ERROR
        assert healthy.status == PrinterStatus.ONLINE

    @pytest.mark.asyncio
    async def test_invalid_layout_fails_only_that_printer(self, db_session, make_printer, transport):
        broken = make_printer("Broken", characters_per_line=20)
        fine = make_printer("Fine")

        result = await coordinator(db_session, transport).dispatch_station_print(station_request())

        outcomes = {o.printer_id: o for o in result.outcomes}
        assert outcomes[broken.id].failure_count == 1
        assert "Characters per line" in outcomes[broken.id].copies[0].error
        assert outcomes[fine.id].success_count == 1
        assert transport.sent_to(broken.id) == []
        assert jobs_for(db_session, broken.id)[0].status == PrintJobStatus.FAILED


class TestConcurrency:
    @pytest.mark.asyncio
    async def test_printers_run_concurrently_copies_sequentially(self, db_session, make_printer, make_transport):
        kitchen = make_printer("Kitchen", copies=3)
        bar = make_printer("Bar", copies=2)
        transport = make_transport(delay=0.01)

        result = await coordinator(db_session, transport).dispatch_station_print(station_request())

        assert result.success_count == 5
        assert transport.max_in_flight == 2
        assert transport.per_printer_max_in_flight == {kitchen.id: 1, bar.id: 1}
        assert [j.copy_number for j in jobs_for(db_session, kitchen.id)] == [1, 2, 3]


class TestControlDispatch:
    """dispatch_control_print"""

    @pytest.mark.asyncio
    async def test_prints_on_billing_printers(self, db_session, make_printer, transport):
        caja = make_printer("Caja", print_mode=PrintMode.FULL_ORDER, auto_print=False)
        both = make_printer("Both", print_mode=PrintMode.BOTH, copies=2)
        make_printer("Kitchen", print_mode=PrintMode.STATION_ITEMS)

        result = await coordinator(db_session, transport).dispatch_control_print(control_request())

        assert [o.printer_id for o in result.outcomes] == [caja.id, both.id]
        assert result.success_count == 3
        content = transport.sent_to(caja.id)[0]
        assert b"900.00" in content
        assert b"Lu" in content
        assert all(j.job_type == PrintJobType.FULL_ORDER for j in jobs_for(db_session, both.id))

    @pytest.mark.asyncio
    async def test_totals_block_present_without_discount(self, db_session, make_printer, transport):
        caja = make_printer("Caja", print_mode=PrintMode.FULL_ORDER)

        await coordinator(db_session, transport).dispatch_control_print(
            control_request(discount_percentage=None)
        )

        content = transport.sent_to(caja.id)[0]
        assert b"Subtotal:" in content
        assert b"TOTAL:" in content
        assert b"Discount" not in content

    @pytest.mark.asyncio
    async def test_no_billing_printers(self, db_session, make_printer, transport):
        make_printer("Kitchen")

        result = await coordinator(db_session, transport).dispatch_control_print(control_request())

        assert result.success is True
        assert result.outcomes == []

    @pytest.mark.asyncio
    async def test_snapshot_keeps_totals(self, db_session, make_printer, transport):
        caja = make_printer("Caja", print_mode=PrintMode.FULL_ORDER)

        await coordinator(db_session, transport).dispatch_control_print(control_request())

        snapshot = json.loads(jobs_for(db_session, caja.id)[0].content)
        assert snapshot["document"] == "control_ticket"
        assert snapshot["totals"]["total"] == "900.00"
        assert snapshot["totals"]["discount_amount"] == "100.00"


class TestTestPage:
    """print_test_page"""

    @pytest.mark.asyncio
    async def test_sends_one_test_job(self, db_session, make_printer, transport):
        printer = make_printer("Caja", print_mode=PrintMode.FULL_ORDER, copies=3)

        result = await coordinator(db_session, transport).print_test_page(printer.id)

        assert result.success is True
        jobs = jobs_for(db_session, printer.id)
        assert len(jobs) == 1
        assert jobs[0].job_type == PrintJobType.TEST
        assert jobs[0].order_id is None
        assert b"PRINT TEST" in transport.sent_to(printer.id)[0]

    @pytest.mark.asyncio
    async def test_failure_is_reported(self, db_session, make_printer, make_transport):
        printer = make_printer("Caja")
        transport = make_transport(fail_for={printer.id}, error="Printer not found")

        result = await coordinator(db_session, transport).print_test_page(printer.id)

        assert result.success is False
        assert result.outcomes[0].copies[0].error == "Printer not found"
        db_session.refresh(printer)
        assert printer.status == PrinterStatus.ERROR

    @pytest.mark.asyncio
    async def test_inactive_printer_is_refused(self, db_session, make_printer, transport):
        printer = make_printer("Off", active=False)

        with pytest.raises(BusinessRuleError):
            await coordinator(db_session, transport).print_test_page(printer.id)
        assert transport.sends == []

    @pytest.mark.asyncio
    async def test_unknown_printer(self, db_session, transport):
        with pytest.raises(NotFoundError):
            await coordinator(db_session, transport).print_test_page(404)
