"""
Unit tests for ticket formatting

Totals arithmetic, line width limits, content rules for kitchen and
control tickets, and the ESC/POS encoding.
"""
from datetime import datetime
from decimal import Decimal

import pytest

from kitchenprint.exceptions import TicketLayoutError
from kitchenprint.services.escpos import Align, TextSize, TicketDocument, wrap_text
from kitchenprint.services.ticket_formatter import (
    ComandaLine,
    ComandaTicket,
    ControlTicket,
    ControlTicketLine,
    PrinterInfo,
    TicketLayout,
    compute_totals,
    format_amount,
    render_comanda,
    render_control_ticket,
    render_test_page,
)

PRINTED_AT = datetime(2024, 5, 17, 21, 30, 5)


def control_ticket(subtotal="1000.00", discount=None, tax=None, **kw):
    items = kw.pop("items", [
        ControlTicketLine(name="Parrillada", quantity=2, unit_price=Decimal("350.00")),
        ControlTicketLine(name="Vino tinto", quantity=1, unit_price=Decimal("300.00"), notes="Malbec"),
    ])
    return ControlTicket(
        order_code="A-0042",
        table_name="7",
        items=items,
        totals=compute_totals(Decimal(subtotal), discount, tax),
        **kw,
    )


def comanda(**kw):
    return ComandaTicket(
        order_code=kw.pop("order_code", "A-0042"),
        table_name=kw.pop("table_name", "7"),
        items=kw.pop("items", [
            ComandaLine(name="Burger", quantity=2, notes="No onions"),
            ComandaLine(name="Fries", quantity=1),
        ]),
        **kw,
    )


class TestTotals:
    """compute_totals and amount formatting"""

    def test_ten_percent_discount_on_one_thousand(self):
        totals = compute_totals(Decimal("1000.00"), Decimal("10"))

        assert totals.discount_amount == Decimal("100.00")
        assert totals.total == Decimal("900.00")
        assert format_amount(totals.total) == "900.00"

    def test_no_discount(self):
        totals = compute_totals(Decimal("250.50"))

        assert totals.discount_amount == Decimal("0.00")
        assert totals.total == Decimal("250.50")
        assert totals.has_discount is False

    def test_discount_rounds_half_up(self):
        totals = compute_totals(Decimal("10.05"), Decimal("50"))

        assert totals.discount_amount == Decimal("5.03")
        assert totals.total == Decimal("5.02")

    def test_tax_is_included_in_total(self):
        totals = compute_totals(Decimal("121.00"), None, Decimal("21"))

        assert totals.total == Decimal("121.00")
        assert totals.tax_amount == Decimal("21.00")

    def test_amounts_have_two_decimals_and_no_grouping(self):
        assert format_amount(Decimal("1234567.5")) == "1234567.50"
        assert format_amount(3) == "3.00"


class TestLayout:
    """TicketLayout validation"""

    @pytest.mark.parametrize("characters_per_line", [31, 49, 0])
    def test_invalid_width_raises(self, characters_per_line):
        with pytest.raises(TicketLayoutError):
            TicketLayout(characters_per_line=characters_per_line)

    def test_invalid_paper_raises(self):
        with pytest.raises(TicketLayoutError) as exc_info:
            TicketLayout(paper_width=72)
        assert isinstance(exc_info.value, ValueError)

    def test_invalid_control_spacing_raises(self):
        with pytest.raises(TicketLayoutError):
            TicketLayout(control_spacing=5)

    def test_narrow_paper_is_valid(self):
        layout = TicketLayout(characters_per_line=32, paper_width=58)
        assert layout.characters_per_line == 32


class TestLineWidth:
    """No printed line is wider than the configured width"""

    @pytest.mark.parametrize("width", [32, 42, 48])
    def test_comanda_lines_fit(self, width):
        layout = TicketLayout(characters_per_line=width)
        ticket = comanda(
            station_name="Cocina caliente principal",
            items=[ComandaLine(
                name="Hamburguesa doble con queso cheddar, panceta y huevo frito",
                quantity=12,
                notes="Sin cebolla, pan sin semillas, la carne bien cocida por favor",
            )],
            notes="Cliente alérgico al maní: extremar precauciones en toda la preparación",
        )

        doc = render_comanda(layout, ticket, PRINTED_AT)

        for line in doc.lines:
            assert len(line.text) <= doc.effective_width(line.size)

    def test_control_ticket_lines_fit(self):
        layout = TicketLayout(characters_per_line=32, paper_width=58, header="Restaurante La Esquina del Puerto")
        ticket = control_ticket(
            items=[ControlTicketLine(
                name="Tabla de quesos y fiambres artesanales para compartir",
                quantity=3,
                unit_price=Decimal("12999.99"),
            )],
            subtotal="38999.97",
            discount=Decimal("12.5"),
            customer_name="Juan Cruz Fernández de la Torre",
        )

        doc = render_control_ticket(layout, ticket, PRINTED_AT)

        for line in doc.lines:
            assert len(line.text) <= doc.effective_width(line.size)

    def test_two_columns_moves_value_to_next_line(self):
        doc = TicketDocument(width=32)
        doc.two_columns("A very long label that fills the row", "$100.00")

        assert [line.text for line in doc.lines][-1] == "$100.00".rjust(32)

    def test_wrap_text_splits_long_words(self):
        assert wrap_text("x" * 70, 32) == ["x" * 32, "x" * 32, "x" * 6]

    def test_large_text_wraps_at_half_width(self):
        doc = TicketDocument(width=32)
        doc.text("ABCDEFGHIJKLMNOPQRSTUVWXYZ", size=TextSize.LARGE, align=Align.CENTER)

        assert [line.text for line in doc.lines] == ["ABCDEFGHIJKLMNOP", "QRSTUVWXYZ"]


class TestComanda:
    """Kitchen tickets"""

    def test_contains_station_order_table_and_items(self):
        doc = render_comanda(TicketLayout(), comanda(station_name="Grill"), PRINTED_AT)
        text = doc.plain_text()

        assert "GRILL" in text
        assert "#A-0042" in text
        assert "TABLE 7" in text
        assert "2x Burger" in text
        assert "Note: No onions" in text
        assert "1x Fries" in text

    def test_without_station_uses_generic_title(self):
        text = render_comanda(TicketLayout(), comanda(), PRINTED_AT).plain_text()
        assert text.splitlines()[0].strip() == "ORDER"

    def test_has_no_price_or_server_fields(self):
        text = render_comanda(TicketLayout(), comanda(), PRINTED_AT).plain_text()

        assert "$" not in text
        assert "Server" not in text
        assert "TOTAL" not in text

    def test_comanda_line_has_no_price_attribute(self):
        assert not hasattr(ComandaLine(name="Burger", quantity=1), "unit_price")

    def test_absent_notes_omit_their_lines(self):
        ticket = comanda(items=[ComandaLine(name="Fries", quantity=1)])
        text = render_comanda(TicketLayout(), ticket, PRINTED_AT).plain_text()

        assert "Note:" not in text
        assert "GENERAL NOTES" not in text

    def test_output_is_deterministic(self):
        first = render_comanda(TicketLayout(), comanda(station_name="Bar"), PRINTED_AT).to_bytes()
        second = render_comanda(TicketLayout(), comanda(station_name="Bar"), PRINTED_AT).to_bytes()

        assert first == second

    def test_timestamp_comes_from_the_caller(self):
        text = render_comanda(TicketLayout(), comanda(), PRINTED_AT).plain_text()

        assert "17/05/2024" in text
        assert "21:30:05" in text


class TestControlTicket:
    """Itemized control tickets"""

    def _lines(self, ticket, layout=None):
        return render_control_ticket(layout or TicketLayout(), ticket, PRINTED_AT).plain_text().splitlines()

    def test_total_after_discount(self):
        lines = self._lines(control_ticket(discount=Decimal("10")))

        total_line = next(line for line in lines if line.startswith("TOTAL:"))
        assert total_line.endswith("900.00")
        assert any(line.startswith("Discount (10%):") and line.endswith("-$100.00") for line in lines)
        assert any(line.startswith("Subtotal:") and line.endswith("$1000.00") for line in lines)

    def test_zero_discount_keeps_totals_block_without_discount_line(self):
        lines = self._lines(control_ticket(discount=Decimal("0")))

        assert any(line.startswith("Subtotal:") for line in lines)
        assert any(line.startswith("TOTAL:") and line.endswith("$1000.00") for line in lines)
        assert not any(line.startswith("Discount") for line in lines)

    def test_item_lines_show_totals_and_unit_price(self):
        lines = self._lines(control_ticket())

        assert any(line.startswith("2x Parrillada") and line.endswith("$700.00") for line in lines)
        assert any(line.strip() == "@ $350.00" for line in lines)
        assert any(line.strip() == "Note: Malbec" for line in lines)

    def test_optional_identity_fields(self):
        ticket = control_ticket(
            waiter_name="Lucía",
            order_type="DINE_IN",
            customer_name="Martín",
            business_name="La Esquina",
        )
        text = "\n".join(self._lines(ticket))

        assert "La Esquina" in text
        assert "Lucía" in text
        assert "DINE_IN" in text
        assert "Martín" in text

    def test_missing_identity_fields_are_omitted(self):
        text = "\n".join(self._lines(control_ticket()))

        assert "Server:" not in text
        assert "Customer:" not in text
        assert "Type:" not in text

    def test_tax_line(self):
        lines = self._lines(control_ticket(subtotal="121.00", tax=Decimal("21"),
                                           items=[ControlTicketLine("Menu", 1, Decimal("121.00"))]))

        assert any(line.startswith("Tax incl. (21%):") and line.endswith("$21.00") for line in lines)

    def test_header_footer_and_currency(self):
        layout = TicketLayout(header="Gracias por elegirnos", footer="Vuelva pronto", currency_symbol="€")
        text = "\n".join(self._lines(control_ticket(), layout))

        assert "Gracias por elegirnos" in text
        assert "Vuelva pronto" in text
        assert "€900.00" not in text
        assert "€1000.00" in text

    def test_spacing_setting_controls_line_spacing(self):
        compact = render_control_ticket(TicketLayout(control_spacing=0), control_ticket(), PRINTED_AT)
        normal = render_control_ticket(TicketLayout(control_spacing=1), control_ticket(), PRINTED_AT)
        wide = render_control_ticket(TicketLayout(control_spacing=2), control_ticket(), PRINTED_AT)

        assert compact.line_spacing == 24
        assert normal.line_spacing is None
        assert wide.line_spacing == 50
        assert len(wide.lines) > len(normal.lines)


class TestTestPage:
    def test_lists_printer_configuration(self):
        info = PrinterInfo(
            printer_name="Cocina",
            connection_type="NETWORK",
            system_name="192.168.1.50",
            port=9100,
            station_name="Grill",
        )
        text = render_test_page(TicketLayout(paper_width=58, characters_per_line=32), info, PRINTED_AT).plain_text()

        assert "PRINT TEST" in text
        assert "Cocina" in text
        assert "192.168.1.50" in text
        assert "9100" in text
        assert "58mm" in text
        assert "TEST OK" in text

    def test_usb_printer_shows_device_name(self):
        info = PrinterInfo(printer_name="Caja", connection_type="USB", system_name="EPSON TM-T20")
        text = render_test_page(TicketLayout(), info, PRINTED_AT).plain_text()

        assert "Device:" in text
        assert "EPSON TM-T20" in text
        assert "Port:" not in text


class TestEscposEncoding:
    """TicketDocument -> ESC/POS bytes"""

    def test_starts_with_init_and_ends_with_cut(self):
        data = render_comanda(TicketLayout(), comanda(), PRINTED_AT).to_bytes()

        assert data.startswith(b"\x1b@")
        assert b"\x1dV" in data
        assert b"2x Burger" in data

    def test_spanish_characters_use_cp850(self):
        ticket = comanda(items=[ComandaLine(name="Jalapeño", quantity=1)])
        data = render_comanda(TicketLayout(), ticket, PRINTED_AT).to_bytes()

        assert "Jalapeño".encode("cp850") in data
