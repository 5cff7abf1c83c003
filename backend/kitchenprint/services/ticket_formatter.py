"""
Ticket Formatter

Pure functions turning order data into TicketDocuments for a printer's
paper and character width. No I/O and no clock reads: the print timestamp
is an argument, so identical input always renders identical bytes.

Three documents exist:
- test page: connectivity check with the printer's own configuration
- comanda: kitchen/bar ticket with item names, quantities and notes only
- control ticket: itemized ticket with prices, discount and totals block
"""
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import List, Optional

from kitchenprint.exceptions import TicketLayoutError
from kitchenprint.services.escpos import Align, TextSize, TicketDocument

PAPER_WIDTHS = (58, 80)
MIN_CHARACTERS_PER_LINE = 32
MAX_CHARACTERS_PER_LINE = 48

CENTS = Decimal("0.01")

# Line spacing in dots per control_ticket_spacing setting (None = printer default)
_CONTROL_LINE_SPACING = {0: 24, 1: None, 2: 50}
_CONTROL_FONT_SIZE = {0: TextSize.SMALL, 1: TextSize.NORMAL, 2: TextSize.MEDIUM}


# ============================================================================
# Layout
# ============================================================================

@dataclass(frozen=True)
class TicketLayout:
    """Paper and emphasis settings of one printer"""
    characters_per_line: int = 48
    paper_width: int = 80
    header: Optional[str] = None
    header_size: int = 2
    footer: Optional[str] = None
    footer_size: int = 1
    control_font_size: int = 1
    control_spacing: int = 1
    currency_symbol: str = "$"

    def __post_init__(self):
        if self.paper_width not in PAPER_WIDTHS:
            raise TicketLayoutError(
                f"Unsupported paper width {self.paper_width}mm",
                details={"paper_width": self.paper_width, "allowed": list(PAPER_WIDTHS)},
            )
        if not MIN_CHARACTERS_PER_LINE <= self.characters_per_line <= MAX_CHARACTERS_PER_LINE:
            raise TicketLayoutError(
                f"Characters per line must be between {MIN_CHARACTERS_PER_LINE} "
                f"and {MAX_CHARACTERS_PER_LINE}",
                details={"characters_per_line": self.characters_per_line},
            )
        for name in ("header_size", "footer_size"):
            if getattr(self, name) not in tuple(TextSize):
                raise TicketLayoutError(f"Invalid {name}", details={name: getattr(self, name)})
        if self.control_font_size not in _CONTROL_FONT_SIZE:
            raise TicketLayoutError("Invalid control ticket font size",
                                    details={"control_font_size": self.control_font_size})
        if self.control_spacing not in _CONTROL_LINE_SPACING:
            raise TicketLayoutError("Invalid control ticket spacing",
                                    details={"control_spacing": self.control_spacing})

    @classmethod
    def from_printer(cls, printer, currency_symbol: str = "$") -> "TicketLayout":
        return cls(
            characters_per_line=printer.characters_per_line,
            paper_width=printer.paper_width,
            header=printer.ticket_header,
            header_size=printer.ticket_header_size,
            footer=printer.ticket_footer,
            footer_size=printer.ticket_footer_size,
            control_font_size=printer.control_ticket_font_size,
            control_spacing=printer.control_ticket_spacing,
            currency_symbol=currency_symbol,
        )

    def new_document(self, line_spacing: Optional[int] = None) -> TicketDocument:
        return TicketDocument(width=self.characters_per_line, line_spacing=line_spacing)

    def money(self, amount: Decimal) -> str:
        return f"{self.currency_symbol}{format_amount(amount)}"


# ============================================================================
# Document inputs
# ============================================================================

@dataclass(frozen=True)
class PrinterInfo:
    printer_name: str
    connection_type: str
    system_name: str
    port: Optional[int] = None
    station_name: Optional[str] = None


@dataclass(frozen=True)
class ComandaLine:
    """A kitchen line. Carries no price by construction."""
    name: str
    quantity: int
    notes: Optional[str] = None


@dataclass(frozen=True)
class ComandaTicket:
    order_code: str
    table_name: str
    items: List[ComandaLine]
    station_name: Optional[str] = None
    notes: Optional[str] = None


@dataclass(frozen=True)
class ControlTicketLine:
    name: str
    quantity: int
    unit_price: Decimal
    notes: Optional[str] = None

    @property
    def line_total(self) -> Decimal:
        return to_cents(Decimal(self.quantity) * Decimal(self.unit_price))


@dataclass(frozen=True)
class TicketTotals:
    subtotal: Decimal
    discount_percentage: Optional[Decimal]
    discount_amount: Decimal
    total: Decimal
    tax_percentage: Optional[Decimal] = None
    tax_amount: Optional[Decimal] = None

    @property
    def has_discount(self) -> bool:
        return bool(self.discount_percentage) and self.discount_percentage > 0


@dataclass(frozen=True)
class ControlTicket:
    order_code: str
    table_name: str
    items: List[ControlTicketLine]
    totals: TicketTotals
    waiter_name: Optional[str] = None
    order_type: Optional[str] = None
    customer_name: Optional[str] = None
    business_name: Optional[str] = None
    notes: Optional[str] = None


# ============================================================================
# Amounts
# ============================================================================

def to_cents(value) -> Decimal:
    return Decimal(value).quantize(CENTS, rounding=ROUND_HALF_UP)


def format_amount(value) -> str:
    """Fixed two-decimal amount without grouping: 1234.5 -> '1234.50'"""
    return f"{to_cents(value):.2f}"


def compute_totals(
    subtotal,
    discount_percentage=None,
    tax_percentage=None,
) -> TicketTotals:
    """
    Apply a percentage discount to the subtotal.

    Tax is informative: prices already include it, so the included portion
    is derived from the discounted total and the total is unchanged.
    """
    subtotal = to_cents(subtotal)
    pct = Decimal(discount_percentage) if discount_percentage else Decimal("0")
    discount_amount = to_cents(subtotal * pct / Decimal(100))
    total = subtotal - discount_amount

    tax_amount = None
    if tax_percentage:
        rate = Decimal(tax_percentage)
        tax_amount = to_cents(total * rate / (Decimal(100) + rate))

    return TicketTotals(
        subtotal=subtotal,
        discount_percentage=Decimal(discount_percentage) if discount_percentage is not None else None,
        discount_amount=discount_amount,
        total=total,
        tax_percentage=Decimal(tax_percentage) if tax_percentage else None,
        tax_amount=tax_amount,
    )


def _format_percentage(value: Decimal) -> str:
    normalized = Decimal(value).normalize()
    return f"{normalized:f}"


# ============================================================================
# Shared blocks
# ============================================================================

def _timestamp_block(doc: TicketDocument, printed_at: datetime) -> None:
    doc.two_columns("Date:", printed_at.strftime("%d/%m/%Y"))
    doc.two_columns("Time:", printed_at.strftime("%H:%M:%S"))


def _table_banner(doc: TicketDocument, table_name: str) -> None:
    doc.separator("=")
    doc.text(f"TABLE {table_name}".strip(), align=Align.CENTER, size=TextSize.MEDIUM)
    doc.separator("=")


def _finish(doc: TicketDocument) -> TicketDocument:
    doc.feed(3)
    doc.cut()
    return doc


# ============================================================================
# Documents
# ============================================================================

def render_test_page(layout: TicketLayout, info: PrinterInfo, printed_at: datetime) -> TicketDocument:
    """Connectivity test page listing the printer's own configuration."""
    doc = layout.new_document()
    doc.text("PRINT TEST", align=Align.CENTER, size=TextSize.LARGE)
    doc.blank()
    doc.separator()

    doc.text("Printer information", bold=True)
    doc.two_columns("Name:", info.printer_name)
    doc.two_columns("Connection:", info.connection_type)
    if info.port:
        doc.two_columns("Address:", info.system_name)
        doc.two_columns("Port:", str(info.port))
    else:
        doc.two_columns("Device:", info.system_name)
    doc.two_columns("Station:", info.station_name or "-")
    doc.two_columns("Paper:", f"{layout.paper_width}mm")
    doc.two_columns("Characters:", str(layout.characters_per_line))
    doc.separator()
    _timestamp_block(doc, printed_at)
    doc.separator()

    doc.text("Format samples", bold=True)
    doc.text("Normal: ABCDEFGabcdefg 0123456789")
    doc.text("Bold: ABCDEFGabcdefg 0123456789", bold=True)
    doc.text("Underline: ABCDEFGabcdefg", underline=True)
    if layout.header:
        doc.text(layout.header, align=Align.CENTER, size=TextSize(layout.header_size))
    if layout.footer:
        doc.text(layout.footer, align=Align.CENTER, size=TextSize(layout.footer_size))
    doc.separator()

    doc.text("TEST OK", align=Align.CENTER, size=TextSize.MEDIUM)
    doc.separator("=")
    return _finish(doc)


def render_comanda(layout: TicketLayout, ticket: ComandaTicket, printed_at: datetime) -> TicketDocument:
    """
    Kitchen/bar ticket.

    Only station, order code, table, quantities, names and notes are
    printed. There is deliberately no price or server field.
    """
    doc = layout.new_document()
    title = ticket.station_name.upper() if ticket.station_name else "ORDER"
    doc.text(title, align=Align.CENTER, size=TextSize.LARGE)
    doc.blank()
    _table_banner(doc, ticket.table_name)

    doc.two_columns("Order:", f"#{ticket.order_code}")
    _timestamp_block(doc, printed_at)
    doc.separator()

    doc.text("ITEMS", bold=True)
    doc.separator()
    for item in ticket.items:
        doc.text(f"{item.quantity}x {item.name}", size=TextSize.MEDIUM)
        if item.notes:
            doc.text(f"Note: {item.notes}", indent="   ")
        doc.blank()
    doc.separator()

    if ticket.notes:
        doc.text("GENERAL NOTES:", bold=True)
        doc.text(ticket.notes)
        doc.separator()

    return _finish(doc)


def render_control_ticket(layout: TicketLayout, ticket: ControlTicket, printed_at: datetime) -> TicketDocument:
    """
    Full itemized control ticket.

    The totals block (subtotal, discount when set, tax when set, TOTAL) is
    always printed, even for a zero discount.
    """
    doc = layout.new_document(line_spacing=_CONTROL_LINE_SPACING[layout.control_spacing])
    body_size = _CONTROL_FONT_SIZE[layout.control_font_size]
    wide_spacing = layout.control_spacing == 2

    if ticket.business_name:
        doc.text(ticket.business_name, align=Align.CENTER, size=TextSize.MEDIUM, bold=True)
    if layout.header:
        doc.text(layout.header, align=Align.CENTER, size=TextSize(layout.header_size))
    doc.text("CONTROL TICKET", align=Align.CENTER, size=TextSize.LARGE)
    doc.blank()
    _table_banner(doc, ticket.table_name)

    doc.two_columns("Order:", f"#{ticket.order_code}", size=body_size)
    _timestamp_block(doc, printed_at)
    if ticket.waiter_name:
        doc.two_columns("Server:", ticket.waiter_name, size=body_size)
    if ticket.order_type:
        doc.two_columns("Type:", ticket.order_type, size=body_size)
    if ticket.customer_name:
        doc.two_columns("Customer:", ticket.customer_name, size=body_size)
    doc.separator()

    doc.two_columns("QTY ITEM", "AMOUNT", size=body_size, bold=True)
    doc.separator()
    for item in ticket.items:
        doc.two_columns(f"{item.quantity}x {item.name}", layout.money(item.line_total), size=body_size)
        if item.quantity > 1:
            doc.text(f"@ {layout.money(item.unit_price)}", size=body_size, indent="   ")
        if item.notes:
            doc.text(f"Note: {item.notes}", size=body_size, indent="   ")
        if wide_spacing:
            doc.blank()
    doc.separator()

    totals = ticket.totals
    doc.two_columns("Subtotal:", layout.money(totals.subtotal), size=body_size)
    if totals.has_discount:
        doc.two_columns(
            f"Discount ({_format_percentage(totals.discount_percentage)}%):",
            f"-{layout.money(totals.discount_amount)}",
            size=body_size,
        )
    if totals.tax_amount is not None:
        doc.two_columns(
            f"Tax incl. ({_format_percentage(totals.tax_percentage)}%):",
            layout.money(totals.tax_amount),
            size=body_size,
        )
    doc.separator()
    doc.two_columns("TOTAL:", layout.money(totals.total), size=TextSize.MEDIUM, bold=True)
    doc.separator()

    if ticket.notes:
        doc.text("NOTES:", bold=True)
        doc.text(ticket.notes, size=body_size)
        doc.separator()

    if layout.footer:
        doc.blank()
        doc.text(layout.footer, align=Align.CENTER, size=TextSize(layout.footer_size))

    return _finish(doc)
