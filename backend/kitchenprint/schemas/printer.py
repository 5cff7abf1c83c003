"""
Printer and Station Pydantic Schemas
"""
import ipaddress
from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from kitchenprint.models.printer import ConnectionType, PrintMode, PrinterStatus


def check_network_address(value: str) -> str:
    try:
        ipaddress.IPv4Address(value)
    except ValueError:
        raise ValueError("Network printers need a valid IPv4 address")
    return value


# ============================================================================
# Printer Schemas
# ============================================================================

class PrinterBase(BaseModel):
    """Base printer fields"""
    name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = None
    model: Optional[str] = Field(None, max_length=100)
    connection_type: ConnectionType = ConnectionType.NETWORK
    system_name: str = Field(
        ..., min_length=1, max_length=255,
        description="IP address (NETWORK) or OS printer name (USB)"
    )
    port: int = Field(9100, ge=1, le=65535)
    print_mode: PrintMode = PrintMode.STATION_ITEMS
    station_id: Optional[int] = None
    auto_print: bool = True
    copies: int = Field(1, ge=1, le=5)
    paper_width: Literal[58, 80] = 80
    characters_per_line: int = Field(48, ge=32, le=48)
    ticket_header: Optional[str] = None
    ticket_header_size: int = Field(2, ge=0, le=3)
    ticket_footer: Optional[str] = None
    ticket_footer_size: int = Field(1, ge=0, le=3)
    control_ticket_font_size: int = Field(1, ge=0, le=2)
    control_ticket_spacing: int = Field(1, ge=0, le=2)


class PrinterCreate(PrinterBase):
    """Create a new printer"""
    branch_id: str = Field(..., min_length=1, max_length=64)

    @model_validator(mode="after")
    def validate_address(self):
        if self.connection_type == ConnectionType.NETWORK:
            check_network_address(self.system_name)
        return self


# Columns a PATCH may leave out but never set to null
NON_NULLABLE_PRINTER_FIELDS = (
    "name", "connection_type", "system_name", "port", "print_mode", "auto_print", "copies",
    "paper_width", "characters_per_line", "ticket_header_size", "ticket_footer_size",
    "control_ticket_font_size", "control_ticket_spacing",
)


class PrinterUpdate(BaseModel):
    """Update an existing printer - only provided fields change"""
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = None
    model: Optional[str] = Field(None, max_length=100)
    connection_type: Optional[ConnectionType] = None
    system_name: Optional[str] = Field(None, min_length=1, max_length=255)
    port: Optional[int] = Field(None, ge=1, le=65535)
    print_mode: Optional[PrintMode] = None
    station_id: Optional[int] = None
    auto_print: Optional[bool] = None
    copies: Optional[int] = Field(None, ge=1, le=5)
    paper_width: Optional[Literal[58, 80]] = None
    characters_per_line: Optional[int] = Field(None, ge=32, le=48)
    ticket_header: Optional[str] = None
    ticket_header_size: Optional[int] = Field(None, ge=0, le=3)
    ticket_footer: Optional[str] = None
    ticket_footer_size: Optional[int] = Field(None, ge=0, le=3)
    control_ticket_font_size: Optional[int] = Field(None, ge=0, le=2)
    control_ticket_spacing: Optional[int] = Field(None, ge=0, le=2)

    @model_validator(mode="after")
    def reject_cleared_required_fields(self):
        cleared = [f for f in NON_NULLABLE_PRINTER_FIELDS if f in self.model_fields_set and getattr(self, f) is None]
        if cleared:
            raise ValueError(f"Cannot clear required printer fields: {', '.join(cleared)}")
        return self


class PrinterToggle(BaseModel):
    active: bool


class PrinterResponse(PrinterBase):
    """Printer response"""
    id: int
    branch_id: str
    status: PrinterStatus
    active: bool
    station_name: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


# ============================================================================
# Station Schemas
# ============================================================================

class StationBase(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = None
    color: str = Field("#6366f1", pattern=r"^#[0-9A-Fa-f]{6}$")
    display_order: Optional[int] = Field(None, ge=0)


class StationCreate(StationBase):
    """Create a new station"""
    branch_id: str = Field(..., min_length=1, max_length=64)


class StationUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = None
    color: Optional[str] = Field(None, pattern=r"^#[0-9A-Fa-f]{6}$")
    display_order: Optional[int] = Field(None, ge=0)
    active: Optional[bool] = None


class StationCategoriesUpdate(BaseModel):
    """Replace the full category set of a station"""
    category_ids: List[str] = Field(default_factory=list)

    @field_validator("category_ids")
    @classmethod
    def dedupe(cls, v: List[str]) -> List[str]:
        seen = []
        for category_id in v:
            if category_id not in seen:
                seen.append(category_id)
        return seen


class StationResponse(BaseModel):
    id: int
    branch_id: str
    name: str
    description: Optional[str] = None
    color: str
    display_order: int
    active: bool
    category_ids: List[str] = []
    printer_ids: List[int] = []
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


# ============================================================================
# Print agent
# ============================================================================

class PrintAgentStatusResponse(BaseModel):
    enabled: bool
    url: Optional[str] = None
    connected: bool = False
    error: Optional[str] = None
    reconnect_attempts: int = 0
    max_attempts: int = 0
    next_retry_in: Optional[float] = None


class AgentPrinter(BaseModel):
    """A printer visible to the print agent"""
    name: str
    type: Optional[str] = None


class BranchPrintCapabilities(BaseModel):
    branch_id: str
    has_printers: bool
    has_billing_printers: bool
