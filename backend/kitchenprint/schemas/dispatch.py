"""
Dispatch Pydantic Schemas

Inputs come from the order service (newly added items, control ticket
requests); outputs are the aggregate result of one dispatch.
"""
from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, Field, computed_field

from kitchenprint.models.print_job import PrintJobStatus, PrintJobType


# ============================================================================
# Requests
# ============================================================================

class RoutableItem(BaseModel):
    """An order line to route to station printers"""
    product_id: Optional[str] = None
    name: str = Field(..., min_length=1)
    quantity: int = Field(..., ge=1)
    unit_price: Optional[Decimal] = Field(None, description="Ignored on kitchen tickets")
    notes: Optional[str] = None
    category_id: Optional[str] = Field(None, description="Resolved from the catalog when absent")


class StationPrintRequest(BaseModel):
    """Newly added items of an order, sent after the items are persisted"""
    branch_id: str = Field(..., min_length=1)
    order_id: str = Field(..., min_length=1)
    order_code: str = Field(..., min_length=1, description="Public order code")
    table_name: str = ""
    items: List[RoutableItem] = Field(default_factory=list)
    notes: Optional[str] = None


class ControlTicketItem(BaseModel):
    name: str = Field(..., min_length=1)
    quantity: int = Field(..., ge=1)
    price: Decimal = Field(..., ge=0, description="Unit price")
    notes: Optional[str] = None


class ControlTicketRequest(BaseModel):
    """Manual request for a full itemized control ticket"""
    branch_id: str = Field(..., min_length=1)
    order_id: str = Field(..., min_length=1)
    order_code: str = Field(..., min_length=1)
    table_name: str = ""
    waiter_name: Optional[str] = None
    items: List[ControlTicketItem] = Field(default_factory=list)
    subtotal: Decimal = Field(..., ge=0)
    discount_percentage: Optional[Decimal] = Field(None, ge=0, le=100)
    tax_percentage: Optional[Decimal] = Field(None, ge=0, le=100, description="Tax included in prices")
    order_type: Optional[str] = None
    customer_name: Optional[str] = None
    notes: Optional[str] = None


# ============================================================================
# Results
# ============================================================================

class CopyOutcome(BaseModel):
    """Outcome of one copy sent to one printer"""
    copy_number: int
    job_id: Optional[int] = None
    success: bool
    error: Optional[str] = None


class PrinterOutcome(BaseModel):
    """All copies sent to one printer"""
    printer_id: int
    printer_name: str
    copies: List[CopyOutcome] = Field(default_factory=list)

    @computed_field
    @property
    def success_count(self) -> int:
        return sum(1 for c in self.copies if c.success)

    @computed_field
    @property
    def failure_count(self) -> int:
        return sum(1 for c in self.copies if not c.success)


class DispatchResult(BaseModel):
    """
    Aggregate result of one dispatch.

    Counts are per copy (one PrintJob each). A dispatch that resolved no
    targets is a success with zero outcomes.
    """
    outcomes: List[PrinterOutcome] = Field(default_factory=list)
    error: Optional[str] = None

    @computed_field
    @property
    def success_count(self) -> int:
        return sum(o.success_count for o in self.outcomes)

    @computed_field
    @property
    def failure_count(self) -> int:
        return sum(o.failure_count for o in self.outcomes)

    @computed_field
    @property
    def success(self) -> bool:
        return self.error is None and self.failure_count == 0


# ============================================================================
# Print jobs
# ============================================================================

class PrintJobResponse(BaseModel):
    id: int
    printer_id: int
    order_id: Optional[str] = None
    job_type: PrintJobType
    copy_number: int
    content: str
    status: PrintJobStatus
    error: Optional[str] = None
    attempts: int
    created_at: datetime
    sent_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class PrintJobListResponse(BaseModel):
    """Print job list response"""
    total: int
    items: List[PrintJobResponse]
