"""
Database models
"""
from kitchenprint.models.printer import (
    Printer,
    PrinterStatus,
    ConnectionType,
    PrintMode,
    STATION_PRINT_MODES,
    BILLING_PRINT_MODES,
)
from kitchenprint.models.station import Station, StationCategory
from kitchenprint.models.print_job import PrintJob, PrintJobStatus, PrintJobType
from kitchenprint.models.product import Product

__all__ = [
    "Printer",
    "PrinterStatus",
    "ConnectionType",
    "PrintMode",
    "STATION_PRINT_MODES",
    "BILLING_PRINT_MODES",
    "Station",
    "StationCategory",
    "PrintJob",
    "PrintJobStatus",
    "PrintJobType",
    "Product",
]
