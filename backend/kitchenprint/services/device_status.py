"""
Device Status Tracker

Last known printer reachability. Written after every delivery attempt;
the automatic dispatch path never reads it.
"""
from sqlalchemy.orm import Session

from kitchenprint.logging_config import get_logger
from kitchenprint.models.printer import Printer, PrinterStatus

logger = get_logger(__name__)


class DeviceStatusTracker:
    def __init__(self, db: Session):
        self.db = db

    def record_outcome(self, printer_id: int, success: bool) -> PrinterStatus:
        status = PrinterStatus.ONLINE if success else PrinterStatus.ERROR
        updated = (
            self.db.query(Printer)
            .filter(Printer.id == printer_id)
            .update({Printer.status: status}, synchronize_session="fetch")
        )
        self.db.commit()
        if not updated:
            logger.warning("Status update for unknown printer", extra={"printer_id": printer_id})
        return status
