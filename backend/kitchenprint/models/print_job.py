"""
Print Job model

One row per delivery attempt of one rendered ticket copy to one printer.
This table is the audit trail for support tooling and is never pruned here.
"""
from datetime import datetime
from enum import Enum as PyEnum

from sqlalchemy import Column, Integer, String, DateTime, Enum, ForeignKey, Text
from sqlalchemy.orm import relationship

from kitchenprint.db.base import Base


class PrintJobStatus(str, PyEnum):
    PENDING = "PENDING"
    SENT = "SENT"
    FAILED = "FAILED"


TERMINAL_JOB_STATUSES = (PrintJobStatus.SENT, PrintJobStatus.FAILED)


class PrintJobType(str, PyEnum):
    TEST = "TEST"
    STATION_ORDER = "STATION_ORDER"
    FULL_ORDER = "FULL_ORDER"


class PrintJob(Base):
    """Print Job model - matches print_jobs table"""
    __tablename__ = "print_jobs"

    id = Column(Integer, primary_key=True, index=True)

    # References
    printer_id = Column(Integer, ForeignKey("printers.id", ondelete="CASCADE"), nullable=False, index=True)
    order_id = Column(String(64), nullable=True, index=True)

    job_type = Column(Enum(PrintJobType, native_enum=False, length=20), nullable=False)
    copy_number = Column(Integer, nullable=False, default=1)

    # JSON snapshot of the document input
    content = Column(Text, nullable=False)

    # PENDING -> SENT | FAILED, never reopened
    status = Column(Enum(PrintJobStatus, native_enum=False, length=20),
                    nullable=False, default=PrintJobStatus.PENDING, index=True)
    error = Column(Text, nullable=True)
    attempts = Column(Integer, nullable=False, default=0)

    # Timestamps
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)
    sent_at = Column(DateTime, nullable=True)

    printer = relationship("Printer", back_populates="print_jobs")

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_JOB_STATUSES

    def __repr__(self):
        return f"<PrintJob {self.id}: {self.job_type} copy {self.copy_number} ({self.status})>"
