"""
Printer model
"""
from datetime import datetime
from enum import Enum as PyEnum

from sqlalchemy import (
    Column, Integer, String, Boolean, DateTime, Enum, ForeignKey, Text, UniqueConstraint,
)
from sqlalchemy.orm import relationship

from kitchenprint.db.base import Base


class PrinterStatus(str, PyEnum):
    """Last known reachability. Advisory only, never gates a dispatch."""
    OFFLINE = "OFFLINE"
    ONLINE = "ONLINE"
    ERROR = "ERROR"


class ConnectionType(str, PyEnum):
    NETWORK = "NETWORK"
    USB = "USB"


class PrintMode(str, PyEnum):
    """Which event classes route to the printer"""
    STATION_ITEMS = "STATION_ITEMS"  # comandas for newly added items
    FULL_ORDER = "FULL_ORDER"  # control tickets
    BOTH = "BOTH"


STATION_PRINT_MODES = (PrintMode.STATION_ITEMS, PrintMode.BOTH)
BILLING_PRINT_MODES = (PrintMode.FULL_ORDER, PrintMode.BOTH)


class Printer(Base):
    """Printer model - matches printers table"""
    __tablename__ = "printers"
    __table_args__ = (
        UniqueConstraint("branch_id", "name", name="uq_printers_branch_name"),
        UniqueConstraint("branch_id", "system_name", name="uq_printers_branch_system_name"),
    )

    id = Column(Integer, primary_key=True, index=True)
    branch_id = Column(String(64), nullable=False, index=True)

    # Printer identification
    name = Column(String(100), nullable=False)
    description = Column(Text, nullable=True)
    model = Column(String(100), nullable=True)

    # Addressing: IP address for NETWORK, OS queue name for USB
    connection_type = Column(Enum(ConnectionType, native_enum=False, length=20),
                             nullable=False, default=ConnectionType.NETWORK)
    system_name = Column(String(255), nullable=False)
    port = Column(Integer, nullable=False, default=9100)

    # Routing
    print_mode = Column(Enum(PrintMode, native_enum=False, length=20),
                        nullable=False, default=PrintMode.STATION_ITEMS)
    station_id = Column(Integer, ForeignKey("stations.id", ondelete="SET NULL"), nullable=True, index=True)
    auto_print = Column(Boolean, nullable=False, default=True)
    copies = Column(Integer, nullable=False, default=1)

    # Paper
    paper_width = Column(Integer, nullable=False, default=80)  # mm: 58 or 80
    characters_per_line = Column(Integer, nullable=False, default=48)

    # Ticket customization (sizes: 0=small, 1=normal, 2=medium, 3=large)
    ticket_header = Column(Text, nullable=True)
    ticket_header_size = Column(Integer, nullable=False, default=2)
    ticket_footer = Column(Text, nullable=True)
    ticket_footer_size = Column(Integer, nullable=False, default=1)
    control_ticket_font_size = Column(Integer, nullable=False, default=1)  # 0=small, 1=normal, 2=large
    control_ticket_spacing = Column(Integer, nullable=False, default=1)  # 0=compact, 1=normal, 2=wide

    # Status
    status = Column(Enum(PrinterStatus, native_enum=False, length=20),
                    nullable=False, default=PrinterStatus.OFFLINE)

    # Active flag
    active = Column(Boolean, nullable=False, default=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    # Relationships
    station = relationship("Station", back_populates="printers")
    print_jobs = relationship("PrintJob", back_populates="printer", cascade="all, delete-orphan")

    @property
    def station_name(self):
        return self.station.name if self.station else None

    def __repr__(self):
        return f"<Printer {self.id}: {self.name} ({self.status})>"
