"""
Station models

A station is a logical kitchen/bar destination ("Grill", "Bar") that groups
printers and the product categories they should receive.
"""
from datetime import datetime

from sqlalchemy import Column, Integer, String, Boolean, DateTime, ForeignKey, Text, UniqueConstraint
from sqlalchemy.orm import relationship

from kitchenprint.db.base import Base


class Station(Base):
    """Station model - matches stations table"""
    __tablename__ = "stations"
    __table_args__ = (
        UniqueConstraint("branch_id", "name", name="uq_stations_branch_name"),
    )

    id = Column(Integer, primary_key=True, index=True)
    branch_id = Column(String(64), nullable=False, index=True)
    name = Column(String(100), nullable=False)
    description = Column(Text, nullable=True)
    color = Column(String(7), nullable=False, default="#6366f1")
    display_order = Column(Integer, nullable=False, default=0)
    active = Column(Boolean, nullable=False, default=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    printers = relationship("Printer", back_populates="station")
    categories = relationship(
        "StationCategory",
        back_populates="station",
        cascade="all, delete-orphan",
        order_by="StationCategory.id",
    )

    @property
    def category_ids(self) -> list:
        return [link.category_id for link in self.categories]

    @property
    def printer_ids(self) -> list:
        return [printer.id for printer in self.printers]

    def __repr__(self):
        return f"<Station {self.id}: {self.name}>"


class StationCategory(Base):
    """Product category routed to a station"""
    __tablename__ = "station_categories"
    __table_args__ = (
        UniqueConstraint("station_id", "category_id", name="uq_station_categories_pair"),
    )

    id = Column(Integer, primary_key=True, index=True)
    station_id = Column(Integer, ForeignKey("stations.id", ondelete="CASCADE"), nullable=False, index=True)
    category_id = Column(String(64), nullable=False, index=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    station = relationship("Station", back_populates="categories")

    def __repr__(self):
        return f"<StationCategory station={self.station_id} category={self.category_id}>"
