"""
Printer and station configuration

CRUD behind the back-office configuration screens. Names and system
identifiers (IP address or OS queue name) are unique per branch. Nothing
here ever writes a printer's status; only delivery attempts do.
"""
from typing import List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from kitchenprint.exceptions import BusinessRuleError, ConflictError, DuplicatePrinterError, NotFoundError
from kitchenprint.logging_config import audit_log, get_logger
from kitchenprint.models.printer import ConnectionType, Printer
from kitchenprint.models.station import Station, StationCategory
from kitchenprint.schemas.printer import (
    PrinterCreate,
    NON_NULLABLE_PRINTER_FIELDS,
    PrinterUpdate,
    StationCreate,
    StationUpdate,
    check_network_address,
)

logger = get_logger(__name__)


# ============================================================================
# Printers
# ============================================================================

def list_printers(db: Session, branch_id: str, active_only: bool = False) -> List[Printer]:
    query = db.query(Printer).filter(Printer.branch_id == branch_id)
    if active_only:
        query = query.filter(Printer.active.is_(True))
    return query.order_by(Printer.created_at, Printer.id).all()


def get_printer(db: Session, printer_id: int) -> Printer:
    printer = db.query(Printer).filter(Printer.id == printer_id).first()
    if not printer:
        raise NotFoundError("Printer", printer_id)
    return printer


def _check_unique(db: Session, branch_id: str, name: str, system_name: str,
                  exclude_id: Optional[int] = None) -> None:
    query = db.query(Printer).filter(Printer.branch_id == branch_id)
    if exclude_id is not None:
        query = query.filter(Printer.id != exclude_id)

    if query.filter(func.lower(Printer.name) == name.lower()).first():
        raise DuplicatePrinterError(
            f"A printer named '{name}' already exists in this branch",
            details={"field": "name", "value": name},
        )
    if query.filter(Printer.system_name == system_name).first():
        raise DuplicatePrinterError(
            f"A printer with address '{system_name}' already exists in this branch",
            details={"field": "system_name", "value": system_name},
        )


def _check_station(db: Session, branch_id: str, station_id: Optional[int]) -> None:
    if station_id is None:
        return
    station = db.query(Station).filter(Station.id == station_id).first()
    if not station or station.branch_id != branch_id:
        raise NotFoundError("Station", station_id)


def create_printer(db: Session, data: PrinterCreate) -> Printer:
    _check_unique(db, data.branch_id, data.name, data.system_name)
    _check_station(db, data.branch_id, data.station_id)

    printer = Printer(**data.model_dump())
    db.add(printer)
    db.commit()
    db.refresh(printer)

    logger.info("Printer created", extra={"printer_id": printer.id, "branch_id": printer.branch_id})
    audit_log("PRINTER_CREATED", branch_id=printer.branch_id, resource_type="printer",
              resource_id=printer.id, details={"name": printer.name})
    return printer


def update_printer(db: Session, printer_id: int, data: PrinterUpdate) -> Printer:
    printer = get_printer(db, printer_id)
    changes = {
        field: value
        for field, value in data.model_dump(exclude_unset=True).items()
        if value is not None or field not in NON_NULLABLE_PRINTER_FIELDS
    }

    name = changes.get("name", printer.name)
    system_name = changes.get("system_name", printer.system_name)
    connection_type = changes.get("connection_type", printer.connection_type)
    if connection_type == ConnectionType.NETWORK and ("system_name" in changes or "connection_type" in changes):
        try:
            check_network_address(system_name)
        except ValueError as e:
            raise BusinessRuleError(str(e), details={"system_name": system_name}) from e

    if "name" in changes or "system_name" in changes:
        _check_unique(db, printer.branch_id, name, system_name, exclude_id=printer.id)
    if "station_id" in changes:
        _check_station(db, printer.branch_id, changes["station_id"])

    for field, value in changes.items():
        setattr(printer, field, value)
    db.commit()
    db.refresh(printer)

    audit_log("PRINTER_UPDATED", branch_id=printer.branch_id, resource_type="printer",
              resource_id=printer.id, details={"fields": sorted(changes)})
    return printer


def set_printer_active(db: Session, printer_id: int, active: bool) -> Printer:
    printer = get_printer(db, printer_id)
    printer.active = active
    db.commit()
    db.refresh(printer)
    audit_log("PRINTER_UPDATED", branch_id=printer.branch_id, resource_type="printer",
              resource_id=printer.id, details={"active": active})
    return printer


def delete_printer(db: Session, printer_id: int) -> None:
    """Delete a printer together with its print job history."""
    printer = get_printer(db, printer_id)
    branch_id, name = printer.branch_id, printer.name
    db.delete(printer)
    db.commit()
    audit_log("PRINTER_DELETED", branch_id=branch_id, resource_type="printer",
              resource_id=printer_id, details={"name": name})


# ============================================================================
# Stations
# ============================================================================

def list_stations(db: Session, branch_id: str) -> List[Station]:
    return (
        db.query(Station)
        .filter(Station.branch_id == branch_id)
        .order_by(Station.display_order, Station.name)
        .all()
    )


def get_station(db: Session, station_id: int) -> Station:
    station = db.query(Station).filter(Station.id == station_id).first()
    if not station:
        raise NotFoundError("Station", station_id)
    return station


def _check_station_name(db: Session, branch_id: str, name: str, exclude_id: Optional[int] = None) -> None:
    query = db.query(Station).filter(
        Station.branch_id == branch_id,
        func.lower(Station.name) == name.lower(),
    )
    if exclude_id is not None:
        query = query.filter(Station.id != exclude_id)
    if query.first():
        raise ConflictError(
            f"A station named '{name}' already exists in this branch",
            details={"field": "name", "value": name},
        )


def create_station(db: Session, data: StationCreate) -> Station:
    _check_station_name(db, data.branch_id, data.name)

    display_order = data.display_order
    if display_order is None:
        current_max = (
            db.query(func.max(Station.display_order))
            .filter(Station.branch_id == data.branch_id)
            .scalar()
        )
        display_order = (current_max or 0) + 1

    station = Station(
        branch_id=data.branch_id,
        name=data.name,
        description=data.description,
        color=data.color,
        display_order=display_order,
    )
    db.add(station)
    db.commit()
    db.refresh(station)

    audit_log("STATION_CREATED", branch_id=station.branch_id, resource_type="station",
              resource_id=station.id, details={"name": station.name})
    return station


def update_station(db: Session, station_id: int, data: StationUpdate) -> Station:
    station = get_station(db, station_id)
    changes = data.model_dump(exclude_unset=True)
    if changes.get("name") is not None:
        _check_station_name(db, station.branch_id, changes["name"], exclude_id=station.id)

    for field, value in changes.items():
        if value is None and field in ("name", "color", "display_order", "active"):
            continue
        setattr(station, field, value)
    db.commit()
    db.refresh(station)

    audit_log("STATION_UPDATED", branch_id=station.branch_id, resource_type="station",
              resource_id=station.id, details={"fields": sorted(changes)})
    return station


def delete_station(db: Session, station_id: int) -> None:
    station = get_station(db, station_id)
    if station.printers:
        raise BusinessRuleError(
            f"Station '{station.name}' still has printers assigned",
            details={"station_id": station_id, "printer_ids": station.printer_ids},
        )
    branch_id, name = station.branch_id, station.name
    db.delete(station)
    db.commit()
    audit_log("STATION_DELETED", branch_id=branch_id, resource_type="station",
              resource_id=station_id, details={"name": name})


def set_station_categories(db: Session, station_id: int, category_ids: List[str]) -> Station:
    """
    Replace the category set of a station.

    An empty set is allowed and makes the station's printers receive no
    items at all.
    """
    station = get_station(db, station_id)
    wanted = list(dict.fromkeys(category_ids))

    station.categories = [
        link for link in station.categories if link.category_id in wanted
    ]
    existing = set(station.category_ids)
    for category_id in wanted:
        if category_id not in existing:
            station.categories.append(StationCategory(category_id=category_id))
    db.commit()
    db.refresh(station)

    audit_log("STATION_CATEGORIES_UPDATED", branch_id=station.branch_id, resource_type="station",
              resource_id=station.id, details={"category_ids": wanted})
    return station
