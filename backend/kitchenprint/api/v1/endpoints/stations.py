"""
Station API Endpoints
"""
from typing import List

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from kitchenprint.db.session import get_db
from kitchenprint.schemas.printer import (
    StationCategoriesUpdate,
    StationCreate,
    StationResponse,
    StationUpdate,
)
from kitchenprint.services import printer_config

router = APIRouter()


@router.get("", response_model=List[StationResponse])
async def list_stations(branch_id: str = Query(..., min_length=1), db: Session = Depends(get_db)):
    return printer_config.list_stations(db, branch_id)


@router.post("", response_model=StationResponse, status_code=status.HTTP_201_CREATED)
async def create_station(data: StationCreate, db: Session = Depends(get_db)):
    return printer_config.create_station(db, data)


@router.get("/{station_id}", response_model=StationResponse)
async def get_station(station_id: int, db: Session = Depends(get_db)):
    return printer_config.get_station(db, station_id)


@router.patch("/{station_id}", response_model=StationResponse)
async def update_station(station_id: int, data: StationUpdate, db: Session = Depends(get_db)):
    return printer_config.update_station(db, station_id, data)


@router.delete("/{station_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_station(station_id: int, db: Session = Depends(get_db)):
    """Delete a station. Refused while printers are assigned to it."""
    printer_config.delete_station(db, station_id)


@router.put("/{station_id}/categories", response_model=StationResponse)
async def replace_station_categories(
    station_id: int,
    data: StationCategoriesUpdate,
    db: Session = Depends(get_db),
):
    """
    Replace the product categories routed to a station.

    An empty list is accepted: the station's printers then receive no
    kitchen tickets at all.
    """
    return printer_config.set_station_categories(db, station_id, data.category_ids)
