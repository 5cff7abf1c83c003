"""
Print Jobs API Endpoints

Read-only access to the print job audit trail.
"""
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from kitchenprint.db.session import get_db
from kitchenprint.models.print_job import PrintJobStatus
from kitchenprint.schemas.dispatch import PrintJobListResponse, PrintJobResponse
from kitchenprint.services.print_job_store import PrintJobStore

router = APIRouter()


@router.get("", response_model=PrintJobListResponse)
async def list_print_jobs(
    printer_id: Optional[int] = None,
    order_id: Optional[str] = None,
    status: Optional[PrintJobStatus] = None,
    limit: int = Query(50, ge=1, le=500),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db),
):
    """List print jobs, newest first"""
    total, items = PrintJobStore(db).list_jobs(
        printer_id=printer_id,
        order_id=order_id,
        status=status,
        limit=limit,
        offset=offset,
    )
    return PrintJobListResponse(
        total=total,
        items=[PrintJobResponse.model_validate(job) for job in items],
    )


@router.get("/{job_id}", response_model=PrintJobResponse)
async def get_print_job(job_id: int, db: Session = Depends(get_db)):
    return PrintJobStore(db).get(job_id)
