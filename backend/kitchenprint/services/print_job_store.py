"""
Print Job Store

Durable record of every delivery attempt. Each mutation commits on its
own so a job row survives whatever happens to the rest of the dispatch.
"""
import json
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy.orm import Session

from kitchenprint.exceptions import JobStateError, NotFoundError
from kitchenprint.logging_config import get_logger
from kitchenprint.models.print_job import PrintJob, PrintJobStatus, PrintJobType
from kitchenprint.models.printer import Printer

logger = get_logger(__name__)


class PrintJobStore:
    def __init__(self, db: Session):
        self.db = db

    def create_pending(
        self,
        printer: Printer,
        job_type: PrintJobType,
        order_id: Optional[str],
        copy_number: int,
        content: Dict[str, Any],
    ) -> PrintJob:
        job = PrintJob(
            printer_id=printer.id,
            order_id=order_id,
            job_type=job_type,
            copy_number=copy_number,
            content=json.dumps(content, default=str, ensure_ascii=False),
            status=PrintJobStatus.PENDING,
            attempts=0,
        )
        self.db.add(job)
        self.db.commit()
        self.db.refresh(job)
        return job

    def _close(self, job: PrintJob, status: PrintJobStatus) -> None:
        if job.is_terminal:
            raise JobStateError(
                f"Print job {job.id} is already {job.status.value}",
                details={"job_id": job.id, "status": job.status.value, "requested": status.value},
            )
        job.status = status
        job.attempts = (job.attempts or 0) + 1

    def mark_sent(self, job: PrintJob) -> PrintJob:
        self._close(job, PrintJobStatus.SENT)
        job.sent_at = datetime.utcnow()
        job.error = None
        self.db.commit()
        return job

    def mark_failed(self, job: PrintJob, error: str) -> PrintJob:
        self._close(job, PrintJobStatus.FAILED)
        job.error = error or "Unknown print error"
        self.db.commit()
        logger.warning(
            "Print job failed",
            extra={"job_id": job.id, "printer_id": job.printer_id, "error": job.error},
        )
        return job

    def get(self, job_id: int) -> PrintJob:
        job = self.db.query(PrintJob).filter(PrintJob.id == job_id).first()
        if not job:
            raise NotFoundError("PrintJob", job_id)
        return job

    def list_jobs(
        self,
        printer_id: Optional[int] = None,
        order_id: Optional[str] = None,
        status: Optional[PrintJobStatus] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> Tuple[int, List[PrintJob]]:
        """Jobs newest first, with the unpaginated total."""
        query = self.db.query(PrintJob)
        if printer_id is not None:
            query = query.filter(PrintJob.printer_id == printer_id)
        if order_id is not None:
            query = query.filter(PrintJob.order_id == order_id)
        if status is not None:
            query = query.filter(PrintJob.status == status)

        total = query.count()
        items = (
            query.order_by(PrintJob.created_at.desc(), PrintJob.id.desc())
            .offset(offset)
            .limit(limit)
            .all()
        )
        return total, items
