import logging
from datetime import timedelta
from typing import Any, Optional
from uuid import uuid4

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Request
from pydantic import BaseModel
from sqlmodel import Session

from core.deps import verify_api_key
from services.attendance_reminder_service import ReminderScheduler
from utils.ttl_store import TTLStore

logger = logging.getLogger(__name__)

router = APIRouter(dependencies=[Depends(verify_api_key)])


class JobStatus(BaseModel):
    status: str
    result: Optional[Any] = None
    error: Optional[str] = None


# Finished jobs are kept for a day, then expire on read
job_store = TTLStore(default_ttl=timedelta(hours=24))


def run_attendance_reminders(job_id: str, scheduler: ReminderScheduler, bind) -> None:
    """Runs in the background with its own session."""
    try:
        with Session(bind) as session:
            sent = scheduler.run_due(session)
        job_store.set(job_id, JobStatus(status="complete", result=sent))
    except Exception as e:
        logger.exception("Background job %s failed", job_id)
        job_store.set(job_id, JobStatus(status="failed", error=str(e)))


@router.post("/attendance-reminders")
def request_attendance_reminders(request: Request, background_tasks: BackgroundTasks):
    """
    Kick off the missed check-in / check-out reminder pass in the background.
    Meant to be hit every few minutes by an external cron.
    """
    job_id = str(uuid4())
    job_store.set(job_id, JobStatus(status="in_progress"))
    background_tasks.add_task(
        run_attendance_reminders,
        job_id,
        request.app.state.reminder_scheduler,
        request.app.state.engine,
    )
    return {"success": True, "job_id": job_id}


@router.get("/{job_id}", response_model=JobStatus)
def get_job_status(job_id: str):
    job = job_store.get(job_id)
    if not job:
        raise HTTPException(status_code=404, detail="Job not found")
    return job
