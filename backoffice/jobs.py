"""
Background job queueing and status tracking
"""

import asyncio
import logging
from typing import Optional

from arq import create_pool
from arq.jobs import Job, JobStatus
from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from .auth import get_current_user
from .config import get_redis_settings
from .models import AdminUser

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/jobs", tags=["Jobs"])


class JobStatusResponse(BaseModel):
    jobId: str
    status: str  # queued, in_progress, complete, failed, not_found
    result: Optional[dict] = None
    error: Optional[str] = None


async def enqueue_job(function_name: str, *args, **kwargs) -> Optional[str]:
    """
    Queue a job on the arq worker.

    Returns the job id, or None when the queue is unreachable. Callers treat
    background work as best effort and never fail the request over it.
    """
    pool = None
    try:
        pool = await asyncio.wait_for(create_pool(get_redis_settings()), timeout=20.0)
        job = await pool.enqueue_job(function_name, *args, **kwargs)
        if job is None:
            logger.info(f"ℹ️ Job {function_name} already queued")
            return None
        logger.info(f"✅ Queued {function_name}: {job.job_id}")
        return job.job_id
    except Exception as e:
        logger.warning(f"⚠️ Could not queue {function_name}: {e}")
        return None
    finally:
        if pool is not None:
            await pool.close()


@router.get("/status/{job_id}", response_model=JobStatusResponse)
async def get_job_status(job_id: str, current_user: AdminUser = Depends(get_current_user)):
    """Status of a background job such as a payment reminder setup"""
    try:
        pool = await asyncio.wait_for(create_pool(get_redis_settings()), timeout=20.0)
    except Exception as e:
        logger.warning(f"⏰ Job queue unreachable: {e}")
        raise HTTPException(status_code=504, detail="Timeout connecting to job queue - please try again") from e

    try:
        job = Job(job_id, pool)
        job_status = await asyncio.wait_for(job.status(), timeout=15.0)

        status_map = {
            JobStatus.deferred: "queued",
            JobStatus.queued: "queued",
            JobStatus.in_progress: "in_progress",
            JobStatus.complete: "complete",
            JobStatus.not_found: "not_found",
        }
        if job_status == JobStatus.not_found:
            raise HTTPException(status_code=404, detail="Job not found")

        status = status_map.get(job_status, "unknown")
        result = None
        error = None
        if job_status == JobStatus.complete:
            try:
                job_result = await asyncio.wait_for(job.result(), timeout=10.0)
                result = job_result if isinstance(job_result, dict) else {"data": job_result}
            except asyncio.TimeoutError:
                error = "Timeout retrieving job result"
                status = "failed"
            except Exception as e:
                error = str(e)
                status = "failed"
                logger.error(f"❌ Job {job_id} failed: {error}")

        return JobStatusResponse(jobId=job_id, status=status, result=result, error=error)
    finally:
        await pool.close()
