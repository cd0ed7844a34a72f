"""Transcode job API endpoints."""

import logging

from fastapi import APIRouter, HTTPException, Response
from fastapi.responses import FileResponse

from optimized_versions.api.deps import ApiKeyDep, CatalogDep, OrchestratorDep
from optimized_versions.core.errors import (
    JobNotFoundError,
    PathRejectedError,
    PersistenceError,
    SourceNotFoundError,
)
from optimized_versions.models.job import Job, JobCreated, JobStatusResponse

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/jobs", tags=["jobs"])

CONTENT_TYPES = {
    ".mkv": "video/x-matroska",
    ".mp4": "video/mp4",
    ".avi": "video/x-msvideo",
    ".mov": "video/quicktime",
    ".wmv": "video/x-ms-wmv",
}


def content_type_for(file_name: str) -> str:
    """Map a file extension to its video content type."""
    for ext, content_type in CONTENT_TYPES.items():
        if file_name.lower().endswith(ext):
            return content_type
    return "application/octet-stream"


@router.post("/{source_item_id}", response_model=JobCreated)
async def start_job(
    source_item_id: str,
    orchestrator: OrchestratorDep,
    catalog: CatalogDep,
    _: ApiKeyDep,
    device_id: str | None = None,
) -> JobCreated:
    """Queue an optimized version of a catalog item."""
    source_path = catalog.get_source_path(source_item_id)
    if source_path is None:
        raise HTTPException(status_code=404, detail=f"Item not found: {source_item_id}")

    try:
        job_id = await orchestrator.start_job(source_path, source_item_id, device_id)
    except SourceNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except PathRejectedError as e:
        logger.warning(f"Rejected output location for item {source_item_id}: {e}")
        raise HTTPException(status_code=403, detail="Output location not allowed")
    except PersistenceError as e:
        logger.error(f"Failed to create job for item {source_item_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to create job")

    return JobCreated(job_id=job_id)


@router.get("", response_model=list[Job])
async def list_jobs(
    orchestrator: OrchestratorDep,
    device_id: str | None = None,
) -> list[Job]:
    """List jobs, optionally for one device."""
    return await orchestrator.list_jobs(device_id)


@router.get("/{job_id}", response_model=Job)
async def get_job(
    job_id: str,
    orchestrator: OrchestratorDep,
) -> Job:
    """Get a job by ID."""
    job = await orchestrator.get_job(job_id)
    if not job:
        raise HTTPException(status_code=404, detail="Job not found")
    return job


@router.get("/{job_id}/status", response_model=JobStatusResponse)
async def get_job_status(
    job_id: str,
    orchestrator: OrchestratorDep,
) -> JobStatusResponse:
    """Get a job's status; unknown ids report not_found."""
    status = await orchestrator.get_status(job_id)
    return JobStatusResponse(job_id=job_id, status=status)


@router.delete("/{job_id}", status_code=204)
async def cancel_job(
    job_id: str,
    orchestrator: OrchestratorDep,
    _: ApiKeyDep,
) -> Response:
    """Cancel a pending or processing job."""
    try:
        await orchestrator.cancel_job(job_id)
    except JobNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return Response(status_code=204)


@router.get("/{job_id}/download")
async def download_output(
    job_id: str,
    orchestrator: OrchestratorDep,
) -> FileResponse:
    """Stream a completed job's output file."""
    try:
        path = await orchestrator.get_output_path(job_id)
    except JobNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except PathRejectedError as e:
        logger.warning(f"Refused download for job {job_id}: {e}")
        raise HTTPException(status_code=403, detail="Access denied")

    return FileResponse(path, media_type=content_type_for(path.name), filename=path.name)
