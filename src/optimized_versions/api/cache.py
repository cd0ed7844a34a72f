"""Cache management API endpoints."""

import logging

from fastapi import APIRouter, HTTPException, Response

from optimized_versions.api.deps import ApiKeyDep, OrchestratorDep
from optimized_versions.core.errors import PersistenceError

logger = logging.getLogger(__name__)

router = APIRouter(tags=["cache"])


@router.delete("/cache", status_code=204)
async def clear_cache(
    orchestrator: OrchestratorDep,
    _: ApiKeyDep,
) -> Response:
    """Delete every job and output file record."""
    try:
        await orchestrator.clear_cache()
    except PersistenceError as e:
        logger.error(f"Failed to clear cache: {e}")
        raise HTTPException(status_code=500, detail="Failed to clear cache")
    return Response(status_code=204)
