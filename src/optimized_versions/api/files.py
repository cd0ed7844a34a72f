"""Output file listing endpoints."""

from fastapi import APIRouter

from optimized_versions.api.deps import OrchestratorDep
from optimized_versions.models.output_file import OutputFile

router = APIRouter(prefix="/files", tags=["files"])


@router.get("", response_model=list[OutputFile])
async def list_output_files(
    orchestrator: OrchestratorDep,
    source_item_id: str | None = None,
) -> list[OutputFile]:
    """List produced optimized versions, optionally for one item."""
    return await orchestrator.list_output_files(source_item_id)
