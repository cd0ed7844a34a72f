"""API dependencies."""

from typing import Annotated

from fastapi import Depends, Header, HTTPException, Request

from optimized_versions.core.config import Settings
from optimized_versions.services.catalog import MediaCatalog
from optimized_versions.services.orchestrator import JobOrchestrator


def get_settings(request: Request) -> Settings:
    """Get the settings the app was created with."""
    return request.app.state.settings


def get_orchestrator(request: Request) -> JobOrchestrator:
    """Get the job orchestrator instance."""
    orchestrator = getattr(request.app.state, "orchestrator", None)
    if orchestrator is None:
        raise RuntimeError("Services not initialized")
    return orchestrator


def get_catalog(request: Request) -> MediaCatalog:
    """Get the media catalog instance."""
    catalog = getattr(request.app.state, "catalog", None)
    if catalog is None:
        raise RuntimeError("Services not initialized")
    return catalog


async def verify_api_key(
    settings: Annotated[Settings, Depends(get_settings)],
    authorization: Annotated[str | None, Header()] = None,
) -> None:
    """Verify API key if configured."""
    api_key = settings.server.api_key
    if not api_key:
        return  # No API key required

    if not authorization:
        raise HTTPException(status_code=401, detail="Missing authorization header")

    # Expect "Bearer <token>"
    parts = authorization.split()
    if len(parts) != 2 or parts[0].lower() != "bearer":
        raise HTTPException(status_code=401, detail="Invalid authorization format")

    if parts[1] != api_key:
        raise HTTPException(status_code=401, detail="Invalid API key")


# Type aliases for dependency injection
OrchestratorDep = Annotated[JobOrchestrator, Depends(get_orchestrator)]
CatalogDep = Annotated[MediaCatalog, Depends(get_catalog)]
ApiKeyDep = Annotated[None, Depends(verify_api_key)]
