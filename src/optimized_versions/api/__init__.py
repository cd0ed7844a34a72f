"""API routers."""

from .cache import router as cache_router
from .files import router as files_router
from .jobs import router as jobs_router

__all__ = ["cache_router", "files_router", "jobs_router"]
