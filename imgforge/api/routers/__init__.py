from .health import router as health_router
from .images import router as images_router
from .jobs import router as jobs_router

__all__ = ["health_router", "images_router", "jobs_router"]
