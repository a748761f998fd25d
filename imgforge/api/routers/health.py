from fastapi import APIRouter

from imgforge.api.dependencies import Analyzer, Repository, Storage

router = APIRouter(tags=["Health"])


@router.get("/health")
async def health_check() -> dict:
    return {"status": "healthy", "service": "imgforge"}


@router.get("/health/ready")
async def readiness_check(repository: Repository, storage: Storage, analyzer: Analyzer) -> dict:
    checks = {}

    try:
        repository.count()
        checks["database"] = "connected"
    except Exception:
        checks["database"] = "disconnected"

    try:
        storage.exists("health-check")
        checks["storage"] = "connected"
    except Exception:
        checks["storage"] = "disconnected"

    if analyzer is None:
        checks["ai"] = "disabled"
    else:
        checks["ai"] = "available" if analyzer.is_available() else "unavailable"

    ready = checks["database"] == "connected" and checks["storage"] == "connected"
    return {"status": "ready" if ready else "not_ready", **checks}
