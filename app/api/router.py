from fastapi import APIRouter
from app.api.v1 import integrations
from app.config import settings
from app.core.database import get_db_manager
from app.dependencies import get_sync_worker

router = APIRouter()

router.include_router(integrations.router, prefix="/api/v1")

@router.get("/")
async def root():
    return {
        "message": settings.APP_NAME,
        "version": "1.0.0",
        "docs": "/docs",
        "integrations": "/api/v1/integrations/{integration_id}"
    }

@router.get("/health")
async def health():
    try:
        get_db_manager().check_connection()
        return {"status": "healthy", "database": "connected"}
    except Exception as e:
        return {"status": "unhealthy", "database": "unreachable", "error": str(e)}

@router.get("/worker/status")
async def worker_status():
    try:
        worker = get_sync_worker()
        status = worker.get_status()
        status["status"] = "healthy" if status["healthy"] else "unhealthy"
        return status

    except Exception as e:
        return {
            "running": False,
            "healthy": False,
            "error": str(e),
            "status": "error"
        }
