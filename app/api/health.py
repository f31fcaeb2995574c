from fastapi import APIRouter, HTTPException, Request
from datetime import datetime
from app.database import check_database_health

router = APIRouter(tags=["Health"])


def _component(status):
    if status is None:
        return "disabled"
    return "connected" if status else "disconnected"


@router.get("/health")
async def health_check(request: Request):
    """Application health check endpoint"""
    settings = request.app.state.settings
    publisher = request.app.state.event_publisher
    try:
        db_health = await check_database_health(settings)
    except Exception as e:
        raise HTTPException(
            status_code=503,
            detail=f"Health check failed: {str(e)}"
        )

    overall_status = "healthy" if db_health["overall"] else "unhealthy"

    return {
        "status": overall_status,
        "timestamp": datetime.utcnow(),
        "storage": {
            "backend": settings.storage_backend,
            "mongodb": _component(db_health["mongodb"])
        },
        "events": {
            "backend": settings.event_backend,
            "publisher": type(publisher).__name__
        },
        "realtime": {
            "subscriptions": request.app.state.event_hub.subscription_count()
        },
        "service": settings.app_name
    }


@router.get("/health/ready")
async def readiness_check(request: Request):
    """Kubernetes readiness probe endpoint"""
    db_health = await check_database_health(request.app.state.settings)

    if not db_health["overall"]:
        raise HTTPException(
            status_code=503,
            detail="Service not ready - database connections failed"
        )

    return {"status": "ready"}


@router.get("/health/live")
async def liveness_check():
    """Kubernetes liveness probe endpoint"""
    return {"status": "alive", "timestamp": datetime.utcnow()}
