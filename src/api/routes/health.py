"""
Health check endpoints.

Provides endpoints for monitoring application health and status.
"""

from typing import Any, Dict

from fastapi import APIRouter

from config.database import get_supabase_client_optional
from config.settings import get_settings
from core.counters import EVENT_COUNTER


router = APIRouter(tags=["Health"])


@router.get("/health")
async def health_check() -> Dict[str, Any]:
    """
    Basic health check endpoint.

    Returns:
        Health status with basic info
    """
    return {
        "status": "healthy",
        "service": "feed-api",
    }


@router.get("/health/detailed")
def detailed_health_check() -> Dict[str, Any]:
    """
    Detailed health check with dependency status.

    Checks:
    - Configuration loaded
    - Storage backend (Supabase connection, or in-memory)
    - Whether embeddings / intent routing are configured
    """
    settings = get_settings()

    storage_status = "unknown"
    storage_error = None
    if settings.storage_backend == "memory":
        storage_status = "memory"
    else:
        try:
            client = get_supabase_client_optional()
            if client:
                result = client.table("catalog_items").select("item_id").limit(1).execute()
                storage_status = "connected" if result.data else "empty"
            else:
                storage_status = "not_configured"
        except Exception as e:
            storage_status = "error"
            storage_error = str(e)

    healthy = storage_status in ("connected", "empty", "memory")
    return {
        "status": "healthy" if healthy else "degraded",
        "service": "feed-api",
        "environment": settings.environment,
        "checks": {
            "config": "ok",
            "storage": {
                "backend": settings.storage_backend,
                "status": storage_status,
                "error": storage_error,
            },
            "embeddings": "configured" if settings.openai_api_key else "zero_vector_fallback",
            "events_ingested": EVENT_COUNTER.total,
        },
    }


@router.get("/ready")
async def readiness_check() -> Dict[str, str]:
    """
    Kubernetes-style readiness probe.

    Returns 200 if the service is ready to accept traffic.
    """
    settings = get_settings()
    if settings.storage_backend == "memory":
        return {"status": "ready"}

    client = get_supabase_client_optional()
    if client is None:
        return {"status": "not_ready", "reason": "database_not_configured"}

    return {"status": "ready"}


@router.get("/live")
async def liveness_check() -> Dict[str, str]:
    """
    Kubernetes-style liveness probe.

    Returns 200 if the service is alive.
    """
    return {"status": "alive"}
