"""
Health check endpoint. No authentication.
"""

from fastapi import APIRouter, Request

router = APIRouter(tags=["health"])


@router.get("/health")
async def health_check(request: Request):
    settings = getattr(request.app.state, "settings", None)
    missing = settings.missing() if settings else ["settings"]
    return {
        "status": "ok" if not missing else "degraded",
        "service": "builder-bridge",
        "missing_config": missing,
    }
