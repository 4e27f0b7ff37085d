from fastapi import APIRouter, Request
from typing import Dict, Any

router = APIRouter()


@router.get("/healthz")
async def health_check(request: Request) -> Dict[str, Any]:
    """Health check covering providers, the refresh loop and push feeds"""

    dashboard = request.app.state.dashboard
    details = await dashboard.health()
    provider_status = details["providers"]

    # Count available providers
    available_providers = sum(
        1 for status in provider_status.values()
        if status["status"] == "healthy"
    )

    scheduler = details["scheduler"]
    healthy = (
        available_providers > 0
        and scheduler["running"]
        and scheduler["data_status"] != "stale"
    )

    return {
        "status": "healthy" if healthy else "degraded",
        "providers": provider_status,
        "available_providers": available_providers,
        "total_providers": len(provider_status),
        "scheduler": scheduler,
        "push": details["push"],
        "persistence": details["persistence"],
    }
