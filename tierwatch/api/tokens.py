"""
Token Progression API Endpoints

Read-only views of the tier rosters plus a control to run a cycle now.
"""

import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, HTTPException, Query, Request
from pydantic import BaseModel

from ..core.progression import TIER_ORDER, TrackedToken
from ..services.dashboard import TokenDashboard
from ..services.refresh import DataStatus

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/tokens")


# =============================================================================
# Response Models
# =============================================================================


class RosterResponse(BaseModel):
    """Full progression snapshot."""
    data_available: bool
    status: str
    message: Optional[str] = None
    updated_at: Optional[str] = None
    tiers: Dict[str, List[Dict[str, Any]]]
    archive: List[Dict[str, Any]] = []
    last_cycle: Optional[Dict[str, Any]] = None
    placeholder: Optional[List[Dict[str, Any]]] = None


class FeaturedResponse(BaseModel):
    status: str
    slots: int
    tiers: Dict[str, List[Dict[str, Any]]]


class RefetchResponse(BaseModel):
    """Result of a forced refresh cycle."""
    success: bool
    status: str
    message: Optional[str] = None
    cycle: Dict[str, Any]


# =============================================================================
# Helpers
# =============================================================================


def _dashboard(request: Request) -> TokenDashboard:
    return request.app.state.dashboard


def _tokens(tokens: List[TrackedToken]) -> List[Dict[str, Any]]:
    return [token.to_dict() for token in tokens]


# =============================================================================
# Endpoints
# =============================================================================


@router.get("/progression", response_model=RosterResponse)
async def get_progression(request: Request):
    """Current rosters and archive, with the freshness of the data behind them."""
    dashboard = _dashboard(request)
    snapshot = dashboard.tracker.snapshot()
    scheduler = dashboard.scheduler
    last = scheduler.last_result

    placeholder = dashboard.placeholder_tokens()
    return RosterResponse(
        data_available=scheduler.data_status == DataStatus.LIVE or not snapshot.is_empty(),
        status=scheduler.data_status,
        message=scheduler.message,
        updated_at=snapshot.updated_at.isoformat() if snapshot.updated_at else None,
        tiers={tier.value: _tokens(snapshot.roster(tier)) for tier in TIER_ORDER},
        archive=_tokens(snapshot.archive),
        last_cycle=last.to_dict() if last else None,
        placeholder=[record.to_dict() for record in placeholder] if placeholder else None,
    )


@router.get("/featured", response_model=FeaturedResponse)
async def get_featured(request: Request, slots: Optional[int] = Query(None, ge=1, le=50)):
    """First slots of each ordered roster."""
    dashboard = _dashboard(request)
    featured = dashboard.tracker.featured(slots)
    return FeaturedResponse(
        status=dashboard.scheduler.data_status,
        slots=slots or dashboard.tracker.policy.featured_slots,
        tiers={tier.value: _tokens(tokens) for tier, tokens in featured.items()},
    )


@router.post("/refetch", response_model=RefetchResponse)
async def refetch(request: Request):
    """Run a refresh cycle now."""
    scheduler = _dashboard(request).scheduler
    result = await scheduler.refetch()
    return RefetchResponse(
        success=result.ok,
        status=scheduler.data_status,
        message=scheduler.message,
        cycle=result.to_dict(),
    )


@router.get("/{identity}")
async def get_token(identity: str, request: Request) -> Dict[str, Any]:
    """A tracked or archived token."""
    token = _dashboard(request).tracker.lookup(identity)
    if token is None:
        raise HTTPException(status_code=404, detail="Token not tracked")
    return token.to_dict()
