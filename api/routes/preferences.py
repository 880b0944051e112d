"""User preference endpoints."""

import logging
from fastapi import APIRouter, HTTPException, Depends

from api.dependencies import get_current_user, get_dashboard
from api.models import PreferencesRequest, PreferencesResponse
from core.units import DisplayUnit
from dashboard import Dashboard
from identity import User

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/user", tags=["preferences"])


@router.get("/preferences", response_model=PreferencesResponse)
async def get_preferences(
    user: User = Depends(get_current_user),
    dashboard: Dashboard = Depends(get_dashboard),
):
    """Get the user's preferred display unit."""
    unit = await dashboard.store.get_display_unit(user.id)
    return PreferencesResponse(display_unit=unit.value)


@router.post("/preferences", response_model=PreferencesResponse)
async def update_preferences(
    request: PreferencesRequest,
    user: User = Depends(get_current_user),
    dashboard: Dashboard = Depends(get_dashboard),
):
    """Set the user's preferred display unit (SATS or BTC)."""
    try:
        unit = DisplayUnit(request.display_unit.upper())
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid display unit")

    try:
        await dashboard.store.set_display_unit(user.id, unit)
    except Exception as e:
        logger.error(f"Failed to save preferences for {user.id}: {e}")
        raise HTTPException(status_code=500, detail="Internal error")

    return PreferencesResponse(display_unit=unit.value)
