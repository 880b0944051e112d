"""Shared dependencies for API routes."""

from dataclasses import dataclass
from typing import Optional

from fastapi import Depends, Header, HTTPException, Request

from core.types import DaemonConfig
from dashboard import Dashboard
from identity import TEAM_ADMIN, Team, User


@dataclass
class TeamAccess:
    """A user acting on a team they belong to."""
    user: User
    team: Team


@dataclass
class FmcdAccess(TeamAccess):
    """Team access plus the team's active FMCD configuration."""
    config: DaemonConfig


def get_dashboard(request: Request) -> Dashboard:
    """Get the dashboard instance created at startup."""
    dashboard = getattr(request.app.state, "dashboard", None)
    if not dashboard:
        raise HTTPException(status_code=503, detail="Dashboard not initialized")
    return dashboard


def get_current_user(
    authorization: Optional[str] = Header(default=None),
    dashboard: Dashboard = Depends(get_dashboard),
) -> User:
    """Resolve the bearer token in the Authorization header."""
    token = None
    if authorization and authorization.lower().startswith("bearer "):
        token = authorization[7:].strip()

    user = dashboard.identity.get_current_user(token)
    if not user:
        raise HTTPException(status_code=401, detail="Unauthorized")
    return user


def get_team_access(
    team_id: str,
    user: User = Depends(get_current_user),
    dashboard: Dashboard = Depends(get_dashboard),
) -> TeamAccess:
    team = dashboard.identity.get_team(user.id, team_id)
    if not team:
        raise HTTPException(status_code=404, detail="Team not found")
    return TeamAccess(user=user, team=team)


def get_team_admin(
    access: TeamAccess = Depends(get_team_access),
    dashboard: Dashboard = Depends(get_dashboard),
) -> TeamAccess:
    if not dashboard.identity.has_permission(access.user, access.team, TEAM_ADMIN):
        raise HTTPException(status_code=403, detail="Team admin permission required")
    return access


async def get_fmcd_access(
    access: TeamAccess = Depends(get_team_access),
    dashboard: Dashboard = Depends(get_dashboard),
) -> FmcdAccess:
    """Require an active FMCD configuration for the team."""
    config = await dashboard.store.get_config(access.team.id)
    if not config:
        raise HTTPException(status_code=404, detail="No FMCD configuration found for this team")
    if not config.is_active:
        raise HTTPException(status_code=403, detail="FMCD configuration is not active")
    return FmcdAccess(user=access.user, team=access.team, config=config)
