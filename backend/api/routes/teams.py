"""Team management route handlers."""

import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from backend.database.db import get_db_session
from backend.services import data_service, context_service
from backend.api.auth_dependencies import require_user, require_admin_unlocked
from backend.models.schemas import (
    TeamResponse,
    CreateTeamRequest,
    UpdateTeamRequest,
    PlayerSlotRequest,
)

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/api/teams", response_model=list[TeamResponse])
async def list_teams(
    active_only: bool = False,
    user: dict = Depends(require_user),
    session: AsyncSession = Depends(get_db_session),
):
    """List the current season's teams ordered by name."""
    try:
        context = await context_service.resolve_current_season(session)
    except context_service.SeasonNotSetError as e:
        raise HTTPException(status_code=409, detail=str(e))
    return await data_service.list_teams(session, context["season_id"], active_only=active_only)


@router.post("/api/teams", response_model=TeamResponse)
async def create_team(
    payload: CreateTeamRequest,
    user: dict = Depends(require_admin_unlocked),
    session: AsyncSession = Depends(get_db_session),
):
    """Create a team in the current season."""
    try:
        context = await context_service.resolve_current_season(session)
        team = await data_service.create_team(
            session,
            context["season_id"],
            payload.team_name,
            division_id=payload.division_id,
            player1_name=payload.player1_name,
            player2_name=payload.player2_name,
        )
        logger.info(f"Created team {team['team_name']} ({team['id']})")
        return team
    except context_service.SeasonNotSetError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except data_service.DuplicateNameError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except LookupError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.patch("/api/teams/{team_id}", response_model=TeamResponse)
async def update_team(
    team_id: str,
    payload: UpdateTeamRequest,
    user: dict = Depends(require_admin_unlocked),
    session: AsyncSession = Depends(get_db_session),
):
    """Rename a team, edit its players, move it to another division or (de)activate it."""
    try:
        team = await data_service.update_team(
            session, team_id, **payload.model_dump(exclude_unset=True)
        )
    except data_service.DuplicateNameError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except LookupError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    if not team:
        raise HTTPException(status_code=404, detail="Team not found")
    return team


@router.post("/api/teams/{team_id}/paid", response_model=TeamResponse)
async def toggle_paid(
    team_id: str,
    payload: PlayerSlotRequest,
    user: dict = Depends(require_admin_unlocked),
    session: AsyncSession = Depends(get_db_session),
):
    """Flip the paid flag for one player on a team."""
    team = await data_service.toggle_player_paid(session, team_id, payload.player)
    if not team:
        raise HTTPException(status_code=404, detail="Team not found")
    return team


@router.delete("/api/teams/{team_id}")
async def delete_team(
    team_id: str,
    user: dict = Depends(require_admin_unlocked),
    session: AsyncSession = Depends(get_db_session),
):
    """Delete a team."""
    if not await data_service.delete_team(session, team_id):
        raise HTTPException(status_code=404, detail="Team not found")
    return {"success": True}
