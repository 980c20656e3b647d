"""Announcement board route handlers."""

import asyncio
import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from backend.database.db import get_db_session
from backend.services import announcement_service, context_service, push_service
from backend.api.auth_dependencies import get_user_with_admin_flag
from backend.models.schemas import PostRequest, AnnouncementResponse, ReplyResponse

logger = logging.getLogger(__name__)
router = APIRouter()

# Strong references to in-flight webhook dispatches
_background_tasks = set()


def _schedule_push(record: dict) -> None:
    task = asyncio.create_task(push_service.dispatch_announcement_webhook(record))
    _background_tasks.add(task)
    task.add_done_callback(_background_tasks.discard)


@router.get("/api/announcements", response_model=list[AnnouncementResponse])
async def list_announcements(
    user: dict = Depends(get_user_with_admin_flag),
    session: AsyncSession = Depends(get_db_session),
):
    """Current season's announcements, newest first, with replies nested."""
    try:
        context = await context_service.resolve_current_season(session)
    except context_service.SeasonNotSetError as e:
        raise HTTPException(status_code=409, detail=str(e))
    return await announcement_service.list_announcements(session, context["season_id"])


@router.post("/api/announcements", response_model=AnnouncementResponse)
async def create_announcement(
    payload: PostRequest,
    user: dict = Depends(get_user_with_admin_flag),
    session: AsyncSession = Depends(get_db_session),
):
    """
    Post to the board. Every registered device gets a push notification
    when the announcement webhook is configured.
    """
    try:
        context = await context_service.resolve_current_season(session)
        post = await announcement_service.create_announcement(
            session,
            context["season_id"],
            user["id"],
            user["is_admin_unlocked"],
            payload.body,
        )
    except context_service.SeasonNotSetError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    _schedule_push(post)
    return {**post, "replies": []}


@router.post("/api/announcements/{announcement_id}/replies", response_model=ReplyResponse)
async def create_reply(
    announcement_id: str,
    payload: PostRequest,
    user: dict = Depends(get_user_with_admin_flag),
    session: AsyncSession = Depends(get_db_session),
):
    """Reply to an announcement."""
    try:
        reply = await announcement_service.create_reply(
            session, announcement_id, user["id"], user["is_admin_unlocked"], payload.body
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    if not reply:
        raise HTTPException(status_code=404, detail="Announcement not found")
    return reply


@router.delete("/api/announcements/{announcement_id}")
async def delete_announcement(
    announcement_id: str,
    user: dict = Depends(get_user_with_admin_flag),
    session: AsyncSession = Depends(get_db_session),
):
    """Delete an announcement and its replies."""
    try:
        deleted = await announcement_service.delete_announcement(
            session, announcement_id, user["id"], user["is_admin_unlocked"]
        )
    except announcement_service.DeleteNotAllowedError as e:
        raise HTTPException(status_code=403, detail=str(e))
    if not deleted:
        raise HTTPException(status_code=404, detail="Announcement not found")
    return {"success": True}


@router.delete("/api/announcements/replies/{reply_id}")
async def delete_reply(
    reply_id: str,
    user: dict = Depends(get_user_with_admin_flag),
    session: AsyncSession = Depends(get_db_session),
):
    """Delete a reply."""
    try:
        deleted = await announcement_service.delete_reply(
            session, reply_id, user["id"], user["is_admin_unlocked"]
        )
    except announcement_service.DeleteNotAllowedError as e:
        raise HTTPException(status_code=403, detail=str(e))
    if not deleted:
        raise HTTPException(status_code=404, detail="Reply not found")
    return {"success": True}
