"""
Announcement board service.

Posts and replies belong to a season. Admin posts are authored as "ADMIN";
everyone else posts under their claimed player name (with team), or as
"Community" before they have claimed one.
"""

from typing import Dict, List, Optional
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from backend.database.models import Announcement, AnnouncementReply
from backend.services import data_service
from backend.utils.constants import ADMIN_AUTHOR_NAME, COMMUNITY_AUTHOR_NAME
from backend.utils.datetime_utils import isoformat_or_none
import logging

logger = logging.getLogger(__name__)


class DeleteNotAllowedError(Exception):
    """The user may not delete this post."""


def _post_to_dict(post) -> Dict:
    return {
        "id": post.id,
        "season_id": post.season_id,
        "author_id": post.author_id,
        "author_name": post.author_name,
        "is_admin": bool(post.is_admin),
        "body": post.body,
        "created_at": isoformat_or_none(post.created_at),
    }


def can_delete(post: Dict, user_id: Optional[str], is_admin: bool) -> bool:
    """
    Admins may delete anything. Other users may delete only their own posts,
    and never a post made as admin.
    """
    if is_admin:
        return True
    if not user_id:
        return False
    if post.get("is_admin"):
        return False
    return post.get("author_id") == user_id


async def resolve_author_name(
    session: AsyncSession, season_id: str, user_id: Optional[str], is_admin: bool
) -> str:
    """Label a new post "ADMIN", "<player> (<team>)", "<player>" or "Community"."""
    if is_admin:
        return ADMIN_AUTHOR_NAME
    if not user_id:
        return COMMUNITY_AUTHOR_NAME

    profile = await data_service.get_user_season_profile(session, user_id, season_id)
    player = ((profile or {}).get("player_name") or "").strip()
    if not player:
        return COMMUNITY_AUTHOR_NAME

    team_name = ""
    if profile.get("team_id"):
        team = await data_service.get_team(session, profile["team_id"])
        team_name = ((team or {}).get("team_name") or "").strip()
    return f"{player} ({team_name})" if team_name else player


async def list_announcements(session: AsyncSession, season_id: str) -> List[Dict]:
    """List a season's announcements newest first, each with replies oldest first."""
    result = await session.execute(
        select(Announcement)
        .where(Announcement.season_id == season_id)
        .order_by(Announcement.created_at.desc())
    )
    announcements = result.scalars().all()
    if not announcements:
        return []

    ids = [a.id for a in announcements]
    reply_result = await session.execute(
        select(AnnouncementReply)
        .where(AnnouncementReply.announcement_id.in_(ids))
        .order_by(AnnouncementReply.created_at.asc())
    )
    grouped: Dict[str, List[Dict]] = {}
    for reply in reply_result.scalars().all():
        reply_dict = _post_to_dict(reply)
        reply_dict["announcement_id"] = reply.announcement_id
        grouped.setdefault(reply.announcement_id, []).append(reply_dict)

    posts = []
    for announcement in announcements:
        post = _post_to_dict(announcement)
        post["replies"] = grouped.get(announcement.id, [])
        posts.append(post)
    return posts


async def create_announcement(
    session: AsyncSession, season_id: str, user_id: Optional[str], is_admin: bool, body: str
) -> Dict:
    """
    Post an announcement.

    Raises:
        ValueError: If the body is blank
    """
    text = (body or "").strip()
    if not text:
        raise ValueError("Announcement body is required")

    announcement = Announcement(
        season_id=season_id,
        author_id=None if is_admin else user_id,
        author_name=await resolve_author_name(session, season_id, user_id, is_admin),
        is_admin=bool(is_admin),
        body=text,
    )
    session.add(announcement)
    await session.commit()
    await session.refresh(announcement)
    logger.info(f"Announcement {announcement.id} posted by {announcement.author_name}")
    return _post_to_dict(announcement)


async def create_reply(
    session: AsyncSession,
    announcement_id: str,
    user_id: Optional[str],
    is_admin: bool,
    body: str,
) -> Optional[Dict]:
    """
    Reply to an announcement. Returns None if the announcement does not exist.

    Raises:
        ValueError: If the body is blank
    """
    text = (body or "").strip()
    if not text:
        raise ValueError("Reply body is required")

    result = await session.execute(
        select(Announcement).where(Announcement.id == announcement_id)
    )
    announcement = result.scalar_one_or_none()
    if not announcement:
        return None

    reply = AnnouncementReply(
        announcement_id=announcement.id,
        season_id=announcement.season_id,
        author_id=None if is_admin else user_id,
        author_name=await resolve_author_name(
            session, announcement.season_id, user_id, is_admin
        ),
        is_admin=bool(is_admin),
        body=text,
    )
    session.add(reply)
    await session.commit()
    await session.refresh(reply)
    reply_dict = _post_to_dict(reply)
    reply_dict["announcement_id"] = reply.announcement_id
    return reply_dict


async def _delete_post(session: AsyncSession, model, post_id: str, user_id, is_admin) -> bool:
    result = await session.execute(select(model).where(model.id == post_id))
    post = result.scalar_one_or_none()
    if not post:
        return False
    if not can_delete(_post_to_dict(post), user_id, is_admin):
        raise DeleteNotAllowedError("You can only delete your own posts.")
    await session.delete(post)
    await session.commit()
    return True


async def delete_announcement(
    session: AsyncSession, announcement_id: str, user_id: Optional[str], is_admin: bool
) -> bool:
    """
    Delete an announcement and its replies.

    Raises:
        DeleteNotAllowedError: If the user may not delete it
    """
    return await _delete_post(session, Announcement, announcement_id, user_id, is_admin)


async def delete_reply(
    session: AsyncSession, reply_id: str, user_id: Optional[str], is_admin: bool
) -> bool:
    """
    Delete a reply.

    Raises:
        DeleteNotAllowedError: If the user may not delete it
    """
    return await _delete_post(session, AnnouncementReply, reply_id, user_id, is_admin)
