"""
SQLAlchemy ORM models for the league companion service.
"""

import enum
import uuid
from sqlalchemy import (
    Column,
    Integer,
    String,
    Text,
    Boolean,
    Date,
    DateTime,
    JSON,
    ForeignKey,
    UniqueConstraint,
    CheckConstraint,
    Index,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from backend.database.db import Base
from backend.utils.datetime_utils import utcnow


def new_id() -> str:
    """Generate an opaque string identifier for a new row."""
    return str(uuid.uuid4())


class AttendanceStatus(str, enum.Enum):
    """Player attendance status for a week."""

    IN = "IN"
    OUT = "OUT"


class User(Base):
    """Device users. Every install signs in anonymously on first launch."""

    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=new_id)
    is_anonymous = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    season_profiles = relationship(
        "UserSeasonProfile", back_populates="user", cascade="all, delete-orphan"
    )


class Season(Base):
    """A league's time-bounded competition instance."""

    __tablename__ = "seasons"

    id = Column(String(36), primary_key=True, default=new_id)
    name = Column(String, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    divisions = relationship("Division", back_populates="season", cascade="all, delete-orphan")
    teams = relationship("Team", back_populates="season", cascade="all, delete-orphan")
    schedule_weeks = relationship("ScheduleWeek", cascade="all, delete-orphan")
    matches = relationship("Match", cascade="all, delete-orphan")
    scoring_week_locks = relationship("ScoringWeekLock", cascade="all, delete-orphan")

    __table_args__ = (Index("idx_seasons_name", "name"),)


class Division(Base):
    """A grouping of teams within a season."""

    __tablename__ = "divisions"

    id = Column(String(36), primary_key=True, default=new_id)
    season_id = Column(String(36), ForeignKey("seasons.id", ondelete="CASCADE"), nullable=False)
    name = Column(String, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    season = relationship("Season", back_populates="divisions")
    teams = relationship("Team", back_populates="division")

    __table_args__ = (Index("idx_divisions_season", "season_id"),)


class Team(Base):
    """A two-player team. Either player slot may be empty."""

    __tablename__ = "teams"

    id = Column(String(36), primary_key=True, default=new_id)
    season_id = Column(String(36), ForeignKey("seasons.id", ondelete="CASCADE"), nullable=False)
    division_id = Column(
        String(36), ForeignKey("divisions.id", ondelete="SET NULL"), nullable=True
    )
    team_name = Column(String, nullable=False)
    player1_name = Column(String, nullable=True)
    player2_name = Column(String, nullable=True)
    player1_paid = Column(Boolean, default=False, nullable=False)
    player2_paid = Column(Boolean, default=False, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    season = relationship("Season", back_populates="teams")
    division = relationship("Division", back_populates="teams")

    __table_args__ = (
        Index("idx_teams_season", "season_id"),
        Index("idx_teams_season_active", "season_id", "is_active"),
        Index("idx_teams_division", "division_id"),
    )


class AppSettings(Base):
    """Singleton row holding the current season, playoff flag and league code."""

    __tablename__ = "app_settings"

    id = Column(Integer, primary_key=True, default=1)
    current_season_id = Column(
        String(36), ForeignKey("seasons.id", ondelete="SET NULL"), nullable=True
    )
    playoff_mode = Column(Boolean, default=False, nullable=False)
    league_code = Column(String, nullable=True)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    current_season = relationship("Season")

    # Only one row is ever allowed
    __table_args__ = (CheckConstraint("id = 1", name="ck_app_settings_singleton"),)


class Attendance(Base):
    """Weekly IN/OUT flags for both players of a team."""

    __tablename__ = "attendance"

    id = Column(Integer, primary_key=True, autoincrement=True)
    season_id = Column(String(36), ForeignKey("seasons.id", ondelete="CASCADE"), nullable=False)
    week = Column(Integer, nullable=False)
    team_id = Column(String(36), ForeignKey("teams.id", ondelete="CASCADE"), nullable=False)
    division_id = Column(String(36), nullable=True)
    player1_in = Column(Boolean, nullable=True)
    player2_in = Column(Boolean, nullable=True)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        UniqueConstraint("season_id", "week", "team_id", name="uq_attendance_season_week_team"),
        CheckConstraint("week > 0", name="ck_attendance_week_positive"),
        Index("idx_attendance_season_week", "season_id", "week"),
    )


class UserSeasonProfile(Base):
    """Links a user to the team and player slot they claimed for a season."""

    __tablename__ = "user_season_profiles"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    season_id = Column(String(36), ForeignKey("seasons.id", ondelete="CASCADE"), nullable=False)
    team_id = Column(String(36), ForeignKey("teams.id", ondelete="SET NULL"), nullable=True)
    player_name = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    user = relationship("User", back_populates="season_profiles")

    __table_args__ = (
        UniqueConstraint("user_id", "season_id", name="uq_user_season_profile"),
    )


class UserPushToken(Base):
    """Expo push token registered by a device."""

    __tablename__ = "user_push_tokens"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=True)
    season_id = Column(String(36), nullable=True)
    expo_push_token = Column(String, nullable=False, unique=True)
    platform = Column(String(20), nullable=True)
    last_seen_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())


class AdminUnlockSession(Base):
    """Present while a user has the admin screens unlocked."""

    __tablename__ = "admin_unlock_sessions"

    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), primary_key=True)
    unlocked_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)


class Announcement(Base):
    """League announcement posted to a season's board."""

    __tablename__ = "announcements"

    id = Column(String(36), primary_key=True, default=new_id)
    season_id = Column(String(36), ForeignKey("seasons.id", ondelete="CASCADE"), nullable=False)
    author_id = Column(String(36), ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    author_name = Column(String, nullable=False)
    is_admin = Column(Boolean, default=False, nullable=False)
    body = Column(Text, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    replies = relationship(
        "AnnouncementReply",
        back_populates="announcement",
        cascade="all, delete-orphan",
        order_by="AnnouncementReply.created_at",
    )

    __table_args__ = (Index("idx_announcements_season_created", "season_id", "created_at"),)


class AnnouncementReply(Base):
    """Reply to an announcement."""

    __tablename__ = "announcement_replies"

    id = Column(String(36), primary_key=True, default=new_id)
    announcement_id = Column(
        String(36), ForeignKey("announcements.id", ondelete="CASCADE"), nullable=False
    )
    season_id = Column(String(36), nullable=False)
    author_id = Column(String(36), ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    author_name = Column(String, nullable=False)
    is_admin = Column(Boolean, default=False, nullable=False)
    body = Column(Text, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    announcement = relationship("Announcement", back_populates="replies")

    __table_args__ = (Index("idx_announcement_replies_announcement", "announcement_id"),)


class ScheduleWeek(Base):
    """A league night on the season calendar."""

    __tablename__ = "schedule_weeks"

    id = Column(Integer, primary_key=True, autoincrement=True)
    season_id = Column(String(36), ForeignKey("seasons.id", ondelete="CASCADE"), nullable=False)
    week = Column(Integer, nullable=False)
    week_date = Column(Date, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        UniqueConstraint("season_id", "week", name="uq_schedule_weeks_season_week"),
        CheckConstraint("week > 0", name="ck_schedule_weeks_week_positive"),
    )


class Match(Base):
    """A scheduled game between two teams of a division."""

    __tablename__ = "matches"

    id = Column(String(36), primary_key=True, default=new_id)
    season_id = Column(String(36), ForeignKey("seasons.id", ondelete="CASCADE"), nullable=False)
    week = Column(Integer, nullable=False)
    division_id = Column(
        String(36), ForeignKey("divisions.id", ondelete="SET NULL"), nullable=True
    )
    match_time = Column(String(8), nullable=False)  # 12-hour, e.g. "5:45 PM"
    court = Column(Integer, nullable=False)
    team_a_id = Column(String(36), ForeignKey("teams.id", ondelete="SET NULL"), nullable=True)
    team_b_id = Column(String(36), ForeignKey("teams.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    score = relationship(
        "MatchScore", back_populates="match", uselist=False, cascade="all, delete-orphan"
    )

    __table_args__ = (
        Index("idx_matches_season_week", "season_id", "week"),
        Index("idx_matches_team_a", "team_a_id"),
        Index("idx_matches_team_b", "team_b_id"),
    )


class MatchScore(Base):
    """
    Entered game scores for a match, one row per match.

    team_a and team_b hold {"g1": str, "g2": str, "g3": str}; an empty string
    means the game has not been entered.
    """

    __tablename__ = "match_scores"

    match_id = Column(String(36), ForeignKey("matches.id", ondelete="CASCADE"), primary_key=True)
    team_a = Column(JSON, nullable=False)
    team_b = Column(JSON, nullable=False)
    verified = Column(Boolean, default=False, nullable=False)
    verified_by = Column(String, nullable=True)
    verified_at = Column(DateTime(timezone=True), nullable=True)
    locked_at = Column(DateTime(timezone=True), nullable=True)
    locked_by = Column(String, nullable=True)
    locked_by_user_id = Column(String(36), ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    match = relationship("Match", back_populates="score")


class ScoringWeekLock(Base):
    """Closes score entry for a whole week to everyone but admins."""

    __tablename__ = "scoring_week_locks"

    season_id = Column(String(36), ForeignKey("seasons.id", ondelete="CASCADE"), primary_key=True)
    week = Column(Integer, primary_key=True)
    locked_at = Column(DateTime(timezone=True), nullable=True)
    locked_by = Column(String, nullable=True)


class PastWinner(Base):
    """Hall-of-fame entry for a division champion."""

    __tablename__ = "past_winners"

    id = Column(String(36), primary_key=True, default=new_id)
    season_label = Column(String, nullable=False)
    division_label = Column(String, nullable=False)
    winners_label = Column(String, nullable=False)
    photo_path = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
