"""
Pydantic models for API request/response validation.
"""

from datetime import date
from typing import Optional, List, Dict, Any, Literal
from pydantic import BaseModel, Field, field_validator


class AuthResponse(BaseModel):
    """Access token issued to a device."""

    access_token: str
    token_type: str = "bearer"
    user_id: str


class AppSettingsResponse(BaseModel):
    """Singleton app settings."""

    id: int
    current_season_id: Optional[str] = None
    current_season_name: Optional[str] = None
    playoff_mode: bool


class PlayoffModeRequest(BaseModel):
    playoff_mode: bool


class CurrentSeasonRequest(BaseModel):
    season_id: str = Field(min_length=1)


class LeagueCodeRequest(BaseModel):
    league_code: str = Field(min_length=1, max_length=64)


class CodeRequest(BaseModel):
    """A league access code or admin passcode."""

    code: str = ""


class GateResponse(BaseModel):
    locked: bool
    current_season_id: Optional[str] = None
    clear_accepted: bool


class LeagueUnlockResponse(BaseModel):
    accepted_season_id: str


class AdminSessionResponse(BaseModel):
    is_admin_unlocked: bool
    unlocked_at: Optional[str] = None


class SeasonResponse(BaseModel):
    id: str
    name: str
    created_at: Optional[str] = None


class CreateSeasonRequest(BaseModel):
    """Seasons are created from their number, e.g. 4 -> "Season 4"."""

    season_number: int = Field(gt=0)


class DivisionResponse(BaseModel):
    id: str
    season_id: str
    name: str


class CreateDivisionRequest(BaseModel):
    name: str = Field(min_length=1, max_length=80)

    @field_validator("name")
    @classmethod
    def name_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Division name is required")
        return v.strip()


class TeamResponse(BaseModel):
    id: str
    season_id: str
    division_id: Optional[str] = None
    team_name: str
    player1_name: Optional[str] = None
    player2_name: Optional[str] = None
    player1_paid: bool = False
    player2_paid: bool = False
    is_active: bool = True


class CreateTeamRequest(BaseModel):
    team_name: str = Field(min_length=1, max_length=80)
    division_id: Optional[str] = None
    player1_name: Optional[str] = Field(default=None, max_length=80)
    player2_name: Optional[str] = Field(default=None, max_length=80)


class UpdateTeamRequest(BaseModel):
    """Only fields that are sent are changed."""

    team_name: Optional[str] = Field(default=None, min_length=1, max_length=80)
    division_id: Optional[str] = None
    player1_name: Optional[str] = Field(default=None, max_length=80)
    player2_name: Optional[str] = Field(default=None, max_length=80)
    is_active: Optional[bool] = None


class PlayerSlotRequest(BaseModel):
    player: Literal[1, 2]


class AttendancePlayer(BaseModel):
    team_id: str
    division_id: Optional[str] = None
    team_name: str
    player: int
    player_name: str


class AttendanceRecord(BaseModel):
    season_id: str
    week: int
    team_id: str
    division_id: Optional[str] = None
    player1_in: Optional[bool] = None
    player2_in: Optional[bool] = None


class WeekAttendanceResponse(BaseModel):
    season_id: str
    week: int
    records: List[AttendanceRecord]
    statuses: Dict[str, Literal["IN", "OUT"]]


class RecordAttendanceRequest(BaseModel):
    week: int = Field(gt=0)
    team_id: str = Field(min_length=1)
    player: Literal[1, 2]
    status: Literal["IN", "OUT"]


class SelectTeamRequest(BaseModel):
    team_id: str = Field(min_length=1)


class SelectPlayerRequest(BaseModel):
    player_name: str = Field(min_length=1)

    @field_validator("player_name")
    @classmethod
    def name_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Please choose your name to continue.")
        return v.strip()


class PlayerOption(BaseModel):
    name: str


class OnboardingPlayersResponse(BaseModel):
    players: List[PlayerOption]
    team_id: Optional[str] = None
    redirect: Optional[str] = None


class ProfileResponse(BaseModel):
    user_id: str
    season_id: str
    team_id: Optional[str] = None
    player_name: Optional[str] = None


class PushTokenRequest(BaseModel):
    expo_push_token: str = Field(min_length=1)
    season_id: Optional[str] = None
    platform: Optional[str] = Field(default=None, max_length=20)


class PushTokenResponse(BaseModel):
    expo_push_token: str
    user_id: Optional[str] = None
    season_id: Optional[str] = None
    platform: Optional[str] = None
    last_seen_at: Optional[str] = None


class PostRequest(BaseModel):
    body: str = Field(min_length=1, max_length=4000)


class ReplyResponse(BaseModel):
    id: str
    announcement_id: str
    season_id: str
    author_id: Optional[str] = None
    author_name: str
    is_admin: bool
    body: str
    created_at: Optional[str] = None


class AnnouncementResponse(BaseModel):
    id: str
    season_id: str
    author_id: Optional[str] = None
    author_name: str
    is_admin: bool
    body: str
    created_at: Optional[str] = None
    replies: List[ReplyResponse] = []


class PushRelayResponse(BaseModel):
    ok: bool
    sent: int
    expo: Optional[Any] = None


class ScheduleWeekResponse(BaseModel):
    season_id: str
    week: int
    week_date: Optional[str] = None


class SaveWeekRequest(BaseModel):
    week_date: Optional[date] = None


class MatchResponse(BaseModel):
    id: str
    season_id: str
    week: int
    division_id: Optional[str] = None
    division_name: Optional[str] = None
    match_time: str
    court: int
    team_a_id: Optional[str] = None
    team_a_name: Optional[str] = None
    team_b_id: Optional[str] = None
    team_b_name: Optional[str] = None
    prior_meetings: int = 0
    created_at: Optional[str] = None


class CreateMatchRequest(BaseModel):
    week: int = Field(gt=0)
    division_id: str = Field(min_length=1)
    match_time: str = Field(min_length=1, max_length=16)
    court: int
    team_a_id: str = Field(min_length=1)
    team_b_id: str = Field(min_length=1)


class UpdateMatchRequest(BaseModel):
    """Only fields that are sent are changed."""

    week: Optional[int] = Field(default=None, gt=0)
    division_id: Optional[str] = None
    match_time: Optional[str] = Field(default=None, min_length=1, max_length=16)
    court: Optional[int] = None
    team_a_id: Optional[str] = None
    team_b_id: Optional[str] = None


class MatchupHistoryResponse(BaseModel):
    times_played: int
    weeks: List[int]
    last_week: Optional[int] = None


class GameScores(BaseModel):
    g1: str = ""
    g2: str = ""
    g3: str = ""


class MatchScoreResponse(BaseModel):
    match_id: str
    team_a: GameScores
    team_b: GameScores
    verified: bool
    verified_by: Optional[str] = None
    verified_at: Optional[str] = None
    locked: bool
    locked_at: Optional[str] = None
    locked_by: Optional[str] = None


class SaveScoreRequest(BaseModel):
    """Raw game scores; values are sanitized to at most two digits, capped at 11."""

    team_a: Dict[str, Any] = {}
    team_b: Dict[str, Any] = {}


class LockRequest(BaseModel):
    locked: bool


class WeekLockResponse(BaseModel):
    season_id: str
    week: int
    locked: bool
    locked_at: Optional[str] = None
    locked_by: Optional[str] = None


class ResultResponse(MatchResponse):
    score: Optional[MatchScoreResponse] = None
    complete: bool = False


class ScoringMatchResponse(ResultResponse):
    can_edit: bool


class WeekScoringResponse(BaseModel):
    week: int
    week_date: Optional[str] = None
    week_locked: bool
    matches: List[ScoringMatchResponse]


class StandingsRow(BaseModel):
    rank: int
    team_id: str
    team_name: str
    is_active: bool
    games_played: int
    wins: int
    losses: int
    points_for: int
    points_against: int
    point_diff: int


class DivisionStandings(BaseModel):
    division_name: str
    rows: List[StandingsRow]


class PastWinnerResponse(BaseModel):
    id: str
    season_label: str
    division_label: str
    winners_label: str
    photo_path: Optional[str] = None
    created_at: Optional[str] = None


class PastWinnerDivision(BaseModel):
    division_label: str
    winners: List[PastWinnerResponse]


class PastWinnerSeason(BaseModel):
    season_label: str
    divisions: List[PastWinnerDivision]


class CreatePastWinnerRequest(BaseModel):
    season_label: str = Field(min_length=1, max_length=80)
    division_label: str = Field(min_length=1, max_length=80)
    winners_label: str = Field(min_length=1, max_length=200)
    photo_path: Optional[str] = Field(default=None, max_length=500)
