"""
Constants shared across the league companion service.
"""

# Key the mobile client stores the unlocked season under
ACCEPTED_SEASON_KEY = "PPL_ACCEPTED_SEASON_ID_V3"

# Shared admin passcode used when ADMIN_UNLOCK_CODE is not configured
DEFAULT_ADMIN_UNLOCK_CODE = "2468"

# Divisions listed first, in this order; anything else sorts after by name
DIVISION_ORDER = {
    "Beginner": 0,
    "Intermediate": 1,
    "Advanced": 2,
}

# Push gateway
EXPO_PUSH_URL = "https://exp.host/--/api/v2/push/send"
PUSH_TITLE = "New Announcement"
PUSH_SOUND = "default"
DEFAULT_PUSH_BODY = "New announcement"
WEBHOOK_SECRET_HEADER = "x-webhook-secret"

# Author labels for announcement posts
ADMIN_AUTHOR_NAME = "ADMIN"
COMMUNITY_AUTHOR_NAME = "Community"

# Schedule builder
COURT_COUNT = 15

# Score entry: three games per match, each capped at 11 points
GAME_KEYS = ("g1", "g2", "g3")
MAX_GAME_SCORE = 11

# Standings list the strongest division first
STANDINGS_DIVISION_ORDER = ("Advanced", "Intermediate", "Beginner")
UNASSIGNED_DIVISION = "Unassigned Division"

# Recorded as verified_by when a player without a name saves scores
PLAYER_SCORER_NAME = "USER"
