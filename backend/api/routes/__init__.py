"""
API routes - combined router from all domain modules.

Shared infrastructure (limiter) lives here; every sub-router imports what it
needs from this package.
"""

import os

from fastapi import APIRouter
from slowapi import Limiter
from slowapi.util import get_remote_address

# ---------------------------------------------------------------------------
# Shared rate limiter
# ---------------------------------------------------------------------------
IS_TEST_ENV = os.getenv("ENV", "").lower() == "test"
limiter = Limiter(key_func=get_remote_address, enabled=not IS_TEST_ENV)

# ---------------------------------------------------------------------------
# Import sub-routers and combine
# ---------------------------------------------------------------------------
from backend.api.routes.auth import router as auth_router  # noqa: E402
from backend.api.routes.gate import router as gate_router  # noqa: E402
from backend.api.routes.settings import router as settings_router  # noqa: E402
from backend.api.routes.seasons import router as seasons_router  # noqa: E402
from backend.api.routes.divisions import router as divisions_router  # noqa: E402
from backend.api.routes.teams import router as teams_router  # noqa: E402
from backend.api.routes.attendance import router as attendance_router  # noqa: E402
from backend.api.routes.onboarding import router as onboarding_router  # noqa: E402
from backend.api.routes.announcements import router as announcements_router  # noqa: E402
from backend.api.routes.push import router as push_router  # noqa: E402
from backend.api.routes.schedule import router as schedule_router  # noqa: E402
from backend.api.routes.scoring import router as scoring_router  # noqa: E402
from backend.api.routes.winners import router as winners_router  # noqa: E402

router = APIRouter()
router.include_router(auth_router)
router.include_router(gate_router)
router.include_router(settings_router)
router.include_router(seasons_router)
router.include_router(divisions_router)
router.include_router(teams_router)
router.include_router(attendance_router)
router.include_router(onboarding_router)
router.include_router(announcements_router)
router.include_router(push_router)
router.include_router(schedule_router)
router.include_router(scoring_router)
router.include_router(winners_router)
