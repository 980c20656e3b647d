#!/usr/bin/env python3
"""
Initialize default database values.
This script is run on startup to make sure the app settings row exists.
"""

import asyncio
import logging
import os
from backend.database.db import AsyncSessionLocal
from backend.services import data_service, gate_service

logger = logging.getLogger(__name__)


async def init_defaults():
    """Initialize default database values."""
    logger.info("Initializing default database values...")

    async with AsyncSessionLocal() as session:
        settings = await data_service.ensure_app_settings(
            session, league_code=os.getenv("DEFAULT_LEAGUE_CODE") or None
        )
        logger.info(f"✓ App settings ready (current season: {settings['current_season_id']})")

        league_code = await data_service.get_league_code(session)
        if not league_code:
            logger.warning("No league access code set; players cannot unlock the league yet")

    if gate_service.is_default_admin_code():
        logger.warning(
            "ADMIN_UNLOCK_CODE is not set; the shared default admin passcode is in use. "
            "The admin passcode is not an authentication mechanism."
        )

    logger.info("✓ Default values initialized")


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    asyncio.run(init_defaults())
