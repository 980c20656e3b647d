"""add_schedule_scoring_winners

Revision ID: 002
Revises: 001
Create Date: 2026-10-19 15:00:00.000000

Add the weekly schedule (schedule_weeks, matches), score entry
(match_scores, scoring_week_locks) and past_winners tables.
Databases created after these models existed already have them from 001.
"""
from typing import Sequence, Union

from alembic import op


# revision identifiers, used by Alembic.
revision: str = '002'
down_revision: Union[str, None] = '001'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

NEW_TABLES = [
    "schedule_weeks",
    "matches",
    "match_scores",
    "scoring_week_locks",
    "past_winners",
]


def _tables():
    from backend.database.db import Base
    from backend.database import models  # noqa: F401

    return [Base.metadata.tables[name] for name in NEW_TABLES]


def upgrade() -> None:
    bind = op.get_bind()
    tables = _tables()
    tables[0].metadata.create_all(bind=bind, tables=tables, checkfirst=True)


def downgrade() -> None:
    bind = op.get_bind()
    tables = _tables()
    tables[0].metadata.drop_all(bind=bind, tables=list(reversed(tables)), checkfirst=True)
