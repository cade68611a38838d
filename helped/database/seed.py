"""
helped.database.seed — Achievement Catalog Seeder
==================================================

Writes :data:`helped.engine.achievements.ACHIEVEMENT_DEFINITIONS` into the
``achievements`` table on startup so earned rows have something to point
at.  Idempotent: missing keys are inserted, existing rows are brought in
line with the code (name, thresholds, ordering) and never duplicated.
"""

from __future__ import annotations

import logging

from sqlalchemy import Engine, select
from sqlalchemy.orm import Session

from helped.database.models import Achievement
from helped.engine.achievements import ACHIEVEMENT_DEFINITIONS

logger = logging.getLogger(__name__)


def seed_achievements(engine: Engine) -> None:
    """Upsert every catalog definition by ``key``."""
    session = Session(engine)
    inserted = updated = 0
    try:
        existing = {
            a.key: a for a in session.scalars(select(Achievement)).all()
        }
        for d in ACHIEVEMENT_DEFINITIONS:
            row = existing.get(d.key)
            values = {
                "name": d.name,
                "description": d.description,
                "badge_icon": d.badge_icon,
                "category": d.category.value,
                "requirement": d.requirement,
                "sort_order": d.order,
            }
            if row is None:
                session.add(Achievement(key=d.key, **values))
                inserted += 1
                continue
            changed = False
            for attr, value in values.items():
                if getattr(row, attr) != value:
                    setattr(row, attr, value)
                    changed = True
            updated += changed
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()

    if inserted or updated:
        logger.info("Seeded achievements: %d inserted, %d updated.", inserted, updated)
