from __future__ import annotations

import logging

from sqlalchemy import Engine, text

# Import models to register with SQLAlchemy
import seatbook.models  # noqa: F401
from seatbook.core.config import get_settings
from seatbook.core.logging import configure_logging
from seatbook.db.base import Base

logger = logging.getLogger(__name__)

# Only active rows are constrained; pending holds can expire without a status
# change, so the writer's locked re-check guards those.
EXCLUSION_CONSTRAINTS = {
    "reservations_no_seat_overlap": """
        ALTER TABLE reservations
        ADD CONSTRAINT reservations_no_seat_overlap
        EXCLUDE USING gist (
            seat_id WITH =,
            tstzrange(start_at, end_at, '[)') WITH &&
        )
        WHERE (status = 'active' AND seat_id IS NOT NULL)
    """,
    "reservations_no_table_overlap": """
        ALTER TABLE reservations
        ADD CONSTRAINT reservations_no_table_overlap
        EXCLUDE USING gist (
            table_id WITH =,
            tstzrange(start_at, end_at, '[)') WITH &&
        )
        WHERE (status = 'active' AND seat_id IS NULL)
    """,
}


def install_overlap_constraints(engine: Engine) -> list[str]:
    """Add the Postgres exclusion constraints that are not there yet."""
    if engine.dialect.name != "postgresql":
        return []
    added: list[str] = []
    with engine.begin() as conn:
        # Extension needed for "=" on plain columns inside a gist index
        conn.execute(text("CREATE EXTENSION IF NOT EXISTS btree_gist"))
        for name, ddl in EXCLUSION_CONSTRAINTS.items():
            exists = conn.execute(text("SELECT 1 FROM pg_constraint WHERE conname = :name"), {"name": name}).first()
            if exists is None:
                conn.execute(text(ddl))
                added.append(name)
    return added


def init_db(engine: Engine) -> None:
    Base.metadata.create_all(bind=engine)
    for name in install_overlap_constraints(engine):
        logger.info("constraint_added name=%s", name)


def main() -> int:
    configure_logging(get_settings().log_level)
    from seatbook.db.session import engine

    init_db(engine)
    print("DB initialized")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
