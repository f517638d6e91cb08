from __future__ import annotations

import logging
from typing import Any, Mapping

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from seatbook.models.notification import NotificationEvent

logger = logging.getLogger(__name__)

BOOKING_CONFIRMATION = "booking_confirmation"
BOOKING_CANCELLED = "booking_cancelled"


def booking_confirmation_key(reservation_id: str) -> str:
    return f"{BOOKING_CONFIRMATION}:{reservation_id}"


def _find_by_key(db: Session, dedupe_key: str) -> str | None:
    return db.execute(select(NotificationEvent.id).where(NotificationEvent.dedupe_key == dedupe_key)).scalar_one_or_none()


def enqueue_notification(
    db: Session,
    *,
    type: str,
    dedupe_key: str,
    payload: Mapping[str, Any],
    to_email: str = "",
    user_id: str | None = None,
    venue_id: str | None = None,
    booking_id: str | None = None,
) -> tuple[bool, str]:
    """Queue a notification once per ``dedupe_key``.

    Returns ``(created, id)``; an existing event with the same key is returned
    untouched.
    """
    existing_id = _find_by_key(db, dedupe_key)
    if existing_id is not None:
        logger.debug("notification_dedupe_hit key=%s", dedupe_key)
        return False, existing_id

    event = NotificationEvent(
        type=type,
        dedupe_key=dedupe_key,
        to_email=to_email,
        user_id=user_id,
        venue_id=venue_id,
        booking_id=booking_id,
        payload=dict(payload),
        status="PENDING",
    )
    db.add(event)
    try:
        db.commit()
    except IntegrityError:
        # another writer queued the same key between our lookup and insert
        db.rollback()
        existing_id = _find_by_key(db, dedupe_key)
        if existing_id is None:
            raise
        logger.debug("notification_dedupe_hit key=%s", dedupe_key)
        return False, existing_id
    return True, event.id
