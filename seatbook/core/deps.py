from __future__ import annotations

import secrets

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.orm import Session

from seatbook.core.clock import Clock, SystemClock
from seatbook.core.config import Settings, get_settings
from seatbook.db.session import SessionLocal
from seatbook.services.booking_guard import BookingPolicy, default_policy
from seatbook.stores.interfaces import BookingStore
from seatbook.stores.sql_store import SqlAlchemyBookingStore

_system_clock = SystemClock()


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_clock() -> Clock:
    return _system_clock


def get_current_user_id(x_user_id: str | None = Header(default=None)) -> str:
    """Caller identity, set by the authenticating proxy in front of the API."""
    user_id = (x_user_id or "").strip()
    if not user_id:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing user identity")
    if len(user_id) > 64:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid user identity")
    return user_id


def require_payment_processor(
    x_processor_secret: str | None = Header(default=None),
    settings: Settings = Depends(get_settings),
) -> None:
    expected = settings.payment_callback_secret
    if not expected or not x_processor_secret or not secrets.compare_digest(x_processor_secret.encode(), expected.encode()):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid processor credentials")


def get_booking_store(db: Session = Depends(get_db)) -> BookingStore:
    return SqlAlchemyBookingStore(db)


def get_booking_policy(
    store: BookingStore = Depends(get_booking_store),
    clock: Clock = Depends(get_clock),
) -> BookingPolicy:
    return default_policy(store, clock)
