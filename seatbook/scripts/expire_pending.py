from __future__ import annotations

from seatbook.core.clock import SystemClock
from seatbook.core.config import get_settings
from seatbook.core.logging import configure_logging
from seatbook.db.session import SessionLocal
from seatbook.services.reservation_service import expire_pending_reservations


def main() -> int:
    configure_logging(get_settings().log_level)
    db = SessionLocal()
    try:
        expired = expire_pending_reservations(db, clock=SystemClock())
        if not expired:
            print("no_targets")
            return 0
        print(f"expired: {expired}")
        return 0
    finally:
        db.close()


if __name__ == "__main__":
    raise SystemExit(main())
