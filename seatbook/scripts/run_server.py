from __future__ import annotations

import uvicorn

from seatbook.core.config import get_settings


def main() -> int:
    settings = get_settings()
    uvicorn.run(
        "seatbook.main:app",
        host=settings.server_host,
        port=settings.server_port,
        reload=settings.environment == "dev",
        log_level=settings.log_level.lower(),
    )
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
