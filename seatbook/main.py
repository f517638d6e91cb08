from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from seatbook.api.router import api_router
from seatbook.core.config import get_settings
from seatbook.core.errors import BookingError, ErrorCode
from seatbook.core.logging import configure_logging

logger = logging.getLogger(__name__)


def register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(BookingError)
    async def booking_error_handler(request: Request, exc: BookingError) -> JSONResponse:
        if exc.status_code >= 500:
            logger.error("booking_error path=%s %s", request.url.path, exc)
        return JSONResponse(jsonable_encoder(exc.to_dict()), status_code=exc.status_code)

    # Malformed booking requests are an input problem like any other
    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        errors = [{"loc": list(e.get("loc", ())), "msg": e.get("msg", "")} for e in exc.errors()]
        body = {"code": ErrorCode.INVALID_INPUT.value, "error": "Invalid request.", "details": {"errors": errors}}
        return JSONResponse(jsonable_encoder(body), status_code=400)


def create_app() -> FastAPI:
    settings = get_settings()
    configure_logging(settings.log_level)

    app = FastAPI(title=settings.app_name)
    register_error_handlers(app)
    app.include_router(api_router, prefix=settings.api_prefix)

    @app.get("/health")
    def health():
        return {"status": "ok", "environment": settings.environment}

    return app


app = create_app()
