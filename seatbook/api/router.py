from __future__ import annotations

from fastapi import APIRouter

from seatbook.api.routes import payments, reservations, venues

api_router = APIRouter()

api_router.include_router(reservations.router, prefix="/reservations", tags=["reservations"])
api_router.include_router(payments.router, prefix="/payments", tags=["payments"])
api_router.include_router(venues.router, prefix="/venues", tags=["venues"])
