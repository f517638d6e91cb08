from __future__ import annotations

from sqlalchemy import inspect
from sqlalchemy.pool import StaticPool

from seatbook.core.config import get_settings
from seatbook.db.session import make_engine
from seatbook.scripts import run_server
from seatbook.scripts.init_db import EXCLUSION_CONSTRAINTS, init_db, install_overlap_constraints


def test_init_db_creates_tables_on_sqlite():
    engine = make_engine("sqlite://", poolclass=StaticPool)
    try:
        init_db(engine)
        tables = set(inspect(engine).get_table_names())
        assert {"venues", "venue_hours", "venue_tables", "seats", "reservations", "payments"} <= tables
        assert {"notification_events", "audit_logs"} <= tables
        # exclusion constraints are Postgres-only
        assert install_overlap_constraints(engine) == []
    finally:
        engine.dispose()


def test_exclusion_constraints_only_cover_active_rows():
    for ddl in EXCLUSION_CONSTRAINTS.values():
        assert "status = 'active'" in ddl
        assert "tstzrange(start_at, end_at, '[)')" in ddl


def test_run_server_serves_the_app_module(monkeypatch):
    calls = []
    monkeypatch.setattr(run_server.uvicorn, "run", lambda app, **kwargs: calls.append((app, kwargs)))
    assert run_server.main() == 0
    app, kwargs = calls[0]
    assert app == "seatbook.main:app"
    assert kwargs["port"] == get_settings().server_port
    assert kwargs["log_level"] == "info"
