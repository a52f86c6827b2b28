"""Tests for the database layer (workshop_kernel.db)."""

from datetime import datetime
from uuid import uuid4

import pytest
from sqlalchemy import inspect
from sqlalchemy.exc import StatementError

from workshop_kernel.db.engine import get_engine, get_session, is_postgres, session_scope
from workshop_kernel.models.service_order import ServiceOrderRecord


def _order_record(clock, **overrides) -> ServiceOrderRecord:
    fields = {
        "client_id": uuid4(),
        "vehicle_id": uuid4(),
        "status": "requested",
        "request_date": clock.now(),
        "created_at": clock.now(),
        "updated_at": clock.now(),
    }
    fields.update(overrides)
    return ServiceOrderRecord(**fields)


class TestSchema:
    def test_all_tables_created(self, db_engine):
        tables = set(inspect(get_engine()).get_table_names())
        assert {
            "service_orders",
            "budgets",
            "budget_items",
            "service_executions",
            "stock_items",
            "stock_movements",
            "workflow_events",
        } <= tables

    def test_dialect_flag(self, db_engine):
        assert is_postgres() == (db_engine.dialect.name == "postgresql")


class TestSessionScope:
    def test_commit_on_success(self, db_engine, deterministic_clock):
        record = _order_record(deterministic_clock)
        with session_scope() as session:
            session.add(record)

        check = get_session()
        try:
            assert check.get(ServiceOrderRecord, record.id) is not None
        finally:
            check.close()

    def test_rollback_on_error(self, db_engine, deterministic_clock):
        record = _order_record(deterministic_clock)
        with pytest.raises(RuntimeError):
            with session_scope() as session:
                session.add(record)
                session.flush()
                raise RuntimeError("use case failed")

        check = get_session()
        try:
            assert check.get(ServiceOrderRecord, record.id) is None
        finally:
            check.close()


class TestColumnTypes:
    def test_uuid_and_utc_round_trip(self, session, deterministic_clock):
        record = _order_record(deterministic_clock)
        session.add(record)
        session.flush()
        session.expire_all()

        loaded = session.get(ServiceOrderRecord, record.id)
        assert loaded.client_id == record.client_id
        assert loaded.request_date == deterministic_clock.now()
        assert loaded.request_date.utcoffset().total_seconds() == 0

    def test_naive_datetime_rejected(self, session, deterministic_clock):
        session.add(_order_record(deterministic_clock, request_date=datetime(2024, 1, 1, 9, 0)))
        with pytest.raises(StatementError):
            session.flush()
