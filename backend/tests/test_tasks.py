from datetime import datetime
from types import SimpleNamespace

import pytest

from daybook import tasks
from daybook.models import CashClosing
from daybook.services import register_service, sales_service


@pytest.fixture
def rebuilt_context(context, monkeypatch):
    """The task rebuilds its context with the real clock; hand it the frozen one."""
    monkeypatch.setattr(
        register_service, "build_context",
        lambda tenant_id, register_id, acting_as=None, **kw: context,
    )
    return context


# =============================================================================
# SESSION SCHEDULING
# =============================================================================


class TestScheduleSweep:
    """One sweep per session key and business day, counted only once queued."""

    def test_runs_once_per_session(self, rebuilt_context, db_session):
        sales_service.record_transaction(
            rebuilt_context, "SALE", total_amount=10, amount_paid=10, date=datetime(2026, 3, 1, 9),
        )

        result = tasks.schedule_sweep(rebuilt_context, "session-1")
        assert result is not None
        assert result.get() == 1
        assert db_session.query(CashClosing).count() == 1

        assert tasks.schedule_sweep(rebuilt_context, "session-1") is None
        assert tasks.schedule_sweep(rebuilt_context, "session-2").get() == 0

    def test_same_operator_is_scheduled_again_next_day(self, rebuilt_context, clock, db_session):
        assert tasks.schedule_sweep(rebuilt_context, "u-alice") is not None
        assert tasks.schedule_sweep(rebuilt_context, "u-alice") is None

        clock.advance(days=1)
        sales_service.record_transaction(
            rebuilt_context, "SALE", total_amount=10, amount_paid=10, date=datetime(2026, 3, 10, 9),
        )

        assert tasks.schedule_sweep(rebuilt_context, "u-alice").get() == 1
        assert db_session.query(CashClosing).count() == 1

    def test_earlier_days_are_pruned(self, rebuilt_context, make_context, clock):
        other = make_context("REG-2")
        tasks.schedule_sweep(rebuilt_context, "u-alice")
        tasks.schedule_sweep(other, "u-alice")

        clock.advance(days=1)
        tasks.schedule_sweep(rebuilt_context, "u-alice")

        days = sorted((key[1], key[3].isoformat()) for key in tasks._scheduled_sessions)
        assert days == [("REG-1", "2026-03-11"), ("REG-2", "2026-03-10")]

    def test_failed_enqueue_is_retried(self, rebuilt_context, monkeypatch):
        def broker_down(*args, **kwargs):
            raise ConnectionError("broker unreachable")

        with monkeypatch.context() as m:
            m.setattr(tasks, "sweep_forgotten_closings_task", SimpleNamespace(apply_async=broker_down))
            with pytest.raises(ConnectionError):
                tasks.schedule_sweep(rebuilt_context, "session-1")
        assert tasks._scheduled_sessions == set()

        assert tasks.schedule_sweep(rebuilt_context, "session-1") is not None


# =============================================================================
# TASK
# =============================================================================


class TestSweepTask:

    def test_task_accepts_serialized_operator(self, context, monkeypatch):
        seen = {}

        def fake_build_context(tenant_id, register_id, acting_as=None, **kw):
            seen["acting_as"] = acting_as
            return context

        monkeypatch.setattr(register_service, "build_context", fake_build_context)

        assert tasks.sweep_forgotten_closings_task.delay("acme", "REG-1", context.acting_as.to_dict()).get() == 0
        assert seen["acting_as"].display_name == "Alice"
