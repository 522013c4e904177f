import pytest

from daybook.models import CashMovement
from daybook.services import cash_service, document_store
from daybook.services.document_store import ImmutableRecordError, NotFoundError


@pytest.fixture
def events():
    received = []
    unsubscribe = document_store.subscribe("cash_movements", received.extend)
    yield received
    unsubscribe()


# =============================================================================
# READ / WRITE
# =============================================================================


class TestReadWrite:

    def test_write_one_upserts_mutable_collections(self, db_session):
        document_store.write_one("registers", "REG-9", {"name": "Back", "timezone": "UTC"}, tenant_id="acme")
        document_store.write_one("registers", "REG-9", {"name": "Back office"}, tenant_id="acme")

        register = document_store.read_one("registers", "acme", "REG-9")
        assert register.name == "Back office"
        assert [r.id for r in document_store.read_all("registers", "acme")] == ["REG-9"]
        assert document_store.read_all("registers", "other") == []

    def test_append_only_records_cannot_be_rewritten(self, context):
        movement = cash_service.add_movement(context, "DEPOSIT", 10)

        with pytest.raises(ImmutableRecordError):
            document_store.write_one("cash_movements", movement.id, {"amount": 99}, tenant_id="acme")

    def test_unknown_collection(self, db_session):
        with pytest.raises(NotFoundError):
            document_store.read_all("invoices", "acme")


# =============================================================================
# SUBSCRIPTIONS
# =============================================================================


class TestSubscriptions:
    """Subscribers only ever see committed changes."""

    def test_subscribers_see_committed_writes(self, context, events):
        movement = cash_service.add_movement(context, "DEPOSIT", 25)

        assert len(events) == 1
        assert events[0].collection == "cash_movements"
        assert events[0].op == "upsert"
        assert events[0].record["id"] == movement.id
        assert events[0].record["amount"] == 25

    def test_subscribers_skip_rolled_back_writes(self, context, db_session, events):
        db_session.add(CashMovement(
            tenant_id="acme", id="m-x", register_id="REG-1", type="DEPOSIT", amount=1, performed_by="x",
            date=context.current_time(),
        ))
        db_session.flush()
        db_session.rollback()

        assert events == []

    def test_failing_subscriber_does_not_break_writes(self, context, events):
        def broken(changes):
            raise RuntimeError("boom")

        unsubscribe = document_store.subscribe("cash_movements", broken)
        try:
            cash_service.add_movement(context, "DEPOSIT", 5)
        finally:
            unsubscribe()

        assert len(events) == 1
        assert len(cash_service.list_movements(context)) == 1
