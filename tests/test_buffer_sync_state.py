"""Tests for pending -> synced transitions."""

from datetime import date

import pytest
from sqlalchemy.exc import OperationalError

from app.errors import StoreUnavailable, ValidationError
from app.models import BufferCustomer, BufferDueDate, BufferInvoice, BufferInvoiceRow, SyncEntity
from app.services.buffer_sync import state as state_module
from app.services.buffer_sync.state import MarkSyncedResult, sync_state

# ---------------------------------------------------------------------------
# MarkSyncedResult
# ---------------------------------------------------------------------------


class TestMarkSyncedResult:
    def test_defaults(self):
        r = MarkSyncedResult(entity=SyncEntity.customers, requested=2)
        assert r.affected == 0
        assert r.total_affected == 0

    def test_total_affected(self):
        r = MarkSyncedResult(entity=SyncEntity.invoices, requested=1, affected=1, due_dates_affected=3)
        assert r.total_affected == 4


# ---------------------------------------------------------------------------
# Customers
# ---------------------------------------------------------------------------


class TestMarkCustomersSynced:
    def test_marks_and_stamps(self, db_session, make_customer):
        make_customer("C001")
        make_customer("C002")

        result = sync_state.mark_synced(db_session, SyncEntity.customers, ["C001"])

        assert result.affected == 1
        c1 = db_session.get(BufferCustomer, "C001")
        c2 = db_session.get(BufferCustomer, "C002")
        assert c1.synced is True
        assert c1.sync_date is not None
        assert not c2.synced
        assert c2.sync_date is None

    def test_accepts_entity_name(self, db_session, make_customer):
        make_customer("C001")
        result = sync_state.mark_synced(db_session, "customers", ["C001"])
        assert result.affected == 1

    def test_empty_list_rejected_without_mutation(self, db_session, make_customer):
        make_customer("C001")

        with pytest.raises(ValidationError):
            sync_state.mark_synced(db_session, SyncEntity.customers, [])
        with pytest.raises(ValidationError):
            sync_state.mark_synced(db_session, SyncEntity.customers, ["", "  ", None])

        assert not db_session.get(BufferCustomer, "C001").synced

    def test_unknown_ids_are_not_an_error(self, db_session, make_customer):
        make_customer("C001")
        result = sync_state.mark_synced(db_session, SyncEntity.customers, ["C001", "NOPE", "C001"])
        assert result.requested == 3
        assert result.affected == 1

    def test_second_call_counts_nothing_and_restamps(self, db_session, make_customer):
        make_customer("C001")

        first = sync_state.mark_synced(db_session, SyncEntity.customers, ["C001"])
        stamped = db_session.get(BufferCustomer, "C001").sync_date
        second = sync_state.mark_synced(db_session, SyncEntity.customers, ["C001"])

        assert first.affected == 1
        assert second.affected == 0
        customer = db_session.get(BufferCustomer, "C001")
        assert customer.synced is True
        assert customer.sync_date >= stamped

    def test_overlapping_calls_both_succeed_and_last_stamp_wins(self, db_session, make_customer):
        for sage_id in ("C1", "C2", "C3"):
            make_customer(sage_id)

        first = sync_state.mark_synced(db_session, SyncEntity.customers, ["C1", "C2"])
        first_stamp = db_session.get(BufferCustomer, "C2").sync_date
        second = sync_state.mark_synced(db_session, SyncEntity.customers, ["C3", "C2"])

        assert (first.affected, second.affected) == (2, 1)
        c2 = db_session.get(BufferCustomer, "C2")
        c3 = db_session.get(BufferCustomer, "C3")
        assert all(db_session.get(BufferCustomer, s).synced for s in ("C1", "C2", "C3"))
        assert c2.sync_date >= first_stamp
        assert c2.sync_date == c3.sync_date

    def test_integer_ids_are_matched_as_keys(self, db_session, make_customer):
        make_customer("42")
        result = sync_state.mark_synced(db_session, SyncEntity.customers, [42])
        assert result.affected == 1

    def test_large_id_lists_are_chunked(self, db_session, make_customer, monkeypatch):
        monkeypatch.setattr(state_module, "_IN_CHUNK_SIZE", 2)
        for i in range(5):
            make_customer(f"C{i:03d}", minutes=i)

        result = sync_state.mark_synced(db_session, SyncEntity.customers, [f"C{i:03d}" for i in range(5)])

        assert result.affected == 5


# ---------------------------------------------------------------------------
# Row-per-due-date invoices
# ---------------------------------------------------------------------------


class TestMarkInvoiceRowsSynced:
    def test_marks_every_installment_of_the_number(self, db_session, make_invoice_row):
        make_invoice_row("P1", "A1", date(2024, 1, 10), "100")
        make_invoice_row("P2", "A1", date(2024, 2, 10), "150")
        make_invoice_row("P3", "B2", date(2024, 3, 10), "80")

        result = sync_state.mark_synced(db_session, SyncEntity.invoice_rows, ["A1"])

        assert result.affected == 2
        assert db_session.get(BufferInvoiceRow, "P1").synced is True
        assert db_session.get(BufferInvoiceRow, "P2").synced is True
        assert not db_session.get(BufferInvoiceRow, "P3").synced

    def test_already_synced_installments_not_counted(self, db_session, make_invoice_row):
        make_invoice_row("P1", "A1", date(2024, 1, 10), "100", synced=True)
        make_invoice_row("P2", "A1", date(2024, 2, 10), "150")

        result = sync_state.mark_synced(db_session, SyncEntity.invoice_rows, ["A1"])

        assert result.affected == 1


# ---------------------------------------------------------------------------
# Normalized invoices
# ---------------------------------------------------------------------------


class TestMarkNormalizedInvoicesSynced:
    def test_cascades_to_due_dates_by_id(self, db_session, make_invoice):
        invoice = make_invoice("N1", [(date(2024, 1, 10), "100"), (date(2024, 2, 10), "150")])
        other = make_invoice("N2", [(date(2024, 1, 5), "60")])

        result = sync_state.mark_synced(db_session, SyncEntity.invoices, [str(invoice.id)])

        assert result.affected == 1
        assert result.due_dates_affected == 2
        due_dates = db_session.query(BufferDueDate).filter(BufferDueDate.invoice_id == invoice.id).all()
        assert all(d.synced for d in due_dates)
        assert all(d.sync_date is not None for d in due_dates)
        assert not db_session.get(BufferInvoice, other.id).synced

    def test_cascades_by_invoice_number(self, db_session, make_invoice):
        invoice = make_invoice("N1", [(date(2024, 1, 10), "100")])

        result = sync_state.mark_synced(db_session, SyncEntity.invoice_numbers, ["N1"])

        assert result.affected == 1
        assert result.due_dates_affected == 1
        assert db_session.get(BufferInvoice, invoice.id).synced is True

    def test_new_installment_of_synced_invoice_is_flagged(self, db_session, make_invoice):
        invoice = make_invoice("N1", [(date(2024, 1, 10), "100", True), (date(2024, 2, 10), "50")], synced=True)

        result = sync_state.mark_synced(db_session, SyncEntity.invoices, [invoice.id])

        assert result.affected == 0
        assert result.due_dates_affected == 1

    def test_non_integer_id_rejected(self, db_session, make_invoice):
        make_invoice("N1", [(date(2024, 1, 10), "100")])
        with pytest.raises(ValidationError):
            sync_state.mark_synced(db_session, SyncEntity.invoices, ["abc"])

    def test_failure_leaves_invoice_and_due_dates_unchanged(self, db_session, make_invoice, monkeypatch):
        invoice = make_invoice("N1", [(date(2024, 1, 10), "100"), (date(2024, 2, 10), "150")])
        original = state_module._stamp_synced
        calls = {"n": 0}

        def _flaky(db, model, key_column, keys, now):
            calls["n"] += 1
            if model is BufferDueDate:
                raise OperationalError("UPDATE buffer_due_dates", {}, Exception("connection lost"))
            return original(db, model, key_column, keys, now)

        monkeypatch.setattr(state_module, "_stamp_synced", _flaky)

        with pytest.raises(StoreUnavailable):
            sync_state.mark_synced(db_session, SyncEntity.invoices, [invoice.id])

        assert calls["n"] == 2
        db_session.expire_all()
        assert not db_session.get(BufferInvoice, invoice.id).synced
        due_dates = db_session.query(BufferDueDate).filter(BufferDueDate.invoice_id == invoice.id).all()
        assert len(due_dates) == 2
        assert not any(d.synced for d in due_dates)
