"""Tests for the ledger store."""

import pytest
from datetime import datetime
from decimal import Decimal

from ledgerkeep.errors import StorageFailure
from ledgerkeep.models.ledger_extra import ExtraDomain
from ledgerkeep.services.ledger_store import transaction_row


@pytest.fixture
def write_calls(store, monkeypatch):
    """Record every write statement the store issues."""
    calls = []
    original = store._write

    def counting_write(statement, params=None):
        calls.append(statement)
        return original(statement, params)

    monkeypatch.setattr(store, "_write", counting_write)
    return calls


class TestTransactionRow:

    def test_lifecycle_defaults(self, make_transaction):
        txn = make_transaction(added_date=None)
        now = datetime(2024, 2, 1, 12, 0)
        row = transaction_row(txn, now)
        assert row["added_date"] == now
        assert row["last_modified_date"] == now
        assert len(row["signature"]) == 64

    def test_last_modified_never_before_added(self, make_transaction):
        txn = make_transaction(
            added_date=datetime(2024, 1, 10),
            last_modified_date=datetime(2024, 1, 1),
        )
        row = transaction_row(txn)
        assert row["last_modified_date"] == datetime(2024, 1, 10)


class TestBulkWrites:

    def test_bulk_add_is_one_write_plus_history(self, store, make_transaction, write_calls):
        txns = [make_transaction(description=f"SHOP {i}") for i in range(25)]
        with store.atomic():
            assert store.bulk_add_transactions(txns, note="Imported") == 25

        assert len(write_calls) == 2
        assert store.count_transactions() == 25
        assert store.count_history() == 25

    def test_bulk_add_skip_history(self, store, make_transaction, write_calls):
        with store.atomic():
            store.bulk_add_transactions([make_transaction(), make_transaction()], skip_history=True)

        assert len(write_calls) == 1
        assert store.count_history() == 0

    def test_bulk_add_empty_writes_nothing(self, store, write_calls):
        assert store.bulk_add_transactions([]) == 0
        assert write_calls == []

    def test_bulk_update_is_one_write_plus_history(self, store, make_transaction, write_calls):
        txns = [make_transaction() for _ in range(5)]
        with store.atomic():
            store.bulk_add_transactions(txns, skip_history=True)
        write_calls.clear()

        with store.atomic():
            store.bulk_update_transactions(
                [{"id": txn.id, "category": "Dining"} for txn in txns],
                note="Bulk categorize",
            )

        assert len(write_calls) == 2
        assert {t.category for t in store.list_transactions()} == {"Dining"}
        history = store.list_history()
        assert len(history) == 5
        assert all(entry.note == "Bulk categorize" for entry in history)
        assert all(entry.data["category"] == "Dining" for entry in history)

    def test_bulk_update_bumps_last_modified(self, store, make_transaction):
        txn = make_transaction(added_date=datetime(2024, 1, 1))
        with store.atomic():
            store.bulk_add_transactions([txn], skip_history=True)
        with store.atomic():
            store.bulk_update_transactions([{"id": txn.id, "is_verified": True}], skip_history=True)

        stored = store.get_transaction(txn.id)
        assert stored.is_verified is True
        assert stored.last_modified_date > datetime(2024, 1, 1)


class TestAtomic:

    def test_failure_rolls_back_whole_block(self, store, make_transaction):
        txn = make_transaction()
        with store.atomic():
            store.bulk_add_transactions([txn], skip_history=True)

        with pytest.raises(StorageFailure):
            with store.atomic():
                store.bulk_add_transactions([make_transaction(description="NEW")], skip_history=True)
                # Same primary key again
                store.bulk_add_transactions([txn], skip_history=True)

        assert store.count_transactions() == 1

    def test_other_exceptions_roll_back_and_propagate(self, store, make_transaction):
        with pytest.raises(RuntimeError):
            with store.atomic():
                store.bulk_add_transactions([make_transaction()], skip_history=True)
                raise RuntimeError("boom")

        assert store.count_transactions() == 0


class TestSingleRecords:

    def test_put_transaction_insert_then_replace(self, store, make_transaction):
        txn = make_transaction()
        with store.atomic():
            store.put_transaction(txn, note="Created")
        with store.atomic():
            store.put_transaction(txn.model_copy(update={"amount": Decimal("-60.00")}), note="Edited")

        assert store.get_transaction(txn.id).amount == Decimal("-60.00")
        assert [h.note for h in store.list_history(txn.id)] == ["Created", "Edited"]

    def test_delete_transaction_records_history(self, store, sample_transaction):
        with store.atomic():
            assert store.delete_transaction(sample_transaction.id) is True

        assert store.get_transaction(sample_transaction.id) is None
        history = store.list_history(sample_transaction.id)
        assert history[-1].note == "Deleted"
        assert history[-1].data["description"] == "WHOLE FOODS #1234"

    def test_delete_missing(self, store):
        assert store.delete_transaction("nope") is False

    def test_existing_ids(self, store, sample_transaction):
        assert store.existing_transaction_ids([sample_transaction.id, "other"]) == {sample_transaction.id}


class TestOtherDomains:

    def test_preferences_single_record(self, store):
        assert store.get_preferences() is None
        with store.atomic():
            store.put_preferences({"theme": "dark"})
        with store.atomic():
            store.put_preferences({"theme": "light"})
        assert store.get_preferences() == {"theme": "light"}

    def test_extra_domains_verbatim(self, store):
        rates = [{"from": "EUR", "to": "USD", "rate": 1.09}]
        with store.atomic():
            store.put_extra(ExtraDomain.currency_rates, rates)
        assert store.get_extra(ExtraDomain.currency_rates) == rates
        assert store.get_extra(ExtraDomain.balance_history) == []

    def test_replace_categories(self, store):
        with store.atomic():
            store.replace_categories([{"id": "c1", "name": "Food", "type": "expense", "color": "#f00"}])
        with store.atomic():
            store.replace_categories([{"id": "c2", "name": "Rent", "type": "expense"}])
        assert [c["name"] for c in store.list_categories()] == ["Rent"]

    def test_backup_listing_newest_first(self, store):
        with store.atomic():
            for i, ts in enumerate([datetime(2024, 1, 1), datetime(2024, 3, 1), datetime(2024, 2, 1)]):
                store.add_backup({
                    "id": f"b{i}", "timestamp": ts, "transaction_count": 0,
                    "account_count": 0, "size": 2, "version": "1.2", "created_by": "manual",
                }, "{}")

        assert [b.id for b in store.list_backups()] == ["b1", "b2", "b0"]
        assert store.latest_backup().id == "b1"
        assert store.get_backup_payload("b0") == "{}"

        with store.atomic():
            store.delete_backup("b0")
        assert store.get_backup_metadata("b0") is None
        assert store.get_backup_payload("b0") is None
