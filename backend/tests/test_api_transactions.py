"""Tests for transactions API endpoints."""

import pytest
from datetime import date
from decimal import Decimal


class TestTransactionsAPI:
    """Test transactions endpoints."""

    def test_list_transactions_empty(self, client):
        """Should return empty paginated list."""
        response = client.get("/api/v1/transactions")
        assert response.status_code == 200
        data = response.json()
        assert data["items"] == []
        assert data["total"] == 0

    def test_list_transactions_with_data(self, client, sample_transaction):
        """Should return transactions."""
        response = client.get("/api/v1/transactions")
        assert response.status_code == 200
        data = response.json()
        assert len(data["items"]) == 1
        assert data["total"] == 1
        assert data["items"][0]["type"] == "expense"

    def test_get_transaction(self, client, sample_transaction):
        """Should return single transaction."""
        response = client.get(f"/api/v1/transactions/{sample_transaction.id}")
        assert response.status_code == 200
        data = response.json()
        assert data["id"] == sample_transaction.id

    def test_get_missing_transaction(self, client):
        response = client.get("/api/v1/transactions/missing")
        assert response.status_code == 404

    def test_update_transaction_category(self, client, store, sample_transaction):
        """Should update category and record the edit in history."""
        response = client.patch(
            f"/api/v1/transactions/{sample_transaction.id}",
            json={"category": "Dining", "is_verified": True}
        )
        assert response.status_code == 200
        data = response.json()
        assert data["category"] == "Dining"
        assert data["is_verified"] is True

        history = store.list_history(sample_transaction.id)
        assert history[-1].note == "Edited"
        assert history[-1].data["category"] == "Dining"

    def test_search_transactions(self, client, sample_transaction):
        """Should filter by search term."""
        response = client.get("/api/v1/transactions", params={"search": "Whole"})
        assert response.status_code == 200
        data = response.json()
        assert len(data["items"]) == 1

        response = client.get("/api/v1/transactions", params={"search": "xyz"})
        data = response.json()
        assert len(data["items"]) == 0

    def test_filter_by_date_and_account(self, client, sample_transaction):
        response = client.get("/api/v1/transactions", params={"start_date": "2024-01-16"})
        assert response.json()["total"] == 0

        response = client.get("/api/v1/transactions", params={"account": "Test Checking"})
        assert response.json()["total"] == 1

    def test_bulk_categorize(self, client, store, make_transaction):
        txns = [make_transaction(description=f"SHOP {i}") for i in range(3)]
        with store.atomic():
            store.bulk_add_transactions(txns, skip_history=True)

        response = client.post("/api/v1/transactions/bulk-categorize", json={
            "transaction_ids": [t.id for t in txns] + ["missing"],
            "category": "Shopping",
        })
        assert response.status_code == 200
        assert response.json() == {"updated": 3, "not_found": 1}
        assert store.count_history() == 3

    def test_duplicates(self, client, store, make_transaction, sample_transaction):
        with store.atomic():
            store.bulk_add_transactions([make_transaction()], skip_history=True)

        response = client.get("/api/v1/transactions/duplicates")
        assert response.status_code == 200
        data = response.json()
        assert data["total"] == 1
        assert len(data["groups"][0]["transaction_ids"]) == 2
