"""Tests for accounts API endpoints."""

import pytest


class TestAccountsAPI:
    """Test accounts endpoints."""

    def test_list_accounts_empty(self, client):
        """Should return empty list when no accounts."""
        response = client.get("/api/v1/accounts")
        assert response.status_code == 200
        assert response.json() == {"items": [], "total": 0}

    def test_create_account(self, client):
        """Should create a new account."""
        response = client.post("/api/v1/accounts", json={
            "name": "My Savings",
            "type": "savings",
            "institution": "Example CU",
            "currency": "eur",
        })
        assert response.status_code == 201
        data = response.json()
        assert data["name"] == "My Savings"
        assert data["account_type"] == "savings"
        assert data["currency"] == "EUR"
        assert "id" in data

    def test_duplicate_name_rejected(self, client, sample_account):
        """Account names are unique."""
        response = client.post("/api/v1/accounts", json={"name": sample_account.name})
        assert response.status_code == 400

    def test_invalid_type_rejected(self, client):
        response = client.post("/api/v1/accounts", json={"name": "X", "type": "bank"})
        assert response.status_code == 422

    def test_list_accounts_with_data(self, client, sample_account):
        """Should return accounts when they exist."""
        response = client.get("/api/v1/accounts")
        assert response.status_code == 200
        data = response.json()
        assert data["total"] == 1
        assert data["items"][0]["name"] == sample_account.name

    def test_get_account(self, client, sample_account):
        response = client.get(f"/api/v1/accounts/{sample_account.id}")
        assert response.status_code == 200
        assert response.json()["institution"] == "Test Bank"

    def test_get_missing_account(self, client):
        response = client.get("/api/v1/accounts/missing")
        assert response.status_code == 404
