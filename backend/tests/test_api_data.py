"""Tests for export, import and integrity endpoints."""

import pytest


def envelope(**overrides):
    data = {
        "version": "1.2",
        "exportDate": "2024-02-01T00:00:00Z",
        "transactions": [{
            "id": "t1",
            "date": "2024-01-15",
            "description": "COFFEE",
            "amount": -4.5,
            "account": "Test Checking",
            "type": "expense",
        }],
    }
    data.update(overrides)
    return data


class TestDataAPI:

    def test_export(self, client, sample_transaction):
        response = client.get("/api/v1/data/export")
        assert response.status_code == 200
        data = response.json()
        assert data["version"] == "1.2"
        assert data["transactions"][0]["id"] == sample_transaction.id

    def test_import(self, client, sample_account):
        response = client.post("/api/v1/data/import", json={"envelope": envelope()})
        assert response.status_code == 200
        assert response.json()["transactions"] == 1

        exported = client.get("/api/v1/data/export").json()
        assert [t["id"] for t in exported["transactions"]] == ["t1"]

    def test_import_creates_auto_backup(self, client, sample_account):
        client.post("/api/v1/data/import", json={"envelope": envelope()})
        assert len(client.get("/api/v1/backups").json()) == 1

    def test_import_with_flags(self, client, sample_transaction):
        response = client.post("/api/v1/data/import", json={
            "envelope": envelope(categories=[{"id": "c1", "name": "Food"}]),
            "flags": {"transactions": False},
        })
        assert response.status_code == 200
        assert response.json()["categories"] == 1

        exported = client.get("/api/v1/data/export").json()
        assert [t["id"] for t in exported["transactions"]] == [sample_transaction.id]

    def test_invalid_envelope(self, client):
        response = client.post("/api/v1/data/import", json={"envelope": {"transactions": {}}})
        assert response.status_code == 400
        assert len(response.json()["detail"]["problems"]) == 2

    def test_no_valid_transactions(self, client):
        response = client.post("/api/v1/data/import", json={"envelope": envelope(transactions=[{"id": "x"}])})
        assert response.status_code == 400

    def test_integrity_of_envelope(self, client):
        response = client.post("/api/v1/data/integrity", json=envelope(accounts=[]))
        assert response.status_code == 200
        data = response.json()
        assert data["summary"]["is_healthy"] is False
        assert data["orphaned_accounts"] == ["Test Checking"]

    def test_integrity_of_stored_ledger(self, client, sample_transaction):
        response = client.get("/api/v1/data/integrity")
        assert response.status_code == 200
        assert response.json()["summary"]["is_healthy"] is True
