"""
Session resolution and the ownership policy.
"""
from unittest.mock import patch

import pytest
from fastapi import HTTPException

from middleware import ensure_owner


@pytest.mark.asyncio
async def test_ensure_owner_missing_resource_is_404(fake_db):
    with pytest.raises(HTTPException) as exc:
        await ensure_owner({"user_id": "u1"}, None, "AC unit", "x")
    assert exc.value.status_code == 404
    assert exc.value.detail == "AC unit not found"


@pytest.mark.asyncio
async def test_ensure_owner_foreign_resource_is_403_and_audited(fake_db):
    with pytest.raises(HTTPException) as exc:
        await ensure_owner({"user_id": "u1"}, {"user_id": "u2"}, "AC unit", "x")
    assert exc.value.status_code == 403
    assert fake_db.audit_logs.docs[0]["action"] == "OWNERSHIP_DENIED"
    assert fake_db.audit_logs.docs[0]["actor_id"] == "u1"


@pytest.mark.asyncio
async def test_ensure_owner_returns_owned_resource(fake_db):
    resource = {"user_id": "u1", "unit_id": "x"}
    assert await ensure_owner({"user_id": "u1"}, resource, "AC unit", "x") is resource


class TestFirebaseSessions:
    CLAIMS = {"uid": "fb-123", "email": "carol@example.com", "name": "Carol"}

    def test_firebase_token_provisions_user_once(self, client, fake_db):
        with patch("middleware.firebase_enabled", return_value=True), \
                patch("middleware.verify_firebase_token", return_value=self.CLAIMS):
            headers = {"Authorization": "Bearer firebase-id-token"}
            first = client.get("/api/auth/me", headers=headers)
            second = client.get("/api/auth/me", headers=headers)

        assert first.status_code == 200
        assert first.json()["email"] == "carol@example.com"
        assert first.json()["fullName"] == "Carol"
        assert second.json()["userId"] == first.json()["userId"]

        assert len(fake_db.users.docs) == 1
        assert fake_db.users.docs[0]["auth_provider"] == "firebase"
        assert fake_db.users.docs[0]["password_hash"] is None
        assert len(fake_db.notification_preferences.docs) == 1

    def test_invalid_firebase_token_is_401(self, client):
        with patch("middleware.firebase_enabled", return_value=True), \
                patch("middleware.verify_firebase_token", return_value=None):
            response = client.get("/api/auth/me", headers={"Authorization": "Bearer bad"})
        assert response.status_code == 401

    def test_firebase_not_consulted_in_local_mode(self, client):
        with patch("middleware.verify_firebase_token") as verify:
            response = client.get("/api/auth/me", headers={"Authorization": "Bearer whatever"})
        assert response.status_code == 401
        verify.assert_not_called()

    def test_firebase_user_cannot_password_login(self, client, fake_db):
        with patch("middleware.firebase_enabled", return_value=True), \
                patch("middleware.verify_firebase_token", return_value=self.CLAIMS):
            client.get("/api/auth/me", headers={"Authorization": "Bearer firebase-id-token"})

        response = client.post("/api/auth/login", json={"username": "carol", "password": ""})
        assert response.status_code == 400
