"""Staff authentication tests."""

from datetime import timedelta

import jwt
import pytest

from queueline.core.config import Settings, settings
from queueline.core.security import (
    blacklist_token,
    create_access_token,
    create_staff_token,
    decode_access_token,
    verify_staff_password,
)


class TestStaffPassword:
    def test_correct_password(self):
        assert verify_staff_password(settings.staff_password)

    @pytest.mark.parametrize("password", ["", "wrong", settings.staff_password + " "])
    def test_wrong_password(self, password):
        assert not verify_staff_password(password)


class TestTokens:
    def test_staff_token_round_trip(self):
        payload = decode_access_token(create_staff_token())
        assert payload["role"] == "staff"
        assert payload["jti"]

    def test_expired_token_rejected(self):
        token = create_access_token({"sub": "staff", "role": "staff"}, expires_delta=timedelta(seconds=-1))
        assert decode_access_token(token) is None

    def test_foreign_signature_rejected(self):
        token = jwt.encode(
            {"sub": "staff", "role": "staff", "jti": "abc", "exp": 4102444800},
            "some-other-secret-key-that-is-long-enough",
            algorithm="HS256",
        )
        assert decode_access_token(token) is None

    def test_blacklisted_token_rejected(self):
        token = create_staff_token()
        assert blacklist_token(token) is True
        assert decode_access_token(token) is None

    def test_blacklist_garbage(self):
        assert blacklist_token("not-a-token") is False


class TestAuthRoutes:
    def test_login(self, client):
        response = client.post("/api/v1/auth/login", json={"password": settings.staff_password})
        assert response.status_code == 200
        data = response.json()
        assert data["token_type"] == "bearer"
        assert decode_access_token(data["access_token"]) is not None
        assert "staff_token" in response.cookies

    def test_login_wrong_password(self, client):
        response = client.post("/api/v1/auth/login", json={"password": "nope"})
        assert response.status_code == 401
        assert response.json()["detail"] == "Invalid password"

    def test_session(self, client, staff_headers):
        assert client.get("/api/v1/auth/session").json()["authenticated"] is False
        data = client.get("/api/v1/auth/session", headers=staff_headers).json()
        assert data["authenticated"] is True
        assert data["expires_at"]

    def test_cookie_grants_staff_access(self, client):
        client.post("/api/v1/auth/login", json={"password": settings.staff_password})
        assert client.get("/api/v1/queue").status_code == 200

    def test_logout_revokes_token(self, client, staff_token, staff_headers):
        response = client.post("/api/v1/auth/logout", headers=staff_headers)
        assert response.status_code == 200
        assert client.get("/api/v1/queue", headers=staff_headers).status_code == 401
        assert decode_access_token(staff_token) is None

    def test_logout_without_session(self, client):
        assert client.post("/api/v1/auth/logout").status_code == 200


class TestSettingsValidation:
    def test_production_requires_strong_secret(self):
        with pytest.raises(ValueError):
            Settings(_env_file=None, debug=False, secret_key="short")

    def test_production_rejects_default_password(self):
        with pytest.raises(ValueError):
            Settings(_env_file=None, debug=False, secret_key="x" * 48)

    def test_production_settings(self):
        configured = Settings(
            _env_file=None,
            debug=False,
            secret_key="x" * 48,
            staff_password="a-long-staff-password",
        )
        assert not configured.debug

    def test_firebase_requires_database_url(self):
        with pytest.raises(ValueError):
            Settings(_env_file=None, store_backend="firebase", firebase_database_url=None)

    def test_cors_origins_list(self):
        configured = Settings(_env_file=None, cors_origins="http://a.test, http://b.test")
        assert configured.cors_origins_list == ["http://a.test", "http://b.test"]
