# tests/test_auth.py
"""
Login, token y límite de intentos
"""
import pytest

from app.core.auth.rate_limit import WindowedRateLimiter, login_rate_limiter
from app.core.auth.service import AuthService
from app.shared.database.models import User


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


class TestWindowedRateLimiter:

    def test_blocks_after_limit(self):
        limiter = WindowedRateLimiter(limit=3, window_seconds=10, clock=FakeClock())

        assert [limiter.hit("1.2.3.4") for _ in range(4)] == [True, True, True, False]
        assert limiter.hit("5.6.7.8") is True

    def test_window_restarts(self):
        clock = FakeClock()
        limiter = WindowedRateLimiter(limit=1, window_seconds=10, clock=clock)

        assert limiter.hit("ip") is True
        assert limiter.hit("ip") is False

        clock.now += 10
        assert limiter.hit("ip") is True

    def test_expired_buckets_are_evicted(self):
        clock = FakeClock()
        limiter = WindowedRateLimiter(limit=5, window_seconds=10, clock=clock)
        for i in range(20):
            limiter.hit(f"ip-{i}")
        assert len(limiter) == 20

        clock.now += 11
        limiter.hit("new-ip")

        assert len(limiter) == 1

    def test_reset(self):
        limiter = WindowedRateLimiter(limit=1, window_seconds=10, clock=FakeClock())
        limiter.hit("ip")
        limiter.reset("ip")
        assert limiter.hit("ip") is True


@pytest.fixture
def login_user(db):
    user = User(
        email="login@local",
        password_hash=AuthService.get_password_hash("secret123"),
        first_name="Log",
        last_name="In",
        role="agent",
        is_active=True,
    )
    db.add(user)
    db.commit()
    return user.id


class TestLogin:

    def test_login_json(self, client, login_user):
        response = client.post("/api/v1/auth/login-json", json={"email": "login@local", "password": "secret123"})

        assert response.status_code == 200
        body = response.json()
        assert body["token_type"] == "bearer"
        assert body["user"]["role"] == "agent"
        assert AuthService.verify_token(body["access_token"])["user_id"] == login_user

    def test_login_form(self, client, login_user):
        response = client.post("/api/v1/auth/login", data={"username": "login@local", "password": "secret123"})
        assert response.status_code == 200

    def test_bad_password(self, client, login_user):
        response = client.post("/api/v1/auth/login-json", json={"email": "login@local", "password": "nope"})
        assert response.status_code == 401

    def test_inactive_user(self, client, login_user, db):
        db.query(User).filter(User.id == login_user).update({"is_active": False})
        db.commit()

        response = client.post("/api/v1/auth/login-json", json={"email": "login@local", "password": "secret123"})
        assert response.status_code == 403

    def test_rate_limited(self, client, login_user, monkeypatch):
        monkeypatch.setattr(login_rate_limiter, "limit", 2)

        statuses = [
            client.post("/api/v1/auth/login-json", json={"email": "login@local", "password": "nope"}).status_code
            for _ in range(3)
        ]

        assert statuses == [401, 401, 429]

    def test_me(self, client, login_user):
        token = client.post(
            "/api/v1/auth/login-json", json={"email": "login@local", "password": "secret123"}
        ).json()["access_token"]

        response = client.get("/api/v1/auth/me", headers={"Authorization": f"Bearer {token}"})

        assert response.status_code == 200
        assert response.json()["email"] == "login@local"

    def test_invalid_token(self, client):
        response = client.get("/api/v1/auth/me", headers={"Authorization": "Bearer not-a-token"})
        assert response.status_code == 401
