# tests/test_app.py
"""
Arranque de la aplicación: health, middleware y conexión a la base
"""
from sqlalchemy import create_engine

from app.config.database import database_status, engine_options
from app.core.middleware import client_ip


class TestHealth:

    def test_health_reports_database(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"
        assert response.json()["database"] == "connected"

    def test_root(self, client):
        assert client.get("/").json()["api"] == "/api/v1"


class TestMiddleware:

    def test_process_time_header(self, client):
        response = client.get("/")
        assert float(response.headers["X-Process-Time"]) >= 0

    def test_client_ip_prefers_forwarded_header(self):
        class FakeRequest:
            headers = {"x-forwarded-for": "10.0.0.7, 172.16.0.1"}
            client = None

        assert client_ip(FakeRequest()) == "10.0.0.7"


class TestDatabase:

    def test_engine_options_by_driver(self):
        assert engine_options("postgresql://u:p@db/app")["connect_args"] == {"connect_timeout": 10}
        assert engine_options("sqlite:///local.db")["connect_args"] == {"check_same_thread": False}
        assert engine_options("sqlite:///local.db")["pool_pre_ping"] is True

    def test_status_of_unreachable_database(self, tmp_path):
        broken = create_engine(f"sqlite:///{tmp_path / 'missing' / 'nope.db'}")
        assert database_status(broken) == "unavailable"

    def test_status_of_reachable_database(self, engine):
        assert database_status(engine) == "connected"
