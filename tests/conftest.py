# tests/conftest.py
import os

os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("SECRET_KEY", "test-secret")

from decimal import Decimal
from types import SimpleNamespace

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from app.config.database import get_db, init_db
from app.core.auth.rate_limit import login_rate_limiter
from app.core.auth.service import AuthService
from app.main import app
from app.shared.database.models import (
    Division, User, Article, Buyer, BuyerSite
)
from app.shared.services.cloudinary_service import get_photo_uploader
from app.shared.services.notification_service import get_notifier


class FakeNotifier:
    """Registra las notificaciones en lugar de enviar correo"""

    def __init__(self):
        self.created = []
        self.decisions = []

    def notify_request_created(self, request_id):
        self.created.append(request_id)
        return True

    def notify_decision(self, request_id, approver_id):
        self.decisions.append((request_id, approver_id))
        return True


class FakeUploader:
    def __init__(self):
        self.uploaded = []

    async def upload_request_photos(self, photos, agent_id):
        urls = []
        for photo in photos:
            url = f"https://res.cloudinary.com/demo/image/upload/{agent_id}/{photo.filename}"
            self.uploaded.append(url)
            urls.append(url)
        return urls


@pytest.fixture
def engine(tmp_path):
    # Archivo en disco para que varios hilos compartan la base
    engine = create_engine(
        f"sqlite:///{tmp_path / 'approvals.db'}",
        connect_args={"check_same_thread": False, "timeout": 30}
    )
    init_db(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


def _user(db, email, role, division=None, **extra):
    user = User(
        email=email,
        password_hash=extra.pop("password_hash", "x"),
        first_name=email.split("@")[0].title(),
        last_name="Test",
        role=role,
        division_id=division.id if division else None,
        is_active=extra.pop("is_active", True),
        **extra
    )
    db.add(user)
    db.flush()
    return user


@pytest.fixture
def org(db):
    """
    Organización de prueba:

    - división A con agente, dos team leads (tl_a es el default) y un manager
    - división B con su manager
    - un sales director y un admin sin división
    """
    div_a = Division(name="Kozmetike")
    div_b = Division(name="Ushqimore")
    db.add_all([div_a, div_b])
    db.flush()

    tl_a = _user(db, "lead@local", "team_lead", div_a)
    tl_a2 = _user(db, "lead2@local", "team_lead", div_a)
    dm_a = _user(db, "div@local", "division_manager", div_a)
    dm_b = _user(db, "divb@local", "division_manager", div_b)
    director = _user(db, "dir@local", "sales_director")
    director2 = _user(db, "dir2@local", "sales_director")
    admin = _user(db, "admin@local", "admin", div_a)
    agent = _user(db, "agent@local", "agent", div_a, pda_number="PDA-123")
    agent_b = _user(db, "agentb@local", "agent", div_b)
    agent_no_div = _user(db, "nodiv@local", "agent")

    div_a.default_team_leader_id = tl_a.id

    buyer = Buyer(code="0012", name="Super Viva")
    other_buyer = Buyer(code="0007", name="Viva Fresh")
    db.add_all([buyer, other_buyer])
    db.flush()

    site = BuyerSite(buyer_id=buyer.id, site_code="12", site_name="Super Viva Fushë Kosovë")
    other_site = BuyerSite(buyer_id=other_buyer.id, site_code="01", site_name="Viva Fresh Qendër")
    juice = Article(sku="JAM001", name="Jamnica Orange", sell_price=Decimal("1.20"))
    milk = Article(sku="MLK010", name="Milk 1L", sell_price=Decimal("0.89"))
    pricey = Article(sku="TV001", name="TV", sell_price=Decimal("150.00"))
    db.add_all([site, other_site, juice, milk, pricey])
    db.commit()

    ids = {
        name: obj.id for name, obj in {
            "div_a": div_a, "div_b": div_b,
            "tl_a": tl_a, "tl_a2": tl_a2, "dm_a": dm_a, "dm_b": dm_b,
            "director": director, "director2": director2, "admin": admin,
            "agent": agent, "agent_b": agent_b, "agent_no_div": agent_no_div,
            "buyer": buyer, "other_buyer": other_buyer,
            "site": site, "other_site": other_site,
            "juice": juice, "milk": milk, "pricey": pricey,
        }.items()
    }
    return SimpleNamespace(**ids)


def token_for(db, user_id):
    user = db.query(User).filter(User.id == user_id).first()
    return AuthService.create_access_token(data={"user_id": user.id, "role": user.role})


@pytest.fixture
def auth(db):
    """auth(user_id) -> headers con Bearer token"""
    def _headers(user_id):
        return {"Authorization": f"Bearer {token_for(db, user_id)}"}
    return _headers


@pytest.fixture
def notifier():
    return FakeNotifier()


@pytest.fixture
def uploader():
    return FakeUploader()


@pytest.fixture
def client(session_factory, notifier, uploader):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_notifier] = lambda: notifier
    app.dependency_overrides[get_photo_uploader] = lambda: uploader
    login_rate_limiter.reset()

    yield TestClient(app)

    app.dependency_overrides.clear()
    login_rate_limiter.reset()
