from datetime import timedelta

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from pantry_api import tasks
from pantry_api.auth import get_password_hash
from pantry_api.database import Base
from pantry_api.models import Product, User, utc_today


@pytest.fixture
def sync_session(monkeypatch):
    engine = create_engine(
        "sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool
    )
    Base.metadata.create_all(engine)
    factory = sessionmaker(bind=engine, autoflush=False)

    def _get_db_sync():
        db = factory()
        try:
            yield db
        finally:
            db.close()

    monkeypatch.setattr(tasks, "get_db_sync", _get_db_sync)
    session = factory()
    yield session
    session.close()
    Base.metadata.drop_all(engine)
    engine.dispose()


def make_user(session, email, active=True):
    user = User(email=email, password_hash=get_password_hash("secret123"), name=email.split("@")[0], is_active=active)
    session.add(user)
    session.commit()
    return user


def test_scan_groups_alerts_per_user(sync_session):
    today = utc_today()
    alice = make_user(sync_session, "alice@pantry.io")
    bob = make_user(sync_session, "bob@pantry.io")
    ghost = make_user(sync_session, "ghost@pantry.io", active=False)
    sync_session.add_all([
        Product(name="Yogur", created_by=alice.id, expiry_date=today + timedelta(days=2)),
        Product(name="Queso", created_by=alice.id, expiry_date=today - timedelta(days=1)),
        Product(name="Arroz", created_by=alice.id, expiry_date=today + timedelta(days=30)),
        Product(name="Sal", created_by=alice.id),
        Product(name="Comido", created_by=alice.id, expiry_date=today, is_consumed=True),
        Product(name="Leche", created_by=bob.id, expiry_date=today),
        Product(name="Viejo", created_by=ghost.id, expiry_date=today),
    ])
    sync_session.commit()

    result = tasks.scan_expiring_products()

    assert result["date"] == today.isoformat()
    assert result["days"] == 3
    users = {entry["user_id"]: entry for entry in result["users"]}
    assert set(users) == {alice.id, bob.id}
    assert [p["name"] for p in users[alice.id]["expiring_soon"]] == ["Yogur"]
    assert users[alice.id]["expiring_soon"][0]["days_until_expiry"] == 2
    assert [p["name"] for p in users[alice.id]["expired"]] == ["Queso"]
    assert [p["name"] for p in users[bob.id]["expiring_soon"]] == ["Leche"]


def test_scan_single_user_with_custom_window(sync_session):
    today = utc_today()
    alice = make_user(sync_session, "alice@pantry.io")
    bob = make_user(sync_session, "bob@pantry.io")
    sync_session.add_all([
        Product(name="Arroz", created_by=alice.id, expiry_date=today + timedelta(days=10)),
        Product(name="Leche", created_by=bob.id, expiry_date=today),
    ])
    sync_session.commit()

    result = tasks.scan_expiring_products(user_id=alice.id, days=10)

    assert result["user_id"] == alice.id
    assert len(result["users"]) == 1
    assert [p["name"] for p in result["users"][0]["expiring_soon"]] == ["Arroz"]


def test_scan_with_no_alerts(sync_session):
    make_user(sync_session, "alice@pantry.io")
    assert tasks.scan_expiring_products()["users"] == []
