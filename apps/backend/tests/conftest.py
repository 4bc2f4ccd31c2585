"""
Pytest configuration and fixtures
"""
import os
from datetime import datetime
from itertools import count

import pytest

# Settings are read at import time: point them at throwaway backends first
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("REDIS_URL", "redis://localhost:6379/15")
os.environ.setdefault("LOG_LEVEL", "WARNING")

from sqlalchemy.orm import Session

from chatly.models import Base, PlatformClient, SocialContact, create_all
from chatly.models.db import SessionLocal, engine
from chatly.services import realtime_service

_user_ids = count(1)


class PublishRecorder:
    """Stands in for the Redis client: keeps every PUBLISH in memory"""

    def __init__(self):
        self.messages = []

    def publish(self, channel, message):
        self.messages.append((channel, message))
        return 1


@pytest.fixture(autouse=True)
def published(monkeypatch) -> PublishRecorder:
    recorder = PublishRecorder()
    monkeypatch.setattr(realtime_service, "r", recorder)
    return recorder


@pytest.fixture(scope="function")
def db() -> Session:
    """Fresh schema and session for every test"""
    Base.metadata.drop_all(bind=engine)
    create_all()
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def tenant(db: Session) -> PlatformClient:
    client = PlatformClient(name="Acme Gym")
    db.add(client)
    db.commit()
    db.refresh(client)
    return client


@pytest.fixture
def other_tenant(db: Session) -> PlatformClient:
    client = PlatformClient(name="Other Studio")
    db.add(client)
    db.commit()
    db.refresh(client)
    return client


@pytest.fixture
def make_contact(db: Session, tenant: PlatformClient):
    """Factory creating a standalone master contact"""

    def _make(platform="whatsapp", name=None, platform_client=None, **fields) -> SocialContact:
        client = platform_client or tenant
        contact = SocialContact(
            platform_client_id=client.id,
            platform=platform,
            platform_user_id=f"{platform}-{next(_user_ids)}",
            name=name,
            display_name=fields.pop("display_name", name),
            first_contact=fields.pop("first_contact", datetime(2025, 1, 15, 10, 0)),
            **fields,
        )
        db.add(contact)
        db.commit()
        db.refresh(contact)
        return contact

    return _make


def assert_single_level(db: Session) -> None:
    """No contact points at a contact that is itself linked, nor at itself"""
    db.expire_all()
    rows = {c.id: c for c in db.query(SocialContact).all()}
    for contact in rows.values():
        if contact.master_contact_id is None:
            continue
        assert contact.master_contact_id != contact.id
        assert rows[contact.master_contact_id].master_contact_id is None, (
            f"contact {contact.id} -> {contact.master_contact_id} -> {rows[contact.master_contact_id].master_contact_id}"
        )
