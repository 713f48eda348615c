"""Shared fixtures: in-memory database, seeded pet sharing, fake storage and LLM."""
import json
import os
from datetime import datetime, timedelta, timezone

os.environ.setdefault("DATABASE_URL", "sqlite://")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.core.database import Base, get_db
from app.core.exceptions import StorageError
from app.core.rate_limit import llm_limiter, upload_limiter
from app.core.security import TokenPayload, verify_token
from app.domains.audit import models as audit_models  # noqa: F401
from app.domains.health_records import models as health_records_models  # noqa: F401
from app.domains.imports.llm_client import LLMResponse, get_llm_client
from app.domains.imports.models import Upload  # noqa: F401
from app.domains.imports.storage import get_storage
from app.domains.pets.models import Pet, PetOwner
from app.domains.users.models import User
from app.main import app

PET_ID = 42
OTHER_PET_ID = 7

OWNER_ID = 1
EDITOR_ID = 2
VIEWER_ID = 3
OUTSIDER_ID = 4
INVITED_ID = 5


class FakeStorage:
    """In-memory storage backend."""

    def __init__(self):
        self.files: dict[str, bytes] = {}
        self.fail_on_save = False
        self.fail_on_load = False

    def save(self, data: bytes, key: str, content_type: str) -> str:
        if self.fail_on_save:
            raise StorageError("disk full")
        self.files[key] = data
        return key

    def load(self, key: str) -> bytes:
        if self.fail_on_load or key not in self.files:
            raise StorageError(f"missing {key}")
        return self.files[key]

    def delete(self, key: str) -> None:
        self.files.pop(key, None)


class FakeLLMClient:
    """Returns queued responses in order; queued exceptions are raised."""

    def __init__(self):
        self.responses: list = []
        self.calls: list[dict] = []

    def queue(self, *responses) -> None:
        for response in responses:
            if isinstance(response, dict):
                response = json.dumps(response)
            self.responses.append(response)

    def complete(self, data: bytes, media_type: str, mime_type: str, prompt: str) -> LLMResponse:
        self.calls.append({"media_type": media_type, "mime_type": mime_type, "prompt": prompt})
        if not self.responses:
            raise AssertionError("Unexpected LLM call")
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return LLMResponse(text=response, tokens_used=100, model="claude-test")


def make_token_payload(sub: str, email: str) -> TokenPayload:
    """Create a TokenPayload with default expiration."""
    return TokenPayload(
        sub=sub,
        exp=datetime.now(timezone.utc) + timedelta(hours=1),
        email=email,
    )


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    @event.listens_for(engine, "connect")
    def _enable_foreign_keys(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def db_session(engine):
    """Session with users, pet 42 shared as owner/editor/viewer, and pet 7."""
    session = sessionmaker(bind=engine, autocommit=False, autoflush=False)()

    session.add_all(
        [
            User(id=OWNER_ID, email="owner@example.com", name="Olivia Owner"),
            User(id=EDITOR_ID, email="editor@example.com", name="Ed Editor"),
            User(id=VIEWER_ID, email="viewer@example.com", name="Vic Viewer"),
            User(id=OUTSIDER_ID, email="outsider@example.com", name="Oscar Outsider"),
            User(id=INVITED_ID, email="invited@example.com", name="Ivy Invited"),
        ]
    )
    session.flush()

    accepted = datetime.now(timezone.utc)
    session.add_all(
        [
            Pet(id=PET_ID, owner_id=OWNER_ID, name="Biscuit", species="dog"),
            Pet(id=OTHER_PET_ID, owner_id=OUTSIDER_ID, name="Mittens", species="cat"),
        ]
    )
    session.flush()
    session.add_all(
        [
            PetOwner(pet_id=PET_ID, user_id=OWNER_ID, role="owner", accepted_at=accepted),
            PetOwner(pet_id=PET_ID, user_id=EDITOR_ID, role="editor", invited_by=OWNER_ID, accepted_at=accepted),
            PetOwner(pet_id=PET_ID, user_id=VIEWER_ID, role="viewer", invited_by=OWNER_ID, accepted_at=accepted),
            PetOwner(pet_id=PET_ID, user_id=INVITED_ID, role="editor", invited_by=OWNER_ID, accepted_at=None),
            PetOwner(pet_id=OTHER_PET_ID, user_id=OUTSIDER_ID, role="owner", accepted_at=accepted),
        ]
    )
    session.commit()

    yield session
    session.close()


@pytest.fixture
def storage():
    return FakeStorage()


@pytest.fixture
def llm():
    return FakeLLMClient()


@pytest.fixture(autouse=True)
def reset_rate_limits():
    upload_limiter.reset()
    llm_limiter.reset()
    yield
    upload_limiter.reset()
    llm_limiter.reset()


@pytest.fixture
def client_for(db_session, storage, llm):
    """Factory returning a TestClient authenticated as the given user id."""

    def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_storage] = lambda: storage
    app.dependency_overrides[get_llm_client] = lambda: llm

    def _client(user_id: int) -> TestClient:
        app.dependency_overrides[verify_token] = lambda: make_token_payload(
            sub=str(user_id), email=f"user{user_id}@example.com"
        )
        return TestClient(app)

    yield _client

    app.dependency_overrides.clear()
