import os
import tempfile

os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")
os.environ.setdefault("UPLOAD_DIR", tempfile.mkdtemp(prefix="metro-ops-uploads-"))
os.environ.pop("REDIS_URL", None)

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from metro_ops.core.database import Base
from metro_ops.core.security import Identity, Role, create_access_token
from metro_ops.core.storage import LocalBlobStore, UploadedBlob
from metro_ops.models import incident, leave, performance, route, schedule  # noqa: F401
from metro_ops.models.route import Route
from metro_ops.models.user import User
from metro_ops.services.incident_workflow import IncidentWorkflow


class RecordingNotifier:
    def __init__(self):
        self.events = []

    async def __call__(self, event):
        self.events.append(event)


@pytest.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
async def users(db):
    """admin, captain and two drivers, returned as identities."""
    people = {
        "admin": User(username="admin", name="Operations Admin", role="ADMIN", department="MANAGEMENT"),
        "captain": User(username="captain", name="Captain Zhang", role="CAPTAIN", department="DRIVER"),
        "driver": User(username="driver01", name="Driver Li", role="EMPLOYEE", department="DRIVER"),
        "driver2": User(username="driver02", name="Driver Wang", role="EMPLOYEE", department="DRIVER"),
    }
    db.add_all(people.values())
    await db.commit()
    return {key: Identity(id=user.id, role=Role(user.role)) for key, user in people.items()}


@pytest.fixture
def upload_dir(tmp_path):
    return tmp_path / "uploads"


@pytest.fixture
def blob_store(upload_dir):
    return LocalBlobStore(str(upload_dir))


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def workflow(db, blob_store, notifier):
    return IncidentWorkflow(db, blob_store, notifier)


@pytest.fixture
def permissive_workflow(db, blob_store, notifier):
    return IncidentWorkflow(db, blob_store, notifier, transition_policy="permissive")


@pytest.fixture
def make_blob():
    def _make(field_name, content_type, filename="upload.bin", data=b"\x00\x01"):
        return UploadedBlob(field_name=field_name, content_type=content_type, filename=filename, data=data)
    return _make


@pytest.fixture
def auth_header():
    def _header(identity):
        token = create_access_token({"sub": str(identity.id), "user_id": identity.id, "role": identity.role.value})
        return {"Authorization": f"Bearer {token}"}
    return _header


@pytest.fixture
async def routes(db):
    runs = {
        "morning": Route(name="Morning 101", code="101", standard_hours=6.5, standard_km=120),
        "day": Route(name="Day 102", code="102", standard_hours=7.5, standard_km=140),
    }
    db.add_all(runs.values())
    await db.commit()
    return runs
