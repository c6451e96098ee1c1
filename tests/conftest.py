import asyncio
import os
import uuid

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")

import pytest
from httpx import ASGITransport, AsyncClient

from sensorboard.core.database import Base, create_engine_for, create_session_factory
from sensorboard.models import device as _device_model, sensor as _sensor_model, reading as _reading_model  # noqa: F401
from sensorboard.main import create_app
from sensorboard.schemas.device import DeviceCreate
from sensorboard.services import device_service


async def wait_for(predicate, timeout: float = 2.0, interval: float = 0.01):
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not met before timeout")
        await asyncio.sleep(interval)


@pytest.fixture
async def engine(tmp_path):
    engine = create_engine_for(f"sqlite+aiosqlite:///{tmp_path / 'sensorboard.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return create_session_factory(engine)


@pytest.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def user_id():
    return uuid.uuid4()


@pytest.fixture
def auth_headers(user_id):
    return {"X-User-Id": str(user_id)}


@pytest.fixture
async def device(db, user_id):
    return await device_service.create_device(db, user_id, DeviceCreate(name="D1", api_key="abc123"))


@pytest.fixture
async def other_device(db):
    return await device_service.create_device(db, uuid.uuid4(), DeviceCreate(name="D2", api_key="other-key"))


@pytest.fixture
async def app(session_factory):
    app = create_app(session_factory=session_factory, simulator_interval=0.05)
    async with app.router.lifespan_context(app):
        yield app


@pytest.fixture
async def client(app):
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client
