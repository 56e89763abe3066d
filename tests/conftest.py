import os
import tempfile
from contextlib import asynccontextmanager
from datetime import timedelta

import pytest

# must be set before logger/models are imported by the test modules
os.environ.setdefault("LOG_DIR", tempfile.mkdtemp(prefix="scanner-logs-"))
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")

from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine  # noqa: E402

from models import Base, InsurancePolicy  # noqa: E402


@pytest.fixture
def sqlite_url(tmp_path):
    return f"sqlite+aiosqlite:///{tmp_path / 'scanner.db'}"


@pytest.fixture
def open_db(sqlite_url):
    """Async context manager yielding a session factory over a fresh schema.

    Engines are bound to the running event loop, so open and close the
    database inside the same ``asyncio.run`` call.
    """

    @asynccontextmanager
    async def _open():
        engine = create_async_engine(sqlite_url)
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        try:
            yield async_sessionmaker(engine, expire_on_commit=False)
        finally:
            await engine.dispose()

    return _open


@pytest.fixture
def make_policy():
    counter = {"id": 0}

    def _make(end_date, provider="Allianz", policy_id=None, car_id=1):
        counter["id"] += 1
        return InsurancePolicy(
            id=policy_id if policy_id is not None else counter["id"],
            car_id=car_id,
            provider=provider,
            start_date=end_date - timedelta(days=365),
            end_date=end_date,
        )

    return _make
