from datetime import date
from typing import Dict, Optional, Protocol

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.future import select

from logger import get_logger
from models import ProcessingState

logger = get_logger("checkpoint_store")


class CheckpointStore(Protocol):
    async def load(self, key: str, default: date) -> date:
        ...

    async def save(self, key: str, value: date) -> None:
        ...


class SqlCheckpointStore:
    """
    Watermarks kept in the ``processing_states`` table, one row per key.

    A missing row is created on first ``load`` with the supplied default, so a
    fresh database starts with an empty backlog instead of failing.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def _get(self, session: AsyncSession, key: str) -> Optional[ProcessingState]:
        result = await session.execute(
            select(ProcessingState).where(ProcessingState.key == key)
        )
        return result.scalar_one_or_none()

    async def load(self, key: str, default: date) -> date:
        async with self.session_factory() as session:
            state = await self._get(session, key)
            if state is not None:
                return state.value

            session.add(ProcessingState(key=key, value=default))
            await session.commit()
            logger.info("Initialized checkpoint %s at %s", key, default)
            return default

    async def save(self, key: str, value: date) -> None:
        async with self.session_factory() as session:
            state = await self._get(session, key)
            if state:
                state.value = value
            else:
                session.add(ProcessingState(key=key, value=value))
            await session.commit()


class InMemoryCheckpointStore:
    """Dict-backed store for tests and ``--dry-run``; ``fail_saves`` makes ``save`` raise."""

    def __init__(self, initial: Optional[Dict[str, date]] = None):
        self.values: Dict[str, date] = dict(initial or {})
        self.fail_saves = 0
        self.save_calls = 0

    async def load(self, key: str, default: date) -> date:
        return self.values.setdefault(key, default)

    async def save(self, key: str, value: date) -> None:
        self.save_calls += 1
        if self.fail_saves > 0:
            self.fail_saves -= 1
            raise RuntimeError(f"checkpoint write for {key} failed")
        self.values[key] = value
