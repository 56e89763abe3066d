from datetime import date
from typing import Iterable, List, Protocol

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.future import select

from models import InsurancePolicy


class PolicySource(Protocol):
    async def find_expiring(self, window_start: date, window_end: date) -> List[InsurancePolicy]:
        """Policies with ``window_start <= end_date < window_end``, any order."""
        ...


class SqlPolicySource:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def find_expiring(self, window_start: date, window_end: date) -> List[InsurancePolicy]:
        async with self.session_factory() as session:
            result = await session.execute(
                select(InsurancePolicy).where(
                    InsurancePolicy.end_date >= window_start,
                    InsurancePolicy.end_date < window_end,
                )
            )
            return list(result.scalars().all())


class InMemoryPolicySource:
    """Filters a plain list of policy-like objects; set ``fail_with`` to simulate an outage."""

    def __init__(self, policies: Iterable = ()):
        self.policies = list(policies)
        self.fail_with = None
        self.queries = []

    def add(self, policy):
        self.policies.append(policy)

    async def find_expiring(self, window_start: date, window_end: date):
        self.queries.append((window_start, window_end))
        if self.fail_with is not None:
            raise self.fail_with
        return [p for p in self.policies if window_start <= p.end_date < window_end]
