import asyncio
from datetime import date

from sqlalchemy import func, select

from models import ProcessingState
from scanner import (
    ExpirationScanner,
    FixedClock,
    RecordingNotificationSink,
    SqlCheckpointStore,
    SqlPolicySource,
)

KEY = "PolicyExpirationChecker.LastRunUtc"


async def count_states(sessions):
    async with sessions() as session:
        return await session.scalar(select(func.count()).select_from(ProcessingState))


def test_load_creates_missing_checkpoint(open_db):
    async def scenario():
        async with open_db() as sessions:
            store = SqlCheckpointStore(sessions)
            first = await store.load(KEY, default=date(2025, 1, 5))
            second = await store.load(KEY, default=date(2030, 1, 1))
            return first, second, await count_states(sessions)

    first, second, rows = asyncio.run(scenario())

    assert first == date(2025, 1, 5)
    assert second == date(2025, 1, 5)
    assert rows == 1


def test_save_is_idempotent(open_db):
    async def scenario():
        async with open_db() as sessions:
            store = SqlCheckpointStore(sessions)
            await store.save(KEY, date(2025, 2, 1))
            await store.save(KEY, date(2025, 2, 1))
            value = await store.load(KEY, default=date(1970, 1, 1))
            return value, await count_states(sessions)

    value, rows = asyncio.run(scenario())

    assert value == date(2025, 2, 1)
    assert rows == 1


def test_checkpoints_are_keyed(open_db):
    async def scenario():
        async with open_db() as sessions:
            store = SqlCheckpointStore(sessions)
            await store.save("scanner-a", date(2025, 1, 1))
            await store.save("scanner-b", date(2025, 6, 1))
            return await store.load("scanner-a", date(2000, 1, 1)), await store.load("scanner-b", date(2000, 1, 1))

    assert asyncio.run(scenario()) == (date(2025, 1, 1), date(2025, 6, 1))


def test_policy_source_range_query(open_db, make_policy):
    async def scenario():
        async with open_db() as sessions:
            async with sessions() as session:
                session.add_all([
                    make_policy(date(2024, 12, 31)),
                    make_policy(date(2025, 1, 1)),
                    make_policy(date(2025, 1, 3), provider=None),
                    make_policy(date(2025, 1, 5)),
                ])
                await session.commit()
            source = SqlPolicySource(sessions)
            found = await source.find_expiring(date(2025, 1, 1), date(2025, 1, 5))
            return sorted(p.end_date for p in found)

    assert asyncio.run(scenario()) == [date(2025, 1, 1), date(2025, 1, 3)]


def test_scanner_against_database(open_db, make_policy):
    async def scenario():
        async with open_db() as sessions:
            async with sessions() as session:
                session.add(ProcessingState(key=KEY, value=date(2025, 1, 1)))
                session.add_all([
                    make_policy(date(2025, 1, 1), provider="AXA", policy_id=10),
                    make_policy(date(2025, 1, 3), provider=None, policy_id=11),
                    make_policy(date(2025, 1, 5), policy_id=12),
                    make_policy(date(2024, 12, 31), policy_id=13),
                ])
                await session.commit()

            sink = RecordingNotificationSink()
            scanner = ExpirationScanner(
                SqlCheckpointStore(sessions),
                SqlPolicySource(sessions),
                sink=sink,
                clock=FixedClock(date(2025, 1, 5)),
                checkpoint_key=KEY,
            )
            first = await scanner.run_once()
            second = await scanner.run_once()

            async with sessions() as session:
                watermark = await session.scalar(select(ProcessingState.value).where(ProcessingState.key == KEY))
            return first, second, sink, watermark

    first, second, sink, watermark = asyncio.run(scenario())

    assert first.ok and second.ok
    assert sorted((n.policy_id, n.provider) for n in sink.notices) == [(10, "AXA"), (11, "Unknown")]
    assert second.notified == 0
    assert watermark == date(2025, 1, 5)
