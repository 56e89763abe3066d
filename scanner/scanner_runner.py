#!/usr/bin/env python3
"""
Runs the policy expiration scanner as a long-lived service with graceful shutdown.
"""

import argparse
import asyncio
import os
import signal
import sys
import traceback

from dotenv import load_dotenv

from logger import get_logger
from models import async_session, init_db
from scanner.checkpoint_store import InMemoryCheckpointStore, SqlCheckpointStore
from scanner.expiration_scanner import (
    DEFAULT_CHECKPOINT_KEY,
    DEFAULT_INTERVAL_SECONDS,
    ExpirationScanner,
    ScanResult,
)
from scanner.policy_source import SqlPolicySource

load_dotenv()
logger = get_logger("scanner_runner")


def interval_from_env() -> float:
    raw = os.getenv("SCANNER_INTERVAL_SECONDS", str(DEFAULT_INTERVAL_SECONDS))
    try:
        interval = float(raw)
    except ValueError:
        raise ValueError(f"SCANNER_INTERVAL_SECONDS must be a number, got {raw!r}")
    if interval <= 0:
        raise ValueError(f"SCANNER_INTERVAL_SECONDS must be positive, got {raw!r}")
    return interval


def build_scanner(dry_run: bool = False) -> ExpirationScanner:
    checkpoints = InMemoryCheckpointStore() if dry_run else SqlCheckpointStore(async_session)
    return ExpirationScanner(
        checkpoints=checkpoints,
        policies=SqlPolicySource(async_session),
        checkpoint_key=os.getenv("SCANNER_CHECKPOINT_KEY", DEFAULT_CHECKPOINT_KEY),
        interval_seconds=interval_from_env(),
    )


class ScannerRunner:
    def __init__(self, scanner: ExpirationScanner, prepare_db=None, db_retry_seconds: float = 30):
        self.scanner = scanner
        self.prepare_db = prepare_db
        self.db_retry_seconds = db_retry_seconds
        self.stop_event = asyncio.Event()

        logger.info("Scanner runner initialized with config:")
        logger.info(f"  - Checkpoint key: {scanner.checkpoint_key}")
        logger.info(f"  - Interval: {scanner.interval_seconds}s")

    def _signal_handler(self, signum):
        """Handle shutdown signals gracefully"""
        logger.info(f"Received signal {signum}, initiating graceful shutdown...")
        self.stop()

    def install_signal_handlers(self):
        loop = asyncio.get_running_loop()
        for signum in (signal.SIGTERM, signal.SIGINT):
            try:
                loop.add_signal_handler(signum, self._signal_handler, signum)
            except NotImplementedError:
                # not supported on this platform's event loop
                signal.signal(signum, lambda s, _frame: loop.call_soon_threadsafe(self._signal_handler, s))

    async def _prepare_until_ready(self) -> bool:
        """Retry schema setup until it succeeds; returns False if stopped while waiting."""
        if self.prepare_db is None:
            return True
        while not self.stop_event.is_set():
            try:
                await self.prepare_db()
                return True
            except Exception as e:
                logger.exception(f"Database not ready, retrying in {self.db_retry_seconds}s: {e}")
            try:
                await asyncio.wait_for(self.stop_event.wait(), timeout=self.db_retry_seconds)
            except asyncio.TimeoutError:
                continue
        return False

    async def start(self):
        """Run the scanner until ``stop`` is called. The first pass starts as soon as the database is reachable."""
        logger.info("Policy Expiration Hosted Service running.")
        if not await self._prepare_until_ready():
            logger.info("Stopped before the database became ready")
            return
        await self.scanner.run(self.stop_event)

    def stop(self):
        """Request cooperative cancellation; an in-flight scan is allowed to finish."""
        if not self.stop_event.is_set():
            logger.info("Policy Expiration Hosted Service is stopping.")
        self.stop_event.set()

    async def run_once(self) -> ScanResult:
        if self.prepare_db is not None:
            try:
                await self.prepare_db()
            except Exception as e:
                logger.exception(f"Database not ready: {e}")
                return ScanResult(error=e)
        return await self.scanner.run_once()


async def main(argv=None):
    parser = argparse.ArgumentParser(description="Announce insurance policies as they expire.")
    parser.add_argument("--once", action="store_true", help="run a single scan and exit")
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="keep the watermark in memory instead of the database",
    )
    args = parser.parse_args(argv)

    # a dry run must not write to the database, schema included
    prepare_db = None if args.dry_run else init_db
    runner = ScannerRunner(build_scanner(dry_run=args.dry_run), prepare_db=prepare_db)
    if args.once:
        result = await runner.run_once()
        return 0 if result.ok else 1

    runner.install_signal_handlers()
    await runner.start()
    return 0


if __name__ == "__main__":
    try:
        sys.exit(asyncio.run(main()))
    except KeyboardInterrupt:
        logger.info("Received keyboard interrupt, shutting down...")
    except Exception as e:
        logger.error(f"Fatal error: {e}")
        logger.error(traceback.format_exc())
        sys.exit(1)
