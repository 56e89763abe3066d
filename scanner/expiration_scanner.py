"""
Periodic scanner that announces insurance policies as they expire.

Each iteration looks at the half-open window ``[watermark, today)``: every
policy whose end date falls inside it is emitted once to the notification
sink, then the watermark moves to ``today``. The watermark advances even when
nothing expired, so the window never widens beyond the time since the last
successful run.

Delivery is at-least-once. If the checkpoint write fails after the notices
went out, the watermark stays put and the next iteration re-emits the same
window.
"""

import asyncio
import enum
from dataclasses import dataclass
from datetime import date
from typing import Optional

from logger import get_logger
from scanner.checkpoint_store import CheckpointStore
from scanner.clock import Clock, UtcClock
from scanner.notifications import ExpirationNotice, LoggingNotificationSink, NotificationSink
from scanner.policy_source import PolicySource

logger = get_logger("expiration_scanner")

DEFAULT_CHECKPOINT_KEY = "PolicyExpirationChecker.LastRunUtc"
DEFAULT_INTERVAL_SECONDS = 600


class ScannerState(enum.Enum):
    IDLE = "idle"
    SCANNING = "scanning"
    NOTIFYING = "notifying"
    CHECKPOINTING = "checkpointing"
    SLEEPING = "sleeping"
    CANCELLED = "cancelled"


@dataclass
class ScanResult:
    window_start: Optional[date] = None
    window_end: Optional[date] = None
    notified: int = 0
    advanced: bool = False
    error: Optional[BaseException] = None

    @property
    def ok(self) -> bool:
        return self.error is None


class ExpirationScanner:
    def __init__(
        self,
        checkpoints: CheckpointStore,
        policies: PolicySource,
        sink: Optional[NotificationSink] = None,
        clock: Optional[Clock] = None,
        checkpoint_key: str = DEFAULT_CHECKPOINT_KEY,
        interval_seconds: float = DEFAULT_INTERVAL_SECONDS,
    ):
        self.checkpoints = checkpoints
        self.policies = policies
        self.sink = sink or LoggingNotificationSink()
        self.clock = clock or UtcClock()
        self.checkpoint_key = checkpoint_key
        self.interval_seconds = interval_seconds
        self.state = ScannerState.IDLE
        self.iterations = 0

    async def run_once(self) -> ScanResult:
        """One scan pass. Never raises for iteration-level failures; see ``ScanResult.error``."""
        result = ScanResult()
        self.state = ScannerState.SCANNING
        self.iterations += 1
        try:
            # "today" is read once so the window and the new watermark agree
            today = self.clock.today()
            watermark = await self.checkpoints.load(self.checkpoint_key, default=today)
            result.window_start, result.window_end = watermark, today

            if today > watermark:
                candidates = await self.policies.find_expiring(watermark, today)
                self.state = ScannerState.NOTIFYING
                for policy in candidates:
                    self.sink.emit(ExpirationNotice.from_policy(policy))
                    result.notified += 1
            else:
                logger.debug("Empty window [%s, %s), nothing to scan", watermark, today)

            self.state = ScannerState.CHECKPOINTING
            # the watermark never moves backwards, even if the clock does
            new_watermark = max(watermark, today)
            await self.checkpoints.save(self.checkpoint_key, new_watermark)
            result.advanced = new_watermark > watermark

            if result.notified:
                logger.info(
                    "Window [%s, %s): %d expired policies announced",
                    watermark, today, result.notified,
                )
        except Exception as e:
            result.error = e
            logger.exception(
                "Error processing policy expirations for window [%s, %s) (%d notices already emitted): %s",
                result.window_start, result.window_end, result.notified, e,
            )
        return result

    async def run(self, stop_event: asyncio.Event) -> None:
        """Scan until ``stop_event`` is set. The first pass starts immediately."""
        while True:
            if stop_event.is_set():
                break

            await self.run_once()

            if stop_event.is_set():
                break

            self.state = ScannerState.SLEEPING
            if await self._sleep(stop_event):
                break

        self.state = ScannerState.CANCELLED
        logger.info("Expiration scanner stopped after %d iterations", self.iterations)

    async def _sleep(self, stop_event: asyncio.Event) -> bool:
        """Wait out the interval; returns True if cancellation arrived meanwhile."""
        try:
            await asyncio.wait_for(stop_event.wait(), timeout=self.interval_seconds)
            return True
        except asyncio.TimeoutError:
            return False
