from dataclasses import dataclass
from datetime import date
from typing import List, Optional, Protocol

from logger import get_logger

logger = get_logger("notifications")

UNKNOWN_PROVIDER = "Unknown"


@dataclass(frozen=True)
class ExpirationNotice:
    policy_id: int
    provider: str
    end_date: date

    @classmethod
    def from_policy(cls, policy) -> "ExpirationNotice":
        return cls(
            policy_id=policy.id,
            provider=policy.provider or UNKNOWN_PROVIDER,
            end_date=policy.end_date,
        )


class NotificationSink(Protocol):
    def emit(self, notice: ExpirationNotice) -> None:
        ...


class LoggingNotificationSink:
    def __init__(self, sink_logger=None):
        self.logger = sink_logger or logger

    def emit(self, notice: ExpirationNotice) -> None:
        self.logger.info(
            "Policy %s from %s expired on %s",
            notice.policy_id, notice.provider, notice.end_date.isoformat(),
        )


class RecordingNotificationSink:
    """Keeps every notice in memory. Set ``fail_with`` to make ``emit`` raise."""

    def __init__(self):
        self.notices: List[ExpirationNotice] = []
        self.fail_with: Optional[Exception] = None

    def emit(self, notice: ExpirationNotice) -> None:
        if self.fail_with is not None:
            raise self.fail_with
        self.notices.append(notice)

    @property
    def policy_ids(self) -> List[int]:
        return [n.policy_id for n in self.notices]
