from scanner.checkpoint_store import CheckpointStore, InMemoryCheckpointStore, SqlCheckpointStore
from scanner.clock import Clock, FixedClock, UtcClock
from scanner.expiration_scanner import ExpirationScanner, ScannerState, ScanResult
from scanner.notifications import (
    ExpirationNotice,
    LoggingNotificationSink,
    NotificationSink,
    RecordingNotificationSink,
)
from scanner.policy_source import InMemoryPolicySource, PolicySource, SqlPolicySource
