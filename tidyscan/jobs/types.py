from __future__ import annotations

import threading
from dataclasses import dataclass
from datetime import datetime
from enum import Enum

from tidyscan.db.models import ScanKind


class ScanStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


class ScanCancelledError(RuntimeError):
    pass


class CancellationToken:
    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self, phase: str) -> None:
        if self._event.is_set():
            raise ScanCancelledError(f"Scan cancelled before {phase}")


@dataclass(slots=True)
class ScanJobSnapshot:
    id: str
    kind: ScanKind
    status: ScanStatus
    error_message: str | None
    created_at: datetime
    started_at: datetime | None
    finished_at: datetime | None
