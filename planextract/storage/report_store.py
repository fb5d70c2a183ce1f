"""
Report store for extracted results.

The extraction core never touches storage. Callers that keep reports around
(an HTTP layer, the CLI) use any object satisfying ReportStore: an in-memory
map, an external cache, a database.

Expiry policy: every report is inserted with a TTL, and expired entries are
swept on every access.
"""

import logging
import random
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Optional, Protocol, runtime_checkable

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 24 * 60 * 60


@dataclass
class StoredReport:
    """A report plus its storage timestamps (epoch seconds)."""
    id: str
    data: dict
    created_at: float
    expires_at: float

    def is_expired(self, now: float) -> bool:
        return self.expires_at < now

    def summary(self) -> dict:
        """Listing entry without the full report body."""
        metadata = self.data.get("metadata") or {}
        return {
            "id": self.id,
            "timestamp": _iso(self.created_at),
            "expires": _iso(self.expires_at),
            "documentType": self.data.get("documentType") or metadata.get("documentType") or "unknown",
            "title": metadata.get("title") or "Untitled Report",
        }


def _iso(epoch: float) -> str:
    return datetime.fromtimestamp(epoch, tz=timezone.utc).isoformat()


@runtime_checkable
class ReportStore(Protocol):
    """Protocol for report storage backends."""

    def put(self, report: dict, report_id: Optional[str] = None, ttl_seconds: Optional[float] = None) -> str:
        """Store a report and return its id."""
        ...

    def get(self, report_id: str) -> Optional[dict]:
        """Return the report, or None if missing or expired."""
        ...

    def list(self) -> list[dict]:
        """Summaries of all live reports."""
        ...

    def delete(self, report_id: str) -> bool:
        """Remove a report; True if it existed."""
        ...

    def sweep_expired(self) -> int:
        """Drop expired reports and return how many were removed."""
        ...


class InMemoryReportStore:
    """Dict-backed ReportStore with per-entry TTL."""

    def __init__(
        self,
        default_ttl_seconds: float = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = time.time,
    ):
        self.default_ttl_seconds = default_ttl_seconds
        self._clock = clock
        self._reports: dict[str, StoredReport] = {}

    def __len__(self) -> int:
        self.sweep_expired()
        return len(self._reports)

    def _new_id(self) -> str:
        return f"report-{int(self._clock() * 1000)}-{random.randint(0, 9999)}"

    def put(self, report: dict, report_id: Optional[str] = None, ttl_seconds: Optional[float] = None) -> str:
        self.sweep_expired()
        now = self._clock()
        ttl = self.default_ttl_seconds if ttl_seconds is None else ttl_seconds
        report_id = report_id or self._new_id()
        self._reports[report_id] = StoredReport(
            id=report_id,
            data=report,
            created_at=now,
            expires_at=now + ttl,
        )
        logger.debug(f"Stored report {report_id} (ttl {ttl:.0f}s)")
        return report_id

    def get(self, report_id: str) -> Optional[dict]:
        self.sweep_expired()
        stored = self._reports.get(report_id)
        return stored.data if stored else None

    def list(self) -> list[dict]:
        self.sweep_expired()
        return [stored.summary() for stored in self._reports.values()]

    def delete(self, report_id: str) -> bool:
        self.sweep_expired()
        return self._reports.pop(report_id, None) is not None

    def sweep_expired(self) -> int:
        now = self._clock()
        expired = [rid for rid, stored in self._reports.items() if stored.is_expired(now)]
        for rid in expired:
            del self._reports[rid]
        if expired:
            logger.info(f"Swept {len(expired)} expired reports")
        return len(expired)
