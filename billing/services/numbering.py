from __future__ import annotations

from typing import Optional, Protocol

from billing.config import Settings
from billing.models.common import Clock, SystemClock
from billing.storage.json_repo import JsonRepository


class NumberSource(Protocol):
    def next_number(self, prefix: str, owner: Optional[str] = None) -> str: ...


class TimestampNumberSource:
    """PREFIX-<epoch ms>. No collision check; the store should enforce uniqueness."""

    def __init__(self, clock: Optional[Clock] = None) -> None:
        self.clock = clock or SystemClock()

    def next_number(self, prefix: str, owner: Optional[str] = None) -> str:
        now = self.clock.now()
        ms = int(now.timestamp()) * 1000 + now.microsecond // 1000
        return f"{prefix}-{ms}"


class SequentialNumberSource:
    """
    PREFIX-00001, PREFIX-00002, ... One counter per (owner, prefix), kept
    as a record {"id": "<owner>:<prefix>", "next": n} in the repository.
    """

    def __init__(self, repo: JsonRepository, width: int = 5) -> None:
        self.repo = repo
        self.width = width

    @staticmethod
    def _counter_id(prefix: str, owner: Optional[str]) -> str:
        return f"{owner or '_'}:{prefix}"

    def peek(self, prefix: str, owner: Optional[str] = None) -> int:
        rec = self.repo.get_by_id(self._counter_id(prefix, owner)) or {}
        try:
            return max(1, int(rec.get("next") or 1))
        except (TypeError, ValueError):
            return 1

    def next_number(self, prefix: str, owner: Optional[str] = None) -> str:
        cid = self._counter_id(prefix, owner)
        with self.repo.lock:
            current = self.peek(prefix, owner)
            self.repo.upsert({"id": cid, "owner": owner, "prefix": prefix, "next": current + 1})
        return f"{prefix}-{current:0{self.width}d}"


def make_number_source(strategy: str, settings: Settings, clock: Optional[Clock] = None) -> NumberSource:
    if strategy == "sequence":
        repo = JsonRepository(
            settings.repo_path("counters"),
            entity_name="counter",
            key="id",
            backup_enabled=False,
        )
        return SequentialNumberSource(repo, width=settings.sequence_width)
    if strategy == "timestamp":
        return TimestampNumberSource(clock)
    raise ValueError(f"Unknown numbering strategy: {strategy!r}")
