"""
Per-tool usage counters for the stats dashboard.

Each entry is ``{"total": int, "today": int, "lastDate": "YYYY-MM-DD"}``.
The JSON store reads and rewrites the whole file on every update and takes
no lock, so concurrent requests can lose increments. That is fine for an
approximate dashboard; swap in another ``UsageStore`` if counts must be exact.
"""
from __future__ import annotations

import copy
import json
import logging
from datetime import date
from pathlib import Path
from typing import Callable, Dict, Protocol

logger = logging.getLogger(__name__)

UsageEntry = Dict[str, object]


class UsageStore(Protocol):
    def record_use(self, tool_id: str) -> None: ...

    def get_all(self) -> Dict[str, UsageEntry]: ...


def _count(value: object) -> int:
    try:
        return max(0, int(value))
    except (TypeError, ValueError):
        return 0


def apply_use(stats: Dict[str, UsageEntry], tool_id: str, today: str) -> UsageEntry:
    entry = stats.get(tool_id)
    if not isinstance(entry, dict):
        entry = {"total": 0, "today": 0, "lastDate": today}
        stats[tool_id] = entry

    if entry.get("lastDate") != today:
        entry["today"] = 0
        entry["lastDate"] = today

    # hand-edited or half-written files may hold junk here
    entry["total"] = _count(entry.get("total")) + 1
    entry["today"] = _count(entry.get("today")) + 1
    return entry


class JsonFileUsageStore:
    def __init__(self, path: Path, today: Callable[[], date] = date.today):
        self.path = Path(path)
        self._today = today

    def _read(self) -> Dict[str, UsageEntry]:
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return {}
        except (OSError, ValueError) as e:
            logger.warning("stats file %s unreadable, starting empty: %s", self.path, e)
            return {}
        return data if isinstance(data, dict) else {}

    def record_use(self, tool_id: str) -> None:
        stats = self._read()
        apply_use(stats, tool_id, self._today().isoformat())
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text(json.dumps(stats, indent=2), encoding="utf-8")
        except OSError as e:
            logger.warning("could not write stats file %s: %s", self.path, e)

    def get_all(self) -> Dict[str, UsageEntry]:
        return self._read()


class MemoryUsageStore:
    def __init__(self, today: Callable[[], date] = date.today):
        self._stats: Dict[str, UsageEntry] = {}
        self._today = today

    def record_use(self, tool_id: str) -> None:
        apply_use(self._stats, tool_id, self._today().isoformat())

    def get_all(self) -> Dict[str, UsageEntry]:
        return copy.deepcopy(self._stats)
