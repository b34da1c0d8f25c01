from __future__ import annotations

import logging
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from . import probe
from .constants import ACTIVITY_LOG, MAX_ACTIVITIES, USERDATA_DIR

logger = logging.getLogger(__name__)

ACTIVITY_TYPES = ("unlock", "mastery", "profile", "settings", "backup")


@dataclass
class ActivityRecord:
    id: str
    description: str
    timestamp: str
    type: str = "unlock"

    @classmethod
    def create(cls, description: str, type: str, now: datetime) -> "ActivityRecord":
        return cls(
            id=str(int(now.timestamp() * 1000)),
            description=description,
            timestamp=now.isoformat(timespec="milliseconds").replace("+00:00", "Z"),
            type=type,
        )

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "ActivityRecord":
        return cls(
            id=str(raw.get("id") or ""),
            description=str(raw.get("description") or ""),
            timestamp=str(raw.get("timestamp") or ""),
            type=str(raw.get("type") or "unlock"),
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class ActivityLog:
    """Newest-first journal in ``userdata/activity_log.json``, capped in length."""

    def __init__(
        self,
        path: Path,
        max_entries: int = MAX_ACTIVITIES,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ) -> None:
        self.path = path
        self.max_entries = max_entries
        self._clock = clock

    @classmethod
    def for_root(cls, root: Path, max_entries: int = MAX_ACTIVITIES) -> "ActivityLog":
        return cls(root / USERDATA_DIR / ACTIVITY_LOG, max_entries)

    def list(self) -> List[ActivityRecord]:
        result = probe.read_json(self.path)
        if not result.ok or not isinstance(result.value, list):
            return []
        records = [ActivityRecord.from_dict(raw) for raw in result.value if isinstance(raw, dict)]
        return records[: self.max_entries]

    def _write(self, records: List[ActivityRecord]) -> None:
        result = probe.write_json(self.path, [r.to_dict() for r in records], indent=2)
        if not result.ok:
            raise OSError(f"Failed to write activity log: {result.error}")

    def append(self, description: str, type: str = "unlock") -> ActivityRecord:
        if type not in ACTIVITY_TYPES:
            logger.debug("Unknown activity type %r recorded as-is", type)
        record = ActivityRecord.create(description, type, self._clock())
        records = self.list()
        records.insert(0, record)
        self._write(records[: self.max_entries])
        return record

    def record(self, description: str, type: str = "unlock") -> Optional[ActivityRecord]:
        """Like :meth:`append` but never raises; failures are only logged."""
        try:
            return self.append(description, type)
        except OSError as exc:
            logger.warning("Activity not recorded (%s): %s", description, exc)
            return None

    def clear(self) -> None:
        self._write([])
