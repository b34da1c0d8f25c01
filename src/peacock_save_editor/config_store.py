
from __future__ import annotations
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from . import probe

logger = logging.getLogger(__name__)


class LocationCache:
    """Remembers the last installation root that discovery found.

    Entries are hints only; the locator revalidates them before use.
    """

    def __init__(self, file: Path) -> None:
        self.file = file

    def load(self) -> dict:
        result = probe.read_json(self.file)
        if not result.ok or not isinstance(result.value, dict):
            return {}
        return result.value

    def get(self) -> Optional[Path]:
        raw = self.load().get("peacockPath")
        if not raw or not isinstance(raw, str):
            return None
        return Path(raw)

    def set(self, path: Path) -> None:
        data = {
            "peacockPath": str(path),
            "lastUpdated": datetime.now(timezone.utc).isoformat(),
        }
        try:
            self.file.parent.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            logger.debug("Cannot create cache directory %s: %s", self.file.parent, exc)
            return
        result = probe.write_json(self.file, data, indent=2)
        if not result.ok:
            logger.debug("Location cache not written: %s", result.error)

    def clear(self) -> None:
        try:
            self.file.unlink()
        except FileNotFoundError:
            pass
        except OSError as exc:
            logger.debug("Location cache not removed: %s", exc)
