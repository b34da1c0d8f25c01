from __future__ import annotations

import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from . import probe
from .constants import (
    BACKUP_MARKER,
    PROFILE_SUFFIX,
    RESERVED_PROFILE_STEMS,
    USERDATA_DIR,
    USERS_DIR,
)

logger = logging.getLogger(__name__)


def is_profile_stem(stem: str) -> bool:
    """Profile files are named after the player's UUID (36 chars, 5 dash groups)."""
    if stem in RESERVED_PROFILE_STEMS:
        return False
    return len(stem) == 36 and len(stem.split("-")) == 5


def backup_timestamp(now: Optional[datetime] = None) -> str:
    moment = now or datetime.now(timezone.utc)
    return moment.strftime("%Y-%m-%dT%H-%M-%S")


def backup_name(profile: Path, timestamp: str) -> str:
    return f"{profile.stem}{BACKUP_MARKER}{timestamp}{PROFILE_SUFFIX}"


class ProfileStore:
    """All file I/O for the profiles of one installation root."""

    def __init__(self, root: Path, clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc)) -> None:
        self.root = root
        self.users_dir = root / USERDATA_DIR / USERS_DIR
        self._clock = clock

    def profile_path(self, profile_id: str) -> Path:
        return self.users_dir / f"{profile_id}{PROFILE_SUFFIX}"

    def enumerate(self) -> List[Path]:
        """Valid profile files in filesystem enumeration order.

        Callers that want "the" profile take element 0. The order is not
        sorted; it is whatever the directory listing yields.
        """
        listing = probe.list_dir(self.users_dir)
        if not listing.ok:
            return []
        profiles: List[Path] = []
        for entry in listing.value:
            name = entry.name
            if not name.endswith(PROFILE_SUFFIX):
                continue
            if not is_profile_stem(name[: -len(PROFILE_SUFFIX)]):
                continue
            profiles.append(Path(entry.path))
        return profiles

    def resolve_active_profile(self, explicit_id: Optional[str] = None) -> Optional[Path]:
        """Return the profile an operation should act on.

        An explicit id wins only when ``userdata/users/<id>.json`` exists.
        Otherwise the first enumerated profile is used, and ``None`` means the
        installation has no profiles at all.
        """
        if explicit_id:
            candidate = self.profile_path(explicit_id)
            if probe.exists(candidate):
                return candidate
            logger.info("Profile %s not found, falling back to the first profile", explicit_id)
        profiles = self.enumerate()
        return profiles[0] if profiles else None

    def read(self, path: Path) -> Optional[Dict[str, Any]]:
        result = probe.read_json(path)
        if not result.ok:
            logger.warning("Cannot read profile %s: %s", path.name, result.error)
            return None
        if not isinstance(result.value, dict):
            logger.warning("Profile %s is not a JSON object", path.name)
            return None
        return result.value

    def write(self, path: Path, value: Dict[str, Any]) -> None:
        result = probe.write_json(path, value, indent=4)
        if not result.ok:
            raise OSError(f"Failed to write {path.name}: {result.error}")

    def backup(self, path: Path) -> Optional[Path]:
        target = path.with_name(backup_name(path, backup_timestamp(self._clock())))
        result = probe.copy_file(path, target)
        if not result.ok:
            logger.warning("Backup of %s failed: %s", path.name, result.error)
            return None
        logger.info("Backed up %s -> %s", path.name, target.name)
        return target

    def list_backups(self, path: Path) -> List[Path]:
        """Backups of ``path``, most recent first."""
        prefix = f"{path.stem}{BACKUP_MARKER}"
        listing = probe.list_dir(path.parent)
        if not listing.ok:
            return []
        names = [
            entry.name
            for entry in listing.value
            if entry.name.startswith(prefix) and entry.name.endswith(PROFILE_SUFFIX)
        ]
        return [path.parent / name for name in sorted(names, reverse=True)]

    def restore_latest(self, path: Path) -> Optional[Path]:
        backups = self.list_backups(path)
        if not backups:
            return None
        latest = backups[0]
        result = probe.copy_file(latest, path)
        if not result.ok:
            raise OSError(f"Failed to restore {latest.name}: {result.error}")
        logger.info("Restored %s from %s", path.name, latest.name)
        return latest
