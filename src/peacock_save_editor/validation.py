from __future__ import annotations
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from . import probe
from .constants import MARKER_DIRS, MIN_MARKERS


@dataclass
class InstallationCandidate:
    folder: Path
    found: list[str] = field(default_factory=list)
    missing: list[str] = field(default_factory=list)
    is_valid: bool = False
    reason: Optional[str] = None


def validate_candidate(c: InstallationCandidate) -> InstallationCandidate:
    """A folder is a Peacock installation when at least three of the four
    marker folders sit directly under it.

    ``contractSessions`` is missing from older releases, so one absent marker
    is tolerated.
    """
    c.found = []
    c.missing = []

    if not probe.is_dir(c.folder):
        c.missing = list(MARKER_DIRS)
        c.is_valid = False
        c.reason = "Not a directory"
        return c

    for name in MARKER_DIRS:
        if probe.exists(c.folder / name):
            c.found.append(name)
        else:
            c.missing.append(name)

    if len(c.found) < MIN_MARKERS:
        c.is_valid = False
        c.reason = "Missing: " + ", ".join(c.missing)
        return c

    c.is_valid = True
    c.reason = None
    return c


def is_valid_installation(path: Path) -> bool:
    return validate_candidate(InstallationCandidate(folder=Path(path))).is_valid
