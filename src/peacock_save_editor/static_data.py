from __future__ import annotations

import logging
import os
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any, Dict, Iterator

from . import probe
from .constants import (
    CONTRACTDATA_DIR,
    DEFAULT_ESCALATION_LEVELS,
    DEFAULT_MASTERY_CAP,
    ESCALATION_CODENAMES,
    GLOBAL_CHALLENGES,
    MISSION_STORIES,
    SNIPER_RIFLES,
    STATIC_DIR,
)
from .localization import format_localization_key, format_story_id
from .ttl_cache import TtlCache

logger = logging.getLogger(__name__)

CATALOG_TTL = 60.0


@dataclass(frozen=True)
class ChallengeEntry:
    id: str
    name: str
    description: str
    location: str

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class EscalationEntry:
    id: str
    name: str
    codename: str
    location: str
    max_level: int

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class StoryEntry:
    id: str
    name: str
    location: str
    briefing: str

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def iter_json_files(folder: Path, marker: str) -> Iterator[Path]:
    """``*.json`` files under ``folder`` whose name contains ``marker``.

    Directories and files are visited in sorted order so that first-wins
    deduplication is reproducible across platforms.
    """
    def _onerror(err: OSError) -> None:
        logger.debug("Skipping %s: %s", getattr(err, "filename", folder), err)

    for dirpath, dirnames, filenames in os.walk(folder, onerror=_onerror):
        dirnames.sort()
        for name in sorted(filenames):
            if marker in name and name.endswith(".json"):
                yield Path(dirpath) / name


def _load_json(path: Path) -> Any:
    result = probe.read_json(path)
    if not result.ok:
        if probe.exists(path):
            logger.warning("Ignoring unreadable data file %s: %s", path, result.error)
        return None
    return result.value


def build_challenges(root: Path) -> Dict[str, ChallengeEntry]:
    catalog: Dict[str, ChallengeEntry] = {}

    global_data = _load_json(root / STATIC_DIR / GLOBAL_CHALLENGES)
    if isinstance(global_data, list):
        for raw in global_data:
            if not isinstance(raw, dict) or not raw.get("Id"):
                continue
            cid = str(raw["Id"])
            if cid in catalog:
                continue
            catalog[cid] = ChallengeEntry(
                id=cid,
                name=format_localization_key(raw.get("Name")) if raw.get("Name") else cid,
                description=str(raw.get("Description") or ""),
                location="Global",
            )

    for file in iter_json_files(root / CONTRACTDATA_DIR, "CHALLENGE"):
        data = _load_json(file)
        if not isinstance(data, dict):
            continue
        location = file.name.replace("_CHALLENGES.json", "").replace("_CHALLENGE.json", "")
        for group in data.get("groups") or []:
            if not isinstance(group, dict):
                continue
            for raw in group.get("Challenges") or []:
                if not isinstance(raw, dict) or not raw.get("Id"):
                    continue
                cid = str(raw["Id"])
                # global definitions and earlier files take priority
                if cid in catalog:
                    continue
                catalog[cid] = ChallengeEntry(
                    id=cid,
                    name=format_localization_key(raw.get("Name")) if raw.get("Name") else cid,
                    description=str(raw.get("Description") or ""),
                    location=location,
                )
    return catalog


def build_escalations(root: Path) -> Dict[str, EscalationEntry]:
    catalog: Dict[str, EscalationEntry] = {}
    data = _load_json(root / STATIC_DIR / ESCALATION_CODENAMES)
    if not isinstance(data, dict):
        return catalog
    for location, items in data.items():
        if not isinstance(items, list):
            continue
        for raw in items:
            if not isinstance(raw, dict) or not raw.get("id"):
                continue
            eid = str(raw["id"])
            if eid in catalog:
                continue
            levels = raw.get("levels") or raw.get("maxLevel")
            catalog[eid] = EscalationEntry(
                id=eid,
                name=str(raw.get("name") or raw.get("codename") or eid),
                codename=str(raw.get("codename") or ""),
                location=str(location),
                max_level=int(levels) if isinstance(levels, (int, float)) and levels > 0 else DEFAULT_ESCALATION_LEVELS,
            )
    return catalog


def build_stories(root: Path) -> Dict[str, StoryEntry]:
    catalog: Dict[str, StoryEntry] = {}
    data = _load_json(root / STATIC_DIR / MISSION_STORIES)
    if not isinstance(data, dict):
        return catalog
    for sid, raw in data.items():
        info = raw if isinstance(raw, dict) else {}
        catalog[sid] = StoryEntry(
            id=sid,
            name=format_story_id(info.get("Title") or sid),
            location=str(info.get("Location") or "Unknown"),
            briefing=str(info.get("Briefing") or ""),
        )
    return catalog


def build_mastery_caps(root: Path) -> Dict[str, int]:
    caps: Dict[str, int] = {}
    for file in iter_json_files(root / CONTRACTDATA_DIR, "_MASTERY"):
        data = _load_json(file)
        if not isinstance(data, dict):
            continue
        location_id = data.get("LocationId")
        if not location_id:
            continue
        raw_max = data.get("MaxLevel")
        max_level = int(raw_max) if isinstance(raw_max, (int, float)) and raw_max > 0 else DEFAULT_MASTERY_CAP
        # several files may describe one location; the highest cap wins
        if max_level > caps.get(location_id, 0):
            caps[location_id] = max_level
    for location_id in SNIPER_RIFLES:
        caps.setdefault(location_id, DEFAULT_MASTERY_CAP)
    return caps


class StaticDataLoader:
    """Catalog access with a per-catalog, per-root TTL cache."""

    def __init__(self, cache: TtlCache, ttl: float = CATALOG_TTL) -> None:
        self.cache = cache
        self.ttl = ttl

    def _get(self, kind: str, root: Path, builder) -> Any:
        key = (kind, str(root))
        return self.cache.get_or_build(key, self.ttl, lambda: builder(root))

    def challenges(self, root: Path) -> Dict[str, ChallengeEntry]:
        return self._get("challenges", root, build_challenges)

    def escalations(self, root: Path) -> Dict[str, EscalationEntry]:
        return self._get("escalations", root, build_escalations)

    def stories(self, root: Path) -> Dict[str, StoryEntry]:
        return self._get("stories", root, build_stories)

    def mastery_caps(self, root: Path) -> Dict[str, int]:
        return self._get("mastery", root, build_mastery_caps)

    def challenge_name(self, root: Path, challenge_id: str) -> str:
        entry = self.challenges(root).get(challenge_id)
        return entry.name if entry else challenge_id

    def escalation_name(self, root: Path, escalation_id: str) -> str:
        entry = self.escalations(root).get(escalation_id)
        return entry.name if entry else escalation_id

    def story_name(self, root: Path, story_id: str) -> str:
        entry = self.stories(root).get(story_id)
        return entry.name if entry else story_id
