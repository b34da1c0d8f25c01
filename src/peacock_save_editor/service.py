from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Union

from .activity_log import ActivityLog
from .config_store import LocationCache
from .constants import FREELANCER_ID, SNIPER_RIFLES, location_game, location_name, xp_for_level
from .discovery import InstallationLocator
from .mutations import INSTALL_NOT_FOUND, NO_PROFILES, OperationResult, ProfileEditor
from .options_file import OptionsFile
from .profile_store import ProfileStore
from .settings import AppConfig, PeacockOptions, load_app_config
from .static_data import StaticDataLoader
from .ttl_cache import TtlCache

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 50
NOT_FOUND_HINT = "Peacock installation not found. Please set {env} environment variable."


@dataclass
class CatalogQuery:
    page: Optional[int] = None
    limit: Optional[int] = None
    search: str = ""
    location: str = ""
    completed: Optional[bool] = None

    @property
    def paginated(self) -> bool:
        return bool(self.page) or bool(self.limit)


def _number(value: Any, default: int = 0) -> Any:
    # falsy values fall through to the default, as the game files use 0 for unset
    return value if isinstance(value, (int, float)) and value else default


def _dict(value: Any) -> Dict[str, Any]:
    return value if isinstance(value, dict) else {}


def profile_summary(profile_id: str, profile: Dict[str, Any]) -> Dict[str, Any]:
    ext = _dict(profile.get("Extensions"))
    prog = _dict(ext.get("progression"))
    player_xp = _dict(prog.get("PlayerProfileXP"))
    freelancer = _dict(_dict(ext.get("CPD")).get(FREELANCER_ID))
    completed = ext.get("PeacockCompletedEscalations")
    return {
        "id": profile_id,
        "level": _number(player_xp.get("ProfileLevel")) or _number(prog.get("ProfileLevel"), 1),
        "xp": _number(player_xp.get("Total")) or _number(prog.get("XP")),
        "merces": _number(_dict(prog.get("Merces")).get("Total")),
        "prestige": _number(freelancer.get("EvergreenLevel")),
        "challenges_completed": len(_dict(ext.get("ChallengeProgression"))),
        "locations_count": len(_dict(prog.get("Locations"))),
        "escalations_completed": len(completed) if isinstance(completed, list) else 0,
        "stories_completed": len(_dict(ext.get("opportunityprogression"))),
    }


def _matches(row: Dict[str, Any], needle: str) -> bool:
    return any(needle in str(value).lower() for value in row.values() if isinstance(value, str))


def filter_rows(rows: List[Dict[str, Any]], query: CatalogQuery) -> List[Dict[str, Any]]:
    if query.search:
        needle = query.search.lower()
        rows = [r for r in rows if _matches(r, needle)]
    if query.location:
        rows = [r for r in rows if r.get("location") == query.location]
    if query.completed is not None:
        rows = [r for r in rows if bool(r.get("completed")) == query.completed]
    return rows


def paginate(kind: str, rows: List[Dict[str, Any]], query: CatalogQuery) -> Union[List[Dict[str, Any]], Dict[str, Any]]:
    if not query.paginated:
        return rows
    limit = query.limit if query.limit and query.limit > 0 else DEFAULT_PAGE_SIZE
    page = query.page if query.page and query.page > 0 else 1
    start = (page - 1) * limit
    total = len(rows)
    return {
        kind: rows[start : start + limit],
        "pagination": {"page": page, "limit": limit, "total": total, "pages": math.ceil(total / limit)},
    }


class EditorService:
    """Request/response facade shared by the command line and the desktop window."""

    def __init__(
        self,
        config: Optional[AppConfig] = None,
        locator: Optional[InstallationLocator] = None,
        cache: Optional[TtlCache] = None,
        deep_scan: bool = False,
    ) -> None:
        self.config = config or load_app_config()
        self.locator = locator or InstallationLocator(
            LocationCache(self.config.cache_file), env_var=self.config.path_env_var
        )
        self.static = StaticDataLoader(cache or TtlCache(), ttl=self.config.catalog_ttl)
        self.deep_scan = deep_scan
        self.editor = ProfileEditor(self.root, self.static, max_activities=self.config.max_activities)

    def root(self) -> Optional[Path]:
        return self.locator.locate(deep=self.deep_scan)

    def _activity_log(self, root: Path) -> ActivityLog:
        return ActivityLog.for_root(root, self.config.max_activities)

    def _active_profile(self, root: Path) -> Dict[str, Any]:
        store = ProfileStore(root)
        path = store.resolve_active_profile()
        if path is None:
            return {}
        return store.read(path) or {}

    # status and profiles

    def status(self) -> OperationResult:
        found = self.locator.locate_with_source(deep=self.deep_scan)
        if found.path is None:
            return OperationResult.ok(
                INSTALL_NOT_FOUND,
                {
                    "connected": False,
                    "peacock_path": None,
                    "profiles_count": 0,
                    "message": NOT_FOUND_HINT.format(env=self.locator.env_var),
                },
            )
        count = len(ProfileStore(found.path).enumerate())
        message = f"Connected to Peacock at {found.path}"
        return OperationResult.ok(
            message,
            {
                "connected": True,
                "peacock_path": str(found.path),
                "profiles_count": count,
                "message": message,
                "source": found.source,
            },
        )

    def list_profiles(self) -> OperationResult:
        root = self.root()
        if root is None:
            return OperationResult.not_found(INSTALL_NOT_FOUND)
        store = ProfileStore(root)
        summaries = []
        for path in store.enumerate():
            profile = store.read(path)
            if profile is None:
                continue
            summaries.append(profile_summary(path.stem, profile))
        return OperationResult.ok(f"{len(summaries)} profile(s)", summaries)

    def get_profile(self, profile_id: str) -> OperationResult:
        root = self.root()
        if root is None:
            return OperationResult.not_found(INSTALL_NOT_FOUND)
        store = ProfileStore(root)
        path = store.profile_path(profile_id)
        profile = store.read(path) if path.exists() else None
        if profile is None:
            return OperationResult.not_found("Profile not found")
        return OperationResult.ok(profile_id, profile_summary(profile_id, profile))

    # catalogs

    def challenge_rows(self, root: Path) -> List[Dict[str, Any]]:
        done = set(_dict(_dict(self._active_profile(root).get("Extensions")).get("ChallengeProgression")))
        return [dict(entry.to_dict(), completed=cid in done) for cid, entry in self.static.challenges(root).items()]

    def escalation_rows(self, root: Path) -> List[Dict[str, Any]]:
        ext = _dict(self._active_profile(root).get("Extensions"))
        completed = ext.get("PeacockCompletedEscalations")
        done = {c for c in completed if isinstance(c, str)} if isinstance(completed, list) else set()
        levels = _dict(ext.get("PeacockEscalations"))
        return [
            dict(entry.to_dict(), completed=eid in done, current_level=_number(levels.get(eid)))
            for eid, entry in self.static.escalations(root).items()
        ]

    def story_rows(self, root: Path) -> List[Dict[str, Any]]:
        done = set(_dict(_dict(self._active_profile(root).get("Extensions")).get("opportunityprogression")))
        return [dict(entry.to_dict(), completed=sid in done) for sid, entry in self.static.stories(root).items()]

    def _catalog(self, kind: str, query: Optional[CatalogQuery]) -> OperationResult:
        root = self.root()
        if root is None:
            return OperationResult.not_found(INSTALL_NOT_FOUND)
        builders = {
            "challenges": self.challenge_rows,
            "escalations": self.escalation_rows,
            "stories": self.story_rows,
        }
        query = query or CatalogQuery()
        rows = filter_rows(builders[kind](root), query)
        return OperationResult.ok(f"{len(rows)} {kind}", paginate(kind, rows, query))

    def challenges(self, query: Optional[CatalogQuery] = None) -> OperationResult:
        return self._catalog("challenges", query)

    def escalations(self, query: Optional[CatalogQuery] = None) -> OperationResult:
        return self._catalog("escalations", query)

    def stories(self, query: Optional[CatalogQuery] = None) -> OperationResult:
        return self._catalog("stories", query)

    def location_rows(self, root: Path) -> List[Dict[str, Any]]:
        prog = _dict(_dict(self._active_profile(root).get("Extensions")).get("progression"))
        current: Dict[str, int] = {}
        for location_id, raw in _dict(prog.get("Locations")).items():
            if not isinstance(raw, dict):
                continue
            if location_id in SNIPER_RIFLES:
                rifles = list(raw.values())
                first = rifles[0] if rifles and isinstance(rifles[0], dict) else {}
                current[location_id] = _number(first.get("Level"), 1)
            else:
                current[location_id] = _number(raw.get("Level"), 1)

        rows = []
        for location_id, cap in self.static.mastery_caps(root).items():
            level = current.get(location_id) or 1
            rows.append(
                {
                    "id": location_id,
                    "name": location_name(location_id),
                    "max_level": cap,
                    "current_level": level,
                    "xp": xp_for_level(level),
                    "game": location_game(location_id),
                }
            )
        rows.sort(key=lambda r: r["name"].lower())
        return rows

    def locations(self) -> OperationResult:
        root = self.root()
        if root is None:
            return OperationResult.not_found(INSTALL_NOT_FOUND)
        rows = self.location_rows(root)
        return OperationResult.ok(f"{len(rows)} locations", rows)

    # settings

    def get_settings(self) -> OperationResult:
        root = self.root()
        if root is None:
            return OperationResult.not_found(INSTALL_NOT_FOUND)
        return OperationResult.ok("", OptionsFile.for_root(root).read().to_dict())

    def save_settings(self, options: Union[PeacockOptions, Dict[str, Any]]) -> OperationResult:
        root = self.root()
        if root is None:
            return OperationResult.not_found(INSTALL_NOT_FOUND)
        try:
            OptionsFile.for_root(root).write(options)
        except OSError as exc:
            logger.exception("Saving settings failed")
            return OperationResult.failure(str(exc))
        self._activity_log(root).record("Updated Peacock settings", "settings")
        return OperationResult.ok("Settings saved successfully")

    # backups

    def create_backup(self, profile_id: Optional[str] = None) -> OperationResult:
        root = self.root()
        if root is None:
            return OperationResult.not_found(INSTALL_NOT_FOUND)
        store = ProfileStore(root)
        path = store.resolve_active_profile(profile_id)
        if path is None:
            return OperationResult.not_found(NO_PROFILES)
        saved = store.backup(path)
        if saved is None:
            return OperationResult.failure("Failed to create backup")
        self._activity_log(root).record(f"Created backup of {path.stem}", "backup")
        return OperationResult.ok(f"Backup created: {saved.name}", {"backup": saved.name})

    def restore_backup(self, profile_id: Optional[str] = None) -> OperationResult:
        root = self.root()
        if root is None:
            return OperationResult.not_found(INSTALL_NOT_FOUND)
        store = ProfileStore(root)
        path = store.resolve_active_profile(profile_id)
        if path is None:
            return OperationResult.not_found(NO_PROFILES)
        try:
            restored = store.restore_latest(path)
        except OSError as exc:
            logger.exception("Restoring %s failed", path.name)
            return OperationResult.failure(str(exc))
        if restored is None:
            return OperationResult.not_found("No backups found")
        self._activity_log(root).record(f"Restored {path.stem} from {restored.name}", "backup")
        return OperationResult.ok(f"Restored from backup: {restored.name}", {"backup": restored.name})

    def list_backups(self, profile_id: Optional[str] = None) -> OperationResult:
        root = self.root()
        if root is None:
            return OperationResult.not_found(INSTALL_NOT_FOUND)
        store = ProfileStore(root)
        path = store.resolve_active_profile(profile_id)
        if path is None:
            return OperationResult.not_found(NO_PROFILES)
        return OperationResult.ok("", [p.name for p in store.list_backups(path)])

    # activity log

    def activities(self) -> OperationResult:
        root = self.root()
        if root is None:
            return OperationResult.not_found(INSTALL_NOT_FOUND)
        return OperationResult.ok("", [r.to_dict() for r in self._activity_log(root).list()])

    def log_activity(self, description: str, type: str = "unlock") -> OperationResult:
        if not description or not description.strip():
            return OperationResult.failure("Description is required")
        root = self.root()
        if root is None:
            return OperationResult.not_found(INSTALL_NOT_FOUND)
        try:
            record = self._activity_log(root).append(description, type)
        except OSError as exc:
            return OperationResult.failure(str(exc))
        return OperationResult.ok("Activity recorded", record.to_dict())

    def clear_activities(self) -> OperationResult:
        root = self.root()
        if root is None:
            return OperationResult.not_found(INSTALL_NOT_FOUND)
        try:
            self._activity_log(root).clear()
        except OSError as exc:
            return OperationResult.failure(str(exc))
        return OperationResult.ok("Activities cleared")

    # mutations

    def unlock(self, kind: str, ids: Optional[Iterable[str]] = None, profile_id: Optional[str] = None) -> OperationResult:
        handlers = {
            "challenges": self.editor.unlock_challenges,
            "escalations": self.editor.unlock_escalations,
            "stories": self.editor.unlock_stories,
        }
        return handlers[kind](ids, profile_id)

    def lock(self, kind: str, ids: Optional[Iterable[str]] = None, profile_id: Optional[str] = None) -> OperationResult:
        handlers = {
            "challenges": self.editor.lock_challenges,
            "escalations": self.editor.lock_escalations,
            "stories": self.editor.lock_stories,
        }
        return handlers[kind](ids, profile_id)

    def set_mastery(self, location_id: str, level: int, profile_id: Optional[str] = None) -> OperationResult:
        return self.editor.set_mastery(location_id, level, profile_id)

    def max_all_mastery(self, profile_id: Optional[str] = None) -> OperationResult:
        return self.editor.max_all_mastery(profile_id)

    def unlock_all_content(self, profile_id: Optional[str] = None) -> OperationResult:
        return self.editor.unlock_all_content(profile_id)

    def update_profile(self, profile_id: Optional[str] = None, **fields: Optional[int]) -> OperationResult:
        return self.editor.update_profile(profile_id, **fields)

    def reset_all(self, profile_id: Optional[str] = None) -> OperationResult:
        return self.editor.reset_all(profile_id)
