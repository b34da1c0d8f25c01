from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

from .activity_log import ActivityLog
from .constants import (
    COMPLETED_CHALLENGE_STATE,
    DEFAULT_ESCALATION_LEVELS,
    DEFAULT_MASTERY_CAP,
    FREELANCER_ID,
    MAX_ACTIVITIES,
    MAX_LEVEL,
    MAX_MERCES,
    MAX_PRESTIGE,
    MAX_XP,
    SNIPER_RIFLES,
    clamp,
    location_name,
    xp_for_level,
)
from .profile_store import ProfileStore
from .static_data import StaticDataLoader

logger = logging.getLogger(__name__)

INSTALL_NOT_FOUND = "Peacock installation not found"
NO_PROFILES = "No profiles found"
READ_FAILED = "Failed to read profile"

# (result message, activity description); an empty description skips the journal
Outcome = Tuple[str, str]
Mutation = Callable[[Path, Dict[str, Any]], Outcome]


@dataclass
class OperationResult:
    success: bool
    message: str = ""
    status: str = "ok"
    data: Any = None

    @classmethod
    def ok(cls, message: str = "", data: Any = None) -> "OperationResult":
        return cls(True, message, "ok", data)

    @classmethod
    def not_found(cls, message: str) -> "OperationResult":
        return cls(False, message, "not_found")

    @classmethod
    def failure(cls, message: str) -> "OperationResult":
        return cls(False, message, "error")

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"success": self.success, "message": self.message, "status": self.status}
        if self.data is not None:
            out["data"] = self.data
        return out


def _child(parent: Dict[str, Any], key: str) -> Dict[str, Any]:
    """``parent[key]`` as a dict, replacing anything malformed with ``{}``."""
    value = parent.get(key)
    if not isinstance(value, dict):
        value = {}
        parent[key] = value
    return value


def _extensions(profile: Dict[str, Any]) -> Dict[str, Any]:
    return _child(profile, "Extensions")


def _progression(profile: Dict[str, Any]) -> Dict[str, Any]:
    return _child(_extensions(profile), "progression")


def _completed_escalations(ext: Dict[str, Any]) -> List[str]:
    value = ext.get("PeacockCompletedEscalations")
    if not isinstance(value, list):
        value = []
        ext["PeacockCompletedEscalations"] = value
    return value


def completed_challenge() -> Dict[str, Any]:
    return {"Completed": True, "State": {"CurrentState": COMPLETED_CHALLENGE_STATE}}


def write_mastery(locations: Dict[str, Any], location_id: str, level: int) -> None:
    """Store ``level`` for one location, fanning out to sniper sub-weapons."""
    xp = xp_for_level(level)
    values = {"Level": level, "Xp": xp, "PreviouslySeenXp": xp}
    entry = _child(locations, location_id)
    rifles = SNIPER_RIFLES.get(location_id)
    if rifles:
        for rifle in rifles:
            _child(entry, rifle).update(values)
    else:
        entry.update(values)


def _plural(count: int, singular: str, plural: str) -> str:
    return singular if count == 1 else plural


class ProfileEditor:
    """Every mutating operation on a profile.

    Each public method runs the same sequence through :meth:`_transaction`:
    resolve the installation, resolve the profile, read it, optionally back
    it up, mutate, write, then journal the change.
    """

    def __init__(
        self,
        root_provider: Callable[[], Optional[Path]],
        static: StaticDataLoader,
        max_activities: int = MAX_ACTIVITIES,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ) -> None:
        self._root_provider = root_provider
        self.static = static
        self.max_activities = max_activities
        self._clock = clock

    def _transaction(
        self,
        name: str,
        profile_id: Optional[str],
        mutate: Mutation,
        activity_type: str,
        backup: bool = False,
    ) -> OperationResult:
        try:
            root = self._root_provider()
            if root is None:
                logger.info("%s: %s", name, INSTALL_NOT_FOUND)
                return OperationResult.not_found(INSTALL_NOT_FOUND)

            store = ProfileStore(root, self._clock)
            path = store.resolve_active_profile(profile_id)
            if path is None:
                logger.info("%s: %s", name, NO_PROFILES)
                return OperationResult.not_found(NO_PROFILES)

            profile = store.read(path)
            if profile is None:
                return OperationResult.failure(READ_FAILED)

            data: Dict[str, Any] = {"profile_id": path.stem}
            if backup:
                saved = store.backup(path)
                if saved is not None:
                    data["backup"] = saved.name

            message, description = mutate(root, profile)
            store.write(path, profile)
            logger.info("%s applied to %s", name, path.name)

            if description:
                ActivityLog.for_root(root, self.max_activities).record(description, activity_type)
            return OperationResult.ok(message, data)
        except Exception as exc:
            logger.exception("%s failed", name)
            return OperationResult.failure(str(exc))

    # challenges

    def unlock_challenges(self, ids: Optional[Iterable[str]] = None, profile_id: Optional[str] = None) -> OperationResult:
        id_list = list(ids) if ids is not None else None

        def mutate(root: Path, profile: Dict[str, Any]) -> Outcome:
            progress = _child(_extensions(profile), "ChallengeProgression")
            if id_list is None:
                for cid in self.static.challenges(root):
                    progress[cid] = completed_challenge()
                return "Unlocked all challenges", "Unlocked all challenges"
            for cid in id_list:
                progress[cid] = completed_challenge()
            if len(id_list) == 1:
                return (
                    "Unlocked 1 challenges",
                    f"Unlocked challenge: {self.static.challenge_name(root, id_list[0])}",
                )
            return f"Unlocked {len(id_list)} challenges", f"Unlocked {len(id_list)} challenges"

        return self._transaction("unlock_challenges", profile_id, mutate, "unlock")

    def lock_challenges(self, ids: Optional[Iterable[str]] = None, profile_id: Optional[str] = None) -> OperationResult:
        id_list = list(ids) if ids is not None else None

        def mutate(root: Path, profile: Dict[str, Any]) -> Outcome:
            ext = _extensions(profile)
            progress = _child(ext, "ChallengeProgression")
            if id_list is None:
                total = len(progress)
                ext["ChallengeProgression"] = {}
                text = f"Locked all {total} challenges"
                return text, text
            locked = sum(1 for cid in id_list if progress.pop(cid, None) is not None)
            text = f"Locked {locked} {_plural(locked, 'challenge', 'challenges')}"
            return text, text

        return self._transaction("lock_challenges", profile_id, mutate, "unlock")

    # escalations

    def unlock_escalations(self, ids: Optional[Iterable[str]] = None, profile_id: Optional[str] = None) -> OperationResult:
        id_list = list(ids) if ids is not None else None

        def mutate(root: Path, profile: Dict[str, Any]) -> Outcome:
            catalog = self.static.escalations(root)
            ext = _extensions(profile)
            levels = _child(ext, "PeacockEscalations")
            completed = _completed_escalations(ext)
            targets = list(catalog) if id_list is None else id_list
            for eid in targets:
                entry = catalog.get(eid)
                levels[eid] = entry.max_level if entry else DEFAULT_ESCALATION_LEVELS
                if eid not in completed:
                    completed.append(eid)
            if id_list is None:
                return "Unlocked all escalations", "Unlocked all escalations"
            if len(id_list) == 1:
                return (
                    "Unlocked 1 escalations",
                    f"Unlocked escalation: {self.static.escalation_name(root, id_list[0])}",
                )
            return f"Unlocked {len(id_list)} escalations", f"Unlocked {len(id_list)} escalations"

        return self._transaction("unlock_escalations", profile_id, mutate, "unlock")

    def lock_escalations(self, ids: Optional[Iterable[str]] = None, profile_id: Optional[str] = None) -> OperationResult:
        id_list = list(ids) if ids is not None else None

        def mutate(root: Path, profile: Dict[str, Any]) -> Outcome:
            ext = _extensions(profile)
            levels = _child(ext, "PeacockEscalations")
            completed = _completed_escalations(ext)
            if id_list is None:
                total = len(set(levels) | set(completed))
                ext["PeacockEscalations"] = {}
                ext["PeacockCompletedEscalations"] = []
                text = f"Locked all {total} escalations"
                return text, text
            locked = 0
            for eid in id_list:
                present = eid in levels or eid in completed
                levels.pop(eid, None)
                completed[:] = [c for c in completed if c != eid]
                if present:
                    locked += 1
            text = f"Locked {locked} {_plural(locked, 'escalation', 'escalations')}"
            return text, text

        return self._transaction("lock_escalations", profile_id, mutate, "unlock")

    # mission stories

    def unlock_stories(self, ids: Optional[Iterable[str]] = None, profile_id: Optional[str] = None) -> OperationResult:
        id_list = list(ids) if ids is not None else None

        def mutate(root: Path, profile: Dict[str, Any]) -> Outcome:
            stories = _child(_extensions(profile), "opportunityprogression")
            if id_list is None:
                for sid in self.static.stories(root):
                    stories[sid] = True
                return "Unlocked all mission stories", "Unlocked all mission stories"
            for sid in id_list:
                stories[sid] = True
            if len(id_list) == 1:
                return (
                    "Unlocked 1 mission story",
                    f"Unlocked story: {self.static.story_name(root, id_list[0])}",
                )
            text = f"Unlocked {len(id_list)} mission stories"
            return text, text

        return self._transaction("unlock_stories", profile_id, mutate, "unlock")

    def lock_stories(self, ids: Optional[Iterable[str]] = None, profile_id: Optional[str] = None) -> OperationResult:
        id_list = list(ids) if ids is not None else None

        def mutate(root: Path, profile: Dict[str, Any]) -> Outcome:
            ext = _extensions(profile)
            stories = _child(ext, "opportunityprogression")
            if id_list is None:
                total = len(stories)
                ext["opportunityprogression"] = {}
                text = f"Locked all {total} mission stories"
                return text, text
            locked = 0
            for sid in id_list:
                if sid in stories:
                    del stories[sid]
                    locked += 1
            text = f"Locked {locked} mission {_plural(locked, 'story', 'stories')}"
            return text, text

        return self._transaction("lock_stories", profile_id, mutate, "unlock")

    # mastery

    def set_mastery(self, location_id: str, level: int, profile_id: Optional[str] = None) -> OperationResult:
        def mutate(root: Path, profile: Dict[str, Any]) -> Outcome:
            cap = self.static.mastery_caps(root).get(location_id) or DEFAULT_MASTERY_CAP
            target = clamp(int(level), 0, cap)
            write_mastery(_child(_progression(profile), "Locations"), location_id, target)
            return (
                f"Set mastery for {location_id} to level {target}",
                f"Set {location_name(location_id)} mastery to level {target}",
            )

        return self._transaction("set_mastery", profile_id, mutate, "mastery")

    def max_all_mastery(self, profile_id: Optional[str] = None) -> OperationResult:
        def mutate(root: Path, profile: Dict[str, Any]) -> Outcome:
            caps = self.static.mastery_caps(root)
            locations = _child(_progression(profile), "Locations")
            for location_id, cap in caps.items():
                write_mastery(locations, location_id, cap)
            text = f"Maxed all {len(caps)} location masteries"
            return text, text

        return self._transaction("max_all_mastery", profile_id, mutate, "mastery")

    # bulk operations

    def unlock_all_content(self, profile_id: Optional[str] = None) -> OperationResult:
        def mutate(root: Path, profile: Dict[str, Any]) -> Outcome:
            locations = _child(_progression(profile), "Locations")
            for location_id, cap in self.static.mastery_caps(root).items():
                write_mastery(locations, location_id, cap)

            ext = _extensions(profile)
            challenges = _child(ext, "ChallengeProgression")
            for cid in self.static.challenges(root):
                challenges[cid] = completed_challenge()

            stories = _child(ext, "opportunityprogression")
            for sid in self.static.stories(root):
                stories[sid] = True

            levels = _child(ext, "PeacockEscalations")
            completed = _completed_escalations(ext)
            for eid, entry in self.static.escalations(root).items():
                levels[eid] = entry.max_level
                if eid not in completed:
                    completed.append(eid)

            # the game only renders escalations when the Freelancer entry exists
            cpd = _child(ext, "CPD")
            if not isinstance(cpd.get(FREELANCER_ID), dict):
                cpd[FREELANCER_ID] = {"MyMoney": 0, "EvergreenLevel": 0}

            return (
                "Unlocked all content successfully",
                "Unlocked all challenges, escalations, stories, and max mastery",
            )

        return self._transaction("unlock_all_content", profile_id, mutate, "unlock", backup=True)

    def update_profile(
        self,
        profile_id: Optional[str] = None,
        level: Optional[int] = None,
        xp: Optional[int] = None,
        merces: Optional[int] = None,
        prestige: Optional[int] = None,
    ) -> OperationResult:
        def mutate(root: Path, profile: Dict[str, Any]) -> Outcome:
            prog = _progression(profile)
            changes: List[str] = []
            if level is not None:
                value = clamp(int(level), 1, MAX_LEVEL)
                prog["ProfileLevel"] = value
                _child(prog, "PlayerProfileXP")["ProfileLevel"] = value
                changes.append(f"level {value}")
            if xp is not None:
                value = clamp(int(xp), 0, MAX_XP)
                prog["XP"] = value
                _child(prog, "PlayerProfileXP")["Total"] = value
                changes.append(f"XP {value:,}")
            if merces is not None:
                value = clamp(int(merces), 0, MAX_MERCES)
                _child(prog, "Merces")["Total"] = value
                changes.append(f"merces {value:,}")
            if prestige is not None:
                value = clamp(int(prestige), 0, MAX_PRESTIGE)
                cpd = _child(_extensions(profile), "CPD")
                _child(cpd, FREELANCER_ID)["EvergreenLevel"] = value
                changes.append(f"prestige {value}")
            description = f"Updated profile: {', '.join(changes)}" if changes else ""
            return "Profile updated successfully", description

        return self._transaction("update_profile", profile_id, mutate, "profile", backup=True)

    def reset_all(self, profile_id: Optional[str] = None) -> OperationResult:
        def mutate(root: Path, profile: Dict[str, Any]) -> Outcome:
            prog = _progression(profile)
            prog["ProfileLevel"] = 1
            prog["XP"] = 0
            player_xp = _child(prog, "PlayerProfileXP")
            player_xp["Total"] = 0
            player_xp["ProfileLevel"] = 1
            if "PreviouslySeenTotal" in player_xp:
                player_xp["PreviouslySeenTotal"] = 0
            merces = _child(prog, "Merces")
            merces["Total"] = 0
            merces["ProfileLevel"] = 1
            if "Locations" in prog:
                prog["Locations"] = {}

            ext = _extensions(profile)
            ext["ChallengeProgression"] = {}
            ext["opportunityprogression"] = {}
            ext["PeacockEscalations"] = {}
            ext["PeacockCompletedEscalations"] = []

            freelancer = ext.get("CPD", {}).get(FREELANCER_ID) if isinstance(ext.get("CPD"), dict) else None
            if isinstance(freelancer, dict):
                freelancer["MyMoney"] = 0
                freelancer["EvergreenLevel"] = 0
            return "Successfully reset all progress", "Reset all progress to level 1"

        return self._transaction("reset_all", profile_id, mutate, "profile")
