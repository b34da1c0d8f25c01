from __future__ import annotations
import logging
import os
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Iterable, List, Mapping, Optional

from . import probe
from .config_store import LocationCache
from .settings import PATH_ENV_VAR
from .validation import is_valid_installation

logger = logging.getLogger(__name__)

# Depth limits keep every walk finite on arbitrarily deep trees.
USER_FOLDER_DEPTH = 5
DRIVE_FOLDER_DEPTH = 3
DEEP_DRIVE_DEPTH = 2

USER_SEARCH_FOLDERS = ("Desktop", "Documents", "Downloads")
DRIVE_LETTERS = ("C", "D", "E", "F", "G", "H")
DEEP_DRIVE_LETTERS = ("C", "D", "E", "F", "G")
DRIVE_SUBFOLDERS = (
    ("Peacock",),
    ("Games",),
    ("Program Files",),
    ("Program Files (x86)",),
    (),
)
DEEP_DRIVE_PROBES = (
    ("Peacock",),
    ("Games", "Peacock"),
    ("Hitman", "Peacock"),
)

SKIP_DIR_NAMES = {
    "node_modules",
    "windows",
    "appdata",
    "programdata",
    "system32",
    "syswow64",
}
SKIP_PREFIXES = (".", "$")

DEEP_SKIP_DIR_NAMES = {
    "node_modules",
    "$recycle.bin",
    "windows",
    "program files",
    "programdata",
}
DEEP_SKIP_PREFIXES = (".",)


def _should_descend(child_name: str, skip_names: Iterable[str], skip_prefixes: tuple[str, ...]) -> bool:
    lower = child_name.lower()
    if lower.startswith(skip_prefixes):
        return False
    return lower not in skip_names


def _child_dirs(folder: Path) -> List[Path]:
    listing = probe.list_dir(folder)
    if not listing.ok:
        logger.debug("Skipping unreadable directory %s: %s", folder, listing.error)
        return []
    children: List[Path] = []
    for entry in listing.value:
        try:
            if entry.is_dir(follow_symlinks=False):
                children.append(Path(entry.path))
        except OSError:
            continue
    return children


def find_installation_folder(
    root: Path,
    max_depth: int,
    skip_names: Iterable[str] = SKIP_DIR_NAMES,
    skip_prefixes: tuple[str, ...] = SKIP_PREFIXES,
) -> Optional[Path]:
    """Depth-first search for the first valid installation under ``root``.

    ``root`` itself counts as depth 1 and is checked before its children.
    Sibling order is whatever the filesystem returns.
    """
    if max_depth <= 0:
        return None
    if not probe.is_dir(root):
        return None
    if is_valid_installation(root):
        return root
    skip = set(skip_names)
    for child in _child_dirs(root):
        if not _should_descend(child.name, skip, skip_prefixes):
            continue
        found = find_installation_folder(child, max_depth - 1, skip, skip_prefixes)
        if found is not None:
            return found
    return None


def windows_drive_root(letter: str) -> Path:
    return Path(f"{letter}:\\")


@dataclass
class LocateResult:
    path: Optional[Path]
    source: Optional[str] = None


class InstallationLocator:
    """Finds the Peacock installation root.

    Strategies run in a fixed order and the first hit wins: environment
    variable, cached path, user folders, drive letters (Windows), fixed
    fallbacks, and optionally a wide drive search. Everything except the
    first two is written back to the cache.
    """

    def __init__(
        self,
        cache: LocationCache,
        environ: Optional[Mapping[str, str]] = None,
        home: Optional[Path] = None,
        cwd: Optional[Path] = None,
        platform: Optional[str] = None,
        drive_root: Callable[[str], Path] = windows_drive_root,
        env_var: str = PATH_ENV_VAR,
    ) -> None:
        self.cache = cache
        self._environ = environ
        self._home = home
        self._cwd = cwd
        self.platform = platform or sys.platform
        self.drive_root = drive_root
        self.env_var = env_var

    @property
    def environ(self) -> Mapping[str, str]:
        return os.environ if self._environ is None else self._environ

    @property
    def home(self) -> Path:
        return self._home if self._home is not None else Path.home()

    @property
    def cwd(self) -> Path:
        return self._cwd if self._cwd is not None else Path.cwd()

    @property
    def has_drive_letters(self) -> bool:
        return self.platform == "win32"

    def locate(self, deep: bool = False) -> Optional[Path]:
        return self.locate_with_source(deep=deep).path

    def locate_with_source(self, deep: bool = False) -> LocateResult:
        env_path = self.from_environment()
        if env_path is not None:
            return LocateResult(env_path, "env")

        cached = self.from_cache()
        if cached is not None:
            return LocateResult(cached, "cache")

        searches: list[tuple[str, Callable[[], Optional[Path]]]] = [
            ("user-folders", self.search_user_folders),
            ("drives", self.search_drives),
            ("fallback", self.search_fallbacks),
        ]
        if deep:
            searches.append(("deep-drives", self.search_drives_deep))

        for source, search in searches:
            found = search()
            if found is not None:
                logger.info("Located Peacock via %s: %s", source, found)
                self.cache.set(found)
                return LocateResult(found, source)

        logger.info("Peacock installation not found")
        return LocateResult(None)

    def from_environment(self) -> Optional[Path]:
        raw = self.environ.get(self.env_var)
        if not raw:
            return None
        path = Path(raw).expanduser()
        if probe.exists(path) and is_valid_installation(path):
            return path
        logger.warning("%s=%s is not a valid Peacock installation", self.env_var, raw)
        return None

    def from_cache(self) -> Optional[Path]:
        cached = self.cache.get()
        if cached is not None and is_valid_installation(cached):
            return cached
        return None

    def search_user_folders(self) -> Optional[Path]:
        for name in USER_SEARCH_FOLDERS:
            found = find_installation_folder(self.home / name, USER_FOLDER_DEPTH)
            if found is not None:
                return found
        return None

    def _existing_drives(self, letters: Iterable[str]) -> List[Path]:
        if not self.has_drive_letters:
            return []
        return [root for root in (self.drive_root(letter) for letter in letters) if probe.exists(root)]

    def search_drives(self) -> Optional[Path]:
        for drive in self._existing_drives(DRIVE_LETTERS):
            for parts in DRIVE_SUBFOLDERS:
                found = find_installation_folder(drive.joinpath(*parts), DRIVE_FOLDER_DEPTH)
                if found is not None:
                    return found
        return None

    def search_fallbacks(self) -> Optional[Path]:
        home, cwd = self.home, self.cwd
        for candidate in (
            cwd,
            cwd / "..",
            home / "Desktop" / "Peacock",
            home / "Desktop" / "Peacock-master" / "Peacock-master",
            home / "Desktop" / "Peacock-master",
            home / "Documents" / "Peacock",
            home / "Downloads" / "Peacock",
        ):
            if is_valid_installation(candidate):
                return candidate.resolve()
        return None

    def search_drives_deep(self) -> Optional[Path]:
        for drive in self._existing_drives(DEEP_DRIVE_LETTERS):
            for parts in DEEP_DRIVE_PROBES:
                candidate = drive.joinpath(*parts)
                if is_valid_installation(candidate):
                    return candidate
            found = find_installation_folder(
                drive, DEEP_DRIVE_DEPTH, DEEP_SKIP_DIR_NAMES, DEEP_SKIP_PREFIXES
            )
            if found is not None:
                return found
        return None
