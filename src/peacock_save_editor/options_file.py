from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Any, Dict, Union

from . import probe
from .constants import OPTIONS_FILE
from .settings import PeacockOptions

logger = logging.getLogger(__name__)

DEFAULT_HEADER = "; Peacock Options (Configured by Save Editor)\n[peacock]\n"

IniValue = Union[bool, str]


def parse_options(content: str) -> Dict[str, IniValue]:
    """``key=value`` lines of an ``options.ini`` document.

    ``;`` comments and lines without ``=`` (section headers) are ignored.
    ``true``/``false`` in any case become booleans; every other value stays a
    string.
    """
    values: Dict[str, IniValue] = {}
    for line in content.splitlines():
        if "=" not in line or line.strip().startswith(";"):
            continue
        key, _, raw = line.partition("=")
        value = raw.strip()
        if value.lower() == "true":
            values[key.strip()] = True
        elif value.lower() == "false":
            values[key.strip()] = False
        else:
            values[key.strip()] = value
    return values


def apply_options(content: str, values: Dict[str, str]) -> str:
    """Replace each ``key=`` line in place, appending keys that are missing."""
    for key, value in values.items():
        pattern = re.compile(rf"^({re.escape(key)}=).*$", re.MULTILINE)
        if pattern.search(content):
            content = pattern.sub(lambda m: m.group(1) + value, content, count=1)
        else:
            content += f"\n{key}={value}"
    return content


class OptionsFile:
    def __init__(self, path: Path) -> None:
        self.path = path

    @classmethod
    def for_root(cls, root: Path) -> "OptionsFile":
        return cls(root / OPTIONS_FILE)

    def read_raw(self) -> Dict[str, IniValue]:
        result = probe.read_text(self.path)
        if not result.ok:
            return {}
        return parse_options(result.value)

    def read(self) -> PeacockOptions:
        return PeacockOptions.from_mapping(self.read_raw())

    def write(self, options: Union[PeacockOptions, Dict[str, Any]]) -> None:
        if not isinstance(options, PeacockOptions):
            options = PeacockOptions.from_mapping(options)
        existing = probe.read_text(self.path)
        content = existing.value if existing.ok else DEFAULT_HEADER
        result = probe.write_text(self.path, apply_options(content, options.to_ini_values()))
        if not result.ok:
            raise OSError(f"Failed to write {self.path.name}: {result.error}")
        logger.info("Saved %s", self.path)
