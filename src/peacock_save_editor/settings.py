
from __future__ import annotations
import os
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

STATE_DIR_ENV_VAR = "PEACOCK_EDITOR_HOME"
PATH_ENV_VAR = "PEACOCK_PATH"


@dataclass
class PeacockOptions:
    """Typed view of the keys the editor manages in ``options.ini``."""

    gameplayUnlockAllShortcuts: bool = True
    gameplayUnlockAllFreelancerMasteries: bool = True
    mapDiscoveryState: str = "REVEALED"
    enableMasteryProgression: bool = False
    elusivesAreShown: bool = True
    getDefaultSuits: bool = True

    @classmethod
    def from_mapping(cls, values: Mapping[str, Any]) -> "PeacockOptions":
        opts = cls()
        for f in fields(cls):
            if f.name not in values:
                continue
            raw = values[f.name]
            default = getattr(opts, f.name)
            if isinstance(default, bool):
                if isinstance(raw, str):
                    raw = raw.strip().lower() == "true"
                setattr(opts, f.name, bool(raw))
            else:
                setattr(opts, f.name, str(raw))
        return opts

    def to_dict(self) -> Dict[str, Any]:
        return {f.name: getattr(self, f.name) for f in fields(self)}

    def to_ini_values(self) -> Dict[str, str]:
        out: Dict[str, str] = {}
        for key, value in self.to_dict().items():
            if isinstance(value, bool):
                out[key] = "true" if value else "false"
            else:
                out[key] = str(value)
        return out


@dataclass
class AppConfig:
    state_dir: Path
    path_env_var: str = PATH_ENV_VAR
    catalog_ttl: float = 60.0
    max_activities: int = 50

    @property
    def cache_file(self) -> Path:
        return self.state_dir / "location_cache.json"


def load_app_config(environ: Optional[Mapping[str, str]] = None) -> AppConfig:
    env = os.environ if environ is None else environ
    override = env.get(STATE_DIR_ENV_VAR)
    state_dir = Path(override).expanduser() if override else Path.home() / ".peacock-save-editor"
    return AppConfig(state_dir=state_dir)
