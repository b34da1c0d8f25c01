
from __future__ import annotations
import logging
import os
from typing import Mapping, Optional

_DEF_FMT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
LEVEL_ENV_VAR = "PEACOCK_EDITOR_LOG_LEVEL"


def resolve_level(default: int = logging.INFO, environ: Optional[Mapping[str, str]] = None) -> int:
    env = os.environ if environ is None else environ
    raw = (env.get(LEVEL_ENV_VAR) or "").strip()
    if not raw:
        return default
    if raw.isdigit():
        return int(raw)
    value = logging.getLevelName(raw.upper())
    return value if isinstance(value, int) else default


def configure_logging(level: int = logging.INFO) -> None:
    logging.basicConfig(level=resolve_level(level), format=_DEF_FMT)
