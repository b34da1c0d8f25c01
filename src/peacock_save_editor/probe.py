from __future__ import annotations

import json
import os
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Generic, List, Optional, TypeVar

T = TypeVar("T")


@dataclass
class ProbeResult(Generic[T]):
    ok: bool
    value: Optional[T] = None
    error: Optional[str] = None


def _fail(exc: BaseException) -> ProbeResult[Any]:
    return ProbeResult(False, None, f"{type(exc).__name__}: {exc}")


def exists(path: Path) -> bool:
    try:
        return path.exists()
    except OSError:
        return False


def is_dir(path: Path) -> bool:
    try:
        return path.is_dir()
    except OSError:
        return False


def list_dir(path: Path) -> ProbeResult[List[os.DirEntry]]:
    """Entries of ``path`` in the order the filesystem returns them."""
    try:
        with os.scandir(path) as it:
            return ProbeResult(True, list(it))
    except OSError as exc:
        return _fail(exc)


def read_text(path: Path) -> ProbeResult[str]:
    try:
        return ProbeResult(True, path.read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError) as exc:
        return _fail(exc)


def read_json(path: Path) -> ProbeResult[Any]:
    text = read_text(path)
    if not text.ok:
        return text
    try:
        # some tools write a BOM in front of the document
        return ProbeResult(True, json.loads(text.value.lstrip("\ufeff")))
    except ValueError as exc:
        return _fail(exc)


def write_text(path: Path, content: str) -> ProbeResult[Path]:
    """Write via a temporary sibling and rename it over ``path``."""
    tmp = path.with_name(path.name + ".tmp")
    try:
        with tmp.open("w", encoding="utf-8", newline="") as handle:
            handle.write(content)
        tmp.replace(path)
        return ProbeResult(True, path)
    except OSError as exc:
        try:
            tmp.unlink()
        except OSError:
            pass
        return _fail(exc)


def write_json(path: Path, data: Any, indent: int = 4) -> ProbeResult[Path]:
    return write_text(path, json.dumps(data, indent=indent, ensure_ascii=False))


def copy_file(src: Path, dst: Path) -> ProbeResult[Path]:
    try:
        shutil.copyfile(src, dst)
        return ProbeResult(True, dst)
    except OSError as exc:
        return _fail(exc)
