from __future__ import annotations
import csv
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Sequence
from openpyxl import Workbook

CHALLENGE_HEADERS = ["id", "name", "description", "location", "completed"]
ESCALATION_HEADERS = ["id", "name", "codename", "location", "max_level", "current_level", "completed"]
STORY_HEADERS = ["id", "name", "location", "briefing", "completed"]
LOCATION_HEADERS = ["id", "name", "game", "current_level", "max_level", "xp"]
PROFILE_HEADERS = [
    "id",
    "level",
    "xp",
    "merces",
    "prestige",
    "challenges_completed",
    "locations_count",
    "escalations_completed",
    "stories_completed",
]
ACTIVITY_HEADERS = ["id", "timestamp", "type", "description"]

HEADERS_BY_KIND: Dict[str, List[str]] = {
    "challenges": CHALLENGE_HEADERS,
    "escalations": ESCALATION_HEADERS,
    "stories": STORY_HEADERS,
    "locations": LOCATION_HEADERS,
    "profiles": PROFILE_HEADERS,
    "activity": ACTIVITY_HEADERS,
}


def _row_as_list(row: Any, headers: Sequence[str]) -> List[Any]:
    if isinstance(row, dict):
        return [row.get(header, "") for header in headers]
    if hasattr(row, "__dict__"):
        return [getattr(row, header, "") for header in headers]
    return list(row)


def _csv_value(value: Any) -> str:
    if isinstance(value, bool):
        return "TRUE" if value else "FALSE"
    if value is None:
        return ""
    return str(value)


def write_rows_xlsx(
    rows: Iterable[Any],
    headers: Sequence[str],
    out_path: Path,
    sheet: str = "Sheet1",
) -> None:
    wb = Workbook(write_only=True)
    ws = wb.create_sheet(sheet[:31])
    ws.append(list(headers))
    for row in rows:
        ws.append(_row_as_list(row, headers))
    out_path = Path(out_path)
    out_path.parent.mkdir(parents=True, exist_ok=True)
    wb.save(out_path)


def write_rows_csv(rows: Iterable[Any], headers: Sequence[str], out_path: Path) -> None:
    out_path = Path(out_path)
    out_path.parent.mkdir(parents=True, exist_ok=True)
    with out_path.open("w", newline="", encoding="utf-8") as fh:
        writer = csv.writer(fh)
        writer.writerow(list(headers))
        for row in rows:
            writer.writerow([_csv_value(v) for v in _row_as_list(row, headers)])


def export_rows(
    kind: str,
    rows: Iterable[Any],
    out_path: Path,
    fmt: Optional[str] = None,
) -> Path:
    """Write ``rows`` of one table kind, picking the format from ``fmt`` or the suffix."""
    headers = HEADERS_BY_KIND[kind]
    out_path = Path(out_path)
    fmt = (fmt or out_path.suffix.lstrip(".") or "xlsx").lower()
    if fmt == "csv":
        write_rows_csv(rows, headers, out_path)
    elif fmt == "xlsx":
        write_rows_xlsx(rows, headers, out_path, sheet=kind.capitalize())
    else:
        raise ValueError(f"Unsupported export format: {fmt}")
    return out_path
