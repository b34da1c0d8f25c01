from __future__ import annotations
import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from .excel_writer import HEADERS_BY_KIND, export_rows
from .logging_utils import configure_logging
from .mutations import OperationResult
from .service import CatalogQuery, EditorService
from .settings import PeacockOptions, load_app_config

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_NOT_FOUND = 2

CATALOG_KINDS = ("challenges", "escalations", "stories")


def _parse_assignment(raw: str) -> tuple[str, str]:
    key, sep, value = raw.partition("=")
    if not sep or not key.strip():
        raise argparse.ArgumentTypeError(f"expected key=value, got {raw!r}")
    return key.strip(), value.strip()


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="peacock-save-editor", description="Peacock save-file editor")
    p.add_argument("--profile", default=None, help="Profile id (defaults to the first profile found)")
    p.add_argument("--deep-scan", action="store_true", help="Also search whole drives for the installation")
    p.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    sub = p.add_subparsers(dest="command", required=True)

    st = sub.add_parser("status", help="Show where Peacock was found")
    st.add_argument("--forget-cache", action="store_true", help="Drop the remembered installation path first")

    sub.add_parser("profiles", help="List profiles")
    pr = sub.add_parser("profile", help="Show one profile")
    pr.add_argument("id")

    for kind in CATALOG_KINDS:
        cp = sub.add_parser(kind, help=f"List {kind}")
        cp.add_argument("--page", type=int, default=None)
        cp.add_argument("--limit", type=int, default=None)
        cp.add_argument("--search", default="")
        cp.add_argument("--location", default="")
        done = cp.add_mutually_exclusive_group()
        done.add_argument("--completed", dest="completed", action="store_const", const=True, default=None)
        done.add_argument("--uncompleted", dest="completed", action="store_const", const=False)
    sub.add_parser("locations", help="List location mastery")

    un = sub.add_parser("unlock", help="Unlock challenges, escalations, stories or all content")
    un.add_argument("kind", choices=CATALOG_KINDS + ("content",))
    un.add_argument("ids", nargs="*", help="Ids to unlock; none means all")

    lk = sub.add_parser("lock", help="Lock challenges, escalations or stories")
    lk.add_argument("kind", choices=CATALOG_KINDS)
    lk.add_argument("ids", nargs="*", help="Ids to lock; none means all")

    ms = sub.add_parser("mastery", help="Set one location's mastery, or max every location")
    ms.add_argument("--location", default=None)
    ms.add_argument("--level", type=int, default=None)

    up = sub.add_parser("update-profile", help="Edit level, XP, merces or prestige")
    up.add_argument("--level", type=int, default=None)
    up.add_argument("--xp", type=int, default=None)
    up.add_argument("--merces", type=int, default=None)
    up.add_argument("--prestige", type=int, default=None)

    sub.add_parser("reset", help="Reset all progress to level 1")
    sub.add_parser("backup", help="Back up the profile")
    sub.add_parser("restore", help="Restore the most recent backup")
    sub.add_parser("backups", help="List backups of the profile")

    se = sub.add_parser("settings", help="Show or change options.ini values")
    se.add_argument("--set", dest="assignments", action="append", type=_parse_assignment, default=[], metavar="KEY=VALUE")

    ac = sub.add_parser("activity", help="Show the activity log")
    ac_group = ac.add_mutually_exclusive_group()
    ac_group.add_argument("--clear", action="store_true")
    ac_group.add_argument("--add", default=None, metavar="DESCRIPTION")
    ac.add_argument("--type", default="unlock")

    ex = sub.add_parser("export", help="Export a table to .xlsx or .csv")
    ex.add_argument("kind", choices=sorted(HEADERS_BY_KIND))
    ex.add_argument("--out", required=True)
    ex.add_argument("--format", choices=("xlsx", "csv"), default=None)
    return p


def _exit_code(result: OperationResult) -> int:
    if result.success:
        return EXIT_OK
    return EXIT_NOT_FOUND if result.status == "not_found" else EXIT_FAILED


def _ids(raw: List[str]) -> Optional[List[str]]:
    return raw or None


def _rows_for_export(svc: EditorService, kind: str) -> OperationResult:
    readers = {
        "challenges": svc.challenges,
        "escalations": svc.escalations,
        "stories": svc.stories,
        "locations": svc.locations,
        "profiles": svc.list_profiles,
        "activity": svc.activities,
    }
    return readers[kind]()


def run(args: argparse.Namespace, svc: EditorService) -> OperationResult:
    cmd = args.command
    pid = args.profile
    if cmd == "status":
        if args.forget_cache:
            svc.locator.cache.clear()
        return svc.status()
    if cmd == "profiles":
        return svc.list_profiles()
    if cmd == "profile":
        return svc.get_profile(args.id)
    if cmd in CATALOG_KINDS:
        query = CatalogQuery(
            page=args.page,
            limit=args.limit,
            search=args.search,
            location=args.location,
            completed=args.completed,
        )
        return getattr(svc, cmd)(query)
    if cmd == "locations":
        return svc.locations()
    if cmd == "unlock":
        if args.kind == "content":
            return svc.unlock_all_content(pid)
        return svc.unlock(args.kind, _ids(args.ids), pid)
    if cmd == "lock":
        return svc.lock(args.kind, _ids(args.ids), pid)
    if cmd == "mastery":
        if args.location and args.level is not None:
            return svc.set_mastery(args.location, args.level, pid)
        if args.location or args.level is not None:
            return OperationResult.failure("--location and --level must be given together")
        return svc.max_all_mastery(pid)
    if cmd == "update-profile":
        return svc.update_profile(pid, level=args.level, xp=args.xp, merces=args.merces, prestige=args.prestige)
    if cmd == "reset":
        return svc.reset_all(pid)
    if cmd == "backup":
        return svc.create_backup(pid)
    if cmd == "restore":
        return svc.restore_backup(pid)
    if cmd == "backups":
        return svc.list_backups(pid)
    if cmd == "settings":
        if not args.assignments:
            return svc.get_settings()
        current = svc.get_settings()
        if not current.success:
            return current
        values: Dict[str, Any] = dict(current.data)
        unknown = [k for k, _ in args.assignments if k not in values]
        if unknown:
            return OperationResult.failure(f"Unknown setting(s): {', '.join(unknown)}")
        values.update(args.assignments)
        return svc.save_settings(PeacockOptions.from_mapping(values))
    if cmd == "activity":
        if args.clear:
            return svc.clear_activities()
        if args.add is not None:
            return svc.log_activity(args.add, args.type)
        return svc.activities()
    if cmd == "export":
        listing = _rows_for_export(svc, args.kind)
        if not listing.success:
            return listing
        try:
            path = export_rows(args.kind, listing.data, Path(args.out), args.format)
        except (OSError, ValueError) as exc:
            logger.exception("Export failed")
            return OperationResult.failure(str(exc))
        return OperationResult.ok(f"Wrote {len(listing.data)} rows to {path}", {"path": str(path)})
    return OperationResult.failure(f"Unknown command: {cmd}")


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(logging.DEBUG if args.verbose else logging.WARNING)
    config = load_app_config()
    svc = EditorService(config=config, deep_scan=args.deep_scan)
    logger.debug("State directory: %s", config.state_dir)
    result = run(args, svc)
    json.dump(result.to_dict(), sys.stdout, indent=2, ensure_ascii=False)
    sys.stdout.write("\n")
    return _exit_code(result)


if __name__ == "__main__":
    sys.exit(main())
