import tempfile
import unittest
from pathlib import Path

from openpyxl import load_workbook

from peacock_save_editor import cli
from peacock_save_editor.config_store import LocationCache
from peacock_save_editor.discovery import InstallationLocator
from peacock_save_editor.excel_writer import export_rows
from peacock_save_editor.service import CatalogQuery, EditorService, profile_summary
from peacock_save_editor.settings import AppConfig

from peacock_fixtures import (
    OTHER_PROFILE_ID,
    PROFILE_ID,
    add_profile,
    add_static_data,
    make_installation,
    sample_profile,
)


def make_service(base: Path, root: Path = None) -> EditorService:
    (base / "home").mkdir(exist_ok=True)
    (base / "cwd").mkdir(exist_ok=True)
    environ = {"PEACOCK_PATH": str(root)} if root is not None else {}
    config = AppConfig(state_dir=base / "state")
    locator = InstallationLocator(
        LocationCache(config.cache_file),
        environ=environ,
        home=base / "home",
        cwd=base / "cwd",
        platform="linux",
    )
    return EditorService(config=config, locator=locator)


class ServiceTestCase(unittest.TestCase):
    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.base = Path(self._tmp.name)
        self.root = make_installation(self.base / "Peacock")
        add_static_data(self.root)
        self.svc = make_service(self.base, self.root)

    def tearDown(self):
        self._tmp.cleanup()


class StatusTests(ServiceTestCase):
    def test_connected(self):
        add_profile(self.root)
        data = self.svc.status().data
        self.assertTrue(data["connected"])
        self.assertEqual(data["peacock_path"], str(self.root))
        self.assertEqual(data["profiles_count"], 1)
        self.assertEqual(data["message"], f"Connected to Peacock at {self.root}")

    def test_not_found(self):
        svc = make_service(self.base)
        result = svc.status()
        self.assertTrue(result.success)
        self.assertFalse(result.data["connected"])
        self.assertIsNone(result.data["peacock_path"])
        self.assertEqual(
            result.data["message"],
            "Peacock installation not found. Please set PEACOCK_PATH environment variable.",
        )
        self.assertEqual(svc.list_profiles().status, "not_found")


class ProfileTests(ServiceTestCase):
    def test_fresh_installation_has_empty_list(self):
        result = self.svc.list_profiles()
        self.assertTrue(result.success)
        self.assertEqual(result.data, [])
        self.assertEqual(self.svc.unlock("challenges").message, "No profiles found")

    def test_summary_fields(self):
        add_profile(self.root)
        [summary] = self.svc.list_profiles().data
        self.assertEqual(
            summary,
            {
                "id": PROFILE_ID,
                "level": 12,
                "xp": 72000,
                "merces": 5000,
                "prestige": 4,
                "challenges_completed": 1,
                "locations_count": 1,
                "escalations_completed": 1,
                "stories_completed": 1,
            },
        )

    def test_summary_defaults(self):
        self.assertEqual(profile_summary("x", {})["level"], 1)
        self.assertEqual(profile_summary("x", {"Extensions": {"progression": {"XP": 50}}})["xp"], 50)

    def test_unreadable_profiles_are_skipped(self):
        add_profile(self.root)
        (self.root / "userdata" / "users" / f"{OTHER_PROFILE_ID}.json").write_text("{", encoding="utf-8")
        self.assertEqual([p["id"] for p in self.svc.list_profiles().data], [PROFILE_ID])
        self.assertEqual(self.svc.get_profile(OTHER_PROFILE_ID).status, "not_found")
        self.assertEqual(self.svc.get_profile(PROFILE_ID).data["prestige"], 4)


class CatalogTests(ServiceTestCase):
    def setUp(self):
        super().setUp()
        add_profile(self.root)

    def test_flat_list_without_pagination(self):
        rows = self.svc.challenges().data
        self.assertIsInstance(rows, list)
        self.assertEqual(len(rows), 4)

    def test_pagination_envelope(self):
        data = self.svc.challenges(CatalogQuery(page=2, limit=3)).data
        self.assertEqual(data["pagination"], {"page": 2, "limit": 3, "total": 4, "pages": 2})
        self.assertEqual(len(data["challenges"]), 1)

    def test_limit_defaults_and_page_floor(self):
        data = self.svc.stories(CatalogQuery(page=-3)).data
        self.assertEqual(data["pagination"]["limit"], 50)
        self.assertEqual(data["pagination"]["page"], 1)
        self.assertEqual(len(data["stories"]), 2)

    def test_filters(self):
        self.svc.unlock("challenges", ["PARIS_A"])
        rows = self.svc.challenges(CatalogQuery(location="PARIS", completed=True)).data
        self.assertEqual([r["id"] for r in rows], ["PARIS_A"])
        rows = self.svc.challenges(CatalogQuery(search="chandelier")).data
        self.assertEqual([r["id"] for r in rows], ["PARIS_B"])
        rows = self.svc.escalations(CatalogQuery(completed=True)).data
        self.assertEqual([(r["id"], r["current_level"]) for r in rows], [("esc-paris", 1)])

    def test_locations_sorted_with_levels(self):
        self.svc.set_mastery("LOCATION_PARENT_AUSTRIA", 9)
        rows = self.svc.locations().data
        names = [r["name"] for r in rows]
        self.assertEqual(names, sorted(names, key=str.lower))
        by_id = {r["id"]: r for r in rows}
        self.assertEqual(by_id["LOCATION_PARENT_AUSTRIA"]["current_level"], 9)
        self.assertEqual(by_id["LOCATION_PARENT_PARIS"]["current_level"], 3)
        self.assertEqual(by_id["LOCATION_PARENT_PARIS"]["xp"], 18000)
        self.assertEqual(by_id["LOCATION_PARENT_SNUG"]["current_level"], 1)
        self.assertEqual(by_id["LOCATION_PARENT_SNUG"]["game"], "Hitman 3")


class SettingsBackupActivityTests(ServiceTestCase):
    def test_settings_round_trip_logs_activity(self):
        self.assertEqual(self.svc.get_settings().data["mapDiscoveryState"], "REVEALED")
        result = self.svc.save_settings({"mapDiscoveryState": "CLOUDED", "getDefaultSuits": False})
        self.assertTrue(result.success)
        data = self.svc.get_settings().data
        self.assertEqual(data["mapDiscoveryState"], "CLOUDED")
        self.assertFalse(data["getDefaultSuits"])
        self.assertEqual(self.svc.activities().data[0]["type"], "settings")

    def test_backup_then_restore(self):
        add_profile(self.root, data=sample_profile())
        created = self.svc.create_backup()
        self.assertTrue(created.message.startswith("Backup created: "))
        self.svc.reset_all()
        restored = self.svc.restore_backup()
        self.assertTrue(restored.success)
        self.assertTrue(restored.message.startswith("Restored from backup: "))
        self.assertEqual(self.svc.get_profile(PROFILE_ID).data["level"], 12)

    def test_restore_without_backup(self):
        add_profile(self.root)
        result = self.svc.restore_backup()
        self.assertEqual((result.status, result.message), ("not_found", "No backups found"))

    def test_activity_validation_and_clear(self):
        self.assertEqual(self.svc.log_activity("  ").status, "error")
        self.assertTrue(self.svc.log_activity("Manual note", "profile").success)
        self.assertEqual(self.svc.activities().data[0]["description"], "Manual note")
        self.svc.clear_activities()
        self.assertEqual(self.svc.activities().data, [])


class ExportTests(ServiceTestCase):
    def test_xlsx_has_header_and_rows(self):
        add_profile(self.root)
        out = export_rows("challenges", self.svc.challenges().data, self.base / "out" / "c.xlsx")
        ws = load_workbook(out).active
        rows = list(ws.values)
        self.assertEqual(rows[0], ("id", "name", "description", "location", "completed"))
        self.assertEqual(len(rows), 5)

    def test_csv_export(self):
        add_profile(self.root)
        out = export_rows("profiles", self.svc.list_profiles().data, self.base / "p.csv")
        lines = out.read_text(encoding="utf-8").splitlines()
        self.assertEqual(lines[0].split(",")[0], "id")
        self.assertEqual(lines[1].split(",")[0], PROFILE_ID)

    def test_unknown_format(self):
        with self.assertRaises(ValueError):
            export_rows("stories", [], self.base / "s.txt")


class CliTests(ServiceTestCase):
    def run_cli(self, *argv):
        args = cli.build_parser().parse_args(list(argv))
        return cli.run(args, self.svc)

    def test_unlock_without_ids_means_all(self):
        add_profile(self.root)
        result = self.run_cli("unlock", "stories")
        self.assertEqual(result.message, "Unlocked all mission stories")

    def test_mastery_requires_both_arguments(self):
        add_profile(self.root)
        self.assertEqual(self.run_cli("mastery", "--level", "3").status, "error")
        self.assertTrue(self.run_cli("mastery", "--location", "LOCATION_PARENT_PARIS", "--level", "3").success)

    def test_settings_set(self):
        result = self.run_cli("settings", "--set", "enableMasteryProgression=true")
        self.assertTrue(result.success)
        self.assertTrue(self.svc.get_settings().data["enableMasteryProgression"])
        self.assertEqual(self.run_cli("settings", "--set", "bogus=1").status, "error")

    def test_exit_codes(self):
        self.assertEqual(cli._exit_code(self.run_cli("restore")), cli.EXIT_NOT_FOUND)
        self.assertEqual(cli._exit_code(self.run_cli("activity", "--add", "")), cli.EXIT_FAILED)
        self.assertEqual(cli._exit_code(self.run_cli("profiles")), cli.EXIT_OK)

    def test_export_command(self):
        add_profile(self.root)
        out = self.base / "loc.csv"
        result = self.run_cli("export", "locations", "--out", str(out))
        self.assertTrue(result.success)
        self.assertTrue(out.exists())


if __name__ == "__main__":
    unittest.main()
