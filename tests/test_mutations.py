import json
import tempfile
import unittest
from pathlib import Path
from unittest import mock

from peacock_save_editor.constants import FREELANCER_ID, xp_for_level
from peacock_save_editor.mutations import ProfileEditor
from peacock_save_editor.static_data import StaticDataLoader
from peacock_save_editor.ttl_cache import TtlCache

from peacock_fixtures import PROFILE_ID, add_profile, add_static_data, make_installation, read_profile


class ProfileEditorTestCase(unittest.TestCase):
    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.root = make_installation(Path(self._tmp.name) / "Peacock")
        add_static_data(self.root)
        add_profile(self.root)
        self.editor = ProfileEditor(lambda: self.root, StaticDataLoader(TtlCache()))

    def tearDown(self):
        self._tmp.cleanup()

    def profile(self):
        return read_profile(self.root)

    def ext(self):
        return self.profile()["Extensions"]

    def activities(self):
        path = self.root / "userdata" / "activity_log.json"
        return json.loads(path.read_text(encoding="utf-8"))

    def backups(self):
        return sorted((self.root / "userdata" / "users").glob(f"{PROFILE_ID}.backup_*.json"))


class PreconditionTests(ProfileEditorTestCase):
    def test_missing_installation(self):
        editor = ProfileEditor(lambda: None, StaticDataLoader(TtlCache()))
        result = editor.unlock_challenges()
        self.assertFalse(result.success)
        self.assertEqual(result.status, "not_found")

    def test_no_profiles(self):
        empty = make_installation(Path(self._tmp.name) / "Empty")
        editor = ProfileEditor(lambda: empty, StaticDataLoader(TtlCache()))
        for result in (editor.unlock_stories(), editor.reset_all(), editor.set_mastery("X", 1)):
            self.assertEqual(result.status, "not_found")
            self.assertEqual(result.message, "No profiles found")

    def test_unreadable_profile(self):
        (self.root / "userdata" / "users" / f"{PROFILE_ID}.json").write_text("{", encoding="utf-8")
        result = self.editor.unlock_stories(["a"])
        self.assertEqual(result.status, "error")
        self.assertEqual(result.message, "Failed to read profile")

    def test_write_failure_becomes_error_result(self):
        with mock.patch("peacock_save_editor.profile_store.ProfileStore.write", side_effect=OSError("disk full")):
            result = self.editor.unlock_stories(["a"])
        self.assertEqual(result.status, "error")
        self.assertEqual(result.message, "disk full")

    def test_journal_failure_does_not_fail_operation(self):
        with mock.patch("peacock_save_editor.activity_log.ActivityLog.append", side_effect=OSError("ro")):
            result = self.editor.unlock_stories(["a"])
        self.assertTrue(result.success)
        self.assertTrue(self.ext()["opportunityprogression"]["a"])


class ChallengeTests(ProfileEditorTestCase):
    def test_unlock_is_idempotent_and_preserves_others(self):
        self.editor.unlock_challenges(["PARIS_A", "PARIS_B"])
        once = self.ext()["ChallengeProgression"]
        self.editor.unlock_challenges(["PARIS_A", "PARIS_B"])
        twice = self.ext()["ChallengeProgression"]
        self.assertEqual(once, twice)
        self.assertEqual(twice["CUSTOM_C"], {"Completed": False, "State": {"CurrentState": "Start"}})
        self.assertEqual(twice["PARIS_A"], {"Completed": True, "State": {"CurrentState": "Success"}})
        self.assertEqual(self.activities()[0]["description"], "Unlocked 2 challenges")

    def test_unlock_single_uses_display_name(self):
        result = self.editor.unlock_challenges(["PARIS_B"])
        self.assertTrue(result.success)
        self.assertEqual(self.activities()[0]["description"], "Unlocked challenge: Paris B")

    def test_unlock_all_merges_catalog(self):
        self.editor.unlock_challenges()
        progress = self.ext()["ChallengeProgression"]
        self.assertEqual(set(progress), {"CUSTOM_C", "GLOBAL_A", "SHARED_ID", "PARIS_A", "PARIS_B"})
        self.assertEqual(self.activities()[0]["description"], "Unlocked all challenges")

    def test_lock_specific_and_all(self):
        self.editor.unlock_challenges(["PARIS_A"])
        result = self.editor.lock_challenges(["PARIS_A", "NOT_THERE"])
        self.assertEqual(result.message, "Locked 1 challenge")
        self.assertNotIn("PARIS_A", self.ext()["ChallengeProgression"])
        self.editor.lock_challenges()
        self.assertEqual(self.ext()["ChallengeProgression"], {})


class EscalationTests(ProfileEditorTestCase):
    def test_single_unlock_never_duplicates_completed_entry(self):
        self.editor.unlock_escalations(["esc-paris-2"])
        self.editor.unlock_escalations(["esc-paris-2"])
        ext = self.ext()
        self.assertEqual(ext["PeacockCompletedEscalations"], ["esc-paris", "esc-paris-2"])
        self.assertEqual(ext["PeacockEscalations"]["esc-paris-2"], 3)
        self.assertEqual(self.activities()[0]["description"], "Unlocked escalation: Paris Two")

    def test_unknown_escalation_gets_default_levels(self):
        self.editor.unlock_escalations(["esc-unknown"])
        self.assertEqual(self.ext()["PeacockEscalations"]["esc-unknown"], 3)

    def test_unlock_all_uses_catalog_levels(self):
        self.editor.unlock_escalations()
        ext = self.ext()
        self.assertEqual(ext["PeacockEscalations"]["esc-paris"], 5)
        self.assertEqual(sorted(ext["PeacockCompletedEscalations"]), ["esc-paris", "esc-paris-2"])

    def test_lock_removes_from_both_structures(self):
        result = self.editor.lock_escalations(["esc-paris"])
        self.assertEqual(result.message, "Locked 1 escalation")
        ext = self.ext()
        self.assertNotIn("esc-paris", ext["PeacockEscalations"])
        self.assertEqual(ext["PeacockCompletedEscalations"], [])


class StoryTests(ProfileEditorTestCase):
    def test_lock_counts_only_present_ids(self):
        self.editor.unlock_stories(["op02_paris_story"])
        result = self.editor.lock_stories(["op02_paris_story", "op01_paris_story", "ghost"])
        self.assertEqual(result.message, "Locked 2 mission stories")
        result = self.editor.lock_stories(["ghost"])
        self.assertEqual(result.message, "Locked 0 mission stories")

    def test_lock_removes_entries_stored_as_false(self):
        data = read_profile(self.root)
        data["Extensions"]["opportunityprogression"]["op02_paris_story"] = False
        add_profile(self.root, data=data)
        result = self.editor.lock_stories(["op02_paris_story"])
        self.assertEqual(result.message, "Locked 1 mission story")
        self.assertNotIn("op02_paris_story", self.ext()["opportunityprogression"])

    def test_lock_single_phrasing(self):
        result = self.editor.lock_stories(["op01_paris_story"])
        self.assertEqual(result.message, "Locked 1 mission story")

    def test_lock_all(self):
        result = self.editor.lock_stories()
        self.assertEqual(result.message, "Locked all 1 mission stories")
        self.assertEqual(self.ext()["opportunityprogression"], {})

    def test_unlock_single_and_all(self):
        self.editor.unlock_stories(["op02_paris_story"])
        self.assertEqual(self.activities()[0]["description"], "Unlocked story: The Chef")
        self.editor.unlock_stories()
        self.assertEqual(set(self.ext()["opportunityprogression"]), {"op01_paris_story", "op02_paris_story"})


class MasteryTests(ProfileEditorTestCase):
    def test_level_above_cap_is_clamped(self):
        result = self.editor.set_mastery("LOCATION_PARENT_PARIS", 99)
        self.assertTrue(result.success)
        entry = self.profile()["Extensions"]["progression"]["Locations"]["LOCATION_PARENT_PARIS"]
        self.assertEqual(entry, {"Level": 35, "Xp": xp_for_level(35), "PreviouslySeenXp": xp_for_level(35)})
        self.assertEqual(
            self.activities()[0]["description"], "Set Paris - The Showstopper mastery to level 35"
        )

    def test_unknown_location_uses_default_cap(self):
        self.editor.set_mastery("LOCATION_PARENT_NOWHERE", 25)
        entry = self.profile()["Extensions"]["progression"]["Locations"]["LOCATION_PARENT_NOWHERE"]
        self.assertEqual(entry["Level"], 20)

    def test_negative_level_clamps_to_zero(self):
        self.editor.set_mastery("LOCATION_PARENT_PARIS", -4)
        entry = self.profile()["Extensions"]["progression"]["Locations"]["LOCATION_PARENT_PARIS"]
        self.assertEqual((entry["Level"], entry["Xp"]), (0, 0))

    def test_sniper_location_fans_out(self):
        self.editor.set_mastery("LOCATION_PARENT_SALTY", 7)
        entry = self.profile()["Extensions"]["progression"]["Locations"]["LOCATION_PARENT_SALTY"]
        self.assertEqual(
            sorted(entry), ["FIREARMS_SC_SEAGULL_HM", "FIREARMS_SC_SEAGULL_KNIGHT", "FIREARMS_SC_SEAGULL_STONE"]
        )
        for rifle in entry.values():
            self.assertEqual(rifle, {"Level": 7, "Xp": 42000, "PreviouslySeenXp": 42000})

    def test_max_all(self):
        result = self.editor.max_all_mastery()
        self.assertEqual(result.message, "Maxed all 5 location masteries")
        locations = self.profile()["Extensions"]["progression"]["Locations"]
        self.assertEqual(locations["LOCATION_PARENT_SNUG"]["Level"], 100)
        self.assertEqual(locations["LOCATION_PARENT_CAGED"]["FIREARMS_SC_FALCON_HM"]["Level"], 20)


class ProfileEditTests(ProfileEditorTestCase):
    def test_values_are_clamped_and_mirrored(self):
        result = self.editor.update_profile(PROFILE_ID, level=9000, xp=-5, merces=10**12, prestige=150)
        self.assertTrue(result.success)
        self.assertIn("backup", result.data)
        ext = self.ext()
        prog = ext["progression"]
        self.assertEqual(prog["ProfileLevel"], 7500)
        self.assertEqual(prog["PlayerProfileXP"]["ProfileLevel"], 7500)
        self.assertEqual(prog["XP"], 0)
        self.assertEqual(prog["PlayerProfileXP"]["Total"], 0)
        self.assertEqual(prog["Merces"]["Total"], 99_999_999)
        self.assertEqual(ext["CPD"][FREELANCER_ID]["EvergreenLevel"], 100)
        self.assertEqual(len(self.backups()), 1)

    def test_activity_lists_changed_fields(self):
        self.editor.update_profile(level=10, xp=60000)
        self.assertEqual(self.activities()[0]["description"], "Updated profile: level 10, XP 60,000")
        self.assertEqual(self.activities()[0]["type"], "profile")

    def test_omitted_fields_untouched(self):
        self.editor.update_profile(prestige=3)
        prog = self.ext()["progression"]
        self.assertEqual(prog["ProfileLevel"], 12)
        self.assertEqual(prog["Merces"]["Total"], 5000)


class BulkTests(ProfileEditorTestCase):
    def test_unlock_all_content(self):
        profile = json.loads((self.root / "userdata" / "users" / f"{PROFILE_ID}.json").read_text(encoding="utf-8"))
        del profile["Extensions"]["CPD"]
        add_profile(self.root, data=profile)

        result = self.editor.unlock_all_content()
        self.assertTrue(result.success)
        self.assertEqual(result.message, "Unlocked all content successfully")
        ext = self.ext()
        self.assertIn("CUSTOM_C", ext["ChallengeProgression"])
        self.assertIn("PARIS_A", ext["ChallengeProgression"])
        self.assertEqual(ext["PeacockEscalations"]["esc-paris"], 5)
        self.assertEqual(ext["CPD"][FREELANCER_ID], {"MyMoney": 0, "EvergreenLevel": 0})
        self.assertEqual(ext["progression"]["Locations"]["LOCATION_PARENT_PARIS"]["Level"], 35)
        self.assertEqual(len(self.backups()), 1)
        self.assertEqual(
            self.activities()[0]["description"],
            "Unlocked all challenges, escalations, stories, and max mastery",
        )

    def test_reset_all_clears_progress(self):
        self.editor.max_all_mastery()
        result = self.editor.reset_all()
        self.assertTrue(result.success)
        ext = self.ext()
        prog = ext["progression"]
        self.assertEqual(prog["Locations"], {})
        self.assertEqual((prog["ProfileLevel"], prog["XP"]), (1, 0))
        self.assertEqual(prog["PlayerProfileXP"], {"Total": 0, "ProfileLevel": 1, "PreviouslySeenTotal": 0})
        self.assertEqual(prog["Merces"], {"Total": 0, "ProfileLevel": 1})
        self.assertEqual(ext["ChallengeProgression"], {})
        self.assertEqual(ext["opportunityprogression"], {})
        self.assertEqual(ext["PeacockEscalations"], {})
        self.assertEqual(ext["PeacockCompletedEscalations"], [])
        self.assertEqual(ext["CPD"][FREELANCER_ID], {"MyMoney": 0, "EvergreenLevel": 0})
        self.assertEqual(self.activities()[0]["description"], "Reset all progress to level 1")
        self.assertEqual(self.backups(), [])

    def test_reset_all_on_empty_profile(self):
        add_profile(self.root, data={})
        result = self.editor.reset_all()
        self.assertTrue(result.success)
        self.assertEqual(self.ext()["ChallengeProgression"], {})


if __name__ == "__main__":
    unittest.main()
