
from __future__ import annotations
from typing import Dict, Tuple

# Freelancer game mode id; its CPD entry stores prestige (EvergreenLevel)
FREELANCER_ID = "f8ec92c2-4fa2-471e-ae08-545480c746ee"

MAX_LEVEL = 7500
MAX_XP = 45_000_000
MAX_MERCES = 99_999_999
MAX_PRESTIGE = 100
XP_PER_LEVEL = 6000

DEFAULT_MASTERY_CAP = 20
DEFAULT_ESCALATION_LEVELS = 3
MAX_ACTIVITIES = 50

MARKER_DIRS = ("contractdata", "contractSessions", "userdata", "static")
MIN_MARKERS = 3

USERDATA_DIR = "userdata"
USERS_DIR = "users"
CONTRACTDATA_DIR = "contractdata"
STATIC_DIR = "static"
ACTIVITY_LOG = "activity_log.json"
OPTIONS_FILE = "options.ini"
GLOBAL_CHALLENGES = "GlobalChallenges.json"
MISSION_STORIES = "MissionStories.json"
ESCALATION_CODENAMES = "EscalationCodenames.json"

BACKUP_MARKER = ".backup_"
PROFILE_SUFFIX = ".json"
RESERVED_PROFILE_STEMS = frozenset({"lop", "default", "example", "backup"})

COMPLETED_CHALLENGE_STATE = "Success"

SNIPER_RIFLES: Dict[str, Tuple[str, ...]] = {
    "LOCATION_PARENT_AUSTRIA": (
        "FIREARMS_SC_HERO_SNIPER_HM",
        "FIREARMS_SC_HERO_SNIPER_KNIGHT",
        "FIREARMS_SC_HERO_SNIPER_STONE",
    ),
    "LOCATION_PARENT_SALTY": (
        "FIREARMS_SC_SEAGULL_HM",
        "FIREARMS_SC_SEAGULL_KNIGHT",
        "FIREARMS_SC_SEAGULL_STONE",
    ),
    "LOCATION_PARENT_CAGED": (
        "FIREARMS_SC_FALCON_HM",
        "FIREARMS_SC_FALCON_KNIGHT",
        "FIREARMS_SC_FALCON_STONE",
    ),
}

# (display name, game) per parent location id
LOCATIONS: Dict[str, Tuple[str, str]] = {
    "LOCATION_PARENT_ICA_FACILITY": ("ICA Facility", "Hitman 1"),
    "LOCATION_PARENT_PARIS": ("Paris - The Showstopper", "Hitman 1"),
    "LOCATION_PARENT_COASTALTOWN": ("Sapienza - World of Tomorrow", "Hitman 1"),
    "LOCATION_PARENT_MARRAKECH": ("Marrakesh - A Gilded Cage", "Hitman 1"),
    "LOCATION_PARENT_BANGKOK": ("Bangkok - Club 27", "Hitman 1"),
    "LOCATION_PARENT_COLORADO": ("Colorado - Freedom Fighters", "Hitman 1"),
    "LOCATION_PARENT_HOKKAIDO": ("Hokkaido - Situs Inversus", "Hitman 1"),
    "LOCATION_PARENT_NEWZEALAND": ("Hawke's Bay - Nightcall", "Hitman 2"),
    "LOCATION_PARENT_MIAMI": ("Miami - The Finish Line", "Hitman 2"),
    "LOCATION_PARENT_COLOMBIA": ("Santa Fortuna - Three-Headed Serpent", "Hitman 2"),
    "LOCATION_PARENT_MUMBAI": ("Mumbai - Chasing a Ghost", "Hitman 2"),
    "LOCATION_PARENT_NORTHAMERICA": ("Whittleton Creek - Another Life", "Hitman 2"),
    "LOCATION_PARENT_NORTHSEA": ("Isle of Sgail - The Ark Society", "Hitman 2"),
    "LOCATION_PARENT_GREEDY": ("New York - Golden Handshake", "Hitman 2"),
    "LOCATION_PARENT_OPULENT": ("Haven Island - The Last Resort", "Hitman 2"),
    "LOCATION_PARENT_AUSTRIA": ("Himmelstein - The Last Yardbird (Sniper)", "Hitman 2"),
    "LOCATION_PARENT_SALTY": ("Hantu Port - The Pen and the Sword (Sniper)", "Hitman 2"),
    "LOCATION_PARENT_CAGED": ("Siberia - Crime and Punishment (Sniper)", "Hitman 2"),
    "LOCATION_PARENT_GOLDEN": ("Dubai - On Top of the World", "Hitman 3"),
    "LOCATION_PARENT_ANCESTRAL": ("Dartmoor - Death in the Family", "Hitman 3"),
    "LOCATION_PARENT_EDGY": ("Berlin - Apex Predator", "Hitman 3"),
    "LOCATION_PARENT_WET": ("Chongqing - End of an Era", "Hitman 3"),
    "LOCATION_PARENT_ELEGANT": ("Mendoza - The Farewell", "Hitman 3"),
    "LOCATION_PARENT_TRAPPED": ("Carpathian Mountains - Untouchable", "Hitman 3"),
    "LOCATION_PARENT_ROCKY": ("Ambrose Island - Shadows in the Water", "Hitman 3"),
    "LOCATION_PARENT_SNUG": ("Freelancer Safehouse", "Hitman 3"),
}


def location_name(location_id: str) -> str:
    entry = LOCATIONS.get(location_id)
    return entry[0] if entry else location_id


def location_game(location_id: str) -> str:
    entry = LOCATIONS.get(location_id)
    return entry[1] if entry else "Unknown"


def xp_for_level(level: int) -> int:
    """Location mastery and profile XP both use a flat 6000 XP per level."""
    return XP_PER_LEVEL * level


def clamp(value: int, low: int, high: int) -> int:
    return max(low, min(high, value))
