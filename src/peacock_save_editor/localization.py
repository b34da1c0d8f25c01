from __future__ import annotations

import re
from typing import Optional

_ACRONYMS = {"ICA", "XP", "VIP"}
_NOISE_WORDS = {"CHALLENGES", "GLOBAL"}
_SUFFIX_WORDS = {"NAME", "DESCRIPTION", "TITLE"}
_STORY_PREFIX = re.compile(r"^op\d+_")


def _title_word(word: str) -> str:
    if word in _ACRONYMS:
        return word
    return word[:1].upper() + word[1:].lower()


def format_localization_key(key: Optional[str]) -> str:
    """``UI_CHALLENGE_ICA_SILENT_NAME`` -> ``Challenge ICA Silent``.

    Values that are not ``UI_`` keys are already display text and pass through.
    """
    if not key:
        return "Unknown"
    if not key.startswith("UI_"):
        return key
    words = key[3:].split("_")
    if words and words[-1] in _SUFFIX_WORDS:
        words = words[:-1]
    words = [w for w in words if w and w not in _NOISE_WORDS]
    return " ".join(_title_word(w) for w in words) or key


def format_story_id(story_id: Optional[str]) -> str:
    if not story_id:
        return "Unknown"
    stripped = _STORY_PREFIX.sub("", story_id, count=1)
    return " ".join(w[:1].upper() + w[1:].lower() for w in stripped.split("_"))
