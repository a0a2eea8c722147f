"""Text normalization for titles, filenames and tags."""

import re
from types import MappingProxyType

# A middle dot run through a UTF-8 -> UTF-16LE round trip comes back as
# the box-drawing pair U+252C U+2556.
CORRUPTED_MIDDLE_DOT = "┬╖"
MIDDLE_DOT = "·"

DIACRITICS = MappingProxyType({
    "á": "a", "à": "a", "ä": "a", "â": "a", "ã": "a", "å": "a", "ą": "a", "ă": "a",
    "é": "e", "è": "e", "ë": "e", "ê": "e", "ę": "e", "ě": "e",
    "í": "i", "ì": "i", "ï": "i", "î": "i", "ı": "i",
    "ó": "o", "ò": "o", "ö": "o", "ô": "o", "õ": "o", "ø": "o", "ő": "o",
    "ú": "u", "ù": "u", "ü": "u", "û": "u", "ű": "u", "ů": "u",
    "ý": "y", "ÿ": "y",
    "ñ": "n", "ń": "n", "ň": "n",
    "ç": "c", "č": "c", "ć": "c",
    "ß": "ss",
    "ś": "s", "š": "s", "ş": "s",
    "ź": "z", "ž": "z", "ż": "z",
    "ł": "l", "ľ": "l",
    "ř": "r",
    "ť": "t",
    "ď": "d", "đ": "d",
    "æ": "ae", "œ": "oe",
    "þ": "th", "ð": "d",
})

_TAG_SEPARATORS = re.compile(r"[\s']")
_TAG_INVALID = re.compile(r"[^a-z0-9-]")
_HYPHEN_RUNS = re.compile(r"-+")


def normalize_encoding(text: str | None) -> str | None:
    """Repair the corrupted middle dot left by UTF-16LE exports."""
    if not text:
        return text
    return text.replace(CORRUPTED_MIDDLE_DOT, MIDDLE_DOT)


def transliterate(text: str) -> str:
    """Map Latin diacritics to ASCII; unmapped characters pass through."""
    return "".join(DIACRITICS.get(char, char) for char in text)


def sanitize_project_tag(project_name: str | None) -> str:
    """Convert a project name to an Obsidian tag.

    Only lowercase letters, digits and hyphens survive. The result may be
    empty for names made only of symbols; treat that as "no tag".

    Example:
        "Tëster's Pläýground for &#!,;$£ Frieñdžß"
        -> "tester-s-playground-for-friendzss"
    """
    if not project_name or not isinstance(project_name, str):
        return ""

    tag = transliterate(project_name.lower())
    tag = _TAG_SEPARATORS.sub("-", tag)
    tag = _TAG_INVALID.sub("", tag)
    tag = _HYPHEN_RUNS.sub("-", tag)
    return tag.strip("-")
