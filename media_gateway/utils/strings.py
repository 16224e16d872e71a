"""String helpers for object keys and scratch file names."""

import os
import re
import secrets
import string
import time
import unicodedata

RANDOM_ALPHABET = string.ascii_letters + string.digits

# Letters (any script), digits, spaces and ._-() with a single extension
FILENAME_PATTERN = re.compile(r"^[\w\s().-]+\.[A-Za-z0-9]+$", re.UNICODE)

# Bare extension, no dot
FILE_EXT_PATTERN = re.compile(r"^[A-Za-z0-9]+$")

_WHITESPACE = re.compile(r"\s+")


def remove_diacritics(value: str) -> str:
    """Strip accents and tone marks, e.g. ``"Tệp Tin"`` -> ``"Tep Tin"``.

    Uses NFD decomposition and drops combining marks. ``đ``/``Đ`` have no
    decomposition and are mapped to ``d``/``D`` explicitly. Pure ASCII input
    is returned unchanged.
    """
    decomposed = unicodedata.normalize("NFD", value)
    stripped = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    return stripped.replace("đ", "d").replace("Đ", "D")


def slugify_filename_stem(stem: str) -> str:
    """Diacritic-free, hyphenated, lower-case form of a filename stem."""
    return _WHITESPACE.sub("-", remove_diacritics(stem).strip()).lower()


def split_filename(filename: str) -> tuple[str, str]:
    """Return ``(stem, extension)`` with the extension dot-less."""
    stem, ext = os.path.splitext(filename)
    return stem, ext.lstrip(".")


def gen_random_string(length: int) -> str:
    """Random alphanumeric token of ``length`` characters."""
    return "".join(secrets.choice(RANDOM_ALPHABET) for _ in range(length))


def epoch_ms() -> int:
    return time.time_ns() // 1_000_000


def unique_file_name(file_ext: str, token_length: int = 20) -> str:
    """Collision-resistant name ``<token>_<epoch_ms>.<ext>``."""
    return f"{gen_random_string(token_length)}_{epoch_ms()}.{file_ext}"
