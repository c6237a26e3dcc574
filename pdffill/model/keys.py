"""Field key sanitizing, validation, and generation."""

from __future__ import annotations

from collections.abc import Iterable
import re

KEY_PATTERN = re.compile(r"[A-Za-z_][A-Za-z0-9_.-]*")

_WHITESPACE = re.compile(r"\s+")
_DISALLOWED = re.compile(r"[^A-Za-z0-9_.-]")
_EDGE_CHARS = "-_."


class InvalidKeyError(ValueError):
    """Raised when a key does not match the field key grammar."""


class DuplicateKeyError(ValueError):
    """Raised when a key is already used in the same field collection."""


def sanitize(raw: str) -> str:
    """Turn arbitrary user text into a field key.

    The result is either empty or a valid key. Callers must treat an empty
    result as invalid rather than substituting a key of their own.
    """
    key = _WHITESPACE.sub("_", raw)
    key = _DISALLOWED.sub("", key)
    key = key.strip(_EDGE_CHARS)
    if key and key[0].isdigit():
        key = f"_{key}"
    return key


def is_valid(key: str) -> bool:
    return bool(key) and KEY_PATTERN.fullmatch(key) is not None


def require_valid(key: str) -> str:
    if not is_valid(key):
        raise InvalidKeyError(f"Invalid field key: {key!r}")
    return key


def generate_unique(type_prefix: str, existing_keys: Iterable[str]) -> str:
    """Return ``{type_prefix}_{n}`` with ``n`` above every existing suffix.

    Only keys of the exact form ``{type_prefix}_<digits>`` take part, so the
    returned key never collides with ``existing_keys``. The caller owns
    inserting it.
    """
    if not is_valid(type_prefix):
        raise InvalidKeyError(f"Invalid key prefix: {type_prefix!r}")

    pattern = re.compile(rf"{re.escape(type_prefix)}_(\d+)")
    highest = 0
    for key in existing_keys:
        match = pattern.fullmatch(key)
        if match is not None:
            highest = max(highest, int(match.group(1)))
    return f"{type_prefix}_{highest + 1}"


def prefix_for(field_type: object) -> str:
    value = getattr(field_type, "value", field_type)
    return str(value)
