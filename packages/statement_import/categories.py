"""Category name and alias helpers.

Validation here is shared by the terminal UI (early feedback while typing)
and by the SQL store, which enforces it authoritatively before writing.

Exports
-------
- ``normalize_name(...)`` and ``validate_name(...)``: category display names.
- ``normalize_aliases(...)``: trim, drop blanks and de-duplicate alias lists
  preserving first-seen order. Aliases stay case-sensitive because the
  reconciler matches them exactly.
"""

from __future__ import annotations

import re
from collections.abc import Iterable
from dataclasses import dataclass

# ---------------------------
# Name normalization/validation
# ---------------------------

_ALLOWED_RE = re.compile(r"^[\w &\-/.,'()]+$")

DEFAULT_COLOR_TAG = "gray"


def normalize_name(name: str) -> str:
    """Return a trimmed, single-spaced representation of ``name``.

    Does not change case; consumers may choose preferred casing conventions.
    """

    return " ".join(name.strip().split())


@dataclass(frozen=True, slots=True)
class NameValidation:
    ok: bool
    reason: str | None = None


def validate_name(name: str, *, min_len: int = 1, max_len: int = 64) -> NameValidation:
    """Lightweight client/server validation for category names.

    Rules
    -----
    - Trim whitespace; enforce length bounds 1..64.
    - Allowed characters: letters (any script), numbers, spaces, and
      ``& - / . , ' ( )``. Bank labels are often Romanian or Russian, so
      names derived from them must not be restricted to ASCII.
    """

    n = normalize_name(name)
    if len(n) < min_len:
        return NameValidation(False, "Name cannot be empty")
    if len(n) > max_len:
        return NameValidation(False, f"Name must be at most {max_len} characters")
    if not _ALLOWED_RE.match(n):
        return NameValidation(
            False, "Only letters, numbers, spaces, and & - / . , ' ( ) are allowed"
        )
    return NameValidation(True, None)


# ---------------------------
# Aliases
# ---------------------------


def normalize_alias(alias: str) -> str:
    return alias.strip()


def normalize_aliases(aliases: Iterable[str] | None) -> list[str]:
    """Trim each alias, drop empty ones and de-duplicate (order preserved)."""

    out: list[str] = []
    seen: set[str] = set()
    for raw in aliases or ():
        a = normalize_alias(raw)
        if a and a not in seen:
            seen.add(a)
            out.append(a)
    return out


__all__ = [
    "DEFAULT_COLOR_TAG",
    "NameValidation",
    "normalize_alias",
    "normalize_aliases",
    "normalize_name",
    "validate_name",
]
