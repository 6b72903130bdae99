"""Field-name resolver — match placeholder names against record keys.

Records come from arbitrary sources, so a template's ``{{companyName}}`` may
have to match ``company_name``, ``Company Name`` or ``COMPANYNAME``. Lookup
order (first match wins):

1. exact key
2. case-insensitive key
3. generated naming-convention variations, each tried as an exact key
4. the same variations, case-insensitively
5. dotted path traversal for nested mappings
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from datetime import date, datetime
from typing import Any

_CAMEL_BOUNDARY = re.compile(r"([a-z])([A-Z])")
_SNAKE_LETTER = re.compile(r"_([a-z])")
_WHITESPACE = re.compile(r"\s+")
_WORD = re.compile(r"\w\S*")


def to_display_string(value: Any) -> str:
    """Coerce a scalar record value to the text written into a slide."""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, (list, tuple)):
        return ",".join(to_display_string(v) for v in value)
    return str(value)


def field_name_variations(field_name: str) -> list[str]:
    """Naming-convention variants of ``field_name``, in lookup order."""
    variations: list[str] = []
    has_camel = bool(_CAMEL_BOUNDARY.search(field_name))

    # camelCase -> snake_case
    if has_camel:
        variations.append(_CAMEL_BOUNDARY.sub(r"\1_\2", field_name).lower())

    # snake_case -> camelCase
    if "_" in field_name:
        variations.append(_SNAKE_LETTER.sub(lambda m: m.group(1).upper(), field_name))

    # remove spaces
    if " " in field_name:
        variations.append(_WHITESPACE.sub("", field_name))

    # insert spaces before capitals
    if has_camel:
        variations.append(_CAMEL_BOUNDARY.sub(r"\1 \2", field_name))

    # Title Case
    variations.append(_WORD.sub(lambda m: m.group(0)[0].upper() + m.group(0)[1:].lower(), field_name))

    variations.append(field_name.lower())
    variations.append(field_name.upper())
    return variations


def _lookup(item: Mapping[str, Any], field_name: str) -> tuple[bool, Any]:
    if field_name in item:
        return True, item[field_name]

    lowered_keys = {key.lower(): key for key in reversed(list(item)) if isinstance(key, str)}
    if field_name.lower() in lowered_keys:
        return True, item[lowered_keys[field_name.lower()]]

    variations = field_name_variations(field_name)
    for variation in variations:
        if variation in item:
            return True, item[variation]
    for variation in variations:
        if variation.lower() in lowered_keys:
            return True, item[lowered_keys[variation.lower()]]

    if "." in field_name:
        current: Any = item
        for part in field_name.split("."):
            if not isinstance(current, Mapping) or part not in current:
                return False, None
            current = current[part]
        return True, current

    return False, None


def resolve(item: Mapping[str, Any], field_name: str) -> str | None:
    """Return the display string for ``field_name`` in ``item``, or None."""
    found, value = _lookup(item, field_name)
    if not found or value is None:
        return None
    return to_display_string(value)
