"""Layout pairing — combine items two at a time for double-layout templates."""

from __future__ import annotations

from typing import Any

from slidesmith.services.field_classifier import is_image_field
from slidesmith.services.template_introspection import template_name

MISSING_NAME = "N/A"
MISSING_DESCRIPTION = "No information available."

LAYOUTS = ("single", "double")


def _capitalize_first(key: str) -> str:
    return key[:1].upper() + key[1:]


def _first_present(item: dict[str, Any], keys: tuple[str, ...], default: Any) -> Any:
    for key in keys:
        if item.get(key):
            return item[key]
    return default


def _alias_name(item: dict[str, Any], position: int) -> Any:
    return _first_present(item, ("companyName", "name", "title"), f"Item {position}")


def _alias_description(item: dict[str, Any]) -> Any:
    return _first_present(item, ("description", "about"), "")


def is_paired(items: list[dict[str, Any]]) -> bool:
    return bool(items) and ("company1" in items[0] or "company1Name" in items[0])


def pair_items(items: list[dict[str, Any]], layout: str | None) -> list[dict[str, Any]]:
    """Pair items for the double layout; identity for everything else.

    Items ``2k`` and ``2k+1`` become one record whose keys are prefixed with
    ``item1``/``item2`` (first letter of the key uppercased, rest unchanged),
    plus the ``company1Name``/``company1Description``/``company2Name``/
    ``company2Description`` aliases. A trailing odd item gets a placeholder
    partner, and its own fields are also copied under ``company1<Key>``.
    Already-paired input is returned as is.
    """
    if layout != "double" or not items or is_paired(items):
        return items

    paired: list[dict[str, Any]] = []
    for i in range(0, len(items), 2):
        first = items[i]
        record = {f"item1{_capitalize_first(k)}": v for k, v in first.items()}

        if i + 1 < len(items):
            second = items[i + 1]
            record["company1Name"] = _alias_name(first, 1)
            record["company1Description"] = _alias_description(first)
            record.update({f"item2{_capitalize_first(k)}": v for k, v in second.items()})
            record["company2Name"] = _alias_name(second, 2)
            record["company2Description"] = _alias_description(second)
        else:
            record.update({f"company1{_capitalize_first(k)}": v for k, v in first.items()})
            record["company1Name"] = _alias_name(first, 1)
            record["company1Description"] = _alias_description(first)
            record["item2Name"] = MISSING_NAME
            record["company2Name"] = MISSING_NAME
            record["item2Description"] = MISSING_DESCRIPTION
            record["company2Description"] = MISSING_DESCRIPTION

        paired.append(record)
    return paired


def detect_layout_from_template(template_id: str | None) -> str | None:
    """``single``/``double`` when the template's name says so, else None."""
    if not template_id:
        return None
    name = template_name(template_id).lower()
    if "single" in name:
        return "single"
    if "double" in name:
        return "double"
    return None


def expand_image_fields(image_fields: set[str], layout: str | None) -> set[str]:
    """Add the paired-key spellings of ingestion-tagged image columns."""
    if layout != "double":
        return set(image_fields)
    expanded = set(image_fields)
    for field in image_fields:
        suffix = _capitalize_first(field)
        expanded.update({f"item1{suffix}", f"item2{suffix}", f"company1{suffix}"})
    return expanded


def is_image_placeholder(field_name: str, image_fields: set[str] | None = None) -> bool:
    """Image check for a placeholder: name heuristic or a column tagged at ingestion."""
    return is_image_field(field_name) or bool(image_fields and field_name in image_fields)
