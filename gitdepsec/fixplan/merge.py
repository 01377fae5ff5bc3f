"""Canonical ordering, merging and change detection for partial fix plans."""

import json
from collections.abc import Mapping
from typing import Any

from ..constants import FIX_PLAN_SECTION_ORDER

SMART_ACTIONS_KEY = "smart_actions"


def order_plan(data: Mapping[str, Any]) -> dict[str, Any]:
    """Return the canonical sections of ``data`` in canonical order.

    Keys outside the canonical section list are dropped.
    """
    return {key: data[key] for key in FIX_PLAN_SECTION_ORDER if key in data}


def extract_sections(data: Mapping[str, Any] | None) -> dict[str, Any]:
    """Pick the non-empty canonical sections out of a progress payload.

    A top-level ``smart_actions`` fragment belongs to
    ``dependency_intelligence`` and is folded into it.
    """
    if not data:
        return {}

    sections = {key: data[key] for key in FIX_PLAN_SECTION_ORDER if data.get(key)}

    smart_actions = data.get(SMART_ACTIONS_KEY)
    if smart_actions:
        intelligence = sections.get("dependency_intelligence")
        intelligence = dict(intelligence) if isinstance(intelligence, dict) else {}
        intelligence[SMART_ACTIONS_KEY] = smart_actions
        sections["dependency_intelligence"] = intelligence

    return sections


def deep_merge_plan(target: Mapping[str, Any], source: Mapping[str, Any]) -> dict[str, Any]:
    """Merge ``source`` sections into ``target`` without mutating either.

    When both values of a section are objects their keys are merged with
    ``source`` winning; any other value is replaced.
    """
    result = dict(target)
    for key, source_value in source.items():
        target_value = result.get(key)
        if isinstance(source_value, dict) and isinstance(target_value, dict):
            result[key] = {**target_value, **source_value}
        else:
            result[key] = source_value
    return result


def _canonical(value: Any) -> str:
    return json.dumps(value, sort_keys=True, default=str)


def has_plan_changed(old: Mapping[str, Any], new: Mapping[str, Any]) -> bool:
    """True if any canonical section differs between the two plans."""
    return any(
        _canonical(old.get(key)) != _canonical(new.get(key))
        for key in FIX_PLAN_SECTION_ORDER
    )
