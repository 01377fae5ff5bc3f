"""Fix plan payload decoding.

Generators deliver the plan in several shapes: a plan object, a map of
ecosystem name to plan object, or either of those as JSON text. The text may
be wrapped in markdown code fences and may be encoded twice (JSON text whose
value is itself JSON text). ``decode_plan`` turns any of these into a single
tagged result and never raises.
"""

import json
import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from ..constants import ECOSYSTEM_MARKER_SECTIONS
from ..core.exceptions import PlanParseError

logger = logging.getLogger(__name__)

_FENCE_RE = re.compile(r"\s*```(?:json|JSON)?\s*")

MAX_PARSE_ATTEMPTS = 2


class PlanShape(Enum):
    """How a decoded plan payload is organized."""
    FLAT = "flat"
    ECOSYSTEM = "ecosystem"
    INVALID = "invalid"


@dataclass(frozen=True)
class DecodedPlan:
    shape: PlanShape
    plan: dict[str, Any] = field(default_factory=dict)
    ecosystems: dict[str, dict[str, Any]] = field(default_factory=dict)

    @property
    def is_valid(self) -> bool:
        return self.shape is not PlanShape.INVALID


INVALID_PLAN = DecodedPlan(shape=PlanShape.INVALID)


def strip_code_fences(text: str) -> str:
    """Remove markdown code fences (```json ... ```) from text."""
    if "```" not in text:
        return text
    return _FENCE_RE.sub("", text).strip()


def _loads(text: str) -> Any:
    try:
        return json.loads(text)
    except (json.JSONDecodeError, TypeError) as e:
        raise PlanParseError(f"Invalid fix plan JSON: {e}") from e


def decode_plan_text(text: str) -> Any | None:
    """Parse plan text, unwrapping fences and at most one extra encoding level.

    Returns the parsed value, or None if the text does not parse.
    """
    try:
        parsed: Any = text
        for _ in range(MAX_PARSE_ATTEMPTS):
            if not isinstance(parsed, str):
                break
            parsed = _loads(strip_code_fences(parsed))
        return parsed
    except PlanParseError as e:
        logger.warning(f"Discarding undecodable fix plan payload: {e}")
        return None


def is_ecosystem_keyed(payload: dict[str, Any]) -> bool:
    """True if any top-level value is a plan object (has a plan section key)."""
    return any(
        isinstance(value, dict)
        and any(section in value for section in ECOSYSTEM_MARKER_SECTIONS)
        for value in payload.values()
    )


def classify_plan(payload: Any) -> DecodedPlan:
    """Classify an already-parsed payload as flat, ecosystem-keyed or invalid."""
    if not isinstance(payload, dict):
        return INVALID_PLAN

    if is_ecosystem_keyed(payload):
        ecosystems = {
            name: plan for name, plan in payload.items() if isinstance(plan, dict)
        }
        return DecodedPlan(shape=PlanShape.ECOSYSTEM, ecosystems=ecosystems)

    return DecodedPlan(shape=PlanShape.FLAT, plan=payload)


def decode_plan(raw: Any) -> DecodedPlan:
    """Decode a global plan payload of any supported shape and encoding."""
    if raw is None:
        return INVALID_PLAN

    if isinstance(raw, str):
        parsed = decode_plan_text(raw)
        if parsed is None:
            return INVALID_PLAN
        decoded = classify_plan(parsed)
    else:
        decoded = classify_plan(raw)

    if not decoded.is_valid:
        logger.warning(f"Fix plan payload is not an object: {type(raw).__name__}")
    return decoded
