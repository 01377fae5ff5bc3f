"""Typed events of the fix-plan generation stream.

The generator emits loosely structured JSON messages keyed by a ``step``
name. ``parse_stream_message`` maps each message onto one of four event
kinds so the aggregator has a single dispatch point.
"""

import json
import logging
from typing import Annotated, Any, Literal

from pydantic import BaseModel, Field, TypeAdapter

from ..constants import (
    PHASE_STEP_MAP,
    STEP_ANALYSIS_COMPLETE,
    STEP_GLOBAL_PLANNING_COMPLETE,
    STEP_GLOBAL_PLANNING_ERROR,
    STEP_GLOBAL_PLANNING_START,
)

logger = logging.getLogger(__name__)

PARSE_ERROR_MESSAGE = "Error parsing server response"


class GlobalPlanEvent(BaseModel):
    """A complete plan, flat or ecosystem-keyed, possibly JSON-encoded."""
    kind: Literal["global_plan"] = "global_plan"
    payload: Any = None


class ProgressEvent(BaseModel):
    """Step/percentage update, optionally carrying partial plan sections."""
    kind: Literal["progress"] = "progress"
    step: str | None = None
    message: str | None = None
    progress: float | None = None
    ecosystem: str | None = None
    fragments: dict[str, Any] = Field(default_factory=dict)

    @property
    def phase(self) -> str | None:
        if self.step is None:
            return None
        return PHASE_STEP_MAP.get(self.step)


class ErrorEvent(BaseModel):
    """Generation error; critical errors stop the generation."""
    kind: Literal["error"] = "error"
    message: str = ""
    critical: bool = False


class CompletionEvent(BaseModel):
    kind: Literal["complete"] = "complete"
    ecosystem: str | None = None


StreamEvent = Annotated[
    GlobalPlanEvent | ProgressEvent | ErrorEvent | CompletionEvent,
    Field(discriminator="kind"),
]

stream_event_adapter: TypeAdapter[Any] = TypeAdapter(StreamEvent)


def _as_number(value: Any) -> float | None:
    if isinstance(value, bool) or not isinstance(value, int | float):
        return None
    return float(value)


def _progress_event(step: str, message: dict[str, Any]) -> ProgressEvent:
    data = message.get("data")
    data = data if isinstance(data, dict) else {}

    status = message.get("progress")
    ecosystem = data.get("ecosystem")

    return ProgressEvent(
        step=step,
        message=status if isinstance(status, str) else None,
        progress=_as_number(data.get("progress")),
        ecosystem=ecosystem if isinstance(ecosystem, str) and ecosystem else None,
        fragments=data,
    )


def parse_stream_message(raw: str | dict[str, Any]) -> Any | None:
    """Map one raw stream message onto a typed event.

    Returns None for messages that carry nothing for the aggregator
    (connection notices, planning-start markers, unknown steps). Text that is
    not JSON becomes a critical ErrorEvent.
    """
    if isinstance(raw, str):
        try:
            message = json.loads(raw)
        except json.JSONDecodeError:
            logger.error(f"Unparseable stream message: {raw[:200]!r}")
            return ErrorEvent(message=PARSE_ERROR_MESSAGE, critical=True)
    else:
        message = raw

    if not isinstance(message, dict):
        logger.error(f"Stream message is not an object: {type(message).__name__}")
        return ErrorEvent(message=PARSE_ERROR_MESSAGE, critical=True)

    if message.get("type") == "connection":
        return None

    step = message.get("step")
    data = message.get("data")

    if step == STEP_GLOBAL_PLANNING_START:
        return None

    if step == STEP_GLOBAL_PLANNING_COMPLETE:
        payload = data.get("globalFixPlan") if isinstance(data, dict) else None
        return GlobalPlanEvent(payload=payload)

    if step == STEP_GLOBAL_PLANNING_ERROR:
        critical = isinstance(data, dict) and bool(data.get("critical") or data.get("isCritical"))
        return ErrorEvent(message=str(message.get("progress") or ""), critical=critical)

    if step == STEP_ANALYSIS_COMPLETE:
        return CompletionEvent()

    if isinstance(step, str) and step in PHASE_STEP_MAP:
        return _progress_event(step, message)

    if step is not None:
        logger.debug(f"Ignoring stream step: {step}")
    return None
