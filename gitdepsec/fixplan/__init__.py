"""Fix plan decoding, merging and stream events.

The aggregator lives in ``gitdepsec.fixplan.aggregator``; it depends on the
application state, which itself depends on this package's merge helpers.
"""

from .decoder import DecodedPlan, PlanShape, decode_plan
from .events import (
    CompletionEvent,
    ErrorEvent,
    GlobalPlanEvent,
    ProgressEvent,
    parse_stream_message,
)
from .merge import deep_merge_plan, has_plan_changed, order_plan

__all__ = [
    "DecodedPlan",
    "PlanShape",
    "decode_plan",
    "GlobalPlanEvent",
    "ProgressEvent",
    "ErrorEvent",
    "CompletionEvent",
    "parse_stream_message",
    "deep_merge_plan",
    "has_plan_changed",
    "order_plan",
]
