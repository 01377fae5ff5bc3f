"""Tests for fix plan payload decoding."""

import json

import pytest

from gitdepsec.core.exceptions import PlanParseError
from gitdepsec.fixplan.decoder import (
    PlanShape,
    _loads,
    classify_plan,
    decode_plan,
    decode_plan_text,
    strip_code_fences,
)

PLAN = {"executive_summary": {"overview": "Upgrade lodash"}, "metadata": {"version": 1}}


def fence(text):
    return f"```json\n{text}\n```"


class TestStripCodeFences:
    def test_fenced(self):
        assert strip_code_fences('```json\n{"x": 1}\n```') == '{"x": 1}'

    def test_plain_fence(self):
        assert strip_code_fences('```\n{"x": 1}```') == '{"x": 1}'

    def test_unfenced_untouched(self):
        assert strip_code_fences(' {"x": 1} ') == ' {"x": 1} '


class TestClassifyPlan:
    """Test flat vs ecosystem-keyed disambiguation."""

    def test_ecosystem_keyed(self):
        decoded = classify_plan({"npm": {"executive_summary": {"a": 1}}})
        assert decoded.shape is PlanShape.ECOSYSTEM
        assert decoded.ecosystems == {"npm": {"executive_summary": {"a": 1}}}

    def test_flat(self):
        decoded = classify_plan({"executive_summary": {"a": 1}})
        assert decoded.shape is PlanShape.FLAT
        assert decoded.plan == {"executive_summary": {"a": 1}}

    def test_ecosystem_keyed_by_intelligence_section(self):
        payload = {"PyPI": {"dependency_intelligence": {}}, "note": "ignored"}
        decoded = classify_plan(payload)
        assert decoded.shape is PlanShape.ECOSYSTEM
        assert list(decoded.ecosystems) == ["PyPI"]

    def test_non_object_is_invalid(self):
        assert classify_plan([1, 2]).shape is PlanShape.INVALID
        assert classify_plan(42).is_valid is False


class TestDecodePlan:
    """Test decoding across encodings."""

    def test_object_passthrough(self):
        assert decode_plan(PLAN).plan == PLAN

    def test_fenced_single_encode(self):
        decoded = decode_plan('```json\n{"x":1}\n```')
        assert decoded.shape is PlanShape.FLAT
        assert decoded.plan == {"x": 1}

    def test_double_encoded_with_fences(self):
        """Fenced, stringified, fenced again, stringified again."""
        inner = json.dumps(PLAN)
        raw = json.dumps(fence(json.dumps(fence(inner))))

        # The outer transport layer is undone first, as the stream parser does
        payload = json.loads(raw)

        assert decode_plan(payload).plan == json.loads(inner)

    def test_double_encoded_ecosystem_plan(self):
        payload = {"npm": PLAN, "PyPI": PLAN}
        decoded = decode_plan(json.dumps(json.dumps(payload)))
        assert decoded.shape is PlanShape.ECOSYSTEM
        assert set(decoded.ecosystems) == {"npm", "PyPI"}

    def test_at_most_two_parses(self):
        """A triple-encoded plan stays a string after two passes and is invalid."""
        raw = json.dumps(json.dumps(json.dumps(PLAN)))
        assert isinstance(decode_plan_text(raw), str)
        assert decode_plan(raw).shape is PlanShape.INVALID

    @pytest.mark.parametrize("raw", [None, "", "not json", "```json\n{broken\n```", "[1, 2]"])
    def test_invalid_payloads_never_raise(self, raw):
        assert decode_plan(raw).shape is PlanShape.INVALID

    def test_loads_raises_plan_parse_error(self):
        with pytest.raises(PlanParseError):
            _loads("{")
