"""Numeric severity scoring for vulnerabilities."""

import math
from collections.abc import Iterable

from .models import Vulnerability

SCORE_FIELDS = ("cvss_v3", "cvss_v4")


def _parse_score(value: object) -> float | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        score = float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return None
    if math.isnan(score):
        return None
    return score


def max_severity(vulnerabilities: Iterable[Vulnerability] | None) -> float:
    """Return the highest parseable CVSS score across vulnerabilities.

    Both ``cvss_v3`` and ``cvss_v4`` are considered. Missing or unparseable
    scores are skipped; the result is 0 when nothing parses.
    """
    scores = [0.0]
    for vuln in vulnerabilities or []:
        if vuln.severity_score is None:
            continue
        for field in SCORE_FIELDS:
            score = _parse_score(getattr(vuln.severity_score, field))
            if score is not None:
                scores.append(score)
    return max(scores)


def severity_label(score: float | None) -> str:
    """Bucket a CVSS score into critical/high/medium/low/none."""
    if score is None:
        return "none"
    if score >= 9.0:
        return "critical"
    elif score >= 7.0:
        return "high"
    elif score >= 4.0:
        return "medium"
    elif score >= 0.1:
        return "low"
    return "none"
