"""Tests for CVSS severity scoring."""

from gitdepsec.models import Vulnerability
from gitdepsec.severity import max_severity, severity_label


def vuln(**score):
    return Vulnerability(id="V", severityScore=score)


class TestMaxSeverity:
    """Test max_severity across score fields."""

    def test_max_across_fields_and_vulnerabilities(self):
        """The highest score of either field wins."""
        vulns = [vuln(cvss_v3="6.1"), vuln(cvss_v4="8.3")]
        assert max_severity(vulns) == 8.3

    def test_both_fields_on_one_vulnerability(self):
        assert max_severity([vuln(cvss_v3="9.1", cvss_v4="4.0")]) == 9.1

    def test_numeric_scores(self):
        assert max_severity([vuln(cvss_v3=5.5)]) == 5.5

    def test_no_parseable_fields(self):
        """Unparseable or missing scores give 0."""
        vulns = [
            vuln(cvss_v3="CVSS:3.1/AV:N/AC:L"),
            vuln(cvss_v4=""),
            Vulnerability(id="no-score"),
        ]
        assert max_severity(vulns) == 0

    def test_empty_and_none(self):
        assert max_severity([]) == 0
        assert max_severity(None) == 0

    def test_nan_ignored(self):
        assert max_severity([vuln(cvss_v3="nan"), vuln(cvss_v3="2.0")]) == 2.0


class TestSeverityLabel:
    """Test severity bucket labels."""

    def test_buckets(self):
        assert severity_label(9.8) == "critical"
        assert severity_label(9.0) == "critical"
        assert severity_label(7.5) == "high"
        assert severity_label(4.0) == "medium"
        assert severity_label(0.1) == "low"
        assert severity_label(0.0) == "none"
        assert severity_label(None) == "none"
