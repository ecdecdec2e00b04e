"""
Tests for SonarQube measure and vulnerability mapping
"""

from datetime import UTC, datetime

import pytest

from engmetrics.domain.enums import VulnerabilitySeverity, VulnerabilityStatus
from engmetrics.domain.errors import MappingError
from engmetrics.mappers.sonarqube import (
    map_measures,
    map_vulnerability,
    map_vulnerability_severity,
    map_vulnerability_status,
    measures_by_key,
    parse_int_or_none,
    rating_to_letter,
)


class TestRatings:
    """Tests for rating_to_letter"""

    @pytest.mark.parametrize(
        "value,expected",
        [("1.0", "A"), ("2.0", "B"), ("2.5", "C"), ("3.0", "C"), ("4.0", "D"), ("5.0", "E"), (None, None), ("x", None)],
    )
    def test_rating_letters(self, value, expected):
        """Test numeric rating to letter conversion"""
        assert rating_to_letter(value) == expected


class TestMeasures:
    """Tests for map_measures"""

    def test_full_measures(self):
        """Test that string values are parsed and renamed"""
        measures = map_measures(
            [
                {"metric": "coverage", "value": "81.4"},
                {"metric": "new_coverage", "period": {"value": "90.0"}},
                {"metric": "bugs", "value": "3"},
                {"metric": "vulnerabilities", "value": "0"},
                {"metric": "code_smells", "value": "120"},
                {"metric": "sqale_debt_ratio", "value": "1.2"},
                {"metric": "sqale_rating", "value": "1.0"},
                {"metric": "security_rating", "value": "5.0"},
            ]
        )

        assert measures.coverage == 81.4
        assert measures.new_coverage == 90.0
        assert measures.bugs == 3
        assert measures.vulnerabilities == 0
        assert measures.code_smells == 120
        assert measures.technical_debt_ratio == 1.2
        assert measures.maintainability_rating == "A"
        assert measures.security_rating == "E"
        assert measures.reliability_rating is None
        assert measures.complexity is None

    def test_legacy_periods_list(self):
        """Test new-code values under the older periods list"""
        values = measures_by_key([{"metric": "new_coverage", "periods": [{"index": 1, "value": "70.5"}]}])

        assert values == {"new_coverage": "70.5"}

    def test_empty_measures(self):
        """Test that no measures gives an all-None record"""
        measures = map_measures([])

        assert measures.coverage is None
        assert measures.bugs is None

    def test_int_parsing_of_float_strings(self):
        """Test integer parsing tolerates float strings"""
        assert parse_int_or_none("12.0") == 12
        assert parse_int_or_none("") is None


class TestVulnerabilities:
    """Tests for map_vulnerability"""

    @pytest.mark.parametrize(
        "severity,expected",
        [
            ("BLOCKER", VulnerabilitySeverity.CRITICAL),
            ("CRITICAL", VulnerabilitySeverity.HIGH),
            ("major", VulnerabilitySeverity.MEDIUM),
            ("MINOR", VulnerabilitySeverity.LOW),
            ("INFO", VulnerabilitySeverity.LOW),
            (None, VulnerabilitySeverity.MEDIUM),
        ],
    )
    def test_severity(self, severity, expected):
        """Test scanner severity translation"""
        assert map_vulnerability_severity(severity) == expected

    @pytest.mark.parametrize(
        "status,resolution,expected",
        [
            ("OPEN", None, VulnerabilityStatus.OPEN),
            ("CONFIRMED", None, VulnerabilityStatus.IN_PROGRESS),
            ("REOPENED", None, VulnerabilityStatus.IN_PROGRESS),
            ("RESOLVED", "FIXED", VulnerabilityStatus.RESOLVED),
            ("CLOSED", "REMOVED", VulnerabilityStatus.RESOLVED),
            ("RESOLVED", "FALSE-POSITIVE", VulnerabilityStatus.DISMISSED),
            ("RESOLVED", "WONTFIX", VulnerabilityStatus.DISMISSED),
        ],
    )
    def test_status(self, status, resolution, expected):
        """Test that a resolution wins over the workflow status"""
        assert map_vulnerability_status(status, resolution) == expected

    def test_resolved_issue(self):
        """Test that a resolved issue is resolved at its last update"""
        vulnerability = map_vulnerability(
            {
                "key": "AX-1",
                "message": "Make sure this SQL query is safe",
                "severity": "BLOCKER",
                "status": "RESOLVED",
                "resolution": "FIXED",
                "creationDate": "2025-03-01T10:00:00+0100",
                "updateDate": "2025-03-05T10:00:00+0000",
            }
        )

        assert vulnerability.external_id == "AX-1"
        assert vulnerability.title == "Make sure this SQL query is safe"
        assert vulnerability.discovered_at == datetime(2025, 3, 1, 9, 0, tzinfo=UTC)
        assert vulnerability.resolved_at == datetime(2025, 3, 5, 10, 0, tzinfo=UTC)

    def test_open_issue_has_no_resolution_time(self):
        """Test that an unresolved issue keeps resolved_at empty and falls back to its key as title"""
        vulnerability = map_vulnerability(
            {"key": "AX-2", "status": "OPEN", "creationDate": "2025-03-01T10:00:00+0000", "updateDate": "x"}
        )

        assert vulnerability.title == "AX-2"
        assert vulnerability.resolved_at is None

    def test_missing_creation_date(self):
        """Test that an issue without creationDate raises MappingError"""
        with pytest.raises(MappingError, match="creationDate"):
            map_vulnerability({"key": "AX-3"})
