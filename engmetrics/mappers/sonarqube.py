"""
SonarQube measure and issue mapping.

Measures arrive as strings ({"metric": "coverage", "value": "81.4"}); new
code metrics carry their value under "period" (or "periods" on older
servers). Ratings are numeric 1.0-5.0 and map to letters A-E.
"""

from typing import Any

from engmetrics.domain.enums import VulnerabilitySeverity, VulnerabilityStatus
from engmetrics.domain.records import CanonicalVulnerability, QualityMeasures
from engmetrics.mappers.fields import payload_mapper, required
from engmetrics.utils.datetime_utils import parse_timestamp

RATING_LETTERS = ((1.0, "A"), (2.0, "B"), (3.0, "C"), (4.0, "D"))


def parse_float_or_none(value: Any) -> float | None:
    if value is None or value == "":
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def parse_int_or_none(value: Any) -> int | None:
    parsed = parse_float_or_none(value)
    return int(parsed) if parsed is not None else None


def rating_to_letter(value: Any) -> str | None:
    """
    Convert a numeric rating to its letter.

    Example:
        >>> rating_to_letter("1.0"), rating_to_letter("2.5"), rating_to_letter("5.0")
        ('A', 'C', 'E')
    """
    rating = parse_float_or_none(value)
    if rating is None:
        return None
    for threshold, letter in RATING_LETTERS:
        if rating <= threshold:
            return letter
    return "E"


def measures_by_key(measures: list[dict[str, Any]]) -> dict[str, Any]:
    values: dict[str, Any] = {}
    for measure in measures:
        metric = measure.get("metric")
        if not metric:
            continue
        value = measure.get("value")
        if value is None:
            period = measure.get("period") or next(iter(measure.get("periods") or []), None) or {}
            value = period.get("value")
        values[metric] = value
    return values


@payload_mapper("SonarQube measures")
def map_measures(measures: list[dict[str, Any]]) -> QualityMeasures:
    values = measures_by_key(measures)
    return QualityMeasures(
        coverage=parse_float_or_none(values.get("coverage")),
        new_coverage=parse_float_or_none(values.get("new_coverage")),
        code_smells=parse_int_or_none(values.get("code_smells")),
        bugs=parse_int_or_none(values.get("bugs")),
        vulnerabilities=parse_int_or_none(values.get("vulnerabilities")),
        duplicated_lines_density=parse_float_or_none(values.get("duplicated_lines_density")),
        technical_debt_ratio=parse_float_or_none(values.get("sqale_debt_ratio")),
        complexity=parse_int_or_none(values.get("complexity")),
        maintainability_rating=rating_to_letter(values.get("sqale_rating")),
        reliability_rating=rating_to_letter(values.get("reliability_rating")),
        security_rating=rating_to_letter(values.get("security_rating")),
    )


# ============================================================
# Vulnerabilities
# ============================================================

# Scanner severities are one step more alarming than ours
SEVERITIES = {
    "BLOCKER": VulnerabilitySeverity.CRITICAL,
    "CRITICAL": VulnerabilitySeverity.HIGH,
    "MAJOR": VulnerabilitySeverity.MEDIUM,
    "MINOR": VulnerabilitySeverity.LOW,
    "INFO": VulnerabilitySeverity.LOW,
}

RESOLUTIONS = {
    "FIXED": VulnerabilityStatus.RESOLVED,
    "REMOVED": VulnerabilityStatus.RESOLVED,
    "FALSE-POSITIVE": VulnerabilityStatus.DISMISSED,
    "WONTFIX": VulnerabilityStatus.DISMISSED,
}


def map_vulnerability_severity(severity: str | None) -> VulnerabilitySeverity:
    return SEVERITIES.get((severity or "").upper(), VulnerabilitySeverity.MEDIUM)


def map_vulnerability_status(status: str | None, resolution: str | None) -> VulnerabilityStatus:
    """
    Resolution wins over status; CONFIRMED and REOPENED issues are in progress.

    Example:
        >>> map_vulnerability_status("RESOLVED", "WONTFIX").value
        'DISMISSED'
        >>> map_vulnerability_status("REOPENED", None).value
        'IN_PROGRESS'
    """
    if resolution:
        return RESOLUTIONS.get(resolution.upper(), VulnerabilityStatus.RESOLVED)
    if (status or "").upper() in ("CONFIRMED", "REOPENED"):
        return VulnerabilityStatus.IN_PROGRESS
    return VulnerabilityStatus.OPEN


@payload_mapper("SonarQube issue")
def map_vulnerability(raw: dict[str, Any]) -> CanonicalVulnerability:
    """
    Map a VULNERABILITY issue from /api/issues/search.

    A resolved issue's resolution time is its last update.

    Raises:
        MappingError: If key or creationDate is missing or unparsable
    """
    resolution = raw.get("resolution")
    return CanonicalVulnerability(
        external_id=required(raw, "key", "SonarQube issue"),
        title=raw.get("message") or raw["key"],
        severity=map_vulnerability_severity(raw.get("severity")),
        status=map_vulnerability_status(raw.get("status"), resolution),
        discovered_at=parse_timestamp(required(raw, "creationDate", "SonarQube issue")),
        resolved_at=parse_timestamp(raw.get("updateDate")) if resolution else None,
    )
