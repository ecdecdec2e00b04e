"""
Jira field mapping.

Pure functions translating Jira REST payloads into canonical records.
Issue type, status and priority are inferred with ordered substring rule
tables (first match wins); the explicit status category, when present,
takes precedence over the status name.
"""

from typing import Any

from engmetrics.domain.enums import IssuePriority, IssueStatus, IssueType
from engmetrics.domain.errors import MappingError
from engmetrics.domain.records import CanonicalIssue, CanonicalSprint, CanonicalStatusTransition
from engmetrics.mappers.adf import extract_description
from engmetrics.mappers.fields import payload_mapper
from engmetrics.mappers.rules import first_match
from engmetrics.utils.datetime_utils import parse_timestamp

ISSUE_TYPE_RULES: tuple[tuple[tuple[str, ...], IssueType], ...] = (
    (("bug",), IssueType.BUG),
    (("epic",), IssueType.EPIC),
    (("story",), IssueType.STORY),
    (("subtask", "sub-task"), IssueType.SUBTASK),
    (("feature", "enhancement"), IssueType.FEATURE),
)

STATUS_CATEGORY_MAP = {
    "done": IssueStatus.DONE,
    "indeterminate": IssueStatus.IN_PROGRESS,
}

STATUS_NAME_RULES: tuple[tuple[tuple[str, ...], IssueStatus], ...] = (
    (("done", "closed", "resolved"), IssueStatus.DONE),
    (("progress", "active", "dev"), IssueStatus.IN_PROGRESS),
    (("review", "testing", "qa"), IssueStatus.IN_REVIEW),
    (("block", "impediment"), IssueStatus.BLOCKED),
    (("cancel", "won't"), IssueStatus.CANCELLED),
)

# "low" precedes "trivial", and "lowest" therefore maps to LOW
PRIORITY_RULES: tuple[tuple[tuple[str, ...], IssuePriority], ...] = (
    (("highest", "critical", "blocker"), IssuePriority.CRITICAL),
    (("high",), IssuePriority.HIGH),
    (("low",), IssuePriority.LOW),
    (("trivial",), IssuePriority.TRIVIAL),
)


def map_issue_type(name: str | None) -> IssueType:
    return first_match(name, ISSUE_TYPE_RULES, IssueType.TASK)


def map_status(name: str | None, category_key: str | None = None) -> IssueStatus:
    """
    Map a Jira status to IssueStatus.

    Args:
        name: Status display name (e.g. "In Review")
        category_key: statusCategory.key ("new", "indeterminate", "done")

    Returns:
        Category mapping when it is decisive, otherwise the name rules, default TODO
    """
    category = STATUS_CATEGORY_MAP.get((category_key or "").lower())
    if category is not None:
        return category
    return first_match(name, STATUS_NAME_RULES, IssueStatus.TODO)


def map_priority(name: str | None) -> IssuePriority:
    return first_match(name, PRIORITY_RULES, IssuePriority.MEDIUM)


def extract_story_points(fields: dict[str, Any], story_points_field: str) -> float | None:
    points = fields.get(story_points_field)
    if isinstance(points, bool) or not isinstance(points, int | float):
        return None
    return float(points)


def extract_sprint_external_id(fields: dict[str, Any], sprint_field: str) -> str | None:
    """The sprint field lists every sprint the issue was in; the last one is current."""
    sprints = fields.get(sprint_field)
    if not isinstance(sprints, list) or not sprints:
        return None
    latest = sprints[-1]
    sprint_id = latest.get("id") if isinstance(latest, dict) else None
    return str(sprint_id) if sprint_id is not None else None


@payload_mapper("Jira issue")
def map_issue(raw: dict[str, Any], browse_base_url: str, story_points_field: str, sprint_field: str) -> CanonicalIssue:
    """
    Map a Jira search result to a CanonicalIssue.

    Args:
        raw: Issue from POST /rest/api/{v}/search
        browse_base_url: Site URL used to build "{base}/browse/{key}"
        story_points_field: Custom field id holding story points
        sprint_field: Custom field id holding the sprint list

    Returns:
        CanonicalIssue keyed by the Jira issue key

    Raises:
        MappingError: If key, fields, summary or issue type are missing
    """
    key = raw.get("key")
    fields = raw.get("fields")
    if not key or not isinstance(fields, dict):
        raise MappingError("Jira issue is missing key or fields", record_id=str(raw.get("id")))
    if not fields.get("summary") or not isinstance(fields.get("issuetype"), dict):
        raise MappingError(f"Jira issue {key} is missing summary or issue type", record_id=key)

    status = fields.get("status") or {}
    priority = fields.get("priority") or {}

    return CanonicalIssue(
        key=key,
        external_id=str(raw.get("id") or key),
        title=fields["summary"],
        description=extract_description(fields.get("description")),
        type=map_issue_type(fields["issuetype"].get("name")),
        status=map_status(status.get("name"), (status.get("statusCategory") or {}).get("key")),
        status_name=status.get("name"),
        priority=map_priority(priority.get("name")),
        created_at=parse_timestamp(fields.get("created")),
        updated_at=parse_timestamp(fields.get("updated")),
        resolved_at=parse_timestamp(fields.get("resolutiondate")),
        url=f"{browse_base_url}/browse/{key}",
        story_points=extract_story_points(fields, story_points_field),
        sprint_external_id=extract_sprint_external_id(fields, sprint_field),
        reporter=fields.get("reporter"),
        assignee=fields.get("assignee"),
    )


@payload_mapper("Jira sprint")
def map_sprint(raw: dict[str, Any]) -> CanonicalSprint:
    if raw.get("id") is None or not raw.get("name"):
        raise MappingError("Jira sprint is missing id or name", record_id=str(raw.get("id")))
    return CanonicalSprint(
        external_id=str(raw["id"]),
        name=raw["name"],
        state=(raw.get("state") or "future").upper(),
        start_date=parse_timestamp(raw.get("startDate")),
        end_date=parse_timestamp(raw.get("endDate")),
        completed_at=parse_timestamp(raw.get("completeDate")),
        goal=raw.get("goal") or None,
    )


@payload_mapper("Jira changelog history")
def map_history_transitions(history: dict[str, Any]) -> list[CanonicalStatusTransition]:
    """
    Status changes of one changelog history.

    Only items whose field (or fieldId) is "status" are kept; a history
    without a timestamp yields nothing.

    Raises:
        MappingError: If the history timestamp or items cannot be read
    """
    transitioned_at = parse_timestamp(history.get("created"))
    if transitioned_at is None:
        return []

    transitions = []
    for item in history.get("items") or []:
        if item.get("field") != "status" and item.get("fieldId") != "status":
            continue
        transitions.append(
            CanonicalStatusTransition(
                from_status=item.get("fromString") or None,
                to_status=item.get("toString") or "",
                transitioned_at=transitioned_at,
                author=history.get("author"),
            )
        )
    return transitions

