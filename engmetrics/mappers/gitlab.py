"""
GitLab field mapping.

Pure functions translating GitLab REST v4 payloads (issues, merge requests,
commits, pipelines and jobs) into canonical records. Issue type and
priority come from labels, which GitLab returns as plain strings.
"""

from datetime import datetime
from typing import Any

from engmetrics.domain.enums import IssuePriority, IssueStatus, IssueType, PipelineStatus, PullRequestState
from engmetrics.domain.records import (
    CanonicalCommit,
    CanonicalIssue,
    CanonicalPipelineRun,
    CanonicalPipelineStage,
    CanonicalPullRequest,
)
from engmetrics.mappers.fields import payload_mapper, required
from engmetrics.mappers.rules import first_match_any
from engmetrics.utils.datetime_utils import milliseconds_between, parse_timestamp

# Pipelines are attached to the Pipeline row of the repository's CI file
GITLAB_CI_CONFIG_PATH = ".gitlab-ci.yml"

# ============================================================
# Rule tables
# ============================================================

LABEL_TYPE_RULES: tuple[tuple[tuple[str, ...], IssueType], ...] = (
    (("bug", "fix"), IssueType.BUG),
    (("feature", "enhancement"), IssueType.FEATURE),
    (("epic",), IssueType.EPIC),
    (("story",), IssueType.STORY),
)

LABEL_PRIORITY_RULES: tuple[tuple[tuple[str, ...], IssuePriority], ...] = (
    (("critical", "urgent", "blocker"), IssuePriority.CRITICAL),
    (("high",), IssuePriority.HIGH),
    (("low",), IssuePriority.LOW),
    (("trivial",), IssuePriority.TRIVIAL),
)

PIPELINE_STATUSES = {
    "created": PipelineStatus.PENDING,
    "waiting_for_resource": PipelineStatus.PENDING,
    "preparing": PipelineStatus.PENDING,
    "pending": PipelineStatus.PENDING,
    "manual": PipelineStatus.PENDING,
    "scheduled": PipelineStatus.PENDING,
    "running": PipelineStatus.RUNNING,
    "success": PipelineStatus.SUCCESS,
    "failed": PipelineStatus.FAILED,
    "canceled": PipelineStatus.CANCELLED,
    "skipped": PipelineStatus.SKIPPED,
}

DRAFT_TITLE_PREFIXES = ("draft:", "[draft]", "wip:")


def label_names(raw: dict[str, Any]) -> list[str]:
    return [label for label in raw.get("labels") or [] if isinstance(label, str)]


def first_user(raw: dict[str, Any], single: str, many: str) -> dict[str, Any] | None:
    """The single-user field, falling back to the first entry of its list form (assignee/assignees)."""
    user = raw.get(single)
    if user:
        return user  # type: ignore[no-any-return]
    users = raw.get(many) or []
    return users[0] if users else None


# ============================================================
# Issues
# ============================================================


def map_issue_status(state: str | None) -> IssueStatus:
    return IssueStatus.DONE if (state or "").lower() == "closed" else IssueStatus.TODO


@payload_mapper("GitLab issue")
def map_issue(raw: dict[str, Any], full_name: str) -> CanonicalIssue:
    """
    Map a GitLab issue to a CanonicalIssue keyed "{full_name}#{iid}".

    Raises:
        MappingError: If iid, title or timestamps are missing or unparsable
    """
    iid = required(raw, "iid", "GitLab issue")
    labels = label_names(raw)
    status = map_issue_status(raw.get("state"))

    return CanonicalIssue(
        key=f"{full_name}#{iid}",
        external_id=str(raw.get("id", iid)),
        title=required(raw, "title", "GitLab issue"),
        description=raw.get("description"),
        type=first_match_any(labels, LABEL_TYPE_RULES, IssueType.TASK),
        status=status,
        status_name=raw.get("state"),
        priority=first_match_any(labels, LABEL_PRIORITY_RULES, IssuePriority.MEDIUM),
        created_at=parse_timestamp(required(raw, "created_at", "GitLab issue")),
        updated_at=parse_timestamp(required(raw, "updated_at", "GitLab issue")),
        resolved_at=parse_timestamp(raw.get("closed_at")) if status == IssueStatus.DONE else None,
        url=raw.get("web_url"),
        reporter=raw.get("author"),
        assignee=first_user(raw, "assignee", "assignees"),
    )


# ============================================================
# Merge requests
# ============================================================


def is_draft(raw: dict[str, Any]) -> bool:
    title = (raw.get("title") or "").lower()
    return bool(raw.get("draft") or raw.get("work_in_progress") or title.startswith(DRAFT_TITLE_PREFIXES))


def map_merge_request_state(raw: dict[str, Any]) -> PullRequestState:
    """
    Draft wins, then merged (state or merged_at), closed, otherwise OPEN.
    """
    if is_draft(raw):
        return PullRequestState.DRAFT
    state = (raw.get("state") or "").lower()
    if state == "merged" or raw.get("merged_at"):
        return PullRequestState.MERGED
    if state == "closed":
        return PullRequestState.CLOSED
    return PullRequestState.OPEN


@payload_mapper("GitLab merge request")
def map_merge_request(raw: dict[str, Any]) -> CanonicalPullRequest:
    return CanonicalPullRequest(
        number=required(raw, "iid", "GitLab merge request"),
        title=raw.get("title") or "",
        state=map_merge_request_state(raw),
        source_branch=raw.get("source_branch"),
        target_branch=raw.get("target_branch"),
        created_at=parse_timestamp(required(raw, "created_at", "GitLab merge request")),
        updated_at=parse_timestamp(required(raw, "updated_at", "GitLab merge request")),
        merged_at=parse_timestamp(raw.get("merged_at")),
        closed_at=parse_timestamp(raw.get("closed_at")),
        url=raw.get("web_url"),
        author=raw.get("author"),
    )


# ============================================================
# Commits
# ============================================================


@payload_mapper("GitLab commit")
def map_commit(raw: dict[str, Any]) -> CanonicalCommit | None:
    """
    Map a commit list item (requested with_stats).

    Returns None when the author email, name or commit date is missing.
    GitLab does not report a file count on list items.
    """
    email = raw.get("author_email")
    name = raw.get("author_name")
    committed_at = parse_timestamp(raw.get("committed_date") or raw.get("authored_date"))
    if not email or not name or committed_at is None:
        return None

    stats = raw.get("stats") or {}
    return CanonicalCommit(
        sha=required(raw, "id", "GitLab commit"),
        message=raw.get("message") or "",
        committed_at=committed_at,
        author={"email": email, "name": name},
        lines_added=int(stats.get("additions") or 0),
        lines_removed=int(stats.get("deletions") or 0),
    )


# ============================================================
# Pipelines
# ============================================================


def map_pipeline_status(status: str | None) -> PipelineStatus:
    return PIPELINE_STATUSES.get((status or "").lower(), PipelineStatus.PENDING)


def _duration_ms(raw: dict[str, Any], started_at: datetime | None, finished_at: datetime | None) -> int | None:
    # duration is in seconds and excludes queue time
    if raw.get("duration"):
        return int(float(raw["duration"]) * 1000)
    if started_at and finished_at:
        return milliseconds_between(started_at, finished_at)
    return None


@payload_mapper("GitLab job")
def map_job(raw: dict[str, Any]) -> CanonicalPipelineStage:
    started_at = parse_timestamp(raw.get("started_at"))
    finished_at = parse_timestamp(raw.get("finished_at"))
    return CanonicalPipelineStage(
        name=required(raw, "name", "GitLab job"),
        status=map_pipeline_status(raw.get("status")),
        started_at=started_at,
        completed_at=finished_at,
        duration_ms=_duration_ms(raw, started_at, finished_at),
    )


@payload_mapper("GitLab pipeline")
def map_pipeline(raw: dict[str, Any]) -> CanonicalPipelineRun:
    """
    Map a pipeline (list item or detail payload).

    The pipeline id is the run number; its config path is always the
    repository's .gitlab-ci.yml.

    Raises:
        MappingError: If the id is missing or timestamps are unparsable
    """
    pipeline_id = required(raw, "id", "GitLab pipeline")
    started_at = parse_timestamp(raw.get("started_at") or raw.get("created_at"))
    finished_at = parse_timestamp(raw.get("finished_at"))

    return CanonicalPipelineRun(
        run_number=int(pipeline_id),
        config_path=GITLAB_CI_CONFIG_PATH,
        status=map_pipeline_status(raw.get("status")),
        external_id=str(pipeline_id),
        branch=raw.get("ref"),
        commit_sha=raw.get("sha"),
        trigger_event=raw.get("source"),
        started_at=started_at,
        completed_at=finished_at,
        duration_ms=_duration_ms(raw, started_at, finished_at),
    )
