"""
GitHub field mapping.

Pure functions translating GitHub REST payloads (issues, pull requests,
reviews, commits, workflow runs and jobs) into canonical records. No I/O.

Usage:
    from engmetrics.mappers.github import is_pull_request, map_issue

    issues = [map_issue(raw, "acme/api") for raw in page if not is_pull_request(raw)]
"""

from typing import Any

from engmetrics.domain.enums import IssuePriority, IssueStatus, IssueType, PipelineStatus, PullRequestState, ReviewState
from engmetrics.domain.records import (
    CanonicalCommit,
    CanonicalIssue,
    CanonicalPipelineRun,
    CanonicalPipelineStage,
    CanonicalPullRequest,
    CanonicalReview,
)
from engmetrics.mappers.fields import payload_mapper, required
from engmetrics.mappers.rules import first_match_any
from engmetrics.utils.datetime_utils import milliseconds_between, parse_timestamp

# ============================================================
# Rule tables
# ============================================================

LABEL_TYPE_RULES: tuple[tuple[tuple[str, ...], IssueType], ...] = (
    (("bug", "fix"), IssueType.BUG),
    (("feature", "enhancement"), IssueType.FEATURE),
    (("epic",), IssueType.EPIC),
    (("story",), IssueType.STORY),
    (("subtask", "sub-task"), IssueType.SUBTASK),
)

LABEL_PRIORITY_RULES: tuple[tuple[tuple[str, ...], IssuePriority], ...] = (
    (("highest", "critical", "blocker", "urgent"), IssuePriority.CRITICAL),
    (("high",), IssuePriority.HIGH),
    (("low",), IssuePriority.LOW),
    (("trivial",), IssuePriority.TRIVIAL),
)

WORKFLOW_PENDING_STATUSES = ("queued", "waiting", "pending", "requested")

WORKFLOW_CONCLUSIONS = {
    "success": PipelineStatus.SUCCESS,
    "failure": PipelineStatus.FAILED,
    "timed_out": PipelineStatus.FAILED,
    "startup_failure": PipelineStatus.FAILED,
    "cancelled": PipelineStatus.CANCELLED,
    "skipped": PipelineStatus.SKIPPED,
}


def label_names(raw: dict[str, Any]) -> list[str]:
    """Label names of an issue; labels may be objects or bare strings."""
    names = []
    for label in raw.get("labels") or []:
        name = label.get("name") if isinstance(label, dict) else label
        if isinstance(name, str):
            names.append(name)
    return names


# ============================================================
# Issues
# ============================================================


def is_pull_request(raw: dict[str, Any]) -> bool:
    """The issues endpoint also lists pull requests; they carry a pull_request marker."""
    return bool(raw.get("pull_request"))


def map_issue_type(labels: list[str]) -> IssueType:
    return first_match_any(labels, LABEL_TYPE_RULES, IssueType.TASK)


def map_issue_priority(labels: list[str]) -> IssuePriority:
    return first_match_any(labels, LABEL_PRIORITY_RULES, IssuePriority.MEDIUM)


def map_issue_status(state: str | None, state_reason: str | None = None) -> IssueStatus:
    """
    closed => DONE (CANCELLED when closed as not planned), anything else => TODO.
    """
    if (state or "").lower() != "closed":
        return IssueStatus.TODO
    if (state_reason or "").lower() == "not_planned":
        return IssueStatus.CANCELLED
    return IssueStatus.DONE


@payload_mapper("GitHub issue")
def map_issue(raw: dict[str, Any], full_name: str) -> CanonicalIssue:
    """
    Map a GitHub issue to a CanonicalIssue.

    Args:
        raw: Issue payload from GET /repos/{owner}/{repo}/issues
        full_name: Repository "owner/repo", used for the synthetic key

    Returns:
        CanonicalIssue keyed "{full_name}#{number}"

    Raises:
        MappingError: If number, title or timestamps are missing or unparsable
    """
    number = required(raw, "number", "GitHub issue")
    labels = label_names(raw)
    status = map_issue_status(raw.get("state"), raw.get("state_reason"))
    closed_at = parse_timestamp(raw.get("closed_at"))

    return CanonicalIssue(
        key=f"{full_name}#{number}",
        external_id=str(raw.get("id", number)),
        title=required(raw, "title", "GitHub issue"),
        description=raw.get("body"),
        type=map_issue_type(labels),
        status=status,
        status_name=raw.get("state"),
        priority=map_issue_priority(labels),
        created_at=parse_timestamp(required(raw, "created_at", "GitHub issue")),
        updated_at=parse_timestamp(required(raw, "updated_at", "GitHub issue")),
        resolved_at=closed_at if status in (IssueStatus.DONE, IssueStatus.CANCELLED) else None,
        url=raw.get("html_url"),
        reporter=raw.get("user"),
        assignee=raw.get("assignee"),
    )


# ============================================================
# Pull requests and reviews
# ============================================================


def map_pull_request_state(raw: dict[str, Any]) -> PullRequestState:
    if raw.get("draft"):
        return PullRequestState.DRAFT
    if raw.get("state") == "closed":
        return PullRequestState.MERGED if raw.get("merged_at") else PullRequestState.CLOSED
    return PullRequestState.OPEN


@payload_mapper("GitHub pull request")
def map_pull_request(raw: dict[str, Any]) -> CanonicalPullRequest:
    """
    Map a GitHub pull request list item.

    Raises:
        MappingError: If number or timestamps are missing
    """
    return CanonicalPullRequest(
        number=required(raw, "number", "GitHub pull request"),
        title=raw.get("title") or "",
        state=map_pull_request_state(raw),
        source_branch=(raw.get("head") or {}).get("ref"),
        target_branch=(raw.get("base") or {}).get("ref"),
        created_at=parse_timestamp(required(raw, "created_at", "GitHub pull request")),
        updated_at=parse_timestamp(required(raw, "updated_at", "GitHub pull request")),
        merged_at=parse_timestamp(raw.get("merged_at")),
        closed_at=parse_timestamp(raw.get("closed_at")),
        url=raw.get("html_url"),
        author=raw.get("user"),
        iteration_count=raw.get("commits"),
    )


def map_review_state(state: str | None) -> ReviewState | None:
    """Known review states pass through; PENDING and unknown states map to None."""
    try:
        return ReviewState((state or "").upper())
    except ValueError:
        return None


@payload_mapper("GitHub review")
def map_review(raw: dict[str, Any]) -> CanonicalReview | None:
    """
    Map a pull request review, or None when it should be skipped
    (no reviewer, never submitted, or an unknown state).
    """
    state = map_review_state(raw.get("state"))
    submitted_at = parse_timestamp(raw.get("submitted_at"))
    if state is None or submitted_at is None or not raw.get("user"):
        return None

    return CanonicalReview(
        external_id=f"github-{required(raw, 'id', 'GitHub review')}",
        state=state,
        submitted_at=submitted_at,
        reviewer=raw["user"],
    )


# ============================================================
# Commits
# ============================================================


@payload_mapper("GitHub commit")
def map_commit(raw: dict[str, Any]) -> CanonicalCommit | None:
    """
    Map a commit (list item or detail payload).

    Returns None when the git author lacks an email, name or date. Line
    stats and the file count are only present on the detail payload.
    """
    git_author = (raw.get("commit") or {}).get("author") or {}
    email = git_author.get("email")
    name = git_author.get("name")
    committed_at = parse_timestamp(git_author.get("date"))
    if not email or not name or committed_at is None:
        return None

    account = raw.get("author") or {}
    stats = raw.get("stats") or {}
    return CanonicalCommit(
        sha=required(raw, "sha", "GitHub commit"),
        message=(raw.get("commit") or {}).get("message") or "",
        committed_at=committed_at,
        author={
            "email": email,
            "name": name,
            "login": account.get("login"),
            "avatar_url": account.get("avatar_url"),
        },
        lines_added=int(stats.get("additions") or 0),
        lines_removed=int(stats.get("deletions") or 0),
        files_changed=len(raw.get("files") or []),
    )


# ============================================================
# Workflow runs
# ============================================================


def map_workflow_status(status: str | None, conclusion: str | None) -> PipelineStatus:
    """
    queued/waiting/pending => PENDING; in_progress => RUNNING; otherwise by
    conclusion (success, failure/timed_out, cancelled, skipped); default PENDING.
    """
    status = (status or "").lower()
    if status in WORKFLOW_PENDING_STATUSES:
        return PipelineStatus.PENDING
    if status == "in_progress":
        return PipelineStatus.RUNNING
    return WORKFLOW_CONCLUSIONS.get((conclusion or "").lower(), PipelineStatus.PENDING)


def _is_finished(status: PipelineStatus) -> bool:
    return status not in (PipelineStatus.PENDING, PipelineStatus.RUNNING)


@payload_mapper("GitHub job")
def map_job(raw: dict[str, Any]) -> CanonicalPipelineStage:
    status = map_workflow_status(raw.get("status"), raw.get("conclusion"))
    started_at = parse_timestamp(raw.get("started_at"))
    completed_at = parse_timestamp(raw.get("completed_at")) if _is_finished(status) else None
    duration_ms = milliseconds_between(started_at, completed_at) if started_at and completed_at else None
    return CanonicalPipelineStage(
        name=required(raw, "name", "GitHub job"),
        status=status,
        started_at=started_at,
        completed_at=completed_at,
        duration_ms=duration_ms,
    )


@payload_mapper("GitHub workflow run")
def map_workflow_run(raw: dict[str, Any]) -> CanonicalPipelineRun:
    """
    Map a workflow run; duration is updated_at - run_started_at.

    Raises:
        MappingError: If run number or workflow path are missing
    """
    status = map_workflow_status(raw.get("status"), raw.get("conclusion"))
    started_at = parse_timestamp(raw.get("run_started_at") or raw.get("created_at"))
    updated_at = parse_timestamp(raw.get("updated_at"))
    duration_ms = milliseconds_between(started_at, updated_at) if started_at and updated_at else None

    return CanonicalPipelineRun(
        run_number=required(raw, "run_number", "GitHub workflow run"),
        config_path=required(raw, "path", "GitHub workflow run"),
        status=status,
        external_id=str(raw.get("id")),
        branch=raw.get("head_branch"),
        commit_sha=raw.get("head_sha"),
        trigger_event=raw.get("event"),
        started_at=started_at,
        completed_at=updated_at if _is_finished(status) else None,
        duration_ms=duration_ms,
    )
