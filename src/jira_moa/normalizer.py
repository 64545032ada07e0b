"""Conversion of raw JIRA search results into ProcessedIssue records."""

import logging
from datetime import date, datetime

from jira_moa.models import Diagnostic, ProcessedIssue, VersionInfo

logger = logging.getLogger(__name__)

PLATFORM_SORT = "sort"
PLATFORM_FILTER = "filter"
PLATFORM_POLICIES = (PLATFORM_SORT, PLATFORM_FILTER)

TIMESTAMP_FORMATS = (
    "%Y-%m-%dT%H:%M:%S.%f%z",
    "%Y-%m-%dT%H:%M:%S%z",
)

# Raw type names shown under a friendlier label.
TYPE_DISPLAY_NAMES = {
    "Service Request with Approvals": "BI 요청",
}

TYPE_CLASSES = {
    "Epic": "epic",
    "에픽": "epic",
    "Story": "story",
    "스토리": "story",
    "Task": "task",
    "작업": "task",
    "Bug": "bug",
    "버그": "bug",
    "Improvement": "improvement",
    "개선": "improvement",
    "Design": "design",
    "디자인": "design",
}
DEFAULT_TYPE_CLASS = "default"


class DateParseError(ValueError):
    """Raised when a JIRA timestamp matches none of the accepted formats."""

    pass


def parse_timestamp(value: str) -> datetime:
    """Parse a JIRA timestamp such as ``2025-03-04T10:11:12.345+0900``.

    Raises:
        DateParseError: If no accepted format matches
    """
    for fmt in TIMESTAMP_FORMATS:
        try:
            return datetime.strptime(value, fmt)
        except (ValueError, TypeError):
            continue
    try:
        return datetime.fromisoformat(value)
    except (ValueError, TypeError) as e:
        raise DateParseError(f"Unrecognized timestamp: {value!r}") from e


def parse_release_date(value: str | None) -> date | None:
    """Parse a version release date ("YYYY-MM-DD")."""
    if not value:
        return None
    try:
        return date.fromisoformat(str(value)[:10])
    except (ValueError, TypeError):
        return None


def canonical_type_name(raw_name: str) -> str:
    return TYPE_DISPLAY_NAMES.get(raw_name, raw_name)


def type_class_for(type_name: str) -> str:
    """Coarse display category of an (already canonicalized) issue type."""
    return TYPE_CLASSES.get(type_name, DEFAULT_TYPE_CLASS)


def order_versions(
    versions: list[VersionInfo],
    platform: str | None = None,
    policy: str = PLATFORM_SORT,
) -> list[VersionInfo]:
    """Apply a platform preference to a version list.

    With ``PLATFORM_SORT`` the versions whose name contains ``platform``
    (case-insensitive) move to the front, keeping their relative order. With
    ``PLATFORM_FILTER`` the other versions are dropped. No platform means no
    change.
    """
    if policy not in PLATFORM_POLICIES:
        raise ValueError(f"Unknown platform policy: {policy!r}")
    if not platform:
        return list(versions)

    needle = platform.lower()
    if policy == PLATFORM_FILTER:
        return [v for v in versions if needle in v.name.lower()]
    return sorted(versions, key=lambda v: needle not in v.name.lower())


def project_key_of(issue_key: str) -> str:
    prefix = issue_key.split("-")[0] if issue_key else ""
    return prefix or "UNKNOWN"


def normalize_issue(
    raw: dict,
    jira_url: str,
    platform: str | None = None,
    platform_policy: str = PLATFORM_SORT,
    diagnostics: list[Diagnostic] | None = None,
) -> ProcessedIssue:
    """Convert one raw search-result item into a ProcessedIssue.

    Args:
        raw: Issue dict with ``key`` and ``fields``
        jira_url: Site URL used to build browse links
        platform: Optional platform name used to order fix versions
        platform_policy: ``PLATFORM_SORT`` or ``PLATFORM_FILTER``
        diagnostics: Collects unparseable timestamps; such issues get
            ``created_date=None``
    """
    key = raw["key"]
    fields = raw.get("fields") or {}

    date_string = fields.get("resolutiondate") or fields.get("created") or ""
    try:
        created_date = parse_timestamp(date_string)
    except DateParseError as e:
        logger.warning("Issue %s: %s", key, e)
        created_date = None
        if diagnostics is not None:
            diagnostics.append(
                Diagnostic(
                    issue_key=key,
                    field="resolutiondate" if fields.get("resolutiondate") else "created",
                    value=date_string,
                    message=str(e),
                )
            )

    versions = [
        VersionInfo(
            id=str(v.get("id", "")),
            name=v.get("name", ""),
            release_date=parse_release_date(v.get("releaseDate")),
        )
        for v in fields.get("fixVersions") or []
    ]
    versions = order_versions(versions, platform, platform_policy)
    release_date = versions[0].release_date if versions else None

    issuetype = fields.get("issuetype") or {}
    issue_type = canonical_type_name(issuetype.get("name", ""))

    parent = fields.get("parent") or {}
    parent_fields = parent.get("fields") or {}
    parent_type = (parent_fields.get("issuetype") or {}).get("name")

    assignee = fields.get("assignee") or {}

    return ProcessedIssue(
        key=key,
        summary=fields.get("summary", ""),
        created_date=created_date,
        labels=tuple(fields.get("labels") or []),
        versions=tuple(versions),
        url=f"{jira_url.rstrip('/')}/browse/{key}",
        project_key=project_key_of(key),
        issue_type=issue_type,
        is_subtask=bool(issuetype.get("subtask", False)),
        type_class=type_class_for(issue_type),
        parent_key=parent.get("key"),
        parent_summary=parent_fields.get("summary"),
        parent_type=canonical_type_name(parent_type) if parent_type else None,
        release_date=release_date,
        status=(fields.get("status") or {}).get("name"),
        assignee_account_id=assignee.get("accountId"),
        assignee_name=assignee.get("displayName"),
    )
