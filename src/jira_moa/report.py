"""Grouping of collected issues into the yearly report structure."""

from collections import Counter
from datetime import date, datetime

from jira_moa.models import (
    CountEntry,
    Diagnostic,
    IssueNode,
    MonthSlot,
    ProcessedIssue,
    ProjectGroup,
    ReportContext,
    SubGroup,
)

NO_EPIC = "NO_EPIC"
NO_EPIC_TITLE = "기타 (에픽 없음)"
UNVERSIONED = "Unversioned"

TYPE_PRIORITY = {
    "Epic": 0,
    "에픽": 0,
    "Story": 1,
    "스토리": 1,
    "Improvement": 2,
    "개선": 2,
    "Bug": 3,
    "버그": 3,
    "Design": 4,
    "디자인": 4,
    "Task": 5,
    "작업": 5,
    "Sub-task": 6,
    "Subtask": 6,
    "하위 작업": 6,
    "BI 요청": 7,
}
UNLISTED_TYPE_PRIORITY = len(set(TYPE_PRIORITY.values()))


def type_priority(issue_type: str) -> int:
    return TYPE_PRIORITY.get(issue_type, UNLISTED_TYPE_PRIORITY)


def _timestamp(value: datetime | None) -> float:
    return value.timestamp() if value else float("inf")


def bucket_date(issue: ProcessedIssue) -> date | None:
    """The date an issue is reported under: release date, else created date."""
    if issue.release_date:
        return issue.release_date
    if issue.created_date:
        return issue.created_date.date()
    return None


def month_sort_key(issue: ProcessedIssue) -> tuple:
    return (
        issue.release_date or date.max,
        type_priority(issue.issue_type),
        _timestamp(issue.created_date),
    )


def is_placeholder_only(issue: ProcessedIssue, placeholder_versions: set[str]) -> bool:
    """True when every version of the issue is an "awaiting version" marker."""
    return bool(issue.versions) and all(
        v.name in placeholder_versions or v.normalized_name in placeholder_versions
        for v in issue.versions
    )


def build_month_grid(
    issues: list[ProcessedIssue],
    year: int,
    placeholder_versions: set[str] | None = None,
) -> list[MonthSlot]:
    """Twelve month slots of the top-level, versioned issues of ``year``."""
    placeholder_versions = placeholder_versions or set()
    slots = [MonthSlot(month=m, issues=[]) for m in range(1, 13)]

    for issue in issues:
        if issue.is_subtask or not issue.versions:
            continue
        if is_placeholder_only(issue, placeholder_versions):
            continue
        day = bucket_date(issue)
        if day is None or day.year != year:
            continue
        slots[day.month - 1].issues.append(issue)

    for slot in slots:
        slot.issues.sort(key=month_sort_key)
    return slots


def build_issue_tree(issues: list[ProcessedIssue]) -> list[IssueNode]:
    """Arrange a group's issues under their parents.

    Only parents inside the group count; an issue whose parent is elsewhere
    becomes a root. Issues caught in a parent cycle are reported as roots.
    """
    in_group = {issue.key for issue in issues}
    children: dict[str, list[ProcessedIssue]] = {}
    roots: list[ProcessedIssue] = []

    for issue in issues:
        if issue.parent_key and issue.parent_key in in_group and issue.parent_key != issue.key:
            children.setdefault(issue.parent_key, []).append(issue)
        else:
            roots.append(issue)

    visited: set[str] = set()

    def make_node(issue: ProcessedIssue) -> IssueNode:
        visited.add(issue.key)
        return IssueNode(
            issue=issue,
            children=[
                make_node(child)
                for child in children.get(issue.key, [])
                if child.key not in visited
            ],
        )

    nodes = [make_node(issue) for issue in roots]

    # Members of a cycle have in-group parents, so none of them became a root.
    for issue in issues:
        if issue.key not in visited:
            nodes.append(make_node(issue))
    return nodes


def _group_by_project(issues: list[ProcessedIssue]) -> dict[str, list[ProcessedIssue]]:
    by_project: dict[str, list[ProcessedIssue]] = {}
    for issue in issues:
        by_project.setdefault(issue.project_key, []).append(issue)
    return dict(sorted(by_project.items()))


def build_epic_view(issues: list[ProcessedIssue], jira_url: str) -> list[ProjectGroup]:
    """Per-project groups keyed by each issue's direct parent."""
    projects: list[ProjectGroup] = []
    for project_key, project_issues in _group_by_project(issues).items():
        by_epic: dict[str, list[ProcessedIssue]] = {}
        for issue in project_issues:
            by_epic.setdefault(issue.parent_key or NO_EPIC, []).append(issue)

        epic_keys = sorted(by_epic, key=lambda k: (k == NO_EPIC, k))
        groups: list[SubGroup] = []
        for epic_key in epic_keys:
            epic_issues = by_epic[epic_key]
            if epic_key == NO_EPIC:
                title, key, url = NO_EPIC_TITLE, None, None
            else:
                title = epic_issues[0].parent_summary or "Unknown Epic"
                key, url = epic_key, f"{jira_url.rstrip('/')}/browse/{epic_key}"
            groups.append(
                SubGroup(
                    title=title,
                    key=key,
                    url=url,
                    roots=build_issue_tree(epic_issues),
                    is_version=False,
                    count=len(epic_issues),
                )
            )
        projects.append(ProjectGroup(name=project_key, groups=groups))
    return projects


def build_version_view(issues: list[ProcessedIssue]) -> list[ProjectGroup]:
    """Per-project groups keyed by each issue's first version, platform-neutral."""
    projects: list[ProjectGroup] = []
    for project_key, project_issues in _group_by_project(issues).items():
        by_version: dict[str, list[ProcessedIssue]] = {}
        for issue in project_issues:
            name = issue.versions[0].normalized_name if issue.versions else UNVERSIONED
            by_version.setdefault(name, []).append(issue)

        # Plain string order: "5.9.0" comes before "5.10.0".
        named = sorted((n for n in by_version if n != UNVERSIONED), reverse=True)
        if UNVERSIONED in by_version:
            named.append(UNVERSIONED)

        groups = [
            SubGroup(
                title=name,
                key=None,
                url=None,
                roots=build_issue_tree(by_version[name]),
                is_version=True,
                count=len(by_version[name]),
            )
            for name in named
        ]
        projects.append(ProjectGroup(name=project_key, groups=groups))
    return projects


def count_types(issues: list[ProcessedIssue]) -> list[CountEntry]:
    counts = Counter(issue.issue_type for issue in issues)
    ordered = sorted(counts.items(), key=lambda kv: (-kv[1], type_priority(kv[0]), kv[0]))
    return [CountEntry(name=name, count=count) for name, count in ordered]


def count_labels(issues: list[ProcessedIssue], limit: int = 10) -> list[CountEntry]:
    counts = Counter(label for issue in issues for label in issue.labels)
    ordered = sorted(counts.items(), key=lambda kv: (-kv[1], kv[0]))
    return [CountEntry(name=name, count=count) for name, count in ordered[:limit]]


def build_report(
    issues: list[ProcessedIssue],
    year: int,
    jira_url: str,
    placeholder_versions: list[str] | None = None,
    label_limit: int = 10,
    diagnostics: list[Diagnostic] | None = None,
) -> ReportContext:
    """Build every view of the yearly report from resolved issues."""
    return ReportContext(
        year=year,
        total_count=len(issues),
        months=build_month_grid(issues, year, set(placeholder_versions or [])),
        type_counts=count_types(issues),
        label_counts=count_labels(issues, label_limit),
        projects=build_epic_view(issues, jira_url),
        version_projects=build_version_view(issues),
        diagnostics=list(diagnostics or []),
    )


def report_context_to_dict(report: ReportContext) -> dict:
    """Convert ReportContext to a JSON-serializable dict."""

    def _date_str(d: date | datetime | None) -> str | None:
        return d.isoformat() if d else None

    def _issue_dict(i: ProcessedIssue) -> dict:
        return {
            "key": i.key,
            "summary": i.summary,
            "url": i.url,
            "created_date": _date_str(i.created_date),
            "release_date": _date_str(i.release_date),
            "issue_type": i.issue_type,
            "type_class": i.type_class,
            "is_subtask": i.is_subtask,
            "status": i.status,
            "labels": list(i.labels),
            "versions": [
                {"id": v.id, "name": v.name, "release_date": _date_str(v.release_date)}
                for v in i.versions
            ],
            "parent_key": i.parent_key,
            "parent_summary": i.parent_summary,
            "parent_type": i.parent_type,
            "assignee_name": i.assignee_name,
            "is_my_ticket": i.is_my_ticket,
        }

    def _node_dict(n: IssueNode) -> dict:
        return {"issue": _issue_dict(n.issue), "children": [_node_dict(c) for c in n.children]}

    def _project_dict(p: ProjectGroup) -> dict:
        return {
            "name": p.name,
            "groups": [
                {
                    "title": g.title,
                    "key": g.key,
                    "url": g.url,
                    "is_version": g.is_version,
                    "count": g.count,
                    "roots": [_node_dict(n) for n in g.roots],
                }
                for g in p.groups
            ],
        }

    return {
        "year": report.year,
        "total_count": report.total_count,
        "months": [
            {"month": s.month, "count": s.count, "issues": [_issue_dict(i) for i in s.issues]}
            for s in report.months
        ],
        "type_counts": [{"name": c.name, "count": c.count} for c in report.type_counts],
        "label_counts": [{"name": c.name, "count": c.count} for c in report.label_counts],
        "projects": [_project_dict(p) for p in report.projects],
        "version_projects": [_project_dict(p) for p in report.version_projects],
        "diagnostics": [
            {"issue_key": d.issue_key, "field": d.field, "value": d.value, "message": d.message}
            for d in report.diagnostics
        ],
    }
