"""Data models for Jira Moa."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import date, datetime

PLATFORM_SUFFIXES = (" - iOS", " - Android")


@dataclass(frozen=True)
class VersionInfo:
    """A fix version attached to an issue."""

    id: str
    name: str
    release_date: date | None = None

    @property
    def normalized_name(self) -> str:
        """Version name without its platform suffix ("1.2.0 - iOS" -> "1.2.0")."""
        name = self.name
        for suffix in PLATFORM_SUFFIXES:
            name = name.replace(suffix, "")
        return name


@dataclass(frozen=True)
class ProcessedIssue:
    """One issue, normalized from a JIRA search result."""

    key: str
    summary: str
    created_date: datetime | None  # resolutiondate if set, else created
    labels: tuple[str, ...]
    versions: tuple[VersionInfo, ...]
    url: str
    project_key: str
    issue_type: str
    is_subtask: bool
    type_class: str
    parent_key: str | None = None
    parent_summary: str | None = None
    parent_type: str | None = None
    release_date: date | None = None
    status: str | None = None
    assignee_account_id: str | None = None
    assignee_name: str | None = None
    is_my_ticket: bool = False

    def with_versions(
        self, versions: tuple[VersionInfo, ...], release_date: date | None
    ) -> ProcessedIssue:
        """Return a copy carrying another issue's versions and release date."""
        return replace(self, versions=tuple(versions), release_date=release_date)

    def as_my_ticket(self, mine: bool = True) -> ProcessedIssue:
        return replace(self, is_my_ticket=mine)


@dataclass
class SearchPage:
    """One page of raw search results."""

    issues: list[dict]
    next_page_token: str | None = None
    total: int | None = None


@dataclass(frozen=True)
class Diagnostic:
    """A recoverable problem found while normalizing an issue."""

    issue_key: str
    field: str
    value: str
    message: str


@dataclass
class IssueNode:
    """An issue and the issues beneath it within one report group."""

    issue: ProcessedIssue
    children: list[IssueNode] = field(default_factory=list)


@dataclass
class SubGroup:
    """An epic or version bucket within a project."""

    title: str
    key: str | None
    url: str | None
    roots: list[IssueNode]
    is_version: bool
    count: int


@dataclass
class ProjectGroup:
    """All epic or version buckets of one project."""

    name: str
    groups: list[SubGroup]


@dataclass
class MonthSlot:
    """Issues shipped (or worked on) in one calendar month."""

    month: int
    issues: list[ProcessedIssue]

    @property
    def count(self) -> int:
        return len(self.issues)


@dataclass
class CountEntry:
    """A name with its number of occurrences."""

    name: str
    count: int


@dataclass
class ReportContext:
    """Complete result of a yearly collection, ready for rendering."""

    year: int
    total_count: int
    months: list[MonthSlot]
    type_counts: list[CountEntry]
    label_counts: list[CountEntry]
    projects: list[ProjectGroup]  # epic view
    version_projects: list[ProjectGroup]  # version view
    diagnostics: list[Diagnostic] = field(default_factory=list)
