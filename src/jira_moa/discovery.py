"""Discovery of the issues that belong to a user's year.

An issue belongs to the report when it is assigned to the target user and was
created or resolved in the year, or when it is a top-level issue in a version
released that year with at least one subtask assigned to the target user.
"""

import logging
from dataclasses import dataclass

from jira_moa.jira_client import JiraClient
from jira_moa.models import ProcessedIssue
from jira_moa.search import KEY_CHUNK_SIZE, IssueSearch, chunked, merge_unique

logger = logging.getLogger(__name__)

VERSION_CHUNK_SIZE = 30


def _quote(value: str) -> str:
    return '"' + value.replace("\\", "\\\\").replace('"', '\\"') + '"'


@dataclass(frozen=True)
class AssigneeTarget:
    """The user whose tickets are collected.

    Matching by account id is exact. When only a display name is known the
    match is best-effort: two users may share a name.
    """

    jql_clause: str
    account_id: str | None = None
    display_name: str | None = None

    @classmethod
    def current_user(cls, myself: dict) -> "AssigneeTarget":
        return cls(
            jql_clause="assignee = currentUser()",
            account_id=myself.get("accountId"),
            display_name=myself.get("displayName"),
        )

    @classmethod
    def by_account_id(cls, account_id: str, display_name: str) -> "AssigneeTarget":
        return cls(
            jql_clause=f"assignee = {_quote(account_id)}",
            account_id=account_id,
            display_name=display_name,
        )

    @classmethod
    def by_name(cls, name: str) -> "AssigneeTarget":
        return cls(jql_clause=f"assignee = {_quote(name)}", display_name=name)

    @property
    def matches_by_id(self) -> bool:
        return bool(self.account_id)

    def matches(self, issue: ProcessedIssue) -> bool:
        if self.matches_by_id:
            return issue.assignee_account_id == self.account_id
        return issue.assignee_name is not None and issue.assignee_name == self.display_name


def resolve_target(client: JiraClient, myself: dict, assignee: str | None) -> AssigneeTarget:
    """Work out who to collect for.

    No assignee means the authenticated user. A named assignee is pinned to an
    account id when exactly one user has that display name; otherwise matching
    falls back to the display name.
    """
    if not assignee:
        return AssigneeTarget.current_user(myself)

    candidates = [
        user for user in client.find_users(assignee)
        if user.get("displayName") == assignee and user.get("accountId")
    ]
    if len(candidates) == 1:
        return AssigneeTarget.by_account_id(candidates[0]["accountId"], assignee)

    logger.warning(
        "Assignee %r matched %d users; falling back to display-name matching",
        assignee,
        len(candidates),
    )
    return AssigneeTarget.by_name(assignee)


class MembershipResolver:
    """Collects the issue set of one (user, year) query."""

    def __init__(
        self,
        client: JiraClient,
        search: IssueSearch,
        excluded_projects: list[str] | None = None,
        default_project_key: str | None = None,
    ) -> None:
        self.client = client
        self.search = search
        self.excluded_projects = excluded_projects or []
        self.default_project_key = default_project_key

    def discovery_jql(self, year: int, target: AssigneeTarget) -> str:
        clauses = [target.jql_clause]
        if self.excluded_projects:
            clauses.append("project not in (" + ", ".join(self.excluded_projects) + ")")
        clauses.append(f"(created >= {year}-01-01 OR resolutiondate >= {year}-01-01)")
        return " AND ".join(clauses)

    def discover(self, year: int, target: AssigneeTarget) -> list[ProcessedIssue]:
        """Issues assigned to the target with activity since January 1st."""
        issues = self.search.search(self.discovery_jql(year, target))
        logger.info("Discovery found %d issues", len(issues))
        return [issue.as_my_ticket() for issue in issues]

    def target_version_ids(self, project_keys: list[str], year: int) -> list[str]:
        """IDs of versions released in ``year`` across the given projects."""
        if not project_keys and self.default_project_key:
            logger.info(
                "No projects discovered; using default project %s", self.default_project_key
            )
            project_keys = [self.default_project_key]

        version_ids: list[str] = []
        for project_key in project_keys:
            released = [
                version for version in self.client.project_versions(project_key)
                if version.get("released")
                and str(version.get("releaseDate") or "").startswith(str(year))
            ]
            logger.info(
                "Project %s has %d versions released in %d", project_key, len(released), year
            )
            version_ids.extend(str(version["id"]) for version in released)
        return version_ids

    def subtasks_by_parent(
        self, issue_keys: list[str], target: AssigneeTarget
    ) -> dict[str, list[ProcessedIssue]]:
        """The target's subtasks of the given issues, keyed by parent key."""
        subtasks: dict[str, list[ProcessedIssue]] = {}
        for chunk in chunked(issue_keys, KEY_CHUNK_SIZE):
            jql = "parent in (" + ", ".join(chunk) + f") AND {target.jql_clause}"
            for subtask in self.search.search(jql):
                if subtask.parent_key:
                    subtasks.setdefault(subtask.parent_key, []).append(subtask)
        return subtasks

    def version_members(
        self, version_ids: list[str], target: AssigneeTarget
    ) -> list[ProcessedIssue]:
        """Issues in the given versions that the target worked on.

        All issues of the versions are fetched regardless of assignee, since an
        issue owned by someone else still counts when one of its subtasks is
        the target's.
        """
        members: list[ProcessedIssue] = []
        for chunk in chunked(version_ids, VERSION_CHUNK_SIZE):
            version_issues = self.search.search("fixVersion in (" + ", ".join(chunk) + ")")
            if not version_issues:
                continue
            subtasks = self.subtasks_by_parent([i.key for i in version_issues], target)

            for issue in version_issues:
                if target.matches(issue):
                    members.append(issue.as_my_ticket())
                elif subtasks.get(issue.key):
                    members.append(issue.as_my_ticket(False))
        return members

    def resolve(self, year: int, target: AssigneeTarget) -> list[ProcessedIssue]:
        """Collect the de-duplicated issue set for ``target`` and ``year``."""
        discovered = self.discover(year, target)
        project_keys = sorted({issue.project_key for issue in discovered})
        version_ids = self.target_version_ids(project_keys, year)

        members: list[ProcessedIssue] = []
        if version_ids:
            members = self.version_members(version_ids, target)
            logger.info(
                "Membership pass found %d issues in %d versions", len(members), len(version_ids)
            )

        return merge_unique(discovered, members)
