"""Paginated issue search on top of JiraClient."""

import logging
from collections.abc import Iterable, Sequence

from jira_moa.jira_client import MAX_PAGE_SIZE, JiraClient
from jira_moa.models import Diagnostic, ProcessedIssue
from jira_moa.normalizer import PLATFORM_SORT, normalize_issue

logger = logging.getLogger(__name__)

SEARCH_FIELDS = [
    "summary",
    "status",
    "labels",
    "created",
    "resolutiondate",
    "fixVersions",
    "parent",
    "issuetype",
    "assignee",
]

KEY_CHUNK_SIZE = 50


def chunked(items: Sequence, size: int) -> list[list]:
    """Split ``items`` into consecutive lists of at most ``size`` elements."""
    return [list(items[i:i + size]) for i in range(0, len(items), size)]


def merge_unique(*collections: Iterable[ProcessedIssue]) -> list[ProcessedIssue]:
    """Collapse issues to one record per key.

    The first record seen for a key is kept; it is marked as the user's own
    ticket when any duplicate of it was.
    """
    merged: dict[str, ProcessedIssue] = {}
    for issues in collections:
        for issue in issues:
            existing = merged.get(issue.key)
            if existing is None:
                merged[issue.key] = issue
            elif issue.is_my_ticket and not existing.is_my_ticket:
                merged[issue.key] = existing.as_my_ticket()
    return list(merged.values())


class IssueSearch:
    """Runs JQL searches to completion and normalizes the results.

    Date problems found while normalizing are collected in ``diagnostics``.
    """

    def __init__(
        self,
        client: JiraClient,
        platform: str | None = None,
        platform_policy: str = PLATFORM_SORT,
        page_size: int = MAX_PAGE_SIZE,
    ) -> None:
        self.client = client
        self.platform = platform
        self.platform_policy = platform_policy
        self.page_size = page_size
        self.diagnostics: list[Diagnostic] = []

    def search(self, jql: str) -> list[ProcessedIssue]:
        """Fetch every page of a query, in cursor order."""
        logger.debug("JQL: %s", jql)
        issues: list[ProcessedIssue] = []
        next_page_token: str | None = None

        while True:
            page = self.client.search_page(
                jql,
                fields=SEARCH_FIELDS,
                max_results=self.page_size,
                next_page_token=next_page_token,
            )
            for raw in page.issues:
                issues.append(
                    normalize_issue(
                        raw,
                        jira_url=self.client.jira_url,
                        platform=self.platform,
                        platform_policy=self.platform_policy,
                        diagnostics=self.diagnostics,
                    )
                )
            if not page.next_page_token:
                break
            next_page_token = page.next_page_token

        return issues

    def fetch_by_keys(self, keys: Sequence[str]) -> list[ProcessedIssue]:
        """Fetch issues by key, in batches that keep the JQL short."""
        issues: list[ProcessedIssue] = []
        for chunk in chunked(list(keys), KEY_CHUNK_SIZE):
            issues.extend(self.search("key in (" + ", ".join(chunk) + ")"))
        return issues
