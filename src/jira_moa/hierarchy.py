"""Release-version propagation from parent issues to their children."""

import logging
from datetime import date

from jira_moa.jira_client import ConnectionError, TrackerAPIError
from jira_moa.models import ProcessedIssue, VersionInfo
from jira_moa.search import IssueSearch

logger = logging.getLogger(__name__)

MAX_ROUNDS = 3


def resolve_hierarchy_versions(
    issues: list[ProcessedIssue],
    search: IssueSearch,
    max_rounds: int = MAX_ROUNDS,
) -> list[ProcessedIssue]:
    """Give version-less issues the versions of their nearest versioned ancestor.

    Each round moves version information down exactly one parent link, using
    the values known when the round started; parents missing from the working
    set are fetched and become usable from the next round. After
    ``max_rounds`` rounds deeper chains stay unresolved.

    Returns:
        The input issues in their original order, with inherited versions and
        release dates filled in. Fetched parents are not part of the result.
    """
    issue_map: dict[str, ProcessedIssue] = {i.key: i for i in issues}
    version_map: dict[str, tuple[VersionInfo, ...]] = {i.key: i.versions for i in issues}
    release_map: dict[str, date | None] = {i.key: i.release_date for i in issues}
    parent_map: dict[str, str | None] = {i.key: i.parent_key for i in issues}

    for round_number in range(1, max_rounds + 1):
        unresolved = sorted(
            key for key in issue_map if not version_map[key] and parent_map[key]
        )
        if not unresolved:
            break

        known_versions = dict(version_map)
        known_releases = dict(release_map)

        changed = False
        for key in unresolved:
            parent_key = parent_map[key]
            parent_versions = known_versions.get(parent_key)
            if parent_versions:
                version_map[key] = parent_versions
                release_map[key] = known_releases.get(parent_key)
                changed = True

        missing = sorted({parent_map[key] for key in unresolved} - issue_map.keys())
        fetched = []
        if missing:
            try:
                fetched = search.fetch_by_keys(missing)
            except (TrackerAPIError, ConnectionError) as e:
                logger.warning("Could not fetch parent issues %s: %s", ", ".join(missing), e)
            for parent in fetched:
                issue_map[parent.key] = parent
                version_map[parent.key] = parent.versions
                release_map[parent.key] = parent.release_date
                parent_map[parent.key] = parent.parent_key

        logger.debug(
            "Hierarchy round %d: %d unresolved, %d parents fetched, changed=%s",
            round_number,
            len(unresolved),
            len(fetched),
            changed,
        )
        if not changed and not fetched:
            break

    return [
        issue.with_versions(version_map[issue.key], release_map[issue.key])
        if not issue.versions and version_map[issue.key]
        else issue
        for issue in issues
    ]
