"""Yearly issue collection: the full fetch, resolve and group pipeline."""

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field

from jira_moa.config import Config, resolve_config
from jira_moa.discovery import MembershipResolver, resolve_target
from jira_moa.exceptions import (
    InvalidConfigError,
    InvalidParameterError,
    JiraAuthError,
    JiraConnectionError,
    JiraRateLimitError,
    JiraSearchError,
    MissingCredentialsError,
)
from jira_moa.hierarchy import resolve_hierarchy_versions
from jira_moa.jira_client import (
    AuthenticationError,
    JiraClient,
    RateLimitError,
    TrackerAPIError,
)
from jira_moa.jira_client import (
    ConnectionError as JiraClientConnectionError,
)
from jira_moa.models import Diagnostic, ProcessedIssue, ReportContext
from jira_moa.normalizer import PLATFORM_POLICIES, PLATFORM_SORT
from jira_moa.report import build_report
from jira_moa.search import IssueSearch

logger = logging.getLogger(__name__)

MIN_YEAR = 2000
MAX_YEAR = 2100


@dataclass
class CollectResult:
    """Issues of one collection run plus the problems met on the way."""

    issues: list[ProcessedIssue]
    config: Config
    diagnostics: list[Diagnostic] = field(default_factory=list)


def load_run_config(
    email: str | None = None,
    api_token: str | None = None,
    environ: Mapping[str, str] | None = None,
) -> Config:
    """Resolve the configuration for one run.

    Raises:
        MissingCredentialsError: If no source provides an email and API token
        InvalidConfigError: If the merged configuration is invalid
    """
    try:
        return resolve_config(email=email, api_token=api_token, environ=environ)
    except ValueError as e:
        message = str(e)
        if "email is required" in message or "API token is required" in message:
            raise MissingCredentialsError(
                "JIRA email and API token are required. Enter them in the form, "
                "store them in ~/.jira-moa/config.toml, or set JIRA_EMAIL and JIRA_TOKEN."
            )
        raise InvalidConfigError(message)


def validate_parameters(year: int, platform_policy: str) -> None:
    """Raises InvalidParameterError for values the pipeline cannot use."""
    if not MIN_YEAR <= year <= MAX_YEAR:
        raise InvalidParameterError(f"Year must be between {MIN_YEAR} and {MAX_YEAR}.")
    if platform_policy not in PLATFORM_POLICIES:
        raise InvalidParameterError(
            f"Platform policy must be one of: {', '.join(PLATFORM_POLICIES)}."
        )


def collect_issues(
    year: int,
    assignee: str | None = None,
    platform: str | None = None,
    platform_policy: str = PLATFORM_SORT,
    email: str | None = None,
    api_token: str | None = None,
    environ: Mapping[str, str] | None = None,
) -> CollectResult:
    """Collect and resolve the issues of a user's year.

    Args:
        year: Calendar year to report on
        assignee: Display name of the user; the authenticated user if omitted
        platform: Optional platform name ("iOS", "Android") to prefer in
            fix-version lists
        platform_policy: ``"sort"`` keeps all versions with matching ones
            first; ``"filter"`` drops the others
        email: JIRA email supplied with the request
        api_token: JIRA API token supplied with the request
        environ: Process environment used as the last credential source

    Returns:
        CollectResult with de-duplicated, version-resolved issues

    Raises:
        InvalidParameterError: If year or policy are out of range
        MissingCredentialsError: If no credentials are available
        InvalidConfigError: If config is invalid
        JiraAuthError: If the credentials are rejected
        JiraRateLimitError: If rate limited
        JiraConnectionError: If cannot connect
        JiraSearchError: If a discovery or membership search fails
    """
    validate_parameters(year, platform_policy)
    config = load_run_config(email=email, api_token=api_token, environ=environ)

    client = JiraClient(config)

    try:
        myself = client.myself()
    except AuthenticationError:
        raise JiraAuthError(
            "JIRA authentication failed. Check your email and API token."
        )
    except JiraClientConnectionError as e:
        raise JiraConnectionError(str(e))
    logger.info("Collecting %d issues for %s", year, assignee or myself["displayName"])

    search = IssueSearch(client, platform=platform, platform_policy=platform_policy)
    resolver = MembershipResolver(
        client,
        search,
        excluded_projects=config.excluded_projects,
        default_project_key=config.default_project_key,
    )

    phase = "discovery"
    try:
        target = resolve_target(client, myself, assignee)
        issues = resolver.resolve(year, target)
        phase = "hierarchy"
        issues = resolve_hierarchy_versions(issues, search)
    except AuthenticationError:
        raise JiraAuthError(
            "JIRA authentication failed. Check your email and API token."
        )
    except RateLimitError:
        raise JiraRateLimitError(
            "JIRA rate limit exceeded. Please wait a moment and try again."
        )
    except JiraClientConnectionError as e:
        raise JiraConnectionError(str(e))
    except TrackerAPIError as e:
        raise JiraSearchError(phase, e.status_code, e.body)

    if search.diagnostics:
        logger.warning("%d issue dates could not be parsed", len(search.diagnostics))
    logger.info("Collected %d issues", len(issues))

    return CollectResult(issues=issues, config=config, diagnostics=list(search.diagnostics))


def build_yearly_report(
    year: int,
    assignee: str | None = None,
    platform: str | None = None,
    platform_policy: str = PLATFORM_SORT,
    email: str | None = None,
    api_token: str | None = None,
    environ: Mapping[str, str] | None = None,
) -> ReportContext:
    """Collect a user's year and group it into the report structure.

    Raises the same exceptions as ``collect_issues``.
    """
    result = collect_issues(
        year,
        assignee=assignee,
        platform=platform,
        platform_policy=platform_policy,
        email=email,
        api_token=api_token,
        environ=environ,
    )
    config = result.config
    return build_report(
        result.issues,
        year,
        jira_url=config.jira_url,
        placeholder_versions=config.placeholder_versions,
        label_limit=config.label_limit,
        diagnostics=result.diagnostics,
    )
