"""JIRA API client with retry logic."""

import logging

import requests
from jira import JIRA, JIRAError
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from jira_moa.config import Config
from jira_moa.models import SearchPage

logger = logging.getLogger(__name__)

MAX_PAGE_SIZE = 100


class RateLimitError(Exception):
    """Raised when JIRA API rate limit is hit."""

    pass


class AuthenticationError(Exception):
    """Raised when JIRA authentication fails."""

    pass


class ConnectionError(Exception):
    """Raised when JIRA server cannot be reached."""

    pass


class TrackerAPIError(Exception):
    """Raised when JIRA answers a request with a non-success status."""

    def __init__(self, status_code: int | None, body: str) -> None:
        self.status_code = status_code
        self.body = body
        super().__init__(f"Tracker API error ({status_code}): {body}")


class JiraClient:
    """Client for interacting with JIRA Cloud API.

    One instance is created per collection run and threaded through every
    pipeline step.
    """

    def __init__(self, config: Config) -> None:
        """Initialize JIRA client with configuration."""
        self.config = config
        self._client: JIRA | None = None

    @property
    def jira_url(self) -> str:
        return self.config.jira_url.rstrip("/")

    def _get_client(self) -> JIRA:
        """Get or create JIRA client instance."""
        if self._client is None:
            try:
                self._client = JIRA(
                    server=self.config.jira_url,
                    basic_auth=(self.config.jira_email, self.config.jira_api_token),
                    timeout=15,
                )
            except JIRAError as e:
                if e.status_code == 401:
                    raise AuthenticationError(
                        "Authentication failed. Check your email and API token."
                    ) from e
                raise
            except Exception as e:
                error_msg = str(e).lower()
                if "connection" in error_msg or "resolve" in error_msg or "timeout" in error_msg:
                    raise ConnectionError(
                        f"Cannot connect to JIRA server at {self.config.jira_url}. "
                        "Check the URL and your network connection."
                    ) from e
                raise
        return self._client

    def myself(self) -> dict:
        """Return ``{"accountId", "displayName"}`` of the authenticated user.

        Raises:
            AuthenticationError: On any non-success answer
            ConnectionError: If the server cannot be reached
        """
        try:
            user = self._get_client().myself()
        except JIRAError as e:
            raise AuthenticationError(
                f"Could not verify JIRA credentials (status {e.status_code})."
            ) from e
        except requests.exceptions.RequestException as e:
            raise ConnectionError(f"Cannot reach JIRA at {self.jira_url}: {e}") from e
        return {
            "accountId": user.get("accountId", ""),
            "displayName": user.get("displayName", ""),
        }

    @retry(
        retry=retry_if_exception_type(RateLimitError),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=4, max=60),
        reraise=True,
    )
    def search_page(
        self,
        jql: str,
        fields: list[str],
        max_results: int = MAX_PAGE_SIZE,
        next_page_token: str | None = None,
    ) -> SearchPage:
        """Fetch one page of issues matching a JQL query.

        Args:
            jql: JQL query string (validated by the server only)
            fields: Field names to return for each issue
            max_results: Page size, capped at 100
            next_page_token: Continuation cursor from the previous page

        Returns:
            SearchPage with raw issue dicts and the next cursor, if any

        Raises:
            RateLimitError: If rate limited (will be retried)
            AuthenticationError: If authentication fails
            ConnectionError: If the server cannot be reached
            TrackerAPIError: For any other non-success status
        """
        client = self._get_client()
        max_results = max(1, min(max_results, MAX_PAGE_SIZE))

        try:
            result = client.enhanced_search_issues(
                jql,
                nextPageToken=next_page_token,
                maxResults=max_results,
                fields=fields,
                json_result=True,
            )
        except JIRAError as e:
            if e.status_code == 429:
                raise RateLimitError(
                    "Rate limited by JIRA. Retrying with exponential backoff..."
                ) from e
            if e.status_code == 401:
                raise AuthenticationError(
                    "Authentication failed. Check your email and API token."
                ) from e
            raise TrackerAPIError(e.status_code, e.text or str(e)) from e
        except requests.exceptions.RequestException as e:
            raise ConnectionError(f"Cannot reach JIRA at {self.jira_url}: {e}") from e

        return SearchPage(
            issues=list(result.get("issues", [])),
            next_page_token=result.get("nextPageToken") or None,
            total=result.get("total"),
        )

    def project_versions(self, project_key: str) -> list[dict]:
        """Fetch all versions of a project.

        Returns:
            List of raw version dicts (``id``, ``name``, ``released``,
            ``releaseDate``). Empty if the project's versions cannot be
            fetched.
        """
        client = self._get_client()
        try:
            versions = client.project_versions(project_key)
        except (JIRAError, requests.exceptions.RequestException) as e:
            logger.warning("Could not fetch versions of project %s: %s", project_key, e)
            return []
        return [version.raw for version in versions]

    def find_users(self, name: str) -> list[dict]:
        """Search users by display name or email.

        Returns:
            List of ``{"accountId", "displayName"}`` dicts. Empty if the
            lookup fails.
        """
        client = self._get_client()
        try:
            users = client.search_users(query=name, maxResults=20)
        except (JIRAError, requests.exceptions.RequestException) as e:
            logger.warning("User lookup for %r failed: %s", name, e)
            return []
        return [
            {
                "accountId": user.raw.get("accountId", ""),
                "displayName": user.raw.get("displayName", ""),
            }
            for user in users
        ]
