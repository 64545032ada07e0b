"""Confluence page drafts for published reports."""

import logging

import requests
from atlassian import Confluence
from atlassian.errors import ApiError

from jira_moa.config import Config
from jira_moa.exceptions import ConfluenceError

logger = logging.getLogger(__name__)


class ConfluencePublisher:
    """Creates Confluence pages with the same Atlassian credentials as JIRA."""

    def __init__(self, config: Config) -> None:
        self.config = config
        self._client: Confluence | None = None

    def _get_client(self) -> Confluence:
        if self._client is None:
            self._client = Confluence(
                url=self.config.wiki_url,
                username=self.config.jira_email,
                password=self.config.jira_api_token,
                cloud=True,
                timeout=15,
            )
        return self._client

    def create_draft(self, space_key: str, title: str, html_content: str) -> str:
        """Create an unpublished page from storage-format HTML.

        Returns:
            The new page id

        Raises:
            ConfluenceError: If Confluence rejects or cannot take the request
        """
        body = {
            "type": "page",
            "title": title,
            "space": {"key": space_key},
            "status": "draft",
            "body": {"storage": {"value": html_content, "representation": "storage"}},
        }
        try:
            result = self._get_client().post("rest/api/content", data=body)
        except requests.exceptions.HTTPError as e:
            response = e.response
            raise ConfluenceError(
                response.status_code if response is not None else None,
                response.text if response is not None else str(e),
            ) from e
        except (ApiError, requests.exceptions.RequestException) as e:
            raise ConfluenceError(None, str(e)) from e

        if not result or "id" not in result:
            raise ConfluenceError(None, f"Unexpected response: {result!r}")

        logger.info("Created Confluence draft %s in space %s", result["id"], space_key)
        return str(result["id"])
