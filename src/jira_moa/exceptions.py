"""Exception hierarchy for Jira Moa."""


class MoaError(Exception):
    """Base exception for report collection errors."""

    pass


class InvalidConfigError(MoaError):
    """Configuration is invalid."""

    pass


class MissingCredentialsError(MoaError):
    """No JIRA email/API token available from any source."""

    pass


class InvalidParameterError(MoaError):
    """A request parameter is missing or malformed."""

    pass


class JiraAuthError(MoaError):
    """JIRA authentication failed."""

    pass


class JiraConnectionError(MoaError):
    """Cannot connect to JIRA server."""

    pass


class JiraRateLimitError(MoaError):
    """JIRA rate limit exceeded."""

    pass


class JiraSearchError(MoaError):
    """A JIRA search failed and the collection run was aborted."""

    def __init__(self, phase: str, status_code: int | None, body: str) -> None:
        self.phase = phase
        self.status_code = status_code
        self.body = body
        super().__init__(
            f"JIRA search failed during {phase} (status {status_code}): {body}"
        )


class ConfluenceError(MoaError):
    """Confluence page draft could not be created."""

    def __init__(self, status_code: int | None, body: str) -> None:
        self.status_code = status_code
        self.body = body
        super().__init__(f"Confluence API error ({status_code}): {body}")
