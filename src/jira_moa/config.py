"""Configuration management for Jira Moa."""

import os
import tomllib
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from urllib.parse import urlparse

import tomli_w


@dataclass
class Config:
    """Configuration for JIRA/Confluence connection and report settings."""

    jira_url: str
    jira_email: str
    jira_api_token: str
    confluence_url: str | None = None
    confluence_space_key: str | None = None
    excluded_projects: list[str] = field(default_factory=list)
    default_project_key: str | None = None
    placeholder_versions: list[str] = field(default_factory=list)
    label_limit: int = 10
    log_level: str = "INFO"

    @property
    def wiki_url(self) -> str:
        """Confluence base URL, defaulting to the site's /wiki path."""
        if self.confluence_url:
            return self.confluence_url.rstrip("/")
        return self.jira_url.rstrip("/") + "/wiki"

    def validate(self, require_connection: bool = True) -> list[str]:
        """Validate configuration values. Returns list of error messages.

        With ``require_connection=False`` missing URL, email and token are
        accepted, since the request or the environment can supply them; values
        that are present are still checked.
        """
        errors: list[str] = []

        if not self.jira_url:
            if require_connection:
                errors.append("JIRA URL is required")
        else:
            parsed = urlparse(self.jira_url)
            if parsed.scheme not in ("http", "https"):
                errors.append("JIRA URL must start with http:// or https://")
            if not parsed.netloc:
                errors.append("JIRA URL must include a domain")

        if not self.jira_email:
            if require_connection:
                errors.append("JIRA email is required")
        elif "@" not in self.jira_email:
            errors.append("JIRA email must be a valid email address")

        if not self.jira_api_token and require_connection:
            errors.append("JIRA API token is required")

        if self.label_limit < 1:
            errors.append("label_limit must be a positive integer")

        return errors


def get_config_dir() -> Path:
    """Get the configuration directory path."""
    return Path.home() / ".jira-moa"


def get_config_path() -> Path:
    """Get the configuration file path.

    ``JIRA_MOA_CONFIG`` points at an alternative file.
    """
    override = os.environ.get("JIRA_MOA_CONFIG")
    if override:
        return Path(override)
    return get_config_dir() / "config.toml"


def config_exists() -> bool:
    """Check if configuration file exists."""
    return get_config_path().exists()


def _read_config_file(config_path: Path) -> Config:
    with open(config_path, "rb") as f:
        data = tomllib.load(f)

    jira_section = data.get("jira", {})
    confluence_section = data.get("confluence", {})
    report_section = data.get("report", {})

    return Config(
        jira_url=jira_section.get("url", ""),
        jira_email=jira_section.get("email", ""),
        jira_api_token=jira_section.get("api_token", ""),
        confluence_url=confluence_section.get("url"),
        confluence_space_key=confluence_section.get("space_key"),
        excluded_projects=list(report_section.get("excluded_projects", [])),
        default_project_key=report_section.get("default_project_key"),
        placeholder_versions=list(report_section.get("placeholder_versions", [])),
        label_limit=int(report_section.get("label_limit", 10)),
        log_level=report_section.get("log_level", "INFO"),
    )


def load_stored_config() -> Config:
    """Load the stored configuration layer without checking credentials.

    The request or the environment may still supply the email and API token,
    so a stored file without them is usable. Returns an empty Config when no
    file exists.

    Raises:
        ValueError: If the file is not valid TOML
    """
    config_path = get_config_path()
    if not config_path.exists():
        return Config(jira_url="", jira_email="", jira_api_token="")
    return _read_config_file(config_path)


def resolve_config(
    email: str | None = None,
    api_token: str | None = None,
    environ: Mapping[str, str] | None = None,
) -> Config:
    """Build the effective configuration for one collection run.

    Each connection value is taken from the first source that has it:
    request-supplied arguments, then the stored config file, then ``environ``
    (``JIRA_URL``, ``JIRA_EMAIL``, ``JIRA_TOKEN``).

    Raises:
        ValueError: If the merged config is invalid
    """
    environ = environ or {}
    config = load_stored_config()

    config.jira_url = config.jira_url or environ.get("JIRA_URL", "")
    config.jira_email = email or config.jira_email or environ.get("JIRA_EMAIL", "")
    config.jira_api_token = (
        api_token or config.jira_api_token or environ.get("JIRA_TOKEN", "")
    )

    errors = config.validate()
    if errors:
        raise ValueError(f"Invalid configuration: {'; '.join(errors)}")

    return config


def save_config(config: Config) -> None:
    """Save configuration to TOML file."""
    config_path = get_config_path()
    config_path.parent.mkdir(parents=True, exist_ok=True)

    data: dict = {
        "jira": {
            "url": config.jira_url,
            "email": config.jira_email,
            "api_token": config.jira_api_token,
        },
    }

    if config.confluence_url or config.confluence_space_key:
        confluence_data: dict[str, str] = {}
        if config.confluence_url:
            confluence_data["url"] = config.confluence_url
        if config.confluence_space_key:
            confluence_data["space_key"] = config.confluence_space_key
        data["confluence"] = confluence_data

    report_data: dict = {
        "label_limit": config.label_limit,
        "log_level": config.log_level,
    }
    if config.excluded_projects:
        report_data["excluded_projects"] = config.excluded_projects
    if config.default_project_key:
        report_data["default_project_key"] = config.default_project_key
    if config.placeholder_versions:
        report_data["placeholder_versions"] = config.placeholder_versions
    data["report"] = report_data

    with open(config_path, "wb") as f:
        tomli_w.dump(data, f)
