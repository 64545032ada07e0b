"""HTTP route handlers for Jira Moa web interface."""

import logging
import os
from datetime import date

from flask import Blueprint, jsonify, render_template, request

from jira_moa.collect import build_yearly_report, load_run_config
from jira_moa.config import config_exists, get_config_path, load_stored_config, save_config
from jira_moa.confluence import ConfluencePublisher
from jira_moa.exceptions import (
    ConfluenceError,
    InvalidConfigError,
    InvalidParameterError,
    JiraAuthError,
    JiraConnectionError,
    JiraRateLimitError,
    JiraSearchError,
    MissingCredentialsError,
    MoaError,
)
from jira_moa.normalizer import PLATFORM_FILTER, PLATFORM_SORT
from jira_moa.report import report_context_to_dict

logger = logging.getLogger(__name__)

bp = Blueprint("main", __name__, template_folder="templates")


def _status_for(error: MoaError) -> int:
    """HTTP status code for a collection error."""
    if isinstance(error, (MissingCredentialsError, InvalidParameterError)):
        return 400
    if isinstance(error, JiraAuthError):
        return 401
    if isinstance(error, JiraRateLimitError):
        return 429
    if isinstance(error, (JiraSearchError, ConfluenceError)):
        return 502
    if isinstance(error, (InvalidConfigError, JiraConnectionError)):
        return 503
    return 500


def _report_params() -> dict:
    """Read report parameters from the query string or form.

    Raises:
        InvalidParameterError: If the year is not a number
    """
    values = request.values
    year_str = values.get("year", "").strip()
    try:
        year = int(year_str) if year_str else date.today().year
    except ValueError:
        raise InvalidParameterError(f"Year must be a number, got {year_str!r}.")

    return {
        "year": year,
        "assignee": values.get("assignee", "").strip() or None,
        "platform": values.get("platform", "").strip() or None,
        "platform_policy": PLATFORM_FILTER if values.get("platform_only") else PLATFORM_SORT,
        "email": values.get("email", "").strip() or None,
        "api_token": values.get("api_token", "").strip() or None,
    }


def _form_values(params: dict) -> dict:
    """Parameters echoed back into the form (never the token)."""
    return {k: v for k, v in params.items() if k != "api_token"}


@bp.route("/health")
def health():
    """Health check endpoint."""
    config_loaded = config_exists()
    if config_loaded:
        return jsonify({"status": "ok", "config_loaded": True})
    else:
        return jsonify({
            "status": "ok",
            "config_loaded": False,
            "message": "Configuration not found; credentials must come from the request "
                       "or the environment",
        })


@bp.route("/")
def index():
    """Render the report form."""
    return render_template("index.html", has_config=config_exists(), form={})


@bp.route("/moa/collect", methods=["GET", "POST"])
def collect():
    """Collect the year's issues and render the HTML report."""
    params: dict = {}
    try:
        params = _report_params()
        report = build_yearly_report(environ=os.environ, **params)
    except MoaError as e:
        logger.warning("Report collection failed: %s", e)
        return render_template(
            "index.html",
            has_config=config_exists(),
            error=str(e),
            form=_form_values(params),
        ), _status_for(e)

    # The publish form re-posts request credentials; stored ones stay server side.
    return render_template(
        "report.html",
        report=report,
        form=_form_values(params),
        api_token=params.get("api_token"),
    )


@bp.route("/api/report")
def api_report():
    """Return the year's report as JSON."""
    try:
        report = build_yearly_report(environ=os.environ, **_report_params())
    except MoaError as e:
        return jsonify({"error": str(e)}), _status_for(e)
    return jsonify(report_context_to_dict(report))


@bp.route("/moa/publish", methods=["POST"])
def publish():
    """Create a Confluence draft containing the year's report."""
    try:
        params = _report_params()
        config = load_run_config(
            email=params["email"], api_token=params["api_token"], environ=os.environ
        )
        space_key = request.values.get("space_key", "").strip() or config.confluence_space_key
        title = request.values.get("title", "").strip()
        if not space_key:
            raise InvalidParameterError("A Confluence space key is required.")
        if not title:
            raise InvalidParameterError("A page title is required.")

        report = build_yearly_report(environ=os.environ, **params)
        html_content = render_template("wiki_page.html", report=report)
        page_id = ConfluencePublisher(config).create_draft(space_key, title, html_content)
    except MoaError as e:
        logger.warning("Publishing failed: %s", e)
        return jsonify({"error": str(e)}), _status_for(e)

    return jsonify({"page_id": page_id, "space_key": space_key, "title": title}), 201


@bp.route("/settings", methods=["POST"])
def settings():
    """Store connection settings in the config file."""
    values = request.values
    try:
        config = load_stored_config()
    except ValueError as e:
        return jsonify({"error": f"Stored configuration is unreadable: {e}"}), 503

    config.jira_url = values.get("jira_url", "").strip() or config.jira_url
    config.jira_email = values.get("email", "").strip() or config.jira_email
    config.jira_api_token = values.get("api_token", "").strip() or config.jira_api_token
    config.confluence_space_key = (
        values.get("space_key", "").strip() or config.confluence_space_key
    )

    errors = config.validate(require_connection=False)
    if errors:
        return jsonify({"error": "; ".join(errors)}), 400

    save_config(config)
    logger.info("Saved settings to %s", get_config_path())
    return jsonify({"status": "saved"})
