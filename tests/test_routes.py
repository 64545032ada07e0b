"""Tests for the web routes."""

import logging
from datetime import date, datetime
from unittest.mock import patch

import pytest

from jira_moa.config import Config, load_stored_config
from jira_moa.exceptions import (
    ConfluenceError,
    JiraAuthError,
    MissingCredentialsError,
)
from jira_moa.models import ProcessedIssue, VersionInfo
from jira_moa.report import build_report
from jira_moa.web.app import create_app
from jira_moa.web.routes import bp


def _make_report():
    issue = ProcessedIssue(
        key="KMA-1",
        summary="Checkout redesign",
        created_date=datetime(2025, 2, 3),
        labels=("ios",),
        versions=(VersionInfo(id="100", name="5.1.0", release_date=date(2025, 6, 1)),),
        url="https://jira.example.com/browse/KMA-1",
        project_key="KMA",
        issue_type="Story",
        is_subtask=False,
        type_class="story",
        release_date=date(2025, 6, 1),
        is_my_ticket=True,
    )
    return build_report([issue], 2025, "https://jira.example.com")


def _make_config(**overrides):
    values = dict(
        jira_url="https://jira.example.com",
        jira_email="me@example.com",
        jira_api_token="secret",
    )
    values.update(overrides)
    return Config(**values)


@patch("jira_moa.web.routes.config_exists", return_value=True)
class TestReportRoutes:
    """Tests for the form, report and JSON endpoints."""

    def setup_method(self):
        self.client = create_app().test_client()

    def test_health(self, _exists):
        response = self.client.get("/health")
        assert response.status_code == 200
        assert response.get_json() == {"status": "ok", "config_loaded": True}

    def test_index(self, _exists):
        response = self.client.get("/")
        assert response.status_code == 200
        assert b"YYYY" in response.data

    def test_blueprint_serves_templates_only(self, _exists):
        assert bp.static_folder is None
        assert self.client.get("/static/app.css").status_code == 404

    @patch("jira_moa.web.routes.build_yearly_report")
    def test_collect_renders_report(self, mock_build, _exists):
        mock_build.return_value = _make_report()

        response = self.client.post(
            "/moa/collect", data={"year": "2025", "platform": "iOS", "platform_only": "1"}
        )

        assert response.status_code == 200
        assert "KMA-1" in response.get_data(as_text=True)
        kwargs = mock_build.call_args.kwargs
        assert kwargs["year"] == 2025
        assert kwargs["platform"] == "iOS"
        assert kwargs["platform_policy"] == "filter"
        assert kwargs["assignee"] is None

    @patch("jira_moa.web.routes.build_yearly_report")
    def test_collect_missing_credentials(self, mock_build, _exists):
        mock_build.side_effect = MissingCredentialsError("JIRA email and API token are required.")

        response = self.client.post("/moa/collect", data={"year": "2025"})

        assert response.status_code == 400
        assert "API token are required" in response.get_data(as_text=True)

    @patch("jira_moa.web.routes.build_yearly_report")
    def test_collect_auth_failure(self, mock_build, _exists):
        mock_build.side_effect = JiraAuthError("Could not verify JIRA credentials.")
        response = self.client.post("/moa/collect", data={"year": "2025", "api_token": "bad"})
        assert response.status_code == 401
        assert "bad" not in response.get_data(as_text=True)

    @patch("jira_moa.web.routes.build_yearly_report")
    def test_non_numeric_year(self, mock_build, _exists):
        response = self.client.post("/moa/collect", data={"year": "next"})
        assert response.status_code == 400
        mock_build.assert_not_called()

    @patch("jira_moa.web.routes.build_yearly_report")
    def test_api_report(self, mock_build, _exists):
        mock_build.return_value = _make_report()

        response = self.client.get("/api/report?year=2025")

        assert response.status_code == 200
        data = response.get_json()
        assert data["year"] == 2025
        assert data["months"][5]["issues"][0]["key"] == "KMA-1"


@patch("jira_moa.web.routes.config_exists", return_value=True)
class TestPublishRoute:
    """Tests for the Confluence publish endpoint."""

    def setup_method(self):
        self.client = create_app().test_client()

    @patch("jira_moa.web.routes.load_run_config")
    def test_title_required(self, mock_load, _exists):
        mock_load.return_value = _make_config(confluence_space_key="TEAM")
        response = self.client.post("/moa/publish", data={"year": "2025"})
        assert response.status_code == 400

    @patch("jira_moa.web.routes.load_run_config")
    def test_space_key_required(self, mock_load, _exists):
        mock_load.return_value = _make_config()
        response = self.client.post("/moa/publish", data={"year": "2025", "title": "2025"})
        assert response.status_code == 400

    @patch("jira_moa.web.routes.ConfluencePublisher")
    @patch("jira_moa.web.routes.build_yearly_report")
    @patch("jira_moa.web.routes.load_run_config")
    def test_creates_draft(self, mock_load, mock_build, mock_publisher_cls, _exists):
        mock_load.return_value = _make_config(confluence_space_key="TEAM")
        mock_build.return_value = _make_report()
        mock_publisher_cls.return_value.create_draft.return_value = "98765"

        response = self.client.post("/moa/publish", data={"year": "2025", "title": "2025 회고"})

        assert response.status_code == 201
        assert response.get_json() == {
            "page_id": "98765",
            "space_key": "TEAM",
            "title": "2025 회고",
        }
        space_key, title, html = mock_publisher_cls.return_value.create_draft.call_args.args
        assert space_key == "TEAM"
        assert "KMA-1" in html

    @patch("jira_moa.web.routes.ConfluencePublisher")
    @patch("jira_moa.web.routes.build_yearly_report")
    @patch("jira_moa.web.routes.load_run_config")
    def test_report_page_publishes_with_request_credentials(
        self, mock_load, mock_build, mock_publisher_cls, _exists
    ):
        mock_load.return_value = _make_config()
        mock_build.return_value = _make_report()
        mock_publisher_cls.return_value.create_draft.return_value = "1"
        credentials = {"email": "req@example.com", "api_token": "req-token"}

        page = self.client.post("/moa/collect", data={"year": "2025", **credentials})

        html = page.get_data(as_text=True)
        assert '<input type="hidden" name="email" value="req@example.com">' in html
        assert 'name="api_token" value="req-token"' in html

        response = self.client.post(
            "/moa/publish",
            data={"year": "2025", "title": "t", "space_key": "OPS", **credentials},
        )

        assert response.status_code == 201
        mock_load.assert_called_once()
        assert mock_load.call_args.kwargs["email"] == "req@example.com"
        assert mock_load.call_args.kwargs["api_token"] == "req-token"

    @patch("jira_moa.web.routes.build_yearly_report")
    def test_report_page_does_not_echo_absent_token(self, mock_build, _exists):
        mock_build.return_value = _make_report()

        page = self.client.post("/moa/collect", data={"year": "2025"})

        assert 'name="api_token"' not in page.get_data(as_text=True)

    @patch("jira_moa.web.routes.ConfluencePublisher")
    @patch("jira_moa.web.routes.build_yearly_report")
    @patch("jira_moa.web.routes.load_run_config")
    def test_confluence_failure(self, mock_load, mock_build, mock_publisher_cls, _exists):
        mock_load.return_value = _make_config()
        mock_build.return_value = _make_report()
        mock_publisher_cls.return_value.create_draft.side_effect = ConfluenceError(403, "denied")

        response = self.client.post(
            "/moa/publish", data={"year": "2025", "title": "t", "space_key": "OPS"}
        )

        assert response.status_code == 502


@pytest.fixture
def config_path(tmp_path, monkeypatch):
    path = tmp_path / "config.toml"
    monkeypatch.setenv("JIRA_MOA_CONFIG", str(path))
    return path


class TestSettingsRoute:
    """Tests for storing settings."""

    def setup_method(self):
        self.client = create_app().test_client()

    def test_saves_new_config(self, config_path):
        response = self.client.post(
            "/settings",
            data={
                "jira_url": "https://x.atlassian.net",
                "email": "me@example.com",
                "api_token": "token",
                "space_key": "TEAM",
            },
        )

        assert response.status_code == 200
        saved = load_stored_config()
        assert saved.jira_url == "https://x.atlassian.net"
        assert saved.confluence_space_key == "TEAM"

    def test_updates_file_without_credentials(self, config_path):
        config_path.write_text('[report]\nlog_level = "DEBUG"\n', encoding="utf-8")

        response = self.client.post("/settings", data={"space_key": "TEAM"})

        assert response.status_code == 200
        saved = load_stored_config()
        assert saved.confluence_space_key == "TEAM"
        assert saved.log_level == "DEBUG"

    @patch("jira_moa.web.routes.save_config")
    def test_rejects_invalid_settings(self, mock_save, config_path):
        response = self.client.post("/settings", data={"jira_url": "x.atlassian.net"})

        assert response.status_code == 400
        mock_save.assert_not_called()


class TestConfigureLogging:
    """Tests for the app's logging setup."""

    @patch("jira_moa.web.app.logging.basicConfig")
    def test_level_from_file_without_credentials(self, mock_basic_config, config_path):
        config_path.write_text('[report]\nlog_level = "DEBUG"\n', encoding="utf-8")

        create_app()

        assert mock_basic_config.call_args.kwargs["level"] == logging.DEBUG

    @patch("jira_moa.web.app.logging.basicConfig")
    def test_defaults_to_info(self, mock_basic_config, config_path):
        create_app()
        assert mock_basic_config.call_args.kwargs["level"] == logging.INFO
