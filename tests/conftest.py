"""Pytest fixtures shared by all tests."""

import os

import pytest

_ENV_VARS = (
    "JIRA_BASE_URL",
    "JIRA_EMAIL",
    "JIRA_API_TOKEN",
    "JIRA_BEARER_TOKEN",
    "JIRA_SESSION_COOKIES",
    "LOG_LEVEL",
)


@pytest.fixture(autouse=True)
def isolated_environment(monkeypatch):
    """Keep the developer's tracker credentials out of every test."""
    for name in list(os.environ):
        if name.startswith("ISSUEGRAPH_") or name in _ENV_VARS:
            monkeypatch.delenv(name, raising=False)


@pytest.fixture
def config_file(tmp_path):
    """Write a .issuegraph.toml with working tracker settings and return its path."""
    path = tmp_path / ".issuegraph.toml"
    path.write_text(
        """\
[tracker]
base_url = "https://jira.example.com"
email = "jane@example.com"
api_token = "secret-token"

[hierarchy]
max_depth = 4

[state]
last_issue_file = "last-issue.json"
""",
        encoding="utf-8",
    )
    return path
