"""Fixtures for command tests: a fake Jira server and a project directory."""

from __future__ import annotations

import logging

import httpx
import pytest

from issuegraph.commands import common
from issuegraph.tracker.client import JiraClient


class FakeJira:
    """Serves issue, search, myself and Structure endpoints from in-memory records."""

    def __init__(self) -> None:
        self.records: dict[str, dict] = {}
        self.searches: dict[str, list[str]] = {}
        self.structures: dict[str, list[dict]] = {}
        self.myself = {"displayName": "Jane Doe"}
        self.fail_status: int | None = None
        self.paths: list[str] = []

    def add(self, *records: dict) -> None:
        for record in records:
            self.records[record["key"]] = record

    def handler(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path
        self.paths.append(path)
        if self.fail_status is not None:
            return httpx.Response(self.fail_status, json={"errorMessages": ["Forced failure"]})
        if path == "/rest/api/2/myself":
            return httpx.Response(200, json=self.myself)
        if path == "/rest/api/2/search":
            keys = self.searches.get(request.url.params["jql"], [])
            issues = [self.records[key] for key in keys]
            return httpx.Response(200, json={"issues": issues, "total": len(issues)})
        if path.startswith("/rest/structure/"):
            structure_id = path.split("/")[5]
            if structure_id in self.structures:
                return httpx.Response(200, json={"elements": self.structures[structure_id]})
            return httpx.Response(404)
        if path.startswith("/rest/api/2/issue/"):
            key = path.rsplit("/", 1)[-1]
            if key in self.records:
                return httpx.Response(200, json=self.records[key])
            return httpx.Response(404, json={"errorMessages": ["Issue does not exist"]})
        return httpx.Response(404)

    def client(self, config: dict) -> JiraClient:
        tracker = config["tracker"]
        return JiraClient(
            tracker["base_url"],
            email=tracker.get("email", ""),
            api_token=tracker.get("api_token", ""),
            requests_per_second=0,
            transport=httpx.MockTransport(self.handler),
        )


@pytest.fixture
def fake_jira(monkeypatch):
    """Route every command's JiraClient to a FakeJira."""
    jira = FakeJira()
    monkeypatch.setattr(common, "open_client", jira.client)
    return jira


@pytest.fixture
def project_dir(tmp_path, monkeypatch, config_file):
    """Working directory holding a valid .issuegraph.toml."""
    monkeypatch.chdir(tmp_path)
    return tmp_path


@pytest.fixture(autouse=True)
def restore_logging():
    """Undo the root logger changes main() makes."""
    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)
