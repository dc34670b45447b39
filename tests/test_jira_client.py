import io
import json
import urllib.error

import pytest

from core.errors import ConfigurationError
from retrieval.jira_client import JiraClient, basic_auth_header


class FakeResponse:
    def __init__(self, payload, status=200):
        self.status = status
        self._body = json.dumps(payload).encode("utf-8")

    def read(self):
        return self._body

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False


ISSUE = {
    "key": "WMS-1",
    "fields": {
        "summary": "Fix rate",
        "status": {"name": "QA"},
        "components": [{"name": "DML - Database"}],
        "labels": ["CHG100"],
    },
}


@pytest.fixture
def client():
    return JiraClient("https://jira.example.com/", "ops@example.com", "token-1")


def test_basic_auth_header():
    assert basic_auth_header("user", "pass") == "Basic dXNlcjpwYXNz"


def test_search_parses_issues(client, monkeypatch):
    seen = {}

    def fake_urlopen(req, timeout=None):
        seen["url"] = req.full_url
        seen["auth"] = req.get_header("Authorization")
        seen["redirect_safe"] = "Authorization" not in req.headers
        return FakeResponse({"issues": [ISSUE]})

    monkeypatch.setattr("urllib.request.urlopen", fake_urlopen)
    tickets = client.tickets_for_chg("CHG100")

    assert [t.jira for t in tickets] == ["WMS-1"]
    assert tickets[0].url == "https://jira.example.com/browse/WMS-1"
    assert tickets[0].dml == "DML"
    assert seen["url"].startswith("https://jira.example.com/rest/api/3/search/jql?fields=*all&jql=")
    assert "labels+%3D+CHG100" in seen["url"]
    assert seen["url"].endswith("&maxResults=500")
    assert seen["auth"] == basic_auth_header("ops@example.com", "token-1")
    assert seen["redirect_safe"]


def test_missing_issues_array_yields_no_tickets(client, monkeypatch):
    monkeypatch.setattr("urllib.request.urlopen", lambda req, timeout=None: FakeResponse({"total": 0}))
    assert client.execute_jql("project = WMS", "test") == []


def test_error_status_carries_jira_messages(client, monkeypatch):
    def fake_urlopen(req, timeout=None):
        body = io.BytesIO(json.dumps({"errorMessages": ["Field 'foo' does not exist", "bad jql"]}).encode())
        raise urllib.error.HTTPError(req.full_url, 400, "Bad Request", {}, body)

    monkeypatch.setattr("urllib.request.urlopen", fake_urlopen)
    with pytest.raises(RuntimeError) as exc:
        client.execute_jql("foo = 1", "test")
    assert str(exc.value) == "Jira API returned status 400: Field 'foo' does not exist; bad jql"


def test_error_status_without_json_body(client, monkeypatch):
    def fake_urlopen(req, timeout=None):
        raise urllib.error.HTTPError(req.full_url, 502, "Bad Gateway", {}, io.BytesIO(b"<html>proxy</html>"))

    monkeypatch.setattr("urllib.request.urlopen", fake_urlopen)
    with pytest.raises(RuntimeError, match="^Jira API returned status 502$"):
        client.execute_jql("project = WMS", "test")


def test_unconfigured_client_never_calls_jira(monkeypatch):
    def fail(*args, **kwargs):
        raise AssertionError("no network call expected")

    monkeypatch.setattr("urllib.request.urlopen", fail)
    client = JiraClient("https://jira.example.com", "", "token")
    assert not client.is_configured()
    with pytest.raises(ConfigurationError):
        client.execute_jql("project = WMS", "test")
