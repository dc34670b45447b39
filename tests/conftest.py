from contextlib import contextmanager
from datetime import date
from types import SimpleNamespace

import pytest
from fastapi.testclient import TestClient

from api.app import app
from core.context import AppContext, get_context
from core.errors import ConnectionUnavailableError
from retrieval.connections import ConnectionFactory
from retrieval.jira_client import JiraClient
from services.chat_assistant import ChatAssistant
from services.deployment_folders import DeploymentFolderBrowser
from services.github_actions import GitHubActions
from services.order_lookup import StackTargets


class FakeLLM:
    def __init__(self, answer="ok", error=None):
        self.answer = answer
        self.error = error
        self.calls = []

    def invoke(self, messages):
        self.calls.append(messages)
        if self.error is not None:
            raise self.error
        return SimpleNamespace(content=self.answer)


class DownFactory(ConnectionFactory):
    """Every connection attempt fails the way an unreachable server does."""

    def __init__(self):
        super().__init__({})

    @contextmanager
    def connect(self, name):
        raise ConnectionUnavailableError(f"Connection is not available for '{name}'")
        yield

    @contextmanager
    def connect_host(self, host, database):
        raise ConnectionUnavailableError(f"Failed to connect to {host}")
        yield


@pytest.fixture
def fake_llm():
    return FakeLLM()


@pytest.fixture
def ctx(tmp_path, fake_llm):
    return AppContext(
        factory=DownFactory(),
        jira=JiraClient("https://jira.example.com", "", ""),
        folders=DeploymentFolderBrowser(str(tmp_path)),
        actions=GitHubActions("", "deploy.yaml"),
        chat=ChatAssistant("", "gpt-test", llm=fake_llm),
        targets=StackTargets(aad_server="", aad_database="AAD", io_server="", io_database="ADV"),
        error_servers=["s1", "s2"],
        error_database="ADV",
        fanout_timeout=5.0,
        baseline_date=date(2026, 2, 19),
        presets={"dev": {"name": "Dev", "description": "In dev", "jql": "status = Dev"}},
        default_workflow="deploy.yaml",
    )


@pytest.fixture
def client(ctx):
    # no `with`: the lifespan hook would build the real context
    app.dependency_overrides[get_context] = lambda: ctx
    yield TestClient(app)
    app.dependency_overrides.clear()
