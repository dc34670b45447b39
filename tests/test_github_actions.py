import json
import subprocess

import pytest

from core.errors import ConfigurationError
from services.github_actions import GitHubActions


@pytest.fixture
def gh_calls(monkeypatch):
    calls = []
    outputs = {}

    def fake_run(cmd, capture_output, text, timeout):
        calls.append(cmd)
        stdout, returncode, stderr = outputs.get(cmd[1], ("[]", 0, ""))
        return subprocess.CompletedProcess(cmd, returncode, stdout=stdout, stderr=stderr)

    monkeypatch.setattr(subprocess, "run", fake_run)
    return calls, outputs


def test_list_runs_caps_the_limit(gh_calls):
    calls, outputs = gh_calls
    outputs["run"] = (json.dumps([{"databaseId": 1, "status": "completed"}]), 0, "")
    actions = GitHubActions("org/wms-deployments", "deploy.yaml")

    runs = actions.list_runs("deploy.yaml", limit=500)

    assert runs == [{"databaseId": 1, "status": "completed"}]
    cmd = calls[0]
    assert cmd[:5] == ["gh", "run", "list", "--repo", "org/wms-deployments"]
    assert cmd[cmd.index("--limit") + 1] == "50"
    assert cmd[-2:] == ["--workflow", "deploy.yaml"]


def test_run_jobs(gh_calls):
    calls, outputs = gh_calls
    outputs["run"] = (json.dumps({"databaseId": 7, "jobs": [{"name": "build"}]}), 0, "")
    actions = GitHubActions("org/repo", "deploy.yaml")
    assert actions.run_jobs(7) == [{"name": "build"}]
    assert "7" in calls[0]


def test_trigger_passes_inputs(gh_calls):
    calls, _ = gh_calls
    actions = GitHubActions("org/repo", "deploy.yaml")
    result = actions.trigger_workflow(None, {"chg": "CHG123", "env": "stage"})

    assert result == {"triggered": True, "workflow": "deploy.yaml", "inputs": {"chg": "CHG123", "env": "stage"}}
    assert calls[0] == ["gh", "workflow", "run", "deploy.yaml", "--repo", "org/repo",
                        "-f", "chg=CHG123", "-f", "env=stage"]


def test_failed_command_surfaces_stderr(gh_calls):
    _, outputs = gh_calls
    outputs["workflow"] = ("", 1, "HTTP 404: Not Found")
    with pytest.raises(RuntimeError, match="HTTP 404"):
        GitHubActions("org/repo", "deploy.yaml").list_workflows()


def test_timeout(monkeypatch):
    def slow(cmd, **kwargs):
        raise subprocess.TimeoutExpired(cmd, kwargs["timeout"])

    monkeypatch.setattr(subprocess, "run", slow)
    with pytest.raises(RuntimeError, match="timed out after 5 seconds"):
        GitHubActions("org/repo", "deploy.yaml", timeout=5).list_workflows()


def test_missing_repo(gh_calls):
    calls, _ = gh_calls
    with pytest.raises(ConfigurationError):
        GitHubActions("", "deploy.yaml").list_runs()
    assert calls == []
