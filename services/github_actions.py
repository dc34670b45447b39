import json
import subprocess

from core.errors import ConfigurationError
from core.logging_config import logger

RUN_FIELDS = "databaseId,displayTitle,status,conclusion,event,headBranch,createdAt,updatedAt,url,workflowName"
MAX_RUNS = 50


class GitHubActions:
    """Thin wrapper over the `gh` CLI, which handles auth and returns JSON on stdout."""

    def __init__(self, repo, default_workflow, timeout=300, gh_binary="gh"):
        self.repo = repo
        self.default_workflow = default_workflow
        self.timeout = timeout
        self.gh_binary = gh_binary

    def _repo(self) -> str:
        if not self.repo:
            raise ConfigurationError(
                "GitHub repo not configured. Set GITHUB_REPO in the environment or .env (e.g. org/wms-deployments)"
            )
        return self.repo

    def _run(self, args):
        cmd = [self.gh_binary] + list(args)
        logger.info(f"[GH] Executing: {' '.join(cmd)}")
        try:
            proc = subprocess.run(cmd, capture_output=True, text=True, timeout=self.timeout)
        except subprocess.TimeoutExpired as e:
            raise RuntimeError(f"gh command timed out after {self.timeout} seconds") from e
        if proc.returncode != 0:
            stderr = (proc.stderr or "").strip()
            logger.error(f"[GH] Command failed (exit {proc.returncode}): {stderr}")
            raise RuntimeError(f"gh command failed: {stderr or f'exit code {proc.returncode}'}")
        return proc.stdout

    def list_runs(self, workflow=None, limit=20):
        args = ["run", "list", "--repo", self._repo(), "--limit", str(min(limit, MAX_RUNS)), "--json", RUN_FIELDS]
        if workflow:
            args += ["--workflow", workflow]
        return json.loads(self._run(args) or "[]")

    def run_details(self, run_id):
        args = ["run", "view", "--repo", self._repo(), str(run_id), "--json", RUN_FIELDS + ",jobs"]
        return json.loads(self._run(args) or "{}")

    def run_jobs(self, run_id):
        jobs = self.run_details(run_id).get("jobs")
        return jobs if isinstance(jobs, list) else []

    def list_workflows(self):
        args = ["workflow", "list", "--repo", self._repo(), "--json", "id,name,state"]
        return json.loads(self._run(args) or "[]")

    def trigger_workflow(self, workflow=None, inputs=None):
        workflow = workflow or self.default_workflow
        inputs = inputs or {}
        args = ["workflow", "run", workflow, "--repo", self._repo()]
        for key, value in inputs.items():
            args += ["-f", f"{key}={value}"]
        self._run(args)
        return {"triggered": True, "workflow": workflow, "inputs": inputs}
