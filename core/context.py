import threading
from dataclasses import dataclass, field
from datetime import date
from typing import List

from core import config
from core.logging_config import logger
from retrieval.connections import ConnectionFactory, descriptor_from_url
from retrieval.jira_client import JiraClient
from services.chat_assistant import ChatAssistant
from services.deployment_folders import DeploymentFolderBrowser
from services.github_actions import GitHubActions
from services.order_lookup import StackTargets
from services.release_calendar import load_presets

# named pools
CLS_POOL = "cls"
IO_POOL = "io"


@dataclass
class AppContext:
    """Process-wide collaborators, built once and handed to every request."""

    factory: ConnectionFactory
    jira: JiraClient
    folders: DeploymentFolderBrowser
    actions: GitHubActions
    chat: ChatAssistant
    targets: StackTargets
    error_servers: List[str] = field(default_factory=list)
    error_database: str = "ADV"
    fanout_timeout: float = 60.0
    baseline_date: date = date(2026, 2, 19)
    presets: dict = field(default_factory=dict)
    default_workflow: str = ""


def _descriptors():
    descriptors = {}
    pools = [
        (CLS_POOL, config.CLS_DB_URL, config.CLS_DB_USERNAME, config.CLS_DB_PASSWORD, config.CLS_DB_DRIVER),
        (IO_POOL, config.IO_DB_URL, config.IO_DB_USERNAME, config.IO_DB_PASSWORD, config.IO_DB_DRIVER),
    ]
    for name, url, user, password, driver in pools:
        if not url:
            logger.warning(f"[CONFIG] No URL configured for the '{name}' database, pool disabled")
            continue
        descriptors[name] = descriptor_from_url(name, url, user, password, driver)
    return descriptors


def build_context() -> AppContext:
    factory = ConnectionFactory(
        _descriptors(),
        adhoc_driver=config.DB_ERRORS_DRIVER,
        adhoc_connect_timeout=config.DB_ERRORS_TIMEOUT,
        adhoc_query_timeout=config.DB_ERRORS_TIMEOUT,
    )
    return AppContext(
        factory=factory,
        jira=JiraClient(config.JIRA_BASE_URL, config.JIRA_USER, config.JIRA_TOKEN,
                        max_results=config.JIRA_MAX_RESULTS, timeout=config.JIRA_TIMEOUT_SECONDS),
        folders=DeploymentFolderBrowser(config.RELEASE_DEPLOYMENTS_PATH),
        actions=GitHubActions(config.GITHUB_REPO, config.GITHUB_WORKFLOW, timeout=config.GH_COMMAND_TIMEOUT),
        chat=ChatAssistant(config.OPENAI_API_KEY, config.OPENAI_MODEL, config.OPENAI_MAX_TOKENS,
                           config.OPENAI_TEMPERATURE, config.OPENAI_BASE_URL),
        targets=StackTargets(
            aad_server=config.TEST_TOOLS_AAD_SERVER,
            aad_database=config.TEST_TOOLS_AAD_DATABASE,
            io_server=config.TEST_TOOLS_IO_SERVER,
            io_database=config.TEST_TOOLS_IO_DATABASE,
            gateway_url=config.TEST_TOOLS_GATEWAY_URL,
        ),
        error_servers=list(config.DB_ERRORS_SERVERS),
        error_database=config.DB_ERRORS_DATABASE,
        fanout_timeout=config.FANOUT_TIMEOUT_SECONDS,
        baseline_date=config.RELEASE_BASELINE_DATE,
        presets=load_presets(config.RELEASE_PRESETS_FILE),
        default_workflow=config.GITHUB_WORKFLOW,
    )


_context = None
_context_lock = threading.Lock()


def get_context() -> AppContext:
    """FastAPI dependency; tests replace it through app.dependency_overrides."""
    global _context
    with _context_lock:
        if _context is None:
            _context = build_context()
            logger.info("[CONFIG] Application context initialised")
        return _context


def reset_context():
    global _context
    with _context_lock:
        if _context is not None:
            _context.factory.dispose()
        _context = None
