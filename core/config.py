import os
from datetime import date
from pathlib import Path

from dotenv import load_dotenv

# Load environment variables
load_dotenv()

PROJECT_ROOT = Path(__file__).resolve().parent.parent


def _int_env(name, default):
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    return int(value)


def _float_env(name, default):
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    return float(value)


def _list_env(name, default):
    raw = os.getenv(name, default) or ""
    return [s.strip() for s in raw.split(",") if s.strip()]


# === Primary (CLS) database ===
CLS_DB_URL = os.getenv("CLS_DB_URL", "")
CLS_DB_USERNAME = os.getenv("CLS_DB_USERNAME", "")
CLS_DB_PASSWORD = os.getenv("CLS_DB_PASSWORD", "")
CLS_DB_DRIVER = os.getenv("CLS_DB_DRIVER", "ODBC Driver 18 for SQL Server")

# === Secondary (IO) database ===
IO_DB_URL = os.getenv("IO_DB_URL", "")
IO_DB_USERNAME = os.getenv("IO_DB_USERNAME", "")
IO_DB_PASSWORD = os.getenv("IO_DB_PASSWORD", "")
IO_DB_DRIVER = os.getenv("IO_DB_DRIVER", "ODBC Driver 18 for SQL Server")

# === Database-error fan-out ===
DB_ERRORS_SERVERS = _list_env("DB_ERRORS_SERVERS", "WMSSQL-TEST,WMSSQL-IO-TEST,WMSSQL-INTEGRATION-TEST")
DB_ERRORS_DATABASE = os.getenv("DB_ERRORS_DATABASE", "ADV")
DB_ERRORS_DRIVER = os.getenv("DB_ERRORS_DRIVER", "ODBC Driver 18 for SQL Server")
DB_ERRORS_TIMEOUT = _int_env("DB_ERRORS_TIMEOUT", 30)
FANOUT_TIMEOUT_SECONDS = _float_env("FANOUT_TIMEOUT_SECONDS", 60.0)

# === Test tools stacks ===
TEST_TOOLS_AAD_SERVER = os.getenv("TEST_TOOLS_AAD_SERVER", "")
TEST_TOOLS_AAD_DATABASE = os.getenv("TEST_TOOLS_AAD_DATABASE", "AAD")
TEST_TOOLS_IO_SERVER = os.getenv("TEST_TOOLS_IO_SERVER", "")
TEST_TOOLS_IO_DATABASE = os.getenv("TEST_TOOLS_IO_DATABASE", "ADV")
TEST_TOOLS_GATEWAY_URL = os.getenv("TEST_TOOLS_GATEWAY_URL", "")

# === Jira / release manager ===
JIRA_BASE_URL = os.getenv("JIRA_BASE_URL", "https://chewyinc.atlassian.net").rstrip("/")
JIRA_USER = os.getenv("JIRA_USER", "")
JIRA_TOKEN = os.getenv("JIRA_TOKEN", "")
JIRA_MAX_RESULTS = _int_env("JIRA_MAX_RESULTS", 500)
JIRA_TIMEOUT_SECONDS = 60
RELEASE_BASELINE_DATE = date.fromisoformat(os.getenv("RELEASE_BASELINE_DATE", "2026-02-19"))
DEFAULT_RELEASE_PRESETS_FILE = PROJECT_ROOT / "data" / "release_presets.yaml"
RELEASE_PRESETS_FILE = os.getenv("RELEASE_PRESETS_FILE", str(DEFAULT_RELEASE_PRESETS_FILE))

RELEASE_DEPLOYMENTS_PATH = os.getenv("RELEASE_DEPLOYMENTS_PATH", "")

# === GitHub Actions ===
GITHUB_REPO = os.getenv("GITHUB_REPO", "")
GITHUB_WORKFLOW = os.getenv("GITHUB_WORKFLOW", "build-stage-deploy-package-by-CHG.yaml")
GH_COMMAND_TIMEOUT = _int_env("GH_COMMAND_TIMEOUT", 300)

# === LLM ===
OPENAI_API_KEY = os.getenv("OPENAI_API_KEY", "")
OPENAI_MODEL = os.getenv("OPENAI_MODEL", "gpt-3.5-turbo")
OPENAI_MAX_TOKENS = _int_env("OPENAI_MAX_TOKENS", 1000)
OPENAI_TEMPERATURE = _float_env("OPENAI_TEMPERATURE", 0.7)
OPENAI_BASE_URL = os.getenv("OPENAI_BASE_URL") or None
