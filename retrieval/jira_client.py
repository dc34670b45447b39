import base64
import json
import urllib.error
import urllib.parse
import urllib.request
from typing import List

from core.errors import ConfigurationError
from core.logging_config import logger
from core.models import JiraTicket
from services.issue_parser import parse_issue

CHG_JQL = (
    '(project = "WMS Development" OR project = "WMS Rx") '
    "AND (issuetype = Bug OR issuetype = Story OR issuetype = Task) "
    "AND labels = {chg} AND labels != ExcludeFromBuild ORDER BY key ASC"
)


def basic_auth_header(user: str, token: str) -> str:
    creds = f"{user}:{token}".encode("utf-8")
    return "Basic " + base64.b64encode(creds).decode("ascii")


def _error_messages(body: str) -> List[str]:
    try:
        payload = json.loads(body)
    except (ValueError, TypeError):
        return []
    if not isinstance(payload, dict):
        return []
    messages = payload.get("errorMessages") or []
    return [str(m) for m in messages] if isinstance(messages, list) else []


class JiraClient:
    """
    Minimal Jira Cloud search client (REST v3, Basic auth with an API token).
    """

    def __init__(self, base_url, user, token, max_results=500, timeout=60):
        self.base_url = (base_url or "").rstrip("/")
        self.user = user or ""
        self.token = token or ""
        self.max_results = max_results
        self.timeout = timeout

    def is_configured(self) -> bool:
        return bool(self.user.strip()) and bool(self.token.strip())

    def search_url(self, jql: str) -> str:
        return (
            f"{self.base_url}/rest/api/3/search/jql?fields=*all&jql="
            f"{urllib.parse.quote_plus(jql)}&maxResults={self.max_results}"
        )

    def execute_jql(self, jql: str, label: str) -> List[JiraTicket]:
        if not self.is_configured():
            raise ConfigurationError(
                "Jira credentials not configured. Set JIRA_USER and JIRA_TOKEN in the environment or .env"
            )

        url = self.search_url(jql)
        logger.info(f"[JIRA] Querying [{label}] - JQL length: {len(jql)}, URL length: {len(url)}")
        logger.debug(f"[JIRA] JQL: {jql}")

        req = urllib.request.Request(url, headers={"Accept": "application/json"}, method="GET")
        # unredirected: the credentials are not replayed if Jira answers with a redirect
        req.add_unredirected_header("Authorization", basic_auth_header(self.user, self.token))

        try:
            with urllib.request.urlopen(req, timeout=self.timeout) as resp:
                status = resp.status
                body = resp.read().decode("utf-8", errors="replace")
        except urllib.error.HTTPError as e:
            status = e.code
            body = e.read().decode("utf-8", errors="replace") if e.fp else ""

        if status != 200:
            logger.error(f"[JIRA] API returned status {status}: {body[:2000]}")
            message = f"Jira API returned status {status}"
            errors = _error_messages(body)
            if errors:
                message += ": " + "; ".join(errors)
            raise RuntimeError(message)

        payload = json.loads(body)
        issues = payload.get("issues") if isinstance(payload, dict) else None
        if not isinstance(issues, list):
            logger.warning(f"[JIRA] No issues array in response for [{label}]")
            return []

        tickets = [parse_issue(issue, self.base_url) for issue in issues]
        logger.info(f"[JIRA] Fetched {len(tickets)} tickets for [{label}]")
        return tickets

    def tickets_for_chg(self, chg_number: str) -> List[JiraTicket]:
        return self.execute_jql(CHG_JQL.format(chg=chg_number), f"CHG:{chg_number}")
