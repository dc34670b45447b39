from datetime import date

from core.errors import BadRequestError
from core.logging_config import logger
from services.deployment_plan import build_plan
from services.release_calendar import (
    deployment_thursday,
    fix_version_sunday,
    normalize_chg,
    release_jql,
    release_label,
    upcoming_deployments,
)

MAX_DEPLOYMENT_DATES = 12


def config_status(jira) -> dict:
    return {
        "configured": jira.is_configured(),
        "jiraBaseUrl": jira.base_url,
        "userConfigured": bool(jira.user),
        "tokenConfigured": bool(jira.token),
    }


def plan_from_jql(jira, jql, label):
    """Fetch the tickets a JQL selects and assemble them into a deployment plan."""
    tickets = jira.execute_jql(jql, label)
    return build_plan(tickets, label)


def chg_plan(jira, chg_number):
    chg = normalize_chg(chg_number)
    logger.info(f"[RELEASE] Deployment plan requested for {chg}")
    return build_plan(jira.tickets_for_chg(chg), chg)


def chg_tickets(jira, chg_number) -> dict:
    chg = normalize_chg(chg_number)
    tickets = jira.tickets_for_chg(chg)
    return {"label": chg, "total": len(tickets), "tickets": tickets}


def release_plan(jira, baseline, date_str=None, offset=0, today=None) -> dict:
    if date_str:
        try:
            deployment_date = date.fromisoformat(date_str)
        except ValueError:
            raise BadRequestError(f"Invalid date '{date_str}', expected yyyy-MM-dd") from None
    else:
        deployment_date = deployment_thursday(baseline, offset, today)

    jql = release_jql(deployment_date)
    label = release_label(deployment_date)
    logger.info(f"[RELEASE] Release plan requested for {label} - JQL: {jql}")
    return {
        "deploymentDate": deployment_date.isoformat(),
        "fixVersionSunday": fix_version_sunday(deployment_date).isoformat(),
        "jql": jql,
        "plan": plan_from_jql(jira, jql, label),
    }


def preset_plan(jira, presets, preset_key) -> dict:
    key = (preset_key or "").lower()
    preset = presets.get(key)
    if preset is None:
        raise BadRequestError(f"Preset '{preset_key}' not found. Available: {', '.join(presets)}")
    logger.info(f"[RELEASE] Preset plan requested: {key} - {preset['name']}")
    return {
        "preset": key,
        "name": preset["name"],
        "description": preset["description"],
        "jql": preset["jql"],
        "plan": plan_from_jql(jira, preset["jql"], f"Preset:{preset['name']}"),
    }


def custom_plan(jira, jql, label=None) -> dict:
    if not jql or not jql.strip():
        raise BadRequestError("Provide a 'jql' field in the request body")
    label = label or "Custom JQL"
    jql = jql.strip()
    logger.info(f"[RELEASE] Custom JQL plan requested [{label}]: {jql}")
    return {"label": label, "jql": jql, "plan": plan_from_jql(jira, jql, label)}


def deployment_dates(baseline, count=4, today=None) -> dict:
    return upcoming_deployments(baseline, max(1, min(count, MAX_DEPLOYMENT_DATES)), today)
