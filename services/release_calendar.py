import math
from datetime import date, timedelta
from pathlib import Path

import yaml

from core.logging_config import logger

CYCLE_DAYS = 14
THURSDAY = 3  # date.weekday()

PROJECT_ROOT = Path(__file__).resolve().parent.parent


def _mdy(d: date) -> str:
    # M/d/yyyy without zero padding, as the fix version names are written
    return f"{d.month}/{d.day}/{d.year}"


def fix_version_sunday(deployment_date: date) -> date:
    return deployment_date - timedelta(days=4)


def fix_version_names(deployment_date: date):
    sunday = _mdy(fix_version_sunday(deployment_date))
    return f"WMS Week of {sunday}", f"WMSRx Week of {sunday}"


def release_jql(deployment_date: date) -> str:
    wms, wms_rx = fix_version_names(deployment_date)
    return (
        "(project = 'WMS Development' OR project = 'WMS Rx') "
        "AND issuetype in standardIssueTypes() "
        f"AND fixVersion in ('{wms}', '{wms_rx}') "
        f"AND 'Planned Deployment Date[Date]' = '{deployment_date.isoformat()}'"
    )


def release_label(deployment_date: date) -> str:
    return f"Release {deployment_date:%m-%d}"


def deployment_thursday(baseline: date, offset: int = 0, today: date = None) -> date:
    """
    Deployment Thursday of the bi-weekly cycle anchored on `baseline`: the first
    cycle date on or after the coming Thursday, moved `offset` cycles.
    """
    today = today or date.today()
    next_thursday = today + timedelta(days=(THURSDAY - today.weekday()) % 7)
    cycles = math.floor((next_thursday - baseline).days / CYCLE_DAYS)
    candidate = baseline + timedelta(days=cycles * CYCLE_DAYS)
    if candidate < next_thursday:
        candidate += timedelta(days=CYCLE_DAYS)
    return candidate + timedelta(days=offset * CYCLE_DAYS)


def upcoming_deployments(baseline: date, count: int = 4, today: date = None) -> dict:
    result = {}
    for i in range(count):
        deploy = deployment_thursday(baseline, i, today)
        wms, wms_rx = fix_version_names(deploy)
        label = "Next" if i == 0 else f"Next +{i}"
        result[label] = {
            "deploymentDate": deploy.isoformat(),
            "fixVersionSunday": fix_version_sunday(deploy).isoformat(),
            "fixVersionWMS": wms,
            "fixVersionWMSRx": wms_rx,
            "releaseBranch": f"release-{deploy:%m-%d}",
        }
    return result


def normalize_chg(chg_number: str) -> str:
    normalized = (chg_number or "").strip().upper()
    if not normalized.startswith("CHG"):
        normalized = "CHG" + normalized
    return normalized


def load_presets(file_path) -> dict:
    """Preset id -> {name, description, jql}, in file order."""
    path = Path(file_path)
    if not path.is_absolute():
        path = PROJECT_ROOT / path
    try:
        with open(path, "r", encoding="utf-8") as f:
            presets = yaml.safe_load(f) or {}
    except Exception as e:
        logger.warning(f"[RELEASE] Could not load presets from {path}: {e}")
        return {}
    return {
        str(key).lower(): {
            "name": value.get("name", key),
            "description": value.get("description", ""),
            "jql": " ".join(str(value.get("jql", "")).split()),
        }
        for key, value in presets.items()
        if isinstance(value, dict)
    }
