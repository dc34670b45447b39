from typing import Dict, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from api.responses import guarded
from core.context import AppContext, get_context
from pipeline import release_planner

router = APIRouter(prefix="/api/release-manager", tags=["Release Manager"])


# === API Schema ===
class CustomPlanRequest(BaseModel):
    jql: Optional[str] = None
    label: Optional[str] = None


class TriggerRequest(BaseModel):
    workflow: Optional[str] = None
    inputs: Dict[str, str] = Field(default_factory=dict)


@router.get("/config-status")
def config_status(ctx: AppContext = Depends(get_context)):
    return release_planner.config_status(ctx.jira)


# === Query modes ===
@router.get("/deployment-plan")
def deployment_plan(chg: str, ctx: AppContext = Depends(get_context)):
    return guarded("Failed to build deployment plan", release_planner.chg_plan, ctx.jira, chg)


@router.get("/tickets")
def tickets(chg: str, ctx: AppContext = Depends(get_context)):
    return guarded("Failed to fetch tickets", release_planner.chg_tickets, ctx.jira, chg)


@router.get("/release-plan")
def release_plan(date: Optional[str] = None, offset: int = 0, ctx: AppContext = Depends(get_context)):
    return guarded("Failed to build release plan", release_planner.release_plan,
                   ctx.jira, ctx.baseline_date, date, offset)


@router.get("/presets")
def presets(ctx: AppContext = Depends(get_context)):
    return ctx.presets


@router.get("/preset-plan")
def preset_plan(preset: str, ctx: AppContext = Depends(get_context)):
    return guarded("Failed to execute preset filter", release_planner.preset_plan, ctx.jira, ctx.presets, preset)


@router.post("/custom-plan")
def custom_plan(req: CustomPlanRequest, ctx: AppContext = Depends(get_context)):
    return guarded("Failed to execute custom JQL", release_planner.custom_plan, ctx.jira, req.jql, req.label)


@router.get("/deployment-dates")
def deployment_dates(count: int = 4, ctx: AppContext = Depends(get_context)):
    return release_planner.deployment_dates(ctx.baseline_date, count)


# === Deployment folder browser ===
@router.get("/deployments/years")
def deployment_years(ctx: AppContext = Depends(get_context)):
    return guarded("Failed to list deployment years", ctx.folders.list_years)


@router.get("/deployments/months")
def deployment_months(year: str, ctx: AppContext = Depends(get_context)):
    return guarded("Failed to list months", ctx.folders.list_months, year)


@router.get("/deployments/releases")
def deployment_releases(year: str, month: str, ctx: AppContext = Depends(get_context)):
    return guarded("Failed to list releases", ctx.folders.list_releases, year, month)


@router.get("/deployments/contents")
def folder_contents(path: str, ctx: AppContext = Depends(get_context)):
    return guarded("Failed to read folder contents", ctx.folders.folder_contents, path)


@router.get("/deployments/file")
def deployment_file(path: str, ctx: AppContext = Depends(get_context)):
    return guarded("Failed to read file", ctx.folders.read_file, path)


# === GitHub Actions ===
@router.get("/actions/runs")
def action_runs(workflow: Optional[str] = None, limit: int = 20, ctx: AppContext = Depends(get_context)):
    return guarded("Failed to list GitHub Actions runs", ctx.actions.list_runs,
                   workflow or ctx.default_workflow, limit)


@router.get("/actions/run/{run_id}")
def action_run(run_id: int, ctx: AppContext = Depends(get_context)):
    return guarded("Failed to get run details", ctx.actions.run_details, run_id)


@router.get("/actions/run/{run_id}/jobs")
def action_run_jobs(run_id: int, ctx: AppContext = Depends(get_context)):
    return guarded("Failed to get run jobs", ctx.actions.run_jobs, run_id)


@router.get("/actions/workflows")
def workflows(ctx: AppContext = Depends(get_context)):
    return guarded("Failed to list workflows", ctx.actions.list_workflows)


@router.post("/actions/trigger")
def trigger(req: TriggerRequest, ctx: AppContext = Depends(get_context)):
    return guarded("Failed to trigger workflow", ctx.actions.trigger_workflow, req.workflow, req.inputs)
