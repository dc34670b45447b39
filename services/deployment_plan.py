from datetime import datetime
from typing import Dict, List

from core.logging_config import logger
from core.models import ComponentGroup, DeploymentPlan, JiraTicket, LinkedIssueWarning, RiskFlag
from services.component_maps import ComponentCategory

# plan attribute that holds the groups of each category
PLAN_GROUP_FIELDS = {
    ComponentCategory.ARCHITECT: "architect_components",
    ComponentCategory.DDL: "ddl_components",
    ComponentCategory.DML: "dml_components",
    ComponentCategory.WEB: "web_components",
    ComponentCategory.GATEWAY: "gateway_components",
    ComponentCategory.FITNESSE: "fitnesse_components",
    ComponentCategory.NON_STANDARD: "non_standard_components",
}

UNSET = "(unset)"


def linked_issue_warnings(tickets: List[JiraTicket], plan_keys) -> List[LinkedIssueWarning]:
    warnings = []
    for ticket in tickets:
        for relationship, keys in ticket.linked_issues.items():
            for linked in keys:
                warnings.append(LinkedIssueWarning(
                    source_jira=ticket.jira,
                    linked_jira=linked,
                    relationship=relationship,
                    in_chg=linked in plan_keys,
                ))
    return warnings


def group_by_component(tickets: List[JiraTicket], category: ComponentCategory, plan_keys) -> List[ComponentGroup]:
    """
    Tickets per canonical component name of one category, in first-seen order.
    A ticket lands in every group its comma-joined category string names.
    """
    groups: Dict[str, List[JiraTicket]] = {}
    for ticket in tickets:
        value = getattr(ticket, category.value) or ""
        for name in value.split(","):
            name = name.strip()
            if name:
                groups.setdefault(name, []).append(ticket)
    return [
        ComponentGroup(
            component_name=name,
            tickets=members,
            linked_issue_warnings=linked_issue_warnings(members, plan_keys),
        )
        for name, members in groups.items()
    ]


def breakdown(values) -> Dict[str, int]:
    counts: Dict[str, int] = {}
    for v in values:
        key = v or UNSET
        counts[key] = counts.get(key, 0) + 1
    return counts


def analyze_risks(plan: DeploymentPlan, plan_keys) -> List[RiskFlag]:
    flags = []

    if plan.downtime_required:
        downtime = [f"{t.jira} ({t.downtime_required})" for t in plan.all_tickets if t.requires_downtime()]
        flags.append(RiskFlag(
            severity="high",
            category="downtime",
            message="Downtime required by: " + ", ".join(downtime),
        ))

    for ticket in plan.all_tickets:
        for relationship, keys in ticket.linked_issues.items():
            for linked in keys:
                if linked not in plan_keys:
                    flags.append(RiskFlag(
                        severity="medium",
                        category="linked-issue",
                        message=f"{ticket.jira} {relationship} {linked} - NOT in CHG",
                        related_jira=ticket.jira,
                    ))

    if plan.non_standard_components:
        total = sum(len(g.tickets) for g in plan.non_standard_components)
        flags.append(RiskFlag(
            severity="low",
            category="non-standard",
            message=f"{total} ticket(s) have non-standard components requiring manual steps",
        ))

    missing = sum(1 for t in plan.all_tickets if not t.has_components())
    if missing:
        flags.append(RiskFlag(
            severity="low",
            category="no-components",
            message=f"{missing} ticket(s) have no components assigned",
        ))

    return flags


def build_plan(tickets: List[JiraTicket], label: str) -> DeploymentPlan:
    """Group a ticket set by component, cross-check its links and flag risks."""
    tickets = list(tickets or [])
    plan_keys = {t.jira for t in tickets}

    plan = DeploymentPlan(
        chg_number=label,
        generated_at=datetime.now(),
        total_tickets=len(tickets),
        all_tickets=tickets,
        downtime_required=any(t.requires_downtime() for t in tickets),
        planned_deployment_date=next((t.planned_deployment_date for t in tickets if t.planned_deployment_date), None),
        team_breakdown=breakdown(t.dev_team for t in tickets),
        status_breakdown=breakdown(t.status for t in tickets),
    )
    for category, attr in PLAN_GROUP_FIELDS.items():
        setattr(plan, attr, group_by_component(tickets, category, plan_keys))

    plan.risk_flags = analyze_risks(plan, plan_keys)

    logger.info(f"[RELEASE] Plan for [{label}] complete: {len(tickets)} tickets, {len(plan.risk_flags)} risk flags")
    return plan
