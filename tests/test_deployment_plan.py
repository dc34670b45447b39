from core.models import JiraTicket
from services.deployment_plan import build_plan


def _tickets():
    t1 = JiraTicket(jira="T1", architect="Autobatching", dev_team="Pick", status="QA",
                    linked_issues={"blocks": ["X-99"]})
    t2 = JiraTicket(jira="T2", dml="DML", downtime_required="Yes, scheduled", dev_team="Pick",
                    status="Done", planned_deployment_date="2026-03-05")
    return [t1, t2]


def test_plan_groups_tickets_and_flags_risks():
    plan = build_plan(_tickets(), "CHG100")

    assert plan.chg_number == "CHG100"
    assert plan.total_tickets == 2
    assert plan.downtime_required
    assert plan.planned_deployment_date == "2026-03-05"

    [architect] = plan.architect_components
    assert architect.component_name == "Autobatching"
    assert [t.jira for t in architect.tickets] == ["T1"]
    [warning] = architect.linked_issue_warnings
    assert (warning.source_jira, warning.linked_jira, warning.relationship, warning.in_chg) == ("T1", "X-99", "blocks", False)

    [dml] = plan.dml_components
    assert [t.jira for t in dml.tickets] == ["T2"]
    assert dml.linked_issue_warnings == []

    by_category = {f.category: f for f in plan.risk_flags}
    assert set(by_category) == {"downtime", "linked-issue"}
    assert by_category["downtime"].severity == "high"
    assert "T2 (Yes, scheduled)" in by_category["downtime"].message
    assert by_category["linked-issue"].severity == "medium"
    assert by_category["linked-issue"].message == "T1 blocks X-99 - NOT in CHG"
    assert by_category["linked-issue"].related_jira == "T1"

    assert plan.team_breakdown == {"Pick": 2}
    assert plan.status_breakdown == {"QA": 1, "Done": 1}


def test_links_inside_the_plan_are_not_risks():
    t1 = JiraTicket(jira="T1", web="WA", linked_issues={"relates to": ["T2"]})
    t2 = JiraTicket(jira="T2", web="WA, Self Service")
    plan = build_plan([t1, t2], "Custom JQL")

    assert [g.component_name for g in plan.web_components] == ["WA", "Self Service"]
    assert [t.jira for t in plan.web_components[0].tickets] == ["T1", "T2"]
    assert plan.web_components[0].linked_issue_warnings[0].in_chg
    assert plan.risk_flags == []


def test_non_standard_and_missing_components():
    plan = build_plan([
        JiraTicket(jira="T1", non_standard="Splunk,AWS", dev_team=""),
        JiraTicket(jira="T2", downtime_required="No Downtime"),
    ], "Preset:Dev")

    assert not plan.downtime_required
    messages = {f.category: f.message for f in plan.risk_flags}
    assert messages == {
        "non-standard": "2 ticket(s) have non-standard components requiring manual steps",
        "no-components": "1 ticket(s) have no components assigned",
    }
    assert plan.team_breakdown == {"(unset)": 2}


def test_empty_plan():
    plan = build_plan([], "CHG0")
    assert plan.total_tickets == 0
    assert not plan.downtime_required
    assert plan.planned_deployment_date is None
    assert plan.architect_components == []
    assert plan.risk_flags == []
    assert plan.generated_at is not None
