from datetime import datetime
from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Snake_case in Python, camelCase on the wire."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# === CLS debugger ===
class OrderImportRow(CamelModel):
    wh_id: Optional[str] = None
    order_number: Optional[str] = None
    item_number: Optional[str] = None
    xml_message: Optional[str] = None
    xml_response: Optional[str] = None
    error_text: Optional[str] = None
    import_status: Optional[str] = None
    inserted_datetime: Optional[datetime] = None
    updated_datetime: Optional[datetime] = None
    cls_insert_datetime: Optional[datetime] = None


class EnrichedOrder(CamelModel):
    wh_id: Optional[str] = None
    order_number: Optional[str] = None
    item_number: Optional[str] = None
    error_text: Optional[str] = None
    import_status: Optional[str] = None
    xml_message: Optional[str] = None
    xml_response: Optional[str] = None
    inserted_datetime: Optional[datetime] = None
    updated_datetime: Optional[datetime] = None
    cls_insert_datetime: Optional[datetime] = None
    ship_date: Optional[str] = None
    arrive_date: Optional[str] = None
    ship_day: Optional[str] = None
    arrive_day: Optional[str] = None
    travel_days: Optional[str] = None
    days_between: Optional[int] = None
    service_level: Optional[str] = None
    route: Optional[str] = None
    consignee_contact: Optional[str] = None
    consignee_address1: Optional[str] = None
    consignee_address2: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    postal_code: Optional[str] = None


class XmlLogEntry(CamelModel):
    wh_id: Optional[str] = None
    order_number: Optional[str] = None
    request_type: Optional[str] = None
    request_sproc: Optional[str] = None
    xml_message: Optional[str] = None
    xml_response: Optional[str] = None
    error_text: Optional[str] = None
    insert_datetime: Optional[datetime] = None


class QueueStatusEntry(CamelModel):
    type: str
    wh_id: Optional[str] = None
    order_number: Optional[str] = None
    zip: Optional[str] = None
    route: Optional[str] = None
    error_text: Optional[str] = None


# === Saturday delivery ===
class RateOrder(CamelModel):
    type: Optional[str] = None
    wh_id: Optional[str] = None
    order_number: Optional[str] = None
    zip: Optional[str] = None
    origin: Optional[str] = None


class SaturdayDeliveryResult(CamelModel):
    postal_code: Optional[str] = None
    service: Optional[str] = None
    transit_days: Optional[str] = None


# === Database errors ===
class DatabaseErrorEntry(CamelModel):
    server_name: Optional[str] = None
    logged_on_local: Optional[datetime] = None
    machine_id: Optional[str] = None
    user_id: Optional[str] = None
    resource_name: Optional[str] = None
    details: Optional[str] = None
    call_stack: Optional[str] = None
    arguments: Optional[str] = None


# === Release manager ===
class JiraTicket(CamelModel):
    jira: str = ""
    url: str = ""
    assignee: str = ""
    dev_team: str = ""
    product_manager: str = ""
    downtime_required: str = ""
    status: str = ""
    title: str = ""
    planned_deployment_date: str = ""
    resolution: str = ""
    labels: str = ""
    architect: str = ""
    ddl: str = ""
    dml: str = ""
    web: str = ""
    chewy_wms_gateway: str = ""
    fitnesse: str = ""
    non_standard: str = ""
    linked_issues: Dict[str, List[str]] = Field(default_factory=dict)
    description: str = ""
    implementation_plan: str = ""

    def has_components(self) -> bool:
        return any(
            v and v.strip()
            for v in (self.architect, self.ddl, self.dml, self.web,
                      self.chewy_wms_gateway, self.fitnesse, self.non_standard)
        )

    def requires_downtime(self) -> bool:
        return bool(self.downtime_required) and self.downtime_required.lower() != "no downtime"


class LinkedIssueWarning(CamelModel):
    source_jira: str
    linked_jira: str
    relationship: str
    in_chg: bool


class ComponentGroup(CamelModel):
    component_name: str
    tickets: List[JiraTicket] = Field(default_factory=list)
    linked_issue_warnings: List[LinkedIssueWarning] = Field(default_factory=list)


class RiskFlag(CamelModel):
    severity: Literal["high", "medium", "low"]
    category: Literal["downtime", "linked-issue", "non-standard", "no-components", "security"]
    message: str
    related_jira: Optional[str] = None


class DeploymentPlan(CamelModel):
    chg_number: str = ""
    generated_at: Optional[datetime] = None
    total_tickets: int = 0
    downtime_required: bool = False
    planned_deployment_date: Optional[str] = None
    architect_components: List[ComponentGroup] = Field(default_factory=list)
    ddl_components: List[ComponentGroup] = Field(default_factory=list)
    dml_components: List[ComponentGroup] = Field(default_factory=list)
    web_components: List[ComponentGroup] = Field(default_factory=list)
    gateway_components: List[ComponentGroup] = Field(default_factory=list)
    fitnesse_components: List[ComponentGroup] = Field(default_factory=list)
    non_standard_components: List[ComponentGroup] = Field(default_factory=list)
    all_tickets: List[JiraTicket] = Field(default_factory=list)
    risk_flags: List[RiskFlag] = Field(default_factory=list)
    team_breakdown: Dict[str, int] = Field(default_factory=dict)
    status_breakdown: Dict[str, int] = Field(default_factory=dict)
