from typing import Dict, List

from core.models import JiraTicket
from services.component_maps import COMPONENT_MAPS, categories_for

BLOCK_NODE_TYPES = {"paragraph", "listItem", "heading"}

# Custom fields on the WMS projects
FIELD_DEV_TEAM = "customfield_12901"
FIELD_PRODUCT_MANAGER = "customfield_11700"
FIELD_DOWNTIME = "customfield_11707"
FIELD_PLANNED_DEPLOYMENT_DATE = "customfield_13594"
FIELD_IMPLEMENTATION_PLAN = "customfield_11507"


def _as_text(value) -> str:
    if value is None or isinstance(value, (dict, list)):
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def text_or_empty(node, field) -> str:
    if not isinstance(node, dict):
        return ""
    return _as_text(node.get(field))


def nested_text(node, field, sub_field) -> str:
    if not isinstance(node, dict):
        return ""
    return text_or_empty(node.get(field), sub_field)


def extract_document_text(doc) -> str:
    """
    Plain text of an Atlassian Document Format tree: every `text` in document
    order, with a newline after each paragraph, list item and heading.
    """
    if doc is None:
        return ""
    if isinstance(doc, str):
        return doc.strip()
    parts: List[str] = []
    _walk_document(doc, parts)
    return "".join(parts).strip()


def _walk_document(node, parts):
    if not isinstance(node, dict):
        return
    if "text" in node:
        parts.append(_as_text(node["text"]))
    content = node.get("content")
    if isinstance(content, list):
        for child in content:
            _walk_document(child, parts)
        if node.get("type") in BLOCK_NODE_TYPES:
            parts.append("\n")


def map_components(components) -> Dict[str, str]:
    """Ticket attribute name -> comma-joined canonical names, one entry per category."""
    found = {category: [] for category in COMPONENT_MAPS}
    for comp in components or []:
        name = text_or_empty(comp, "name")
        for category, canonical in categories_for(name):
            found[category].append(canonical)
    return {category.value: ",".join(values) for category, values in found.items()}


def map_linked_issues(links) -> Dict[str, List[str]]:
    linked: Dict[str, List[str]] = {}
    for link in links or []:
        if not isinstance(link, dict):
            continue
        link_type = link.get("type") or {}
        for side in ("inward", "outward"):
            target = link.get(f"{side}Issue")
            if not target:
                continue
            relationship = _as_text(link_type.get(side)) if side in link_type else "linked"
            key = text_or_empty(target, "key")
            if key:
                linked.setdefault(relationship, []).append(key)
    return linked


def browse_url(base_url: str, key: str) -> str:
    return f"{base_url}/browse/{key}"


def parse_issue(issue: dict, base_url: str) -> JiraTicket:
    key = text_or_empty(issue, "key")
    fields = issue.get("fields") or {}

    labels = fields.get("labels")
    components = fields.get("components")
    links = fields.get("issuelinks")
    if links is None:
        links = fields.get("issueLinks")

    return JiraTicket(
        jira=key,
        url=browse_url(base_url, key),
        title=text_or_empty(fields, "summary"),
        status=nested_text(fields, "status", "name"),
        resolution=nested_text(fields, "resolution", "name"),
        assignee=nested_text(fields, "assignee", "displayName"),
        dev_team=nested_text(fields, FIELD_DEV_TEAM, "value"),
        product_manager=nested_text(fields, FIELD_PRODUCT_MANAGER, "displayName"),
        downtime_required=nested_text(fields, FIELD_DOWNTIME, "value"),
        planned_deployment_date=text_or_empty(fields, FIELD_PLANNED_DEPLOYMENT_DATE),
        labels=", ".join(_as_text(l) for l in labels) if isinstance(labels, list) else "",
        linked_issues=map_linked_issues(links if isinstance(links, list) else None),
        description=extract_document_text(fields.get("description")),
        implementation_plan=extract_document_text(fields.get(FIELD_IMPLEMENTATION_PLAN)),
        **map_components(components if isinstance(components, list) else None),
    )
