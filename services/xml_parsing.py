from datetime import datetime

from defusedxml import ElementTree as SafeET

from core.logging_config import logger

# Tried in order; the first one that parses wins
DATE_FORMATS = ("%m/%d/%Y", "%Y-%m-%d", "%m/%d/%y")

WEEKDAYS = ("MONDAY", "TUESDAY", "WEDNESDAY", "THURSDAY", "FRIDAY", "SATURDAY", "SUNDAY")

CONSIGNEE_TAGS = {
    "contact": "CONSIGNEE_CONTACT",
    "address1": "CONSIGNEE_ADDRESS1",
    "address2": "CONSIGNEE_ADDRESS2",
    "city": "CONSIGNEE_CITY",
    "state": "CONSIGNEE_STATE",
    "postalcode": "CONSIGNEE_POSTALCODE",
}


def _blank(s) -> bool:
    return s is None or not s.strip()


def parse_xml(xml: str):
    """
    Parse an untrusted document. DOCTYPE declarations, entity definitions and
    external references are all rejected.
    """
    return SafeET.fromstring(xml, forbid_dtd=True, forbid_entities=True, forbid_external=True)


def _local_name(tag) -> str:
    if isinstance(tag, str) and tag.startswith("{"):
        return tag.rsplit("}", 1)[1]
    return tag


def get_element_text(root, tag_name):
    """
    Trimmed full text of the first element named tag_name, or None when absent or blank.

    Matching is by local name: namespace prefixes and URIs on the document tags are ignored.
    """
    for el in root.iter():
        if _local_name(el.tag) == tag_name:
            text = "".join(el.itertext())
            return text.strip() if not _blank(text) else None
    return None


def parse_date(value):
    if _blank(value):
        return None
    value = value.strip()
    for fmt in DATE_FORMATS:
        try:
            return datetime.strptime(value, fmt).date()
        except ValueError:
            continue
    return None


def extract_consignee_info(xml_message):
    if _blank(xml_message):
        return None
    try:
        root = parse_xml(xml_message)
        return {key: get_element_text(root, tag) for key, tag in CONSIGNEE_TAGS.items()}
    except Exception as e:
        logger.debug(f"[XML] Failed to parse consignee info: {e}")
        return None


def extract_shipping_dates(xml_response):
    if _blank(xml_response):
        return None
    try:
        root = parse_xml(xml_response)
        ship_date_str = get_element_text(root, "SHIPDATE")
        arrive_date_str = get_element_text(root, "ARRIVE_DATE")
        travel_days = get_element_text(root, "CHE_TRAVEL_DAYS")

        ship_date = parse_date(ship_date_str)
        arrive_date = parse_date(arrive_date_str)

        days_between = None
        if ship_date and arrive_date:
            days_between = (arrive_date - ship_date).days

        return {
            "shipDate": ship_date_str,
            "arriveDate": arrive_date_str,
            "shipDay": WEEKDAYS[ship_date.weekday()] if ship_date else None,
            "arriveDay": WEEKDAYS[arrive_date.weekday()] if arrive_date else None,
            "travelDays": travel_days,
            "daysBetween": days_between,
        }
    except Exception as e:
        logger.debug(f"[XML] Failed to parse shipping dates: {e}")
        return None


def _leaf_or_empty(xml, tag):
    if _blank(xml):
        return ""
    try:
        return get_element_text(parse_xml(xml), tag) or ""
    except Exception:
        return ""


def extract_route(xml_response) -> str:
    return _leaf_or_empty(xml_response, "CHE_ROUTE")


def extract_service_level(xml_response) -> str:
    return _leaf_or_empty(xml_response, "SERVICE")


def extract_error_from_xml(xml_response) -> str:
    """ERROR_MESSAGE wins over ERROR; empty string when neither carries text."""
    if _blank(xml_response):
        return ""
    try:
        root = parse_xml(xml_response)
        return get_element_text(root, "ERROR_MESSAGE") or get_element_text(root, "ERROR") or ""
    except Exception:
        return ""
