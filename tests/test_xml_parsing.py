from services.xml_parsing import (
    extract_consignee_info,
    extract_error_from_xml,
    extract_route,
    extract_service_level,
    extract_shipping_dates,
    parse_date,
)

CONSIGNEE_XML = """<ORDER>
  <CONSIGNEE_CONTACT>Pat Doe</CONSIGNEE_CONTACT>
  <CONSIGNEE_ADDRESS1>1 Main St</CONSIGNEE_ADDRESS1>
  <CONSIGNEE_ADDRESS2>   </CONSIGNEE_ADDRESS2>
  <CONSIGNEE_CITY>Dania Beach</CONSIGNEE_CITY>
  <CONSIGNEE_STATE>FL</CONSIGNEE_STATE>
  <CONSIGNEE_POSTALCODE>33004-1234</CONSIGNEE_POSTALCODE>
</ORDER>"""

HOSTILE_XML = """<?xml version="1.0"?>
<!DOCTYPE r [<!ENTITY xxe SYSTEM "file:///etc/passwd">]>
<r><CHE_ROUTE>&xxe;</CHE_ROUTE><CONSIGNEE_CITY>&xxe;</CONSIGNEE_CITY></r>"""


def test_shipping_dates_mixed_formats():
    result = extract_shipping_dates("<R><SHIPDATE>1/5/2025</SHIPDATE><ARRIVE_DATE>2025-01-09</ARRIVE_DATE></R>")
    assert result["shipDay"] == "SUNDAY"
    assert result["arriveDay"] == "THURSDAY"
    assert result["daysBetween"] == 4
    assert result["shipDate"] == "1/5/2025"
    assert result["travelDays"] is None


def test_unparseable_date_leaves_day_and_gap_empty():
    result = extract_shipping_dates("<R><SHIPDATE>soon</SHIPDATE><ARRIVE_DATE>2025-01-09</ARRIVE_DATE></R>")
    assert result["shipDate"] == "soon"
    assert result["shipDay"] is None
    assert result["daysBetween"] is None


def test_two_digit_year():
    assert parse_date("01/05/25").isoformat() == "2025-01-05"
    assert parse_date("  ") is None


def test_consignee_fields_are_trimmed_and_blank_becomes_none():
    info = extract_consignee_info(CONSIGNEE_XML)
    assert info["contact"] == "Pat Doe"
    assert info["address2"] is None
    assert info["postalcode"] == "33004-1234"


def test_blank_or_broken_documents():
    assert extract_consignee_info("") is None
    assert extract_consignee_info("<not closed") is None
    assert extract_shipping_dates(None) is None
    assert extract_route("<broken") == ""


def test_hostile_documents_are_rejected():
    assert extract_consignee_info(HOSTILE_XML) is None
    assert extract_route(HOSTILE_XML) == ""
    assert extract_error_from_xml(HOSTILE_XML) == ""


def test_error_message_wins_over_error():
    xml = "<R><ERROR>generic</ERROR><ERROR_MESSAGE>No rate found</ERROR_MESSAGE></R>"
    assert extract_error_from_xml(xml) == "No rate found"
    assert extract_error_from_xml("<R><ERROR> timeout </ERROR></R>") == "timeout"
    assert extract_error_from_xml("<R/>") == ""


def test_namespaced_leaves_match_on_local_name():
    xml = '<r xmlns="urn:cls"><CHE_ROUTE>R9</CHE_ROUTE><SERVICE>GROUND</SERVICE></r>'
    assert extract_route(xml) == "R9"
    assert extract_service_level(xml) == "GROUND"
