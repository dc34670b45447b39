import io
import urllib.error

import pytest
from defusedxml import ElementTree

from conftest import DownFactory
from core.errors import BadRequestError, ConfigurationError
from services.item_import import ItemImporter, build_import_xml
from services.order_actions import OrderActions, setup_quantity
from services.order_lookup import OrderLookup, StackTargets

TARGETS = StackTargets(aad_server="aad-sql", aad_database="AAD", io_server="io-sql", io_database="ADV",
                       gateway_url="http://gateway.test/import")


@pytest.mark.parametrize("setup_type, planned, override, expected", [
    ("normal", 5, None, 5),
    ("short_ship", 5, None, 4),
    ("short_ship", 1, None, 1),
    ("floor_deny", 5, None, 0),
    ("floor_deny", 5, 3, 3),
    ("normal", "2.00", None, 2),
    ("normal", None, None, 0),
])
def test_setup_quantity(setup_type, planned, override, expected):
    assert setup_quantity(setup_type, planned, override) == expected


def test_import_document_is_escaped_xml():
    xml = build_import_xml('A&B"', "W1", description="<new>", uom="EA", inventoryType="FG", hazmat="No",
                           frozen="N", fresh="N", weight="1.0", length="1", width="1", height="1")
    assert "<ItemNumber>A&amp;B&quot;</ItemNumber>" in xml
    root = ElementTree.fromstring(xml)
    assert root.find("item_master/item_info/Description").text == "<new>"
    assert root.find("item_master/WarehouseID").text == "W1"


class FakeGatewayResponse:
    status = 200

    def read(self):
        return b"<ok/>"

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False


def test_import_reports_per_warehouse(monkeypatch):
    posted = []

    def fake_urlopen(req, timeout=None):
        posted.append((req.full_url, req.get_header("Content-type"), req.data.decode()))
        if "<WarehouseID>W2</WarehouseID>" in req.data.decode():
            raise urllib.error.HTTPError(req.full_url, 500, "err", {}, io.BytesIO(b"boom"))
        return FakeGatewayResponse()

    monkeypatch.setattr("urllib.request.urlopen", fake_urlopen)
    result = ItemImporter(DownFactory(), TARGETS).import_item(
        {"itemNumber": " 12345 ", "warehouses": ["W1", "W2", " "], "weight": "2.5"})

    assert result["success"]
    assert result["totalWarehouses"] == 2
    assert (result["successCount"], result["failCount"]) == (1, 1)
    assert result["results"][1]["statusCode"] == 500
    assert result["results"][1]["response"] == "boom"
    assert posted[0][0] == "http://gateway.test/import"
    assert posted[0][1] == "text/xml"
    assert "<Weight>2.5</Weight>" in posted[0][2]
    assert "<Description>Imported Item 12345</Description>" in posted[0][2]


def test_import_validation():
    importer = ItemImporter(DownFactory(), TARGETS)
    with pytest.raises(BadRequestError, match="warehouse"):
        importer.import_item({"itemNumber": "1", "warehouses": []})
    no_gateway = StackTargets("aad-sql", "AAD", "io-sql", "ADV")
    with pytest.raises(ConfigurationError):
        ItemImporter(DownFactory(), no_gateway).import_item({"itemNumber": "1", "warehouses": ["W1"]})


def test_item_lookup_reports_connection_failure():
    result = ItemImporter(DownFactory(), TARGETS).lookup_item("12345", "W1")
    assert not result["success"]
    assert "aad-sql" in result["error"]


def test_lookup_validation():
    lookup = OrderLookup(DownFactory(), TARGETS)
    with pytest.raises(BadRequestError):
        lookup.lookup("pallet", "1", "W1")
    with pytest.raises(BadRequestError):
        lookup.lookup("order", "1", "W1", stack="prod")
    with pytest.raises(BadRequestError):
        lookup.lookup("order", "  ", "W1")


def test_lookup_reports_unreachable_stack():
    result = OrderLookup(DownFactory(), TARGETS).lookup("order", "O1", "W1", "both")
    assert result["aadConnection"] == "aad-sql / AAD"
    assert result["ioConnection"] == "io-sql / ADV"
    assert result["error"].startswith("Failed to resolve identifiers")
    assert "tables" not in result


def test_connection_check_reports_each_stack():
    targets = StackTargets("aad-sql", "AAD", "", "ADV")
    result = OrderLookup(DownFactory(), targets).check_connections()
    assert result["aadStatus"] == "Failed: Failed to connect to aad-sql"
    assert result["ioStatus"].startswith("Failed: IO server not configured")


def test_ship_order_database_failure_is_reported():
    result = OrderActions(DownFactory(), TARGETS).ship_order("W1", "O1")
    assert result["success"] is False
    assert result["message"] == "Database error: Failed to connect to aad-sql"
    assert result["orderNumber"] == "O1"


def test_ship_requires_identifiers():
    with pytest.raises(BadRequestError, match="orderNumber is required"):
        OrderActions(DownFactory(), TARGETS).ship_order("W1", "")
