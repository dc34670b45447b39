import urllib.error
import urllib.request
from xml.sax.saxutils import escape

from sqlalchemy.exc import SQLAlchemyError

from core.errors import BadRequestError, ConfigurationError, ConnectionUnavailableError
from core.logging_config import logger
from core.utils import is_blank, to_display_value
from retrieval.connections import fetch_dicts, read_uncommitted
from services.order_lookup import StackTargets

GATEWAY_TIMEOUT_SECONDS = 30

ITEM_DEFAULTS = {
    "weight": "1.0",
    "length": "10.0",
    "width": "10.0",
    "height": "10.0",
    "uom": "EA",
    "inventoryType": "FG",
    "frozen": "N",
    "fresh": "N",
    "hazmat": "No",
}

IMPORT_ITEM_TEMPLATE = """<?xml version="1.0"?>
<import_item>
\t<item_master>
\t\t<ItemNumber>{item}</ItemNumber>
\t\t<DisplayItemNumber>{item}</DisplayItemNumber>
\t\t<WarehouseID>{wh}</WarehouseID>
\t\t<item_info>
\t\t\t<TransactionCode>NEW</TransactionCode>
\t\t\t<Description>{description}</Description>
\t\t\t<DefaultBaseUOM>{uom}</DefaultBaseUOM>
\t\t\t<InventoryType>{inventoryType}</InventoryType>
\t\t\t<Price/>
\t\t\t<AltItemNumber></AltItemNumber>
\t\t\t<UPC>{item}</UPC>
\t\t\t<HazMatIndicator>{hazmat}</HazMatIndicator>
\t\t\t<UnitVolume/>
\t\t\t<Frozen>{frozen}</Frozen>
\t\t\t<Fresh>{fresh}</Fresh>
\t\t\t<VelocityCode/>
\t\t\t<SpeciesApplicable></SpeciesApplicable>
\t\t\t<TherapeuticClass></TherapeuticClass>
\t\t</item_info>
\t\t<item_uoms>
\t\t\t<item_uom>
\t\t\t\t<TransactionCode>NEW</TransactionCode>
\t\t\t\t<UOM>{uom}</UOM>
\t\t\t\t<ConversionFactor>1</ConversionFactor>
\t\t\t\t<Weight>{weight}</Weight>
\t\t\t\t<Length>{length}</Length>
\t\t\t\t<Width>{width}</Width>
\t\t\t\t<Height>{height}</Height>
\t\t\t\t<Pattern>STANDARD</Pattern>
\t\t\t\t<ExcludeFromMailers>NO</ExcludeFromMailers>
\t\t\t</item_uom>
\t\t</item_uoms>
\t\t<item_orientation>
\t\t\t<TransactionCode>NEW</TransactionCode>
\t\t</item_orientation>
\t</item_master>
</import_item>"""

XML_ENTITIES = {'"': "&quot;", "'": "&apos;"}


def _esc(value) -> str:
    return escape(str(value or ""), XML_ENTITIES)


def _param(params, key, default=None):
    value = params.get(key)
    if value is None or not str(value).strip():
        return default
    return str(value).strip()


def build_import_xml(item_number, warehouse_id, **fields) -> str:
    values = {k: _esc(v) for k, v in fields.items()}
    return IMPORT_ITEM_TEMPLATE.format(item=_esc(item_number), wh=_esc(warehouse_id), **values)


class ItemImporter:
    """Looks items up on the AAD stack and pushes new ones through the XML gateway."""

    def __init__(self, factory, targets: StackTargets, timeout=GATEWAY_TIMEOUT_SECONDS):
        self.factory = factory
        self.targets = targets
        self.timeout = timeout

    def lookup_item(self, item_number, warehouse_id=None) -> dict:
        if is_blank(item_number):
            raise BadRequestError("itemNumber is required")
        item_number = item_number.strip()
        has_wh = not is_blank(warehouse_id)
        params = {"item_number": item_number}
        where = "item_number = :item_number"
        if has_wh:
            params["wh_id"] = warehouse_id.strip()
            where += " AND wh_id = :wh_id"
        logger.info(f"[TEST-TOOLS] Item lookup: item={item_number}, wh={warehouse_id}")

        server, database = self.targets.aad()
        try:
            with self.factory.connect_host(server, database) as conn:
                conn = read_uncommitted(conn)
                items = fetch_dicts(conn, f"SELECT TOP 100 * FROM t_item_master WHERE {where}", params)
                uoms = fetch_dicts(conn, f"SELECT TOP 100 * FROM t_item_uom WHERE {where}", params)
        except (SQLAlchemyError, ConnectionUnavailableError) as e:
            logger.error(f"[TEST-TOOLS] Error looking up item {item_number}: {e}")
            return {"success": False, "error": str(e)}

        result = {
            "connection": self.targets.label("aad"),
            "itemMaster": [{k: to_display_value(v) for k, v in row.items()} for row in items],
            "itemUom": [{k: to_display_value(v) for k, v in row.items()} for row in uoms],
            "found": bool(items),
            "success": True,
        }
        if not items:
            result["message"] = (
                f"Item {item_number} not found in warehouse {warehouse_id}" if has_wh
                else f"Item {item_number} not found in any warehouse"
            )
            return result

        warehouses = []
        for row in items:
            wh = row.get("wh_id")
            if wh is not None and str(wh).strip() not in warehouses:
                warehouses.append(str(wh).strip())
        result["warehouses"] = warehouses
        result["message"] = f"Item {item_number} found in {len(warehouses)} warehouse(s): {', '.join(warehouses)}"
        return result

    def import_item(self, params: dict) -> dict:
        """POST one import document per warehouse; partial success is still success."""
        item_number = _param(params, "itemNumber")
        warehouses = [w.strip() for w in (params.get("warehouses") or []) if not is_blank(w)]
        if not item_number:
            raise BadRequestError("itemNumber is required")
        if not warehouses:
            raise BadRequestError("At least one warehouse is required")
        if not self.targets.gateway_url:
            raise ConfigurationError("XML gateway not configured. Set TEST_TOOLS_GATEWAY_URL in the environment or .env")

        fields = {key: _param(params, key, default) for key, default in ITEM_DEFAULTS.items()}
        fields["description"] = _param(params, "description", f"Imported Item {item_number}")
        logger.info(f"[TEST-TOOLS] Import item {item_number} to {warehouses} via {self.targets.gateway_url}")

        results = []
        for wh in warehouses:
            xml = build_import_xml(item_number, wh, **fields)
            results.append(self._post(item_number, wh, xml))

        success_count = sum(1 for r in results if r.get("success"))
        return {
            "success": success_count > 0,
            "totalWarehouses": len(warehouses),
            "successCount": success_count,
            "failCount": len(warehouses) - success_count,
            "results": results,
        }

    def _post(self, item_number, wh, xml) -> dict:
        result = {"warehouseId": wh, "xmlSent": xml}
        request = urllib.request.Request(
            self.targets.gateway_url,
            data=xml.encode("utf-8"),
            headers={"Content-Type": "text/xml"},
            method="POST",
        )
        try:
            with urllib.request.urlopen(request, timeout=self.timeout) as response:
                status = response.status
                body = response.read().decode("utf-8", errors="replace")
        except urllib.error.HTTPError as e:
            status = e.code
            body = e.read().decode("utf-8", errors="replace")
        except (urllib.error.URLError, OSError) as e:
            logger.error(f"[TEST-TOOLS] Error importing item {item_number} to {wh}: {e}")
            result.update({"success": False, "error": str(e)})
            return result

        logger.info(f"[TEST-TOOLS] Import item {item_number} to {wh}: HTTP {status}")
        result.update({"statusCode": status, "response": body, "success": 200 <= status < 300})
        return result
