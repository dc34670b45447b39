from datetime import datetime

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from core.errors import BadRequestError, ConnectionUnavailableError
from core.logging_config import logger
from core.utils import is_blank, to_display_value
from retrieval.connections import fetch_dicts
from services.order_lookup import StackTargets

SETUP_TYPES = {"normal": "Normal", "short_ship": "Short Ship", "floor_deny": "Floor Deny"}
DEFAULT_CONTAINER_TYPE = "BOX04"
CALLER = "warehouse-ops-test-tools"

SHIP_ORDER_SQL = (
    "SET NOCOUNT ON; DECLARE @rv INT; "
    "EXEC @rv = dbo.usp_nonprod_order_ship :wh_id, :order_number; "
    "SELECT @rv AS return_value"
)
SHIP_CONTAINER_SQL = (
    "SET NOCOUNT ON; DECLARE @rv INT; "
    "EXEC @rv = dbo.usp_nonprod_container_ship :wh_id, :container_id; "
    "SELECT @rv AS return_value"
)
FULFILLMENT_EVENT_SQL = (
    "SET NOCOUNT ON; "
    "DECLARE @v_tvContainers dbo.udtt_container_status_update; "
    "DECLARE @v_vchMsg dbo.uddt_output_msg; "
    "INSERT INTO @v_tvContainers(container_id, wh_id, fulfillment_status, fulfillment_status_update_date, profile_name) "
    "SELECT TOP 1 pkc.container_id, pkc.wh_id, :status_code, GETDATE(), NULL "
    "FROM dbo.t_pick_container pkc WHERE pkc.wh_id = :wh_id AND pkc.container_id = :container_id; "
    "EXEC dbo.usp_pick_container_fulfillment_status_update "
    f"@in_vchCaller = '{CALLER}', "
    "@in_tvContainerStatus = @v_tvContainers, "
    "@in_nLogLevel = 3, "
    "@out_vchMessage = @v_vchMsg OUTPUT; "
    "SELECT @v_vchMsg AS outputMessage"
)

HU_MASTER_EXISTS = "SELECT 1 FROM t_hu_master WHERE wh_id = :wh_id AND hu_id = :hu_id AND type = 'SO' AND control_number = :order_number"
HU_MASTER_INSERT = (
    "INSERT INTO t_hu_master (hu_id, type, control_number, location_id, subtype, status, fifo_date, wh_id, container_type) "
    "VALUES (:hu_id, 'SO', :order_number, 'PACKING1', 'T', 'A', CONVERT(DATE, GETDATE()), :wh_id, :container_type)"
)
STORED_ITEM_EXISTS = "SELECT 1 FROM t_stored_item WHERE type = :pick_id AND wh_id = :wh_id AND hu_id = :hu_id"
STORED_ITEM_INSERT = (
    "INSERT INTO t_stored_item (item_number, actual_qty, status, wh_id, location_id, fifo_date, type, hu_id, lot_number) "
    "VALUES (:item_number, :qty, 'A', :wh_id, 'PACKING1', CONVERT(DATE, GETDATE()), :pick_id, :hu_id, '1')"
)


def display_rows(conn, sql, params=None):
    return [{k: to_display_value(v) for k, v in row.items()} for row in fetch_dicts(conn, sql, params)]


def _require(**values):
    for name, value in values.items():
        if is_blank(value):
            raise BadRequestError(f"{name} is required")


def setup_quantity(setup_type, planned_quantity, quantity_override=None) -> int:
    """Stored quantity for one pick: short ships hold one back, floor denies hold none."""
    if quantity_override is not None:
        return int(quantity_override)
    planned = int(float(planned_quantity or 0))
    if setup_type == "short_ship" and planned > 1:
        return planned - 1
    if setup_type == "floor_deny":
        return 0
    return planned


class OrderActions:
    """Write-side test tools against the AAD stack: ship, set up stock, send fulfillment events."""

    def __init__(self, factory, targets: StackTargets):
        self.factory = factory
        self.targets = targets

    def _connect(self):
        server, database = self.targets.aad()
        return self.factory.connect_host(server, database)

    # === Ship ===
    def ship_order(self, warehouse_id, order_number) -> dict:
        _require(warehouseId=warehouse_id, orderNumber=order_number)
        response = {"warehouseId": warehouse_id, "orderNumber": order_number, "executedAt": datetime.now().isoformat()}
        logger.info(f"[TEST-TOOLS] Ship order: wh={warehouse_id}, order={order_number}")
        return self._ship(response, SHIP_ORDER_SQL, {"wh_id": warehouse_id, "order_number": order_number}, "Order")

    def ship_container(self, warehouse_id, container_id) -> dict:
        _require(warehouseId=warehouse_id, containerId=container_id)
        response = {"warehouseId": warehouse_id, "containerId": container_id, "executedAt": datetime.now().isoformat()}
        logger.info(f"[TEST-TOOLS] Ship container: wh={warehouse_id}, container={container_id}")
        return self._ship(response, SHIP_CONTAINER_SQL, {"wh_id": warehouse_id, "container_id": container_id}, "Container")

    def _ship(self, response, sql, params, subject):
        try:
            with self._connect() as conn:
                return_value = conn.execute(text(sql), params).scalar()
                conn.commit()
        except (SQLAlchemyError, ConnectionUnavailableError) as e:
            logger.error(f"[TEST-TOOLS] Error shipping {subject.lower()} {params}: {e}")
            response.update({"success": False, "message": f"Database error: {e}"})
            return response
        return_value = int(return_value) if return_value is not None else None
        response["returnValue"] = return_value
        response["success"] = return_value == 0
        response["message"] = (
            f"{subject} shipped successfully" if return_value == 0 else f"Stored procedure returned {return_value}"
        )
        return response

    # === Resolve ===
    def resolve_order(self, search_type, search_value, warehouse_id=None) -> dict:
        _require(searchValue=search_value)
        search_type = (search_type or "order").lower()
        wh_id = None if is_blank(warehouse_id) else warehouse_id.strip()
        logger.info(f"[TEST-TOOLS] Resolve order: type={search_type}, value={search_value}, wh={wh_id}")

        try:
            with self._connect() as conn:
                order_number, container_id = None, None
                if search_type in ("oms", "container"):
                    column = "oms_order_number" if search_type == "oms" else "container_id"
                    table = "t_order_detail" if search_type == "oms" else "t_pick_container"
                    sql = f"SELECT TOP 1 order_number, wh_id FROM {table} WHERE {column} = :value"
                    params = {"value": search_value}
                    if wh_id:
                        sql += " AND wh_id = :wh_id"
                        params["wh_id"] = wh_id
                    if search_type == "container":
                        container_id = search_value
                    rows = display_rows(conn, sql, params)
                    if rows:
                        order_number, wh_id = rows[0]["order_number"], rows[0]["wh_id"]
                else:
                    order_number = search_value

                if order_number is None and container_id is None:
                    return {"success": False, "error": f"Could not resolve order from {search_type} = {search_value}"}

                if container_id is None:
                    rows = display_rows(
                        conn,
                        "SELECT TOP 1 container_id FROM t_pick_container WHERE order_number = :order_number AND wh_id = :wh_id",
                        {"order_number": order_number, "wh_id": wh_id},
                    )
                    container_id = rows[0]["container_id"] if rows else None

                result = {
                    "success": True,
                    "orderNumber": order_number,
                    "containerId": container_id,
                    "warehouseId": wh_id,
                    "connection": self.targets.label("aad"),
                }
                by_order = {"wh_id": wh_id, "order_number": order_number}
                if order_number is not None:
                    result["pickContainers"] = display_rows(
                        conn, "SELECT * FROM t_pick_container WHERE wh_id = :wh_id AND order_number = :order_number", by_order)
                    result["pickDetails"] = display_rows(
                        conn, "SELECT * FROM t_pick_detail WHERE wh_id = :wh_id AND order_number = :order_number", by_order)
                    result["orders"] = display_rows(
                        conn, "SELECT * FROM t_order WHERE wh_id = :wh_id AND order_number = :order_number", by_order)
                if container_id is not None:
                    by_hu = {"wh_id": wh_id, "hu_id": container_id}
                    result["huMaster"] = display_rows(conn, "SELECT * FROM t_hu_master WHERE wh_id = :wh_id AND hu_id = :hu_id", by_hu)
                    result["storedItems"] = display_rows(conn, "SELECT * FROM t_stored_item WHERE wh_id = :wh_id AND hu_id = :hu_id", by_hu)
                return result
        except (SQLAlchemyError, ConnectionUnavailableError) as e:
            logger.error(f"[TEST-TOOLS] Error resolving order: {e}")
            return {"success": False, "error": f"Database error: {e}"}

    # === Setup ===
    def setup_order(self, warehouse_id, order_number, setup_type="normal", container_id=None,
                    item_override=None, quantity_override=None) -> dict:
        """
        Insert hu_master / stored_item rows so an order can be shipped, short shipped or floor denied.
        Existing rows are skipped; everything runs in one transaction.
        """
        _require(warehouseId=warehouse_id, orderNumber=order_number)
        setup_type = (setup_type or "normal").lower()
        if setup_type not in SETUP_TYPES:
            raise BadRequestError(f"Unknown setupType '{setup_type}', expected one of {', '.join(SETUP_TYPES)}")
        container_id = None if is_blank(container_id) else container_id.strip()
        item_override = None if is_blank(item_override) else item_override.strip()

        result = {"warehouseId": warehouse_id, "orderNumber": order_number, "setupType": setup_type}
        if container_id:
            result["containerId"] = container_id
        result["executedAt"] = datetime.now().isoformat()
        logger.info(f"[TEST-TOOLS] Setup order: wh={warehouse_id}, order={order_number}, type={setup_type}, "
                    f"container={container_id}, item={item_override}, qty={quantity_override}")

        params = {"wh_id": warehouse_id, "order_number": order_number, "container_id": container_id}
        container_filter = " AND container_id = :container_id" if container_id else ""
        hu_inserted = hu_skipped = sto_inserted = sto_skipped = 0
        debug_log = []
        try:
            with self._connect() as conn:
                with conn.begin():
                    containers = fetch_dicts(
                        conn,
                        "SELECT container_id, order_number, wh_id, container_type FROM t_pick_container "
                        "WHERE wh_id = :wh_id AND order_number = :order_number" + container_filter,
                        params,
                    )
                    if not containers:
                        suffix = f" for container {container_id}" if container_id else ""
                        result.update({"success": False, "error": f"No pick_container rows found{suffix}"})
                        return result
                    details = fetch_dicts(
                        conn,
                        "SELECT pick_id, item_number, planned_quantity, container_id, order_number, wh_id FROM t_pick_detail "
                        "WHERE wh_id = :wh_id AND order_number = :order_number" + container_filter,
                        params,
                    )

                    for pkc in containers:
                        hu_id = str(pkc["container_id"])
                        container_type = str(pkc["container_type"]) if pkc.get("container_type") is not None else DEFAULT_CONTAINER_TYPE
                        hu_params = {"wh_id": warehouse_id, "hu_id": hu_id, "order_number": order_number}
                        if conn.execute(text(HU_MASTER_EXISTS), hu_params).first() is not None:
                            hu_skipped += 1
                            debug_log.append(f"HUM skip (exists): hu_id={hu_id}")
                            continue
                        rows = conn.execute(text(HU_MASTER_INSERT), dict(hu_params, container_type=container_type)).rowcount
                        hu_inserted += rows
                        debug_log.append(f"HUM insert: hu_id={hu_id}, ctype={container_type}, rows={rows}")

                    for pkd in details:
                        item_number = str(pkd["item_number"])
                        if item_override and item_number != item_override:
                            continue
                        pick_id = str(pkd["pick_id"])
                        hu_id = str(pkd["container_id"])
                        planned = pkd.get("planned_quantity") or 0
                        qty = setup_quantity(setup_type, planned, quantity_override)
                        sto_params = {"pick_id": pick_id, "wh_id": warehouse_id, "hu_id": hu_id}
                        if conn.execute(text(STORED_ITEM_EXISTS), sto_params).first() is not None:
                            sto_skipped += 1
                            debug_log.append(f"STO skip (exists): pick_id={pick_id}, item={item_number}")
                            continue
                        rows = conn.execute(text(STORED_ITEM_INSERT),
                                            dict(sto_params, item_number=item_number, qty=qty)).rowcount
                        sto_inserted += rows
                        debug_log.append(f"STO insert: pick_id={pick_id}, item={item_number}, qty={qty} "
                                         f"(planned={int(float(planned))}), rows={rows}")

                logger.info(f"[TEST-TOOLS] Setup committed: {hu_inserted} HUM inserted, {hu_skipped} HUM skipped, "
                            f"{sto_inserted} STO inserted, {sto_skipped} STO skipped")

                verify = {"wh_id": warehouse_id, "hu_id": container_id or "", "order_number": order_number}
                verify_hum = display_rows(
                    conn,
                    "SELECT TOP 100 * FROM t_hu_master WHERE wh_id = :wh_id AND (hu_id = :hu_id OR control_number = :order_number)",
                    verify,
                )
                verify_sto = display_rows(
                    conn,
                    "SELECT TOP 100 * FROM t_stored_item WHERE wh_id = :wh_id AND hu_id IN "
                    "(SELECT hu_id FROM t_hu_master WHERE wh_id = :wh_id AND (hu_id = :hu_id OR control_number = :order_number))",
                    verify,
                )
        except (SQLAlchemyError, ConnectionUnavailableError) as e:
            logger.error(f"[TEST-TOOLS] Error setting up order data wh={warehouse_id}, order={order_number}: {e}")
            result.update({"success": False, "error": f"Database error: {e}"})
            return result

        debug_log.append(f"POST-SETUP: {len(verify_hum)} HUM rows, {len(verify_sto)} STO rows")
        result.update({
            "success": True,
            "message": (f"{SETUP_TYPES[setup_type]} setup complete: {hu_inserted} HU Master rows, "
                        f"{sto_inserted} Stored Item rows inserted ({hu_skipped + sto_skipped} skipped existing)"),
            "huMasterInserted": hu_inserted,
            "huMasterSkipped": hu_skipped,
            "storedItemInserted": sto_inserted,
            "storedItemSkipped": sto_skipped,
            "containersProcessed": len(containers),
            "detailsProcessed": len(details),
            "debugLog": debug_log,
            "verifyHuMaster": verify_hum,
            "verifyStoredItem": verify_sto,
        })
        if quantity_override is not None:
            result["quantityUsed"] = quantity_override
        if item_override:
            result["itemFiltered"] = item_override
        return result

    # === Fulfillment events ===
    def send_fulfillment_event(self, warehouse_id, container_id, status_code) -> dict:
        _require(warehouseId=warehouse_id, containerId=container_id, statusCode=status_code)
        result = {
            "warehouseId": warehouse_id,
            "containerId": container_id,
            "statusCode": status_code,
            "executedAt": datetime.now().isoformat(),
        }
        logger.info(f"[TEST-TOOLS] Fulfillment event: wh={warehouse_id}, container={container_id}, status={status_code}")
        try:
            with self._connect() as conn:
                row = conn.execute(
                    text(FULFILLMENT_EVENT_SQL),
                    {"status_code": status_code, "wh_id": warehouse_id, "container_id": container_id},
                ).mappings().first()
                conn.commit()
        except (SQLAlchemyError, ConnectionUnavailableError) as e:
            logger.error(f"[TEST-TOOLS] Error sending fulfillment event wh={warehouse_id}, container={container_id}: {e}")
            result.update({"success": False, "error": f"Database error: {e}"})
            return result

        result["success"] = True
        result["message"] = f"Fulfillment event {status_code} sent for container {container_id}"
        if row is not None and row.get("outputMessage") is not None:
            result["outputMessage"] = row["outputMessage"]
        return result
