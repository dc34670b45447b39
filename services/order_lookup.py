from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from core.errors import BadRequestError, ConfigurationError, ConnectionUnavailableError
from core.logging_config import logger
from core.utils import is_blank, to_display_value
from retrieval.connections import fetch_dicts, read_uncommitted

STACKS = ("aad", "io", "both")
SEARCH_TYPES = ("order", "oms", "container")


@dataclass(frozen=True)
class StackTargets:
    """Hosts and databases of the two non-prod stacks the test tools talk to."""

    aad_server: str
    aad_database: str
    io_server: str
    io_database: str
    gateway_url: str = ""

    def aad(self):
        if not self.aad_server:
            raise ConfigurationError("AAD server not configured. Set TEST_TOOLS_AAD_SERVER in the environment or .env")
        return self.aad_server, self.aad_database

    def io(self):
        if not self.io_server:
            raise ConfigurationError("IO server not configured. Set TEST_TOOLS_IO_SERVER in the environment or .env")
        return self.io_server, self.io_database

    def label(self, stack):
        server, database = self.aad() if stack == "aad" else self.io()
        return f"{server} / {database}"


def query_table(conn, sql, params=None) -> dict:
    """
    Run one dump query. A failing query becomes an empty table carrying its error.
    Repeated column names get the column position appended.
    """
    try:
        result = conn.execute(text(sql), params or {})
        columns = []
        for i, name in enumerate(result.keys(), start=1):
            columns.append(f"{name}_{i}" if name in columns else name)
        rows = [
            {col: to_display_value(value) for col, value in zip(columns, row)}
            for row in result
        ]
        return {"columns": columns, "rows": rows, "rowCount": len(rows)}
    except SQLAlchemyError as e:
        logger.warning(f"[TEST-TOOLS] Query failed: {sql[:80]} - {e}")
        return {"columns": [], "rows": [], "rowCount": 0, "error": str(e)}


def named_table(conn, key, display_name, source, group, sql, params=None) -> dict:
    table = query_table(conn, sql, params)
    table.update({"name": key, "displayName": display_name, "source": source, "group": group})
    return table


def error_table(key, display_name, source, group, message) -> dict:
    return {
        "name": key, "displayName": display_name, "source": source, "group": group,
        "columns": [], "rows": [], "rowCount": 0, "error": message,
    }


# key, display name, group, sql
AAD_ORDER_TABLES = [
    ("aad_pick_container", "Pick Container", "Pick & Container",
     "SELECT TOP 100 * FROM t_pick_container WHERE wh_id = :wh_id AND order_number = :order_number"),
    ("aad_pick_detail", "Pick Detail", "Pick & Container",
     "SELECT TOP 100 * FROM t_pick_detail WHERE wh_id = :wh_id AND order_number = :order_number"),
    ("aad_al_host_order_master", "Import Order Master", "Import",
     "SELECT TOP 100 * FROM t_al_host_order_master WHERE wh_id = :wh_id AND order_number = :order_number"),
    ("aad_al_host_order_detail", "Import Order Detail", "Import",
     "SELECT TOP 100 import_notes, * FROM t_al_host_order_detail WHERE wh_id = :wh_id AND order_number = :order_number"),
    ("aad_order", "Order", "Order",
     "SELECT TOP 100 * FROM t_order WHERE wh_id = :wh_id AND order_number = :order_number"),
    ("aad_order_detail", "Order Detail", "Order",
     "SELECT TOP 100 oms_order_number, * FROM t_order_detail WHERE wh_id = :wh_id AND order_number = :order_number"),
    ("aad_order_cancel", "Order Cancel", "Order",
     "SELECT TOP 100 * FROM t_order_cancel WHERE wh_id = :wh_id AND order_number = :order_number"),
    ("aad_order_late_cancel", "Order Late Cancel", "Order",
     "SELECT TOP 100 * FROM t_order_late_cancel WHERE wh_id = :wh_id AND order_number = :order_number"),
    ("aad_tran_log", "Transaction Log", "Logs",
     "SELECT TOP 100 * FROM t_tran_log WHERE wh_id = :wh_id AND control_number = :order_number ORDER BY tran_log_id DESC"),
]

AAD_CONTAINER_TABLES = [
    ("aad_pick_container_status_log", "Container Status Log", "Pick & Container",
     "SELECT TOP 100 * FROM t_pick_container_status_log WHERE wh_id = :wh_id AND container_id = :container_id ORDER BY unique_id DESC"),
    ("aad_hu_master", "HU Master", "Shipping",
     "SELECT TOP 100 * FROM t_hu_master WHERE wh_id = :wh_id AND hu_id = :container_id"),
    ("aad_stored_item", "Stored Item", "Shipping",
     "SELECT TOP 100 * FROM t_stored_item WHERE wh_id = :wh_id AND hu_id = :container_id"),
    ("aad_ship_confirm_queue", "Ship Confirm Queue", "Shipping",
     "SELECT TOP 100 * FROM t_pick_container_ship_confirm_queue WHERE wh_id = :wh_id AND container_id = :container_id"),
    ("aad_ship_confirm_queue_log", "Ship Confirm Queue Log", "Shipping",
     "SELECT TOP 100 * FROM t_pick_container_ship_confirm_queue_log WHERE wh_id = :wh_id AND container_id = :container_id"),
    ("aad_ship_confirm_log", "Ship Confirm Log", "Shipping",
     "SELECT TOP 100 * FROM t_pick_container_ship_confirm_log WHERE wh_id = :wh_id AND container_id = :container_id"),
    ("aad_divert_reason", "Divert Reason", "Shipping",
     "SELECT TOP 100 * FROM t_pick_container_divert_reason WHERE wh_id = :wh_id AND container_id = :container_id"),
]

EXCEPTION_LOG_SQL = "SELECT TOP 100 * FROM t_exception_log WHERE wh_id = :wh_id AND {match} ORDER BY exception_id DESC"

OO_NODE = "(SELECT TOP 1 hjs_node_id FROM t_xml_imp_oo_master WHERE OrderNumber = :order_number)"
OO_PARENT = "(SELECT TOP 1 hjs_parent_id FROM t_xml_imp_oo_master WHERE OrderNumber = :order_number)"

IO_ORDER_TABLES = [
    ("io_event_queue", "Event Queue (Pre-Processing)", "Pre-Processing",
     "SELECT TOP 50 * FROM ADV..t_event_queue WHERE event_data LIKE '%' + :order_number + '%'"),
    ("io_xml_imp_oo_master", "XML Import OO Master", "Pre-Processing",
     "SELECT TOP 50 * FROM t_xml_imp_oo_master WHERE OrderNumber = :order_number"),
    ("io_xml_imp_oo_info", "XML Import OO Info", "Pre-Processing",
     f"SELECT TOP 50 * FROM t_xml_imp_oo_info WHERE hjs_parent_id = {OO_NODE}"),
    ("io_xml_imp_oo_details", "XML Import OO Details", "Pre-Processing",
     f"SELECT TOP 50 * FROM t_xml_imp_oo_details WHERE hjs_parent_id = {OO_NODE}"),
    ("io_link_work_queue", "Link Work Queue", "Pre-Processing",
     f"SELECT TOP 50 * FROM t_link_work_queue WHERE event_type = 1 AND event_data = {OO_PARENT} "
     "AND date_added > GETDATE() - 7"),
    ("io_event_queue_cls", "Event Queue (Class 6)", "Pre-Processing",
     "SELECT TOP 50 * FROM ADV..t_event_queue WHERE event_class = 6 AND event_data = "
     "(SELECT CONCAT(N'SYS_EVENT_ID|', CONVERT(NVARCHAR(50), l.event_id)) "
     f"FROM t_link_work_queue l WHERE event_type = 1 AND event_data = {OO_PARENT} "
     "AND date_added > GETDATE() - 7)"),
    ("io_cls_xml_log", "CLS XML Log", "Queues",
     "SELECT TOP 50 * FROM WMS_LOG..t_cls_xml_log WHERE order_number = :order_number AND wh_id = :wh_id ORDER BY 2"),
    ("io_cls_rate_queue", "CLS Rate Queue", "Queues",
     "SELECT TOP 50 * FROM t_cls_rate_queue WHERE order_number = :order_number AND wh_id = :wh_id ORDER BY 2"),
    ("io_al_order_import_queue", "Order Import Queue", "Queues",
     "SELECT TOP 50 * FROM t_al_order_import_queue WHERE order_number = :order_number AND wh_id = :wh_id"),
    ("io_container_optimize_queue", "Container Optimize Queue", "Queues",
     "SELECT TOP 50 * FROM t_container_optimize_queue WHERE order_number = :order_number AND wh_id = :wh_id"),
    ("io_cls_rate_order_queue", "CLS Rate Order Queue", "Queues",
     "SELECT TOP 50 * FROM t_cls_rate_order_queue WHERE order_number = :order_number AND wh_id = :wh_id"),
    ("io_cls_manifest_queue", "CLS Manifest Queue", "Queues",
     "SELECT TOP 50 * FROM t_cls_manifest_queue WHERE order_number = :order_number AND wh_id = :wh_id"),
    ("io_cls_rate_hold_queue", "CLS Rate Hold Queue", "Queues",
     "SELECT TOP 50 * FROM t_cls_rate_hold_queue WHERE order_number = :order_number AND wh_id = :wh_id"),
    ("io_export_order_queue", "Export Order Queue", "Queues",
     "SELECT TOP 50 * FROM t_export_order_queue WHERE order_number = :order_number AND wh_id = :wh_id"),
    ("io_al_host_order_master", "Import Order Master", "Order (IO)",
     "SELECT TOP 100 import_notes, * FROM t_al_host_order_master WHERE order_number = :order_number AND wh_id = :wh_id"),
    ("io_al_host_order_detail", "Import Order Detail", "Order (IO)",
     "SELECT TOP 100 import_notes, * FROM t_al_host_order_detail WHERE order_number = :order_number AND wh_id = :wh_id"),
    ("io_order", "Order", "Order (IO)",
     "SELECT TOP 100 cold_profile, express_eligible, * FROM t_order WHERE order_number = :order_number AND wh_id = :wh_id"),
    ("io_order_detail", "Order Detail", "Order (IO)",
     "SELECT TOP 100 * FROM t_order_detail WHERE order_number = :order_number AND wh_id = :wh_id"),
    ("io_pick_detail", "Pick Detail (with UOM)", "Pick & Container (IO)",
     "SELECT TOP 100 * FROM t_pick_detail pkd INNER JOIN t_item_uom uom "
     "ON uom.wh_id = pkd.wh_id AND uom.item_number = pkd.item_number "
     "WHERE pkd.order_number = :order_number AND pkd.wh_id = :wh_id"),
    ("io_pick_container", "Pick Container", "Pick & Container (IO)",
     "SELECT TOP 100 service_level, transit_days, sat_delivery_flag, * FROM t_pick_container "
     "WHERE order_number = :order_number AND wh_id = :wh_id"),
]

IO_CONTAINER_LABEL = (
    "io_pick_container_label", "Pick Container Label", "Pick & Container (IO)",
    "SELECT TOP 100 * FROM t_pick_container_label WHERE container_id = :container_id AND wh_id = :wh_id",
)

IO_WORK_QUEUE = (
    "io_work_queue", "Work Queue", "Pick & Container (IO)",
    "SELECT TOP 100 wkq.* FROM t_work_q wkq INNER JOIN t_pick_detail pkd "
    "ON pkd.work_q_id = wkq.work_q_id AND pkd.wh_id = wkq.wh_id "
    "WHERE pkd.order_number = :order_number AND pkd.wh_id = :wh_id",
)


def _first(rows, column):
    if not rows or rows[0].get(column) is None:
        return None
    return str(rows[0][column])


def resolve_identifiers(conn, search_type, search_value, warehouse_id):
    """(order_number, container_id, wh_id) for a search; unknown parts come back None."""
    order_number, container_id, wh_id = None, None, warehouse_id
    if search_type == "oms":
        rows = fetch_dicts(conn, "SELECT TOP 1 order_number, wh_id FROM t_order_detail WHERE oms_order_number = :value",
                           {"value": search_value})
        if rows:
            order_number, wh_id = _first(rows, "order_number"), _first(rows, "wh_id")
    elif search_type == "container":
        container_id = search_value
        rows = fetch_dicts(conn, "SELECT TOP 1 order_number FROM t_pick_container WHERE wh_id = :wh_id AND container_id = :value",
                           {"wh_id": warehouse_id, "value": search_value})
        order_number = _first(rows, "order_number")
    else:
        order_number = search_value
        rows = fetch_dicts(conn, "SELECT TOP 1 container_id FROM t_pick_container WHERE wh_id = :wh_id AND order_number = :value",
                           {"wh_id": warehouse_id, "value": search_value})
        container_id = _first(rows, "container_id")
    return order_number, container_id, wh_id


def aad_tables(conn, order_number, container_id, wh_id):
    tables = []
    if wh_id is None:
        return tables
    params = {"wh_id": wh_id, "order_number": order_number, "container_id": container_id}
    if order_number is not None:
        for key, display, group, sql in AAD_ORDER_TABLES:
            tables.append(named_table(conn, key, display, "AAD", group, sql, params))
    if container_id is not None:
        for key, display, group, sql in AAD_CONTAINER_TABLES:
            tables.append(named_table(conn, key, display, "AAD", group, sql, params))

    if order_number is not None and container_id is not None:
        match = "(control_number = :order_number OR hu_id = :container_id)"
    elif order_number is not None:
        match = "control_number = :order_number"
    else:
        match = "hu_id = :container_id"
    tables.append(named_table(conn, "aad_exception_log", "Exception Log", "AAD", "Logs",
                              EXCEPTION_LOG_SQL.format(match=match), params))
    return tables


def io_tables(conn, order_number, container_id, wh_id):
    if order_number is None or wh_id is None:
        return []
    params = {"wh_id": wh_id, "order_number": order_number, "container_id": container_id}
    specs = list(IO_ORDER_TABLES)
    if container_id is not None:
        specs.append(IO_CONTAINER_LABEL)
    specs.append(IO_WORK_QUEUE)
    return [named_table(conn, key, display, "IO", group, sql, params) for key, display, group, sql in specs]


class OrderLookup:
    """Resolve an order on the AAD/IO stacks and dump every table that mentions it."""

    def __init__(self, factory, targets: StackTargets):
        self.factory = factory
        self.targets = targets

    def lookup(self, search_type, search_value, warehouse_id=None, stack="both") -> dict:
        search_type = (search_type or "order").lower()
        stack = (stack or "both").lower()
        if search_type not in SEARCH_TYPES:
            raise BadRequestError(f"Unknown searchType '{search_type}', expected one of {', '.join(SEARCH_TYPES)}")
        if stack not in STACKS:
            raise BadRequestError(f"Unknown stack '{stack}', expected one of {', '.join(STACKS)}")
        if is_blank(search_value):
            raise BadRequestError("searchValue is required")
        search_value = search_value.strip()
        warehouse_id = None if is_blank(warehouse_id) else warehouse_id.strip()

        query_aad = stack in ("aad", "both")
        query_io = stack in ("io", "both")
        response = {
            "searchType": search_type,
            "searchValue": search_value,
            "stack": stack,
            "queriedAt": datetime.now().isoformat(),
        }
        if query_aad:
            response["aadConnection"] = self.targets.label("aad")
        if query_io:
            response["ioConnection"] = self.targets.label("io")

        server, database = self.targets.aad() if query_aad else self.targets.io()
        try:
            with self.factory.connect_host(server, database) as conn:
                order_number, container_id, wh_id = resolve_identifiers(
                    read_uncommitted(conn), search_type, search_value, warehouse_id)
        except (SQLAlchemyError, ConnectionUnavailableError) as e:
            response["error"] = f"Failed to resolve identifiers: {e}"
            return response

        response.update({"warehouseId": wh_id, "orderNumber": order_number, "containerId": container_id})
        if order_number is None and container_id is None:
            response["error"] = "Could not resolve order/container from search. No matching records found."
            return response
        logger.info(f"[TEST-TOOLS] Resolved wh={wh_id}, order={order_number}, container={container_id}, stack={stack}")

        tables = []
        if query_aad:
            tables += self._stack_tables("aad", aad_tables, order_number, container_id, wh_id)
        if query_io:
            tables += self._stack_tables("io", io_tables, order_number, container_id, wh_id)
        response["tables"] = tables
        logger.info(f"[TEST-TOOLS] Order lookup complete: {len(tables)} tables returned for stack={stack}")
        return response

    def _stack_tables(self, stack, builder, order_number, container_id, wh_id):
        server, database = self.targets.aad() if stack == "aad" else self.targets.io()
        try:
            with self.factory.connect_host(server, database) as conn:
                return builder(read_uncommitted(conn), order_number, container_id, wh_id)
        except (SQLAlchemyError, ConnectionUnavailableError) as e:
            logger.error(f"[TEST-TOOLS] {stack.upper()} connection failed: {e}")
            label = stack.upper()
            return [error_table(f"{stack}_connection", f"{label} Connection Error", label, "Connection",
                                f"Failed to connect to {server}: {e}")]

    def check_connections(self) -> dict:
        result = {
            "ioServer": self.targets.io_server,
            "ioDatabase": self.targets.io_database,
            "aadServer": self.targets.aad_server,
            "aadDatabase": self.targets.aad_database,
        }
        for stack in ("io", "aad"):
            try:
                server, database = self.targets.aad() if stack == "aad" else self.targets.io()
                with self.factory.connect_host(server, database) as conn:
                    conn.execute(text("SELECT 1"))
                result[f"{stack}Status"] = "Connected"
            except (SQLAlchemyError, ConnectionUnavailableError, ConfigurationError) as e:
                result[f"{stack}Status"] = f"Failed: {e}"
        return result
