from typing import Dict, List

from sqlalchemy import text

from core.logging_config import logger
from core.models import OrderImportRow, QueueStatusEntry, XmlLogEntry
from services.order_aggregation import dedupe_queue_rows

_STUCK_ORDER_QUERY = """
;WITH CTE AS (SELECT wh_id, order_number, inserted_datetime, updated_datetime, import_status
FROM t_order_import_queue oiq
WHERE
    ((inserted_datetime < DATEADD(MINUTE, -10, GETDATE()) AND import_status = 'XML_PARSED')
    OR (updated_datetime < DATEADD(MINUTE, -10, GETDATE()) AND import_status <> 'XML_PARSED'))
    AND {hold_filter} (
        SELECT * FROM dbo.t_cls_rate_hold_queue rhq
        WHERE rhq.wh_id = oiq.wh_id
        AND rhq.order_number = oiq.order_number))
SELECT top 1000 CTE.wh_id, CTE.order_number, pkd.item_number, cls.xml_message, cls.xml_response, error_text,
    import_status, inserted_datetime, updated_datetime, cls.insert_datetime as cls_insert_datetime from CTE
join dbo.t_cls_xml_log cls on cls.order_number = CTE.order_number and cls.wh_id = CTE.wh_id
left join dbo.t_pick_detail pkd on pkd.order_number = CTE.order_number and pkd.wh_id = CTE.wh_id
order by CTE.order_number
"""

# Stuck orders not parked on the rate-hold queue
RATE_QUERY = _STUCK_ORDER_QUERY.format(hold_filter="NOT EXISTS")
# Stuck orders parked on the rate-hold queue
RATE_HOLD_QUERY = _STUCK_ORDER_QUERY.format(hold_filter="EXISTS")

XML_LOG_QUERY = """
SELECT wh_id, order_number, request_type, request_sproc, xml_message, xml_response, error_text, insert_datetime
FROM dbo.t_cls_xml_log
WHERE order_number = :order_number AND wh_id = :wh_id
ORDER BY insert_datetime DESC
"""

# queue type -> table, in display order
QUEUE_TABLES = {
    "rate": "t_cls_rate_queue",
    "2nd rate": "t_cls_rate_order_queue",
    "rerate": "t_cls_rerate_order_queue",
    "manifest": "t_cls_manifest_queue",
    "remanifest": "t_cls_remanifest_queue",
    "release": "t_cls_release_queue",
}


def queue_query(queue_type: str, table: str) -> str:
    return (
        f"SELECT '{queue_type}' as type, q.wh_id, q.order_number, cls.xml_response, cls.xml_message "
        f"FROM {table} q "
        "JOIN dbo.t_cls_xml_log cls ON cls.order_number = q.order_number AND cls.wh_id = q.wh_id "
        "WHERE q.attempts > 2 ORDER BY q.order_number"
    )


def _str_or_none(value):
    return str(value) if value is not None else None


def _to_order_import_row(row) -> OrderImportRow:
    return OrderImportRow(
        wh_id=_str_or_none(row[0]),
        order_number=_str_or_none(row[1]),
        item_number=_str_or_none(row[2]),
        xml_message=_str_or_none(row[3]),
        xml_response=_str_or_none(row[4]),
        error_text=_str_or_none(row[5]),
        import_status=_str_or_none(row[6]),
        inserted_datetime=row[7],
        updated_datetime=row[8],
        cls_insert_datetime=row[9],
    )


def _run_stuck_order_query(conn, sql, label) -> List[OrderImportRow]:
    logger.debug(f"[CLS] Executing {label} SQL")
    try:
        rows = conn.execute(text(sql)).fetchall()
    except Exception as e:
        logger.exception(f"[CLS] Error executing {label}")
        raise RuntimeError(f"Failed to execute {label}: {e}") from e
    logger.debug(f"[CLS] {label} returned {len(rows)} raw rows")
    return [_to_order_import_row(r) for r in rows]


def fetch_rate_rows(conn) -> List[OrderImportRow]:
    return _run_stuck_order_query(conn, RATE_QUERY, "rate query")


def fetch_rate_hold_rows(conn) -> List[OrderImportRow]:
    return _run_stuck_order_query(conn, RATE_HOLD_QUERY, "rate hold query")


def fetch_xml_logs(conn, order_number, wh_id) -> List[XmlLogEntry]:
    result = conn.execute(text(XML_LOG_QUERY), {"order_number": order_number, "wh_id": wh_id})
    return [
        XmlLogEntry(
            wh_id=_str_or_none(r[0]),
            order_number=_str_or_none(r[1]),
            request_type=_str_or_none(r[2]),
            request_sproc=_str_or_none(r[3]),
            xml_message=_str_or_none(r[4]),
            xml_response=_str_or_none(r[5]),
            error_text=_str_or_none(r[6]),
            insert_datetime=r[7],
        )
        for r in result.fetchall()
    ]


def fetch_queue_statuses(conn) -> Dict[str, List[QueueStatusEntry]]:
    """
    Orders with more than two attempts on each CLS queue. A failing queue is
    logged and reported as empty so the other queues still show.
    """
    results = {}
    for queue_type, table in QUEUE_TABLES.items():
        try:
            rows = conn.execute(text(queue_query(queue_type, table))).fetchall()
            results[queue_type] = dedupe_queue_rows(queue_type, rows)
        except Exception as e:
            logger.error(f"[CLS] Error querying queue '{queue_type}': {e}")
            results[queue_type] = []
    return results
