import time
from datetime import datetime

from core.context import IO_POOL
from core.csv_utils import to_csv
from core.logging_config import logger
from retrieval.cls_queries import (
    fetch_queue_statuses,
    fetch_rate_hold_rows,
    fetch_rate_rows,
    fetch_xml_logs,
)
from retrieval.connections import read_uncommitted
from services.order_aggregation import aggregate_and_enrich, build_error_summary

CSV_HEADER = [
    "Warehouse", "Order Number", "Item Number", "Error Text", "Import Status",
    "Ship Date", "Arrival Date", "TNT", "Travel Time", "Service Level",
    "City", "State", "Postal Code", "Route",
]

QUERIES = {
    "rate": fetch_rate_rows,
    "rate-hold": fetch_rate_hold_rows,
}

EXPORT_PREFIX = {
    "rate": "cls_debugger_export",
    "rate-hold": "cls_debugger_hold_export",
}


def raw_rows(factory, kind="rate"):
    with factory.connect(IO_POOL) as conn:
        return QUERIES[kind](read_uncommitted(conn))


def enriched_orders(factory, kind="rate"):
    """
    Stuck orders of one kind, one Enriched Order per (warehouse, order).
    Steps:
      1. Run the stuck-order query on the IO pool (READ UNCOMMITTED).
      2. Group rows by warehouse and order.
      3. Enrich each group from its request / response XML.
    """
    started = time.monotonic()
    rows = raw_rows(factory, kind)
    orders = aggregate_and_enrich(rows)
    logger.info(f"[CLS] {kind}: {len(rows)} raw rows -> {len(orders)} orders in {int((time.monotonic() - started) * 1000)}ms")
    return orders


def summary(factory, kind="rate"):
    return build_error_summary(enriched_orders(factory, kind))


def csv_rows(orders):
    for o in orders:
        yield [
            o.wh_id, o.order_number, o.item_number, o.error_text, o.import_status,
            o.ship_date, o.arrive_date, o.travel_days, o.days_between, o.service_level,
            o.city, o.state, o.postal_code, o.route,
        ]


def export_filename(kind="rate", now=None) -> str:
    now = now or datetime.now()
    return f"{EXPORT_PREFIX[kind]}_{now:%Y-%m-%d_%H%M%S}.csv"


def export_csv(factory, kind="rate"):
    """(filename, csv text) for the enriched orders of one kind."""
    orders = enriched_orders(factory, kind)
    return export_filename(kind), to_csv(CSV_HEADER, csv_rows(orders))


def xml_logs(factory, order_number, wh_id):
    with factory.connect(IO_POOL) as conn:
        logs = fetch_xml_logs(read_uncommitted(conn), order_number, wh_id)
    logger.info(f"[CLS] Found {len(logs)} XML log entries for order={order_number}, wh={wh_id}")
    return logs


def queue_status(factory) -> dict:
    started = time.monotonic()
    with factory.connect(IO_POOL) as conn:
        queues = fetch_queue_statuses(read_uncommitted(conn))
    duration = int((time.monotonic() - started) * 1000)

    counts = {queue: len(entries) for queue, entries in queues.items()}
    total = sum(counts.values())
    logger.info(f"[CLS] Queue status: {total} stuck orders across {len(queues)} queues in {duration}ms")
    return {"queryTimeMs": duration, "totalStuck": total, "counts": counts, "queues": queues}


def database_test(factory) -> dict:
    """Run the rate query as a smoke test of the IO pool. Failures propagate."""
    started = time.monotonic()
    rows = raw_rows(factory, "rate")
    return {
        "connected": True,
        "message": "IO database connection successful",
        "queryTime": f"{int((time.monotonic() - started) * 1000)}ms",
        "testQueryResultCount": len(rows),
    }
