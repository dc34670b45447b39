import time

from core.context import CLS_POOL, IO_POOL
from core.logging_config import logger
from retrieval.connections import read_uncommitted
from retrieval.saturday_delivery import fetch_rate_orders, fetch_saturday_flags


def zips_by_origin(rate_orders) -> dict:
    """Distinct zips per origin, both in first-appearance order. Rows missing either are skipped."""
    grouped = {}
    for order in rate_orders:
        if order.origin is None or order.zip is None:
            continue
        zips = grouped.setdefault(order.origin, [])
        if order.zip not in zips:
            zips.append(order.zip)
    return grouped


def group_by_service(results) -> dict:
    """Service -> sorted distinct postal codes, services in sorted order."""
    grouped = {}
    for r in results:
        if r.service is None or r.postal_code is None:
            continue
        grouped.setdefault(r.service, set()).add(r.postal_code)
    return {service: sorted(codes) for service, codes in sorted(grouped.items())}


def check_saturday_deliveries(factory) -> dict:
    """
    Postal code / service pairs flagged for Saturday delivery among the orders
    waiting on the 2nd rate queue.
    Steps:
      1. Read the 2nd rate queue with each order's zip and origin (IO pool).
      2. Collect the distinct zips per origin.
      3. Look the zips up in each origin's routing guide (CLS pool).
      4. Group the flagged postal codes by service.
    A failing rate order query is reported in the body; a failing origin is
    logged and skipped.
    """
    started = time.monotonic()
    logger.info("[SATURDAY] Starting Saturday delivery check...")

    try:
        with factory.connect(IO_POOL) as conn:
            rate_orders = fetch_rate_orders(read_uncommitted(conn))
    except Exception as e:
        logger.exception(f"[SATURDAY] Failed to get rate order results: {e}")
        return {
            "error": f"Failed to query rate order results: {e}",
            "saturdayDeliveries": [],
            "queryTimeMs": int((time.monotonic() - started) * 1000),
        }

    if not rate_orders:
        logger.info("[SATURDAY] No rate order results found")
        return {
            "message": "No rate order results found",
            "saturdayDeliveries": [],
            "groupedByService": {},
            "queryTimeMs": int((time.monotonic() - started) * 1000),
        }

    origins = zips_by_origin(rate_orders)
    flagged = []
    with factory.connect(CLS_POOL) as conn:
        for origin, zips in origins.items():
            logger.debug(f"[SATURDAY] Querying routing guide for origin={origin} with {len(zips)} zips")
            try:
                flagged.extend(fetch_saturday_flags(conn, origin, zips))
            except Exception as e:
                logger.error(f"[SATURDAY] Error querying routing guide for origin={origin}: {e}")

    grouped = group_by_service(flagged)
    duration = int((time.monotonic() - started) * 1000)
    logger.info(f"[SATURDAY] Check complete: {len(flagged)} results across {len(grouped)} services in {duration}ms")
    return {
        "totalRateOrders": len(rate_orders),
        "originsChecked": len(origins),
        "saturdayDeliveries": flagged,
        "totalSaturdayFlags": len(flagged),
        "groupedByService": grouped,
        "queryTimeMs": duration,
    }
