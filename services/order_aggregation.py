from typing import Dict, List

from core.logging_config import logger
from core.models import EnrichedOrder, OrderImportRow, QueueStatusEntry
from core.utils import first_five, is_blank, join_unique, sort_desc_nulls_last
from services.xml_parsing import (
    extract_consignee_info,
    extract_error_from_xml,
    extract_route,
    extract_service_level,
    extract_shipping_dates,
)


def group_key(wh_id, order_number) -> str:
    return f"{wh_id or ''}|{order_number or ''}"


def _pick_representative(group):
    """Latest row by update (then insert) time that carries SQL error text, else the latest row."""
    ordered = sort_desc_nulls_last(group, key=lambda r: r.inserted_datetime)
    ordered = sort_desc_nulls_last(ordered, key=lambda r: r.updated_datetime)
    for row in ordered:
        if not is_blank(row.error_text):
            return row
    return ordered[0]


def _travel_response(group, fallback):
    best = None
    for row in group:
        if row.cls_insert_datetime is None or row.xml_response is None:
            continue
        if best is None or row.cls_insert_datetime > best.cls_insert_datetime:
            best = row
    return best.xml_response if best is not None else fallback


def build_enriched_order(group: List[OrderImportRow]) -> EnrichedOrder:
    first = group[0]
    selected = _pick_representative(group)
    xml_message = selected.xml_message
    xml_response = selected.xml_response
    travel_xml = _travel_response(group, xml_response)

    enriched = EnrichedOrder(
        wh_id=first.wh_id,
        order_number=first.order_number,
        item_number=join_unique(r.item_number for r in group),
        error_text=join_unique(r.error_text for r in group),
        import_status=join_unique(r.import_status for r in group),
        xml_message=xml_message,
        xml_response=xml_response,
        # timestamps reflect ingestion order, so they come from the first row
        inserted_datetime=first.inserted_datetime,
        updated_datetime=first.updated_datetime,
        cls_insert_datetime=first.cls_insert_datetime,
    )

    if is_blank(enriched.error_text):
        xml_error = extract_error_from_xml(xml_response)
        if xml_error:
            enriched.error_text = xml_error

    consignee = extract_consignee_info(xml_message)
    if consignee is not None:
        enriched.consignee_contact = consignee["contact"]
        enriched.consignee_address1 = consignee["address1"]
        enriched.consignee_address2 = consignee["address2"]
        enriched.city = consignee["city"]
        enriched.state = consignee["state"]
        enriched.postal_code = first_five(consignee["postalcode"])

    shipping = extract_shipping_dates(travel_xml)
    if shipping is not None:
        enriched.ship_date = shipping["shipDate"]
        enriched.arrive_date = shipping["arriveDate"]
        enriched.ship_day = shipping["shipDay"]
        enriched.arrive_day = shipping["arriveDay"]
        enriched.travel_days = shipping["travelDays"]
        enriched.days_between = shipping["daysBetween"]

    enriched.route = extract_route(travel_xml)
    enriched.service_level = extract_service_level(travel_xml)
    return enriched


def aggregate_and_enrich(rows: List[OrderImportRow]) -> List[EnrichedOrder]:
    """
    One EnrichedOrder per (warehouse, order), in order of first appearance.
    """
    if not rows:
        return []

    grouped: Dict[str, List[OrderImportRow]] = {}
    for row in rows:
        grouped.setdefault(group_key(row.wh_id, row.order_number), []).append(row)

    enriched = [build_enriched_order(group) for group in grouped.values()]
    logger.debug(f"[CLS] Aggregated {len(rows)} raw rows into {len(enriched)} enriched results")
    return enriched


def build_error_summary(results: List[EnrichedOrder]) -> dict:
    """
    Count each comma-separated error text per warehouse. Sorted by total count,
    ties keep first-seen order.
    """
    by_text: Dict[str, Dict[str, int]] = {}
    for r in results:
        if is_blank(r.error_text):
            continue
        for single in r.error_text.split(","):
            single = single.strip()
            if not single:
                continue
            wh = r.wh_id if r.wh_id is not None else "UNKNOWN"
            counts = by_text.setdefault(single, {})
            counts[wh] = counts.get(wh, 0) + 1

    errors = [
        {"errorText": text, "totalCount": sum(counts.values()), "warehouseBreakdown": counts}
        for text, counts in by_text.items()
    ]
    errors.sort(key=lambda e: e["totalCount"], reverse=True)

    return {
        "totalOrders": len(results),
        "errors": errors,
        "warehouses": sorted({r.wh_id for r in results if r.wh_id is not None}),
        "ordersWithErrors": sum(1 for r in results if not is_blank(r.error_text)),
    }


def dedupe_queue_rows(queue_type: str, rows) -> List[QueueStatusEntry]:
    """
    rows are (type, wh_id, order_number, xml_response, xml_message) tuples.
    Per (warehouse, order) keep the first row, unless a later row has a route and
    the kept one does not; a missing zip is filled in from siblings.
    """
    kept: Dict[str, QueueStatusEntry] = {}
    for row in rows:
        wh_id = str(row[1]) if row[1] is not None else None
        order_number = str(row[2]) if row[2] is not None else None
        xml_response = row[3]
        xml_message = row[4]
        key = f"{wh_id}|{order_number}"

        error_text = None
        route = None
        if xml_response is not None:
            error_text = extract_error_from_xml(xml_response)
            route = extract_route(xml_response)

        zip_code = None
        if xml_message is not None:
            consignee = extract_consignee_info(xml_message)
            if consignee is not None and consignee.get("postalcode") is not None:
                zip_code = first_five(consignee["postalcode"])

        existing = kept.get(key)
        existing_has_route = existing is not None and bool(existing.route)
        if existing is None or (route and not existing_has_route):
            kept[key] = QueueStatusEntry(
                type=queue_type,
                wh_id=wh_id,
                order_number=order_number,
                error_text=error_text,
                route=route,
                zip=zip_code,
            )
        elif existing.zip is None and zip_code is not None:
            existing.zip = zip_code
    return list(kept.values())
