import re
from typing import List

from sqlalchemy import bindparam, text

from core.logging_config import logger
from core.models import RateOrder, SaturdayDeliveryResult

# warehouse (shipper) -> routing guide origin suffix
SHIPPER_ORIGINS = {
    "MCO1": "34475",
    "PHX1": "85338",
    "PHX2": "85338_PHX2",
    "SDF1": "40299",
    "DFW7": "75236_DFW7",
    "BNA1": "37122",
    "AVP1_FRESH": "18706_FRESH",
    "RNO1": "89506",
    "BKY1": "85043",
    "CFC1_FRESH": "46118_FRESH",
    "EFC3": "17050",
    "CFF1": "46118",
    "DFW1": "75236",
    "MCO2": "34475_MCO2",
    "PHX1_OCEANSIDE": "92056",
    "DAY1": "45377",
    "MCI1": "64012",
    "AVP1": "18706",
    "AVP2": "18434",
    "PHX1_FULLERTON": "92835",
    "PHX1_SUNVALLEY": "91352",
    "DFW8": "75236_DFW8",
    "CLT1": "28146",
    "SDF4": "40299_SDF4",
    "AVP4": "18640",
    "MDT3": "17339_MDT3",
    "DFW3": "75134",
    "CHEWYPHX1MM": "92835_MM",
    "CFC1": "46118",
    "MDT1": "17339",
    "MCO4": "34475_MCO4",
    "RNF1": "89506_RNF1",
}

ROUTING_GUIDE_TABLE = "DMSServer.dbo.ps_PRIMARY_ROUTING_GUIDE_{origin}"

# origins become part of a table name, so only plain identifiers pass
_ORIGIN_PATTERN = re.compile(r"^[A-Za-z0-9_]+$")


def rate_order_query() -> str:
    origins = ",\n        ".join(f"('{shipper}', '{origin}')" for shipper, origin in SHIPPER_ORIGINS.items())
    return f"""
;WITH ShipperOrigins AS (
    SELECT shipper, origin FROM (VALUES
        {origins}
    ) AS so(shipper, origin)
)
SELECT '2nd rate' AS type, cls.wh_id, cls.order_number, LEFT(pkc.ship_to_zip, 5) AS zip, so.origin
FROM t_cls_rate_order_queue AS cls
JOIN dbo.t_pick_container AS pkc ON pkc.order_number = cls.order_number
JOIN ShipperOrigins AS so ON so.shipper = cls.wh_id
WHERE cls.attempts > 0
ORDER BY cls.insert_datetime
"""


def _str_or_none(value):
    return str(value) if value is not None else None


def fetch_rate_orders(conn) -> List[RateOrder]:
    """2nd-rate queue orders with their destination zip and shipping origin."""
    try:
        rows = conn.execute(text(rate_order_query())).fetchall()
    except Exception as e:
        logger.exception("[SATURDAY] Error executing rate order query")
        raise RuntimeError(f"Failed to execute rate order query: {e}") from e
    logger.debug(f"[SATURDAY] Rate order query returned {len(rows)} rows")
    return [
        RateOrder(
            type=_str_or_none(r[0]),
            wh_id=_str_or_none(r[1]),
            order_number=_str_or_none(r[2]),
            zip=_str_or_none(r[3]),
            origin=_str_or_none(r[4]),
        )
        for r in rows
    ]


def fetch_saturday_flags(conn, origin, postal_codes, table_template=ROUTING_GUIDE_TABLE) -> List[SaturdayDeliveryResult]:
    """Routing guide rows for one origin whose Saturday delivery flag is set, limited to postal_codes."""
    if not postal_codes:
        return []
    if not origin or not _ORIGIN_PATTERN.match(origin):
        logger.warning(f"[SATURDAY] Invalid origin value rejected: {origin}")
        return []

    sql = text(
        f"SELECT POSTALCODE, SERVICE, TRANSIT_DAYS FROM {table_template.format(origin=origin)} "
        "WHERE SATURDAYDELIVERY_FLAG = 1 AND POSTALCODE IN :postal_codes"
    ).bindparams(bindparam("postal_codes", expanding=True))
    rows = conn.execute(sql, {"postal_codes": list(postal_codes)}).fetchall()

    logger.debug(f"[SATURDAY] Routing guide for origin={origin} returned {len(rows)} Saturday delivery rows")
    return [
        SaturdayDeliveryResult(postal_code=_str_or_none(r[0]), service=_str_or_none(r[1]), transit_days=_str_or_none(r[2]))
        for r in rows
    ]
