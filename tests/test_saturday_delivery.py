from contextlib import contextmanager

import pytest
from sqlalchemy import create_engine, text

from core.models import RateOrder, SaturdayDeliveryResult
from pipeline import saturday_delivery
from retrieval.saturday_delivery import SHIPPER_ORIGINS, fetch_saturday_flags, rate_order_query


@pytest.fixture
def routing_guide():
    engine = create_engine("sqlite://")
    with engine.connect() as conn:
        conn.execute(text(
            "CREATE TABLE ps_PRIMARY_ROUTING_GUIDE_34475 "
            "(POSTALCODE TEXT, SERVICE TEXT, TRANSIT_DAYS TEXT, SATURDAYDELIVERY_FLAG INTEGER)"
        ))
        conn.execute(text(
            "INSERT INTO ps_PRIMARY_ROUTING_GUIDE_34475 VALUES "
            "('10001', 'GROUND', '2', 1), ('10002', 'GROUND', '3', 0), ('10003', 'AIR', '1', 1)"
        ))
        yield conn
    engine.dispose()


def test_routing_guide_returns_only_flagged_requested_zips(routing_guide):
    results = fetch_saturday_flags(routing_guide, "34475", ["10001", "10002"],
                                   table_template="ps_PRIMARY_ROUTING_GUIDE_{origin}")
    assert results == [SaturdayDeliveryResult(postal_code="10001", service="GROUND", transit_days="2")]


@pytest.mark.parametrize("origin, zips", [
    ("34475; DROP TABLE x", ["10001"]),
    ("", ["10001"]),
    ("34475", []),
])
def test_routing_guide_lookups_that_never_run(origin, zips):
    # no connection needed: nothing reaches the database
    assert fetch_saturday_flags(None, origin, zips) == []


def test_rate_order_query_maps_every_shipper():
    sql = rate_order_query()
    assert "('PHX2', '85338_PHX2')" in sql
    assert sql.count("('") == len(SHIPPER_ORIGINS)
    assert "WHERE cls.attempts > 0" in sql


def test_zips_are_deduplicated_per_origin():
    orders = [
        RateOrder(wh_id="MCO1", zip="10001", origin="34475"),
        RateOrder(wh_id="PHX1", zip="85001", origin="85338"),
        RateOrder(wh_id="MCO1", zip="10001", origin="34475"),
        RateOrder(wh_id="MCO1", zip="10003", origin="34475"),
        RateOrder(wh_id="MCO1", zip=None, origin="34475"),
        RateOrder(wh_id="XXX1", zip="99999", origin=None),
    ]
    assert saturday_delivery.zips_by_origin(orders) == {"34475": ["10001", "10003"], "85338": ["85001"]}


class FakeConn:
    def __init__(self, pool):
        self.pool = pool

    def execution_options(self, **kwargs):
        return self


class RecordingFactory:
    def __init__(self):
        self.pools = []

    @contextmanager
    def connect(self, name):
        self.pools.append(name)
        yield FakeConn(name)


@pytest.fixture
def recording_factory(ctx):
    ctx.factory = RecordingFactory()
    return ctx.factory


def test_check_groups_flags_by_service(client, recording_factory, monkeypatch):
    orders = [
        RateOrder(type="2nd rate", wh_id="MCO1", order_number="1", zip="10001", origin="34475"),
        RateOrder(type="2nd rate", wh_id="MCO1", order_number="2", zip="10003", origin="34475"),
        RateOrder(type="2nd rate", wh_id="RNO1", order_number="3", zip="89501", origin="89506"),
        RateOrder(type="2nd rate", wh_id="DAY1", order_number="4", zip="45001", origin="45377"),
    ]
    guide = {
        "34475": [
            SaturdayDeliveryResult(postal_code="10003", service="GROUND", transit_days="2"),
            SaturdayDeliveryResult(postal_code="10001", service="GROUND", transit_days="2"),
        ],
        "89506": [SaturdayDeliveryResult(postal_code="89501", service="AIR", transit_days="1")],
    }
    looked_up = []

    def fake_flags(conn, origin, zips):
        looked_up.append((conn.pool, origin, zips))
        if origin == "45377":
            raise RuntimeError("Invalid object name")
        return guide.get(origin, [])

    monkeypatch.setattr(saturday_delivery, "fetch_rate_orders", lambda conn: orders)
    monkeypatch.setattr(saturday_delivery, "fetch_saturday_flags", fake_flags)

    response = client.get("/api/cls/saturday-delivery")

    assert response.status_code == 200
    body = response.json()
    assert recording_factory.pools == ["io", "cls"]
    assert looked_up[0] == ("cls", "34475", ["10001", "10003"])
    assert body["totalRateOrders"] == 4
    assert body["originsChecked"] == 3
    assert body["totalSaturdayFlags"] == 3
    assert body["groupedByService"] == {"AIR": ["89501"], "GROUND": ["10001", "10003"]}
    assert body["saturdayDeliveries"][0] == {"postalCode": "10003", "service": "GROUND", "transitDays": "2"}
    assert "queryTimeMs" in body


def test_check_without_rate_orders(client, recording_factory, monkeypatch):
    monkeypatch.setattr(saturday_delivery, "fetch_rate_orders", lambda conn: [])

    body = client.get("/api/cls/saturday-delivery").json()

    assert body["message"] == "No rate order results found"
    assert body["groupedByService"] == {}
    assert recording_factory.pools == ["io"]


def test_unreachable_io_pool_is_reported_in_the_body(client):
    response = client.get("/api/cls/saturday-delivery")
    assert response.status_code == 200
    body = response.json()
    assert body["error"].startswith("Failed to query rate order results: Connection is not available for 'io'")
    assert body["saturdayDeliveries"] == []
