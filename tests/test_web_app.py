import pytest
from fastapi.testclient import TestClient

from journal_analytics.web.app import app

ORDERS = [
    {
        "id": "o1",
        "order_timestamp": "2024-01-03T09:20:00+05:30",
        "tradingsymbol": "INFY",
        "quantity": 10,
        "average_price": 100,
        "transaction_type": "BUY",
        "status": "COMPLETE",
    },
    {
        "id": "o2",
        "order_timestamp": "2024-01-03T09:50:00+05:30",
        "tradingsymbol": "INFY",
        "quantity": 10,
        "average_price": 90,
        "transaction_type": "SELL",
        "status": "COMPLETE",
    },
]


@pytest.fixture
def client():
    return TestClient(app)


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "ok"
    assert "zerodha" in body["brokers"]


def test_trades_endpoint(client):
    response = client.post("/api/trades", json={"orders": ORDERS})
    assert response.status_code == 200
    body = response.json()

    assert body["skipped"] == 0
    (trade,) = body["trades"]
    assert trade["id"] == "trade-0"
    assert trade["side"] == "LONG"
    assert trade["pnl"] == -100
    assert trade["is_open"] is False


def test_analytics_endpoint(client):
    response = client.post("/api/analytics", params={"group_by": "day"}, json={"orders": ORDERS})
    assert response.status_code == 200
    body = response.json()

    assert body["group_by"] == "day"
    assert [row["group"] for row in body["groups"]] == ["Wednesday"]
    assert body["overall"]["loss_count"] == 1
    assert body["portfolio"]["worst_group"] == "Wednesday"


def test_analytics_rejects_unknown_group(client):
    response = client.post("/api/analytics", params={"group_by": "symbol"}, json={"orders": ORDERS})
    assert response.status_code == 400


def test_journal_documents(client):
    document = {"id": "day", "trades": {"TRADE_001": {"orders": ORDERS, "strategy": ["ORB"]}}}
    response = client.post("/api/analytics", params={"group_by": "strategy"}, json={"documents": [document]})
    assert response.status_code == 200
    assert response.json()["groups"][0]["group_key"] == "ORB"


def test_calendar_endpoint(client):
    response = client.post("/api/calendar", params={"month": "2024-01"}, json={"orders": ORDERS})
    assert response.status_code == 200
    body = response.json()

    assert body["month_key"] == "2024-01"
    assert body["weeks"][0][2] == {"date": "2024-01-03", "day": 3, "in_month": True, "pnl": -100.0, "trades": 1}


def test_missing_payload(client):
    assert client.post("/api/trades", json={}).status_code == 400


def test_unknown_policy(client):
    response = client.post("/api/trades", json={"orders": ORDERS, "policy": "lifo"})
    assert response.status_code == 400


@pytest.mark.parametrize("month", ["2024-13", "January"])
def test_calendar_rejects_malformed_month(client, month):
    response = client.post("/api/calendar", params={"month": month}, json={"orders": ORDERS})
    assert response.status_code == 400


def test_stray_records_are_skipped(client):
    stray = {**ORDERS[1], "id": "o3", "order_timestamp": "1e25"}
    response = client.post("/api/trades", json={"orders": [*ORDERS, stray]})
    assert response.status_code == 200
    assert response.json()["skipped"] == 1
