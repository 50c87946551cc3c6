import datetime as dt
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from cardrewards.api.app import app
from cardrewards.api.routes import rewards as rewards_routes
from cardrewards.repository.card_store import CardStore

SAMPLE_SNAPSHOT = Path(__file__).resolve().parents[1] / "data" / "snapshot.json"

client = TestClient(app)

CARD = {
    "id": "flat",
    "name": "Flat Two",
    "type": "cashback",
    "account_id": "acct-1",
    "earning_rate": 2,
}


@pytest.fixture
def sample_snapshot(monkeypatch):
    monkeypatch.setattr(rewards_routes.orchestrator, "card_store", CardStore(str(SAMPLE_SNAPSHOT)))
    monkeypatch.setattr(rewards_routes.orchestrator, "clock", lambda: dt.date(2026, 10, 18))


def test_health() -> None:
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_calculate_endpoint() -> None:
    payload = {
        "cards": [CARD],
        "transactions": [
            {"id": "t1", "date": "2025-10-03", "amount": -50000, "account_id": "acct-1"},
            {"id": "t2", "date": "2025-10-04", "amount": 20000, "account_id": "acct-1"},
        ],
        "now": "2025-10-20",
    }

    response = client.post("/rewards/calculate", json=payload)

    assert response.status_code == 200
    (summary,) = response.json()["cards"]
    assert summary["period"]["label"] == "2025-10"
    assert summary["calculation"]["total_spend"] == pytest.approx(50)
    assert summary["calculation"]["reward_earned_dollars"] == pytest.approx(1.0)


def test_calculate_rejects_unknown_card_id() -> None:
    response = client.post("/rewards/calculate", json={"cards": [CARD], "card_ids": ["other"]})

    assert response.status_code == 400
    assert "other" in response.json()["detail"]


def test_calculate_rejects_malformed_card() -> None:
    response = client.post("/rewards/calculate", json={"cards": [{"id": "x", "type": "points"}]})

    assert response.status_code == 422


def test_recommendations_endpoint() -> None:
    payload = {
        "cards": [CARD],
        "themes": [{"id": "all", "name": "Everything", "cards": [{"card_id": "flat"}]}],
        "transactions": [{"id": "t1", "date": "2025-10-03", "amount": -200000, "account_id": "acct-1"}],
        "now": "2025-10-20",
    }

    response = client.post("/rewards/recommendations", json=payload)

    assert response.status_code == 200
    body = response.json()
    assert body["themes"][0]["insights"][0]["status"] == "use"
    assert body["alerts"] == []


def test_snapshot_endpoint(sample_snapshot) -> None:
    response = client.get("/rewards/snapshot")

    assert response.status_code == 200
    body = response.json()
    assert [card["card_id"] for card in body["cards"]] == ["everyday-cashback", "dining-miles"]
    assert body["cards"][1]["calculation"]["reward_earned_dollars"] == pytest.approx(5.82)


def test_snapshot_endpoint_missing_file(monkeypatch, tmp_path) -> None:
    monkeypatch.setattr(rewards_routes.orchestrator, "card_store", CardStore(str(tmp_path / "missing.json")))

    response = client.get("/rewards/snapshot")

    assert response.status_code == 404


def test_calculate_endpoint_rewards_untagged_spend_on_subcategory_card() -> None:
    card = dict(CARD, earning_rate=1, subcategories_enabled=True)
    card["subcategories"] = [{"id": "dining", "name": "Dining", "flag_color": "Red", "reward_value": 4}]
    payload = {
        "cards": [card],
        "transactions": [
            {"id": "t1", "date": "2025-10-03", "amount": -50000, "account_id": "acct-1", "flag_color": "red"},
            {"id": "t2", "date": "2025-10-04", "amount": -30000, "account_id": "acct-1"},
        ],
        "now": "2025-10-20",
    }

    response = client.post("/rewards/calculate", json=payload)

    assert response.status_code == 200
    calculation = response.json()["cards"][0]["calculation"]
    breakdowns = calculation["subcategory_breakdowns"]
    assert sum(item["total_spend"] for item in breakdowns) == pytest.approx(calculation["total_spend"])
    assert breakdowns[-1]["reward_earned_dollars"] == pytest.approx(0.30)
