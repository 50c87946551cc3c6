import datetime as dt
from pathlib import Path

import pytest

from cardrewards.domain.models import CardReference, RewardSettings, SubcategoryReference, ThemeGroup
from cardrewards.repository.card_store import CardStore
from cardrewards.schemas.requests import CalculateRequest, RecommendationsRequest
from cardrewards.services.orchestrator import RewardsOrchestrator
from tests.factories import make_card, make_subcategory, spend

SAMPLE_SNAPSHOT = Path(__file__).resolve().parents[1] / "data" / "snapshot.json"
TODAY = dt.date(2026, 10, 18)


def _orchestrator() -> RewardsOrchestrator:
    return RewardsOrchestrator(CardStore(str(SAMPLE_SNAPSHOT)), clock=lambda: TODAY)


def test_snapshot_dashboard_summaries() -> None:
    dashboard = _orchestrator().snapshot_dashboard()

    cashback, miles = dashboard.cards

    assert cashback.period.label == "2026-10"
    assert cashback.days_remaining == 14
    assert cashback.calculation.total_spend == pytest.approx(465.5)
    assert cashback.calculation.minimum_spend_met is False
    assert cashback.calculation.minimum_spend_progress == pytest.approx(93.1)
    assert cashback.calculation.reward_earned_dollars == 0

    assert miles.period.start == dt.date(2026, 10, 15)
    assert miles.period.end == dt.date(2026, 11, 14)
    assert miles.days_remaining == 28
    assert miles.calculation.total_spend == pytest.approx(128.25)
    assert miles.calculation.reward_earned == pytest.approx(388)
    assert miles.calculation.reward_earned_dollars == pytest.approx(5.82)
    dining, transfers, rest = miles.calculation.subcategory_breakdowns
    assert dining.eligible_spend == pytest.approx(85)
    assert transfers.excluded is True
    assert rest.eligible_spend == pytest.approx(40)


def test_snapshot_dashboard_recommendations_and_alerts() -> None:
    dashboard = _orchestrator().snapshot_dashboard()

    (theme,) = dashboard.themes
    assert theme.theme_id == "dining-out"
    assert [insight.card_id for insight in theme.insights] == ["everyday-cashback", "dining-miles"]
    assert theme.insights[0].status == "consider"
    assert theme.insights[1].status == "use"
    assert theme.insights[1].headroom_to_maximum == pytest.approx(913.75)

    assert [(alert.card_id, alert.reason) for alert in dashboard.alerts] == [
        ("everyday-cashback", "Close to meeting minimum spend requirement"),
        ("dining-miles", "Good reward rate (4.7%)"),
    ]
    assert dashboard.attention_alerts == []


def test_explicit_date_overrides_clock() -> None:
    dashboard = _orchestrator().snapshot_dashboard(now=dt.date(2026, 11, 2))

    cashback, miles = dashboard.cards
    assert cashback.calculation.total_spend == 0
    assert miles.period.label == "2026-10-15"


def test_snapshot_dashboard_needs_a_store() -> None:
    with pytest.raises(ValueError):
        RewardsOrchestrator().snapshot_dashboard()


def test_calculate_uses_request_date_and_settings() -> None:
    card = make_card(type="miles", earning_rate=2)
    request = CalculateRequest(
        cards=[card],
        transactions=[spend(100)],
        now=dt.date(2025, 10, 20),
        settings=RewardSettings(miles_valuation=0.02),
    )

    response = RewardsOrchestrator().calculate(request)

    (summary,) = response.cards
    assert summary.period.label == "2025-10"
    assert summary.calculation.reward_earned_dollars == pytest.approx(4.0)
    assert summary.effective_rate == pytest.approx(4.0)


def test_calculate_filters_requested_cards() -> None:
    cards = [make_card(id="a", earning_rate=1), make_card(id="b", earning_rate=2)]
    request = CalculateRequest(cards=cards, transactions=[], now=dt.date(2025, 10, 20), card_ids=["b"])

    response = RewardsOrchestrator().calculate(request)

    assert [summary.card_id for summary in response.cards] == ["b"]


def test_unknown_card_ids_are_rejected() -> None:
    request = RecommendationsRequest(cards=[make_card(id="a")], transactions=[], card_ids=["a", "nope"])

    with pytest.raises(ValueError, match="nope"):
        RewardsOrchestrator(clock=lambda: TODAY).recommend(request)


def test_calculate_adds_fallback_for_request_cards() -> None:
    card = make_card(
        earning_rate=1,
        subcategories_enabled=True,
        subcategories=[make_subcategory("dining", "Red", 4)],
    )
    request = CalculateRequest(
        cards=[card],
        transactions=[spend(50, tag="red"), spend(30)],
        now=dt.date(2025, 10, 20),
    )

    (summary,) = RewardsOrchestrator().calculate(request).cards

    calculation = summary.calculation
    assert calculation.total_spend == pytest.approx(80)
    assert sum(item.total_spend for item in calculation.subcategory_breakdowns) == pytest.approx(80)
    dining, fallback = calculation.subcategory_breakdowns
    assert dining.reward_earned_dollars == pytest.approx(2.0)
    assert fallback.flag_color == "unflagged"
    assert fallback.reward_earned_dollars == pytest.approx(0.30)
    assert calculation.reward_earned_dollars == pytest.approx(2.30)


def test_recommend_drops_unknown_theme_references() -> None:
    request = RecommendationsRequest(
        cards=[make_card(id="a", earning_rate=2)],
        themes=[
            ThemeGroup(
                id="food",
                name="Food",
                cards=[CardReference(card_id="a"), CardReference(card_id="ghost")],
                subcategories=[SubcategoryReference(card_id="a", subcategory_id="missing")],
            )
        ],
        transactions=[spend(80, account_id="acct-1")],
        now=dt.date(2025, 10, 20),
    )

    dashboard = RewardsOrchestrator().recommend(request)

    (theme,) = dashboard.themes
    assert [insight.card_id for insight in theme.insights] == ["a"]
    assert theme.insights[0].total_spend == pytest.approx(80)
