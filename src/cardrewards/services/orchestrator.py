import datetime as dt
import logging
from collections.abc import Callable, Sequence

from cardrewards.domain.models import Card, RewardSettings, ThemeGroup, Transaction
from cardrewards.engine.calculator import calculate_card_rewards, calculate_effective_rate
from cardrewards.engine.periods import calculate_period, days_remaining
from cardrewards.engine.recommendations import (
    generate_attention_alerts,
    generate_card_alerts,
    generate_theme_recommendations,
)
from cardrewards.repository.card_store import CardStore, normalise_card, normalise_theme
from cardrewards.schemas.requests import CalculateRequest, RecommendationsRequest
from cardrewards.schemas.responses import CalculateResponse, CardSummary, DashboardResponse

logger = logging.getLogger(__name__)


class RewardsOrchestrator:
    """Runs the engine for a set of cards against one explicit date."""

    def __init__(
        self,
        card_store: CardStore | None = None,
        default_settings: RewardSettings | None = None,
        clock: Callable[[], dt.date] = dt.date.today,
    ):
        self.card_store = card_store
        self.default_settings = default_settings or RewardSettings()
        self.clock = clock

    def _select_cards(self, cards: Sequence[Card], card_ids: Sequence[str] | None) -> list[Card]:
        """Pick the requested cards and run them through the same normalisation as the snapshot store."""
        if card_ids is None:
            return [normalise_card(card) for card in cards]

        by_id = {card.id: card for card in cards}
        unknown = [card_id for card_id in card_ids if card_id not in by_id]
        if unknown:
            raise ValueError(f"Unknown card id(s): {', '.join(unknown)}")
        return [normalise_card(by_id[card_id]) for card_id in card_ids]

    def summarize_cards(
        self,
        cards: Sequence[Card],
        transactions: Sequence[Transaction],
        now: dt.date,
        settings: RewardSettings,
    ) -> list[CardSummary]:
        summaries = []
        for card in cards:
            period = calculate_period(card, now)
            calculation = calculate_card_rewards(card, transactions, period, settings)
            summaries.append(
                CardSummary(
                    card_id=card.id,
                    card_name=card.name,
                    period=period,
                    days_remaining=days_remaining(period, now),
                    calculation=calculation,
                    effective_rate=calculate_effective_rate(calculation),
                )
            )
        return summaries

    def build_dashboard(
        self,
        cards: Sequence[Card],
        themes: Sequence[ThemeGroup],
        transactions: Sequence[Transaction],
        now: dt.date,
        settings: RewardSettings,
    ) -> DashboardResponse:
        summaries = self.summarize_cards(cards, transactions, now, settings)
        calculations = [summary.calculation for summary in summaries]

        response = DashboardResponse(
            cards=summaries,
            themes=generate_theme_recommendations(themes, cards, calculations, settings),
            alerts=generate_card_alerts(cards, calculations),
            attention_alerts=generate_attention_alerts(cards, calculations),
        )
        logger.info(
            "dashboard for %s: %d card(s), %d theme(s), %d alert(s)",
            now.isoformat(),
            len(response.cards),
            len(response.themes),
            len(response.alerts),
        )
        return response

    def calculate(self, request: CalculateRequest) -> CalculateResponse:
        cards = self._select_cards(request.cards, request.card_ids)
        now = request.now or self.clock()
        settings = request.settings or self.default_settings
        return CalculateResponse(cards=self.summarize_cards(cards, request.transactions, now, settings))

    def recommend(self, request: RecommendationsRequest) -> DashboardResponse:
        cards = self._select_cards(request.cards, request.card_ids)
        now = request.now or self.clock()
        settings = request.settings or self.default_settings
        themes = [normalise_theme(theme, cards) for theme in request.themes]
        return self.build_dashboard(cards, themes, request.transactions, now, settings)

    def snapshot_dashboard(self, now: dt.date | None = None) -> DashboardResponse:
        if self.card_store is None:
            raise ValueError("No snapshot store configured.")

        snapshot = self.card_store.load()
        return self.build_dashboard(
            snapshot.cards,
            snapshot.themes,
            snapshot.transactions,
            now or self.clock(),
            snapshot.settings or self.default_settings,
        )
