from collections.abc import Sequence

from cardrewards.domain.models import CalculationPeriod, Card, CardRanking, RewardSettings, Transaction
from cardrewards.engine.calculator import calculate_card_rewards, calculate_effective_rate
from cardrewards.engine.subcategories import build_context


def rank_cards(
    cards: Sequence[Card],
    transactions: Sequence[Transaction],
    period: CalculationPeriod,
    settings: RewardSettings | None = None,
) -> list[CardRanking]:
    rankings = []
    for card in cards:
        if not card.earning_rate and not build_context(card).in_effect:
            continue
        calculation = calculate_card_rewards(card, transactions, period, settings)
        rankings.append(
            CardRanking(
                card_id=card.id,
                card_name=card.name,
                calculation=calculation,
                effective_rate=calculate_effective_rate(calculation),
            )
        )

    rankings.sort(key=lambda item: (item.calculation.reward_earned_dollars, item.effective_rate), reverse=True)
    return rankings


def find_best_card(
    cards: Sequence[Card],
    transactions: Sequence[Transaction],
    period: CalculationPeriod,
    settings: RewardSettings | None = None,
) -> CardRanking | None:
    ranked = rank_cards(cards, transactions, period, settings)
    return ranked[0] if ranked else None
