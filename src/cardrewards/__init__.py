from cardrewards.domain.models import (
    CalculationPeriod,
    Card,
    CardAlert,
    RewardSettings,
    RewardType,
    SimplifiedCalculation,
    Subcategory,
    ThemeGroup,
    ThemeRecommendation,
    Transaction,
)
from cardrewards.engine.calculator import (
    calculate_card_rewards,
    calculate_effective_rate,
    calculate_transaction_reward,
)
from cardrewards.engine.periods import calculate_period
from cardrewards.engine.recommendations import generate_card_alerts, generate_theme_recommendations
from cardrewards.engine.selectors import find_best_card, rank_cards

__all__ = [
    "CalculationPeriod",
    "Card",
    "CardAlert",
    "RewardSettings",
    "RewardType",
    "SimplifiedCalculation",
    "Subcategory",
    "ThemeGroup",
    "ThemeRecommendation",
    "Transaction",
    "calculate_card_rewards",
    "calculate_effective_rate",
    "calculate_period",
    "calculate_transaction_reward",
    "find_best_card",
    "generate_card_alerts",
    "generate_theme_recommendations",
    "rank_cards",
]
