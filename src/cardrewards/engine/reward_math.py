import math
from typing import NamedTuple

from cardrewards.domain.models import Card, RewardType, Subcategory

DEFAULT_MILES_VALUATION = 0.01


class BlockResult(NamedTuple):
    amount: float
    blocks: int


def resolve_rate(card: Card, subcategory: Subcategory | None = None) -> float:
    if subcategory is not None:
        return subcategory.reward_value
    return card.earning_rate or 0


def resolve_block_size(card: Card, subcategory: Subcategory | None = None) -> float | None:
    if (
        card.type is RewardType.MILES
        and subcategory is not None
        and subcategory.miles_block_size
        and subcategory.miles_block_size > 0
    ):
        return subcategory.miles_block_size

    if card.earning_block_size and card.earning_block_size > 0:
        return card.earning_block_size

    return None


def apply_block(amount: float, block_size: float | None) -> BlockResult:
    """Truncate ``amount`` to whole earning blocks; the remainder is forfeited."""
    if not block_size or block_size <= 0:
        return BlockResult(amount, 0)

    blocks = math.floor(amount / block_size)
    return BlockResult(blocks * block_size, blocks)


def convert_reward(
    reward_type: RewardType, earnable: float, rate: float, miles_valuation: float
) -> tuple[float, float]:
    """Return ``(native, dollars)`` for ``earnable`` spend at ``rate``.

    Cashback rates are percentages; miles rates are miles per dollar.
    """
    match reward_type:
        case RewardType.CASHBACK:
            reward = earnable * (rate / 100)
            return reward, reward
        case RewardType.MILES:
            reward = earnable * rate
            return reward, reward * miles_valuation
    raise ValueError(f"Unsupported reward type: {reward_type!r}")


def effective_miles_valuation(miles_valuation: float | None) -> float:
    return miles_valuation or DEFAULT_MILES_VALUATION


def has_minimum_requirement(minimum_spend: float | None) -> bool:
    return minimum_spend is not None and minimum_spend > 0


def is_minimum_spend_met(total_spend: float, minimum_spend: float | None) -> bool:
    # Unset and zero minimums are both satisfied.
    if not has_minimum_requirement(minimum_spend):
        return True
    return total_spend >= minimum_spend


def minimum_spend_progress(total_spend: float, minimum_spend: float | None) -> float | None:
    if not has_minimum_requirement(minimum_spend):
        return None
    return min(100.0, total_spend / minimum_spend * 100)


def has_maximum_limit(maximum_spend: float | None) -> bool:
    return maximum_spend is not None and maximum_spend > 0


def is_maximum_spend_exceeded(spend: float, maximum_spend: float | None) -> bool:
    if not has_maximum_limit(maximum_spend):
        return False
    return spend >= maximum_spend


def maximum_spend_progress(spend: float, maximum_spend: float | None) -> float | None:
    if not has_maximum_limit(maximum_spend):
        return None
    return min(100.0, spend / maximum_spend * 100)


def capped_spend(total_spend: float, maximum_spend: float | None) -> float:
    if not has_maximum_limit(maximum_spend):
        return total_spend
    return min(total_spend, maximum_spend)


def positive_or_none(value: float | None) -> float | None:
    if value is not None and value > 0:
        return value
    return None
