import logging
import math
from collections.abc import Sequence
from functools import partial, reduce
from typing import NamedTuple

from cardrewards.domain.models import (
    CalculationPeriod,
    Card,
    RewardSettings,
    SimplifiedCalculation,
    Subcategory,
    SubcategoryCalculation,
    Transaction,
    TransactionReward,
)
from cardrewards.engine.matcher import match_transactions, milliunits_to_dollars
from cardrewards.engine.reward_math import (
    apply_block,
    capped_spend,
    convert_reward,
    effective_miles_valuation,
    has_maximum_limit,
    is_maximum_spend_exceeded,
    is_minimum_spend_met,
    maximum_spend_progress,
    minimum_spend_progress,
    positive_or_none,
    resolve_block_size,
    resolve_rate,
)
from cardrewards.engine.subcategories import (
    UNFLAGGED,
    SubcategoryContext,
    build_context,
    normalize_tag,
    resolve_subcategory,
)

logger = logging.getLogger(__name__)


class RewardTotals(NamedTuple):
    eligible_spend_before_blocks: float = 0.0
    eligible_spend: float = 0.0
    reward_earned: float = 0.0
    reward_earned_dollars: float = 0.0

    def add(self, before_blocks: float, eligible: float, reward: float, dollars: float) -> "RewardTotals":
        return RewardTotals(
            self.eligible_spend_before_blocks + before_blocks,
            self.eligible_spend + eligible,
            self.reward_earned + reward,
            self.reward_earned_dollars + dollars,
        )


class CapAllocation(NamedTuple):
    """Accumulator of the subcategory fold; ``remaining_cap`` is the shared card pool."""

    remaining_cap: float
    breakdowns: tuple[SubcategoryCalculation, ...] = ()
    totals: RewardTotals = RewardTotals()


def _spend_by_tag(context: SubcategoryContext, transactions: Sequence[Transaction]) -> tuple[float, dict[str, float]]:
    total = 0.0
    by_tag: dict[str, float] = {}

    for txn in transactions:
        subcategory = resolve_subcategory(context, txn.flag_color)
        if subcategory is not None and subcategory.exclude_from_rewards:
            continue

        spend = milliunits_to_dollars(txn.amount)
        tag = normalize_tag(subcategory.flag_color) if subcategory is not None else UNFLAGGED
        by_tag[tag] = by_tag.get(tag, 0.0) + spend
        total += spend

    return total, by_tag


def _excluded_breakdown(subcategory: Subcategory, spend: float) -> SubcategoryCalculation:
    return SubcategoryCalculation(
        id=subcategory.id,
        name=subcategory.name,
        flag_color=subcategory.flag_color,
        total_spend=spend,
        minimum_spend=subcategory.minimum_spend,
        minimum_spend_met=False,
        maximum_spend=subcategory.maximum_spend,
        maximum_spend_exceeded=False,
        active=subcategory.active,
        excluded=True,
    )


def _allocate_subcategory(
    card: Card,
    spend_by_tag: dict[str, float],
    card_minimum_met: bool,
    miles_valuation: float,
    state: CapAllocation,
    subcategory: Subcategory,
) -> CapAllocation:
    spend = spend_by_tag.get(normalize_tag(subcategory.flag_color), 0.0)

    if subcategory.exclude_from_rewards:
        return state._replace(breakdowns=state.breakdowns + (_excluded_breakdown(subcategory, spend),))

    has_card_cap = has_maximum_limit(card.maximum_spend)
    rate = resolve_rate(card, subcategory)
    block_size = resolve_block_size(card, subcategory)
    maximum_allowed = positive_or_none(subcategory.maximum_spend)
    # Subcategory rewards need the card minimum as well as their own.
    minimum_met = card_minimum_met and is_minimum_spend_met(spend, subcategory.minimum_spend)

    consumed = 0.0
    eligible = 0.0
    blocks = 0
    reward = 0.0
    reward_dollars = 0.0
    remaining_cap = state.remaining_cap

    if minimum_met and rate > 0 and spend > 0:
        consumed = min(capped_spend(spend, maximum_allowed), remaining_cap)
        eligible, blocks = apply_block(consumed, block_size)
        reward, reward_dollars = convert_reward(card.type, eligible, rate, miles_valuation)
        if has_card_cap:
            remaining_cap = max(0.0, remaining_cap - consumed)

    card_cap_hit = has_card_cap and remaining_cap <= 0
    breakdown = SubcategoryCalculation(
        id=subcategory.id,
        name=subcategory.name,
        flag_color=subcategory.flag_color,
        total_spend=spend,
        eligible_spend_before_blocks=consumed,
        eligible_spend=eligible,
        reward_rate=rate,
        reward_earned=reward,
        reward_earned_dollars=reward_dollars,
        minimum_spend=subcategory.minimum_spend,
        minimum_spend_met=minimum_met,
        maximum_spend=maximum_allowed,
        maximum_spend_exceeded=is_maximum_spend_exceeded(spend, maximum_allowed) or card_cap_hit,
        block_size=block_size,
        blocks_earned=blocks,
        active=subcategory.active,
        excluded=False,
    )

    return CapAllocation(
        remaining_cap=remaining_cap,
        breakdowns=state.breakdowns + (breakdown,),
        totals=state.totals.add(consumed, eligible, reward, reward_dollars),
    )


def allocate_subcategories(
    card: Card,
    context: SubcategoryContext,
    spend_by_tag: dict[str, float],
    card_minimum_met: bool,
    miles_valuation: float,
) -> CapAllocation:
    """Fold the card's spend cap over active subcategories in priority order.

    Each subcategory consumes from the pool left by the ones before it, so
    reordering subcategories can change the result.
    """
    pool = card.maximum_spend if has_maximum_limit(card.maximum_spend) else math.inf
    step = partial(_allocate_subcategory, card, spend_by_tag, card_minimum_met, miles_valuation)
    return reduce(step, context.active_subcategories, CapAllocation(remaining_cap=pool))


def _allocate_card(
    card: Card,
    transactions: Sequence[Transaction],
    minimum_met: bool,
    miles_valuation: float,
) -> RewardTotals:
    rate = resolve_rate(card)
    if not minimum_met or not rate:
        return RewardTotals()

    remaining_cap = card.maximum_spend if has_maximum_limit(card.maximum_spend) else math.inf
    consumed = 0.0

    for txn in transactions:
        if remaining_cap <= 0:
            break
        contribution = min(milliunits_to_dollars(txn.amount), remaining_cap)
        consumed += contribution
        remaining_cap -= contribution

    eligible, _ = apply_block(consumed, resolve_block_size(card))
    reward, reward_dollars = convert_reward(card.type, eligible, rate, miles_valuation)
    return RewardTotals(consumed, eligible, reward, reward_dollars)


def calculate_card_rewards(
    card: Card,
    transactions: Sequence[Transaction],
    period: CalculationPeriod,
    settings: RewardSettings | None = None,
) -> SimplifiedCalculation:
    settings = settings or RewardSettings()
    miles_valuation = effective_miles_valuation(settings.miles_valuation)
    context = build_context(card)
    matched = match_transactions(card, transactions, period)

    if context.in_effect:
        total_spend, spend_by_tag = _spend_by_tag(context, matched)
    else:
        total_spend = sum(milliunits_to_dollars(txn.amount) for txn in matched)

    minimum_met = is_minimum_spend_met(total_spend, card.minimum_spend)

    breakdowns: list[SubcategoryCalculation] | None = None
    if context.in_effect:
        allocation = allocate_subcategories(card, context, spend_by_tag, minimum_met, miles_valuation)
        totals = allocation.totals
        breakdowns = list(allocation.breakdowns)
    else:
        totals = _allocate_card(card, matched, minimum_met, miles_valuation)

    maximum_exceeded = is_maximum_spend_exceeded(total_spend, card.maximum_spend) or is_maximum_spend_exceeded(
        totals.eligible_spend_before_blocks, card.maximum_spend
    )

    logger.debug(
        "card=%s period=%s matched=%d total=%.2f eligible=%.2f reward_dollars=%.4f",
        card.id,
        period.label,
        len(matched),
        total_spend,
        totals.eligible_spend,
        totals.reward_earned_dollars,
    )

    return SimplifiedCalculation(
        card_id=card.id,
        period=period.label,
        reward_type=card.type,
        total_spend=total_spend,
        eligible_spend=totals.eligible_spend,
        eligible_spend_before_blocks=totals.eligible_spend_before_blocks,
        reward_earned=totals.reward_earned,
        reward_earned_dollars=totals.reward_earned_dollars,
        minimum_spend=card.minimum_spend,
        minimum_spend_met=minimum_met,
        minimum_spend_progress=minimum_spend_progress(total_spend, card.minimum_spend),
        maximum_spend=card.maximum_spend,
        maximum_spend_exceeded=maximum_exceeded,
        maximum_spend_progress=maximum_spend_progress(totals.eligible_spend_before_blocks, card.maximum_spend),
        subcategory_breakdowns=breakdowns,
    )


def calculate_effective_rate(calculation: SimplifiedCalculation) -> float:
    """Reward dollars per dollar spent, as a percentage."""
    if calculation.total_spend == 0:
        return 0.0
    return calculation.reward_earned_dollars / calculation.total_spend * 100


def calculate_transaction_reward(
    amount: float,
    card: Card,
    settings: RewardSettings | None = None,
    tag: str | None = None,
) -> TransactionReward:
    settings = settings or RewardSettings()
    subcategory = resolve_subcategory(build_context(card), tag)

    rate = resolve_rate(card, subcategory)
    if not rate:
        return TransactionReward(reward=0, reward_dollars=0, reward_rate=0)

    block_size = resolve_block_size(card, subcategory)
    earnable, blocks = apply_block(amount, block_size)
    reward, reward_dollars = convert_reward(
        card.type, earnable, rate, effective_miles_valuation(settings.miles_valuation)
    )

    block_info = None
    if block_size and blocks > 0:
        block_info = f"{blocks} block{'s' if blocks != 1 else ''} x ${block_size:g}"

    return TransactionReward(reward=reward, reward_dollars=reward_dollars, reward_rate=rate, block_info=block_info)
