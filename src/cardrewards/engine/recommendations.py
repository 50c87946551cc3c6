import logging
import math
from collections.abc import Sequence
from dataclasses import dataclass, field

from cardrewards.domain.models import (
    Card,
    CardAlert,
    RewardSettings,
    RewardType,
    SimplifiedCalculation,
    Subcategory,
    SubcategoryCalculation,
    SubcategoryReference,
    ThemeCardInsight,
    ThemeGroup,
    ThemeRecommendation,
)
from cardrewards.engine.reward_math import (
    effective_miles_valuation,
    is_minimum_spend_met,
    maximum_spend_progress,
    minimum_spend_progress,
    positive_or_none,
)

logger = logging.getLogger(__name__)

MINIMUM_PROGRESS_ATTENTION_THRESHOLD = 50
MINIMUM_PROGRESS_ALERT_THRESHOLD = 80
EFFECTIVE_RATE_GOOD_THRESHOLD = 0.02

# Remaining minimum spend below this is treated as met.
MINIMUM_REMAINING_TOLERANCE = 0.0001

_PRIORITY_ORDER = {"high": 3, "medium": 2, "low": 1}


@dataclass
class CardEntry:
    refs: list[SubcategoryReference] = field(default_factory=list)
    include_whole: bool = False


def build_card_entries(theme: ThemeGroup) -> dict[str, CardEntry]:
    """Group a theme's references by card.

    Subcategory references win over a whole-card reference to the same card.
    """
    entries: dict[str, CardEntry] = {}

    for ref in theme.subcategories:
        if not ref.card_id or not ref.subcategory_id:
            continue
        entries.setdefault(ref.card_id, CardEntry()).refs.append(ref)

    for ref in theme.cards:
        if not ref.card_id:
            continue
        entry = entries.get(ref.card_id)
        if entry is None:
            entries[ref.card_id] = CardEntry(include_whole=True)
        elif not entry.refs:
            entry.include_whole = True

    return entries


def _fallback_rate(card: Card, miles_valuation: float) -> float:
    match card.type:
        case RewardType.CASHBACK:
            return (card.earning_rate or 0) / 100
        case RewardType.MILES:
            return (card.earning_rate or 0) * miles_valuation
    raise ValueError(f"Unsupported reward type: {card.type!r}")


def _status(should_avoid: bool, minimum_met: bool) -> str:
    if should_avoid:
        return "avoid"
    return "use" if minimum_met else "consider"


def create_whole_card_insight(
    card: Card, calculation: SimplifiedCalculation | None, miles_valuation: float
) -> ThemeCardInsight:
    total_spend = calculation.total_spend if calculation else 0.0
    eligible_spend = calculation.eligible_spend if calculation else 0.0
    before_blocks = calculation.eligible_spend_before_blocks if calculation else 0.0
    reward_dollars = calculation.reward_earned_dollars if calculation else 0.0

    reward_rate = reward_dollars / total_spend if total_spend > 0 else _fallback_rate(card, miles_valuation)

    minimum_target = positive_or_none(card.minimum_spend)
    if calculation is not None:
        minimum_progress = calculation.minimum_spend_progress
        minimum_met = calculation.minimum_spend_met
    else:
        minimum_progress = minimum_spend_progress(total_spend, card.minimum_spend)
        minimum_met = is_minimum_spend_met(total_spend, card.minimum_spend)
    minimum_remaining = max(0.0, minimum_target - total_spend) if minimum_target else None

    maximum_cap = positive_or_none(card.maximum_spend)
    headroom = max(0.0, maximum_cap - before_blocks) if maximum_cap else None
    if calculation is not None:
        maximum_progress = calculation.maximum_spend_progress
        maximum_exceeded = calculation.maximum_spend_exceeded
    else:
        maximum_progress = maximum_spend_progress(before_blocks, card.maximum_spend)
        maximum_exceeded = headroom is not None and headroom <= 0

    should_avoid = bool(calculation and calculation.should_stop_using) or maximum_exceeded

    return ThemeCardInsight(
        card_id=card.id,
        card_name=card.name,
        card_type=card.type,
        reward_rate=reward_rate,
        reward_earned_dollars=reward_dollars,
        total_spend=total_spend,
        eligible_spend=eligible_spend,
        eligible_spend_before_blocks=before_blocks,
        has_data=total_spend > 0 or eligible_spend > 0,
        minimum_met=minimum_met,
        minimum_progress=minimum_progress,
        minimum_target=minimum_target,
        minimum_remaining=minimum_remaining,
        card_minimum_met=minimum_met,
        card_minimum_progress=minimum_progress,
        maximum_cap=maximum_cap,
        maximum_progress=maximum_progress,
        headroom_to_maximum=headroom,
        card_maximum_cap=maximum_cap,
        card_maximum_progress=maximum_progress,
        card_maximum_exceeded=maximum_exceeded,
        status=_status(should_avoid, minimum_met),
        should_avoid=should_avoid,
    )


def create_subcategory_insight(
    card: Card,
    calculation: SimplifiedCalculation | None,
    refs: Sequence[SubcategoryReference],
    miles_valuation: float,
) -> ThemeCardInsight | None:
    """Aggregate the linked subcategories of one card into a single insight.

    Spend and rewards are summed, minimum targets and caps are summed, and the
    smallest remaining headroom among capped subcategories is the binding one.
    """
    if not refs or not card.subcategories_enabled or not card.subcategories:
        return None

    definitions: dict[str, Subcategory] = {sub.id: sub for sub in card.subcategories}
    breakdowns: dict[str, SubcategoryCalculation] = {}
    if calculation is not None and calculation.subcategory_breakdowns:
        breakdowns = {breakdown.id: breakdown for breakdown in calculation.subcategory_breakdowns}

    total_spend = 0.0
    eligible_spend = 0.0
    before_blocks_total = 0.0
    reward_dollars = 0.0
    has_data = False

    minimum_target_sum = 0.0
    minimum_progress_numerator = 0.0
    minimum_remaining_total = 0.0

    has_maximum = False
    maximum_cap_sum = 0.0
    maximum_progress_numerator = 0.0
    min_headroom = math.inf
    maximum_exceeded = False

    for ref in refs:
        definition = definitions.get(ref.subcategory_id)
        if definition is None or not definition.active or definition.exclude_from_rewards:
            continue

        breakdown = breakdowns.get(ref.subcategory_id)
        spend = breakdown.total_spend if breakdown else 0.0
        eligible = breakdown.eligible_spend if breakdown else 0.0
        before_blocks = breakdown.eligible_spend_before_blocks if breakdown else 0.0

        has_data = has_data or spend > 0 or eligible > 0
        total_spend += spend
        eligible_spend += eligible
        before_blocks_total += before_blocks
        reward_dollars += breakdown.reward_earned_dollars if breakdown else 0.0

        minimum = positive_or_none(definition.minimum_spend)
        if minimum:
            minimum_target_sum += minimum
            minimum_progress_numerator += min(spend, minimum)
            minimum_remaining_total += max(0.0, minimum - spend)

        maximum = positive_or_none(definition.maximum_spend)
        if maximum:
            has_maximum = True
            maximum_cap_sum += maximum
            maximum_progress_numerator += min(before_blocks, maximum)
            min_headroom = min(min_headroom, max(0.0, maximum - before_blocks))
            if before_blocks >= maximum:
                maximum_exceeded = True

    minimum_target = minimum_target_sum if minimum_target_sum > 0 else None
    minimum_progress = None
    minimum_remaining = None
    if minimum_target:
        minimum_progress = min(100.0, minimum_progress_numerator / minimum_target * 100)
        minimum_remaining = minimum_remaining_total
    minimum_met = minimum_remaining is None or minimum_remaining <= MINIMUM_REMAINING_TOLERANCE

    maximum_progress = None
    headroom = None
    if has_maximum:
        maximum_progress = min(100.0, maximum_progress_numerator / maximum_cap_sum * 100)
        headroom = min_headroom
        if headroom <= 0:
            maximum_exceeded = True

    if calculation is not None:
        card_minimum_met = calculation.minimum_spend_met
        card_minimum_progress = calculation.minimum_spend_progress
        card_maximum_progress = calculation.maximum_spend_progress
        card_maximum_exceeded = calculation.maximum_spend_exceeded
    else:
        card_minimum_met = card.minimum_spend is None or card.minimum_spend <= 0
        card_minimum_progress = None
        card_maximum_progress = None
        card_maximum_exceeded = False

    should_avoid = bool(calculation and calculation.should_stop_using) or maximum_exceeded or card_maximum_exceeded
    reward_rate = reward_dollars / total_spend if total_spend > 0 else _fallback_rate(card, miles_valuation)

    return ThemeCardInsight(
        card_id=card.id,
        card_name=card.name,
        card_type=card.type,
        reward_rate=reward_rate,
        reward_earned_dollars=reward_dollars,
        total_spend=total_spend,
        eligible_spend=eligible_spend,
        eligible_spend_before_blocks=before_blocks_total,
        has_data=has_data,
        minimum_met=minimum_met,
        minimum_progress=minimum_progress,
        minimum_target=minimum_target,
        minimum_remaining=minimum_remaining,
        card_minimum_met=card_minimum_met,
        card_minimum_progress=card_minimum_progress,
        maximum_cap=maximum_cap_sum if has_maximum else None,
        maximum_progress=maximum_progress,
        headroom_to_maximum=headroom,
        card_maximum_cap=positive_or_none(card.maximum_spend),
        card_maximum_progress=card_maximum_progress,
        card_maximum_exceeded=card_maximum_exceeded,
        status=_status(should_avoid, minimum_met and card_minimum_met),
        should_avoid=should_avoid,
    )


def _insight_sort_key(insight: ThemeCardInsight) -> tuple[bool, bool, float, float]:
    # Avoid sorts last even when short of a minimum; otherwise unmet minimums come first.
    minimum_reached = insight.minimum_met and insight.card_minimum_met
    return (insight.should_avoid, minimum_reached, -insight.reward_rate, -insight.reward_earned_dollars)


def rank_insights(insights: Sequence[ThemeCardInsight]) -> list[ThemeCardInsight]:
    return sorted(insights, key=_insight_sort_key)


def latest_calculations(calculations: Sequence[SimplifiedCalculation]) -> dict[str, SimplifiedCalculation]:
    by_card: dict[str, SimplifiedCalculation] = {}
    for calculation in calculations:
        existing = by_card.get(calculation.card_id)
        if existing is None or calculation.period >= existing.period:
            by_card[calculation.card_id] = calculation
    return by_card


def generate_theme_recommendations(
    themes: Sequence[ThemeGroup],
    cards: Sequence[Card],
    calculations: Sequence[SimplifiedCalculation],
    settings: RewardSettings | None = None,
) -> list[ThemeRecommendation]:
    if not themes:
        return []

    settings = settings or RewardSettings()
    miles_valuation = effective_miles_valuation(settings.miles_valuation)
    card_map = {card.id: card for card in cards}
    calculation_by_card = latest_calculations(calculations)

    recommendations: list[ThemeRecommendation] = []
    for theme in sorted(themes, key=lambda item: item.priority):
        insights: list[ThemeCardInsight] = []

        for card_id, entry in build_card_entries(theme).items():
            card = card_map.get(card_id)
            if card is None:
                logger.debug("theme %s references unknown card %s", theme.id, card_id)
                continue

            calculation = calculation_by_card.get(card_id)
            insight = None
            if entry.refs:
                insight = create_subcategory_insight(card, calculation, entry.refs, miles_valuation)
            if insight is None and entry.include_whole:
                insight = create_whole_card_insight(card, calculation, miles_valuation)
            if insight is not None:
                insights.append(insight)

        if insights:
            recommendations.append(
                ThemeRecommendation(
                    theme_id=theme.id,
                    theme_name=theme.name,
                    theme_description=theme.description,
                    insights=rank_insights(insights),
                )
            )

    return recommendations


def _average_effective_rate(calculations: Sequence[SimplifiedCalculation]) -> float:
    if not calculations:
        return 0.0

    total_rate = sum(
        calculation.reward_earned_dollars / calculation.eligible_spend
        for calculation in calculations
        if calculation.eligible_spend > 0
    )
    return total_rate / len(calculations)


def generate_card_alerts(
    cards: Sequence[Card], calculations: Sequence[SimplifiedCalculation]
) -> list[CardAlert]:
    """One dashboard alert per card at most, highest priority first."""
    alerts: list[CardAlert] = []

    for card in cards:
        card_calculations = [calculation for calculation in calculations if calculation.card_id == card.id]

        if not card_calculations:
            alerts.append(
                CardAlert(
                    card_id=card.id,
                    card_name=card.name,
                    reason="No activity this period",
                    priority="low",
                    action="consider",
                )
            )
            continue

        if any(calculation.should_stop_using for calculation in card_calculations):
            alerts.append(
                CardAlert(
                    card_id=card.id,
                    card_name=card.name,
                    reason="Maximum spending limit reached",
                    priority="high",
                    action="avoid",
                )
            )
            continue

        needs_more_spend = any(
            calculation.minimum_spend_progress is not None
            and MINIMUM_PROGRESS_ATTENTION_THRESHOLD < calculation.minimum_spend_progress < 100
            for calculation in card_calculations
        )
        if needs_more_spend:
            alerts.append(
                CardAlert(
                    card_id=card.id,
                    card_name=card.name,
                    reason="Close to meeting minimum spend requirement",
                    priority="medium",
                    action="use",
                )
            )
            continue

        average_rate = _average_effective_rate(card_calculations)
        if average_rate > EFFECTIVE_RATE_GOOD_THRESHOLD:
            alerts.append(
                CardAlert(
                    card_id=card.id,
                    card_name=card.name,
                    reason=f"Good reward rate ({average_rate * 100:.1f}%)",
                    priority="medium",
                    action="use",
                )
            )

    alerts.sort(key=lambda alert: _PRIORITY_ORDER[alert.priority], reverse=True)
    return alerts


def generate_attention_alerts(
    cards: Sequence[Card], calculations: Sequence[SimplifiedCalculation]
) -> list[CardAlert]:
    card_map = {card.id: card for card in cards}
    alerts: list[CardAlert] = []

    for calculation in calculations:
        card = card_map.get(calculation.card_id)
        if card is None:
            continue

        if calculation.should_stop_using:
            alerts.append(
                CardAlert(
                    card_id=card.id,
                    card_name=card.name,
                    reason="Stop using - maximum spend reached",
                    priority="high",
                    action="avoid",
                )
            )

        progress = calculation.minimum_spend_progress
        if progress is not None and progress < MINIMUM_PROGRESS_ALERT_THRESHOLD:
            alerts.append(
                CardAlert(
                    card_id=card.id,
                    card_name=card.name,
                    reason=f"Only {math.floor(progress + 0.5)}% of minimum spend",
                    priority="medium",
                    action="use",
                )
            )

    return alerts
