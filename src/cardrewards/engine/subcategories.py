"""Tag to subcategory resolution.

A transaction's tag selects at most one active subcategory of a card:

1. the active subcategory whose ``flag_color`` equals the normalised tag;
2. otherwise the card's ``unflagged`` subcategory, when subcategories are enabled;
3. otherwise nothing, and the caller falls back to the card's flat configuration.

Inactive subcategories never match. A matched subcategory with
``exclude_from_rewards`` tells the caller to drop the transaction from every
total, not only from rewards.
"""

from dataclasses import dataclass, field

from cardrewards.domain.models import Card, Subcategory

UNFLAGGED = "unflagged"


def normalize_tag(tag: str | None) -> str:
    if tag is None:
        return UNFLAGGED
    normalized = tag.strip().lower()
    return normalized or UNFLAGGED


@dataclass(frozen=True)
class SubcategoryContext:
    enabled: bool
    active_subcategories: list[Subcategory] = field(default_factory=list)
    by_tag: dict[str, Subcategory] = field(default_factory=dict)
    fallback: Subcategory | None = None

    @property
    def in_effect(self) -> bool:
        return self.enabled and bool(self.active_subcategories)


def build_context(card: Card) -> SubcategoryContext:
    if not card.subcategories_enabled:
        return SubcategoryContext(enabled=False)

    # sorted() is stable, so equal priorities keep their configured order.
    active = sorted(
        (subcategory for subcategory in card.subcategories if subcategory.active),
        key=lambda subcategory: subcategory.priority,
    )

    by_tag: dict[str, Subcategory] = {}
    for subcategory in active:
        by_tag.setdefault(normalize_tag(subcategory.flag_color), subcategory)

    return SubcategoryContext(
        enabled=True,
        active_subcategories=active,
        by_tag=by_tag,
        fallback=by_tag.get(UNFLAGGED),
    )


def resolve_subcategory(context: SubcategoryContext, tag: str | None) -> Subcategory | None:
    if not context.enabled:
        return None

    matched = context.by_tag.get(normalize_tag(tag))
    if matched is not None:
        return matched
    return context.fallback
