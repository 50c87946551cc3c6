import json
import logging
from pathlib import Path

from pydantic import BaseModel, Field

from cardrewards.domain.models import (
    Card,
    CardReference,
    RewardSettings,
    Subcategory,
    SubcategoryReference,
    ThemeGroup,
    Transaction,
)
from cardrewards.engine.subcategories import UNFLAGGED, normalize_tag

logger = logging.getLogger(__name__)


class Snapshot(BaseModel):
    settings: RewardSettings | None = None
    cards: list[Card] = Field(default_factory=list)
    themes: list[ThemeGroup] = Field(default_factory=list)
    transactions: list[Transaction] = Field(default_factory=list)


def normalise_card(card: Card) -> Card:
    """Make a card's subcategories safe for the engine.

    Tags are lowercased and unique (first one wins), an ``unflagged`` fallback
    is added when subcategories are enabled without one, and priorities are
    renumbered 0..n-1 in priority order.
    """
    seen: set[str] = set()
    subcategories: list[Subcategory] = []

    for index, subcategory in enumerate(card.subcategories):
        tag = normalize_tag(subcategory.flag_color)
        if tag in seen:
            logger.warning(
                "card %s: duplicate tag %r, skipping subcategory %r (index %d)",
                card.id,
                tag,
                subcategory.name,
                index,
            )
            continue
        seen.add(tag)
        subcategories.append(subcategory.model_copy(update={"flag_color": tag}))

    if card.subcategories_enabled and UNFLAGGED not in seen:
        subcategories.append(
            Subcategory(
                id=f"{card.id}-{UNFLAGGED}",
                name="Unflagged",
                flag_color=UNFLAGGED,
                reward_value=card.earning_rate or 0,
                priority=max((sub.priority for sub in subcategories), default=-1) + 1,
            )
        )

    subcategories.sort(key=lambda subcategory: subcategory.priority)
    subcategories = [
        subcategory.model_copy(update={"priority": index}) for index, subcategory in enumerate(subcategories)
    ]

    return card.model_copy(update={"subcategories": subcategories})


def normalise_theme(theme: ThemeGroup, cards: list[Card]) -> ThemeGroup:
    known = {card.id: {sub.id for sub in card.subcategories} for card in cards}

    subcategory_refs: list[SubcategoryReference] = []
    seen_pairs: set[tuple[str, str]] = set()
    for ref in theme.subcategories:
        key = (ref.card_id, ref.subcategory_id)
        if ref.subcategory_id not in known.get(ref.card_id, set()) or key in seen_pairs:
            continue
        seen_pairs.add(key)
        subcategory_refs.append(ref)

    card_refs: list[CardReference] = []
    seen_cards: set[str] = set()
    for ref in theme.cards:
        if ref.card_id not in known or ref.card_id in seen_cards:
            continue
        seen_cards.add(ref.card_id)
        card_refs.append(ref)

    return theme.model_copy(update={"subcategories": subcategory_refs, "cards": card_refs})


class CardStore:
    def __init__(self, snapshot_file: str):
        self.snapshot_file = Path(snapshot_file)

    def load(self) -> Snapshot:
        if not self.snapshot_file.exists():
            raise FileNotFoundError(f"Snapshot file not found: {self.snapshot_file}")

        with self.snapshot_file.open("r", encoding="utf-8") as fh:
            data = json.load(fh)

        snapshot = Snapshot.model_validate(data)
        cards = [normalise_card(card) for card in snapshot.cards]
        themes = sorted(
            (normalise_theme(theme, cards) for theme in snapshot.themes),
            key=lambda theme: theme.priority,
        )
        logger.info(
            "loaded %d card(s), %d theme(s), %d transaction(s) from %s",
            len(cards),
            len(themes),
            len(snapshot.transactions),
            self.snapshot_file,
        )
        return snapshot.model_copy(update={"cards": cards, "themes": themes})

    def load_cards(self) -> list[Card]:
        return self.load().cards
