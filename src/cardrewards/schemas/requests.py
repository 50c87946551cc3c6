import datetime as dt

from pydantic import BaseModel, Field

from cardrewards.domain.models import Card, RewardSettings, ThemeGroup, Transaction


class CalculateRequest(BaseModel):
    cards: list[Card]
    transactions: list[Transaction] = Field(default_factory=list)
    now: dt.date | None = None
    settings: RewardSettings | None = None
    card_ids: list[str] | None = None


class RecommendationsRequest(CalculateRequest):
    themes: list[ThemeGroup] = Field(default_factory=list)
