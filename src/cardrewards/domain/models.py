import datetime as dt
from enum import Enum
from typing import Literal

from pydantic import BaseModel, Field


class RewardType(str, Enum):
    CASHBACK = "cashback"
    MILES = "miles"


class BillingCycle(BaseModel):
    type: Literal["calendar", "billing"] = "calendar"
    day_of_month: int | None = Field(default=None, ge=1, le=31)


class Subcategory(BaseModel):
    id: str
    name: str
    flag_color: str
    reward_value: float = 0
    miles_block_size: float | None = None
    minimum_spend: float | None = None
    maximum_spend: float | None = None
    priority: int = 0
    active: bool = True
    exclude_from_rewards: bool = False
    created_at: dt.datetime | None = None
    updated_at: dt.datetime | None = None


class Card(BaseModel):
    id: str
    name: str
    issuer: str = "Unknown"
    type: RewardType
    account_id: str
    billing_cycle: BillingCycle = Field(default_factory=BillingCycle)
    featured: bool = True
    earning_rate: float | None = None
    earning_block_size: float | None = None
    minimum_spend: float | None = None
    maximum_spend: float | None = None
    subcategories_enabled: bool = False
    subcategories: list[Subcategory] = Field(default_factory=list)


class Transaction(BaseModel):
    """A budgeting transaction; amounts are signed milliunits, negative = spend."""

    id: str
    date: dt.date
    amount: int
    account_id: str
    flag_color: str | None = None
    flag_name: str | None = None
    payee_name: str | None = None
    category_name: str | None = None
    memo: str | None = None


class RewardSettings(BaseModel):
    currency: str = "USD"
    miles_valuation: float = 0.01


class CalculationPeriod(BaseModel):
    start: dt.date
    end: dt.date
    label: str


class SubcategoryCalculation(BaseModel):
    id: str
    name: str
    flag_color: str
    total_spend: float = 0
    eligible_spend_before_blocks: float = 0
    eligible_spend: float = 0
    reward_rate: float = 0
    reward_earned: float = 0
    reward_earned_dollars: float = 0
    minimum_spend: float | None = None
    minimum_spend_met: bool = False
    maximum_spend: float | None = None
    maximum_spend_exceeded: bool = False
    block_size: float | None = None
    blocks_earned: int = 0
    active: bool = True
    excluded: bool = False


class SimplifiedCalculation(BaseModel):
    card_id: str
    period: str
    reward_type: RewardType
    total_spend: float = 0
    eligible_spend: float = 0
    eligible_spend_before_blocks: float = 0
    reward_earned: float = 0
    reward_earned_dollars: float = 0
    minimum_spend: float | None = None
    minimum_spend_met: bool = True
    minimum_spend_progress: float | None = None
    maximum_spend: float | None = None
    maximum_spend_exceeded: bool = False
    maximum_spend_progress: float | None = None
    subcategory_breakdowns: list[SubcategoryCalculation] | None = None

    @property
    def should_stop_using(self) -> bool:
        return self.maximum_spend_exceeded


class TransactionReward(BaseModel):
    reward: float
    reward_dollars: float
    reward_rate: float
    block_info: str | None = None


class CardReference(BaseModel):
    card_id: str


class SubcategoryReference(BaseModel):
    card_id: str
    subcategory_id: str


class ThemeGroup(BaseModel):
    id: str
    name: str
    description: str | None = None
    priority: int = 0
    cards: list[CardReference] = Field(default_factory=list)
    subcategories: list[SubcategoryReference] = Field(default_factory=list)


InsightStatus = Literal["use", "consider", "avoid"]


class ThemeCardInsight(BaseModel):
    card_id: str
    card_name: str
    card_type: RewardType
    reward_rate: float
    reward_earned_dollars: float
    total_spend: float
    eligible_spend: float
    eligible_spend_before_blocks: float
    has_data: bool
    minimum_met: bool
    minimum_progress: float | None = None
    minimum_target: float | None = None
    minimum_remaining: float | None = None
    card_minimum_met: bool
    card_minimum_progress: float | None = None
    maximum_cap: float | None = None
    maximum_progress: float | None = None
    headroom_to_maximum: float | None = None
    card_maximum_cap: float | None = None
    card_maximum_progress: float | None = None
    card_maximum_exceeded: bool = False
    status: InsightStatus
    should_avoid: bool


class ThemeRecommendation(BaseModel):
    theme_id: str
    theme_name: str
    theme_description: str | None = None
    insights: list[ThemeCardInsight]


class CardAlert(BaseModel):
    card_id: str
    card_name: str
    reason: str
    priority: Literal["high", "medium", "low"]
    action: InsightStatus


class CardRanking(BaseModel):
    card_id: str
    card_name: str
    calculation: SimplifiedCalculation
    effective_rate: float
