from pydantic import BaseModel

from cardrewards.domain.models import CalculationPeriod, CardAlert, SimplifiedCalculation, ThemeRecommendation


class CardSummary(BaseModel):
    card_id: str
    card_name: str
    period: CalculationPeriod
    days_remaining: int
    calculation: SimplifiedCalculation
    effective_rate: float


class CalculateResponse(BaseModel):
    cards: list[CardSummary]


class DashboardResponse(BaseModel):
    cards: list[CardSummary]
    themes: list[ThemeRecommendation]
    alerts: list[CardAlert]
    attention_alerts: list[CardAlert]
