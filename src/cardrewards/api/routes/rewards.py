import logging

from fastapi import APIRouter, HTTPException

from cardrewards.config import settings
from cardrewards.repository.card_store import CardStore
from cardrewards.schemas.requests import CalculateRequest, RecommendationsRequest
from cardrewards.schemas.responses import CalculateResponse, DashboardResponse
from cardrewards.services.orchestrator import RewardsOrchestrator

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/rewards", tags=["rewards"])
orchestrator = RewardsOrchestrator(CardStore(settings.snapshot_file), default_settings=settings.reward_settings())


@router.post("/calculate", response_model=CalculateResponse)
def calculate(request: CalculateRequest) -> CalculateResponse:
    try:
        return orchestrator.calculate(request)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc


@router.post("/recommendations", response_model=DashboardResponse)
def recommendations(request: RecommendationsRequest) -> DashboardResponse:
    try:
        return orchestrator.recommend(request)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc


@router.get("/snapshot", response_model=DashboardResponse)
def snapshot() -> DashboardResponse:
    try:
        return orchestrator.snapshot_dashboard()
    except FileNotFoundError as exc:
        logger.warning("snapshot unavailable: %s", exc)
        raise HTTPException(status_code=404, detail=str(exc)) from exc
