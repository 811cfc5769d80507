"""
Pricing API - buy offers, sell prices and markdowns.
"""
from datetime import datetime
from typing import Any, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict, Field

from ..engine.pricing_engine import PricingEngine
from .deps import get_engine

router = APIRouter(prefix="/api/pricing", tags=["pricing"])


class PriceRequest(BaseModel):
    """Fields shared by buy and sell requests."""
    model_config = ConfigDict(populate_by_name=True)

    release_id: str = Field(alias="releaseId")
    media_condition: str = Field(alias="mediaCondition")
    sleeve_condition: str = Field(alias="sleeveCondition")
    market_source: Optional[str] = Field(default=None, alias="marketSource")
    market_statistic: Optional[str] = Field(default=None, alias="marketStatistic")
    formula_override: Optional[dict[str, Any]] = Field(default=None, alias="formulaOverride")


class SellPriceRequest(PriceRequest):
    # Optional here so a missing value gets the engine's cost-basis error
    cost_basis: Optional[float] = Field(default=None, alias="costBasis")


class MarkdownRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    current_price: float = Field(alias="currentPrice")
    listed_at: datetime = Field(alias="listedAt")
    cost_basis: float = Field(default=0.0, alias="costBasis")
    markdown_schedule: Optional[dict[int, float]] = Field(default=None, alias="markdownSchedule")


@router.post("/buy")
def calculate_buy(req: PriceRequest, engine: PricingEngine = Depends(get_engine)):
    """Acquisition offer for a release."""
    result = engine.calculate_buy_price(
        req.release_id,
        req.media_condition,
        req.sleeve_condition,
        market_source=req.market_source,
        market_statistic=req.market_statistic,
        formula_override=req.formula_override,
    )
    return {"success": True, "data": result.to_dict()}


@router.post("/sell")
def calculate_sell(req: SellPriceRequest, engine: PricingEngine = Depends(get_engine)):
    """Listing price for a release."""
    result = engine.calculate_sell_price(
        req.release_id,
        req.media_condition,
        req.sleeve_condition,
        req.cost_basis,
        market_source=req.market_source,
        market_statistic=req.market_statistic,
        formula_override=req.formula_override,
    )
    return {"success": True, "data": result.to_dict()}


@router.post("/markdown")
def calculate_markdown(req: MarkdownRequest, engine: PricingEngine = Depends(get_engine)):
    """Scheduled discount for a listing."""
    result = engine.calculate_markdown(
        req.current_price,
        req.listed_at,
        req.cost_basis,
        schedule=req.markdown_schedule,
    )
    return {"success": True, "data": result.to_dict()}
