"""
Policy admin API - FastAPI router for pricing policy versions.
"""
from typing import Any, Optional

from fastapi import APIRouter, Depends, Header
from pydantic import BaseModel, ConfigDict, Field

from ..policy.validation import PolicyDefinition
from ..services.policy_service import PolicyService
from .deps import get_policy_service

router = APIRouter(prefix="/api/admin/pricing", tags=["pricing-policies"])


# Pydantic models for API
class PolicyPayload(BaseModel):
    """Request model for saving a policy version."""
    model_config = ConfigDict(populate_by_name=True)

    name: Optional[str] = None
    buy_formula: Optional[dict[str, Any]] = Field(default=None, alias="buyFormula")
    sell_formula: Optional[dict[str, Any]] = Field(default=None, alias="sellFormula")
    condition_curve: Optional[dict[str, Any]] = Field(default=None, alias="conditionCurve")
    min_offer: Optional[float] = Field(default=None, alias="minOffer")
    max_offer: Optional[float] = Field(default=None, alias="maxOffer")
    offer_expiry_days: Optional[int] = Field(default=None, alias="offerExpiryDays")

    def to_definition(self) -> PolicyDefinition:
        return PolicyDefinition(**self.model_dump())


class RollbackPayload(BaseModel):
    """Request model for a rollback."""
    version: Optional[int] = None


# Endpoints

@router.post("/cache/clear")
async def clear_cache(service: PolicyService = Depends(get_policy_service)):
    """Drop every cached policy."""
    service.clear_policy_cache()
    return {"success": True, "message": "Pricing policy cache cleared"}


@router.get("/{scope}")
def get_policy(scope: str, service: PolicyService = Depends(get_policy_service)):
    """Get the active policy for BUYER or SELLER."""
    policy = service.get_active_policy(scope)
    if policy is None:
        return {"success": True, "data": None, "message": f"No active {scope.upper()} pricing policy found"}
    return {"success": True, "data": policy.to_dict()}


@router.post("/{scope}", status_code=201)
def save_policy(
    scope: str,
    payload: PolicyPayload,
    service: PolicyService = Depends(get_policy_service),
    actor: Optional[str] = Header(default=None, alias="X-Actor-Id"),
):
    """Save a new policy version; the previous one is deactivated."""
    policy = service.save_policy(scope, payload.to_definition(), actor)
    return {
        "success": True,
        "data": policy.to_dict(),
        "message": f"{policy.scope} pricing policy saved (v{policy.version})",
    }


@router.get("/{scope}/history")
def get_history(scope: str, service: PolicyService = Depends(get_policy_service)):
    """All versions for a scope, newest first, with recent audits."""
    history = service.list_policy_history(scope)
    return {"success": True, "data": [entry.to_dict() for entry in history]}


@router.post("/{scope}/rollback")
def rollback_policy(
    scope: str,
    payload: RollbackPayload,
    service: PolicyService = Depends(get_policy_service),
    actor: Optional[str] = Header(default=None, alias="X-Actor-Id"),
):
    """Restore an older version's content as a new version."""
    policy = service.rollback_policy(scope, payload.version, actor)
    return {
        "success": True,
        "data": policy.to_dict(),
        "message": f"{policy.scope} pricing policy rolled back to v{payload.version} (now v{policy.version})",
    }
