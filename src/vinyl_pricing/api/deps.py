"""Request dependencies resolving the per-app components."""
from fastapi import Request

from ..engine.pricing_engine import PricingEngine
from ..services.policy_service import PolicyService
from .state import Components


def get_components(request: Request) -> Components:
    return request.app.state.components


def get_policy_service(request: Request) -> PolicyService:
    return get_components(request).policy_service


def get_engine(request: Request) -> PricingEngine:
    return get_components(request).engine
