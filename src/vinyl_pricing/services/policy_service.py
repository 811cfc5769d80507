"""
Policy Service - admin operations over pricing policies.
Every mutation invalidates the policy cache so the next calculation reads it.
"""
import logging
from typing import Optional, Union

from ..policy.cache import PolicyCache
from ..policy.store import PolicyHistoryEntry, PolicyStore, PricingPolicy
from ..policy.validation import PolicyDefinition

logger = logging.getLogger(__name__)


class PolicyService:
    """Get, save, list, roll back and cache-clear pricing policies."""

    def __init__(self, store: PolicyStore, cache: PolicyCache):
        self.store = store
        self.cache = cache

    def get_active_policy(self, scope) -> Optional[PricingPolicy]:
        """The stored active policy, or None when the scope runs on defaults."""
        return self.store.get_active(scope)

    def save_policy(
        self,
        scope,
        definition: Union[PolicyDefinition, dict],
        actor: Optional[str] = None,
    ) -> PricingPolicy:
        policy = self.store.save(scope, definition, actor)
        self.cache.clear()
        logger.info("%s pricing policy saved (v%s)", policy.scope, policy.version)
        return policy

    def list_policy_history(self, scope) -> list[PolicyHistoryEntry]:
        return self.store.list_history(scope)

    def rollback_policy(self, scope, target_version: int, actor: Optional[str] = None) -> PricingPolicy:
        policy = self.store.rollback(scope, target_version, actor)
        self.cache.clear()
        logger.info(
            "%s pricing policy rolled back to v%s (now v%s)",
            policy.scope, target_version, policy.version,
        )
        return policy

    def clear_policy_cache(self) -> dict:
        self.cache.clear()
        logger.info("Pricing policy cache cleared")
        return {'cleared': True}
