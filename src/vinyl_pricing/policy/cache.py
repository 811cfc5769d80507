"""
Policy Cache - short-TTL read cache in front of the PolicyStore.

Entries hold the already-migrated ActivePolicy, so formula normalization runs
once per population rather than on every calculation. A scope with no
active policy caches the engine defaults for the same TTL window.
"""
import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable, Hashable, Optional

from ..config.settings import PricingDefaults
from ..engine.models import Direction, FormulaConfig
from .migration import default_formula, migrate_formula
from .store import PolicyStore, PricingPolicy, normalize_scope

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 5 * 60


@dataclass(frozen=True)
class ActivePolicy:
    """Normalized view of a scope's active policy, ready for the calculator."""
    scope: str
    policy_id: Optional[str]
    version: Optional[int]
    buy_formula: FormulaConfig
    sell_formula: FormulaConfig
    offer_expiry_days: int
    min_offer: Optional[float] = None
    max_offer: Optional[float] = None

    @property
    def policy_used(self) -> str:
        return self.policy_id or 'default'

    def formula_for(self, direction: Direction) -> FormulaConfig:
        return self.buy_formula if Direction(direction) is Direction.BUY else self.sell_formula


def build_active_policy(scope: str, policy: Optional[PricingPolicy], defaults: PricingDefaults) -> ActivePolicy:
    """Migrate a stored policy (or its absence) into an ActivePolicy."""
    if policy is None:
        return ActivePolicy(
            scope=scope,
            policy_id=None,
            version=None,
            buy_formula=default_formula(Direction.BUY, defaults),
            sell_formula=default_formula(Direction.SELL, defaults),
            offer_expiry_days=defaults.offer_expiry_days,
        )
    return ActivePolicy(
        scope=scope,
        policy_id=policy.id,
        version=policy.version,
        buy_formula=migrate_formula(policy.buy_formula, Direction.BUY, policy.condition_curve, defaults),
        sell_formula=migrate_formula(policy.sell_formula, Direction.SELL, policy.condition_curve, defaults),
        offer_expiry_days=policy.offer_expiry_days or defaults.offer_expiry_days,
        min_offer=policy.min_offer,
        max_offer=policy.max_offer,
    )


def _freeze(context) -> Hashable:
    """Turn an optional context mapping into a hashable key component."""
    if context is None:
        return None
    if isinstance(context, dict):
        return tuple(sorted((str(k), _freeze(v)) for k, v in context.items()))
    if isinstance(context, (list, tuple, set)):
        return tuple(_freeze(v) for v in context)
    return context


class PolicyCache:
    """Thread-safe TTL cache keyed by (scope, context)."""

    def __init__(
        self,
        store: PolicyStore,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        defaults: Optional[PricingDefaults] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.store = store
        self.ttl_seconds = ttl_seconds
        self.defaults = defaults or store.defaults
        self.clock = clock
        self._entries: dict[tuple, tuple[float, ActivePolicy]] = {}
        self._generation = 0
        self._lock = threading.Lock()

    def get(self, scope, context: Optional[dict] = None) -> ActivePolicy:
        """
        Return the active policy for scope.

        ``context`` is part of the key (reserved for genre/label/channel
        segmentation) but does not yet change which policy is returned.
        """
        scope = normalize_scope(scope)
        key = (scope, _freeze(context))

        with self._lock:
            entry = self._entries.get(key)
            if entry is not None and self.clock() - entry[0] < self.ttl_seconds:
                return entry[1]
            generation = self._generation

        # Load outside the lock. A clear() during the load bumps the
        # generation, and the loaded policy is then returned but not cached.
        active = build_active_policy(scope, self.store.get_active(scope), self.defaults)
        with self._lock:
            if generation == self._generation:
                self._entries[key] = (self.clock(), active)
        logger.debug("Policy cache populated: %s v%s", scope, active.version)
        return active

    def clear(self):
        """Drop every entry across all scopes and contexts."""
        with self._lock:
            self._entries.clear()
            self._generation += 1
        logger.debug("Policy cache cleared")

    def __len__(self):
        with self._lock:
            return len(self._entries)
