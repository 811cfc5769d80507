"""
Print the active policy for each scope as the engine sees it, after
formula migration, plus the most recent history.

Usage:
    python scripts/show_policy.py
"""
import sys
from pathlib import Path

# Add src to path
src_path = Path(__file__).parent.parent / 'src'
sys.path.insert(0, str(src_path))

from vinyl_pricing.api.state import build_components
from vinyl_pricing.engine.models import Direction


def show():
    components = build_components(providers=[])

    for scope in ("BUYER", "SELLER"):
        active = components.policy_cache.get(scope)
        print(f"\n=== {scope} ===")
        print(f"Policy: {active.policy_used} (v{active.version})")
        print(f"Offer expiry: {active.offer_expiry_days} days")
        for direction in (Direction.BUY, Direction.SELL):
            f = active.formula_for(direction)
            print(
                f"  {direction.value}: {f.percentage:.2%} | weights {f.weights.media}/{f.weights.sleeve}"
                f" | round {f.round_increment} | [{f.floor}, {f.ceiling}] | margin {f.min_profit_margin}"
            )

        history = components.policy_service.list_policy_history(scope)
        for entry in history[:5]:
            flag = "*" if entry.policy.is_active else " "
            change = entry.audits[0].change_type if entry.audits else "-"
            print(f"  {flag} v{entry.policy.version} {entry.policy.name} ({change})")


if __name__ == "__main__":
    show()
