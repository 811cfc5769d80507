"""
Markdown Scheduler - time-based discounts for unsold listings.

Independent of policies and market data: only the listing's own price,
listing date and cost basis are consulted.
"""
import math
from datetime import datetime, timezone
from typing import Callable, Optional

from ..errors import ValidationError
from .calculator import to_cents
from .models import MarkdownResult, utc_now

DEFAULT_MARKDOWN_SCHEDULE = {30: 0.10, 60: 0.20}

SECONDS_PER_DAY = 24 * 60 * 60


def _is_finite(value) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and math.isfinite(value)


def _normalize_schedule(schedule: dict) -> list[tuple[int, float]]:
    """Parse {days: discount} into (days, discount) pairs, largest threshold first."""
    pairs = []
    for days, discount in schedule.items():
        try:
            threshold = int(days)
            fraction = float(discount)
        except (TypeError, ValueError):
            raise ValidationError(f"Invalid markdown schedule entry: {days}={discount}", code='invalid_schedule')
        if threshold < 0 or not 0 <= fraction <= 1:
            raise ValidationError(
                f"Markdown schedule needs days >= 0 and discounts in [0, 1], got {days}={discount}",
                code='invalid_schedule',
            )
        pairs.append((threshold, fraction))
    pairs.sort(key=lambda p: p[0], reverse=True)
    return pairs


class MarkdownScheduler:
    """Computes the scheduled discount for a listing based on days listed."""

    def __init__(self, schedule: Optional[dict] = None, clock: Callable[[], datetime] = utc_now):
        self.schedule = dict(schedule if schedule is not None else DEFAULT_MARKDOWN_SCHEDULE)
        self.clock = clock

    def calculate_markdown(
        self,
        current_price: float,
        listed_at: datetime,
        cost_basis: float,
        schedule: Optional[dict] = None,
    ) -> MarkdownResult:
        """
        Apply the highest markdown whose threshold has been reached.

        margin_protected only reports whether the new price still covers the
        cost basis; the price is never clamped to it.
        """
        if not _is_finite(current_price) or current_price <= 0:
            raise ValidationError('Valid current price is required', code='invalid_current_price')
        if not isinstance(listed_at, datetime):
            raise ValidationError('Valid listedAt date is required', code='invalid_listed_at')

        # Naive datetimes are taken as UTC
        if listed_at.tzinfo is None:
            listed_at = listed_at.replace(tzinfo=timezone.utc)

        now = self.clock()
        days_listed = math.floor((now - listed_at).total_seconds() / SECONDS_PER_DAY)

        discount = 0.0
        for threshold, fraction in _normalize_schedule(schedule if schedule is not None else self.schedule):
            if days_listed >= threshold:
                discount = fraction
                break

        new_price = current_price * (1 - discount)
        final_price = min(new_price, current_price)

        return MarkdownResult(
            new_price=to_cents(final_price),
            discount_percent=round(discount * 100, 1),
            days_listed=days_listed,
            original_price=to_cents(current_price),
            margin_protected=final_price >= (cost_basis or 0),
        )
