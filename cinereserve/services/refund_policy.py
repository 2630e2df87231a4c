from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal, ROUND_FLOOR

from cinereserve.core.config import settings


@dataclass(frozen=True)
class RefundPolicy:
    """Step function of hours-to-showtime -> refund percent.

    `tiers` is a sequence of (min_hours_before_show, percent); the first tier whose
    threshold is met wins. Inside every threshold the refund is zero.
    """
    tiers: tuple[tuple[float, int], ...]

    def __post_init__(self):
        ordered = tuple(sorted(((float(h), int(p)) for h, p in self.tiers), key=lambda t: t[0], reverse=True))
        for (_, wider), (_, narrower) in zip(ordered, ordered[1:]):
            if narrower > wider:
                raise ValueError("refund percent must not grow as the showtime gets closer")
        for _, pct in ordered:
            if not 0 <= pct <= 100:
                raise ValueError("refund percent must be within 0..100")
        object.__setattr__(self, "tiers", ordered)

    def percentage(self, now: datetime, show_start: datetime) -> int:
        hours = (show_start - now) / timedelta(hours=1)
        for min_hours, pct in self.tiers:
            if hours >= min_hours:
                return pct
        return 0

    def refund_amount(self, total_amount: int, now: datetime, show_start: datetime) -> int:
        # Rounded down to whole currency units
        pct = self.percentage(now, show_start)
        return int((Decimal(total_amount) * pct / 100).to_integral_value(rounding=ROUND_FLOOR))


def policy_from_settings() -> RefundPolicy:
    return RefundPolicy(tiers=tuple(settings.REFUND_TIERS))
