from dataclasses import dataclass, field
from decimal import Decimal, ROUND_HALF_UP

from cinereserve.core.config import settings
from cinereserve.core.errors import ValidationError

# (bucket, first hour, multiplier); a bucket runs until the next one starts, night wraps past midnight
TIME_BUCKETS = (
    ("night", 0, Decimal("1.1")),
    ("morning", 6, Decimal("0.8")),
    ("afternoon", 12, Decimal("1.0")),
    ("evening", 17, Decimal("1.3")),
    ("night", 21, Decimal("1.1")),
)

SEAT_TYPE_MULTIPLIERS = {
    "regular": Decimal("1.0"),
    "premium": Decimal("1.5"),
    "vip": Decimal("2.2"),
    "wheelchair": Decimal("1.0"),  # priced as regular
}

PRICED_SEAT_TYPES = ("regular", "premium", "vip")


def _dec(value) -> Decimal:
    return Decimal(str(value))


@dataclass(frozen=True)
class PricingPolicy:
    city_multipliers: dict[str, Decimal] = field(default_factory=dict)
    default_city_multiplier: Decimal = Decimal("1.0")
    time_buckets: tuple = TIME_BUCKETS
    seat_multipliers: dict[str, Decimal] = field(default_factory=lambda: dict(SEAT_TYPE_MULTIPLIERS))

    def location_multiplier(self, city: str) -> Decimal:
        key = (city or "").strip().lower()
        for name, mult in self.city_multipliers.items():
            if name.lower() == key:
                return mult
        return self.default_city_multiplier

    def time_bucket(self, time_of_day: str) -> tuple[str, Decimal]:
        try:
            hh, mm = (int(p) for p in time_of_day.split(":"))
        except (AttributeError, ValueError):
            raise ValidationError(f"time of day must be HH:MM, got {time_of_day!r}")
        if not (0 <= hh < 24 and 0 <= mm < 60):
            raise ValidationError(f"time of day must be HH:MM, got {time_of_day!r}")
        bucket = self.time_buckets[0]
        for candidate in self.time_buckets:
            if hh >= candidate[1]:
                bucket = candidate
        return bucket[0], bucket[2]

    def price(self, base_price: int, seat_type: str, theater_city: str, time_of_day: str) -> int:
        if base_price is None or base_price < 0:
            raise ValidationError("base price must be >= 0")
        if seat_type not in self.seat_multipliers:
            raise ValidationError(f"unknown seat type: {seat_type}")
        _, time_mult = self.time_bucket(time_of_day)
        amount = _dec(base_price) * self.location_multiplier(theater_city) * time_mult * self.seat_multipliers[seat_type]
        return int(amount.quantize(Decimal("1"), rounding=ROUND_HALF_UP))

    def price_table(self, base_price: int, theater_city: str, time_of_day: str) -> dict[str, int]:
        return {t: self.price(base_price, t, theater_city, time_of_day) for t in PRICED_SEAT_TYPES}


def policy_from_settings() -> PricingPolicy:
    return PricingPolicy(
        city_multipliers={city: _dec(m) for city, m in settings.CITY_PRICE_MULTIPLIERS.items()},
        default_city_multiplier=_dec(settings.DEFAULT_CITY_MULTIPLIER),
    )


def price(base_price: int, seat_type: str, theater_city: str, time_of_day: str, policy: PricingPolicy | None = None) -> int:
    """Per-seat price from base price, location tier, time-of-day bucket and seat type."""
    return (policy or policy_from_settings()).price(base_price, seat_type, theater_city, time_of_day)
