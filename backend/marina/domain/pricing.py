from dataclasses import dataclass
from datetime import date
from decimal import ROUND_HALF_UP, Decimal

from .errors import InvalidInputError

BILLING_BLOCK_DAYS = 30
# Not a business rule. The published rate sheet bills a 2026-03-01 to
# 2026-04-01 stay (31 days) as one month ($367.50 for a 34 ft boat), which a
# strict 30-day block would call two; one day of slack reconciles the two.
BILLING_GRACE_DAYS = 1

_CENT = Decimal("0.01")


@dataclass(frozen=True)
class PricingRates:
    price_per_foot: Decimal = Decimal("10.50")
    hookup_fee_per_month: Decimal = Decimal("10.50")


DEFAULT_RATES = PricingRates()


@dataclass(frozen=True)
class CostBreakdown:
    boat_length_ft: int
    months: int
    base_cost: Decimal
    hookup_cost: Decimal
    total: Decimal


def billable_months(start: date, end: date) -> int:
    """Number of 30-day blocks covered by the stay, never less than one."""
    days = (end - start).days
    if days < 0:
        raise InvalidInputError("end date must not be before start date")
    billable_days = max(days - BILLING_GRACE_DAYS, 0)
    return max(1, -(-billable_days // BILLING_BLOCK_DAYS))


def calculate_cost(boat_length_ft: int, months: int, rates: PricingRates = DEFAULT_RATES) -> CostBreakdown:
    if boat_length_ft <= 0:
        raise InvalidInputError("boat length must be positive")
    if months < 1:
        raise InvalidInputError("months must be at least 1")
    base = (Decimal(boat_length_ft) * rates.price_per_foot).quantize(_CENT, rounding=ROUND_HALF_UP)
    hookup = (Decimal(months) * rates.hookup_fee_per_month).quantize(_CENT, rounding=ROUND_HALF_UP)
    return CostBreakdown(
        boat_length_ft=boat_length_ft,
        months=months,
        base_cost=base,
        hookup_cost=hookup,
        total=base + hookup,
    )
