"""
Point-in-time figures for an asset, derived from its depreciation schedule.

Two rules exist for "current" accumulated depreciation:

- value_as_of (canonical): the last schedule row whose fiscal year end is on or
  before the given day. Used by every report and by the asset API.
- estimate_live_value (legacy): whole elapsed years × total × rate / 100. It
  ignores the fiscal calendar and uses the rate instead of the useful life, so
  the two can disagree. Kept only for the fast listing mode.
"""
from dataclasses import dataclass
from datetime import date
from decimal import ROUND_HALF_UP, Decimal

from app.core.depreciation import RESIDUAL_BOOK_VALUE, DepreciationSchedule, ScheduleRow, compute_schedule
from app.core.fiscal_period import full_years_between
from app.utils.constants_loader import get_depreciation_fallbacks

_ZERO = Decimal("0")
_HUNDRED = Decimal("100")
_CENT = Decimal("0.01")


@dataclass(frozen=True)
class AssetValuation:
    total_value: Decimal
    accumulated_depreciation: Decimal
    book_value: Decimal
    is_fully_depreciated: bool
    percent_remaining: Decimal
    useful_life: int | None
    years_used: int
    years_remaining: int

    def to_dict(self) -> dict:
        return {
            "total_value": float(self.total_value),
            "accumulated_depreciation": float(self.accumulated_depreciation),
            "book_value": float(self.book_value),
            "is_fully_depreciated": self.is_fully_depreciated,
            "percent_remaining": float(self.percent_remaining),
            "useful_life": self.useful_life,
            "years_used": self.years_used,
            "years_remaining": self.years_remaining,
        }


def schedule_for_asset(asset) -> DepreciationSchedule:
    """Run the engine with the asset's effective values, falling back to the register defaults."""
    fallback_life, fallback_rate = get_depreciation_fallbacks()
    useful_life = asset.effective_useful_life_years
    rate = asset.effective_depreciation_rate
    return compute_schedule(
        total_value=asset.total_price,
        useful_life=useful_life if useful_life is not None else fallback_life,
        depreciation_rate=rate if rate is not None else Decimal(str(fallback_rate)),
        acquisition_date=asset.acquisition_date,
    )


def applicable_row(schedule: DepreciationSchedule, as_of: date) -> ScheduleRow | None:
    latest = None
    for row in schedule.rows:
        if row.period_end <= as_of:
            latest = row
    return latest


def value_as_of(
    schedule: DepreciationSchedule,
    acquisition_date: date | None,
    as_of: date,
    total_value: Decimal | None = None,
) -> AssetValuation:
    """total_value defaults to the schedule's, which is zero when it cannot be calculated."""
    total = schedule.total_value if total_value is None else Decimal(str(total_value))
    accumulated = _ZERO
    book_value = total

    row = applicable_row(schedule, as_of) if schedule.can_calculate else None
    if row is not None:
        accumulated = row.accumulated
        book_value = row.net_value

    years_used = full_years_between(acquisition_date, as_of) if acquisition_date else 0
    life = schedule.useful_life or 0

    percent_remaining = (
        (book_value / total * _HUNDRED).quantize(_CENT, rounding=ROUND_HALF_UP) if total > 0 else _ZERO
    )

    return AssetValuation(
        total_value=total,
        accumulated_depreciation=accumulated,
        book_value=book_value,
        is_fully_depreciated=schedule.can_calculate and book_value <= RESIDUAL_BOOK_VALUE,
        percent_remaining=percent_remaining,
        useful_life=schedule.useful_life,
        years_used=years_used,
        years_remaining=max(0, life - years_used),
    )


def asset_value_as_of(asset, as_of: date) -> tuple[DepreciationSchedule, AssetValuation]:
    schedule = schedule_for_asset(asset)
    return schedule, value_as_of(schedule, asset.acquisition_date, as_of, total_value=asset.total_price)


def estimate_live_value(
    total_value: Decimal,
    depreciation_rate: Decimal | None,
    useful_life: int | None,
    acquisition_date: date | None,
    as_of: date,
) -> tuple[Decimal, Decimal]:
    """Legacy rate-based estimate. Returns (accumulated_depreciation, book_value)."""
    total = Decimal(str(total_value)).quantize(_CENT, rounding=ROUND_HALF_UP)
    rate = Decimal(str(depreciation_rate)) if depreciation_rate is not None else _ZERO
    life = useful_life or 0

    if acquisition_date is None or rate <= 0 or life <= 0:
        return _ZERO, total

    years_used = min(full_years_between(acquisition_date, as_of), life)
    annual = total * rate / _HUNDRED
    accumulated = min((annual * years_used).quantize(_CENT, rounding=ROUND_HALF_UP), total)
    book_value = max(_ZERO, total - accumulated)
    return accumulated, book_value
