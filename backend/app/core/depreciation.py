"""
Straight-line depreciation schedule over the Thai fiscal year.

The schedule is never stored: it is rebuilt from the asset on every request so
that useful-life / rate overrides are always reflected. Amounts are carried at
full precision and only rounded to 2 decimals on each emitted row.
"""
from dataclasses import dataclass
from datetime import date
from decimal import ROUND_HALF_UP, Decimal

from app.core.fiscal_period import first_period, fiscal_year_end, format_date_short

CENT = Decimal("0.01")
# A fully depreciated asset stays on the books at 1 baht.
RESIDUAL_BOOK_VALUE = Decimal("1")

_ZERO = Decimal("0")


def _money(amount: Decimal) -> Decimal:
    return amount.quantize(CENT, rounding=ROUND_HALF_UP)


def _months_label(months: int) -> str:
    return f"คิดค่าเสื่อมราคา {months} เดือน"


FULL_YEAR_LABEL = "คิดค่าเสื่อมราคา 1 ปี"


@dataclass(frozen=True)
class ScheduleRow:
    period_end: date
    date: str  # d/m/yy, Buddhist era
    description: str
    months: int
    depreciation: Decimal
    accumulated: Decimal
    net_value: Decimal

    def to_dict(self) -> dict:
        return {
            "date": self.date,
            "period_end": self.period_end.isoformat(),
            "description": self.description,
            "months": self.months,
            "depreciation": float(self.depreciation),
            "accumulated": float(self.accumulated),
            "net_value": float(self.net_value),
        }


@dataclass(frozen=True)
class DepreciationSchedule:
    can_calculate: bool
    useful_life: int | None
    depreciation_rate: Decimal | None
    total_value: Decimal
    annual_depreciation: Decimal
    monthly_depreciation: Decimal
    rows: tuple[ScheduleRow, ...] = ()

    def to_dict(self) -> dict:
        return {
            "can_calculate": self.can_calculate,
            "useful_life": self.useful_life,
            "depreciation_rate": (
                float(self.depreciation_rate) if self.depreciation_rate is not None else None
            ),
            "total_value": float(self.total_value),
            "annual_depreciation": float(_money(self.annual_depreciation)),
            "monthly_depreciation": float(_money(self.monthly_depreciation)),
            "rows": [r.to_dict() for r in self.rows],
        }


def _periods(acquisition_date: date, useful_life: int) -> list[tuple[int, int, str]]:
    """(fiscal_year, months, description) for every period until the life is used up."""
    first = first_period(acquisition_date)
    periods = [(first.fiscal_year, first.months, _months_label(first.months))]

    remaining_months = useful_life * 12 - first.months
    full_years, last_months = divmod(remaining_months, 12)

    for i in range(full_years):
        periods.append((first.fiscal_year + i + 1, 12, FULL_YEAR_LABEL))
    if last_months > 0:
        periods.append((first.fiscal_year + full_years + 1, last_months, _months_label(last_months)))
    return periods


def compute_schedule(
    total_value: Decimal,
    useful_life: int | None,
    depreciation_rate: Decimal | None,
    acquisition_date: date | None,
) -> DepreciationSchedule:
    """
    Build the full depreciation schedule for one asset.

    total_value: unit_price × quantity
    useful_life: effective useful life in years (asset override, else category)
    depreciation_rate: effective rate in percent, reported only; the schedule is
        driven by the useful life alone
    acquisition_date: purchase date, required

    When a precondition fails the result has can_calculate=False, no rows and
    every monetary field zero.
    The last row always absorbs what is left: accumulated = total_value and
    net_value = 1, so the sum of row depreciations equals total_value exactly.
    """
    total_value = Decimal(str(total_value))
    rate = Decimal(str(depreciation_rate)) if depreciation_rate is not None else None

    if acquisition_date is None or not useful_life or useful_life <= 0 or total_value <= 0:
        return DepreciationSchedule(
            can_calculate=False,
            useful_life=useful_life,
            depreciation_rate=rate,
            total_value=_ZERO,
            annual_depreciation=_ZERO,
            monthly_depreciation=_ZERO,
        )

    annual = total_value / Decimal(useful_life)
    monthly = annual / Decimal(12)

    periods = _periods(acquisition_date, useful_life)
    rows: list[ScheduleRow] = []
    accumulated = _ZERO
    booked = _ZERO  # sum of rounded row amounts already emitted

    for index, (fiscal_year, months, description) in enumerate(periods):
        period_end = fiscal_year_end(fiscal_year)
        is_final = index == len(periods) - 1

        if is_final:
            row = ScheduleRow(
                period_end=period_end,
                date=format_date_short(period_end),
                description=description,
                months=months,
                depreciation=_money(total_value - booked),
                accumulated=_money(total_value),
                net_value=RESIDUAL_BOOK_VALUE,
            )
        else:
            amount = annual if index > 0 else monthly * months
            accumulated += amount
            depreciation = _money(amount)
            booked += depreciation
            row = ScheduleRow(
                period_end=period_end,
                date=format_date_short(period_end),
                description=description,
                months=months,
                depreciation=depreciation,
                accumulated=_money(accumulated),
                net_value=max(_ZERO, _money(total_value - accumulated)),
            )
        rows.append(row)

    return DepreciationSchedule(
        can_calculate=True,
        useful_life=useful_life,
        depreciation_rate=rate,
        total_value=total_value,
        annual_depreciation=annual,
        monthly_depreciation=monthly,
        rows=tuple(rows),
    )
