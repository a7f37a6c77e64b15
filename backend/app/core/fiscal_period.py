"""
Fiscal period rules for the Thai government fiscal year (1 October – 30 September).
An asset bought after the 15th of a month starts depreciating the following month.
"""
from dataclasses import dataclass
from datetime import date

# 0-indexed month of the fiscal year end (September)
FISCAL_YEAR_END_MONTH_INDEX = 8
FISCAL_YEAR_END_DAY = 30
MID_MONTH_CUTOFF_DAY = 15

BUDDHIST_ERA_OFFSET = 543


@dataclass(frozen=True)
class FirstPeriod:
    start_month: int  # 0-indexed, may be 12 for purchases after Dec 15
    fiscal_year: int
    months: int


def depreciation_start_month(acquisition_date: date) -> int:
    start_month = acquisition_date.month - 1
    if acquisition_date.day > MID_MONTH_CUTOFF_DAY:
        start_month += 1
    return start_month


def first_period(acquisition_date: date) -> FirstPeriod:
    """
    Return the fiscal year the asset enters and the whole months of depreciation
    in that truncated first period (at least one month).
    """
    start_month = depreciation_start_month(acquisition_date)

    if start_month > FISCAL_YEAR_END_MONTH_INDEX:
        fiscal_year = acquisition_date.year + 1
        months = (12 - start_month) + FISCAL_YEAR_END_MONTH_INDEX + 1
    else:
        fiscal_year = acquisition_date.year
        months = FISCAL_YEAR_END_MONTH_INDEX + 1 - start_month

    return FirstPeriod(start_month=start_month, fiscal_year=fiscal_year, months=max(1, months))


def fiscal_year_end(fiscal_year: int) -> date:
    return date(fiscal_year, FISCAL_YEAR_END_MONTH_INDEX + 1, FISCAL_YEAR_END_DAY)


def to_buddhist_year(year: int) -> str:
    """Last two digits of the Buddhist-era year."""
    return str(year + BUDDHIST_ERA_OFFSET)[-2:]


def format_date_short(d: date) -> str:
    """d/m/yy in the Buddhist era, e.g. 2026-09-30 → 30/9/69."""
    return f"{d.day}/{d.month}/{to_buddhist_year(d.year)}"


def full_years_between(start: date, end: date) -> int:
    """Whole years elapsed from start to end, never negative."""
    years = end.year - start.year
    if (end.month, end.day) < (start.month, start.day):
        years -= 1
    return max(0, years)
