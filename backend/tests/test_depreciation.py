"""Tests for the depreciation schedule engine."""
from datetime import date
from decimal import Decimal

import pytest

from app.core.depreciation import RESIDUAL_BOOK_VALUE, compute_schedule


def _schedule(total="25000", life=5, rate="20", acquired=date(2026, 1, 15)):
    return compute_schedule(
        total_value=Decimal(total),
        useful_life=life,
        depreciation_rate=Decimal(rate) if rate is not None else None,
        acquisition_date=acquired,
    )


class TestScenarios:
    def test_mid_month_purchase_first_row(self):
        """25 000 ฿, 5 years, bought 15 Jan 2026 → 9 months, 3 750 ฿ on 30/9/69."""
        s = _schedule()
        assert s.can_calculate
        assert s.annual_depreciation == Decimal("5000")
        first = s.rows[0]
        assert first.date == "30/9/69"
        assert first.months == 9
        assert first.depreciation == Decimal("3750.00")
        assert first.accumulated == Decimal("3750.00")
        assert first.net_value == Decimal("21250.00")

    def test_full_schedule_shape(self):
        """9 months, 4 full years, then a 3-month tail that absorbs the rest."""
        s = _schedule()
        assert [r.date for r in s.rows] == ["30/9/69", "30/9/70", "30/9/71", "30/9/72", "30/9/73", "30/9/74"]
        assert [r.months for r in s.rows] == [9, 12, 12, 12, 12, 3]
        assert [r.depreciation for r in s.rows[1:5]] == [Decimal("5000.00")] * 4
        last = s.rows[-1]
        assert last.depreciation == Decimal("1250.00")
        assert last.accumulated == Decimal("25000.00")
        assert last.net_value == RESIDUAL_BOOK_VALUE

    def test_day_sixteen_shifts_start(self):
        """16 Jan 2026 → 8 months → 3 333.33 ฿."""
        s = _schedule(acquired=date(2026, 1, 16))
        assert s.rows[0].months == 8
        assert s.rows[0].depreciation == Decimal("3333.33")
        assert s.rows[-1].depreciation == Decimal("1666.67")

    def test_last_full_year_is_forced(self):
        """Remaining months divide evenly: the last full-year row closes the schedule."""
        s = _schedule(total="10000", life=3, acquired=date(2025, 10, 1))
        assert [r.months for r in s.rows] == [12, 12, 12]
        assert [r.depreciation for r in s.rows] == [Decimal("3333.33"), Decimal("3333.33"), Decimal("3333.34")]
        assert s.rows[1].accumulated == Decimal("6666.67")
        assert s.rows[-1].accumulated == Decimal("10000.00")
        assert s.rows[-1].net_value == Decimal("1")

    def test_single_row_schedule_is_final(self):
        """One-year life bought at the start of the fiscal year → one row, net 1."""
        s = _schedule(total="10000", life=1, acquired=date(2025, 10, 1))
        assert len(s.rows) == 1
        assert s.rows[0].depreciation == Decimal("10000.00")
        assert s.rows[0].net_value == Decimal("1")


class TestCannotCalculate:
    @pytest.mark.parametrize(
        "kwargs",
        [
            {"life": 0},
            {"life": None},
            {"acquired": None},
            {"total": "0"},
        ],
    )
    def test_preconditions(self, kwargs):
        s = _schedule(**kwargs)
        assert s.can_calculate is False
        assert s.rows == ()
        assert s.total_value == 0
        assert s.annual_depreciation == 0
        assert s.monthly_depreciation == 0

    def test_is_a_value_not_an_error(self):
        """The rate is still reported for display."""
        s = _schedule(life=0, rate="20")
        assert s.depreciation_rate == Decimal("20")
        assert s.to_dict()["rows"] == []


class TestProperties:
    CASES = [
        ("25000", 5, date(2026, 1, 15)),
        ("25000", 5, date(2026, 1, 16)),
        ("99999.99", 7, date(2019, 12, 31)),
        ("1234.56", 3, date(2020, 9, 16)),
        ("18000", 8, date(2021, 11, 10)),
        ("10000", 1, date(2026, 1, 15)),
    ]

    @pytest.mark.parametrize("total,life,acquired", CASES)
    def test_rows_sum_to_total(self, total, life, acquired):
        s = _schedule(total=total, life=life, acquired=acquired)
        assert sum(r.depreciation for r in s.rows) == Decimal(total)
        assert s.rows[-1].net_value == Decimal("1")

    @pytest.mark.parametrize("total,life,acquired", CASES)
    def test_monotonic(self, total, life, acquired):
        s = _schedule(total=total, life=life, acquired=acquired)
        for prev, cur in zip(s.rows, s.rows[1:]):
            assert cur.accumulated >= prev.accumulated
            assert cur.net_value <= prev.net_value
            assert cur.period_end > prev.period_end

    @pytest.mark.parametrize("total,life,acquired", CASES)
    def test_months_cover_useful_life(self, total, life, acquired):
        s = _schedule(total=total, life=life, acquired=acquired)
        assert sum(r.months for r in s.rows) == life * 12

    def test_pure(self):
        """Same inputs → identical output."""
        assert _schedule() == _schedule()
        assert _schedule().to_dict() == _schedule().to_dict()

    def test_rate_does_not_drive_schedule(self):
        """The rate is informational; the useful life alone sets the amounts."""
        a = _schedule(rate="20")
        b = _schedule(rate="50")
        assert a.rows == b.rows

    def test_row_dict_keys(self):
        row = _schedule().to_dict()["rows"][0]
        assert set(row) == {"date", "period_end", "description", "months", "depreciation", "accumulated", "net_value"}
        assert row["period_end"] == "2026-09-30"

    def test_tiny_total_final_row_rises_to_residual(self):
        """Below 1 of book value the floor wins: the last row lifts net value back to 1."""
        s = _schedule(total="3")
        assert [r.net_value for r in s.rows] == [
            Decimal("2.55"), Decimal("1.95"), Decimal("1.35"), Decimal("0.75"), Decimal("0.15"), RESIDUAL_BOOK_VALUE,
        ]
        assert s.rows[-1].accumulated == Decimal("3")
        assert sum(r.depreciation for r in s.rows) == Decimal("3")
