"""Tests for point-in-time asset figures."""
from datetime import date
from decimal import Decimal

from app.core.depreciation import compute_schedule
from app.core.valuation import asset_value_as_of, estimate_live_value, schedule_for_asset, value_as_of
from app.models.asset import Asset
from app.models.asset_category import AssetCategory

ACQUIRED = date(2026, 1, 15)


def _schedule():
    return compute_schedule(Decimal("25000"), 5, Decimal("20"), ACQUIRED)


class TestScheduleLookup:
    def test_before_first_period_end(self):
        v = value_as_of(_schedule(), ACQUIRED, date(2026, 9, 29))
        assert v.accumulated_depreciation == 0
        assert v.book_value == Decimal("25000")
        assert v.percent_remaining == Decimal("100.00")
        assert not v.is_fully_depreciated

    def test_on_first_period_end(self):
        v = value_as_of(_schedule(), ACQUIRED, date(2026, 9, 30))
        assert v.accumulated_depreciation == Decimal("3750.00")
        assert v.book_value == Decimal("21250.00")
        assert v.percent_remaining == Decimal("85.00")

    def test_mid_schedule_uses_last_elapsed_row(self):
        v = value_as_of(_schedule(), ACQUIRED, date(2028, 6, 1))
        assert v.accumulated_depreciation == Decimal("8750.00")
        assert v.years_used == 2
        assert v.years_remaining == 3

    def test_after_final_row(self):
        v = value_as_of(_schedule(), ACQUIRED, date(2032, 1, 1))
        assert v.accumulated_depreciation == Decimal("25000.00")
        assert v.book_value == Decimal("1")
        assert v.is_fully_depreciated
        assert v.years_remaining == 0

    def test_cannot_calculate_keeps_asset_total(self):
        schedule = compute_schedule(Decimal("5000"), 0, None, ACQUIRED)
        v = value_as_of(schedule, ACQUIRED, date(2030, 1, 1), total_value=Decimal("5000"))
        assert v.book_value == Decimal("5000")
        assert v.accumulated_depreciation == 0
        assert not v.is_fully_depreciated


class TestLegacyEstimate:
    def test_whole_years_times_rate(self):
        acc, book = estimate_live_value(Decimal("25000"), Decimal("20"), 5, ACQUIRED, date(2028, 6, 1))
        assert acc == Decimal("10000.00")
        assert book == Decimal("15000.00")

    def test_disagrees_with_schedule_lookup(self):
        """Rate × whole years ignores the fiscal calendar, so the two rules differ."""
        acc, _ = estimate_live_value(Decimal("25000"), Decimal("20"), 5, ACQUIRED, date(2028, 6, 1))
        canonical = value_as_of(_schedule(), ACQUIRED, date(2028, 6, 1))
        assert acc != canonical.accumulated_depreciation

    def test_capped_at_total(self):
        acc, book = estimate_live_value(Decimal("25000"), Decimal("30"), 5, ACQUIRED, date(2040, 1, 1))
        assert acc == Decimal("25000.00")
        assert book == 0

    def test_missing_rate(self):
        acc, book = estimate_live_value(Decimal("25000"), None, 5, ACQUIRED, date(2030, 1, 1))
        assert acc == 0
        assert book == Decimal("25000.00")


class TestEffectiveValues:
    def _asset(self, **kw):
        data = {
            "asset_name": "โต๊ะ",
            "unit_price": Decimal("4500"),
            "quantity": 4,
            "acquisition_date": date(2021, 11, 10),
        }
        data.update(kw)
        return Asset(**data)

    def test_category_values_used(self):
        category = AssetCategory(category_name="สำนักงาน", useful_life_years=8, depreciation_rate=Decimal("12.5"))
        asset = self._asset(category=category)
        s = schedule_for_asset(asset)
        assert s.useful_life == 8
        assert s.depreciation_rate == Decimal("12.5")
        assert s.total_value == Decimal("18000")

    def test_asset_override_wins(self):
        category = AssetCategory(category_name="สำนักงาน", useful_life_years=8, depreciation_rate=Decimal("12.5"))
        asset = self._asset(category=category, useful_life_years=4, depreciation_rate=Decimal("25"))
        s = schedule_for_asset(asset)
        assert s.useful_life == 4
        assert s.depreciation_rate == Decimal("25")

    def test_fallback_without_category(self):
        """No category and no override → register defaults (5 years, 20 %)."""
        s = schedule_for_asset(self._asset())
        assert s.useful_life == 5
        assert s.depreciation_rate == Decimal("20")

    def test_asset_value_as_of(self):
        schedule, valuation = asset_value_as_of(self._asset(), date(2040, 1, 1))
        assert schedule.can_calculate
        assert valuation.total_value == Decimal("18000")
        assert valuation.is_fully_depreciated
