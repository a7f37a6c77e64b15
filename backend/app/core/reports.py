"""
Report aggregations over a school's assets.

All current figures come from value_as_of (schedule lookup). Code breakdowns
always list every code, including those with no assets, because chart
consumers expect a fixed number of slices.
"""
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import date
from decimal import ROUND_HALF_UP, Decimal

from app.core.valuation import asset_value_as_of
from app.utils.constants_loader import get_labels, get_report_thresholds, label_for
from app.utils.opaque_ids import encode_id

_ZERO = Decimal("0")
_HUNDRED = Decimal("100")
_CENT = Decimal("0.01")


def _pct(part: Decimal, whole: Decimal) -> float:
    if whole <= 0:
        return 0.0
    return float((Decimal(part) / Decimal(whole) * _HUNDRED).quantize(_CENT, rounding=ROUND_HALF_UP))


def _money(value) -> float:
    return float(Decimal(str(value or 0)).quantize(_CENT, rounding=ROUND_HALF_UP))


@dataclass
class CodeBucket:
    code: int
    count: int = 0
    total_value: Decimal = field(default_factory=lambda: _ZERO)


def fixed_breakdown(
    grouped: Iterable[tuple[int | None, int, object]],
    kind: str,
    code_key: str,
    label_key: str,
) -> dict:
    """
    grouped: (code, count, total_value) rows as returned by a GROUP BY query.
    Rows whose code is NULL or outside the known codes are left out of the
    items but still counted in the summary.
    """
    labels = get_labels(kind)
    buckets = {code: CodeBucket(code) for code in sorted(labels)}
    total_count = 0
    total_value = _ZERO

    for code, count, value in grouped:
        value = Decimal(str(value or 0))
        total_count += count
        total_value += value
        if code in buckets:
            buckets[code].count += count
            buckets[code].total_value += value

    known_count = sum(b.count for b in buckets.values())
    items = [
        {
            code_key: b.code,
            label_key: labels[b.code],
            "count": b.count,
            "total_value": _money(b.total_value),
            "percentage": _pct(Decimal(b.count), Decimal(known_count)),
        }
        for b in buckets.values()
    ]
    return {
        "items": items,
        "summary": {"total_assets": total_count, "total_value": _money(total_value)},
    }


def category_breakdown(categories: list, assets: list, as_of: date) -> dict:
    by_category: dict[int, list] = {}
    for asset in assets:
        by_category.setdefault(asset.category_id, []).append(asset)

    items = []
    total_original = _ZERO
    total_accumulated = _ZERO
    total_book = _ZERO
    total_count = 0

    for category in categories:
        original = _ZERO
        accumulated = _ZERO
        book = _ZERO
        members = by_category.get(category.id, [])
        for asset in members:
            _, valuation = asset_value_as_of(asset, as_of)
            original += valuation.total_value
            accumulated += valuation.accumulated_depreciation
            book += valuation.book_value

        items.append({
            "category_id": category.id,
            "category_name": category.category_name,
            "category_code": category.category_code,
            "asset_count": len(members),
            "original_value": _money(original),
            "accumulated_depreciation": _money(accumulated),
            "book_value": _money(book),
        })
        total_original += original
        total_accumulated += accumulated
        total_book += book
        total_count += len(members)

    for item in items:
        item["percentage"] = _pct(Decimal(str(item["original_value"])), total_original)

    return {
        "items": items,
        "summary": {
            "total_categories": len(items),
            "total_assets": total_count,
            "total_original_value": _money(total_original),
            "total_accumulated_depreciation": _money(total_accumulated),
            "total_book_value": _money(total_book),
        },
    }


def depreciation_report(assets: list, as_of: date) -> dict:
    items = []
    total_original = _ZERO
    total_annual = _ZERO
    total_accumulated = _ZERO
    total_book = _ZERO
    fully_depreciated = 0

    for asset in assets:
        schedule, valuation = asset_value_as_of(asset, as_of)
        annual = schedule.annual_depreciation.quantize(_CENT, rounding=ROUND_HALF_UP)
        items.append({
            "id": encode_id(asset.id),
            "asset_code": asset.asset_code,
            "asset_name": asset.asset_name,
            "category_name": asset.category.category_name if asset.category else "-",
            "acquisition_date": asset.acquisition_date.isoformat(),
            "original_value": _money(valuation.total_value),
            "useful_life_years": schedule.useful_life,
            "depreciation_rate": (
                float(schedule.depreciation_rate) if schedule.depreciation_rate is not None else None
            ),
            "annual_depreciation": float(annual),
            "accumulated_depreciation": _money(valuation.accumulated_depreciation),
            "book_value": _money(valuation.book_value),
            "is_fully_depreciated": valuation.is_fully_depreciated,
            "status": asset.status,
            "status_label": label_for("status", asset.status),
        })
        total_original += valuation.total_value
        total_annual += annual
        total_accumulated += valuation.accumulated_depreciation
        total_book += valuation.book_value
        fully_depreciated += int(valuation.is_fully_depreciated)

    return {
        "items": items,
        "summary": {
            "total_assets": len(items),
            "total_original_value": _money(total_original),
            "total_annual_depreciation": _money(total_annual),
            "total_accumulated_depreciation": _money(total_accumulated),
            "total_book_value": _money(total_book),
            "fully_depreciated_count": fully_depreciated,
        },
    }


def expiring_assets(assets: list, as_of: date) -> dict:
    """
    Split assets into three buckets, first match wins:
    fully depreciated (book ≤ 1), low value (< low_value_percent remaining),
    nearing end of life (0 < years remaining ≤ nearing_end_years).
    Assets whose schedule cannot be calculated are skipped.
    """
    thresholds = get_report_thresholds()
    low_value_percent = Decimal(str(thresholds.get("low_value_percent", 20)))
    nearing_end_years = int(thresholds.get("nearing_end_years", 1))

    fully, low, nearing = [], [], []
    for asset in assets:
        schedule, valuation = asset_value_as_of(asset, as_of)
        if not schedule.can_calculate:
            continue

        entry = {
            "id": encode_id(asset.id),
            "asset_code": asset.asset_code,
            "asset_name": asset.asset_name,
            "category_name": asset.category.category_name if asset.category else "-",
            "acquisition_date": asset.acquisition_date.isoformat(),
            "original_value": _money(valuation.total_value),
            "book_value": _money(valuation.book_value),
            "percent_remaining": float(valuation.percent_remaining),
            "useful_life_years": valuation.useful_life,
            "years_used": valuation.years_used,
            "years_remaining": valuation.years_remaining,
        }
        if valuation.is_fully_depreciated:
            fully.append(entry)
        elif valuation.percent_remaining < low_value_percent:
            low.append(entry)
        elif 0 < valuation.years_remaining <= nearing_end_years:
            nearing.append(entry)

    return {
        "fully_depreciated": {"items": fully, "count": len(fully)},
        "low_value": {"items": low, "count": len(low)},
        "nearing_end_of_life": {"items": nearing, "count": len(nearing)},
        "summary": {
            "total_expiring": len(fully) + len(low) + len(nearing),
            "fully_depreciated_count": len(fully),
            "low_value_count": len(low),
            "nearing_end_count": len(nearing),
        },
    }
