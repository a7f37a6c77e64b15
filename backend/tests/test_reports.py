"""Report aggregations and endpoints."""
from datetime import date
from decimal import Decimal
from itertools import count

from app.core.reports import expiring_assets, fixed_breakdown
from app.models.asset import Asset
from app.utils.opaque_ids import decode_id

AS_OF = date(2026, 6, 1)
_ids = count(1)


def _asset(code, acquired, life=5, price="25000"):
    return Asset(
        id=next(_ids),
        asset_name=f"ครุภัณฑ์ {code}",
        asset_code=code,
        unit_price=Decimal(price),
        quantity=1,
        acquisition_date=acquired,
        useful_life_years=life,
        depreciation_rate=Decimal("20"),
        status=1,
    )


class TestExpiringBuckets:
    def test_first_matching_bucket_wins(self):
        assets = [
            _asset("FULL", date(2020, 1, 15)),
            _asset("LOW", date(2021, 1, 15)),
            _asset("NEAR", date(2026, 1, 15), life=1),
            _asset("NEW", date(2026, 1, 15)),
            _asset("ZERO", date(2026, 1, 15), price="0"),
        ]
        result = expiring_assets(assets, AS_OF)
        assert [a["asset_code"] for a in result["fully_depreciated"]["items"]] == ["FULL"]
        assert [a["asset_code"] for a in result["low_value"]["items"]] == ["LOW"]
        assert [a["asset_code"] for a in result["nearing_end_of_life"]["items"]] == ["NEAR"]
        assert result["summary"]["total_expiring"] == 3

    def test_low_value_figures(self):
        """Five fiscal year ends passed → 23 750 booked, 5 % left."""
        item = expiring_assets([_asset("LOW", date(2021, 1, 15))], AS_OF)["low_value"]["items"][0]
        assert item["book_value"] == 1250.0
        assert item["percent_remaining"] == 5.0


class TestFixedBreakdown:
    def test_every_code_present(self):
        result = fixed_breakdown([(1, 3, Decimal("300")), (4, 1, Decimal("50.5"))], "status", "status", "label")
        assert [i["status"] for i in result["items"]] == [1, 2, 3, 4, 5]
        assert [i["count"] for i in result["items"]] == [3, 0, 0, 1, 0]
        assert result["items"][0]["percentage"] == 75.0
        assert result["summary"] == {"total_assets": 4, "total_value": 350.5}

    def test_null_codes_only_in_summary(self):
        result = fixed_breakdown([(None, 2, 100), (1, 2, 100)], "budget_type", "budget_type", "label")
        assert len(result["items"]) == 4
        assert result["items"][0]["percentage"] == 100.0
        assert result["summary"]["total_assets"] == 4


class TestReportEndpoints:
    def _seed(self, client, headers, asset_payload):
        client.post("/api/assets", json=asset_payload(asset_code="OLD-1", acquisition_date="2015-03-01",
                                                      budget_type=1, acquisition_method=5), headers=headers)
        client.post("/api/assets", json=asset_payload(asset_code="OLD-2", acquisition_date="2015-03-01",
                                                      unit_price=10000, budget_type=3, status=4), headers=headers)

    def test_by_status_is_complete(self, client, admin_headers, asset_payload):
        self._seed(client, admin_headers, asset_payload)
        data = client.get("/api/asset-reports/by-status", headers=admin_headers).json()
        assert len(data["items"]) == 5
        by_code = {i["status"]: i for i in data["items"]}
        assert by_code[1]["count"] == 1
        assert by_code[4]["total_value"] == 10000.0
        assert by_code[2]["count"] == 0

    def test_by_method_and_budget_type_are_complete(self, client, admin_headers, asset_payload):
        self._seed(client, admin_headers, asset_payload)
        methods = client.get("/api/asset-reports/by-acquisition-method", headers=admin_headers).json()
        budgets = client.get("/api/asset-reports/by-budget-type", headers=admin_headers).json()
        assert len(methods["items"]) == 5
        assert len(budgets["items"]) == 4
        assert {i["budget_type"]: i["count"] for i in budgets["items"]} == {1: 1, 2: 0, 3: 1, 4: 0}

    def test_category_breakdown(self, client, admin_headers, asset_payload):
        self._seed(client, admin_headers, asset_payload)
        data = client.get("/api/asset-reports/category-breakdown", headers=admin_headers).json()
        item = data["items"][0]
        assert item["asset_count"] == 2
        assert item["original_value"] == 35000.0
        assert item["book_value"] == 2.0
        assert item["percentage"] == 100.0

    def test_depreciation_report(self, client, admin_headers, asset_payload):
        self._seed(client, admin_headers, asset_payload)
        data = client.get("/api/asset-reports/depreciation", params={"status": 4}, headers=admin_headers).json()
        assert [i["asset_code"] for i in data["items"]] == ["OLD-2"]
        assert data["items"][0]["annual_depreciation"] == 2000.0
        assert data["summary"]["fully_depreciated_count"] == 1

    def test_expiring_only_active_assets(self, client, admin_headers, asset_payload):
        self._seed(client, admin_headers, asset_payload)
        data = client.get("/api/asset-reports/expiring", headers=admin_headers).json()
        assert [a["asset_code"] for a in data["fully_depreciated"]["items"]] == ["OLD-1"]

    def test_no_school_is_an_error_not_empty(self, client, make_user, headers_for):
        lonely = make_user("ไม่มีโรงเรียน", "none@d.school")
        r = client.get("/api/asset-reports/category-breakdown", headers=headers_for(lonely))
        assert r.status_code == 403
        assert r.json()["code"] == "no_tenant_context"

    def test_report_ids_open_the_asset(self, client, admin_headers, asset_payload):
        self._seed(client, admin_headers, asset_payload)
        for path, pick in (
            ("/api/asset-reports/depreciation", lambda d: d["items"][0]),
            ("/api/asset-reports/expiring", lambda d: d["fully_depreciated"]["items"][0]),
        ):
            item = pick(client.get(path, headers=admin_headers).json())
            assert decode_id(item["id"]) is not None
            r = client.get(f"/api/assets/{item['id']}", headers=admin_headers)
            assert r.status_code == 200
            assert r.json()["asset_code"] == item["asset_code"]
