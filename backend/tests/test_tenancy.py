"""Tenant resolution and cross-school isolation."""
import pytest

from app.api import schools as schools_api
from app.core.errors import NoTenantContext
from app.core.tenancy import require_tenant, resolve_current_school
from app.models.asset import Asset
from app.models.school import School, SchoolUser


@pytest.fixture
def school_b(make_user, register_school, headers_for):
    other = make_user("ครูโรงเรียนบี", "b@b.school")
    data = register_school(other, "โรงเรียนบี", "B-001")
    return data, headers_for(other)


class TestResolution:
    def test_first_active_membership_wins(self, db, admin, school, school_b):
        """Joining a second school later does not change the current one."""
        second, _ = school_b
        db.add(SchoolUser(school_id=second["id"], user_id=admin.id, is_active=True))
        db.commit()
        assert resolve_current_school(db, admin).id == school["id"]

    def test_inactive_membership_skipped(self, db, admin, school, school_b):
        second, _ = school_b
        db.add(SchoolUser(school_id=second["id"], user_id=admin.id, is_active=True))
        db.query(SchoolUser).filter_by(school_id=school["id"], user_id=admin.id).update({"is_active": False})
        db.commit()
        assert resolve_current_school(db, admin).id == second["id"]

    def test_falls_back_to_created_school(self, db, make_user):
        """Schools created before memberships existed still resolve for their creator."""
        legacy = make_user("ผู้ใช้เดิม", "legacy@c.school")
        db.add(School(school_name="โรงเรียนซี", created_by=legacy.id))
        db.commit()
        assert resolve_current_school(db, legacy).school_name == "โรงเรียนซี"

    def test_no_school_raises(self, db, make_user):
        nobody = make_user("ไม่มีโรงเรียน", "none@d.school")
        with pytest.raises(NoTenantContext):
            require_tenant(db, nobody)


class TestSchoolsApi:
    def test_register_grants_owner_role(self, client, admin_headers, school):
        r = client.get("/api/schools/current", headers=admin_headers)
        assert r.json()["id"] == school["id"]

        r = client.get("/api/users", headers=admin_headers)
        assert r.json()[0]["roles"] == ["school-admin"]

    def test_register_creates_template_roles(self, client, admin_headers, school):
        names = {role["name"] for role in client.get("/api/roles", headers=admin_headers).json()}
        assert {"super-admin", "school-admin", "teacher", "staff"} <= names

    def test_duplicate_school_code(self, client, admin, school, headers_for):
        r = client.post("/api/schools", json={"school_name": "ซ้ำ", "school_code": "A-001"}, headers=headers_for(admin))
        assert r.status_code == 422
        assert "school_code" in r.json()["errors"]

    def test_list_my_schools(self, client, admin_headers, school):
        r = client.get("/api/schools", headers=admin_headers)
        assert [s["school_code"] for s in r.json()] == ["A-001"]


class TestIsolation:
    def test_other_school_asset_is_not_found(self, client, admin_headers, asset_payload, school_b):
        created = client.post("/api/assets", json=asset_payload(), headers=admin_headers).json()
        _, headers_b = school_b
        for path in ("", "/depreciation", "/pdf"):
            r = client.get(f"/api/assets/{created['id']}{path}", headers=headers_b)
            assert r.status_code == 404
        r = client.put(f"/api/assets/{created['id']}", json=asset_payload(), headers=headers_b)
        assert r.status_code == 404

    def test_other_school_category_is_not_found(self, client, category, school_b):
        _, headers_b = school_b
        assert client.get(f"/api/asset-categories/{category['id']}", headers=headers_b).status_code == 404
        assert client.delete(f"/api/asset-categories/{category['id']}", headers=headers_b).status_code == 404

    def test_listing_only_shows_own_assets(self, client, admin_headers, asset_payload, school_b):
        client.post("/api/assets", json=asset_payload(), headers=admin_headers)
        _, headers_b = school_b
        assert client.get("/api/assets", headers=headers_b).json()["total"] == 0

    def test_same_asset_code_in_two_schools(self, client, admin_headers, asset_payload, school_b):
        """Codes are unique per school only."""
        client.post("/api/assets", json=asset_payload(), headers=admin_headers)
        _, headers_b = school_b
        cat = client.post(
            "/api/asset-categories",
            json={"category_name": "ครุภัณฑ์คอมพิวเตอร์", "useful_life_years": 5, "depreciation_rate": 20},
            headers=headers_b,
        ).json()
        r = client.post("/api/assets", json=asset_payload(category_id=cat["id"]), headers=headers_b)
        assert r.status_code == 201

    def test_other_school_cannot_delete_asset(self, client, db, admin_headers, asset_payload, school_b, password):
        """Correct password, valid token, wrong school: still not found and the row survives."""
        created = client.post("/api/assets", json=asset_payload(), headers=admin_headers).json()
        _, headers_b = school_b
        r = client.request("DELETE", f"/api/assets/{created['id']}", json={"password": password}, headers=headers_b)
        assert r.status_code == 404
        assert db.query(Asset).filter(Asset.asset_code == "7440-001-0001").count() == 1
        assert client.get(f"/api/assets/{created['id']}", headers=admin_headers).status_code == 200


class TestSchoolProfile:
    def test_update_current_school(self, client, db, admin_headers, school):
        r = client.put(
            "/api/schools/current",
            json={"school_name": "โรงเรียนเอ (ใหม่)", "school_code": "A-001", "address": "กรุงเทพฯ"},
            headers=admin_headers,
        )
        assert r.status_code == 200
        assert r.json()["school_name"] == "โรงเรียนเอ (ใหม่)"
        assert r.json()["updated_at"] is not None

    def test_noop_update_keeps_audit_fields(self, client, db, admin_headers, school):
        r = client.put(
            "/api/schools/current",
            json={"school_name": "โรงเรียนเอ", "school_code": "A-001"},
            headers=admin_headers,
        )
        assert r.status_code == 200
        row = db.get(School, school["id"])
        assert (row.updated_at, row.updated_by) == (None, None)

    def test_code_taken_by_another_school(self, client, admin_headers, school_b):
        r = client.put(
            "/api/schools/current", json={"school_name": "โรงเรียนเอ", "school_code": "B-001"}, headers=admin_headers
        )
        assert r.status_code == 422
        assert "school_code" in r.json()["errors"]

    def test_member_without_school_edit(self, client, admin_headers, make_user, headers_for):
        member = make_user("ครูสมศรี", "somsri@a.school")
        client.post("/api/users", json={"email": member.email, "roles": ["teacher"]}, headers=admin_headers)
        assert client.get("/api/schools/current", headers=headers_for(member)).status_code == 200
        r = client.put("/api/schools/current", json={"school_name": "x"}, headers=headers_for(member))
        assert r.status_code == 403

    def test_unique_constraint_is_a_field_error(self, client, monkeypatch, admin, school_b, headers_for):
        """A duplicate code that slips past the pre-check is still a 422, not a 500."""
        monkeypatch.setattr(schools_api, "_check_school_code", lambda *args, **kwargs: None)
        r = client.post(
            "/api/schools", json={"school_name": "ซ้ำ", "school_code": "B-001"}, headers=headers_for(admin)
        )
        assert r.status_code == 422
        assert "school_code" in r.json()["errors"]
