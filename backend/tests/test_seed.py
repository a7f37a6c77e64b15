"""Seed script."""
from app.db.seed import seed
from app.models.asset import Asset
from app.models.rbac import Permission, Role
from app.models.school import School


class TestSeed:
    def test_seed_is_idempotent(self, db):
        seed()
        seed()
        assert db.query(School).count() == 1
        assert db.query(Asset).count() == 3
        assert db.query(Role).filter(Role.school_id.is_(None)).count() == 2
        assert db.query(Permission).filter(Permission.name == "assets.report").count() == 1

    def test_super_admin_holds_every_permission(self, db):
        seed()
        role = db.query(Role).filter(Role.name == "super-admin").one()
        assert len(role.permissions) == db.query(Permission).count()
