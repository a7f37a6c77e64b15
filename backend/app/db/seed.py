"""
Seed script: permission catalogue and system roles from the register constants,
then the demo school from sample_dataset.json. Safe to run more than once.
Usage: python -m app.db.seed
"""
import json
import logging
from datetime import date
from decimal import Decimal
from pathlib import Path

from app.core.authorization import create_tenant_roles, ensure_system_roles, grant_role
from app.db.database import SessionLocal, init_db
from app.models.asset import Asset
from app.models.asset_category import AssetCategory
from app.models.school import School, SchoolUser
from app.models.user import User
from app.utils.constants_loader import get_owner_role
from app.utils.logging_config import configure_logging
from app.utils.security import hash_password, new_api_token

logger = logging.getLogger(__name__)

DATASET_PATH = Path(__file__).parent.parent.parent / "tests" / "fixtures" / "sample_dataset.json"


def seed(dataset_path: Path = DATASET_PATH) -> None:
    init_db()
    db = SessionLocal()
    try:
        roles = ensure_system_roles(db)

        with open(dataset_path, encoding="utf-8") as f:
            data = json.load(f)

        user_data = data["user"]
        user = db.query(User).filter(User.email == user_data["email"]).first()
        if not user:
            user = User(
                name=user_data["name"],
                email=user_data["email"],
                password_hash=hash_password(user_data["password"]),
                api_token=new_api_token(),
            )
            db.add(user)
            db.flush()

        school_data = data["school"]
        school = db.query(School).filter(School.school_code == school_data["school_code"]).first()
        if not school:
            school = School(**school_data, created_by=user.id)
            db.add(school)
            db.flush()
            db.add(SchoolUser(school_id=school.id, user_id=user.id, is_active=True))
            create_tenant_roles(db, school.id)
        grant_role(db, user.id, roles[get_owner_role()], school.id)

        categories = {}
        for cat in data["categories"]:
            category = (
                db.query(AssetCategory)
                .filter_by(school_id=school.id, category_code=cat["category_code"])
                .first()
            )
            if not category:
                category = AssetCategory(
                    school_id=school.id,
                    category_name=cat["category_name"],
                    category_code=cat["category_code"],
                    useful_life_years=cat["useful_life_years"],
                    depreciation_rate=Decimal(str(cat["depreciation_rate"])),
                    created_by=user.id,
                )
                db.add(category)
                db.flush()
            categories[cat["category_code"]] = category

        for item in data["assets"]:
            if db.query(Asset.id).filter_by(school_id=school.id, asset_code=item["asset_code"]).first():
                continue
            db.add(Asset(
                school_id=school.id,
                asset_name=item["asset_name"],
                asset_code=item["asset_code"],
                category_id=categories[item["category_code"]].id,
                acquisition_date=date.fromisoformat(item["acquisition_date"]),
                unit_price=Decimal(str(item["unit_price"])),
                quantity=item["quantity"],
                budget_type=item.get("budget_type"),
                acquisition_method=item.get("acquisition_method"),
                created_by=user.id,
            ))

        db.commit()
        logger.info("seed completed: school '%s', user %s", school.school_name, user.email)
        print(f"Seed completed: school '{school.school_name}', API token for {user.email}: {user.api_token}")
    finally:
        db.close()


if __name__ == "__main__":
    configure_logging()
    seed()
