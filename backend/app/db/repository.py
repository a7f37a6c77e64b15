"""
Tenant-scoped reads and writes for assets and categories.

Every lookup filters on school_id in the query itself, so a row belonging to
another school is indistinguishable from a missing one. Functions flush but do
not commit; the caller owns the transaction.
"""
import logging
from datetime import datetime
from decimal import Decimal

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.api.schemas import AssetPayload, CategoryPayload
from app.core.errors import NotFound, ReferentialConflict, ValidationFailed
from app.core.tenancy import TenantContext
from app.models.asset import STATUS_ACTIVE, TRACKED_FIELDS, Asset
from app.models.asset_category import AssetCategory

logger = logging.getLogger(__name__)

CATEGORY_TRACKED_FIELDS = (
    "category_name",
    "category_code",
    "useful_life_years",
    "depreciation_rate",
    "description",
    "is_active",
)

_CENT = Decimal("0.01")
_DECIMAL_FIELDS = {"unit_price", "depreciation_rate"}

MSG_ASSET_NOT_FOUND = "ไม่พบครุภัณฑ์"
MSG_CATEGORY_NOT_FOUND = "ไม่พบประเภทครุภัณฑ์"
MSG_INVALID_CATEGORY = "ประเภทครุภัณฑ์ไม่ถูกต้อง"
MSG_DUPLICATE_ASSET_CODE = "รหัสครุภัณฑ์นี้มีอยู่แล้ว"
MSG_DUPLICATE_CATEGORY_NAME = "ชื่อประเภทครุภัณฑ์นี้มีอยู่แล้ว"
MSG_DUPLICATE_CATEGORY_CODE = "รหัสประเภทนี้มีอยู่แล้ว"


def _normalize(field: str, value):
    if value is None:
        return None
    if field in _DECIMAL_FIELDS:
        return Decimal(str(value)).quantize(_CENT)
    return value


def changed_fields(row, desired: dict, fields: tuple[str, ...]) -> list[str]:
    return [f for f in fields if _normalize(f, getattr(row, f)) != _normalize(f, desired.get(f))]


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------


def find_asset(db: Session, school_id: int, asset_id: int | None) -> Asset:
    asset = None
    if asset_id is not None:
        asset = db.query(Asset).filter(Asset.school_id == school_id, Asset.id == asset_id).first()
    if not asset:
        raise NotFound(MSG_ASSET_NOT_FOUND)
    return asset


def find_category(db: Session, school_id: int, category_id: int) -> AssetCategory:
    category = (
        db.query(AssetCategory)
        .filter(AssetCategory.school_id == school_id, AssetCategory.id == category_id)
        .first()
    )
    if not category:
        raise NotFound(MSG_CATEGORY_NOT_FOUND)
    return category


def paginate(query, page: int, per_page: int) -> tuple[list, dict]:
    total = query.order_by(None).count()
    items = query.offset((page - 1) * per_page).limit(per_page).all()
    meta = {
        "total": total,
        "page": page,
        "per_page": per_page,
        "last_page": max(1, -(-total // per_page)),
    }
    return items, meta


def count_assets_in_category(db: Session, school_id: int, category_id: int) -> int:
    return (
        db.query(func.count(Asset.id))
        .filter(Asset.school_id == school_id, Asset.category_id == category_id)
        .scalar()
    )


# ---------------------------------------------------------------------------
# Assets
# ---------------------------------------------------------------------------


def _check_asset(db: Session, school_id: int, data: dict, asset_id: int | None = None) -> None:
    errors: dict[str, str] = {}

    category_ok = (
        db.query(AssetCategory.id)
        .filter(AssetCategory.school_id == school_id, AssetCategory.id == data["category_id"])
        .first()
    )
    if not category_ok:
        errors["category_id"] = MSG_INVALID_CATEGORY

    if data.get("asset_code"):
        q = db.query(Asset.id).filter(Asset.school_id == school_id, Asset.asset_code == data["asset_code"])
        if asset_id is not None:
            q = q.filter(Asset.id != asset_id)
        if q.first():
            errors["asset_code"] = MSG_DUPLICATE_ASSET_CODE

    if errors:
        raise ValidationFailed(errors)


def flush_or_conflict(db: Session, errors: dict[str, str], pending=None) -> None:
    """Flush inside a SAVEPOINT; the unique constraints are the final word on duplicates."""
    try:
        with db.begin_nested():
            if pending is not None:
                db.add(pending)
            db.flush()
    except IntegrityError:
        if pending is None:
            # pending attribute changes were made outside the savepoint
            db.rollback()
        elif pending in db:
            db.expunge(pending)
        logger.info("unique constraint rejected write: %s", ",".join(errors))
        raise ValidationFailed(errors)


def create_asset(db: Session, context: TenantContext, payload: AssetPayload) -> Asset:
    data = payload.model_dump()
    _check_asset(db, context.school_id, data)

    now = datetime.now()
    if data["status"] is None:
        data["status"] = STATUS_ACTIVE
    asset = Asset(
        school_id=context.school_id,
        **data,
        created_by=context.user_id,
        updated_by=context.user_id,
        created_at=now,
        updated_at=now,
    )
    flush_or_conflict(db, {"asset_code": MSG_DUPLICATE_ASSET_CODE}, pending=asset)
    logger.info("asset %s created in school %s by user %s", asset.id, context.school_id, context.user_id)
    return asset


def update_asset(db: Session, context: TenantContext, asset: Asset, payload: AssetPayload) -> bool:
    """
    Apply the desired state. Audit columns are only stamped when at least one
    tracked field differs; returns whether anything changed.
    """
    data = payload.model_dump()
    if data["status"] is None:
        data["status"] = asset.status
    _check_asset(db, context.school_id, data, asset_id=asset.id)

    changed = changed_fields(asset, data, TRACKED_FIELDS)
    if not changed:
        return False

    for field in changed:
        setattr(asset, field, data[field])
    asset.updated_by = context.user_id
    asset.updated_at = datetime.now()
    flush_or_conflict(db, {"asset_code": MSG_DUPLICATE_ASSET_CODE})
    logger.info("asset %s updated (%s) by user %s", asset.id, ",".join(changed), context.user_id)
    return True


def delete_asset(db: Session, context: TenantContext, asset: Asset) -> None:
    """Caller must have verified the re-authentication assertion."""
    db.delete(asset)
    db.flush()
    logger.info("asset %s deleted from school %s by user %s", asset.id, context.school_id, context.user_id)


# ---------------------------------------------------------------------------
# Categories
# ---------------------------------------------------------------------------


def _check_category(db: Session, school_id: int, data: dict, category_id: int | None = None) -> None:
    errors: dict[str, str] = {}

    q = db.query(AssetCategory.id).filter(
        AssetCategory.school_id == school_id, AssetCategory.category_name == data["category_name"]
    )
    if category_id is not None:
        q = q.filter(AssetCategory.id != category_id)
    if q.first():
        errors["category_name"] = MSG_DUPLICATE_CATEGORY_NAME

    if data.get("category_code"):
        q = db.query(AssetCategory.id).filter(
            AssetCategory.school_id == school_id, AssetCategory.category_code == data["category_code"]
        )
        if category_id is not None:
            q = q.filter(AssetCategory.id != category_id)
        if q.first():
            errors["category_code"] = MSG_DUPLICATE_CATEGORY_CODE

    if errors:
        raise ValidationFailed(errors)


def create_category(db: Session, context: TenantContext, payload: CategoryPayload) -> AssetCategory:
    data = payload.model_dump()
    if data["is_active"] is None:
        data["is_active"] = True
    _check_category(db, context.school_id, data)

    now = datetime.now()
    category = AssetCategory(
        school_id=context.school_id,
        **data,
        created_by=context.user_id,
        updated_by=context.user_id,
        created_at=now,
        updated_at=now,
    )
    flush_or_conflict(db, {"category_name": MSG_DUPLICATE_CATEGORY_NAME}, pending=category)
    logger.info("category %s created in school %s", category.id, context.school_id)
    return category


def update_category(
    db: Session, context: TenantContext, category: AssetCategory, payload: CategoryPayload
) -> bool:
    data = payload.model_dump()
    if data["is_active"] is None:
        data["is_active"] = category.is_active
    _check_category(db, context.school_id, data, category_id=category.id)

    changed = changed_fields(category, data, CATEGORY_TRACKED_FIELDS)
    if not changed:
        return False

    for field in changed:
        setattr(category, field, data[field])
    category.updated_by = context.user_id
    category.updated_at = datetime.now()
    flush_or_conflict(db, {"category_name": MSG_DUPLICATE_CATEGORY_NAME})
    return True


def delete_category(db: Session, context: TenantContext, category: AssetCategory) -> None:
    blocking = count_assets_in_category(db, context.school_id, category.id)
    if blocking:
        raise ReferentialConflict(
            blocking, f"ไม่สามารถลบได้ เนื่องจากมีครุภัณฑ์ในประเภทนี้อยู่ {blocking} รายการ"
        )
    try:
        with db.begin_nested():
            db.delete(category)
            db.flush()
    except IntegrityError:
        # an asset was attached between the count and the delete
        blocking = count_assets_in_category(db, context.school_id, category.id)
        raise ReferentialConflict(
            blocking, f"ไม่สามารถลบได้ เนื่องจากมีครุภัณฑ์ในประเภทนี้อยู่ {blocking} รายการ"
        )
    logger.info("category %s deleted from school %s", category.id, context.school_id)
