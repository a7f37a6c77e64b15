from datetime import date, datetime

from fastapi import APIRouter, Depends
from sqlalchemy import func
from sqlalchemy.orm import Session, joinedload

from app.api.deps import get_tenant
from app.core.tenancy import TenantContext
from app.db.database import get_db
from app.models.asset import (
    STATUS_ACTIVE,
    STATUS_DISPOSED,
    STATUS_INACTIVE,
    STATUS_REPAIRING,
    STATUS_UNKNOWN,
    Asset,
)
from app.models.rbac import UserRole
from app.models.school import SchoolUser
from app.models.user import User
from app.utils.constants_loader import label_for
from app.utils.opaque_ids import encode_id

router = APIRouter()

# chart keys for the status distribution
STATUS_KEYS = {
    STATUS_ACTIVE: "active",
    STATUS_INACTIVE: "inactive",
    STATUS_DISPOSED: "disposed",
    STATUS_REPAIRING: "repairing",
    STATUS_UNKNOWN: "unknown",
}
RECENT_ASSETS = 5


def _user_stats(db: Session, school_id: int, today: date) -> dict:
    members = (
        db.query(User.id)
        .join(SchoolUser, SchoolUser.user_id == User.id)
        .filter(SchoolUser.school_id == school_id, SchoolUser.is_active.is_(True))
    )
    month_start = datetime(today.year, today.month, 1)
    roles_count = (
        db.query(func.count(func.distinct(UserRole.role_id)))
        .filter(UserRole.school_id == school_id, UserRole.user_id.in_(members.scalar_subquery()))
        .scalar()
    )
    return {
        "total": members.count(),
        "new_this_month": members.filter(User.created_at >= month_start).count(),
        "roles_count": roles_count or 0,
    }


def _asset_stats(db: Session, school_id: int) -> dict:
    scoped = db.query(Asset).filter(Asset.school_id == school_id)
    total_value = (
        db.query(func.coalesce(func.sum(Asset.unit_price * Asset.quantity), 0))
        .filter(Asset.school_id == school_id)
        .scalar()
    )
    counts = dict(
        db.query(Asset.status, func.count(Asset.id))
        .filter(Asset.school_id == school_id)
        .group_by(Asset.status)
        .all()
    )
    return {
        "total": scoped.count(),
        "total_value": float(total_value or 0),
        "in_repair": counts.get(STATUS_REPAIRING, 0),
        "distribution": {key: counts.get(code, 0) for code, key in STATUS_KEYS.items()},
    }


def _recent_assets(db: Session, school_id: int) -> list[dict]:
    assets = (
        db.query(Asset)
        .options(joinedload(Asset.category))
        .filter(Asset.school_id == school_id)
        .order_by(Asset.created_at.desc(), Asset.id.desc())
        .limit(RECENT_ASSETS)
        .all()
    )
    return [
        {
            "id": encode_id(a.id),
            "name": a.asset_name,
            "code": a.asset_code,
            "category": a.category.category_name if a.category else "-",
            "price": float(a.total_price),
            "status": label_for("status", a.status),
            "created_at": a.created_at.isoformat() if a.created_at else None,
        }
        for a in assets
    ]


@router.get("/stats")
def dashboard_stats(context: TenantContext = Depends(get_tenant), db: Session = Depends(get_db)):
    """Landing-page figures for the current school."""
    return {
        "school": {"id": context.school_id, "school_name": context.school.school_name},
        "users": _user_stats(db, context.school_id, date.today()),
        "assets": _asset_stats(db, context.school_id),
        "recent_assets": _recent_assets(db, context.school_id),
    }
