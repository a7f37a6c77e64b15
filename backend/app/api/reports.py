from datetime import date

from fastapi import APIRouter, Depends, Query
from sqlalchemy import func
from sqlalchemy.orm import Session, joinedload

from app.api.deps import require_permission
from app.core import reports
from app.core.tenancy import TenantContext
from app.db.database import get_db
from app.models.asset import STATUS_ACTIVE, Asset
from app.models.asset_category import AssetCategory

router = APIRouter()

report_access = require_permission("assets.view", "assets.report")


def _assets(db: Session, school_id: int):
    return (
        db.query(Asset)
        .options(joinedload(Asset.category))
        .filter(Asset.school_id == school_id)
    )


def _grouped(db: Session, school_id: int, column):
    return (
        db.query(column, func.count(Asset.id), func.coalesce(func.sum(Asset.unit_price * Asset.quantity), 0))
        .filter(Asset.school_id == school_id)
        .group_by(column)
        .all()
    )


@router.get("/category-breakdown")
def category_breakdown(
    context: TenantContext = Depends(report_access),
    db: Session = Depends(get_db),
):
    categories = (
        db.query(AssetCategory)
        .filter(AssetCategory.school_id == context.school_id, AssetCategory.is_active.is_(True))
        .order_by(AssetCategory.category_name)
        .all()
    )
    assets = _assets(db, context.school_id).all()
    return reports.category_breakdown(categories, assets, date.today())


@router.get("/depreciation")
def depreciation_report(
    category_id: int | None = None,
    status_code: int | None = Query(None, alias="status"),
    context: TenantContext = Depends(report_access),
    db: Session = Depends(get_db),
):
    q = _assets(db, context.school_id)
    if category_id is not None:
        q = q.filter(Asset.category_id == category_id)
    if status_code is not None:
        q = q.filter(Asset.status == status_code)
    assets = q.order_by(Asset.acquisition_date, Asset.id).all()
    return reports.depreciation_report(assets, date.today())


@router.get("/by-status")
def by_status(context: TenantContext = Depends(report_access), db: Session = Depends(get_db)):
    return reports.fixed_breakdown(_grouped(db, context.school_id, Asset.status), "status", "status", "status_label")


@router.get("/by-acquisition-method")
def by_acquisition_method(context: TenantContext = Depends(report_access), db: Session = Depends(get_db)):
    return reports.fixed_breakdown(
        _grouped(db, context.school_id, Asset.acquisition_method),
        "acquisition_method",
        "acquisition_method",
        "method_label",
    )


@router.get("/by-budget-type")
def by_budget_type(context: TenantContext = Depends(report_access), db: Session = Depends(get_db)):
    return reports.fixed_breakdown(
        _grouped(db, context.school_id, Asset.budget_type),
        "budget_type",
        "budget_type",
        "budget_type_label",
    )


@router.get("/expiring")
def expiring(context: TenantContext = Depends(report_access), db: Session = Depends(get_db)):
    """Only assets in use are considered."""
    assets = _assets(db, context.school_id).filter(Asset.status == STATUS_ACTIVE).all()
    return reports.expiring_assets(assets, date.today())
