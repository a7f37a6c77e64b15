import logging
from datetime import date, datetime
from typing import Literal

from fastapi import APIRouter, Body, Depends, File, Query, UploadFile, status
from fastapi.responses import Response
from pydantic import BaseModel
from sqlalchemy import func, or_
from sqlalchemy.orm import Session, joinedload

from app.api.deps import require_permission
from app.api.schemas import AssetPayload
from app.core.errors import ReauthenticationRequired
from app.core.fiscal_period import format_date_short
from app.core.tenancy import TenantContext
from app.core.valuation import asset_value_as_of, estimate_live_value
from app.db import repository
from app.db.database import get_db
from app.models.asset import STATUS_CODES, Asset
from app.models.asset_category import AssetCategory
from app.utils.constants_loader import label_for
from app.utils.opaque_ids import decode_id, encode_id
from app.utils.pdf_generator import generate_asset_card_pdf
from app.utils.security import check_password
from app.utils.spreadsheet import XLSX_MEDIA_TYPE, build_asset_template, import_assets

logger = logging.getLogger(__name__)

router = APIRouter()

SORTABLE = {
    "asset_name": Asset.asset_name,
    "asset_code": Asset.asset_code,
    "acquisition_date": Asset.acquisition_date,
    "unit_price": Asset.unit_price,
    "status": Asset.status,
    "created_at": Asset.created_at,
}


class DeleteConfirmation(BaseModel):
    password: str | None = None


def serialize_asset(asset: Asset, as_of: date, fast_estimate: bool = False) -> dict:
    """
    Public representation of an asset. Current figures come from the schedule
    lookup; fast_estimate switches to the rate-based estimate for big listings.
    """
    if fast_estimate:
        accumulated, book_value = estimate_live_value(
            asset.total_price,
            asset.effective_depreciation_rate,
            asset.effective_useful_life_years,
            asset.acquisition_date,
            as_of,
        )
        valuation = None
    else:
        _, valuation = asset_value_as_of(asset, as_of)
        accumulated, book_value = valuation.accumulated_depreciation, valuation.book_value

    data = {
        "id": encode_id(asset.id),
        "asset_name": asset.asset_name,
        "asset_code": asset.asset_code,
        "category_id": asset.category_id,
        "category_name": asset.category.category_name if asset.category else None,
        "gfmis_number": asset.gfmis_number,
        "acquisition_date": asset.acquisition_date.isoformat(),
        "document_number": asset.document_number,
        "unit_price": float(asset.unit_price),
        "quantity": asset.quantity,
        "total_price": float(asset.total_price),
        "budget_type": asset.budget_type,
        "budget_type_label": label_for("budget_type", asset.budget_type),
        "acquisition_method": asset.acquisition_method,
        "acquisition_method_label": label_for("acquisition_method", asset.acquisition_method),
        "useful_life_years": asset.useful_life_years,
        "depreciation_rate": float(asset.depreciation_rate) if asset.depreciation_rate is not None else None,
        "effective_useful_life_years": asset.effective_useful_life_years,
        "effective_depreciation_rate": (
            float(asset.effective_depreciation_rate) if asset.effective_depreciation_rate is not None else None
        ),
        "supplier_name": asset.supplier_name,
        "supplier_phone": asset.supplier_phone,
        "status": asset.status,
        "status_label": label_for("status", asset.status),
        "notes": asset.notes,
        "accumulated_depreciation": float(accumulated),
        "book_value": float(book_value),
        "created_at": asset.created_at.isoformat() if asset.created_at else None,
        "updated_at": asset.updated_at.isoformat() if asset.updated_at else None,
    }
    if valuation is not None:
        data["valuation"] = valuation.to_dict()
    return data


def _asset_for(db: Session, context: TenantContext, token: str) -> Asset:
    return repository.find_asset(db, context.school_id, decode_id(token))


@router.get("")
def list_assets(
    search: str | None = None,
    category_id: int | None = None,
    status_code: int | None = Query(None, alias="status"),
    budget_type: int | None = None,
    date_from: date | None = None,
    date_to: date | None = None,
    sort_by: str = "created_at",
    sort_dir: Literal["asc", "desc"] = "desc",
    page: int = Query(1, ge=1),
    per_page: int = Query(15, ge=1, le=100),
    fast_estimate: bool = False,
    context: TenantContext = Depends(require_permission("assets.view")),
    db: Session = Depends(get_db),
):
    q = (
        db.query(Asset)
        .options(joinedload(Asset.category))
        .filter(Asset.school_id == context.school_id)
    )
    if search:
        pattern = f"%{search.strip()}%"
        q = q.filter(or_(
            Asset.asset_name.ilike(pattern),
            Asset.asset_code.ilike(pattern),
            Asset.gfmis_number.ilike(pattern),
        ))
    if category_id is not None:
        q = q.filter(Asset.category_id == category_id)
    if status_code is not None:
        q = q.filter(Asset.status == status_code)
    if budget_type is not None:
        q = q.filter(Asset.budget_type == budget_type)
    if date_from is not None:
        q = q.filter(Asset.acquisition_date >= date_from)
    if date_to is not None:
        q = q.filter(Asset.acquisition_date <= date_to)

    column = SORTABLE.get(sort_by, Asset.created_at)
    q = q.order_by(column.desc() if sort_dir == "desc" else column.asc(), Asset.id.desc())

    items, meta = repository.paginate(q, page, per_page)
    today = date.today()
    return {"items": [serialize_asset(a, today, fast_estimate) for a in items], **meta}


@router.get("/summary")
def asset_summary(
    context: TenantContext = Depends(require_permission("assets.view")),
    db: Session = Depends(get_db),
):
    base = db.query(Asset).filter(Asset.school_id == context.school_id)
    total_assets = base.count()
    total_value = (
        db.query(func.coalesce(func.sum(Asset.unit_price * Asset.quantity), 0))
        .filter(Asset.school_id == context.school_id)
        .scalar()
    )

    by_status = dict.fromkeys(STATUS_CODES, 0)
    rows = (
        db.query(Asset.status, func.count(Asset.id))
        .filter(Asset.school_id == context.school_id)
        .group_by(Asset.status)
        .all()
    )
    for code, count in rows:
        if code in by_status:
            by_status[code] = count

    by_category = (
        db.query(
            AssetCategory.id,
            AssetCategory.category_name,
            func.count(Asset.id),
            func.coalesce(func.sum(Asset.unit_price * Asset.quantity), 0),
        )
        .join(Asset, Asset.category_id == AssetCategory.id)
        .filter(Asset.school_id == context.school_id, AssetCategory.school_id == context.school_id)
        .group_by(AssetCategory.id, AssetCategory.category_name)
        .order_by(AssetCategory.category_name)
        .all()
    )

    return {
        "total_assets": total_assets,
        "total_value": round(float(total_value or 0), 2),
        "by_status": [
            {"status": code, "label": label_for("status", code), "count": count}
            for code, count in by_status.items()
        ],
        "by_category": [
            {"category_id": cid, "category_name": name, "count": count, "total_value": round(float(value or 0), 2)}
            for cid, name, count, value in by_category
        ],
    }


@router.get("/import-template")
def asset_import_template(
    context: TenantContext = Depends(require_permission("assets.create")),
    db: Session = Depends(get_db),
):
    categories = (
        db.query(AssetCategory)
        .filter(AssetCategory.school_id == context.school_id, AssetCategory.is_active.is_(True))
        .order_by(AssetCategory.category_name)
        .all()
    )
    return Response(
        content=build_asset_template(categories),
        media_type=XLSX_MEDIA_TYPE,
        headers={"Content-Disposition": 'attachment; filename="assets_template.xlsx"'},
    )


@router.post("/import")
async def import_asset_file(
    file: UploadFile = File(...),
    context: TenantContext = Depends(require_permission("assets.create")),
    db: Session = Depends(get_db),
):
    content = await file.read()
    result = import_assets(db, context, content)
    db.commit()
    return result


@router.get("/{asset_id}")
def get_asset(
    asset_id: str,
    context: TenantContext = Depends(require_permission("assets.view")),
    db: Session = Depends(get_db),
):
    return serialize_asset(_asset_for(db, context, asset_id), date.today())


@router.post("", status_code=status.HTTP_201_CREATED)
def create_asset(
    payload: AssetPayload,
    context: TenantContext = Depends(require_permission("assets.create")),
    db: Session = Depends(get_db),
):
    asset = repository.create_asset(db, context, payload)
    db.commit()
    db.refresh(asset)
    return serialize_asset(asset, date.today())


@router.put("/{asset_id}")
def update_asset(
    asset_id: str,
    payload: AssetPayload,
    context: TenantContext = Depends(require_permission("assets.edit")),
    db: Session = Depends(get_db),
):
    asset = _asset_for(db, context, asset_id)
    if repository.update_asset(db, context, asset, payload):
        db.commit()
        db.refresh(asset)
    return serialize_asset(asset, date.today())


@router.delete("/{asset_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_asset(
    asset_id: str,
    confirmation: DeleteConfirmation | None = Body(default=None),
    context: TenantContext = Depends(require_permission("assets.delete")),
    db: Session = Depends(get_db),
):
    """Deleting requires the caller's password, checked before the asset is looked up."""
    password = confirmation.password if confirmation else None
    if not password or not check_password(password, context.user.password_hash):
        logger.info("asset delete refused for user %s: password not confirmed", context.user_id)
        raise ReauthenticationRequired()

    asset = _asset_for(db, context, asset_id)
    repository.delete_asset(db, context, asset)
    db.commit()


@router.get("/{asset_id}/depreciation")
def asset_depreciation(
    asset_id: str,
    context: TenantContext = Depends(require_permission("assets.view")),
    db: Session = Depends(get_db),
):
    asset = _asset_for(db, context, asset_id)
    schedule, valuation = asset_value_as_of(asset, date.today())
    return {
        "asset": {
            "id": encode_id(asset.id),
            "asset_name": asset.asset_name,
            "asset_code": asset.asset_code,
            "category_name": asset.category.category_name if asset.category else None,
            "unit_price": float(asset.unit_price),
            "quantity": asset.quantity,
        },
        "purchase_date": format_date_short(asset.acquisition_date),
        **schedule.to_dict(),
        "current": valuation.to_dict(),
    }


@router.get("/{asset_id}/pdf")
def asset_pdf(
    asset_id: str,
    context: TenantContext = Depends(require_permission("assets.view")),
    db: Session = Depends(get_db),
):
    asset = _asset_for(db, context, asset_id)
    schedule, _ = asset_value_as_of(asset, date.today())
    display = {
        "asset_name": asset.asset_name,
        "asset_code": asset.asset_code,
        "category_name": asset.category.category_name if asset.category else None,
        "gfmis_number": asset.gfmis_number,
        "acquisition_date": asset.acquisition_date,
        "acquisition_date_display": format_date_short(asset.acquisition_date),
        "document_number": asset.document_number,
        "unit_price": asset.unit_price,
        "quantity": asset.quantity,
        "budget_type_label": label_for("budget_type", asset.budget_type),
        "acquisition_method_label": label_for("acquisition_method", asset.acquisition_method),
        "supplier_name": asset.supplier_name,
        "status_label": label_for("status", asset.status),
    }
    pdf_bytes = generate_asset_card_pdf(display, schedule, context.school.school_name)
    filename = f"asset_{encode_id(asset.id)}_{datetime.now():%Y%m%d}.pdf"
    return Response(
        content=pdf_bytes,
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
