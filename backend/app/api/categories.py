from datetime import datetime
from typing import Literal

from fastapi import APIRouter, Depends, File, Query, UploadFile, status
from fastapi.responses import Response
from pydantic import BaseModel
from sqlalchemy import or_
from sqlalchemy.orm import Session

from app.api.deps import require_permission
from app.api.schemas import CategoryPayload
from app.core.tenancy import TenantContext
from app.db import repository
from app.db.database import get_db
from app.models.asset_category import AssetCategory
from app.utils.spreadsheet import XLSX_MEDIA_TYPE, build_category_template, import_categories

router = APIRouter()

SORTABLE = {
    "category_name": AssetCategory.category_name,
    "category_code": AssetCategory.category_code,
    "useful_life_years": AssetCategory.useful_life_years,
    "depreciation_rate": AssetCategory.depreciation_rate,
    "created_at": AssetCategory.created_at,
}


class CategoryResponse(BaseModel):
    id: int
    category_name: str
    category_code: str | None
    useful_life_years: int
    depreciation_rate: float
    description: str | None
    is_active: bool
    created_at: datetime | None
    updated_at: datetime | None

    model_config = {"from_attributes": True}


class CategoryDetail(CategoryResponse):
    assets_count: int


class CategoryPage(BaseModel):
    items: list[CategoryResponse]
    total: int
    page: int
    per_page: int
    last_page: int


class CategoryOption(BaseModel):
    id: int
    category_name: str
    category_code: str | None
    useful_life_years: int
    depreciation_rate: float

    model_config = {"from_attributes": True}


@router.get("", response_model=CategoryPage)
def list_categories(
    search: str | None = None,
    is_active: bool | None = None,
    sort_by: str = "category_name",
    sort_dir: Literal["asc", "desc"] = "asc",
    page: int = Query(1, ge=1),
    per_page: int = Query(15, ge=1, le=100),
    context: TenantContext = Depends(require_permission("asset-categories.view")),
    db: Session = Depends(get_db),
):
    q = db.query(AssetCategory).filter(AssetCategory.school_id == context.school_id)
    if search:
        pattern = f"%{search.strip()}%"
        q = q.filter(or_(AssetCategory.category_name.ilike(pattern), AssetCategory.category_code.ilike(pattern)))
    if is_active is not None:
        q = q.filter(AssetCategory.is_active.is_(is_active))

    # unknown sort keys fall back to the name
    column = SORTABLE.get(sort_by, AssetCategory.category_name)
    q = q.order_by(column.desc() if sort_dir == "desc" else column.asc(), AssetCategory.id)

    items, meta = repository.paginate(q, page, per_page)
    return CategoryPage(items=items, **meta)


@router.get("/active", response_model=list[CategoryOption])
def active_categories(
    context: TenantContext = Depends(require_permission("asset-categories.view")),
    db: Session = Depends(get_db),
):
    """Dropdown source for the asset form."""
    return (
        db.query(AssetCategory)
        .filter(AssetCategory.school_id == context.school_id, AssetCategory.is_active.is_(True))
        .order_by(AssetCategory.category_name)
        .all()
    )


@router.get("/import-template")
def category_import_template(
    context: TenantContext = Depends(require_permission("asset-categories.create")),
):
    return Response(
        content=build_category_template(),
        media_type=XLSX_MEDIA_TYPE,
        headers={"Content-Disposition": 'attachment; filename="asset_categories_template.xlsx"'},
    )


@router.post("/import")
async def import_category_file(
    file: UploadFile = File(...),
    context: TenantContext = Depends(require_permission("asset-categories.create")),
    db: Session = Depends(get_db),
):
    content = await file.read()
    result = import_categories(db, context, content)
    db.commit()
    return result


@router.get("/{category_id}", response_model=CategoryDetail)
def get_category(
    category_id: int,
    context: TenantContext = Depends(require_permission("asset-categories.view")),
    db: Session = Depends(get_db),
):
    category = repository.find_category(db, context.school_id, category_id)
    detail = CategoryResponse.model_validate(category).model_dump()
    return CategoryDetail(
        **detail,
        assets_count=repository.count_assets_in_category(db, context.school_id, category.id),
    )


@router.post("", response_model=CategoryResponse, status_code=status.HTTP_201_CREATED)
def create_category(
    payload: CategoryPayload,
    context: TenantContext = Depends(require_permission("asset-categories.create")),
    db: Session = Depends(get_db),
):
    category = repository.create_category(db, context, payload)
    db.commit()
    db.refresh(category)
    return category


@router.put("/{category_id}", response_model=CategoryResponse)
def update_category(
    category_id: int,
    payload: CategoryPayload,
    context: TenantContext = Depends(require_permission("asset-categories.edit")),
    db: Session = Depends(get_db),
):
    category = repository.find_category(db, context.school_id, category_id)
    if repository.update_category(db, context, category, payload):
        db.commit()
        db.refresh(category)
    return category


@router.delete("/{category_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_category(
    category_id: int,
    context: TenantContext = Depends(require_permission("asset-categories.delete")),
    db: Session = Depends(get_db),
):
    category = repository.find_category(db, context.school_id, category_id)
    repository.delete_category(db, context, category)
    db.commit()
