"""Request payloads shared by the JSON API and the spreadsheet import."""
from datetime import date
from decimal import Decimal

from pydantic import BaseModel, Field, field_validator

from app.models.asset import ACQUISITION_METHOD_CODES, BUDGET_TYPE_CODES, STATUS_CODES


def _blank_to_none(v):
    if isinstance(v, str):
        v = v.strip()
        return v or None
    return v


class AssetPayload(BaseModel):
    """Full desired state of an asset (create and PUT)."""

    asset_name: str = Field(min_length=1, max_length=255)
    asset_code: str | None = Field(default=None, max_length=100)
    category_id: int
    gfmis_number: str | None = Field(default=None, max_length=100)
    acquisition_date: date
    document_number: str | None = Field(default=None, max_length=100)
    unit_price: Decimal = Field(ge=0, max_digits=15, decimal_places=2)
    quantity: int = Field(ge=1)
    budget_type: int | None = None
    acquisition_method: int | None = None
    useful_life_years: int | None = Field(default=None, ge=1, le=100)
    depreciation_rate: Decimal | None = Field(default=None, ge=0, le=100, decimal_places=2)
    supplier_name: str | None = Field(default=None, max_length=255)
    supplier_phone: str | None = Field(default=None, max_length=20)
    status: int | None = None
    notes: str | None = Field(default=None, max_length=2000)

    @field_validator(
        "asset_code", "gfmis_number", "document_number", "supplier_name", "supplier_phone", "notes",
        mode="before",
    )
    @classmethod
    def blank_strings_are_null(cls, v):
        return _blank_to_none(v)

    @field_validator("asset_name", mode="before")
    @classmethod
    def strip_name(cls, v):
        return v.strip() if isinstance(v, str) else v

    @field_validator("budget_type")
    @classmethod
    def valid_budget_type(cls, v):
        if v is not None and v not in BUDGET_TYPE_CODES:
            raise ValueError("ประเภทงบประมาณไม่ถูกต้อง")
        return v

    @field_validator("acquisition_method")
    @classmethod
    def valid_acquisition_method(cls, v):
        if v is not None and v not in ACQUISITION_METHOD_CODES:
            raise ValueError("วิธีการได้มาไม่ถูกต้อง")
        return v

    @field_validator("status")
    @classmethod
    def valid_status(cls, v):
        if v is not None and v not in STATUS_CODES:
            raise ValueError("สถานะไม่ถูกต้อง")
        return v


class CategoryPayload(BaseModel):
    category_name: str = Field(min_length=1, max_length=255)
    category_code: str | None = Field(default=None, max_length=50)
    useful_life_years: int = Field(ge=1, le=100)
    depreciation_rate: Decimal = Field(ge=0, le=100, decimal_places=2)
    description: str | None = Field(default=None, max_length=1000)
    is_active: bool | None = None

    @field_validator("category_code", "description", mode="before")
    @classmethod
    def blank_strings_are_null(cls, v):
        return _blank_to_none(v)

    @field_validator("category_name", mode="before")
    @classmethod
    def strip_name(cls, v):
        return v.strip() if isinstance(v, str) else v
