from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import Date, DateTime, ForeignKey, Integer, Numeric, SmallInteger, String, Text, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.db.database import Base

STATUS_ACTIVE = 1
STATUS_INACTIVE = 2
STATUS_DISPOSED = 3
STATUS_REPAIRING = 4
STATUS_UNKNOWN = 5
STATUS_CODES = (1, 2, 3, 4, 5)

BUDGET_TYPE_CODES = (1, 2, 3, 4)
ACQUISITION_METHOD_CODES = (1, 2, 3, 4, 5)

# Fields compared by the diff-based update; audit columns are excluded.
TRACKED_FIELDS = (
    "asset_name",
    "asset_code",
    "category_id",
    "gfmis_number",
    "acquisition_date",
    "document_number",
    "unit_price",
    "quantity",
    "budget_type",
    "acquisition_method",
    "useful_life_years",
    "depreciation_rate",
    "supplier_name",
    "supplier_phone",
    "status",
    "notes",
)


class Asset(Base):
    __tablename__ = "assets"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    school_id: Mapped[int] = mapped_column(
        ForeignKey("schools.id", ondelete="CASCADE"), nullable=False, index=True
    )

    asset_name: Mapped[str] = mapped_column(String(255), nullable=False)
    asset_code: Mapped[str | None] = mapped_column(String(100))
    category_id: Mapped[int] = mapped_column(
        ForeignKey("asset_categories.id", ondelete="RESTRICT"), nullable=False, index=True
    )
    gfmis_number: Mapped[str | None] = mapped_column(String(100))

    acquisition_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    document_number: Mapped[str | None] = mapped_column(String(100))
    unit_price: Mapped[Decimal] = mapped_column(Numeric(15, 2), nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    budget_type: Mapped[int | None] = mapped_column(SmallInteger)
    acquisition_method: Mapped[int | None] = mapped_column(SmallInteger)

    # NULL = use the category value
    useful_life_years: Mapped[int | None] = mapped_column(Integer)
    depreciation_rate: Mapped[Decimal | None] = mapped_column(Numeric(5, 2))

    supplier_name: Mapped[str | None] = mapped_column(String(255))
    supplier_phone: Mapped[str | None] = mapped_column(String(20))

    status: Mapped[int] = mapped_column(SmallInteger, nullable=False, default=STATUS_ACTIVE, index=True)
    notes: Mapped[str | None] = mapped_column(Text)

    created_by: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False)
    updated_by: Mapped[int | None] = mapped_column(ForeignKey("users.id"))
    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())

    __table_args__ = (UniqueConstraint("school_id", "asset_code", name="uq_asset_school_code"),)

    category: Mapped["AssetCategory"] = relationship(  # noqa: F821
        "AssetCategory", back_populates="assets"
    )

    @property
    def total_price(self) -> Decimal:
        return Decimal(str(self.unit_price)) * self.quantity

    @property
    def effective_useful_life_years(self) -> int | None:
        if self.useful_life_years is not None:
            return self.useful_life_years
        return self.category.useful_life_years if self.category is not None else None

    @property
    def effective_depreciation_rate(self) -> Decimal | None:
        if self.depreciation_rate is not None:
            return Decimal(str(self.depreciation_rate))
        if self.category is not None:
            return Decimal(str(self.category.depreciation_rate))
        return None
