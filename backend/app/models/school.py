from datetime import datetime

from sqlalchemy import Boolean, DateTime, ForeignKey, String, Text, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.db.database import Base


class School(Base):
    """A tenant. Every asset, category and tenant role belongs to exactly one school."""

    __tablename__ = "schools"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    school_name: Mapped[str] = mapped_column(String(255), nullable=False)
    school_code: Mapped[str | None] = mapped_column(String(50), unique=True)
    address: Mapped[str | None] = mapped_column(Text)
    created_by: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())
    updated_by: Mapped[int | None] = mapped_column(ForeignKey("users.id"))
    updated_at: Mapped[datetime | None] = mapped_column(DateTime)

    memberships: Mapped[list["SchoolUser"]] = relationship(
        "SchoolUser", back_populates="school", cascade="all, delete-orphan"
    )


class SchoolUser(Base):
    __tablename__ = "school_user"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    school_id: Mapped[int] = mapped_column(
        ForeignKey("schools.id", ondelete="CASCADE"), nullable=False, index=True
    )
    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    joined_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())

    __table_args__ = (UniqueConstraint("school_id", "user_id", name="uq_school_user"),)

    school: Mapped["School"] = relationship("School", back_populates="memberships")
    user: Mapped["User"] = relationship("User", back_populates="memberships")  # noqa: F821
