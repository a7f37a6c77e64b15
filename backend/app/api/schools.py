import logging
from datetime import datetime

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, Field, field_validator
from sqlalchemy.orm import Session

from app.api.deps import get_current_user, require_permission
from app.core.authorization import create_tenant_roles, ensure_system_roles, grant_role
from app.core.errors import ValidationFailed
from app.core.tenancy import TenantContext, active_schools
from app.db.database import get_db
from app.db.repository import changed_fields, flush_or_conflict
from app.models.school import School, SchoolUser
from app.models.user import User
from app.utils.constants_loader import get_owner_role

logger = logging.getLogger(__name__)

router = APIRouter()

SCHOOL_TRACKED_FIELDS = ("school_name", "school_code", "address")
MSG_DUPLICATE_SCHOOL_CODE = "รหัสโรงเรียนนี้มีอยู่แล้ว"


class SchoolCreate(BaseModel):
    school_name: str = Field(min_length=1, max_length=255)
    school_code: str | None = Field(default=None, max_length=50)
    address: str | None = None

    @field_validator("school_code", "address", mode="before")
    @classmethod
    def blank_is_null(cls, v):
        if isinstance(v, str):
            return v.strip() or None
        return v


class SchoolResponse(BaseModel):
    id: int
    school_name: str
    school_code: str | None
    address: str | None
    created_by: int
    created_at: datetime | None
    updated_at: datetime | None = None

    model_config = {"from_attributes": True}


def _check_school_code(db: Session, school_code: str | None, school_id: int | None = None) -> None:
    if not school_code:
        return
    query = db.query(School.id).filter(School.school_code == school_code)
    if school_id is not None:
        query = query.filter(School.id != school_id)
    if query.first():
        raise ValidationFailed({"school_code": MSG_DUPLICATE_SCHOOL_CODE})


@router.post("", response_model=SchoolResponse, status_code=status.HTTP_201_CREATED)
def register_school(
    payload: SchoolCreate,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """
    Register a school. The caller becomes its creator and first active member,
    gets the owner role there, and the default tenant roles are created.
    """
    _check_school_code(db, payload.school_code)
    school = School(**payload.model_dump(), created_by=user.id)
    flush_or_conflict(db, {"school_code": MSG_DUPLICATE_SCHOOL_CODE}, pending=school)
    db.add(SchoolUser(school_id=school.id, user_id=user.id, is_active=True))

    system_roles = ensure_system_roles(db)
    owner_role = system_roles.get(get_owner_role())
    if owner_role is not None:
        grant_role(db, user.id, owner_role, school.id)
    create_tenant_roles(db, school.id)

    db.commit()
    db.refresh(school)
    logger.info("school %s registered by user %s", school.id, user.id)
    return school


@router.get("", response_model=list[SchoolResponse])
def list_my_schools(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return active_schools(db, user)


@router.get("/current", response_model=SchoolResponse)
def current_school(context: TenantContext = Depends(require_permission("school.view"))):
    return context.school


@router.put("/current", response_model=SchoolResponse)
def update_current_school(
    payload: SchoolCreate,
    context: TenantContext = Depends(require_permission("school.edit")),
    db: Session = Depends(get_db),
):
    """Edit the current school profile. Audit columns move only when a field changes."""
    school = context.school
    data = payload.model_dump()
    _check_school_code(db, data["school_code"], school_id=school.id)

    changed = changed_fields(school, data, SCHOOL_TRACKED_FIELDS)
    if changed:
        for field in changed:
            setattr(school, field, data[field])
        school.updated_by = context.user_id
        school.updated_at = datetime.now()
        flush_or_conflict(db, {"school_code": MSG_DUPLICATE_SCHOOL_CODE})
        db.commit()
        db.refresh(school)
        logger.info("school %s updated by user %s: %s", school.id, context.user_id, ",".join(changed))
    return school
