import logging
from datetime import datetime

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, Field
from sqlalchemy import func
from sqlalchemy.orm import Session

from app.api.deps import require_permission
from app.core.authorization import grant_role, permissions_for, role_names_for, visible_roles
from app.core.errors import NotFound, ValidationFailed
from app.core.tenancy import TenantContext
from app.db.database import get_db
from app.models.rbac import Role, UserRole
from app.models.school import SchoolUser
from app.models.user import User
from app.utils.constants_loader import get_ungrantable_roles

logger = logging.getLogger(__name__)

router = APIRouter()


class MemberAdd(BaseModel):
    email: str = Field(min_length=3, max_length=255)
    roles: list[str] = []


class RoleAssignment(BaseModel):
    roles: list[str]


class MemberResponse(BaseModel):
    id: int
    name: str
    email: str
    roles: list[str]


class MemberDetail(MemberResponse):
    permissions: list[str]
    joined_at: datetime | None


class AssignableRole(BaseModel):
    id: int
    name: str
    is_system: bool


def _member_response(db: Session, user: User, school_id: int) -> MemberResponse:
    return MemberResponse(
        id=user.id, name=user.name, email=user.email, roles=role_names_for(db, user.id, school_id)
    )


def _assignable_roles(db: Session, school_id: int):
    return visible_roles(db, school_id).filter(Role.name.not_in(get_ungrantable_roles()))


def _resolve_roles(db: Session, school_id: int, names: list[str]) -> list[Role]:
    wanted = set(names)
    roles = _assignable_roles(db, school_id).filter(Role.name.in_(wanted)).all() if wanted else []
    # a tenant role and a system role never share a name, so one row per name
    if len({r.name for r in roles}) != len(wanted):
        raise ValidationFailed({"roles": "ไม่พบ Role ที่ระบุ"})
    return roles


def _active_membership(db: Session, school_id: int, user_id: int) -> SchoolUser:
    membership = (
        db.query(SchoolUser)
        .filter(
            SchoolUser.school_id == school_id,
            SchoolUser.user_id == user_id,
            SchoolUser.is_active.is_(True),
        )
        .first()
    )
    if not membership:
        raise NotFound("ไม่พบผู้ใช้งาน")
    return membership


def _replace_roles(db: Session, user_id: int, school_id: int, roles: list[Role]) -> None:
    db.query(UserRole).filter(UserRole.user_id == user_id, UserRole.school_id == school_id).delete()
    for role in roles:
        grant_role(db, user_id, role, school_id)


@router.get("", response_model=list[MemberResponse])
def list_members(
    context: TenantContext = Depends(require_permission("users.view")),
    db: Session = Depends(get_db),
):
    users = (
        db.query(User)
        .join(SchoolUser, SchoolUser.user_id == User.id)
        .filter(SchoolUser.school_id == context.school_id, SchoolUser.is_active.is_(True))
        .order_by(User.name)
        .all()
    )
    return [_member_response(db, u, context.school_id) for u in users]


@router.get("/available-roles", response_model=list[AssignableRole])
def available_roles(
    context: TenantContext = Depends(require_permission("users.view")),
    db: Session = Depends(get_db),
):
    """Roles this school may grant: system roles other than the ungrantable ones, plus its own."""
    roles = _assignable_roles(db, context.school_id).order_by(Role.school_id.is_not(None), Role.name).all()
    return [AssignableRole(id=r.id, name=r.name, is_system=r.is_system) for r in roles]


@router.get("/{user_id}", response_model=MemberDetail)
def get_member(
    user_id: int,
    context: TenantContext = Depends(require_permission("users.view")),
    db: Session = Depends(get_db),
):
    membership = _active_membership(db, context.school_id, user_id)
    user = membership.user
    return MemberDetail(
        id=user.id,
        name=user.name,
        email=user.email,
        roles=role_names_for(db, user.id, context.school_id),
        permissions=sorted(permissions_for(db, user.id, context.school_id)),
        joined_at=membership.joined_at,
    )


@router.post("", response_model=MemberResponse, status_code=status.HTTP_201_CREATED)
def add_member(
    payload: MemberAdd,
    context: TenantContext = Depends(require_permission("users.create")),
    db: Session = Depends(get_db),
):
    user = db.query(User).filter(func.lower(User.email) == payload.email.strip().lower()).first()
    if not user:
        raise ValidationFailed({"email": "ไม่พบผู้ใช้งานที่มีอีเมลนี้"})
    roles = _resolve_roles(db, context.school_id, payload.roles)

    membership = (
        db.query(SchoolUser)
        .filter(SchoolUser.school_id == context.school_id, SchoolUser.user_id == user.id)
        .first()
    )
    if membership:
        membership.is_active = True
    else:
        db.add(SchoolUser(school_id=context.school_id, user_id=user.id, is_active=True))
    db.flush()
    for role in roles:
        grant_role(db, user.id, role, context.school_id)
    db.commit()
    logger.info("user %s added to school %s", user.id, context.school_id)
    return _member_response(db, user, context.school_id)


@router.put("/{user_id}/roles", response_model=MemberResponse)
def assign_roles(
    user_id: int,
    payload: RoleAssignment,
    context: TenantContext = Depends(require_permission("users.edit")),
    db: Session = Depends(get_db),
):
    membership = _active_membership(db, context.school_id, user_id)
    roles = _resolve_roles(db, context.school_id, payload.roles)
    _replace_roles(db, user_id, context.school_id, roles)
    db.commit()
    logger.info(
        "roles of user %s in school %s set to %s",
        user_id, context.school_id, ",".join(r.name for r in roles),
    )
    return _member_response(db, membership.user, context.school_id)


@router.delete("/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
def remove_member(
    user_id: int,
    context: TenantContext = Depends(require_permission("users.delete")),
    db: Session = Depends(get_db),
):
    if user_id == context.user_id:
        raise ValidationFailed({"user_id": "ไม่สามารถลบตัวเองออกจากโรงเรียนได้"})
    membership = _active_membership(db, context.school_id, user_id)
    membership.is_active = False
    _replace_roles(db, user_id, context.school_id, [])
    db.commit()
    logger.info("user %s removed from school %s", user_id, context.school_id)
