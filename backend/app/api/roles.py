import logging

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from app.api.deps import require_permission
from app.core.authorization import find_mutable_role, find_visible_role, visible_roles
from app.core.errors import ValidationFailed
from app.core.tenancy import TenantContext
from app.db.database import get_db
from app.db.repository import flush_or_conflict
from app.models.rbac import Permission, Role
from app.utils.constants_loader import get_system_roles

logger = logging.getLogger(__name__)

router = APIRouter()
permissions_router = APIRouter()

MSG_DUPLICATE_ROLE = "ชื่อ Role นี้มีอยู่แล้ว"


class RolePayload(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    permissions: list[str] = []


class RoleResponse(BaseModel):
    id: int
    name: str
    is_system: bool
    permissions: list[str]


class PermissionResponse(BaseModel):
    id: int
    name: str
    description: str | None

    model_config = {"from_attributes": True}


def _role_response(role: Role) -> RoleResponse:
    return RoleResponse(
        id=role.id,
        name=role.name,
        is_system=role.is_system,
        permissions=[p.name for p in role.permissions],
    )


def _check_name(db: Session, school_id: int, name: str, role_id: int | None = None) -> None:
    """Names are unique within a school and may not shadow a system role."""
    q = visible_roles(db, school_id).filter(Role.name == name)
    if role_id is not None:
        q = q.filter(Role.id != role_id)
    if q.first() or name in get_system_roles():
        raise ValidationFailed({"name": MSG_DUPLICATE_ROLE})


def _resolve_permissions(db: Session, names: list[str]) -> list[Permission]:
    wanted = set(names)
    found = db.query(Permission).filter(Permission.name.in_(wanted)).all() if wanted else []
    unknown = wanted - {p.name for p in found}
    if unknown:
        raise ValidationFailed({"permissions": f"ไม่พบสิทธิ์: {', '.join(sorted(unknown))}"})
    return found


@router.get("", response_model=list[RoleResponse])
def list_roles(
    context: TenantContext = Depends(require_permission("roles.view")),
    db: Session = Depends(get_db),
):
    roles = visible_roles(db, context.school_id).order_by(Role.school_id.is_not(None), Role.name).all()
    return [_role_response(r) for r in roles]


@router.get("/{role_id}", response_model=RoleResponse)
def get_role(
    role_id: int,
    context: TenantContext = Depends(require_permission("roles.view")),
    db: Session = Depends(get_db),
):
    return _role_response(find_visible_role(db, context.school_id, role_id))


@router.post("", response_model=RoleResponse, status_code=status.HTTP_201_CREATED)
def create_role(
    payload: RolePayload,
    context: TenantContext = Depends(require_permission("roles.create")),
    db: Session = Depends(get_db),
):
    name = payload.name.strip()
    _check_name(db, context.school_id, name)
    role = Role(name=name, school_id=context.school_id)
    role.permissions = _resolve_permissions(db, payload.permissions)
    flush_or_conflict(db, {"name": MSG_DUPLICATE_ROLE}, pending=role)
    db.commit()
    db.refresh(role)
    logger.info("role %s created in school %s", role.id, context.school_id)
    return _role_response(role)


@router.put("/{role_id}", response_model=RoleResponse)
def update_role(
    role_id: int,
    payload: RolePayload,
    context: TenantContext = Depends(require_permission("roles.edit")),
    db: Session = Depends(get_db),
):
    role = find_mutable_role(db, context.school_id, role_id)
    name = payload.name.strip()
    _check_name(db, context.school_id, name, role_id=role.id)
    role.permissions = _resolve_permissions(db, payload.permissions)
    role.name = name
    flush_or_conflict(db, {"name": MSG_DUPLICATE_ROLE})
    db.commit()
    db.refresh(role)
    logger.info("role %s updated in school %s", role.id, context.school_id)
    return _role_response(role)


@router.delete("/{role_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_role(
    role_id: int,
    context: TenantContext = Depends(require_permission("roles.delete")),
    db: Session = Depends(get_db),
):
    role = find_mutable_role(db, context.school_id, role_id)
    db.delete(role)
    db.commit()
    logger.info("role %s deleted from school %s", role_id, context.school_id)


@permissions_router.get("", response_model=list[PermissionResponse])
def list_permissions(
    context: TenantContext = Depends(require_permission("roles.view")),
    db: Session = Depends(get_db),
):
    return db.query(Permission).order_by(Permission.name).all()
