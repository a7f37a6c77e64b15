"""
Role-based authorization scoped per school.

Permissions and role→permission bindings are global; user→role bindings carry
the school they were granted in. System roles (school_id NULL) are shared by
every school but cannot be changed through a school's role management.
"""
import logging

from sqlalchemy import or_
from sqlalchemy.orm import Query, Session

from app.core.errors import NotFound, PermissionDenied
from app.core.tenancy import TenantContext
from app.models.rbac import Permission, Role, UserRole, role_permissions
from app.utils.constants_loader import get_permission_catalogue, get_system_roles, get_tenant_role_templates

logger = logging.getLogger(__name__)


def permissions_for(db: Session, user_id: int, school_id: int) -> set[str]:
    rows = (
        db.query(Permission.name)
        .join(role_permissions, role_permissions.c.permission_id == Permission.id)
        .join(Role, Role.id == role_permissions.c.role_id)
        .join(UserRole, UserRole.role_id == Role.id)
        .filter(
            UserRole.user_id == user_id,
            UserRole.school_id == school_id,
            or_(Role.school_id.is_(None), Role.school_id == school_id),
        )
        .distinct()
        .all()
    )
    return {name for (name,) in rows}


def has_permission(db: Session, user_id: int, school_id: int, permission: str) -> bool:
    return permission in permissions_for(db, user_id, school_id)


def authorize(db: Session, context: TenantContext, *permissions: str) -> None:
    """Raise PermissionDenied unless the caller holds every listed permission in this school."""
    granted = permissions_for(db, context.user_id, context.school_id)
    missing = [p for p in permissions if p not in granted]
    if missing:
        logger.info(
            "permission denied: user=%s school=%s missing=%s",
            context.user_id, context.school_id, ",".join(missing),
        )
        raise PermissionDenied()


def visible_roles(db: Session, school_id: int) -> Query:
    return db.query(Role).filter(or_(Role.school_id.is_(None), Role.school_id == school_id))


def find_visible_role(db: Session, school_id: int, role_id: int) -> Role:
    role = visible_roles(db, school_id).filter(Role.id == role_id).first()
    if not role:
        raise NotFound("ไม่พบ Role")
    return role


def find_mutable_role(db: Session, school_id: int, role_id: int) -> Role:
    """A role the school may edit or delete: its own, never a system role."""
    role = find_visible_role(db, school_id, role_id)
    if role.is_system:
        raise PermissionDenied("ไม่สามารถแก้ไขหรือลบ Role ระบบได้")
    return role


def role_names_for(db: Session, user_id: int, school_id: int) -> list[str]:
    rows = (
        db.query(Role.name)
        .join(UserRole, UserRole.role_id == Role.id)
        .filter(UserRole.user_id == user_id, UserRole.school_id == school_id)
        .order_by(Role.name)
        .all()
    )
    return [name for (name,) in rows]


def grant_role(db: Session, user_id: int, role: Role, school_id: int) -> None:
    exists = (
        db.query(UserRole)
        .filter_by(user_id=user_id, role_id=role.id, school_id=school_id)
        .first()
    )
    if not exists:
        db.add(UserRole(user_id=user_id, role_id=role.id, school_id=school_id))


# ---------------------------------------------------------------------------
# Catalogue bootstrap (idempotent)
# ---------------------------------------------------------------------------


def ensure_permissions(db: Session) -> dict[str, Permission]:
    existing = {p.name: p for p in db.query(Permission).all()}
    for name, description in get_permission_catalogue().items():
        if name not in existing:
            perm = Permission(name=name, description=description)
            db.add(perm)
            existing[name] = perm
    db.flush()
    return existing


def _resolve_permissions(catalogue: dict[str, Permission], names: list[str]) -> list[Permission]:
    if "*" in names:
        return list(catalogue.values())
    return [catalogue[n] for n in names if n in catalogue]


def ensure_system_roles(db: Session) -> dict[str, Role]:
    """Create missing system roles from the constants; existing ones keep their permissions."""
    catalogue = ensure_permissions(db)
    roles = {r.name: r for r in db.query(Role).filter(Role.school_id.is_(None)).all()}
    for name, perm_names in get_system_roles().items():
        if name in roles:
            continue
        role = Role(name=name, school_id=None)
        role.permissions = _resolve_permissions(catalogue, perm_names)
        db.add(role)
        roles[name] = role
        logger.info("system role %s created", name)
    db.flush()
    return roles


def create_tenant_roles(db: Session, school_id: int) -> list[Role]:
    catalogue = ensure_permissions(db)
    created = []
    for name, perm_names in get_tenant_role_templates().items():
        exists = db.query(Role.id).filter(Role.school_id == school_id, Role.name == name).first()
        if exists:
            continue
        role = Role(name=name, school_id=school_id)
        role.permissions = _resolve_permissions(catalogue, perm_names)
        db.add(role)
        created.append(role)
    db.flush()
    return created
