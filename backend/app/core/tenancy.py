"""
Tenant (school) resolution. The resolved school is carried explicitly in a
TenantContext through every call; nothing is stored process-wide.
"""
import logging
from dataclasses import dataclass

from sqlalchemy.orm import Session

from app.core.errors import NoTenantContext
from app.models.school import School, SchoolUser
from app.models.user import User

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TenantContext:
    user: User
    school: School

    @property
    def school_id(self) -> int:
        return self.school.id

    @property
    def user_id(self) -> int:
        return self.user.id


def _active_schools_query(db: Session, user: User):
    return (
        db.query(School)
        .join(SchoolUser, SchoolUser.school_id == School.id)
        .filter(SchoolUser.user_id == user.id, SchoolUser.is_active.is_(True))
        .order_by(SchoolUser.id)
    )


def active_schools(db: Session, user: User) -> list[School]:
    return _active_schools_query(db, user).all()


def resolve_current_school(db: Session, user: User) -> School | None:
    """
    1. first active membership (lowest membership id)
    2. the school this user created (single-school installs predating memberships)
    """
    school = _active_schools_query(db, user).first()
    if school:
        return school
    return db.query(School).filter(School.created_by == user.id).order_by(School.id).first()


def require_tenant(db: Session, user: User) -> TenantContext:
    school = resolve_current_school(db, user)
    if school is None:
        logger.info("user %s has no school context", user.id)
        raise NoTenantContext()
    return TenantContext(user=user, school=school)

