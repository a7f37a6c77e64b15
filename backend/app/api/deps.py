"""Shared route dependencies: the caller, the tenant context and permission checks."""
from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.orm import Session

from app.core.authorization import authorize
from app.core.tenancy import TenantContext, require_tenant
from app.db.database import get_db
from app.models.user import User


def get_current_user(
    authorization: str | None = Header(default=None),
    db: Session = Depends(get_db),
) -> User:
    scheme, _, token = (authorization or "").partition(" ")
    if scheme.lower() != "bearer" or not token:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="not_authenticated")
    user = db.query(User).filter(User.api_token == token.strip()).first()
    if not user:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="not_authenticated")
    return user


def get_tenant(
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> TenantContext:
    return require_tenant(db, user)


def require_permission(*permissions: str):
    """Dependency factory: resolve the tenant, then check every listed permission in it."""

    def dependency(
        context: TenantContext = Depends(get_tenant),
        db: Session = Depends(get_db),
    ) -> TenantContext:
        authorize(db, context, *permissions)
        return context

    return dependency
