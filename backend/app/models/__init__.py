from app.models.asset import Asset
from app.models.asset_category import AssetCategory
from app.models.rbac import Permission, Role, UserRole, role_permissions
from app.models.school import School, SchoolUser
from app.models.user import User

__all__ = [
    "Asset",
    "AssetCategory",
    "Permission",
    "Role",
    "UserRole",
    "role_permissions",
    "School",
    "SchoolUser",
    "User",
]
