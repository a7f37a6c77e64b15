"""
Domain error taxonomy. Raised by the api/db layers, rendered to JSON by the
handlers registered in app.main.
"""


class RegisterError(Exception):
    status_code = 400
    code = "register_error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {"detail": self.message, "code": self.code}


class NoTenantContext(RegisterError):
    status_code = 403
    code = "no_tenant_context"

    def __init__(self, message: str = "กรุณาลงทะเบียนโรงเรียนก่อน"):
        super().__init__(message)


class NotFound(RegisterError):
    """Also used for rows that exist in another tenant."""

    status_code = 404
    code = "not_found"


class ValidationFailed(RegisterError):
    status_code = 422
    code = "validation_failed"

    def __init__(self, errors: dict[str, str], message: str = "ข้อมูลไม่ถูกต้อง"):
        super().__init__(message)
        self.errors = errors

    def to_dict(self) -> dict:
        return {**super().to_dict(), "errors": self.errors}


class ReferentialConflict(RegisterError):
    status_code = 409
    code = "referential_conflict"

    def __init__(self, blocking: int, message: str | None = None):
        super().__init__(
            message or f"ไม่สามารถลบได้ เนื่องจากมีรายการที่อ้างอิงอยู่ {blocking} รายการ"
        )
        self.blocking = blocking

    def to_dict(self) -> dict:
        return {**super().to_dict(), "blocking": self.blocking}


class PermissionDenied(RegisterError):
    status_code = 403
    code = "permission_denied"

    def __init__(self, message: str = "ไม่มีสิทธิ์ดำเนินการนี้"):
        super().__init__(message)


class ReauthenticationRequired(RegisterError):
    status_code = 401
    code = "reauthentication_required"

    def __init__(self, message: str = "กรุณายืนยันรหัสผ่าน"):
        super().__init__(message)
