import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from app.api import assets, categories, dashboard, reports, roles, schools, users
from app.core.errors import RegisterError, ValidationFailed
from app.db.database import init_db
from app.utils.logging_config import configure_logging

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging()
    init_db()
    yield


app = FastAPI(
    title="School Asset Register API",
    description="ทะเบียนครุภัณฑ์โรงเรียน: ค่าเสื่อมราคาตามปีงบประมาณ แยกข้อมูลรายโรงเรียน",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(RegisterError)
async def register_error_handler(request: Request, exc: RegisterError):
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    errors: dict[str, str] = {}
    for err in exc.errors():
        # drop the "body"/"query" prefix so keys match model field names
        loc = [str(part) for part in err.get("loc", ()) if part not in ("body", "query", "path")]
        key = ".".join(loc) or "__root__"
        message = err.get("msg", "")
        errors.setdefault(key, message.removeprefix("Value error, "))
    return JSONResponse(status_code=422, content=ValidationFailed(errors).to_dict())


@app.exception_handler(SQLAlchemyError)
async def database_error_handler(request: Request, exc: SQLAlchemyError):
    logger.exception("database error on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=500,
        content={"detail": "เกิดข้อผิดพลาดของระบบฐานข้อมูล", "code": "database_error"},
    )


app.include_router(schools.router, prefix="/api/schools", tags=["schools"])
app.include_router(users.router, prefix="/api/users", tags=["users"])
app.include_router(roles.router, prefix="/api/roles", tags=["roles"])
app.include_router(roles.permissions_router, prefix="/api/permissions", tags=["roles"])
app.include_router(categories.router, prefix="/api/asset-categories", tags=["asset-categories"])
app.include_router(assets.router, prefix="/api/assets", tags=["assets"])
app.include_router(reports.router, prefix="/api/asset-reports", tags=["asset-reports"])
app.include_router(dashboard.router, prefix="/api/dashboard", tags=["dashboard"])


@app.get("/health")
def health_check():
    return {"status": "ok", "version": "0.1.0"}
