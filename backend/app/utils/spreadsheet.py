"""
Spreadsheet templates and bulk import for assets and categories (openpyxl).

Import reads the first sheet from row 2. Each row is validated with the same
pydantic payloads as the JSON API and written inside its own SAVEPOINT, so a
bad row is reported and skipped without touching the rows around it.
"""
import io
import logging
import re
from collections.abc import Iterator
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from zipfile import BadZipFile

import openpyxl
from openpyxl.styles import Font, PatternFill
from openpyxl.utils import get_column_letter
from openpyxl.utils.datetime import from_excel
from openpyxl.utils.exceptions import InvalidFileException
from pydantic import ValidationError
from sqlalchemy.orm import Session

from app.api.schemas import AssetPayload, CategoryPayload
from app.core.errors import ValidationFailed
from app.core.fiscal_period import BUDDHIST_ERA_OFFSET
from app.core.tenancy import TenantContext
from app.db import repository
from app.models.asset_category import AssetCategory
from app.utils.constants_loader import get_labels

logger = logging.getLogger(__name__)

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"

ASSET_COLUMNS = [
    ("asset_name", "ชื่อครุภัณฑ์ *"),
    ("asset_code", "รหัสครุภัณฑ์"),
    ("category_name", "ประเภทครุภัณฑ์ *"),
    ("acquisition_date", "วันที่ได้มา * (วว/ดด/ปปปป)"),
    ("unit_price", "ราคาต่อหน่วย *"),
    ("quantity", "จำนวน *"),
    ("depreciation_rate", "อัตราค่าเสื่อม (%)"),
    ("useful_life_years", "อายุการใช้งาน (ปี)"),
    ("gfmis_number", "เลข GFMIS"),
    ("document_number", "เลขที่เอกสาร"),
    ("budget_type", "ประเภทงบประมาณ"),
    ("acquisition_method", "วิธีการได้มา"),
    ("supplier_name", "ผู้ขาย/ผู้บริจาค"),
    ("supplier_phone", "เบอร์โทรผู้ขาย"),
    ("notes", "หมายเหตุ"),
]

CATEGORY_COLUMNS = [
    ("category_name", "ชื่อประเภทครุภัณฑ์ *"),
    ("category_code", "รหัสประเภท"),
    ("useful_life_years", "อายุการใช้งาน (ปี) *"),
    ("depreciation_rate", "อัตราค่าเสื่อม (%) *"),
    ("description", "คำอธิบาย"),
    ("is_active", "ใช้งาน (1/0)"),
]

_HEADER_FONT = Font(bold=True, color="FFFFFF")
_HEADER_FILL = PatternFill("solid", fgColor="305496")
_TRUE_WORDS = {"1", "true", "yes", "y", "ใช่", "ใช้งาน", "active"}
_FALSE_WORDS = {"0", "false", "no", "n", "ไม่", "ไม่ใช้งาน", "inactive"}


class RowError(ValueError):
    """A row that cannot be turned into a payload; carries one message per bad cell."""

    def __init__(self, messages: list[str]):
        super().__init__("; ".join(messages))
        self.messages = messages


_DMY = re.compile(r"^\s*(\d{1,2})[/\-.](\d{1,2})[/\-.](\d{4})\s*$")


# ---------------------------------------------------------------------------
# Cell parsing
# ---------------------------------------------------------------------------


def _text(value) -> str | None:
    if value is None:
        return None
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    text = str(value).strip()
    return text or None


def parse_date(value) -> date | None:
    """Excel date cells, Excel serial numbers, ISO strings or d/m/yyyy (Buddhist years converted)."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, int | float):
        return from_excel(value).date()

    text = str(value).strip()
    match = _DMY.match(text)
    if match:
        day, month, year = (int(g) for g in match.groups())
        if year > 2500:
            year -= BUDDHIST_ERA_OFFSET
        return date(year, month, day)
    parsed = date.fromisoformat(text[:10])
    if parsed.year > 2500:
        parsed = parsed.replace(year=parsed.year - BUDDHIST_ERA_OFFSET)
    return parsed


def parse_code(value, kind: str) -> int | None:
    """Accept either the numeric code or its label."""
    text = _text(value)
    if text is None:
        return None
    if text.isdigit():
        return int(text)
    for code, label in get_labels(kind).items():
        if label.strip().lower() == text.lower():
            return code
    raise ValueError(text)


def parse_bool(value, default: bool = True) -> bool:
    text = _text(value)
    if text is None:
        return default
    lowered = text.lower()
    if lowered in _TRUE_WORDS:
        return True
    if lowered in _FALSE_WORDS:
        return False
    raise ValueError(text)


def _decimal(value) -> Decimal | None:
    text = _text(value)
    if text is None:
        return None
    number = Decimal(text.replace(",", ""))
    if not number.is_finite():
        raise InvalidOperation(text)
    return number


def _messages(exc: ValidationError) -> list[str]:
    out = []
    for err in exc.errors():
        field = ".".join(str(p) for p in err.get("loc", ()))
        out.append(f"{field}: {err.get('msg', '').removeprefix('Value error, ')}")
    return out


# ---------------------------------------------------------------------------
# Reading
# ---------------------------------------------------------------------------


def read_rows(content: bytes, columns: list[tuple[str, str]]) -> Iterator[tuple[int, dict]]:
    """Yield (excel row number, {column key: raw value}) for non-blank rows of the first sheet."""
    try:
        wb = openpyxl.load_workbook(io.BytesIO(content), read_only=True, data_only=True)
    except (InvalidFileException, BadZipFile, OSError, KeyError) as exc:
        logger.info("rejected spreadsheet upload: %s", exc)
        raise ValidationFailed({"file": "ไฟล์ไม่ใช่ไฟล์ Excel (.xlsx) ที่ถูกต้อง"})

    try:
        sheet = wb.worksheets[0]
        keys = [key for key, _ in columns]
        for row_number, values in enumerate(sheet.iter_rows(min_row=2, values_only=True), start=2):
            values = list(values[: len(keys)]) + [None] * max(0, len(keys) - len(values))
            if all(v is None or str(v).strip() == "" for v in values):
                continue
            yield row_number, dict(zip(keys, values))
    finally:
        wb.close()


# ---------------------------------------------------------------------------
# Templates
# ---------------------------------------------------------------------------


def _header(ws, columns: list[tuple[str, str]]) -> None:
    for idx, (_, title) in enumerate(columns, start=1):
        cell = ws.cell(row=1, column=idx, value=title)
        cell.font = _HEADER_FONT
        cell.fill = _HEADER_FILL
        ws.column_dimensions[get_column_letter(idx)].width = max(14, len(title) + 4)
    ws.freeze_panes = "A2"


def _to_bytes(wb) -> bytes:
    buf = io.BytesIO()
    wb.save(buf)
    return buf.getvalue()


def build_asset_template(categories: list[AssetCategory]) -> bytes:
    wb = openpyxl.Workbook()
    ws = wb.active
    ws.title = "ครุภัณฑ์"
    _header(ws, ASSET_COLUMNS)

    cats = wb.create_sheet("ประเภทครุภัณฑ์")
    _header(cats, [("name", "ชื่อประเภท"), ("code", "รหัสประเภท"), ("life", "อายุการใช้งาน (ปี)"),
                   ("rate", "อัตราค่าเสื่อม (%)")])
    for category in categories:
        cats.append([
            category.category_name,
            category.category_code,
            category.useful_life_years,
            float(category.depreciation_rate),
        ])

    codes = wb.create_sheet("รหัสอ้างอิง")
    _header(codes, [("kind", "รายการ"), ("code", "รหัส"), ("label", "ความหมาย")])
    for kind, title in (("budget_type", "ประเภทงบประมาณ"), ("acquisition_method", "วิธีการได้มา")):
        for code, label in get_labels(kind).items():
            codes.append([title, code, label])
    return _to_bytes(wb)


def build_category_template() -> bytes:
    wb = openpyxl.Workbook()
    ws = wb.active
    ws.title = "ประเภทครุภัณฑ์"
    _header(ws, CATEGORY_COLUMNS)
    return _to_bytes(wb)


# ---------------------------------------------------------------------------
# Import
# ---------------------------------------------------------------------------


def _asset_payload(raw: dict, categories: dict[str, int]) -> AssetPayload:
    errors: list[str] = []
    data = {key: _text(raw.get(key)) for key in (
        "asset_name", "asset_code", "gfmis_number", "document_number",
        "supplier_name", "supplier_phone", "notes",
    )}

    category_name = _text(raw.get("category_name"))
    if category_name is None:
        errors.append("category_name: กรุณาระบุประเภทครุภัณฑ์")
    elif category_name.lower() not in categories:
        errors.append(f"category_name: ไม่พบประเภทครุภัณฑ์ '{category_name}'")
    else:
        data["category_id"] = categories[category_name.lower()]

    try:
        data["acquisition_date"] = parse_date(raw.get("acquisition_date"))
    except ValueError:
        errors.append("acquisition_date: รูปแบบวันที่ไม่ถูกต้อง")

    for key in ("unit_price", "depreciation_rate"):
        try:
            data[key] = _decimal(raw.get(key))
        except InvalidOperation:
            errors.append(f"{key}: ต้องเป็นตัวเลข")
    for key in ("quantity", "useful_life_years"):
        try:
            value = _decimal(raw.get(key))
            data[key] = int(value) if value is not None else None
        except InvalidOperation:
            errors.append(f"{key}: ต้องเป็นตัวเลข")

    for kind in ("budget_type", "acquisition_method"):
        try:
            data[kind] = parse_code(raw.get(kind), kind)
        except ValueError as exc:
            errors.append(f"{kind}: ไม่รู้จักค่า '{exc}'")

    if errors:
        raise RowError(errors)
    if data.get("quantity") is None:
        data["quantity"] = 1
    return AssetPayload(**data)


def _category_payload(raw: dict) -> CategoryPayload:
    errors: list[str] = []
    data = {key: _text(raw.get(key)) for key in ("category_name", "category_code", "description")}
    try:
        life = _decimal(raw.get("useful_life_years"))
        data["useful_life_years"] = int(life) if life is not None else None
        data["depreciation_rate"] = _decimal(raw.get("depreciation_rate"))
    except InvalidOperation:
        errors.append("useful_life_years/depreciation_rate: ต้องเป็นตัวเลข")
    try:
        data["is_active"] = parse_bool(raw.get("is_active"))
    except ValueError as exc:
        errors.append(f"is_active: ไม่รู้จักค่า '{exc}'")
    if errors:
        raise RowError(errors)
    return CategoryPayload(**data)


def _run_import(db: Session, rows: Iterator[tuple[int, dict]], build, write) -> dict:
    imported = 0
    failures = []
    for row_number, raw in rows:
        try:
            payload = build(raw)
            with db.begin_nested():
                write(payload)
            imported += 1
        except ValidationError as exc:
            failures.append({"row": row_number, "errors": _messages(exc)})
        except ValidationFailed as exc:
            failures.append({"row": row_number, "errors": [f"{k}: {v}" for k, v in exc.errors.items()]})
        except RowError as exc:
            failures.append({"row": row_number, "errors": exc.messages})
    return {"imported": imported, "skipped": len(failures), "errors": failures}


def import_assets(db: Session, context: TenantContext, content: bytes) -> dict:
    categories = {
        name.strip().lower(): cid
        for cid, name in db.query(AssetCategory.id, AssetCategory.category_name)
        .filter(AssetCategory.school_id == context.school_id)
        .all()
    }
    result = _run_import(
        db,
        read_rows(content, ASSET_COLUMNS),
        lambda raw: _asset_payload(raw, categories),
        lambda payload: repository.create_asset(db, context, payload),
    )
    logger.info(
        "asset import in school %s: %s imported, %s skipped",
        context.school_id, result["imported"], result["skipped"],
    )
    return result


def import_categories(db: Session, context: TenantContext, content: bytes) -> dict:
    result = _run_import(
        db,
        read_rows(content, CATEGORY_COLUMNS),
        _category_payload,
        lambda payload: repository.create_category(db, context, payload),
    )
    logger.info(
        "category import in school %s: %s imported, %s skipped",
        context.school_id, result["imported"], result["skipped"],
    )
    return result
