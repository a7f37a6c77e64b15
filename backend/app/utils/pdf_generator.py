"""
Asset register card (ทะเบียนคุมทรัพย์สิน) rendered with ReportLab.

The card prints the same rows the depreciation endpoint returns. Thai text
needs a TTF font: set PDF_FONT_PATH to one (e.g. THSarabunNew.ttf), otherwise
Helvetica is used and Thai glyphs will not render.
"""
import io
import logging
import os
from datetime import date
from xml.sax.saxutils import escape

from reportlab.lib import colors
from reportlab.lib.pagesizes import A4, landscape
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import cm
from reportlab.pdfbase import pdfmetrics
from reportlab.pdfbase.ttfonts import TTFont
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

from app.core.depreciation import DepreciationSchedule
from app.core.fiscal_period import format_date_short

logger = logging.getLogger(__name__)

HEADER_COLOR = colors.HexColor("#1f3864")
LIGHT_GRAY = colors.HexColor("#f2f2f2")
DARK_GRAY = colors.HexColor("#333333")

_CUSTOM_FONT = "RegisterFont"


def _font_name() -> str:
    path = os.getenv("PDF_FONT_PATH")
    if not path:
        return "Helvetica"
    if _CUSTOM_FONT in pdfmetrics.getRegisteredFontNames():
        return _CUSTOM_FONT
    if not os.path.exists(path):
        logger.warning("PDF_FONT_PATH %s does not exist, falling back to Helvetica", path)
        return "Helvetica"
    pdfmetrics.registerFont(TTFont(_CUSTOM_FONT, path))
    return _CUSTOM_FONT


def _styles(font: str):
    styles = getSampleStyleSheet()
    styles.add(ParagraphStyle(name="CardTitle", fontName=font, fontSize=16, leading=20,
                              textColor=HEADER_COLOR, spaceAfter=4))
    styles.add(ParagraphStyle(name="CardSubtitle", fontName=font, fontSize=11, leading=14,
                              textColor=DARK_GRAY))
    styles.add(ParagraphStyle(name="Cell", fontName=font, fontSize=9, leading=11))
    styles.add(ParagraphStyle(name="Footer", fontName=font, fontSize=7, textColor=colors.gray))
    return styles


def _money(value) -> str:
    return f"{float(value):,.2f}"


def _p(text, style) -> Paragraph:
    return Paragraph(escape("" if text is None else str(text)), style)


def _details_table(details: list[tuple[str, str]], styles) -> Table:
    half = (len(details) + 1) // 2
    left, right = details[:half], details[half:]
    right += [("", "")] * (len(left) - len(right))
    data = [
        [_p(lk, styles["Cell"]), _p(lv, styles["Cell"]), _p(rk, styles["Cell"]), _p(rv, styles["Cell"])]
        for (lk, lv), (rk, rv) in zip(left, right)
    ]
    t = Table(data, colWidths=[4 * cm, 9 * cm, 4 * cm, 9 * cm])
    t.setStyle(TableStyle([
        ("GRID", (0, 0), (-1, -1), 0.5, colors.lightgrey),
        ("BACKGROUND", (0, 0), (0, -1), LIGHT_GRAY),
        ("BACKGROUND", (2, 0), (2, -1), LIGHT_GRAY),
        ("TOPPADDING", (0, 0), (-1, -1), 3),
        ("BOTTOMPADDING", (0, 0), (-1, -1), 3),
    ]))
    return t


def _schedule_table(schedule: DepreciationSchedule, asset: dict, styles) -> Table:
    header = ["วัน เดือน ปี", "รายการ", "จำนวนหน่วย", "ราคาต่อหน่วย", "ค่าเสื่อมราคา",
              "ค่าเสื่อมราคาสะสม", "มูลค่าสุทธิ"]
    data = [[_p(h, styles["Cell"]) for h in header]]
    data.append([
        _p(format_date_short(asset["acquisition_date"]), styles["Cell"]),
        _p("ราคาทุน", styles["Cell"]),
        str(asset.get("quantity", "")),
        _money(asset.get("unit_price", 0)),
        "", "",
        _money(schedule.total_value),
    ])
    for row in schedule.rows:
        data.append([
            _p(row.date, styles["Cell"]),
            _p(row.description, styles["Cell"]),
            "", "",
            _money(row.depreciation),
            _money(row.accumulated),
            _money(row.net_value),
        ])

    t = Table(data, colWidths=[2.6 * cm, 7 * cm, 2.4 * cm, 3 * cm, 3.4 * cm, 3.8 * cm, 3.8 * cm],
              repeatRows=1)
    t.setStyle(TableStyle([
        ("BACKGROUND", (0, 0), (-1, 0), HEADER_COLOR),
        ("TEXTCOLOR", (0, 0), (-1, 0), colors.white),
        ("GRID", (0, 0), (-1, -1), 0.5, colors.lightgrey),
        ("ROWBACKGROUNDS", (0, 1), (-1, -1), [colors.white, LIGHT_GRAY]),
        ("ALIGN", (2, 1), (-1, -1), "RIGHT"),
        ("VALIGN", (0, 0), (-1, -1), "MIDDLE"),
    ]))
    return t


def generate_asset_card_pdf(asset: dict, schedule: DepreciationSchedule, school_name: str) -> bytes:
    """
    asset: display values (name, code, category, dates, prices, labels).
    Schedule rows are printed exactly as computed, never re-rounded.
    """
    font = _font_name()
    styles = _styles(font)
    buf = io.BytesIO()
    doc = SimpleDocTemplate(buf, pagesize=landscape(A4), rightMargin=1.5 * cm, leftMargin=1.5 * cm,
                            topMargin=1.5 * cm, bottomMargin=1.5 * cm)

    details = [
        ("ชื่อครุภัณฑ์", asset.get("asset_name")),
        ("รหัสครุภัณฑ์", asset.get("asset_code") or "-"),
        ("ประเภท", asset.get("category_name") or "-"),
        ("เลข GFMIS", asset.get("gfmis_number") or "-"),
        ("วันที่ได้มา", asset.get("acquisition_date_display")),
        ("เลขที่เอกสาร", asset.get("document_number") or "-"),
        ("ราคาต่อหน่วย", _money(asset.get("unit_price", 0))),
        ("จำนวน", asset.get("quantity")),
        ("ประเภทงบประมาณ", asset.get("budget_type_label")),
        ("วิธีการได้มา", asset.get("acquisition_method_label")),
        ("อายุการใช้งาน", f"{schedule.useful_life or '-'} ปี"),
        ("อัตราค่าเสื่อมราคา", f"{float(schedule.depreciation_rate or 0):.2f} %"),
        ("ผู้ขาย/ผู้บริจาค", asset.get("supplier_name") or "-"),
        ("สถานะ", asset.get("status_label")),
    ]

    story = [
        _p("ทะเบียนคุมทรัพย์สิน", styles["CardTitle"]),
        _p(school_name, styles["CardSubtitle"]),
        Spacer(1, 0.4 * cm),
        _details_table(details, styles),
        Spacer(1, 0.5 * cm),
    ]
    if schedule.can_calculate:
        schedule_table = _schedule_table(schedule, asset, styles)
        schedule_table.setStyle(TableStyle([("FONTNAME", (0, 0), (-1, -1), font)]))
        story.append(schedule_table)
    else:
        story.append(_p("ไม่สามารถคำนวณค่าเสื่อมราคาได้ (ไม่ได้ระบุอายุการใช้งานหรืออัตราค่าเสื่อมราคา)",
                        styles["Cell"]))

    story += [
        Spacer(1, 0.5 * cm),
        _p(f"พิมพ์เมื่อ {format_date_short(date.today())}", styles["Footer"]),
    ]
    doc.build(story)
    return buf.getvalue()
