"""
Spreadsheet export of the complaint dataset.

Builds an xlsx workbook in memory with openpyxl: a summary sheet with totals
per status and per section, then one sheet per section listing every
complaint. Rows older than STALE_COMPLAINT_DAYS are filled red, newer rows
green.
"""

from datetime import datetime, timezone, tzinfo
from io import BytesIO
from typing import Any, Dict, Iterable, List, Optional
import logging
import re

from openpyxl import Workbook
from openpyxl.styles import Alignment, Border, Font, PatternFill, Side
from openpyxl.utils import get_column_letter

from .constants import FALLBACK_SECTION_TAG, STALE_COMPLAINT_DAYS, ComplaintStatus
from .models import Complaint, as_utc

logger = logging.getLogger(__name__)

SUMMARY_SHEET_TITLE = "Umumiy Hisobot"
SUMMARY_HEADER_COLOR = "FF28A745"
SECTION_HEADER_COLOR = "FF4A90E2"
STALE_FILL_COLOR = "FFF8D7DA"
FRESH_FILL_COLOR = "FFD4EDDA"
MAX_COLUMN_WIDTH = 50

# (row key, header, minimum width)
COLUMNS = [
    ("id", "ID", 25),
    ("submitter_id", "Chat ID", 15),
    ("handle", "Username", 20),
    ("full_name", "Ism-familiya", 20),
    ("address", "Manzil", 25),
    ("phone", "Telefon", 15),
    ("national_id", "Pasport", 12),
    ("section", "Bo‘lim", 20),
    ("summary", "Murojaat", 50),
    ("status", "Holati", 15),
    ("created_at", "Vaqt", 20),
    ("files", "Fayllar", 10),
    ("assignee", "Xodim", 20),
]

STATUS_LABELS = {
    ComplaintStatus.PENDING: "Kutilyapti",
    ComplaintStatus.IN_PROGRESS: "Jarayonda",
    ComplaintStatus.RESOLVED: "Yakunlangan",
}

_THIN = Side(style="thin")
_BORDER = Border(top=_THIN, left=_THIN, bottom=_THIN, right=_THIN)
# Characters Excel forbids in sheet titles
_INVALID_TITLE_CHARS = re.compile(r"[\\/*?:\[\]]")


def complaint_to_row(complaint: Complaint) -> Dict[str, Any]:
    """Flatten a complaint into the export row shape."""
    return {
        "id": complaint.id,
        "submitter_id": complaint.submitter_id,
        "handle": complaint.submitter_handle,
        "full_name": complaint.full_name,
        "address": complaint.address,
        "phone": complaint.phone,
        "national_id": complaint.national_id,
        "section": complaint.section,
        "summary": complaint.summary,
        "status": complaint.status,
        "created_at": as_utc(complaint.created_at),
        "files": len(complaint.media or []),
        "assignee": complaint.assignee,
    }


def sheet_title(section: str, used: Iterable[str]) -> str:
    """Excel-safe, unique sheet title (max 31 chars)."""
    base = _INVALID_TITLE_CHARS.sub(" ", section).strip()[:31] or FALLBACK_SECTION_TAG
    title = base
    counter = 2
    taken = {name.lower() for name in used}
    while title.lower() in taken:
        suffix = f" ({counter})"
        title = base[: 31 - len(suffix)] + suffix
        counter += 1
    return title


def export_filename(now: Optional[datetime] = None) -> str:
    now = now or datetime.now(timezone.utc)
    return f"murojaatlar_{int(now.timestamp() * 1000)}.xlsx"


def _percentage(count: int, total: int) -> str:
    return f"{count / total * 100:.2f}%" if total else "0%"


def _style_header(sheet, color: str) -> None:
    fill = PatternFill(fill_type="solid", fgColor=color)
    for cell in sheet[1]:
        cell.font = Font(bold=True, color="FFFFFFFF")
        cell.fill = fill
        cell.alignment = Alignment(horizontal="center", vertical="center")
        cell.border = _BORDER


def _is_stale(created_at: Optional[datetime], now: datetime) -> bool:
    if created_at is None:
        return False
    return (now - created_at).days > STALE_COMPLAINT_DAYS


def _fit_columns(sheet, minimums: List[int]) -> None:
    for index, minimum in enumerate(minimums, start=1):
        letter = get_column_letter(index)
        longest = max((len(str(cell.value)) for cell in sheet[letter] if cell.value is not None), default=0)
        sheet.column_dimensions[letter].width = min(max(longest + 2, minimum), MAX_COLUMN_WIDTH)


def _build_summary(sheet, rows: List[Dict[str, Any]], by_section: Dict[str, List[Dict[str, Any]]]) -> None:
    total = len(rows)
    status_counts = {status: 0 for status in ComplaintStatus}
    for row in rows:
        for status in ComplaintStatus:
            if row.get("status") == status.value:
                status_counts[status] += 1

    sheet.append(["Kategoriya", "Murojaatlar soni", "Foiz (%)"])
    sheet.append(["Jami murojaatlar", total, "100%"])
    for status, label in STATUS_LABELS.items():
        sheet.append([label, status_counts[status], _percentage(status_counts[status], total)])
    sheet.append([])
    for section, section_rows in by_section.items():
        sheet.append([section, len(section_rows), _percentage(len(section_rows), total)])

    _style_header(sheet, SUMMARY_HEADER_COLOR)
    for row in sheet.iter_rows(min_row=2):
        if all(cell.value is None for cell in row):
            continue
        for cell in row:
            cell.border = _BORDER
            cell.alignment = Alignment(horizontal="left", vertical="top")
    _fit_columns(sheet, [20, 15, 10])


def _format_value(key: str, value: Any, tz: tzinfo) -> Any:
    if key == "created_at" and isinstance(value, datetime):
        return value.astimezone(tz).strftime("%Y-%m-%d %H:%M:%S")
    if value is None:
        if key == "handle":
            return "Noma'lum"
        if key == "assignee":
            return "Belgilanmagan"
        return ""
    return value


def build_report(rows: Iterable[Dict[str, Any]], now: Optional[datetime] = None, tz: tzinfo = timezone.utc) -> bytes:
    """Render `rows` (see `complaint_to_row`) into xlsx bytes."""
    rows = list(rows)
    now = now or datetime.now(timezone.utc)

    by_section: Dict[str, List[Dict[str, Any]]] = {}
    for row in rows:
        by_section.setdefault(row.get("section") or FALLBACK_SECTION_TAG, []).append(row)

    workbook = Workbook()
    summary = workbook.active
    summary.title = SUMMARY_SHEET_TITLE
    summary.sheet_properties.tabColor = SUMMARY_HEADER_COLOR
    _build_summary(summary, rows, by_section)

    for section, section_rows in by_section.items():
        sheet = workbook.create_sheet(sheet_title(section, workbook.sheetnames))
        sheet.sheet_properties.tabColor = SECTION_HEADER_COLOR
        sheet.append([header for _key, header, _width in COLUMNS])
        _style_header(sheet, SECTION_HEADER_COLOR)
        for row in section_rows:
            sheet.append([_format_value(key, row.get(key), tz) for key, _header, _width in COLUMNS])
            color = STALE_FILL_COLOR if _is_stale(row.get("created_at"), now) else FRESH_FILL_COLOR
            fill = PatternFill(fill_type="solid", fgColor=color)
            for cell in sheet[sheet.max_row]:
                cell.fill = fill
                cell.border = _BORDER
                cell.alignment = Alignment(vertical="top", wrap_text=True)
        _fit_columns(sheet, [width for _key, _header, width in COLUMNS])

    buffer = BytesIO()
    workbook.save(buffer)
    logger.info("Built report with %d complaints across %d sections", len(rows), len(by_section))
    return buffer.getvalue()
