from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, time
from io import BytesIO

from openpyxl import Workbook, load_workbook
from openpyxl.styles import Font
from openpyxl.utils import get_column_letter

XLSX_MEDIA_TYPE = 'application/vnd.openxmlformats-officedocument.spreadsheetml.sheet'


@dataclass
class SheetData:
    title: str
    headers: list[str]
    rows: list[list] = field(default_factory=list)
    widths: list[int] | None = None


def cell_text(value) -> str:
    if value is None:
        return ''
    if isinstance(value, datetime):
        if value.time() == time.min:
            return value.date().isoformat()
        return value.isoformat()
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def read_workbook(content: bytes) -> dict[str, list[list[str]]]:
    try:
        workbook = load_workbook(BytesIO(content), read_only=True, data_only=True)
    except Exception as exc:
        raise ValueError('File is not a readable xlsx workbook') from exc

    sheets: dict[str, list[list[str]]] = {}
    try:
        for worksheet in workbook.worksheets:
            sheets[worksheet.title] = [
                [cell_text(value) for value in row] for row in worksheet.iter_rows(values_only=True)
            ]
    finally:
        workbook.close()
    return sheets


def build_workbook(sheets: list[SheetData]) -> bytes:
    workbook = Workbook()
    workbook.remove(workbook.active)
    for sheet in sheets:
        worksheet = workbook.create_sheet(title=sheet.title[:31])
        worksheet.append(sheet.headers)
        for cell in worksheet[1]:
            cell.font = Font(bold=True)
        for row in sheet.rows:
            worksheet.append(row)
        if sheet.widths:
            for col, width in enumerate(sheet.widths, start=1):
                worksheet.column_dimensions[get_column_letter(col)].width = width

    buffer = BytesIO()
    workbook.save(buffer)
    return buffer.getvalue()
