# table_export.py - Write a table view (headers + rows of display values) to CSV or XLSX

import csv
from pathlib import Path

from openpyxl import Workbook
from openpyxl.styles import Font


def _cell(value) -> str:
    return "" if value is None else str(value)


def export_rows_csv(path: str | Path, headers: list[str], rows: list[list]) -> Path:
    path = Path(path)
    with open(path, "w", newline="", encoding="utf-8") as f:
        writer = csv.writer(f)
        writer.writerow([_cell(h) for h in headers])
        for row in rows:
            writer.writerow([_cell(v) for v in row])
    return path


def export_rows_xlsx(
    path: str | Path,
    headers: list[str],
    rows: list[list],
    sheet_title: str = "Instruments",
) -> Path:
    """Single-sheet workbook with a bold header row. Adds .xlsx when missing."""
    path = Path(path)
    if path.suffix.lower() != ".xlsx":
        path = path.with_name(path.name + ".xlsx")
    wb = Workbook()
    ws = wb.active
    if ws is None:
        ws = wb.create_sheet(sheet_title, 0)
    ws.title = sheet_title
    bold = Font(bold=True)
    for col, h in enumerate(headers, 1):
        ws.cell(row=1, column=col, value=_cell(h)).font = bold
    for r, row in enumerate(rows, 2):
        for col, val in enumerate(row, 1):
            ws.cell(row=r, column=col, value=_cell(val))
    ws.freeze_panes = "A2"
    wb.save(path)
    return path
