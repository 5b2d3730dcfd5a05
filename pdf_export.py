# pdf_export.py
"""
Export maintenance reports to PDF using reportlab.
Portrait, black and white. Dashboard report: overview counts, upcoming
maintenance table, overdue list and maintenance-type distribution.
Instrument report: instrument details followed by its maintenance history.
"""

import re
from datetime import date
from pathlib import Path
from xml.sax.saxutils import escape

from reportlab.lib import colors
from reportlab.lib.pagesizes import letter
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import inch
from reportlab.platypus import (
    Paragraph,
    SimpleDocTemplate,
    Spacer,
    Table,
    TableStyle,
)

from domain.models import Instrument
from services.dashboard_service import Dashboard
from services.maintenance_service import InstrumentHistory

# Black and white only
BLACK = colors.HexColor("#000000")
WHITE = colors.HexColor("#ffffff")
LIGHT_GREY = colors.HexColor("#e6e6e6")


def _safe_filename(s: str) -> str:
    """Return a string safe for use in filenames."""
    s = re.sub(r'[<>:"/\\|?*]', "_", s)
    return s.strip() or "unknown"


def default_report_filename(prefix: str, when: date) -> str:
    return f"{_safe_filename(prefix)}_{when.isoformat()}.pdf"


def _fmt_date(value) -> str:
    return value.isoformat() if value else "—"


def _styles():
    styles = getSampleStyleSheet()
    return {
        "title": ParagraphStyle(
            name="PDFTitle",
            parent=styles["Normal"],
            fontName="Helvetica-Bold",
            fontSize=14,
            leading=14 * 1.5,
            alignment=1,
            textColor=BLACK,
        ),
        "heading": ParagraphStyle(
            name="SectionHeading",
            parent=styles["Normal"],
            fontName="Helvetica-Bold",
            fontSize=11,
            leading=11 * 1.4,
            textColor=BLACK,
            spaceBefore=6,
        ),
        "small": ParagraphStyle(
            name="Small",
            parent=styles["Normal"],
            fontName="Helvetica",
            fontSize=8,
            leading=8 * 1.5,
            textColor=BLACK,
        ),
        "cell": ParagraphStyle(
            name="TableCell",
            parent=styles["Normal"],
            fontName="Helvetica",
            fontSize=8,
            leading=9,
            textColor=BLACK,
        ),
        "header": ParagraphStyle(
            name="TableHeader",
            parent=styles["Normal"],
            fontName="Helvetica-Bold",
            fontSize=8,
            leading=9,
            textColor=WHITE,
        ),
    }


def _table(headers: list[str], rows: list[list[str]], col_widths: list[float], st: dict) -> Table:
    """Bordered table with a black header row. Cells are Paragraphs so long text wraps."""
    data = [[Paragraph(h, st["header"]) for h in headers]]
    for row in rows:
        data.append([Paragraph(escape(str(c)), st["cell"]) for c in row])
    tbl = Table(data, colWidths=col_widths, repeatRows=1)
    tbl.setStyle(
        TableStyle([
            ("BACKGROUND", (0, 0), (-1, 0), BLACK),
            ("GRID", (0, 0), (-1, -1), 0.5, BLACK),
            ("VALIGN", (0, 0), (-1, -1), "MIDDLE"),
            ("ROWBACKGROUNDS", (0, 1), (-1, -1), [WHITE, LIGHT_GREY]),
            ("TOPPADDING", (0, 0), (-1, -1), 3),
            ("BOTTOMPADDING", (0, 0), (-1, -1), 3),
        ])
    )
    return tbl


def _doc(output_path: Path, title: str) -> SimpleDocTemplate:
    return SimpleDocTemplate(
        str(output_path),
        pagesize=letter,
        rightMargin=0.5 * inch,
        leftMargin=0.5 * inch,
        topMargin=0.5 * inch,
        bottomMargin=0.5 * inch,
        title=title,
    )


def export_dashboard_report(dashboard: Dashboard, output_path: str | Path) -> Path:
    """Write the dashboard to a PDF file. Returns the output path."""
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    st = _styles()
    story = [
        Paragraph("Instrument Maintenance Dashboard", st["title"]),
        Paragraph(f"Generated {dashboard.generated_on.isoformat()}", st["small"]),
        Spacer(1, 0.15 * inch),
        Paragraph("Overview", st["heading"]),
    ]

    s = dashboard.summary
    story.append(
        _table(
            ["Total Instruments", "Operational", "Needs Maintenance", "Overdue"],
            [[s.total, s.operational, s.needs_maintenance, s.overdue]],
            [1.875 * inch] * 4,
            st,
        )
    )

    story.append(Paragraph(f"Upcoming Maintenance (next {dashboard.window_days} days)", st["heading"]))
    if dashboard.upcoming:
        rows = [
            [
                row.instrument.name,
                row.instrument.serial_number,
                row.instrument.location,
                _fmt_date(row.instrument.next_maintenance_date),
                f"{row.due.days_left} days" if row.due.days_left is not None else "—",
            ]
            for row in dashboard.upcoming
        ]
        story.append(
            _table(
                ["Instrument", "Serial", "Location", "Due Date", "Days Left"],
                rows,
                [2.2 * inch, 1.4 * inch, 1.6 * inch, 1.1 * inch, 1.2 * inch],
                st,
            )
        )
    else:
        story.append(
            Paragraph(f"No upcoming maintenance in the next {dashboard.window_days} days.", st["small"])
        )

    story.append(Paragraph("Overdue", st["heading"]))
    if dashboard.overdue:
        rows = [
            [inst.name, inst.serial_number, inst.location, inst.status.value, _fmt_date(inst.next_maintenance_date)]
            for inst in dashboard.overdue
        ]
        story.append(
            _table(
                ["Instrument", "Serial", "Location", "Status", "Was Due"],
                rows,
                [2.2 * inch, 1.4 * inch, 1.6 * inch, 1.2 * inch, 1.1 * inch],
                st,
            )
        )
    else:
        story.append(Paragraph("No overdue instruments.", st["small"]))

    story.append(Paragraph("Maintenance Types", st["heading"]))
    total = sum(dashboard.type_distribution.values())
    if total:
        rows = [
            [mt.value, n, f"{n * 100 / total:.0f}%"]
            for mt, n in dashboard.type_distribution.items()
        ]
        story.append(_table(["Type", "Instruments", "Share"], rows, [3.0 * inch, 2.0 * inch, 2.5 * inch], st))
    else:
        story.append(Paragraph("No instruments recorded.", st["small"]))

    story.append(Paragraph("Instrument Status", st["heading"]))
    if dashboard.summary.total:
        rows = [[status.value, n] for status, n in dashboard.status_distribution.items()]
        story.append(_table(["Status", "Instruments"], rows, [4.0 * inch, 3.5 * inch], st))
    else:
        story.append(Paragraph("No instruments recorded.", st["small"]))

    _doc(output_path, "Instrument Maintenance Dashboard").build(story)
    return output_path


def export_instrument_history(
    instrument: Instrument,
    history: InstrumentHistory,
    output_path: str | Path,
) -> Path:
    """Write one instrument's details and maintenance history to a PDF file."""
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    st = _styles()
    story = [
        Paragraph(f"Maintenance History: {escape(instrument.name)}", st["title"]),
        Spacer(1, 0.1 * inch),
    ]
    details = [
        ["Model", instrument.model],
        ["Serial number", instrument.serial_number],
        ["Location", instrument.location],
        ["Status", instrument.status.value],
        ["Maintenance type", instrument.maintenance_type.value],
        ["Installed", _fmt_date(instrument.installation_date)],
        ["Last maintenance", _fmt_date(instrument.last_maintenance_date)],
        ["Next maintenance", _fmt_date(instrument.next_maintenance_date)],
    ]
    detail_tbl = Table(
        [[Paragraph(k, st["cell"]), Paragraph(escape(str(v)), st["cell"])] for k, v in details],
        colWidths=[2.0 * inch, 5.5 * inch],
    )
    detail_tbl.setStyle(
        TableStyle([
            ("BOX", (0, 0), (-1, -1), 0.5, BLACK),
            ("LINEBELOW", (0, 0), (-1, -2), 0.25, BLACK),
            ("BACKGROUND", (0, 0), (0, -1), LIGHT_GREY),
        ])
    )
    story.append(detail_tbl)

    def _event_rows(events):
        return [
            [
                _fmt_date(ev.date),
                ev.type.value,
                ev.description,
                ev.notes or "",
                len(ev.files),
            ]
            for ev in events
        ]

    widths = [1.0 * inch, 1.0 * inch, 2.7 * inch, 2.2 * inch, 0.6 * inch]
    headers = ["Date", "Type", "Description", "Notes", "Files"]

    story.append(Paragraph("Open", st["heading"]))
    if history.open:
        story.append(_table(headers, _event_rows(history.open), widths, st))
    else:
        story.append(Paragraph("No open maintenance events.", st["small"]))

    story.append(Paragraph("Completed", st["heading"]))
    if history.completed:
        story.append(_table(headers, _event_rows(history.completed), widths, st))
    else:
        story.append(Paragraph("No completed maintenance recorded.", st["small"]))

    _doc(output_path, f"Maintenance History {instrument.name}").build(story)
    return output_path
