"""
documents.py: Attendance list encoders (XLSX, DOCX, PDF).

Every encoder takes a Session and returns the finished file as bytes. Rows are
always emitted in check-in order with the fields
  lesson | name | identifier | time | origin address

Entry points:
    build_xlsx(session) -> bytes    (openpyxl)
    build_docx(session) -> bytes    (python-docx)
    build_pdf(session)  -> bytes    (reportlab PLATYPUS)
"""
from __future__ import annotations

import datetime
import logging
from dataclasses import dataclass
from io import BytesIO
from typing import Callable, Dict, List, Optional
from xml.sax.saxutils import escape

from docx import Document
from docx.shared import Pt
from openpyxl import Workbook
from openpyxl.cell.cell import ILLEGAL_CHARACTERS_RE
from openpyxl.styles import Font
from openpyxl.utils import get_column_letter
from reportlab.lib.colors import HexColor, black
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import mm
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

from rollcall.models import Session

logger = logging.getLogger(__name__)

GREY_LIGHT = HexColor("#F2F2F2")   # Table header background

# (key, header, xlsx column width)
COLUMNS = [
    ("lesson", "Lesson", 30),
    ("name", "Name", 25),
    ("identifier", "Identifier", 15),
    ("time", "Checked in at", 24),
    ("origin_address", "IP", 18),
]


def attendance_rows(session: Session) -> List[Dict[str, str]]:
    """Flatten a session into export rows, in check-in order."""
    return [
        {
            "lesson": session.name,
            "name": attendee.name,
            "identifier": attendee.identifier,
            "time": attendee.time,
            "origin_address": attendee.origin_address,
        }
        for attendee in session.attendees
    ]


def _xml_safe(value: str) -> str:
    """Drop characters that XML-based formats (XLSX, DOCX) cannot store."""
    return ILLEGAL_CHARACTERS_RE.sub("", value)


def _generated_label(generated_at: Optional[datetime.datetime]) -> str:
    generated_at = generated_at or datetime.datetime.now()
    return generated_at.strftime("%Y-%m-%d %H:%M:%S")


# ---------------------------------------------------------------------------
# XLSX
# ---------------------------------------------------------------------------

def build_xlsx(session: Session) -> bytes:
    """
    One header row plus one row per attendee. Every data cell is written as
    text, so a name like "=HYPERLINK(...)" never becomes a formula.
    """
    wb = Workbook()
    ws = wb.active
    ws.title = "Attendance"

    ws.append([header for _, header, _ in COLUMNS])
    for cell in ws[1]:
        cell.font = Font(bold=True)
    for idx, (_, _, width) in enumerate(COLUMNS, start=1):
        ws.column_dimensions[get_column_letter(idx)].width = width

    for row in attendance_rows(session):
        ws.append([_xml_safe(row[key]) for key, _, _ in COLUMNS])
        for cell in ws[ws.max_row]:
            cell.data_type = "s"

    buf = BytesIO()
    wb.save(buf)
    return buf.getvalue()


# ---------------------------------------------------------------------------
# DOCX
# ---------------------------------------------------------------------------

def build_docx(session: Session, generated_at: Optional[datetime.datetime] = None) -> bytes:
    """Title, generation time, blank line, then one numbered line per attendee."""
    doc = Document()

    title = doc.add_paragraph().add_run(f"Attendance list - {_xml_safe(session.name)}")
    title.bold = True
    title.font.size = Pt(14)
    doc.add_paragraph(f"Generated at: {_generated_label(generated_at)}")
    doc.add_paragraph("")

    for idx, row in enumerate(attendance_rows(session), start=1):
        line = f"{idx}. {row['name']} - {row['identifier']} - {row['time']}"
        doc.add_paragraph(_xml_safe(line))

    buf = BytesIO()
    doc.save(buf)
    return buf.getvalue()


# ---------------------------------------------------------------------------
# PDF
# ---------------------------------------------------------------------------

def _build_attendee_table(session: Session) -> Table:
    header = ["#"] + [label for _, label, _ in COLUMNS[1:]]
    body = [
        [str(idx), row["name"], row["identifier"], row["time"], row["origin_address"]]
        for idx, row in enumerate(attendance_rows(session), start=1)
    ]
    style_cmds = [
        ("BACKGROUND", (0, 0), (-1, 0), GREY_LIGHT),
        ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
        ("GRID", (0, 0), (-1, -1), 0.5, black),
        ("FONTSIZE", (0, 0), (-1, -1), 8),
        ("ALIGN", (0, 0), (0, -1), "RIGHT"),
        ("TOPPADDING", (0, 0), (-1, -1), 3),
        ("BOTTOMPADDING", (0, 0), (-1, -1), 3),
    ]
    t = Table([header] + body, colWidths=[10 * mm, 55 * mm, 30 * mm, 45 * mm, 30 * mm], repeatRows=1)
    t.setStyle(TableStyle(style_cmds))
    return t


def build_pdf(session: Session, generated_at: Optional[datetime.datetime] = None) -> bytes:
    buffer = BytesIO()
    doc = SimpleDocTemplate(
        buffer,
        pagesize=A4,
        leftMargin=20 * mm,
        rightMargin=20 * mm,
        topMargin=20 * mm,
        bottomMargin=20 * mm,
        title=f"Attendance - {session.name}",
    )
    styles = getSampleStyleSheet()
    title_style = ParagraphStyle(
        "report_title",
        parent=styles["Heading1"],
        fontSize=18,
        fontName="Helvetica-Bold",
    )

    story = [
        Paragraph(f"Attendance list - {escape(session.name)}", title_style),
        Spacer(1, 2 * mm),
        Paragraph(f"Generated at: {_generated_label(generated_at)}", styles["Normal"]),
        Paragraph(f"Attendees: {len(session.attendees)}", styles["Normal"]),
        Spacer(1, 6 * mm),
        _build_attendee_table(session),
    ]
    doc.build(story)
    return buffer.getvalue()


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ExportFormat:
    extension: str
    media_type: str
    build: Callable[..., bytes]


EXPORT_FORMATS: Dict[str, ExportFormat] = {
    "xlsx": ExportFormat(
        "xlsx",
        "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        build_xlsx,
    ),
    "docx": ExportFormat(
        "docx",
        "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
        build_docx,
    ),
    "pdf": ExportFormat("pdf", "application/pdf", build_pdf),
}
