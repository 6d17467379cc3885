"""Export encoders, QR rendering and download filenames."""
from __future__ import annotations

import base64
import datetime
from io import BytesIO

import pytest
from docx import Document
from openpyxl import load_workbook

from rollcall.export import EXPORT_FORMATS, attendance_rows, export_filename, qr_data_url, render_qr_png, safe_name
from rollcall.export.documents import build_docx, build_pdf, build_xlsx
from rollcall.models import Attendee, Coordinate, Session

PNG_SIGNATURE = b"\x89PNG\r\n\x1a\n"


@pytest.fixture
def session() -> Session:
    session = Session(
        id="ABCD2345",
        name="Cálculo II",
        created_at=datetime.datetime(2026, 3, 1, tzinfo=datetime.timezone.utc),
        anchor=Coordinate(lat=0.0, lng=0.0),
    )
    for name, code, address in [("Ana", "A-1", "10.0.0.1"), ("Bruno", "B-2", "10.0.0.2")]:
        session.attendees.append(
            Attendee(
                name=name,
                identifier=code,
                identifier_key=code.lower().replace("-", ""),
                time="2026-03-01T10:00:00.000Z",
                origin_address=address,
            )
        )
    return session


# ---------------------------------------------------------------------------
# Filenames
# ---------------------------------------------------------------------------

@pytest.mark.parametrize(
    "raw, expected",
    [
        ("Cálculo II", "calculo-ii"),
        ("  Física   Experimental  ", "fisica-experimental"),
        ("Lab #3 / Turma_B", "lab-3-turma_b"),
        ("already-safe", "already-safe"),
        ("!!!", ""),
    ],
)
def test_safe_name(raw: str, expected: str) -> None:
    assert safe_name(raw) == expected


def test_export_filename_includes_date() -> None:
    name = export_filename("Cálculo II", "xlsx", today=datetime.date(2026, 3, 1))
    assert name == "attendance_calculo-ii_2026-03-01.xlsx"


def test_export_filename_falls_back_for_empty_slug() -> None:
    name = export_filename("???", ".docx", today=datetime.date(2026, 3, 1))
    assert name == "attendance_session_2026-03-01.docx"


# ---------------------------------------------------------------------------
# Rows and encoders
# ---------------------------------------------------------------------------

def test_rows_follow_check_in_order(session: Session) -> None:
    rows = attendance_rows(session)
    assert [r["name"] for r in rows] == ["Ana", "Bruno"]
    assert rows[0] == {
        "lesson": "Cálculo II",
        "name": "Ana",
        "identifier": "A-1",
        "time": "2026-03-01T10:00:00.000Z",
        "origin_address": "10.0.0.1",
    }


def test_xlsx_contains_header_and_rows(session: Session) -> None:
    wb = load_workbook(BytesIO(build_xlsx(session)))
    ws = wb["Attendance"]
    values = [list(row) for row in ws.iter_rows(values_only=True)]
    assert values[0] == ["Lesson", "Name", "Identifier", "Checked in at", "IP"]
    assert values[1] == ["Cálculo II", "Ana", "A-1", "2026-03-01T10:00:00.000Z", "10.0.0.1"]
    assert values[2][1] == "Bruno"
    assert len(values) == 3
    assert ws["A1"].font.bold


def test_docx_lists_attendees(session: Session) -> None:
    generated = datetime.datetime(2026, 3, 1, 11, 0, 0)
    doc = Document(BytesIO(build_docx(session, generated_at=generated)))
    texts = [p.text for p in doc.paragraphs]
    assert texts[0] == "Attendance list - Cálculo II"
    assert texts[1] == "Generated at: 2026-03-01 11:00:00"
    assert texts[2] == ""
    assert texts[3] == "1. Ana - A-1 - 2026-03-01T10:00:00.000Z"
    assert texts[4] == "2. Bruno - B-2 - 2026-03-01T10:00:00.000Z"
    assert doc.paragraphs[0].runs[0].bold


def _with_attendee(session: Session, name: str, identifier: str) -> Session:
    attendee = Attendee(
        name=name,
        identifier=identifier,
        identifier_key="x",
        time="2026-03-01T10:05:00.000Z",
        origin_address="10.0.0.3",
    )
    return session.model_copy(update={"attendees": [attendee]})


def test_xlsx_writes_formula_like_names_as_text(session: Session) -> None:
    hostile = _with_attendee(session, '=HYPERLINK("http://evil","x")', "+1-2")
    ws = load_workbook(BytesIO(build_xlsx(hostile)))["Attendance"]
    for ref in ("A2", "B2", "C2", "D2", "E2"):
        assert ws[ref].data_type == "s"
    assert ws["B2"].value == '=HYPERLINK("http://evil","x")'
    assert ws["C2"].value == "+1-2"


def test_control_characters_are_dropped_from_documents(session: Session) -> None:
    noisy = _with_attendee(session, "Ana\x07Bell", "A\x00-1")

    ws = load_workbook(BytesIO(build_xlsx(noisy)))["Attendance"]
    assert ws["B2"].value == "AnaBell"
    assert ws["C2"].value == "A-1"

    doc = Document(BytesIO(build_docx(noisy)))
    assert doc.paragraphs[3].text == "1. AnaBell - A-1 - 2026-03-01T10:05:00.000Z"


def test_pdf_is_produced(session: Session) -> None:
    content = build_pdf(session)
    assert content.startswith(b"%PDF")


def test_empty_session_exports(session: Session) -> None:
    empty = session.model_copy(update={"attendees": []})
    for export_format in EXPORT_FORMATS.values():
        assert export_format.build(empty)


def test_registry_media_types() -> None:
    assert set(EXPORT_FORMATS) == {"xlsx", "docx", "pdf"}
    assert EXPORT_FORMATS["pdf"].media_type == "application/pdf"


# ---------------------------------------------------------------------------
# QR
# ---------------------------------------------------------------------------

def test_qr_png_and_data_url() -> None:
    url = "https://rollcall.test/join.html?id=ABCD2345"
    png = render_qr_png(url)
    assert png.startswith(PNG_SIGNATURE)

    data_url = qr_data_url(url)
    prefix = "data:image/png;base64,"
    assert data_url.startswith(prefix)
    assert base64.b64decode(data_url[len(prefix):]) == png
