from __future__ import annotations
import pandas as pd
from io import BytesIO
from typing import Sequence
from .grading import compute_grade
from .schema import StudentRecord
from .scoring import compute_positions, remarks_table

SUBJECT_HEADERS = {
    "english": "ENG",
    "maths": "MTC",
    "science": "SCI",
    "sst": "SST",
    "literacy1": "LIT 1",
    "literacy2": "LIT 2",
}


def _subject_header(code: str) -> str:
    return SUBJECT_HEADERS.get(code, code.upper())


def _write_sheet(writer: pd.ExcelWriter, df: pd.DataFrame, sheet_name: str, default_width: int = 12) -> None:
    df.to_excel(writer, index=False, sheet_name=sheet_name)
    wb = writer.book
    ws = writer.sheets[sheet_name]
    fmt_header = wb.add_format({"bold": True, "bg_color": "#F2F2F2", "border": 1, "valign": "vcenter"})
    ws.freeze_panes(1, 0)
    for col, name in enumerate(df.columns):
        ws.write(0, col, name, fmt_header)
        w = 32 if name == "NAME" else max(default_width, len(str(name)) + 4)
        ws.set_column(col, col, w)


def import_template_bytes(roster: Sequence[StudentRecord], subjects: Sequence[str]) -> bytes:
    """Blank score sheet whose header row the importer recognizes."""
    df = pd.DataFrame({
        "INDEX NO": [s.index_number for s in roster],
        "NAME": [s.name for s in roster],
        **{_subject_header(sub): [None] * len(roster) for sub in subjects},
    })
    bio = BytesIO()
    with pd.ExcelWriter(bio, engine="xlsxwriter") as writer:
        _write_sheet(writer, df, "Marks")
    return bio.getvalue()


def export_marks_to_excel_bytes(session) -> bytes:
    """
    Current score grid as a workbook:
      - "Marks": marks, grades, aggregate, division, position, status, comment
      - "Summary": progress counts
    """
    records = session.build_records()
    positions = compute_positions(records)
    remarks = {r["studentId"]: r["comment"] for r in remarks_table(records, session.config)}
    names = {s.id: s for s in session.students}

    rows = []
    for r in records:
        s = names.get(r["studentId"])
        row = {
            "INDEX NO": s.index_number if s else "",
            "NAME": s.name if s else "",
        }
        for sub in session.subjects:
            mark = r["marks"].get(sub)
            row[_subject_header(sub)] = mark
            row[f"{_subject_header(sub)} GRADE"] = compute_grade(mark, session.config).label
        row["AGG"] = r["aggregate"] or None
        row["DIV"] = r["division"]
        row["POS"] = positions.get(r["studentId"], "")
        row["STATUS"] = r["status"]
        row["COMMENT"] = remarks.get(r["studentId"], "")
        rows.append(row)

    marks_df = pd.DataFrame(rows)
    summary_df = pd.DataFrame(
        [{"Status": k, "Count": v} for k, v in session.progress().items()]
    )

    bio = BytesIO()
    with pd.ExcelWriter(bio, engine="xlsxwriter") as writer:
        _write_sheet(writer, marks_df, "Marks")
        _write_sheet(writer, summary_df, "Summary", default_width=16)
    return bio.getvalue()
