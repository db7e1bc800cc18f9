from __future__ import annotations
import asyncio
import csv
import logging
from io import BytesIO
from typing import Any, List, Optional, Sequence
from openpyxl import load_workbook
from .errors import EmptyInput, InputError
from .utils import cell_text

logger = logging.getLogger(__name__)

RawRow = List[Any]

MIN_ROWS = 2
# =========================

# Delimited text: quote-aware split
# =========================
def split_delimited_line(line: str, delimiter: str = ",") -> RawRow:
    # every '"' toggles in/out of a quoted field; the delimiter only splits outside quotes
    cells: RawRow = []
    buf: List[str] = []
    in_quotes = False
    for ch in line:
        if ch == '"':
            in_quotes = not in_quotes
            continue
        if ch == delimiter and not in_quotes:
            cells.append("".join(buf).strip())
            buf = []
            continue
        buf.append(ch)
    cells.append("".join(buf).strip())
    return cells


def _guess_delimiter(sample_text: str) -> str:
    # exports are usually ',' but ';' and tabs show up from some locales
    try:
        dialect = csv.Sniffer().sniff(sample_text, delimiters=",;\t|")
        if dialect.delimiter:
            return dialect.delimiter
    except csv.Error:
        pass

    lines = [ln for ln in sample_text.splitlines() if ln.strip()][:20]
    if not lines:
        return ","
    scores = {}
    for d in [",", ";", "\t", "|"]:
        cnts = [ln.count(d) for ln in lines]
        scores[d] = sum(cnts) / max(1, len(cnts))
    best = max(scores.items(), key=lambda x: x[1])[0]
    return best if scores.get(best, 0) > 0 else ","


def _drop_blank(rows: Sequence[RawRow]) -> List[RawRow]:
    return [list(r) for r in rows if any(cell_text(c) for c in r)]


def _trim_trailing(row: Sequence[Any]) -> RawRow:
    out = list(row)
    while out and not cell_text(out[-1]):
        out.pop()
    return out


def _require_rows(rows: List[RawRow]) -> List[RawRow]:
    if len(rows) < MIN_ROWS:
        raise EmptyInput(len(rows))
    return rows


def parse_delimited_text(text: str, delimiter: Optional[str] = None) -> List[RawRow]:
    """
    Delimited text -> ordered rows of ordered cells.
    Blank lines are dropped; at least two rows must remain (header + data).
    """
    if text is None:
        raise EmptyInput(0)
    text = text.lstrip("\ufeff")
    if delimiter is None:
        delimiter = _guess_delimiter(text[:65536])
    rows = [split_delimited_line(ln, delimiter) for ln in text.splitlines()]
    return _require_rows(_drop_blank(rows))


def parse_sheet_matrix(matrix: Sequence[Sequence[Any]]) -> List[RawRow]:
    # sheet-like payload: list of row lists, as given by a workbook reader
    if matrix is None:
        raise EmptyInput(0)
    rows = [_trim_trailing(r) for r in matrix if r is not None]
    return _require_rows(_drop_blank(rows))
# =========================

# Excel: first sheet only, merged cells expanded
# =========================
def read_workbook_bytes(wb_bytes: bytes) -> List[RawRow]:
    try:
        wb = load_workbook(BytesIO(wb_bytes), read_only=False, data_only=True)
    except Exception as e:  # openpyxl raises several unrelated types for broken files
        raise InputError(f"Could not read the workbook: {e}") from e

    ws = wb.worksheets[0]
    merged_map = {}
    for r in ws.merged_cells.ranges:
        min_col, min_row, max_col, max_row = r.bounds
        top_val = ws.cell(min_row, min_col).value
        for rr in range(min_row, max_row + 1):
            for cc in range(min_col, max_col + 1):
                merged_map[(rr, cc)] = top_val

    rows = []
    for r in range(1, ws.max_row + 1):
        row_vals = []
        for c in range(1, ws.max_column + 1):
            v = ws.cell(r, c).value
            if (r, c) in merged_map and (v is None or str(v).strip() == ""):
                v = merged_map[(r, c)]
            row_vals.append(v)
        rows.append(row_vals)
    return rows
# =========================

# Uploads
# =========================
def _decode(data: bytes) -> str:
    for enc in ["utf-8-sig", "utf-8", "cp1252"]:
        try:
            return data.decode(enc)
        except UnicodeDecodeError:
            continue
    return data.decode("utf-8", errors="replace")


def load_frame_from_upload(name: str, data: bytes) -> List[RawRow]:
    """
    Turns an uploaded file into a cell matrix:
      - .xlsx/.xlsm: first sheet read with openpyxl
      - anything else: decoded and split as delimited text
    Raises EmptyInput / InputError, which abort the whole import.
    """
    if not data:
        raise EmptyInput(0)

    lower = (name or "").lower()
    if lower.endswith((".xlsx", ".xlsm")):
        rows = parse_sheet_matrix(read_workbook_bytes(data))
    else:
        rows = parse_delimited_text(_decode(data))

    logger.debug("parsed %s: %d rows", name, len(rows))
    return rows


async def load_frame_async(name: str, data: bytes) -> List[RawRow]:
    # large workbooks are parsed off the event loop
    return await asyncio.to_thread(load_frame_from_upload, name, data)
