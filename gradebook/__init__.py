"""
This package contains:
- loading score tables (CSV/XLSX) into a cell matrix
- header/column detection
- matching rows to roster students
- grade / aggregate / division computation
- the editable score grid with undo/redo and autosave
- class statistics and Excel export
"""
from .ingest import load_frame_from_upload, parse_delimited_text, parse_sheet_matrix
from .header_detect import locate_header, load_synonyms
from .validate import is_valid_score_row
from .entity import match_student, normalize_name
from .extract import extract_scores, import_upload
from .config import GradingConfiguration, load_grading_config, load_settings
from .grading import compute_grade, compute_aggregate, compute_division
from .history import EditHistory
from .session import MarksSession
from .autosave import AutosaveScheduler
from .store import MarksStore, InMemoryMarksStore
from .scoring import class_stats, compute_positions
from .export import export_marks_to_excel_bytes, import_template_bytes

__all__ = [
    "load_frame_from_upload",
    "parse_delimited_text",
    "parse_sheet_matrix",
    "locate_header",
    "load_synonyms",
    "is_valid_score_row",
    "match_student",
    "normalize_name",
    "extract_scores",
    "import_upload",
    "GradingConfiguration",
    "load_grading_config",
    "load_settings",
    "compute_grade",
    "compute_aggregate",
    "compute_division",
    "EditHistory",
    "MarksSession",
    "AutosaveScheduler",
    "MarksStore",
    "InMemoryMarksStore",
    "class_stats",
    "compute_positions",
    "export_marks_to_excel_bytes",
    "import_template_bytes",
]
