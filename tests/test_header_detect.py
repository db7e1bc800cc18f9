import pytest

from gradebook.header_detect import (
    NO_DATA_ROWS,
    NO_NAME_COLUMN,
    NO_SUBJECT_COLUMNS,
    HeaderFound,
    HeaderMissing,
    locate_header,
    map_header_row,
)
from gradebook.schema import NOT_FOUND, ColumnMapping
from gradebook.validate import is_valid_score_row


def test_map_header_row_synonyms():
    m = map_header_row(["S/N", "INDEX NO", "NAME OF PUPIL", "ENGLISH", "MTC", "SCI", "S.ST"])
    assert m.index_number == 1
    assert m.name == 2
    assert m.subjects == {"english": 3, "maths": 4, "science": 5, "sst": 6}


def test_map_header_row_literacy_is_whole_word():
    m = map_header_row(["NAME", "LITERACY II", "LITERACY I"])
    assert m.subjects == {"literacy2": 1, "literacy1": 2}


def test_missing_fields_are_not_found():
    m = map_header_row(["NAME", "ENG"])
    assert m.index_number == NOT_FOUND
    assert not m.has_index


def test_locates_header_below_title_rows():
    rows = [
        ["ST. MARY'S PRIMARY SCHOOL"],
        ["END OF TERM ONE RESULTS"],
        ["NAME", "ENG", "MTC", "SCI", "SST"],
        ["JOHN MARY OKOT", "78", "65", "70", "55"],
        ["ACHIENG GRACE", "50", "40", "", "60"],
    ]
    out = locate_header(rows)
    assert isinstance(out, HeaderFound)
    assert out.ok
    assert out.row_index == 2
    assert out.score == 2


def test_header_inside_summary_block_is_rejected():
    rows = [
        ["NAME", "ENG", "MTC"],
        ["JOHN MARY OKOT", "78", "65"],
        ["ACHIENG GRACE", "50", "40"],
        ["TOP PERFORMERS"],
        ["NAME", "ENG", "MTC"],
        ["JOHN MARY OKOT", "78", "65"],
        ["ACHIENG GRACE", "50", "40"],
        ["NAKATO SARAH", "90", "91"],
    ]
    out = locate_header(rows)
    assert out.ok
    assert out.row_index == 0


def test_best_scoring_candidate_wins():
    rows = [
        ["NAME", "ENG"],
        ["just a note"],
        ["PUPIL NAME", "ENG", "MTC"],
        ["JOHN MARY OKOT", "78", "65"],
        ["ACHIENG GRACE", "50", "40"],
    ]
    out = locate_header(rows)
    assert out.row_index == 2
    assert out.mapping.subjects == {"english": 1, "maths": 2}


def test_tie_goes_to_earliest_candidate():
    rows = [
        ["NAME", "ENG"],
        ["JOHN MARY OKOT", "78"],
        ["NAME", "ENG"],
        ["ACHIENG GRACE", "50"],
    ]
    out = locate_header(rows)
    assert out.row_index == 0
    assert out.score == 1


def test_blank_rows_do_not_break_the_run():
    rows = [
        ["NAME", "ENG"],
        ["JOHN MARY OKOT", "78"],
        ["", None],
        ["ACHIENG GRACE", "50"],
    ]
    assert locate_header(rows).score == 2


def test_only_first_twenty_rows_are_scanned():
    rows = [["filler row"]] * 20 + [["NAME", "ENG"], ["JOHN MARY OKOT", "78"]]
    out = locate_header(rows)
    assert isinstance(out, HeaderMissing)
    assert out.reason == NO_NAME_COLUMN


def test_no_subject_columns():
    out = locate_header([["NAME", "CLASS"], ["JOHN MARY OKOT", "P5"]])
    assert not out.ok
    assert out.reason == NO_SUBJECT_COLUMNS
    assert "subject" in out.message


def test_no_data_rows_under_header():
    out = locate_header([["NAME", "ENG"], ["TOTAL", "400"]])
    assert out.reason == NO_DATA_ROWS


@pytest.mark.parametrize("row,valid", [
    (["JOHN MARY OKOT", "78"], True),
    (["JOHN MARY OKOT", 78.0], True),
    (["JOHN", "78"], False),
    (["JOHN MARY OKOT", "105"], False),
    (["JOHN MARY OKOT", "abc"], False),
    (["CLASS AVERAGE", "61"], False),
    (["GRADING SCALE", "90"], False),
    (["TOP PERFORMERS", "95"], False),
    (["  ", "78"], False),
])
def test_row_validator(row, valid):
    mapping = ColumnMapping(name=0, subjects={"english": 1})
    assert is_valid_score_row(row, mapping) is valid
