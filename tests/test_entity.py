import itertools

from gradebook.entity import (
    match_index_number,
    match_student,
    normalize_name,
    suggest_students,
    token_overlap,
)
from gradebook.schema import StudentRecord


def test_normalize_sorts_tokens_and_strips_punctuation():
    assert normalize_name("Okot, John  Mary.") == "JOHN MARY OKOT"
    assert normalize_name("O'Brien Ann") == "ANN OBRIEN"
    assert normalize_name("  ") == ""
    assert normalize_name(None) == ""


def test_normalize_is_order_invariant():
    words = ["Mukasa", "Peter", "Ssali"]
    forms = {normalize_name(" ".join(p)) for p in itertools.permutations(words)}
    assert forms == {"MUKASA PETER SSALI"}


def test_exact_match_ignores_word_order(roster):
    res = match_student("MARY OKOT JOHN", roster)
    assert res.resolved
    assert res.exact
    assert res.student.id == 1
    assert res.score == 1.0


def test_partial_overlap_above_threshold(roster):
    # 2 of 3 tokens shared -> 0.67
    res = match_student("Mukasa Peter", roster)
    assert res.student.id == 3
    assert not res.exact
    assert round(res.score, 2) == 0.67


def test_overlap_at_threshold_is_accepted(roster):
    # 1 of 2 tokens shared -> 0.5
    res = match_student("Nakato Jane", roster)
    assert res.student.id == 4


def test_below_threshold_is_unresolved(roster):
    res = match_student("Okello Denis Opio", roster)
    assert not res.resolved
    assert res.student is None


def test_first_roster_entry_wins_a_tie():
    roster = [
        StudentRecord(id=10, name="Okello James"),
        StudentRecord(id=11, name="Okello Brian"),
    ]
    assert match_student("Okello Moses", roster).student.id == 10


def test_custom_threshold(roster):
    assert not match_student("Nakato Jane", roster, threshold=0.6).resolved


def test_token_overlap_uses_longer_name():
    assert token_overlap(["A", "B"], ["A", "B", "C", "D"]) == 0.5
    assert token_overlap([], ["A"]) == 0.0


def test_match_index_number_ignores_spaces_and_case(roster):
    assert match_index_number(" p5/003 ", roster).id == 3
    assert match_index_number("P5/999", roster) is None
    assert match_index_number("", roster) is None


def test_suggestions_rank_closest_names(roster):
    hints = suggest_students("Acheng Grace", roster, limit=2)
    assert hints[0]["student_id"] == 2
    assert len(hints) <= 2


def test_normalize_keeps_accented_letters():
    assert normalize_name("\u00c9va Nakato") == "NAKATO \u00c9VA"
    assert normalize_name("Ng\u2019ang\u2019a Zo\u00eb") == "NGANGA ZO\u00cb"


def test_accented_name_matches_exactly():
    roster = [StudentRecord(id=7, name="Nakato \u00c9va"), StudentRecord(id=8, name="Nakato Va")]
    res = match_student("\u00c9VA NAKATO", roster)
    assert res.exact
    assert res.student.id == 7
