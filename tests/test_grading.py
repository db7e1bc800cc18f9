import copy
import random

import pytest

from gradebook.config import (
    DEFAULT_GRADING,
    GradingConfiguration,
    load_grading_config,
    load_settings,
)
from gradebook.errors import ConfigError
from gradebook.grading import (
    NO_GRADE,
    UNGRADED,
    compute_aggregate,
    compute_division,
    compute_grade,
    grade_marks,
    is_pass,
    total_marks,
)


def test_every_mark_has_exactly_one_grade(config):
    for mark in range(0, 101):
        hits = [g for g in config.grades if g.contains(mark)]
        assert len(hits) == 1
        assert compute_grade(mark, config) is hits[0]


@pytest.mark.parametrize("mark,label,points", [
    (100, "D1", 1),
    (90, "D1", 1),
    (89, "D2", 2),
    (72, "C3", 3),
    (55, "C5", 5),
    (40, "P8", 8),
    (39, "F9", 9),
    (0, "F9", 9),
])
def test_grade_boundaries(config, mark, label, points):
    g = compute_grade(mark, config)
    assert (g.label, g.points) == (label, points)


@pytest.mark.parametrize("mark", [None, -1, 101, 72.5, "72", True])
def test_missing_or_bad_mark_has_no_grade(config, mark):
    assert compute_grade(mark, config) is NO_GRADE


def test_aggregate_sums_required_subjects(config):
    marks = {"english": 92, "maths": 81, "science": 72, "sst": 65, "literacy1": 10}
    # 1 + 2 + 3 + 4; literacy1 is not an upper-tier subject
    assert compute_aggregate(marks, "P5", config) == 10
    assert compute_aggregate(marks, "upper", config) == 10


def test_aggregate_ignores_key_order(config):
    marks = {"english": 92, "maths": 81, "science": 72, "sst": 65}
    items = list(marks.items())
    for _ in range(5):
        random.shuffle(items)
        assert compute_aggregate(dict(items), "P5", config) == 10


def test_aggregate_is_zero_when_incomplete(config):
    assert compute_aggregate({"english": 92, "maths": 81, "science": 72}, "P5", config) == 0
    assert compute_aggregate({"english": 92, "maths": 81, "science": 72, "sst": None}, "P5", config) == 0
    assert compute_aggregate({}, "P5", config) == 0


def test_unknown_tier_has_no_aggregate(config):
    assert compute_aggregate({"english": 92}, "S1", config) == 0


@pytest.mark.parametrize("aggregate,label", [
    (4, "I"), (12, "I"), (13, "II"), (24, "II"), (25, "III"), (32, "IV"), (36, "U"),
])
def test_division_bands(config, aggregate, label):
    assert compute_division(aggregate, config).label == label


@pytest.mark.parametrize("aggregate", [0, 3, 37, None, "x"])
def test_division_outside_bands_is_ungraded(config, aggregate):
    assert compute_division(aggregate, config) is UNGRADED


def test_is_pass_uses_passing_mark(config):
    assert is_pass(40, config)
    assert not is_pass(39, config)
    assert not is_pass(None, config)


def test_total_marks_skips_missing():
    assert total_marks({"english": 50, "maths": None, "science": 20}) == 70


def test_grade_marks_summary(config):
    s = grade_marks({"english": 92, "maths": 81, "science": 72, "sst": 65}, "P5", config)
    assert s.aggregate == 10
    assert s.division.label == "I"
    assert s.total == 310
    assert s.complete
    assert s.grades["sst"].label == "C4"

    partial = grade_marks({"english": 92}, "P5", config)
    assert not partial.complete
    assert partial.division is UNGRADED
    assert partial.grades["maths"] is NO_GRADE


FIVE_LETTER = {
    "grades": [
        {"grade": "A", "minScore": 80, "maxScore": 100, "points": 1},
        {"grade": "B", "minScore": 70, "maxScore": 79, "points": 2},
        {"grade": "C", "minScore": 60, "maxScore": 69, "points": 3},
        {"grade": "D", "minScore": 50, "maxScore": 59, "points": 4},
        {"grade": "F", "minScore": 0, "maxScore": 49, "points": 5},
    ],
    "divisions": [
        {"division": "I", "minAggregate": 4, "maxAggregate": 8},
        {"division": "II", "minAggregate": 9, "maxAggregate": 12},
        {"division": "III", "minAggregate": 13, "maxAggregate": 16},
        {"division": "U", "minAggregate": 17, "maxAggregate": 20},
    ],
    "passingMark": 50,
}


def test_swapping_the_scale_needs_no_code_change():
    cfg = GradingConfiguration.from_dict(FIVE_LETTER)
    assert compute_grade(85, cfg).label == "A"
    assert compute_grade(49, cfg).label == "F"
    marks = {"english": 85, "maths": 75, "science": 65, "sst": 55}
    assert compute_aggregate(marks, "P6", cfg) == 10
    assert compute_division(10, cfg).label == "II"
    assert not is_pass(45, cfg)


def _with(**changes):
    d = copy.deepcopy(DEFAULT_GRADING)
    d.update(changes)
    return d


def test_unchanged_defaults_are_valid():
    cfg = GradingConfiguration.from_dict(_with())
    assert cfg.fail_divisions == ("U",)


def test_overlapping_divisions_are_rejected():
    divisions = copy.deepcopy(DEFAULT_GRADING["divisions"])
    divisions[0]["maxAggregate"] = 13
    with pytest.raises(ConfigError, match="overlap"):
        GradingConfiguration.from_dict(_with(divisions=divisions))


def test_overlapping_grades_are_rejected():
    grades = [dict(g) for g in DEFAULT_GRADING["grades"]]
    grades[1]["maxScore"] = 90
    with pytest.raises(ConfigError, match="overlap"):
        GradingConfiguration.from_dict(_with(grades=grades))


def test_gap_in_grades_is_rejected():
    grades = [dict(g) for g in DEFAULT_GRADING["grades"]]
    grades[0]["minScore"] = 91
    with pytest.raises(ConfigError, match="uncovered"):
        GradingConfiguration.from_dict(_with(grades=grades))


def test_divisions_must_cover_aggregate_range():
    divisions = [dict(d) for d in DEFAULT_GRADING["divisions"]][:-1]
    with pytest.raises(ConfigError, match="uncovered"):
        GradingConfiguration.from_dict(_with(divisions=divisions))


def test_passing_mark_out_of_range():
    with pytest.raises(ConfigError):
        GradingConfiguration.from_dict(_with(passingMark=120))


def test_malformed_config():
    with pytest.raises(ConfigError, match="Malformed"):
        GradingConfiguration.from_dict({"grades": [{"grade": "A"}]})


def test_dict_round_trip_keeps_the_scheme(config):
    again = GradingConfiguration.from_dict(config.to_dict())
    assert again == config


def test_tier_lookup(config):
    assert config.tier("p2").name == "lower"
    assert config.tier("UPPER").name == "upper"
    assert config.tier("S1") is None
    assert config.subjects_for("P1") == ("english", "maths", "literacy1", "literacy2")
    assert config.all_subjects() == ["english", "maths", "literacy1", "literacy2", "science", "sst"]


def test_rules_override_grading():
    cfg = load_grading_config({"grading": FIVE_LETTER})
    assert [g.label for g in cfg.grades] == ["A", "B", "C", "D", "F"]


def test_load_settings_defaults_and_overrides():
    s = load_settings({})
    assert s.autosave_delay == 3.0
    assert s.history_limit == 50
    s = load_settings({"settings": {"autosave_delay": "0.5"}})
    assert s.autosave_delay == 0.5
    with pytest.raises(ConfigError):
        load_settings({"settings": {"history_limit": "many"}})
