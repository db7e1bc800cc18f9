import math

import pytest

from gradebook import utils
from gradebook.config import load_grading_config, load_settings
from gradebook.header_detect import load_synonyms


@pytest.mark.parametrize("raw,mark", [
    (78, 78),
    (78.9, 78),
    ("78", 78),
    (" 78.5 ", 78),
    ("0", 0),
    ("100", 100),
    ("101", None),
    (-1, None),
    ("-5", None),
    ("abc", None),
    ("", None),
    (None, None),
    (True, None),
    (math.nan, None),
])
def test_parse_mark(raw, mark):
    assert utils.parse_mark(raw) == mark


def test_cell_text_cleans_whitespace():
    assert utils.cell_text("  JOHN\u00a0 MARY\tOKOT ") == "JOHN MARY OKOT"
    assert utils.cell_text(math.nan) == ""
    assert utils.cell_text(None) == ""


def test_norm_text():
    assert utils.norm_text("S.ST") == "s st"
    assert utils.norm_text("Name of Pupil:") == "name of pupil"


def test_user_rules_override_shipped_rules(tmp_path, monkeypatch):
    monkeypatch.setattr(utils, "USER_DATA_DIR", tmp_path)
    utils.save_json(tmp_path / "rules.json", {
        "grading": {"passingMark": 50},
        "settings": {"autosave_delay": 1.5},
        "columns": {"name": ["learner name"]},
    })
    rules = utils.load_rules()
    assert load_settings(rules).autosave_delay == 1.5
    assert load_settings(rules).history_limit == 50
    # nested keys merge into the shipped grading scheme
    cfg = load_grading_config(rules)
    assert cfg.passing_mark == 50
    assert cfg.grades[0].label == "D1"
    assert load_synonyms(rules).name == ("learner name",)


def test_broken_user_rules_are_ignored(tmp_path, monkeypatch):
    monkeypatch.setattr(utils, "USER_DATA_DIR", tmp_path)
    (tmp_path / "rules.json").write_text("{not json", encoding="utf-8")
    assert utils.load_rules() == utils.load_json(utils.rules_path(), {})
