import pytest

from gradebook.config import load_grading_config
from gradebook.schema import Selection, StudentRecord
from gradebook.store import InMemoryMarksStore


@pytest.fixture
def config():
    # built-in defaults, independent of any rules file on disk
    return load_grading_config({})


@pytest.fixture
def roster():
    return [
        StudentRecord(id=1, name="John Mary Okot", index_number="P5/001", class_level="P5", stream="East"),
        StudentRecord(id=2, name="Achieng Grace", index_number="P5/002", class_level="P5", stream="East"),
        StudentRecord(id=3, name="Mukasa Peter Ssali", index_number="P5/003", class_level="P5", stream="East"),
        StudentRecord(id=4, name="Nakato Sarah", index_number="P5/004", class_level="P5", stream="West"),
    ]


@pytest.fixture
def selection():
    return Selection(class_level="P5", term=1, year=2026, assessment_type="EOT")


@pytest.fixture
def store(roster, config):
    return InMemoryMarksStore(students=roster, config=config)
