import pytest

from lingobatch.core import database as db
from lingobatch.core.schema import initialize_database


@pytest.fixture
def temp_db(tmp_path, monkeypatch):
    """Point the sqlite store at a throwaway file."""
    db_file = tmp_path / "lingobatch-test.db"
    monkeypatch.setattr(db, "DB_FILE", db_file)
    monkeypatch.delenv("LINGOBATCH_KEYS", raising=False)
    monkeypatch.delenv("LINGOBATCH_MODEL", raising=False)
    initialize_database()
    return db_file


@pytest.fixture
def workdirs(tmp_path):
    input_dir = tmp_path / "input"
    output_dir = tmp_path / "output"
    input_dir.mkdir()
    output_dir.mkdir()
    return input_dir, output_dir
