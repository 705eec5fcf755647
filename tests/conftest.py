"""
Shared pytest fixtures for bracket and scoreboard tests.

Running tests:
    pytest tests/                  - full suite
    pytest tests/ -m "not slow"   - fast subset, skips exhaustive bracket sweeps
"""
import pytest
import sys
import os

# Add src directory to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from filelock import FileLock
from bracket_helpers import make_teams
from tourney.elimination import generate_single_elimination_bracket
from tourney.models import MatchRules


@pytest.fixture
def rules():
    return MatchRules(first_to=21, win_by=2, cap=30, best_of=3)


@pytest.fixture
def single_set_rules():
    return MatchRules(first_to=21, win_by=2, cap=30, best_of=1)


@pytest.fixture
def eight_teams():
    return make_teams(8)


@pytest.fixture
def bracket8(eight_teams):
    return generate_single_elimination_bracket(eight_teams, 'gold')


@pytest.fixture
def bracket5():
    return generate_single_elimination_bracket(make_teams(5), 'gold')


@pytest.fixture
def client(temp_data_dir):
    """Create a test client bound to a temporary data directory."""
    from app import app
    app.config['TESTING'] = True
    with app.test_client() as client:
        yield client


@pytest.fixture
def temp_data_dir(tmp_path, monkeypatch):
    """Point the app's storage and lock at a temporary directory."""
    data_dir = tmp_path / "data"
    data_dir.mkdir()
    # Only matters for the first import of app
    monkeypatch.setenv('TOURNAMENT_DATA_DIR', str(data_dir))
    import app as app_module

    monkeypatch.setattr(app_module, 'DATA_DIR', str(data_dir))
    monkeypatch.setattr(app_module, '_data_lock', FileLock(str(data_dir / '.lock'), timeout=10))
    return data_dir

