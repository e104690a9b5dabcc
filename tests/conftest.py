"""
Shared pytest fixtures for scoreboard tests.

Running tests:
    pytest tests/
"""
import pytest
import sys
import os
import yaml

# Add src directory to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from scoreboard.models import Team, Match


@pytest.fixture
def temp_data_dir(tmp_path, monkeypatch):
    """Point every data file at a temporary directory with one admin and one viewer."""
    from werkzeug.security import generate_password_hash
    import app as app_module

    users_file = tmp_path / "users.yaml"
    users_file.write_text(yaml.dump({'users': [
        {'username': 'admin', 'password_hash': generate_password_hash('adminpass'),
         'role': 'admin', 'created': '2026-01-01'},
        {'username': 'viewer', 'password_hash': generate_password_hash('viewerpass'),
         'role': 'viewer', 'created': '2026-01-02'},
    ]}, default_flow_style=False))

    monkeypatch.setattr(app_module, 'DATA_DIR', str(tmp_path))
    monkeypatch.setattr(app_module, 'TEAMS_FILE', str(tmp_path / "teams.yaml"))
    monkeypatch.setattr(app_module, 'MATCHES_FILE', str(tmp_path / "matches.yaml"))
    monkeypatch.setattr(app_module, 'SETTINGS_FILE', str(tmp_path / "settings.yaml"))
    monkeypatch.setattr(app_module, 'USERS_FILE', str(users_file))

    return tmp_path


@pytest.fixture
def client():
    """Create a test client signed in as the admin."""
    from app import app
    app.config['TESTING'] = True
    with app.test_client() as client:
        with client.session_transaction() as sess:
            sess['user'] = 'admin'
        yield client


@pytest.fixture
def viewer_client():
    """Create a test client signed in as a non-admin user."""
    from app import app
    app.config['TESTING'] = True
    with app.test_client() as client:
        with client.session_transaction() as sess:
            sess['user'] = 'viewer'
        yield client


@pytest.fixture
def anonymous_client():
    """Create a test client with no session."""
    from app import app
    app.config['TESTING'] = True
    with app.test_client() as client:
        yield client


@pytest.fixture
def event_active(temp_data_dir):
    """Make the scoreboard visible to viewers."""
    (temp_data_dir / "settings.yaml").write_text(yaml.dump({'event_active': True, 'event_name': 'Spring Cup'}))
    return temp_data_dir


def make_teams(points):
    """Teams named T1..Tn with the given points, ids t1..tn."""
    return [Team(id=f"t{i + 1}", name=f"T{i + 1}", points=p) for i, p in enumerate(points)]


@pytest.fixture
def sample_teams():
    """Four teams with distinct points."""
    return [
        Team(id="a", name="Alpha", points=40, wins=4, losses=0),
        Team(id="b", name="Bravo", points=30, wins=3, losses=1),
        Team(id="c", name="Charlie", points=20, wins=1, losses=3),
        Team(id="d", name="Delta", points=10, wins=0, losses=4),
    ]


@pytest.fixture
def sample_matches():
    """Two matches between the sample teams."""
    return [
        Match(id="m1", team1_id="a", team2_id="b", team1_score=16, team2_score=14,
              map_name="Dust", played_at="2026-03-01T18:00:00"),
        Match(id="m2", team1_id="c", team2_id="d", team1_score=5, team2_score=16,
              map_name="Nuke", played_at="2026-03-02T18:00:00"),
    ]


def write_teams(data_dir, teams):
    """Store Team objects in the temp teams.yaml."""
    (data_dir / "teams.yaml").write_text(yaml.dump({'teams': [t.to_dict() for t in teams]}, sort_keys=False))


def write_matches(data_dir, matches):
    """Store Match objects in the temp matches.yaml."""
    (data_dir / "matches.yaml").write_text(yaml.dump({'matches': [m.to_dict() for m in matches]}, sort_keys=False))
