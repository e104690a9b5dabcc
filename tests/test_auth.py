"""
Tests for user authentication and admin roles.
"""
import pytest
import sys
import os
import yaml

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from app import (app, create_user, authenticate_user, load_users, is_admin,
                 change_password, list_admins, set_user_role)


@pytest.fixture
def auth_dir(tmp_path, monkeypatch):
    """Set up temp directory with an empty user registry."""
    import app as app_module

    users_file = tmp_path / 'users.yaml'
    users_file.write_text(yaml.dump({'users': []}, default_flow_style=False))

    monkeypatch.setattr(app_module, 'DATA_DIR', str(tmp_path))
    monkeypatch.setattr(app_module, 'USERS_FILE', str(users_file))
    monkeypatch.setattr(app_module, 'TEAMS_FILE', str(tmp_path / 'teams.yaml'))
    monkeypatch.setattr(app_module, 'MATCHES_FILE', str(tmp_path / 'matches.yaml'))
    monkeypatch.setattr(app_module, 'SETTINGS_FILE', str(tmp_path / 'settings.yaml'))

    return tmp_path


@pytest.fixture
def client():
    """Create a test client (unauthenticated by default)."""
    app.config['TESTING'] = True
    with app.test_client() as c:
        yield c


class TestUserCreation:
    """Tests for user registration."""

    def test_create_user_success(self, auth_dir):
        """Valid username and password creates a user."""
        ok, msg = create_user('alice', 'pass1234')
        assert ok is True
        assert 'created' in msg.lower()
        assert any(u['username'] == 'alice' for u in load_users())

    def test_first_user_is_admin(self, auth_dir):
        """The first account on a fresh install gets the admin role."""
        create_user('alice', 'pass1234')
        create_user('bob', 'pass1234')
        assert is_admin('alice') is True
        assert is_admin('bob') is False

    def test_explicit_role(self, auth_dir):
        create_user('alice', 'pass1234')
        create_user('bob', 'pass1234', role='admin')
        assert is_admin('bob') is True

    def test_unknown_role_rejected(self, auth_dir):
        ok, msg = create_user('alice', 'pass1234', role='owner')
        assert ok is False

    def test_create_user_short_username(self, auth_dir):
        """Username shorter than 2 chars is rejected."""
        ok, msg = create_user('a', 'pass1234')
        assert ok is False

    def test_create_user_invalid_chars(self, auth_dir):
        """Username with invalid characters is rejected."""
        ok, msg = create_user('al ice', 'pass1234')
        assert ok is False

    def test_create_user_short_password(self, auth_dir):
        """Password shorter than 4 chars is rejected."""
        ok, msg = create_user('alice', 'abc')
        assert ok is False

    def test_create_user_duplicate(self, auth_dir):
        """Duplicate username is rejected."""
        create_user('alice', 'pass1234')
        ok, msg = create_user('alice', 'otherpass')
        assert ok is False
        assert 'taken' in msg.lower()

    def test_create_user_case_insensitive(self, auth_dir):
        """Usernames are case-insensitive (lowercased)."""
        create_user('Alice', 'pass1234')
        ok, _ = create_user('alice', 'otherpass')
        assert ok is False

    def test_password_is_hashed(self, auth_dir):
        create_user('alice', 'pass1234')
        assert load_users()[0]['password_hash'] != 'pass1234'


class TestAuthentication:
    """Tests for login authentication."""

    def test_authenticate_valid(self, auth_dir):
        """Correct credentials return True."""
        create_user('alice', 'secret123')
        assert authenticate_user('alice', 'secret123') is True

    def test_authenticate_wrong_password(self, auth_dir):
        """Wrong password returns False."""
        create_user('alice', 'secret123')
        assert authenticate_user('alice', 'wrongpass') is False

    def test_authenticate_nonexistent_user(self, auth_dir):
        """Nonexistent user returns False."""
        assert authenticate_user('nobody', 'anything') is False

    def test_is_admin_without_user(self, auth_dir):
        assert is_admin(None) is False
        assert is_admin('nobody') is False


class TestChangePassword:
    """Tests for changing a password."""

    def test_change_password(self, auth_dir):
        create_user('alice', 'secret123')
        ok, _ = change_password('alice', 'secret123', 'newsecret')
        assert ok is True
        assert authenticate_user('alice', 'newsecret') is True
        assert authenticate_user('alice', 'secret123') is False

    def test_wrong_current_password(self, auth_dir):
        create_user('alice', 'secret123')
        ok, msg = change_password('alice', 'nope', 'newsecret')
        assert ok is False
        assert 'incorrect' in msg.lower()

    def test_new_password_too_short(self, auth_dir):
        create_user('alice', 'secret123')
        ok, _ = change_password('alice', 'secret123', 'abc')
        assert ok is False


class TestRoles:
    """Tests for granting and revoking admin."""

    def test_grant_admin(self, auth_dir):
        create_user('alice', 'pass1234')
        create_user('bob', 'pass1234')
        ok, _ = set_user_role('bob', 'admin')
        assert ok is True
        assert [u['username'] for u in list_admins()] == ['alice', 'bob']

    def test_revoke_admin(self, auth_dir):
        create_user('alice', 'pass1234')
        create_user('bob', 'pass1234', role='admin')
        ok, _ = set_user_role('alice', 'viewer')
        assert ok is True
        assert is_admin('alice') is False

    def test_cannot_revoke_last_admin(self, auth_dir):
        create_user('alice', 'pass1234')
        ok, msg = set_user_role('alice', 'viewer')
        assert ok is False
        assert 'last admin' in msg.lower()
        assert is_admin('alice') is True

    def test_unknown_user(self, auth_dir):
        ok, msg = set_user_role('ghost', 'admin')
        assert ok is False
        assert 'not found' in msg.lower()


class TestAuthRoutes:
    """Tests for login, registration and logout pages."""

    def test_login_page_renders(self, auth_dir, client):
        response = client.get('/login')
        assert response.status_code == 200
        assert b'Sign In' in response.data

    def test_login_success(self, auth_dir, client):
        create_user('alice', 'secret123')
        response = client.post('/login', data={'username': 'alice', 'password': 'secret123'})
        assert response.status_code == 302
        with client.session_transaction() as sess:
            assert sess['user'] == 'alice'

    def test_login_failure(self, auth_dir, client):
        create_user('alice', 'secret123')
        response = client.post('/login', data={'username': 'alice', 'password': 'bad'})
        assert response.status_code == 200
        assert b'Invalid username or password' in response.data

    def test_viewer_login_is_view_only(self, auth_dir, client):
        create_user('alice', 'secret123')
        create_user('bob', 'secret123')
        response = client.post('/login', data={'username': 'bob', 'password': 'secret123'},
                               follow_redirects=True)
        assert b'no admin access' in response.data

    def test_register_creates_admin_on_fresh_install(self, auth_dir, client):
        response = client.post('/register', data={
            'username': 'alice', 'password': 'secret123', 'confirm_password': 'secret123'})
        assert response.status_code == 302
        assert is_admin('alice') is True

    def test_register_password_mismatch(self, auth_dir, client):
        response = client.post('/register', data={
            'username': 'alice', 'password': 'secret123', 'confirm_password': 'other'})
        assert b'Passwords do not match' in response.data
        assert load_users() == []

    def test_logout_clears_session(self, auth_dir, client):
        with client.session_transaction() as sess:
            sess['user'] = 'alice'
        client.get('/logout')
        with client.session_transaction() as sess:
            assert 'user' not in sess

    def test_change_password_requires_login(self, auth_dir, client):
        response = client.get('/account/password')
        assert response.status_code == 302
        assert '/login' in response.headers['Location']

    def test_change_password_route(self, auth_dir, client):
        create_user('alice', 'secret123')
        with client.session_transaction() as sess:
            sess['user'] = 'alice'
        response = client.post('/account/password', data={
            'current_password': 'secret123', 'new_password': 'changed1', 'confirm_password': 'changed1'})
        assert response.status_code == 302
        assert authenticate_user('alice', 'changed1') is True
