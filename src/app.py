"""
Flask web application for the Tournament Scoreboard.
"""
import os
import re
import time
import uuid
import yaml
from datetime import datetime, timedelta
from functools import wraps
from filelock import FileLock
from flask import Flask, render_template, request, jsonify, redirect, url_for, flash, Response, stream_with_context, session, g, abort
from werkzeug.security import generate_password_hash, check_password_hash
from scoreboard.models import Team, Match
from scoreboard.buckets import get_bucket_display, get_team_bucket_assignments, get_available_buckets
from scoreboard.standings import sort_teams_by_points, summarize_teams, build_bucket_tables, match_history, calculate_match_stats
from scoreboard.validation import validate_team, validate_match

app = Flask(__name__)


BASE_DIR = os.path.dirname(os.path.dirname(__file__))
DATA_DIR = os.environ.get('SCOREBOARD_DATA_DIR', os.path.join(BASE_DIR, 'data'))
SECRET_KEY_FILE = os.path.join(DATA_DIR, '.secret_key')
os.makedirs(DATA_DIR, exist_ok=True)


def _load_secret_key(key_file: str) -> bytes:
    """SECRET_KEY from the environment, else the key stored in the data dir (created on first run)."""
    configured = os.environ.get('SECRET_KEY')
    if configured:
        return configured.encode()
    if not os.path.exists(key_file):
        with open(key_file, 'wb') as f:
            f.write(os.urandom(24))
    with open(key_file, 'rb') as f:
        return f.read()


app.secret_key = _load_secret_key(SECRET_KEY_FILE)
app.config['PERMANENT_SESSION_LIFETIME'] = timedelta(days=30)

TEAMS_FILE = os.path.join(DATA_DIR, 'teams.yaml')
MATCHES_FILE = os.path.join(DATA_DIR, 'matches.yaml')
SETTINGS_FILE = os.path.join(DATA_DIR, 'settings.yaml')
USERS_FILE = os.path.join(DATA_DIR, 'users.yaml')
_data_lock = FileLock(os.path.join(DATA_DIR, '.lock'), timeout=10)

ROLE_ADMIN = 'admin'
ROLE_VIEWER = 'viewer'
MAX_EVENT_NAME_LENGTH = 100
# Seconds between data file checks in the live stream
LIVE_POLL_SECONDS = 3
LIVE_HEARTBEAT_SECONDS = 15


def _load_yaml(path: str):
    """Read a YAML data file. Missing, empty or unreadable files give None."""
    if not os.path.exists(path):
        return None
    try:
        with open(path, 'r', encoding='utf-8') as f:
            return yaml.safe_load(f)
    except yaml.YAMLError as e:
        app.logger.warning(f'Failed to parse {path}: {e}')
        return None


def _save_yaml(path: str, data):
    os.makedirs(os.path.dirname(path), exist_ok=True)
    with open(path, 'w', encoding='utf-8') as f:
        yaml.dump(data, f, default_flow_style=False, sort_keys=False)


def _now() -> str:
    return datetime.now().isoformat()


# ---------------------------------------------------------------------------
# Users and roles
# ---------------------------------------------------------------------------

def load_users() -> list:
    """Load user registry from YAML."""
    data = _load_yaml(USERS_FILE)
    if not isinstance(data, dict):
        return []
    return data.get('users', []) or []


def save_users(users: list):
    """Save user registry to YAML."""
    _save_yaml(USERS_FILE, {'users': users})


def create_user(username: str, password: str, role: str = None) -> tuple:
    """Create a new user. Returns (success, message).

    The very first account becomes an admin so a fresh install can be managed.
    """
    username = username.lower().strip()
    if not re.match(r'^[a-z0-9][a-z0-9-]*$', username) or len(username) < 2:
        return False, 'Username must be at least 2 characters: letters, numbers, hyphens.'
    if len(password) < 4:
        return False, 'Password must be at least 4 characters.'
    if role not in (None, ROLE_ADMIN, ROLE_VIEWER):
        return False, f'Unknown role "{role}".'
    with _data_lock:
        users = load_users()
        if any(u['username'] == username for u in users):
            return False, 'Username already taken.'
        if role is None:
            role = ROLE_ADMIN if not users else ROLE_VIEWER
        users.append({
            'username': username,
            'password_hash': generate_password_hash(password),
            'role': role,
            'created': _now()
        })
        save_users(users)
    app.logger.info(f'Created {role} account "{username}"')
    return True, 'Account created successfully.'


def authenticate_user(username: str, password: str) -> bool:
    """Check username/password. Returns True if valid."""
    for u in load_users():
        if u['username'] == username.lower().strip():
            return check_password_hash(u['password_hash'], password)
    return False


def is_admin(username: str) -> bool:
    """True if the user exists and holds the admin role."""
    if not username:
        return False
    return any(u['username'] == username and u.get('role') == ROLE_ADMIN for u in load_users())


def change_password(username: str, current_password: str, new_password: str) -> tuple:
    """Replace a user's password after checking the current one. Returns (success, message)."""
    if len(new_password) < 4:
        return False, 'Password must be at least 4 characters.'
    with _data_lock:
        users = load_users()
        for u in users:
            if u['username'] == username:
                if not check_password_hash(u['password_hash'], current_password):
                    return False, 'Current password is incorrect.'
                u['password_hash'] = generate_password_hash(new_password)
                save_users(users)
                return True, 'Password updated.'
    return False, 'User not found.'


def list_admins() -> list:
    """Admin accounts, oldest first."""
    return [u for u in load_users() if u.get('role') == ROLE_ADMIN]


def set_user_role(username: str, role: str) -> tuple:
    """Grant or revoke admin. Returns (success, message).

    The last remaining admin cannot be demoted.
    """
    username = (username or '').lower().strip()
    if role not in (ROLE_ADMIN, ROLE_VIEWER):
        return False, f'Unknown role "{role}".'
    with _data_lock:
        users = load_users()
        user = next((u for u in users if u['username'] == username), None)
        if user is None:
            return False, f'User "{username}" not found.'
        if role == ROLE_VIEWER and user.get('role') == ROLE_ADMIN:
            if sum(1 for u in users if u.get('role') == ROLE_ADMIN) <= 1:
                return False, 'Cannot remove the last admin.'
        user['role'] = role
        save_users(users)
    app.logger.info(f'Set role of "{username}" to {role}')
    return True, f'"{username}" is now {"an admin" if role == ROLE_ADMIN else "a viewer"}.'


def login_required(f):
    """Redirect to login page if user not authenticated."""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if 'user' not in session:
            return redirect(url_for('login_page'))
        return f(*args, **kwargs)
    return decorated_function


def admin_required(f):
    """Only admins may call the wrapped view. API routes get JSON errors, pages a redirect."""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if not g.get('is_admin'):
            if request.path.startswith('/api/'):
                return jsonify({'success': False, 'error': 'Admin access required'}), 403
            flash('Admin access required.', 'error')
            return redirect(url_for('login_page'))
        return f(*args, **kwargs)
    return decorated_function


# ---------------------------------------------------------------------------
# Data files
# ---------------------------------------------------------------------------

def load_teams() -> list:
    """Load teams from YAML file, in stored order."""
    data = _load_yaml(TEAMS_FILE)
    if not isinstance(data, dict):
        return []
    return [Team.from_dict(t) for t in data.get('teams', []) or []]


def save_teams(teams: list):
    """Save teams to YAML file."""
    _save_yaml(TEAMS_FILE, {'teams': [t.to_dict() for t in teams]})


def load_matches() -> list:
    """Load recorded matches from YAML file."""
    data = _load_yaml(MATCHES_FILE)
    if not isinstance(data, dict):
        return []
    return [Match.from_dict(m) for m in data.get('matches', []) or []]


def save_matches(matches: list):
    """Save matches to YAML file."""
    _save_yaml(MATCHES_FILE, {'matches': [m.to_dict() for m in matches]})


def get_default_settings():
    """Return default event settings."""
    return {
        'event_active': False,
        'event_name': 'Tournament Scoreboard',
    }


def load_settings():
    """Load event settings from YAML file, merging with defaults."""
    defaults = get_default_settings()
    data = _load_yaml(SETTINGS_FILE)
    if not isinstance(data, dict):
        return defaults
    return {**defaults, **data}


def save_settings(settings):
    """Save event settings to YAML file."""
    _save_yaml(SETTINGS_FILE, settings)


def add_team(fields: dict) -> Team:
    """Store a new team built from validated fields."""
    now = _now()
    team = Team(id=str(uuid.uuid4()), created_at=now, updated_at=now, **fields)
    with _data_lock:
        teams = load_teams()
        teams.append(team)
        save_teams(teams)
    app.logger.info(f'Added team "{team.name}" ({team.id})')
    return team


def update_team(team_id: str, fields: dict):
    """Apply validated fields to a stored team. Returns the team, or None if unknown."""
    with _data_lock:
        teams = load_teams()
        team = next((t for t in teams if t.id == team_id), None)
        if team is None:
            return None
        for key, value in fields.items():
            setattr(team, key, value)
        team.updated_at = _now()
        save_teams(teams)
    app.logger.info(f'Updated team "{team.name}" ({team.id})')
    return team


def delete_team(team_id: str) -> bool:
    """Remove a team and every match it played in."""
    with _data_lock:
        teams = load_teams()
        remaining = [t for t in teams if t.id != team_id]
        if len(remaining) == len(teams):
            return False
        save_teams(remaining)
        matches = load_matches()
        kept_matches = [m for m in matches if not m.involves(team_id)]
        if len(kept_matches) != len(matches):
            save_matches(kept_matches)
    app.logger.info(f'Deleted team {team_id} and {len(matches) - len(kept_matches)} of its matches')
    return True


def add_match(fields: dict) -> Match:
    """Store a new match built from validated fields."""
    now = _now()
    if not fields.get('played_at'):
        fields = {**fields, 'played_at': now}
    match = Match(id=str(uuid.uuid4()), created_at=now, **fields)
    with _data_lock:
        matches = load_matches()
        matches.append(match)
        save_matches(matches)
    app.logger.info(f'Recorded match {match.team1_id} vs {match.team2_id} ({match.team1_score}-{match.team2_score})')
    return match


def delete_match(match_id: str) -> bool:
    with _data_lock:
        matches = load_matches()
        remaining = [m for m in matches if m.id != match_id]
        if len(remaining) == len(matches):
            return False
        save_matches(remaining)
    app.logger.info(f'Deleted match {match_id}')
    return True


# ---------------------------------------------------------------------------
# Request context
# ---------------------------------------------------------------------------

@app.before_request
def load_current_user():
    """Resolve the logged-in user and their role once per request."""
    g.user = session.get('user')
    g.is_admin = is_admin(g.user)


@app.context_processor
def inject_user_context():
    """Make user and event info available to all templates."""
    return {
        'current_user': g.get('user'),
        'is_admin': g.get('is_admin', False),
        'settings': load_settings(),
    }


def _scoreboard_visible() -> bool:
    """Viewers only see the scoreboard while the event is live; admins always do."""
    return bool(load_settings().get('event_active')) or g.get('is_admin', False)


def _get_scoreboard_data() -> dict:
    """Build the template context for the scoreboard page and its live partial."""
    teams = load_teams()
    matches = load_matches()
    bucket_view = build_bucket_tables(teams)
    return dict(
        teams=sort_teams_by_points(teams),
        config=bucket_view['config'],
        tables=bucket_view['tables'],
        summary=summarize_teams(teams),
        history=match_history(matches, teams),
        match_stats=calculate_match_stats(matches, teams),
    )


# ---------------------------------------------------------------------------
# Pages
# ---------------------------------------------------------------------------

@app.route('/login', methods=['GET', 'POST'])
def login_page():
    """Login form and authentication."""
    if 'user' in session and g.is_admin:
        return redirect(url_for('index'))
    if request.method == 'POST':
        username = request.form.get('username', '')
        password = request.form.get('password', '')
        if authenticate_user(username, password):
            session['user'] = username.lower().strip()
            session.permanent = True
            if not is_admin(session['user']):
                flash('Signed in, but this account has no admin access. View only mode.', 'info')
            return redirect(url_for('index'))
        flash('Invalid username or password.', 'error')
    return render_template('login.html')


@app.route('/register', methods=['GET', 'POST'])
def register_page():
    """Registration form and user creation."""
    if 'user' in session:
        return redirect(url_for('index'))
    if request.method == 'POST':
        username = request.form.get('username', '')
        password = request.form.get('password', '')
        confirm = request.form.get('confirm_password', '')
        if password != confirm:
            flash('Passwords do not match.', 'error')
        else:
            ok, msg = create_user(username, password)
            if ok:
                session['user'] = username.lower().strip()
                session.permanent = True
                flash(msg, 'success')
                return redirect(url_for('index'))
            flash(msg, 'error')
    return render_template('register.html')


@app.route('/logout')
def logout():
    """Clear session and redirect to the scoreboard."""
    session.clear()
    flash('Signed out.', 'success')
    return redirect(url_for('index'))


@app.route('/account/password', methods=['GET', 'POST'])
@login_required
def change_password_page():
    """Let a signed-in user set a new password."""
    if request.method == 'POST':
        new_password = request.form.get('new_password', '')
        if new_password != request.form.get('confirm_password', ''):
            flash('Passwords do not match.', 'error')
        else:
            ok, msg = change_password(session['user'], request.form.get('current_password', ''), new_password)
            flash(msg, 'success' if ok else 'error')
            if ok:
                return redirect(url_for('index'))
    return render_template('change_password.html')


@app.route('/')
def index():
    """Scoreboard page, or the coming-soon page while the event is hidden."""
    if not _scoreboard_visible():
        return render_template('coming_soon.html')
    return render_template('scoreboard.html', **_get_scoreboard_data())


@app.route('/admins')
@admin_required
def admins_page():
    """Admin management page."""
    admins = list_admins()
    admin_names = {u['username'] for u in admins}
    return render_template('admins.html',
                           admins=admins,
                           viewers=[u for u in load_users() if u['username'] not in admin_names])


# ---------------------------------------------------------------------------
# Live updates
# ---------------------------------------------------------------------------

@app.route('/api/scoreboard-html')
def api_scoreboard_html():
    """Return only the inner HTML of the scoreboard (partial template)."""
    if not _scoreboard_visible():
        abort(404)
    return render_template('scoreboard_content.html', **_get_scoreboard_data())


def _get_data_file_mtimes() -> dict:
    """Modification time of each scoreboard data file, 0.0 for files not written yet."""
    return {path: os.path.getmtime(path) if os.path.exists(path) else 0.0
            for path in (TEAMS_FILE, MATCHES_FILE, SETTINGS_FILE)}


def _live_events():
    """SSE messages: 'connected' at once, then 'update' whenever a data file changes."""
    yield "event: connected\ndata: ok\n\n"
    seen = _get_data_file_mtimes()
    idle = 0
    while True:
        time.sleep(LIVE_POLL_SECONDS)
        current = _get_data_file_mtimes()
        if current != seen:
            seen = current
            idle = 0
            yield f"event: update\ndata: {time.time()}\n\n"
            continue
        idle += LIVE_POLL_SECONDS
        if idle >= LIVE_HEARTBEAT_SECONDS:
            idle = 0
            yield ": heartbeat\n\n"


@app.route('/api/live-stream')
def api_live_stream():
    """Push a message to viewers whenever teams, matches or settings change."""
    return Response(stream_with_context(_live_events()), mimetype='text/event-stream',
                    headers={'Cache-Control': 'no-cache', 'X-Accel-Buffering': 'no'})


# ---------------------------------------------------------------------------
# JSON API
# ---------------------------------------------------------------------------

@app.route('/api/buckets')
def api_buckets():
    """Current bucket layout: configuration, labels, members and per-team lookup."""
    if not _scoreboard_visible():
        return jsonify({'success': False, 'error': 'Scoreboard is not live yet'}), 404
    teams = load_teams()
    config, buckets = get_bucket_display(teams)
    return jsonify({
        'success': True,
        'config': config.to_dict(),
        'labels': get_available_buckets(len(teams), config),
        'buckets': {label: [t.to_dict() for t in bucket_teams] for label, bucket_teams in buckets.items()},
        'assignments': get_team_bucket_assignments(teams),
    })


@app.route('/api/teams', methods=['GET'])
def api_teams():
    """List teams, highest points first."""
    if not _scoreboard_visible():
        return jsonify({'success': False, 'error': 'Scoreboard is not live yet'}), 404
    return jsonify({'success': True, 'teams': [t.to_dict() for t in sort_teams_by_points(load_teams())]})


@app.route('/api/teams/add', methods=['POST'])
@admin_required
def api_add_team():
    """Add a team."""
    fields, error = validate_team(request.get_json(silent=True))
    if error:
        return jsonify({'success': False, 'error': error}), 400
    team = add_team(fields)
    return jsonify({'success': True, 'team': team.to_dict()})


@app.route('/api/teams/update', methods=['POST'])
@admin_required
def api_update_team():
    """Update some or all fields of a team."""
    data = request.get_json(silent=True)
    if not isinstance(data, dict) or not data.get('id'):
        return jsonify({'success': False, 'error': 'No ID provided'}), 400
    fields, error = validate_team({k: v for k, v in data.items() if k != 'id'}, partial=True)
    if error:
        return jsonify({'success': False, 'error': error}), 400
    team = update_team(str(data['id']), fields)
    if team is None:
        return jsonify({'success': False, 'error': 'Team not found'}), 404
    return jsonify({'success': True, 'team': team.to_dict()})


@app.route('/api/teams/delete', methods=['POST'])
@admin_required
def api_delete_team():
    """Delete a team by ID, along with its matches."""
    data = request.get_json(silent=True)
    if not isinstance(data, dict) or 'id' not in data:
        return jsonify({'success': False, 'error': 'No ID provided'}), 400
    if not delete_team(str(data['id'])):
        return jsonify({'success': False, 'error': 'Team not found'}), 404
    return jsonify({'success': True})


@app.route('/api/matches', methods=['GET'])
def api_matches():
    """Match history, newest first."""
    if not _scoreboard_visible():
        return jsonify({'success': False, 'error': 'Scoreboard is not live yet'}), 404
    history = match_history(load_matches(), load_teams())
    return jsonify({'success': True, 'matches': [
        {**entry['match'].to_dict(), 'team1_name': entry['team1_name'], 'team2_name': entry['team2_name']}
        for entry in history
    ]})


@app.route('/api/matches/add', methods=['POST'])
@admin_required
def api_add_match():
    """Record a match between two existing teams."""
    fields, error = validate_match(request.get_json(silent=True), [t.id for t in load_teams()])
    if error:
        return jsonify({'success': False, 'error': error}), 400
    match = add_match(fields)
    return jsonify({'success': True, 'match': match.to_dict()})


@app.route('/api/matches/delete', methods=['POST'])
@admin_required
def api_delete_match():
    """Delete a match by ID."""
    data = request.get_json(silent=True)
    if not isinstance(data, dict) or 'id' not in data:
        return jsonify({'success': False, 'error': 'No ID provided'}), 400
    if not delete_match(str(data['id'])):
        return jsonify({'success': False, 'error': 'Match not found'}), 404
    return jsonify({'success': True})


@app.route('/api/settings/toggle-event', methods=['POST'])
@admin_required
def api_toggle_event():
    """Show or hide the scoreboard for viewers."""
    with _data_lock:
        settings = load_settings()
        settings['event_active'] = not settings.get('event_active', False)
        save_settings(settings)
    app.logger.info(f'Scoreboard {"visible" if settings["event_active"] else "hidden"} for viewers')
    return jsonify({'success': True, 'event_active': settings['event_active']})


@app.route('/api/settings/update', methods=['POST'])
@admin_required
def api_update_settings():
    """Update the event name."""
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        return jsonify({'success': False, 'error': 'No data provided'}), 400
    event_name = str(data.get('event_name', '')).strip()
    if not event_name:
        return jsonify({'success': False, 'error': 'Event name is required'}), 400
    if len(event_name) > MAX_EVENT_NAME_LENGTH:
        return jsonify({'success': False, 'error': 'Event name too long'}), 400
    with _data_lock:
        settings = load_settings()
        settings['event_name'] = event_name
        save_settings(settings)
    return jsonify({'success': True, 'settings': settings})


@app.route('/api/admins/grant', methods=['POST'])
@admin_required
def api_grant_admin():
    """Give an existing user the admin role."""
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        data = {}
    ok, msg = set_user_role(data.get('username', ''), ROLE_ADMIN)
    if not ok:
        return jsonify({'success': False, 'error': msg}), 400
    return jsonify({'success': True, 'message': msg})


@app.route('/api/admins/revoke', methods=['POST'])
@admin_required
def api_revoke_admin():
    """Take the admin role away from a user."""
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        data = {}
    ok, msg = set_user_role(data.get('username', ''), ROLE_VIEWER)
    if not ok:
        return jsonify({'success': False, 'error': msg}), 400
    return jsonify({'success': True, 'message': msg})


if __name__ == '__main__':
    app.run(debug=True, port=5000)
