"""
Input checks for team and match submissions.

Both validators return a (data, error) tuple: the cleaned values and None on
success, or None and a message suitable for showing to the user.
"""
from datetime import datetime
from typing import Dict, Iterable, Optional, Tuple
from urllib.parse import urlparse

MAX_TEAM_NAME_LENGTH = 50
MAX_MAP_NAME_LENGTH = 50
TEAM_STAT_FIELDS = ('wins', 'losses', 'points')


def _to_non_negative_int(value, label: str) -> Tuple[Optional[int], Optional[str]]:
    if value is None or (isinstance(value, str) and not value.strip()):
        return 0, None
    if isinstance(value, bool):
        return None, f'{label} must be a whole number.'
    try:
        number = int(value)
    except (TypeError, ValueError):
        return None, f'{label} must be a whole number.'
    if isinstance(value, float) and value != number:
        return None, f'{label} must be a whole number.'
    if number < 0:
        return None, f'{label} cannot be negative.'
    return number, None


def _to_iso_timestamp(value) -> Tuple[Optional[str], Optional[str]]:
    """Normalize a submitted date or datetime to ISO text. Blank means "not given"."""
    text = str(value or '').strip()
    if not text:
        return None, None
    if text.endswith('Z'):
        text = text[:-1] + '+00:00'
    try:
        return datetime.fromisoformat(text).isoformat(), None
    except ValueError:
        return None, 'Played at must be an ISO date or datetime.'


def is_valid_url(value: str) -> bool:
    parsed = urlparse(value)
    return parsed.scheme in ('http', 'https') and bool(parsed.netloc)


def validate_team(data: Dict, partial: bool = False) -> Tuple[Optional[Dict], Optional[str]]:
    """
    Validate a team submission.

    With partial=True only the fields present in data are checked and returned
    (used for updates).
    """
    if not isinstance(data, dict):
        return None, 'No data provided.'
    cleaned = {}

    if 'name' in data or not partial:
        name = str(data.get('name') or '').strip()
        if not name:
            return None, 'Team name is required.'
        if len(name) > MAX_TEAM_NAME_LENGTH:
            return None, 'Team name too long.'
        cleaned['name'] = name

    if 'logo_url' in data or not partial:
        logo_url = str(data.get('logo_url') or '').strip()
        if logo_url and not is_valid_url(logo_url):
            return None, 'Logo must be a valid URL.'
        cleaned['logo_url'] = logo_url or None

    for field in TEAM_STAT_FIELDS:
        if field in data or not partial:
            value, error = _to_non_negative_int(data.get(field), field.capitalize())
            if error:
                return None, error
            cleaned[field] = value

    return cleaned, None


def validate_match(data: Dict, team_ids: Iterable[str]) -> Tuple[Optional[Dict], Optional[str]]:
    """Validate a match submission against the ids of the existing teams."""
    if not isinstance(data, dict):
        return None, 'No data provided.'
    known = set(team_ids)

    team1_id = str(data.get('team1_id') or '').strip()
    team2_id = str(data.get('team2_id') or '').strip()
    if not team1_id or not team2_id:
        return None, 'Both teams are required.'
    if team1_id == team2_id:
        return None, 'A team cannot play against itself.'
    for team_id in (team1_id, team2_id):
        if team_id not in known:
            return None, f'Unknown team "{team_id}".'

    cleaned = {'team1_id': team1_id, 'team2_id': team2_id}
    for field, label in (('team1_score', 'Team 1 score'), ('team2_score', 'Team 2 score')):
        value, error = _to_non_negative_int(data.get(field), label)
        if error:
            return None, error
        cleaned[field] = value

    map_name = str(data.get('map_name') or '').strip()
    if len(map_name) > MAX_MAP_NAME_LENGTH:
        return None, 'Map name too long.'
    cleaned['map_name'] = map_name or None

    played_at, error = _to_iso_timestamp(data.get('played_at'))
    if error:
        return None, error
    cleaned['played_at'] = played_at
    return cleaned, None
