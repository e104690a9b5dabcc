"""
Leaderboard views built on top of the bucket assignment.
"""
from typing import Dict, List, Optional

from scoreboard.buckets import get_bucket_display
from scoreboard.models import Match, Team


def sort_teams_by_points(teams: List[Team]) -> List[Team]:
    """Teams ordered by points, highest first. Equal points keep their input order."""
    return sorted(teams, key=lambda t: t.points, reverse=True)


def summarize_teams(teams: List[Team]) -> Dict:
    """
    Headline numbers for the scoreboard banner.

    Every match adds one win and one loss across the field, so the match count
    is half of all recorded results.
    """
    ranked = sort_teams_by_points(teams)
    return {
        'total_teams': len(teams),
        'total_matches': sum(t.wins + t.losses for t in teams) // 2,
        'top_team': ranked[0].name if ranked else None,
    }


def rank_bucket(teams: List[Team]) -> List[Dict]:
    """
    Rows for one bucket table.

    Returns: [{'rank': n, 'team': Team, 'win_rate': pct}, ...]

    Ranking: points -> wins
    """
    ordered = sorted(teams, key=lambda t: (-t.points, -t.wins))
    return [
        {'rank': i + 1, 'team': team, 'win_rate': team.win_rate}
        for i, team in enumerate(ordered)
    ]


def build_bucket_tables(teams: List[Team]) -> Dict:
    """Everything the scoreboard template needs to render the bucket grid."""
    config, buckets = get_bucket_display(teams)
    tables = [
        {'label': label, 'title': f"Group {label}", 'rows': rank_bucket(bucket_teams)}
        for label, bucket_teams in buckets.items()
    ]
    return {'config': config, 'tables': tables}


def match_history(matches: List[Match], teams: List[Team]) -> List[Dict]:
    """
    Matches newest first, each joined with the two teams it was played between.

    A match can outlive one of its teams in a hand-edited data file; the
    missing side is shown as "Unknown".
    """
    teams_by_id = {t.id: t for t in teams}
    history = []
    for match in sorted(matches, key=lambda m: m.played_at or '', reverse=True):
        team1 = teams_by_id.get(match.team1_id)
        team2 = teams_by_id.get(match.team2_id)
        history.append({
            'match': match,
            'team1_name': team1.name if team1 else 'Unknown',
            'team2_name': team2.name if team2 else 'Unknown',
            'team1_logo': team1.logo_url if team1 else None,
            'team2_logo': team2.logo_url if team2 else None,
            'winner_id': match.winner_id,
        })
    return history


def calculate_match_stats(matches: List[Match], teams: List[Team]) -> Optional[Dict]:
    """Aggregate statistics across recorded matches.

    Args:
        matches: Recorded matches.
        teams: Teams used to resolve names.

    Returns:
        Dict with matches_played, total_score, average_margin, closest_match and
        biggest_blowout, or None if no matches have been recorded.
    """
    if not matches:
        return None

    names = {t.id: t.name for t in teams}
    entries = []
    for match in matches:
        margin = abs(match.team1_score - match.team2_score)
        entries.append({
            'teams': f"{names.get(match.team1_id, 'Unknown')} vs {names.get(match.team2_id, 'Unknown')}",
            'score': f"{match.team1_score}-{match.team2_score}",
            'margin': margin,
            'total': match.team1_score + match.team2_score,
        })

    closest = min(entries, key=lambda e: e['margin'])
    biggest = max(entries, key=lambda e: e['margin'])
    return {
        'matches_played': len(entries),
        'total_score': sum(e['total'] for e in entries),
        'average_margin': round(sum(e['margin'] for e in entries) / len(entries), 1),
        'closest_match': {'teams': closest['teams'], 'score': closest['score'], 'margin': closest['margin']},
        'biggest_blowout': {'teams': biggest['teams'], 'score': biggest['score'], 'margin': biggest['margin']},
    }
