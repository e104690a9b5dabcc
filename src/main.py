# Command line entry point: print the leaderboard buckets for a teams file

import os
import sys
import yaml
from scoreboard.models import Team
from scoreboard.buckets import get_bucket_display


def load_teams(file_path):
    """
    Load teams from a YAML file.

    Accepts the web app's teams.yaml ({'teams': [...]}) or a bare list. Teams
    without an id use their name as id, or team-N (their position) when unnamed.
    """
    with open(file_path, mode='r', encoding='utf-8') as file:
        data = yaml.safe_load(file)
    if not data:
        return []
    entries = data.get('teams', []) if isinstance(data, dict) else data
    teams = []
    for position, entry in enumerate(entries or [], start=1):
        if isinstance(entry, str):
            entry = {'name': entry}
        entry = dict(entry)
        if entry.get('id') is None:
            entry['id'] = entry.get('name') or f'team-{position}'
        if not entry.get('name'):
            entry['name'] = str(entry['id'])
        teams.append(Team.from_dict(entry))
    return teams


def format_buckets(teams):
    """Return printable lines for the bucket layout of the given teams."""
    config, buckets = get_bucket_display(teams)
    summary = f"{config.total_teams} teams -> {config.buckets} bucket(s) of {config.teams_per_bucket}"
    if config.note:
        summary += f" ({config.note})"
    lines = [summary]
    for label, bucket_teams in buckets.items():
        lines.append('')
        lines.append(f"# Bucket {label}")
        for rank, team in enumerate(bucket_teams, start=1):
            lines.append(f"{rank}. {team.name} - {team.points} pts")
    return lines


def main():
    script_dir = os.path.dirname(__file__)
    base_dir = os.path.dirname(script_dir)

    # Use command line argument if provided, otherwise use default path
    teams_file = sys.argv[1] if len(sys.argv) > 1 else os.path.join(base_dir, 'data', 'teams.yaml')

    if not os.path.exists(teams_file):
        print(f"Teams file not found: {teams_file}")
        return 1

    teams = load_teams(teams_file)
    if not teams:
        print(f"No teams loaded. Check {teams_file}")
        return 0

    for line in format_buckets(teams):
        print(line)
    return 0


if __name__ == '__main__':
    sys.exit(main())
