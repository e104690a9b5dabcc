"""
Balanced bucket assignment for the leaderboard.

Teams are split into equally sized display groups ("buckets"). The bucket
count is picked from the factor pairs of the team count, preferring the pair
whose bucket count is closest to the square root (a near-square grid). Teams
are then dealt into the buckets in snake-draft order by points:

    Round 1: A, B, C
    Round 2: C, B, A
    Round 3: A, B, C
"""
import logging
import math
from typing import Dict, List, Optional, Tuple

logger = logging.getLogger(__name__)

NOTE_NO_TEAMS = "no teams to distribute"
NOTE_SINGLE_TEAM = "single team"
NOTE_PRIME = "equal division not possible (prime number)"
NOTE_NO_FACTOR_PAIRS = "single bucket (no valid factor pairs)"


class BucketConfiguration:
    def __init__(self, total_teams, buckets, teams_per_bucket, balanced=True, note=None):
        self.total_teams = total_teams
        self.buckets = buckets
        self.teams_per_bucket = teams_per_bucket
        self.balanced = balanced
        self.note = note

    def to_dict(self) -> Dict:
        data = {
            'total_teams': self.total_teams,
            'buckets': self.buckets,
            'teams_per_bucket': self.teams_per_bucket,
            'balanced': self.balanced,
        }
        if self.note is not None:
            data['note'] = self.note
        return data

    def __eq__(self, other):
        if not isinstance(other, BucketConfiguration):
            return NotImplemented
        return self.to_dict() == other.to_dict()

    def __repr__(self):
        return (f"BucketConfiguration(total_teams={self.total_teams}, buckets={self.buckets}, "
                f"teams_per_bucket={self.teams_per_bucket}, balanced={self.balanced}, note={self.note!r})")


def is_prime(n: int) -> bool:
    """Trial division up to sqrt(n), stepping 6k +/- 1 after 2 and 3."""
    if n <= 1:
        return False
    if n <= 3:
        return True
    if n % 2 == 0 or n % 3 == 0:
        return False
    i = 5
    while i * i <= n:
        if n % i == 0 or n % (i + 2) == 0:
            return False
        i += 6
    return True


def get_factor_pairs(n: int) -> List[Tuple[int, int]]:
    """
    Return every (buckets, teams_per_bucket) pair with buckets * teams_per_bucket == n,
    sorted by ascending bucket count.
    """
    pairs = []
    for i in range(1, math.isqrt(n) + 1):
        if n % i == 0:
            pairs.append((i, n // i))
            if i != n // i:
                pairs.append((n // i, i))
    return sorted(pairs)


def calculate_optimal_buckets(total_teams: int) -> BucketConfiguration:
    """
    Pick the bucket layout for a number of teams.

    Zero, one or a prime number of teams always gives a single bucket, since
    any split into more than one bucket would be uneven. Otherwise the
    non-trivial factor pair whose bucket count is closest to sqrt(total_teams)
    wins; on a tie the smaller bucket count is kept.
    """
    if total_teams <= 1:
        return BucketConfiguration(
            total_teams=total_teams,
            buckets=1,
            teams_per_bucket=total_teams,
            balanced=True,
            note=NOTE_NO_TEAMS if total_teams == 0 else NOTE_SINGLE_TEAM,
        )

    if is_prime(total_teams):
        return BucketConfiguration(
            total_teams=total_teams,
            buckets=1,
            teams_per_bucket=total_teams,
            balanced=True,
            note=NOTE_PRIME,
        )

    # Drop (1, n) and (n, 1) so composite counts always get several buckets
    valid_pairs = [pair for pair in get_factor_pairs(total_teams) if 1 < pair[0] < total_teams]
    if not valid_pairs:
        return BucketConfiguration(
            total_teams=total_teams,
            buckets=1,
            teams_per_bucket=total_teams,
            balanced=True,
            note=NOTE_NO_FACTOR_PAIRS,
        )

    target = math.sqrt(total_teams)
    best_pair = valid_pairs[0]
    best_distance = abs(best_pair[0] - target)
    for pair in valid_pairs[1:]:
        distance = abs(pair[0] - target)
        # Strict comparison keeps the earlier (smaller) bucket count on ties
        if distance < best_distance:
            best_pair = pair
            best_distance = distance

    logger.debug("%d teams -> %d buckets of %d", total_teams, best_pair[0], best_pair[1])
    return BucketConfiguration(
        total_teams=total_teams,
        buckets=best_pair[0],
        teams_per_bucket=best_pair[1],
        balanced=True,
    )


def bucket_label(index: int) -> str:
    """Letter label for a bucket index: 0 -> A, 25 -> Z, 26 -> AA."""
    label = ''
    index += 1
    while index > 0:
        index, remainder = divmod(index - 1, 26)
        label = chr(65 + remainder) + label
    return label


def snake_order(num_items: int, num_buckets: int) -> List[int]:
    """Bucket index for each of num_items ranked items, dealt in snake-draft order."""
    order = []
    if num_buckets < 1:
        return order
    forward = True
    bucket_index = 0
    for _ in range(num_items):
        order.append(bucket_index)
        if forward:
            bucket_index += 1
            if bucket_index >= num_buckets:
                bucket_index = num_buckets - 1
                forward = False
        else:
            bucket_index -= 1
            if bucket_index < 0:
                bucket_index = 0
                forward = True
    return order


def _points(team) -> int:
    if isinstance(team, dict):
        return team['points']
    return team.points


def _team_id(team) -> str:
    if isinstance(team, dict):
        return team['id']
    return team.id


def distribute_teams_into_buckets(teams: List, config: BucketConfiguration) -> Dict[str, List]:
    """
    Deal teams into config.buckets labeled buckets.

    Teams are ranked by points (descending, stable so equal points keep their
    input order) and dealt in snake-draft order, so every bucket list comes out
    already ranked. Teams may be objects with id/points attributes or dicts
    with 'id'/'points' keys; they are never modified.
    """
    buckets = {bucket_label(i): [] for i in range(config.buckets)}
    if not teams:
        return buckets

    sorted_teams = sorted(teams, key=_points, reverse=True)
    labels = list(buckets.keys())
    for team, bucket_index in zip(sorted_teams, snake_order(len(sorted_teams), len(labels))):
        buckets[labels[bucket_index]].append(team)
    return buckets


def get_bucket_display(teams: List) -> Tuple[BucketConfiguration, Dict[str, List]]:
    """Configuration and filled buckets for the current team list."""
    config = calculate_optimal_buckets(len(teams))
    return config, distribute_teams_into_buckets(teams, config)


def get_team_bucket_assignments(teams: List) -> Dict[str, str]:
    """Map each team id to the label of the bucket it lands in."""
    _, buckets = get_bucket_display(teams)
    assignments = {}
    for label, bucket_teams in buckets.items():
        for team in bucket_teams:
            assignments[_team_id(team)] = label
    return assignments


def get_available_buckets(team_count: int, config: Optional[BucketConfiguration] = None) -> List[str]:
    """Ordered bucket labels for a team count."""
    if config is None:
        config = calculate_optimal_buckets(team_count)
    return [bucket_label(i) for i in range(config.buckets)]
