def _as_text(value):
    # Unquoted timestamps in a hand-edited YAML file load as datetime objects
    if value is None:
        return None
    if hasattr(value, "isoformat"):
        return value.isoformat()
    return str(value)


class Team:
    def __init__(self, id, name, points=0, wins=0, losses=0, logo_url=None, created_at=None, updated_at=None):
        self.id = id
        self.name = name
        self.points = points
        self.wins = wins
        self.losses = losses
        self.logo_url = logo_url
        self.created_at = created_at
        self.updated_at = updated_at

    @property
    def win_rate(self):
        """Win percentage rounded to a whole number, 0 before any game."""
        games = self.wins + self.losses
        if games == 0:
            return 0
        return round(self.wins / games * 100)

    @classmethod
    def from_dict(cls, data):
        return cls(
            id=str(data['id']),
            name=data.get('name', ''),
            points=int(data.get('points', 0) or 0),
            wins=int(data.get('wins', 0) or 0),
            losses=int(data.get('losses', 0) or 0),
            logo_url=data.get('logo_url') or None,
            created_at=_as_text(data.get('created_at')),
            updated_at=_as_text(data.get('updated_at')),
        )

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'logo_url': self.logo_url,
            'wins': self.wins,
            'losses': self.losses,
            'points': self.points,
            'created_at': self.created_at,
            'updated_at': self.updated_at,
        }

    def __eq__(self, other):
        if not isinstance(other, Team):
            return NotImplemented
        return self.id == other.id

    def __hash__(self):
        return hash(self.id)

    def __repr__(self):
        return f"Team(id={self.id}, name={self.name}, points={self.points})"


class Match:
    def __init__(self, id, team1_id, team2_id, team1_score=0, team2_score=0, map_name=None, played_at=None, created_at=None):
        self.id = id
        self.team1_id = team1_id
        self.team2_id = team2_id
        self.team1_score = team1_score
        self.team2_score = team2_score
        self.map_name = map_name
        self.played_at = played_at
        self.created_at = created_at

    @property
    def winner_id(self):
        """Id of the higher-scoring team, or None on a draw."""
        if self.team1_score > self.team2_score:
            return self.team1_id
        if self.team2_score > self.team1_score:
            return self.team2_id
        return None

    def involves(self, team_id):
        return team_id in (self.team1_id, self.team2_id)

    @classmethod
    def from_dict(cls, data):
        return cls(
            id=str(data['id']),
            team1_id=str(data['team1_id']),
            team2_id=str(data['team2_id']),
            team1_score=int(data.get('team1_score', 0) or 0),
            team2_score=int(data.get('team2_score', 0) or 0),
            map_name=data.get('map_name') or None,
            played_at=_as_text(data.get('played_at')),
            created_at=_as_text(data.get('created_at')),
        )

    def to_dict(self):
        return {
            'id': self.id,
            'team1_id': self.team1_id,
            'team2_id': self.team2_id,
            'team1_score': self.team1_score,
            'team2_score': self.team2_score,
            'map_name': self.map_name,
            'played_at': self.played_at,
            'created_at': self.created_at,
        }

    def __repr__(self):
        return (f"Match(id={self.id}, team1_id={self.team1_id}, team2_id={self.team2_id}, "
                f"score={self.team1_score}-{self.team2_score})")
