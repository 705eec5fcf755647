"""
Data model for brackets, live scoreboards and score submissions.

Records are plain classes with to_dict()/from_dict() so the storage layer can
write them to YAML as-is.
"""
import copy
from typing import Dict, List, Optional

from .errors import InvalidRules

TEAM1 = 'team1'
TEAM2 = 'team2'
SIDES = (TEAM1, TEAM2)


class MatchStatus:
    UPCOMING = 'upcoming'
    LIVE = 'live'
    COMPLETED = 'completed'


class ScoreboardStatus:
    ACTIVE = 'active'
    REVIEW = 'review'
    COMPLETED = 'completed'


class SubmissionStatus:
    PENDING = 'pending'
    APPROVED = 'approved'
    REJECTED = 'rejected'
    SUPERSEDED = 'superseded'


class TournamentStatus:
    UPCOMING = 'upcoming'
    LIVE = 'live'
    COMPLETED = 'completed'


SEEDING_MANUAL = 'manual'
SEEDING_RANDOM = 'random'
SEEDING_MODES = (SEEDING_MANUAL, SEEDING_RANDOM)

PAIRING_STANDARD = 'standard'
PAIRING_VERBATIM = 'verbatim'
PAIRING_MODES = (PAIRING_STANDARD, PAIRING_VERBATIM)

PLAY_IN_KEY = 'play-in'


def other_side(side: str) -> str:
    return TEAM2 if side == TEAM1 else TEAM1


def _is_int(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


class MatchRules:
    """Win conditions for every set of a match."""

    def __init__(self, first_to=21, win_by=2, cap=30, best_of=3):
        self.first_to = first_to
        self.win_by = win_by
        self.cap = cap
        self.best_of = best_of

    @property
    def sets_to_win(self) -> int:
        return (self.best_of + 1) // 2

    def validate(self):
        """Raise InvalidRules if the combination cannot describe a match."""
        for field in ('first_to', 'win_by', 'cap', 'best_of'):
            if not _is_int(getattr(self, field)):
                raise InvalidRules(f'{field} must be an integer')
        if self.first_to < 1:
            raise InvalidRules('first_to must be at least 1')
        if self.win_by < 1:
            raise InvalidRules('win_by must be at least 1')
        if self.cap < self.first_to:
            raise InvalidRules('cap must be greater than or equal to first_to')
        if self.best_of < 1:
            raise InvalidRules('best_of must be at least 1')
        if self.best_of % 2 == 0:
            raise InvalidRules('best_of must be an odd number')
        return self

    def to_dict(self) -> Dict:
        return {
            'first_to': self.first_to,
            'win_by': self.win_by,
            'cap': self.cap,
            'best_of': self.best_of,
        }

    @classmethod
    def from_dict(cls, data: Optional[Dict]) -> 'MatchRules':
        if data is None:
            return cls()
        if isinstance(data, MatchRules):
            return data
        if not isinstance(data, dict):
            raise InvalidRules(f'rules must be a mapping, got {type(data).__name__}')
        defaults = DEFAULT_MATCH_RULES
        return cls(
            first_to=data.get('first_to', defaults.first_to),
            win_by=data.get('win_by', defaults.win_by),
            cap=data.get('cap', defaults.cap),
            best_of=data.get('best_of', defaults.best_of),
        )

    def __eq__(self, other):
        if not isinstance(other, MatchRules):
            return NotImplemented
        return self.to_dict() == other.to_dict()

    def __hash__(self):
        return hash((self.first_to, self.win_by, self.cap, self.best_of))

    def __repr__(self):
        return (f"MatchRules(first_to={self.first_to}, win_by={self.win_by}, "
                f"cap={self.cap}, best_of={self.best_of})")


DEFAULT_MATCH_RULES = MatchRules(first_to=21, win_by=2, cap=30, best_of=3)

RULE_TEMPLATES = {
    'standard_21': MatchRules(first_to=21, win_by=2, cap=30, best_of=3),
    'standard_25': MatchRules(first_to=25, win_by=2, cap=30, best_of=3),
    'quick_15': MatchRules(first_to=15, win_by=2, cap=20, best_of=3),
    'finals_25': MatchRules(first_to=25, win_by=2, cap=30, best_of=5),
    'beach_21': MatchRules(first_to=21, win_by=2, cap=30, best_of=3),
}


class SetScore:
    def __init__(self, index, score1=0, score2=0, winner=None):
        self.index = index
        self.score1 = score1
        self.score2 = score2
        self.winner = winner

    def score_for(self, side: str) -> int:
        return self.score1 if side == TEAM1 else self.score2

    def to_dict(self) -> Dict:
        return {'index': self.index, 'score1': self.score1, 'score2': self.score2, 'winner': self.winner}

    @classmethod
    def from_dict(cls, data: Dict) -> 'SetScore':
        return cls(
            index=data['index'],
            score1=data.get('score1', 0),
            score2=data.get('score2', 0),
            winner=data.get('winner'),
        )

    def __repr__(self):
        return f"SetScore(index={self.index}, score1={self.score1}, score2={self.score2}, winner={self.winner})"


class Match:
    """One node of the bracket graph."""

    def __init__(self, id, stage_id, round, position, match_number, round_key=None,
                 team1=None, team2=None, seed1=None, seed2=None,
                 next_match_id=None, destination_slot=None, rules=None):
        self.id = id
        self.stage_id = stage_id
        self.round = round
        self.position = position
        self.match_number = match_number
        self.round_key = round_key
        self.team1 = team1
        self.team2 = team2
        self.seed1 = seed1
        self.seed2 = seed2
        self.score1 = None
        self.score2 = None
        self.winner = None
        self.status = MatchStatus.UPCOMING
        self.next_match_id = next_match_id
        self.destination_slot = destination_slot
        self.rules = rules if rules is not None else DEFAULT_MATCH_RULES
        self.set_scores: List[SetScore] = []
        self.submitted_at = None
        self.approved_at = None
        self.approved_by = None

    @property
    def is_final(self) -> bool:
        return self.next_match_id is None

    @property
    def is_ready(self) -> bool:
        """Both contenders are known."""
        return self.team1 is not None and self.team2 is not None

    def team_for(self, side: str) -> Optional[str]:
        return self.team1 if side == TEAM1 else self.team2

    def copy(self) -> 'Match':
        return copy.deepcopy(self)

    def to_dict(self) -> Dict:
        return {
            'id': self.id,
            'stage_id': self.stage_id,
            'round': self.round,
            'round_key': self.round_key,
            'position': self.position,
            'match_number': self.match_number,
            'team1': self.team1,
            'team2': self.team2,
            'seed1': self.seed1,
            'seed2': self.seed2,
            'score1': self.score1,
            'score2': self.score2,
            'winner': self.winner,
            'status': self.status,
            'next_match_id': self.next_match_id,
            'destination_slot': self.destination_slot,
            'rules': self.rules.to_dict(),
            'set_scores': [s.to_dict() for s in self.set_scores],
            'submitted_at': self.submitted_at,
            'approved_at': self.approved_at,
            'approved_by': self.approved_by,
        }

    @classmethod
    def from_dict(cls, data: Dict) -> 'Match':
        match = cls(
            id=data['id'],
            stage_id=data.get('stage_id'),
            round=data['round'],
            position=data.get('position'),
            match_number=data['match_number'],
            round_key=data.get('round_key'),
            team1=data.get('team1'),
            team2=data.get('team2'),
            seed1=data.get('seed1'),
            seed2=data.get('seed2'),
            next_match_id=data.get('next_match_id'),
            destination_slot=data.get('destination_slot'),
            rules=MatchRules.from_dict(data.get('rules')),
        )
        match.score1 = data.get('score1')
        match.score2 = data.get('score2')
        match.winner = data.get('winner')
        match.status = data.get('status', MatchStatus.UPCOMING)
        match.set_scores = [SetScore.from_dict(s) for s in data.get('set_scores') or []]
        match.submitted_at = data.get('submitted_at')
        match.approved_at = data.get('approved_at')
        match.approved_by = data.get('approved_by')
        return match

    def __eq__(self, other):
        if not isinstance(other, Match):
            return NotImplemented
        return self.to_dict() == other.to_dict()

    def __repr__(self):
        return (f"Match(id={self.id}, round={self.round}, team1={self.team1}, team2={self.team2}, "
                f"winner={self.winner}, status={self.status})")


class Submission:
    """A proposed final score awaiting an approve/reject decision."""

    def __init__(self, id, match_id, team1, team2, score1, score2, submitted_by,
                 submitted_at, set_scores=None, stage_id=None, source='manual',
                 scoreboard_id=None, status=SubmissionStatus.PENDING):
        self.id = id
        self.match_id = match_id
        self.stage_id = stage_id
        self.team1 = team1
        self.team2 = team2
        self.score1 = score1
        self.score2 = score2
        self.set_scores: List[SetScore] = set_scores or []
        self.submitted_by = submitted_by
        self.submitted_at = submitted_at
        self.status = status
        self.source = source
        self.scoreboard_id = scoreboard_id
        self.reviewed_by = None
        self.reviewed_at = None

    @property
    def is_pending(self) -> bool:
        return self.status == SubmissionStatus.PENDING

    def copy(self) -> 'Submission':
        return copy.deepcopy(self)

    def to_dict(self) -> Dict:
        return {
            'id': self.id,
            'match_id': self.match_id,
            'stage_id': self.stage_id,
            'team1': self.team1,
            'team2': self.team2,
            'score1': self.score1,
            'score2': self.score2,
            'set_scores': [s.to_dict() for s in self.set_scores],
            'submitted_by': self.submitted_by,
            'submitted_at': self.submitted_at,
            'status': self.status,
            'source': self.source,
            'scoreboard_id': self.scoreboard_id,
            'reviewed_by': self.reviewed_by,
            'reviewed_at': self.reviewed_at,
        }

    @classmethod
    def from_dict(cls, data: Dict) -> 'Submission':
        submission = cls(
            id=data['id'],
            match_id=data['match_id'],
            stage_id=data.get('stage_id'),
            team1=data.get('team1'),
            team2=data.get('team2'),
            score1=data.get('score1'),
            score2=data.get('score2'),
            set_scores=[SetScore.from_dict(s) for s in data.get('set_scores') or []],
            submitted_by=data.get('submitted_by'),
            submitted_at=data.get('submitted_at'),
            source=data.get('source', 'manual'),
            scoreboard_id=data.get('scoreboard_id'),
            status=data.get('status', SubmissionStatus.PENDING),
        )
        submission.reviewed_by = data.get('reviewed_by')
        submission.reviewed_at = data.get('reviewed_at')
        return submission

    def __repr__(self):
        return (f"Submission(id={self.id}, match_id={self.match_id}, score={self.score1}-{self.score2}, "
                f"status={self.status})")
