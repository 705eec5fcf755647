"""
Live scoreboard for one match in play.

    ACTIVE --(match decided)--> REVIEW --(approved)--> COMPLETED

Points can only change while ACTIVE and unlocked. Every change re-checks the
current set with the scoring rules; a won set moves play to the next set, and
the set that decides the match moves the board to REVIEW. A rejected
submission throws the board away: the caller starts a fresh one.
"""
import logging
import uuid
from datetime import datetime
from typing import Dict, List, Optional

from .errors import (InvalidTransition, MatchNotReady, ScoreboardLocked,
                     SetIndexOutOfRange)
from .models import (SIDES, TEAM1, Match, MatchRules, MatchStatus,
                     ScoreboardStatus, SetScore, Submission)
from .scoring import check_set_winner, determine_match_winner

logger = logging.getLogger(__name__)


def _now() -> str:
    return datetime.now().isoformat()


class Scoreboard:
    def __init__(self, match_id: str, team1: str, team2: str, rules: MatchRules,
                 stage_id: Optional[str] = None, started_by: Optional[str] = None,
                 started_at: Optional[str] = None):
        rules.validate()
        self.match_id = match_id
        self.stage_id = stage_id
        self.team1 = team1
        self.team2 = team2
        self.rules = rules
        self.sets: List[SetScore] = [SetScore(index=i) for i in range(1, rules.best_of + 1)]
        self.current_set = 1
        self.team1_sets_won = 0
        self.team2_sets_won = 0
        self.winner: Optional[str] = None
        self.status = ScoreboardStatus.ACTIVE
        self.locked = False
        self.started_by = started_by
        self.started_at = started_at or _now()
        self.last_updated = self.started_at
        self.last_updated_by = started_by
        self.submission_id: Optional[str] = None

    @classmethod
    def for_match(cls, match: Match, started_by: Optional[str] = None) -> 'Scoreboard':
        """Open a board for a match whose two teams are both known."""
        if not match.is_ready:
            raise MatchNotReady(f'Match {match.id} is still waiting for its teams')
        if match.status == MatchStatus.COMPLETED:
            raise InvalidTransition(f'Match {match.id} is already completed')
        logger.info('Scoreboard opened for %s: %s vs %s', match.id, match.team1, match.team2)
        return cls(match.id, match.team1, match.team2, match.rules,
                   stage_id=match.stage_id, started_by=started_by)

    @property
    def id(self) -> str:
        return self.match_id

    @property
    def current(self) -> SetScore:
        if not 1 <= self.current_set <= len(self.sets):
            raise SetIndexOutOfRange(
                f'Scoreboard {self.match_id}: set {self.current_set} of {len(self.sets)}')
        return self.sets[self.current_set - 1]

    @property
    def winner_name(self) -> Optional[str]:
        if self.winner is None:
            return None
        return self.team1 if self.winner == TEAM1 else self.team2

    def _check_mutable(self):
        if self.locked:
            raise ScoreboardLocked(f'Scoreboard {self.match_id} is locked')
        if self.status != ScoreboardStatus.ACTIVE:
            raise ScoreboardLocked(f'Scoreboard {self.match_id} is {self.status}')

    def _touch(self, user):
        self.last_updated = _now()
        self.last_updated_by = user

    def increment_score(self, side: str, user: Optional[str] = None) -> 'Scoreboard':
        return self._change_score(side, 1, user)

    def decrement_score(self, side: str, user: Optional[str] = None) -> 'Scoreboard':
        return self._change_score(side, -1, user)

    def _change_score(self, side: str, delta: int, user) -> 'Scoreboard':
        if side not in SIDES:
            raise ValueError(f'Unknown side: {side}')
        self._check_mutable()
        current = self.current
        new_score = current.score_for(side) + delta
        if new_score < 0:
            return self
        if side == TEAM1:
            current.score1 = new_score
        else:
            current.score2 = new_score
        self._touch(user)
        self._settle_current_set()
        return self

    def _settle_current_set(self):
        current = self.current
        set_winner = check_set_winner(current.score1, current.score2, self.rules)
        if set_winner is None:
            return
        current.winner = set_winner
        if set_winner == TEAM1:
            self.team1_sets_won += 1
        else:
            self.team2_sets_won += 1
        logger.info('Scoreboard %s: set %d to %s (%d-%d)', self.match_id, current.index,
                    set_winner, current.score1, current.score2)

        match_winner = determine_match_winner(self.team1_sets_won, self.team2_sets_won, self.rules)
        if match_winner is not None:
            self.winner = match_winner
            self.status = ScoreboardStatus.REVIEW
            logger.info('Scoreboard %s ready for review: %s wins %d-%d', self.match_id,
                        match_winner, self.team1_sets_won, self.team2_sets_won)
            return
        if self.current_set >= len(self.sets):
            raise SetIndexOutOfRange(
                f'Scoreboard {self.match_id}: no set left after set {self.current_set}')
        self.current_set += 1

    def reset_current_set(self, user: Optional[str] = None) -> 'Scoreboard':
        self._check_mutable()
        current = self.current
        current.score1 = 0
        current.score2 = 0
        current.winner = None
        self._touch(user)
        return self

    def set_locked(self, locked: bool, user: Optional[str] = None) -> 'Scoreboard':
        self.locked = bool(locked)
        self._touch(user)
        return self

    def final_scores(self):
        """Sets won for multi-set matches, points for a single set."""
        if self.rules.best_of > 1:
            return self.team1_sets_won, self.team2_sets_won
        first = self.sets[0]
        return first.score1, first.score2

    def played_sets(self) -> List[SetScore]:
        return [s for s in self.sets if s.winner is not None]

    def submit(self, submitted_by: str, submission_id: Optional[str] = None,
               now: Optional[str] = None) -> Submission:
        """Turn a decided board into a pending submission."""
        if self.status != ScoreboardStatus.REVIEW:
            raise InvalidTransition(f'Scoreboard {self.match_id} must be in review to submit')
        if self.submission_id is not None:
            raise InvalidTransition(f'Scoreboard {self.match_id} was already submitted')
        now = now or _now()
        score1, score2 = self.final_scores()
        submission = Submission(
            id=submission_id or uuid.uuid4().hex,
            match_id=self.match_id,
            stage_id=self.stage_id,
            team1=self.team1,
            team2=self.team2,
            score1=score1,
            score2=score2,
            set_scores=[SetScore(s.index, s.score1, s.score2, s.winner) for s in self.played_sets()],
            submitted_by=submitted_by,
            submitted_at=now,
            source='scoreboard',
            scoreboard_id=self.match_id,
        )
        self.submission_id = submission.id
        self._touch(submitted_by)
        return submission

    def mark_approved(self, user: Optional[str] = None) -> 'Scoreboard':
        if self.status != ScoreboardStatus.REVIEW:
            raise InvalidTransition(f'Scoreboard {self.match_id} is {self.status}, not in review')
        self.status = ScoreboardStatus.COMPLETED
        self.locked = True
        self._touch(user)
        return self

    def to_dict(self) -> Dict:
        return {
            'match_id': self.match_id,
            'stage_id': self.stage_id,
            'team1': self.team1,
            'team2': self.team2,
            'rules': self.rules.to_dict(),
            'sets': [s.to_dict() for s in self.sets],
            'current_set': self.current_set,
            'team1_sets_won': self.team1_sets_won,
            'team2_sets_won': self.team2_sets_won,
            'winner': self.winner,
            'status': self.status,
            'locked': self.locked,
            'started_by': self.started_by,
            'started_at': self.started_at,
            'last_updated': self.last_updated,
            'last_updated_by': self.last_updated_by,
            'submission_id': self.submission_id,
        }

    @classmethod
    def from_dict(cls, data: Dict) -> 'Scoreboard':
        board = cls(
            match_id=data['match_id'],
            team1=data['team1'],
            team2=data['team2'],
            rules=MatchRules.from_dict(data.get('rules')),
            stage_id=data.get('stage_id'),
            started_by=data.get('started_by'),
            started_at=data.get('started_at'),
        )
        board.sets = [SetScore.from_dict(s) for s in data.get('sets', [])] or board.sets
        board.current_set = data.get('current_set', 1)
        board.team1_sets_won = data.get('team1_sets_won', 0)
        board.team2_sets_won = data.get('team2_sets_won', 0)
        board.winner = data.get('winner')
        board.status = data.get('status', ScoreboardStatus.ACTIVE)
        board.locked = data.get('locked', False)
        board.last_updated = data.get('last_updated', board.started_at)
        board.last_updated_by = data.get('last_updated_by')
        board.submission_id = data.get('submission_id')
        return board

    def __repr__(self):
        return (f"Scoreboard(match_id={self.match_id}, set={self.current_set}, "
                f"sets_won={self.team1_sets_won}-{self.team2_sets_won}, status={self.status})")
