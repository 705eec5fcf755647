"""
Pending score submissions and the approval boundary.

A submission proposes a final score for a match, either typed in by hand or
produced by a live scoreboard. Nothing reaches the bracket until an approver
accepts it; approving one submission rejects every other pending submission
for the same match.
"""
import logging
import uuid
from datetime import datetime
from typing import Iterable, List, Optional, Sequence

from .advancement import apply_result
from .errors import InvalidTransition, MatchNotReady
from .models import (TEAM1, Match, MatchStatus, SetScore, Submission,
                     SubmissionStatus)
from .scoring import (MatchValidation, determine_match_winner,
                      validate_match_scores, validate_set)

logger = logging.getLogger(__name__)


class ApprovalResult:
    """Outcome of approve_submission / record_admin_result."""

    def __init__(self, match: Optional[Match], submission: Optional[Submission],
                 superseded: List[Submission], validation: MatchValidation):
        self.match = match
        self.submission = submission
        self.superseded = superseded
        self.validation = validation

    @property
    def approved(self) -> bool:
        return self.validation.valid

    def __repr__(self):
        return (f"ApprovalResult(approved={self.approved}, match={self.match!r}, "
                f"superseded={len(self.superseded)})")


def _now() -> str:
    return datetime.now().isoformat()


def to_set_scores(set_scores: Optional[Sequence]) -> List[SetScore]:
    converted = []
    for index, s in enumerate(set_scores or [], start=1):
        if isinstance(s, SetScore):
            converted.append(SetScore(s.index, s.score1, s.score2, s.winner))
        elif isinstance(s, dict):
            converted.append(SetScore(s.get('index', index), s.get('score1'), s.get('score2'),
                                      s.get('winner')))
        else:
            score1, score2 = s
            converted.append(SetScore(index, score1, score2))
    return converted


def create_submission(match: Match, submitted_by: str, score1=None, score2=None,
                      set_scores: Optional[Sequence] = None, source: str = 'manual',
                      scoreboard_id: Optional[str] = None,
                      now: Optional[str] = None) -> Submission:
    """
    Build a PENDING submission for a match.

    With set_scores the final score is derived from them: sets won for a
    multi-set match, points for a single-set match. Nothing is validated
    here; see validate_submission.
    """
    if not match.is_ready:
        raise MatchNotReady(f'Match {match.id} is still waiting for its teams')
    if match.status == MatchStatus.COMPLETED:
        raise InvalidTransition(f'Match {match.id} is already completed')

    score1, score2, sets = resolve_scores(match, score1, score2, set_scores)

    submission = Submission(
        id=uuid.uuid4().hex,
        match_id=match.id,
        stage_id=match.stage_id,
        team1=match.team1,
        team2=match.team2,
        score1=score1,
        score2=score2,
        set_scores=sets,
        submitted_by=submitted_by,
        submitted_at=now or _now(),
        source=source,
        scoreboard_id=scoreboard_id,
    )
    logger.info('Submission %s for %s: %s-%s by %s', submission.id, match.id,
                score1, score2, submitted_by)
    return submission


def _final_from_sets(sets: List[SetScore], match: Match):
    if match.rules.best_of == 1 and len(sets) == 1:
        return sets[0].score1, sets[0].score2
    result = validate_match_scores(sets, match.rules)
    return result.sets_won


def resolve_scores(match: Match, score1, score2, set_scores: Optional[Sequence] = None):
    """Fill a missing final score in from the set scores. Returns (score1, score2, sets)."""
    sets = to_set_scores(set_scores)
    if sets and (score1 is None or score2 is None):
        score1, score2 = _final_from_sets(sets, match)
    return score1, score2, sets


def validate_submission(match: Match, submission: Submission) -> MatchValidation:
    """
    Check a submission against the match it claims to finish.

    Returns a MatchValidation; never raises for bad scores.
    """
    rules = match.rules
    if submission.match_id != match.id:
        return MatchValidation(False, error=f'Submission is for {submission.match_id}, not {match.id}')
    if (submission.team1, submission.team2) != (match.team1, match.team2):
        return MatchValidation(False, error='Teams no longer match the bracket')

    if submission.set_scores:
        result = validate_match_scores(submission.set_scores, rules,
                                       live=submission.source == 'scoreboard')
        if not result.valid:
            return result
        expected = _final_from_sets(submission.set_scores, match)
        if (submission.score1, submission.score2) != tuple(expected):
            return MatchValidation(False, sets_won=result.sets_won,
                                   error=f'Final score {submission.score1}-{submission.score2} '
                                         f'does not match the sets played')
        return result

    score1, score2 = submission.score1, submission.score2
    if rules.best_of == 1:
        result = validate_set(score1, score2, rules)
        if not result.valid:
            return MatchValidation(False, error=result.error)
        won = (1, 0) if result.winner == TEAM1 else (0, 1)
        return MatchValidation(True, winner=result.winner, sets_won=won)

    if not all(isinstance(s, int) and not isinstance(s, bool) and s >= 0 for s in (score1, score2)):
        return MatchValidation(False, error='Scores must be non-negative integers')
    threshold = rules.sets_to_win
    if score1 >= threshold and score2 >= threshold:
        return MatchValidation(False, error=f'Both sides cannot win {threshold} sets')
    if max(score1, score2) > threshold:
        return MatchValidation(False, error=f'Best of {rules.best_of} ends at {threshold} sets won')
    if score1 + score2 > rules.best_of:
        return MatchValidation(False, error=f'Best of {rules.best_of}: too many sets ({score1 + score2})')
    winner = determine_match_winner(score1, score2, rules)
    if winner is None:
        return MatchValidation(False, sets_won=(score1, score2),
                               error=f'Match incomplete: first to {threshold} sets')
    return MatchValidation(True, winner=winner, sets_won=(score1, score2))


def validate_result(match: Match, score1, score2,
                    set_scores: Optional[Sequence] = None) -> MatchValidation:
    """Validate a bare score for a match, as used for admin entry and edits."""
    candidate = Submission(id=None, match_id=match.id, team1=match.team1, team2=match.team2,
                           score1=score1, score2=score2, submitted_by=None, submitted_at=None,
                           set_scores=to_set_scores(set_scores))
    return validate_submission(match, candidate)


def _mark(submission: Submission, status: str, reviewed_by, now) -> Submission:
    marked = submission.copy()
    marked.status = status
    marked.reviewed_by = reviewed_by
    marked.reviewed_at = now
    return marked


def reject_submission(submission: Submission, reviewed_by: Optional[str] = None,
                      now: Optional[str] = None) -> Submission:
    if not submission.is_pending:
        raise InvalidTransition(f'Submission {submission.id} is already {submission.status}')
    logger.info('Submission %s for %s rejected', submission.id, submission.match_id)
    return _mark(submission, SubmissionStatus.REJECTED, reviewed_by, now or _now())


def _reject_pending(history: Iterable[Submission], match_id: str, keep_id: Optional[str],
                    reviewed_by, now) -> List[Submission]:
    superseded = []
    for other in history:
        if other.match_id != match_id or other.id == keep_id or not other.is_pending:
            continue
        superseded.append(_mark(other, SubmissionStatus.REJECTED, reviewed_by, now))
    return superseded


def retire_submissions(history: Iterable[Submission], match_ids: Iterable[str],
                       reviewed_by: Optional[str] = None,
                       now: Optional[str] = None) -> List[Submission]:
    """
    Mark the pending and approved submissions of the given matches superseded.

    Used when a score edit upstream undoes those matches. Returns only the
    submissions that changed.
    """
    match_ids = set(match_ids)
    now = now or _now()
    retired = []
    for submission in history:
        if submission.match_id not in match_ids:
            continue
        if submission.status not in (SubmissionStatus.PENDING, SubmissionStatus.APPROVED):
            continue
        retired.append(_mark(submission, SubmissionStatus.SUPERSEDED, reviewed_by, now))
    if retired:
        logger.info('%d submissions superseded for %s', len(retired), ', '.join(sorted(match_ids)))
    return retired


def approve_submission(submission: Submission, match: Match,
                       history: Iterable[Submission] = (),
                       approved_by: Optional[str] = None,
                       now: Optional[str] = None) -> ApprovalResult:
    """
    Accept a pending submission as the match's final result.

    On success the returned match is completed with the submitted scores and
    every other pending submission for the match comes back rejected in
    ``superseded``. Scores that do not validate leave everything unchanged:
    match and submission are None and the failing validation is returned.
    The caller advances the winner.
    """
    if not submission.is_pending:
        raise InvalidTransition(f'Submission {submission.id} is already {submission.status}')
    if match.status == MatchStatus.COMPLETED:
        raise InvalidTransition(f'Match {match.id} is already completed')
    if not match.is_ready:
        raise MatchNotReady(f'Match {match.id} is still waiting for its teams')

    validation = validate_submission(match, submission)
    if not validation.valid:
        logger.warning('Refused submission %s for %s: %s', submission.id, match.id, validation.error)
        return ApprovalResult(None, None, [], validation)

    now = now or _now()
    winner = match.team1 if validation.winner == TEAM1 else match.team2
    completed = apply_result(match, submission.score1, submission.score2,
                             approved_by=approved_by, set_scores=submission.set_scores,
                             winner=winner, now=now)
    completed.submitted_at = submission.submitted_at
    approved = _mark(submission, SubmissionStatus.APPROVED, approved_by, now)
    superseded = _reject_pending(history, match.id, submission.id, approved_by, now)
    logger.info('Submission %s approved: %s wins %s (%d other pending rejected)',
                submission.id, winner, match.id, len(superseded))
    return ApprovalResult(completed, approved, superseded, validation)


def record_admin_result(match: Match, score1, score2, history: Iterable[Submission] = (),
                        approved_by: Optional[str] = None,
                        set_scores: Optional[Sequence] = None,
                        now: Optional[str] = None) -> ApprovalResult:
    """Enter a result directly, bypassing submissions; all pending ones are rejected."""
    if match.status == MatchStatus.COMPLETED:
        raise InvalidTransition(f'Match {match.id} is already completed; edit its score instead')
    if not match.is_ready:
        raise MatchNotReady(f'Match {match.id} is still waiting for its teams')

    score1, score2, sets = resolve_scores(match, score1, score2, set_scores)
    validation = validate_result(match, score1, score2, sets)
    if not validation.valid:
        return ApprovalResult(None, None, [], validation)

    now = now or _now()
    winner = match.team1 if validation.winner == TEAM1 else match.team2
    completed = apply_result(match, score1, score2, approved_by=approved_by,
                             set_scores=sets, winner=winner, now=now)
    superseded = _reject_pending(history, match.id, None, approved_by, now)
    logger.info('Admin result for %s: %s-%s, %s wins', match.id, score1, score2, winner)
    return ApprovalResult(completed, None, superseded, validation)
