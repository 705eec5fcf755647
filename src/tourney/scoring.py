"""
Set and match scoring rules.

Everything here is a pure function. Invalid scores are reported through
SetValidation / MatchValidation results so callers can re-prompt whoever
entered them; only impossible inputs (negative set counts, both sides past the
threshold) raise.
"""
from typing import List, Optional, Sequence, Tuple

from .errors import ConsistencyFault
from .models import TEAM1, TEAM2, MatchRules, SetScore


class SetValidation:
    def __init__(self, valid: bool, winner: Optional[str] = None, error: Optional[str] = None):
        self.valid = valid
        self.winner = winner
        self.error = error

    def __bool__(self):
        return self.valid

    def __repr__(self):
        if self.valid:
            return f"SetValidation(valid=True, winner={self.winner})"
        return f"SetValidation(valid=False, error={self.error!r})"


class MatchValidation:
    def __init__(self, valid: bool, winner: Optional[str] = None,
                 sets_won: Tuple[int, int] = (0, 0), error: Optional[str] = None):
        self.valid = valid
        self.winner = winner
        self.sets_won = sets_won
        self.error = error

    def __bool__(self):
        return self.valid

    def __repr__(self):
        if self.valid:
            return f"MatchValidation(valid=True, winner={self.winner}, sets_won={self.sets_won})"
        return f"MatchValidation(valid=False, error={self.error!r})"


def _is_score(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value >= 0


def validate_set(score1, score2, rules: MatchRules) -> SetValidation:
    """
    Check one finished set against the rules and name its winner.

    - Once either side reaches the cap, the high score may be cap or cap+1
      and the margin must be exactly one (30-29 or 31-30 with the usual
      21/2/30 rules).
    - Below the cap, nobody reaching first_to means the set is incomplete.
    - Below the cap the margin must be at least win_by.
    - Tied scores are never a result.
    """
    if not _is_score(score1) or not _is_score(score2):
        return SetValidation(False, error='Scores must be non-negative integers')

    high, low = max(score1, score2), min(score1, score2)
    margin = high - low

    if high >= rules.cap:
        if high > rules.cap + 1:
            return SetValidation(False, error=f'Score exceeds cap + 1 ({rules.cap + 1})')
        if margin != 1:
            return SetValidation(False, error=f'At the cap of {rules.cap} the set is won by exactly 1')
    elif high < rules.first_to:
        return SetValidation(False, error=f'Set incomplete: first to {rules.first_to}')
    elif margin == 0:
        return SetValidation(False, error='Set cannot end in a tie')
    elif margin < rules.win_by:
        return SetValidation(False, error=f'Must win by {rules.win_by}')

    return SetValidation(True, winner=TEAM1 if score1 > score2 else TEAM2)


def check_set_winner(score1, score2, rules: MatchRules) -> Optional[str]:
    """
    Side that has won a set in play, or None while it goes on.

    Used point by point on a live board: as soon as either side reaches the
    cap the leader takes the set, otherwise first_to with a win_by lead.
    """
    if max(score1, score2) >= rules.cap:
        if score1 == score2:
            return None
        return TEAM1 if score1 > score2 else TEAM2
    if score1 >= rules.first_to and score1 - score2 >= rules.win_by:
        return TEAM1
    if score2 >= rules.first_to and score2 - score1 >= rules.win_by:
        return TEAM2
    return None


def determine_match_winner(sets_won1: int, sets_won2: int, rules: MatchRules) -> Optional[str]:
    """Side that has taken a majority of best_of sets, or None if undecided."""
    if sets_won1 < 0 or sets_won2 < 0:
        raise ConsistencyFault(f'Negative set count: {sets_won1}-{sets_won2}')
    threshold = rules.sets_to_win
    if sets_won1 >= threshold and sets_won2 >= threshold:
        raise ConsistencyFault(f'Both sides reached {threshold} sets: {sets_won1}-{sets_won2}')
    if sets_won1 >= threshold:
        return TEAM1
    if sets_won2 >= threshold:
        return TEAM2
    return None


def _pairs(set_scores: Sequence) -> List[Tuple[int, int]]:
    pairs = []
    for s in set_scores:
        if isinstance(s, SetScore):
            pairs.append((s.score1, s.score2))
        elif isinstance(s, dict):
            pairs.append((s.get('score1'), s.get('score2')))
        else:
            pairs.append(tuple(s))
    return pairs


def _live_set(score1, score2, rules: MatchRules) -> SetValidation:
    if not _is_score(score1) or not _is_score(score2):
        return SetValidation(False, error='Scores must be non-negative integers')
    winner = check_set_winner(score1, score2, rules)
    if winner is None:
        return SetValidation(False, error='Set is still in play')
    return SetValidation(True, winner=winner)


def validate_match_scores(set_scores: Sequence, rules: MatchRules, live: bool = False) -> MatchValidation:
    """
    Validate a complete proposed match given as a list of set scores.

    Accepts SetScore objects, {'score1', 'score2'} dicts or (score1, score2)
    pairs. Every listed set must be a valid finished set, no set may follow the
    one that decided the match, and the match must be decided.

    With live=True each set is judged the way a live scoreboard ends it
    (check_set_winner), so a set the board closed at the cap is accepted.
    """
    pairs = _pairs(set_scores)
    if not pairs:
        return MatchValidation(False, error='No set scores provided')
    if len(pairs) > rules.best_of:
        return MatchValidation(False, error=f'Best of {rules.best_of}: too many sets ({len(pairs)})')

    wins = [0, 0]
    winner = None
    for number, pair in enumerate(pairs, start=1):
        if len(pair) != 2:
            return MatchValidation(False, error=f'Set {number}: expected two scores')
        if winner is not None:
            return MatchValidation(False, sets_won=tuple(wins),
                                   error=f'Set {number} played after the match was decided')
        result = _live_set(pair[0], pair[1], rules) if live else validate_set(pair[0], pair[1], rules)
        if not result.valid:
            return MatchValidation(False, sets_won=tuple(wins), error=f'Set {number}: {result.error}')
        wins[0 if result.winner == TEAM1 else 1] += 1
        winner = determine_match_winner(wins[0], wins[1], rules)

    if winner is None:
        return MatchValidation(False, sets_won=tuple(wins),
                               error=f'Match incomplete: first to {rules.sets_to_win} sets')
    return MatchValidation(True, winner=winner, sets_won=tuple(wins))


def determine_winner_by_score(score1, score2, team1, team2) -> Optional[str]:
    """Team name with the higher final score; None for missing scores or a tie."""
    if score1 is None or score2 is None:
        return None
    if score1 > score2:
        return team1
    if score2 > score1:
        return team2
    return None
