"""
Winner propagation through the bracket graph.

All functions take the match arena (id -> Match, or any iterable of matches)
read-only and return new Match copies for the caller to persist.
"""
import logging
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Union

from .elimination import index_matches
from .errors import ConsistencyFault, IncompleteMatch, NotFound, SlotConflict
from .models import TEAM1, TEAM2, Match, MatchStatus, other_side
from .scoring import determine_winner_by_score

logger = logging.getLogger(__name__)

Arena = Union[Dict[str, Match], Iterable[Match]]


def advance_winner(completed_match: Match, matches: Arena) -> Optional[Match]:
    """
    Write a completed match's winner into its successor's slot.

    Returns the updated successor, or None when the completed match is the
    final. Calling it again with the same inputs, or with the already updated
    successor in the arena, gives the same successor state.

    Raises:
        IncompleteMatch: the match has no winner or is not completed
        ConsistencyFault: the winner is not one of the match's teams, or the
            successor is missing
        SlotConflict: the destination slot holds a different team, or the
            winner already sits in the other slot
    """
    if completed_match.status != MatchStatus.COMPLETED or completed_match.winner is None:
        raise IncompleteMatch(f'Match {completed_match.id} has no approved winner')
    if completed_match.winner not in (completed_match.team1, completed_match.team2):
        raise ConsistencyFault(
            f'Winner {completed_match.winner} of {completed_match.id} is not one of its teams')

    if completed_match.next_match_id is None:
        logger.info('Final %s decided: %s', completed_match.id, completed_match.winner)
        return None

    arena = index_matches(matches)
    successor = arena.get(completed_match.next_match_id)
    if successor is None:
        raise ConsistencyFault(
            f'Successor {completed_match.next_match_id} of {completed_match.id} not found')

    slot = completed_match.destination_slot
    if slot not in (TEAM1, TEAM2):
        raise ConsistencyFault(f'Match {completed_match.id} has no destination slot')

    winner = completed_match.winner
    occupant = successor.team_for(slot)
    if occupant is not None and occupant != winner:
        raise SlotConflict(
            f'{successor.id} {slot} already holds {occupant}; refusing to overwrite with {winner}')
    if successor.team_for(other_side(slot)) == winner:
        raise SlotConflict(f'{winner} already sits in the other slot of {successor.id}')

    updated = successor.copy()
    if slot == TEAM1:
        updated.team1 = winner
    else:
        updated.team2 = winner

    if occupant is None:
        logger.info('Advanced %s from %s into %s %s', winner, completed_match.id, successor.id, slot)
    return updated


def apply_result(match: Match, score1, score2, approved_by=None, set_scores=None,
                 winner: Optional[str] = None, now: Optional[str] = None) -> Match:
    """
    Record an approved final score on a match and mark it completed.

    The winner defaults to the team with the higher score; a tie leaves no
    winner and is refused.
    """
    if not match.is_ready:
        raise IncompleteMatch(f'Match {match.id} is still waiting for its teams')
    if winner is None:
        winner = determine_winner_by_score(score1, score2, match.team1, match.team2)
    if winner is None:
        raise IncompleteMatch(f'Score {score1}-{score2} for {match.id} does not decide a winner')
    if winner not in (match.team1, match.team2):
        raise ConsistencyFault(f'{winner} is not playing in {match.id}')

    updated = match.copy()
    updated.score1 = score1
    updated.score2 = score2
    updated.winner = winner
    updated.status = MatchStatus.COMPLETED
    updated.approved_at = now or datetime.now().isoformat()
    updated.approved_by = approved_by
    if set_scores is not None:
        updated.set_scores = list(set_scores)
    return updated


def _reset(match: Match) -> Match:
    cleared = match.copy()
    cleared.score1 = None
    cleared.score2 = None
    cleared.winner = None
    cleared.status = MatchStatus.UPCOMING
    cleared.set_scores = []
    cleared.submitted_at = None
    cleared.approved_at = None
    cleared.approved_by = None
    return cleared


def _set_slot(match: Match, slot: str, team: Optional[str]):
    if slot == TEAM1:
        match.team1 = team
    else:
        match.team2 = team


def clear_match_and_descendants(match: Match, matches: Arena) -> List[Match]:
    """
    Reset a match and undo everything its old result caused downstream.

    Each completed match along the successor path is reset and loses the team
    the path delivered into it; the first match that had not been played yet
    only loses that team. Returns the changed matches in path order.
    """
    arena = index_matches(matches)
    changed = []
    current = match
    while True:
        old_winner = current.winner
        changed.append(_reset(current))
        if current.next_match_id is None:
            break
        successor = arena.get(current.next_match_id)
        if successor is None:
            raise ConsistencyFault(f'Successor {current.next_match_id} of {current.id} not found')
        played = successor.status == MatchStatus.COMPLETED
        if old_winner is not None and successor.team_for(current.destination_slot) == old_winner:
            successor = successor.copy()
            _set_slot(successor, current.destination_slot, None)
            if not played:
                changed.append(successor)
        if not played:
            break
        current = successor
    return changed


def edit_match_score(match_id: str, score1, score2, matches: Arena, approved_by=None,
                     set_scores=None, now: Optional[str] = None) -> List[Match]:
    """
    Change the final score of a match, fixing the bracket behind it.

    When the winner stays the same only the match changes. When it flips,
    completed matches downstream are cleared and the new winner is written
    into the successor slot. Returns every changed match, edited match first.
    """
    arena = dict(index_matches(matches))
    match = arena.get(match_id)
    if match is None:
        raise NotFound(f'Match {match_id} not found')

    old_winner = match.winner
    edited = apply_result(match, score1, score2, approved_by=approved_by,
                          set_scores=set_scores, now=now)
    if old_winner == edited.winner or edited.next_match_id is None:
        return [edited]

    logger.info('Winner of %s changed from %s to %s', match_id, old_winner, edited.winner)
    changed: Dict[str, Match] = {edited.id: edited}

    successor = arena[edited.next_match_id]
    if successor.status == MatchStatus.COMPLETED:
        for cleared in clear_match_and_descendants(successor, arena):
            changed[cleared.id] = cleared
            arena[cleared.id] = cleared
        successor = arena[edited.next_match_id]

    rewritten = successor.copy()
    _set_slot(rewritten, edited.destination_slot, edited.winner)
    changed[rewritten.id] = rewritten
    return list(changed.values())
