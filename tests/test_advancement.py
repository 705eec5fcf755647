"""
Unit tests for winner propagation, result recording and score edits.
"""
import pytest
import sys
import os

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from bracket_helpers import play_out
from tourney.advancement import (advance_winner, apply_result, clear_match_and_descendants,
                                 edit_match_score)
from tourney.elimination import index_matches, verify_bracket_structure
from tourney.errors import ConsistencyFault, IncompleteMatch, NotFound, SlotConflict
from tourney.models import TEAM1, TEAM2, MatchStatus


@pytest.fixture
def arena8(bracket8):
    return dict(index_matches(bracket8))


class TestApplyResult:
    """Tests for recording a final score."""

    def test_completes_match(self, arena8):
        completed = apply_result(arena8['gold_r3_m1'], 2, 1, approved_by='admin', now='2026-05-01T12:00:00')
        assert completed.status == MatchStatus.COMPLETED
        assert completed.winner == 'Team 1'
        assert (completed.score1, completed.score2) == (2, 1)
        assert completed.approved_by == 'admin'
        assert completed.approved_at == '2026-05-01T12:00:00'

    def test_returns_copy(self, arena8):
        apply_result(arena8['gold_r3_m1'], 2, 1)
        assert arena8['gold_r3_m1'].status == MatchStatus.UPCOMING

    def test_lower_seed_wins(self, arena8):
        assert apply_result(arena8['gold_r3_m1'], 0, 2).winner == 'Team 8'

    def test_tie_refused(self, arena8):
        with pytest.raises(IncompleteMatch):
            apply_result(arena8['gold_r3_m1'], 1, 1)

    def test_match_not_ready(self, arena8):
        with pytest.raises(IncompleteMatch):
            apply_result(arena8['gold_r2_m1'], 2, 0)

    def test_winner_must_be_playing(self, arena8):
        with pytest.raises(ConsistencyFault):
            apply_result(arena8['gold_r3_m1'], 2, 0, winner='Team 5')


class TestAdvanceWinner:
    """Tests for writing a winner into its successor slot."""

    def test_fills_destination_slot(self, arena8):
        completed = apply_result(arena8['gold_r3_m2'], 2, 0)
        successor = advance_winner(completed, arena8)
        assert successor.id == 'gold_r2_m1'
        assert successor.team2 == 'Team 4'
        assert successor.team1 is None

    def test_leaves_arena_untouched(self, arena8):
        completed = apply_result(arena8['gold_r3_m1'], 2, 0)
        advance_winner(completed, arena8)
        assert arena8['gold_r2_m1'].team1 is None

    def test_accepts_match_list(self, bracket8):
        completed = apply_result(index_matches(bracket8)['gold_r3_m1'], 2, 0)
        assert advance_winner(completed, bracket8).team1 == 'Team 1'

    def test_idempotent(self, arena8):
        completed = apply_result(arena8['gold_r3_m1'], 2, 0)
        arena8['gold_r2_m1'] = advance_winner(completed, arena8)
        again = advance_winner(completed, arena8)
        assert again == arena8['gold_r2_m1']

    def test_final_returns_none(self, bracket8):
        arena = play_out(bracket8)
        assert advance_winner(arena['gold_r1_m1'], arena) is None

    def test_incomplete_match(self, arena8):
        with pytest.raises(IncompleteMatch):
            advance_winner(arena8['gold_r3_m1'], arena8)

    def test_winner_not_in_match(self, arena8):
        bogus = apply_result(arena8['gold_r3_m1'], 2, 0)
        bogus.winner = 'Team 3'
        with pytest.raises(ConsistencyFault):
            advance_winner(bogus, arena8)

    def test_missing_successor(self, arena8):
        completed = apply_result(arena8['gold_r3_m1'], 2, 0)
        del arena8['gold_r2_m1']
        with pytest.raises(ConsistencyFault):
            advance_winner(completed, arena8)

    def test_occupied_slot_conflict(self, arena8):
        completed = apply_result(arena8['gold_r3_m1'], 2, 0)
        taken = arena8['gold_r2_m1'].copy()
        taken.team1 = 'Team 8'
        arena8['gold_r2_m1'] = taken
        with pytest.raises(SlotConflict):
            advance_winner(completed, arena8)

    def test_winner_already_in_other_slot(self, arena8):
        completed = apply_result(arena8['gold_r3_m1'], 2, 0)
        taken = arena8['gold_r2_m1'].copy()
        taken.team2 = 'Team 1'
        arena8['gold_r2_m1'] = taken
        with pytest.raises(SlotConflict):
            advance_winner(completed, arena8)


class TestClearMatchAndDescendants:
    """Tests for undoing a result downstream."""

    def test_clears_unplayed_successor_slot(self, arena8):
        completed = apply_result(arena8['gold_r3_m1'], 2, 0)
        arena8[completed.id] = completed
        successor = advance_winner(completed, arena8)
        arena8[successor.id] = successor

        changed = clear_match_and_descendants(completed, arena8)
        assert [m.id for m in changed] == ['gold_r3_m1', 'gold_r2_m1']
        assert changed[0].status == MatchStatus.UPCOMING
        assert changed[0].winner is None
        assert changed[0].team1 == 'Team 1'
        assert changed[1].team1 is None

    def test_clears_played_path(self, bracket8):
        arena = play_out(bracket8)
        changed = {m.id: m for m in clear_match_and_descendants(arena['gold_r2_m2'], arena)}
        assert set(changed) == {'gold_r2_m2', 'gold_r1_m1'}
        assert changed['gold_r1_m1'].status == MatchStatus.UPCOMING
        assert changed['gold_r1_m1'].team2 is None
        assert changed['gold_r1_m1'].team1 == 'Team 1'


class TestEditMatchScore:
    """Tests for correcting a recorded score."""

    def test_same_winner_only_changes_match(self, bracket8):
        arena = play_out(bracket8)
        changed = edit_match_score('gold_r3_m1', 2, 1, arena, approved_by='admin')
        assert len(changed) == 1
        assert (changed[0].score1, changed[0].score2) == (2, 1)
        assert changed[0].winner == 'Team 1'

    def test_flipped_winner_cascades(self, bracket8):
        arena = play_out(bracket8)
        changed = edit_match_score('gold_r3_m1', 0, 2, arena)
        assert [m.id for m in changed] == ['gold_r3_m1', 'gold_r2_m1', 'gold_r1_m1']

        edited, semi, final = changed
        assert edited.winner == 'Team 8'
        assert semi.status == MatchStatus.UPCOMING
        assert (semi.team1, semi.team2) == ('Team 8', 'Team 4')
        assert semi.winner is None
        assert final.status == MatchStatus.UPCOMING
        assert final.team1 is None
        assert final.team2 == 'Team 2'

        for match in changed:
            arena[match.id] = match
        verify_bracket_structure(arena.values())

    def test_flip_before_successor_played(self, arena8):
        completed = apply_result(arena8['gold_r3_m1'], 2, 0)
        arena8[completed.id] = completed
        arena8['gold_r2_m1'] = advance_winner(completed, arena8)

        changed = edit_match_score('gold_r3_m1', 1, 2, arena8)
        assert [m.id for m in changed] == ['gold_r3_m1', 'gold_r2_m1']
        assert changed[1].team1 == 'Team 8'

    def test_edit_final(self, bracket8):
        arena = play_out(bracket8)
        changed = edit_match_score('gold_r1_m1', 1, 2, arena)
        assert len(changed) == 1
        assert changed[0].winner == 'Team 2'

    def test_unknown_match(self, arena8):
        with pytest.raises(NotFound):
            edit_match_score('gold_r7_m1', 2, 0, arena8)


def test_slots_are_fixed_at_build(arena8):
    """Destination slots come from the build, not from positions."""
    assert arena8['gold_r3_m3'].destination_slot == TEAM1
    assert arena8['gold_r3_m4'].destination_slot == TEAM2
