"""
Unit tests for the data models (MatchRules, Match, Submission).
"""
import pytest
import sys
import os

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from tourney.errors import InvalidRules
from tourney.models import (
    DEFAULT_MATCH_RULES,
    RULE_TEMPLATES,
    TEAM1,
    TEAM2,
    Match,
    MatchRules,
    MatchStatus,
    SetScore,
    Submission,
    SubmissionStatus,
    other_side,
)


class TestMatchRules:
    """Tests for the MatchRules model."""

    def test_defaults(self):
        """Default rules are 21 points, win by 2, cap 30, best of 3."""
        rules = MatchRules()
        assert (rules.first_to, rules.win_by, rules.cap, rules.best_of) == (21, 2, 30, 3)
        assert rules == DEFAULT_MATCH_RULES

    def test_sets_to_win(self):
        assert MatchRules(best_of=1).sets_to_win == 1
        assert MatchRules(best_of=3).sets_to_win == 2
        assert MatchRules(best_of=5).sets_to_win == 3

    def test_validate_returns_self(self):
        rules = MatchRules()
        assert rules.validate() is rules

    def test_even_best_of_rejected(self):
        with pytest.raises(InvalidRules, match='odd'):
            MatchRules(best_of=2).validate()

    def test_cap_below_first_to_rejected(self):
        with pytest.raises(InvalidRules, match='cap'):
            MatchRules(first_to=21, cap=20).validate()

    def test_zero_win_by_rejected(self):
        with pytest.raises(InvalidRules):
            MatchRules(win_by=0).validate()

    def test_non_integer_rejected(self):
        with pytest.raises(InvalidRules, match='integer'):
            MatchRules(first_to='21').validate()

    def test_templates_are_valid(self):
        for name, rules in RULE_TEMPLATES.items():
            assert rules.validate() is rules, name

    def test_from_dict_fills_defaults(self):
        rules = MatchRules.from_dict({'best_of': 5})
        assert rules.best_of == 5
        assert rules.first_to == 21

    def test_from_dict_none(self):
        assert MatchRules.from_dict(None) == DEFAULT_MATCH_RULES

    def test_from_dict_rejects_non_mapping(self):
        with pytest.raises(InvalidRules):
            MatchRules.from_dict([21, 2, 30, 3])

    def test_repr(self):
        assert repr(MatchRules()) == "MatchRules(first_to=21, win_by=2, cap=30, best_of=3)"


class TestMatch:
    """Tests for the Match model."""

    def test_match_creation(self):
        match = Match(id='gold_r2_m1', stage_id='gold', round=2, position=1, match_number=2)
        assert match.status == MatchStatus.UPCOMING
        assert match.winner is None
        assert match.rules == DEFAULT_MATCH_RULES
        assert not match.is_ready

    def test_is_final(self):
        final = Match(id='gold_r1_m1', stage_id='gold', round=1, position=1, match_number=1)
        assert final.is_final
        semi = Match(id='gold_r2_m1', stage_id='gold', round=2, position=1, match_number=2,
                     next_match_id='gold_r1_m1', destination_slot=TEAM1)
        assert not semi.is_final

    def test_team_for(self):
        match = Match(id='m', stage_id='s', round=1, position=1, match_number=1, team1='A', team2='B')
        assert match.is_ready
        assert match.team_for(TEAM1) == 'A'
        assert match.team_for(TEAM2) == 'B'

    def test_copy_is_independent(self):
        match = Match(id='m', stage_id='s', round=1, position=1, match_number=1, team1='A', team2='B')
        clone = match.copy()
        clone.team1 = 'C'
        clone.set_scores.append(SetScore(1, 21, 10))
        assert match.team1 == 'A'
        assert match.set_scores == []

    def test_dict_round_trip(self):
        match = Match(id='gold_r2_m1', stage_id='gold', round=2, position=1, match_number=2,
                      round_key='semifinals', team1='A', team2='B', seed1=1, seed2=4,
                      next_match_id='gold_r1_m1', destination_slot=TEAM1,
                      rules=MatchRules(first_to=25, best_of=5))
        match.score1, match.score2 = 3, 1
        match.winner = 'A'
        match.status = MatchStatus.COMPLETED
        match.set_scores = [SetScore(1, 25, 20, TEAM1)]
        restored = Match.from_dict(match.to_dict())
        assert restored == match
        assert restored.rules.best_of == 5


class TestSubmission:
    """Tests for the Submission model."""

    def test_defaults(self):
        submission = Submission(id='s1', match_id='m', team1='A', team2='B', score1=2, score2=0,
                                submitted_by='ref', submitted_at='2026-01-01T10:00:00')
        assert submission.is_pending
        assert submission.status == SubmissionStatus.PENDING
        assert submission.source == 'manual'
        assert submission.set_scores == []

    def test_dict_round_trip(self):
        submission = Submission(id='s1', match_id='m', team1='A', team2='B', score1=2, score2=1,
                                submitted_by='ref', submitted_at='2026-01-01T10:00:00',
                                set_scores=[SetScore(1, 21, 10, TEAM1)], source='scoreboard')
        submission.reviewed_by = 'admin'
        restored = Submission.from_dict(submission.to_dict())
        assert restored.to_dict() == submission.to_dict()


def test_other_side():
    assert other_side(TEAM1) == TEAM2
    assert other_side(TEAM2) == TEAM1
