"""
Structural properties that must hold for every bracket size.

Background:
- Every team count from 2 up builds a single tree of N-1 matches with one final
- Byes go to the top seeds; play-ins trim the field to a full first regular round
- If the better seed always wins, seeds 1 and 2 meet in the final
"""
import random
import pytest
import sys
import os

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from bracket_helpers import make_teams, play_out
from tourney.advancement import advance_winner, apply_result
from tourney.elimination import (calculate_bracket_size, calculate_play_in_matches,
                                 generate_single_elimination_bracket, get_champion,
                                 index_matches, verify_bracket_structure)
from tourney.models import PLAY_IN_KEY, TEAM1, TEAM2


def seed_of(team):
    return int(team.split()[1])


def better_seed(match):
    return min(match.team1, match.team2, key=seed_of)


def check_structure(num_teams, pairing='standard', seeding='manual', rng=None):
    teams = make_teams(num_teams)
    matches = generate_single_elimination_bracket(teams, 'p', seeding=seeding, pairing=pairing, rng=rng)
    arena = index_matches(matches)

    assert len(matches) == num_teams - 1
    finals = [m for m in matches if m.next_match_id is None]
    assert len(finals) == 1
    assert finals[0].round == 1

    fed = set()
    for match in matches:
        if match.next_match_id is None:
            continue
        successor = arena[match.next_match_id]
        assert successor.round < match.round
        assert match.destination_slot in (TEAM1, TEAM2)
        key = (successor.id, match.destination_slot)
        assert key not in fed
        fed.add(key)

    seated = []
    for match in matches:
        for slot in (TEAM1, TEAM2):
            team = match.team_for(slot)
            if (match.id, slot) in fed:
                assert team is None
            else:
                assert team is not None
                seated.append(team)
    assert sorted(seated) == sorted(teams)

    play_ins = [m for m in matches if m.round_key == PLAY_IN_KEY]
    assert len(play_ins) == calculate_play_in_matches(num_teams)
    assert sorted(m.match_number for m in matches) == list(range(1, num_teams))

    verify_bracket_structure(matches)
    return matches


class TestStructureAcrossSizes:
    """Structural invariants for small and mid-size fields."""

    @pytest.mark.parametrize('num_teams', range(2, 34))
    def test_standard_pairing(self, num_teams):
        check_structure(num_teams)

    @pytest.mark.parametrize('num_teams', [3, 5, 6, 7, 12, 17])
    def test_verbatim_pairing(self, num_teams):
        check_structure(num_teams, pairing='verbatim')

    @pytest.mark.parametrize('num_teams', [4, 9, 13])
    def test_random_seeding(self, num_teams):
        check_structure(num_teams, seeding='random', rng=random.Random(num_teams))


class TestByesAndPlayIns:
    """Top seeds get the byes; everyone else plays in."""

    @pytest.mark.parametrize('num_teams', [5, 6, 7, 9, 10, 12, 20, 31])
    def test_top_seeds_skip_play_in(self, num_teams):
        matches = generate_single_elimination_bracket(make_teams(num_teams), 'p')
        byes = calculate_bracket_size(num_teams) - num_teams
        in_play_in = {t for m in matches if m.round_key == PLAY_IN_KEY for t in (m.team1, m.team2)}
        assert {f'Team {s}' for s in range(1, byes + 1)}.isdisjoint(in_play_in)
        assert len(in_play_in) == 2 * (num_teams - calculate_bracket_size(num_teams) // 2)

    @pytest.mark.parametrize('num_teams', [2, 3, 4, 5, 8, 11, 16, 24])
    def test_chalk_final(self, num_teams):
        arena = play_out(generate_single_elimination_bracket(make_teams(num_teams), 'p'), pick=better_seed)
        final = arena['p_r1_m1']
        assert {final.team1, final.team2} == {'Team 1', 'Team 2'}
        assert get_champion(arena) == 'Team 1'


class TestAdvancementProperties:
    """Advancement is idempotent and fills exactly one slot."""

    @pytest.mark.parametrize('num_teams', [4, 6, 9])
    def test_advance_twice_same_state(self, num_teams):
        matches = generate_single_elimination_bracket(make_teams(num_teams), 'p')
        arena = dict(index_matches(matches))
        first = max(matches, key=lambda m: (m.round, -m.match_number))
        completed = apply_result(first, 2, 1)
        arena[completed.id] = completed
        once = advance_winner(completed, arena)
        arena[once.id] = once
        twice = advance_winner(completed, arena)
        assert once == twice
        assert once.team_for(completed.destination_slot) == completed.winner


@pytest.mark.slow
@pytest.mark.parametrize('num_teams', range(34, 130))
def test_structure_large_fields(num_teams):
    """Exhaustive sweep over larger fields."""
    matches = check_structure(num_teams)
    arena = play_out(matches, pick=better_seed)
    assert get_champion(arena) == 'Team 1'
