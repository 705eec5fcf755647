"""
Helpers shared by the bracket tests: team lists and playing a bracket out.
"""
from tourney.advancement import advance_winner, apply_result
from tourney.elimination import index_matches


def make_teams(count):
    return [f'Team {i}' for i in range(1, count + 1)]


def play_out(matches, pick=None):
    """
    Play every match in round order, approving whichever team pick() returns
    (team1 by default), and push winners forward. Returns the final arena.
    """
    arena = dict(index_matches(matches))
    for round_number in sorted({m.round for m in arena.values()}, reverse=True):
        for match_id in [m.id for m in arena.values() if m.round == round_number]:
            match = arena[match_id]
            winner = pick(match) if pick else match.team1
            score1, score2 = (2, 0) if winner == match.team1 else (0, 2)
            completed = apply_result(match, score1, score2, approved_by='test')
            arena[completed.id] = completed
            successor = advance_winner(completed, arena)
            if successor is not None:
                arena[successor.id] = successor
    return arena
