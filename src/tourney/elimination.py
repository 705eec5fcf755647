"""
Single elimination bracket generation.

Rounds are numbered from the final backwards: round 1 is the final, round 2
the semifinals and so on. When the team count is not a power of two the
earliest round is a play-in round that trims the field to exactly fill the
first regular round; the remaining teams (top seeds first) get byes.

Every match's successor and destination slot are fixed here, once. Nothing
downstream recomputes them from positions.
"""
import logging
import math
import random
from typing import Dict, Iterable, List, Optional, Tuple, Union

from .errors import (ConfigurationError, InsufficientTeams, SlotConflict,
                     UnsatisfiableBracketSize)
from .models import (DEFAULT_MATCH_RULES, PAIRING_MODES, PAIRING_STANDARD, PLAY_IN_KEY,
                     SEEDING_MODES, SEEDING_RANDOM, TEAM1, TEAM2, Match, MatchRules,
                     MatchStatus, TournamentStatus)

logger = logging.getLogger(__name__)

RulesInput = Union[None, MatchRules, Dict]


def get_round_name(round_number: int) -> str:
    """Get the display name of a round (1 = final)."""
    names = {
        1: "Finals",
        2: "Semi-Finals",
        3: "Quarter-Finals",
        4: "Round of 16",
        5: "Round of 32",
    }
    return names.get(round_number, f"Round {round_number}")


def get_round_key(round_number: int, regular_rounds: int) -> str:
    """Get the stable key used to look up per-round rules."""
    if round_number == 1:
        return 'finals'
    elif round_number == 2:
        return 'semifinals'
    elif round_number == 3:
        return 'quarterfinals'
    return f'round{regular_rounds - round_number + 1}'


def calculate_bracket_size(num_teams: int) -> int:
    """Calculate the bracket size (next power of 2)."""
    if num_teams <= 0:
        return 0
    return 2 ** math.ceil(math.log2(num_teams))


def lower_power_of_two(num_teams: int) -> int:
    """Largest power of 2 not above num_teams."""
    if num_teams <= 0:
        return 0
    return 2 ** math.floor(math.log2(num_teams))


def calculate_byes(num_teams: int) -> int:
    """Calculate number of byes needed."""
    bracket_size = calculate_bracket_size(num_teams)
    return bracket_size - num_teams


def calculate_play_in_matches(num_teams: int) -> int:
    """Matches needed to trim num_teams down to a full first regular round."""
    bracket_size = calculate_bracket_size(num_teams)
    if num_teams < 2 or num_teams == bracket_size:
        return 0
    return num_teams - bracket_size // 2


def suggest_playoff_format(num_teams: int) -> Dict:
    """
    Suggest byes or play-ins for a field that is not a power of 2.

    'byes' counts the teams that would skip a round, 'play_ins' the teams that
    would play an extra match. Play-ins are suggested when they affect fewer
    teams than byes would.

    >>> suggest_playoff_format(10)['suggestion']
    'play-in'
    """
    if num_teams <= 0:
        return {'suggestion': 'byes', 'byes': 0, 'play_ins': 0, 'lower': 0, 'higher': 0}

    lower = lower_power_of_two(num_teams)
    higher = calculate_bracket_size(num_teams)
    if lower == higher:
        return {'suggestion': 'none', 'byes': 0, 'play_ins': 0, 'lower': lower, 'higher': higher}

    byes = higher - num_teams
    play_ins = (num_teams - lower) * 2
    suggestion = 'play-in' if play_ins < byes else 'byes'
    return {'suggestion': suggestion, 'byes': byes, 'play_ins': play_ins, 'lower': lower, 'higher': higher}


def seed_teams(teams: List[str], seeding: str = 'manual', rng: Optional[random.Random] = None) -> List[str]:
    """
    Return teams in seed order (seed 1 first).

    'manual' keeps the given order; 'random' is a uniform shuffle. Pass a
    seeded random.Random to make a random draw reproducible.
    """
    if seeding not in SEEDING_MODES:
        raise ConfigurationError(f'Unknown seeding mode: {seeding}')
    seeded = list(teams)
    if seeding == SEEDING_RANDOM:
        (rng or random).shuffle(seeded)
    return seeded


def seed_teams_from_standings(standings: List[Dict], advance_count: int) -> List[str]:
    """
    Take the top advance_count teams from pool-play standings.

    Standings rows are dicts with a 'team' name and optionally a 'rank'; rows
    without a rank keep their list order.
    """
    if advance_count < 0:
        raise ConfigurationError('advance_count cannot be negative')
    if advance_count > len(standings):
        raise ConfigurationError(
            f'Cannot advance {advance_count} teams from standings of {len(standings)}')
    ordered = sorted(enumerate(standings), key=lambda row: (row[1].get('rank', row[0] + 1), row[0]))
    return [row['team'] for _, row in ordered[:advance_count]]


def _generate_bracket_order(bracket_size: int) -> List[int]:
    """
    Generate the standard tournament bracket order.
    This ensures that if all higher seeds win, they meet in the proper rounds.

    For 8 teams: [1, 8, 4, 5, 2, 7, 3, 6]
    This gives matchups: 1v8, 4v5, 2v7, 3v6
    Winners: 1v4 side, 2v3 side
    Final: 1v2 (if chalk)
    """
    if bracket_size == 2:
        return [1, 2]

    half_size = bracket_size // 2
    upper_half = _generate_bracket_order(half_size)
    lower_half = [bracket_size + 1 - seed for seed in upper_half]

    result = []
    for u, l in zip(upper_half, lower_half):
        result.extend([u, l])

    return result


def _verbatim_bracket_order(num_teams: int, bracket_size: int) -> List[Optional[int]]:
    """Pair seeds in list order; the first entries take the byes."""
    byes = bracket_size - num_teams
    order: List[Optional[int]] = []
    for seed in range(1, byes + 1):
        order.extend([seed, None])
    order.extend(range(byes + 1, num_teams + 1))
    return order


def _first_line_pairs(num_teams: int, bracket_size: int, pairing: str) -> List[Tuple[Optional[int], Optional[int]]]:
    """Seed pairs for each line of the full-size first round (None = empty line)."""
    if pairing == PAIRING_STANDARD:
        order = [seed if seed <= num_teams else None for seed in _generate_bracket_order(bracket_size)]
    else:
        order = _verbatim_bracket_order(num_teams, bracket_size)
    return [(order[i], order[i + 1]) for i in range(0, len(order), 2)]


def _resolve_rules(rules: RulesInput, round_key: str) -> MatchRules:
    if rules is None:
        return DEFAULT_MATCH_RULES
    if isinstance(rules, MatchRules):
        return rules
    if round_key in rules:
        return MatchRules.from_dict(rules[round_key]).validate()
    if round_key == PLAY_IN_KEY and 'round1' in rules:
        return MatchRules.from_dict(rules['round1']).validate()
    if 'default' in rules:
        return MatchRules.from_dict(rules['default']).validate()
    return DEFAULT_MATCH_RULES


def _slot_for(line: int) -> str:
    return TEAM1 if line % 2 == 0 else TEAM2


def generate_single_elimination_bracket(teams: List[str], stage_id: str, seeding: str = 'manual',
                                        pairing: str = PAIRING_STANDARD,
                                        bracket_size: Optional[int] = None,
                                        rules: RulesInput = None,
                                        rng: Optional[random.Random] = None) -> List[Match]:
    """
    Build the complete match graph for a single elimination stage.

    Args:
        teams: Team names; in seed order unless seeding is 'random'
        stage_id: Used to derive match ids ({stage_id}_r{round}_m{position})
        seeding: 'manual' or 'random'
        pairing: 'standard' (1 v lowest, top seeds meet late) or 'verbatim'
            (the seed list is the bracket order)
        bracket_size: Optional explicit bracket size; must be the power of 2
            that this many teams fills through a play-in round
        rules: One MatchRules for every round, or a dict keyed by round key
        rng: Random source for 'random' seeding

    Returns:
        All N-1 matches ordered by match_number (final first).
    """
    num_teams = len(teams)
    if num_teams < 2:
        raise InsufficientTeams(f'A bracket needs at least 2 teams, got {num_teams}')
    if len(set(teams)) != num_teams:
        raise ConfigurationError('Team names must be unique within a bracket')
    if pairing not in PAIRING_MODES:
        raise ConfigurationError(f'Unknown pairing mode: {pairing}')
    if isinstance(rules, MatchRules):
        rules.validate()

    size = calculate_bracket_size(num_teams)
    if bracket_size is not None and bracket_size != size:
        raise UnsatisfiableBracketSize(
            f'{num_teams} teams cannot fill a bracket of {bracket_size}; expected {size}')

    seeded = seed_teams(teams, seeding, rng)
    total_rounds = int(math.log2(size))
    has_play_in = num_teams < size
    regular_rounds = total_rounds - 1 if has_play_in else total_rounds

    line_pairs = _first_line_pairs(num_teams, size, pairing)

    def team(seed):
        return seeded[seed - 1] if seed is not None else None

    matches: List[Match] = []
    rounds: Dict[int, List[Match]] = {}
    match_number = 1

    # Regular rounds, final first
    for round_number in range(1, regular_rounds + 1):
        round_key = get_round_key(round_number, regular_rounds)
        round_rules = _resolve_rules(rules, round_key)
        rounds[round_number] = []
        for position in range(1, 2 ** (round_number - 1) + 1):
            match = Match(
                id=f'{stage_id}_r{round_number}_m{position}',
                stage_id=stage_id,
                round=round_number,
                position=position,
                match_number=match_number,
                round_key=round_key,
                rules=round_rules,
            )
            match_number += 1
            rounds[round_number].append(match)
            matches.append(match)

    # Successor wiring between regular rounds
    for round_number in range(2, regular_rounds + 1):
        for line, match in enumerate(rounds[round_number]):
            successor = rounds[round_number - 1][line // 2]
            match.next_match_id = successor.id
            match.destination_slot = _slot_for(line)

    earliest = rounds[regular_rounds]
    if not has_play_in:
        for line, (seed1, seed2) in enumerate(line_pairs):
            match = earliest[line]
            match.team1, match.seed1 = team(seed1), seed1
            match.team2, match.seed2 = team(seed2), seed2
    else:
        play_in_round = total_rounds
        play_in_rules = _resolve_rules(rules, PLAY_IN_KEY)
        position = 0
        for line, (seed1, seed2) in enumerate(line_pairs):
            successor = earliest[line // 2]
            slot = _slot_for(line)
            if seed1 is not None and seed2 is not None:
                position += 1
                match = Match(
                    id=f'{stage_id}_r{play_in_round}_m{position}',
                    stage_id=stage_id,
                    round=play_in_round,
                    position=position,
                    match_number=match_number,
                    round_key=PLAY_IN_KEY,
                    team1=team(seed1),
                    team2=team(seed2),
                    seed1=seed1,
                    seed2=seed2,
                    next_match_id=successor.id,
                    destination_slot=slot,
                    rules=play_in_rules,
                )
                match_number += 1
                matches.append(match)
            else:
                # Bye: the lone team is already through to its first regular match
                bye_seed = seed1 if seed1 is not None else seed2
                if slot == TEAM1:
                    successor.team1, successor.seed1 = team(bye_seed), bye_seed
                else:
                    successor.team2, successor.seed2 = team(bye_seed), bye_seed

    verify_bracket_structure(matches)
    logger.info('Built bracket %s: %d teams, %d rounds, %d play-in matches',
                stage_id, num_teams, total_rounds, calculate_play_in_matches(num_teams))
    return matches


def verify_bracket_structure(matches: Iterable[Match]) -> None:
    """
    Raise SlotConflict unless the matches form one well-wired elimination tree.

    Checks: exactly one final; a match has a successor iff it is not in
    round 1; successors exist and sit one round closer to the final; no two
    matches feed the same successor slot; a fed slot holds nothing but its
    predecessor's winner; every other slot is seated, each team only once.
    """
    arena = index_matches(matches)
    finals = [m for m in arena.values() if m.next_match_id is None]
    if len(finals) != 1:
        raise SlotConflict(f'Expected exactly one final, found {len(finals)}')
    if finals[0].round != 1:
        raise SlotConflict(f'Final {finals[0].id} is in round {finals[0].round}')

    claimed = {}
    for match in arena.values():
        if match.next_match_id is None:
            continue
        if match.round == 1:
            raise SlotConflict(f'Round 1 match {match.id} points to {match.next_match_id}')
        successor = arena.get(match.next_match_id)
        if successor is None:
            raise SlotConflict(f'{match.id} points to unknown match {match.next_match_id}')
        if successor.round >= match.round:
            raise SlotConflict(f'{match.id} feeds {successor.id} which is not a later round')
        if match.destination_slot not in (TEAM1, TEAM2):
            raise SlotConflict(f'{match.id} has no destination slot')
        key = (match.next_match_id, match.destination_slot)
        if key in claimed:
            raise SlotConflict(f'{match.id} and {claimed[key]} both feed {key[0]} {key[1]}')
        claimed[key] = match.id

    seated = []
    for match in arena.values():
        for slot in (TEAM1, TEAM2):
            occupant = match.team_for(slot)
            feeder_id = claimed.get((match.id, slot))
            if feeder_id is None:
                if occupant is None:
                    raise SlotConflict(f'{match.id} {slot} has no team and no predecessor')
                seated.append(occupant)
            elif occupant is not None and arena[feeder_id].winner != occupant:
                raise SlotConflict(f'{match.id} {slot} holds {occupant} but is fed by {feeder_id}')
    if len(seated) != len(set(seated)):
        raise SlotConflict('A team is seated into more than one slot')


def index_matches(matches: Union[Dict[str, Match], Iterable[Match]]) -> Dict[str, Match]:
    """Arena of matches keyed by id."""
    if isinstance(matches, dict):
        return matches
    arena = {}
    for match in matches:
        if match.id in arena:
            raise SlotConflict(f'Duplicate match id {match.id}')
        arena[match.id] = match
    return arena


def get_matches_by_round(matches: Iterable[Match], round_number: int) -> List[Match]:
    """Matches of one round ordered by match_number."""
    if isinstance(matches, dict):
        matches = matches.values()
    return sorted((m for m in matches if m.round == round_number), key=lambda m: m.match_number)


def get_tournament_status(matches: Iterable[Match]) -> str:
    """upcoming until a result lands, completed once every match is."""
    if isinstance(matches, dict):
        matches = matches.values()
    statuses = [m.status for m in matches]
    if statuses and all(s == MatchStatus.COMPLETED for s in statuses):
        return TournamentStatus.COMPLETED
    if any(s in (MatchStatus.COMPLETED, MatchStatus.LIVE) for s in statuses):
        return TournamentStatus.LIVE
    return TournamentStatus.UPCOMING


def get_champion(matches: Iterable[Match]) -> Optional[str]:
    if isinstance(matches, dict):
        matches = matches.values()
    for match in matches:
        if match.next_match_id is None and match.status == MatchStatus.COMPLETED:
            return match.winner
    return None


def get_bracket_display(matches: Iterable[Match]) -> Dict:
    """
    Get bracket data formatted for UI display.

    Rounds are listed from the earliest round to the final.
    """
    arena = index_matches(matches)
    round_numbers = sorted({m.round for m in arena.values()}, reverse=True)
    play_in = [m for m in arena.values() if m.round_key == PLAY_IN_KEY]

    rounds = []
    for round_number in round_numbers:
        round_matches = get_matches_by_round(arena, round_number)
        is_play_in = bool(round_matches) and round_matches[0].round_key == PLAY_IN_KEY
        rounds.append({
            'round': round_number,
            'name': 'Play-In' if is_play_in else get_round_name(round_number),
            'matches': [m.to_dict() for m in round_matches],
        })

    teams = set()
    for match in arena.values():
        if match.seed1 is not None:
            teams.add(match.team1)
        if match.seed2 is not None:
            teams.add(match.team2)

    return {
        'rounds': rounds,
        'total_rounds': len(round_numbers),
        'total_teams': len(teams),
        'play_in_matches': len(play_in),
        'byes': calculate_byes(len(teams)) if teams else 0,
        'champion': get_champion(arena),
        'status': get_tournament_status(arena),
    }
