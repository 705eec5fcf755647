"""
Flask web application for the bracket and live scoreboard engine.

Thin JSON adapter: every route loads a stage from YAML, calls into the
tourney package, and writes the changed records back under one file lock.
"""
import os
import re
import shutil
import logging
import yaml
from datetime import datetime
from filelock import FileLock
from flask import Flask, request, jsonify
from tourney.advancement import advance_winner, edit_match_score
from tourney.elimination import (generate_single_elimination_bracket, get_bracket_display,
                                 get_matches_by_round, suggest_playoff_format)
from tourney.errors import (ConfigurationError, ConsistencyFault, IncompleteMatch,
                            InvalidTransition, MatchNotReady, NotFound,
                            ScoreboardLocked, TournamentError)
from tourney.models import Match, MatchStatus, SIDES, Submission
from tourney.scoreboard import Scoreboard
from tourney.submissions import (approve_submission, create_submission, record_admin_result,
                                 reject_submission, resolve_scores, retire_submissions,
                                 validate_result, validate_submission)

app = Flask(__name__)


BASE_DIR = os.path.dirname(os.path.dirname(__file__))
DATA_DIR = os.environ.get('TOURNAMENT_DATA_DIR', os.path.join(BASE_DIR, 'data'))

app.logger.setLevel(os.environ.get('TOURNAMENT_LOG_LEVEL', 'INFO').upper())
logging.getLogger('tourney').setLevel(app.logger.level)

_data_lock = FileLock(os.path.join(DATA_DIR, '.lock'), timeout=10)

STAGE_ID_PATTERN = re.compile(r'^[A-Za-z0-9][A-Za-z0-9_-]*$')


# ---------------------------------------------------------------------------
# Storage helpers
# ---------------------------------------------------------------------------

def _stage_dir(stage_id: str) -> str:
    if not STAGE_ID_PATTERN.match(stage_id):
        raise NotFound(f'Invalid stage id: {stage_id}')
    return os.path.join(DATA_DIR, 'stages', stage_id)


def _stage_file(stage_id: str, name: str) -> str:
    return os.path.join(_stage_dir(stage_id), name)


def _load_yaml(path: str, default):
    if not os.path.exists(path):
        return default
    try:
        with open(path, 'r', encoding='utf-8') as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        app.logger.warning(f'Failed to parse {path}: {e}')
        return default
    return data if data is not None else default


def _save_yaml(path: str, data):
    os.makedirs(os.path.dirname(path), exist_ok=True)
    with open(path, 'w', encoding='utf-8') as f:
        yaml.dump(data, f, default_flow_style=False, sort_keys=False)


def load_matches(stage_id: str) -> dict:
    """Load the stage's match arena keyed by match id."""
    data = _load_yaml(_stage_file(stage_id, 'matches.yaml'), {})
    matches = {}
    for entry in data.get('matches', []):
        match = Match.from_dict(entry)
        matches[match.id] = match
    return matches


def save_matches(stage_id: str, matches: dict):
    ordered = sorted(matches.values(), key=lambda m: m.match_number)
    _save_yaml(_stage_file(stage_id, 'matches.yaml'),
               {'stage_id': stage_id, 'matches': [m.to_dict() for m in ordered]})


def load_scoreboards(stage_id: str) -> dict:
    data = _load_yaml(_stage_file(stage_id, 'scoreboards.yaml'), {})
    return {match_id: Scoreboard.from_dict(entry) for match_id, entry in data.items()}


def save_scoreboards(stage_id: str, scoreboards: dict):
    _save_yaml(_stage_file(stage_id, 'scoreboards.yaml'),
               {match_id: board.to_dict() for match_id, board in scoreboards.items()})


def load_submissions(stage_id: str) -> list:
    data = _load_yaml(_stage_file(stage_id, 'submissions.yaml'), {})
    return [Submission.from_dict(entry) for entry in data.get('submissions', [])]


def save_submissions(stage_id: str, submissions: list):
    _save_yaml(_stage_file(stage_id, 'submissions.yaml'),
               {'submissions': [s.to_dict() for s in submissions]})


def load_settings(stage_id: str) -> dict:
    return _load_yaml(_stage_file(stage_id, 'settings.yaml'), {})


def save_settings(stage_id: str, settings: dict):
    _save_yaml(_stage_file(stage_id, 'settings.yaml'), settings)


def _get_match(matches: dict, match_id: str) -> Match:
    match = matches.get(match_id)
    if match is None:
        raise NotFound(f'Match {match_id} not found')
    return match


def _replace_submissions(submissions: list, updated: list) -> list:
    by_id = {s.id: s for s in updated}
    return [by_id.get(s.id, s) for s in submissions]


def _complete(stage_id: str, matches: dict, completed: Match) -> list:
    """Store a completed match and push its winner forward. Returns changed matches."""
    matches[completed.id] = completed
    changed = [completed]
    successor = advance_winner(completed, matches)
    if successor is not None:
        matches[successor.id] = successor
        changed.append(successor)
    save_matches(stage_id, matches)
    return changed


def _request_user(data: dict):
    return data.get('user') or request.headers.get('X-User')


# ---------------------------------------------------------------------------
# Error handling
# ---------------------------------------------------------------------------

@app.errorhandler(NotFound)
def handle_not_found(error):
    return jsonify({'success': False, 'error': str(error)}), 404


@app.errorhandler(ConfigurationError)
def handle_configuration_error(error):
    return jsonify({'success': False, 'error': str(error)}), 400


@app.errorhandler(ConsistencyFault)
def handle_consistency_fault(error):
    app.logger.error(f'Consistency fault: {error}')
    return jsonify({'success': False, 'error': str(error)}), 409


@app.errorhandler(ScoreboardLocked)
@app.errorhandler(InvalidTransition)
@app.errorhandler(MatchNotReady)
@app.errorhandler(IncompleteMatch)
def handle_state_error(error):
    app.logger.warning(f'Refused: {error}')
    return jsonify({'success': False, 'error': str(error)}), 409


@app.errorhandler(TournamentError)
def handle_tournament_error(error):
    return jsonify({'success': False, 'error': str(error)}), 400


def _validation_failed(validation):
    return jsonify({'success': False, 'error': validation.error,
                    'sets_won': list(validation.sets_won)}), 422


# ---------------------------------------------------------------------------
# Bracket
# ---------------------------------------------------------------------------

@app.route('/api/stages/<stage_id>/bracket', methods=['POST'])
def api_build_bracket(stage_id):
    """Build and store a bracket for a stage.

    Body: teams (ordered by seed), optional seeding, pairing, bracket_size,
    rules (one rule set, or a mapping of round key to rule set).
    Settings saved for the stage fill in anything the body leaves out.
    """
    data = request.get_json(silent=True) or {}
    with _data_lock:
        settings = load_settings(stage_id)
        teams = data.get('teams', settings.get('teams'))
        if not isinstance(teams, list):
            return jsonify({'success': False, 'error': 'teams must be a list of names'}), 400
        seeding = data.get('seeding', settings.get('seeding', 'manual'))
        pairing = data.get('pairing', settings.get('pairing', 'standard'))
        bracket_size = data.get('bracket_size', settings.get('bracket_size'))
        rules = data.get('rules', settings.get('rules'))
        if isinstance(rules, dict) and not any(isinstance(v, dict) for v in rules.values()):
            rules = {'default': rules}

        existing = load_matches(stage_id)
        if any(m.status != MatchStatus.UPCOMING for m in existing.values()) and not data.get('force'):
            return jsonify({'success': False, 'error': 'Stage already has results; pass force to rebuild'}), 409

        matches = generate_single_elimination_bracket(teams, stage_id, seeding=seeding, pairing=pairing,
                                                      bracket_size=bracket_size, rules=rules)
        arena = {m.id: m for m in matches}
        save_matches(stage_id, arena)
        save_scoreboards(stage_id, {})
        save_submissions(stage_id, [])
        save_settings(stage_id, {
            'teams': teams,
            'seeding': seeding,
            'pairing': pairing,
            'bracket_size': bracket_size,
            'rules': rules,
            'created_at': datetime.now().isoformat(),
        })
    app.logger.info(f'Bracket built for {stage_id}: {len(teams)} teams, {len(matches)} matches')
    return jsonify({'success': True, 'bracket': get_bracket_display(arena)}), 201


@app.route('/api/stages/<stage_id>/bracket', methods=['GET'])
def api_get_bracket(stage_id):
    matches = load_matches(stage_id)
    if not matches:
        raise NotFound(f'Stage {stage_id} has no bracket')
    return jsonify({'success': True, 'bracket': get_bracket_display(matches)})


@app.route('/api/stages/<stage_id>', methods=['DELETE'])
def api_delete_stage(stage_id):
    stage_dir = _stage_dir(stage_id)
    with _data_lock:
        if not os.path.isdir(stage_dir):
            raise NotFound(f'Stage {stage_id} not found')
        shutil.rmtree(stage_dir)
    app.logger.info(f'Deleted stage {stage_id}')
    return jsonify({'success': True})


@app.route('/api/stages/<stage_id>/matches', methods=['GET'])
def api_list_matches(stage_id):
    matches = load_matches(stage_id)
    round_number = request.args.get('round', type=int)
    if round_number is not None:
        selected = get_matches_by_round(matches, round_number)
    else:
        selected = sorted(matches.values(), key=lambda m: m.match_number)
    return jsonify({'success': True, 'matches': [m.to_dict() for m in selected]})


@app.route('/api/stages/<stage_id>/matches/<match_id>', methods=['GET'])
def api_get_match(stage_id, match_id):
    match = _get_match(load_matches(stage_id), match_id)
    return jsonify({'success': True, 'match': match.to_dict()})


@app.route('/api/playoff-format/<int:num_teams>', methods=['GET'])
def api_playoff_format(num_teams):
    if num_teams < 2:
        return jsonify({'success': False, 'error': 'At least 2 teams are required'}), 400
    return jsonify({'success': True, **suggest_playoff_format(num_teams)})


# ---------------------------------------------------------------------------
# Live scoreboard
# ---------------------------------------------------------------------------

def _get_scoreboard(scoreboards: dict, match_id: str) -> Scoreboard:
    board = scoreboards.get(match_id)
    if board is None:
        raise NotFound(f'No scoreboard for match {match_id}')
    return board


@app.route('/api/stages/<stage_id>/matches/<match_id>/scoreboard', methods=['POST'])
def api_create_scoreboard(stage_id, match_id):
    data = request.get_json(silent=True) or {}
    with _data_lock:
        matches = load_matches(stage_id)
        match = _get_match(matches, match_id)
        scoreboards = load_scoreboards(stage_id)
        if match_id in scoreboards:
            return jsonify({'success': False, 'error': f'Match {match_id} already has a scoreboard'}), 409
        board = Scoreboard.for_match(match, started_by=_request_user(data))
        scoreboards[match_id] = board
        live = match.copy()
        live.status = MatchStatus.LIVE
        matches[match_id] = live
        save_scoreboards(stage_id, scoreboards)
        save_matches(stage_id, matches)
    return jsonify({'success': True, 'scoreboard': board.to_dict()}), 201


@app.route('/api/stages/<stage_id>/matches/<match_id>/scoreboard', methods=['GET'])
def api_get_scoreboard(stage_id, match_id):
    board = _get_scoreboard(load_scoreboards(stage_id), match_id)
    return jsonify({'success': True, 'scoreboard': board.to_dict()})


@app.route('/api/stages/<stage_id>/matches/<match_id>/scoreboard', methods=['DELETE'])
def api_delete_scoreboard(stage_id, match_id):
    """Abandon a live scoreboard and put the match back to upcoming."""
    with _data_lock:
        scoreboards = load_scoreboards(stage_id)
        _get_scoreboard(scoreboards, match_id)
        del scoreboards[match_id]
        save_scoreboards(stage_id, scoreboards)
        matches = load_matches(stage_id)
        match = matches.get(match_id)
        if match is not None and match.status == MatchStatus.LIVE:
            idle = match.copy()
            idle.status = MatchStatus.UPCOMING
            matches[match_id] = idle
            save_matches(stage_id, matches)
    app.logger.info(f'Scoreboard for {stage_id}/{match_id} abandoned')
    return jsonify({'success': True})


def _scoreboard_transition(stage_id, match_id, action):
    data = request.get_json(silent=True) or {}
    with _data_lock:
        scoreboards = load_scoreboards(stage_id)
        board = _get_scoreboard(scoreboards, match_id)
        action(board, data)
        save_scoreboards(stage_id, scoreboards)
    return jsonify({'success': True, 'scoreboard': board.to_dict()})


def _side(data: dict) -> str:
    side = data.get('side')
    if side not in SIDES:
        raise InvalidTransition(f'side must be one of {", ".join(SIDES)}')
    return side


@app.route('/api/stages/<stage_id>/matches/<match_id>/scoreboard/increment', methods=['POST'])
def api_scoreboard_increment(stage_id, match_id):
    return _scoreboard_transition(
        stage_id, match_id, lambda board, data: board.increment_score(_side(data), _request_user(data)))


@app.route('/api/stages/<stage_id>/matches/<match_id>/scoreboard/decrement', methods=['POST'])
def api_scoreboard_decrement(stage_id, match_id):
    return _scoreboard_transition(
        stage_id, match_id, lambda board, data: board.decrement_score(_side(data), _request_user(data)))


@app.route('/api/stages/<stage_id>/matches/<match_id>/scoreboard/reset', methods=['POST'])
def api_scoreboard_reset(stage_id, match_id):
    return _scoreboard_transition(
        stage_id, match_id, lambda board, data: board.reset_current_set(_request_user(data)))


@app.route('/api/stages/<stage_id>/matches/<match_id>/scoreboard/lock', methods=['POST'])
def api_scoreboard_lock(stage_id, match_id):
    return _scoreboard_transition(
        stage_id, match_id,
        lambda board, data: board.set_locked(data.get('locked', True), _request_user(data)))


@app.route('/api/stages/<stage_id>/matches/<match_id>/scoreboard/submit', methods=['POST'])
def api_scoreboard_submit(stage_id, match_id):
    data = request.get_json(silent=True) or {}
    with _data_lock:
        scoreboards = load_scoreboards(stage_id)
        board = _get_scoreboard(scoreboards, match_id)
        submission = board.submit(_request_user(data))
        submissions = load_submissions(stage_id)
        submissions.append(submission)
        save_submissions(stage_id, submissions)
        save_scoreboards(stage_id, scoreboards)
    app.logger.info(f'Scoreboard {stage_id}/{match_id} submitted as {submission.id}')
    return jsonify({'success': True, 'submission': submission.to_dict()}), 201


# ---------------------------------------------------------------------------
# Submissions and results
# ---------------------------------------------------------------------------

@app.route('/api/stages/<stage_id>/matches/<match_id>/submissions', methods=['GET'])
def api_list_submissions(stage_id, match_id):
    history = [s for s in load_submissions(stage_id) if s.match_id == match_id]
    return jsonify({'success': True, 'submissions': [s.to_dict() for s in history]})


@app.route('/api/stages/<stage_id>/matches/<match_id>/submissions', methods=['POST'])
def api_create_submission(stage_id, match_id):
    """Propose a final score by hand: either sets [[s1, s2], ...] or score1/score2."""
    data = request.get_json(silent=True)
    if not data:
        return jsonify({'success': False, 'error': 'No data provided'}), 400
    with _data_lock:
        match = _get_match(load_matches(stage_id), match_id)
        submission = create_submission(match, _request_user(data),
                                       score1=data.get('score1'), score2=data.get('score2'),
                                       set_scores=data.get('sets'))
        validation = validate_submission(match, submission)
        if not validation.valid:
            return _validation_failed(validation)
        submissions = load_submissions(stage_id)
        submissions.append(submission)
        save_submissions(stage_id, submissions)
    return jsonify({'success': True, 'submission': submission.to_dict()}), 201


def _find_submission(submissions: list, submission_id: str) -> Submission:
    submission = next((s for s in submissions if s.id == submission_id), None)
    if submission is None:
        raise NotFound(f'Submission {submission_id} not found')
    return submission


@app.route('/api/stages/<stage_id>/submissions/<submission_id>/approve', methods=['POST'])
def api_approve_submission(stage_id, submission_id):
    data = request.get_json(silent=True) or {}
    with _data_lock:
        submissions = load_submissions(stage_id)
        submission = _find_submission(submissions, submission_id)
        matches = load_matches(stage_id)
        match = _get_match(matches, submission.match_id)

        result = approve_submission(submission, match, submissions,
                                    approved_by=_request_user(data))
        if not result.approved:
            return _validation_failed(result.validation)

        changed = _complete(stage_id, matches, result.match)
        save_submissions(stage_id, _replace_submissions(
            submissions, [result.submission] + result.superseded))

        scoreboards = load_scoreboards(stage_id)
        board = scoreboards.get(match.id)
        if board is not None:
            if board.submission_id == submission_id:
                board.mark_approved(_request_user(data))
            else:
                del scoreboards[match.id]
            save_scoreboards(stage_id, scoreboards)
    app.logger.info(f'Approved {submission_id}: {result.match.winner} wins {match.id}')
    return jsonify({
        'success': True,
        'submission': result.submission.to_dict(),
        'rejected': [s.id for s in result.superseded],
        'matches': [m.to_dict() for m in changed],
    })


@app.route('/api/stages/<stage_id>/submissions/<submission_id>/reject', methods=['POST'])
def api_reject_submission(stage_id, submission_id):
    """Reject a pending submission; a scoreboard behind it is discarded."""
    data = request.get_json(silent=True) or {}
    with _data_lock:
        submissions = load_submissions(stage_id)
        submission = _find_submission(submissions, submission_id)
        rejected = reject_submission(submission, reviewed_by=_request_user(data))
        save_submissions(stage_id, _replace_submissions(submissions, [rejected]))

        scoreboards = load_scoreboards(stage_id)
        board = scoreboards.get(submission.match_id)
        if board is not None and board.submission_id == submission_id:
            del scoreboards[submission.match_id]
            save_scoreboards(stage_id, scoreboards)
            matches = load_matches(stage_id)
            match = matches.get(submission.match_id)
            if match is not None and match.status == MatchStatus.LIVE:
                idle = match.copy()
                idle.status = MatchStatus.UPCOMING
                matches[match.id] = idle
                save_matches(stage_id, matches)
    return jsonify({'success': True, 'submission': rejected.to_dict()})


@app.route('/api/stages/<stage_id>/matches/<match_id>/result', methods=['POST'])
def api_admin_result(stage_id, match_id):
    """Record a result directly; every pending submission for the match is rejected."""
    data = request.get_json(silent=True)
    if not data:
        return jsonify({'success': False, 'error': 'No data provided'}), 400
    with _data_lock:
        matches = load_matches(stage_id)
        match = _get_match(matches, match_id)
        submissions = load_submissions(stage_id)
        result = record_admin_result(match, data.get('score1'), data.get('score2'), submissions,
                                     approved_by=_request_user(data), set_scores=data.get('sets'))
        if not result.approved:
            return _validation_failed(result.validation)
        changed = _complete(stage_id, matches, result.match)
        save_submissions(stage_id, _replace_submissions(submissions, result.superseded))
        scoreboards = load_scoreboards(stage_id)
        if scoreboards.pop(match_id, None) is not None:
            save_scoreboards(stage_id, scoreboards)
    app.logger.info(f'Admin result for {stage_id}/{match_id}: {result.match.winner}')
    return jsonify({'success': True, 'matches': [m.to_dict() for m in changed]})


@app.route('/api/stages/<stage_id>/matches/<match_id>/score', methods=['PUT'])
def api_edit_score(stage_id, match_id):
    """Correct a completed match's score, clearing downstream results if the winner flips."""
    data = request.get_json(silent=True)
    if not data:
        return jsonify({'success': False, 'error': 'No data provided'}), 400
    with _data_lock:
        matches = load_matches(stage_id)
        match = _get_match(matches, match_id)
        if match.status != MatchStatus.COMPLETED:
            raise InvalidTransition(f'Match {match_id} has no result to edit')
        score1, score2, sets = resolve_scores(match, data.get('score1'), data.get('score2'), data.get('sets'))
        validation = validate_result(match, score1, score2, sets)
        if not validation.valid:
            return _validation_failed(validation)
        changed = edit_match_score(match_id, score1, score2, matches,
                                   approved_by=_request_user(data), set_scores=sets)
        downstream = [m for m in changed if m.id != match_id]
        if downstream:
            scoreboards = load_scoreboards(stage_id)
            dropped = [m.id for m in downstream if scoreboards.pop(m.id, None) is not None]
            for updated in downstream:
                if updated.id in dropped and updated.status == MatchStatus.LIVE:
                    updated.status = MatchStatus.UPCOMING
            if dropped:
                save_scoreboards(stage_id, scoreboards)
            submissions = load_submissions(stage_id)
            retired = retire_submissions(submissions, [m.id for m in downstream],
                                         reviewed_by=_request_user(data))
            if retired:
                save_submissions(stage_id, _replace_submissions(submissions, retired))
        for updated in changed:
            matches[updated.id] = updated
        save_matches(stage_id, matches)
    app.logger.info(f'Edited score of {stage_id}/{match_id}: {len(changed)} matches changed')
    return jsonify({'success': True, 'matches': [m.to_dict() for m in changed]})


if __name__ == '__main__':
    app.run(debug=True, port=5000)
