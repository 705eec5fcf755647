# Command line entry point: build a single elimination bracket from a team list

import argparse
import sys
import yaml
from tourney.elimination import generate_single_elimination_bracket, get_bracket_display
from tourney.errors import ConfigurationError
from tourney.models import PAIRING_MODES, RULE_TEMPLATES, SEEDING_MODES


def load_teams(file_path):
    """Teams from a YAML list, or a mapping with a 'teams' list, in seed order."""
    with open(file_path, mode='r', encoding='utf-8') as file:
        data = yaml.safe_load(file)
    if isinstance(data, dict):
        data = data.get('teams')
    if not isinstance(data, list):
        raise ConfigurationError(f'{file_path} must contain a list of team names')
    return [str(team).strip() for team in data]


def format_bracket(display):
    lines = []
    for round_info in display['rounds']:
        lines.append(f"\n{round_info['name']} (round {round_info['round']})")
        for match in round_info['matches']:
            team1 = match['team1'] or 'TBD'
            team2 = match['team2'] or 'TBD'
            target = ''
            if match['next_match_id']:
                target = f"  -> {match['next_match_id']} ({match['destination_slot']})"
            lines.append(f"  #{match['match_number']:<3} {match['id']}: {team1} vs {team2}{target}")
    return '\n'.join(lines)


def main(argv=None):
    parser = argparse.ArgumentParser(
        description='Build a single elimination bracket from a YAML team list'
    )
    parser.add_argument('teams_file', help='YAML file with team names, best seed first')
    parser.add_argument('--stage', default='playoffs', help='Stage id used in match ids')
    parser.add_argument('--seeding', choices=SEEDING_MODES, default='manual')
    parser.add_argument('--pairing', choices=PAIRING_MODES, default='standard')
    parser.add_argument('--bracket-size', type=int, help='Full bracket size (power of two)')
    parser.add_argument('--rules', choices=sorted(RULE_TEMPLATES), help='Rule template for every match')
    parser.add_argument('--output', help='Write the generated matches to this YAML file')

    args = parser.parse_args(argv)

    try:
        teams = load_teams(args.teams_file)
        rules = RULE_TEMPLATES[args.rules] if args.rules else None
        matches = generate_single_elimination_bracket(teams, args.stage, seeding=args.seeding,
                                                      pairing=args.pairing,
                                                      bracket_size=args.bracket_size, rules=rules)
    except (OSError, yaml.YAMLError, ConfigurationError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    display = get_bracket_display(matches)
    print(f"--- {args.stage}: {display['total_teams']} teams, {len(matches)} matches, "
          f"{display['byes']} byes ---")
    print(format_bracket(display))

    if args.output:
        with open(args.output, 'w', encoding='utf-8') as f:
            yaml.dump({'stage_id': args.stage, 'matches': [m.to_dict() for m in matches]},
                      f, default_flow_style=False, sort_keys=False)
        print(f"\nMatches written to {args.output}")
    return 0


if __name__ == '__main__':
    sys.exit(main())
