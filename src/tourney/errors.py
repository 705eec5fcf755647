"""
Exception taxonomy for bracket building, advancement and live scoring.

Configuration errors are raised before anything is mutated. Validation
problems with submitted scores are *not* exceptions: they come back as
SetValidation / MatchValidation results from tourney.scoring.
"""


class TournamentError(Exception):
    """Base class for all engine errors."""


class ConfigurationError(TournamentError):
    """Invalid input to an operation that builds or configures state."""


class InvalidRules(ConfigurationError):
    pass


class InsufficientTeams(ConfigurationError):
    pass


class UnsatisfiableBracketSize(ConfigurationError):
    pass


class ConsistencyFault(TournamentError):
    """An internal invariant would be broken; the mutation was refused."""


class SetIndexOutOfRange(ConsistencyFault):
    pass


class SlotConflict(ConsistencyFault):
    """A successor slot is already held by a different team."""


class ScoreboardLocked(TournamentError):
    pass


class InvalidTransition(TournamentError):
    pass


class MatchNotReady(TournamentError):
    """A match slot is still waiting on a predecessor."""


class IncompleteMatch(TournamentError):
    """Advancement requested for a match that has no recorded winner."""


class NotFound(TournamentError):
    pass
