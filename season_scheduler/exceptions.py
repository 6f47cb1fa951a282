"""
Exception taxonomy for the season scheduler.
"""

from typing import Dict, Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from .models import DiagnosticsReport


class SchedulerError(Exception):
    """Base exception for all scheduling failures."""
    pass


class ConfigurationError(SchedulerError):
    """Raised when the league or constraint configuration is unusable."""
    pass


class GenerationShortfall(SchedulerError):
    """Raised when the matchup generator cannot reach every team's game target."""

    def __init__(self, shortfall: Dict[str, int], required: int):
        self.shortfall = dict(shortfall)
        self.required = required
        teams = ", ".join(f"{team} (-{missing})" for team, missing in sorted(self.shortfall.items()))
        super().__init__(
            f"{len(self.shortfall)} team(s) short of {required} games after balancing: {teams}"
        )


class InfeasibleScheduleError(SchedulerError):
    """Raised when no assignment satisfies the model."""

    def __init__(self, message: str, diagnostics: Optional["DiagnosticsReport"] = None):
        super().__init__(message)
        self.diagnostics = diagnostics


class UnboundedModelError(SchedulerError):
    """Raised when the solver reports the model unbounded (a model-building defect)."""
    pass


class SolverError(SchedulerError):
    """Raised for opaque solver failures such as timeouts or crashes."""
    pass


class InvalidSolutionError(SchedulerError):
    """Raised when a solver assignment breaks a structural invariant."""
    pass


class ProtectedScheduleViolation(SchedulerError):
    """Raised when protected slots differ after postprocessing."""
    pass
