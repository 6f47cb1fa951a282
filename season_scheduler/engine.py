"""
Core scheduling pipeline: generate, protect, diagnose, solve, repair, validate.
"""

import logging
from typing import List, Optional, Tuple

from .config import ConstraintConfig, SchedulerConfig
from .diagnostics import run_diagnostics
from .exceptions import ConfigurationError, InfeasibleScheduleError, InvalidSolutionError, SchedulerError
from .ingest import ProtectedSchedule
from .matchups import League, MatchupGenerator
from .model import ScheduleModel, build_model
from .models import Assignment, DiagnosticsReport, Matchup, Schedule, SeasonResult, SolveStatus, SolverResult
from .passes import fix_consecutive_rematches
from .relaxation import ConstraintRelaxer
from .solver import PulpBackend, SolverBackend, extract_assignments, raise_for_status
from .validation import assert_protected_unchanged, snapshot_protected, validate_schedule

logger = logging.getLogger(__name__)


class SeasonScheduler:
    """Runs the full scheduling pipeline for one season."""

    def __init__(self, config: SchedulerConfig, protected: Optional[ProtectedSchedule] = None,
                 backend: Optional[SolverBackend] = None):
        self.config = config
        self.protected = protected or ProtectedSchedule()
        self.backend = backend or PulpBackend(
            solver_name=config.solver.name,
            time_limit=config.solver.time_limit,
            msg=config.solver.msg
        )
        self.league = League.from_config(config)

        self.matchups: List[Matchup] = []
        self.remaining: List[Matchup] = []
        self.solver_result: Optional[SolverResult] = None
        self.relaxations_used: List[str] = []

    def prepare(self) -> DiagnosticsReport:
        """
        Generate matchups, remove the protected ones and run diagnostics.

        Returns:
            DiagnosticsReport: Feasibility findings for the remaining matchups

        Raises:
            ConfigurationError: If the protected schedule is unusable.
            GenerationShortfall: If the matchup generator falls short.
        """
        errors = self.protected.validate(self.config.num_slots)
        if errors:
            raise ConfigurationError("Invalid protected schedule: " + "; ".join(errors))

        generator = MatchupGenerator(self.league, self.config.games_per_team, self.config.season)
        self.matchups = generator.generate()
        self.remaining = self.protected.filter_matchups(self.matchups)

        return run_diagnostics(
            self.remaining,
            self.league.teams,
            self.config.num_slots,
            self.config.games_per_team,
            self.config.constraints,
            protected_slots=set(self.protected.slots),
            realized=self.protected.realized_counts(),
            realized_home=self.protected.realized_home_counts()
        )

    def run(self) -> SeasonResult:
        """
        Run the pipeline.

        Scheduling failures come back as a failed SeasonResult; anything
        that is not a SchedulerError propagates.

        Returns:
            SeasonResult: Tagged outcome with the schedule or the error
        """
        diagnostics = None
        repair = None
        try:
            diagnostics = self.prepare()
            for warning in diagnostics.warnings:
                logger.warning(warning)
            if not diagnostics.is_feasible:
                if not self.config.relaxation.enabled:
                    raise InfeasibleScheduleError(
                        "Diagnostics found %d issue(s): %s" % (len(diagnostics.issues), diagnostics.issues[0]),
                        diagnostics
                    )
                logger.warning("Diagnostics found issues, trying relaxation: %s", diagnostics.issues)

            assignments, constraints = self._solve(diagnostics)

            schedule = Schedule(num_slots=self.config.num_slots, protected_slots=self.protected.slots)
            for assignment in self.protected.assignments:
                schedule.add(Assignment(matchup=assignment.matchup, slot=assignment.slot,
                                        protected=True, metadata=dict(assignment.metadata)))
            for assignment in assignments:
                schedule.add(assignment)

            before = snapshot_protected(schedule)
            if self.config.repair.enabled:
                repair_config = self.config.model_copy(update={'constraints': constraints})
                repair = fix_consecutive_rematches(schedule, repair_config)
                logger.info("Repair moved %d game(s), %d left unfixable",
                            len(repair.relocations), len(repair.unfixable))
            assert_protected_unchanged(before, schedule)

            issues = validate_schedule(schedule, self.matchups, constraints)
            for warning in issues['warnings']:
                logger.warning(warning)
            if issues['errors']:
                raise InvalidSolutionError("Final schedule failed validation: " + "; ".join(issues['errors'][:10]))

            return SeasonResult(
                ok=True,
                schedule=schedule,
                diagnostics=diagnostics,
                repair=repair,
                solver_result=self.solver_result,
                relaxations_used=list(self.relaxations_used)
            )

        except SchedulerError as e:
            if isinstance(e, InfeasibleScheduleError) and e.diagnostics is None:
                e.diagnostics = diagnostics
            logger.error("Scheduling failed: %s", e)
            return SeasonResult(
                ok=False,
                error=e,
                diagnostics=diagnostics,
                repair=repair,
                solver_result=self.solver_result,
                relaxations_used=list(self.relaxations_used)
            )

    def _solve(self, diagnostics: DiagnosticsReport) -> Tuple[List[Assignment], ConstraintConfig]:
        constraints = self.config.constraints
        if not self.remaining:
            logger.info("Every matchup is protected, nothing to solve")
            return [], constraints

        def attempt(current: ConstraintConfig) -> Tuple[ScheduleModel, SolverResult]:
            model = build_model(
                self.remaining,
                self.league.teams,
                self.config.num_slots,
                self.config.games_per_team,
                current,
                protected_slots=self.protected.slots,
                realized=self.protected.realized_counts(),
                protected_assignments=self.protected.assignments
            )
            result = self.backend.run(model)
            self.solver_result = result
            if result.status == SolveStatus.INFEASIBLE:
                raise InfeasibleScheduleError(
                    f"No schedule satisfies the constraints ({result.message})", diagnostics
                )
            raise_for_status(result)
            return model, result

        if self.config.relaxation.enabled:
            relaxer = ConstraintRelaxer(max_attempts=self.config.relaxation.max_attempts)
            try:
                (model, result), constraints = relaxer.run(attempt, constraints, self.config.num_slots)
            finally:
                self.relaxations_used = list(relaxer.used)
        else:
            model, result = attempt(constraints)

        return extract_assignments(model, result), constraints


def schedule_season(config: SchedulerConfig, protected: Optional[ProtectedSchedule] = None,
                    backend: Optional[SolverBackend] = None) -> SeasonResult:
    """
    Schedule a season from configuration.

    Args:
        config: Scheduler configuration
        protected: Optional protected partial schedule
        backend: Optional solver backend (PuLP with the configured solver by default)

    Returns:
        SeasonResult: Tagged outcome
    """
    return SeasonScheduler(config, protected, backend).run()
