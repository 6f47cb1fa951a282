"""
Solver adapter and solution extraction.

A ``SolverBackend`` turns a declarative ``ScheduleModel`` into a solver handle
(``build``) and runs it (``solve``). The PuLP backend drives CBC by default.
"""

import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import pulp as pl

from .exceptions import InfeasibleScheduleError, InvalidSolutionError, SolverError, UnboundedModelError
from .model import ScheduleModel
from .models import Assignment, SolveStatus, SolverResult

logger = logging.getLogger(__name__)


def normalize_status(status: int, sol_status: Optional[int], values: Dict[str, Optional[float]]) -> SolveStatus:
    """
    Map PuLP's status pair onto a SolveStatus.

    A result is accepted only when the solver reports a solution (optimal,
    or an integer-feasible incumbent) and every variable carries a value.
    Some backends fill variable values even when no solution was found, for
    example after a time limit, so the values alone are not enough.

    Args:
        status: ``LpProblem.status``
        sol_status: ``LpProblem.sol_status``
        values: Variable values by name (None when unset)

    Returns:
        SolveStatus: Normalized outcome
    """
    complete = bool(values) and all(v is not None for v in values.values())
    if complete and status == pl.LpStatusOptimal:
        if sol_status == pl.LpSolutionOptimal:
            return SolveStatus.OPTIMAL
        if sol_status == pl.LpSolutionIntegerFeasible:
            return SolveStatus.FEASIBLE
    if status == pl.LpStatusInfeasible:
        return SolveStatus.INFEASIBLE
    if status == pl.LpStatusUnbounded:
        return SolveStatus.UNBOUNDED
    return SolveStatus.ERROR


def make_pulp_solver(name: str = "CBC", time_limit: Optional[int] = None, msg: bool = False):
    """Create the PuLP solver command for a backend name."""
    name = name.upper()
    if name == "CBC":
        return pl.PULP_CBC_CMD(msg=msg, timeLimit=time_limit)
    elif name == "HIGHS":
        return pl.HiGHS_CMD(msg=msg, timeLimit=time_limit)
    elif name == "GLPK":
        return pl.GLPK_CMD(msg=msg, timeLimit=time_limit)
    elif name == "GUROBI":
        return pl.GUROBI(msg=msg, timeLimit=time_limit)
    elif name == "CPLEX":
        return pl.CPLEX_CMD(msg=msg, timeLimit=time_limit)
    raise SolverError(f"Unknown solver backend: {name}")


class SolverBackend(ABC):
    """Build-then-solve interface for slot-assignment models."""

    @abstractmethod
    def build(self, model: ScheduleModel) -> Any:
        """Translate the model into a solver-specific handle."""
        pass

    @abstractmethod
    def solve(self, handle: Any) -> SolverResult:
        """Run the solver on a built handle."""
        pass

    def run(self, model: ScheduleModel) -> SolverResult:
        return self.solve(self.build(model))


@dataclass
class PulpHandle:
    """A built PuLP problem plus its variables by model name."""
    problem: pl.LpProblem
    variables: Dict[str, pl.LpVariable] = field(default_factory=dict)
    violated_rows: List[str] = field(default_factory=list)


class PulpBackend(SolverBackend):
    """PuLP backend (CBC by default)."""

    def __init__(self, solver_name: str = "CBC", time_limit: Optional[int] = None, msg: bool = False):
        self.solver_name = solver_name.upper()
        self.time_limit = time_limit
        self.msg = msg

    def build(self, model: ScheduleModel) -> PulpHandle:
        prob = pl.LpProblem("season_schedule", pl.LpMinimize)
        handle = PulpHandle(problem=prob)

        for name, var in model.variables.items():
            # Integer with explicit bounds; LpBinary would reset fixed variables to [0, 1]
            handle.variables[name] = pl.LpVariable(
                name, lowBound=var.lower, upBound=var.upper,
                cat=pl.LpInteger if var.binary else pl.LpContinuous
            )

        prob += pl.lpSum(coef * handle.variables[name] for name, coef in model.objective.items())

        for idx, row in enumerate(model.constraints):
            if not row.terms:
                if not row.constant_satisfied():
                    handle.violated_rows.append(row.name)
                continue

            expr = pl.lpSum(coef * handle.variables[name] for name, coef in row.terms.items())
            if row.is_equality:
                prob += (expr == row.lower, f"{row.family}_{idx}")
                continue
            if row.lower is not None:
                prob += (expr >= row.lower, f"{row.family}_{idx}_lo")
            if row.upper is not None:
                prob += (expr <= row.upper, f"{row.family}_{idx}_hi")

        return handle

    def solve(self, handle: PulpHandle) -> SolverResult:
        if handle.violated_rows:
            # A row without variables can never be satisfied
            return SolverResult(
                status=SolveStatus.INFEASIBLE,
                message=f"Empty constraint(s) cannot be met: {', '.join(handle.violated_rows[:5])}"
            )

        solver = make_pulp_solver(self.solver_name, self.time_limit, self.msg)
        start = time.time()
        try:
            handle.problem.solve(solver)
        except (pl.PulpSolverError, OSError) as e:
            logger.error("Solver %s failed: %s", self.solver_name, e)
            return SolverResult(status=SolveStatus.ERROR, message=str(e),
                                solve_time=time.time() - start)
        elapsed = time.time() - start

        raw = {name: var.varValue for name, var in handle.variables.items()}
        status = normalize_status(handle.problem.status, getattr(handle.problem, "sol_status", None), raw)
        message = pl.LpStatus.get(handle.problem.status, str(handle.problem.status))
        logger.info("Solver %s finished in %.2fs: %s (%s)", self.solver_name, elapsed, status.value, message)

        if not status.accepted:
            return SolverResult(status=status, message=message, solve_time=elapsed)

        return SolverResult(
            status=status,
            objective=pl.value(handle.problem.objective),
            values={name: float(v) for name, v in raw.items()},
            message=message,
            solve_time=elapsed
        )


def raise_for_status(result: SolverResult) -> None:
    """Raise the scheduling error matching a rejected solver result."""
    if result.status.accepted:
        return
    if result.status == SolveStatus.INFEASIBLE:
        raise InfeasibleScheduleError(f"No schedule satisfies the constraints ({result.message})")
    if result.status == SolveStatus.UNBOUNDED:
        raise UnboundedModelError(f"Model reported unbounded ({result.message})")
    raise SolverError(f"Solver did not produce a schedule ({result.message or 'no status'})")


def extract_assignments(model: ScheduleModel, result: SolverResult) -> List[Assignment]:
    """
    Turn an accepted solver result into assignments.

    Any variable above 0.5 counts as chosen.

    Raises:
        InvalidSolutionError: If a matchup is placed zero or several times,
            or a team plays twice in one slot.
    """
    chosen: Dict[int, List[int]] = {}
    for name, var in model.variables.items():
        if result.values.get(name, 0.0) > 0.5:
            chosen.setdefault(var.matchup_index, []).append(var.slot)

    assignments = []
    problems = []
    for i, matchup in enumerate(model.matchups):
        slots = chosen.get(i, [])
        if matchup.is_self_match:
            if slots:
                problems.append(f"Self matchup {matchup.host} was placed in slot {slots[0]}")
            continue
        if len(slots) != 1:
            problems.append(f"{matchup.label} placed in {len(slots)} slots")
            continue
        assignments.append(Assignment(matchup=matchup, slot=slots[0]))

    busy: Dict[tuple, str] = {}
    for assignment in assignments:
        for team in assignment.matchup.teams:
            key = (team, assignment.slot)
            if key in busy:
                problems.append(
                    f"{team} plays {busy[key]} and {assignment.matchup.label} in slot {assignment.slot}"
                )
            busy[key] = assignment.matchup.label

    if problems:
        raise InvalidSolutionError("Solver assignment is inconsistent: " + "; ".join(problems[:10]))

    assignments.sort(key=lambda a: (a.slot, a.host))
    return assignments
