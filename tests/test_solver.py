"""
Tests for the solver adapter and solution extraction.
"""

import pulp as pl
import pytest
from pathlib import Path
import sys

# Add the scheduler package to the path
sys.path.append(str(Path(__file__).parent.parent))

from season_scheduler.config import ConstraintConfig
from season_scheduler.exceptions import (
    InfeasibleScheduleError,
    InvalidSolutionError,
    SolverError,
    UnboundedModelError,
)
from season_scheduler.matchups import build_matchups
from season_scheduler.model import build_model
from season_scheduler.models import Matchup, SolveStatus, SolverResult
from season_scheduler.solver import (
    PulpBackend,
    extract_assignments,
    make_pulp_solver,
    normalize_status,
    raise_for_status,
)

TEAMS = ["A", "B", "C", "D"]


def test_normalize_status():
    """Test PuLP status pairs map onto the normalized outcomes."""
    full = {"x": 1.0, "y": 0.0}

    assert normalize_status(pl.LpStatusOptimal, pl.LpSolutionOptimal, full) == SolveStatus.OPTIMAL
    assert normalize_status(pl.LpStatusOptimal, pl.LpSolutionIntegerFeasible, full) == SolveStatus.FEASIBLE

    # Values present but the solver says infeasible
    assert normalize_status(pl.LpStatusInfeasible, pl.LpSolutionInfeasible, full) == SolveStatus.INFEASIBLE
    assert normalize_status(pl.LpStatusUnbounded, pl.LpSolutionUnbounded, full) == SolveStatus.UNBOUNDED

    # Missing values are never accepted
    assert normalize_status(pl.LpStatusOptimal, pl.LpSolutionOptimal, {"x": None}) == SolveStatus.ERROR
    assert normalize_status(pl.LpStatusOptimal, pl.LpSolutionOptimal, {}) == SolveStatus.ERROR
    assert normalize_status(pl.LpStatusUndefined, None, {"x": None}) == SolveStatus.ERROR


def test_time_limit_without_incumbent_is_solver_error():
    """Test a run stopped before any solution is rejected even though CBC fills values."""
    zeros = {"x_0_1": 0.0, "x_0_2": 0.0, "x_1_1": 0.0}

    status = normalize_status(pl.LpStatusNotSolved, pl.LpSolutionNoSolutionFound, zeros)

    assert status == SolveStatus.ERROR
    assert not status.accepted
    assert normalize_status(pl.LpStatusNotSolved, None, zeros) == SolveStatus.ERROR
    with pytest.raises(SolverError, match="Not Solved"):
        raise_for_status(SolverResult(status=status, message=pl.LpStatus[pl.LpStatusNotSolved]))


def test_raise_for_status():
    """Test rejected results raise the matching error."""
    raise_for_status(SolverResult(status=SolveStatus.OPTIMAL))

    with pytest.raises(InfeasibleScheduleError):
        raise_for_status(SolverResult(status=SolveStatus.INFEASIBLE))
    with pytest.raises(UnboundedModelError):
        raise_for_status(SolverResult(status=SolveStatus.UNBOUNDED))
    with pytest.raises(SolverError):
        raise_for_status(SolverResult(status=SolveStatus.ERROR))


def test_unknown_solver_name():
    """Test an unknown backend name is a solver error."""
    with pytest.raises(SolverError, match="Unknown solver"):
        make_pulp_solver("simplex-magic")


def test_cbc_solves_double_round_robin(four_team_config):
    """Test CBC places 12 matchups into 6 slots without conflicts."""
    matchups = build_matchups(four_team_config)
    model = build_model(matchups, TEAMS, 6, 6, ConstraintConfig(max_per_slot=2))

    result = PulpBackend("CBC", time_limit=60).run(model)

    assert result.status.accepted
    assert result.objective is not None

    assignments = extract_assignments(model, result)
    assert len(assignments) == 12
    assert sorted((a.host, a.visitor) for a in assignments) == sorted((m.host, m.visitor) for m in matchups)

    for slot in range(1, 7):
        teams = [t for a in assignments if a.slot == slot for t in a.matchup.teams]
        assert len(teams) == len(set(teams))


def test_cbc_reports_infeasible(four_team_config):
    """Test an over-constrained model is reported infeasible."""
    matchups = build_matchups(four_team_config)
    # Six games per team cannot fit into five slots
    model = build_model(matchups, TEAMS, 5, 6, ConstraintConfig(max_per_slot=2))

    result = PulpBackend("CBC", time_limit=60).run(model)

    assert result.status == SolveStatus.INFEASIBLE
    assert result.values == {}


def test_empty_row_is_infeasible_without_solving():
    """Test a required row with no variables short-circuits to infeasible."""
    # D has a season total but no matchups left
    model = build_model([Matchup("A", "B")], TEAMS, 2, 1, ConstraintConfig(max_per_slot=2))

    result = PulpBackend().run(model)

    assert result.status == SolveStatus.INFEASIBLE
    assert "team_total_C" in result.message


def test_extract_rejects_double_placement():
    """Test a matchup chosen in two slots is an invalid solution."""
    model = build_model([Matchup("A", "B")], ["A", "B"], 2, 1, ConstraintConfig(max_per_slot=1))
    result = SolverResult(status=SolveStatus.FEASIBLE, values={"x_0_1": 1.0, "x_0_2": 0.9})

    with pytest.raises(InvalidSolutionError, match="placed in 2 slots"):
        extract_assignments(model, result)


def test_extract_rejects_team_conflict():
    """Test a team playing twice in one slot is an invalid solution."""
    model = build_model([Matchup("A", "B"), Matchup("A", "C")], ["A", "B", "C"], 2, 1,
                        ConstraintConfig(max_per_slot=2))
    result = SolverResult(status=SolveStatus.FEASIBLE, values={"x_0_1": 1.0, "x_1_1": 1.0})

    with pytest.raises(InvalidSolutionError, match="A plays"):
        extract_assignments(model, result)


def test_extract_uses_half_threshold():
    """Test values above 0.5 count as chosen."""
    model = build_model([Matchup("A", "B")], ["A", "B"], 2, 1, ConstraintConfig(max_per_slot=1))
    result = SolverResult(status=SolveStatus.FEASIBLE, values={"x_0_1": 0.4, "x_0_2": 0.9999})

    assignments = extract_assignments(model, result)
    assert [(a.slot, a.host, a.visitor) for a in assignments] == [(2, "A", "B")]
