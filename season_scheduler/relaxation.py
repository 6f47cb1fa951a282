"""
Progressive constraint relaxation for infeasible models.

Each strategy loosens one declared bound. Strategies are tried in order and
are cumulative: the second attempt keeps the first relaxation.
"""

import logging
from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence, Tuple, TypeVar

from .config import ByeWindow, ConstraintConfig
from .exceptions import InfeasibleScheduleError

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class RelaxationStrategy:
    """A named way to loosen the constraints. ``apply`` returns None when it has nothing to relax."""
    name: str
    description: str
    apply: Callable[[ConstraintConfig, int], Optional[ConstraintConfig]]


def _widen_bye_window(constraints: ConstraintConfig, num_slots: int) -> Optional[ConstraintConfig]:
    window = constraints.bye_window
    if window is None:
        return None
    wider = ByeWindow(start=max(1, window.start - 1), end=min(num_slots, window.end + 1))
    if wider == window:
        return None
    return constraints.model_copy(update={'bye_window': wider})


def _raise_cross_cap(constraints: ConstraintConfig, num_slots: int) -> Optional[ConstraintConfig]:
    if constraints.max_cross_category_per_slot is None:
        return None
    return constraints.model_copy(
        update={'max_cross_category_per_slot': constraints.max_cross_category_per_slot + 2}
    )


def _raise_absent_cap(constraints: ConstraintConfig, num_slots: int) -> Optional[ConstraintConfig]:
    if constraints.max_absent_per_slot is None:
        return None
    return constraints.model_copy(update={'max_absent_per_slot': constraints.max_absent_per_slot + 2})


def _drop_slot_minimum(constraints: ConstraintConfig, num_slots: int) -> Optional[ConstraintConfig]:
    if constraints.min_per_slot is None:
        return None
    return constraints.model_copy(update={'min_per_slot': None})


RELAXATION_STRATEGIES: Tuple[RelaxationStrategy, ...] = (
    RelaxationStrategy("widen_bye_window", "Widen the bye window by one slot on each side", _widen_bye_window),
    RelaxationStrategy("raise_cross_cap", "Allow two more cross-conference games per slot", _raise_cross_cap),
    RelaxationStrategy("raise_absent_cap", "Allow two more idle teams per slot", _raise_absent_cap),
    RelaxationStrategy("drop_slot_minimum", "Drop the minimum games per slot", _drop_slot_minimum),
)


class ConstraintRelaxer:
    """Retries an infeasible solve with progressively looser constraints."""

    def __init__(self, strategies: Sequence[RelaxationStrategy] = RELAXATION_STRATEGIES,
                 max_attempts: int = 5):
        self.strategies = list(strategies)
        self.max_attempts = max_attempts
        self.used: List[str] = []

    def run(self, solve: Callable[[ConstraintConfig], T], constraints: ConstraintConfig,
            num_slots: int) -> Tuple[T, ConstraintConfig]:
        """
        Call ``solve`` until it stops raising InfeasibleScheduleError.

        Other errors propagate on the first occurrence.

        Args:
            solve: Callable building and solving a model for given constraints
            constraints: Starting constraints
            num_slots: Number of slots in the season

        Returns:
            Tuple of the solve result and the constraints that produced it

        Raises:
            InfeasibleScheduleError: If every attempt is infeasible.
        """
        self.used = []
        current = constraints
        attempts = 1
        try:
            return solve(current), current
        except InfeasibleScheduleError as e:
            last_error = e

        for strategy in self.strategies:
            if attempts >= self.max_attempts:
                break
            relaxed = strategy.apply(current, num_slots)
            if relaxed is None:
                continue

            current = relaxed
            self.used.append(strategy.name)
            attempts += 1
            logger.warning("Model infeasible, relaxing: %s", strategy.description)
            try:
                return solve(current), current
            except InfeasibleScheduleError as e:
                last_error = e

        raise last_error


def solve_with_relaxation(solve: Callable[[ConstraintConfig], T], constraints: ConstraintConfig,
                          num_slots: int, max_attempts: int = 5) -> Tuple[T, ConstraintConfig, List[str]]:
    """Run ``solve`` under the default strategies and report which ones were needed."""
    relaxer = ConstraintRelaxer(max_attempts=max_attempts)
    result, relaxed = relaxer.run(solve, constraints, num_slots)
    return result, relaxed, relaxer.used
