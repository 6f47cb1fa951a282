"""
Declarative binary program for assigning matchups to slots.

The model is a plain description (variables, linear rows, objective) that a
solver backend turns into something executable. It is rebuilt for every solve
and thrown away after extraction.
"""

import logging
import math
from dataclasses import dataclass, field
from typing import Dict, FrozenSet, Iterable, List, Optional, Tuple

from .config import ConstraintConfig
from .models import Assignment, Matchup, MatchupCategory

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ModelVariable:
    """Binary decision: matchup ``matchup_index`` is played in ``slot``."""
    name: str
    matchup_index: int
    slot: int
    lower: float = 0
    upper: float = 1
    binary: bool = True


@dataclass
class LinearConstraint:
    """``lower <= sum(coef * var) <= upper``; a missing bound is unbounded."""
    name: str
    family: str
    terms: Dict[str, float]
    lower: Optional[float] = None
    upper: Optional[float] = None

    @property
    def is_equality(self) -> bool:
        return self.lower is not None and self.lower == self.upper

    def constant_satisfied(self) -> bool:
        """For a row without terms: does zero satisfy the bounds?"""
        return (self.lower is None or self.lower <= 0) and (self.upper is None or self.upper >= 0)


@dataclass
class ScheduleModel:
    """A disposable slot-assignment model."""
    matchups: List[Matchup]
    slots: List[int]
    variables: Dict[str, ModelVariable] = field(default_factory=dict)
    constraints: List[LinearConstraint] = field(default_factory=list)
    objective: Dict[str, float] = field(default_factory=dict)

    def add_variable(self, matchup_index: int, slot: int) -> ModelVariable:
        var = ModelVariable(name=f"x_{matchup_index}_{slot}", matchup_index=matchup_index, slot=slot)
        self.variables[var.name] = var
        return var

    def var_name(self, matchup_index: int, slot: int) -> str:
        return f"x_{matchup_index}_{slot}"

    def add_constraint(self, name: str, family: str, names: Iterable[str],
                       lower: Optional[float] = None, upper: Optional[float] = None) -> LinearConstraint:
        row = LinearConstraint(name=name, family=family, terms={n: 1.0 for n in names},
                               lower=lower, upper=upper)
        self.constraints.append(row)
        return row

    def fix_to_zero(self, name: str) -> None:
        var = self.variables[name]
        self.variables[name] = ModelVariable(
            name=var.name, matchup_index=var.matchup_index, slot=var.slot, lower=0, upper=0
        )

    def stats(self) -> Dict[str, int]:
        """Variable count plus constraint counts per family."""
        stats = {'variables': len(self.variables), 'constraints': len(self.constraints)}
        for row in self.constraints:
            stats[row.family] = stats.get(row.family, 0) + 1
        return stats


def slot_weight(slot: int, num_slots: int) -> float:
    """Objective coefficient mildly favouring mid-season slots."""
    mid = (num_slots + 1) / 2
    return 1 + 0.01 * abs(slot - mid) / mid


def build_model(
    matchups: List[Matchup],
    participants: List[str],
    num_slots: int,
    required: int,
    constraints: ConstraintConfig,
    protected_slots: FrozenSet[int] = frozenset(),
    realized: Optional[Dict[str, int]] = None,
    protected_assignments: Optional[List[Assignment]] = None,
) -> ScheduleModel:
    """
    Build the slot-assignment model for the matchups left after protection.

    Args:
        matchups: Matchups the solver must place
        participants: All participant ids
        num_slots: Number of slots in the season
        required: Games each participant plays over the season
        constraints: Declared bounds
        protected_slots: Slots that are already fixed
        realized: Games each participant already plays in protected slots
        protected_assignments: Games in protected slots, used to ban
            rematches next to them when adjacency is enforced

    Returns:
        ScheduleModel: The declarative model
    """
    realized = realized or {}
    free_slots = [w for w in range(1, num_slots + 1) if w not in protected_slots]
    model = ScheduleModel(matchups=list(matchups), slots=free_slots)

    for i in range(len(matchups)):
        for w in free_slots:
            var = model.add_variable(i, w)
            model.objective[var.name] = slot_weight(w, num_slots)

    # Each matchup in exactly one slot
    for i, matchup in enumerate(matchups):
        names = [model.var_name(i, w) for w in free_slots]
        if matchup.is_self_match:
            logger.warning("Self matchup for %s fixed out of the model", matchup.host)
            for name in names:
                model.fix_to_zero(name)
            model.add_constraint(f"self_{i}", "self_match", names, lower=0, upper=0)
            continue
        model.add_constraint(f"one_slot_{i}", "one_slot", names, lower=1, upper=1)

    by_team: Dict[str, List[int]] = {team: [] for team in participants}
    for i, matchup in enumerate(matchups):
        if matchup.is_self_match:
            continue
        for team in matchup.teams:
            by_team.setdefault(team, []).append(i)

    # At most one game per team per slot, exactly one outside the bye window
    for team, indices in by_team.items():
        for w in free_slots:
            names = [model.var_name(i, w) for i in indices]
            lower = None if constraints.allows_bye(w) else 1
            model.add_constraint(f"team_slot_{team}_{w}", "team_slot", names, lower=lower, upper=1)

    # Season total, net of protected games
    for team, indices in by_team.items():
        target = required - realized.get(team, 0)
        names = [model.var_name(i, w) for i in indices for w in free_slots]
        model.add_constraint(f"team_total_{team}", "team_total", names, lower=target, upper=target)

    floor = constraints.min_per_slot or 0
    if constraints.max_absent_per_slot is not None:
        floor = max(floor, math.ceil((len(participants) - constraints.max_absent_per_slot) / 2))

    for w in free_slots:
        names = [model.var_name(i, w) for i in range(len(matchups))]
        model.add_constraint(f"slot_capacity_{w}", "slot_capacity", names,
                             lower=floor or None, upper=constraints.max_per_slot)

    if constraints.max_cross_category_per_slot is not None:
        cross = [i for i, m in enumerate(matchups) if m.category == MatchupCategory.CROSS]
        if cross:
            for w in free_slots:
                names = [model.var_name(i, w) for i in cross]
                model.add_constraint(f"cross_cap_{w}", "cross_cap", names,
                                     upper=constraints.max_cross_category_per_slot)

    if constraints.enforce_adjacency_in_model:
        _add_adjacency_rows(model, matchups, free_slots, protected_assignments or [])

    logger.info("Built model: %s", model.stats())
    return model


def _add_adjacency_rows(model: ScheduleModel, matchups: List[Matchup], free_slots: List[int],
                        protected_assignments: List[Assignment]) -> None:
    free = set(free_slots)

    by_pair: Dict[FrozenSet[str], List[int]] = {}
    for i, matchup in enumerate(matchups):
        if not matchup.is_self_match:
            by_pair.setdefault(matchup.pair, []).append(i)

    consecutive: List[Tuple[int, int]] = [(w, w + 1) for w in free_slots if w + 1 in free]
    for indices in by_pair.values():
        for x, a in enumerate(indices):
            for b in indices[x + 1:]:
                for w, nxt in consecutive:
                    model.add_constraint(
                        f"adjacent_{a}_{w}_{b}_{nxt}", "adjacency",
                        [model.var_name(a, w), model.var_name(b, nxt)], upper=1
                    )
                    model.add_constraint(
                        f"adjacent_{b}_{w}_{a}_{nxt}", "adjacency",
                        [model.var_name(b, w), model.var_name(a, nxt)], upper=1
                    )

    # Rematches may not sit next to a protected game between the same teams
    for assignment in protected_assignments:
        for i in by_pair.get(assignment.matchup.pair, []):
            for w in (assignment.slot - 1, assignment.slot + 1):
                if w in free:
                    model.add_constraint(f"protected_neighbour_{i}_{w}", "protected_neighbour",
                                         [model.var_name(i, w)], upper=0)
