"""
Data models for the season scheduler.
"""

from dataclasses import dataclass, field
from typing import List, Optional, Dict, Any, FrozenSet, Tuple
from enum import Enum
import pandas as pd


class MatchupCategory(Enum):
    """Structural category of a matchup."""
    DIVISION = "division"
    CONFERENCE = "conference"
    CROSS = "cross"


class SolveStatus(Enum):
    """Normalized solver outcome."""
    OPTIMAL = "optimal"
    FEASIBLE = "feasible"
    INFEASIBLE = "infeasible"
    UNBOUNDED = "unbounded"
    ERROR = "error"

    @property
    def accepted(self) -> bool:
        return self in (SolveStatus.OPTIMAL, SolveStatus.FEASIBLE)


@dataclass(frozen=True)
class Participant:
    """A team in the league."""
    id: str
    division: str
    conference: str
    rank: int = 1


@dataclass(frozen=True)
class Matchup:
    """A host/visitor pairing. Swapped host and visitor is a different matchup."""
    host: str
    visitor: str
    category: MatchupCategory = MatchupCategory.DIVISION

    @property
    def teams(self) -> List[str]:
        """Get both teams in this matchup."""
        return [self.host, self.visitor]

    @property
    def pair(self) -> FrozenSet[str]:
        """Unordered team pair, shared with the reverse matchup."""
        return frozenset((self.host, self.visitor))

    @property
    def is_self_match(self) -> bool:
        return self.host == self.visitor

    def involves(self, team: str) -> bool:
        return team == self.host or team == self.visitor

    def reversed(self) -> "Matchup":
        return Matchup(host=self.visitor, visitor=self.host, category=self.category)

    @property
    def label(self) -> str:
        return f"{self.visitor} @ {self.host}"


@dataclass
class Assignment:
    """A matchup placed in a slot. Only ``slot`` may change after creation."""
    matchup: Matchup
    slot: int
    protected: bool = False
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def host(self) -> str:
        return self.matchup.host

    @property
    def visitor(self) -> str:
        return self.matchup.visitor

    def key(self) -> Tuple[int, str, str]:
        return (self.slot, self.matchup.host, self.matchup.visitor)


@dataclass
class RepeatDefect:
    """A back-to-back rematch the repair pass could not remove."""
    first: Assignment
    second: Assignment
    reason: str

    @property
    def slots(self) -> Tuple[int, int]:
        return (self.first.slot, self.second.slot)

    def describe(self) -> str:
        return (
            f"{self.first.matchup.label} (slot {self.first.slot}) and "
            f"{self.second.matchup.label} (slot {self.second.slot}): {self.reason}"
        )


@dataclass
class Relocation:
    """Log entry for a repair move."""
    assignment: Assignment
    from_slot: int
    to_slot: int
    reason: str = "back-to-back rematch"


@dataclass
class RepairReport:
    """Outcome of the rematch repair pass."""
    relocations: List[Relocation] = field(default_factory=list)
    unfixable: List[RepeatDefect] = field(default_factory=list)
    iterations: int = 0
    exhausted: bool = False

    @property
    def clean(self) -> bool:
        return not self.unfixable and not self.exhausted


@dataclass
class DiagnosticsReport:
    """Solver-independent feasibility findings."""
    issues: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    counts: Dict[str, int] = field(default_factory=dict)
    participant_counts: Dict[str, Dict[str, int]] = field(default_factory=dict)

    @property
    def is_feasible(self) -> bool:
        return not self.issues

    def to_dataframe(self) -> pd.DataFrame:
        rows = [{'Kind': 'Issue', 'Name': issue, 'Value': None} for issue in self.issues]
        rows.extend({'Kind': 'Warning', 'Name': warning, 'Value': None} for warning in self.warnings)
        rows.extend({'Kind': 'Count', 'Name': name, 'Value': value}
                    for name, value in self.counts.items())
        return pd.DataFrame(rows, columns=['Kind', 'Name', 'Value'])


@dataclass
class SolverResult:
    """Normalized result of a solver invocation."""
    status: SolveStatus
    objective: Optional[float] = None
    values: Dict[str, float] = field(default_factory=dict)
    message: str = ""
    solve_time: float = 0.0


@dataclass
class Schedule:
    """A complete season schedule."""
    num_slots: int
    assignments: List[Assignment] = field(default_factory=list)
    protected_slots: FrozenSet[int] = frozenset()
    defects: List[RepeatDefect] = field(default_factory=list)

    def add(self, assignment: Assignment):
        """Add an assignment to the schedule."""
        self.assignments.append(assignment)

    def is_protected(self, slot: int) -> bool:
        return slot in self.protected_slots

    def by_slot(self) -> Dict[int, List[Assignment]]:
        """Assignments grouped by slot, every slot present, in insertion order."""
        slots: Dict[int, List[Assignment]] = {w: [] for w in range(1, self.num_slots + 1)}
        for assignment in self.assignments:
            slots.setdefault(assignment.slot, []).append(assignment)
        return slots

    def get_team_schedule(self, team: str) -> List[Assignment]:
        """Get all games for a specific team, ordered by slot."""
        games = [a for a in self.assignments if a.matchup.involves(team)]
        return sorted(games, key=lambda a: a.slot)

    def get_teams(self) -> List[str]:
        teams = []
        for assignment in self.assignments:
            for team in assignment.matchup.teams:
                if team not in teams:
                    teams.append(team)
        return teams

    def snapshot_protected(self) -> Dict[int, Tuple[Tuple[str, str], ...]]:
        """Ordered (host, visitor) pairs for every protected slot."""
        slots = self.by_slot()
        return {
            slot: tuple((a.host, a.visitor) for a in slots.get(slot, []))
            for slot in sorted(self.protected_slots)
        }

    def to_dataframe(self) -> pd.DataFrame:
        """Convert schedule to pandas DataFrame."""
        if not self.assignments:
            return pd.DataFrame()

        data = []
        for assignment in self.assignments:
            data.append({
                'Slot': assignment.slot,
                'Host': assignment.host,
                'Visitor': assignment.visitor,
                'Category': assignment.matchup.category.value,
                'Protected': assignment.protected,
            })

        df = pd.DataFrame(data)
        return df.sort_values(['Slot', 'Host']).reset_index(drop=True)

    def get_summary_stats(self) -> Dict[str, Any]:
        """Get summary statistics for the schedule."""
        if not self.assignments:
            return {}

        df = self.to_dataframe()
        games_per_slot = df['Slot'].value_counts().to_dict()

        stats = {
            'total_games': len(self.assignments),
            'total_teams': len(self.get_teams()),
            'slots_used': len(games_per_slot),
            'games_per_slot': {w: games_per_slot.get(w, 0) for w in range(1, self.num_slots + 1)},
            'category_distribution': df['Category'].value_counts().to_dict(),
            'protected_games': int(df['Protected'].sum()),
            'defects': len(self.defects),
        }

        return stats


@dataclass
class SeasonResult:
    """Tagged pipeline outcome: a schedule on success, an error otherwise."""
    ok: bool
    schedule: Optional[Schedule] = None
    error: Optional[Exception] = None
    diagnostics: Optional[DiagnosticsReport] = None
    repair: Optional[RepairReport] = None
    solver_result: Optional[SolverResult] = None
    relaxations_used: List[str] = field(default_factory=list)

    def raise_for_error(self) -> None:
        if self.error is not None:
            raise self.error
