"""
Data ingestion for the season scheduler.

Builds participants from configuration and loads the protected partial
schedule (YAML or JSON) that the solver must leave untouched.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, FrozenSet, List, Optional

import yaml
from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError

from .config import SchedulerConfig
from .exceptions import ConfigurationError
from .models import Assignment, Matchup, MatchupCategory, Participant

logger = logging.getLogger(__name__)


def create_teams_from_config(config: SchedulerConfig) -> Dict[str, Participant]:
    """
    Create Participant objects from configuration.

    Division names repeated across conferences (``North`` in both) are
    qualified with the conference name so every division key is unique.

    Args:
        config: Scheduler configuration

    Returns:
        Dict[str, Participant]: Dictionary mapping team ids to participants
    """
    teams = {}
    for conference in config.conferences:
        for division in conference.divisions:
            division_key = config.division_key(conference.name, division.name)
            for team_id in division.teams:
                teams[team_id] = Participant(
                    id=team_id,
                    division=division_key,
                    conference=conference.name,
                    rank=config.get_team_rank(team_id)
                )

    return teams


def categorize(host: str, visitor: str, participants: Dict[str, Participant]) -> MatchupCategory:
    """Structural category of a pairing from the teams' groupings."""
    a, b = participants[host], participants[visitor]
    if a.division == b.division:
        return MatchupCategory.DIVISION
    if a.conference == b.conference:
        return MatchupCategory.CONFERENCE
    return MatchupCategory.CROSS


class ProtectedGame(BaseModel):
    """One game in the protected document. Extra keys are kept as metadata."""
    model_config = ConfigDict(extra='allow', populate_by_name=True)

    host: str = Field(validation_alias=AliasChoices("host", "home", "homeTeam"))
    visitor: str = Field(validation_alias=AliasChoices("visitor", "away", "awayTeam"))


class ProtectedScheduleDocument(BaseModel):
    """Top-level layout of a protected schedule file."""
    model_config = ConfigDict(populate_by_name=True)

    season: Optional[int] = None
    description: str = ""
    protected_slots: List[int] = Field(
        default_factory=list,
        validation_alias=AliasChoices("protected_slots", "preScheduledWeeks")
    )
    slots: Dict[int, List[ProtectedGame]] = Field(
        default_factory=dict,
        validation_alias=AliasChoices("slots", "weeks")
    )


@dataclass
class ProtectedSchedule:
    """Games fixed in advance for a set of protected slots."""
    slots: FrozenSet[int] = frozenset()
    assignments: List[Assignment] = field(default_factory=list)
    season: Optional[int] = None
    description: str = ""

    def realized_counts(self) -> Dict[str, int]:
        """Games each participant already plays in protected slots."""
        counts: Dict[str, int] = {}
        for assignment in self.assignments:
            for team in assignment.matchup.teams:
                counts[team] = counts.get(team, 0) + 1
        return counts

    def realized_home_counts(self) -> Dict[str, int]:
        """Protected games each participant hosts."""
        counts: Dict[str, int] = {}
        for assignment in self.assignments:
            counts[assignment.host] = counts.get(assignment.host, 0) + 1
        return counts

    def filter_matchups(self, matchups: List[Matchup]) -> List[Matchup]:
        """
        Remove the generated matchups already played in protected slots.

        Exactly one generated matchup is consumed per protected game. The
        exact orientation is preferred; the reverse orientation is taken
        only when the exact one is not available.

        Args:
            matchups: Generated matchups

        Returns:
            List[Matchup]: Matchups left for the solver

        Raises:
            ConfigurationError: If a protected game is not one of the season's matchups.
        """
        remaining = list(matchups)
        missing = []
        for assignment in self.assignments:
            played = assignment.matchup
            for candidate in (played, played.reversed()):
                match = next(
                    (i for i, m in enumerate(remaining)
                     if m.host == candidate.host and m.visitor == candidate.visitor),
                    None
                )
                if match is not None:
                    del remaining[match]
                    break
            else:
                missing.append(f"{played.label} (slot {assignment.slot})")

        if missing:
            raise ConfigurationError(
                "Protected games are not season matchups: " + ", ".join(missing)
            )

        logger.info("Filtered %d protected games, %d matchups left",
                    len(matchups) - len(remaining), len(remaining))
        return remaining

    def validate(self, num_slots: int) -> List[str]:
        """
        Check the protected games against the season layout.

        Returns:
            List[str]: Error messages, empty when the document is usable
        """
        errors = []
        for slot in sorted(self.slots):
            if slot < 1 or slot > num_slots:
                errors.append(f"Protected slot {slot} is outside 1..{num_slots}")

        seen: Dict[int, Dict[str, str]] = {}
        for assignment in self.assignments:
            if assignment.matchup.is_self_match:
                errors.append(f"Slot {assignment.slot}: {assignment.host} plays itself")
                continue
            busy = seen.setdefault(assignment.slot, {})
            for team in assignment.matchup.teams:
                if team in busy:
                    errors.append(
                        f"Slot {assignment.slot}: {team} plays in both "
                        f"{busy[team]} and {assignment.matchup.label}"
                    )
                busy[team] = assignment.matchup.label
        return errors


def parse_protected_schedule(data: Dict[str, Any], participants: Dict[str, Participant]) -> ProtectedSchedule:
    """
    Build a ProtectedSchedule from an already-parsed document.

    Only slots listed under ``protected_slots`` are read; other slot entries
    in the document are ignored.

    Args:
        data: Parsed YAML/JSON document
        participants: Known participants keyed by id

    Returns:
        ProtectedSchedule: Protected games as assignments
    """
    try:
        document = ProtectedScheduleDocument.model_validate(data or {})
    except ValidationError as e:
        raise ConfigurationError(f"Invalid protected schedule: {e}") from e

    protected = frozenset(document.protected_slots)
    assignments = []
    for slot in sorted(protected):
        for game in document.slots.get(slot, []):
            for team in (game.host, game.visitor):
                if team not in participants:
                    raise ConfigurationError(f"Unknown team in protected slot {slot}: {team}")

            assignments.append(Assignment(
                matchup=Matchup(
                    host=game.host,
                    visitor=game.visitor,
                    category=categorize(game.host, game.visitor, participants)
                ),
                slot=slot,
                protected=True,
                metadata=dict(game.model_extra or {})
            ))

    logger.info("Loaded %d protected games across %d slots", len(assignments), len(protected))
    return ProtectedSchedule(
        slots=protected,
        assignments=assignments,
        season=document.season,
        description=document.description
    )


def load_protected_schedule(path: str, participants: Dict[str, Participant]) -> ProtectedSchedule:
    """
    Load a protected partial schedule from a YAML or JSON file.

    Args:
        path: Path to the document (JSON is valid YAML)
        participants: Known participants keyed by id

    Returns:
        ProtectedSchedule: Protected games as assignments
    """
    with open(path, 'r') as f:
        data = yaml.safe_load(f)

    return parse_protected_schedule(data, participants)
