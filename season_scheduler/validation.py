"""
Schedule validation and protected-slot invariance checks.
"""

import logging
from typing import Dict, List, Tuple

from .config import ConstraintConfig
from .exceptions import ProtectedScheduleViolation
from .models import Matchup, Schedule
from .passes.rematch_fix import find_consecutive_rematches

logger = logging.getLogger(__name__)

Snapshot = Dict[int, Tuple[Tuple[str, str], ...]]


def snapshot_protected(schedule: Schedule) -> Snapshot:
    """Per protected slot, the ordered (host, visitor) pairs."""
    return schedule.snapshot_protected()


def protected_unchanged(before: Snapshot, after: Snapshot) -> bool:
    """Whether two protected snapshots are identical, slot by slot and in order."""
    return before == after


def assert_protected_unchanged(before: Snapshot, schedule: Schedule) -> None:
    """
    Raise if any protected slot differs from its earlier snapshot.

    Raises:
        ProtectedScheduleViolation: If a protected slot changed.
    """
    after = snapshot_protected(schedule)
    if protected_unchanged(before, after):
        return

    changed = sorted(
        slot for slot in set(before) | set(after)
        if before.get(slot) != after.get(slot)
    )
    logger.error("Protected slots changed during postprocessing: %s", changed)
    raise ProtectedScheduleViolation(f"Protected slots changed: {changed}")


def validate_schedule(schedule: Schedule, matchups: List[Matchup],
                      constraints: ConstraintConfig) -> Dict[str, List[str]]:
    """
    Validate a final schedule. Never modifies the schedule.

    Args:
        schedule: Schedule to check
        matchups: Every matchup of the season, protected games included
        constraints: Declared bounds

    Returns:
        Dict[str, List[str]]: Validation results
    """
    issues = {
        'warnings': [],
        'errors': []
    }

    # Every matchup scheduled exactly once; protected games may be the reverse orientation
    remaining: Dict[Tuple[str, str], int] = {}
    for matchup in matchups:
        key = (matchup.host, matchup.visitor)
        remaining[key] = remaining.get(key, 0) + 1

    unmatched = []
    for assignment in schedule.assignments:
        key = (assignment.host, assignment.visitor)
        if remaining.get(key, 0) > 0:
            remaining[key] -= 1
        else:
            unmatched.append(assignment)
    for assignment in unmatched:
        key = (assignment.visitor, assignment.host)
        if assignment.protected and remaining.get(key, 0) > 0:
            remaining[key] -= 1
        else:
            issues['errors'].append(
                f"Game {assignment.matchup.label} in slot {assignment.slot} is not a season matchup"
            )
    for (host, visitor), count in remaining.items():
        if count > 0:
            issues['errors'].append(f"Matchup {visitor} @ {host} is not scheduled")

    slots = schedule.by_slot()
    teams = sorted({team for m in matchups for team in m.teams} | set(schedule.get_teams()))

    for slot, games in slots.items():
        if slot < 1 or slot > schedule.num_slots:
            issues['errors'].append(f"Slot {slot} is outside 1..{schedule.num_slots}")

        seen = set()
        for game in games:
            if game.matchup.is_self_match:
                issues['errors'].append(f"Slot {slot}: {game.host} is scheduled against itself")
                continue
            for team in game.matchup.teams:
                if team in seen:
                    issues['errors'].append(f"Slot {slot}: {team} plays more than once")
                seen.add(team)

        if schedule.is_protected(slot):
            if len(games) > constraints.max_per_slot:
                issues['warnings'].append(
                    f"Protected slot {slot} has {len(games)} games (max {constraints.max_per_slot})"
                )
            continue

        if len(games) > constraints.max_per_slot:
            issues['errors'].append(f"Slot {slot} has {len(games)} games (max {constraints.max_per_slot})")
        if constraints.min_per_slot is not None and len(games) < constraints.min_per_slot:
            issues['errors'].append(f"Slot {slot} has {len(games)} games (min {constraints.min_per_slot})")

        if not constraints.allows_bye(slot):
            idle = [team for team in teams if team not in seen]
            if idle:
                issues['errors'].append(f"Slot {slot} is outside the bye window but idles {', '.join(idle)}")

        if constraints.max_absent_per_slot is not None:
            absent = len(teams) - len(seen)
            if absent > constraints.max_absent_per_slot:
                issues['errors'].append(
                    f"Slot {slot} idles {absent} teams (max {constraints.max_absent_per_slot})"
                )

    for first, second in find_consecutive_rematches(schedule):
        issues['warnings'].append(
            f"{first.matchup.label} in slot {first.slot} is followed by "
            f"{second.matchup.label} in slot {second.slot}"
        )

    return issues
