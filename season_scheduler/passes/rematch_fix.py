"""
Rematch fix pass to split up back-to-back games between the same teams.
"""

import logging
import math
from typing import List, Optional, Set, Tuple

from ..models import Assignment, MatchupCategory, Relocation, RepairReport, RepeatDefect, Schedule
from ..config import SchedulerConfig

logger = logging.getLogger(__name__)


def find_consecutive_rematches(schedule: Schedule) -> List[Tuple[Assignment, Assignment]]:
    """
    Find games between the same two teams in consecutive slots.

    Returns:
        List of (earlier, later) assignment pairs, ordered by slot
    """
    slots = schedule.by_slot()
    repeats = []
    for w in range(1, schedule.num_slots):
        for first in slots.get(w, []):
            for second in slots.get(w + 1, []):
                if first.matchup.pair == second.matchup.pair:
                    repeats.append((first, second))
    return repeats


def fix_consecutive_rematches(schedule: Schedule, config: SchedulerConfig) -> RepairReport:
    """
    Move games so no two teams meet in consecutive slots.

    Protected games never move. When both games are movable the earlier one
    is tried first, then the later one. Repeats that cannot be moved are
    recorded on the schedule as defects instead of failing the run.

    Args:
        schedule: Current schedule (modified in place)
        config: Scheduler configuration

    Returns:
        RepairReport: Relocations made and repeats left behind
    """
    report = RepairReport()
    recorded: Set[Tuple[int, int]] = set()
    max_iterations = config.repair.max_iterations

    for _ in range(max_iterations):
        pending = [
            (first, second) for first, second in find_consecutive_rematches(schedule)
            if (id(first), id(second)) not in recorded
        ]
        if not pending:
            break
        report.iterations += 1

        first, second = pending[0]
        if first.protected and second.protected:
            _record(schedule, report, recorded, first, second, "both games in protected slots")
            continue

        moved = False
        for movable, other in ((first, second), (second, first)):
            if movable.protected:
                continue
            target = _find_target_slot(schedule, movable, other, config)
            if target is not None:
                relocation = Relocation(assignment=movable, from_slot=movable.slot, to_slot=target)
                movable.slot = target
                report.relocations.append(relocation)
                logger.info("Moved %s from slot %d to slot %d",
                            movable.matchup.label, relocation.from_slot, target)
                moved = True
                break

        if not moved:
            _record(schedule, report, recorded, first, second, "no valid slot")

    # Anything still adjacent after the cap is reported, never dropped
    for first, second in find_consecutive_rematches(schedule):
        if (id(first), id(second)) not in recorded:
            report.exhausted = True
            _record(schedule, report, recorded, first, second, "iteration cap")

    if report.exhausted:
        logger.warning("Rematch repair stopped at the iteration cap (%d)", max_iterations)

    return report


def _record(schedule: Schedule, report: RepairReport, recorded: Set[Tuple[int, int]],
            first: Assignment, second: Assignment, reason: str) -> None:
    defect = RepeatDefect(first=first, second=second, reason=reason)
    recorded.add((id(first), id(second)))
    report.unfixable.append(defect)
    schedule.defects.append(defect)
    logger.warning("Unfixable rematch: %s", defect.describe())


def _find_target_slot(schedule: Schedule, movable: Assignment, other: Assignment,
                      config: SchedulerConfig) -> Optional[int]:
    """First slot the movable game can go to, scanning in increasing order."""
    constraints = config.constraints

    # Leaving the current slot idles both teams there
    if not constraints.allows_bye(movable.slot):
        return None

    slots = schedule.by_slot()
    floor = constraints.min_per_slot or 0
    if constraints.max_absent_per_slot is not None:
        floor = max(floor, math.ceil((len(schedule.get_teams()) - constraints.max_absent_per_slot) / 2))
    if len(slots.get(movable.slot, [])) - 1 < floor:
        return None

    cross_cap = constraints.max_cross_category_per_slot
    is_cross = movable.matchup.category == MatchupCategory.CROSS

    for slot in range(1, schedule.num_slots + 1):
        if slot == movable.slot or schedule.is_protected(slot):
            continue
        if abs(slot - other.slot) <= 1:
            continue

        games = slots.get(slot, [])
        if len(games) >= constraints.max_per_slot:
            continue
        busy = {team for game in games for team in game.matchup.teams}
        if any(team in busy for team in movable.matchup.teams):
            continue
        if is_cross and cross_cap is not None:
            if sum(1 for g in games if g.matchup.category == MatchupCategory.CROSS) >= cross_cap:
                continue

        return slot

    return None
