"""
Solver-free feasibility checks.

These are cheap necessary conditions: passing them does not guarantee the
model is feasible, but failing any of them means it cannot be.
"""

import logging
import math
from typing import Dict, List, Optional

from .config import ConstraintConfig
from .models import DiagnosticsReport, Matchup, MatchupCategory

logger = logging.getLogger(__name__)


def run_diagnostics(
    matchups: List[Matchup],
    participants: List[str],
    num_slots: int,
    required: int,
    constraints: ConstraintConfig,
    protected_slots: Optional[set] = None,
    realized: Optional[Dict[str, int]] = None,
    realized_home: Optional[Dict[str, int]] = None,
) -> DiagnosticsReport:
    """
    Check whether the remaining matchups can possibly fit the free slots.

    Args:
        matchups: Matchups left for the solver
        participants: All participant ids
        num_slots: Number of slots in the season
        required: Games each participant plays over the season
        constraints: Declared bounds
        protected_slots: Slots already fixed
        realized: Games each participant already plays in protected slots
        realized_home: Protected games each participant hosts

    Returns:
        DiagnosticsReport: Issues, aggregate counts and per-participant counts
    """
    protected_slots = set(protected_slots or ())
    realized = realized or {}
    realized_home = realized_home or {}
    report = DiagnosticsReport()

    free_slots = [w for w in range(1, num_slots + 1) if w not in protected_slots]
    n_teams = len(participants)

    # (a) Matchup total
    required_matchups = sum(required - realized.get(t, 0) for t in participants) / 2
    report.counts['participants'] = n_teams
    report.counts['free_slots'] = len(free_slots)
    report.counts['required_matchups'] = int(required_matchups)
    report.counts['matchups_to_place'] = len(matchups)
    if len(matchups) != required_matchups:
        report.issues.append(
            f"Matchup count mismatch: {len(matchups)} to place, {required_matchups:g} required"
        )

    # (b) Per-participant totals
    remaining = {team: 0 for team in participants}
    home = {team: realized_home.get(team, 0) for team in participants}
    cross_remaining = 0
    for matchup in matchups:
        if matchup.category == MatchupCategory.CROSS:
            cross_remaining += 1
        home[matchup.host] = home.get(matchup.host, 0) + 1
        for team in matchup.teams:
            remaining[team] = remaining.get(team, 0) + 1

    for team in participants:
        needed = required - realized.get(team, 0)
        report.participant_counts[team] = {
            'required': required,
            'protected': realized.get(team, 0),
            'remaining': remaining[team],
            'home': home[team],
        }
        if remaining[team] != needed:
            report.issues.append(f"{team} has {remaining[team]} matchups to place but needs {needed}")
        if remaining[team] > len(free_slots):
            report.issues.append(
                f"{team} has {remaining[team]} matchups but only {len(free_slots)} free slots"
            )

    # (c) Slot capacity
    capacity = len(free_slots) * constraints.max_per_slot
    report.counts['slot_capacity'] = capacity
    if len(matchups) > capacity:
        report.issues.append(
            f"Not enough slot capacity: {len(matchups)} matchups, capacity {capacity}"
        )
    if constraints.min_per_slot:
        floor_total = len(free_slots) * constraints.min_per_slot
        if floor_total > len(matchups):
            report.issues.append(
                f"Slot minimum needs {floor_total} games but only {len(matchups)} remain"
            )

    # (d) Bye feasibility
    _check_byes(report, participants, remaining, free_slots, constraints, n_teams)

    # (e) Cross-conference cap
    report.counts['cross_remaining'] = cross_remaining
    if constraints.max_cross_category_per_slot is not None:
        cross_capacity = constraints.max_cross_category_per_slot * len(free_slots)
        report.counts['cross_capacity'] = cross_capacity
        if cross_remaining > cross_capacity:
            report.issues.append(
                f"Cross-conference cap too tight: {cross_remaining} games, capacity {cross_capacity}"
            )

    # (f) Home/away parity (warnings only)
    low, high = required // 2, (required + 1) // 2
    uneven = [team for team in participants if not low <= home[team] <= high]
    report.counts['home_away_uneven'] = len(uneven)
    for team in uneven:
        report.warnings.append(
            f"{team} hosts {home[team]} of {required} games (expected {low}-{high})"
        )

    if report.issues:
        logger.info("Diagnostics found %d issue(s)", len(report.issues))
    else:
        logger.info("Diagnostics passed: %s", report.counts)
    return report


def _check_byes(report: DiagnosticsReport, participants: List[str], remaining: Dict[str, int],
                free_slots: List[int], constraints: ConstraintConfig, n_teams: int) -> None:
    eligible = [w for w in free_slots if constraints.allows_bye(w)]
    no_bye = [w for w in free_slots if not constraints.allows_bye(w)]

    idle_needed = 0
    for team in participants:
        idle = len(free_slots) - remaining[team]
        if idle <= 0:
            continue
        idle_needed += idle
        if idle > len(eligible):
            report.issues.append(
                f"{team} must sit out {idle} slot(s) but only {len(eligible)} allow byes"
            )

    per_slot = constraints.max_absent_per_slot if constraints.max_absent_per_slot is not None else n_teams
    idle_capacity = per_slot * len(eligible)
    report.counts['idle_needed'] = idle_needed
    report.counts['idle_capacity'] = idle_capacity
    if idle_needed > idle_capacity:
        report.issues.append(
            f"Not enough bye capacity: {idle_needed} idle team-slots needed, {idle_capacity} available"
        )

    if no_bye:
        if n_teams % 2 == 1:
            report.issues.append(
                f"{len(no_bye)} slot(s) require every team to play but there are {n_teams} teams"
            )
        elif n_teams // 2 > constraints.max_per_slot:
            report.issues.append(
                f"Slots without byes need {n_teams // 2} games but max_per_slot is {constraints.max_per_slot}"
            )

    if constraints.max_absent_per_slot is not None:
        floor = math.ceil((n_teams - constraints.max_absent_per_slot) / 2)
        if floor > constraints.max_per_slot:
            report.issues.append(
                f"Absence cap forces {floor} games per slot but max_per_slot is {constraints.max_per_slot}"
            )
