"""
Tests for the back-to-back rematch repair pass.
"""

import logging
from pathlib import Path
import sys

# Add the scheduler package to the path
sys.path.append(str(Path(__file__).parent.parent))

from season_scheduler.models import Assignment, Matchup, Schedule
from season_scheduler.passes import fix_consecutive_rematches, find_consecutive_rematches
from season_scheduler.validation import snapshot_protected
from conftest import make_config


def _game(host, visitor, slot, protected=False):
    return Assignment(matchup=Matchup(host, visitor), slot=slot, protected=protected)


def test_find_consecutive_rematches():
    """Test reverse pairs in consecutive slots are found, others are not."""
    schedule = Schedule(num_slots=8, assignments=[
        _game("A", "B", 5), _game("B", "A", 6), _game("C", "D", 1), _game("D", "C", 3),
    ])

    repeats = find_consecutive_rematches(schedule)
    assert [(a.slot, b.slot) for a, b in repeats] == [(5, 6)]


def test_reverse_pair_in_slots_five_and_six():
    """Test the earlier game moves to the first valid slot."""
    config = make_config(num_slots=8)
    first, second = _game("A", "B", 5), _game("B", "A", 6)
    schedule = Schedule(num_slots=8, assignments=[first, second])

    report = fix_consecutive_rematches(schedule, config)

    assert report.clean
    assert len(report.relocations) == 1
    relocation = report.relocations[0]
    assert (relocation.from_slot, relocation.to_slot) == (5, 1)
    assert first.slot == 1
    assert second.slot == 6
    assert find_consecutive_rematches(schedule) == []


def test_candidate_skips_busy_and_adjacent_slots():
    """Test slots where a team is busy or next to the other game are skipped."""
    config = make_config(num_slots=8)
    schedule = Schedule(num_slots=8, assignments=[
        _game("A", "B", 2), _game("B", "A", 3),
        _game("A", "C", 1), _game("B", "D", 5),
    ])

    report = fix_consecutive_rematches(schedule, config)

    # Slot 1 busy for A, 2 current, 3-4 adjacent/next to other, 5 busy for B
    assert report.relocations[0].to_slot == 6
    assert report.clean


def test_protected_slot_untouched():
    """Test a protected slot with two games is identical after repair."""
    config = make_config(num_slots=6)
    schedule = Schedule(
        num_slots=6,
        protected_slots=frozenset({1}),
        assignments=[
            _game("A", "B", 1, protected=True), _game("C", "D", 1, protected=True),
            _game("B", "A", 2), _game("D", "C", 4),
        ],
    )
    before = snapshot_protected(schedule)

    report = fix_consecutive_rematches(schedule, config)

    assert snapshot_protected(schedule) == before
    assert before == {1: (("A", "B"), ("C", "D"))}
    # The unprotected game moved instead
    assert report.relocations[0].assignment.matchup == Matchup("B", "A")
    assert report.relocations[0].to_slot == 3
    assert report.clean


def test_both_protected_is_unfixable():
    """Test a repeat across two protected slots is recorded once and left alone."""
    config = make_config(num_slots=4)
    schedule = Schedule(
        num_slots=4,
        protected_slots=frozenset({1, 2}),
        assignments=[_game("A", "B", 1, protected=True), _game("B", "A", 2, protected=True)],
    )

    report = fix_consecutive_rematches(schedule, config)

    assert report.relocations == []
    assert len(report.unfixable) == 1
    assert report.unfixable[0].reason == "both games in protected slots"
    assert schedule.defects == report.unfixable
    assert not report.exhausted


def test_no_valid_slot_is_unfixable(caplog):
    """Test a repeat with nowhere to go becomes a defect and is logged."""
    config = make_config(num_slots=2)
    schedule = Schedule(num_slots=2, assignments=[_game("A", "B", 1), _game("B", "A", 2)])

    with caplog.at_level(logging.WARNING):
        report = fix_consecutive_rematches(schedule, config)

    assert len(report.unfixable) == 1
    assert report.unfixable[0].reason == "no valid slot"
    assert report.unfixable[0].slots == (1, 2)
    assert "Unfixable rematch" in caplog.text


def test_second_game_moves_when_first_cannot():
    """Test the later game is tried when the earlier one has no valid slot."""
    # Leaving slot 1 would idle both teams outside the bye window
    config = make_config(num_slots=6, constraints={"max_per_slot": 2, "bye_window": {"start": 2, "end": 6}})
    first, second = _game("A", "B", 1), _game("B", "A", 2)
    schedule = Schedule(num_slots=6, assignments=[first, second])

    report = fix_consecutive_rematches(schedule, config)

    assert first.slot == 1
    assert second.slot == 3
    assert report.clean


def test_slot_capacity_respected():
    """Test a full slot is not a valid destination."""
    config = make_config(num_slots=5, constraints={"max_per_slot": 1})
    schedule = Schedule(num_slots=5, assignments=[
        _game("A", "B", 4), _game("B", "A", 5), _game("C", "D", 1),
    ])

    report = fix_consecutive_rematches(schedule, config)

    # Slot 1 is full; slot 2 is the first free non-adjacent slot
    assert report.relocations[0].to_slot == 2


def test_iteration_cap_reports_leftovers(caplog):
    """Test repeats left when the cap is hit become 'iteration cap' defects."""
    config = make_config(num_slots=10, repair={"max_iterations": 1})
    schedule = Schedule(num_slots=10, assignments=[
        _game("A", "B", 1), _game("B", "A", 2),
        _game("C", "D", 5), _game("D", "C", 6),
    ])

    with caplog.at_level(logging.WARNING):
        report = fix_consecutive_rematches(schedule, config)

    assert report.iterations == 1
    assert report.exhausted
    assert len(report.relocations) == 1
    assert [d.reason for d in report.unfixable] == ["iteration cap"]
    assert "iteration cap" in caplog.text


def test_repair_converges_under_cap():
    """Test the pass stops with no fixable repeats left well inside the cap."""
    config = make_config(num_slots=12)
    schedule = Schedule(num_slots=12, assignments=[
        _game("A", "B", 1), _game("B", "A", 2),
        _game("C", "D", 4), _game("D", "C", 5),
        _game("A", "C", 8), _game("C", "A", 9),
    ])

    report = fix_consecutive_rematches(schedule, config)

    assert report.clean
    assert report.iterations <= config.repair.max_iterations
    assert find_consecutive_rematches(schedule) == []
