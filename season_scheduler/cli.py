"""
Command-line interface for the season scheduler.
"""

import argparse
import logging
import sys
import yaml
from .config import load_config
from .engine import SeasonScheduler
from .exceptions import SchedulerError
from .ingest import load_protected_schedule
from .export import write_excel, write_csv


def main(argv=None):
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Season Scheduler - assign a season's matchups to weeks"
    )

    parser.add_argument(
        "--config",
        required=True,
        help="Path to YAML configuration file"
    )

    parser.add_argument(
        "--protected",
        help="Path to YAML/JSON protected schedule (optional)"
    )

    parser.add_argument(
        "--out",
        help="Path to output file (.xlsx or .csv)"
    )

    parser.add_argument(
        "--solver",
        type=str.upper,
        choices=["CBC", "HIGHS", "GLPK", "GUROBI", "CPLEX"],
        help="Solver backend to use"
    )

    parser.add_argument(
        "--time-limit",
        type=int,
        help="Solver time limit in seconds"
    )

    parser.add_argument(
        "--enforce-adjacency",
        action="store_true",
        help="Forbid back-to-back rematches inside the model"
    )

    parser.add_argument(
        "--no-repair",
        action="store_true",
        help="Skip the rematch repair pass"
    )

    parser.add_argument(
        "--diagnose-only",
        action="store_true",
        help="Only run the feasibility diagnostics"
    )

    parser.add_argument(
        "--relax",
        action="store_true",
        help="Retry infeasible models with relaxed constraints"
    )

    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable verbose output"
    )

    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s"
    )

    try:
        # Load configuration
        print("Loading configuration...")
        config = load_config(args.config)
        config = _apply_overrides(config, args)

        scheduler_protected = None
        if args.protected:
            print("Loading protected schedule...")
            scheduler_protected = load_protected_schedule(args.protected, config.build_participants())
            print(f"Loaded {len(scheduler_protected.assignments)} protected games "
                  f"in slots {sorted(scheduler_protected.slots)}")

        scheduler = SeasonScheduler(config, protected=scheduler_protected)

        if args.diagnose_only:
            print("Running diagnostics...")
            report = scheduler.prepare()
            _print_diagnostics(report)
            if not report.is_feasible:
                sys.exit(1)
            return

        print("Scheduling season...")
        result = scheduler.run()

        if result.diagnostics is not None and not result.diagnostics.is_feasible:
            _print_diagnostics(result.diagnostics)

        if not result.ok:
            print(f"ERROR: {result.error}")
            sys.exit(1)

        if result.relaxations_used:
            print(f"Relaxations applied: {', '.join(result.relaxations_used)}")

        if result.repair is not None:
            print(f"Repair moved {len(result.repair.relocations)} game(s)")
            for relocation in result.repair.relocations:
                print(f"  - {relocation.assignment.matchup.label}: "
                      f"slot {relocation.from_slot} -> {relocation.to_slot}")

        if result.schedule.defects:
            print("WARNINGS found in final schedule:")
            for defect in result.schedule.defects:
                print(f"  - {defect.describe()}")

        if args.out:
            print(f"\nExporting schedule to {args.out}...")
            if args.out.lower().endswith(".csv"):
                write_csv(result.schedule, args.out)
            else:
                write_excel(result, config, args.out)

        # Print summary
        print("\n" + "="*50)
        print("SCHEDULING COMPLETE")
        print("="*50)

        stats = result.schedule.get_summary_stats()
        print(f"Total games scheduled: {stats.get('total_games', 0)}")
        print(f"Total teams: {stats.get('total_teams', 0)}")
        print(f"Protected games: {stats.get('protected_games', 0)}")
        print(f"Category distribution: {stats.get('category_distribution', {})}")
        if result.solver_result is not None:
            print(f"Solver status: {result.solver_result.status.value} "
                  f"({result.solver_result.solve_time:.1f}s)")

    except FileNotFoundError as e:
        print(f"ERROR: File not found: {e}")
        sys.exit(1)
    except yaml.YAMLError as e:
        print(f"ERROR: Invalid YAML configuration: {e}")
        sys.exit(1)
    except (SchedulerError, ValueError) as e:
        print(f"ERROR: {e}")
        if args.verbose:
            import traceback
            traceback.print_exc()
        sys.exit(1)


def _apply_overrides(config, args):
    """Fold command-line switches into the loaded configuration."""
    updates = {}
    solver_updates = {}
    if args.solver:
        solver_updates['name'] = args.solver
    if args.time_limit:
        solver_updates['time_limit'] = args.time_limit
    if solver_updates:
        updates['solver'] = config.solver.model_copy(update=solver_updates)
    if args.enforce_adjacency:
        updates['constraints'] = config.constraints.model_copy(update={'enforce_adjacency_in_model': True})
    if args.no_repair:
        updates['repair'] = config.repair.model_copy(update={'enabled': False})
    if args.relax:
        updates['relaxation'] = config.relaxation.model_copy(update={'enabled': True})
    return config.model_copy(update=updates) if updates else config


def _print_diagnostics(report):
    if report.is_feasible:
        print("Diagnostics passed")
    else:
        print("Diagnostics found problems:")
        for issue in report.issues:
            print(f"  - {issue}")
    for warning in report.warnings:
        print(f"  WARNING: {warning}")
    for name, value in report.counts.items():
        print(f"  {name}: {value}")


if __name__ == "__main__":
    main()
