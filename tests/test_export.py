"""
Tests for schedule export and the command-line interface.
"""

import pandas as pd
import pytest
import tempfile
import yaml
from pathlib import Path
import sys

# Add the scheduler package to the path
sys.path.append(str(Path(__file__).parent.parent))

from season_scheduler.cli import main
from season_scheduler.engine import schedule_season
from season_scheduler.export import build_team_grid, write_csv, write_excel
from season_scheduler.models import Assignment, Matchup, Schedule


def test_team_grid_marks_home_away_and_byes():
    """Test grid cells show the opponent, @host on the road and BYE when idle."""
    schedule = Schedule(num_slots=3, assignments=[
        Assignment(Matchup("A", "B"), 1),
        Assignment(Matchup("C", "A"), 2),
    ])

    grid = build_team_grid(schedule, ["A", "B", "C"])

    assert list(grid.columns) == ["Team", "W1", "W2", "W3"]
    row_a = grid[grid["Team"] == "A"].iloc[0]
    assert (row_a["W1"], row_a["W2"], row_a["W3"]) == ("B", "@C", "BYE")
    row_b = grid[grid["Team"] == "B"].iloc[0]
    assert row_b["W1"] == "@A"
    assert [a.slot for a in schedule.get_team_schedule("A")] == [1, 2]


def test_write_csv_and_excel(four_team_config):
    """Test a solved season exports to CSV and Excel."""
    result = schedule_season(four_team_config)
    assert result.ok, result.error

    with tempfile.TemporaryDirectory() as tmp:
        csv_path = Path(tmp) / "schedule.csv"
        xlsx_path = Path(tmp) / "schedule.xlsx"

        write_csv(result.schedule, str(csv_path))
        df = pd.read_csv(csv_path)
        assert len(df) == 12
        assert list(df.columns) == ["Slot", "Host", "Visitor", "Category", "Protected"]

        write_excel(result, four_team_config, str(xlsx_path))
        assert xlsx_path.exists()
        assert xlsx_path.stat().st_size > 0


def test_write_excel_requires_schedule(four_team_config):
    """Test exporting a failed result is rejected."""
    from season_scheduler.models import SeasonResult

    with pytest.raises(ValueError, match="without a schedule"):
        write_excel(SeasonResult(ok=False), four_team_config, "unused.xlsx")


def _write_config(tmp, config):
    path = Path(tmp) / "config.yaml"
    with open(path, "w") as f:
        yaml.dump(config.model_dump(), f)
    return str(path)


def test_cli_diagnose_only(four_team_config, capsys):
    """Test --diagnose-only prints the checks without solving."""
    with tempfile.TemporaryDirectory() as tmp:
        main(["--config", _write_config(tmp, four_team_config), "--diagnose-only"])

    out = capsys.readouterr().out
    assert "Diagnostics passed" in out
    assert "matchups_to_place: 12" in out


def test_cli_schedules_and_writes_csv(four_team_config, capsys):
    """Test a full CLI run writes the schedule."""
    with tempfile.TemporaryDirectory() as tmp:
        out_path = Path(tmp) / "season.csv"
        main(["--config", _write_config(tmp, four_team_config), "--out", str(out_path),
              "--solver", "cbc", "--time-limit", "60"])

        assert len(pd.read_csv(out_path)) == 12

    out = capsys.readouterr().out
    assert "SCHEDULING COMPLETE" in out
    assert "Total games scheduled: 12" in out


def test_cli_missing_config_exits():
    """Test a missing configuration file exits with status 1."""
    with pytest.raises(SystemExit) as exc_info:
        main(["--config", "does-not-exist.yaml"])
    assert exc_info.value.code == 1
