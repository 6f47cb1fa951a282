"""
Tests for configuration management.
"""

import pytest
import tempfile
import yaml
from pathlib import Path
import sys

# Add the scheduler package to the path
sys.path.append(str(Path(__file__).parent.parent))

from season_scheduler.config import SchedulerConfig, ConstraintConfig, load_config, save_config
from conftest import NFL_CONFERENCES


def test_basic_config_creation():
    """Test creating a basic configuration."""
    config_data = {
        "season": 2,
        "num_slots": 18,
        "games_per_team": 17,
        "conferences": NFL_CONFERENCES,
    }

    config = SchedulerConfig(**config_data)

    assert config.season == 2
    assert len(config.conferences) == 2
    assert len(config.conferences[0].divisions) == 4
    assert len(config.get_all_teams()) == 32
    assert config.constraints.max_per_slot == 16
    assert config.constraints.enforce_adjacency_in_model is False
    assert config.repair.max_iterations == 100
    assert config.solver.name == "CBC"


def test_team_lookups():
    """Test division, conference and rank lookups."""
    config = SchedulerConfig(conferences=NFL_CONFERENCES, prior_standings={"NYJ": 1})

    assert config.get_team_division("KC") == "AFC West"
    assert config.get_team_division("Nobody") is None
    assert config.get_team_conference("KC") == "AFC"
    assert config.get_team_conference("Nobody") is None
    # Listed position is the default rank
    assert config.get_team_rank("MIA") == 2
    assert config.get_team_rank("NYJ") == 1


def test_constraint_aliases():
    """Test camelCase constraint names are accepted."""
    constraints = ConstraintConfig(**{
        "maxPerSlot": 14,
        "byeWindow": {"start": 4, "end": 14},
        "maxAbsentPerSlot": 6,
        "enforceAdjacencyInModel": True,
        "maxCrossCategoryPerSlot": 6,
    })

    assert constraints.max_per_slot == 14
    assert constraints.bye_window.start == 4
    assert constraints.max_absent_per_slot == 6
    assert constraints.enforce_adjacency_in_model is True
    assert constraints.max_cross_category_per_slot == 6
    assert constraints.allows_bye(4)
    assert not constraints.allows_bye(15)


def test_config_validation():
    """Test configuration validation."""
    # Duplicate team across divisions
    with pytest.raises(ValueError, match="Duplicate team"):
        SchedulerConfig(conferences=[
            {"name": "X", "divisions": [
                {"name": "D1", "teams": ["A", "B"]},
                {"name": "D2", "teams": ["B", "C"]},
            ]}
        ])

    # Bye window past the end of the season
    with pytest.raises(ValueError, match="beyond the last slot"):
        SchedulerConfig(
            num_slots=10,
            conferences=NFL_CONFERENCES,
            constraints={"bye_window": {"start": 4, "end": 12}}
        )

    # Reversed bye window
    with pytest.raises(ValueError, match="Invalid bye window"):
        ConstraintConfig(bye_window={"start": 8, "end": 4})

    # Minimum above maximum
    with pytest.raises(ValueError, match="exceeds max_per_slot"):
        ConstraintConfig(max_per_slot=4, min_per_slot=6)

    # Unknown solver
    with pytest.raises(ValueError, match="Unknown solver"):
        SchedulerConfig(conferences=NFL_CONFERENCES, solver={"name": "magic"})

    # Ranks start at 1
    with pytest.raises(ValueError, match="Invalid rank"):
        SchedulerConfig(conferences=NFL_CONFERENCES, prior_standings={"KC": 0})


def test_solver_name_normalized():
    """Test solver names are upper-cased."""
    config = SchedulerConfig(conferences=NFL_CONFERENCES, solver={"name": "highs", "time_limit": 30})
    assert config.solver.name == "HIGHS"
    assert config.solver.time_limit == 30


def test_build_participants_qualifies_shared_division_names():
    """Test division names shared across conferences become unique keys."""
    config = SchedulerConfig(conferences=NFL_CONFERENCES)
    participants = config.build_participants()

    assert participants["BUF"].division == "AFC East"
    assert participants["DAL"].division == "NFC East"
    assert participants["DAL"].conference == "NFC"
    assert participants["PIT"].rank == 4
    assert list(participants)[:4] == ["BUF", "MIA", "NE", "NYJ"]
    # Lookups agree with the participant keys
    assert all(config.get_team_division(t) == p.division for t, p in participants.items())


def test_config_load_save():
    """Test loading and saving configuration."""
    config_data = {
        "season": 3,
        "num_slots": 18,
        "games_per_team": 17,
        "conferences": NFL_CONFERENCES,
        "constraints": {
            "maxPerSlot": 16,
            "byeWindow": {"start": 5, "end": 14},
        },
    }

    with tempfile.NamedTemporaryFile(mode='w', suffix='.yaml', delete=False) as f:
        yaml.dump(config_data, f)
        config_path = f.name

    try:
        # Load configuration
        config = load_config(config_path)
        assert config.season == 3
        assert config.constraints.bye_window.end == 14

        # Save configuration
        with tempfile.NamedTemporaryFile(mode='w', suffix='.yaml', delete=False) as f:
            save_path = f.name

        save_config(config, save_path)

        # Load saved configuration
        loaded_config = load_config(save_path)
        assert loaded_config.season == config.season
        assert loaded_config.get_all_teams() == config.get_all_teams()
        assert loaded_config.constraints == config.constraints

    finally:
        # Clean up
        Path(config_path).unlink(missing_ok=True)
        Path(save_path).unlink(missing_ok=True)
