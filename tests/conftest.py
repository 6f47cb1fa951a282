"""
Shared league fixtures for the scheduler tests.
"""

import pytest
from pathlib import Path
import sys

# Add the scheduler package to the path
sys.path.append(str(Path(__file__).parent.parent))

from season_scheduler.config import SchedulerConfig


NFL_CONFERENCES = [
    {
        "name": "AFC",
        "divisions": [
            {"name": "East", "teams": ["BUF", "MIA", "NE", "NYJ"]},
            {"name": "North", "teams": ["BAL", "CIN", "CLE", "PIT"]},
            {"name": "South", "teams": ["HOU", "IND", "JAX", "TEN"]},
            {"name": "West", "teams": ["DEN", "KC", "LV", "LAC"]},
        ],
    },
    {
        "name": "NFC",
        "divisions": [
            {"name": "East", "teams": ["DAL", "NYG", "PHI", "WAS"]},
            {"name": "North", "teams": ["CHI", "DET", "GB", "MIN"]},
            {"name": "South", "teams": ["ATL", "CAR", "NO", "TB"]},
            {"name": "West", "teams": ["ARI", "LAR", "SF", "SEA"]},
        ],
    },
]


def make_config(**overrides) -> SchedulerConfig:
    """A four-team, single-division league that plays a double round robin in six slots."""
    data = {
        "num_slots": 6,
        "games_per_team": 6,
        "conferences": [
            {"name": "League", "divisions": [{"name": "Only", "teams": ["A", "B", "C", "D"]}]}
        ],
        "constraints": {"max_per_slot": 2},
    }
    data.update(overrides)
    return SchedulerConfig(**data)


@pytest.fixture
def four_team_config():
    return make_config()


@pytest.fixture
def nfl_config():
    return SchedulerConfig(season=1, num_slots=18, games_per_team=17, conferences=NFL_CONFERENCES)


@pytest.fixture
def small_two_conference_config():
    """Two conferences of two divisions with two teams each."""
    return SchedulerConfig(
        num_slots=8,
        games_per_team=7,
        conferences=[
            {"name": "East", "divisions": [
                {"name": "E1", "teams": ["A1", "A2"]},
                {"name": "E2", "teams": ["B1", "B2"]},
            ]},
            {"name": "West", "divisions": [
                {"name": "W1", "teams": ["C1", "C2"]},
                {"name": "W2", "teams": ["D1", "D2"]},
            ]},
        ],
        constraints={"max_per_slot": 4},
    )
