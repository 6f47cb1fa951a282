"""
Season Scheduler - matchup generation, MIP slot assignment and rematch repair.
"""

__version__ = "0.1.0"

from .config import SchedulerConfig, ConstraintConfig, load_config
from .models import Participant, Matchup, Assignment, Schedule, SeasonResult
from .engine import SeasonScheduler, schedule_season
from .export import write_excel

__all__ = [
    "SchedulerConfig",
    "ConstraintConfig",
    "load_config",
    "Participant",
    "Matchup",
    "Assignment",
    "Schedule",
    "SeasonResult",
    "SeasonScheduler",
    "schedule_season",
    "write_excel",
]
