"""
Configuration management for the season scheduler.
"""

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from typing import List, Dict, Optional, Union


class ByeWindow(BaseModel):
    """Inclusive range of slots in which a team may sit idle."""
    start: int = Field(ge=1, description="First slot where byes are allowed")
    end: int = Field(ge=1, description="Last slot where byes are allowed")

    @model_validator(mode='after')
    def validate_order(self):
        if self.start > self.end:
            raise ValueError(f"Invalid bye window: start {self.start} is after end {self.end}")
        return self

    def contains(self, slot: int) -> bool:
        return self.start <= slot <= self.end


class ConstraintConfig(BaseModel):
    """Declared bounds for the slot assignment model."""
    model_config = ConfigDict(populate_by_name=True)

    max_per_slot: int = Field(default=16, ge=1, alias="maxPerSlot",
                              description="Maximum games in a single slot")
    min_per_slot: Optional[int] = Field(default=None, ge=0,
                                        description="Minimum games in a single slot")
    bye_window: Optional[ByeWindow] = Field(default=None, alias="byeWindow",
                                            description="Slots where teams may be idle")
    max_absent_per_slot: Optional[int] = Field(default=None, ge=0, alias="maxAbsentPerSlot",
                                               description="Maximum teams idle in one slot")
    enforce_adjacency_in_model: bool = Field(
        default=False, alias="enforceAdjacencyInModel",
        description="Forbid back-to-back rematches in the model instead of the repair pass"
    )
    max_cross_category_per_slot: Optional[int] = Field(
        default=None, ge=0, alias="maxCrossCategoryPerSlot",
        description="Maximum cross-conference games in one slot"
    )

    @model_validator(mode='after')
    def validate_slot_bounds(self):
        if self.min_per_slot is not None and self.min_per_slot > self.max_per_slot:
            raise ValueError(
                f"min_per_slot ({self.min_per_slot}) exceeds max_per_slot ({self.max_per_slot})"
            )
        return self

    def allows_bye(self, slot: int) -> bool:
        """Whether a team may be idle in the given slot."""
        return self.bye_window is None or self.bye_window.contains(slot)


class RepairConfig(BaseModel):
    """Settings for the back-to-back rematch repair pass."""
    enabled: bool = Field(default=True, description="Run the repair pass after solving")
    max_iterations: int = Field(default=100, ge=1, description="Iteration cap for the repair loop")


class SolverSettings(BaseModel):
    """Settings for the external MIP solver."""
    name: str = Field(default="CBC", description="PuLP solver backend")
    time_limit: Optional[int] = Field(default=None, ge=1, description="Solver time limit in seconds")
    msg: bool = Field(default=False, description="Show solver output")

    @field_validator('name')
    @classmethod
    def validate_solver_name(cls, v):
        valid = ["CBC", "HIGHS", "GLPK", "GUROBI", "CPLEX"]
        if v.upper() not in valid:
            raise ValueError(f"Unknown solver: {v}. Must be one of {valid}")
        return v.upper()


class RelaxationConfig(BaseModel):
    """Progressive constraint relaxation on infeasible models."""
    enabled: bool = Field(default=False, description="Retry infeasible models with relaxed constraints")
    max_attempts: int = Field(default=5, ge=1, description="Total solve attempts including the first")


class ExcelOut(BaseModel):
    """Excel output configuration."""
    include_summaries: bool = Field(default=True, description="Include grid and diagnostics sheets")
    sheets: Dict[str, Union[str, bool]] = Field(
        default_factory=lambda: {
            "final_name": "Schedule",
            "team_grid": "Team Grid",
            "defects": "Defects",
            "diagnostics": "Diagnostics",
        },
        description="Sheet names"
    )


class Division(BaseModel):
    """A division listing its teams in prior-standing order."""
    name: str
    teams: List[str]


class Conference(BaseModel):
    """A conference containing divisions."""
    name: str
    divisions: List[Division]


class SchedulerConfig(BaseModel):
    """Main configuration for the season scheduler."""
    season: int = Field(default=1, ge=1, description="Rotation year used to index rotation tables")
    num_slots: int = Field(default=18, ge=1, description="Number of slots (weeks) in the season")
    games_per_team: int = Field(default=17, ge=1, description="Games each team must play")
    conferences: List[Conference] = Field(description="League conferences, divisions and teams")
    prior_standings: Dict[str, int] = Field(
        default_factory=dict,
        description="Prior-season division rank per team (defaults to listed order)"
    )

    constraints: ConstraintConfig = Field(default_factory=ConstraintConfig)
    repair: RepairConfig = Field(default_factory=RepairConfig)
    solver: SolverSettings = Field(default_factory=SolverSettings)
    relaxation: RelaxationConfig = Field(default_factory=RelaxationConfig)

    # Output configuration
    excel: ExcelOut = Field(default_factory=ExcelOut)

    @field_validator('conferences')
    @classmethod
    def validate_unique_teams(cls, v):
        seen = set()
        for conference in v:
            for division in conference.divisions:
                for team in division.teams:
                    if team in seen:
                        raise ValueError(f"Duplicate team: {team}")
                    seen.add(team)
        return v

    @field_validator('prior_standings')
    @classmethod
    def validate_ranks(cls, v):
        for team, rank in v.items():
            if rank < 1:
                raise ValueError(f"Invalid rank {rank} for {team}. Ranks start at 1")
        return v

    @model_validator(mode='after')
    def validate_bye_window(self):
        window = self.constraints.bye_window
        if window is not None and window.end > self.num_slots:
            raise ValueError(
                f"Bye window end {window.end} is beyond the last slot {self.num_slots}"
            )
        return self

    def get_all_teams(self) -> List[str]:
        """Get all teams from all conferences in listing order."""
        teams = []
        for conference in self.conferences:
            for division in conference.divisions:
                teams.extend(division.teams)
        return teams

    def division_key(self, conference: str, division: str) -> str:
        """Unique division key: names shared across conferences get the conference prefix."""
        shared = sum(1 for c in self.conferences for d in c.divisions if d.name == division)
        return f"{conference} {division}" if shared > 1 else division

    def get_team_division(self, team: str) -> Optional[str]:
        """Get the division key for a given team (e.g. ``AFC West``)."""
        for conference in self.conferences:
            for division in conference.divisions:
                if team in division.teams:
                    return self.division_key(conference.name, division.name)
        return None

    def get_team_conference(self, team: str) -> Optional[str]:
        """Get the conference name for a given team."""
        for conference in self.conferences:
            for division in conference.divisions:
                if team in division.teams:
                    return conference.name
        return None

    def get_team_rank(self, team: str) -> Optional[int]:
        """Prior-season rank, falling back to the team's position in its division."""
        if team in self.prior_standings:
            return self.prior_standings[team]
        for conference in self.conferences:
            for division in conference.divisions:
                if team in division.teams:
                    return division.teams.index(team) + 1
        return None

    def build_participants(self):
        """Participants keyed by team id, in listing order."""
        from .ingest import create_teams_from_config
        return create_teams_from_config(self)


def load_config(config_path: str) -> SchedulerConfig:
    """Load configuration from YAML file."""
    import yaml

    with open(config_path, 'r') as f:
        config_data = yaml.safe_load(f)

    return SchedulerConfig(**config_data)


def save_config(config: SchedulerConfig, config_path: str) -> None:
    """Save configuration to YAML file."""
    import yaml

    with open(config_path, 'w') as f:
        yaml.dump(config.model_dump(), f, default_flow_style=False, indent=2)
