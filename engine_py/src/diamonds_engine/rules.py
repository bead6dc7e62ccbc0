"""
Game rule configuration and validation.
"""

from typing import Dict

from pydantic import BaseModel, Field, field_validator

from .constants import DEFAULT_PHASE_DURATIONS, PHASES


class RuleConfig(BaseModel):
    """Configuration for game rules and engine timing."""

    hand_size: int = Field(
        default=7,
        ge=1,
        le=20,
        description="Cards dealt to each player for the whole session"
    )
    max_rounds: int = Field(
        default=5,
        ge=1,
        le=20,
        description="Number of rounds before the session ends"
    )
    phase_durations: Dict[str, int] = Field(
        default_factory=lambda: dict(DEFAULT_PHASE_DURATIONS),
        description="Seconds each phase stays open before it times out"
    )
    starting_score: int = Field(
        default=1000,
        description="Score used when the profile store has none for a player"
    )
    win_points: int = Field(default=200, description="Awarded to a duel winner")
    loss_points: int = Field(default=-100, description="Applied to a duel loser")
    elimination_points: int = Field(default=-500, description="Applied on elimination")
    team_win_points: int = Field(default=300, description="Awarded to the larger side")
    team_loss_points: int = Field(default=-100, description="Applied to the smaller side")
    shotgun_eliminates: bool = Field(
        default=False,
        description="Shotgun eliminates a zombie holder instead of neutralizing the zombie"
    )
    pause_nudge: float = Field(
        default=2.0,
        gt=0,
        le=60,
        description="Seconds phase_started_at is moved forward per pause nudge"
    )
    transition_lease: float = Field(
        default=15.0,
        gt=0,
        le=300,
        description="Seconds before a claimed but uncommitted transition may be retried"
    )
    tick_interval: float = Field(
        default=1.0,
        gt=0,
        le=30,
        description="Seconds between coordinator heartbeats"
    )
    auto_fill_bots: bool = Field(
        default=False,
        description="Let the server drive slotting and picking for bot seats"
    )

    @field_validator('phase_durations')
    @classmethod
    def validate_phase_durations(cls, v):
        """Fill missing phases with defaults and reject unknown or negative entries."""
        unknown = [phase for phase in v if phase not in PHASES]
        if unknown:
            raise ValueError(f'unknown phases in phase_durations: {unknown}')
        if any(seconds < 0 for seconds in v.values()):
            raise ValueError('phase durations must be >= 0')
        merged = dict(DEFAULT_PHASE_DURATIONS)
        merged.update(v)
        return merged

    def duration_for(self, phase: str) -> int:
        return self.phase_durations.get(phase, 0)


# Default configuration instance
default_rules = RuleConfig()


def create_rules(**overrides) -> RuleConfig:
    """Create a RuleConfig with optional overrides."""
    config_dict = default_rules.model_dump()
    config_dict.update(overrides)
    return RuleConfig(**config_dict)
