"""Request-mode to generation-parameter resolution.

Pure lookup: no state, no I/O, no failure path. Absent or unrecognized modes
resolve to `standard`, which uses the fast model tier and the smallest token
ceiling. `research` and `analysis` share the advanced tier and a larger ceiling
and differ in sampling penalties.
"""

from dataclasses import dataclass
from enum import Enum

from app.llm.provider_config import ADVANCED_MODEL, STANDARD_MODEL


class Mode(str, Enum):
    STANDARD = "standard"
    RESEARCH = "research"
    ANALYSIS = "analysis"


class ModelTier(str, Enum):
    FAST = "fast"
    ADVANCED = "advanced"


MODEL_TIERS = {
    ModelTier.FAST: STANDARD_MODEL,
    ModelTier.ADVANCED: ADVANCED_MODEL,
}


@dataclass(frozen=True)
class ModeConfig:
    """Generation parameters selected for one request."""

    model_tier: ModelTier
    temperature: float
    max_tokens: int
    top_p: float
    frequency_penalty: float
    presence_penalty: float

    @property
    def model(self) -> str:
        return MODEL_TIERS[self.model_tier]


MODE_CONFIGS = {
    Mode.STANDARD: ModeConfig(
        model_tier=ModelTier.FAST,
        temperature=0.7,
        max_tokens=4000,
        top_p=1.0,
        frequency_penalty=0.0,
        presence_penalty=0.0,
    ),
    Mode.RESEARCH: ModeConfig(
        model_tier=ModelTier.ADVANCED,
        temperature=0.3,
        max_tokens=8000,
        top_p=0.9,
        frequency_penalty=0.3,
        presence_penalty=0.5,
    ),
    Mode.ANALYSIS: ModeConfig(
        model_tier=ModelTier.ADVANCED,
        temperature=0.2,
        max_tokens=8000,
        top_p=0.9,
        frequency_penalty=0.5,
        presence_penalty=0.2,
    ),
}


def parse_mode(value) -> Mode:
    """Total conversion of a request value to `Mode`."""
    if isinstance(value, Mode):
        return value
    if not isinstance(value, str):
        return Mode.STANDARD
    try:
        return Mode(value.strip().lower())
    except ValueError:
        return Mode.STANDARD


def resolve_mode_config(mode) -> ModeConfig:
    return MODE_CONFIGS[parse_mode(mode)]
