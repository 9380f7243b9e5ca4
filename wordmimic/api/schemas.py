from pydantic import BaseModel, Field


class LearnIn(BaseModel):
    text: str = Field(max_length=5_000_000)


class LearnOut(BaseModel):
    example_count: int
    match_count: int
    contexts: int
    busy_duration_ms: float
    wall_clock_duration_ms: float


class ProgressOut(BaseModel):
    percent_complete: float = Field(ge=0, le=100)
    label: str
    is_completed: bool


class ImitateOut(BaseModel):
    items: list[str]


class TransitionInfo(BaseModel):
    weight: int = Field(ge=1)


class ChainOut(BaseModel):
    chain: dict[str, dict[str, TransitionInfo]]


class StatsOut(BaseModel):
    contexts: int
    total_transitions: int
    avg_transitions_per_context: float
    entropy: float
