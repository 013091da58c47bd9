"""Data models for synthesis."""

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field, StrictInt, StrictStr, field_validator


class RoundupPayload(BaseModel):
    """JSON object the model must return."""

    title: Optional[str] = Field(None, description="Headline")
    dek: Optional[str] = Field(None, description="One-sentence subtitle")
    bullets: List[StrictStr] = Field(default_factory=list, description="Short bullet strings")
    body_markdown: StrictStr = Field(..., description="Body with inline [n] citations")
    used_source_indexes: List[StrictInt] = Field(default_factory=list, description="1-based prompt item indexes")

    @field_validator("body_markdown")
    @classmethod
    def validate_body(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("body_markdown is empty")
        return v

    @field_validator("bullets", "used_source_indexes", mode="before")
    @classmethod
    def none_as_empty(cls, v):
        return [] if v is None else v


class GroupStatus(str, Enum):
    PERSISTED = "persisted"
    SKIPPED = "skipped"
    FAILED = "failed"


class GroupOutcome(BaseModel):
    """Terminal state of one region/window group."""

    state: str
    county: str
    status: GroupStatus
    reason: Optional[str] = Field(None, description="too_small, already_exists, dry_run or the failure")
    item_count: int = 0
    story_id: Optional[int] = None
    title: Optional[str] = None
    citations: int = 0

    @property
    def region(self) -> str:
        return f"{self.state}/{self.county}"


class SynthesisStats(BaseModel):
    """Counts for a synthesis pass."""

    created: int = 0
    skipped: int = 0
    failed: int = 0
    outcomes: List[GroupOutcome] = Field(default_factory=list)

    def add(self, outcome: GroupOutcome) -> None:
        self.outcomes.append(outcome)
        if outcome.status == GroupStatus.PERSISTED:
            self.created += 1
        elif outcome.status == GroupStatus.SKIPPED:
            self.skipped += 1
        else:
            self.failed += 1
