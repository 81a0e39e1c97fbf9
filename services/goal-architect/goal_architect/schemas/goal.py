import math
from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from ..utils.dates import coerce_datetime
from ..utils.numbers import hours_from_minutes

GoalIntensity = Literal["Casual", "Standard", "Intense"]
MilestoneCategory = Literal["Study", "Practice", "Rest", "Review"]
MilestoneStatus = Literal["pending", "completed"]
MilestoneDifficulty = Literal["Easy", "Medium", "Hard"]

GOAL_INTENSITIES = ("Casual", "Standard", "Intense")
MILESTONE_CATEGORIES = ("Study", "Practice", "Rest", "Review")
MILESTONE_STATUSES = ("pending", "completed")
MILESTONE_DIFFICULTIES = ("Easy", "Medium", "Hard")


class MilestoneResource(BaseModel):
    title: str
    url: str


class Milestone(BaseModel):
    id: str
    title: str
    description: str
    category: MilestoneCategory
    status: MilestoneStatus = "pending"
    estimatedMinutes: int = Field(ge=0)
    estimatedHours: Optional[float] = None
    difficulty: MilestoneDifficulty = "Medium"
    deliverable: str = ""
    steps: List[str] = Field(default_factory=list)
    tips: List[str] = Field(default_factory=list)
    resources: List[MilestoneResource] = Field(default_factory=list)

    @model_validator(mode="after")
    def _fill_estimated_hours(self) -> "Milestone":
        if self.estimatedHours is None or not math.isfinite(self.estimatedHours):
            self.estimatedHours = hours_from_minutes(self.estimatedMinutes)
        elif self.estimatedHours < 0:
            raise ValueError("estimatedHours must be non-negative")
        return self


class GoalTimeframe(BaseModel):
    start: datetime
    end: datetime

    @field_validator("start", "end", mode="before")
    @classmethod
    def _coerce_date(cls, value):
        return coerce_datetime(value)


class GoalPlan(BaseModel):
    goalTitle: str
    timeframe: GoalTimeframe
    intensity: GoalIntensity
    milestones: List[Milestone] = Field(default_factory=list)


class TimeframeRequest(BaseModel):
    start: str = Field(min_length=1)
    end: str = Field(min_length=1)


class GoalPlanRequest(BaseModel):
    goalTitle: str = Field(min_length=1)
    timeframe: TimeframeRequest
    intensity: GoalIntensity
    remainingMilestones: Optional[List[Milestone]] = None


class GoalPlanResponse(BaseModel):
    milestones: List[Milestone]
    summary: str


class GoalPlanState(BaseModel):
    plan: Optional[GoalPlan] = None
    goalHealth: int = 0
