from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import Any, List, Optional
from datetime import date
from enum import Enum


def _as_str(v: Any) -> Any:
    # Hosted tables may use bigint or uuid keys; the app treats ids as opaque strings
    if v is None:
        return v
    return str(v)


class SortOption(str, Enum):
    newest = "newest"
    most_funded = "most-funded"
    ending_soon = "ending-soon"


# (column, descending)
SORT_ORDERS = {
    SortOption.newest: ("created_at", True),
    SortOption.most_funded: ("current_amount", True),
    SortOption.ending_soon: ("end_date", False),
}

SORT_LABELS = {
    SortOption.newest: "Newest First",
    SortOption.most_funded: "Most Funded",
    SortOption.ending_soon: "Ending Soon",
}


def parse_sort(value: Optional[str]) -> SortOption:
    """Map a raw sort key to a SortOption, falling back to newest."""
    try:
        return SortOption(value)
    except ValueError:
        return SortOption.newest


class Project(BaseModel):
    """
    A funding campaign row.
    current_amount and backer_count are aggregates maintained by the data layer.
    """
    model_config = ConfigDict(extra="ignore")

    id: str
    title: str
    description: str = ""
    goal_amount: float
    current_amount: float = 0.0
    end_date: str
    backer_count: int = 0
    created_at: Optional[str] = None
    user_id: Optional[str] = None

    @field_validator("id", "user_id", mode="before")
    @classmethod
    def ids_to_str(cls, v):
        return _as_str(v)

    @field_validator("end_date", "created_at", mode="before")
    @classmethod
    def dates_to_iso(cls, v):
        if isinstance(v, date):
            return v.isoformat()
        return v

    @field_validator("current_amount", mode="before")
    @classmethod
    def null_amount_is_zero(cls, v):
        return 0.0 if v is None else v

    @field_validator("backer_count", mode="before")
    @classmethod
    def null_count_is_zero(cls, v):
        return 0 if v is None else v


class ProjectCreate(BaseModel):
    """
    Payload for creating a project.
    The owning user is taken from the access token, never from the body.
    """
    model_config = ConfigDict(extra="ignore")

    title: str = Field(..., min_length=1, max_length=200, description="Project title")
    description: str = Field(..., min_length=1, description="Free-text description")
    goal_amount: float = Field(..., ge=1, allow_inf_nan=False, description="Funding goal in dollars (>= 1)")
    end_date: date = Field(..., description="Campaign end date (ISO date)")

    @field_validator("title", "description", mode="before")
    @classmethod
    def trim_text(cls, v):
        if isinstance(v, str):
            return v.strip()
        return v


class Update(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str
    content: str
    created_at: Optional[str] = None
    project_id: Optional[str] = None
    user_id: Optional[str] = None

    @field_validator("id", "project_id", "user_id", mode="before")
    @classmethod
    def ids_to_str(cls, v):
        return _as_str(v)


class UpdateCreate(BaseModel):
    content: str = Field(..., min_length=1, description="Update text")

    @field_validator("content", mode="before")
    @classmethod
    def trim_content(cls, v):
        if isinstance(v, str):
            return v.strip()
        return v


class PledgePoint(BaseModel):
    """The slice of a pledge the details view reads back (charting only)."""
    model_config = ConfigDict(extra="ignore")

    amount: float
    created_at: str


class PledgeCreate(BaseModel):
    amount: float = Field(..., gt=0, allow_inf_nan=False, description="Pledge amount in dollars")


class ProjectDetail(Project):
    updates: List[Update] = Field(default_factory=list)
    pledges: List[PledgePoint] = Field(default_factory=list)
