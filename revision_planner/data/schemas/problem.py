import uuid
from datetime import date, datetime
from typing import List, Optional

from pydantic import UUID4, BaseModel, field_validator
from sqlalchemy import JSON, Column, DateTime, Enum
from sqlmodel import Field

from revision_planner.data.schemas import base
from revision_planner.data.schemas.enums import Difficulty
from revision_planner.utils.time import as_utc, utcnow


class Problem(base.BaseModel, table=True):
    """
    One entry of a problem lineage. The original (is_revision=False) carries the
    lineage solve count; every "solve again" adds a revision row pointing back
    at it through original_problem_id. There is no foreign key on that column:
    deleting either side leaves the other untouched.
    """

    __tablename__ = "problems"

    owner_id: uuid.UUID = Field(foreign_key="users.id", index=True, nullable=False)
    problem_text: str = Field(nullable=False)
    difficulty: Optional[Difficulty] = Field(
        default=None, sa_column=Column(Enum(Difficulty), nullable=True)
    )
    platform: Optional[str] = Field(default=None, nullable=True)
    tags: List[str] = Field(default_factory=list, sa_column=Column(JSON, nullable=False))
    last_solved_at: datetime = Field(
        default_factory=utcnow, sa_type=DateTime(timezone=True), index=True
    )
    solve_count: int = Field(default=1, nullable=False)
    is_revision: bool = Field(default=False, nullable=False)
    original_problem_id: Optional[uuid.UUID] = Field(default=None, index=True, nullable=True)


class ProblemCreate(BaseModel):
    problem_text: str
    difficulty: Optional[Difficulty] = None
    platform: Optional[str] = None
    tags: List[str] = []

    @field_validator("problem_text")
    @classmethod
    def strip_text(cls, value: str) -> str:
        return value.strip()

    @field_validator("platform")
    @classmethod
    def strip_platform(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        return value.strip() or None

    @field_validator("tags")
    @classmethod
    def normalize_tags(cls, value: List[str]) -> List[str]:
        tags = []
        for tag in value:
            tag = tag.strip()
            if tag and tag not in tags:
                tags.append(tag)
        return tags


class ProblemRecord(BaseModel):
    """Immutable snapshot of a problem row, as held by the problem store."""

    id: UUID4
    owner_id: uuid.UUID
    problem_text: str
    difficulty: Optional[Difficulty] = None
    platform: Optional[str] = None
    tags: List[str] = []
    last_solved_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    solve_count: int = 1
    is_revision: bool = False
    original_problem_id: Optional[uuid.UUID] = None

    model_config = {"from_attributes": True, "frozen": True}

    @field_validator("last_solved_at", "created_at")
    @classmethod
    def ensure_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        return as_utc(value) if value is not None else None

    @property
    def is_revision_entry(self) -> bool:
        return self.is_revision or self.original_problem_id is not None


class ProblemResponse(ProblemRecord):
    is_link: bool = False
    can_undo: bool = False

    model_config = {"from_attributes": True}


class ProblemDetailResponse(ProblemResponse):
    next_due_on: Optional[datetime] = None
    revisions: List[ProblemResponse] = []


class DueTierResponse(BaseModel):
    days: int
    label: str
    problems: List[ProblemResponse]


class DueScheduleResponse(BaseModel):
    tiers: List[DueTierResponse]
    total_due: int


class ProblemStatsResponse(BaseModel):
    total_problems: int
    total_originals: int
    total_revisions: int
    total_solves: int
    total_undoable: int
    active_days: int


class DayGroupResponse(BaseModel):
    day: date
    label: str
    problems: List[ProblemResponse]
    revision_count: int
    undoable_count: int


class SnapshotMessage(BaseModel):
    type: str = "snapshot"
    problems: List[ProblemResponse]
    due: DueScheduleResponse
    stats: ProblemStatsResponse
    error: Optional[str] = None
