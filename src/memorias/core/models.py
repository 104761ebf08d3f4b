"""Data models for memorias service."""
from enum import Enum
from typing import List, Optional
from pydantic import BaseModel, Field, computed_field, field_validator
from datetime import date, datetime


REQUIRED_FIELDS_MESSAGE = "Por favor, preencha todos os campos obrigatórios."


class MemoryValidationError(ValueError):
    """Input rejected before any collaborator call. The message is user-facing."""


class MemoryNotFoundError(LookupError):
    """No memory with the given id."""


class StorageError(RuntimeError):
    """A storage or upload collaborator request failed."""


class Category(str, Enum):
    """Closed set of memory categories."""
    MILESTONE = "milestone"
    EVERYDAY = "everyday"
    SPECIAL = "special"
    HEALTH = "health"
    PLAY = "play"

    @property
    def storage_value(self) -> str:
        """Value stored in the `categoria` column."""
        return _STORAGE_VALUES[self]

    @property
    def label(self) -> str:
        return _LABELS[self]

    @classmethod
    def from_storage(cls, value: str) -> "Category":
        for category, stored in _STORAGE_VALUES.items():
            if stored == value:
                return category
        return cls(value)


_STORAGE_VALUES = {
    Category.MILESTONE: "marco",
    Category.EVERYDAY: "cotidiano",
    Category.SPECIAL: "especial",
    Category.HEALTH: "saude",
    Category.PLAY: "brincadeira",
}

_LABELS = {
    Category.MILESTONE: "Marco",
    Category.EVERYDAY: "Cotidiano",
    Category.SPECIAL: "Especial",
    Category.HEALTH: "Saúde",
    Category.PLAY: "Brincadeira",
}


class ElapsedAge(BaseModel):
    """Time between the reference (birth) date and an event date."""
    years: int = Field(default=0, ge=0, description="Whole years")
    months: int = Field(default=0, ge=0, le=11, description="Remainder months")
    days: int = Field(default=0, ge=0, description="Days since the last whole-month anniversary")


class MemoryInput(BaseModel):
    """Input model for creating or fully replacing a memory."""
    event_date: Optional[date] = Field(default=None, description="Day the remembered event happened")
    title: str = Field(default="", description="Short label")
    description: str = Field(default="", description="Free text")
    location: Optional[str] = Field(default=None, description="Where it happened")
    category: Category = Field(default=Category.EVERYDAY, description="Memory category")
    photos: List[str] = Field(default_factory=list, description="Photo URLs in display order")
    videos: List[str] = Field(default_factory=list, description="Video URLs in display order")
    notable_items: List[str] = Field(default_factory=list, description="Notable item labels")

    @field_validator("category", mode="before")
    @classmethod
    def accept_storage_category(cls, value):
        if isinstance(value, str):
            return Category.from_storage(value)
        return value


class MemoryRecord(BaseModel):
    """A stored memory with its denormalized elapsed age."""
    id: str = Field(..., description="Unique memory identifier")
    event_date: date = Field(..., description="Day the remembered event happened")
    title: str = Field(..., description="Short label")
    description: str = Field(..., description="Free text")
    location: Optional[str] = Field(default=None, description="Where it happened")
    category: Category = Field(..., description="Memory category")
    photos: List[str] = Field(default_factory=list, description="Photo URLs in display order")
    videos: List[str] = Field(default_factory=list, description="Video URLs in display order")
    notable_items: List[str] = Field(default_factory=list, description="Notable item labels")
    elapsed_age: ElapsedAge = Field(default_factory=ElapsedAge, description="Age at the event")
    created_at: Optional[datetime] = Field(default=None, description="Creation timestamp")
    updated_at: Optional[datetime] = Field(default=None, description="Last update timestamp")

    @computed_field
    @property
    def cover_image(self) -> Optional[str]:
        """First photo, if any."""
        return self.photos[0] if self.photos else None


class MemoryView(MemoryRecord):
    """Memory with the display strings derived from its dates."""
    age_text: str = Field(..., description="Age at the event, e.g. '1 ano e 3 meses'")
    date_text: str = Field(..., description="Long-form event date, e.g. '11 de novembro de 2022'")
    category_label: str = Field(..., description="Display label of the category")


class MemoryFilter(BaseModel):
    """Query filters; absent fields impose no constraint."""
    category: Optional[Category] = Field(default=None, description="Exact category")
    date_from: Optional[date] = Field(default=None, description="Inclusive lower bound on event date")
    date_to: Optional[date] = Field(default=None, description="Inclusive upper bound on event date")
    search: Optional[str] = Field(default=None, description="Case-insensitive text in title or description")

    @field_validator("category", mode="before")
    @classmethod
    def accept_storage_category(cls, value):
        if isinstance(value, str) and value:
            return Category.from_storage(value)
        return value or None


class MemoryStats(BaseModel):
    """Aggregate counts."""
    total_memories: int = 0
    total_milestones: int = 0
    total_photos: int = 0
    total_videos: int = 0


class RejectedFile(BaseModel):
    filename: str
    reason: str


class UploadBatchResult(BaseModel):
    """Outcome of a multi-file upload; each file succeeds or fails on its own."""
    urls: List[str] = Field(default_factory=list, description="Public URLs of stored files, in input order")
    rejected: List[RejectedFile] = Field(default_factory=list, description="Files that failed type/size checks")
    failed: List[RejectedFile] = Field(default_factory=list, description="Valid files the storage refused")
