"""Service layer interface for memory operations."""
import logging
from datetime import date
from typing import List, Optional, Protocol

from .dates import DateLike, compute_elapsed_age, format_elapsed_age, format_long_date
from .models import (
    REQUIRED_FIELDS_MESSAGE,
    ElapsedAge,
    MemoryFilter,
    MemoryInput,
    MemoryNotFoundError,
    MemoryRecord,
    MemoryStats,
    MemoryValidationError,
    MemoryView,
)

logger = logging.getLogger(__name__)


class MemoryStoreProtocol(Protocol):
    """Protocol defining the storage collaborator."""

    def insert_memory(self, memory_input: MemoryInput, age: ElapsedAge) -> MemoryRecord:
        """Insert a header row plus its photo, video and item rows."""
        ...

    def query_memories(self, memory_filter: MemoryFilter) -> List[MemoryRecord]:
        """Filtered records, newest event date first."""
        ...

    def get_memory(self, memory_id: str) -> Optional[MemoryRecord]:
        """One record with its children, or None."""
        ...

    def update_memory(self, memory_id: str, memory_input: MemoryInput, age: ElapsedAge) -> bool:
        """Replace header fields and every child collection. False if unknown."""
        ...

    def delete_memory(self, memory_id: str) -> bool:
        """Delete a record and all its children. False if unknown."""
        ...

    def get_stats(self) -> MemoryStats:
        """Aggregate counts."""
        ...


def _clean_list(values: List[str]) -> List[str]:
    return [value.strip() for value in values if value and value.strip()]


def validate_memory_input(memory_input: MemoryInput) -> MemoryInput:
    """Check required fields and normalize list entries.

    Raises:
        MemoryValidationError: if event date, title or description is missing
    """
    if (memory_input.event_date is None
            or not memory_input.title.strip()
            or not memory_input.description.strip()):
        raise MemoryValidationError(REQUIRED_FIELDS_MESSAGE)

    location = memory_input.location.strip() if memory_input.location else None
    return memory_input.model_copy(update={
        "title": memory_input.title.strip(),
        "description": memory_input.description.strip(),
        "location": location or None,
        "photos": _clean_list(memory_input.photos),
        "videos": _clean_list(memory_input.videos),
        "notable_items": _clean_list(memory_input.notable_items),
    })


class MemoryService:
    """Service layer for memory operations."""

    def __init__(self, store: MemoryStoreProtocol, birth_date: date):
        self.store = store
        self.birth_date = birth_date

    def age_for(self, event_date: DateLike) -> ElapsedAge:
        """Elapsed age at `event_date`, anchored on the configured birth date."""
        return compute_elapsed_age(self.birth_date, event_date)

    def _prepare(self, memory_input: MemoryInput):
        try:
            memory_input = validate_memory_input(memory_input)
            age = self.age_for(memory_input.event_date)
        except MemoryValidationError as e:
            logger.info(f"Memory input rejected: {e}")
            raise
        return memory_input, age

    def create_memory(self, memory_input: MemoryInput) -> MemoryRecord:
        """Validate and store a new memory."""
        memory_input, age = self._prepare(memory_input)
        record = self.store.insert_memory(memory_input, age)
        logger.info(f"Memory {record.id} created ({record.event_date.isoformat()})")
        return record

    def list_memories(self, memory_filter: Optional[MemoryFilter] = None) -> List[MemoryRecord]:
        """List memories matching the filter, newest event first."""
        memory_filter = memory_filter or MemoryFilter()
        if memory_filter.search is not None:
            search = memory_filter.search.strip()
            memory_filter = memory_filter.model_copy(update={"search": search or None})
        return self.store.query_memories(memory_filter)

    def get_memory(self, memory_id: str) -> MemoryRecord:
        record = self.store.get_memory(memory_id)
        if record is None:
            raise MemoryNotFoundError(f"Memory {memory_id} not found")
        return record

    def update_memory(self, memory_id: str, memory_input: MemoryInput) -> MemoryRecord:
        """Replace every mutable field of a memory, media and items included."""
        memory_input, age = self._prepare(memory_input)
        if not self.store.update_memory(memory_id, memory_input, age):
            raise MemoryNotFoundError(f"Memory {memory_id} not found")
        logger.info(f"Memory {memory_id} updated")
        return self.get_memory(memory_id)

    def delete_memory(self, memory_id: str) -> None:
        if not self.store.delete_memory(memory_id):
            raise MemoryNotFoundError(f"Memory {memory_id} not found")
        logger.info(f"Memory {memory_id} deleted")

    def get_stats(self) -> MemoryStats:
        return self.store.get_stats()

    def describe(self, record: MemoryRecord) -> MemoryView:
        """Attach the display strings for a record."""
        return MemoryView(
            **record.model_dump(exclude={"cover_image"}),
            age_text=format_elapsed_age(record.elapsed_age),
            date_text=format_long_date(record.event_date),
            category_label=record.category.label,
        )
