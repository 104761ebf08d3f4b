"""Shared fixtures for memorias tests."""
from datetime import date

import pytest

from src.memorias.core.memory_store import LocalMemoryStore
from src.memorias.core.models import Category, MemoryInput
from src.memorias.core.service import MemoryService

BIRTH_DATE = date(2022, 11, 11)


@pytest.fixture
def local_store(tmp_path):
    """Local JSON-table store in a temporary directory."""
    return LocalMemoryStore(str(tmp_path / "tables"))


@pytest.fixture
def memory_service(local_store):
    return MemoryService(local_store, BIRTH_DATE)


@pytest.fixture
def make_input():
    """Factory for valid memory inputs."""
    def _make(**overrides) -> MemoryInput:
        fields = {
            "event_date": date(2023, 11, 11),
            "title": "Primeiro aniversário",
            "description": "Festa com a família toda",
            "location": "Casa da vovó",
            "category": Category.MILESTONE,
            "photos": ["https://cdn.example/bolo.jpg", "https://cdn.example/velas.jpg"],
            "videos": ["https://cdn.example/parabens.mp4"],
            "notable_items": ["bolo de chocolate", "balões"],
        }
        fields.update(overrides)
        return MemoryInput(**fields)
    return _make
