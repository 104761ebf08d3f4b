"""Tests for environment-driven configuration."""
from datetime import date

import pytest
from pydantic import ValidationError

from src.memorias.core.config import Config


def test_defaults(monkeypatch):
    for name in ("BIRTH_DATE", "STORAGE_BACKEND", "SUPABASE_URL", "DATA_DIR"):
        monkeypatch.delenv(name, raising=False)

    config = Config()
    assert config.birth_date == date(2022, 11, 11)
    assert config.storage_backend == "local"
    assert config.tables_dir == "data/tables"
    assert config.media_dir == "data/media"
    assert config.max_image_size == 10 * 1024 * 1024


def test_supabase_selected_when_url_set(monkeypatch):
    monkeypatch.delenv("STORAGE_BACKEND", raising=False)
    monkeypatch.setenv("SUPABASE_URL", "https://project.supabase.co")
    monkeypatch.setenv("BIRTH_DATE", "2021-05-03")

    config = Config()
    assert config.storage_backend == "supabase"
    assert config.birth_date == date(2021, 5, 3)


def test_malformed_birth_date_fails(monkeypatch):
    monkeypatch.setenv("BIRTH_DATE", "03/05/2021")
    with pytest.raises(ValidationError, match="BIRTH_DATE"):
        Config()


def test_supabase_backend_requires_url(monkeypatch):
    monkeypatch.delenv("SUPABASE_URL", raising=False)
    monkeypatch.setenv("STORAGE_BACKEND", "supabase")
    with pytest.raises(ValidationError, match="SUPABASE_URL"):
        Config()
