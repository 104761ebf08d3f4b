"""Tests for the local memory store through MemoryService."""
import json
import threading
from datetime import date

import pytest

from src.memorias.core.models import Category, MemoryFilter, MemoryNotFoundError


def _rows(local_store, table):
    return json.loads((local_store.tables_dir / f"{table}.json").read_text(encoding="utf-8"))


def test_create_and_fetch(memory_service, make_input):
    stored = memory_service.create_memory(make_input())

    fetched = memory_service.get_memory(stored.id)
    assert fetched.title == "Primeiro aniversário"
    assert fetched.category == Category.MILESTONE
    assert fetched.photos == ["https://cdn.example/bolo.jpg", "https://cdn.example/velas.jpg"]
    assert fetched.videos == ["https://cdn.example/parabens.mp4"]
    assert fetched.notable_items == ["bolo de chocolate", "balões"]
    assert (fetched.elapsed_age.years, fetched.elapsed_age.months, fetched.elapsed_age.days) == (1, 0, 0)
    assert fetched.created_at is not None


def test_cover_image_is_first_photo(memory_service, make_input):
    with_photos = memory_service.create_memory(make_input())
    without_photos = memory_service.create_memory(make_input(photos=[]))

    assert memory_service.get_memory(with_photos.id).cover_image == "https://cdn.example/bolo.jpg"
    assert memory_service.get_memory(without_photos.id).cover_image is None


def test_rows_use_backend_columns(memory_service, local_store, make_input):
    stored = memory_service.create_memory(make_input())

    header = _rows(local_store, "memorias")[0]
    assert header["id"] == stored.id
    assert header["data"] == "2023-11-11"
    assert header["categoria"] == "marco"
    assert (header["idade_anos"], header["idade_meses"], header["idade_dias"]) == (1, 0, 0)
    assert [row["nome"] for row in _rows(local_store, "itens_marcantes")] == ["bolo de chocolate", "balões"]
    assert all(row["memoria_id"] == stored.id for row in _rows(local_store, "fotos"))


def test_list_sorted_by_event_date_desc(memory_service, make_input):
    memory_service.create_memory(make_input(event_date=date(2023, 1, 11), title="Primeiro sorriso"))
    memory_service.create_memory(make_input(event_date=date(2024, 2, 15), title="Primeiros passos"))
    memory_service.create_memory(make_input(event_date=date(2023, 6, 1), title="Praia"))

    titles = [record.title for record in memory_service.list_memories()]
    assert titles == ["Primeiros passos", "Praia", "Primeiro sorriso"]


def test_filter_by_category(memory_service, make_input):
    memory_service.create_memory(make_input(category=Category.HEALTH, title="Vacina"))
    memory_service.create_memory(make_input(category=Category.PLAY, title="Parquinho"))

    results = memory_service.list_memories(MemoryFilter(category=Category.HEALTH))
    assert [record.title for record in results] == ["Vacina"]
    assert all(record.category == Category.HEALTH for record in results)


def test_filter_by_date_range_is_inclusive(memory_service, make_input):
    for day in (date(2023, 1, 10), date(2023, 1, 11), date(2023, 1, 20), date(2023, 1, 21)):
        memory_service.create_memory(make_input(event_date=day, title=day.isoformat()))

    results = memory_service.list_memories(MemoryFilter(date_from=date(2023, 1, 11), date_to=date(2023, 1, 20)))
    assert [record.title for record in results] == ["2023-01-20", "2023-01-11"]


def test_search_matches_title_or_description_case_insensitively(memory_service, make_input):
    memory_service.create_memory(make_input(title="Banho de MAR", description="Primeira vez na praia"))
    memory_service.create_memory(make_input(title="Almoço", description="Purê de abóbora com marmelada"))
    memory_service.create_memory(make_input(title="Soneca", description="Dormiu a tarde toda"))

    results = memory_service.list_memories(MemoryFilter(search="mar"))
    assert sorted(record.title for record in results) == ["Almoço", "Banho de MAR"]

    assert memory_service.list_memories(MemoryFilter(search="  ")) == memory_service.list_memories()


def test_update_replaces_everything(memory_service, local_store, make_input):
    stored = memory_service.create_memory(make_input())
    old_photo_ids = [row["id"] for row in _rows(local_store, "fotos")]

    updated = memory_service.update_memory(stored.id, make_input(
        event_date=date(2022, 12, 12),
        title="Primeiro mês",
        category=Category.SPECIAL,
        photos=["https://cdn.example/novo.jpg"],
        videos=[],
        notable_items=["chocalho"],
    ))

    assert updated.id == stored.id
    assert updated.title == "Primeiro mês"
    assert updated.category == Category.SPECIAL
    assert updated.photos == ["https://cdn.example/novo.jpg"]
    assert updated.videos == []
    assert updated.notable_items == ["chocalho"]
    assert (updated.elapsed_age.months, updated.elapsed_age.days) == (1, 1)
    assert not set(old_photo_ids) & {row["id"] for row in _rows(local_store, "fotos")}


def test_update_with_same_content_recreates_children(memory_service, local_store, make_input):
    stored = memory_service.create_memory(make_input())
    old_ids = {row["id"] for row in _rows(local_store, "videos")}

    memory_service.update_memory(stored.id, make_input())

    new_rows = _rows(local_store, "videos")
    assert [row["url"] for row in new_rows] == ["https://cdn.example/parabens.mp4"]
    assert not old_ids & {row["id"] for row in new_rows}


def test_update_unknown_memory(memory_service, make_input):
    with pytest.raises(MemoryNotFoundError):
        memory_service.update_memory("missing", make_input())


def test_delete_cascades_and_updates_stats(memory_service, local_store, make_input):
    keep = memory_service.create_memory(make_input(category=Category.EVERYDAY, photos=["https://cdn.example/a.jpg"]))
    gone = memory_service.create_memory(make_input())

    before = memory_service.get_stats()
    assert (before.total_memories, before.total_milestones, before.total_photos, before.total_videos) == (2, 1, 3, 2)

    memory_service.delete_memory(gone.id)

    with pytest.raises(MemoryNotFoundError):
        memory_service.get_memory(gone.id)
    after = memory_service.get_stats()
    assert (after.total_memories, after.total_milestones, after.total_photos, after.total_videos) == (1, 0, 1, 1)
    assert all(row["memoria_id"] == keep.id for row in _rows(local_store, "fotos"))
    assert _rows(local_store, "itens_marcantes") and all(
        row["memoria_id"] == keep.id for row in _rows(local_store, "itens_marcantes"))


def test_delete_unknown_memory(memory_service):
    with pytest.raises(MemoryNotFoundError):
        memory_service.delete_memory("missing")


def test_empty_store_stats(memory_service):
    stats = memory_service.get_stats()
    assert stats.total_memories == 0 and stats.total_photos == 0


def test_concurrent_inserts_are_all_kept(memory_service, local_store, make_input):
    errors = []

    def writer(prefix):
        for n in range(20):
            try:
                memory_service.create_memory(make_input(title=f"{prefix} {n}"))
            except Exception as e:
                errors.append(e)

    threads = [threading.Thread(target=writer, args=(name,)) for name in ("rest", "mcp")]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert errors == []
    assert memory_service.get_stats().total_memories == 40
    assert len(_rows(local_store, "fotos")) == 80
    assert not list(local_store.tables_dir.glob("*.tmp"))
