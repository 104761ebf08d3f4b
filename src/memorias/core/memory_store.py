"""Memory storage: local JSON tables or a Supabase (PostgREST) backend."""
import os
import json
import uuid
import logging
import tempfile
import threading
from pathlib import Path
from typing import List, Optional, Dict, Any
from datetime import datetime, timezone

import httpx

from .models import (
    Category,
    ElapsedAge,
    MemoryFilter,
    MemoryInput,
    MemoryRecord,
    MemoryStats,
    StorageError,
)
from .config import Config

logger = logging.getLogger(__name__)

MEMORIES_TABLE = "memorias"
PHOTOS_TABLE = "fotos"
VIDEOS_TABLE = "videos"
ITEMS_TABLE = "itens_marcantes"

# child table -> (MemoryInput attribute, value column)
CHILD_TABLES = {
    PHOTOS_TABLE: ("photos", "url"),
    VIDEOS_TABLE: ("videos", "url"),
    ITEMS_TABLE: ("notable_items", "nome"),
}

EMBEDDED_SELECT = f"*,{PHOTOS_TABLE}(*),{VIDEOS_TABLE}(*),{ITEMS_TABLE}(*)"


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def memory_to_row(memory_input: MemoryInput, age: ElapsedAge) -> Dict[str, Any]:
    """Header columns for a memory."""
    return {
        "data": memory_input.event_date.isoformat(),
        "titulo": memory_input.title,
        "descricao": memory_input.description,
        "local": memory_input.location,
        "categoria": memory_input.category.storage_value,
        "idade_anos": age.years,
        "idade_meses": age.months,
        "idade_dias": age.days,
    }


def row_to_record(row: Dict[str, Any]) -> MemoryRecord:
    """Build a record from a header row with its children embedded."""
    return MemoryRecord(
        id=str(row["id"]),
        event_date=row["data"],
        title=row["titulo"],
        description=row["descricao"],
        location=row.get("local"),
        category=Category.from_storage(row["categoria"]),
        photos=[child["url"] for child in row.get(PHOTOS_TABLE) or []],
        videos=[child["url"] for child in row.get(VIDEOS_TABLE) or []],
        notable_items=[child["nome"] for child in row.get(ITEMS_TABLE) or []],
        elapsed_age=ElapsedAge(
            years=row.get("idade_anos") or 0,
            months=row.get("idade_meses") or 0,
            days=row.get("idade_dias") or 0,
        ),
        created_at=row.get("created_at"),
        updated_at=row.get("updated_at"),
    )


def child_rows(memory_id: str, memory_input: MemoryInput, table: str) -> List[Dict[str, Any]]:
    attribute, column = CHILD_TABLES[table]
    return [{"memoria_id": memory_id, column: value} for value in getattr(memory_input, attribute)]


class LocalMemoryStore:
    """Memory storage in JSON files, one per table, under `tables_dir`.

    Tables mirror the managed backend: a header table plus one table per
    child collection keyed by `memoria_id`.

    Every operation holds a per-store lock, so one instance can be shared
    by the REST and MCP threads.
    """

    def __init__(self, tables_dir: str):
        self.tables_dir = Path(tables_dir)
        self.tables_dir.mkdir(parents=True, exist_ok=True)
        self._lock = threading.RLock()
        logger.info(f"📁 Local memory tables at {self.tables_dir}")

    def _table_path(self, table: str) -> Path:
        return self.tables_dir / f"{table}.json"

    def _load(self, table: str) -> List[Dict[str, Any]]:
        path = self._table_path(table)
        if not path.exists():
            return []
        try:
            with open(path, "r", encoding="utf-8") as f:
                return json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.error(f"Error reading table {table}: {e}")
            raise StorageError(f"Erro ao ler a tabela {table}.") from e

    def _save(self, table: str, rows: List[Dict[str, Any]]):
        path = self._table_path(table)
        tmp_name = None
        try:
            with tempfile.NamedTemporaryFile("w", encoding="utf-8", dir=self.tables_dir,
                                             prefix=f"{table}.", suffix=".tmp", delete=False) as f:
                tmp_name = f.name
                json.dump(rows, f, ensure_ascii=False, indent=2)
            os.replace(tmp_name, path)
        except OSError as e:
            logger.error(f"Error writing table {table}: {e}")
            if tmp_name and os.path.exists(tmp_name):
                os.remove(tmp_name)
            raise StorageError(f"Erro ao gravar a tabela {table}.") from e

    def _insert_children(self, memory_id: str, memory_input: MemoryInput):
        for table in CHILD_TABLES:
            new_rows = child_rows(memory_id, memory_input, table)
            if not new_rows:
                continue
            rows = self._load(table)
            created_at = _now()
            for new_row in new_rows:
                rows.append({"id": str(uuid.uuid4()), **new_row, "created_at": created_at})
            self._save(table, rows)

    def _delete_children(self, memory_id: str, table: str) -> int:
        rows = self._load(table)
        kept = [row for row in rows if row["memoria_id"] != memory_id]
        if len(kept) != len(rows):
            self._save(table, kept)
        return len(rows) - len(kept)

    def _embed(self, header: Dict[str, Any], children: Dict[str, List[Dict[str, Any]]]) -> MemoryRecord:
        row = dict(header)
        for table, rows in children.items():
            row[table] = [child for child in rows if child["memoria_id"] == header["id"]]
        return row_to_record(row)

    def insert_memory(self, memory_input: MemoryInput, age: ElapsedAge) -> MemoryRecord:
        with self._lock:
            memory_id = str(uuid.uuid4())
            created_at = _now()
            header = {"id": memory_id, **memory_to_row(memory_input, age),
                      "created_at": created_at, "updated_at": created_at}

            rows = self._load(MEMORIES_TABLE)
            rows.append(header)
            self._save(MEMORIES_TABLE, rows)

            self._insert_children(memory_id, memory_input)
            return self.get_memory(memory_id)

    def query_memories(self, memory_filter: MemoryFilter) -> List[MemoryRecord]:
        with self._lock:
            headers = self._load(MEMORIES_TABLE)
            search = memory_filter.search.lower() if memory_filter.search else None

            matched = []
            for header in headers:
                if memory_filter.category and header["categoria"] != memory_filter.category.storage_value:
                    continue
                # ISO dates compare correctly as strings
                if memory_filter.date_from and header["data"] < memory_filter.date_from.isoformat():
                    continue
                if memory_filter.date_to and header["data"] > memory_filter.date_to.isoformat():
                    continue
                if search and search not in header["titulo"].lower() and search not in header["descricao"].lower():
                    continue
                matched.append(header)

            matched.sort(key=lambda h: h["data"], reverse=True)
            children = {table: self._load(table) for table in CHILD_TABLES}
            return [self._embed(header, children) for header in matched]

    def get_memory(self, memory_id: str) -> Optional[MemoryRecord]:
        with self._lock:
            for header in self._load(MEMORIES_TABLE):
                if header["id"] == memory_id:
                    children = {table: self._load(table) for table in CHILD_TABLES}
                    return self._embed(header, children)
            return None

    def update_memory(self, memory_id: str, memory_input: MemoryInput, age: ElapsedAge) -> bool:
        with self._lock:
            rows = self._load(MEMORIES_TABLE)
            for header in rows:
                if header["id"] == memory_id:
                    header.update(memory_to_row(memory_input, age))
                    header["updated_at"] = _now()
                    break
            else:
                return False
            self._save(MEMORIES_TABLE, rows)

            # Children are replaced wholesale: delete, then reinsert
            for table in CHILD_TABLES:
                self._delete_children(memory_id, table)
            self._insert_children(memory_id, memory_input)
            return True

    def delete_memory(self, memory_id: str) -> bool:
        with self._lock:
            rows = self._load(MEMORIES_TABLE)
            kept = [row for row in rows if row["id"] != memory_id]
            if len(kept) == len(rows):
                return False
            self._save(MEMORIES_TABLE, kept)
            for table in CHILD_TABLES:
                self._delete_children(memory_id, table)
            return True

    def get_stats(self) -> MemoryStats:
        with self._lock:
            headers = self._load(MEMORIES_TABLE)
            milestone = Category.MILESTONE.storage_value
            return MemoryStats(
                total_memories=len(headers),
                total_milestones=sum(1 for h in headers if h["categoria"] == milestone),
                total_photos=len(self._load(PHOTOS_TABLE)),
                total_videos=len(self._load(VIDEOS_TABLE)),
            )


def _quote_filter_value(value: str) -> str:
    """Quote a value for a PostgREST logic-tree filter such as `or=(...)`."""
    escaped = value.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


class SupabaseMemoryStore:
    """Memory storage on a Supabase project through its PostgREST API.

    The `memorias` table is expected to cascade deletes to its child tables;
    child rows are also removed explicitly after the header is deleted.
    """

    def __init__(self, url: str, api_key: str, timeout: float = 30.0,
                 transport: Optional[httpx.BaseTransport] = None):
        self.base_url = f"{url.rstrip('/')}/rest/v1"
        self.client = httpx.Client(
            base_url=self.base_url,
            headers={
                "apikey": api_key,
                "Authorization": f"Bearer {api_key}",
            },
            timeout=timeout,
            transport=transport,
        )

    def close(self):
        self.client.close()

    def _request(self, method: str, table: str, **kwargs) -> httpx.Response:
        try:
            response = self.client.request(method, f"/{table}", **kwargs)
            response.raise_for_status()
            return response
        except httpx.HTTPStatusError as e:
            logger.error(f"{method} {table} failed with {e.response.status_code}: {e.response.text}")
            raise StorageError(f"Erro ao acessar {table} ({e.response.status_code}).") from e
        except httpx.HTTPError as e:
            logger.error(f"{method} {table} failed: {e}")
            raise StorageError(f"Erro de comunicação com o servidor ao acessar {table}.") from e

    def _insert_children(self, memory_id: str, memory_input: MemoryInput):
        for table in CHILD_TABLES:
            rows = child_rows(memory_id, memory_input, table)
            if rows:
                self._request("POST", table, json=rows)

    def insert_memory(self, memory_input: MemoryInput, age: ElapsedAge) -> MemoryRecord:
        response = self._request(
            "POST", MEMORIES_TABLE,
            json=memory_to_row(memory_input, age),
            headers={"Prefer": "return=representation"},
        )
        memory_id = str(response.json()[0]["id"])

        # No rollback: a failure here leaves the header row in place
        self._insert_children(memory_id, memory_input)

        record = self.get_memory(memory_id)
        if record is None:
            raise StorageError(f"Memória {memory_id} não encontrada após a criação.")
        return record

    def query_memories(self, memory_filter: MemoryFilter) -> List[MemoryRecord]:
        params = [("select", EMBEDDED_SELECT)]
        if memory_filter.category:
            params.append(("categoria", f"eq.{memory_filter.category.storage_value}"))
        if memory_filter.date_from:
            params.append(("data", f"gte.{memory_filter.date_from.isoformat()}"))
        if memory_filter.date_to:
            params.append(("data", f"lte.{memory_filter.date_to.isoformat()}"))
        if memory_filter.search:
            pattern = _quote_filter_value(f"*{memory_filter.search}*")
            params.append(("or", f"(titulo.ilike.{pattern},descricao.ilike.{pattern})"))
        params.append(("order", "data.desc"))

        response = self._request("GET", MEMORIES_TABLE, params=params)
        return [row_to_record(row) for row in response.json()]

    def get_memory(self, memory_id: str) -> Optional[MemoryRecord]:
        response = self._request(
            "GET", MEMORIES_TABLE,
            params={"select": EMBEDDED_SELECT, "id": f"eq.{memory_id}"},
        )
        rows = response.json()
        if not rows:
            return None
        return row_to_record(rows[0])

    def update_memory(self, memory_id: str, memory_input: MemoryInput, age: ElapsedAge) -> bool:
        response = self._request(
            "PATCH", MEMORIES_TABLE,
            params={"id": f"eq.{memory_id}"},
            json=memory_to_row(memory_input, age),
            headers={"Prefer": "return=representation"},
        )
        if not response.json():
            return False

        for table in CHILD_TABLES:
            self._request("DELETE", table, params={"memoria_id": f"eq.{memory_id}"})
        self._insert_children(memory_id, memory_input)
        return True

    def delete_memory(self, memory_id: str) -> bool:
        response = self._request(
            "DELETE", MEMORIES_TABLE,
            params={"id": f"eq.{memory_id}"},
            headers={"Prefer": "return=representation"},
        )
        if not response.json():
            return False
        for table in CHILD_TABLES:
            self._request("DELETE", table, params={"memoria_id": f"eq.{memory_id}"})
        return True

    def _count(self, table: str, **filters) -> int:
        response = self._request(
            "GET", table,
            params={"select": "id", **filters},
            headers={"Prefer": "count=exact", "Range-Unit": "items", "Range": "0-0"},
        )
        content_range = response.headers.get("content-range", "")
        total = content_range.rsplit("/", 1)[-1]
        if not total.isdigit():
            raise StorageError(f"Contagem indisponível para {table}.")
        return int(total)

    def get_stats(self) -> MemoryStats:
        return MemoryStats(
            total_memories=self._count(MEMORIES_TABLE),
            total_milestones=self._count(MEMORIES_TABLE, categoria=f"eq.{Category.MILESTONE.storage_value}"),
            total_photos=self._count(PHOTOS_TABLE),
            total_videos=self._count(VIDEOS_TABLE),
        )


def create_memory_store(config: Config, transport: Optional[httpx.BaseTransport] = None):
    """Build the storage collaborator selected by `config.storage_backend`."""
    if config.storage_backend == "supabase":
        logger.info(f"🔧 Using Supabase storage at {config.supabase_url}")
        return SupabaseMemoryStore(
            config.supabase_url,
            config.supabase_key,
            timeout=config.request_timeout,
            transport=transport,
        )
    logger.info("🔧 Using local storage")
    return LocalMemoryStore(config.tables_dir)
