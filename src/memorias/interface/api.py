"""FastAPI interface for memorias service."""
import logging
from datetime import date
from typing import List, Dict, Any, Optional
from fastapi import Depends, FastAPI, File, HTTPException, Query, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles

from ..core.config import config
from ..core.dates import format_elapsed_age, format_long_date
from ..core.memory_store import create_memory_store
from ..core.models import (
    Category,
    MemoryFilter,
    MemoryInput,
    MemoryNotFoundError,
    MemoryStats,
    MemoryView,
    StorageError,
    UploadBatchResult,
)
from ..core.service import MemoryService
from ..core.upload import FOLDERS, UploadService, create_upload_service

logger = logging.getLogger(__name__)

app = FastAPI(
    title="Memorias Service API",
    description="A service for recording dated memories of a growing child",
    version="0.1.0",
    docs_url="/docs",
    redoc_url="/redoc"
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

if config.storage_backend == "local":
    app.mount("/media", StaticFiles(directory=config.media_dir, check_dir=False), name="media")

_memory_service: Optional[MemoryService] = None
_upload_service: Optional[UploadService] = None


def get_memory_service() -> MemoryService:
    """Shared MemoryService, created on first use."""
    global _memory_service
    if _memory_service is None:
        _memory_service = MemoryService(create_memory_store(config), config.birth_date)
    return _memory_service


def get_upload_service() -> UploadService:
    """Shared UploadService, created on first use."""
    global _upload_service
    if _upload_service is None:
        _upload_service = create_upload_service(config)
    return _upload_service


def _to_http_error(e: Exception) -> HTTPException:
    if isinstance(e, ValueError):
        return HTTPException(status_code=400, detail=str(e))
    if isinstance(e, MemoryNotFoundError):
        return HTTPException(status_code=404, detail="Memory not found")
    if isinstance(e, StorageError):
        return HTTPException(status_code=502, detail=str(e))
    logger.exception(f"Unexpected error: {e}")
    return HTTPException(status_code=500, detail=str(e))


@app.post("/memories", response_model=MemoryView)
async def create_memory(memory_input: MemoryInput, service: MemoryService = Depends(get_memory_service)):
    """Create a new memory."""
    try:
        return service.describe(service.create_memory(memory_input))
    except Exception as e:
        raise _to_http_error(e)


@app.get("/memories", response_model=List[MemoryView])
async def list_memories(
    category: Optional[Category] = None,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
    search: Optional[str] = Query(default=None, max_length=200),
    service: MemoryService = Depends(get_memory_service),
):
    """List memories, newest event first, with optional filters."""
    try:
        memory_filter = MemoryFilter(category=category, date_from=date_from, date_to=date_to, search=search)
        return [service.describe(record) for record in service.list_memories(memory_filter)]
    except Exception as e:
        raise _to_http_error(e)


@app.get("/memories/{memory_id}", response_model=MemoryView)
async def get_memory(memory_id: str, service: MemoryService = Depends(get_memory_service)):
    """Get a specific memory by ID."""
    try:
        return service.describe(service.get_memory(memory_id))
    except Exception as e:
        raise _to_http_error(e)


@app.put("/memories/{memory_id}", response_model=MemoryView)
async def update_memory(memory_id: str, memory_input: MemoryInput,
                        service: MemoryService = Depends(get_memory_service)):
    """Replace all fields of a memory, including its photos, videos and items."""
    try:
        return service.describe(service.update_memory(memory_id, memory_input))
    except Exception as e:
        raise _to_http_error(e)


@app.delete("/memories/{memory_id}")
async def delete_memory(memory_id: str, service: MemoryService = Depends(get_memory_service)):
    """Delete a memory and everything attached to it."""
    try:
        service.delete_memory(memory_id)
        return {"message": "Memory deleted successfully", "memory_id": memory_id}
    except Exception as e:
        raise _to_http_error(e)


@app.post("/uploads/{folder}", response_model=UploadBatchResult)
async def upload_media(folder: str, files: List[UploadFile] = File(...),
                       uploads: UploadService = Depends(get_upload_service)):
    """Upload photos or videos; each file is accepted or rejected on its own."""
    if folder not in FOLDERS:
        raise HTTPException(status_code=404, detail=f"Unknown folder: {folder}")
    batch = []
    for upload in files:
        batch.append((upload.filename or "arquivo", upload.content_type or "", await upload.read()))
    try:
        return uploads.upload_files(batch, folder)
    except Exception as e:
        raise _to_http_error(e)


@app.get("/age", response_model=Dict[str, Any])
async def get_age(event_date: date = Query(..., alias="date"),
                  service: MemoryService = Depends(get_memory_service)):
    """Age at an event date, plus its long-form rendering."""
    try:
        age = service.age_for(event_date)
        return {
            "elapsed_age": age.model_dump(),
            "age_text": format_elapsed_age(age),
            "date_text": format_long_date(event_date),
        }
    except Exception as e:
        raise _to_http_error(e)


@app.get("/stats", response_model=MemoryStats)
async def get_stats(service: MemoryService = Depends(get_memory_service)):
    """Get memory statistics."""
    try:
        return service.get_stats()
    except Exception as e:
        raise _to_http_error(e)


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "service": "memorias-service",
        "version": "0.1.0",
        "storage_backend": config.storage_backend,
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host=config.host, port=config.port)
