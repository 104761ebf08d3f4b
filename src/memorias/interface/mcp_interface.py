"""MCP (Model Context Protocol) interface for memorias service using FastMCP."""
from datetime import datetime
from typing import Dict, Any, List, Optional
from fastmcp import FastMCP

from ..core.config import config
from ..core.memory_store import create_memory_store
from ..core.models import MemoryFilter, MemoryInput
from ..core.service import MemoryService


# Create FastMCP server instance
mcp = FastMCP(
    name="MemoriasService",
    instructions="""
    This service keeps dated memories of a growing child: title, description,
    location, category, photos, videos and notable items.

    Available tools:
    - store_memory: Record a new memory
    - query_memories: List memories filtered by category, date range or text
    - get_memory: Fetch one memory by ID
    - update_memory: Replace every field of a memory
    - delete_memory: Delete a memory and its media references

    Dates use the YYYY-MM-DD format. Categories: milestone, everyday, special, health, play.
    """
)


class MCPMemoryInterface:
    """MCP interface for memory service operations."""

    def __init__(self):
        self._service: Optional[MemoryService] = None

    @property
    def service(self) -> MemoryService:
        if self._service is None:
            self._service = MemoryService(create_memory_store(config), config.birth_date)
        return self._service

    @service.setter
    def service(self, service: MemoryService):
        self._service = service


# Initialize the interface
interface = MCPMemoryInterface()


def _memory_input(event_date: str, title: str, description: str, category: str,
                  location: Optional[str], photos: Optional[List[str]],
                  videos: Optional[List[str]], notable_items: Optional[List[str]]) -> MemoryInput:
    return MemoryInput(
        event_date=event_date or None,
        title=title,
        description=description,
        location=location,
        category=category,
        photos=photos or [],
        videos=videos or [],
        notable_items=notable_items or [],
    )


def _view(record) -> Dict[str, Any]:
    return interface.service.describe(record).model_dump(mode='json')


@mcp.tool
def store_memory(event_date: str, title: str, description: str, category: str = "everyday",
                 location: Optional[str] = None, photos: Optional[List[str]] = None,
                 videos: Optional[List[str]] = None, notable_items: Optional[List[str]] = None) -> Dict[str, Any]:
    """Record a new memory.

    Args:
        event_date: Day of the event (YYYY-MM-DD)
        title: Short title
        description: What happened
        category: milestone, everyday, special, health or play (default: everyday)
        location: Where it happened (optional)
        photos: Photo URLs in display order; the first one is the cover (optional)
        videos: Video URLs (optional)
        notable_items: Notable items of the day (optional)

    Returns:
        Dict containing success status, the stored memory with its age text, and message
    """
    try:
        memory_input = _memory_input(event_date, title, description, category,
                                     location, photos, videos, notable_items)
        record = interface.service.create_memory(memory_input)
        view = _view(record)
        return {
            "success": True,
            "memory": view,
            "message": f"Memory stored with ID: {record.id} ({view['age_text']})"
        }
    except Exception as e:
        return {
            "success": False,
            "error": str(e),
            "message": "Failed to store memory"
        }


@mcp.tool
def query_memories(category: Optional[str] = None, date_from: Optional[str] = None,
                   date_to: Optional[str] = None, search: Optional[str] = None) -> Dict[str, Any]:
    """List memories, newest event first.

    Args:
        category: Only this category (optional)
        date_from: Earliest event date, inclusive (optional)
        date_to: Latest event date, inclusive (optional)
        search: Case-insensitive text found in title or description (optional)

    Returns:
        Dict containing success status, matching memories, total count, and message
    """
    try:
        memory_filter = MemoryFilter(
            category=category or None,
            date_from=date_from or None,
            date_to=date_to or None,
            search=search,
        )
        records = interface.service.list_memories(memory_filter)
        return {
            "success": True,
            "memories": [_view(record) for record in records],
            "total": len(records),
            "message": f"Found {len(records)} memories"
        }
    except Exception as e:
        return {
            "success": False,
            "error": str(e),
            "message": "Failed to query memories"
        }


@mcp.tool
def get_memory(memory_id: str) -> Dict[str, Any]:
    """Fetch one memory by ID.

    Args:
        memory_id: Memory identifier

    Returns:
        Dict containing success status and the memory
    """
    try:
        record = interface.service.get_memory(memory_id)
        return {
            "success": True,
            "memory": _view(record),
        }
    except Exception as e:
        return {
            "success": False,
            "error": str(e),
            "message": "Failed to get memory"
        }


@mcp.tool
def update_memory(memory_id: str, event_date: str, title: str, description: str,
                  category: str = "everyday", location: Optional[str] = None,
                  photos: Optional[List[str]] = None, videos: Optional[List[str]] = None,
                  notable_items: Optional[List[str]] = None) -> Dict[str, Any]:
    """Replace every field of an existing memory.

    Photos, videos and notable items are replaced as a whole: pass the full
    lists, not only the additions.

    Returns:
        Dict containing success status, the updated memory, and message
    """
    try:
        memory_input = _memory_input(event_date, title, description, category,
                                     location, photos, videos, notable_items)
        record = interface.service.update_memory(memory_id, memory_input)
        return {
            "success": True,
            "memory": _view(record),
            "message": f"Memory {memory_id} updated"
        }
    except Exception as e:
        return {
            "success": False,
            "error": str(e),
            "message": "Failed to update memory"
        }


@mcp.tool
def delete_memory(memory_id: str) -> Dict[str, Any]:
    """Delete a memory with its photos, videos and notable items.

    Args:
        memory_id: Memory identifier

    Returns:
        Dict containing success status and message
    """
    try:
        interface.service.delete_memory(memory_id)
        return {
            "success": True,
            "message": f"Memory {memory_id} deleted"
        }
    except Exception as e:
        return {
            "success": False,
            "error": str(e),
            "message": "Failed to delete memory"
        }


@mcp.resource("memorias://stats")
def get_stats() -> Dict[str, Any]:
    """Get memory statistics.

    Returns:
        Dict containing totals of memories, milestones, photos and videos
    """
    try:
        return interface.service.get_stats().model_dump()
    except Exception as e:
        return {
            "error": str(e),
            "message": "Failed to get statistics"
        }


@mcp.resource("memorias://health")
def get_service_health() -> Dict[str, Any]:
    """Get service health status.

    Returns:
        Dict containing service health information
    """
    return {
        "status": "healthy",
        "service": "Memorias Service",
        "version": "0.1.0",
        "storage_backend": config.storage_backend,
        "birth_date": config.birth_date.isoformat(),
        "timestamp": str(datetime.now())
    }
