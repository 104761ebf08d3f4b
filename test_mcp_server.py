"""Tests for the FastMCP interface using the in-memory client."""
import json

import pytest
from fastmcp import Client

from src.memorias.interface.mcp_interface import interface, mcp


@pytest.fixture
def mcp_service(memory_service):
    previous = interface._service
    interface.service = memory_service
    yield memory_service
    interface._service = previous


@pytest.mark.asyncio
async def test_tools_are_registered(mcp_service):
    async with Client(mcp) as client:
        tools = await client.list_tools()
        names = {tool.name for tool in tools}
    assert {"store_memory", "query_memories", "get_memory", "update_memory", "delete_memory"} <= names


@pytest.mark.asyncio
async def test_store_query_update_delete(mcp_service):
    async with Client(mcp) as client:
        stored = await client.call_tool("store_memory", {
            "event_date": "2023-01-11",
            "title": "Primeiro sorriso",
            "description": "Sorriu para a mamãe",
            "category": "milestone",
            "photos": ["https://cdn.example/sorriso.jpg"],
        })
        assert stored.data["success"] is True
        memory = stored.data["memory"]
        assert memory["age_text"] == "2 meses"
        assert memory["cover_image"] == "https://cdn.example/sorriso.jpg"

        found = await client.call_tool("query_memories", {"search": "SORRISO"})
        assert found.data["total"] == 1

        updated = await client.call_tool("update_memory", {
            "memory_id": memory["id"],
            "event_date": "2023-01-12",
            "title": "Primeiro sorriso",
            "description": "Sorriu para o papai",
            "category": "special",
        })
        assert updated.data["success"] is True
        assert updated.data["memory"]["photos"] == []
        assert updated.data["memory"]["age_text"] == "2 meses e 1 dia"

        deleted = await client.call_tool("delete_memory", {"memory_id": memory["id"]})
        assert deleted.data["success"] is True

        missing = await client.call_tool("get_memory", {"memory_id": memory["id"]})
        assert missing.data["success"] is False


@pytest.mark.asyncio
async def test_store_rejects_missing_fields(mcp_service):
    async with Client(mcp) as client:
        result = await client.call_tool("store_memory", {
            "event_date": "2023-01-11",
            "title": "",
            "description": "Sem título",
        })
    assert result.data["success"] is False
    assert result.data["error"] == "Por favor, preencha todos os campos obrigatórios."
    assert mcp_service.get_stats().total_memories == 0


@pytest.mark.asyncio
async def test_stats_and_health_resources(mcp_service):
    async with Client(mcp) as client:
        await client.call_tool("store_memory", {
            "event_date": "2023-11-11",
            "title": "Primeiro aniversário",
            "description": "Festa com a família",
            "category": "milestone",
            "photos": ["https://cdn.example/bolo.jpg"],
        })
        stats = json.loads((await client.read_resource("memorias://stats"))[0].text)
        health = json.loads((await client.read_resource("memorias://health"))[0].text)

    assert stats == {"total_memories": 1, "total_milestones": 1, "total_photos": 1, "total_videos": 0}
    assert health["status"] == "healthy"
