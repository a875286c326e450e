import pytest
from httpx import ASGITransport, AsyncClient

from northstar.apps.api.deps import get_orchestrator
from northstar.apps.api.main import app
from northstar.apps.api.services.orchestrator import Orchestrator
from northstar.libs.agents import build_default_registry
from northstar.libs.memory import append_exchange
from northstar.libs.routing import TopicClassifier
from northstar.libs.safety import CrisisGate


@pytest.fixture
def orchestrator(make_router, scripted, memory_store):
    gemini = scripted("gemini", 'Loosen up first.\n\nHabit: "Morning Stretch"', separate=True)
    router = make_router(gemini=gemini)
    orchestrator = Orchestrator(
        crisis_gate=CrisisGate(),
        classifier=TopicClassifier(None),
        registry=build_default_registry(router),
        store=memory_store,
        router=router,
    )
    app.dependency_overrides[get_orchestrator] = lambda: orchestrator
    yield orchestrator
    app.dependency_overrides.clear()


@pytest.mark.asyncio
async def test_chat_endpoint_runs_pipeline(orchestrator):
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        resp = await ac.post("/ai/chat", json={"user_id": "u1", "message": "morning stretch ideas?"})

    assert resp.status_code == 200
    body = resp.json()
    assert body["ok"] is True
    assert body["topic"] == "fitness"
    assert body["text"].endswith('created habit "Morning Stretch".')


@pytest.mark.asyncio
async def test_chat_endpoint_rejects_missing_user(orchestrator):
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        resp = await ac.post("/ai/chat", json={"user_id": "", "message": "hi"})

    assert resp.status_code == 422


@pytest.mark.asyncio
async def test_reset_memory_endpoint(orchestrator):
    memory = await orchestrator.store.load("u1")
    append_exchange(memory, "sleep", "hi", "hello")
    await orchestrator.store.save("u1", memory)

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        resp = await ac.delete("/ai/memory/u1")

    assert resp.json() == {"ok": True, "user_id": "u1", "deleted": True}
    assert (await orchestrator.store.load("u1")).version == 0


@pytest.mark.asyncio
async def test_health_reports_breakers(orchestrator):
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        resp = await ac.get("/health")

    assert resp.status_code == 200
    assert resp.json() == {"status": "ok", "breakers": {}}
