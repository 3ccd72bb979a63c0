import httpx
import pytest
from httpx import ASGITransport


@pytest.fixture
def mock_env(monkeypatch):
    monkeypatch.setenv("ELEVENLABS_API_KEY", "test-el-key")
    monkeypatch.setenv("ELEVENLABS_AGENT_ID", "test-agent-id")
    monkeypatch.setenv("SUPABASE_URL", "https://project.supabase.co")
    monkeypatch.setenv("SUPABASE_SERVICE_KEY", "test-service-key")
    monkeypatch.setenv("ANTHROPIC_API_KEY", "test-anthropic-key")
    # Tests drive cycles explicitly
    monkeypatch.setenv("POLLING_ENABLED", "false")
    monkeypatch.setenv("TRANSCRIPT_RETRY_DELAY_SECONDS", "0")
    monkeypatch.setenv("POLLING_BATCH_PAUSE_SECONDS", "0")


async def _asgi_client():
    from app.main import app, lifespan

    async with lifespan(app):
        async with httpx.AsyncClient(
            transport=ASGITransport(app=app),
            base_url="http://test",
        ) as c:
            yield c


@pytest.fixture
async def client(mock_env):
    async for c in _asgi_client():
        yield c


@pytest.fixture
async def unconfigured_client(mock_env, monkeypatch):
    monkeypatch.setenv("SUPABASE_URL", "")
    async for c in _asgi_client():
        yield c


@pytest.fixture
async def short_interval_client(mock_env, monkeypatch):
    monkeypatch.setenv("POLLING_INTERVAL_SECONDS", "10")
    async for c in _asgi_client():
        yield c
