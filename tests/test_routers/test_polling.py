import asyncio
import json

import respx
from httpx import Response

ELEVENLABS_CONVERSATIONS = "https://api.elevenlabs.io/v1/convai/conversations"
ELEVENLABS_CONVERSATION = "https://api.elevenlabs.io/v1/convai/conversations/conv-1"
SUPABASE_CALLS = "https://project.supabase.co/rest/v1/voter_calls"


def _mock_no_answer_call():
    respx.get(ELEVENLABS_CONVERSATIONS).mock(
        return_value=Response(
            200,
            json={
                "conversations": [
                    {
                        "conversation_id": "conv-1",
                        "agent_id": "test-agent-id",
                        "status": "failed",
                        "call_successful": "failed",
                        "metadata": {"twilio_status": "no-answer"},
                    },
                    {
                        "conversation_id": "conv-2",
                        "status": "in-progress",
                    },
                ]
            },
        )
    )
    respx.get(ELEVENLABS_CONVERSATION).mock(
        return_value=Response(200, json={"conversation_id": "conv-1", "status": "failed", "transcript": []})
    )
    respx.get(SUPABASE_CALLS).mock(return_value=Response(200, json=[]))
    return respx.post(SUPABASE_CALLS).mock(
        side_effect=lambda request: Response(201, json=[{**json.loads(request.content), "id": "row-1"}])
    )


async def test_status(client):
    resp = await client.get("/polling/status")
    assert resp.status_code == 200
    data = resp.json()
    assert data["is_running"] is False
    assert data["polling_interval_seconds"] == 120
    assert data["processed_calls_count"] == 0
    assert data["last_poll_time"] is None


@respx.mock
async def test_start_and_stop(client):
    respx.get(ELEVENLABS_CONVERSATIONS).mock(return_value=Response(200, json={"conversations": []}))

    resp = await client.post("/polling/start")
    assert resp.status_code == 200
    assert resp.json()["is_running"] is True

    # Starting fires a cycle right away
    for _ in range(50):
        await asyncio.sleep(0.01)
        status = (await client.get("/polling/status")).json()
        if status["last_poll_time"] is not None:
            break
    assert status["last_poll_time"] is not None

    resp = await client.post("/polling/stop")
    assert resp.status_code == 200
    assert resp.json()["is_running"] is False


async def test_interval_below_floor_rejected(client):
    resp = await client.put("/polling/interval", json={"interval_seconds": 10})
    assert resp.status_code == 400
    assert "minimum is 30 seconds" in resp.json()["detail"]

    status = (await client.get("/polling/status")).json()
    assert status["polling_interval_seconds"] == 120


async def test_interval_update(client):
    resp = await client.put("/polling/interval", json={"interval_seconds": 300})
    assert resp.status_code == 200
    assert resp.json()["polling_interval_seconds"] == 300
    assert resp.json()["is_running"] is False


@respx.mock
async def test_trigger_sync_processes_call(client):
    insert = _mock_no_answer_call()

    resp = await client.post("/polling/trigger/sync")

    assert resp.status_code == 200
    data = resp.json()
    assert data["fetched"] == 2
    assert data["eligible"] == 1
    assert data["processed"] == 1
    assert data["error"] is None

    body = json.loads(insert.calls[0].request.content)
    assert body["call_id"] == "conv-1"
    assert body["status"] == "no_answer"
    assert body["error_message"] == "Call no answer"
    assert "transcript" not in body

    status = (await client.get("/polling/status")).json()
    assert status["processed_calls_count"] == 1
    assert status["last_poll_time"] is not None

    resp = await client.delete("/polling/cache")
    assert resp.json()["processed_calls_count"] == 0


@respx.mock
async def test_trigger_sync_listing_failure(client):
    respx.get(ELEVENLABS_CONVERSATIONS).mock(return_value=Response(500, text="boom"))

    resp = await client.post("/polling/trigger/sync")

    assert resp.status_code == 200
    assert resp.json()["error"] == "boom"


@respx.mock
async def test_trigger_job(client):
    _mock_no_answer_call()

    resp = await client.post("/polling/trigger")
    assert resp.status_code == 202
    job_id = resp.json()["job_id"]

    for _ in range(50):
        await asyncio.sleep(0.01)
        job = (await client.get(f"/polling/jobs/{job_id}")).json()
        if job["status"] == "completed":
            break

    assert job["status"] == "completed"
    assert job["result"]["processed"] == 1


async def test_unknown_job(client):
    resp = await client.get("/polling/jobs/nope")
    assert resp.status_code == 404


async def test_not_configured(unconfigured_client):
    for method, path in [
        ("get", "/polling/status"),
        ("post", "/polling/start"),
        ("post", "/polling/trigger"),
        ("post", "/polling/trigger/sync"),
        ("delete", "/polling/cache"),
    ]:
        resp = await getattr(unconfigured_client, method)(path)
        assert resp.status_code == 503, path


async def test_configured_interval_below_floor_falls_back(short_interval_client):
    resp = await short_interval_client.get("/polling/status")

    assert resp.status_code == 200
    assert resp.json()["polling_interval_seconds"] == 120


@respx.mock
async def test_trigger_sync_skips_malformed_conversation(client):
    respx.get(ELEVENLABS_CONVERSATIONS).mock(
        return_value=Response(
            200,
            json={
                "conversations": [
                    {"conversation_id": "conv-1", "status": "failed", "call_successful": "failed"},
                    {"conversation_id": "conv-bad", "status": "done", "metadata": ["oops"]},
                ]
            },
        )
    )
    respx.get(ELEVENLABS_CONVERSATION).mock(
        return_value=Response(200, json={"conversation_id": "conv-1", "status": "failed", "transcript": []})
    )
    respx.get(SUPABASE_CALLS).mock(return_value=Response(200, json=[]))
    respx.post(SUPABASE_CALLS).mock(
        side_effect=lambda request: Response(201, json=[{**json.loads(request.content), "id": "row-1"}])
    )

    resp = await client.post("/polling/trigger/sync")

    data = resp.json()
    assert data["error"] is None
    assert data["fetched"] == 1
    assert data["processed"] == 1
