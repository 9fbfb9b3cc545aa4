from __future__ import annotations

import httpx
import pytest

from app.main import create_app
from config.settings import Settings
from relay.client import RelayClient, RelayClientError, next_context, render_answer
from tests.conftest import ScriptedBackend


def make_client(backend: ScriptedBackend, **kwargs) -> RelayClient:
    app = create_app(settings=Settings(), backend=backend, credentials=["pool"])
    return RelayClient("http://test", transport=httpx.ASGITransport(app=app), **kwargs)


@pytest.mark.asyncio
async def test_follow_polls_until_done(backend: ScriptedBackend) -> None:
    backend.script("Q1").emit("A").emit("AB").finish("ABC")

    async with make_client(backend, poll_interval=0) as client:
        records = [record async for record in client.follow("hi")]

    assert records[0]["text"] == "A"
    assert records[-1]["text"] == "ABC"
    assert records[-1]["done"] is True
    assert all(not r["done"] for r in records[:-1])
    assert client.cookie == "pool"


@pytest.mark.asyncio
async def test_follow_raises_on_error_body(backend: ScriptedBackend) -> None:
    backend.script("Q2").fail("no quota")

    async with make_client(backend, poll_interval=0) as client:
        with pytest.raises(RelayClientError, match="no quota"):
            async for _ in client.follow("hi"):
                pass


@pytest.mark.asyncio
async def test_follow_sends_context_without_id(backend: ScriptedBackend) -> None:
    backend.script("Q3").finish("next answer")
    previous = {"id": "Q0", "text": "prev", "done": True, "history": [{"role": "user", "content": "x"}]}

    async with make_client(backend, cookie="pinned") as client:
        records = [record async for record in client.follow("and then?", previous)]

    assert records[-1]["text"] == "next answer"
    assert backend.calls[0]["context"] == {"text": "prev", "history": [{"role": "user", "content": "x"}]}
    assert backend.calls[0]["credential"] == "pinned"


@pytest.mark.asyncio
async def test_query_and_converse(backend: ScriptedBackend) -> None:
    backend.script("S1").finish("one")
    backend.script("S2").finish("two")

    async with make_client(backend) as client:
        first = await client.query("q")
        second = await client.converse("q2", next_context(first))

    assert first["text"] == "one"
    assert second["text"] == "two"
    assert "id" not in backend.calls[1]["context"]


def test_render_answer_appends_sources_and_suggestions() -> None:
    record = {
        "text": "Sunny.",
        "detail": {
            "sourceAttributions": [
                {"providerDisplayName": "Weather", "seeMoreUrl": "https://example.com/w"},
            ],
            "suggestedResponses": [{"text": "Tomorrow?"}, {"text": "Humidity?"}],
        },
    }

    assert render_answer(record) == (
        "Sunny.\n\nLearn more:\n1: [Weather](https://example.com/w)"
        "\n\n_Suggested responses:_\n_1: Tomorrow?_\n_2: Humidity?_"
    )


def test_render_answer_plain_text() -> None:
    assert render_answer({"text": "hi"}) == "hi"
