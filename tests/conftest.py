import asyncio
import json

import httpx
import pytest
import pytest_asyncio

from streamcore.config import Settings

TEST_YAML_CONFIG = {
    "models": {
        "default": "llama3",
        "exclude": {
            "openai": ["instruct", "audio", "search", "realtime", "vision", "embedding"],
            "gemini": ["vision", "embedding"],
        },
    }
}


@pytest.fixture
def test_settings():
    return Settings(
        openai_api_key="sk-test-fake",
        gemini_api_key="fake-gemini-key",
        ollama_url="http://ollama.test",
        openai_url="http://openai.test/v1",
        gemini_url="http://gemini.test/v1beta",
        stream_yield_every=2,
        yaml_config=TEST_YAML_CONFIG,
    )


@pytest.fixture
def unconfigured_settings():
    return Settings(
        openai_api_key="",
        gemini_api_key="",
        ollama_url="http://ollama.test",
        yaml_config=TEST_YAML_CONFIG,
    )


class ChunkStream(httpx.AsyncByteStream):
    """Response body delivered chunk by chunk, optionally failing after the last one.

    ``gate`` (an asyncio.Event) pauses the stream before each chunk after the
    first, so a test can act while a response is mid-flight.
    """

    def __init__(self, chunks, fail_with: Exception | None = None, gate: asyncio.Event | None = None):
        self._chunks = [c.encode() if isinstance(c, str) else c for c in chunks]
        self._fail_with = fail_with
        self._gate = gate

    async def __aiter__(self):
        for i, chunk in enumerate(self._chunks):
            if i and self._gate is not None:
                await self._gate.wait()
            yield chunk
        if self._fail_with is not None:
            raise self._fail_with

    async def aclose(self):
        pass


def ndjson(*objects) -> list[str]:
    return [json.dumps(o) + "\n" for o in objects]


def sse(*objects, done: bool = False) -> list[str]:
    events = [f"data: {json.dumps(o)}\n\n" for o in objects]
    if done:
        events.append("data: [DONE]\n\n")
    return events


def stream_response(chunks, status_code: int = 200, framing: str = "lines", **kwargs) -> httpx.Response:
    content_type = "text/event-stream" if framing == "sse" else "application/x-ndjson"
    return httpx.Response(
        status_code,
        headers={"content-type": content_type},
        stream=ChunkStream(chunks, **kwargs),
    )


class RecordingHandler:
    """MockTransport handler that records requests and replays queued responses."""

    def __init__(self, *responses):
        self.requests: list[httpx.Request] = []
        self._responses = list(responses)

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        response = self._responses.pop(0) if len(self._responses) > 1 else self._responses[0]
        if callable(response):
            return response(request)
        return response

    def body(self, index: int = -1) -> dict:
        return json.loads(self.requests[index].content)


@pytest_asyncio.fixture
async def make_client():
    clients = []

    def factory(handler) -> httpx.AsyncClient:
        client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        clients.append(client)
        return client

    yield factory
    for client in clients:
        await client.aclose()
