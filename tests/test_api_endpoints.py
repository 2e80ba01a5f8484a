import json

import httpx
import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from streamcore.dependencies import get_file_registry, get_llm_router
from streamcore.routers import chat, health, models, render
from streamcore.services.file_edit_detector import FilePathRegistry
from streamcore.services.llm_router import LLMRouter

from conftest import ndjson, stream_response


def _create_test_app() -> FastAPI:
    """Create a minimal FastAPI app without the full lifespan."""
    app = FastAPI()
    app.include_router(health.router)
    app.include_router(models.router)
    app.include_router(chat.router)
    app.include_router(render.router)
    return app


test_app = _create_test_app()


@pytest.fixture(scope="module")
def client():
    # One client for the module keeps every streamed response on the same event loop.
    with TestClient(test_app) as c:
        yield c


@pytest.fixture
def install_router(test_settings):
    """Point the app at an LLMRouter whose HTTP traffic goes to ``handler``."""
    registry = FilePathRegistry()

    def install(handler, settings=None) -> LLMRouter:
        http_client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        llm_router = LLMRouter(settings or test_settings, client=http_client)
        test_app.dependency_overrides[get_llm_router] = lambda: llm_router
        test_app.dependency_overrides[get_file_registry] = lambda: registry
        return llm_router

    yield install
    test_app.dependency_overrides.clear()


def read_events(response) -> list[tuple[str, dict]]:
    events = []
    name = None
    for line in response.text.splitlines():
        if line.startswith("event:"):
            name = line.split(":", 1)[1].strip()
        elif line.startswith("data:"):
            events.append((name, json.loads(line.split(":", 1)[1].strip())))
    return events


def ollama_reply(*fragments, context=None):
    lines = [{"response": f, "done": False} for f in fragments]
    lines.append({"response": "", "done": True, **({"context": context} if context else {})})
    return lambda request: stream_response(ndjson(*lines))


class TestHealthEndpoint:
    def test_health_reports_providers(self, client, install_router):
        install_router(ollama_reply())
        response = client.get("/health")
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["providers"] == {"ollama": True, "openai": True, "gemini": True}


class TestModelsEndpoint:
    def test_list_models(self, client, install_router, unconfigured_settings):
        install_router(
            lambda request: httpx.Response(200, json={"models": [{"name": "mistral"}, {"name": "llama3"}]}),
            settings=unconfigured_settings,
        )
        response = client.get("/models")
        assert response.status_code == 200
        assert response.json() == {"models": ["llama3", "mistral"], "error": None}

    def test_list_models_reports_backend_error(self, client, install_router, unconfigured_settings):
        install_router(lambda request: httpx.Response(500), settings=unconfigured_settings)
        data = client.get("/models").json()
        assert data["models"] == []
        assert data["error"] == "ollama: HTTP error: 500"


class TestRenderEndpoints:
    def test_parse(self, client):
        response = client.post("/render/parse", json={"text": "# Hi\n- a\n```py\nx\n```"})
        assert response.status_code == 200
        assert [b["type"] for b in response.json()["blocks"]] == ["heading", "unorderedList", "code"]

    def test_parse_thinking_placeholder(self, client):
        blocks = client.post("/render/parse", json={"text": "<think>hmm"}).json()["blocks"]
        assert blocks == [{"type": "text", "content": "thinking...", "transient": True}]

    def test_parse_keeps_no_state_between_requests(self, client):
        first = client.post("/render/parse", json={"text": "<think>x</think>Answer"}).json()
        second = client.post("/render/parse", json={"text": "Answer leftover"}).json()
        assert first["blocks"] == [{"type": "text", "content": "Answer", "transient": False}]
        assert second["blocks"] == [{"type": "text", "content": "Answer leftover", "transient": False}]

    def test_detect(self, client):
        text = '{"files":[{"filename":"a.txt","content":"hi"}]}'
        with_files = client.post("/render/detect", json={"text": text, "had_attachments": True}).json()
        without = client.post("/render/detect", json={"text": text}).json()
        assert with_files["file_edit"]["files"][0]["filename"] == "a.txt"
        assert without == {"file_edit": None}


class TestChatEndpoints:
    def test_stream_tokens_then_blocks(self, client, install_router):
        llm_router = install_router(ollama_reply("Hel", "lo", "\n- item", context=[4, 5]))
        response = client.post("/chat/completions", json={"message": "hi", "model_id": "llama3"})
        assert response.status_code == 200

        events = read_events(response)
        assert [name for name, _ in events] == ["token", "token", "token", "context", "blocks", "done"]
        assert "".join(data["text"] for name, data in events if name == "token") == "Hello\n- item"
        assert events[3][1] == {"context": [4, 5]}
        assert [b["type"] for b in events[4][1]["blocks"]] == ["text", "unorderedList"]
        assert events[-1][1] == {"status": "complete", "degraded": False}
        assert [m.text for m in llm_router.history] == ["hi", "Hello\n- item"]

    def test_attachments_produce_file_edit(self, client, install_router):
        requests = []
        edit = '{"files":[{"filename":"a.txt","content":"new"}]}'

        def handler(request):
            requests.append(request)
            return stream_response(ndjson({"response": edit, "done": True}))

        install_router(handler)
        response = client.post("/chat/completions", json={
            "message": "update a.txt",
            "attachments": [{"filename": "a.txt", "content": "old", "path": "/work/a.txt"}],
        })

        events = read_events(response)
        assert [name for name, _ in events] == ["token", "file_edit", "done"]
        assert events[1][1]["files"] == [{"filename": "a.txt", "content": "new", "path": "/work/a.txt"}]
        prompt = json.loads(json.loads(requests[0].content)["prompt"])
        assert prompt["prompt"] == "update a.txt"
        assert prompt["files"][0]["content"] == "old"

    def test_unconfigured_provider_is_error_event(self, client, install_router, unconfigured_settings):
        install_router(ollama_reply("unused"), settings=unconfigured_settings)
        response = client.post("/chat/completions", json={"message": "hi", "model_id": "gpt-4o"})
        assert read_events(response) == [
            ("error", {"error": "OpenAI API key not configured. Please add it in settings.", "kind": "auth"})
        ]

    def test_transport_failure_is_error_event(self, client, install_router):
        install_router(lambda request: httpx.Response(404, json={"error": "model not found"}))
        response = client.post("/chat/completions", json={"message": "hi", "model_id": "nope"})
        events = read_events(response)
        assert [name for name, _ in events] == ["error"]
        assert events[0][1]["kind"] == "api"
        assert "Model error" in events[0][1]["error"]

    def test_stop_without_active_response(self, client, install_router):
        install_router(ollama_reply())
        response = client.post("/chat/stop")
        assert response.status_code == 200
        assert response.json() == {"text": ""}

    def test_clear_history(self, client, install_router):
        llm_router = install_router(ollama_reply("ok"))
        client.post("/chat/completions", json={"message": "hi"})
        assert llm_router.history

        response = client.delete("/chat/history")
        assert response.status_code == 200
        assert llm_router.history == []
