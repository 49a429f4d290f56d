"""
Unit Tests for the proxy endpoints

Tests /api/chat and /api/images/upload with fake provider and image host.
"""

import pytest
from fastapi.testclient import TestClient

from chat_core.api.app import app, get_image_host, get_provider_factory, get_settings
from chat_core.domain.exceptions import UpstreamFetchError, UpstreamRequestError
from chat_core.domain.models import ChatChoice, ChatMessage, ChatResult, ImageResult
from chat_core.domain.tools import ToolCall


class SettingsStub:
    openai_api_key = None
    derive_image_prompt = True


class FakeProvider:
    name = "fake"

    def __init__(self, api_key, fail=False):
        self.api_key = api_key
        self.fail = fail
        self.requests = []

    async def chat(self, req):
        self.requests.append(req)
        if self.fail:
            raise UpstreamRequestError(code="API_ERROR", message="boom", http_status=500)
        if req.tool_choice:
            msg = ChatMessage(
                role="assistant",
                content="",
                tool_calls=[ToolCall(id="call_1", name="generate_image", arguments={"prompt": "a cat in space"})],
            )
        else:
            msg = ChatMessage(role="assistant", content="Hi there!")
        return ChatResult(provider="fake", model=req.model, choices=[ChatChoice(index=0, message=msg)])

    async def generate_image(self, req):
        return ImageResult(provider="fake", model=req.model, urls=["https://upstream.example/tmp.png"])


class FakeImageHost:
    def __init__(self, error=None):
        self.error = error
        self.relayed = []

    async def relay(self, image_url):
        self.relayed.append(image_url)
        if self.error:
            raise self.error
        return "https://ik.imagekit.io/demo/cat.jpg"


class TestProxyEndpoints:
    @pytest.fixture
    def providers(self):
        return []

    @pytest.fixture
    def image_host(self):
        return FakeImageHost()

    @pytest.fixture
    def client(self, providers, image_host):
        def factory(api_key):
            provider = FakeProvider(api_key)
            providers.append(provider)
            return provider

        app.dependency_overrides[get_settings] = lambda: SettingsStub()
        app.dependency_overrides[get_provider_factory] = lambda: factory
        app.dependency_overrides[get_image_host] = lambda: image_host
        yield TestClient(app)
        app.dependency_overrides.clear()

    def test_chat_text(self, client, providers):
        response = client.post(
            "/api/chat",
            json={
                "messages": [{"role": "user", "content": "hello"}],
                "model": "economy",
                "type": "text",
                "openaiApiKey": "sk-test-key-123",
            },
        )
        assert response.status_code == 200
        assert response.json() == {"role": "assistant", "content": "Hi there!"}
        assert providers[0].api_key == "sk-test-key-123"
        assert providers[0].requests[0].model == "economy"

    def test_chat_image(self, client, image_host):
        response = client.post(
            "/api/chat",
            json={
                "messages": [{"role": "user", "content": "a cat"}],
                "imageModel": "v2",
                "type": "image",
                "openaiApiKey": "sk-test-key-123",
            },
        )
        assert response.status_code == 200
        assert response.json() == {
            "role": "assistant",
            "content": "Here's your generated image:",
            "imageUrl": "https://ik.imagekit.io/demo/cat.jpg",
            "type": "image",
        }
        assert image_host.relayed == ["https://upstream.example/tmp.png"]

    def test_chat_requires_api_key(self, client, providers):
        response = client.post("/api/chat", json={"messages": [{"role": "user", "content": "hello"}]})
        assert response.status_code == 400
        assert response.json()["error"] == "OpenAI API key is required"
        assert providers == []

    def test_chat_failure_is_generic_500(self, client):
        app.dependency_overrides[get_provider_factory] = lambda: (lambda api_key: FakeProvider(api_key, fail=True))
        response = client.post(
            "/api/chat",
            json={"messages": [{"role": "user", "content": "hello"}], "openaiApiKey": "sk-test-key-123"},
        )
        assert response.status_code == 500
        assert response.json()["error"] == "Failed to process the request"

    def test_chat_rejects_get(self, client):
        assert client.get("/api/chat").status_code == 405

    def test_upload(self, client, image_host):
        response = client.post("/api/images/upload", json={"imageUrl": "https://upstream.example/tmp.png"})
        assert response.status_code == 200
        assert response.json() == {"url": "https://ik.imagekit.io/demo/cat.jpg"}

    def test_upload_missing_url(self, client, image_host):
        response = client.post("/api/images/upload", json={})
        assert response.status_code == 400
        assert response.json() == {"error": "Image URL is required", "code": "BAD_REQUEST"}
        assert image_host.relayed == []

    def test_upload_upstream_fetch_error(self, client):
        app.dependency_overrides[get_image_host] = lambda: FakeImageHost(error=UpstreamFetchError())
        response = client.post("/api/images/upload", json={"imageUrl": "https://upstream.example/gone.png"})
        assert response.status_code == 502
        assert response.json()["code"] == "UPSTREAM_FETCH_ERROR"

    def test_upload_other_failure(self, client):
        error = UpstreamRequestError(code="UPLOAD_ERROR", message="quota exceeded", http_status=502)
        app.dependency_overrides[get_image_host] = lambda: FakeImageHost(error=error)
        response = client.post("/api/images/upload", json={"imageUrl": "https://upstream.example/tmp.png"})
        assert response.status_code == 500
        assert response.json()["error"] == "Failed to upload image"

    def test_upload_without_body(self, client, image_host):
        response = client.post("/api/images/upload")
        assert response.status_code == 400
        assert response.json() == {"error": "Image URL is required", "code": "BAD_REQUEST"}
        assert image_host.relayed == []

    def test_upload_accepts_text_plain_json(self, client, image_host):
        response = client.post(
            "/api/images/upload",
            content='{"imageUrl": "https://upstream.example/tmp.png"}',
            headers={"Content-Type": "text/plain;charset=UTF-8"},
        )
        assert response.status_code == 200
        assert response.json() == {"url": "https://ik.imagekit.io/demo/cat.jpg"}
        assert image_host.relayed == ["https://upstream.example/tmp.png"]

    def test_upload_rejects_non_json_body(self, client, image_host):
        response = client.post("/api/images/upload", content="not json", headers={"Content-Type": "text/plain"})
        assert response.status_code == 400
        assert response.json()["code"] == "BAD_REQUEST"
        assert image_host.relayed == []

    def test_chat_malformed_body_is_bad_request(self, client, providers):
        response = client.post("/api/chat", json={"openaiApiKey": "sk-test-key-123"})
        assert response.status_code == 400
        assert response.json() == {"error": "Invalid request body", "code": "BAD_REQUEST"}
        assert providers == []
