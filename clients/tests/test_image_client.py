"""Tests for clients.image_client against a mocked OpenAI Images API."""

import asyncio
import base64
import json

import httpx
import pytest

from clients.errors import GenerationError
from clients.image_client import OpenAIImageClient
from clients.media import ImageBlob

PNG_BYTES = b"\x89PNG\r\n\x1a\nfake"


def _client(handler):
    return OpenAIImageClient(api_key="sk-test", transport=httpx.MockTransport(handler))


def _b64_response(request):
    return httpx.Response(200, json={"data": [{"b64_json": base64.b64encode(PNG_BYTES).decode()}]})


class TestGenerate:
    def test_requires_api_key(self, monkeypatch):
        monkeypatch.delenv("OPENAI_API_KEY", raising=False)
        with pytest.raises(ValueError):
            OpenAIImageClient()

    def test_text_only_uses_generations_endpoint(self):
        seen = []

        def handler(request):
            seen.append(request)
            return _b64_response(request)

        blob = asyncio.run(_client(handler).generate("A robot painting"))

        assert blob == ImageBlob(PNG_BYTES, "image/png")
        request = seen[0]
        assert request.url == OpenAIImageClient.GENERATIONS_URL
        assert request.headers["Authorization"] == "Bearer sk-test"
        body = json.loads(request.content)
        assert body["prompt"] == "A robot painting"
        assert body["size"] == "1024x1024"
        assert body["quality"] == "medium"

    def test_reference_image_uses_edits_endpoint(self):
        seen = []

        def handler(request):
            seen.append(request)
            return _b64_response(request)

        reference = ImageBlob(b"reference-bytes")
        asyncio.run(_client(handler).generate("Scene 1", reference))

        request = seen[0]
        assert request.url == OpenAIImageClient.EDITS_URL
        assert request.headers["content-type"].startswith("multipart/form-data")
        assert b"reference-bytes" in request.content
        assert b"Scene 1" in request.content

    def test_url_response_is_downloaded(self):
        def handler(request):
            if request.url.host == "cdn.example.com":
                return httpx.Response(200, content=PNG_BYTES, headers={"content-type": "image/webp"})
            return httpx.Response(200, json={"data": [{"url": "https://cdn.example.com/img"}]})

        blob = asyncio.run(_client(handler).generate("prompt"))
        assert blob.data == PNG_BYTES
        assert blob.mime_type == "image/webp"

    def test_api_error_message_surfaced(self):
        def handler(request):
            return httpx.Response(400, json={"error": {"message": "Your prompt was rejected"}})

        with pytest.raises(GenerationError) as exc:
            asyncio.run(_client(handler).generate("prompt"))
        assert exc.value.message == "Your prompt was rejected"
        assert exc.value.status_code == 400

    def test_error_without_body(self):
        def handler(request):
            return httpx.Response(502, text="bad gateway")

        with pytest.raises(GenerationError, match="API error: 502"):
            asyncio.run(_client(handler).generate("prompt"))

    def test_malformed_payload(self):
        def handler(request):
            return httpx.Response(200, json={"data": []})

        with pytest.raises(GenerationError, match="Invalid response format"):
            asyncio.run(_client(handler).generate("prompt"))

    def test_connection_failure(self):
        def handler(request):
            raise httpx.ConnectError("unreachable", request=request)

        with pytest.raises(GenerationError, match="Failed to connect"):
            asyncio.run(_client(handler).generate("prompt"))

    def test_timeout(self):
        def handler(request):
            raise httpx.ReadTimeout("slow", request=request)

        with pytest.raises(GenerationError, match="timed out"):
            asyncio.run(_client(handler).generate("prompt"))
