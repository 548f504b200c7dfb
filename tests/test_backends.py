"""Tests for generative backend adapters."""

import base64
from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest

from dua_vault.ai.backends import (
    WEB_SEARCH_TOOL,
    ClaudeBackend,
    GeminiBackend,
    GenerationRequest,
    create_backend,
    extract_json,
)
from dua_vault.ai.schemas import DUA_RESPONSE_SCHEMA
from dua_vault.config import AIBackend, AIConfig
from dua_vault.errors import AiRequestError


class TestExtractJson:
    def test_plain_object(self):
        assert extract_json('{"arabic": "الله"}') == '{"arabic": "الله"}'

    def test_fenced_object(self):
        text = 'Here you go:\n```json\n{"arabic": "الله"}\n```'
        assert extract_json(text) == '{"arabic": "الله"}'

    def test_no_object(self):
        assert extract_json("sorry") == "sorry"

    def test_none(self):
        assert extract_json(None) == ""


class TestGeminiBackend:
    def setup_method(self):
        self.backend = GeminiBackend(api_key="test-key")
        self.backend.client = MagicMock()

    def test_json_mode_config(self):
        config = self.backend.build_config(
            GenerationRequest(prompt="p", response_schema=DUA_RESPONSE_SCHEMA, timeout=20)
        )
        assert config.response_mime_type == "application/json"
        assert config.response_schema is not None
        assert not config.tools
        assert config.http_options.timeout == 20000
        assert len(config.safety_settings) == 4

    def test_search_tool_config(self):
        config = self.backend.build_config(
            GenerationRequest(prompt="p", response_schema=DUA_RESPONSE_SCHEMA, tools=(WEB_SEARCH_TOOL,))
        )
        assert config.tools[0].google_search is not None
        assert config.response_schema is None

    def test_generate_sends_image_then_prompt(self):
        self.backend.client.models.generate_content.return_value = SimpleNamespace(
            text='```json\n{"arabic": "الله"}\n```'
        )
        raw = self.backend.generate(
            GenerationRequest(prompt="read this", response_schema={}, image=b"\xff\xd8jpeg")
        )

        assert raw == '{"arabic": "الله"}'
        kwargs = self.backend.client.models.generate_content.call_args.kwargs
        assert kwargs["model"] == "gemini-2.5-flash"
        parts = kwargs["contents"][0].parts
        assert len(parts) == 2
        assert parts[1].text == "read this"

    def test_empty_response(self):
        self.backend.client.models.generate_content.return_value = SimpleNamespace(text=None)
        assert self.backend.generate(GenerationRequest(prompt="p", response_schema={})) == ""


class TestClaudeBackend:
    def setup_method(self):
        self.backend = ClaudeBackend(api_key="test-key")
        self.backend.client = MagicMock()
        self.backend.client.messages.create.return_value = SimpleNamespace(
            content=[
                SimpleNamespace(type="server_tool_use"),
                SimpleNamespace(type="text", text='{"arabic": "الله"}'),
            ],
            stop_reason="end_turn",
        )

    def test_generate_with_image(self):
        raw = self.backend.generate(
            GenerationRequest(
                prompt="read this",
                response_schema=DUA_RESPONSE_SCHEMA,
                image=b"\xff\xd8jpeg",
                timeout=45,
            )
        )

        assert raw == '{"arabic": "الله"}'
        kwargs = self.backend.client.messages.create.call_args.kwargs
        assert kwargs["timeout"] == 45
        assert "tools" not in kwargs
        image_block, text_block = kwargs["messages"][0]["content"]
        assert image_block["source"]["data"] == base64.b64encode(b"\xff\xd8jpeg").decode("ascii")
        assert text_block["text"].startswith("read this")
        assert '"category"' in text_block["text"]

    def test_web_search_tool(self):
        self.backend.generate(
            GenerationRequest(prompt="p", response_schema={}, tools=(WEB_SEARCH_TOOL,))
        )
        kwargs = self.backend.client.messages.create.call_args.kwargs
        assert kwargs["tools"][0]["name"] == "web_search"


class TestCreateBackend:
    def test_missing_key(self, monkeypatch):
        for var in ["GEMINI_API_KEY", "GOOGLE_API_KEY", "API_KEY", "ANTHROPIC_API_KEY"]:
            monkeypatch.delenv(var, raising=False)
        with pytest.raises(AiRequestError):
            create_backend(AIConfig())

    def test_claude(self):
        backend = create_backend(AIConfig(backend=AIBackend.CLAUDE, anthropic_api_key="k"))
        assert isinstance(backend, ClaudeBackend)
        assert backend.model == "claude-sonnet-4-20250514"

    def test_gemini(self):
        backend = create_backend(AIConfig(gemini_api_key="k"))
        assert isinstance(backend, GeminiBackend)
