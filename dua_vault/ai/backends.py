"""
Generative backends used for OCR cleanup, translation and categorization.

Each backend turns a ``GenerationRequest`` into the raw JSON text of the
model's answer. Retry, timeout, caching and validation live in the client.
"""

import base64
import json
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Optional

from dua_vault.config import AIBackend, AIConfig
from dua_vault.errors import AiRequestError

logger = logging.getLogger(__name__)

WEB_SEARCH_TOOL = "web_search"


@dataclass(frozen=True)
class SafetyPolicy:
    """Request-time content-safety settings."""
    categories: tuple[str, ...] = (
        "HARM_CATEGORY_HARASSMENT",
        "HARM_CATEGORY_HATE_SPEECH",
        "HARM_CATEGORY_SEXUALLY_EXPLICIT",
        "HARM_CATEGORY_DANGEROUS_CONTENT",
    )
    threshold: str = "BLOCK_LOW_AND_ABOVE"


DEFAULT_SAFETY_POLICY = SafetyPolicy()


@dataclass
class GenerationRequest:
    prompt: str
    response_schema: dict
    temperature: float = 0.2
    timeout: float = 20.0
    image: Optional[bytes] = None
    image_mime_type: str = "image/jpeg"
    safety_policy: SafetyPolicy = DEFAULT_SAFETY_POLICY
    tools: tuple[str, ...] = field(default_factory=tuple)


class GenerativeBackend(ABC):
    """Abstract base for all generative backends."""

    @property
    @abstractmethod
    def name(self) -> str:
        ...

    @abstractmethod
    def generate(self, request: GenerationRequest) -> str:
        """
        Send one request and return the model's raw JSON text.

        SDK exceptions propagate unchanged; the client classifies them.
        """
        ...


def extract_json(text: str) -> str:
    """Return the outermost JSON object found in ``text``, or ``text`` itself."""
    text = (text or "").strip()
    if text.startswith("{"):
        return text
    start = text.find("{")
    end = text.rfind("}")
    if start >= 0 and end > start:
        return text[start:end + 1]
    return text


class GeminiBackend(GenerativeBackend):
    """Backend using Google's Gemini models via the google-genai SDK."""

    def __init__(self, api_key: str, model: str = "gemini-2.5-flash"):
        try:
            from google import genai
            from google.genai import types
        except ImportError:
            raise ImportError(
                "google-genai package required. Install with: pip install google-genai"
            )
        self._types = types
        self.client = genai.Client(api_key=api_key)
        self.model = model

    @property
    def name(self) -> str:
        return "gemini"

    def build_config(self, request: GenerationRequest):
        types = self._types
        kwargs = {
            "temperature": request.temperature,
            "safety_settings": [
                types.SafetySetting(
                    category=category, threshold=request.safety_policy.threshold
                )
                for category in request.safety_policy.categories
            ],
            "http_options": types.HttpOptions(timeout=int(request.timeout * 1000)),
        }
        if WEB_SEARCH_TOOL in request.tools:
            # Search grounding cannot be combined with a JSON response schema;
            # the prompt asks for JSON instead.
            kwargs["tools"] = [types.Tool(google_search=types.GoogleSearch())]
        else:
            kwargs["response_mime_type"] = "application/json"
            kwargs["response_schema"] = request.response_schema
        return types.GenerateContentConfig(**kwargs)

    def generate(self, request: GenerationRequest) -> str:
        types = self._types
        parts = []
        if request.image is not None:
            parts.append(
                types.Part.from_bytes(data=request.image, mime_type=request.image_mime_type)
            )
        parts.append(types.Part.from_text(text=request.prompt))

        logger.info("Gemini request: %d prompt chars, image=%s", len(request.prompt), request.image is not None)

        response = self.client.models.generate_content(
            model=self.model,
            contents=[types.Content(role="user", parts=parts)],
            config=self.build_config(request),
        )
        text = response.text or ""
        logger.debug("Gemini response: %d chars", len(text))
        return extract_json(text)


class ClaudeBackend(GenerativeBackend):
    """Backend using Anthropic's Claude API."""

    def __init__(self, api_key: str, model: str = "claude-sonnet-4-20250514"):
        try:
            import anthropic
            self.client = anthropic.Anthropic(api_key=api_key, max_retries=0)
        except ImportError:
            raise ImportError(
                "anthropic package required. Install with: pip install anthropic"
            )
        self.model = model
        self._safety_noted = False

    @property
    def name(self) -> str:
        return "claude"

    def generate(self, request: GenerationRequest) -> str:
        if not self._safety_noted:
            # Claude has no per-request harm thresholds; provider defaults apply
            logger.info("Safety policy not expressible for claude backend, continuing")
            self._safety_noted = True

        content = []
        if request.image is not None:
            content.append({
                "type": "image",
                "source": {
                    "type": "base64",
                    "media_type": request.image_mime_type,
                    "data": base64.b64encode(request.image).decode("ascii"),
                },
            })
        content.append({
            "type": "text",
            "text": (
                f"{request.prompt}\n\nRespond with a single JSON object matching "
                f"this schema:\n{json.dumps(request.response_schema, ensure_ascii=False)}"
            ),
        })

        kwargs = {}
        if WEB_SEARCH_TOOL in request.tools:
            kwargs["tools"] = [
                {"type": "web_search_20250305", "name": "web_search", "max_uses": 3}
            ]

        logger.info("Claude request: %d prompt chars, image=%s", len(request.prompt), request.image is not None)

        message = self.client.messages.create(
            model=self.model,
            max_tokens=2048,
            temperature=request.temperature,
            messages=[{"role": "user", "content": content}],
            timeout=request.timeout,
            **kwargs,
        )

        text = "".join(
            block.text for block in message.content if getattr(block, "type", "") == "text"
        )
        logger.debug(
            "Claude response: %d chars, stop_reason=%s", len(text), message.stop_reason
        )
        return extract_json(text)


def create_backend(config: AIConfig) -> GenerativeBackend:
    """Build the configured backend, failing if its API key is missing."""
    api_key = config.get_api_key()
    if not api_key:
        raise AiRequestError(
            f"No API key configured for the {config.backend.value} backend. "
            "Set GEMINI_API_KEY or ANTHROPIC_API_KEY."
        )
    if config.backend == AIBackend.GEMINI:
        return GeminiBackend(api_key=api_key, model=config.gemini_model)
    if config.backend == AIBackend.CLAUDE:
        return ClaudeBackend(api_key=api_key, model=config.claude_model)
    raise ValueError(f"Unknown AI backend: {config.backend}")
