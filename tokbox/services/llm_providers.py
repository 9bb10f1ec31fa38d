"""
LLM Provider System
Anthropic (vision analysis + hooks) and OpenAI (captions) behind one interface
"""

import asyncio
import base64
import logging
from abc import ABC, abstractmethod
from typing import Dict, List, Optional, Sequence, Tuple

import httpx
from anthropic import AsyncAnthropic
from openai import AsyncOpenAI

from tokbox.config.settings import get_settings
from tokbox.services.response_parsing import GreedyBraceExtractor, JsonExtractor, StrictJsonExtractor

logger = logging.getLogger(__name__)


def detect_media_type(url: str, content_type: str = "") -> str:
    """Image media type from response headers or URL extension"""
    lowered = url.lower().split("?", 1)[0]
    if "png" in content_type or lowered.endswith(".png"):
        return "image/png"
    if "webp" in content_type or lowered.endswith(".webp"):
        return "image/webp"
    return "image/jpeg"


class LLMProvider(ABC):
    """Abstract base class for LLM providers"""

    # How JSON is read back out of this provider's text
    json_extractor: JsonExtractor = GreedyBraceExtractor()

    def __init__(self, http_client: Optional[httpx.AsyncClient] = None):
        self._http_client = http_client

    @abstractmethod
    async def generate(
        self,
        prompt: str,
        model: str,
        max_tokens: int,
        image_urls: Sequence[str] = (),
        system: Optional[str] = None,
    ) -> str:
        """Run one prompt (optionally with images) and return the raw text output"""

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return provider name"""

    async def _encode_image(self, client: httpx.AsyncClient, image_url: str) -> Tuple[str, str]:
        """Fetch an image by URL and return (base64 data, media type)"""
        response = await client.get(image_url)
        response.raise_for_status()
        media_type = detect_media_type(image_url, response.headers.get("content-type", ""))
        return base64.b64encode(response.content).decode("utf-8"), media_type

    async def encode_images(self, image_urls: Sequence[str]) -> List[Tuple[str, str]]:
        """Fetch and encode all frames concurrently, preserving order"""
        if not image_urls:
            return []

        if self._http_client is not None:
            return list(await asyncio.gather(*(self._encode_image(self._http_client, url) for url in image_urls)))

        async with httpx.AsyncClient(timeout=30.0) as client:
            return list(await asyncio.gather(*(self._encode_image(client, url) for url in image_urls)))


class AnthropicProvider(LLMProvider):
    """Anthropic Claude vision provider"""

    json_extractor = GreedyBraceExtractor()

    def __init__(self, client: Optional[AsyncAnthropic] = None, http_client: Optional[httpx.AsyncClient] = None):
        super().__init__(http_client)
        if client is None:
            settings = get_settings()
            if not settings.anthropic_api_key:
                raise ValueError("Anthropic API key is required for AnthropicProvider")
            client = AsyncAnthropic(api_key=settings.anthropic_api_key)
        self.client = client

    async def generate(
        self,
        prompt: str,
        model: str,
        max_tokens: int,
        image_urls: Sequence[str] = (),
        system: Optional[str] = None,
    ) -> str:
        images = await self.encode_images(image_urls)

        content: List[Dict] = [
            {
                "type": "image",
                "source": {"type": "base64", "media_type": media_type, "data": data},
            }
            for data, media_type in images
        ]
        content.append({"type": "text", "text": prompt})

        kwargs = {
            "model": model,
            "max_tokens": max_tokens,
            "messages": [{"role": "user", "content": content}],
        }
        if system:
            kwargs["system"] = system

        logger.info(f"🤖 Anthropic {model}: {len(images)} images, prompt {len(prompt)} chars")
        response = await self.client.messages.create(**kwargs)

        text_blocks = [block.text for block in response.content if getattr(block, "type", None) == "text"]
        return text_blocks[0] if text_blocks else ""

    def get_provider_name(self) -> str:
        return "anthropic"


class OpenAIProvider(LLMProvider):
    """OpenAI chat provider, run in JSON output mode"""

    json_extractor = StrictJsonExtractor()

    def __init__(self, client: Optional[AsyncOpenAI] = None, http_client: Optional[httpx.AsyncClient] = None):
        super().__init__(http_client)
        if client is None:
            settings = get_settings()
            if not settings.openai_api_key:
                raise ValueError("OpenAI API key is required for OpenAIProvider")
            client = AsyncOpenAI(api_key=settings.openai_api_key)
        self.client = client

    async def generate(
        self,
        prompt: str,
        model: str,
        max_tokens: int,
        image_urls: Sequence[str] = (),
        system: Optional[str] = None,
    ) -> str:
        images = await self.encode_images(image_urls)

        if images:
            user_content = [{"type": "text", "text": prompt}]
            for data, media_type in images:
                user_content.append({
                    "type": "image_url",
                    "image_url": {"url": f"data:{media_type};base64,{data}", "detail": "high"},
                })
        else:
            user_content = prompt

        messages = []
        if system:
            messages.append({"role": "system", "content": system})
        messages.append({"role": "user", "content": user_content})

        logger.info(f"🤖 OpenAI {model}: {len(images)} images, prompt {len(prompt)} chars")
        response = await self.client.chat.completions.create(
            model=model,
            messages=messages,
            response_format={"type": "json_object"},
            max_tokens=max_tokens,
        )

        return response.choices[0].message.content or ""

    def get_provider_name(self) -> str:
        return "openai"


class LLMProviderFactory:
    """Factory for creating LLM providers"""

    _providers = {
        "openai": OpenAIProvider,
        "anthropic": AnthropicProvider,
    }

    @classmethod
    def create_provider(cls, provider_name: str) -> LLMProvider:
        """Create LLM provider instance"""
        if provider_name not in cls._providers:
            raise ValueError(f"Unknown provider: {provider_name}. Available: {list(cls._providers.keys())}")

        logger.info(f"🔧 Creating provider: {provider_name}")
        return cls._providers[provider_name]()
