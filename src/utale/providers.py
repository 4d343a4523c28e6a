"""Image generation providers for book illustrations."""

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, Tuple

import aiohttp

from utale.context import UtaleContext
from utale.error_handling import ErrorRecoveryHandler, ImageGenerationError

logger = logging.getLogger(__name__)


class ImageGenerationProvider(ABC):
    """Abstract base class for image generation providers."""

    def __init__(self, *, max_attempts: int = 3) -> None:
        self.error_handler = ErrorRecoveryHandler(max_attempts=max_attempts)

    async def generate_image(self, prompt: str, **kwargs) -> Dict[str, Any]:
        """Generate one illustration, retrying transient failures.

        Returns a dict with ``success``, ``image_url`` or ``image_data``
        and ``metadata``. Raises ImageGenerationError once retries are
        exhausted.
        """
        return await self.error_handler.handle_with_recovery(
            self._generate, (prompt,), kwargs, {"provider": self.name}
        )

    @property
    @abstractmethod
    def name(self) -> str:
        """Short provider identifier."""

    @abstractmethod
    async def _generate(self, prompt: str, **kwargs) -> Dict[str, Any]:
        """Single generation attempt."""


class DalleProvider(ImageGenerationProvider):
    """OpenAI DALL-E image generation provider."""

    base_url = "https://api.openai.com/v1/images/generations"

    def __init__(
        self,
        api_key: str,
        *,
        model: str = "dall-e-3",
        size: str = "1024x1024",
        quality: str = "hd",
        style: str = "vivid",
        response_format: str = "url",
        max_attempts: int = 3,
    ) -> None:
        """Initialize DALL-E provider."""
        if not api_key:
            raise ValueError("OpenAI API key is required for the DALL-E provider")
        super().__init__(max_attempts=max_attempts)
        self.api_key = api_key
        self.model = model
        self.size = size
        self.quality = quality
        self.style = style
        self.response_format = response_format

    @classmethod
    def from_context(cls, context: UtaleContext) -> "DalleProvider":
        return cls(
            context.openai_api_key or "",
            model=context.image_model,
            size=context.image_size,
            quality=context.image_quality,
            style=context.image_style,
            response_format=context.image_response_format,
            max_attempts=context.max_attempts,
        )

    @property
    def name(self) -> str:
        return "dalle"

    def build_payload(self, prompt: str, **overrides) -> Dict[str, Any]:
        payload = {
            "model": self.model,
            "prompt": prompt,
            "n": 1,
            "size": self.size,
            "quality": self.quality,
            "style": self.style,
            "response_format": self.response_format,
        }
        payload.update(overrides)
        return payload

    async def _post(self, payload: Dict[str, Any]) -> Tuple[int, Dict[str, Any]]:
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json"
        }
        async with aiohttp.ClientSession() as session:
            async with session.post(self.base_url, headers=headers, json=payload) as response:
                return response.status, await response.json()

    async def _generate(self, prompt: str, **kwargs) -> Dict[str, Any]:
        payload = self.build_payload(prompt, **kwargs)
        status, data = await self._post(payload)

        if status != 200:
            message = data.get("error", {}).get("message", "Unknown error") if isinstance(data, dict) else str(data)
            raise ImageGenerationError(f"DALL-E request failed with status {status}: {message}")

        item = data["data"][0]
        result: Dict[str, Any] = {
            "success": True,
            "metadata": {
                "provider": self.name,
                "model": payload["model"],
                "prompt": prompt,
                "revised_prompt": item.get("revised_prompt", prompt),
            },
        }
        if "b64_json" in item:
            result["image_data"] = item["b64_json"]
        else:
            result["image_url"] = item.get("url")
        return result
