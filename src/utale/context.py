"""Runtime configuration for story and illustration generation."""

import os

from pydantic import BaseModel, Field

from utale.models import StoryDetails


class UtaleContext(BaseModel):
    """Runtime configuration and context for book generation."""

    # Text generation
    model: str = Field(default="openai/gpt-4o", description="Story model as provider/model")
    temperature: float = Field(default=0.7, description="Sampling temperature for the story model")
    max_tokens: int = Field(default=2500, description="Maximum tokens in the story response")
    llm_timeout: float = Field(default=120.0, description="Seconds to wait for the story model")
    default_page_count: int = Field(default=12, ge=1, le=40, description="Content pages when the request sets none")

    # Image generation
    image_model: str = Field(default="dall-e-3", description="Image generation model")
    image_size: str = Field(default="1024x1024", description="Image dimensions")
    image_quality: str = Field(default="hd", description="Image quality setting")
    image_style: str = Field(default="vivid", description="Image style setting")
    image_response_format: str = Field(default="url", description="url | b64_json")
    max_attempts: int = Field(default=3, ge=1, description="Attempts per API call")

    # API configuration
    openai_api_key: str | None = Field(default=None, description="OpenAI API key")

    output_dir: str = Field(default="utale_output", description="Where generated books are written")

    model_config = {"extra": "allow"}

    def page_count_for(self, story_details: StoryDetails | None) -> int:
        """Content pages to request, cover excluded."""
        if story_details is not None and story_details.page_count:
            return story_details.page_count
        return self.default_page_count


def get_default_context() -> UtaleContext:
    """Get default context with environment variables."""
    overrides = {
        "model": os.getenv("UTALE_TEXT_MODEL"),
        "image_model": os.getenv("UTALE_IMAGE_MODEL"),
        "output_dir": os.getenv("UTALE_OUTPUT_DIR"),
    }
    return UtaleContext(
        openai_api_key=os.getenv("OPENAI_API_KEY"),
        **{key: value for key, value in overrides.items() if value},
    )
