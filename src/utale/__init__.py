"""Utale - personalized children's books written and illustrated by generative models."""

__version__ = "0.1.0"

from utale.prompt_engineering import (
    build_image_prompt,
    build_system_prompt,
    build_user_prompt,
    classify_scene_lighting,
    format_character_info,
)

__all__ = [
    "build_image_prompt",
    "build_system_prompt",
    "build_user_prompt",
    "classify_scene_lighting",
    "format_character_info",
]
