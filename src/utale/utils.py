"""Helpers shared by the story generator and the CLI."""

import base64
import binascii
import io
import json
import logging
import re
from pathlib import Path
from typing import Any, Dict, Tuple

from PIL import Image, UnidentifiedImageError

logger = logging.getLogger(__name__)

_CODE_FENCE = re.compile(r"^```[a-zA-Z]*\s*|\s*```$")


def split_model_and_provider(model: str, default_provider: str = "openai") -> Tuple[str, str]:
    """``"openai/gpt-4o"`` -> ``("openai", "gpt-4o")``; bare names use the default provider."""
    provider, _, model_name = model.rpartition("/")
    return provider or default_provider, model_name


def save_image_from_base64(image_data: str, output_path: Path, format: str = "PNG") -> bool:
    """Write a base64 illustration to ``output_path``.

    Returns False, leaving no file behind, when the data is not a
    readable image.
    """
    try:
        image = Image.open(io.BytesIO(base64.b64decode(image_data, validate=True)))
        image.load()
    except (binascii.Error, UnidentifiedImageError, OSError) as e:
        logger.warning("Illustration data for %s is not a valid image: %s", output_path.name, e)
        return False

    output_path.parent.mkdir(parents=True, exist_ok=True)
    image.save(output_path, format=format)
    return True


def get_output_directory(book_title: str, base_dir: str | Path = "utale_output") -> Path:
    """Get (and create) the output directory for a book."""
    safe_title = "".join(c for c in book_title if c.isalnum() or c in (' ', '-', '_')).strip()
    safe_title = safe_title.replace(' ', '_') or "libro"

    output_dir = Path(base_dir) / safe_title
    output_dir.mkdir(parents=True, exist_ok=True)

    return output_dir


def extract_json_from_text(text: str) -> str | None:
    """The JSON object in a story model reply.

    The reply may be wrapped in a code fence or surrounded by prose.
    """
    if not text:
        return None

    candidate = _CODE_FENCE.sub("", text.strip())
    start = candidate.find("{")
    if start == -1:
        return None

    end = candidate.rfind("}")
    # An unclosed object is returned as is so the caller can repair it
    return candidate[start:end + 1] if end > start else candidate[start:]


def _close_truncated_json(candidate: str, error_pos: int) -> str:
    """Cut a reply cut off by the token limit at the error and close open brackets."""
    head = candidate[:error_pos].rstrip().rstrip(',')
    closers = []
    in_string = False
    escaped = False
    for char in head:
        if in_string:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
        elif char == '"':
            in_string = True
        elif char in "{[":
            closers.append("}" if char == "{" else "]")
        elif char in "}]" and closers:
            closers.pop()
    return head + "".join(reversed(closers))


def parse_llm_json(text: str) -> Dict[str, Any]:
    """Decode the story object from a model reply.

    Raises ValueError when no usable JSON object is found.
    """
    candidate = extract_json_from_text(text)
    if candidate is None:
        raise ValueError("No JSON found in LLM output")

    try:
        return json.loads(candidate)
    except json.JSONDecodeError as e:
        logger.debug("Story reply is not valid JSON (%s), closing truncated output", e)
        try:
            return json.loads(_close_truncated_json(candidate, e.pos))
        except json.JSONDecodeError:
            raise ValueError(f"Failed to parse story JSON: {e}") from e
