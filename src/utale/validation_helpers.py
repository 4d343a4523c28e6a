"""Helper utilities for validating characters and generated books."""

import json
from typing import Any, Dict

from pydantic import ValidationError

from utale.models import AGED_CHARACTER_TYPES, BookContent, Character


def validate_character_data(data: Dict[str, Any]) -> Character:
    """
    Validates raw character data as submitted by the character editor.

    Beyond the model's own checks, the type must be set and an age is
    required for children and adults.

    Args:
        data: Character dictionary (camelCase or snake_case keys)

    Returns:
        The validated Character

    Raises:
        ValueError: when a business rule is violated
        ValidationError: when the data does not fit the Character model
    """
    character_type = data.get("type")
    if character_type is None or not str(character_type).strip():
        raise ValueError("El tipo de personaje es obligatorio")

    if character_type in AGED_CHARACTER_TYPES:
        age = data.get("age")
        if isinstance(age, str):
            age = age.strip() or None
        if age is None or (isinstance(age, int) and age <= 0):
            raise ValueError("La edad es obligatoria para personajes de tipo niño/a o adulto")

    return Character.model_validate(data)


def validate_book_content(data: Dict[str, Any] | str) -> BookContent:
    """
    Validates book content returned by the story model.

    Args:
        data: Book content as a dict or JSON string

    Returns:
        The validated BookContent

    Raises:
        ValueError: when the content has no title or no pages
    """
    if isinstance(data, str):
        try:
            data = json.loads(data)
        except json.JSONDecodeError as e:
            raise ValueError(f"El contenido del libro no es JSON válido: {e}") from e

    if not isinstance(data, dict):
        raise ValueError("El contenido del libro debe ser un objeto")

    title = data.get("title")
    pages = data.get("pages")
    if not title or not str(title).strip():
        raise ValueError("El contenido del libro debe incluir un título")
    if not isinstance(pages, list) or not pages:
        raise ValueError("El contenido del libro debe incluir al menos una página")

    try:
        return BookContent.model_validate(data)
    except ValidationError as e:
        raise ValueError(f"Contenido del libro inválido: {e}") from e
