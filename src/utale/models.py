"""Data models for characters, themes and generated book content."""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, List

from pydantic import BaseModel, Field, field_validator


class CharacterType(str, Enum):
    """Character categories offered when creating a character."""
    CHILD_BOY = "niño"
    CHILD_GIRL = "niña"
    ADULT_MAN = "adulto"
    ADULT_WOMAN = "adulta"
    TOY = "juguete"
    PET = "mascota"
    FANTASY = "fantasía"
    OTHER = "otro"


# Types for which an age is meaningful in descriptions and required on input
AGED_CHARACTER_TYPES = (
    CharacterType.CHILD_BOY.value,
    CharacterType.CHILD_GIRL.value,
    CharacterType.ADULT_MAN.value,
    CharacterType.ADULT_WOMAN.value,
)


class Character(BaseModel):
    """A persisted story participant (child, toy, pet...)."""
    id: int | None = Field(default=None, description="Character id")
    name: str = Field(description="Character name")
    type: str | None = Field(default=CharacterType.CHILD_BOY.value, description="Character category")
    age: int | None = Field(default=None, description="Age in years")
    physical_description: str | None = Field(default=None, alias="physicalDescription", description="Appearance")
    personality: str | None = Field(default=None, description="Personality description")
    likes: str | None = Field(default=None, description="Things the character likes")
    dislikes: str | None = Field(default=None, description="Things the character dislikes")
    interests: List[str] = Field(default_factory=list, description="Ordered interests")
    # Either a mapping or the JSON string stored by older clients
    favorites: Dict[str, Any] | str | None = Field(default=None, description="Favorite things by category")
    traits: List[str] = Field(default_factory=list, description="Personality traits")

    model_config = {"populate_by_name": True, "frozen": True}

    @field_validator("name")
    @classmethod
    def _name_not_blank(cls, value: str) -> str:
        if not value or not value.strip():
            raise ValueError("Character name must not be blank")
        return value

    @field_validator("interests", "traits", mode="before")
    @classmethod
    def _none_to_empty_list(cls, value: Any) -> Any:
        return [] if value is None else value


class CharacterStoryDetails(BaseModel):
    """Per-request details of a character in one specific story."""
    role: str | None = Field(default=None, description="Role in this story")
    abilities: str | None = Field(default=None, description="Special abilities")
    details: str | None = Field(default=None, description="Story specific details")
    relation_to_main: str | None = Field(default=None, alias="relationToMain", description="Relation to the protagonist")

    model_config = {"populate_by_name": True, "frozen": True}


class ExtendedCharacter(BaseModel):
    """A character overlaid with story details for a single generation call.

    The wrapped ``Character`` is never modified so request-scoped fields
    cannot leak into the stored entity.
    """
    character: Character
    story_details: CharacterStoryDetails | None = None

    model_config = {"frozen": True}

    @property
    def name(self) -> str:
        return self.character.name

    @property
    def specific_role(self) -> str | None:
        return self.story_details.role if self.story_details else None

    @property
    def special_abilities(self) -> str | None:
        return self.story_details.abilities if self.story_details else None

    @property
    def story_specific_details(self) -> str | None:
        return self.story_details.details if self.story_details else None

    @property
    def relation_to_main_character(self) -> str | None:
        return self.story_details.relation_to_main if self.story_details else None


AnyCharacter = Character | ExtendedCharacter


def extend_character(
    character: AnyCharacter,
    story_details: CharacterStoryDetails | None = None,
) -> ExtendedCharacter:
    """Wrap a character with story specific details."""
    base = character.character if isinstance(character, ExtendedCharacter) else character
    if story_details is None and isinstance(character, ExtendedCharacter):
        return character
    return ExtendedCharacter(character=base, story_details=story_details)


def base_character(character: AnyCharacter) -> Character:
    """Return the stored character behind a possibly extended one."""
    if isinstance(character, ExtendedCharacter):
        return character.character
    return character


class BookTheme(BaseModel):
    """Named narrative category with a recommended age range."""
    id: int | None = Field(default=None, description="Theme id")
    name: str = Field(description="Theme name")
    age_range: str | None = Field(default=None, alias="ageRange", description="Recommended age range")
    description: str | None = Field(default=None, description="Theme description")

    model_config = {"populate_by_name": True, "frozen": True}


class StoryDetails(BaseModel):
    """Narrative preferences for one generation request."""
    page_count: int | None = Field(default=None, ge=1, le=40, alias="pageCount", description="Content pages, cover excluded")
    style: str | None = Field(default=None, description="Narrative style")
    tone: str | None = Field(default=None, description="Tone")
    setting: str | None = Field(default=None, description="Main setting")
    message: str | None = Field(default=None, description="Moral or message")
    specific_elements: List[str] = Field(default_factory=list, alias="specificElements", description="Elements to include")
    character_details: Dict[int, CharacterStoryDetails] = Field(
        default_factory=dict,
        alias="characterDetails",
        description="Story details keyed by character id",
    )

    model_config = {"populate_by_name": True, "frozen": True}


class Page(BaseModel):
    """A single book page."""
    page_number: int = Field(ge=1, alias="pageNumber", description="1-based page number")
    text: str = Field(default="", description="Narrative text")
    image_prompt: str = Field(default="", alias="imagePrompt", description="Scene description from the story model")
    image_url: str | None = Field(default=None, alias="imageUrl", description="Generated illustration URL")
    image_data: str | None = Field(default=None, alias="imageData", description="Generated illustration as base64")

    model_config = {"populate_by_name": True}


class BookMeta(BaseModel):
    """The slice of book metadata the image prompt needs."""
    title: str = Field(description="Book title")
    target_age: str | None = Field(default=None, alias="targetAge", description="Target age range")
    theme: str | None = Field(default=None, description="Theme name")

    model_config = {"populate_by_name": True}


class BookContent(BaseModel):
    """Story returned by the text generation model."""
    title: str = Field(description="Book title")
    pages: List[Page] = Field(default_factory=list, description="Ordered pages, cover first")
    summary: str | None = Field(default=None, description="Short summary")
    target_age: str | None = Field(default=None, alias="targetAge", description="Target age range")
    theme: str | None = Field(default=None, description="Main theme")
    characters: List[str] = Field(default_factory=list, description="Character names")
    educational_value: str | None = Field(default=None, alias="educationalValue", description="What children can learn")

    model_config = {"populate_by_name": True}

    def meta(self) -> BookMeta:
        """Metadata used when composing image prompts."""
        return BookMeta(title=self.title, target_age=self.target_age, theme=self.theme)


class GenerationRequest(BaseModel):
    """Everything needed to write one book, as loaded from a request file."""
    characters: List[Character] = Field(min_length=1, description="Protagonist first, then supporting characters")
    theme: BookTheme = Field(description="Book theme")
    story_details: StoryDetails | None = Field(default=None, alias="storyDetails", description="Optional story preferences")
    book_type: str | None = Field(default=None, alias="bookType", description="Style tag such as aventura")

    model_config = {"populate_by_name": True}
