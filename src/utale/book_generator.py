"""Story and illustration generation for personalized books."""

import asyncio
import logging
from typing import Any, Sequence

from langchain_core.messages import HumanMessage, SystemMessage

from utale.context import UtaleContext
from utale.error_handling import BookGenerationError, ErrorRecoveryHandler
from utale.llm_factory import coerce_message_content
from utale.models import AnyCharacter, BookContent, BookTheme, StoryDetails
from utale.prompt_engineering import ImagePromptBuilder, NarrativePromptBuilder
from utale.providers import ImageGenerationProvider
from utale.utils import parse_llm_json
from utale.validation_helpers import validate_book_content

logger = logging.getLogger(__name__)


class BookGenerator:
    """Writes a book with a chat model and illustrates it page by page.

    The chat model and image provider are passed in, so the generator
    holds no global clients and can be driven by mocks in tests.
    """

    def __init__(
        self,
        llm: Any,
        image_provider: ImageGenerationProvider | None = None,
        context: UtaleContext | None = None,
        narrative_builder: NarrativePromptBuilder | None = None,
        image_builder: ImagePromptBuilder | None = None,
    ):
        self.llm = llm
        self.image_provider = image_provider
        self.context = context or UtaleContext()
        self.narrative_builder = narrative_builder or NarrativePromptBuilder()
        self.image_builder = image_builder or ImagePromptBuilder(self.narrative_builder.formatter)
        self.error_handler = ErrorRecoveryHandler(max_attempts=self.context.max_attempts)

    def build_messages(
        self,
        characters: Sequence[AnyCharacter],
        theme: BookTheme,
        story_details: StoryDetails | None = None,
        book_type: str | None = None,
    ) -> list:
        """System and user messages for a story request.

        The first character is the protagonist, the rest support them.
        """
        if not characters:
            raise ValueError("At least one character is required to write a story")

        page_count = self.page_count(story_details)
        return [
            SystemMessage(content=self.narrative_builder.build_system_prompt(book_type)),
            HumanMessage(content=self.narrative_builder.build_user_prompt(
                characters[0], list(characters[1:]), theme, page_count, story_details
            )),
        ]

    def page_count(self, story_details: StoryDetails | None) -> int:
        """Requested content pages, cover excluded."""
        return self.context.page_count_for(story_details)

    async def generate_content(
        self,
        characters: Sequence[AnyCharacter],
        theme: BookTheme,
        story_details: StoryDetails | None = None,
        book_type: str | None = None,
    ) -> BookContent:
        """Ask the chat model for a story and parse it into BookContent."""
        messages = self.build_messages(characters, theme, story_details, book_type)
        logger.info(
            "Generating story '%s' with %d character(s), %d content page(s)",
            theme.name, len(characters), self.page_count(story_details),
        )

        try:
            response = await self.error_handler.handle_with_recovery(
                self.llm.ainvoke, (messages,), context={"operation": "generate_content"}
            )
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error("Story model call failed: %s", e)
            raise BookGenerationError(f"Story model call failed: {e}") from e

        text = coerce_message_content(getattr(response, "content", response))

        try:
            data = parse_llm_json(text)
            book = validate_book_content(data)
        except ValueError as e:
            logger.error("Story model returned unusable content: %s", e)
            raise BookGenerationError(f"Story model returned unusable content: {e}") from e

        expected = self.page_count(story_details) + 1
        if len(book.pages) != expected:
            logger.warning("Story has %d page(s), %d were requested", len(book.pages), expected)

        return book

    async def generate_images(
        self,
        book: BookContent,
        characters: Sequence[AnyCharacter],
    ) -> BookContent:
        """Illustrate every page in order.

        Pages are illustrated one at a time to stay under provider rate
        limits. A page whose illustration fails is left without image and
        the remaining pages still run. Returns a new BookContent.
        """
        if self.image_provider is None:
            raise ValueError("An image provider is required to generate illustrations")

        meta = book.meta()
        pages = []
        for page in book.pages:
            prompt = self.image_builder.build_image_prompt(page, meta, characters)
            try:
                result = await self.image_provider.generate_image(prompt)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.error("Error generating image for page %d: %s", page.page_number, e)
                pages.append(page)
                continue

            pages.append(page.model_copy(update={
                "image_url": result.get("image_url"),
                "image_data": result.get("image_data"),
            }))

        return book.model_copy(update={"pages": pages})

    async def generate_book(
        self,
        characters: Sequence[AnyCharacter],
        theme: BookTheme,
        story_details: StoryDetails | None = None,
        book_type: str | None = None,
    ) -> BookContent:
        """Write and illustrate a complete book."""
        book = await self.generate_content(characters, theme, story_details, book_type)
        return await self.generate_images(book, characters)
