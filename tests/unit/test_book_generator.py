"""Tests for the book generation workflow."""

import json
from unittest.mock import AsyncMock, Mock

import pytest
from langchain_core.messages import AIMessage, HumanMessage, SystemMessage

from utale.book_generator import BookGenerator
from utale.context import UtaleContext
from utale.error_handling import BookGenerationError, ImageGenerationError
from utale.models import BookContent, Page, StoryDetails


def _story(pages: int = 3) -> dict:
    return {
        "title": "Leo y Ana en el espacio",
        "pages": [
            {"pageNumber": n, "text": "Ana y Leo vuelan." if n == 2 else f"Página {n}", "imagePrompt": f"Escena {n}"}
            for n in range(1, pages + 1)
        ],
        "summary": "Un viaje",
        "targetAge": "4-8",
        "theme": "Viaje al espacio",
        "characters": ["Leo", "Ana"],
        "educationalValue": "Trabajo en equipo",
    }


class TestBookGenerator:
    """Test BookGenerator with a mocked chat model and image provider."""

    def setup_method(self):
        self.llm = Mock()
        self.llm.ainvoke = AsyncMock(return_value=AIMessage(content=json.dumps(_story())))
        self.image_provider = Mock()
        self.image_provider.generate_image = AsyncMock(
            side_effect=lambda prompt: {"success": True, "image_url": f"https://img/{len(prompt)}.png"}
        )
        self.context = UtaleContext(default_page_count=2, max_attempts=1)
        self.generator = BookGenerator(self.llm, self.image_provider, self.context)

    def test_build_messages(self, main_character, supporting_characters, theme):
        messages = self.generator.build_messages(
            [main_character, *supporting_characters], theme, StoryDetails(pageCount=4), "aventura"
        )
        assert isinstance(messages[0], SystemMessage)
        assert isinstance(messages[1], HumanMessage)
        assert "ESTILO ESPECÍFICO" in messages[0].content
        assert "exactamente 5 páginas: 1 portada + 4 páginas de contenido" in messages[1].content
        assert "y con Ana, Toby como personaje(s) secundario(s)" in messages[1].content

    def test_build_messages_requires_characters(self, theme):
        with pytest.raises(ValueError):
            self.generator.build_messages([], theme)

    def test_page_count_defaults_to_context(self):
        assert self.generator.page_count(None) == 2
        assert self.generator.page_count(StoryDetails()) == 2
        assert self.generator.page_count(StoryDetails(pageCount=7)) == 7

    @pytest.mark.asyncio
    async def test_generate_content(self, main_character, theme):
        book = await self.generator.generate_content([main_character], theme)

        assert isinstance(book, BookContent)
        assert book.title == "Leo y Ana en el espacio"
        assert len(book.pages) == 3
        self.llm.ainvoke.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_generate_content_code_fenced(self, main_character, theme):
        self.llm.ainvoke.return_value = AIMessage(content=f"```json\n{json.dumps(_story())}\n```")
        book = await self.generator.generate_content([main_character], theme)
        assert book.pages[0].page_number == 1

    @pytest.mark.asyncio
    async def test_generate_content_unusable_output(self, main_character, theme):
        self.llm.ainvoke.return_value = AIMessage(content="Lo siento, no puedo ayudar con eso.")
        with pytest.raises(BookGenerationError):
            await self.generator.generate_content([main_character], theme)

    @pytest.mark.asyncio
    async def test_generate_content_without_pages(self, main_character, theme):
        self.llm.ainvoke.return_value = AIMessage(content='{"title": "Vacío", "pages": []}')
        with pytest.raises(BookGenerationError):
            await self.generator.generate_content([main_character], theme)

    @pytest.mark.asyncio
    async def test_generate_content_model_call_fails(self, main_character, theme):
        error = RuntimeError("Incorrect API key provided")
        self.llm.ainvoke = AsyncMock(side_effect=error)

        with pytest.raises(BookGenerationError, match="Story model call failed") as exc_info:
            await self.generator.generate_content([main_character], theme)

        assert exc_info.value.__cause__ is error

    @pytest.mark.asyncio
    async def test_generate_images(self, main_character, supporting_characters):
        book = BookContent.model_validate(_story())
        characters = [main_character, *supporting_characters]

        illustrated = await self.generator.generate_images(book, characters)

        assert self.image_provider.generate_image.await_count == 3
        assert all(page.image_url for page in illustrated.pages)
        # Original book untouched
        assert all(page.image_url is None for page in book.pages)

        prompts = [call.args[0] for call in self.image_provider.generate_image.await_args_list]
        assert "Ana (personaje secundario)" in prompts[1]
        assert "Ana (personaje secundario)" not in prompts[0]

    @pytest.mark.asyncio
    async def test_generate_images_continues_after_failure(self, main_character):
        book = BookContent.model_validate(_story())
        self.image_provider.generate_image = AsyncMock(side_effect=[
            {"success": True, "image_url": "https://img/1.png"},
            ImageGenerationError("boom"),
            {"success": True, "image_data": "aGVsbG8="},
        ])

        illustrated = await self.generator.generate_images(book, [main_character])

        assert illustrated.pages[0].image_url == "https://img/1.png"
        assert illustrated.pages[1].image_url is None
        assert illustrated.pages[1].image_data is None
        assert illustrated.pages[2].image_data == "aGVsbG8="

    @pytest.mark.asyncio
    async def test_generate_images_requires_provider(self, main_character):
        generator = BookGenerator(self.llm, None, self.context)
        book = BookContent(title="T", pages=[Page(pageNumber=1)])
        with pytest.raises(ValueError):
            await generator.generate_images(book, [main_character])

    @pytest.mark.asyncio
    async def test_generate_book(self, main_character, theme):
        book = await self.generator.generate_book([main_character], theme)
        assert len(book.pages) == 3
        assert all(page.image_url for page in book.pages)
