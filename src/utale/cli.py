"""Command line interface for the Utale story generator."""

import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Any, Dict

import click
from dotenv import load_dotenv
from pydantic import ValidationError
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table
from rich.text import Text

from utale.book_generator import BookGenerator
from utale.context import UtaleContext, get_default_context
from utale.error_handling import UtaleError
from utale.llm_factory import create_chat_model_from_context
from utale.models import BookContent, GenerationRequest
from utale.prompt_engineering import ImagePromptBuilder, NarrativePromptBuilder
from utale.providers import DalleProvider
from utale.scene_emotion import SceneEmotionClassifier
from utale.utils import get_output_directory, save_image_from_base64
from utale.validation_helpers import validate_book_content

console = Console()

logger = logging.getLogger(__name__)


def configure_logging(verbose: bool) -> None:
    """Route log records through rich."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=True, show_path=False)],
        force=True,
    )


def _read_json(path: str) -> Dict[str, Any]:
    try:
        with open(path, encoding="utf-8") as f:
            return json.load(f)
    except json.JSONDecodeError as e:
        raise click.ClickException(f"Invalid JSON in {path}: {e}")


def load_request(path: str) -> GenerationRequest:
    """Load a generation request file (characters, theme, storyDetails, bookType)."""
    try:
        return GenerationRequest.model_validate(_read_json(path))
    except ValidationError as e:
        raise click.ClickException(f"Invalid request file {path}:\n{e}")


def load_book(path: str) -> BookContent:
    """Load previously generated book content."""
    try:
        return validate_book_content(_read_json(path))
    except ValueError as e:
        raise click.ClickException(f"Invalid book file {path}: {e}")


@click.group()
@click.option('--verbose', '-v', is_flag=True, help='Show debug logging')
@click.pass_context
def cli(ctx: click.Context, verbose: bool):
    """Utale - Write and illustrate personalized children's books."""
    load_dotenv()
    configure_logging(verbose)
    ctx.ensure_object(dict)
    ctx.obj["context"] = get_default_context()


@cli.command('system-prompt')
@click.option(
    '--book-type',
    default=None,
    help='Style tag: aventura, fantasía or educativo'
)
def system_prompt(book_type: str | None):
    """Print the system prompt sent to the story model."""
    click.echo(NarrativePromptBuilder().build_system_prompt(book_type))


@cli.command('user-prompt')
@click.argument('request_file', type=click.Path(exists=True, dir_okay=False))
@click.pass_context
def user_prompt(ctx: click.Context, request_file: str):
    """Print the user prompt built from REQUEST_FILE."""
    request = load_request(request_file)
    context: UtaleContext = ctx.obj["context"]
    click.echo(NarrativePromptBuilder().build_user_prompt(
        request.characters[0],
        request.characters[1:],
        request.theme,
        context.page_count_for(request.story_details),
        request.story_details,
    ))


@cli.command('image-prompts')
@click.argument('book_file', type=click.Path(exists=True, dir_okay=False))
@click.option(
    '--request',
    'request_file',
    type=click.Path(exists=True, dir_okay=False),
    help='Request file providing the characters'
)
@click.option('--page', 'page_number', type=int, default=None, help='Only this page number')
def image_prompts(book_file: str, request_file: str | None, page_number: int | None):
    """Print the illustration prompt of each page in BOOK_FILE."""
    book = load_book(book_file)
    characters = load_request(request_file).characters if request_file else []
    builder = ImagePromptBuilder()

    pages = [p for p in book.pages if page_number is None or p.page_number == page_number]
    if not pages:
        raise click.ClickException(f"Page {page_number} not found in {book_file}")

    for page in pages:
        console.print(Panel(
            Text(builder.build_image_prompt(page, book.meta(), characters)),
            title=f"Página {page.page_number}",
            expand=False,
        ))


@cli.command()
@click.argument('text')
def lighting(text: str):
    """Show the mood scores and lighting chosen for TEXT."""
    classifier = SceneEmotionClassifier()
    winner = classifier.dominant_emotion(text)

    table = Table(title="Scene emotion")
    table.add_column("Emotion", style="cyan")
    table.add_column("Matches", justify="right")
    for emotion, count in classifier.score(text):
        style = "bold green" if emotion == winner else None
        table.add_row(emotion, str(count), style=style)

    console.print(table)
    console.print(f"[bold]Lighting:[/bold] {classifier.lighting_for(text)}")


@cli.command()
@click.argument('request_file', type=click.Path(exists=True, dir_okay=False))
@click.option(
    '--images/--no-images',
    default=True,
    help='Generate an illustration for every page'
)
@click.option(
    '--output',
    type=click.Path(file_okay=False),
    default=None,
    help='Output directory (defaults to UTALE_OUTPUT_DIR/<title>)'
)
@click.pass_context
def generate(ctx: click.Context, request_file: str, images: bool, output: str | None):
    """Write (and optionally illustrate) the book described by REQUEST_FILE."""
    context: UtaleContext = ctx.obj["context"]
    request = load_request(request_file)

    try:
        llm = create_chat_model_from_context(context)
        provider = DalleProvider.from_context(context) if images else None
    except ValueError as e:
        raise click.ClickException(str(e))

    generator = BookGenerator(llm, provider, context)

    async def _run() -> BookContent:
        with Progress(SpinnerColumn(), TextColumn("{task.description}"), console=console) as progress:
            task = progress.add_task("Escribiendo la historia...", total=None)
            book = await generator.generate_content(
                request.characters, request.theme, request.story_details, request.book_type
            )
            if images:
                progress.update(task, description=f"Ilustrando {len(book.pages)} páginas...")
                book = await generator.generate_images(book, request.characters)
            return book

    try:
        book = asyncio.run(_run())
    except UtaleError as e:
        raise click.ClickException(str(e))

    output_dir = Path(output) if output else get_output_directory(book.title, context.output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)

    for page in book.pages:
        if page.image_data:
            image_path = output_dir / f"page_{page.page_number:02d}.png"
            if save_image_from_base64(page.image_data, image_path):
                page.image_data = None
                page.image_url = image_path.name
            else:
                logger.warning("Could not save illustration for page %d", page.page_number)

    book_path = output_dir / "book.json"
    book_path.write_text(
        json.dumps(book.model_dump(by_alias=True, exclude_none=True), ensure_ascii=False, indent=2),
        encoding="utf-8",
    )

    illustrated = sum(1 for page in book.pages if page.image_url)
    console.print(f"[green]✅ '{book.title}' written with {len(book.pages)} pages[/green]")
    if images:
        console.print(f"[green]🎨 {illustrated}/{len(book.pages)} pages illustrated[/green]")
    console.print(f"[blue]📁 Saved to {book_path}[/blue]")


def main():
    """Main entry point for the CLI."""
    cli(obj={})


if __name__ == "__main__":
    sys.exit(main())
