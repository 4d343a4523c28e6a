"""Prompt composition for story and illustration generation.

Every function here is a pure transformation of its arguments: no I/O,
no randomness, and the input models are never modified. Identical input
always yields byte-identical prompts.
"""

import json
import logging
import re
from typing import Any, Dict, List, Mapping, Sequence

from utale.models import (
    AGED_CHARACTER_TYPES,
    AnyCharacter,
    BookContent,
    BookMeta,
    BookTheme,
    ExtendedCharacter,
    Page,
    StoryDetails,
    base_character,
    extend_character,
)
from utale.scene_emotion import classify_scene_lighting

logger = logging.getLogger(__name__)

DEFAULT_AGE_RANGE = "5-10 años"
DEFAULT_TARGET_AGE = "5-10"


def parse_favorites(raw: Mapping[str, Any] | str | None) -> Dict[str, Any] | None:
    """Normalise ``favorites`` into a dict.

    Accepts a mapping or its JSON serialization. Anything unparseable
    yields None so callers simply omit the favorites output.
    """
    if raw is None:
        return None
    if isinstance(raw, str):
        if not raw.strip():
            return None
        try:
            raw = json.loads(raw)
        except json.JSONDecodeError:
            # TODO: surface malformed favorites to product review instead of only debug logging
            logger.debug("Ignoring malformed favorites JSON: %r", raw)
            return None
    if not isinstance(raw, Mapping):
        return None
    return dict(raw)


class CharacterFormatter:
    """Renders characters as text blocks for the story and image models."""

    # Checked in order, the first key contained in the personality wins
    VISUAL_PERSONALITY_TRAITS = (
        ("alegre", "expresión sonriente y postura animada"),
        ("tímido", "postura ligeramente encorvada y expresión tímida"),
        ("tímida", "postura ligeramente encorvada y expresión tímida"),
        ("curioso", "expresión de curiosidad y postura inclinada hacia adelante"),
        ("curiosa", "expresión de curiosidad y postura inclinada hacia adelante"),
        ("valiente", "postura erguida y mirada confiada"),
        ("creativo", "gestos expresivos y mirada soñadora"),
        ("creativa", "gestos expresivos y mirada soñadora"),
        ("aventurero", "postura dinámica y expresión de entusiasmo"),
        ("aventurera", "postura dinámica y expresión de entusiasmo"),
        ("inteligente", "mirada atenta y gesto reflexivo"),
        ("sensible", "expresión emotiva y gestos delicados"),
        ("divertido", "sonrisa juguetona y postura relajada"),
        ("divertida", "sonrisa juguetona y postura relajada"),
        ("enérgico", "postura activa y gesto dinámico"),
        ("enérgica", "postura activa y gesto dinámico"),
        ("tranquilo", "expresión serena y postura relajada"),
        ("tranquila", "expresión serena y postura relajada"),
    )

    def format_character_info(self, character: AnyCharacter, is_main_character: bool) -> str:
        """Describe a character for the story prompt.

        Identity lines come first, followed by whichever features are
        present. Missing fields produce no line at all.
        """
        base = base_character(character)

        lines: List[str] = []
        if is_main_character:
            lines.append("PERSONAJE PRINCIPAL:")
        lines.append(f"- Nombre: {base.name}")
        lines.append(f"- Tipo: {base.type or 'personaje'}")
        if base.age:
            lines.append(f"- Edad: {base.age}")

        if base.physical_description:
            lines.append(f"- Apariencia: {base.physical_description}")
        if base.personality:
            lines.append(f"- Personalidad: {base.personality}")
        if base.interests:
            lines.append(f"- Intereses: {', '.join(base.interests)}")
        if base.likes:
            lines.append(f"- Le gusta: {base.likes}")
        if base.dislikes:
            lines.append(f"- No le gusta: {base.dislikes}")

        favorites = parse_favorites(base.favorites)
        if favorites:
            formatted = ", ".join(f"{key}: {value}" for key, value in favorites.items() if value)
            if formatted:
                lines.append(f"- Cosas favoritas: {formatted}")

        if isinstance(character, ExtendedCharacter):
            if character.specific_role:
                lines.append(f"- Rol en esta historia: {character.specific_role}")
            if character.special_abilities:
                lines.append(f"- Habilidades especiales: {character.special_abilities}")
            if character.story_specific_details:
                lines.append(f"- Detalles específicos: {character.story_specific_details}")
            if not is_main_character and character.relation_to_main_character:
                lines.append(f"- Relación con el protagonista: {character.relation_to_main_character}")

        return "\n".join(lines)

    def visual_personality_trait(self, personality: str | None) -> str | None:
        """Map a personality description to a visible posture/expression."""
        if not personality:
            return None
        personality_lower = personality.lower()
        for trait, visual in self.VISUAL_PERSONALITY_TRAITS:
            if trait in personality_lower:
                return visual
        return None

    def format_character_image_prompt(self, character: AnyCharacter, is_main_character: bool) -> str:
        """Describe how a character should look in an illustration."""
        base = base_character(character)
        role = "protagonista" if is_main_character else "personaje secundario"
        description = f"{base.name} ({role}): "

        if base.physical_description:
            description += base.physical_description
        else:
            description += base.type or "personaje"
            if base.age and (base.type or "") in AGED_CHARACTER_TYPES:
                description += f" de {base.age} años"

        favorites = parse_favorites(base.favorites)
        if favorites and favorites.get("color"):
            description += f", con elementos en color {favorites['color']}"

        visual = self.visual_personality_trait(base.personality)
        if visual:
            description += f". {visual}"

        return description


class NarrativePromptBuilder:
    """Builds the system and user messages for the story model."""

    BASE_SYSTEM_PROMPT = """Eres un autor profesional de literatura infantil con amplia experiencia en narrativa personalizada y desarrollo de personajes.

Tu tarea es crear un libro infantil personalizado que sea completamente único, atractivo y adaptado a los personajes proporcionados.

REGLAS NARRATIVAS:
- Estructura clara con introducción, nudo y desenlace bien definidos
- Incorpora 2-3 puntos de giro que mantengan el interés de los niños
- El protagonista debe enfrentar un desafío apropiado para su edad y personalidad
- Incluye momentos de descubrimiento, asombro o aprendizaje
- Los personajes secundarios deben tener un propósito claro en la historia
- El conflicto debe resolverse de forma positiva y constructiva
- Incluye diálogos identificables y apropiados para cada personaje
- El lenguaje debe ser accesible para el rango de edad objetivo del libro
- Proporciona un mensaje o valor educativo sutil pero significativo
- La historia debe tener un ritmo equilibrado: momentos de acción, reflexión y emoción

REGLAS TÉCNICAS PARA PROMPTS DE IMAGEN:
- Aspect ratio 16:9 para todas las ilustraciones
- Composición siguiendo la regla de los tercios (elementos importantes en los puntos de intersección)
- Profundidad de campo con primer plano, plano medio y fondo claramente definidos
- Coherencia visual entre personajes a lo largo de todo el libro
- Variedad de ángulos y perspectivas que eviten la monotonía
- Iluminación que refuerce el tono emocional de cada escena
- Paleta de colores cohesiva que refleje el tema y tono de la historia
- Equilibrio entre espacios positivos y negativos en la composición
- Expresiones faciales y lenguaje corporal que comuniquen claramente las emociones
- Cada imagen debe ilustrar específicamente el texto de su página correspondiente

FORMATO REQUERIDO:
Debes generar un objeto JSON con la siguiente estructura exacta:
{
  "title": "Título de la historia que incluya referencia a los personajes principales",
  "pages": [
    {
      "pageNumber": 1,
      "text": "Texto narrativo para esta página (2-4 frases apropiadas para la edad objetivo)",
      "imagePrompt": "Prompt detallado para ilustrar esta escena, siguiendo todas las reglas técnicas"
    },
    ...
  ],
  "summary": "Resumen de la historia en 3-5 frases",
  "targetAge": "Rango de edad recomendado",
  "theme": "Tema principal",
  "characters": ["Nombre1", "Nombre2", ...],
  "educationalValue": "Brevemente, qué pueden aprender los niños de esta historia"
}"""

    STYLE_ADDENDA: Dict[str, str] = {
        "aventura": """ESTILO ESPECÍFICO:
- Usa un tono dinámico y emocionante con verbos de acción
- Incluye al menos un momento de "casi fracaso" antes del éxito
- Incorpora escenarios variados que cambien a lo largo de la historia
- Utiliza onomatopeyas y expresiones que transmitan emoción y movimiento""",
        "fantasía": """ESTILO ESPECÍFICO:
- Incorpora elementos mágicos o fantásticos que se integren naturalmente en el mundo
- Crea reglas claras para los elementos fantásticos (consistencia interna)
- Equilibra lo maravilloso con momentos de conexión emocional
- Incluye descripciones evocadoras que estimulen la imaginación""",
        "educativo": """ESTILO ESPECÍFICO:
- Integra contenido educativo de forma entretenida, nunca didáctica o aburrida
- Asegúrate de que el aprendizaje surja naturalmente de la narrativa
- Incluye datos precisos pero presentados de forma accesible
- Despierta curiosidad sobre el tema que pueda extenderse más allá de la lectura""",
    }

    BOOK_TYPE_ALIASES: Dict[str, str] = {
        "adventure": "aventura",
        "fantasy": "fantasía",
        "educational": "educativo",
    }

    def __init__(self, formatter: CharacterFormatter | None = None):
        self.formatter = formatter or CharacterFormatter()

    def build_system_prompt(self, book_type: str | None = None) -> str:
        """Base instructions plus the addendum for ``book_type``, if known."""
        tag = self.BOOK_TYPE_ALIASES.get(book_type, book_type) if book_type else None
        addendum = self.STYLE_ADDENDA.get(tag) if tag else None
        if addendum is None:
            return self.BASE_SYSTEM_PROMPT
        return f"{self.BASE_SYSTEM_PROMPT}\n\n{addendum}"

    def build_user_prompt(
        self,
        main_character: AnyCharacter,
        supporting_characters: Sequence[AnyCharacter],
        theme: BookTheme,
        page_count: int,
        story_details: StoryDetails | None = None,
    ) -> str:
        """Compose the user message describing characters, theme and page count.

        ``page_count`` excludes the cover, so the model is asked for
        ``page_count + 1`` pages.
        """
        main = _with_story_details(main_character, story_details)
        supporting = [_with_story_details(char, story_details) for char in supporting_characters]

        opening = f"Crea una historia personalizada original con {main.name} como protagonista principal"
        if supporting:
            names = ", ".join(char.name for char in supporting)
            opening += f" y con {names} como personaje(s) secundario(s)"
        opening += "."

        sections = [opening, self.formatter.format_character_info(main, True)]

        if supporting:
            blocks = "\n\n".join(self.formatter.format_character_info(char, False) for char in supporting)
            sections.append(f"PERSONAJES SECUNDARIOS:\n{blocks}")

        sections.append(self._theme_section(theme, page_count, story_details))
        sections.append(self._requirements_section(page_count, bool(supporting)))

        return "\n\n".join(sections)

    def _theme_section(self, theme: BookTheme, page_count: int, story_details: StoryDetails | None) -> str:
        lines = [
            "TEMA Y DETALLES DE LA HISTORIA:",
            f"- Tema principal: {theme.name}",
            f"- Rango de edad recomendado: {theme.age_range or DEFAULT_AGE_RANGE}",
            f"- Número de páginas: {page_count} (más 1 portada)",
        ]
        if story_details is not None:
            if story_details.style:
                lines.append(f"- Estilo narrativo: {story_details.style}")
            if story_details.tone:
                lines.append(f"- Tono: {story_details.tone}")
            if story_details.setting:
                lines.append(f"- Escenario principal: {story_details.setting}")
            if story_details.message:
                lines.append(f"- Mensaje/Moraleja: {story_details.message}")
            if story_details.specific_elements:
                lines.append(f"- Elementos específicos a incluir: {', '.join(story_details.specific_elements)}")
        return "\n".join(lines)

    def _requirements_section(self, page_count: int, has_supporting: bool) -> str:
        lines = [
            "REQUISITOS ESPECÍFICOS:",
            "- Crea una historia única y encantadora que refleje auténticamente las personalidades y características de todos los personajes.",
            f"- La historia debe tener exactamente {page_count + 1} páginas: 1 portada + {page_count} páginas de contenido.",
            "- Cada página debe tener un texto atractivo y una descripción detallada para su ilustración.",
        ]
        if has_supporting:
            lines.append("- Incluye momentos destacados para cada personaje secundario.")
        lines.extend([
            "- Aprovecha los gustos e intereses de los personajes para crear situaciones relevantes.",
            "- Desarrolla arcos narrativos coherentes con la edad y tipo de los personajes.",
            "- Asegúrate de que las ilustraciones descritas en los prompts sigan las reglas técnicas especificadas y muestren claramente a los personajes relevantes.",
        ])
        return "\n".join(lines)


def _with_story_details(character: AnyCharacter, story_details: StoryDetails | None) -> AnyCharacter:
    """Overlay the request's details for ``character`` when there are any."""
    if story_details is None or not story_details.character_details:
        return character
    base = base_character(character)
    if base.id is None or base.id not in story_details.character_details:
        return character
    return extend_character(character, story_details.character_details[base.id])


class ImagePromptBuilder:
    """Builds the final illustration instruction for a page."""

    EXCLUSIONS = """NO INCLUIR:
- Texto o letras dentro de la ilustración
- Elementos aterradores, violentos o inapropiados
- Proporciones anatómicas incorrectas o rostros distorsionados
- Sombreado excesivo o escenas oscuras"""

    DEFAULT_EXCLUSIONS = """NO INCLUIR:
- Texto o letras dentro de la ilustración
- Elementos aterradores, violentos o inapropiados
- Proporciones anatómicas incorrectas
- Sombreado excesivo o escenas oscuras"""

    def __init__(self, formatter: CharacterFormatter | None = None):
        self.formatter = formatter or CharacterFormatter()

    def characters_in_page(self, page: Page, characters: Sequence[AnyCharacter]) -> List[AnyCharacter]:
        """Main character plus the supporting characters named in the page.

        Names must appear as whole words, so "Ana" does not match "banana".
        """
        if not characters:
            return []
        page_text = page.text.lower()
        present = [characters[0]]
        for char in characters[1:]:
            name = base_character(char).name
            if not name:
                continue
            if re.search(rf"\b{re.escape(name.lower())}\b", page_text):
                present.append(char)
        return present

    def build_image_prompt(
        self,
        page: Page,
        book_meta: BookMeta | BookContent,
        characters: Sequence[AnyCharacter],
    ) -> str:
        """Compose the illustration prompt for ``page``.

        The first entry of ``characters`` is the protagonist. Without any
        characters a generic prompt without character descriptions is built.
        """
        meta = book_meta.meta() if isinstance(book_meta, BookContent) else book_meta
        if not characters:
            return self._default_image_prompt(page, meta)

        present = self.characters_in_page(page, characters)
        descriptions = [
            self.formatter.format_character_image_prompt(char, index == 0)
            for index, char in enumerate(present)
        ]
        character_block = "\n".join(descriptions)
        lighting = classify_scene_lighting(page.text.lower())

        return f"""Crea una ilustración digital de alta calidad para un libro infantil, representando esta escena específica:

{page.image_prompt}

PERSONAJES EN ESCENA:
{character_block}

ASPECTOS TÉCNICOS REQUERIDOS:
- Formato 16:9 panorámico para mejor visualización
- Composición siguiendo la regla de los tercios con personajes principales en puntos de atención
- Profundidad con primer plano, plano medio y fondo claramente definidos
- Iluminación que realce la emoción de la escena: {lighting}
- Paleta de colores cohesiva, brillante y amigable para niños
- Expresiones faciales legibles y emociones claras en los personajes
- Detalles precisos del escenario que complementen la narrativa
- Estilo de ilustración infantil digital profesional, coherente con libros publicados

CONTEXTO DE LA PÁGINA:
"{page.text}"

{self.EXCLUSIONS}

Esta ilustración es para niños de {meta.target_age or DEFAULT_TARGET_AGE} años y debe capturar perfectamente el momento descrito en el texto."""

    def _default_image_prompt(self, page: Page, meta: BookMeta) -> str:
        lighting = classify_scene_lighting(page.text)
        return f"""Crea una ilustración infantil digital de alta calidad para un libro titulado "{meta.title}":

{page.image_prompt}

ASPECTOS TÉCNICOS REQUERIDOS:
- Formato 16:9 panorámico para mejor visualización
- Composición siguiendo la regla de los tercios
- Profundidad con primer plano, plano medio y fondo
- Iluminación {lighting}
- Paleta de colores cohesiva, brillante y amigable para niños
- Expresiones faciales legibles y emociones claras
- Estilo de ilustración infantil digital profesional

CONTEXTO DE LA PÁGINA:
"{page.text}"

{self.DEFAULT_EXCLUSIONS}

Esta ilustración es para niños de {meta.target_age or DEFAULT_TARGET_AGE} años."""


_formatter = CharacterFormatter()
_narrative_builder = NarrativePromptBuilder(_formatter)
_image_builder = ImagePromptBuilder(_formatter)


def format_character_info(character: AnyCharacter, is_main_character: bool = False) -> str:
    """Text block describing ``character`` for the story model."""
    return _formatter.format_character_info(character, is_main_character)


def build_system_prompt(book_type: str | None = None) -> str:
    """System message for the story model."""
    return _narrative_builder.build_system_prompt(book_type)


def build_user_prompt(
    main_character: AnyCharacter,
    supporting_characters: Sequence[AnyCharacter],
    theme: BookTheme,
    page_count: int,
    story_details: StoryDetails | None = None,
) -> str:
    """User message for the story model."""
    return _narrative_builder.build_user_prompt(
        main_character, supporting_characters, theme, page_count, story_details
    )


def build_image_prompt(
    page: Page,
    book_meta: BookMeta | BookContent,
    characters: Sequence[AnyCharacter],
) -> str:
    """Illustration prompt for one page."""
    return _image_builder.build_image_prompt(page, book_meta, characters)


__all__ = [
    "CharacterFormatter",
    "NarrativePromptBuilder",
    "ImagePromptBuilder",
    "parse_favorites",
    "format_character_info",
    "build_system_prompt",
    "build_user_prompt",
    "build_image_prompt",
    "classify_scene_lighting",
]
