"""Test configuration for path setup.

Ensures the `src` directory is on sys.path so the `utale` package
can be imported without installing the project in editable mode.
"""

import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from utale.models import BookTheme, Character, Page  # noqa: E402


@pytest.fixture
def main_character():
    """Protagonist with most fields filled in."""
    return Character(
        id=1,
        name="Leo",
        type="niño",
        age=6,
        physicalDescription="niño de pelo rizado castaño y gafas redondas",
        personality="curioso y valiente",
        likes="los dinosaurios",
        dislikes="la oscuridad",
        interests=["dinosaurios", "volcanes"],
        favorites={"color": "azul", "animal": "tiranosaurio"},
    )


@pytest.fixture
def supporting_characters():
    """Two supporting characters: a girl and a pet."""
    return [
        Character(id=2, name="Ana", type="niña", age=7, personality="tímida y creativa"),
        Character(id=3, name="Toby", type="mascota", age=3, favorites='{"color": "rojo"}'),
    ]


@pytest.fixture
def theme():
    return BookTheme(id=10, name="Viaje al espacio", ageRange="4-8 años", description="Una aventura entre estrellas")


@pytest.fixture
def page():
    return Page(pageNumber=2, text="Leo mira las estrellas.", imagePrompt="Un niño mirando el cielo nocturno")
