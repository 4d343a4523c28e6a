"""Keyword based mood detection used to pick illustration lighting."""

import logging
from typing import Dict, List, Tuple

logger = logging.getLogger(__name__)


DEFAULT_LIGHTING = "brillante y cálida, favorable para una escena infantil"


class SceneEmotionClassifier:
    """Classifies page text into one of eight fixed moods.

    Each keyword counts once when it occurs anywhere in the lower-cased
    text. Keywords shared between moods count for every mood that lists
    them. On equal scores the mood declared first wins.
    """

    # Declaration order is the tie-break order
    EMOTION_KEYWORDS: Tuple[Tuple[str, Tuple[str, ...]], ...] = (
        ("alegre", (
            "alegría", "feliz", "sonrisa", "risa", "celebrar", "diversión", "jugar", "contento",
            "divertido", "entusiasmo", "gozo", "satisfacción", "alegremente", "emocionado",
            "encantado", "festejo", "juegos", "disfruta", "disfrutando", "felices",
        )),
        ("aventura", (
            "aventura", "explorar", "descubrir", "buscar", "misterio", "viaje", "expedición",
            "travesía", "misión", "desafío", "reto", "arriesgado", "valiente", "valentía",
            "coraje", "exploración", "descubrimiento", "territorio", "mapas", "tesoro",
        )),
        ("tranquilo", (
            "tranquilo", "paz", "calma", "descanso", "relajado", "suave", "sereno", "serenidad",
            "apacible", "armonía", "tranquilidad", "sosiego", "silencioso", "quieto", "quietud",
            "reposo", "relajación", "armonioso", "pacífico", "meditación",
        )),
        ("emocionante", (
            "emocionante", "emoción", "sorpresa", "asombro", "maravilla", "impresionante",
            "fascinante", "increíble", "extraordinario", "impactante", "inolvidable", "sensacional",
            "espectacular", "grandioso", "impresiona", "asombrado", "maravillado", "espléndido",
            "fabuloso", "fantástico",
        )),
        ("misterioso", (
            "misterio", "secreto", "enigma", "desconocido", "extraño", "intrigante", "curioso",
            "peculiar", "sospechoso", "escondido", "oculto", "misterioso", "enigmático", "pistas",
            "investigar", "intriga", "inexplicable", "raro", "insólito", "indescifrable",
        )),
        ("aprendizaje", (
            "aprender", "descubrir", "enseñanza", "lección", "sabio", "sabiduría", "conocimiento",
            "inteligencia", "comprender", "entender", "aprendizaje", "estudiar", "maestro", "profesor",
            "escuela", "educación", "pregunta", "respuesta", "curiosidad", "investigación",
        )),
        ("amistad", (
            "amigos", "amistad", "compartir", "ayudar", "compañero", "equipo", "unidos", "juntos",
            "colaborar", "cooperar", "apoyo", "solidaridad", "confianza", "lealtad", "compañía",
            "camaradería", "fraternal", "hermandad", "fidelidad", "afecto",
        )),
        ("tenso", (
            "problema", "desafío", "difícil", "preocupado", "miedo", "temor", "peligro", "riesgo",
            "amenaza", "tensión", "ansiedad", "nervios", "inquietud", "agitación", "aprieto",
            "dilema", "obstáculo", "complicación", "adversidad", "conflicto",
        )),
    )

    LIGHTING_BY_EMOTION: Dict[str, str] = {
        "alegre": "brillante y cálida, con tonos dorados que transmiten alegría y optimismo",
        "aventura": "dinámica con contrastes interesantes que sugieren acción y descubrimiento",
        "tranquilo": "suave y difusa con tonos pastel que evocan calma y serenidad",
        "emocionante": "vibrante y enérgica con colores intensos que resaltan el momento de asombro",
        "misterioso": "interesante con luces focalizadas y sombras suaves que crean atmósfera de descubrimiento",
        "aprendizaje": "clara y nítida que resalta los detalles importantes en un ambiente de curiosidad",
        "amistad": "cálida y acogedora con tonos armoniosos que refuerzan la conexión entre personajes",
        "tenso": "dramática pero apropiada para niños, con contraste moderado pero sin oscuridad excesiva",
    }

    def score(self, text: str) -> List[Tuple[str, int]]:
        """Return ``(emotion, matches)`` pairs in declaration order."""
        normalized = (text or "").lower()
        return [
            (emotion, sum(1 for keyword in keywords if keyword in normalized))
            for emotion, keywords in self.EMOTION_KEYWORDS
        ]

    def dominant_emotion(self, text: str) -> str | None:
        """Return the best scoring emotion, or None when nothing matched."""
        best_emotion, best_count = None, 0
        for emotion, count in self.score(text):
            # Strict comparison keeps the earlier emotion on ties
            if count > best_count:
                best_emotion, best_count = emotion, count
        return best_emotion

    def lighting_for(self, text: str) -> str:
        """Return the lighting descriptor for the dominant emotion in ``text``."""
        emotion = self.dominant_emotion(text)
        if emotion is None:
            return DEFAULT_LIGHTING
        logger.debug("Scene emotion detected: %s", emotion)
        return self.LIGHTING_BY_EMOTION[emotion]


_classifier = SceneEmotionClassifier()


def determine_scene_emotion(text: str) -> str | None:
    """Name of the dominant emotion in ``text`` or None."""
    return _classifier.dominant_emotion(text)


def classify_scene_lighting(text: str) -> str:
    """Lighting descriptor for a page of story text."""
    return _classifier.lighting_for(text)
