"""
Taxonomía de patrones del motor de guardrails.

Este módulo centraliza todos los patrones regex usados para clasificar
mensajes del estudiante y para detectar fugas en las respuestas del coach.
Cada patrón pertenece a una única categoría; dentro de una categoría basta
con que coincida cualquiera de ellos.
"""

from __future__ import annotations

import re
import unicodedata
from dataclasses import dataclass
from typing import Pattern

from mathcoach.core.types import Category


# =============================================================================
# Mensajes del estudiante: petición de respuesta
# =============================================================================

ANSWER_SEEKING_PATTERNS: list[str] = [
    # Inglés
    r"what('s|\s+is)\s+the\s+(final\s+)?(answer|solution)",
    r"just\s+(tell|give)\s+me\s+(the\s+)?(answer|solution)",
    r"\bsolve\s+(it|this)(\s+for\s+me)?",
    r"tell\s+me\s+(what\s+)?x(\s+is|\s*=)?",
    r"\bpick\s+(option\s+)?[abcd]\b",
    r"which\s+(one|option|choice|letter)\s+(is\s+it|should\s+i\s+pick)",
    r"what\s+does\s+x\s+equal",
    r"give\s+me\s+the\s+(final\s+)?(result|number)",
    r"what\s+is\s+the\s+value\s+of",
    # Español
    r"(solo\s+)?dame\s+la\s+(respuesta|soluci[oó]n|resultado)",
    r"dime\s+la\s+(respuesta|soluci[oó]n)",
    r"cu[aá]l\s+es\s+la\s+(respuesta|soluci[oó]n)",
    r"resu[eé]lvelo(\s+(t[uú]\s+)?por\s+m[ií])?",
    r"cu[aá]nto\s+vale\s+x",
]


# =============================================================================
# Mensajes del estudiante: petición de confirmación
# =============================================================================

CONFIRMATION_SEEKING_PATTERNS: list[str] = [
    # Inglés
    r"\bis\s+(it\s+|that\s+|the\s+answer\s+|this\s+)?(correct|right|-?\d+)",
    r"did\s+i\s+get\s+it\s+(right|correct)",
    r"\bis\s+(-?\d+|[a-z])\s+(correct|right|the\s+answer)",
    r"\bam\s+i\s+(right|correct)",
    r"check\s+(my|the)\s+answer",
    r"is\s+this\s+(the\s+)?(correct|right)\s+(answer|solution)",
    r"confirm\s+(the|my|this)\s+(answer|result)",
    r"tell\s+me\s+if\s+(i'm|i\s+am)\s+(right|correct)",
    # Español
    r"\bes\s+(correcto|-?\d+)",
    r"\best[aá]\s+bien",
    r"\btengo\s+raz[oó]n",
    r"revisa\s+mi\s+respuesta",
]


# =============================================================================
# Mensajes del estudiante: inferencia casi final
# =============================================================================

NEAR_FINAL_PATTERNS: list[str] = [
    # Inglés
    r"\bso\s+(the\s+answer|it)\s+(is|equals|must\s+be)",
    r"that\s+means\s+(the\s+answer|x|it)\s+(is|=)",
    r"\bso\s+x\s*=\s*-?\d",
    r"\btherefore\b.*(\bis\b|=|equals)",
    r"which\s+gives\s+us",
    # Español
    r"entonces\s+(x|la\s+respuesta)\s*(=|es)",
    r"por\s+lo\s+tanto.*(\bes\b|=)",
]


# =============================================================================
# Mensajes del estudiante: bloqueo
# =============================================================================

STUCK_PATTERNS: list[str] = [
    # Inglés
    r"\bi('m|\s+am)\s+stuck",
    r"\bi\s+don'?t\s+(know|understand|get\s+it)",
    r"\bhelp\s+me\b",
    r"\bi\s+give\s+up",
    r"this\s+is\s+(too\s+)?hard",
    r"\bi\s+can'?t\s+(do|figure|solve)",
    # Español
    r"estoy\s+(atascad[oa]|perdid[oa]|bloquead[oa])",
    r"\bno\s+(lo\s+)?entiendo",
    r"\bno\s+s[eé]\s+(c[oó]mo|qu[eé])",
    r"\bme\s+rindo",
    r"es\s+(muy\s+)?dif[ií]cil",
    r"\bay[uú]dame\b",
]


# =============================================================================
# Respuestas del coach: fuga de respuesta
# =============================================================================

# Resultado final: enteros, decimales, miles, fracciones, radicales y múltiplos
# de pi, con una unidad opcional al final (`12 cm`, `45°`).
_RESULT = (
    r"[-+]?(?:\d+(?:[.,]\d+)*(?:\s*/\s*\d+(?:[.,]\d+)*)?"
    r"|\d*\s*(?:√|sqrt\s*\(?)\s*\d+(?:[.,]\d+)*\s*\)?"
    r"|\d*\s*(?:π|pi\b))"
)
_UNIT = r"(?:\s*(?:[a-zµ]{1,12}[²³23]?|°|%))?"
_RESULT_END = rf"{_RESULT}{_UNIT}\s*[.!]?\s*$"

ANSWER_LEAK_PATTERNS: list[str] = [
    r"the\s+(final\s+)?(answer|solution)\s+is",
    r"the\s+answer\s+would\s+be",
    rf"equals?\s+{_RESULT_END}",
    rf"=\s*{_RESULT_END}",
    r"(correct|right)[!.]?\s*$",
    r"you\s+got\s+it[!.]?\s*$",
    r"that'?s\s+(correct|right|the\s+answer)",
    r"yes,?\s+(that'?s|it'?s)\s+(correct|right)",
    r"option\s+[a-e]\s+is\s+(correct|right)",
    r"the\s+(correct|right)\s+(answer|option|choice)\s+is",
    rf"\bx\s*=\s*{_RESULT_END}",
    r"the\s+(value|result)\s+is\s+-?\d+",
    r"\\boxed\s*\{",
    # Español
    r"la\s+(respuesta|soluci[oó]n)\s+(final\s+)?es",
]


# =============================================================================
# Respuestas del coach: fuga de confirmación
# =============================================================================

CONFIRMATION_LEAK_PATTERNS: list[str] = [
    r"yes,?\s+(that'?s|you('re|\s+are))\s+(correct|right)",
    r"correct!\s*$",
    r"right!\s*$",
    r"you\s+got\s+it",
    r"that\s+is\s+(correct|right|the\s+answer)",
    r"-?\d+\s+is\s+(correct|right)",
    # Español
    r"\b(es|est[aá])\s+correcto",
    r"tienes\s+raz[oó]n",
]


# =============================================================================
# Respuestas del coach: volcado de fórmula
# =============================================================================

FORMULA_DUMP_PATTERNS: list[str] = [
    r"the\s+formula\s+is",
    r"just\s+use\s+this\s+formula",
    r"plug\s+(it\s+|this\s+|these\s+)?into",
    r"the\s+equation\s+is\s+simply",
    # Español
    r"la\s+f[oó]rmula\s+es",
]


# =============================================================================
# Indicadores de razonamiento (distinguen una conjetura de trabajo mostrado)
# =============================================================================

REASONING_INDICATOR_PATTERNS: list[str] = [
    r"\bbecause\b",
    r"\bsince\b",
    r"\bso\s+i\b",
    r"\bi\s+(got|found|did|used|tried|multiplied|divided|added|subtracted|"
    r"solved|simplified|factored|computed|calculated|worked|drew|counted)\b",
    r"\b(first|then|after\s+that|next)\b",
    r"\bby\s+(multiplying|dividing|adding|subtracting|factoring|substituting)\b",
    r"\bwhich\s+means\b",
    r"-?\d+(\.\d+)?\s*[-+*/×÷^]\s*-?\d+",
    r"\d\s*[a-z]\s*[-+=]",
    # Español
    r"\bporque\b",
    r"\bprimero\b",
    r"\b(multipliqu[eé]|divid[ií]|sum[eé]|rest[eé]|despej[eé])\b",
]


# Orden de prioridad para mensajes del estudiante
STUDENT_PRIORITY: tuple[Category, ...] = (
    Category.ANSWER_SEEKING,
    Category.CONFIRMATION_SEEKING,
    Category.NEAR_FINAL,
    Category.STUCK,
)

# Categorías que suprimen una respuesta generada
LEAK_CATEGORIES: tuple[Category, ...] = (
    Category.ANSWER_LEAK,
    Category.CONFIRMATION_LEAK,
)

CATEGORY_PATTERNS: dict[Category, list[str]] = {
    Category.ANSWER_SEEKING: ANSWER_SEEKING_PATTERNS,
    Category.CONFIRMATION_SEEKING: CONFIRMATION_SEEKING_PATTERNS,
    Category.NEAR_FINAL: NEAR_FINAL_PATTERNS,
    Category.STUCK: STUCK_PATTERNS,
    Category.ANSWER_LEAK: ANSWER_LEAK_PATTERNS,
    Category.CONFIRMATION_LEAK: CONFIRMATION_LEAK_PATTERNS,
    Category.FORMULA_DUMP: FORMULA_DUMP_PATTERNS,
}


# =============================================================================
# Reconocedores
# =============================================================================

@dataclass(frozen=True)
class Recognizer:
    """Un patrón compilado ligado a exactamente una categoría."""
    category: Category
    pattern: Pattern[str]

    def search(self, text: str) -> bool:
        return self.pattern.search(text) is not None


class PatternTaxonomy:
    """
    Conjunto inmutable de reconocedores agrupados por categoría.

    Se construye una vez y se comparte; no guarda estado entre llamadas.
    """

    def __init__(self, patterns: dict[Category, list[str]] | None = None) -> None:
        source = patterns if patterns is not None else CATEGORY_PATTERNS
        # Solo la taxonomía por defecto comparte la caché de compilación
        prefix = "taxonomy" if patterns is None else None
        self._recognizers: dict[Category, tuple[Recognizer, ...]] = {
            category: tuple(
                Recognizer(category=category, pattern=p)
                for p in compile_patterns(
                    pattern_list,
                    f"{prefix}:{category.value}" if prefix else None,
                )
            )
            for category, pattern_list in source.items()
        }

    def recognizers_for(self, category: Category) -> tuple[Recognizer, ...]:
        return self._recognizers.get(category, ())

    def first_match(self, text: str, category: Category) -> Recognizer | None:
        """Primer reconocedor de la categoría que coincide con el texto."""
        for recognizer in self.recognizers_for(category):
            if recognizer.search(text):
                return recognizer
        return None

    def categories(self) -> list[Category]:
        return list(self._recognizers)


_default_taxonomy: PatternTaxonomy | None = None


def get_default_taxonomy() -> PatternTaxonomy:
    """Taxonomía por defecto compartida por todo el proceso."""
    global _default_taxonomy
    if _default_taxonomy is None:
        _default_taxonomy = PatternTaxonomy()
    return _default_taxonomy


# =============================================================================
# Funciones de Utilidad
# =============================================================================

_compiled_cache: dict[str, list[Pattern[str]]] = {}

_CONTROL_CHARS = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]")
_MARKUP_CHARS = re.compile(r"[*_`$]|\\\(|\\\)|\\\[|\\\]")
_SENTENCE_SPLIT = re.compile(r"(?<=[.!?])\s+|\n+")


def compile_patterns(patterns: list[str], cache_key: str | None = None) -> list[Pattern[str]]:
    """
    Compila una lista de patrones regex con flag case-insensitive.

    Args:
        patterns: Lista de patrones regex como strings.
        cache_key: Clave opcional para cachear los patrones compilados.

    Returns:
        Lista de patrones compilados.
    """
    if cache_key and cache_key in _compiled_cache:
        return _compiled_cache[cache_key]

    compiled = [re.compile(p, re.IGNORECASE | re.UNICODE) for p in patterns]

    if cache_key:
        _compiled_cache[cache_key] = compiled

    return compiled


def check_any_pattern(
    text: str,
    patterns: list[Pattern[str]],
) -> tuple[bool, str | None, float]:
    """
    Verifica si algún patrón coincide con el texto.

    Returns:
        Tupla (coincide, patrón_encontrado, score).
        El score es 1.0 si hay match, 0.0 si no.
    """
    for pattern in patterns:
        if pattern.search(text):
            return True, pattern.pattern, 1.0
    return False, None, 0.0


def normalize_text(text: str) -> str:
    """
    Normaliza texto antes de clasificarlo.

    - Normaliza unicode (NFC)
    - Elimina caracteres de control
    - Colapsa espacios en blanco
    - Strip de espacios al inicio/fin

    Las mayúsculas se conservan; los patrones ya son case-insensitive.
    """
    text = unicodedata.normalize("NFC", text)
    text = _CONTROL_CHARS.sub("", text)
    text = text.replace("’", "'").replace("‘", "'")
    text = re.sub(r"[ \t\r\f\v]+", " ", text)
    text = re.sub(r" *\n *", "\n", text)
    return text.strip()


def strip_markup(text: str) -> str:
    """Elimina énfasis markdown y delimitadores LaTeX (`**x = 5**`, `$x=5$`)."""
    return _MARKUP_CHARS.sub("", text)


def split_sentences(text: str) -> list[str]:
    """Divide en oraciones o líneas no vacías."""
    return [s.strip() for s in _SENTENCE_SPLIT.split(text) if s and s.strip()]


# =============================================================================
# Exports
# =============================================================================

__all__ = [
    # Patrones
    "ANSWER_SEEKING_PATTERNS",
    "CONFIRMATION_SEEKING_PATTERNS",
    "NEAR_FINAL_PATTERNS",
    "STUCK_PATTERNS",
    "ANSWER_LEAK_PATTERNS",
    "CONFIRMATION_LEAK_PATTERNS",
    "FORMULA_DUMP_PATTERNS",
    "REASONING_INDICATOR_PATTERNS",
    "CATEGORY_PATTERNS",
    "STUDENT_PRIORITY",
    "LEAK_CATEGORIES",
    # Reconocedores
    "Recognizer",
    "PatternTaxonomy",
    "get_default_taxonomy",
    # Funciones
    "compile_patterns",
    "check_any_pattern",
    "normalize_text",
    "strip_markup",
    "split_sentences",
]
