"""
Lexical language detection for recognized text.

Two-phase scoring over a closed language set:

1. Primary phase: English and Spanish are scored with a function-word list
   (x2 per matching token) plus regex patterns (diacritics, inflectional
   endings). If one language holds more than 70% of the score mass, it wins.
2. Extended phase: French, German, Portuguese, Italian and Catalan join the
   scoring; the global maximum wins with its share of the total, clamped
   to [0.51, 1.0].

An Iberian-family pass then uses language-specific marker words to
separate Spanish, Portuguese and Catalan, which share much of their
function vocabulary.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field

from docintake.models import DEFAULT_LANGUAGE

logger = logging.getLogger(__name__)


# =============================================================================
# CONSTANTS
# =============================================================================

MIN_DETECTION_LENGTH = 20
DOMINANCE_THRESHOLD = 0.7
PHASE2_MIN_CONFIDENCE = 0.51
WORD_WEIGHT = 2
IBERIAN_MARKER_BOOST = 0.1

PRIMARY_LANGUAGES = ("eng", "spa")
EXTENDED_LANGUAGES = ("fra", "deu", "por", "ita", "cat")
IBERIAN_LANGUAGES = ("spa", "por", "cat")

_TOKEN_SPLIT = re.compile(r"[\s.,;:!?¿¡()\[\]{}'\"«»]+")


@dataclass(frozen=True)
class LanguageProfile:
    """Word list, patterns and tuning weight for one language."""

    code: str
    words: frozenset[str]
    patterns: tuple[re.Pattern[str], ...]
    weight: float = 1.0


def _profile(code: str, words: str, patterns: list[str], weight: float) -> LanguageProfile:
    return LanguageProfile(
        code=code,
        words=frozenset(words.split()),
        patterns=tuple(re.compile(p) for p in patterns),
        weight=weight,
    )


PROFILES: dict[str, LanguageProfile] = {
    "eng": _profile(
        "eng",
        "the a of in to and for with by is are was were be been have has had this that "
        "these those they we you he she it not but or if when what which who how from",
        [r"\b\w+ing\b", r"\b\w+ly\b", r"\w'(?:s|t|re|ll|ve)\b", r"\bth\w+\b"],
        1.0,
    ),
    "spa": _profile(
        "spa",
        "el la los las y de en con por para que no un una es son está este esta como "
        "pero más su sus al del lo cuando también muy sin sobre entre",
        [r"[ñ¿¡]", r"[áéíóú]", r"\b\w+ción\b", r"\b\w+(?:ado|ada|ido|ida)s?\b", r"\b\w+mente\b"],
        1.1,
    ),
    "fra": _profile(
        "fra",
        "le la les et de des du un une est sont dans pour avec pas que qui sur par ce cette "
        "nous vous ils elle au aux",
        [r"[àâçèêëîïôûœ]", r"\b\w+(?:eux|euse|aient|ait)\b", r"\b(?:l|d|qu|n|j|c)'\w"],
        0.9,
    ),
    "deu": _profile(
        "deu",
        "der die das und ist nicht ein eine zu den mit von für auf im dem des sich auch es "
        "wir sie ich werden wurde",
        [r"[äöüß]", r"\b\w+(?:ung|heit|keit|lich|isch)\b", r"\b\w*sch\w*\b"],
        0.9,
    ),
    "por": _profile(
        "por",
        "o a os as e de do da dos das em um uma é são com para não que por no na mais "
        "ao se como mas",
        [r"[ãõ]", r"\b\w+ção\b", r"\b\w+ões\b", r"\b\w+agem\b"],
        0.9,
    ),
    "ita": _profile(
        "ita",
        "il lo la gli le e di da in con su per che non un una è sono del della nel anche "
        "come ma questo",
        [r"\b\w+zion[ei]\b", r"\b\w+(?:etto|etta|ino|ina)\b", r"\b\w*gli\w*\b", r"\b\w+[àìòù]\b"],
        0.9,
    ),
    "cat": _profile(
        "cat",
        "el la els les i de en amb per que no un una és són del al dels aquest aquesta "
        "però també molt",
        [r"l·l", r"\b\w+ció\b", r"\b\w+cions\b", r"\b\w+[èò]\b"],
        0.9,
    ),
}

IBERIAN_MARKERS: dict[str, re.Pattern[str]] = {
    "spa": re.compile(r"\b(?:usted|señor|señora|también|año|años|porque|niño|pequeño|hoy)\b|ñ|¿|¡"),
    "por": re.compile(r"\b(?:você|não|também|são|muito|obrigad[oa]|hoje|coração)\b|ção\b|ões\b|[ãõ]"),
    "cat": re.compile(r"\b(?:amb|això|però|també|perquè|molt|avui|els|dels)\b|l·l"),
}


# =============================================================================
# DETECTOR
# =============================================================================


@dataclass(frozen=True)
class LanguageDetection:
    """Detected language tag and confidence (0.0 to 1.0)."""

    language: str
    confidence: float
    scores: dict[str, float] = field(default_factory=dict, compare=False)


class LanguageDetector:
    """
    Deterministic word/pattern language detector.

    Attributes:
        min_length: Stripped texts shorter than this get the fallback
            language with zero confidence.
        fallback_language: Language reported when detection is not attempted.

    Example:
        >>> detector = LanguageDetector()
        >>> detector.detect("El contrato de arrendamiento se firmó en la ciudad").language
        'spa'
    """

    def __init__(
        self,
        min_length: int = MIN_DETECTION_LENGTH,
        fallback_language: str = DEFAULT_LANGUAGE,
        profiles: dict[str, LanguageProfile] | None = None,
    ):
        self.min_length = min_length
        self.fallback_language = fallback_language
        self.profiles = profiles or PROFILES

    def score(self, text: str, language: str) -> float:
        """Weighted word + pattern score of ``text`` for one language."""
        profile = self.profiles[language]
        lowered = text.lower()
        tokens = [t for t in _TOKEN_SPLIT.split(lowered) if t]
        word_hits = sum(1 for token in tokens if token in profile.words)
        pattern_hits = sum(len(p.findall(lowered)) for p in profile.patterns)
        return (word_hits * WORD_WEIGHT + pattern_hits) * profile.weight

    def detect(self, text: str) -> LanguageDetection:
        """Detect the dominant language of ``text``."""
        if not text or len(text.strip()) < self.min_length:
            logger.debug("Text below %d chars; using fallback language", self.min_length)
            return LanguageDetection(self.fallback_language, 0.0)

        # Phase 1: primary pair
        scores = {lang: self.score(text, lang) for lang in PRIMARY_LANGUAGES}
        total = sum(scores.values())
        if total > 0:
            best = max(PRIMARY_LANGUAGES, key=lambda lang: scores[lang])
            ratio = scores[best] / total
            if ratio > DOMINANCE_THRESHOLD:
                logger.debug("Primary match %s (%.2f)", best, ratio)
                return self._refine_iberian(text, LanguageDetection(best, ratio, scores))

        # Phase 2: extended set
        for lang in EXTENDED_LANGUAGES:
            scores[lang] = self.score(text, lang)
        total = sum(scores.values())
        if total > 0:
            best = max(scores, key=lambda lang: scores[lang])
            share = scores[best] / total
        else:
            best, share = self.fallback_language, 0.0
        confidence = min(1.0, max(PHASE2_MIN_CONFIDENCE, share))
        logger.debug("Extended match %s (%.2f)", best, confidence)
        return self._refine_iberian(text, LanguageDetection(best, confidence, scores))

    def _refine_iberian(self, text: str, detection: LanguageDetection) -> LanguageDetection:
        """Disambiguate Spanish/Portuguese/Catalan with marker words."""
        if detection.language not in IBERIAN_LANGUAGES:
            return detection

        lowered = text.lower()
        hits = {lang: len(marker.findall(lowered)) for lang, marker in IBERIAN_MARKERS.items()}
        matched = [lang for lang in IBERIAN_LANGUAGES if hits.get(lang, 0) > 0]
        if not matched:
            return detection

        language = detection.language
        best = max(matched, key=lambda lang: hits[lang])
        if hits[best] > hits.get(language, 0):
            logger.debug("Iberian markers override %s -> %s", language, best)
            language = best

        # Each matched marker family adds to the confidence before the clamp
        confidence = min(1.0, detection.confidence + IBERIAN_MARKER_BOOST * len(matched))
        return LanguageDetection(language, confidence, detection.scores)
