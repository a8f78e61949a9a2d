"""
Glyph and Charset Identifier

Reads glyphs by nearest-template search on binarized samples and decides
which alphabet a grid is drawn in from how decisively its glyphs match.
"""

import logging
from dataclasses import dataclass
from typing import Dict, Optional, Sequence, Union

import numpy as np

from .config import CONTRAST_NOISE_FLOOR, UNREADABLE_CODE
from .processor import binarize, split_halves
from .templates import Alphabet, GlyphSet, GlyphTemplate, TemplateLibrary

logger = logging.getLogger(__name__)

Templates = Union[GlyphSet, Sequence[GlyphTemplate]]


@dataclass(frozen=True)
class GlyphMatch:
    """Best template for a sample; distance is the fraction of differing pixels."""
    char: str
    distance: float


def _as_glyph_set(templates: Templates) -> GlyphSet:
    if isinstance(templates, GlyphSet):
        return templates
    return GlyphSet.build(None, list(templates))


def template_distances(sample: np.ndarray, templates: Templates) -> np.ndarray:
    """Hamming fraction between a sample and every template, in template order."""
    glyphs = _as_glyph_set(templates)
    if len(glyphs) == 0:
        return np.zeros(0, dtype=np.float64)
    bits = binarize(sample) > 0
    diff = glyphs.binaries != bits[np.newaxis, :, :]
    return diff.reshape(len(glyphs), -1).mean(axis=1)


def identify_char(sample: np.ndarray, templates: Templates) -> Optional[GlyphMatch]:
    """
    Nearest template to a glyph sample.

    Returns:
        GlyphMatch, or None when there are no templates
    """
    glyphs = _as_glyph_set(templates)
    distances = template_distances(sample, glyphs)
    if distances.size == 0:
        return None
    best = int(np.argmin(distances))
    return GlyphMatch(char=glyphs.templates[best].char, distance=float(distances[best]))


def identify_code(cell_sample: np.ndarray, templates: Templates) -> str:
    """
    Read a two-glyph code from a normalized cell sample.

    Returns:
        Two-character code, or "??" for a blank cell or empty template set
    """
    glyphs = _as_glyph_set(templates)
    if len(glyphs) == 0:
        return UNREADABLE_CODE
    if int(cell_sample.max()) - int(cell_sample.min()) <= CONTRAST_NOISE_FLOOR:
        return UNREADABLE_CODE

    code = ""
    for half in split_halves(cell_sample):
        match = identify_char(half, glyphs)
        code += match.char if match else "?"
    return code


def _gap(distances: np.ndarray) -> float:
    if distances.size < 2:
        return 0.0
    best, second = np.partition(distances, 1)[:2]
    return float(second - best)


def template_gap(sample: np.ndarray, templates: Templates) -> float:
    """Second-best minus best template distance (0 with fewer than 2 templates)."""
    return _gap(template_distances(sample, templates))


def charset_gaps(sample_halves: Sequence[np.ndarray],
                 library: TemplateLibrary) -> Dict[Alphabet, float]:
    """Mean template gap of the samples for every alphabet."""
    gaps: Dict[Alphabet, float] = {}
    for alphabet, glyphs in library.items():
        if not sample_halves:
            gaps[alphabet] = 0.0
            continue
        gaps[alphabet] = float(np.mean([template_gap(s, glyphs) for s in sample_halves]))
    return gaps


def charset_scores(sample_halves: Sequence[np.ndarray],
                   library: TemplateLibrary) -> Dict[Alphabet, float]:
    """
    Mean template gap less mean best distance, for every alphabet.

    A glyph an alphabet draws exactly has a best distance of 0 there. An
    alphabet that only approximates some of the glyphs (Latin capitals
    reading Greek) loses their mean distance from its score.
    """
    scores: Dict[Alphabet, float] = {}
    for alphabet, glyphs in library.items():
        if not sample_halves or len(glyphs) == 0:
            scores[alphabet] = 0.0
            continue
        gaps, bests = [], []
        for sample in sample_halves:
            distances = template_distances(sample, glyphs)
            gaps.append(_gap(distances))
            bests.append(float(distances.min()))
        scores[alphabet] = float(np.mean(gaps) - np.mean(bests))
    return scores


def best_charset(scores: Dict[Alphabet, float]) -> Optional[Alphabet]:
    """
    Alphabet with the highest score, first in enum order on ties.

    Returns None when there are no scores or every score is 0 (nothing was
    measured).
    """
    if all(score == 0.0 for score in scores.values()):
        return None

    best: Optional[Alphabet] = None
    best_score = float("-inf")
    for alphabet in Alphabet:
        if alphabet in scores and scores[alphabet] > best_score:
            best, best_score = alphabet, scores[alphabet]
    return best


def detect_charset(sample_halves: Sequence[np.ndarray],
                   library: TemplateLibrary) -> Optional[Alphabet]:
    """
    Alphabet whose templates the samples match most decisively.

    Returns:
        Alphabet with the highest charset_scores() value (first in enum
        order on ties), or None when there are no samples
    """
    if not sample_halves:
        return None

    scores = charset_scores(sample_halves, library)
    best = best_charset(scores)
    if best is not None:
        logger.debug(f"Detected charset {best.value} (score {scores[best]:.4f})")
    return best
