"""
Glyph Template Library

Synthesizes one normalized template per glyph for each of the six alphabets.
Templates go through the same tight_crop_and_normalize() path as live cells,
so a template and a photographed glyph are directly comparable.
"""

import logging
import os
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterator, List, Optional, Sequence, Tuple

import numpy as np
from PIL import Image, ImageDraw, ImageFont

from .config import CELL_SIZE
from .processor import binarize, tight_crop_and_normalize

logger = logging.getLogger(__name__)


# Font size used to render templates (canvas is 3x this)
DEFAULT_FONT_SIZE = 48

# Environment variable that forces a specific font file
FONT_ENV_VAR = "HACKSCAN_FONT"

# TrueType faces tried in order; Pillow searches the system font folders
FONT_CANDIDATES = (
    "DejaVuSans.ttf",
    "NotoSans-Regular.ttf",
    "LiberationSans-Regular.ttf",
    "FreeSans.ttf",
    "arial.ttf",
    "Arial.ttf",
    "seguisym.ttf",
    "Arial Unicode.ttf",
)

# Faces with Runic coverage, tried before the general list for runes
RUNE_FONT_CANDIDATES = (
    "NotoSansRunic-Regular.ttf",
    "seguihis.ttf",
    "FreeMono.ttf",
    "FreeSerif.ttf",
    "Junicode.ttf",
)

_BRAILLE_BASE = 0x2800

# Stave shapes for drawing runes without a Runic font. Each entry is a list
# of polylines in a unit box (x right, y down); a single point is a dot.
RUNE_STROKES: Dict[str, Tuple[Tuple[Tuple[float, float], ...], ...]] = {
    "ᚠ": (((0.25, 0.0), (0.25, 1.0)), ((0.25, 0.3), (0.75, 0.05)), ((0.25, 0.55), (0.75, 0.3))),
    "ᚥ": (((0.2, 1.0), (0.2, 0.0), (0.8, 0.3), (0.8, 1.0)), ((0.5, 0.15), (0.5, 1.0))),
    "ᚧ": (((0.25, 0.0), (0.25, 1.0)), ((0.25, 0.25), (0.7, 0.5), (0.25, 0.75)),
               ((0.05, 0.5), (0.45, 0.5))),
    "ᚨ": (((0.25, 0.0), (0.25, 1.0)), ((0.25, 0.05), (0.75, 0.35)), ((0.25, 0.35), (0.75, 0.65))),
    "ᚩ": (((0.25, 0.0), (0.25, 1.0)), ((0.25, 0.05), (0.75, 0.3), (0.75, 0.42)),
               ((0.25, 0.35), (0.75, 0.6), (0.75, 0.72))),
    "ᚬ": (((0.5, 0.0), (0.5, 1.0)), ((0.1, 0.2), (0.9, 0.55))),
    "ᚭ": (((0.5, 0.0), (0.5, 1.0)), ((0.5, 0.4), (0.8, 0.65))),
    "ᚻ": (((0.2, 0.0), (0.2, 1.0)), ((0.8, 0.0), (0.8, 1.0)),
               ((0.2, 0.35), (0.8, 0.5)), ((0.2, 0.5), (0.8, 0.65))),
    "ᛐ": (((0.5, 0.0), (0.5, 1.0)), ((0.2, 0.25), (0.5, 0.05))),
    "ᛑ": (((0.5, 0.0), (0.5, 1.0)), ((0.5, 0.05), (0.85, 0.2), (0.5, 0.35))),
    "ᛒ": (((0.25, 0.0), (0.25, 1.0)),
               ((0.25, 0.0), (0.75, 0.25), (0.25, 0.5), (0.75, 0.75), (0.25, 1.0))),
    "ᛓ": (((0.5, 0.0), (0.5, 1.0)), ((0.5, 0.25), (0.2, 0.45)), ((0.5, 0.55), (0.2, 0.75))),
    "ᛔ": (((0.25, 0.0), (0.25, 1.0)), ((0.25, 0.0), (0.75, 0.3), (0.25, 0.6)), ((0.45, 0.3),)),
    "ᛕ": (((0.25, 0.0), (0.25, 1.0)), ((0.25, 0.3), (0.75, 0.05)), ((0.25, 0.7), (0.75, 0.95))),
    "ᛖ": (((0.15, 1.0), (0.15, 0.0), (0.5, 0.35), (0.85, 0.0), (0.85, 1.0)),),
    "ᛗ": (((0.15, 0.0), (0.15, 1.0)), ((0.85, 0.0), (0.85, 1.0)),
               ((0.15, 0.0), (0.85, 0.45)), ((0.85, 0.0), (0.15, 0.45))),
    "ᛘ": (((0.5, 0.0), (0.5, 1.0)), ((0.5, 0.45), (0.15, 0.05)), ((0.5, 0.45), (0.85, 0.05))),
    "ᛙ": (((0.5, 0.0), (0.5, 1.0)), ((0.5, 0.25), (0.3, 0.1)), ((0.5, 0.25), (0.7, 0.1))),
    "ᛚ": (((0.25, 0.0), (0.25, 1.0)), ((0.25, 0.0), (0.75, 0.35))),
    "ᛛ": (((0.25, 0.0), (0.25, 1.0)), ((0.25, 0.0), (0.75, 0.35)), ((0.6, 0.65),)),
    "ᛜ": (((0.5, 0.2), (0.85, 0.5), (0.5, 0.8), (0.15, 0.5), (0.5, 0.2)),),
    "ᛝ": (((0.15, 0.0), (0.85, 1.0)), ((0.85, 0.0), (0.15, 1.0)), ((0.5, 0.0), (0.5, 1.0))),
    "ᛞ": (((0.15, 0.0), (0.15, 1.0)), ((0.85, 0.0), (0.85, 1.0)),
               ((0.15, 0.0), (0.85, 1.0)), ((0.85, 0.0), (0.15, 1.0))),
    "ᛟ": (((0.5, 0.0), (0.85, 0.35), (0.2, 1.0)), ((0.5, 0.0), (0.15, 0.35), (0.8, 1.0))),
    "ᛤ": (((0.5, 0.0), (0.5, 1.0)), ((0.5, 0.55), (0.15, 0.95)), ((0.5, 0.55), (0.85, 0.95))),
}


class Alphabet(Enum):
    """The six glyph sets a grid can be drawn in."""
    NUMERIC = "numeric"
    ALPHABET = "alphabet"
    ALPHANUMERIC = "alphanumeric"
    GREEK = "greek"
    BRAILLE = "braille"
    RUNES = "runes"

    @property
    def chars(self) -> str:
        """Ordered glyphs of this alphabet."""
        return CHARSETS[self]

    @classmethod
    def from_name(cls, name: str) -> 'Alphabet':
        """
        Look up an alphabet by its value (e.g. "greek").

        Raises:
            ValueError: If no alphabet has that name
        """
        try:
            return cls(name.lower())
        except ValueError:
            available = ", ".join(a.value for a in cls)
            raise ValueError(f"Unknown alphabet: {name}. Available: {available}") from None


CHARSETS: Dict[Alphabet, str] = {
    Alphabet.NUMERIC: "0123456789",
    Alphabet.ALPHABET: "ABCDEFGHIJKLMNOPQRSTUVWXYZ",
    Alphabet.ALPHANUMERIC: "ABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789",
    Alphabet.GREEK: "".join(chr(c) for c in range(0x0391, 0x03AA) if c != 0x03A2),
    Alphabet.BRAILLE: "".join(chr(c) for c in range(0x2840, 0x2900)),
    Alphabet.RUNES: "".join(chr(c) for c in (
        0x16A0, 0x16A5, 0x16A7, 0x16A8, 0x16A9, 0x16AC, 0x16AD, 0x16BB,
        *range(0x16D0, 0x16E0), 0x16E4,
    )),
}


@dataclass(frozen=True)
class GlyphTemplate:
    """Normalized template of one glyph."""
    char: str
    pixels: np.ndarray  # NormalizedSample
    binary: np.ndarray  # Thresholded NormalizedSample (0/255)


@dataclass(frozen=True)
class GlyphSet:
    """
    Ordered templates of one alphabet with a stacked binary view.

    The stack lets the identifier compare a sample against every template
    in a single vectorized operation.
    """
    alphabet: Optional[Alphabet]
    templates: Tuple[GlyphTemplate, ...]
    binaries: np.ndarray = field(repr=False)  # (K, CELL_SIZE, CELL_SIZE) bool

    @classmethod
    def build(cls, alphabet: Optional[Alphabet], templates: Sequence[GlyphTemplate]) -> 'GlyphSet':
        if templates:
            stack = np.stack([t.binary > 0 for t in templates])
        else:
            stack = np.zeros((0, CELL_SIZE, CELL_SIZE), dtype=bool)
        stack.setflags(write=False)
        return cls(alphabet=alphabet, templates=tuple(templates), binaries=stack)

    @property
    def chars(self) -> List[str]:
        return [t.char for t in self.templates]

    def template_for(self, char: str) -> Optional[GlyphTemplate]:
        """Template of a given glyph, or None if it is not in this set."""
        for template in self.templates:
            if template.char == char:
                return template
        return None

    def ambiguous_groups(self) -> List[List[str]]:
        """Glyphs whose binary templates are identical, in template order."""
        groups: Dict[bytes, List[str]] = {}
        for template, bits in zip(self.templates, self.binaries):
            groups.setdefault(np.packbits(bits).tobytes(), []).append(template.char)
        return [chars for chars in groups.values() if len(chars) > 1]

    def __len__(self) -> int:
        return len(self.templates)

    def __iter__(self) -> Iterator[GlyphTemplate]:
        return iter(self.templates)


def _covers(font: ImageFont.ImageFont, chars: str) -> bool:
    """True when the font draws a distinct shape for every glyph."""
    masks = set()
    for char in chars:
        mask = font.getmask(char)
        masks.add((mask.size, bytes(mask)))
    return len(masks) == len(chars)


def find_font(size: int, alphabet: Optional[Alphabet] = None,
              font_path: Optional[str] = None) -> Optional[ImageFont.FreeTypeFont]:
    """
    First TrueType face that draws every glyph of an alphabet.

    Order: explicit font_path, the HACKSCAN_FONT environment variable,
    then the candidate lists.

    Args:
        size: Font size in pixels
        alphabet: Alphabet whose glyphs must be covered (None = any face)
        font_path: Explicit font file to try first

    Returns:
        Pillow font object, or None when no candidate covers the alphabet
    """
    candidates: List[str] = []
    for explicit in (font_path, os.environ.get(FONT_ENV_VAR)):
        if explicit:
            candidates.append(explicit)
    if alphabet is Alphabet.RUNES:
        candidates.extend(RUNE_FONT_CANDIDATES)
    candidates.extend(FONT_CANDIDATES)

    for name in candidates:
        try:
            font = ImageFont.truetype(name, size)
        except OSError:
            continue
        if alphabet is None or _covers(font, alphabet.chars):
            logger.debug(f"Using font {name} for {alphabet.value if alphabet else 'text'}")
            return font
    return None


def load_font(size: int, alphabet: Optional[Alphabet] = None,
              font_path: Optional[str] = None) -> ImageFont.ImageFont:
    """find_font(), falling back to Pillow's bundled default font."""
    font = find_font(size, alphabet, font_path)
    if font is not None:
        return font

    logger.warning(
        f"No TrueType font covers {alphabet.value if alphabet else 'text'}, "
        f"falling back to Pillow default font"
    )
    return ImageFont.load_default(size=size)


def render_glyph(char: str, font: ImageFont.ImageFont, font_size: int) -> np.ndarray:
    """Render one glyph white-on-black, centered on a 3x font-size canvas."""
    size = font_size * 3
    canvas = Image.new("L", (size, size), 0)
    draw = ImageDraw.Draw(canvas)
    draw.text((size / 2, size / 2), char, fill=255, font=font, anchor="mm")
    return np.array(canvas)


def braille_dots(char: str) -> List[Tuple[int, int]]:
    """
    (column, row) positions of the raised dots of a braille pattern.

    Dots 1-3 are the left column top to bottom, 4-6 the right column,
    7 and 8 the bottom row left and right.
    """
    bits = ord(char) - _BRAILLE_BASE
    layout = ((0, 0), (0, 1), (0, 2), (1, 0), (1, 1), (1, 2), (0, 3), (1, 3))
    return [layout[i] for i in range(8) if bits & (1 << i)]


def render_braille(char: str, font_size: int) -> np.ndarray:
    """Draw a braille pattern as filled dots on a 3x font-size canvas."""
    size = font_size * 3
    radius = font_size * 0.12
    dx = font_size * 0.30
    dy = font_size * 0.26
    origin_x = size / 2 - dx / 2
    origin_y = size / 2 - dy * 1.5

    canvas = Image.new("L", (size, size), 0)
    draw = ImageDraw.Draw(canvas)
    for col, row in braille_dots(char):
        x = origin_x + col * dx
        y = origin_y + row * dy
        draw.ellipse((x - radius, y - radius, x + radius, y + radius), fill=255)
    return np.array(canvas)


def render_rune(char: str, font_size: int) -> np.ndarray:
    """Draw a rune from RUNE_STROKES on a 3x font-size canvas."""
    size = font_size * 3
    width = max(2, int(font_size * 0.1))
    box_w = font_size * 0.7
    left = size / 2 - box_w / 2
    top = size / 2 - font_size / 2

    canvas = Image.new("L", (size, size), 0)
    draw = ImageDraw.Draw(canvas)
    for stroke in RUNE_STROKES[char]:
        points = [(left + x * box_w, top + y * font_size) for x, y in stroke]
        if len(points) == 1:
            x, y = points[0]
            draw.ellipse((x - width, y - width, x + width, y + width), fill=255)
        else:
            draw.line(points, fill=255, width=width, joint="curve")
    return np.array(canvas)


def make_template(char: str, gray: np.ndarray) -> GlyphTemplate:
    pixels = tight_crop_and_normalize(gray)
    return GlyphTemplate(char=char, pixels=pixels, binary=binarize(pixels))


def generate_alphabet(alphabet: Alphabet, font_size: int = DEFAULT_FONT_SIZE,
                      font_path: Optional[str] = None) -> GlyphSet:
    """Render and normalize every glyph of one alphabet."""
    if alphabet is Alphabet.BRAILLE:
        templates = [make_template(c, render_braille(c, font_size)) for c in alphabet.chars]
    elif alphabet is Alphabet.RUNES and find_font(font_size, alphabet, font_path) is None:
        logger.info("No font covers the runes, drawing them from stroke outlines")
        templates = [make_template(c, render_rune(c, font_size)) for c in alphabet.chars]
    else:
        font = load_font(font_size, alphabet, font_path)
        templates = [make_template(c, render_glyph(c, font, font_size)) for c in alphabet.chars]

    glyphs = GlyphSet.build(alphabet, templates)
    for group in glyphs.ambiguous_groups():
        logger.debug(f"{alphabet.value}: identical templates for {''.join(group)}")
    return glyphs


class TemplateLibrary:
    """
    Templates for all six alphabets.

    Built once by generate() and read-only afterwards, so scans running in
    parallel can share one library without locking. regenerate() rebuilds
    from scratch and always yields the same templates.
    """

    def __init__(self, font_size: int = DEFAULT_FONT_SIZE, font_path: Optional[str] = None):
        """
        Args:
            font_size: Render size for template glyphs
            font_path: Optional font file used for all font-rendered alphabets
        """
        self.font_size = font_size
        self.font_path = font_path
        self._sets: Dict[Alphabet, GlyphSet] = {}

    @property
    def is_generated(self) -> bool:
        return bool(self._sets)

    def generate(self) -> Dict[Alphabet, GlyphSet]:
        """Build templates for every alphabet if not built yet."""
        if self._sets:
            return self._sets

        start = time.perf_counter()
        sets = {
            alphabet: generate_alphabet(alphabet, self.font_size, self.font_path)
            for alphabet in Alphabet
        }
        self._sets = sets

        elapsed = (time.perf_counter() - start) * 1000
        total = sum(len(s) for s in sets.values())
        logger.info(f"Generated {total} glyph templates in {elapsed:.1f}ms")
        return sets

    def regenerate(self) -> Dict[Alphabet, GlyphSet]:
        """Discard and rebuild all templates."""
        self._sets = {}
        return self.generate()

    def get(self, alphabet: Alphabet) -> GlyphSet:
        """Templates of one alphabet (generates the library on first use)."""
        return self.generate()[alphabet]

    def items(self) -> List[Tuple[Alphabet, GlyphSet]]:
        return list(self.generate().items())

    def __contains__(self, alphabet: Alphabet) -> bool:
        return alphabet in self.generate()
