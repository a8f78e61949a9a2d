"""
Code Text Parsing - Turns raw text from a general OCR engine into codes.

General OCR engines return a row of codes as free text with spacing
errors: codes run together, single glyphs split apart, stray punctuation.
These helpers recover the two-glyph codes the text matcher expects.
"""

import re
from typing import List, Optional, Sequence

# Latin, digits, Greek, dot patterns and runes survive tokenizing
_NON_GLYPH = re.compile(r"[^A-Za-z0-9\u0370-\u03FF\u2800-\u28FF\u16A0-\u16FF\s]")
_NON_ALNUM = re.compile(r"[^A-Za-z0-9]")
_NON_DIGIT = re.compile(r"[^0-9]")

# Greek capitals that OCR engines confuse with Latin letters
GREEK_TO_LATIN = str.maketrans({
    "\u0391": "A", "\u0392": "B", "\u0395": "E", "\u0396": "Z",
    "\u0397": "H", "\u0399": "I", "\u039A": "K", "\u039C": "M",
    "\u039D": "N", "\u039F": "O", "\u03A1": "P", "\u03A4": "T",
    "\u03A5": "Y", "\u03A7": "X",
})


def _pairs(text: str, length: int) -> List[str]:
    return [text[i:i + 2] for i in range(0, length, 2)]


def _tokens(text: str) -> List[str]:
    return _NON_GLYPH.sub(" ", text).split()


def parse_row_codes(text: str, expected_count: int) -> List[str]:
    """
    Split one row of OCR text into codes.

    Args:
        text: Raw OCR text of a grid row
        expected_count: Number of codes in the row

    Returns:
        Codes in reading order; best effort when the count cannot be met
    """
    cleaned = _NON_ALNUM.sub("", text)
    if cleaned.isdigit() and expected_count * 2 <= len(cleaned) <= expected_count * 2 + 2:
        return _pairs(cleaned, expected_count * 2)

    parts = _tokens(text)
    if len(parts) == expected_count:
        return parts

    if len(parts) > expected_count:
        merged = []
        i = 0
        while i < len(parts) and len(merged) < expected_count:
            if len(parts[i]) == 1 and i + 1 < len(parts) and len(parts[i + 1]) == 1:
                merged.append(parts[i] + parts[i + 1])
                i += 2
            else:
                merged.append(parts[i])
                i += 1
        if len(merged) == expected_count:
            return merged

    expanded = []
    for code in parts or ([cleaned] if cleaned else []):
        if len(code) > 2 and len(code) % 2 == 0:
            expanded.extend(_pairs(code, len(code)))
        else:
            expanded.append(code)
    if len(expanded) == expected_count:
        return expanded

    if parts:
        return parts
    return [cleaned] if cleaned else []


def parse_target_codes(text: str) -> Optional[List[str]]:
    """
    Extract up to 4 target codes from OCR text of the target strip.

    Numeric targets are looked for line by line (a header line such as
    "CONNECTING TO THE HOST" is skipped); glyph targets are split on
    whitespace.

    Returns:
        List of 2-4 codes, or None when fewer than 2 are found
    """
    for line in text.split("\n"):
        digits = _NON_DIGIT.sub("", line)
        if not 6 <= len(digits) <= 10:
            continue
        digit_parts = [p for p in (_NON_DIGIT.sub("", t) for t in _tokens(line)) if p]
        if 3 <= len(digit_parts) <= 5:
            return digit_parts[:4]
        if len(digits) == 8:
            return _pairs(digits, 8)
        if len(digit_parts) >= 2:
            return digit_parts[:4]

    all_digits = _NON_DIGIT.sub("", text)
    if len(all_digits) == 8:
        return _pairs(all_digits, 8)

    parts = _tokens(text)
    digit_parts = [p for p in (_NON_DIGIT.sub("", t) for t in parts) if p]
    if len(digit_parts) >= 2:
        return digit_parts[:4]

    glyph_parts = [p for p in parts if not p.isdigit()]
    if len(glyph_parts) >= 2:
        return glyph_parts[:4]
    return None


def normalize_codes(codes: Sequence[str]) -> List[str]:
    """
    Canonical form of codes for text matching.

    Uppercases, strips whitespace and folds Greek capitals that look like
    Latin letters to their Latin twins, so a grid read as Greek and a
    target read as Latin still compare equal.
    """
    return ["".join(code.split()).upper().translate(GREEK_TO_LATIN) for code in codes]
