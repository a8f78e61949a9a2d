"""
Test script for OCR text parsing.

Checks that free text from a general OCR engine is split into the
two-glyph codes the text matcher expects.

Usage:
    pytest tests/test_codes.py
"""

import sys
from pathlib import Path

import pytest

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from hackscan.matcher import normalize_codes, parse_row_codes, parse_target_codes


# ===== parse_target_codes =====

@pytest.mark.parametrize("text", [
    "58 38 69 61",
    "CONNECTING TO THE HOST\n58 38 69 61",
    "58386961",
    "58-38 69.61",
])
def test_numeric_target(text):
    assert parse_target_codes(text) == ["58", "38", "69", "61"]


def test_target_keeps_first_four():
    assert parse_target_codes("58 38 69 61 12") == ["58", "38", "69", "61"]


def test_greek_target():
    codes = parse_target_codes("ΕΔ ΡΜ ΘΓ ΕΟ")
    assert codes == ["ΕΔ", "ΡΜ", "ΘΓ", "ΕΟ"]


def test_braille_target():
    codes = parse_target_codes("⣁⣉ ⣛⣓ ⣏⣟ ⣎⣞")
    assert codes == ["⣁⣉", "⣛⣓", "⣏⣟", "⣎⣞"]


def test_letter_target():
    assert parse_target_codes("FN KW QD BX") == ["FN", "KW", "QD", "BX"]


@pytest.mark.parametrize("text", ["", "   ", "CONNECTING", "58"])
def test_target_not_found(text):
    assert parse_target_codes(text) is None


# ===== parse_row_codes =====

def test_row_concatenated_digits():
    codes = parse_row_codes("58386961421573802954", 10)
    assert len(codes) == 10
    assert codes[0] == "58"
    assert codes[3] == "61"


def test_row_extra_digit():
    codes = parse_row_codes("583869614215738029541", 10)
    assert len(codes) == 10
    assert codes[0] == "58"
    assert codes[-1] == "54"


def test_row_split_glyphs_merged():
    codes = parse_row_codes("F N K W Q D B X A C", 5)
    assert codes == ["FN", "KW", "QD", "BX", "AC"]


def test_row_partial_split():
    codes = parse_row_codes("FN K W QD", 3)
    assert codes == ["FN", "KW", "QD"]


def test_row_runes():
    text = "ᚠᚥ ᚧᚨ ᚩᚬ ᚭᚻ ᛐᛑ ᛒᛓ ᛔᛕ ᛖᛗ ᛘᛙ ᛚᛛ"
    codes = parse_row_codes(text, 10)
    assert len(codes) == 10
    assert codes[0] == "ᚠᚥ"
    assert codes[9] == "ᛚᛛ"


def test_row_concatenated_greek():
    codes = parse_row_codes("ΕΔΡΜΘΓΕΟΑΒΓΔΖΗΘΙΚΛΜΝ", 10)
    assert len(codes) == 10
    assert codes[0] == "ΕΔ"
    assert codes[1] == "ΡΜ"


def test_row_stray_punctuation():
    codes = parse_row_codes("58, 38 | 69 61", 4)
    assert codes == ["58", "38", "69", "61"]


def test_row_best_effort():
    """An unrecoverable row returns what was found rather than failing."""
    assert parse_row_codes("58 38 6", 4) == ["58", "38", "6"]
    assert parse_row_codes("", 4) == []


# ===== normalize_codes =====

def test_normalize_case_and_space():
    assert normalize_codes(["fn", " k w", "Qd"]) == ["FN", "KW", "QD"]


def test_normalize_greek_lookalikes():
    """Greek capitals that share a Latin shape fold to Latin; others stay."""
    assert normalize_codes(["ΒΧ", "ΡΩ", "ΚΜ"]) == ["BX", "PΩ", "KM"]
    assert normalize_codes(["ΛΦ"]) == ["ΛΦ"]


if __name__ == "__main__":
    sys.exit(pytest.main([__file__, "-v"]))
