#!/usr/bin/env python3
"""
Test script for the OCR pipeline.

Covers frames, cell normalization, the template library, glyph and charset
identification, grid detection on a rendered board, and the reader factory.

Usage:
    python test_ocr.py              # Detect the rendered board and print the cells
    pytest tests/test_ocr.py
"""

import logging
import sys
from pathlib import Path

import numpy as np
import pytest
from PIL import Image

# Add project root and tests folder to path
sys.path.insert(0, str(Path(__file__).parent.parent))
sys.path.insert(0, str(Path(__file__).parent))

from hackscan.matcher import MatchResult
from hackscan.ocr import (
    CELL_SIZE,
    UNREADABLE_CODE,
    Alphabet,
    CellBox,
    CodeReader,
    GlyphSet,
    GridDetector,
    ImageFrame,
    TemplateCodeReader,
    TemplateLibrary,
    as_frame,
    available_readers,
    create_reader,
    describe_detection,
    detect_charset,
    detect_grid,
    extract_all_cells,
    extract_cell,
    identify_char,
    identify_code,
    register_reader,
    split_halves,
    template_gap,
    tight_crop_and_normalize,
    to_grayscale,
)
from hackscan.ocr import debug
from hackscan.ocr.config import round_half_up
from hackscan.ocr.detector import (
    Band,
    _box_mean,
    adaptive_threshold,
    build_target_cells,
    find_best_row_group,
    find_grid_binary,
    find_grid_grayscale,
    find_peaks,
    merge_bands,
)
from hackscan.ocr.identifier import best_charset, charset_gaps, charset_scores
from hackscan.ocr.processor import binarize, blank_sample, find_split_column, ink_bounds, stretch_contrast
from hackscan.ocr.templates import (
    RUNE_STROKES,
    braille_dots,
    generate_alphabet,
    make_template,
    render_braille,
    render_rune,
)
from synthetic import NUMERIC_GRID, NUMERIC_TARGET, numeric_board


@pytest.fixture(scope="module")
def library():
    lib = TemplateLibrary()
    lib.generate()
    return lib


@pytest.fixture(scope="module")
def board():
    return numeric_board()


# ===== Frames =====

def test_frame_from_arrays():
    gray = np.full((4, 6), 100, dtype=np.uint8)
    frame = ImageFrame.from_array(gray)
    assert (frame.width, frame.height) == (6, 4)
    assert frame.data.shape == (4, 6, 4)
    assert frame.data[0, 0].tolist() == [100, 100, 100, 255]
    assert not frame.data.flags.writeable

    rgb = np.zeros((2, 3, 3), dtype=np.uint8)
    rgb[..., 0] = 255
    assert to_grayscale(ImageFrame.from_array(rgb))[0, 0] == 76

    with pytest.raises(ValueError):
        ImageFrame.from_array(np.zeros((2, 3, 5), dtype=np.uint8))
    with pytest.raises(ValueError):
        as_frame(None)


def test_frame_from_pil():
    image = Image.new("RGB", (5, 3), (255, 255, 255))
    frame = as_frame(image)
    assert (frame.width, frame.height) == (5, 3)
    assert to_grayscale(frame).max() == 255
    assert as_frame(frame) is frame


# ===== Cell processing =====

def _square_image(size=60, box=(20, 15, 40, 45), ink=200, background=30):
    gray = np.full((size, size), background, dtype=np.uint8)
    x0, y0, x1, y1 = box
    gray[y0:y1, x0:x1] = ink
    return gray


def test_ink_bounds_and_crop():
    gray = _square_image()
    assert ink_bounds(gray) == (20, 39, 15, 44)
    assert ink_bounds(np.zeros((8, 8), dtype=np.uint8)) == (0, 7, 0, 7)

    sample = tight_crop_and_normalize(gray)
    assert sample.shape == (CELL_SIZE, CELL_SIZE)
    assert sample.dtype == np.uint8
    assert sample.min() == 0 and sample.max() == 255
    # Ink fills the middle, margins stay dark
    assert sample[16, 16] == 255
    assert sample[0, 0] == 0


def test_stretch_contrast_noise_floor():
    flat = np.full((8, 8), 50, dtype=np.uint8)
    flat[0, 0] = 55
    assert np.array_equal(stretch_contrast(flat), flat)

    ramp = np.arange(64, dtype=np.uint8).reshape(8, 8) + 100
    stretched = stretch_contrast(ramp)
    assert stretched.min() == 0 and stretched.max() == 255


def test_empty_region_is_blank():
    assert np.array_equal(tight_crop_and_normalize(np.zeros((0, 5), dtype=np.uint8)), blank_sample())


def test_cell_box_rounds_halves_up():
    box = CellBox.from_center(12.5, 7.5, 4, 2.5)
    assert (box.x, box.y, box.w, box.h, box.area) == (11, 6, 4, 3, 10)
    assert CellBox.from_center(4.5, 4.5, 1, 1).x == 4
    assert round_half_up(2.5) == 3
    assert round_half_up(-2.5) == -2


def test_extract_cell_clamps_to_frame():
    frame = ImageFrame.from_array(_square_image())
    inside = extract_cell(frame, CellBox.from_center(30, 30, 30, 40))
    assert inside.shape == (CELL_SIZE, CELL_SIZE)
    assert inside.max() == 255

    edge = extract_cell(frame, CellBox.from_center(58, 58, 20, 20))
    assert edge.shape == (CELL_SIZE, CELL_SIZE)

    outside = extract_cell(frame, CellBox(x=500, y=500, w=10, h=10, cx=505, cy=505, area=100))
    assert np.array_equal(outside, blank_sample())

    with pytest.raises(ValueError):
        extract_cell(frame, None)


def test_split_column_finds_gap():
    sample = np.zeros((32, 32), dtype=np.uint8)
    sample[4:28, 2:13] = 255
    sample[4:28, 18:30] = 255
    split = find_split_column(sample)
    assert 13 <= split <= 17

    left, right = split_halves(sample)
    assert left.shape == right.shape == (32, 32)


def test_binarize():
    ramp = np.arange(32 * 32).reshape(32, 32) % 256
    values = set(np.unique(binarize(ramp)).tolist())
    assert values == {0, 255}


# ===== Templates =====

def test_alphabet_lookup():
    assert Alphabet.from_name("Greek") is Alphabet.GREEK
    assert len(Alphabet.NUMERIC.chars) == 10
    assert len(Alphabet.ALPHANUMERIC.chars) == 36
    assert len(Alphabet.GREEK.chars) == 24
    with pytest.raises(ValueError):
        Alphabet.from_name("klingon")


def test_braille_dots():
    assert braille_dots(chr(0x2801)) == [(0, 0)]
    assert braille_dots(chr(0x2840)) == [(0, 3)]
    assert len(braille_dots(chr(0x28FF))) == 8

    canvas = render_braille(chr(0x28FF), 48)
    assert canvas.shape == (144, 144)
    assert canvas.max() == 255


def test_library_contents(library):
    assert library.is_generated
    for alphabet in Alphabet:
        assert alphabet in library
        glyphs = library.get(alphabet)
        assert glyphs.chars == list(alphabet.chars)
        assert glyphs.binaries.shape == (len(alphabet.chars), CELL_SIZE, CELL_SIZE)

    template = library.get(Alphabet.NUMERIC).template_for("7")
    assert template.pixels.shape == (CELL_SIZE, CELL_SIZE)
    assert set(np.unique(template.binary).tolist()) <= {0, 255}
    assert library.get(Alphabet.NUMERIC).template_for("Z") is None


def test_library_regenerate_is_deterministic(library):
    before = library.get(Alphabet.NUMERIC)
    fresh = TemplateLibrary().regenerate()[Alphabet.NUMERIC]
    for a, b in zip(before, fresh):
        assert a.char == b.char
        assert np.array_equal(a.pixels, b.pixels)


# ===== Identification =====

def test_identify_char_on_templates(library):
    """Every numeric template reads back as itself with zero distance."""
    glyphs = library.get(Alphabet.NUMERIC)
    for template in glyphs:
        match = identify_char(template.pixels, glyphs)
        assert match.char == template.char
        assert match.distance == 0.0
        assert template_gap(template.pixels, glyphs) > 0


def test_identify_without_templates():
    sample = np.zeros((CELL_SIZE, CELL_SIZE), dtype=np.uint8)
    assert identify_char(sample, []) is None
    assert identify_code(sample, []) == UNREADABLE_CODE
    assert template_gap(sample, GlyphSet.build(None, [])) == 0.0


def test_identify_code_blank_cell(library):
    glyphs = library.get(Alphabet.NUMERIC)
    assert identify_code(np.full((CELL_SIZE, CELL_SIZE), 40, dtype=np.uint8), glyphs) == UNREADABLE_CODE


@pytest.mark.parametrize("code", ["58", "70", "36"])
def test_identify_code_composed(library, code):
    """Two templates side by side read back as the code."""
    glyphs = library.get(Alphabet.NUMERIC)
    left = glyphs.template_for(code[0]).pixels
    right = glyphs.template_for(code[1]).pixels
    gap = np.zeros((CELL_SIZE, 4), dtype=np.uint8)
    sample = tight_crop_and_normalize(np.hstack([left, gap, right]))
    assert identify_code(sample, glyphs) == code


def test_detect_charset_numeric(library):
    glyphs = library.get(Alphabet.NUMERIC)
    samples = [t.pixels for t in glyphs]

    gaps = charset_gaps(samples, library)
    assert set(gaps) == set(Alphabet)
    assert gaps[Alphabet.NUMERIC] == max(gaps.values())
    assert detect_charset(samples, library) is Alphabet.NUMERIC


def test_detect_charset_no_samples(library):
    assert detect_charset([], library) is None


def test_best_charset_ties_and_zero():
    assert best_charset({a: 0.0 for a in Alphabet}) is None
    tied = {Alphabet.GREEK: 0.2, Alphabet.ALPHABET: 0.2, Alphabet.RUNES: 0.1}
    assert best_charset(tied) is Alphabet.ALPHABET


def test_best_charset_picks_highest_score():
    scores = {Alphabet.NUMERIC: -0.05, Alphabet.GREEK: -0.02, Alphabet.RUNES: -0.2}
    assert best_charset(scores) is Alphabet.GREEK
    assert best_charset({}) is None


# ===== Every alphabet through the pixel pipeline =====

@pytest.mark.parametrize("alphabet", list(Alphabet), ids=lambda a: a.value)
def test_detect_charset_each_alphabet(library, alphabet):
    """Templates of one alphabet are detected as that alphabet."""
    samples = [t.pixels for t in library.get(alphabet)]
    scores = charset_scores(samples, library)

    print(f"  {alphabet.value}: " + ", ".join(f"{a.value} {s:.4f}" for a, s in scores.items()))
    assert scores[alphabet] == max(scores.values())
    assert detect_charset(samples, library) is alphabet


def test_greek_not_read_as_latin(library):
    """Latin capitals draw 14 Greek letters exactly but not the other 10."""
    samples = [t.pixels for t in library.get(Alphabet.GREEK)]
    gaps = charset_gaps(samples, library)
    scores = charset_scores(samples, library)

    assert scores[Alphabet.GREEK] == pytest.approx(gaps[Alphabet.GREEK])
    assert scores[Alphabet.GREEK] > scores[Alphabet.ALPHABET]
    assert scores[Alphabet.GREEK] > scores[Alphabet.ALPHANUMERIC]


@pytest.mark.parametrize("alphabet", [a for a in Alphabet if a is not Alphabet.BRAILLE],
                         ids=lambda a: a.value)
def test_templates_pairwise_distinct(library, alphabet):
    assert library.get(alphabet).ambiguous_groups() == []


def test_braille_collisions_are_column_shifts(library):
    """Tight cropping merges patterns that differ only by which column they use."""
    groups = library.get(Alphabet.BRAILLE).ambiguous_groups()
    assert ["⡀", "⢀"] in groups
    assert ["⡁", "⢈"] in groups

    for group in groups:
        rows = {tuple(row for _, row in braille_dots(c)) for c in group}
        columns = [{col for col, _ in braille_dots(c)} for c in group]
        assert len(rows) == 1
        assert all(len(cols) == 1 for cols in columns)


@pytest.mark.parametrize("alphabet", list(Alphabet), ids=lambda a: a.value)
def test_templates_read_back_at_other_size(library, alphabet):
    """Glyphs rendered at 36px read as the 48px template (or one identical to it)."""
    glyphs = library.get(alphabet)
    rendered = generate_alphabet(alphabet, font_size=36)

    correct = 0
    for template in rendered:
        match = identify_char(template.pixels, glyphs)
        truth = glyphs.template_for(template.char)
        if np.array_equal(glyphs.template_for(match.char).binary, truth.binary):
            correct += 1

    print(f"  {alphabet.value}: {correct}/{len(glyphs)}")
    assert correct >= 0.9 * len(glyphs)


def test_stroke_runes():
    assert set(RUNE_STROKES) == set(Alphabet.RUNES.chars)

    large = GlyphSet.build(Alphabet.RUNES, [make_template(c, render_rune(c, 48)) for c in RUNE_STROKES])
    assert large.ambiguous_groups() == []

    for char in RUNE_STROKES:
        sample = make_template(char, render_rune(char, 40)).pixels
        assert identify_char(sample, large).char == char


# ===== Detector building blocks =====

def test_find_peaks():
    projection = np.array([0, 0.5, 0.6, 0, 0, 0.3, 0.3, 0.3, 0])
    bands = find_peaks(projection, 0.2)
    assert [(b.start, b.end) for b in bands] == [(1, 3), (5, 8)]
    assert bands[0].peak == pytest.approx(0.6)
    assert bands[1].height == 3


def test_merge_split_rows():
    """Rows split into upper and lower halves merge back into 8 bands."""
    bands = []
    for row in range(8):
        top = 100 + row * 50
        bands.append(Band(top, top + 8, 0.2))
        bands.append(Band(top + 10, top + 20, 0.3))

    merged = merge_bands(bands)
    assert len(merged) == 8
    assert (merged[0].start, merged[0].end) == (100, 120)
    assert merged[0].peak == pytest.approx(0.3)


def test_merge_keeps_clean_rows():
    bands = [Band(100 + i * 50, 120 + i * 50, 0.2) for i in range(8)]
    assert merge_bands(bands) == bands

    with_target = [Band(20, 40, 0.2)] + bands
    assert merge_bands(with_target) == with_target


def test_best_row_group_skips_irregular():
    grid = [Band(200 + i * 50, 220 + i * 50, 0.2) for i in range(8)]
    bands = [Band(40, 60, 0.2)] + grid

    group = find_best_row_group(bands, 0.035)
    assert group.start_index == 1
    assert group.spacing == pytest.approx(50.0)
    assert group.relative_variance == pytest.approx(0.0)

    assert find_best_row_group(grid, 0.5) is None
    assert find_best_row_group(grid[:7], 0.035) is None


def test_build_target_cells():
    cells = build_target_cells(10, 40, 100, 300)
    assert [c.x for c in cells] == [100, 150, 200, 250]
    assert all(c.w == 50 and c.y == 10 and c.h == 30 for c in cells)


def test_adaptive_threshold():
    flat = np.full((40, 40), 120, dtype=np.uint8)
    assert adaptive_threshold(flat, 11, 8.0).max() == 0

    gray = _square_image()
    binary = adaptive_threshold(gray, 21, 8.0)
    assert binary[30, 30] == 255
    assert binary[5, 5] == 0


# ===== Detection on a rendered board =====

def _check_grid(grid_info):
    assert len(grid_info.grid_cells) == 80
    assert (grid_info.rows, grid_info.cols) == (8, 10)

    first, last = grid_info.cell_at(0, 0), grid_info.cell_at(7, 9)
    assert first.cx < last.cx and first.cy < last.cy
    row_pitch = grid_info.cell_at(1, 0).cy - first.cy
    assert row_pitch == pytest.approx(50, abs=3)


def test_detect_binary(board):
    gray = to_grayscale(as_frame(board))
    grid_info = find_grid_binary(gray)
    assert grid_info is not None
    assert grid_info.strategy == "binary"
    _check_grid(grid_info)

    assert grid_info.has_target
    targets = grid_info.target_cells
    assert len(targets) == 4
    assert [t.cx for t in targets] == sorted(t.cx for t in targets)
    assert targets[0].y + targets[0].h < grid_info.grid_cells[0].y


def test_detect_grayscale(board):
    gray = to_grayscale(as_frame(board))
    grid_info = find_grid_grayscale(gray)
    assert grid_info is not None
    assert grid_info.strategy == "grayscale"
    _check_grid(grid_info)


def test_detect_grid_entry_points(board):
    grid_info = detect_grid(board)
    assert grid_info is not None
    assert len(grid_info.target_cells) == 4

    lines = describe_detection(board)
    assert lines[0].startswith("BIN:")
    assert lines[1] == "BIN: 80c tgt:4"


def test_no_grid_in_blank_frame():
    blank = np.full((300, 400), 20, dtype=np.uint8)
    assert GridDetector().detect(blank) is None
    assert describe_detection(blank)[1] == "BIN: no grid"


@pytest.mark.parametrize("shape", [(30, 200, 4), (40, 40, 3), (12, 300)])
def test_tiny_frames_have_no_grid(shape):
    frame = np.full(shape, 20, dtype=np.uint8)
    assert detect_grid(frame) is None
    assert describe_detection(frame)[1] == "BIN: no grid"


def test_box_mean_window_shrinks_at_edges():
    values = np.arange(5, dtype=np.float64)
    np.testing.assert_allclose(_box_mean(values, 1), [0.5, 1.0, 2.0, 3.0, 3.5])
    np.testing.assert_allclose(_box_mean(values, 20), np.full(5, 2.0))


def test_grid_without_target():
    from synthetic import render_board
    grid_info = detect_grid(render_board(NUMERIC_GRID))
    assert grid_info is not None
    assert len(grid_info.grid_cells) == 80
    assert grid_info.target_cells is None
    assert not grid_info.has_target


# ===== Readers =====

def test_reader_reads_board(library, board):
    grid_info = detect_grid(board)
    reader = TemplateCodeReader(library=library)
    result = reader.read(board, grid_info, Alphabet.NUMERIC)

    print(f"  target: {result.target_codes}")
    assert result.alphabet == "numeric"
    assert result.target_codes == NUMERIC_TARGET
    correct = sum(a == b for a, b in zip(result.grid_codes, NUMERIC_GRID))
    assert correct >= 72


def test_reader_detects_alphabet(library, board):
    grid_info = detect_grid(board)
    grid_samples, target_samples = extract_all_cells(as_frame(board), grid_info)

    result = TemplateCodeReader(library=library).read_samples(target_samples, grid_samples)
    assert set(result.scores) == {a.value for a in Alphabet}
    assert result.alphabet in result.scores
    assert len(result.grid_codes) == 80


def test_reader_factory(library, caplog):
    assert "template" in available_readers()

    reader = create_reader("template", library=library)
    assert isinstance(reader, TemplateCodeReader)
    assert reader.name == "template"
    assert reader.library is library

    sized = create_reader(font_size=40)
    assert sized.library.font_size == 40

    with caplog.at_level(logging.WARNING):
        create_reader(library=library, psm=7)
    assert "unknown option 'psm'" in caplog.text

    with pytest.raises(ValueError):
        create_reader("tesseract")
    with pytest.raises(TypeError):
        register_reader("bogus", int)


def test_register_custom_reader():
    class BlankReader(CodeReader):
        @property
        def name(self):
            return "blank"

        def read(self, image, grid_info, alphabet=None):
            return None

    register_reader("blank", BlankReader)
    assert "blank" in available_readers()
    assert create_reader("blank").name == "blank"


# ===== Debug snapshots =====

def test_confidence_colors():
    assert debug.get_confidence_color(1.0) == "#4CAF50"
    assert debug.get_confidence_color(0.8) == "#4CAF50"
    assert debug.get_confidence_color(0.5) == "#FFC107"
    assert debug.get_confidence_color(0.1) == "#d32f2f"


def test_matched_cells_wrap(board):
    grid_info = detect_grid(board)
    run = debug.matched_cells(grid_info, 78, 4)
    assert run == [grid_info.grid_cells[i] for i in (78, 79, 0, 1)]


def test_save_debug_image(board, tmp_path, monkeypatch):
    monkeypatch.setattr(debug, "DEBUG_DIR", tmp_path)
    monkeypatch.setattr(debug, "MAX_DEBUG_IMAGES", 2)
    grid_info = detect_grid(board)
    match = MatchResult.at(43, 10, score=0.0, confidence=1.0)

    for i in range(3):
        out = tmp_path / f"debug_{i}.png"
        debug.save_debug_image(board, grid_info, str(out), match=match,
                               grid_codes=list(NUMERIC_GRID), summary="R5 C4")
        assert out.exists()

    kept = list(tmp_path.glob("debug_*.png"))
    assert len(kept) == 2
    with Image.open(kept[0]) as saved:
        assert saved.size == board.size
        assert saved.mode == "RGB"

    # No geometry still writes the frame
    monkeypatch.setattr(debug, "MAX_DEBUG_IMAGES", 10)
    bare = tmp_path / "debug_bare.png"
    debug.save_debug_image(board, None, str(bare), summary="no grid")
    assert bare.exists()


def main():
    """Detect the rendered board and print its cells."""
    board = numeric_board()
    for line in describe_detection(board):
        print(f"  {line}")

    grid_info = detect_grid(board)
    if grid_info is None:
        print("ERROR: Grid not detected!")
        return 1

    result = create_reader().read(board, grid_info)
    print(f"Alphabet: {result.alphabet}")
    print(f"Target: {' '.join(result.target_codes)}")
    for row in range(grid_info.rows):
        print("  " + " ".join(result.grid_codes[row * 10:(row + 1) * 10]))
    return 0


if __name__ == "__main__":
    sys.exit(main())
