"""
OCR Module for hackscan

Grid localization, cell normalization and template-based glyph reading.

Usage:
    from hackscan.ocr import detect_grid, create_reader

    grid_info = detect_grid(image)
    if grid_info and grid_info.has_target:
        reader = create_reader()
        result = reader.read(image, grid_info)
        print(result.alphabet, result.target_codes)

Example with a pinned alphabet:
    result = reader.read(image, grid_info, Alphabet.GREEK)
"""

# Public API - Frame and result types
from .frame import ImageFrame, as_frame, to_grayscale
from .result import CellBox, GridInfo, CodeReadResult

# Public API - Configuration
from .config import (
    CELL_SIZE,
    DEFAULT_CONFIG,
    DetectionConfig,
    EXPECTED_CELLS,
    EXPECTED_COLS,
    EXPECTED_ROWS,
    TARGET_COUNT,
    UNREADABLE_CODE,
)

# Public API - Pipeline stages
from .detector import GridDetector, detect_grid, describe_detection
from .processor import (
    binarize,
    extract_all_cells,
    extract_cell,
    split_halves,
    tight_crop_and_normalize,
)
from .templates import Alphabet, CHARSETS, GlyphSet, GlyphTemplate, TemplateLibrary
from .identifier import (
    GlyphMatch,
    charset_gaps,
    charset_scores,
    detect_charset,
    identify_char,
    identify_code,
    template_gap,
)

# Public API - Base class for custom readers
from .base import CodeReader

# Public API - Factory functions
from .factory import (
    create_reader,
    register_reader,
    available_readers,
)

# Public API - Template reader
from .template_engine import TemplateCodeReader

# Debug utilities
from .debug import DEBUG_DIR, save_debug_image

__all__ = [
    # Frame and result types
    "ImageFrame",
    "as_frame",
    "to_grayscale",
    "CellBox",
    "GridInfo",
    "CodeReadResult",
    # Configuration
    "CELL_SIZE",
    "DEFAULT_CONFIG",
    "DetectionConfig",
    "EXPECTED_CELLS",
    "EXPECTED_COLS",
    "EXPECTED_ROWS",
    "TARGET_COUNT",
    "UNREADABLE_CODE",
    # Detection
    "GridDetector",
    "detect_grid",
    "describe_detection",
    # Cell processing
    "binarize",
    "extract_all_cells",
    "extract_cell",
    "split_halves",
    "tight_crop_and_normalize",
    # Templates
    "Alphabet",
    "CHARSETS",
    "GlyphSet",
    "GlyphTemplate",
    "TemplateLibrary",
    # Identification
    "GlyphMatch",
    "charset_gaps",
    "charset_scores",
    "detect_charset",
    "identify_char",
    "identify_code",
    "template_gap",
    # Readers
    "CodeReader",
    "create_reader",
    "register_reader",
    "available_readers",
    "TemplateCodeReader",
    # Debug
    "DEBUG_DIR",
    "save_debug_image",
]
