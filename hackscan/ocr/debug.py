"""
OCR Debug Utilities

Annotated snapshots of a scan for tuning the detector offline: cell boxes,
the codes read in them and the matched run.
"""

from pathlib import Path
from typing import Iterable, Optional, Sequence

from PIL import Image, ImageDraw, ImageFont

from .result import CellBox, GridInfo


# Output folder and how many snapshots to keep
DEBUG_DIR = Path("./debug")
MAX_DEBUG_IMAGES = 10

# Match confidence bands for the run outline
HIGH_CONFIDENCE = 0.8
MEDIUM_CONFIDENCE = 0.4

GRID_COLOR = "#2196F3"
TARGET_COLOR = "#E040FB"
CODE_COLOR = "#00E5FF"
SUMMARY_COLOR = "#FFEB3B"


def _outline(draw: ImageDraw.ImageDraw, boxes: Iterable[CellBox], color: str,
             width: int = 1, grow: int = 0) -> None:
    for box in boxes:
        draw.rectangle(
            [box.x - grow, box.y - grow, box.x + box.w + grow, box.y + box.h + grow],
            outline=color, width=width,
        )


def matched_cells(grid_info: GridInfo, position: int, length: int) -> list:
    """Grid boxes covered by a run of length cells starting at position (wrapping)."""
    total = len(grid_info.grid_cells)
    return [grid_info.grid_cells[(position + i) % total] for i in range(length)]


def save_debug_image(
    image: Image.Image,
    grid_info: Optional[GridInfo],
    path: str,
    match=None,
    grid_codes: Optional[Sequence[str]] = None,
    summary: Optional[str] = None
) -> None:
    """
    Write an annotated copy of a frame.

    Args:
        image: Frame the scan ran on
        grid_info: Detected geometry (None draws only the summary)
        path: Output PNG path
        match: MatchResult to outline, colored by confidence
        grid_codes: Codes to print in the corner of each grid cell
        summary: Text for the top-left corner
    """
    DEBUG_DIR.mkdir(parents=True, exist_ok=True)

    canvas = image.convert("RGB")
    draw = ImageDraw.Draw(canvas)
    font = ImageFont.load_default()

    if grid_info is not None:
        _outline(draw, grid_info.grid_cells, GRID_COLOR)
        _outline(draw, grid_info.target_cells or [], TARGET_COLOR, width=2)

        for box, code in zip(grid_info.grid_cells, grid_codes or []):
            draw.text((box.x + 2, box.y + 2), code, fill=CODE_COLOR, font=font)

        if match is not None:
            run = matched_cells(grid_info, match.position, len(grid_info.target_cells or []) or 4)
            _outline(draw, run, get_confidence_color(match.confidence), width=3, grow=2)

    if summary:
        draw.text((10, 10), summary, fill=SUMMARY_COLOR, font=font)

    canvas.save(path, "PNG")
    _cleanup_debug_images()


def _cleanup_debug_images() -> None:
    """Keep only the newest MAX_DEBUG_IMAGES snapshots."""
    if not DEBUG_DIR.exists():
        return

    snapshots = sorted(DEBUG_DIR.glob("debug_*.png"), key=lambda p: p.stat().st_mtime, reverse=True)
    for stale in snapshots[MAX_DEBUG_IMAGES:]:
        try:
            stale.unlink()
        except OSError:
            pass


def get_confidence_color(confidence: float) -> str:
    """Green, amber or red for a match confidence in [0, 1]."""
    if confidence >= HIGH_CONFIDENCE:
        return "#4CAF50"
    if confidence >= MEDIUM_CONFIDENCE:
        return "#FFC107"
    return "#d32f2f"
