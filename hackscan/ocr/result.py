"""
OCR Result Dataclasses

Shared data structures for grid detection and code reading results.
"""

from dataclasses import dataclass, field
from typing import List, Optional

from .config import EXPECTED_COLS, EXPECTED_ROWS, round_half_up


@dataclass(frozen=True)
class CellBox:
    """Axis-aligned cell rectangle in frame coordinates."""
    x: int
    y: int
    w: int
    h: int
    cx: float  # Geometric center, anchor for overlay drawing
    cy: float
    area: int

    @classmethod
    def from_center(cls, cx: float, cy: float, w: float, h: float) -> 'CellBox':
        """Create a box of size w x h centered on (cx, cy), clamped at the frame origin."""
        x = round_half_up(cx - w / 2)
        y = round_half_up(cy - h / 2)
        return cls(
            x=max(0, x),
            y=max(0, y),
            w=max(1, round_half_up(w)),
            h=max(1, round_half_up(h)),
            cx=cx,
            cy=cy,
            area=round_half_up(w * h),
        )


@dataclass
class GridInfo:
    """Grid detection results."""
    grid_cells: List[CellBox]              # Row-major, rows * cols boxes
    target_cells: Optional[List[CellBox]]  # Left to right, or None if no target band
    rows: int = EXPECTED_ROWS
    cols: int = EXPECTED_COLS
    strategy: str = "binary"               # Detection strategy that produced this result

    @property
    def has_target(self) -> bool:
        """True when a target strip was located."""
        return bool(self.target_cells)

    def cell_at(self, row: int, col: int) -> CellBox:
        """Grid cell at 0-based (row, col)."""
        return self.grid_cells[row * self.cols + col]


@dataclass
class CodeReadResult:
    """Codes read from one frame by a CodeReader."""
    alphabet: Optional[str]       # Alphabet name the codes were read in
    target_codes: List[str]
    grid_codes: List[str]
    processing_time_ms: float = 0.0
    scores: dict = field(default_factory=dict)  # Alphabet name -> charset score (auto-detect only)
