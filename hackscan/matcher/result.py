"""
Match Result Module - Position of the target run inside the grid sequence.
"""

from dataclasses import dataclass, field
from typing import List, Optional, Tuple


@dataclass(frozen=True)
class MatchCandidate:
    """
    One scored start position.

    Attributes:
        position: Index of the grid cell aligned with the first target code
        row: 1-based display row
        col: 1-based display column
        score: Total distance over the target run (lower is better)
    """
    position: int
    row: int
    col: int
    score: float


@dataclass(frozen=True)
class MatchResult:
    """
    Result of aligning the target against the grid.

    Attributes:
        position: Index of the grid cell aligned with the first target code
        row: position // cols + 1
        col: position % cols + 1
        cols: Column count used for row/col conversion
        score: Total distance (0 for an exact text match)
        confidence: Normalized best/second-best gap, 1.0 for an exact match
        method: Strategy that produced the match ("text" or "pixel")
        top3: Three lowest-scoring positions (pixel mode only)
    """
    position: int
    row: int
    col: int
    cols: int
    score: float
    confidence: float
    method: str = "text"
    top3: List[MatchCandidate] = field(default_factory=list)

    @classmethod
    def at(cls, position: int, cols: int, score: float, confidence: float,
           method: str = "text", top3: Optional[List[MatchCandidate]] = None) -> 'MatchResult':
        """Build a result from a grid position, deriving row and column."""
        row, col = position_to_cell(position, cols)
        return cls(position=position, row=row, col=col, cols=cols, score=score,
                   confidence=confidence, method=method, top3=list(top3 or []))

    @property
    def is_exact(self) -> bool:
        """True for a perfect match (score 0, confidence 1)."""
        return self.score == 0 and self.confidence == 1.0


def position_to_cell(position: int, cols: int) -> Tuple[int, int]:
    """1-based (row, col) of a grid position."""
    return position // cols + 1, position % cols + 1
