"""
Base Strategy Module - Abstract base class for sequence matching strategies.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional, Sequence

from .result import MatchResult


# Number of target codes compared in pixel mode
TARGET_LENGTH = 4


@dataclass(frozen=True)
class MatchConfig:
    """
    Thresholds and weights used by the matching strategies.

    Attributes:
        fuzzy_ceiling: Highest total fuzzy cost still accepted as a match
        confidence_floor: Lowest confidence reported for a unique fuzzy best
        prefix_cost: Cost of a target code that is a prefix of the grid code
        first_char_cost: Cost of codes sharing only their first character
        mismatch_cost: Cost of unrelated codes
        ncc_weight: Weight of (1 - NCC) at full resolution
        coarse_ncc_weight: Weight of (1 - NCC) on the 2x2 block downsample
        hamming_weight: Weight of the binarized Hamming fraction
    """
    fuzzy_ceiling: float = 3.0
    confidence_floor: float = 0.1
    prefix_cost: float = 0.5
    first_char_cost: float = 1.0
    mismatch_cost: float = 2.0
    ncc_weight: float = 1.0
    coarse_ncc_weight: float = 1.0
    hamming_weight: float = 0.5


DEFAULT_MATCH_CONFIG = MatchConfig()


def estimate_columns(total_cells: int) -> int:
    """
    Column count for converting a flat grid position to row/col.

    80-ish and 60-ish grids are 10 wide; other sizes use the largest
    divisor between 10 and 7, else 10.
    """
    if 75 <= total_cells <= 85 or 55 <= total_cells <= 65:
        return 10
    for cols in range(10, 6, -1):
        if total_cells % cols == 0:
            return cols
    return 10


class MatchStrategy(ABC):
    """
    Abstract base class for all matching strategies.

    Subclasses must implement the match() method and define
    name and description class attributes.

    Attributes:
        name: Short identifier for the strategy
        description: Human-readable description for the CLI
    """
    name: str = "base"
    description: str = "Base strategy"

    def __init__(self, config: Optional[MatchConfig] = None):
        self.config = config or DEFAULT_MATCH_CONFIG

    @abstractmethod
    def match(self, targets: Sequence, grid: Sequence) -> Optional[MatchResult]:
        """
        Find where the target run occurs in the grid sequence.

        The grid is treated as circular: a run starting near the end
        continues at index 0.

        Args:
            targets: Target items (codes or normalized samples), left to right
            grid: Grid items, row-major

        Returns:
            MatchResult, or None when the inputs are too short or nothing fits
        """
        pass
