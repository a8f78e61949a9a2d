"""
Text Strategy - Aligns decoded code strings, exact first, then fuzzy.
"""

import logging
from typing import Optional, Sequence

from ...ocr.config import UNREADABLE_CODE
from ..base import MatchConfig, MatchStrategy, estimate_columns
from ..factory import register_strategy
from ..result import MatchResult

logger = logging.getLogger(__name__)


def code_cost(target: str, grid_code: str, config: MatchConfig) -> float:
    """
    Mismatch cost of one target code against one grid code.

    Equal codes cost 0, same-length codes cost their character Hamming
    distance, a target that is a strict prefix of the grid code (a dropped
    trailing glyph) costs prefix_cost, a shared first character costs
    first_char_cost, anything else mismatch_cost. An unreadable code on
    either side always costs mismatch_cost.
    """
    if UNREADABLE_CODE in (target, grid_code):
        return config.mismatch_cost
    if target == grid_code:
        return 0.0
    if len(target) == len(grid_code):
        return float(sum(1 for a, b in zip(target, grid_code) if a != b))
    if len(target) < len(grid_code) and grid_code.startswith(target):
        return config.prefix_cost
    if target and grid_code and target[0] == grid_code[0]:
        return config.first_char_cost
    return config.mismatch_cost


@register_strategy
class TextMatchStrategy(MatchStrategy):
    """
    Matches target codes against grid codes as strings.

    An exact run anywhere in the (circular) grid wins immediately. Otherwise
    every start position gets a fuzzy cost and the cheapest one is accepted
    if it stays under the fuzzy ceiling.
    """
    name = "text"
    description = "Text - exact then fuzzy comparison of decoded codes"

    def match(self, targets: Sequence[str], grid: Sequence[str]) -> Optional[MatchResult]:
        if not targets or not grid:
            return None
        if len(targets) < 2 or len(grid) < 4:
            return None

        cols = estimate_columns(len(grid))
        position = self.find_exact(targets, grid)
        if position is not None:
            return MatchResult.at(position, cols, 0.0, 1.0, method=self.name)

        return self.find_fuzzy(targets, grid, cols)

    @staticmethod
    def find_exact(targets: Sequence[str], grid: Sequence[str]) -> Optional[int]:
        """First position where every target code equals its grid code (unreadable codes never do)."""
        if UNREADABLE_CODE in targets:
            return None
        total = len(grid)
        for pos in range(total):
            if all(grid[(pos + t) % total] == code for t, code in enumerate(targets)):
                return pos
        return None

    def position_cost(self, targets: Sequence[str], grid: Sequence[str], pos: int) -> float:
        """Total fuzzy cost of the target run starting at pos."""
        total = len(grid)
        return sum(
            code_cost(code, grid[(pos + t) % total], self.config)
            for t, code in enumerate(targets)
        )

    def find_fuzzy(self, targets: Sequence[str], grid: Sequence[str],
                   cols: int) -> Optional[MatchResult]:
        """Cheapest position under the fuzzy ceiling, or None."""
        best_pos = -1
        best = float("inf")
        second = float("inf")

        for pos in range(len(grid)):
            cost = self.position_cost(targets, grid, pos)
            if cost < best:
                second = best
                best, best_pos = cost, pos
            elif cost < second:
                second = cost

        if best_pos < 0 or best > self.config.fuzzy_ceiling:
            logger.debug(f"No fuzzy match (best cost {best})")
            return None

        gap = second - best
        if gap > 0:
            confidence = max(self.config.confidence_floor, min(1.0, gap / len(targets)))
        else:
            confidence = self.config.confidence_floor

        return MatchResult.at(best_pos, cols, best, confidence, method=self.name)
