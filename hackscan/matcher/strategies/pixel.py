"""
Pixel Strategy - Aligns normalized samples directly, skipping glyph reading.
"""

import logging
from typing import List, Optional, Sequence

import numpy as np

from ..base import TARGET_LENGTH, MatchStrategy, estimate_columns
from ..factory import register_strategy
from ..metrics import PreparedSample, pair_distance
from ..result import MatchCandidate, MatchResult, position_to_cell

logger = logging.getLogger(__name__)


@register_strategy
class PixelMatchStrategy(MatchStrategy):
    """
    Matches target samples against grid samples by ensemble pixel distance.

    Each target/grid pair costs (1 - NCC) at full resolution, plus
    (1 - NCC) on a 2x2 block downsample that tolerates small misalignment,
    plus a weighted Hamming distance of the binarized samples.
    """
    name = "pixel"
    description = "Pixel - ensemble distance on normalized cell images"

    def distance_matrix(self, targets: Sequence[np.ndarray],
                        grid: Sequence[np.ndarray]) -> np.ndarray:
        """(targets x grid) pairwise ensemble distances."""
        prepared_targets = [PreparedSample(s) for s in targets]
        prepared_grid = [PreparedSample(s) for s in grid]
        matrix = np.empty((len(prepared_targets), len(prepared_grid)))
        for t, target in enumerate(prepared_targets):
            for g, cell in enumerate(prepared_grid):
                matrix[t, g] = pair_distance(
                    target, cell,
                    self.config.ncc_weight,
                    self.config.coarse_ncc_weight,
                    self.config.hamming_weight,
                )
        return matrix

    def position_scores(self, targets: Sequence[np.ndarray],
                        grid: Sequence[np.ndarray]) -> np.ndarray:
        """Summed distance of the target run at every start position."""
        matrix = self.distance_matrix(targets, grid)
        total = matrix.shape[1]
        scores = np.zeros(total)
        for t in range(matrix.shape[0]):
            # Row t aligned so index p holds the distance to grid[(p + t) % total]
            scores += np.roll(matrix[t], -t)
        return scores

    def match(self, targets: Sequence[np.ndarray],
              grid: Sequence[np.ndarray]) -> Optional[MatchResult]:
        if len(targets) < TARGET_LENGTH or len(grid) < TARGET_LENGTH:
            return None

        scores = self.position_scores(list(targets)[:TARGET_LENGTH], grid)
        cols = estimate_columns(len(grid))

        order = np.argsort(scores, kind="stable")
        best_pos = int(order[0])
        best = float(scores[order[0]])
        second = float(scores[order[1]])

        if second > 0 and second != best:
            confidence = min(1.0, (second - best) / second)
        else:
            confidence = 0.0

        top3: List[MatchCandidate] = []
        for pos in order[:3]:
            row, col = position_to_cell(int(pos), cols)
            top3.append(MatchCandidate(int(pos), row, col, float(scores[pos])))

        logger.debug(
            f"Pixel match at {best_pos} score {best:.3f}, "
            f"second {second:.3f}, confidence {confidence:.3f}"
        )
        return MatchResult.at(best_pos, cols, best, confidence, method=self.name, top3=top3)
