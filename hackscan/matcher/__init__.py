"""
Matcher Package - Locates the target run inside the grid sequence.

Strategies are pluggable and selected by name, in the same registry style
the readers use.

Public API:
    - MatchResult / MatchCandidate: Match position and confidence
    - MatchConfig: Fuzzy costs and pixel ensemble weights
    - MatchStrategy: Abstract base for strategies
    - create_strategy(): Factory function ("text" or "pixel")
    - find_match(): Pixel-ensemble matching of normalized samples
    - find_match_by_text(): Exact-then-fuzzy matching of code strings
    - parse_row_codes() / parse_target_codes() / normalize_codes():
      turning general OCR text into codes

Usage:
    from hackscan.matcher import find_match_by_text

    match = find_match_by_text(["28", "98", "94", "55"], grid_codes)
    if match:
        print(f"Row {match.row}, column {match.col} ({match.confidence:.0%})")
"""

from typing import Optional, Sequence

import numpy as np

# Core data structures
from .result import MatchCandidate, MatchResult, position_to_cell

# Strategy framework
from .base import DEFAULT_MATCH_CONFIG, MatchConfig, MatchStrategy, estimate_columns
from .factory import (
    create_strategy,
    get_strategy_class,
    get_strategy_names,
    get_strategy_info,
    register_strategy,
)

# Metrics and text parsing
from .metrics import block_downsample, hamming, ncc, pair_distance
from .codes import normalize_codes, parse_row_codes, parse_target_codes

# Import strategies to register them
from . import strategies


def find_match(target_samples: Sequence[np.ndarray], grid_samples: Sequence[np.ndarray],
               config: Optional[MatchConfig] = None) -> Optional[MatchResult]:
    """Pixel-ensemble match of target samples against grid samples."""
    return create_strategy("pixel", config=config).match(target_samples, grid_samples)


def find_match_by_text(target_codes: Optional[Sequence[str]], grid_codes: Optional[Sequence[str]],
                       config: Optional[MatchConfig] = None) -> Optional[MatchResult]:
    """Exact-then-fuzzy match of target codes against grid codes."""
    return create_strategy("text", config=config).match(target_codes, grid_codes)


__all__ = [
    # Data structures
    "MatchCandidate",
    "MatchResult",
    "position_to_cell",
    # Strategy framework
    "DEFAULT_MATCH_CONFIG",
    "MatchConfig",
    "MatchStrategy",
    "estimate_columns",
    "create_strategy",
    "get_strategy_class",
    "get_strategy_names",
    "get_strategy_info",
    "register_strategy",
    # Metrics
    "block_downsample",
    "hamming",
    "ncc",
    "pair_distance",
    # Text parsing
    "normalize_codes",
    "parse_row_codes",
    "parse_target_codes",
    # Shortcuts
    "find_match",
    "find_match_by_text",
]
