"""
Detection Configuration

Named thresholds used by the grid detector and the cell processor.
"""

import math
from dataclasses import dataclass


# Grid layout (fixed by the game)
EXPECTED_ROWS = 8
EXPECTED_COLS = 10
EXPECTED_CELLS = EXPECTED_ROWS * EXPECTED_COLS  # 80 cells
TARGET_COUNT = 4

# Normalized sample edge length (pixels)
CELL_SIZE = 32

# Contrast range below which a sample is left unstretched
CONTRAST_NOISE_FLOOR = 10

# Sentinel code for an unreadable cell
UNREADABLE_CODE = "??"


def round_half_up(value: float) -> int:
    """Nearest integer with halves rounded up (2.5 -> 3, -2.5 -> -2)."""
    return int(math.floor(value + 0.5))


@dataclass(frozen=True)
class DetectionConfig:
    """
    Tunable thresholds for grid and target localization.

    Attributes:
        block_divisor: Adaptive threshold window is (frame width // block_divisor) | 1
        threshold_bias: Constant C subtracted from the local mean
        brightness_floor: Lowest allowed global brightness floor
        brightness_offset: Floor is max(brightness_floor, global mean + offset)
        row_density: Bright-pixel row fraction that starts a text band
        min_band_rows: Bands thinner than this are noise
        merge_median_ratio: Fallback merge threshold as a fraction of the median gap
        merge_jump_ratio: Minimum ratio between adjacent sorted gaps to treat as a row break
        merge_min_gaps: Gap count required before jump detection is trusted
        min_group_density: Minimum band peak in a grid row group (binary path)
        max_relative_variance: Spacing variance / mean^2 above which a row group is irregular
        column_smooth_ratio: Column smoothing half-width as a fraction of row spacing
        min_column_peak: Smoothed column peak below which there is no grid (binary path)
        extent_peak_ratio: Fraction of the column peak that bounds the grid extent
        min_extent_rows: Grid extent must be at least this many row spacings wide
        trim_density: Raw column density used to trim the extent (binary path)
        cell_width_ratio: Cell width as a fraction of column pitch
        cell_height_ratio: Cell height as a fraction of row spacing
        target_search_rows: How many row spacings above the grid to look for the target
        target_min_band_rows: Bands thinner than this are never the target
        target_min_variance: Peak column variance below which a band is empty
        target_variance_ratio: Fraction of peak variance that counts as ink
        target_min_width: Minimum target width relative to grid width
        target_max_width: Maximum target width relative to grid width
        target_max_offset: Maximum center offset relative to grid width
        gray_detrend_min: Minimum detrend half-width (grayscale path)
        gray_detrend_divisor: Detrend half-width is frame height // divisor
        gray_band_threshold: Detrended brightness that starts a band
        gray_min_group_density: Minimum band peak in a grid row group (grayscale path)
        gray_min_column_peak: Smoothed variance peak below which there is no grid
        gray_trim_ratio: Fraction of variance peak used to trim the extent
        min_grid_cells: Fewest grid cells a scan will accept
        min_target_cells: Fewest target cells a scan will accept
    """
    block_divisor: int = 30
    threshold_bias: float = 8.0
    brightness_floor: float = 40.0
    brightness_offset: float = 20.0
    row_density: float = 0.02
    min_band_rows: int = 3
    merge_median_ratio: float = 0.4
    merge_jump_ratio: float = 2.5
    merge_min_gaps: int = 8
    min_group_density: float = 0.035
    max_relative_variance: float = 0.15
    column_smooth_ratio: float = 0.4
    min_column_peak: float = 0.01
    extent_peak_ratio: float = 0.15
    min_extent_rows: float = 3.0
    trim_density: float = 0.01
    cell_width_ratio: float = 0.92
    cell_height_ratio: float = 0.85
    target_search_rows: float = 8.0
    target_min_band_rows: int = 2
    target_min_variance: float = 5.0
    target_variance_ratio: float = 0.1
    target_min_width: float = 0.20
    target_max_width: float = 0.65
    target_max_offset: float = 0.3
    gray_detrend_min: int = 20
    gray_detrend_divisor: int = 40
    gray_band_threshold: float = 3.0
    gray_min_group_density: float = 4.0
    gray_min_column_peak: float = 10.0
    gray_trim_ratio: float = 0.05
    min_grid_cells: int = 30
    min_target_cells: int = 3


DEFAULT_CONFIG = DetectionConfig()
