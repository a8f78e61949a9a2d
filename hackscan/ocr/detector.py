"""
Grid Detector

Locates the 8x10 code grid and the 4-code target strip in a photo using
projection analysis. Two strategies are tried in order:

1. binary: adaptive threshold, then bright-pixel row/column projections
2. grayscale: detrended row brightness and column variance, which copes
   better with camera glare and uneven lighting

Nothing here raises for "not found": a missing grid is None and a missing
target strip is GridInfo.target_cells = None.
"""

import logging
from dataclasses import dataclass
from typing import List, Optional, Tuple

import cv2
import numpy as np

from .config import (
    DEFAULT_CONFIG,
    EXPECTED_COLS,
    EXPECTED_ROWS,
    TARGET_COUNT,
    DetectionConfig,
    round_half_up,
)
from .frame import FrameLike, as_frame, to_grayscale
from .result import CellBox, GridInfo

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Band:
    """Horizontal run of rows whose projection exceeds a threshold (end exclusive)."""
    start: int
    end: int
    peak: float

    @property
    def center(self) -> float:
        return (self.start + self.end) / 2

    @property
    def height(self) -> int:
        return self.end - self.start


@dataclass(frozen=True)
class RowGroup:
    """Eight consecutive bands forming the grid rows."""
    rows: Tuple[Band, ...]
    start_index: int
    spacing: float
    relative_variance: float

    @property
    def top(self) -> int:
        return self.rows[0].start

    @property
    def bottom(self) -> int:
        return self.rows[-1].end


@dataclass(frozen=True)
class TargetBand:
    """Band range and horizontal ink extent of the target strip."""
    first_index: int
    last_index: int
    left: int
    right: int


# ------------------------------------------------------------------
# Projection helpers
# ------------------------------------------------------------------

def _runs(mask: np.ndarray) -> List[Tuple[int, int]]:
    """(start, end) pairs of consecutive True values, end exclusive."""
    padded = np.concatenate(([False], mask.astype(bool), [False]))
    edges = np.flatnonzero(np.diff(padded.astype(np.int8)))
    return [(int(s), int(e)) for s, e in zip(edges[::2], edges[1::2])]


def _box_mean(values: np.ndarray, half: int) -> np.ndarray:
    """Mean over a window of +/- half samples, shrinking at the edges."""
    n = len(values)
    csum = np.concatenate(([0.0], np.cumsum(values, dtype=np.float64)))
    idx = np.arange(n)
    lo = np.clip(idx - half, 0, n)
    hi = np.clip(idx + half + 1, 0, n)
    return (csum[hi] - csum[lo]) / (hi - lo)


def adaptive_threshold(gray: np.ndarray, block_size: int, bias: float,
                       config: DetectionConfig = DEFAULT_CONFIG) -> np.ndarray:
    """
    Local-mean threshold with a global brightness floor.

    A pixel is bright (255) when it is at least the floor
    max(brightness_floor, global_mean + brightness_offset) and brighter than
    its block mean minus bias. The block window is clamped at the borders.

    Returns:
        BinaryImage of the same shape (0/255 uint8)
    """
    height, width = gray.shape
    half = block_size // 2
    floor = max(config.brightness_floor, float(gray.mean()) + config.brightness_offset)

    integral = cv2.integral(gray, sdepth=cv2.CV_64F)

    ys = np.arange(height)
    xs = np.arange(width)
    y1 = np.maximum(0, ys - half)
    y2 = np.minimum(height - 1, ys + half) + 1
    x1 = np.maximum(0, xs - half)
    x2 = np.minimum(width - 1, xs + half) + 1

    sums = (integral[np.ix_(y2, x2)] - integral[np.ix_(y1, x2)]
            - integral[np.ix_(y2, x1)] + integral[np.ix_(y1, x1)])
    area = np.outer(y2 - y1, x2 - x1)
    mean = sums / area

    pixels = gray.astype(np.float64)
    bright = (pixels >= floor) & (pixels > mean - bias)
    return np.where(bright, 255, 0).astype(np.uint8)


def block_size_for(width: int, config: DetectionConfig = DEFAULT_CONFIG) -> int:
    """Odd adaptive-threshold window for a frame width."""
    return (width // config.block_divisor) | 1


def find_peaks(projection: np.ndarray, threshold: float) -> List[Band]:
    """Runs of the projection strictly above threshold, with their maxima."""
    bands = []
    for start, end in _runs(projection > threshold):
        bands.append(Band(start, end, float(projection[start:end].max())))
    return bands


def _merge_threshold(gaps: List[int], config: DetectionConfig) -> float:
    """
    Gap size at or below which two bands belong to the same row.

    Uses the largest ratio jump in the sorted gaps when there are enough gaps
    and at least one full grid's worth of row breaks above it. Falls back to
    a fraction of the median gap.
    """
    ordered = sorted(gaps)
    row_breaks = EXPECTED_ROWS - 1

    if len(ordered) >= config.merge_min_gaps:
        best_ratio = 0.0
        best_index = -1
        for i in range(len(ordered) - 1):
            if len(ordered) - i - 1 < row_breaks:
                break
            ratio = ordered[i + 1] / max(ordered[i], 1)
            if ratio > best_ratio:
                best_ratio, best_index = ratio, i
        if best_index >= 0 and best_ratio >= config.merge_jump_ratio:
            return float(ordered[best_index])

    median = ordered[len(ordered) // 2]
    return max(2.0, median * config.merge_median_ratio)


def merge_bands(bands: List[Band], config: DetectionConfig = DEFAULT_CONFIG) -> List[Band]:
    """
    Merge sub-bands of the same text row (split glyphs, dot patterns).

    Returns the input unchanged when there are at most 8 bands or when the
    merge would leave fewer than 8.
    """
    if len(bands) <= EXPECTED_ROWS:
        return bands

    gaps = [b.start - a.end for a, b in zip(bands, bands[1:])]
    threshold = _merge_threshold(gaps, config)

    merged = [bands[0]]
    for band in bands[1:]:
        last = merged[-1]
        if band.start - last.end <= threshold:
            merged[-1] = Band(last.start, band.end, max(last.peak, band.peak))
        else:
            merged.append(band)

    if len(merged) < EXPECTED_ROWS:
        return bands
    return merged


def find_best_row_group(bands: List[Band], min_density: float,
                        config: DetectionConfig = DEFAULT_CONFIG) -> Optional[RowGroup]:
    """
    Most regular, densest run of 8 consecutive bands.

    Score is relative spacing variance / (mean peak^2 + 1e-4); lowest wins,
    earliest on ties.
    """
    if len(bands) < EXPECTED_ROWS:
        return None

    best: Optional[RowGroup] = None
    best_score = float("inf")

    for i in range(len(bands) - EXPECTED_ROWS + 1):
        group = bands[i:i + EXPECTED_ROWS]
        if min(b.peak for b in group) < min_density:
            continue

        centers = np.array([b.center for b in group])
        spacings = np.diff(centers)
        mean_spacing = float(spacings.mean())
        if mean_spacing <= 0:
            continue
        relative_variance = float(spacings.var()) / (mean_spacing * mean_spacing)
        if relative_variance > config.max_relative_variance:
            continue

        density = sum(b.peak for b in group) / EXPECTED_ROWS
        score = relative_variance / (density * density + 1e-4)
        if score < best_score:
            best_score = score
            best = RowGroup(tuple(group), i, mean_spacing, relative_variance)

    return best


def find_column_extent(profile: np.ndarray, raw: np.ndarray, spacing: float,
                       min_peak: float, trim_threshold: Optional[float],
                       config: DetectionConfig = DEFAULT_CONFIG) -> Optional[Tuple[int, int]]:
    """
    Horizontal grid extent from a column profile.

    The profile is box-smoothed, the widest run above extent_peak_ratio of
    its peak is taken and then trimmed to the first and last raw columns
    above trim_threshold (a fraction of the peak when trim_threshold is None).

    Returns:
        (left, right) with right exclusive, or None
    """
    half = max(3, round_half_up(spacing * config.column_smooth_ratio))
    smooth = _box_mean(profile, half)

    peak = float(smooth.max()) if smooth.size else 0.0
    if peak < min_peak:
        return None

    left, right, widest = -1, -1, 0
    for start, end in _runs(smooth > peak * config.extent_peak_ratio):
        if end - start > widest:
            left, right, widest = start, end, end - start

    if left < 0 or right - left < spacing * config.min_extent_rows:
        return None

    if trim_threshold is None:
        trim_threshold = peak * config.gray_trim_ratio
    inked = np.flatnonzero(raw[left:right] > trim_threshold)
    if inked.size:
        right = left + int(inked[-1]) + 1
        left = left + int(inked[0])
    return left, right


def build_grid_cells(group: RowGroup, left: float, right: float,
                     cols: int = EXPECTED_COLS,
                     config: DetectionConfig = DEFAULT_CONFIG) -> List[CellBox]:
    """Row-major grid boxes: equal column slots centered on each row band."""
    pitch = (right - left) / cols
    cell_w = pitch * config.cell_width_ratio
    cell_h = group.spacing * config.cell_height_ratio

    cells = []
    for row in group.rows:
        for c in range(cols):
            cx = left + (c + 0.5) * pitch
            cells.append(CellBox.from_center(cx, row.center, cell_w, cell_h))
    return cells


def find_target_band(bands: List[Band], group: RowGroup, grid_left: int, grid_right: int,
                     image: np.ndarray,
                     config: DetectionConfig = DEFAULT_CONFIG) -> Optional[TargetBand]:
    """
    Band above the grid whose ink spans roughly 4 of the 10 grid columns.

    Scans upward from the grid until a band is more than target_search_rows
    row spacings away. Adjacent qualifying bands (large glyphs split into
    upper/lower parts) merge; otherwise the candidate with the higher peak
    wins.
    """
    grid_width = grid_right - grid_left
    if grid_width <= 0:
        return None
    grid_center = (grid_left + grid_right) / 2
    first_row_center = group.rows[0].center

    candidates = []
    for i in range(group.start_index - 1, -1, -1):
        band = bands[i]
        if first_row_center - band.center > group.spacing * config.target_search_rows:
            break
        if band.height < config.target_min_band_rows:
            continue

        variance = image[band.start:band.end].astype(np.float64).var(axis=0)
        peak_var = float(variance.max())
        if peak_var < config.target_min_variance:
            continue

        inked = np.flatnonzero(variance > peak_var * config.target_variance_ratio)
        if inked.size == 0:
            continue
        t_left, t_right = int(inked[0]), int(inked[-1])
        if t_right <= t_left:
            continue

        width_ratio = (t_right - t_left) / grid_width
        offset = abs((t_left + t_right) / 2 - grid_center) / grid_width
        if config.target_min_width <= width_ratio <= config.target_max_width \
                and offset < config.target_max_offset:
            candidates.append((i, t_left, t_right, band.peak))

    if not candidates:
        return None

    candidates.sort(key=lambda c: c[0])
    first, left, right, peak = candidates[0]
    last = first
    for (index, t_left, t_right, band_peak), previous in zip(candidates[1:], candidates):
        if index == previous[0] + 1:
            last = index
            left = min(left, t_left)
            right = max(right, t_right)
            peak = max(peak, band_peak)
        elif band_peak > peak:
            first = last = index
            left, right, peak = t_left, t_right, band_peak

    return TargetBand(first, last, left, right)


def build_target_cells(start: int, end: int, left: float, right: float,
                       count: int = TARGET_COUNT) -> List[CellBox]:
    """Split the target strip into equal cells spanning the band rows."""
    cell_w = (right - left) / count
    height = end - start
    cy = (start + end) / 2

    cells = []
    for i in range(count):
        cx = left + (i + 0.5) * cell_w
        cells.append(CellBox(
            x=max(0, round_half_up(cx - cell_w / 2)),
            y=start,
            w=max(1, round_half_up(cell_w)),
            h=max(1, height),
            cx=cx,
            cy=cy,
            area=round_half_up(cell_w * height),
        ))
    return cells


# ------------------------------------------------------------------
# Strategies
# ------------------------------------------------------------------

def binary_row_bands(gray: np.ndarray, config: DetectionConfig = DEFAULT_CONFIG
                     ) -> Tuple[np.ndarray, List[Band]]:
    """Adaptive-threshold image and its row bands (before merging)."""
    binary = adaptive_threshold(gray, block_size_for(gray.shape[1], config),
                                config.threshold_bias, config)
    projection = (binary == 255).mean(axis=1)
    bands = [b for b in find_peaks(projection, config.row_density)
             if b.height >= config.min_band_rows]
    return binary, bands


def grayscale_row_bands(gray: np.ndarray, config: DetectionConfig = DEFAULT_CONFIG) -> List[Band]:
    """Row bands of the detrended row-mean brightness (before merging)."""
    height = gray.shape[0]
    row_mean = gray.astype(np.float64).mean(axis=1)
    half = max(config.gray_detrend_min, round_half_up(height / config.gray_detrend_divisor))
    detrended = np.maximum(0.0, row_mean - _box_mean(row_mean, half))
    return [b for b in find_peaks(detrended, config.gray_band_threshold)
            if b.height >= config.min_band_rows]


def _assemble(bands: List[Band], group: RowGroup, extent: Tuple[int, int],
              image: np.ndarray, strategy: str, config: DetectionConfig) -> GridInfo:
    left, right = extent
    grid_cells = build_grid_cells(group, left, right, EXPECTED_COLS, config)

    target_cells = None
    target = find_target_band(bands, group, left, right, image, config)
    if target is not None:
        start = bands[target.first_index].start
        end = bands[target.last_index].end
        target_cells = build_target_cells(start, end, target.left, target.right)

    return GridInfo(grid_cells=grid_cells, target_cells=target_cells,
                    rows=EXPECTED_ROWS, cols=EXPECTED_COLS, strategy=strategy)


def find_grid_binary(gray: np.ndarray, config: DetectionConfig = DEFAULT_CONFIG) -> Optional[GridInfo]:
    """Primary strategy on the adaptive-threshold image."""
    binary, raw_bands = binary_row_bands(gray, config)
    if len(raw_bands) < EXPECTED_ROWS:
        return None
    bands = merge_bands(raw_bands, config)

    group = find_best_row_group(bands, config.min_group_density, config)
    if group is None:
        return None

    rows = binary[group.top:group.bottom] == 255
    column_density = rows.mean(axis=0)
    extent = find_column_extent(column_density, column_density, group.spacing,
                                config.min_column_peak, config.trim_density, config)
    if extent is None:
        return None

    return _assemble(bands, group, extent, binary, "binary", config)


def find_grid_grayscale(gray: np.ndarray, config: DetectionConfig = DEFAULT_CONFIG) -> Optional[GridInfo]:
    """Fallback strategy on detrended grayscale projections."""
    raw_bands = grayscale_row_bands(gray, config)
    if len(raw_bands) < EXPECTED_ROWS:
        return None
    bands = merge_bands(raw_bands, config)

    group = find_best_row_group(bands, config.gray_min_group_density, config)
    if group is None:
        return None

    column_variance = gray[group.top:group.bottom].astype(np.float64).var(axis=0)
    extent = find_column_extent(column_variance, column_variance, group.spacing,
                                config.gray_min_column_peak, None, config)
    if extent is None:
        return None

    return _assemble(bands, group, extent, gray, "grayscale", config)


class GridDetector:
    """Runs the detection strategies in order with one configuration."""

    def __init__(self, config: Optional[DetectionConfig] = None):
        self.config = config or DEFAULT_CONFIG

    def detect(self, image: FrameLike) -> Optional[GridInfo]:
        """
        Locate grid and target cells in a frame.

        Returns:
            GridInfo, or None when no regular 8-row grid is found
        """
        frame = as_frame(image)
        gray = to_grayscale(frame)

        result = find_grid_binary(gray, self.config)
        if result is None:
            logger.debug("Binary projection found no grid, trying grayscale")
            result = find_grid_grayscale(gray, self.config)

        if result is None:
            logger.debug(f"No grid in {frame.width}x{frame.height} frame")
        else:
            logger.debug(
                f"Grid via {result.strategy}: {len(result.grid_cells)} cells, "
                f"target {len(result.target_cells) if result.target_cells else 0}"
            )
        return result

    def describe(self, image: FrameLike) -> List[str]:
        """Diagnostic summary of both strategies, one line per fact."""
        frame = as_frame(image)
        gray = to_grayscale(frame)
        lines = []

        _, raw = binary_row_bands(gray, self.config)
        lines.append(f"BIN: {len(raw)}->{len(merge_bands(raw, self.config))} bands")
        result = find_grid_binary(gray, self.config)
        lines.append(_summary("BIN", result))

        raw = grayscale_row_bands(gray, self.config)
        lines.append(f"GS: {len(raw)}->{len(merge_bands(raw, self.config))} bands")
        result = find_grid_grayscale(gray, self.config)
        lines.append(_summary("GS", result))

        if result is not None:
            first = result.grid_cells[0]
            lines.append(f"Grid y={first.y} cell={first.w}x{first.h}")
            if result.target_cells:
                target = result.target_cells[0]
                lines.append(f"Tgt y={target.y} w={target.w}")
        return lines


def _summary(label: str, result: Optional[GridInfo]) -> str:
    if result is None:
        return f"{label}: no grid"
    targets = len(result.target_cells) if result.target_cells else 0
    return f"{label}: {len(result.grid_cells)}c tgt:{targets}"


def detect_grid(image: FrameLike, config: Optional[DetectionConfig] = None) -> Optional[GridInfo]:
    """Convenience wrapper around GridDetector(config).detect()."""
    return GridDetector(config).detect(image)


def describe_detection(image: FrameLike, config: Optional[DetectionConfig] = None) -> List[str]:
    """Human-readable detection diagnostics for a frame."""
    return GridDetector(config).describe(image)
