"""
Cell Processor

Turns a cell region of a frame into a NormalizedSample: a CELL_SIZE x CELL_SIZE
grayscale image tight-cropped to the ink and contrast-stretched to 0-255.
Templates go through tight_crop_and_normalize() as well, so a glyph rendered
at any size converges to nearly the same sample.
"""

from typing import List, Optional, Tuple

import cv2
import numpy as np

from .config import CELL_SIZE, CONTRAST_NOISE_FLOOR, round_half_up
from .frame import ImageFrame, luma
from .result import CellBox, GridInfo


# Extra pixels taken around each cell box before tight-cropping
CELL_PADDING = 2

# Tight-crop margin as a fraction of the ink box's shorter side
TIGHT_MARGIN_RATIO = 0.1

# Columns searched for the gap between the two glyphs of a code
SPLIT_SEARCH_START = 10
SPLIT_SEARCH_END = 22


def blank_sample(size: int = CELL_SIZE) -> np.ndarray:
    """All-black sample used for crops that fall outside the frame."""
    return np.zeros((size, size), dtype=np.uint8)


def ink_bounds(gray: np.ndarray) -> Tuple[int, int, int, int]:
    """
    Tight bounding box of pixels brighter than the min/max midpoint.

    Returns:
        (x_min, x_max, y_min, y_max), inclusive; the whole image if nothing
        is above the midpoint
    """
    h, w = gray.shape
    threshold = (int(gray.min()) + int(gray.max())) / 2
    ys, xs = np.nonzero(gray > threshold)
    if xs.size == 0:
        return 0, w - 1, 0, h - 1
    return int(xs.min()), int(xs.max()), int(ys.min()), int(ys.max())


def stretch_contrast(gray: np.ndarray) -> np.ndarray:
    """Linearly stretch to 0-255 when the range exceeds the noise floor."""
    lo = int(gray.min())
    hi = int(gray.max())
    value_range = hi - lo
    if value_range <= CONTRAST_NOISE_FLOOR:
        return gray.copy()
    stretched = (gray.astype(np.float32) - lo) / value_range * 255.0
    return np.floor(stretched + 0.5).astype(np.uint8)


def tight_crop_and_normalize(gray: np.ndarray, size: int = CELL_SIZE) -> np.ndarray:
    """
    Tight-crop a grayscale region to its ink, resize and stretch contrast.

    Args:
        gray: 2-D uint8 region (light ink on dark background)
        size: Output edge length

    Returns:
        size x size uint8 NormalizedSample
    """
    if gray.size == 0:
        return blank_sample(size)

    h, w = gray.shape
    x0, x1, y0, y1 = ink_bounds(gray)

    margin = max(1, round_half_up(min(x1 - x0, y1 - y0) * TIGHT_MARGIN_RATIO))
    x0 = max(0, x0 - margin)
    x1 = min(w - 1, x1 + margin)
    y0 = max(0, y0 - margin)
    y1 = min(h - 1, y1 + margin)

    crop = gray[y0:y1 + 1, x0:x1 + 1]
    if crop.shape[0] >= size and crop.shape[1] >= size:
        interpolation = cv2.INTER_AREA
    else:
        interpolation = cv2.INTER_LINEAR
    scaled = cv2.resize(crop, (size, size), interpolation=interpolation)

    return stretch_contrast(scaled)


def extract_cell(frame: ImageFrame, box: CellBox, padding: int = CELL_PADDING) -> np.ndarray:
    """
    Extract a cell and normalize it to a CELL_SIZE x CELL_SIZE sample.

    The crop is clamped to the frame so jittery boxes near the edges still
    produce a sample.

    Args:
        frame: Source frame
        box: Cell rectangle in frame coordinates
        padding: Pixels added on every side before tight-cropping

    Returns:
        NormalizedSample (uint8, CELL_SIZE x CELL_SIZE)
    """
    if box is None:
        raise ValueError("extract_cell requires a cell box")

    sx = max(0, box.x - padding)
    sy = max(0, box.y - padding)
    sw = min(frame.width - sx, box.w + padding * 2)
    sh = min(frame.height - sy, box.h + padding * 2)
    if sw < 1 or sh < 1:
        return blank_sample()

    gray = luma(frame.data[sy:sy + sh, sx:sx + sw])
    return tight_crop_and_normalize(gray)


def extract_all_cells(
    frame: ImageFrame,
    grid_info: GridInfo
) -> Tuple[List[np.ndarray], List[np.ndarray]]:
    """
    Extract every grid cell and target cell from a frame.

    Returns:
        (grid_samples, target_samples); target_samples is empty when the
        grid has no target strip
    """
    if grid_info is None:
        raise ValueError("extract_all_cells requires grid geometry")

    grid_samples = [extract_cell(frame, box) for box in grid_info.grid_cells]
    target_samples = [extract_cell(frame, box) for box in (grid_info.target_cells or [])]
    return grid_samples, target_samples


def binarize(sample: np.ndarray) -> np.ndarray:
    """Threshold at the min/max midpoint; result holds only 0 and 255."""
    threshold = (int(sample.min()) + int(sample.max())) / 2
    return np.where(sample > threshold, 255, 0).astype(np.uint8)


def find_split_column(sample: np.ndarray) -> int:
    """
    Column separating the two glyphs of a code.

    Picks the least-inked column in the central band, preferring the one
    closest to the middle on ties.
    """
    width = sample.shape[1]
    center = width // 2
    start = min(SPLIT_SEARCH_START, center)
    end = max(min(SPLIT_SEARCH_END, width - 1), center)

    ink = (binarize(sample) > 0).sum(axis=0)[start:end + 1]
    candidates = np.flatnonzero(ink == ink.min()) + start
    return int(candidates[np.argmin(np.abs(candidates - center))])


def split_halves(sample: np.ndarray, size: Optional[int] = None) -> Tuple[np.ndarray, np.ndarray]:
    """
    Split a code sample into left and right glyph samples.

    Each half is re-normalized on its own so it is directly comparable with
    single-glyph templates.

    Returns:
        (left, right) NormalizedSamples
    """
    size = size or sample.shape[0]
    split = find_split_column(sample)
    left = tight_crop_and_normalize(sample[:, :split], size)
    right = tight_crop_and_normalize(sample[:, split:], size)
    return left, right
