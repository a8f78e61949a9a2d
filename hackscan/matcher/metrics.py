"""
Similarity Metrics - Pixel distances between normalized samples.
"""

import numpy as np

from ..ocr.processor import binarize


def ncc(a: np.ndarray, b: np.ndarray) -> float:
    """
    Normalized cross-correlation in [-1, 1].

    Returns 0 when either input is constant, -1 on a shape mismatch.
    """
    if a.shape != b.shape:
        return -1.0
    da = a.astype(np.float64).ravel()
    db = b.astype(np.float64).ravel()
    da = da - da.mean()
    db = db - db.mean()
    den = np.sqrt(np.dot(da, da) * np.dot(db, db))
    if den == 0:
        return 0.0
    return float(np.dot(da, db) / den)


def hamming(a: np.ndarray, b: np.ndarray) -> float:
    """Fraction of differing pixels between two binary images (1.0 on shape mismatch)."""
    if a.shape != b.shape:
        return 1.0
    return float(np.count_nonzero(a != b)) / a.size


def block_downsample(sample: np.ndarray, block: int = 2) -> np.ndarray:
    """Average non-overlapping block x block tiles (32x32 -> 16x16)."""
    h, w = sample.shape
    h -= h % block
    w -= w % block
    tiles = sample[:h, :w].astype(np.float64).reshape(h // block, block, w // block, block)
    return tiles.mean(axis=(1, 3))


class PreparedSample:
    """A normalized sample with its coarse and binary views computed once."""

    __slots__ = ("pixels", "coarse", "binary")

    def __init__(self, sample: np.ndarray):
        self.pixels = sample
        self.coarse = block_downsample(sample)
        self.binary = binarize(sample)


def pair_distance(a: PreparedSample, b: PreparedSample,
                  ncc_weight: float = 1.0, coarse_weight: float = 1.0,
                  hamming_weight: float = 0.5) -> float:
    """Ensemble distance between two samples (0 for identical inked samples)."""
    return (ncc_weight * (1.0 - ncc(a.pixels, b.pixels))
            + coarse_weight * (1.0 - ncc(a.coarse, b.coarse))
            + hamming_weight * hamming(a.binary, b.binary))
