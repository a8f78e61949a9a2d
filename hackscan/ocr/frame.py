"""
Image Frame Model

RGBA frame container and grayscale conversion shared by every stage.
"""

from dataclasses import dataclass
from typing import Union

import numpy as np
from PIL import Image


@dataclass(frozen=True)
class ImageFrame:
    """
    One captured RGBA frame.

    Attributes:
        width: Frame width in pixels
        height: Frame height in pixels
        data: Row-major RGBA array, shape (height, width, 4), dtype uint8
    """
    width: int
    height: int
    data: np.ndarray

    @classmethod
    def from_array(cls, array: np.ndarray) -> 'ImageFrame':
        """
        Build a frame from a grayscale, RGB or RGBA array.

        Args:
            array: uint8 array of shape (h, w), (h, w, 3) or (h, w, 4)

        Returns:
            ImageFrame with an RGBA copy of the pixels

        Raises:
            ValueError: If the array shape is not an image
        """
        array = np.asarray(array)
        if array.ndim == 2:
            rgba = np.empty(array.shape + (4,), dtype=np.uint8)
            rgba[..., :3] = array[..., None]
            rgba[..., 3] = 255
        elif array.ndim == 3 and array.shape[2] == 3:
            rgba = np.empty(array.shape[:2] + (4,), dtype=np.uint8)
            rgba[..., :3] = array
            rgba[..., 3] = 255
        elif array.ndim == 3 and array.shape[2] == 4:
            rgba = array.astype(np.uint8, copy=True)
        else:
            raise ValueError(f"Unsupported image shape: {array.shape}")

        rgba.setflags(write=False)
        height, width = rgba.shape[:2]
        return cls(width=width, height=height, data=rgba)

    @classmethod
    def from_pil(cls, image: Image.Image) -> 'ImageFrame':
        """Build a frame from a PIL image of any mode."""
        return cls.from_array(np.array(image.convert("RGBA")))


FrameLike = Union[ImageFrame, Image.Image, np.ndarray]


def as_frame(image: FrameLike) -> ImageFrame:
    """Coerce a PIL image or numpy array into an ImageFrame."""
    if image is None:
        raise ValueError("A frame is required")
    if isinstance(image, ImageFrame):
        return image
    if isinstance(image, Image.Image):
        return ImageFrame.from_pil(image)
    return ImageFrame.from_array(image)


def luma(pixels: np.ndarray) -> np.ndarray:
    """
    Luma conversion (0.299R + 0.587G + 0.114B), rounded half up.

    Args:
        pixels: Array whose last axis holds at least R, G, B

    Returns:
        uint8 array with the channel axis removed
    """
    rgb = pixels[..., :3].astype(np.float32)
    value = 0.299 * rgb[..., 0] + 0.587 * rgb[..., 1] + 0.114 * rgb[..., 2]
    return np.clip(np.floor(value + 0.5), 0, 255).astype(np.uint8)


def to_grayscale(frame: ImageFrame) -> np.ndarray:
    """Grayscale copy of a whole frame, shape (height, width)."""
    return luma(frame.data)
