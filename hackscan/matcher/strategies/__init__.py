"""
Strategies Package - Concrete matching strategy implementations.

Import this module to register all built-in strategies.
"""

from .text import TextMatchStrategy
from .pixel import PixelMatchStrategy

__all__ = [
    "TextMatchStrategy",
    "PixelMatchStrategy",
]
