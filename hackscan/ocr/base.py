"""
Code Reader Interface

A code reader turns the cell boxes found by the grid detector into code
strings, one per cell.
"""

import logging
from abc import ABC, abstractmethod
from typing import Optional

from .frame import FrameLike
from .result import CodeReadResult, GridInfo
from .templates import Alphabet

logger = logging.getLogger(__name__)


class CodeReader(ABC):
    """
    Base class for code readers.

    The built-in "template" reader compares cells against synthesized glyph
    templates. Other engines subclass this and are made available by name
    through register_reader().
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Short registry name, e.g. "template"."""

    @abstractmethod
    def read(
        self,
        image: FrameLike,
        grid_info: GridInfo,
        alphabet: Optional[Alphabet] = None
    ) -> CodeReadResult:
        """
        Read the target strip and all grid cells of a frame.

        Args:
            image: Frame the grid was detected in
            grid_info: Cell geometry from the grid detector
            alphabet: Alphabet to read in; None lets the reader pick one

        Returns:
            CodeReadResult with the chosen alphabet, the target codes (empty
            when grid_info has no target strip) and the grid codes in
            row-major order. Unreadable cells hold UNREADABLE_CODE.
        """

    def configure(self, **kwargs) -> None:
        """Apply reader options. Options the reader does not know are logged and ignored."""
        for key in kwargs:
            logger.warning(f"{self.name}: ignoring unknown option '{key}'")
