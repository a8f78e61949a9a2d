"""
Tracker Module - Continuous tracking on top of single-shot scans.

Every frame is scanned independently; the tracker only decides when the
reported position can be trusted:
  - Requires N consecutive frames agreeing on the same position
  - A failed frame drops back to SEARCHING
  - A frame reporting a different position restarts STABILIZING

Retrying is left to the caller, who simply keeps feeding frames.
"""

import logging
from enum import Enum, auto
from typing import List, Optional

from hackscan.matcher import MatchResult
from hackscan.ocr.frame import FrameLike
from hackscan.scanner import ScanResult, Scanner

logger = logging.getLogger(__name__)


__all__ = [
    "TrackingState",
    "MatchTracker",
]


class TrackingState(Enum):
    """
    State machine states for position tracking.

    States:
        SEARCHING: No match in the latest frame
        STABILIZING: Collecting agreeing frames for a candidate position
        LOCKED: Position confirmed by enough consecutive frames
    """
    SEARCHING = auto()
    STABILIZING = auto()
    LOCKED = auto()


class MatchTracker:
    """
    Confirms a match position over consecutive frames.

    State Flow:
        SEARCHING -> STABILIZING -> LOCKED
            ^             |            |
            |      other position      |
            |        (restart)         |
            |____ failed frame ________|
    """

    def __init__(self, scanner: Optional[Scanner] = None, stability_threshold: int = 3):
        """
        Initialize tracker.

        Args:
            scanner: Scanner used for every frame (created with defaults if None)
            stability_threshold: Consecutive agreeing frames required (default 3)
        """
        if stability_threshold < 1:
            raise ValueError("stability_threshold must be at least 1")

        self.scanner = scanner or Scanner()
        self.stability_threshold = stability_threshold

        self._state = TrackingState.SEARCHING
        self._frame_buffer: List[int] = []
        self._last_result: Optional[ScanResult] = None
        self._stable_match: Optional[MatchResult] = None

    @property
    def state(self) -> TrackingState:
        """Get current state machine state."""
        return self._state

    @property
    def last_result(self) -> Optional[ScanResult]:
        """Scan result of the most recent frame."""
        return self._last_result

    @property
    def stable_match(self) -> Optional[MatchResult]:
        """Confirmed match while LOCKED, else None."""
        return self._stable_match if self._state is TrackingState.LOCKED else None

    @property
    def is_locked(self) -> bool:
        return self._state is TrackingState.LOCKED

    def update(self, image: FrameLike) -> bool:
        """
        Scan a new frame and advance the state machine.

        Args:
            image: Next frame

        Returns:
            True if the position is confirmed (LOCKED) after this frame
        """
        result = self.scanner.scan(image)
        self._last_result = result

        if not result.matched:
            if self._state is not TrackingState.SEARCHING:
                logger.debug(f"State[{self._state.name}]: frame failed ({result.status.name}), searching")
            self._frame_buffer.clear()
            self._stable_match = None
            self._state = TrackingState.SEARCHING
            return False

        position = result.match.position
        if self._frame_buffer and self._frame_buffer[-1] != position:
            logger.debug(f"State[{self._state.name}]: position changed "
                         f"{self._frame_buffer[-1]} -> {position}, restarting")
            self._frame_buffer.clear()
            self._stable_match = None

        self._frame_buffer.append(position)
        if len(self._frame_buffer) > self.stability_threshold:
            self._frame_buffer.pop(0)

        if len(self._frame_buffer) < self.stability_threshold:
            self._state = TrackingState.STABILIZING
            logger.debug(f"State[STABILIZING]: collecting frames "
                         f"({len(self._frame_buffer)}/{self.stability_threshold})")
            return False

        if self._state is not TrackingState.LOCKED:
            logger.info(f"State[LOCKED]: position R{result.match.row} C{result.match.col} stable")
        self._state = TrackingState.LOCKED
        self._stable_match = result.match
        return True

    def reset(self) -> None:
        """Forget all history and start searching again."""
        self._frame_buffer.clear()
        self._last_result = None
        self._stable_match = None
        self._state = TrackingState.SEARCHING
