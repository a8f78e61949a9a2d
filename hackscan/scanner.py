"""
Scanner Module - Single-shot scan of one frame.

Runs the whole pipeline on a frame: grid detection, cell extraction, code
reading in every alphabet, text and pixel matching, and the choice between
them.

Winner selection:
  - An exact text match in any alphabet wins outright
  - Otherwise the best fuzzy text match wins if it is at least as
    confident as the pixel match
  - Otherwise the pixel match, if any
"""

import logging
import time
from dataclasses import dataclass, field
from enum import Enum, auto
from typing import List, Optional

from hackscan.matcher import (
    MatchConfig, MatchResult, MatchStrategy, create_strategy,
)
from hackscan.ocr import (
    Alphabet, DetectionConfig, GridDetector, GridInfo,
    TemplateCodeReader, TemplateLibrary, as_frame, extract_all_cells,
)
from hackscan.ocr.config import DEFAULT_CONFIG
from hackscan.ocr.frame import FrameLike
from hackscan.ocr.identifier import detect_charset

logger = logging.getLogger(__name__)


__all__ = [
    "ScanStatus",
    "ScanResult",
    "Scanner",
    "SCAN_STRATEGIES",
]

# Matching modes accepted by Scanner(strategy=...)
SCAN_STRATEGIES = ("auto", "text", "pixel")


class ScanStatus(Enum):
    """
    Outcome of a single scan.

    States:
        MATCHED: Target located in the grid
        NO_GRID: No regular 8-row grid in the frame
        NO_TARGET: Grid found but too few grid or target cells
        NO_MATCH: Cells read but no strategy produced a match
    """
    MATCHED = auto()
    NO_GRID = auto()
    NO_TARGET = auto()
    NO_MATCH = auto()


@dataclass
class ScanResult:
    """
    Result of one scan.

    Attributes:
        status: Outcome of the scan
        grid_info: Detected cell geometry (None when no grid)
        match: Winning match (None unless MATCHED)
        method: How the match was found, e.g. "numeric exact",
                "greek fuzzy(s=1.0)" or "pixel"
        alphabet: Alphabet of the winning text match
        detected_charset: Alphabet the target glyphs match most decisively
        target_codes: Target codes read in the winning alphabet
        grid_codes: Grid codes read in the winning alphabet
        processing_time_ms: Wall time of the scan
    """
    status: ScanStatus
    grid_info: Optional[GridInfo] = None
    match: Optional[MatchResult] = None
    method: str = ""
    alphabet: Optional[Alphabet] = None
    detected_charset: Optional[Alphabet] = None
    target_codes: List[str] = field(default_factory=list)
    grid_codes: List[str] = field(default_factory=list)
    processing_time_ms: float = 0.0

    @property
    def matched(self) -> bool:
        """True if the target was located."""
        return self.status is ScanStatus.MATCHED

    def describe(self) -> str:
        """One-line summary for logs and the CLI."""
        if not self.matched:
            return f"{self.status.name} ({self.processing_time_ms:.0f}ms)"
        m = self.match
        return (f"R{m.row} C{m.col} via {self.method} "
                f"conf={m.confidence * 100:.0f}% ({self.processing_time_ms:.0f}ms)")


@dataclass
class _TextCandidate:
    match: MatchResult
    alphabet: Alphabet
    target_codes: List[str]
    grid_codes: List[str]


class Scanner:
    """
    Single-shot scanner owning the template library and matching strategies.

    The template library is generated on first use and shared by every
    later scan, so a Scanner should be kept for the whole session.
    """

    def __init__(self, library: Optional[TemplateLibrary] = None,
                 detection_config: Optional[DetectionConfig] = None,
                 match_config: Optional[MatchConfig] = None,
                 alphabet: Optional[Alphabet] = None,
                 strategy: str = "auto"):
        """
        Initialize scanner.

        Args:
            library: Template library (created with defaults if None)
            detection_config: Grid detector thresholds
            match_config: Matching costs and weights
            alphabet: Only read codes in this alphabet (None = try all)
            strategy: "auto" (text and pixel), "text" or "pixel"

        Raises:
            ValueError: If strategy is not recognized
        """
        if strategy not in SCAN_STRATEGIES:
            available = ", ".join(SCAN_STRATEGIES)
            raise ValueError(f"Unknown strategy: {strategy}. Available: {available}")

        self.library = library or TemplateLibrary()
        self.detection_config = detection_config or DEFAULT_CONFIG
        self.alphabet = alphabet
        self.strategy = strategy

        self._detector = GridDetector(self.detection_config)
        self._reader = TemplateCodeReader(library=self.library)
        self._text: MatchStrategy = create_strategy("text", config=match_config)
        self._pixel: MatchStrategy = create_strategy("pixel", config=match_config)

    def scan(self, image: FrameLike) -> ScanResult:
        """
        Locate the target run in one frame.

        Args:
            image: PIL image, numpy array or ImageFrame

        Returns:
            ScanResult; failures are reported through its status
        """
        start_time = time.perf_counter()
        frame = as_frame(image)

        grid_info = self._detector.detect(frame)
        if grid_info is None:
            logger.info("Scan: grid not found")
            return self._finish(ScanResult(ScanStatus.NO_GRID), start_time)

        grid_count = len(grid_info.grid_cells)
        target_count = len(grid_info.target_cells or [])
        if grid_count < self.detection_config.min_grid_cells \
                or target_count < self.detection_config.min_target_cells:
            logger.info(f"Scan: not enough cells ({grid_count}/{target_count})")
            return self._finish(ScanResult(ScanStatus.NO_TARGET, grid_info=grid_info), start_time)

        grid_samples, target_samples = extract_all_cells(frame, grid_info)

        detected = detect_charset(self._reader.sample_halves(target_samples), self.library)
        logger.debug(f"Detected charset: {detected.value if detected else 'none'}")

        text_best = None
        if self.strategy in ("auto", "text"):
            text_best = self._best_text_match(target_samples, grid_samples)

        pixel_match = None
        if self.strategy in ("auto", "pixel"):
            pixel_match = self._pixel.match(target_samples, grid_samples)

        result = self._pick_winner(text_best, pixel_match)
        result.grid_info = grid_info
        result.detected_charset = detected
        return self._finish(result, start_time)

    def _best_text_match(self, target_samples, grid_samples) -> Optional[_TextCandidate]:
        """Lowest-scoring text match over the candidate alphabets (first wins ties)."""
        alphabets = [self.alphabet] if self.alphabet else list(Alphabet)
        best: Optional[_TextCandidate] = None

        for alphabet in alphabets:
            codes = self._reader.read_samples(target_samples, grid_samples, alphabet)
            match = self._text.match(codes.target_codes, codes.grid_codes)
            if match is not None and (best is None or match.score < best.match.score):
                best = _TextCandidate(match, alphabet, codes.target_codes, codes.grid_codes)

        if best is not None:
            logger.debug(f"{best.alphabet.value}: {' '.join(best.target_codes)}")
        return best

    @staticmethod
    def _pick_winner(text_best: Optional[_TextCandidate],
                     pixel_match: Optional[MatchResult]) -> ScanResult:
        if text_best is not None:
            codes = dict(
                alphabet=text_best.alphabet,
                target_codes=text_best.target_codes,
                grid_codes=text_best.grid_codes,
            )
            match = text_best.match
            name = text_best.alphabet.value
            if match.score == 0:
                return ScanResult(ScanStatus.MATCHED, match=match, method=f"{name} exact", **codes)
            if pixel_match is None or match.confidence >= pixel_match.confidence:
                return ScanResult(ScanStatus.MATCHED, match=match,
                                  method=f"{name} fuzzy(s={match.score})", **codes)
            return ScanResult(ScanStatus.MATCHED, match=pixel_match, method="pixel", **codes)

        if pixel_match is not None:
            return ScanResult(ScanStatus.MATCHED, match=pixel_match, method="pixel")

        logger.info("Scan: no match (all strategies failed)")
        return ScanResult(ScanStatus.NO_MATCH)

    @staticmethod
    def _finish(result: ScanResult, start_time: float) -> ScanResult:
        result.processing_time_ms = (time.perf_counter() - start_time) * 1000
        if result.matched:
            logger.info(f"Scan: {result.describe()}")
            for i, candidate in enumerate(result.match.top3, 1):
                logger.debug(f"  #{i} R{candidate.row}C{candidate.col} s={candidate.score:.3f}")
        return result
