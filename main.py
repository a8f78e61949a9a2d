"""
hackscan - Entry Point

Scans photos of the hack grid and reports where the target codes are.

Example:
    python main.py shot.png
    python main.py shot.png --charset greek      # Only read Greek glyphs
    python main.py f1.png f2.png f3.png --track  # Treat files as consecutive frames
"""

import sys
import logging
import argparse
from pathlib import Path
from typing import List, Optional

from PIL import Image

from hackscan.ocr import DEBUG_DIR, Alphabet, TemplateLibrary, save_debug_image
from hackscan.scanner import SCAN_STRATEGIES, ScanResult, Scanner
from hackscan.settings import detection_config_from_settings, load_settings, save_settings
from hackscan.tracker import MatchTracker

logger = logging.getLogger(__name__)


def setup_logging(verbose: bool) -> None:
    """Configure logging - output to both console and file."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
        handlers=[
            logging.StreamHandler(),  # Console output
            logging.FileHandler("hackscan.log", mode='w', encoding='utf-8')  # File output
        ]
    )


class Application:
    """
    Command line application controller.

    Merges saved settings with command line flags, then scans every image
    either independently or as a tracked frame sequence.
    """

    def __init__(self, args: argparse.Namespace):
        """
        Initialize the application.

        Args:
            args: Parsed command line arguments (override saved settings)
        """
        self.args = args

        # Load persistent settings
        self.settings = load_settings()

        # Effective options: CLI flags override saved settings
        self.debug_mode = args.debug or self.settings.get("debug_enabled", False)
        self.strategy = args.strategy or self.settings.get("strategy_name") or "auto"
        charset = args.charset or self.settings.get("charset")
        self.alphabet: Optional[Alphabet] = Alphabet.from_name(charset) if charset else None
        self.stability_threshold = int(self.settings.get("stability_threshold", 3))

        library = TemplateLibrary(font_path=args.font) if args.font else TemplateLibrary()
        self.scanner = Scanner(
            library=library,
            detection_config=detection_config_from_settings(self.settings),
            alphabet=self.alphabet,
            strategy=self.strategy,
        )

        if args.save:
            self._save_settings()

    def _save_settings(self) -> None:
        self.settings["strategy_name"] = self.strategy
        self.settings["charset"] = self.alphabet.value if self.alphabet else None
        self.settings["debug_enabled"] = self.debug_mode
        save_settings(self.settings)
        logger.info("Settings saved")

    def run(self, paths: List[str]) -> int:
        """
        Scan every image.

        Returns:
            Exit code: 0 if at least one scan matched (or the tracker locked)
        """
        logger.info(f"Scanning {len(paths)} image(s), strategy={self.strategy}, "
                    f"charset={self.alphabet.value if self.alphabet else 'auto'}")

        if self.args.track:
            return self._run_tracked(paths)

        matched = 0
        for path in paths:
            image = self._open(path)
            if image is None:
                continue
            result = self.scanner.scan(image)
            self._report(path, result)
            if self.debug_mode:
                self._save_debug(path, image, result)
            matched += result.matched

        return 0 if matched else 1

    def _run_tracked(self, paths: List[str]) -> int:
        tracker = MatchTracker(self.scanner, stability_threshold=self.stability_threshold)
        for path in paths:
            image = self._open(path)
            if image is None:
                continue
            locked = tracker.update(image)
            self._report(path, tracker.last_result, suffix=f" [{tracker.state.name}]")
            if locked:
                match = tracker.stable_match
                print(f"Locked: row {match.row}, column {match.col}")
                return 0

        print(f"Not locked after {len(paths)} frame(s)")
        return 1

    @staticmethod
    def _open(path: str) -> Optional[Image.Image]:
        try:
            with Image.open(path) as img:
                img.load()
                return img.copy()
        except OSError as e:
            logger.error(f"Cannot open {path}: {e}")
            print(f"{path}: cannot open image")
            return None

    @staticmethod
    def _report(path: str, result: ScanResult, suffix: str = "") -> None:
        print(f"{path}: {result.describe()}{suffix}")
        if result.matched and result.target_codes:
            print(f"  target {' '.join(result.target_codes)} ({result.alphabet.value})")

    @staticmethod
    def _save_debug(path: str, image: Image.Image, result: ScanResult) -> None:
        out = DEBUG_DIR / f"debug_{Path(path).stem}.png"
        save_debug_image(
            image, result.grid_info, str(out),
            match=result.match,
            grid_codes=result.grid_codes,
            summary=result.describe(),
        )
        logger.info(f"Debug image saved: {out}")


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="hackscan - Locate the target code sequence in a grid photo"
    )
    parser.add_argument(
        "images",
        nargs="+",
        help="Image files to scan"
    )
    parser.add_argument(
        "--charset", "-c",
        choices=[a.value for a in Alphabet],
        help="Only read codes in this alphabet (default: try all)"
    )
    parser.add_argument(
        "--strategy", "-s",
        choices=SCAN_STRATEGIES,
        help="Matching strategy (default: auto = text and pixel)"
    )
    parser.add_argument(
        "--font",
        help="Font file used to render glyph templates"
    )
    parser.add_argument(
        "--track", "-t",
        action="store_true",
        help="Treat images as consecutive frames and report when the position is stable"
    )
    parser.add_argument(
        "--debug", "-d",
        action="store_true",
        help="Save annotated debug images to ./debug"
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Log per-stage details"
    )
    parser.add_argument(
        "--save",
        action="store_true",
        help="Remember --charset, --strategy and --debug in config.json"
    )
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    """Scan the given images and print the match position."""
    args = parse_args(argv)
    setup_logging(args.verbose)

    application = Application(args)
    return application.run(args.images)


if __name__ == "__main__":
    sys.exit(main())
