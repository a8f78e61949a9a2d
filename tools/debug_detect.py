"""
Diagnostic script for grid detection on photos.
Prints band counts for both detection strategies and the located cell geometry.
"""

import sys
from pathlib import Path

from PIL import Image

sys.path.insert(0, str(Path(__file__).parent.parent))

from hackscan.ocr import detect_grid, describe_detection


def analyze_image(image_path: str):
    """Print detection diagnostics for one image."""
    print(f"\n{'='*60}")
    print(f"Analyzing: {image_path}")
    print(f"{'='*60}")

    img = Image.open(image_path)
    print(f"Frame: {img.width}x{img.height}")

    for line in describe_detection(img):
        print(line)

    grid_info = detect_grid(img)
    if grid_info is None:
        return

    print(f"\nStrategy: {grid_info.strategy}")
    print(f"{'Row':>3} {'X0':>6} {'X9':>6} {'Y':>6} {'W':>4} {'H':>4}")
    for row in range(grid_info.rows):
        first = grid_info.cell_at(row, 0)
        last = grid_info.cell_at(row, grid_info.cols - 1)
        print(f"{row + 1:>3} {first.x:>6} {last.x:>6} {first.y:>6} {first.w:>4} {first.h:>4}")

    if grid_info.target_cells:
        print("\nTarget cells:")
        for i, box in enumerate(grid_info.target_cells, 1):
            print(f"  #{i} x={box.x} y={box.y} {box.w}x{box.h}")
    else:
        print("\nNo target strip found")


if __name__ == "__main__":
    paths = sys.argv[1:]
    if not paths:
        debug_dir = Path("debug")
        paths = [str(p) for p in sorted(debug_dir.glob("*.png"))[-3:]]

    if not paths:
        print("Usage: python tools/debug_detect.py IMAGE [IMAGE ...]")
        sys.exit(1)

    for path in paths:
        analyze_image(path)
