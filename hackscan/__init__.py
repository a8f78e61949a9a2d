"""
hackscan - locate the code grid and target strip in a photo and find the
target sequence inside the grid.

Subpackages:
    hackscan.ocr: grid detection, cell normalization, glyph templates
    hackscan.matcher: text and pixel sequence matching strategies
"""

__version__ = "0.3.0"
