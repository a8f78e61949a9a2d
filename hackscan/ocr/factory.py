"""
Code Reader Factory

Factory for creating code reader instances.
"""

import importlib
from typing import Dict, List, Type, Union

from .base import CodeReader


# Registry of available readers ("module.Class" paths load lazily)
_READER_REGISTRY: Dict[str, Union[str, Type[CodeReader]]] = {
    "template": "template_engine.TemplateCodeReader",
}

# Cache for loaded reader classes
_READER_CACHE: Dict[str, Type[CodeReader]] = {}


def _load_reader_class(reader_type: str) -> Type[CodeReader]:
    """Lazily load a reader class by type."""
    if reader_type in _READER_CACHE:
        return _READER_CACHE[reader_type]

    entry = _READER_REGISTRY[reader_type]
    if isinstance(entry, str):
        module_name, class_name = entry.rsplit(".", 1)
        module = importlib.import_module(f".{module_name}", package=__package__)
        reader_class = getattr(module, class_name)
    else:
        reader_class = entry

    _READER_CACHE[reader_type] = reader_class
    return reader_class


def create_reader(reader_type: str = "template", **config) -> CodeReader:
    """
    Create a code reader by type.

    Args:
        reader_type: Reader type identifier. Available types:
            - "template" (default): synthesized glyph templates
        **config: Reader-specific configuration options:
            For "template":
                - library: Shared TemplateLibrary
                - font_size: Template render size
                - font_path: Font file for template glyphs

    Returns:
        Configured CodeReader instance

    Raises:
        ValueError: If reader_type is not recognized

    Example:
        reader = create_reader()
        result = reader.read(image, grid_info)
        print(result.target_codes)
    """
    if reader_type not in _READER_REGISTRY:
        available = ", ".join(_READER_REGISTRY.keys())
        raise ValueError(f"Unknown reader type: {reader_type}. Available: {available}")

    reader_class = _load_reader_class(reader_type)

    if reader_type == "template":
        reader = reader_class(
            library=config.pop("library", None),
            **{k: config.pop(k) for k in ("font_size", "font_path") if k in config}
        )
    else:
        reader = reader_class()

    if config:
        reader.configure(**config)
    return reader


def register_reader(name: str, reader_class: type) -> None:
    """
    Register a custom code reader type.

    Args:
        name: Reader type identifier
        reader_class: CodeReader subclass

    Example:
        from hackscan.ocr import register_reader, CodeReader

        class TesseractReader(CodeReader):
            ...

        register_reader("tesseract", TesseractReader)
    """
    if not isinstance(reader_class, type) or not issubclass(reader_class, CodeReader):
        raise TypeError(f"{reader_class} must be a subclass of CodeReader")
    _READER_REGISTRY[name] = reader_class
    _READER_CACHE.pop(name, None)


def available_readers() -> List[str]:
    """
    List available reader types.

    Returns:
        List of registered reader type names
    """
    return list(_READER_REGISTRY.keys())
