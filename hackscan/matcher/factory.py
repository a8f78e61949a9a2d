"""
Matcher Registry - Strategies are looked up by their short name.

Built-in strategies register themselves on import of
hackscan.matcher.strategies; third-party strategies use the same decorator.
"""

import logging
from typing import Any, Dict, List, Type

from .base import MatchStrategy

logger = logging.getLogger(__name__)


# name -> strategy class, in registration order
_MATCHERS: Dict[str, Type[MatchStrategy]] = {}


def register_strategy(cls: Type[MatchStrategy]) -> Type[MatchStrategy]:
    """
    Class decorator adding a matching strategy to the registry.

    Usage:
        @register_strategy
        class RowMajorStrategy(MatchStrategy):
            name = "row_major"
            description = "Row major - only runs that stay on one row"

            def match(self, targets, grid):
                ...

    A later registration under the same name replaces the earlier class.

    Raises:
        TypeError: If cls is not a MatchStrategy subclass
    """
    if not isinstance(cls, type) or not issubclass(cls, MatchStrategy):
        raise TypeError(f"{cls} must be a subclass of MatchStrategy")
    if cls.name in _MATCHERS and _MATCHERS[cls.name] is not cls:
        logger.debug(f"Strategy '{cls.name}' re-registered by {cls.__name__}")
    _MATCHERS[cls.name] = cls
    return cls


def get_strategy_class(name: str) -> Type[MatchStrategy]:
    """
    Registered class for a strategy name.

    Raises:
        ValueError: If no strategy has that name
    """
    try:
        return _MATCHERS[name]
    except KeyError:
        available = ", ".join(_MATCHERS)
        raise ValueError(f"Unknown strategy: {name}. Available: {available}") from None


def create_strategy(name: str, **kwargs: Any) -> MatchStrategy:
    """
    Instantiate a strategy by name.

    Args:
        name: "text", "pixel" or any registered name
        **kwargs: Constructor arguments (config=MatchConfig(...))

    Raises:
        ValueError: If no strategy has that name
    """
    return get_strategy_class(name)(**kwargs)


def get_strategy_names() -> List[str]:
    """Registered strategy names in registration order."""
    return list(_MATCHERS)


def get_strategy_info() -> List[Dict[str, str]]:
    """'name' and 'description' of every registered strategy, for CLI help."""
    return [{"name": name, "description": cls.description} for name, cls in _MATCHERS.items()]
