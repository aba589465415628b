"""
Ordered "first success wins" strategy runner used by the extractor and the
resolver. Each strategy is a named callable returning a value or None.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Generic, Iterable, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class Strategy(Generic[T]):
    name: str
    run: Callable[..., Optional[T]]


@dataclass(frozen=True)
class Outcome(Generic[T]):
    strategy: str
    value: T


def first_success(strategies: Iterable[Strategy[T]], *args: Any, **kwargs: Any) -> Optional[Outcome[T]]:
    """Run strategies in order and return the first non-None result with its name."""
    for strategy in strategies:
        value = strategy.run(*args, **kwargs)
        if value is not None:
            logger.debug(f"[Cascade] {strategy.name} succeeded")
            return Outcome(strategy.name, value)
    return None
