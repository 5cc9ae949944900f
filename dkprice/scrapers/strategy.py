# dkprice/scrapers/strategy.py

"""Ordered fallback chains of independently fallible strategies."""

import logging
from abc import ABC, abstractmethod
from collections.abc import Iterable
from typing import Generic, TypeVar

C = TypeVar("C")
R = TypeVar("R")


class ExtractionStrategy(ABC, Generic[C, R]):
    """One way of getting a result out of a context.

    Implementations return ``None`` when they find nothing.  They may also
    raise; :func:`first_result` treats that exactly like ``None``.
    """

    name: str = "strategy"

    @abstractmethod
    def attempt(self, context: C) -> R | None:
        """Try to produce a result from *context*."""
        ...


def first_result(
    strategies: Iterable[ExtractionStrategy[C, R]],
    context: C,
    logger: logging.Logger,
) -> R | None:
    """Run *strategies* in order and return the first non-``None`` result."""
    for strategy in strategies:
        try:
            result = strategy.attempt(context)
        except Exception as exc:
            logger.debug(
                "Strategy %s failed: %s", strategy.name, exc,
                exc_info=True,
            )
            continue
        if result is not None:
            logger.info("Strategy %s succeeded", strategy.name)
            return result
        logger.debug("Strategy %s found nothing", strategy.name)
    return None
