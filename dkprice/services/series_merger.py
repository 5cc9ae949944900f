# dkprice/services/series_merger.py

"""Merge per-variant price history into one chart-ready timeline."""

import logging
from collections.abc import Iterable, Sequence
from dataclasses import replace
from typing import Any

from dkprice.models.price_observation import (
    MergedTimeline,
    PriceObservation,
    VariantSeries,
)

logger = logging.getLogger("dkprice.series")

DEFAULT_COLUMNS: list[str] = ["time", "price", "seller_id", "is_buy_box"]
UNKNOWN_VARIANT = "unknown"


def _column_index(columns: Sequence[str]) -> dict[str, int]:
    """Map column name -> row position, falling back to the default order."""
    names = list(columns) if columns else DEFAULT_COLUMNS
    index = {name: pos for pos, name in enumerate(names)}
    for pos, name in enumerate(DEFAULT_COLUMNS):
        index.setdefault(name, pos)
    index.setdefault("variant_id", max(len(names), len(DEFAULT_COLUMNS)))
    return index


def _cell(row: Sequence[Any], index: dict[str, int], name: str) -> Any:
    pos = index[name]
    return row[pos] if pos < len(row) else None


def rows_to_observations(
    rows: Iterable[Sequence[Any]],
    columns: Sequence[str],
    variant_id: str | None = None,
) -> list[PriceObservation]:
    """Decode columnar history rows.

    When *variant_id* is None each row's own variant column is used, and
    rows without one are tagged ``"unknown"``.
    """
    index = _column_index(columns)
    observations: list[PriceObservation] = []
    for row in rows:
        try:
            tag = variant_id
            if tag is None:
                raw_tag = _cell(row, index, "variant_id")
                tag = str(raw_tag) if raw_tag else UNKNOWN_VARIANT
            observations.append(
                PriceObservation(
                    timestamp_seconds=int(_cell(row, index, "time") or 0),
                    price=int(_cell(row, index, "price") or 0),
                    seller_id=str(_cell(row, index, "seller_id") or ""),
                    is_buy_box=bool(_cell(row, index, "is_buy_box")),
                    variant_id=tag,
                )
            )
        except (TypeError, ValueError) as exc:
            logger.debug("Dropping malformed history row %r: %s", row, exc)
    return observations


class SeriesMerger:
    """Filters invalid timestamps and interleaves variant series by time."""

    @staticmethod
    def merge(series: Iterable[VariantSeries]) -> MergedTimeline:
        """Flatten, drop ``timestamp <= 0``, stable-sort ascending."""
        flattened: list[PriceObservation] = []
        dropped = 0
        for one in series:
            for obs in one.observations:
                if obs.timestamp_seconds <= 0:
                    dropped += 1
                    continue
                if obs.variant_id != one.variant_id:
                    obs = replace(obs, variant_id=one.variant_id)
                flattened.append(obs)
        if dropped:
            logger.info("Dropped %d observations with invalid time", dropped)

        flattened.sort(key=lambda o: o.timestamp_seconds)
        return MergedTimeline(observations=flattened)

    @staticmethod
    def merge_legacy(
        observations: Iterable[PriceObservation],
    ) -> MergedTimeline:
        """Filter and sort an ungrouped list, keeping each row's own tag."""
        survivors = [o for o in observations if o.timestamp_seconds > 0]
        survivors.sort(key=lambda o: o.timestamp_seconds)
        return MergedTimeline(observations=survivors)

    @staticmethod
    def series_from_payload(payload: dict[str, Any]) -> list[VariantSeries]:
        """Read the ``variants`` shape of a history response."""
        series: list[VariantSeries] = []
        for entry in payload.get("variants") or []:
            if not isinstance(entry, dict):
                continue
            variant_id = str(entry.get("variant_id") or UNKNOWN_VARIANT)
            series.append(
                VariantSeries(
                    variant_id=variant_id,
                    observations=rows_to_observations(
                        entry.get("data") or [],
                        entry.get("columns") or [],
                        variant_id,
                    ),
                )
            )
        return series

    @classmethod
    def from_history_payload(cls, payload: dict[str, Any]) -> MergedTimeline:
        """Merge either history shape the backend returns."""
        series = cls.series_from_payload(payload)
        if series:
            return cls.merge(series)
        return cls.merge_legacy(
            rows_to_observations(
                payload.get("data") or [],
                payload.get("columns") or [],
            )
        )
