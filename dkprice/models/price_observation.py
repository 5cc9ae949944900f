# dkprice/models/price_observation.py

"""Price history models handed from the backend to rendering."""

from dataclasses import dataclass, field


@dataclass(frozen=True)
class PriceObservation:
    """A single price point; ``timestamp_seconds <= 0`` marks a bad row."""

    timestamp_seconds: int
    price: int
    seller_id: str
    is_buy_box: bool
    variant_id: str | None = None


@dataclass
class VariantSeries:
    """Observations for one variant, in whatever order the source sent."""

    variant_id: str
    observations: list[PriceObservation] = field(
        default_factory=lambda: list[PriceObservation]()
    )


@dataclass
class MergedTimeline:
    """All surviving observations in ascending timestamp order."""

    observations: list[PriceObservation] = field(
        default_factory=lambda: list[PriceObservation]()
    )

    @property
    def variant_ids(self) -> list[str | None]:
        """Distinct variant tags in first-seen order."""
        seen: dict[str | None, None] = {}
        for obs in self.observations:
            seen.setdefault(obs.variant_id, None)
        return list(seen)

    @property
    def is_single_series(self) -> bool:
        """True when rendering should draw one line, not one per variant."""
        return len(self.variant_ids) <= 1

    def series_for(
        self, variant_id: str | None,
    ) -> list[PriceObservation]:
        """Observations for one variant, still in timeline order."""
        return [
            o for o in self.observations
            if o.variant_id == variant_id
        ]

    def __len__(self) -> int:
        return len(self.observations)
