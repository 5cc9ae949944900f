# tests/test_series_merger.py

"""Tests for merging variant price series into one timeline."""

import unittest

from dkprice.models.price_observation import PriceObservation, VariantSeries
from dkprice.services.series_merger import SeriesMerger, rows_to_observations


def _obs(ts: int, price: int = 100, variant: str | None = None) -> PriceObservation:
    return PriceObservation(
        timestamp_seconds=ts,
        price=price,
        seller_id="s",
        is_buy_box=True,
        variant_id=variant,
    )


class TestMerge(unittest.TestCase):
    """SeriesMerger.merge on grouped input."""

    def test_drops_non_positive_timestamps(self) -> None:
        series = VariantSeries(
            "v1", [_obs(0), _obs(5), _obs(-3), _obs(2)]
        )
        timeline = SeriesMerger.merge([series])
        self.assertEqual(
            [o.timestamp_seconds for o in timeline.observations], [2, 5]
        )

    def test_interleaves_variants_with_tags(self) -> None:
        a = VariantSeries("a", [_obs(1), _obs(3)])
        b = VariantSeries("b", [_obs(2), _obs(4)])
        timeline = SeriesMerger.merge([a, b])
        self.assertEqual(
            [(o.timestamp_seconds, o.variant_id) for o in timeline.observations],
            [(1, "a"), (2, "b"), (3, "a"), (4, "b")],
        )
        self.assertFalse(timeline.is_single_series)
        self.assertEqual(timeline.variant_ids, ["a", "b"])

    def test_sort_is_stable(self) -> None:
        a = VariantSeries("a", [_obs(5, price=1)])
        b = VariantSeries("b", [_obs(5, price=2)])
        timeline = SeriesMerger.merge([a, b])
        self.assertEqual([o.price for o in timeline.observations], [1, 2])

    def test_single_variant_is_single_series(self) -> None:
        timeline = SeriesMerger.merge([VariantSeries("a", [_obs(3), _obs(1)])])
        self.assertTrue(timeline.is_single_series)
        self.assertEqual(len(timeline), 2)
        self.assertEqual(
            [o.timestamp_seconds for o in timeline.series_for("a")], [1, 3]
        )

    def test_empty_input(self) -> None:
        timeline = SeriesMerger.merge([])
        self.assertEqual(timeline.observations, [])


class TestHistoryPayload(unittest.TestCase):
    """Both backend history shapes."""

    def test_variants_shape(self) -> None:
        payload = {
            "dkp_id": "42",
            "columns": [],
            "data": [],
            "variants": [
                {
                    "variant_id": "11",
                    "columns": ["time", "price", "seller_id", "is_buy_box"],
                    "data": [[300, 900, "s1", True], [100, 1000, "s1", True]],
                },
                {
                    "variant_id": "12",
                    "columns": ["time", "price", "seller_id", "is_buy_box"],
                    "data": [[200, 800, "s2", False], [0, 1, "x", False]],
                },
            ],
        }
        timeline = SeriesMerger.from_history_payload(payload)
        self.assertEqual(
            [(o.timestamp_seconds, o.variant_id) for o in timeline.observations],
            [(100, "11"), (200, "12"), (300, "11")],
        )
        self.assertFalse(timeline.observations[1].is_buy_box)

    def test_legacy_shape(self) -> None:
        payload = {
            "dkp_id": "42",
            "columns": ["time", "price", "seller_id", "is_buy_box"],
            "data": [
                [1700000300, 5000, "seller", True],
                [-5, 1, "bad", True],
                [1700000100, 5500, "seller", True],
            ],
        }
        timeline = SeriesMerger.from_history_payload(payload)
        self.assertEqual(
            [o.price for o in timeline.observations], [5500, 5000]
        )
        self.assertTrue(timeline.is_single_series)
        self.assertEqual(timeline.variant_ids, ["unknown"])

    def test_legacy_rows_with_variant_column(self) -> None:
        rows = [[10, 1, "s", True, "77"], [5, 2, "s", False]]
        observations = rows_to_observations(rows, [])
        self.assertEqual(
            [o.variant_id for o in observations], ["77", "unknown"]
        )

    def test_columns_reordered(self) -> None:
        rows = [[500, 20, False, "seller"]]
        observations = rows_to_observations(
            rows, ["price", "time", "is_buy_box", "seller_id"], "v"
        )
        self.assertEqual(observations[0].timestamp_seconds, 20)
        self.assertEqual(observations[0].price, 500)
        self.assertEqual(observations[0].seller_id, "seller")

    def test_malformed_row_dropped(self) -> None:
        observations = rows_to_observations(
            [["not-a-time", 1, "s", True], [10, 1, "s", True]], [], "v"
        )
        self.assertEqual(len(observations), 1)


if __name__ == "__main__":
    unittest.main()
