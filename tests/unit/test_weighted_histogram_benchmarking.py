"""
Unit tests for WeightedHistogram statistics, size estimation and serialization.
"""

import json
import math
import unittest

from tiny_hist.algorithms.weighted_histogram import WeightedHistogram


class TestWeightedHistogramBenchmarking(unittest.TestCase):
    """Test cases for WeightedHistogram inspection hooks."""

    def test_get_stats_empty(self):
        """Test getting stats for an empty histogram."""
        hist = WeightedHistogram(max_bins=20, alpha=0.1)

        stats = hist.get_stats()

        self.assertEqual(stats["type"], "WeightedHistogram")
        self.assertEqual(stats["items_processed"], 0)
        self.assertEqual(stats["max_bins"], 20)
        self.assertEqual(stats["num_bins"], 0)
        self.assertEqual(stats["bin_utilization"], 0.0)
        self.assertEqual(stats["count"], 0.0)
        self.assertEqual(stats["mean"], 0.0)
        self.assertEqual(stats["variance"], 0.0)
        self.assertNotIn("min_value", stats)
        self.assertNotIn("value_span", stats)

    def test_get_stats_with_data(self):
        """Test getting stats for a histogram with data."""
        hist = WeightedHistogram(max_bins=10, alpha=0.1)
        for i in range(100):
            hist.update(float(i % 25))

        stats = hist.get_stats()

        self.assertEqual(stats["items_processed"], 100)
        self.assertEqual(stats["num_bins"], 10)
        self.assertEqual(stats["bin_utilization"], 1.0)
        self.assertAlmostEqual(stats["total_weight"], hist.count())
        self.assertEqual(stats["min_value"], hist.get_bins()[0][0])
        self.assertEqual(stats["max_value"], hist.get_bins()[-1][0])
        self.assertGreater(stats["value_span"], 0)
        self.assertLessEqual(stats["min_weight"], stats["max_weight"])
        self.assertGreater(stats["memory_bytes"], 0)

        # Error bounds are folded into the stats
        self.assertAlmostEqual(stats["effective_window"], 19.0)

    def test_error_bounds(self):
        hist = WeightedHistogram(max_bins=30, alpha=2 / 61)
        bounds = hist.error_bounds()
        self.assertAlmostEqual(bounds["effective_window"], 60.0)
        self.assertEqual(bounds["max_bins"], 30.0)

    def test_estimate_size_grows_with_bins(self):
        hist = WeightedHistogram(max_bins=50, alpha=0.1)
        empty_size = hist.estimate_size()

        for i in range(50):
            hist.update(float(i))

        self.assertGreater(hist.estimate_size(), empty_size)

        # Once at the bin budget the footprint stays bounded
        full_size = hist.estimate_size()
        for i in range(50, 5000):
            hist.update(float(i))
        self.assertEqual(len(hist.get_bins()), 50)
        self.assertLess(hist.estimate_size(), full_size * 1.5)

    def test_memory_limit(self):
        hist = WeightedHistogram(max_bins=10, alpha=0.1)
        self.assertTrue(hist.check_memory_limit())

        limited = WeightedHistogram(max_bins=10, alpha=0.1, memory_limit_bytes=10)
        limited.update(1.0)
        self.assertFalse(limited.check_memory_limit())

        stats = limited.get_stats()
        self.assertEqual(stats["memory_limit_bytes"], 10)
        self.assertGreater(stats["memory_usage_pct"], 100)

    def test_to_dict(self):
        hist = WeightedHistogram(max_bins=10, alpha=0.5)
        hist.update(1.0)
        hist.update(2.0)

        data = hist.to_dict()

        self.assertEqual(data["type"], "WeightedHistogram")
        self.assertEqual(data["items_processed"], 2)
        self.assertIsNone(data["memory_limit_bytes"])
        self.assertEqual(data["max_bins"], 10)
        self.assertEqual(data["alpha"], 0.5)
        self.assertEqual(data["total_weight"], 1.5)
        self.assertEqual(
            data["bins"],
            [{"value": 1.0, "weight": 0.5}, {"value": 2.0, "weight": 1.0}],
        )

    def test_serialization_roundtrip(self):
        hist = WeightedHistogram(max_bins=8, alpha=0.05, memory_limit_bytes=4096)
        for i in range(200):
            hist.update(math.sin(i) * 100)

        restored = WeightedHistogram.deserialize(hist.serialize())

        self.assertIsInstance(restored, WeightedHistogram)
        self.assertEqual(restored.max_bins, hist.max_bins)
        self.assertEqual(restored.alpha, hist.alpha)
        self.assertEqual(restored.items_processed, hist.items_processed)
        self.assertEqual(restored.get_bins(), hist.get_bins())
        self.assertEqual(restored.count(), hist.count())
        for q in (0.1, 0.5, 0.9):
            self.assertEqual(restored.quantile(q), hist.quantile(q))

        # Restored histograms keep accepting updates
        hist.update(12.5)
        restored.update(12.5)
        self.assertEqual(restored.get_bins(), hist.get_bins())

    def test_binary_serialization(self):
        hist = WeightedHistogram(max_bins=4, alpha=0.2)
        hist.update(3.0)

        payload = hist.serialize(format="binary")
        self.assertIsInstance(payload, bytes)

        restored = WeightedHistogram.deserialize(payload, format="binary")
        self.assertEqual(restored.get_bins(), [(3.0, 1.0)])

    def test_unsupported_format(self):
        hist = WeightedHistogram(max_bins=4, alpha=0.2)
        with self.assertRaises(ValueError):
            hist.serialize(format="xml")
        with self.assertRaises(ValueError):
            WeightedHistogram.deserialize("{}", format="xml")

    def test_from_dict_invalid(self):
        hist = WeightedHistogram(max_bins=3, alpha=0.5)
        hist.update(1.0)
        hist.update(2.0)
        valid = hist.to_dict()

        wrong_type = dict(valid, type="TDigest")
        with self.assertRaises(ValueError):
            WeightedHistogram.from_dict(wrong_type)

        missing = {k: v for k, v in valid.items() if k != "bins"}
        with self.assertRaises(ValueError):
            WeightedHistogram.from_dict(missing)

        negative = dict(valid, bins=[{"value": 1.0, "weight": -1.0}])
        with self.assertRaises(ValueError):
            WeightedHistogram.from_dict(negative)

        malformed = dict(valid, bins=[{"value": 1.0}])
        with self.assertRaises(ValueError):
            WeightedHistogram.from_dict(malformed)

        too_many = dict(
            valid, bins=[{"value": float(i), "weight": 1.0} for i in range(4)]
        )
        with self.assertRaises(ValueError):
            WeightedHistogram.from_dict(too_many)

        duplicate = dict(
            valid,
            bins=[{"value": 1.0, "weight": 1.0}, {"value": 1.0, "weight": 2.0}],
        )
        with self.assertRaises(ValueError):
            WeightedHistogram.from_dict(duplicate)

        bad_alpha = dict(valid, alpha=0.0)
        with self.assertRaises(ValueError):
            WeightedHistogram.from_dict(bad_alpha)

        string_alpha = dict(valid, alpha="0.5")
        with self.assertRaises(ValueError):
            WeightedHistogram.from_dict(string_alpha)

        with self.assertRaises(ValueError):
            WeightedHistogram.from_dict([valid])

    def test_deserialize_rejects_non_finite_bins(self):
        template = (
            '{"type": "WeightedHistogram", "items_processed": 2, '
            '"memory_limit_bytes": null, "max_bins": 5, "alpha": 0.5, '
            '"total_weight": 2.0, "bins": %s}'
        )
        for bins in (
            '[{"value": NaN, "weight": 1.0}]',
            '[{"value": 1.0, "weight": NaN}]',
            '[{"value": Infinity, "weight": 1.0}]',
            '[{"value": -Infinity, "weight": 1.0}]',
            '[{"value": 1.0, "weight": Infinity}]',
        ):
            with self.assertRaises(ValueError):
                WeightedHistogram.deserialize(template % bins)

    def test_deserialize_rejects_non_object_payload(self):
        for payload in ("[]", "3", '"WeightedHistogram"', "null"):
            with self.assertRaises(ValueError):
                WeightedHistogram.deserialize(payload)
        with self.assertRaises(ValueError):
            WeightedHistogram.deserialize("{not json")

    def test_from_dict_sorts_bins_and_recomputes_total(self):
        data = {
            "type": "WeightedHistogram",
            "items_processed": 3,
            "max_bins": 5,
            "alpha": 0.1,
            "total_weight": 999.0,
            "bins": [
                {"value": 5.0, "weight": 1.0},
                {"value": 2.0, "weight": 0.5},
            ],
        }

        hist = WeightedHistogram.from_dict(json.loads(json.dumps(data)))

        self.assertEqual(hist.get_bins(), [(2.0, 0.5), (5.0, 1.0)])
        self.assertEqual(hist.total_weight, 1.5)
        self.assertEqual(hist.items_processed, 3)


if __name__ == "__main__":
    unittest.main()
