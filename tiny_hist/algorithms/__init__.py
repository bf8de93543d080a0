"""
Algorithm implementations for tiny-hist.
"""

from tiny_hist.algorithms.weighted_histogram import Bin, WeightedHistogram

__all__ = [
    "Bin",
    "WeightedHistogram",
]
