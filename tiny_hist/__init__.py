"""
tiny-hist - Recency-weighted Streaming Histograms

tiny-hist is a Python library for summarizing numeric data streams in bounded
memory with histograms whose bins decay exponentially, so that quantile and
moment estimates favour recent observations.
"""

__version__ = "0.1.0"

# Import main classes to make them available at the top level
from tiny_hist.algorithms.weighted_histogram import Bin, WeightedHistogram
from tiny_hist.core.base import DistributionSummary

__all__ = [
    # Core base class
    "DistributionSummary",
    # Algorithm implementations
    "Bin",
    "WeightedHistogram",
]
