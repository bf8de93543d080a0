"""
Core functionality for tiny-hist.
"""

from tiny_hist.core.base import SERIALIZATION_FORMATS, DistributionSummary

__all__ = [
    "DistributionSummary",
    "SERIALIZATION_FORMATS",
]
