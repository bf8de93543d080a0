"""
Base class for tiny-hist distribution summaries.

A distribution summary consumes a stream of numbers and keeps a bounded
amount of state from which it answers quantile, CDF and moment queries.
This module defines that contract together with the plumbing shared by
every implementation: processed-item accounting, JSON serialization,
memory estimation and statistics reporting.
"""

import abc
import json
import sys
from typing import Any, Dict, Optional, Type, TypeVar, Union

SummaryType = TypeVar("SummaryType", bound="DistributionSummary")

# Serialization formats understood by serialize() and deserialize()
SERIALIZATION_FORMATS = ("json", "binary")


class DistributionSummary(abc.ABC):
    """
    Abstract base class for bounded-memory summaries of numeric streams.

    Implementations provide update(), the five distribution queries,
    merge() and dictionary conversion. Everything else is built on top of
    those methods here.
    """

    def __init__(self, memory_limit_bytes: Optional[int] = None):
        """
        Args:
            memory_limit_bytes: Optional soft limit on the estimated memory
                                footprint, checked by check_memory_limit().
        """
        self._memory_limit_bytes = memory_limit_bytes
        self._items_processed = 0

    @property
    def items_processed(self) -> int:
        """Number of items accepted by update() since creation or clear()."""
        return self._items_processed

    @abc.abstractmethod
    def update(self, item: float) -> None:
        """
        Add an item from the stream.

        Implementations call super().update(item) for every accepted item;
        rejected items must not reach this method.
        """
        self._items_processed += 1

    @abc.abstractmethod
    def quantile(self, q: float) -> float:
        """
        Estimate the value at quantile q, with q between 0.0 and 1.0.
        """

    @abc.abstractmethod
    def cdf(self, x: float) -> float:
        """
        Estimate the fraction of the distribution at or below x.
        """

    @abc.abstractmethod
    def mean(self) -> float:
        pass

    @abc.abstractmethod
    def variance(self) -> float:
        pass

    @abc.abstractmethod
    def count(self) -> float:
        """
        Number of observations represented, possibly weighted.
        """

    def query(self, q: float) -> float:
        """Shorthand for quantile(q)."""
        return self.quantile(q)

    @abc.abstractmethod
    def merge(self: SummaryType, other: SummaryType) -> SummaryType:
        """
        Combine this summary with another into a new summary.

        Raises:
            TypeError: If other is a different kind of summary.
            ValueError: If the two summaries are configured differently.
        """

    def _check_same_type(self, other: Any) -> None:
        if not isinstance(other, self.__class__):
            raise TypeError(
                f"Cannot merge {self.__class__.__name__} with {other.__class__.__name__}"
            )

    def _combine_items_processed(self, other: "DistributionSummary") -> int:
        return self._items_processed + other._items_processed

    @abc.abstractmethod
    def to_dict(self) -> Dict[str, Any]:
        """
        Snapshot the summary as a JSON-compatible dictionary.

        Implementations start from _base_dict() and add their own state.
        """

    def _base_dict(self) -> Dict[str, Any]:
        return {
            "type": self.__class__.__name__,
            "items_processed": self._items_processed,
            "memory_limit_bytes": self._memory_limit_bytes,
        }

    @classmethod
    @abc.abstractmethod
    def from_dict(cls: Type[SummaryType], data: Dict[str, Any]) -> SummaryType:
        """
        Rebuild a summary from the output of to_dict().

        Raises:
            ValueError: If the dictionary does not describe a valid summary.
        """

    @staticmethod
    def _check_format(format: str) -> None:
        if format not in SERIALIZATION_FORMATS:
            raise ValueError(f"Unsupported serialization format: {format}")

    def serialize(self, format: str = "json") -> Union[str, bytes]:
        """
        Serialize the summary.

        Args:
            format: 'json' for a JSON string, or 'binary' for the same
                    document encoded as UTF-8 bytes.

        Returns:
            The serialized summary.

        Raises:
            ValueError: If the format is not supported.
        """
        self._check_format(format)
        document = json.dumps(self.to_dict())
        if format == "binary":
            return document.encode("utf-8")
        return document

    @classmethod
    def deserialize(
        cls: Type[SummaryType], data: Union[str, bytes], format: str = "json"
    ) -> SummaryType:
        """
        Rebuild a summary from the output of serialize().

        Both formats accept either str or bytes input.

        Raises:
            ValueError: If the format is not supported or the payload is
                        not a valid summary.
        """
        cls._check_format(format)
        if isinstance(data, bytes):
            data = data.decode("utf-8")
        return cls.from_dict(json.loads(data))

    def estimate_size(self) -> int:
        """
        Rough memory footprint in bytes.

        Covers the object itself and its attribute dictionary; subclasses
        add the containers they own.
        """
        return sys.getsizeof(self) + sys.getsizeof(vars(self))

    def check_memory_limit(self) -> bool:
        """
        True when no limit is configured or the estimate is within it.
        """
        limit = self._memory_limit_bytes
        return limit is None or self.estimate_size() <= limit

    def clear(self) -> None:
        """
        Drop all summarized data, keeping the configuration.

        Subclasses reset their own state and call super().clear().
        """
        self._items_processed = 0

    def error_bounds(self) -> Dict[str, float]:
        """
        Accuracy characteristics of the summary; empty unless overridden.
        """
        return {}

    def get_stats(self) -> Dict[str, Any]:
        """
        Collect a snapshot of the summary for monitoring and debugging.

        Subclasses extend the dictionary returned here.

        Returns:
            Type, processed items, memory usage, the distribution moments
            and whatever error_bounds() reports.
        """
        memory_bytes = self.estimate_size()
        stats: Dict[str, Any] = {
            "type": self.__class__.__name__,
            "items_processed": self._items_processed,
            "memory_bytes": memory_bytes,
            "count": self.count(),
            "mean": self.mean(),
            "variance": self.variance(),
        }

        if self._memory_limit_bytes is not None:
            stats["memory_limit_bytes"] = self._memory_limit_bytes
            stats["memory_usage_pct"] = memory_bytes / self._memory_limit_bytes * 100

        stats.update(self.error_bounds())
        return stats
