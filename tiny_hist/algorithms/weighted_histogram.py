"""
Exponentially weighted streaming histogram for tiny-hist.

This module provides a bounded-memory histogram whose bins are decayed on
every insertion, so that recent values carry more weight than old ones.
It answers approximate quantile, CDF, mean and variance queries without
storing the raw stream.

Each insertion either increments the bin with an identical value or
creates a new unit-weight bin, scales every other bin's weight by
(1 - alpha), and then merges the two closest bins until the histogram is
back within its bin budget. The unit of time is one sample, not seconds.

References:
    - Ben-Haim, Y., & Tom-Tov, E. (2010).
      A streaming parallel decision tree algorithm.
      Journal of Machine Learning Research, 11, 849-872.
"""

import math
import sys
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple, Type, TypeVar

import structlog

from tiny_hist.core.base import DistributionSummary

logger = structlog.get_logger(__name__)

# Type variable for the class itself (for from_dict)
WeightedHistogramType = TypeVar("WeightedHistogramType", bound="WeightedHistogram")


@dataclass
class Bin:
    """
    A bin in the weighted histogram.

    Attributes:
        value: The representative value of the bin.
        weight: The accumulated, decayed number of observations in the bin.
    """

    value: float
    weight: float = 1.0

    def __post_init__(self) -> None:
        self.value = float(self.value)
        self.weight = float(self.weight)
        if not math.isfinite(self.value):
            raise ValueError(f"Bin value must be finite, got {self.value}")
        if not math.isfinite(self.weight) or self.weight < 0:
            raise ValueError(
                f"Bin weight must be finite and non-negative, got {self.weight}"
            )

    def to_dict(self) -> Dict[str, float]:
        """Serialize the bin to a dictionary."""
        return {"value": self.value, "weight": self.weight}

    @classmethod
    def from_dict(cls, data: Dict[str, float]) -> "Bin":
        """Deserialize a bin from a dictionary."""
        if "value" not in data or "weight" not in data:
            raise ValueError("Bin dictionary missing 'value' or 'weight'")
        return cls(value=data["value"], weight=data["weight"])


def _ewma(old: float, new: float, alpha: float) -> float:
    return old * (1 - alpha) + new * alpha


class WeightedHistogram(DistributionSummary):
    """
    Streaming histogram with exponentially decayed bin weights.

    The histogram keeps at most `max_bins` bins sorted by value. Every
    insertion decays the weight of all bins it does not touch by a factor
    of (1 - alpha), so old observations fade geometrically with each new
    sample. When the bin budget is exceeded the two adjacent bins with the
    smallest value gap are merged into their weighted average.

    With max_bins=1 the single bin is an exponentially weighted moving
    average of the stream and its weight is the decayed sample count.

    The structure is not thread-safe; callers sharing a histogram between
    threads must serialize access to it.

    Example:
        hist = WeightedHistogram(max_bins=20, alpha=0.05)
        for latency in latencies:
            hist.update(latency)
        p99 = hist.quantile(0.99)
    """

    DEFAULT_MAX_BINS: int = 50
    DEFAULT_ALPHA: float = 2 / (30 + 1)
    RENDER_SCALE: int = 200

    def __init__(
        self,
        max_bins: int = DEFAULT_MAX_BINS,
        alpha: float = DEFAULT_ALPHA,
        memory_limit_bytes: Optional[int] = None,
    ):
        """
        Initialize a new weighted histogram.

        There is no optimal bin count, but somewhere between 20 and 80
        bins is usually sufficient.

        Args:
            max_bins: Maximum number of bins kept after each insertion.
                      Must be a positive integer.
            alpha: Decay factor in (0, 1]. Each insertion scales the weight
                   of every other bin by (1 - alpha). Set it to 2 / (N + 1)
                   for an average window of N samples.
            memory_limit_bytes: Optional maximum memory usage in bytes.

        Raises:
            ValueError: If max_bins is not a positive integer.
                        If alpha is not in (0, 1].
        """
        super().__init__(memory_limit_bytes)

        if isinstance(max_bins, bool) or not isinstance(max_bins, int) or max_bins < 1:
            raise ValueError("Maximum number of bins must be a positive integer")
        if not (0 < alpha <= 1):
            raise ValueError("Decay factor alpha must be in (0, 1]")

        self._max_bins = max_bins
        self._alpha = float(alpha)
        self._bins: List[Bin] = []
        self._total_weight = 0.0

        logger.debug(
            "weighted_histogram_initialized", max_bins=max_bins, alpha=self._alpha
        )

    @property
    def max_bins(self) -> int:
        return self._max_bins

    @property
    def alpha(self) -> float:
        return self._alpha

    @property
    def total_weight(self) -> float:
        return self._total_weight

    def update(self, item: float) -> None:
        """
        Add one observation of value item with unit weight.

        Args:
            item: Numeric value to add. Non-finite values (NaN, +/-Inf) and
                  non-numeric items are ignored.
        """
        if not isinstance(item, (int, float)) or not math.isfinite(item):
            logger.debug("non_finite_sample_ignored", item=repr(item))
            return

        super().update(item)

        touched = self._insert(float(item))
        self._decay(exclude=touched)
        self._update_total()
        self._compact()

    def _insert(self, sample: float) -> int:
        """
        Place sample in the bin list and return the index of the touched bin.
        """
        for i, b in enumerate(self._bins):
            if b.value == sample:
                b.weight += 1
                return i
            if b.value > sample:
                self._bins.insert(i, Bin(value=sample, weight=1.0))
                return i

        self._bins.append(Bin(value=sample, weight=1.0))
        return len(self._bins) - 1

    def _decay(self, exclude: int) -> None:
        for i, b in enumerate(self._bins):
            if i != exclude:
                b.weight = _ewma(b.weight, 0.0, self._alpha)

    def _update_total(self) -> None:
        # Plain left-to-right accumulation so quantile() and cdf() prefix
        # sums land exactly on the total.
        total = 0.0
        for b in self._bins:
            total += b.weight
        self._total_weight = total

    def _compact(self) -> None:
        """
        Merge the closest adjacent bins until the bin budget is met.

        Ties on the smallest gap go to the lowest index.
        """
        while len(self._bins) > self._max_bins:
            min_gap = math.inf
            min_idx = 1
            for i in range(1, len(self._bins)):
                gap = self._bins[i].value - self._bins[i - 1].value
                if gap < min_gap:
                    min_gap = gap
                    min_idx = i

            left = self._bins[min_idx - 1]
            right = self._bins[min_idx]
            self._bins[min_idx - 1 : min_idx + 1] = [self._merge_bins(left, right)]

        self._update_total()

    @staticmethod
    def _merge_bins(left: Bin, right: Bin) -> Bin:
        weight = left.weight + right.weight
        if weight > 0:
            # Weight fractions first so large values cannot overflow.
            value = (
                left.value * (left.weight / weight)
                + right.value * (right.weight / weight)
            )
            # Rounding must not push the merged value past either neighbour.
            value = min(max(value, left.value), right.value)
        else:
            # Both bins fully decayed; keep the midpoint.
            value = left.value / 2 + right.value / 2
        return Bin(value=value, weight=weight)

    def quantile(self, q: float) -> float:
        """
        Estimate the value at the given quantile.

        Returns the smallest bin value whose cumulative weight, scanning
        bins in ascending order, reaches q * total_weight.

        Args:
            q: Target quantile between 0.0 and 1.0.

        Returns:
            The bin value at quantile q, or NaN if no bin satisfies the
            target (an empty histogram).

        Raises:
            ValueError: If q is not between 0.0 and 1.0.
        """
        if not (0.0 <= q <= 1.0):
            raise ValueError("Quantile must be between 0.0 and 1.0")

        target = q * self._total_weight
        cumulative = 0.0
        for b in self._bins:
            cumulative += b.weight
            if cumulative >= target:
                return b.value

        return float("nan")

    def cdf(self, x: float) -> float:
        """
        Fraction of the total weight carried by bins with value <= x.

        Unlike mean() and variance(), an empty histogram has no defined
        CDF and this returns NaN; callers must check is_empty first.
        """
        if self._total_weight == 0:
            return float("nan")

        weight = 0.0
        for b in self._bins:
            if b.value <= x:
                weight += b.weight

        return weight / self._total_weight

    def mean(self) -> float:
        """Weighted mean of the bin values, 0.0 for an empty histogram."""
        if self._total_weight == 0:
            return 0.0

        total = 0.0
        for b in self._bins:
            total += b.value * b.weight

        return total / self._total_weight

    def variance(self) -> float:
        """Weighted variance of the bin values, 0.0 for an empty histogram."""
        if self._total_weight == 0:
            return 0.0

        mean = self.mean()
        total = 0.0
        for b in self._bins:
            total += b.weight * (b.value - mean) * (b.value - mean)

        return total / self._total_weight

    def count(self) -> float:
        """
        Get the total decayed weight of the histogram.

        This is an approximate, recency-weighted count and generally not
        the number of update() calls; see items_processed for that.
        """
        return self._total_weight

    def merge(
        self: WeightedHistogramType, other: WeightedHistogramType
    ) -> WeightedHistogramType:
        """
        Merge this histogram with another one.

        The result holds the bins of both inputs, with identical values
        combined, compacted back to the bin budget. No decay is applied.
        The original histograms are not modified.

        Args:
            other: Another WeightedHistogram with the same max_bins and alpha.

        Returns:
            A new merged WeightedHistogram.

        Raises:
            TypeError: If other is not a WeightedHistogram.
            ValueError: If the histograms have different parameters.
        """
        self._check_same_type(other)

        if self._max_bins != other._max_bins or self._alpha != other._alpha:
            raise ValueError(
                f"Cannot merge histograms with different parameters: "
                f"max_bins {self._max_bins} != {other._max_bins} or "
                f"alpha {self._alpha} != {other._alpha}"
            )

        result = self.__class__(
            max_bins=self._max_bins,
            alpha=self._alpha,
            memory_limit_bytes=self._memory_limit_bytes,
        )

        combined = sorted(
            (Bin(value=b.value, weight=b.weight) for b in self._bins + other._bins),
            key=lambda b: b.value,
        )
        for b in combined:
            if result._bins and result._bins[-1].value == b.value:
                result._bins[-1].weight += b.weight
            else:
                result._bins.append(b)

        result._update_total()
        result._compact()
        result._items_processed = self._combine_items_processed(other)

        logger.debug(
            "histograms_merged",
            num_bins=len(result._bins),
            total_weight=result._total_weight,
        )
        return result

    def to_dict(self) -> Dict[str, Any]:
        """
        Serialize the histogram to a dictionary.

        Returns:
            Dictionary containing the configuration and the bins.
        """
        state = self._base_dict()
        state.update(
            {
                "max_bins": self._max_bins,
                "alpha": self._alpha,
                "total_weight": self._total_weight,
                "bins": [b.to_dict() for b in self._bins],
            }
        )
        return state

    @classmethod
    def from_dict(
        cls: Type[WeightedHistogramType], data: Dict[str, Any]
    ) -> WeightedHistogramType:
        """
        Deserialize a histogram from a dictionary representation.

        The total weight is recomputed from the restored bins.

        Args:
            data: Dictionary created by to_dict().

        Returns:
            A reconstructed WeightedHistogram.

        Raises:
            ValueError: If the dictionary is missing required keys or holds
                        bins that violate the histogram invariants.
        """
        if not isinstance(data, dict):
            raise ValueError(
                f"Expected a dictionary for {cls.__name__}, got {type(data).__name__}"
            )

        if data.get("type") != cls.__name__:
            raise ValueError(
                f"Dictionary represents class '{data.get('type')}' but expected '{cls.__name__}'"
            )

        required_keys = {"max_bins", "alpha", "bins", "items_processed"}
        missing_keys = required_keys - data.keys()
        if missing_keys:
            raise ValueError(
                f"Invalid dictionary format for {cls.__name__}. Missing keys: {missing_keys}"
            )

        try:
            hist = cls(
                max_bins=data["max_bins"],
                alpha=data["alpha"],
                memory_limit_bytes=data.get("memory_limit_bytes"),
            )
        except TypeError as e:
            raise ValueError(f"Invalid parameters for {cls.__name__}: {e}") from e

        try:
            bins = [Bin.from_dict(b) for b in data["bins"]]
        except (ValueError, KeyError, TypeError) as e:
            raise ValueError(f"Error deserializing bins: {e}") from e

        bins.sort(key=lambda b: b.value)
        if len(bins) > hist._max_bins:
            raise ValueError(
                f"Invalid serialized data: {len(bins)} bins exceed max_bins {hist._max_bins}"
            )
        for i in range(1, len(bins)):
            if bins[i].value == bins[i - 1].value:
                raise ValueError(
                    f"Invalid serialized data: duplicate bin value {bins[i].value}"
                )

        hist._bins = bins
        hist._update_total()
        hist._items_processed = data["items_processed"]

        logger.debug("weighted_histogram_restored", num_bins=len(bins))
        return hist

    def estimate_size(self) -> int:
        """
        Estimate the memory footprint of the histogram in bytes.
        """
        size = super().estimate_size()

        size += sys.getsizeof(self._bins)
        for b in self._bins:
            size += sys.getsizeof(b)
            size += sys.getsizeof(b.value) + sys.getsizeof(b.weight)

        return size

    def __len__(self) -> int:
        """Return the number of values processed by the histogram."""
        return self.items_processed

    def __repr__(self) -> str:
        return (
            f"WeightedHistogram(max_bins={self._max_bins}, alpha={self._alpha:.4g}, "
            f"bins={len(self._bins)}, total_weight={self._total_weight:.4g})"
        )

    def __str__(self) -> str:
        """
        Render the histogram as a text bar chart for terminal output.

        The first line holds the total weight, followed by one line per bin
        with its value and a bar proportional to its share of the weight.
        """
        lines = [f"Total: {self._total_weight}"]
        for b in self._bins:
            bar = ""
            if self._total_weight > 0:
                bar = "." * int(b.weight / self._total_weight * self.RENDER_SCALE)
            lines.append(f"{b.value} \t {bar}")
        return "\n".join(lines) + "\n"

    @property
    def is_empty(self) -> bool:
        """Check if the histogram contains any bins."""
        return not self._bins

    def get_bins(self) -> List[Tuple[float, float]]:
        """
        Return the current bins as (value, weight) tuples, sorted by value.
        """
        return [(b.value, b.weight) for b in self._bins]

    def effective_window(self) -> float:
        """
        Average window length N, in samples, implied by alpha = 2 / (N + 1).
        """
        return 2 / self._alpha - 1

    def get_stats(self) -> Dict[str, Any]:
        """
        Get detailed statistics about the current state of the histogram.

        Returns:
            A dictionary with configuration, bin structure and
            distribution statistics.
        """
        stats = super().get_stats()

        stats.update(
            {
                "max_bins": self._max_bins,
                "alpha": self._alpha,
                "num_bins": len(self._bins),
                "bin_utilization": len(self._bins) / self._max_bins,
                "total_weight": self._total_weight,
            }
        )

        if self._bins:
            weights = [b.weight for b in self._bins]
            stats.update(
                {
                    "min_value": self._bins[0].value,
                    "max_value": self._bins[-1].value,
                    "min_weight": min(weights),
                    "max_weight": max(weights),
                }
            )
            if len(self._bins) > 1:
                stats["value_span"] = self._bins[-1].value - self._bins[0].value

        return stats

    def error_bounds(self) -> Dict[str, float]:
        """
        Describe the accuracy characteristics of this histogram.

        Quantile resolution is limited by max_bins, and the recency window
        is set by alpha.

        Returns:
            A dictionary with:
            - effective_window: average window length in samples
            - max_bins: maximum number of bins
        """
        return {
            "effective_window": self.effective_window(),
            "max_bins": float(self._max_bins),
        }

    def clear(self) -> None:
        """
        Reset the histogram to its initial state.

        This method clears all bins but keeps the same parameters.
        """
        super().clear()
        self._bins = []
        self._total_weight = 0.0

    @classmethod
    def create_from_window(
        cls: Type[WeightedHistogramType],
        window: float,
        max_bins: int = DEFAULT_MAX_BINS,
        memory_limit_bytes: Optional[int] = None,
    ) -> WeightedHistogramType:
        """
        Create a histogram whose decay corresponds to an average window.

        For example, a 60-sample window with an average age of 30 samples
        uses window=30 and yields alpha = 2 / 31.

        Args:
            window: Average age N, in samples, of the moving window.
            max_bins: Maximum number of bins.
            memory_limit_bytes: Optional maximum memory usage in bytes.

        Returns:
            A new WeightedHistogram with alpha = 2 / (window + 1).

        Raises:
            ValueError: If window is less than 1.
        """
        if window < 1:
            raise ValueError("Window must be at least 1")

        return cls(
            max_bins=max_bins,
            alpha=2 / (window + 1),
            memory_limit_bytes=memory_limit_bytes,
        )
