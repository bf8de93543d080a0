"""
Weighted Histogram Demo for tiny-hist.

This example demonstrates how to use the exponentially weighted histogram
to track the distribution of a data stream whose behaviour shifts over time.
"""

import random

from tiny_hist.algorithms.weighted_histogram import WeightedHistogram


def demonstrate_basic_histogram():
    """Summarize a stationary stream and compare with exact quantiles."""
    print("\n=== Basic Weighted Histogram Demo ===")

    histogram = WeightedHistogram.create_from_window(window=500, max_bins=40)
    print(f"Max bins: {histogram.max_bins}")
    print(f"Alpha: {histogram.alpha:.5f} (window of ~{histogram.effective_window():.0f} samples)")

    rng = random.Random(42)
    values = [rng.gauss(100.0, 15.0) for _ in range(5000)]
    for value in values:
        histogram.update(value)

    recent = sorted(values[-500:])
    print("\nQuantile   estimate   exact (last 500)")
    for q in (0.1, 0.5, 0.9, 0.99):
        exact = recent[min(int(q * len(recent)), len(recent) - 1)]
        print(f"  p{q * 100:<6g} {histogram.quantile(q):9.2f} {exact:9.2f}")

    print(f"\nMean: {histogram.mean():.2f}")
    print(f"Std dev: {histogram.variance() ** 0.5:.2f}")
    print(f"Decayed count: {histogram.count():.1f} of {histogram.items_processed} items")
    print(f"Memory usage: {histogram.estimate_size()} bytes")


def demonstrate_regime_shift():
    """Show the histogram forgetting an old regime after a level shift."""
    print("\n=== Regime Shift Demo ===")

    histogram = WeightedHistogram(max_bins=20, alpha=0.05)
    rng = random.Random(7)

    for _ in range(1000):
        histogram.update(rng.gauss(10.0, 1.0))
    print(f"Before shift: median={histogram.quantile(0.5):.2f}, mean={histogram.mean():.2f}")

    for step in range(1, 201):
        histogram.update(rng.gauss(50.0, 1.0))
        if step in (10, 25, 50, 100, 200):
            print(
                f"  {step:3d} samples after shift: "
                f"median={histogram.quantile(0.5):6.2f}, "
                f"P(x <= 20)={histogram.cdf(20.0):.3f}"
            )


def demonstrate_rendering():
    """Print the text rendering of a small histogram."""
    print("\n=== Text Rendering Demo ===")

    histogram = WeightedHistogram(max_bins=8, alpha=0.02)
    rng = random.Random(1)
    for _ in range(2000):
        histogram.update(round(rng.expovariate(0.5), 1))

    print(histogram)


def main():
    demonstrate_basic_histogram()
    demonstrate_regime_shift()
    demonstrate_rendering()


if __name__ == "__main__":
    main()
