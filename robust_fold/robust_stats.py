"""
Robust central-tendency statistics used for run-pair normalisation.

The median here is the *upper* median: the element at index floor(n/2) of the
numerically sorted values, with no averaging of the two middle elements for
even counts. The scale-factor estimators work on log2 ratios and return a
linear multiplicative factor.
"""

import logging

import numpy as np

logger = logging.getLogger(__name__)

# Scales the MAD to a standard deviation estimate under normality
MAD_SCALE = 1.4826

# Width of the outlier band, in scaled MADs either side of the median
DEFAULT_OUTLIER_MADS = 3.0


def _as_array(values) -> np.ndarray:
    return np.asarray(values, dtype=float).ravel()


def median(values) -> float:
    """
    Upper median of a sequence of numbers.

    Args:
        values: 1-D array-like of numbers

    Returns:
        The element at index floor(n/2) of the ascending numeric sort

    Raises:
        ValueError: If values is empty
    """
    arr = _as_array(values)
    if arr.size == 0:
        raise ValueError("median of an empty sequence")
    return float(np.sort(arr)[arr.size // 2])


def mad(values) -> float:
    """Median absolute deviation from the (upper) median."""
    arr = _as_array(values)
    return median(np.abs(arr - median(arr)))


def average(values) -> float:
    """Arithmetic mean. Raises ValueError on empty input."""
    arr = _as_array(values)
    if arr.size == 0:
        raise ValueError("average of an empty sequence")
    return float(arr.mean())


def average_exp(values) -> float:
    """Scale factor 2^mean(values), for values in log2 space."""
    return float(np.power(2.0, average(values)))


def median_exp(values) -> float:
    """Scale factor 2^median(values), for values in log2 space."""
    return float(np.power(2.0, median(values)))


def outlier_filter(values, n_mads: float = DEFAULT_OUTLIER_MADS) -> np.ndarray:
    """
    Iteratively remove values outside median ± n_mads * 1.4826 * MAD.

    Each pass recomputes the median and MAD of the surviving values and keeps
    those inside the (inclusive) band. Passes repeat until one removes
    nothing, so the result is a fixed point: filtering it again returns the
    same values.

    When the MAD of the surviving values is zero the band would collapse to
    a single point and discard every value not exactly equal to the median;
    in that case filtering stops and the current values are returned.

    Non-finite values are dropped before the first pass.

    Args:
        values: 1-D array-like of numbers (typically log2 ratios)
        n_mads: Band half-width in scaled MADs

    Returns:
        Surviving values, in their original order
    """
    arr = _as_array(values)
    n_input = arr.size
    kept = arr[np.isfinite(arr)]
    n_finite = kept.size
    if n_finite < n_input:
        logger.debug(f"Outlier filter ignored {n_input - n_finite} non-finite values")

    removed_abs_sum = 0.0
    n_passes = 0
    while kept.size > 0:
        n_passes += 1
        m = median(kept)
        spread = mad(kept)
        if spread == 0:
            break

        half_width = n_mads * MAD_SCALE * spread
        inside = (kept >= m - half_width) & (kept <= m + half_width)
        if inside.all():
            break

        removed_abs_sum += float(np.abs(kept[~inside]).sum())
        kept = kept[inside]

    n_trimmed = n_finite - kept.size
    if n_trimmed:
        logger.debug(
            f"Filtered {n_trimmed}/{n_finite} values in {n_passes} passes "
            f"(mean |removed| = {removed_abs_sum / n_trimmed:.3f})"
        )

    return kept
