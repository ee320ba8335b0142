"""
Run-pair normalisation.

Every run in group A is paired with every run in group B (A-major order).
For each pair the log2 ratios A/B are outlier-filtered and their central
tendency is converted back into a linear scale factor; the B run multiplied
by that factor sits on the same scale as the A run, so that subsequent fold
changes reflect differences between the groups rather than run-to-run drift.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

import numpy as np
import pandas as pd

from .data_io import AbundanceDataset
from .robust_stats import (
    DEFAULT_OUTLIER_MADS,
    average_exp,
    median,
    median_exp,
    outlier_filter,
)

logger = logging.getLogger(__name__)


def log_ratio(a, b) -> np.ndarray:
    """Elementwise log2(a / b). Zero or negative ratios give non-finite values."""
    a = np.asarray(a, dtype=float)
    b = np.asarray(b, dtype=float)
    with np.errstate(divide='ignore', invalid='ignore'):
        return np.log2(a / b)


def scale_run(values, factor: float) -> np.ndarray:
    """Multiply every value of a run by a scale factor."""
    return np.asarray(values, dtype=float) * factor


@dataclass
class RunPairNormalization:
    """Normalisation of one B run onto one A run."""

    run_a: str
    run_b: str
    raw_a: np.ndarray
    scaled_b: np.ndarray
    scale_factor: float
    n_retained: int       # log-ratios surviving the outlier filter
    n_outliers: int       # finite log-ratios removed by the filter


@dataclass
class NormalizationResult:
    """All run pairs of a dataset, in A-major, B-minor order."""

    pairs: list[RunPairNormalization]
    estimator: str
    method_log: list[str] = field(default_factory=list)

    @property
    def n_pairs(self) -> int:
        return len(self.pairs)

    def result_list(self) -> list[np.ndarray]:
        """Flat list alternating raw A run and scaled B run, 2 entries per pair."""
        entries = []
        for pair in self.pairs:
            entries.append(pair.raw_a)
            entries.append(pair.scaled_b)
        return entries

    def as_frame(self) -> pd.DataFrame:
        """Result list as a rows x (2 * n_pairs) DataFrame, columns in list order."""
        entries = self.result_list()
        if not entries:
            return pd.DataFrame()
        return pd.DataFrame(np.column_stack(entries))


def normalize_run_pair(
    run_a: pd.Series,
    run_b: pd.Series,
    use_median: bool = False,
    n_mads: float = DEFAULT_OUTLIER_MADS,
) -> RunPairNormalization:
    """
    Scale one B run onto one A run.

    Args:
        run_a: Abundances of the A run
        run_b: Abundances of the B run, aligned with run_a
        use_median: Estimate the factor as 2^median instead of 2^mean
        n_mads: Outlier band half-width in scaled MADs

    Returns:
        RunPairNormalization with the untouched A run and the scaled B run
    """
    a = run_a.to_numpy(dtype=float)
    b = run_b.to_numpy(dtype=float)

    ratios = log_ratio(a, b)
    filtered = outlier_filter(ratios, n_mads=n_mads)
    n_finite = int(np.isfinite(ratios).sum())

    if filtered.size == 0:
        logger.warning(
            f"No usable log ratios for {run_a.name} vs {run_b.name}; scale factor is NaN"
        )
        factor = float('nan')
    elif use_median:
        factor = median_exp(filtered)
    else:
        factor = average_exp(filtered)

    return RunPairNormalization(
        run_a=str(run_a.name),
        run_b=str(run_b.name),
        raw_a=a,
        scaled_b=scale_run(b, factor),
        scale_factor=factor,
        n_retained=int(filtered.size),
        n_outliers=n_finite - int(filtered.size),
    )


def normalize_run_pairs(
    dataset: AbundanceDataset,
    use_median: bool = False,
    n_mads: float = DEFAULT_OUTLIER_MADS,
) -> NormalizationResult:
    """
    Normalise every (A run, B run) combination of a dataset.

    Args:
        dataset: Loaded abundance runs
        use_median: Use 2^median of the filtered log ratios instead of 2^mean
        n_mads: Outlier band half-width in scaled MADs

    Returns:
        NormalizationResult with |A| x |B| pairs, outer loop over A
    """
    estimator = 'median' if use_median else 'mean'
    result = NormalizationResult(pairs=[], estimator=estimator)

    for x in range(dataset.group_a.shape[1]):
        run_a = dataset.group_a.iloc[:, x]
        for y in range(dataset.group_b.shape[1]):
            run_b = dataset.group_b.iloc[:, y]
            pair = normalize_run_pair(run_a, run_b, use_median=use_median, n_mads=n_mads)
            result.pairs.append(pair)

            logger.info(
                f"  {pair.run_a} / {pair.run_b}: scale factor {pair.scale_factor:.4f} "
                f"({pair.n_outliers} outliers excluded)"
            )

    result.method_log.append(
        f"Run-pair normalisation: {result.n_pairs} pairs, 2^{estimator} of "
        f"log2 ratios after {n_mads:g}-MAD outlier filtering"
    )
    return result


def summarize_run_pairs(result: NormalizationResult) -> pd.DataFrame:
    """
    Per-pair normalisation diagnostics.

    residual_median_log2 is the median of log2(A / scaled B) after scaling;
    for a well-behaved pair it sits close to zero.
    """
    records = []
    for pair in result.pairs:
        residual = log_ratio(pair.raw_a, pair.scaled_b)
        residual = residual[np.isfinite(residual)]
        records.append({
            'run_a': pair.run_a,
            'run_b': pair.run_b,
            'scale_factor': pair.scale_factor,
            'n_retained': pair.n_retained,
            'n_outliers': pair.n_outliers,
            'residual_median_log2': median(residual) if residual.size else np.nan,
        })

    return pd.DataFrame.from_records(
        records,
        columns=['run_a', 'run_b', 'scale_factor', 'n_retained',
                 'n_outliers', 'residual_median_log2'],
    )
