"""Load -> normalise -> report, as one synchronous call."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

import pandas as pd

from .config import FoldChangeConfig
from .data_io import AbundanceDataset, parse_abundance_table
from .fold_change import format_report, grouped_fold_changes, per_row_fold_changes
from .normalization import NormalizationResult, normalize_run_pairs

logger = logging.getLogger(__name__)


@dataclass
class PipelineResult:
    """Results from one fold-change pipeline execution."""

    dataset: AbundanceDataset
    normalization: NormalizationResult
    report: pd.DataFrame
    mode: str
    method_log: list[str] = field(default_factory=list)

    def to_csv(self) -> str:
        return format_report(self.report)


def fold_change_pipeline(text: str, config: FoldChangeConfig) -> PipelineResult:
    """
    Run the full fold-change pipeline on an input table.

    Pipeline stages:
    1. Parse the table into A/B runs and row labels
    2. Normalise every (A run, B run) pair with an outlier-filtered scale factor
    3. Report fold changes per row, or grouped by identifier

    Args:
        text: Input table (header line first)
        config: Pipeline configuration

    Returns:
        PipelineResult with the dataset, normalisation and report
    """
    method_log = []

    dataset = parse_abundance_table(text, config)
    method_log.append(
        f"Loaded {dataset.n_rows} of {dataset.n_rows_read} rows "
        f"({'keeping' if config.keep_incomplete else 'skipping'} rows with missing data)"
    )

    normalization = normalize_run_pairs(
        dataset,
        use_median=config.use_median,
        n_mads=config.outlier_mads,
    )
    method_log.extend(normalization.method_log)

    if config.group_by_identifier:
        report = grouped_fold_changes(
            dataset, normalization, direction=config.grouped_direction
        )
        mode = 'grouped'
        method_log.append(
            f"Grouped fold change ({config.grouped_direction}): "
            f"{len(report)} identifiers"
        )
    else:
        report = per_row_fold_changes(dataset, normalization)
        mode = 'per_row'
        method_log.append(f"Per-row fold change: {len(report)} rows")

    return PipelineResult(
        dataset=dataset,
        normalization=normalization,
        report=report,
        mode=mode,
        method_log=method_log,
    )
