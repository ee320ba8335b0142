"""
robust-fold: outlier-resistant fold change between two groups of runs

Normalises every pair of abundance runs (one from each group) with a scale
factor estimated from MAD-filtered log2 ratios, then reports log2 fold
changes per row or grouped by gene/protein identifier.
"""

__version__ = "0.1.0"

from .config import (
    ConfigurationError,
    FoldChangeConfig,
    parse_column_list,
)
from .data_io import (
    AbundanceDataset,
    parse_abundance_table,
    read_input_text,
)
from .robust_stats import (
    average,
    average_exp,
    mad,
    median,
    median_exp,
    outlier_filter,
)
from .normalization import (
    NormalizationResult,
    RunPairNormalization,
    log_ratio,
    normalize_run_pairs,
    scale_run,
    summarize_run_pairs,
)
from .fold_change import (
    format_report,
    grouped_fold_changes,
    per_row_fold_changes,
)
from .pipeline import (
    PipelineResult,
    fold_change_pipeline,
)
