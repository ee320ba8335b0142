"""Immutable run configuration for the fold-change pipeline."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass

GROUPED_DIRECTIONS = ('a_over_b', 'b_over_a')
ESTIMATORS = ('mean', 'median')


class ConfigurationError(ValueError):
    """Raised when the pipeline configuration is incomplete or invalid."""


def parse_column_list(value: str | int | Iterable[int] | None) -> tuple[int, ...]:
    """Parse 1-based column indices from '2,3', 2 or [2, 3].

    Args:
        value: Comma-separated string, single integer, list of integers or None

    Returns:
        Tuple of column indices (empty when value is None or blank)

    Raises:
        ConfigurationError: If an entry is not an integer

    """
    if value is None:
        return ()
    if isinstance(value, int):
        items = [value]
    elif isinstance(value, str):
        items = [v.strip() for v in value.split(',') if v.strip()]
    else:
        items = list(value)

    columns = []
    for item in items:
        try:
            columns.append(int(item))
        except (TypeError, ValueError):
            raise ConfigurationError(f"Invalid column index: {item!r}") from None
    return tuple(columns)


@dataclass(frozen=True)
class FoldChangeConfig:
    """Configuration for loading, normalising and reporting fold changes.

    Column indices are 1-based, as they are given on the command line.
    """

    set_a_columns: tuple[int, ...]
    set_b_columns: tuple[int, ...]
    gene_column: int | None
    info_columns: tuple[int, ...] = ()

    # Loader
    delimiter: str = ','
    keep_incomplete: bool = False

    # Normalisation
    use_median: bool = False
    outlier_mads: float = 3.0

    # Reporting
    group_by_identifier: bool = False
    grouped_direction: str = 'a_over_b'

    def __post_init__(self):
        # Accept lists/strings from callers and freeze them as tuples
        for name in ('set_a_columns', 'set_b_columns', 'info_columns'):
            object.__setattr__(self, name, parse_column_list(getattr(self, name)))

        if not self.set_a_columns:
            raise ConfigurationError("Missing first set of runs (set1)")
        if not self.set_b_columns:
            raise ConfigurationError("Missing second set of runs (set2)")
        if self.gene_column is None:
            raise ConfigurationError("Missing protein or gene column number")

        all_columns = (
            self.set_a_columns + self.set_b_columns + self.info_columns + (self.gene_column,)
        )
        bad = [c for c in all_columns if not isinstance(c, int) or c < 1]
        if bad:
            raise ConfigurationError(f"Column indices must be integers >= 1: {bad}")

        if not self.delimiter:
            raise ConfigurationError("Delimiter must be a non-empty string")
        if not self.outlier_mads > 0:
            raise ConfigurationError(f"outlier_mads must be positive, got {self.outlier_mads}")
        if self.grouped_direction not in GROUPED_DIRECTIONS:
            raise ConfigurationError(
                f"Unknown grouped_direction '{self.grouped_direction}'. "
                f"Must be one of: {GROUPED_DIRECTIONS}"
            )

    @property
    def n_run_pairs(self) -> int:
        return len(self.set_a_columns) * len(self.set_b_columns)

    @classmethod
    def from_dict(cls, config: dict) -> FoldChangeConfig:
        """Build a FoldChangeConfig from the nested dict returned by load_config."""
        data = config.get('data', {})
        norm = config.get('normalization', {})
        fold = config.get('fold_change', {})

        estimator = norm.get('estimator', 'mean')
        if estimator not in ESTIMATORS:
            raise ConfigurationError(
                f"Unknown estimator '{estimator}'. Must be one of: {ESTIMATORS}"
            )

        try:
            outlier_mads = float(norm.get('outlier_mads', 3.0))
        except (TypeError, ValueError):
            raise ConfigurationError(
                f"outlier_mads must be a number, got {norm.get('outlier_mads')!r}"
            ) from None

        gene_column = data.get('gene_column')
        if gene_column is not None:
            gene_columns = parse_column_list(gene_column)
            if len(gene_columns) != 1:
                raise ConfigurationError(
                    f"Exactly one gene column is required, got {gene_column!r}"
                )
            gene_column = gene_columns[0]

        return cls(
            set_a_columns=parse_column_list(data.get('set1')),
            set_b_columns=parse_column_list(data.get('set2')),
            gene_column=gene_column,
            info_columns=parse_column_list(data.get('info_columns')),
            delimiter=data.get('delimiter', ','),
            keep_incomplete=bool(data.get('keep_incomplete', False)),
            use_median=estimator == 'median',
            outlier_mads=outlier_mads,
            group_by_identifier=bool(fold.get('group_by_identifier', False)),
            grouped_direction=fold.get('grouped_direction', 'a_over_b'),
        )
