"""Data I/O module for loading delimited abundance tables."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path

import numpy as np
import pandas as pd

from .config import FoldChangeConfig

logger = logging.getLogger(__name__)

# Stand-in for a zero or unparseable abundance
MISSING_SENTINEL = 1.0

# Joins the identifier and info fields into one label
LABEL_SEPARATOR = ','


@dataclass
class AbundanceDataset:
    """Two groups of abundance runs aligned with row labels.

    group_a and group_b hold one column per run and one row per retained
    input row; labels shares the same RangeIndex.
    """

    group_a: pd.DataFrame
    group_b: pd.DataFrame
    labels: pd.Series
    n_rows_read: int = 0
    n_incomplete: int = 0
    warnings: list[str] = field(default_factory=list)

    def __post_init__(self):
        n = len(self.labels)
        if len(self.group_a) != n or len(self.group_b) != n:
            raise ValueError(
                f"Runs and labels must be aligned: {len(self.group_a)} A rows, "
                f"{len(self.group_b)} B rows, {n} labels"
            )

    @property
    def n_rows(self) -> int:
        return len(self.labels)

    @property
    def run_names_a(self) -> list[str]:
        return list(self.group_a.columns)

    @property
    def run_names_b(self) -> list[str]:
        return list(self.group_b.columns)

    def __str__(self) -> str:
        return (
            f"AbundanceDataset: {self.n_rows} rows, "
            f"{self.group_a.shape[1]} A runs x {self.group_b.shape[1]} B runs"
        )


def read_input_text(filepath: Path) -> str:
    """Read an input table as a single string.

    Read errors (missing file, permissions) are not caught: without the
    table there is nothing to compute.
    """
    filepath = Path(filepath)
    text = filepath.read_text(encoding='utf-8')
    logger.info(f"Read {len(text)} characters from {filepath}")
    return text


def _field(fields: list[str], column: int) -> str:
    """Return the 1-based column from a split line, or '' past the end."""
    index = column - 1
    return fields[index] if index < len(fields) else ''


def _run_names(header: list[str], columns: tuple[int, ...]) -> list[str]:
    names = []
    for column in columns:
        name = _field(header, column).strip()
        names.append(name if name else f'col{column}')
    return names


def _parse_abundances(raw: pd.DataFrame) -> tuple[pd.DataFrame, pd.Series]:
    """Parse raw string cells as floats, substituting the sentinel for missing.

    Returns:
        Tuple of (numeric DataFrame, boolean Series marking rows with any
        missing value)

    """
    cells = pd.Series(raw.to_numpy(dtype=object).ravel(), dtype=object)
    values = pd.to_numeric(cells.str.strip(), errors='coerce').to_numpy(dtype=np.float64)
    values = values.reshape(raw.shape)

    missing = ~np.isfinite(values) | (values == 0)
    values = np.where(missing, MISSING_SENTINEL, values)

    numeric = pd.DataFrame(values, index=raw.index, columns=raw.columns)
    return numeric, pd.Series(missing.any(axis=1), index=raw.index)


def parse_abundance_table(text: str, config: FoldChangeConfig) -> AbundanceDataset:
    """Turn delimited text into aligned A/B abundance runs and row labels.

    The first line is a header and is not treated as data; its fields are
    only used to name the runs. Blank lines are ignored. Each remaining line
    is split on config.delimiter without any quoting rules.

    A value that is zero, non-finite or does not parse as a number is
    missing: it is replaced by 1 and the row is flagged incomplete.
    Incomplete rows are dropped unless config.keep_incomplete is set.

    Args:
        text: Whole input table
        config: Column selection and row admission settings

    Returns:
        AbundanceDataset with one column per configured run

    """
    lines = text.splitlines()
    header = lines[0].split(config.delimiter) if lines else []
    rows = [line.split(config.delimiter) for line in lines[1:] if line.strip()]

    names_a = _run_names(header, config.set_a_columns)
    names_b = _run_names(header, config.set_b_columns)

    raw_a = pd.DataFrame(
        [[_field(r, c) for c in config.set_a_columns] for r in rows],
        columns=names_a, dtype=str,
    )
    raw_b = pd.DataFrame(
        [[_field(r, c) for c in config.set_b_columns] for r in rows],
        columns=names_b, dtype=str,
    )

    labels = pd.Series([_field(r, config.gene_column) for r in rows], dtype=str)
    for info_column in config.info_columns:
        info = pd.Series([_field(r, info_column) for r in rows], dtype=str)
        labels = labels + LABEL_SEPARATOR + info

    group_a, incomplete_a = _parse_abundances(raw_a)
    group_b, incomplete_b = _parse_abundances(raw_b)
    incomplete = incomplete_a | incomplete_b
    n_incomplete = int(incomplete.sum())

    if config.keep_incomplete:
        keep = pd.Series(True, index=labels.index)
    else:
        keep = ~incomplete

    dataset = AbundanceDataset(
        group_a=group_a.loc[keep].reset_index(drop=True),
        group_b=group_b.loc[keep].reset_index(drop=True),
        labels=labels.loc[keep].reset_index(drop=True),
        n_rows_read=len(rows),
        n_incomplete=n_incomplete,
    )

    if n_incomplete:
        action = 'kept with missing values set to 1' if config.keep_incomplete else 'dropped'
        dataset.warnings.append(f"{n_incomplete} rows with missing data {action}")

    if dataset.n_rows == 0:
        dataset.warnings.append("No rows retained after filtering missing data")

    logger.info(
        f"Loaded {dataset.n_rows}/{len(rows)} rows: "
        f"A runs {names_a}, B runs {names_b}"
    )
    for w in dataset.warnings:
        logger.warning(w)

    return dataset
