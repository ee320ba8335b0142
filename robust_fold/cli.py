"""Command-line interface for robust-fold.

Robust run-pair normalisation and log2 fold change between two groups of
abundance runs.
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

import yaml

from . import __version__
from .config import ConfigurationError, FoldChangeConfig
from .data_io import read_input_text
from .normalization import summarize_run_pairs
from .pipeline import fold_change_pipeline

logger = logging.getLogger(__name__)


def setup_logging(verbose: bool = False) -> None:
    """Configure logging on stderr; stdout carries the report."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S',
        stream=sys.stderr,
    )


def load_config(config_path: Path | None) -> dict:
    """Load configuration from YAML file or return defaults."""
    defaults = {
        'data': {
            'set1': None,
            'set2': None,
            'gene_column': None,
            'info_columns': None,
            'delimiter': ',',
            'keep_incomplete': False,
        },
        'normalization': {
            'estimator': 'mean',
            'outlier_mads': 3.0,
        },
        'fold_change': {
            'group_by_identifier': False,
            'grouped_direction': 'a_over_b',
        },
    }

    if config_path and config_path.exists():
        with open(config_path) as f:
            user_config = yaml.safe_load(f) or {}
        # Deep merge user config over defaults
        defaults = _deep_merge(defaults, user_config)

    return defaults


def _deep_merge(base: dict, override: dict) -> dict:
    """Deep merge override dict into base dict."""
    result = base.copy()
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def apply_cli_overrides(config: dict, args: argparse.Namespace) -> dict:
    """Overlay command-line options on the loaded configuration."""
    overrides = {'data': {}, 'normalization': {}, 'fold_change': {}}

    if args.set1 is not None:
        overrides['data']['set1'] = args.set1
    if args.set2 is not None:
        overrides['data']['set2'] = args.set2
    if args.gene_col is not None:
        overrides['data']['gene_column'] = args.gene_col
    if args.info_cols is not None:
        overrides['data']['info_columns'] = args.info_cols
    if args.noskip:
        overrides['data']['keep_incomplete'] = True
    if args.median:
        overrides['normalization']['estimator'] = 'median'
    if args.group:
        overrides['fold_change']['group_by_identifier'] = True
    if args.grouped_direction is not None:
        overrides['fold_change']['grouped_direction'] = args.grouped_direction

    return _deep_merge(config, overrides)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='robust-fold',
        description='Robust fold change between two sets of abundance runs.\n\n'
                    'Each run in set1 is paired with each run in set2; the set2 run\n'
                    'is scaled by 2^mean (or 2^median) of the outlier-filtered log2\n'
                    'ratios before fold changes are computed. The CSV report is\n'
                    'written to standard output.\n\n'
                    'Example:\n'
                    '  robust-fold --in data.csv --set1 2,3 --set2 4,5 --gene-col 1 --group',
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument('-i', '--in', dest='input', required=True, help='Input data file')
    parser.add_argument('--set1', help="Data columns of the first set, eg. '2,3'")
    parser.add_argument('--set2', help="Data columns of the second set, eg. '4,5'")
    parser.add_argument('--gene-col', help='Gene or protein label column')
    parser.add_argument('--info-cols', help='Info columns appended to the label')
    parser.add_argument('--group', action='store_true', help='Group by protein')
    parser.add_argument('--median', action='store_true', help='Use median instead of mean')
    parser.add_argument('--noskip', action='store_true', help='Include rows with missing data')
    parser.add_argument('--grouped-direction', choices=['a_over_b', 'b_over_a'],
                        help='Orientation of grouped fold changes (default a_over_b)')
    parser.add_argument('-c', '--config', help='Configuration YAML file')
    parser.add_argument('-v', '--verbose', action='store_true', help='Verbose output')
    parser.add_argument('--version', action='version', version=f'%(prog)s {__version__}')
    return parser


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    setup_logging(args.verbose)

    config = load_config(Path(args.config) if args.config else None)
    config = apply_cli_overrides(config, args)

    try:
        fold_config = FoldChangeConfig.from_dict(config)
    except ConfigurationError as e:
        logger.error(f"Configuration error: {e}")
        return 2

    text = read_input_text(Path(args.input))
    result = fold_change_pipeline(text, fold_config)

    for step in result.method_log:
        logger.info(f"  {step}")
    if args.verbose:
        logger.debug(f"Run-pair summary:\n{summarize_run_pairs(result.normalization).to_string()}")

    sys.stdout.write(result.to_csv())
    return 0


if __name__ == '__main__':
    sys.exit(main())
