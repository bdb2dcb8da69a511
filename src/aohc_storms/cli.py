# src/aohc_storms/cli.py

"""
CLI wrapper for the AOHC storm analysis.

Sub-commands:
  run     : Load both CSVs, derive groupings, plot, fit the four models and report
  prepare : Load and derive only; print the prepared tables' heads and group summary
"""

import argparse
import logging
import sys

from aohc_storms.config import DEFAULT_STORM_CSV, DEFAULT_OCEAN_HEAT_CSV, DEFAULT_SEED
from aohc_storms.data_io import load_inputs
from aohc_storms.errors import MissingFileError, ParseError
from aohc_storms.pipeline import prepare_tables, run_analysis
from aohc_storms.preprocess import summarize_groups

# Configure logging
logging.basicConfig(level=logging.INFO,
                   format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')
logger = logging.getLogger(__name__)


def _add_input_args(p: argparse.ArgumentParser) -> None:
    p.add_argument('--storm-csv', default=DEFAULT_STORM_CSV,
                   help='Path to the merged storm CSV (Year, AO, Max_Wind, TS_H)')
    p.add_argument('--ocean-heat-csv', default=DEFAULT_OCEAN_HEAT_CSV,
                   help='Path to the ocean heat content CSV (date, AO)')


def setup_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='aohc-storms',
        description='Atlantic Ocean Heat Content and storm intensity analysis'
    )
    parser.add_argument('--log-level', default='INFO',
                        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'],
                        help='Logging level')
    sub = parser.add_subparsers(dest='command', required=True)

    p_run = sub.add_parser('run', help='Run the full analysis')
    _add_input_args(p_run)
    p_run.add_argument('--output-dir', default=None,
                       help='Directory to save figures (not saved when omitted)')
    p_run.add_argument('--seed', type=int, default=DEFAULT_SEED,
                       help='Random seed applied once at start')
    p_run.add_argument('--show', action='store_true',
                       help='Display figures interactively')
    p_run.add_argument('--no-plots', action='store_true',
                       help='Skip rendering figures')

    p_prep = sub.add_parser('prepare', help='Load and derive groupings only')
    _add_input_args(p_prep)

    return parser


def prepare_command(args: argparse.Namespace) -> None:
    storms_raw, ocean_raw = load_inputs(args.storm_csv, args.ocean_heat_csv)
    storms, ocean_heat = prepare_tables(storms_raw, ocean_raw)
    print(storms.head().to_string())
    print(ocean_heat.head().to_string())
    print(summarize_groups(storms).to_string(index=False))


def run_command(args: argparse.Namespace) -> int:
    outcome = run_analysis(
        storm_path=args.storm_csv,
        ocean_heat_path=args.ocean_heat_csv,
        output_dir=args.output_dir,
        seed=args.seed,
        show=args.show,
        make_plots=not args.no_plots
    )
    for model_id, message in outcome.failures.items():
        print(f"[ERR]  {model_id}: {message}")
    for model_id in outcome.results:
        print(f"[OK]   {model_id}")
    return 0


def main(argv=None) -> int:
    parser = setup_parser()
    args = parser.parse_args(argv)
    logging.getLogger().setLevel(getattr(logging, args.log_level))

    try:
        if args.command == 'run':
            return run_command(args)
        elif args.command == 'prepare':
            prepare_command(args)
            return 0
    except (MissingFileError, ParseError) as e:
        logger.error(f"{type(e).__name__}: {e}")
        return 1
    return 0


if __name__ == '__main__':
    sys.exit(main())
