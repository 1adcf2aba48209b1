"""
Command-line interface for DynamicFit.

Usage:
    python -m dynamicfit model.txt --n 400
    python -m dynamicfit model.txt --n 400 --reps 250 --seed 1
    python -m dynamicfit model.txt --n 400 --parallel --n-cores 4
    python -m dynamicfit model.txt --n 400 --plot --export-data fits.csv

The model file holds lavaan-style syntax with a standardized value on every
loading and correlation.
"""

import argparse
import sys
from pathlib import Path

from .errors import DynamicFitError
from .hb import cfa_hb
from .progress import PrintReporter, SimulationCancelled


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="python -m dynamicfit",
        description="Dynamic fit index cutoffs for multi-factor CFA models",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    python -m dynamicfit model.txt --n 400
    python -m dynamicfit model.txt --n 400 --reps 250 --seed 1
    python -m dynamicfit model.txt --n 400 --plot --export-data fits.csv
        """,
    )
    parser.add_argument("model_file", type=Path, help="File with standardized lavaan-style model syntax")
    parser.add_argument("--n", type=int, required=True, help="Sample size of the empirical study")
    parser.add_argument("--reps", type=int, default=500, help="Replications per level (default: 500)")
    parser.add_argument("--estimator", default="ML", help="ML, GLS, ULS, DWLS, WLS or a robust variant such as WLSMV (default: ML)")
    parser.add_argument("--seed", type=int, default=649364, help="Random seed (default: 649364)")
    parser.add_argument("--parallel", action="store_true", help="Run replications in parallel (joblib)")
    parser.add_argument("--n-cores", type=int, default=None, help="Worker processes (default: half the CPUs)")
    parser.add_argument("--plot", action="store_true", help="Show the distribution plots")
    parser.add_argument("--export-data", type=Path, default=None, metavar="CSV", help="Write every simulated fit to CSV")
    parser.add_argument("--quiet", action="store_true", help="Suppress status lines and progress")
    return parser


def main(argv=None) -> int:
    args = _build_parser().parse_args(argv)

    try:
        syntax = args.model_file.read_text(encoding="utf-8")
    except OSError as e:
        print(f"Error: cannot read model file ({e})", file=sys.stderr)
        return 2

    try:
        result = cfa_hb(
            syntax,
            n=args.n,
            plot=args.plot,
            manual=True,
            estimator=args.estimator,
            reps=args.reps,
            seed=args.seed,
            parallel=args.parallel,
            n_cores=args.n_cores,
            progress_callback=None if args.quiet else PrintReporter(),
            verbose=not args.quiet,
        )
    except (DynamicFitError, SimulationCancelled) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    print(result)

    if args.export_data is not None:
        result.data.to_csv(args.export_data, index=False)
        print(f"Simulated fits written to {args.export_data}")

    if args.plot and result.plots:
        import matplotlib.pyplot as plt

        plt.show()

    return 0


if __name__ == "__main__":
    sys.exit(main())
