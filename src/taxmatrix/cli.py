"""
Command-line interface for taxmatrix.

Usage:
    taxmatrix plan [--policy-file policies.json]
    taxmatrix calculate --count 1000 -o results.csv
    taxmatrix race --count 1000000
    taxmatrix validate --count 100000 --output-dir out/
"""

import argparse
import sys
from pathlib import Path

from . import __version__
from .errors import TaxMatrixError
from .matrix import MAX_POLICY_BLOCK_WIDTH, MatrixCalculator, PolicyPlan
from .policies import load_policy_set
from .policy_data import default_policy_set
from .population import generate_records


def _load_policies(args):
    if getattr(args, "policy_file", None):
        return load_policy_set(args.policy_file)
    return default_policy_set()


def _add_population_args(subparser, default_count):
    subparser.add_argument(
        "--count",
        type=int,
        default=default_count,
        help=f"Number of synthetic records (default: {default_count:,})",
    )
    subparser.add_argument(
        "--seed",
        type=int,
        default=1234,
        help="Random seed for the population (default: 1234)",
    )
    subparser.add_argument(
        "--block-width",
        type=int,
        default=MAX_POLICY_BLOCK_WIDTH,
        help=f"Policy columns per matrix block (default: {MAX_POLICY_BLOCK_WIDTH})",
    )
    subparser.add_argument(
        "--policy-file",
        type=Path,
        help="JSON policy file (default: built-in 2025 tables)",
    )


def cmd_plan(args):
    policy_set = _load_policies(args)
    plan = PolicyPlan.from_policy_set(policy_set)
    info = plan.describe()

    print(f"Features      : {info['feature_count']}")
    print(f"Policies      : {info['policy_count']}")
    print(f"Jurisdictions : {', '.join(info['jurisdictions'])}")
    print(f"Payroll       : columns {info['payroll_offset']}.."
          f"{info['payroll_offset'] + info['payroll_policy_count'] - 1}")
    print(f"GL buckets    : {info['bucket_count']}")
    print(f"Transform     : {plan.transform.shape[0]} x {plan.transform.shape[1]}")
    print("Thresholds    :")
    for t in info["shared_thresholds"]:
        print(f"  {t:>14,.0f}")


def cmd_calculate(args):
    from .validation import results_to_frame

    policy_set = _load_policies(args)
    plan = PolicyPlan.from_policy_set(policy_set)
    records = generate_records(args.count, seed=args.seed)
    results = MatrixCalculator(plan, block_width=args.block_width).calculate(records)

    df = results_to_frame(results)
    if args.output:
        df.to_csv(args.output, index=False)
        print(f"Wrote {len(df):,} results -> {args.output}", file=sys.stderr)
    else:
        print(df.head(args.sample).to_string(index=False))


def cmd_race(args):
    from .validation import race

    policy_set = _load_policies(args)
    print(f"Generating {args.count:,} records (seed={args.seed})...", file=sys.stderr)
    records = generate_records(args.count, seed=args.seed)

    result = race(
        records,
        policy_set,
        block_width=args.block_width,
        spot_check_count=args.spot_check,
    )
    print(result.report())

    if result.max_abs_delta > args.tolerance:
        print(
            f"\nWarning: max delta {result.max_abs_delta:.3e} exceeds {args.tolerance:.1e}",
            file=sys.stderr,
        )
        sys.exit(1)


def cmd_validate(args):
    from .validation.comparator import ComparisonConfig, validate

    config = ComparisonConfig(
        tax_tolerance=args.tolerance,
        payroll_tolerance=args.tolerance,
        posting_tolerance=args.tolerance,
    )
    results = validate(
        count=args.count,
        seed=args.seed,
        policy_set=_load_policies(args),
        block_width=args.block_width,
        output_dir=args.output_dir,
        config=config,
        show_progress=not args.quiet,
    )
    if not results.all_match:
        sys.exit(1)


def main(argv=None):
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        prog="taxmatrix",
        description="Batch tax, payroll and GL posting calculations via matrix multiplication",
    )
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    plan_parser = subparsers.add_parser("plan", help="Show the compiled policy plan")
    plan_parser.add_argument(
        "--policy-file",
        type=Path,
        help="JSON policy file (default: built-in 2025 tables)",
    )

    calc_parser = subparsers.add_parser("calculate", help="Calculate taxes for a synthetic batch")
    _add_population_args(calc_parser, default_count=1_000)
    calc_parser.add_argument(
        "-o", "--output",
        type=Path,
        help="Write all results as CSV (default: print a sample)",
    )
    calc_parser.add_argument(
        "--sample",
        type=int,
        default=20,
        help="Rows to print when no output file is given (default: 20)",
    )

    race_parser = subparsers.add_parser("race", help="Time reference vs matrix calculators")
    _add_population_args(race_parser, default_count=100_000)
    race_parser.add_argument(
        "--spot-check",
        type=int,
        default=1_000,
        help="Rows compared field by field (default: 1,000)",
    )
    race_parser.add_argument(
        "--tolerance",
        type=float,
        default=1e-6,
        help="Maximum allowed absolute delta (default: 1e-6)",
    )

    validate_parser = subparsers.add_parser(
        "validate", help="Compare matrix results against the reference calculator"
    )
    _add_population_args(validate_parser, default_count=10_000)
    validate_parser.add_argument(
        "--output-dir",
        type=str,
        help="Directory to save results",
    )
    validate_parser.add_argument(
        "--tolerance",
        type=float,
        default=1e-6,
        help="Absolute tolerance in dollars (default: 1e-6)",
    )
    validate_parser.add_argument(
        "--quiet",
        action="store_true",
        help="Hide the progress bar",
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )

    args = parser.parse_args(argv)

    commands = {
        "plan": cmd_plan,
        "calculate": cmd_calculate,
        "race": cmd_race,
        "validate": cmd_validate,
    }

    if args.command is None:
        parser.print_help()
        sys.exit(1)

    if getattr(args, "count", 0) < 0:
        parser.error("--count must be non-negative")
    if getattr(args, "block_width", 1) < 1:
        parser.error("--block-width must be positive")

    try:
        commands[args.command](args)
    except (TaxMatrixError, OSError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
