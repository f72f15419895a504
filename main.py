"""
main.py
--------
Entry point for the Recurring Transaction Detection Engine.

Reads a transaction fixture, runs the detection pipeline, and writes the
decisions and merchant summaries to the outputs/ folder as JSON.

Usage (from the project root):
    python main.py --input fixtures/transactions.json

    # With optional arguments:
    python main.py --input txns.csv --as-of 2025-01-31
    python main.py --input txns.json --categories categories.yaml
    python main.py --input txns.json --expected expected.json
    python main.py --input txns.json --lookback 365 --only-detected
"""

import sys
import os
import argparse
import json
import logging
import pandas as pd
import yaml
from datetime import datetime

# Ensure project root is on path (for runs from any working directory)
PROJECT_ROOT = os.path.dirname(os.path.abspath(__file__))
sys.path.insert(0, PROJECT_ROOT)

from core.models import InputError
from pipeline import RecurrenceDetectionPipeline
from monitoring.fixture_evaluator import FixtureEvaluator


# =============================================================================
# LOGGING SETUP
# =============================================================================

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("main")


# =============================================================================
# ARGUMENT PARSING
# =============================================================================

def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Recurring Transaction Detection Engine. Classifies merchants as recurring or incidental."
    )
    parser.add_argument(
        "--input", type=str, required=True,
        help="Path to input transactions (JSON list, JSON object with a 'transactions' key, or CSV)."
    )
    parser.add_argument(
        "--as-of", type=str, default=None,
        help="Evaluation date (YYYY-MM-DD). Defaults to today."
    )
    parser.add_argument(
        "--categories", type=str, default=None,
        help="YAML or JSON mapping of merchant group id to category tag."
    )
    parser.add_argument(
        "--lookback", type=int, default=None,
        help="Look-back window in days. Defaults to config value (full history)."
    )
    parser.add_argument(
        "--expected", type=str, default=None,
        help="Labeled fixture (JSON) to evaluate the decisions against."
    )
    parser.add_argument(
        "--output-dir", type=str, default=None,
        help="Output directory. Defaults to outputs/ in project root."
    )
    parser.add_argument(
        "--only-detected", action="store_true", default=False,
        help="Only write decisions with shouldDetect=true."
    )
    return parser.parse_args(argv)


# =============================================================================
# INPUT LOADING
# =============================================================================

def load_transactions(path: str):
    """Loads transaction records from a JSON or CSV file."""
    if path.lower().endswith(".csv"):
        return pd.read_csv(path)

    with open(path, "r") as f:
        data = json.load(f)
    if isinstance(data, dict) and "transactions" in data:
        return data["transactions"]
    return data


def load_categories(path: str | None) -> dict:
    """Loads the merchant group id -> category tag lookup (YAML is a JSON superset)."""
    if path is None:
        return {}
    with open(path, "r") as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise InputError(f"Category file must contain a mapping: {path}")
    return data


def load_expected(path: str) -> list:
    with open(path, "r") as f:
        data = json.load(f)
    if isinstance(data, dict) and "expected" in data:
        return data["expected"]
    return data


# =============================================================================
# MAIN
# =============================================================================

def main(argv=None):
    args = parse_args(argv)

    output_dir = args.output_dir or os.path.join(PROJECT_ROOT, "outputs")
    os.makedirs(output_dir, exist_ok=True)

    # --- Load inputs ---
    logger.info(f"Loading transactions from: {args.input}")
    if not os.path.exists(args.input):
        logger.error(f"Input file not found: {args.input}")
        sys.exit(1)

    try:
        records = load_transactions(args.input)
        categories = load_categories(args.categories)

        # --- Run pipeline ---
        pipeline = RecurrenceDetectionPipeline(lookback_days=args.lookback)
        result = pipeline.run(records, as_of_date=args.as_of, categories=categories)
    except InputError as e:
        logger.error(f"Run aborted: {e}")
        sys.exit(2)

    if result.skipped:
        logger.warning(f"{result.skipped_count:,} records skipped during validation:")
        for skipped in result.skipped[:20]:
            logger.warning(f"  #{skipped.index} ({skipped.record_id!r}): {skipped.message}")

    # --- Output: Decisions & Summaries ---
    output = result.to_records()
    if args.only_detected:
        output["decisions"] = [d for d in output["decisions"] if d["shouldDetect"]]

    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    decisions_path = os.path.join(output_dir, f"decisions_{timestamp}.json")
    with open(decisions_path, "w") as f:
        json.dump(
            {k: v for k, v in output.items() if k != "summaries"}, f, indent=2
        )
    logger.info(f"Decisions saved to: {decisions_path}")

    summaries_path = os.path.join(output_dir, f"summaries_{timestamp}.json")
    with open(summaries_path, "w") as f:
        json.dump(output["summaries"], f, indent=2)
    logger.info(f"Summaries saved to: {summaries_path}")

    _print_summary(result.to_dataframe())

    # --- Optional: Fixture evaluation ---
    if args.expected:
        report = FixtureEvaluator().evaluate(result.decisions, load_expected(args.expected))
        logger.info(f"Evaluation: {report.summary}")
        for detail in report.details:
            if detail.status != "MATCHED":
                level = logging.WARNING if detail.status != "EXTRA" else logging.INFO
                fields = f" ({', '.join(detail.mismatched_fields)})" if detail.mismatched_fields else ""
                logger.log(level, f"[{detail.status}] {detail.merchant_group_id} {detail.merchant_name}{fields}")

    return result


def _print_summary(df: pd.DataFrame):
    """Prints a clean summary table to the console."""
    if df.empty:
        print("\n  No merchant groups to display.\n")
        return

    print("\n" + "=" * 80)
    print("  RECURRING TRANSACTION DETECTION SUMMARY")
    print("=" * 80)

    # By frequency
    print("\n  Merchants by Frequency:")
    print("  " + "-" * 60)
    for freq in ["weekly", "biweekly", "monthly", "quarterly", "irregular"]:
        subset = df[df["frequency"] == freq]
        if subset.empty:
            continue
        detected = int(subset["should_detect"].sum())
        print(f"    {freq:12s}  {len(subset):>5,} merchants  (detected: {detected})")

    # By confidence
    print(f"\n  Confidence Mix:")
    print("  " + "-" * 60)
    for tier in ["high", "medium", "low"]:
        count = int((df["confidence"] == tier).sum())
        pct = (count / len(df) * 100) if len(df) > 0 else 0
        print(f"    {tier:10s}  {count:>5,}  ({pct:.1f}%)")

    print(f"\n  Recurring merchants surfaced: {int(df['should_detect'].sum()):,} of {len(df):,}")
    print("=" * 80 + "\n")


if __name__ == "__main__":
    main()
