"""CLI script for getting product recommendations.

Useful for testing and evaluation. Loads a CSV dataset, runs one strategy
and prints the result to the console.
"""

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import List

# Add project root to Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from crmrec.api.dependencies import Services, build_services
from crmrec.recommender.exceptions import CRMRecException
from crmrec.recommender.models import RecommendationEntry
from crmrec.recommender.utils import load_dataset

# Setup logging
logging.basicConfig(
    level=logging.WARNING,
    format="%(levelname)s: %(message)s"
)
logger = logging.getLogger(__name__)

MODES = ["user", "item", "popular", "category", "segment", "customer", "stats"]


def print_entries(title: str, entries: List[RecommendationEntry]) -> None:
    print(f"\n{title} ({len(entries)}):")
    for rank, entry in enumerate(entries, start=1):
        print(
            f"  {rank:>2}. {entry.product.id:<8} {entry.product.name:<30} "
            f"score={entry.score:<6g} {entry.reason}"
        )


async def run(args: argparse.Namespace, services: Services) -> None:
    engine = services.engine

    if args.mode in ("user", "item", "category", "segment", "customer") and args.target is None:
        raise ValueError(f"mode '{args.mode}' needs a target id")

    if args.mode == "stats":
        stats = await engine.recommendation_stats()
        print(json.dumps(stats.model_dump(), indent=2))
        return

    if args.mode == "customer":
        # Bring the customer record up to date before profiling it
        customer = await services.dataset.customers.find_by_id(args.target)
        if customer is not None:
            await services.sync.refresh_customer(customer)
            await services.sync.update_preferences(customer.user_id)

        result = await services.hybrid.recommend_for_customer(args.target, args.top_n)
        if args.json:
            print(result.model_dump_json(indent=2))
            return

        profile = result.profile
        print(f"\nCustomer {profile.customer_id} (user {profile.user_id})")
        print(f"  Segment: {profile.segment.value if profile.segment else '-'}")
        print(f"  Loyalty: {profile.loyalty_level.value if profile.loyalty_level else '-'}")
        print(f"  Confidence: {result.confidence_score:.2f}")
        buckets = result.recommendations
        for name in ("featured", "cross_sell", "upsell", "similar", "trending"):
            print_entries(name, getattr(buckets, name))
        return

    if args.mode == "user":
        entries = await engine.user_based(args.target, args.top_n)
    elif args.mode == "item":
        entries = await engine.item_based(args.target, args.top_n)
    elif args.mode == "category":
        entries = await engine.by_category(args.target, args.top_n)
    elif args.mode == "segment":
        entries = await engine.segment_based(args.target, args.top_n)
    else:
        entries = await engine.popular(args.top_n)

    if args.json:
        print(json.dumps([e.model_dump(mode="json") for e in entries], indent=2))
    else:
        print_entries(f"{args.mode} recommendations", entries)


def main() -> None:
    """Main CLI function."""
    parser = argparse.ArgumentParser(
        description="Get product recommendations from a CSV dataset",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python scripts/predict_cli.py user U0042
  python scripts/predict_cli.py item P0007 --top-n 5
  python scripts/predict_cli.py popular
  python scripts/predict_cli.py customer C0042 --json
        """
    )

    parser.add_argument("mode", choices=MODES, help="Recommendation strategy to run")
    parser.add_argument(
        "target",
        nargs="?",
        default=None,
        help="User id, product id, category or customer id depending on the mode",
    )
    parser.add_argument(
        "--top-n",
        type=int,
        default=10,
        help="Number of recommendations to return (default: 10)"
    )
    parser.add_argument(
        "--data-dir",
        type=str,
        default="data",
        help="Directory containing products.csv and orders.csv (default: data)"
    )
    parser.add_argument("--json", action="store_true", help="Print JSON instead of a table")
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Enable verbose logging"
    )

    args = parser.parse_args()

    if args.verbose:
        logging.getLogger().setLevel(logging.INFO)

    try:
        dataset = load_dataset(args.data_dir)
    except FileNotFoundError as e:
        print(f"Error: dataset not found in {args.data_dir}", file=sys.stderr)
        print(f"  {e}", file=sys.stderr)
        sys.exit(1)

    try:
        asyncio.run(run(args, build_services(dataset)))
    except (CRMRecException, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    print()


if __name__ == "__main__":
    main()
