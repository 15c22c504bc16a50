"""CLI script for getting product recommendations.

Useful for testing and evaluation. Loads a CSV catalog, ranks it against one
product and prints the results to the console. Passing --preferences-dir
keeps the visitor profile between runs, so repeated calls behave like a
browsing session.
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import List, Optional

# Add project root to Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from src.recommender.catalog import CatalogError, InMemoryCatalog
from src.recommender.engine import PRODUCT_PAGE_LIMIT, RecommendationEngine
from src.recommender.models import ScoredCandidate
from src.recommender.preferences import FileStorage, InMemoryStorage, PreferenceStore
from src.recommender.scoring import price_bracket

# Setup logging
logging.basicConfig(
    level=logging.WARNING,
    format="%(levelname)s: %(message)s"
)
logger = logging.getLogger(__name__)


async def get_recommendations(
    catalog_path: str,
    product_id: str,
    limit: int = PRODUCT_PAGE_LIMIT,
    preferences_dir: Optional[str] = None,
    reset: bool = False,
) -> List[ScoredCandidate]:
    """Get recommendations for one product of a CSV catalog.

    Args:
        catalog_path: CSV catalog file
        product_id: ID of the product being viewed
        limit: Number of recommendations to return
        preferences_dir: Directory for the persisted visitor profile
        reset: Clear the visitor profile first

    Returns:
        Ranked candidates
    """
    try:
        catalog = InMemoryCatalog.from_csv(catalog_path)
    except CatalogError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    reference = await catalog.get_product(product_id)
    if reference is None:
        print(f"Error: product {product_id} not found in {catalog_path}", file=sys.stderr)
        sys.exit(1)

    storage = FileStorage(preferences_dir) if preferences_dir else InMemoryStorage()
    engine = RecommendationEngine(catalog=catalog, preferences=PreferenceStore(storage))

    if reset:
        engine.reset_user_preferences()

    return await engine.get_recommendations(reference, limit)


def main() -> None:
    """Main CLI function."""
    parser = argparse.ArgumentParser(
        description="Get product recommendations for a viewed product",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python scripts/recommend_cli.py data/fake_catalog.csv 12
  python scripts/recommend_cli.py data/fake_catalog.csv 12 --limit 4 --explain
  python scripts/recommend_cli.py data/fake_catalog.csv 12 --preferences-dir .prefs
        """
    )

    parser.add_argument("catalog", type=str, help="CSV catalog file")
    parser.add_argument("product_id", type=str, help="ID of the product being viewed")

    parser.add_argument(
        "--limit",
        type=int,
        default=PRODUCT_PAGE_LIMIT,
        help=f"Number of recommendations to return (default: {PRODUCT_PAGE_LIMIT})"
    )

    parser.add_argument(
        "--preferences-dir",
        type=str,
        default=None,
        help="Directory to persist the visitor profile between runs"
    )

    parser.add_argument(
        "--reset",
        action="store_true",
        help="Clear the visitor profile before ranking"
    )

    parser.add_argument(
        "--explain",
        action="store_true",
        help="Show score breakdown for recommendations"
    )

    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Enable verbose logging"
    )

    args = parser.parse_args()

    if args.verbose:
        logging.getLogger().setLevel(logging.INFO)

    if args.limit < 1:
        parser.error("--limit must be a positive integer")

    recommendations = asyncio.run(
        get_recommendations(
            catalog_path=args.catalog,
            product_id=args.product_id,
            limit=args.limit,
            preferences_dir=args.preferences_dir,
            reset=args.reset,
        )
    )

    if not recommendations:
        print(f"\nNo recommendations for product {args.product_id}.\n")
        return

    label = "Newly added" if recommendations[0].is_fallback else "Recommended"
    print(f"\n{label} products for product {args.product_id}:")

    for rank, candidate in enumerate(recommendations, start=1):
        product = candidate.product
        print(
            f"  {rank}. [{product.id}] {product.name} "
            f"({product.category or 'uncategorized'}, "
            f"{product.price if product.price is not None else 'n/a'}, "
            f"{price_bracket(product.price)}) "
            f"score={candidate.recommendation_score:.3f}"
        )
        if args.explain:
            print(
                f"       category={candidate.category_score:.2f} "
                f"price={candidate.price_score:.2f} "
                f"popularity={candidate.popularity_score:.2f} "
                f"preference={candidate.preference_score:.2f}"
            )

    print()


if __name__ == "__main__":
    main()
