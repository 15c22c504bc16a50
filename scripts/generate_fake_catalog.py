"""Generate a fake product catalog for testing and development.

Creates a CSV catalog of handcrafted-goods products in the same shape as the
storefront's products table (id, name, category, price, quantity,
ordered_quantity, created_at, imageUrl).

Example:
    Run the script directly to generate default data:
        $ python scripts/generate_fake_catalog.py

    Or import and use programmatically:
        from scripts.generate_fake_catalog import generate_fake_catalog
        df = generate_fake_catalog(num_products=200)
"""

import argparse
import random
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Optional

import pandas as pd

# Default configuration constants
DEFAULT_NUM_PRODUCTS = 60
DEFAULT_DAYS_BACK = 180
SECONDS_PER_DAY = 86400

# category -> (min price, max price)
CATEGORY_PRICES = {
    "saree": (1500, 18000),
    "kurta": (800, 4500),
    "dupatta": (400, 2500),
    "blouse": (600, 3500),
    "t-shirt": (300, 1500),
    "wall-hanging": (900, 9000),
    "painting": (2500, 40000),
    "decoration": (300, 6000),
    "jewellery": (500, 20000),
}


def generate_fake_catalog(
    num_products: int = DEFAULT_NUM_PRODUCTS,
    end_date: Optional[datetime] = None,
    days_back: int = DEFAULT_DAYS_BACK,
    seed: Optional[int] = None,
) -> pd.DataFrame:
    """Generate a synthetic product catalog.

    Roughly one in ten products is sold out and one in twenty carries a
    price formatted as a display string (e.g. "Rs. 1,299"), to exercise price
    normalization.

    Args:
        num_products: Number of products to generate. Must be positive.
        end_date: Latest creation timestamp. Defaults to now (UTC).
        days_back: Spread of creation timestamps, in days.
        seed: Optional random seed.

    Returns:
        DataFrame sorted by id.

    Raises:
        ValueError: If num_products or days_back is not positive.
    """
    if num_products <= 0 or days_back <= 0:
        raise ValueError("num_products and days_back must be positive")

    rng = random.Random(seed)
    end_date = end_date or datetime.now(timezone.utc)

    products = []
    categories = list(CATEGORY_PRICES)

    for product_id in range(1, num_products + 1):
        category = rng.choice(categories)
        low, high = CATEGORY_PRICES[category]
        price = round(rng.uniform(low, high), -1)

        quantity = rng.randint(1, 30)
        if rng.random() < 0.1:
            ordered_quantity = quantity
        else:
            ordered_quantity = rng.randint(0, quantity - 1)

        created_at = end_date - timedelta(
            days=rng.randrange(days_back), seconds=rng.randrange(SECONDS_PER_DAY)
        )

        products.append({
            "id": product_id,
            "name": f"{category.replace('-', ' ').title()} #{product_id}",
            "category": category,
            "price": f"Rs. {price:,.0f}" if rng.random() < 0.05 else price,
            "quantity": quantity,
            "ordered_quantity": ordered_quantity,
            "created_at": created_at.isoformat(),
            "imageUrl": f"https://placehold.co/600x600?text={category}+{product_id}",
        })

    return pd.DataFrame(products)


def main() -> None:
    """Generate a catalog and save it to data/fake_catalog.csv."""
    parser = argparse.ArgumentParser(description="Generate a fake product catalog")
    parser.add_argument(
        "--num-products",
        type=int,
        default=DEFAULT_NUM_PRODUCTS,
        help=f"Number of products (default: {DEFAULT_NUM_PRODUCTS})",
    )
    parser.add_argument("--seed", type=int, default=None, help="Random seed")
    parser.add_argument(
        "--output",
        type=Path,
        default=Path(__file__).parent.parent / "data" / "fake_catalog.csv",
        help="Output CSV path (default: data/fake_catalog.csv)",
    )
    args = parser.parse_args()

    print(f"Generating {args.num_products} fake products...")

    try:
        df = generate_fake_catalog(num_products=args.num_products, seed=args.seed)
    except ValueError as e:
        print(f"Error generating data: {e}")
        return

    args.output.parent.mkdir(parents=True, exist_ok=True)
    df.to_csv(args.output, index=False)

    in_stock = (df["quantity"] - df["ordered_quantity"] > 0).sum()

    print(f"\nCatalog generated successfully!")
    print(f"Saved to: {args.output}")
    print(f"\nData preview:")
    print(df.head(10))
    print(f"\nData summary:")
    print(f"  Total products: {len(df)}")
    print(f"  In stock: {in_stock}")
    print(f"  Categories: {df['category'].nunique()}")


if __name__ == "__main__":
    main()
