"""
PRODUCT CATALOG
In-process catalog of tradable products, loaded from YAML

RESPONSIBILITIES:
- Load and validate products.yml
- Answer availability checks for the ledger engine
- Quote current prices for order intake and valuation

RULES:
✅ Fail fast on invalid config
✅ Prices are Decimal, never float
"""

from dataclasses import replace
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Dict, Iterable, List, Optional

import yaml

from portfolio_ledger.domain.models import Product, ProductCategory
from portfolio_ledger.domain.models.money import price


def _key(product_id: str) -> str:
    """Product ids are case-insensitive"""
    return product_id.strip().upper()


class StaticProductCatalog:
    """
    Product catalog backed by an in-memory table
    Satisfies both the ProductCatalog and PriceProvider protocols
    """

    def __init__(self, products: Iterable[Product] = ()):
        self._products: Dict[str, Product] = {}
        for product in products:
            key = _key(product.product_id)
            if key in self._products:
                raise ValueError(f"Duplicate product id in catalog: {product.product_id}")
            self._products[key] = product

    @classmethod
    def from_yaml(cls, path: Path) -> "StaticProductCatalog":
        """Load the catalog from a products.yml file"""
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Product catalog not found: {path}")

        with open(path, "r") as f:
            data = yaml.safe_load(f) or {}

        products = []
        for entry in data.get("products", []):
            try:
                quote = price(entry["price_per_unit"])
            except (InvalidOperation, KeyError) as exc:
                raise ValueError(f"Invalid price for product {entry.get('product_id')}") from exc

            products.append(
                Product(
                    product_id=str(entry["product_id"]).upper(),
                    name=entry["name"],
                    category=ProductCategory(entry["category"]),
                    price_per_unit=quote,
                    is_active=bool(entry.get("is_active", True)),
                    sector=entry.get("sector"),
                )
            )

        return cls(products)

    def get_product(self, product_id: str) -> Optional[Product]:
        return self._products.get(_key(product_id))

    def list_products(self, active_only: bool = True) -> List[Product]:
        products = sorted(self._products.values(), key=lambda p: p.product_id)
        if active_only:
            return [p for p in products if p.is_active]
        return products

    def set_price(self, product_id: str, new_price: Decimal) -> Product:
        """Replace the quote of an existing product"""
        product = self._products.get(_key(product_id))
        if product is None:
            raise ValueError(f"Unknown product: {product_id}")
        updated = replace(product, price_per_unit=price(new_price))
        self._products[_key(product_id)] = updated
        return updated

    def set_active(self, product_id: str, is_active: bool) -> None:
        product = self._products.get(_key(product_id))
        if product is None:
            raise ValueError(f"Unknown product: {product_id}")
        self._products[_key(product_id)] = replace(product, is_active=is_active)

    # ------------------------------------------------------------------
    # ProductCatalog protocol
    # ------------------------------------------------------------------

    async def is_available(self, product_id: str) -> bool:
        product = self._products.get(_key(product_id))
        return product is not None and product.is_active

    async def get_price(self, product_id: str) -> Optional[Decimal]:
        product = self._products.get(_key(product_id))
        if product is None or not product.is_active:
            return None
        return product.price_per_unit

    # ------------------------------------------------------------------
    # PriceProvider protocol
    # ------------------------------------------------------------------

    async def get_current_prices(self, product_ids: Iterable[str]) -> Dict[str, Decimal]:
        """Quotes for the requested products; unknown ids are left out"""
        return {
            pid: self._products[_key(pid)].price_per_unit
            for pid in product_ids
            if _key(pid) in self._products
        }
