"""
Product catalog and stock adjustment service.

Stock quantities only change through adjust_stock, which appends a ledger
entry and then rewrites the product quantity. The two writes are
independent; the ledger is never updated or deleted.
"""

from typing import Optional
import structlog

from models.product import (
    ProductCreate,
    ProductUpdate,
    ProductResponse,
    InventoryStats,
    StockFilter,
    StockAdjustmentCreate,
    StockAdjustmentResponse,
    StockAdjustmentResult,
    signed_change,
    stock_level,
)
from config.workflow import ADJUSTMENT_HISTORY_LIMIT
from services.entity_store import EntityStore
from exceptions import ProductNotFoundError, ConflictError

logger = structlog.get_logger(__name__)


class ProductService:
    """
    Product business logic.

    Handles catalog CRUD, the inventory view filters and stock adjustments.
    """

    def __init__(self):
        self.products = EntityStore("products")
        self.adjustments = EntityStore("stock_adjustments")

    def _get_row(self, product_id: str) -> dict:
        row = self.products.get(product_id)
        if not row:
            raise ProductNotFoundError(product_id)
        return row

    # ===================
    # READ OPERATIONS
    # ===================

    def get_all(
        self,
        search: Optional[str] = None,
        category: Optional[str] = None,
        stock: Optional[StockFilter] = None
    ) -> list[ProductResponse]:
        """
        Products by name, filtered like the inventory page.

        Args:
            search: Case-insensitive match on name or SKU
            category: Exact category
            stock: low, out or healthy against each product's threshold
        """
        products = [ProductResponse.model_validate(row) for row in self.products.list(sort="name")]

        if search:
            needle = search.strip().lower()
            products = [
                p for p in products
                if needle in p.name.lower() or needle in p.sku.lower()
            ]

        if category:
            products = [p for p in products if p.category == category]

        if stock:
            products = [
                p for p in products
                if stock_level(p.stock_quantity, p.low_stock_threshold) == StockFilter(stock)
            ]

        logger.debug("products_retrieved", count=len(products))

        return products

    def get_by_id(self, product_id: str) -> ProductResponse:
        """
        Get a single product.

        Raises:
            ProductNotFoundError: If product doesn't exist
        """
        return ProductResponse.model_validate(self._get_row(product_id))

    def get_by_sku(self, sku: str) -> Optional[ProductResponse]:
        rows = self.products.filter({"sku": sku.upper()}, limit=1)
        return ProductResponse.model_validate(rows[0]) if rows else None

    def get_categories(self) -> list[str]:
        """Distinct non-empty categories, sorted."""
        return sorted({row["category"] for row in self.products.list() if row.get("category")})

    def get_stats(self) -> InventoryStats:
        """Catalog-wide stock counts and stock value at list price."""
        products = [ProductResponse.model_validate(row) for row in self.products.list()]

        levels = [stock_level(p.stock_quantity, p.low_stock_threshold) for p in products]

        return InventoryStats(
            total_products=len(products),
            low_stock=levels.count(StockFilter.LOW),
            out_of_stock=levels.count(StockFilter.OUT),
            total_value=round(sum(p.stock_quantity * p.price for p in products), 2),
        )

    # ===================
    # WRITE OPERATIONS
    # ===================

    def create(self, data: ProductCreate) -> ProductResponse:
        """
        Create a product.

        Raises:
            ConflictError: SKU already exists
        """
        if self.get_by_sku(data.sku):
            raise ConflictError(
                f"Product with SKU {data.sku} already exists",
                code="DUPLICATE_SKU",
                details={"sku": data.sku}
            )

        row = self.products.create(data.model_dump(mode="json"))

        logger.info("product_created", product_id=row.get("id"), sku=data.sku)

        return ProductResponse.model_validate(row)

    def update(self, product_id: str, data: ProductUpdate) -> ProductResponse:
        self._get_row(product_id)

        update_data = data.model_dump(mode="json", exclude_unset=True)
        if not update_data:
            return self.get_by_id(product_id)

        row = self.products.update(product_id, update_data)
        if row is None:
            raise ProductNotFoundError(product_id)

        logger.info("product_updated", product_id=product_id, fields=list(update_data.keys()))

        return ProductResponse.model_validate(row)

    def delete(self, product_id: str) -> bool:
        self._get_row(product_id)
        self.products.delete(product_id)
        logger.info("product_deleted", product_id=product_id)
        return True

    # ===================
    # STOCK ADJUSTMENTS
    # ===================

    def adjust_stock(
        self,
        product_id: str,
        data: StockAdjustmentCreate,
        actor: Optional[str] = None
    ) -> StockAdjustmentResult:
        """
        Apply a stock adjustment.

        manual_add, found and recount add the quantity; manual_remove and
        damaged subtract it. The new quantity never drops below zero.

        Raises:
            ProductNotFoundError: If product doesn't exist
        """
        product = self._get_row(product_id)

        previous = float(product.get("stock_quantity") or 0)
        change = signed_change(data.adjustment_type, data.quantity)
        new_quantity = max(0.0, previous + change)

        entry = self.adjustments.create({
            "product_id": product_id,
            "sku": product.get("sku"),
            "product_name": product.get("name"),
            "adjustment_type": data.adjustment_type.value,
            "quantity_change": change,
            "previous_quantity": previous,
            "new_quantity": new_quantity,
            "reason": data.reason,
            "adjusted_by": actor,
        })

        row = self.products.update(product_id, {"stock_quantity": new_quantity})
        if row is None:
            raise ProductNotFoundError(product_id)

        logger.info(
            "stock_adjusted",
            product_id=product_id,
            sku=product.get("sku"),
            adjustment_type=data.adjustment_type.value,
            previous_quantity=previous,
            new_quantity=new_quantity,
            actor=actor
        )

        return StockAdjustmentResult(
            adjustment=StockAdjustmentResponse.model_validate(entry),
            product=ProductResponse.model_validate(row),
        )

    def get_adjustments(self, product_id: str) -> list[StockAdjustmentResponse]:
        """Ledger entries for a product, newest first."""
        rows = self.adjustments.filter(
            {"product_id": product_id},
            sort="-created_date",
            limit=ADJUSTMENT_HISTORY_LIMIT
        )
        return [StockAdjustmentResponse.model_validate(row) for row in rows]


# Singleton instance
_product_service: Optional[ProductService] = None


def get_product_service() -> ProductService:
    """Get or create ProductService instance."""
    global _product_service
    if _product_service is None:
        _product_service = ProductService()
    return _product_service
