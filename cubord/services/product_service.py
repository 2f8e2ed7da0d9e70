"""Product catalog service with UPC enrichment."""

import logging
import re
from datetime import UTC, datetime
from typing import Any
from uuid import UUID

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from cubord.config import Settings, get_settings
from cubord.database import LIKE_ESCAPE, contains_pattern
from cubord.exceptions import (
    BusinessRuleViolationError,
    ConflictError,
    CubordError,
    DataIntegrityError,
    ExternalServiceError,
    NotFoundError,
    ParsingError,
    ValidationError,
)
from cubord.models.enums import ProductDataSource
from cubord.models.product import Product
from cubord.models.user import User
from cubord.schemas.product import (
    ProductCreate,
    ProductPage,
    ProductResponse,
    ProductStatistics,
    ProductUpdate,
)
from cubord.services.access_guard import AccessGuard
from cubord.services.upc_api import UpcApiService, UpcLookupResult

logger = logging.getLogger(__name__)

MAX_PAGE_SIZE = 100

SORTABLE_FIELDS = {
    "name": Product.name,
    "upc": Product.upc,
    "brand": Product.brand,
    "category": Product.category,
    "created_at": Product.created_at,
    "updated_at": Product.updated_at,
}

# Failures of the lookup that leave a product to be entered manually
LOOKUP_ERRORS = (ExternalServiceError, ParsingError)

# UPC-A is 12 digits, EAN-13 is 13
UPC_PATTERN = re.compile(r"[0-9]{12,13}")


class ProductService:
    """Service for the global product catalog.

    Any authenticated user may read and create products. Changing or removing
    existing products, and driving enrichment retries, needs the global ADMIN
    role.
    """

    def __init__(
        self,
        db: Session,
        upc_api: UpcApiService | None = None,
        guard: AccessGuard | None = None,
        settings: Settings | None = None,
    ):
        self.db = db
        self.settings = settings or get_settings()
        self.upc_api = upc_api or UpcApiService(self.settings)
        self.guard = guard or AccessGuard(db)

    @property
    def max_retry_attempts(self) -> int:
        return self.settings.product_max_retry_attempts

    # Creation

    def create_product(self, user: User, request: ProductCreate | None) -> ProductResponse:
        """Create a product, enriching it from the UPC lookup when possible.

        The lookup is best effort: when it fails, the product is saved with the
        manually entered fields and flagged for a later retry.
        """
        if request is None:
            raise ValidationError("Product request cannot be null")
        upc = _require_upc(request.upc)
        if request.name is None or not request.name.strip():
            raise ValidationError("Product name cannot be null or empty")
        _check_expiration_days(request.default_expiration_days)

        logger.debug(f"User {user.id} creating product with UPC {upc}")

        if self._find_by_upc(upc) is not None:
            raise ConflictError(f"Product with UPC '{upc}' already exists")

        product = Product(
            upc=upc,
            name=request.name,
            brand=request.brand,
            category=request.category,
            default_expiration_days=request.default_expiration_days,
        )
        self._enrich_on_create(product)

        self.db.add(product)
        self._commit(product, f"Failed to save product with UPC {upc}")
        logger.info(f"User {user.id} created product {product.id} ({product.data_source})")
        return ProductResponse.model_validate(product)

    def bulk_import_products(self, user: User, requests: list[ProductCreate] | None) -> list[ProductResponse]:
        """Create several products, skipping the ones that cannot be created."""
        if not requests:
            raise ValidationError("Product requests list cannot be null or empty")
        self.guard.require_admin(user, "bulk import")

        imported = []
        for request in requests:
            upc = getattr(request, "upc", None)
            try:
                imported.append(self.create_product(user, request))
            except ConflictError:
                logger.warning(f"Skipping duplicate product with UPC {upc}")
            except CubordError as e:
                logger.error(f"Failed to import product with UPC {upc}: {e.message}")

        logger.info(f"Bulk import completed: {len(imported)} of {len(requests)} products imported")
        return imported

    # Reads

    def get_product(self, user: User, product_id: UUID | None) -> ProductResponse:
        logger.debug(f"User {user.id} getting product {product_id}")
        return ProductResponse.model_validate(self._get_product(product_id))

    def get_product_by_upc(self, user: User, upc: str | None) -> ProductResponse:
        upc = _require_upc(upc)
        logger.debug(f"User {user.id} getting product by UPC {upc}")
        product = self._find_by_upc(upc)
        if product is None:
            raise NotFoundError("Product")
        return ProductResponse.model_validate(product)

    def search_products_by_name(self, user: User, search_term: str | None) -> list[ProductResponse]:
        """Find products whose name contains the term, ignoring case."""
        if search_term is None or not search_term.strip():
            raise ValidationError("Search term cannot be null or empty")
        logger.debug(f"User {user.id} searching products by name: {search_term}")
        pattern = contains_pattern(search_term.strip().lower())
        products = (
            self.db.query(Product)
            .filter(func.lower(Product.name).like(pattern, escape=LIKE_ESCAPE))
            .order_by(Product.name)
            .all()
        )
        return _to_responses(products)

    def get_products_by_category(self, user: User, category: str | None) -> list[ProductResponse]:
        if category is None:
            raise ValidationError("Category cannot be null")
        products = self.db.query(Product).filter(Product.category == category).order_by(Product.name).all()
        return _to_responses(products)

    def get_products_by_brand(self, user: User, brand: str | None) -> list[ProductResponse]:
        if brand is None:
            raise ValidationError("Brand cannot be null")
        products = self.db.query(Product).filter(Product.brand == brand).order_by(Product.name).all()
        return _to_responses(products)

    def get_products_by_data_source(
        self, user: User, data_source: ProductDataSource | None
    ) -> list[ProductResponse]:
        if data_source is None:
            raise ValidationError("Data source cannot be null")
        products = (
            self.db.query(Product)
            .filter(Product.data_source == ProductDataSource(data_source).value)
            .order_by(Product.name)
            .all()
        )
        return _to_responses(products)

    def list_products(
        self,
        user: User,
        page: int = 0,
        size: int = 20,
        sort_by: str = "name",
        descending: bool = False,
    ) -> ProductPage:
        """List the catalog one page at a time."""
        if page < 0:
            raise ValidationError("Page index cannot be negative")
        if size < 1 or size > MAX_PAGE_SIZE:
            raise ValidationError(f"Page size must be between 1 and {MAX_PAGE_SIZE}")
        if sort_by not in SORTABLE_FIELDS:
            raise ValidationError(f"Cannot sort products by '{sort_by}'")

        column = SORTABLE_FIELDS[sort_by]
        order = column.desc() if descending else column.asc()
        total = self.db.query(func.count(Product.id)).scalar()
        products = self.db.query(Product).order_by(order, Product.id).offset(page * size).limit(size).all()
        return ProductPage(items=_to_responses(products), total=total, page=page, size=size)

    def get_products_requiring_retry(self, user: User) -> list[ProductResponse]:
        products = self.db.query(Product).filter(Product.requires_api_retry.is_(True)).order_by(Product.name).all()
        return _to_responses(products)

    def get_products_eligible_for_retry(self, user: User, max_retry_attempts: int) -> list[ProductResponse]:
        if max_retry_attempts < 0:
            raise ValidationError("Max retry attempts cannot be negative")
        return _to_responses(self._eligible_for_retry(max_retry_attempts))

    def get_product_statistics(self, user: User) -> ProductStatistics:
        """Count products by data source and retry state."""

        def count(*criteria) -> int:
            return self.db.query(func.count(Product.id)).filter(*criteria).scalar()

        return ProductStatistics(
            total=count(),
            manual=count(Product.data_source == ProductDataSource.MANUAL.value),
            api=count(Product.data_source == ProductDataSource.EXTERNAL_API.value),
            requires_retry=count(Product.requires_api_retry.is_(True)),
        )

    def is_upc_available(self, user: User, upc: str | None) -> bool:
        return self._find_by_upc(_require_upc(upc)) is None

    # Admin-only writes

    def update_product(self, user: User, product_id: UUID | None, request: ProductUpdate | None) -> ProductResponse:
        """Overwrite the provided fields of a product."""
        if request is None:
            raise ValidationError("Update request cannot be null")
        if request.name is not None and not request.name.strip():
            raise ValidationError("Product name cannot be empty")
        _check_expiration_days(request.default_expiration_days)
        self.guard.require_admin(user, "update")

        product = self._get_product(product_id)
        if request.name is not None:
            product.name = request.name
        if request.brand is not None:
            product.brand = request.brand
        if request.category is not None:
            product.category = request.category
        if request.default_expiration_days is not None:
            product.default_expiration_days = request.default_expiration_days

        self._commit(product, f"Failed to update product {product.id}")
        logger.info(f"Admin user {user.id} updated product {product.id}")
        return ProductResponse.model_validate(product)

    def patch_product(self, user: User, product_id: UUID | None, patch_data: dict[str, Any] | None) -> ProductResponse:
        """Apply a sparse update to name, brand, category or default_expiration_days."""
        if patch_data is None:
            raise ValidationError("Patch data cannot be null")
        if not patch_data:
            raise ValidationError("Patch data cannot be empty")
        self.guard.require_admin(user, "update")

        product = self._get_product(product_id)
        try:
            for field, value in patch_data.items():
                if field == "name":
                    if not isinstance(value, str) or not value.strip():
                        raise ValidationError("Name must be a non-empty string")
                    product.name = value
                elif field in ("brand", "category"):
                    if value is not None and not isinstance(value, str):
                        raise ValidationError(f"{field.capitalize()} must be a string")
                    setattr(product, field, value)
                elif field == "default_expiration_days":
                    if value is not None and (isinstance(value, bool) or not isinstance(value, int)):
                        raise ValidationError("Default expiration days must be an integer")
                    _check_expiration_days(value)
                    product.default_expiration_days = value
                else:
                    logger.debug(f"Ignoring unknown product field: {field}")
        except CubordError:
            self.db.rollback()
            raise

        self._commit(product, f"Failed to patch product {product.id}")
        logger.info(f"Admin user {user.id} patched product {product.id}")
        return ProductResponse.model_validate(product)

    def delete_product(self, user: User, product_id: UUID | None) -> None:
        self.guard.require_admin(user, "delete")
        product = self._get_product(product_id)

        try:
            self.db.delete(product)
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Failed to delete product {product_id}", exc_info=True)
            raise DataIntegrityError(f"Failed to delete product: {e}") from e
        logger.info(f"Admin user {user.id} deleted product {product_id}")

    def bulk_delete_products(self, user: User, product_ids: list[UUID] | None) -> int:
        """Delete the listed products that exist and return how many were removed."""
        if not product_ids:
            raise ValidationError("Product IDs list cannot be null or empty")
        self.guard.require_admin(user, "bulk delete")

        products = self.db.query(Product).filter(Product.id.in_(product_ids)).all()
        try:
            for product in products:
                self.db.delete(product)
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error("Bulk product delete failed", exc_info=True)
            raise DataIntegrityError(f"Failed to delete products: {e}") from e

        logger.info(f"Bulk delete completed: {len(products)} of {len(product_ids)} products deleted")
        return len(products)

    # Enrichment retries

    def retry_api_enrichment(self, user: User, product_id: UUID | None) -> ProductResponse:
        """Look a product up again and apply the result.

        Raises:
            BusinessRuleViolationError: the product used up its retry attempts
            ExternalServiceError: the lookup failed; the attempt is still counted
        """
        self.guard.require_admin(user, "retry API enrichment for")
        product = self._get_product(product_id)

        if product.retry_attempts >= self.max_retry_attempts:
            raise BusinessRuleViolationError("Maximum retry attempts exceeded for product")

        try:
            lookup = self.upc_api.fetch_product_data(product.upc)
        except LOOKUP_ERRORS as e:
            self._record_failed_attempt(product)
            self._commit(product, f"Failed to record retry for product {product.id}")
            logger.warning(f"Retry {product.retry_attempts} for product {product.id} failed: {e.message}")
            raise ExternalServiceError("Product enrichment", f"Failed to enrich product: {e.message}") from e

        self._apply_retry_lookup(product, lookup)
        self._commit(product, f"Failed to save enrichment for product {product.id}")
        logger.info(f"Admin user {user.id} retried enrichment of product {product.id}")
        return ProductResponse.model_validate(product)

    def process_batch_retry(self, user: User, max_retry_attempts: int) -> int:
        """Retry enrichment of every eligible product; admin entry point."""
        if max_retry_attempts < 0:
            raise ValidationError("Max retry attempts cannot be negative")
        self.guard.require_admin(user, "process batch retry for")
        return self.retry_pending_products(max_retry_attempts)

    def retry_pending_products(self, max_retry_attempts: int | None = None) -> int:
        """Retry enrichment of flagged products below the attempt ceiling.

        Returns the number of products that were enriched.
        """
        ceiling = self.max_retry_attempts if max_retry_attempts is None else max_retry_attempts
        products = self._eligible_for_retry(ceiling)
        enriched = 0

        for product in products:
            try:
                lookup = self.upc_api.fetch_product_data(product.upc)
            except LOOKUP_ERRORS as e:
                logger.warning(f"Batch retry failed for product {product.id}: {e.message}")
                self._record_failed_attempt(product)
            else:
                self._apply_retry_lookup(product, lookup)
                if lookup.found:
                    enriched += 1
            self._commit(product, f"Failed to save retry state for product {product.id}")

        logger.info(f"Batch retry enriched {enriched} of {len(products)} products")
        return enriched

    # Helpers

    def _enrich_on_create(self, product: Product) -> None:
        try:
            lookup = self.upc_api.fetch_product_data(product.upc)
        except LOOKUP_ERRORS as e:
            logger.warning(f"UPC lookup failed for {product.upc}, creating manual entry: {e.message}")
            product.data_source = ProductDataSource.MANUAL.value
            product.requires_api_retry = True
            product.retry_attempts = 0
            return

        if lookup.found:
            _apply_lookup(product, lookup)
            logger.debug(f"Enriched product {product.upc} from the UPC lookup")
        else:
            product.data_source = ProductDataSource.MANUAL.value
            product.requires_api_retry = True
            product.retry_attempts = lookup.retry_attempts
            product.last_retry_attempt = lookup.last_retry_attempt

    def _apply_retry_lookup(self, product: Product, lookup: UpcLookupResult) -> None:
        if lookup.found:
            _apply_lookup(product, lookup)
        else:
            self._record_failed_attempt(product)

    def _record_failed_attempt(self, product: Product) -> None:
        product.requires_api_retry = True
        product.retry_attempts = (product.retry_attempts or 0) + 1
        product.last_retry_attempt = datetime.now(UTC)

    def _eligible_for_retry(self, max_retry_attempts: int) -> list[Product]:
        return (
            self.db.query(Product)
            .filter(
                Product.requires_api_retry.is_(True),
                Product.retry_attempts < max_retry_attempts,
            )
            .order_by(Product.created_at)
            .all()
        )

    def _find_by_upc(self, upc: str) -> Product | None:
        return self.db.query(Product).filter(Product.upc == upc).first()

    def _get_product(self, product_id: UUID | None) -> Product:
        if product_id is None:
            raise ValidationError("Product ID cannot be null")
        product = self.db.query(Product).filter(Product.id == product_id).first()
        if product is None:
            raise NotFoundError("Product", product_id)
        return product

    def _commit(self, product: Product, failure: str) -> None:
        try:
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(failure, exc_info=True)
            raise DataIntegrityError(f"{failure}: {e}") from e
        self.db.refresh(product)


def _apply_lookup(product: Product, lookup: UpcLookupResult) -> None:
    if lookup.name:
        product.name = lookup.name
    if lookup.brand:
        product.brand = lookup.brand
    if lookup.category:
        product.category = lookup.category
    product.data_source = ProductDataSource.EXTERNAL_API.value
    product.requires_api_retry = False
    product.retry_attempts = 0


def is_valid_upc(upc: str | None) -> bool:
    """Check that a barcode has the 12 or 13 digit UPC/EAN format.

    Lookups do not require this; unusual codes are still sent upstream.
    """
    if upc is None:
        return False
    return UPC_PATTERN.fullmatch(upc.strip()) is not None


def _require_upc(upc: str | None) -> str:
    if upc is None or not upc.strip():
        raise ValidationError("UPC cannot be null or empty")
    return upc


def _check_expiration_days(days: int | None) -> None:
    if days is not None and days <= 0:
        raise ValidationError("Default expiration days must be positive")


def _to_responses(products: list[Product]) -> list[ProductResponse]:
    return [ProductResponse.model_validate(product) for product in products]
