"""Pantry item service: what a household keeps, where, and until when."""

import logging
from datetime import date, timedelta
from typing import Any
from uuid import UUID

from sqlalchemy import func, or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Query, Session

from cubord.config import Settings, get_settings
from cubord.database import LIKE_ESCAPE, contains_pattern
from cubord.exceptions import CubordError, DataIntegrityError, NotFoundError, ValidationError
from cubord.models.household import Household
from cubord.models.location import Location
from cubord.models.pantry_item import PantryItem
from cubord.models.product import Product
from cubord.models.user import User
from cubord.schemas.pantry_item import (
    PantryItemCreate,
    PantryItemPage,
    PantryItemResponse,
    PantryItemUpdate,
    PantryStatistics,
)
from cubord.schemas.product import ProductResponse
from cubord.services.access_guard import AccessGuard

logger = logging.getLogger(__name__)

MAX_PAGE_SIZE = 100

# Soonest expiry first, undated stock last
STOCK_ORDER = (PantryItem.expiration_date.is_(None), PantryItem.expiration_date, PantryItem.created_at, PantryItem.id)

TEXT_FIELD_LIMITS = {"unit_of_measure": 50, "notes": 500}


class PantryItemService:
    """Service for the stock kept in a household's locations.

    Every operation requires membership of the household that owns the
    location. Stock of one product in one location is kept as one row per
    expiration date; adding more of the same variant tops the row up.
    """

    def __init__(self, db: Session, guard: AccessGuard | None = None, settings: Settings | None = None):
        self.db = db
        self.guard = guard or AccessGuard(db)
        self.settings = settings or get_settings()

    # Creation

    def create_pantry_item(self, user: User, request: PantryItemCreate | None) -> PantryItemResponse:
        """Add stock, merging it into an existing item with the same expiration date."""
        item = self._stage(user, request)
        self._commit(f"Failed to save pantry item for product {item.product_id}", item)
        logger.info(f"User {user.id} stocked pantry item {item.id} (quantity {item.quantity})")
        return _to_response(item)

    def create_pantry_items(self, user: User, requests: list[PantryItemCreate] | None) -> list[PantryItemResponse]:
        """Add several items at once; nothing is saved if any of them is rejected."""
        if not requests:
            raise ValidationError("Pantry item requests list cannot be null or empty")

        try:
            items = [self._stage(user, request) for request in requests]
        except CubordError:
            self.db.rollback()
            raise

        self._commit("Failed to save pantry items", *items)
        logger.info(f"User {user.id} stocked {len(items)} pantry items in one batch")
        return [_to_response(item) for item in items]

    # Reads

    def get_pantry_item(self, user: User, item_id: UUID | None) -> PantryItemResponse:
        item = self._get_item(item_id)
        self.guard.authorize(user, item.location.household_id)
        return _to_response(item)

    def get_pantry_items_by_location(self, user: User, location_id: UUID | None) -> list[PantryItemResponse]:
        location = self._get_location(location_id)
        self.guard.authorize(user, location.household_id)

        items = self.db.query(PantryItem).filter(PantryItem.location_id == location.id).order_by(*STOCK_ORDER).all()
        return _to_responses(items)

    def get_pantry_items_by_household(
        self, user: User, household_id: UUID | None, page: int = 0, size: int = 20
    ) -> PantryItemPage:
        """List a household's stock across all its locations, one page at a time."""
        if page < 0:
            raise ValidationError("Page index cannot be negative")
        if size < 1 or size > MAX_PAGE_SIZE:
            raise ValidationError(f"Page size must be between 1 and {MAX_PAGE_SIZE}")
        household = self._get_household(household_id)
        self.guard.authorize(user, household.id)

        query = self._household_items(household.id)
        total = query.count()
        items = query.order_by(*STOCK_ORDER).offset(page * size).limit(size).all()
        return PantryItemPage(items=_to_responses(items), total=total, page=page, size=size)

    def get_low_stock_items(
        self, user: User, household_id: UUID | None, threshold: int | None = None
    ) -> list[PantryItemResponse]:
        """List items whose quantity is at or below the threshold, lowest first."""
        if threshold is None:
            threshold = self.settings.pantry_low_stock_threshold
        if threshold < 0:
            raise ValidationError("Threshold must be non-negative")
        household = self._get_household(household_id)
        self.guard.authorize(user, household.id)

        items = (
            self._household_items(household.id)
            .join(Product, PantryItem.product_id == Product.id)
            .filter(PantryItem.quantity <= threshold)
            .order_by(PantryItem.quantity, Product.name, PantryItem.id)
            .all()
        )
        return _to_responses(items)

    def get_expiring_items(
        self,
        user: User,
        household_id: UUID | None,
        start_date: date | None = None,
        end_date: date | None = None,
    ) -> list[PantryItemResponse]:
        """List items expiring between two dates, inclusive, soonest first.

        The window defaults to today through the configured number of days ahead.
        """
        start_date = start_date or date.today()
        end_date = end_date or start_date + timedelta(days=self.settings.pantry_expiring_days)
        if start_date > end_date:
            raise ValidationError("Start date must be before or equal to end date")
        household = self._get_household(household_id)
        self.guard.authorize(user, household.id)

        items = (
            self._household_items(household.id)
            .filter(PantryItem.expiration_date.between(start_date, end_date))
            .order_by(*STOCK_ORDER)
            .all()
        )
        return _to_responses(items)

    def search_pantry_items(
        self, user: User, household_id: UUID | None, search_term: str | None
    ) -> list[PantryItemResponse]:
        """Search a household's stock by product name, brand or notes, ignoring case."""
        if search_term is None or not search_term.strip():
            raise ValidationError("Search term cannot be null or empty")
        household = self._get_household(household_id)
        self.guard.authorize(user, household.id)

        pattern = contains_pattern(search_term.strip())
        items = (
            self._household_items(household.id)
            .join(Product, PantryItem.product_id == Product.id)
            .filter(
                or_(
                    Product.name.ilike(pattern, escape=LIKE_ESCAPE),
                    Product.brand.ilike(pattern, escape=LIKE_ESCAPE),
                    PantryItem.notes.ilike(pattern, escape=LIKE_ESCAPE),
                )
            )
            .order_by(Product.name, *STOCK_ORDER)
            .all()
        )
        return _to_responses(items)

    def get_pantry_statistics(self, user: User, household_id: UUID | None) -> PantryStatistics:
        household = self._get_household(household_id)
        self.guard.authorize(user, household.id)

        today = date.today()
        cutoff = today + timedelta(days=self.settings.pantry_expiring_days)

        def count(*criteria) -> int:
            return self._household_items(household.id).filter(*criteria).count()

        unique_products = (
            self._household_items(household.id)
            .with_entities(func.count(func.distinct(PantryItem.product_id)))
            .scalar()
        )
        return PantryStatistics(
            total_items=count(),
            unique_products=unique_products,
            expiring_within_week=count(PantryItem.expiration_date.between(today, cutoff)),
            low_stock=count(PantryItem.quantity <= self.settings.pantry_low_stock_threshold),
        )

    # Changes

    def update_pantry_item(
        self, user: User, item_id: UUID | None, request: PantryItemUpdate | None
    ) -> PantryItemResponse:
        """Overwrite the provided fields, possibly moving the item to another location."""
        if request is None:
            raise ValidationError("Update request cannot be null")
        _check_quantity(request.quantity)

        item = self._get_item(item_id)
        self.guard.authorize(user, item.location.household_id)
        new_location = None
        if request.location_id is not None:
            new_location = self._get_location(request.location_id)
            self.guard.authorize(user, new_location.household_id)

        if request.quantity is not None:
            item.quantity = request.quantity
        if request.unit_of_measure is not None:
            item.unit_of_measure = request.unit_of_measure
        if request.expiration_date is not None:
            item.expiration_date = request.expiration_date
        if request.notes is not None:
            item.notes = request.notes
        if new_location is not None:
            item.location = new_location

        self._commit(f"Failed to update pantry item {item.id}", item)
        logger.info(f"User {user.id} updated pantry item {item.id}")
        return _to_response(item)

    def patch_pantry_item(
        self, user: User, item_id: UUID | None, patch_data: dict[str, Any] | None
    ) -> PantryItemResponse:
        """Apply a sparse update to quantity, unit, expiration date, notes or location."""
        if patch_data is None:
            raise ValidationError("Patch data cannot be null")
        if not patch_data:
            raise ValidationError("Patch data cannot be empty")

        item = self._get_item(item_id)
        self.guard.authorize(user, item.location.household_id)

        logger.debug(f"Patching pantry item {item.id} with fields {list(patch_data)}")
        try:
            for field, value in patch_data.items():
                if field == "quantity":
                    if value is not None and (isinstance(value, bool) or not isinstance(value, int)):
                        raise ValidationError("Quantity must be an integer")
                    _check_quantity(value)
                    item.quantity = value
                elif field in TEXT_FIELD_LIMITS:
                    setattr(item, field, _text_value(field, value))
                elif field == "expiration_date":
                    item.expiration_date = _date_value(value)
                elif field == "location_id":
                    # A null location leaves the item where it is
                    if value is not None:
                        location = self._get_location(_uuid_value(value))
                        self.guard.authorize(user, location.household_id)
                        item.location = location
                else:
                    logger.debug(f"Ignoring unknown pantry item field: {field}")
        except CubordError:
            self.db.rollback()
            raise

        self._commit(f"Failed to patch pantry item {item.id}", item)
        logger.info(f"User {user.id} patched pantry item {item.id}")
        return _to_response(item)

    def delete_pantry_item(self, user: User, item_id: UUID | None) -> None:
        item = self._get_item(item_id)
        self.guard.authorize(user, item.location.household_id)

        try:
            self.db.delete(item)
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Failed to delete pantry item {item_id}", exc_info=True)
            raise DataIntegrityError(f"Failed to delete pantry item: {e}") from e
        logger.info(f"User {user.id} deleted pantry item {item_id}")

    def delete_pantry_items(self, user: User, item_ids: list[UUID] | None) -> int:
        """Delete the listed items that exist and return how many were removed.

        Unknown ids are skipped; an item in a foreign household aborts the
        whole batch.
        """
        if not item_ids:
            raise ValidationError("Pantry item IDs list cannot be null or empty")

        deleted = 0
        try:
            for item_id in dict.fromkeys(item_ids):
                item = self.db.query(PantryItem).filter(PantryItem.id == item_id).first()
                if item is None:
                    logger.warning(f"Pantry item {item_id} not found during batch delete, skipping")
                    continue
                self.guard.authorize(user, item.location.household_id)
                self.db.delete(item)
                deleted += 1
        except CubordError:
            self.db.rollback()
            raise

        self._commit("Failed to delete pantry items")
        logger.info(f"User {user.id} deleted {deleted} of {len(item_ids)} pantry items")
        return deleted

    # Helpers

    def _stage(self, user: User, request: PantryItemCreate | None) -> PantryItem:
        if request is None:
            raise ValidationError("Pantry item request cannot be null")
        if request.product_id is None:
            raise ValidationError("Product ID cannot be null")
        if request.location_id is None:
            raise ValidationError("Location ID cannot be null")
        _check_quantity(request.quantity)

        location = self._get_location(request.location_id)
        self.guard.authorize(user, location.household_id)
        product = self.db.query(Product).filter(Product.id == request.product_id).first()
        if product is None:
            raise NotFoundError("Product", request.product_id)

        item = self._find_variant(location.id, product.id, request.expiration_date)
        if item is None:
            item = PantryItem(
                product_id=product.id,
                location_id=location.id,
                expiration_date=request.expiration_date,
                quantity=request.quantity,
                unit_of_measure=request.unit_of_measure,
                notes=request.notes,
            )
            self.db.add(item)
        else:
            item.quantity = (item.quantity or 0) + (request.quantity or 0)
            if request.unit_of_measure is not None:
                item.unit_of_measure = request.unit_of_measure
            if request.notes is not None:
                item.notes = request.notes
            logger.debug(f"Merged stock into pantry item {item.id}, quantity now {item.quantity}")

        try:
            self.db.flush()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Failed to stage pantry item for product {product.id}", exc_info=True)
            raise DataIntegrityError(f"Failed to save pantry item: {e}") from e
        return item

    def _find_variant(self, location_id: UUID, product_id: UUID, expiration_date: date | None) -> PantryItem | None:
        if expiration_date is None:
            same_date = PantryItem.expiration_date.is_(None)
        else:
            same_date = PantryItem.expiration_date == expiration_date
        return (
            self.db.query(PantryItem)
            .filter(PantryItem.location_id == location_id, PantryItem.product_id == product_id, same_date)
            .first()
        )

    def _household_items(self, household_id: UUID) -> Query:
        return (
            self.db.query(PantryItem)
            .join(Location, PantryItem.location_id == Location.id)
            .filter(Location.household_id == household_id)
        )

    def _get_household(self, household_id: UUID | None) -> Household:
        if household_id is None:
            raise ValidationError("Household ID cannot be null")
        household = self.db.query(Household).filter(Household.id == household_id).first()
        if household is None:
            raise NotFoundError("Household", household_id)
        return household

    def _get_location(self, location_id: UUID | None) -> Location:
        if location_id is None:
            raise ValidationError("Location ID cannot be null")
        location = self.db.query(Location).filter(Location.id == location_id).first()
        if location is None:
            raise NotFoundError("Location", location_id)
        return location

    def _get_item(self, item_id: UUID | None) -> PantryItem:
        if item_id is None:
            raise ValidationError("Pantry item ID cannot be null")
        item = self.db.query(PantryItem).filter(PantryItem.id == item_id).first()
        if item is None:
            raise NotFoundError("Pantry item", item_id)
        return item

    def _commit(self, failure: str, *items: PantryItem) -> None:
        try:
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(failure, exc_info=True)
            raise DataIntegrityError(f"{failure}: {e}") from e
        for item in items:
            self.db.refresh(item)


def _check_quantity(quantity: int | None) -> None:
    if quantity is not None and quantity < 0:
        raise ValidationError("Quantity cannot be negative")


def _text_value(field: str, value: Any) -> str | None:
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValidationError(f"{field} must be a string")
    if len(value) > TEXT_FIELD_LIMITS[field]:
        raise ValidationError(f"{field} cannot exceed {TEXT_FIELD_LIMITS[field]} characters")
    return value


def _date_value(value: Any) -> date | None:
    if value is None or isinstance(value, date):
        return value
    if not isinstance(value, str):
        raise ValidationError("Expiration date must be an ISO date string")
    try:
        return date.fromisoformat(value)
    except ValueError as e:
        raise ValidationError(f"Invalid expiration date: {value}") from e


def _uuid_value(value: Any) -> UUID:
    if isinstance(value, UUID):
        return value
    try:
        return UUID(str(value))
    except ValueError as e:
        raise ValidationError(f"Invalid location ID: {value}") from e


def _to_response(item: PantryItem) -> PantryItemResponse:
    return PantryItemResponse(
        id=item.id,
        product=ProductResponse.model_validate(item.product),
        location_id=item.location_id,
        location_name=item.location.name,
        household_id=item.location.household_id,
        expiration_date=item.expiration_date,
        quantity=item.quantity,
        unit_of_measure=item.unit_of_measure,
        notes=item.notes,
        created_at=item.created_at,
        updated_at=item.updated_at,
    )


def _to_responses(items: list[PantryItem]) -> list[PantryItemResponse]:
    return [_to_response(item) for item in items]
