"""
Catalog Backend: Product Service (Data Accessor)
================================================

What:  Executes the five product statements against the store and translates
       outcomes into domain results or application exceptions.
How:   Each operation opens one session from the injected `Database`, runs a
       single parameterized SQLAlchemy statement, and commits.
Who:   Called by the route handlers in routes/products.py.

Statement Inventory:
    list_products   SELECT ... ORDER BY created_at DESC, id DESC
    get_product     SELECT ... WHERE id = :id
    create_product  INSERT ... RETURNING *
    update_product  UPDATE ... WHERE id = :id RETURNING *
    delete_product  DELETE ... WHERE id = :id RETURNING *

Error Handling Strategy:
    - Missing fields           → ValidationError (400)
    - No row for an id         → NotFoundError (404)
    - SQLAlchemyError, OSError → DatabaseError (500), original error logged
    Nothing is retried.
"""

import logging
from decimal import Decimal
from typing import List, Optional, Tuple

from sqlalchemy import delete, desc, insert, select, update
from sqlalchemy.exc import SQLAlchemyError

from catalog.database import Database
from catalog.exceptions import DatabaseError, NotFoundError, ValidationError
from catalog.models.product import Product
from catalog.schemas.product import ProductPayload

logger = logging.getLogger(__name__)

REQUIRED_FIELDS = ("name", "image", "price")

# Drivers surface refused or dropped connections as plain OSError.
STORAGE_ERRORS = (SQLAlchemyError, OSError)


def validate_payload(payload: Optional[ProductPayload]) -> Tuple[str, str, Decimal]:
    """
    Presence check for create/update bodies.

    Returns the (name, image, price) triple when all three are present;
    blank strings count as missing.

    Raises:
        ValidationError: listing every missing field
    """
    if payload is None:
        raise ValidationError("All fields are required", fields=list(REQUIRED_FIELDS))

    missing = []
    if payload.name is None or not payload.name.strip():
        missing.append("name")
    if payload.image is None or not payload.image.strip():
        missing.append("image")
    if payload.price is None:
        missing.append("price")
    if missing:
        raise ValidationError("All fields are required", fields=missing)

    return payload.name, payload.image, payload.price


class ProductService:
    """
    Data accessor for the `products` table.

    Holds no state besides the store client it was constructed with, so one
    instance serves every request.
    """

    def __init__(self, database: Database):
        self.database = database

    async def list_products(self) -> List[Product]:
        stmt = select(Product).order_by(desc(Product.created_at), desc(Product.id))
        try:
            async with self.database.session() as session:
                result = await session.scalars(stmt)
                return list(result.all())
        except STORAGE_ERRORS as e:
            raise self._storage_failure("list_products", e) from e

    async def get_product(self, product_id: int) -> Product:
        stmt = select(Product).where(Product.id == product_id)
        try:
            async with self.database.session() as session:
                product = (await session.scalars(stmt)).one_or_none()
        except STORAGE_ERRORS as e:
            raise self._storage_failure("get_product", e, product_id=product_id) from e

        if product is None:
            raise NotFoundError(resource="Product", resource_id=product_id)
        return product

    async def create_product(self, name: str, image: str, price: Decimal) -> Product:
        """
        Insert a product; the store assigns `id` and `created_at`.
        """
        stmt = (
            insert(Product)
            .values(name=name, image=image, price=price)
            .returning(Product)
        )
        try:
            async with self.database.session() as session:
                product = (await session.scalars(stmt)).one()
        except STORAGE_ERRORS as e:
            raise self._storage_failure("create_product", e) from e

        logger.debug("Product created: %s", product.id)
        return product

    async def update_product(
        self, product_id: int, name: str, image: str, price: Decimal
    ) -> Product:
        """
        Overwrite name/image/price of an existing product.

        A missing id raises NotFoundError; UPDATE never inserts. Concurrent
        updates to the same id resolve last-write-wins at the store.
        """
        stmt = (
            update(Product)
            .where(Product.id == product_id)
            .values(name=name, image=image, price=price)
            .returning(Product)
            .execution_options(synchronize_session=False)
        )
        try:
            async with self.database.session() as session:
                product = (await session.scalars(stmt)).one_or_none()
        except STORAGE_ERRORS as e:
            raise self._storage_failure("update_product", e, product_id=product_id) from e

        if product is None:
            raise NotFoundError(resource="Product", resource_id=product_id)
        return product

    async def delete_product(self, product_id: int) -> Product:
        """Delete a product and return the row as it was before deletion."""
        stmt = (
            delete(Product)
            .where(Product.id == product_id)
            .returning(Product)
            .execution_options(synchronize_session=False)
        )
        try:
            async with self.database.session() as session:
                product = (await session.scalars(stmt)).one_or_none()
        except STORAGE_ERRORS as e:
            raise self._storage_failure("delete_product", e, product_id=product_id) from e

        if product is None:
            raise NotFoundError(resource="Product", resource_id=product_id)
        return product

    @staticmethod
    def _storage_failure(operation: str, error: Exception, **context) -> DatabaseError:
        logger.error("Database error in %s: %s", operation, error)
        return DatabaseError(context={"operation": operation, **context})
