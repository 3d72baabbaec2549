"""
Catalog Backend: Product SQLAlchemy Model
=========================================

What:  ORM model for the `products` table, the only table in the system.
How:   `Database.init_schema()` creates it idempotently at startup:

    products(
        id          SERIAL PRIMARY KEY,
        name        VARCHAR(255) NOT NULL,
        image       VARCHAR(255) NOT NULL,
        price       DECIMAL(10, 2) NOT NULL,
        created_at  TIMESTAMP DEFAULT CURRENT_TIMESTAMP
    )

Lifecycle:
    1. Created by POST /api/products (store assigns id and created_at)
    2. Updated in place by PUT /api/products/{id} (name, image, price only)
    3. Deleted by DELETE /api/products/{id} (hard delete, no versioning)
"""

from datetime import datetime
from decimal import Decimal

from sqlalchemy import DateTime, Integer, Numeric, String, text
from sqlalchemy.orm import Mapped, mapped_column

from catalog.database import Base


class Product(Base):
    """A catalog product. `id` identifies it for its whole lifetime."""

    __tablename__ = "products"

    id: Mapped[int] = mapped_column(
        Integer,
        primary_key=True,
        autoincrement=True,
    )

    name: Mapped[str] = mapped_column(String(255), nullable=False)

    # URL or path of the product image
    image: Mapped[str] = mapped_column(String(255), nullable=False)

    price: Mapped[Decimal] = mapped_column(
        Numeric(10, 2, asdecimal=True),
        nullable=False,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime,
        server_default=text("CURRENT_TIMESTAMP"),
    )

    # Postgres SERIAL never reuses ids; make SQLite (tests) behave the same
    __table_args__ = {"sqlite_autoincrement": True}

    def __repr__(self) -> str:
        return f"<Product(id={self.id}, name='{self.name}', price={self.price})>"
