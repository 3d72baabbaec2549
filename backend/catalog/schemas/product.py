"""
Catalog Backend: Pydantic Request/Response Schemas
==================================================

What:  The JSON contract of the products API and the diagnostic endpoints.
How:   FastAPI validates request bodies against `ProductPayload` and
       serializes responses through `ProductResponse`.

Design Decision:
    `ProductPayload` declares every field optional. Presence is checked by
    ProductService so that a missing field is a 400 with the same message
    regardless of which field is absent.
"""

from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, Field, field_serializer


# ══════════════════════════════════════════════════════════════════════════
# Request Models
# ══════════════════════════════════════════════════════════════════════════


class ProductPayload(BaseModel):
    """
    What:  Body of POST /api/products and PUT /api/products/{id}.

    Example:
        {"name": "Widget", "image": "http://x/i.png", "price": 9.99}
    """
    name: Optional[str] = Field(default=None, description="Product name")
    image: Optional[str] = Field(default=None, description="Image URL or path")
    price: Optional[Decimal] = Field(default=None, description="Price, two decimal places")


# ══════════════════════════════════════════════════════════════════════════
# Response Models
# ══════════════════════════════════════════════════════════════════════════


class ProductResponse(BaseModel):
    """Full representation of a product row."""
    id: int = Field(description="Server-assigned identifier")
    name: str
    image: str
    price: Decimal
    created_at: Optional[datetime] = Field(default=None, description="Creation timestamp")

    model_config = {"from_attributes": True}

    @field_serializer("price")
    def serialize_price(self, price: Decimal) -> float:
        # Clients expect a JSON number, not the Decimal string form
        return float(price)


class MessageResponse(BaseModel):
    message: str


class DiagnosticResponse(BaseModel):
    """
    What:  Introspection of the static asset directory (GET /test-path).
    Who:   Operators debugging a deployment where the SPA does not load.
    Not a stable API.
    """
    base_dir: str = Field(description="Directory of the backend package")
    dist_path: str = Field(description="Static asset directory being served")
    index_path: str = Field(description="Expected location of the SPA entry document")
    exists: bool = Field(description="Whether the entry document exists")
    files: List[str] = Field(description="Directory listing when the entry document exists")


class ErrorResponse(BaseModel):
    """
    What:  Error body returned by every API failure.

    Example:
        {"error": "All fields are required", "details": {"fields": ["price"]}}
    """
    error: str = Field(description="Human-readable error description")
    details: Optional[dict] = Field(default=None, description="Additional error context")
