"""
Catalog Backend: Product Route Handlers
=======================================

What:  The five CRUD endpoints over the products table.
How:   Each handler fetches the ProductService placed on app.state by
       create_app(), delegates, and returns the row(s) as JSON.

    GET    /api/products        → 200 [Product]
    GET    /api/products/{id}   → 200 Product | 404
    (both GET routes also answer HEAD)
    POST   /api/products        → 201 Product | 400
    PUT    /api/products/{id}   → 200 Product | 400 | 404
    DELETE /api/products/{id}   → 200 Product (as deleted) | 404

Errors are raised as application exceptions and rendered by the handlers
registered in main.py.
"""

from typing import List, Optional

from fastapi import APIRouter, Body, Depends, Request, status

from catalog.schemas.product import ErrorResponse, ProductPayload, ProductResponse
from catalog.services.product_service import ProductService, validate_payload

router = APIRouter(prefix="/api/products", tags=["Products"])

_ERRORS = {
    400: {"description": "Missing or malformed fields", "model": ErrorResponse},
    500: {"description": "Storage failure", "model": ErrorResponse},
}
_ID_ERRORS = {**_ERRORS, 404: {"description": "Product not found", "model": ErrorResponse}}


def get_product_service(request: Request) -> ProductService:
    return request.app.state.product_service


@router.api_route(
    "", methods=["GET", "HEAD"], response_model=List[ProductResponse], responses=_ERRORS
)
async def list_products(
    service: ProductService = Depends(get_product_service),
) -> List[ProductResponse]:
    products = await service.list_products()
    return [ProductResponse.model_validate(product) for product in products]


@router.api_route(
    "/{product_id}", methods=["GET", "HEAD"], response_model=ProductResponse, responses=_ID_ERRORS
)
async def get_product(
    product_id: int,
    service: ProductService = Depends(get_product_service),
) -> ProductResponse:
    product = await service.get_product(product_id)
    return ProductResponse.model_validate(product)


@router.post(
    "",
    response_model=ProductResponse,
    status_code=status.HTTP_201_CREATED,
    responses=_ERRORS,
)
async def create_product(
    payload: Optional[ProductPayload] = Body(default=None),
    service: ProductService = Depends(get_product_service),
) -> ProductResponse:
    name, image, price = validate_payload(payload)
    product = await service.create_product(name=name, image=image, price=price)
    return ProductResponse.model_validate(product)


@router.put("/{product_id}", response_model=ProductResponse, responses=_ID_ERRORS)
async def update_product(
    product_id: int,
    payload: Optional[ProductPayload] = Body(default=None),
    service: ProductService = Depends(get_product_service),
) -> ProductResponse:
    name, image, price = validate_payload(payload)
    product = await service.update_product(product_id, name=name, image=image, price=price)
    return ProductResponse.model_validate(product)


@router.delete("/{product_id}", response_model=ProductResponse, responses=_ID_ERRORS)
async def delete_product(
    product_id: int,
    service: ProductService = Depends(get_product_service),
) -> ProductResponse:
    product = await service.delete_product(product_id)
    return ProductResponse.model_validate(product)
