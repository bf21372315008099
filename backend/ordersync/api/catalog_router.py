"""Product catalog API router."""

from typing import List, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from ordersync.api.dependencies import get_service
from ordersync.models import Product
from ordersync.service import OrderService

router = APIRouter(prefix="/api/products", tags=["products"])


class CreateProductRequest(BaseModel):
    """Request body for adding a product to the catalog."""
    name: str
    price: float = Field(ge=0)
    category_id: Optional[str] = None
    default_excluded_ingredients: List[str] = Field(default_factory=list)


@router.get("", response_model=List[Product], summary="List products")
async def list_products(service: OrderService = Depends(get_service)) -> List[Product]:
    return service.list_products()


@router.post("", response_model=Product, status_code=201, summary="Create product")
async def create_product(
    payload: CreateProductRequest, service: OrderService = Depends(get_service)
) -> Product:
    return service.add_product(
        payload.name,
        payload.price,
        category_id=payload.category_id,
        default_excluded_ingredients=payload.default_excluded_ingredients,
    )
