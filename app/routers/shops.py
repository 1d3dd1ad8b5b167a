"""
ShopLedger - Shops Router

API endpoints for shop creation and provisioning.
"""

from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_async_session
from app.schemas.shop import (
    ProvisioningResponse,
    ShopCreateRequest,
    ShopResponse,
    ShopUpdateRequest,
)
from app.services.shop_service import ProvisioningResult, ShopService


router = APIRouter()


def _provisioning_response(result: ProvisioningResult) -> ProvisioningResponse:
    return ProvisioningResponse(
        shop=ShopResponse.model_validate(result.shop),
        account_count=len(result.accounts),
        categories_created=result.categories_created,
        default_customer_id=result.default_customer.id,
    )


@router.post(
    "",
    response_model=ProvisioningResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create shop",
    description="Create a shop with its default accounts, expense categories and direct-sales customer.",
)
async def create_shop(
    request: ShopCreateRequest,
    db: AsyncSession = Depends(get_async_session),
):
    result = await ShopService(db).create_shop(request.code, request.name_local, request.name_global)
    return _provisioning_response(result)


@router.get("", response_model=List[ShopResponse], summary="List shops")
async def list_shops(
    include_inactive: bool = False,
    db: AsyncSession = Depends(get_async_session),
):
    shops = await ShopService(db).list_shops(include_inactive=include_inactive)
    return [ShopResponse.model_validate(s) for s in shops]


@router.get("/{shop_id}", response_model=ShopResponse, summary="Get shop")
async def get_shop(shop_id: UUID, db: AsyncSession = Depends(get_async_session)):
    return ShopResponse.model_validate(await ShopService(db).get_shop(shop_id))


@router.patch("/{shop_id}", response_model=ShopResponse, summary="Update shop")
async def update_shop(
    shop_id: UUID,
    request: ShopUpdateRequest,
    db: AsyncSession = Depends(get_async_session),
):
    shop = await ShopService(db).update_shop(
        shop_id,
        name_local=request.name_local,
        name_global=request.name_global,
        is_active=request.is_active,
    )
    return ShopResponse.model_validate(shop)


@router.post(
    "/{shop_id}/provision",
    response_model=ProvisioningResponse,
    summary="Provision shop defaults",
    description="Install any missing default accounts, categories and customer. Safe to repeat.",
)
async def provision_shop(shop_id: UUID, db: AsyncSession = Depends(get_async_session)):
    return _provisioning_response(await ShopService(db).provision_shop(shop_id))
