"""
ShopLedger - FastAPI Dependencies

Shared dependencies for database sessions and request context.

The tenant (shop) and the acting user are resolved from request headers by
the surrounding platform; this module only parses and checks them.
"""

import uuid
from typing import Optional

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_async_session
from app.models.shop import Shop
from app.services.shop_service import ShopService

SHOP_HEADER = "X-Shop-ID"
USER_HEADER = "X-User-ID"


def _parse_uuid(value: Optional[str], header: str) -> uuid.UUID:
    if not value:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Missing {header} header",
        )
    try:
        return uuid.UUID(value)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Invalid {header} header: expected a UUID",
        )


async def get_current_shop(
    x_shop_id: Optional[str] = Header(None, alias=SHOP_HEADER),
    db: AsyncSession = Depends(get_async_session),
) -> Shop:
    """
    Resolve the tenant of the request.

    Raises:
        HTTPException: 400 if the header is missing or malformed
        NotFoundException: if no such shop exists
    """
    shop = await ShopService(db).get_shop(_parse_uuid(x_shop_id, SHOP_HEADER))
    if not shop.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Shop is inactive",
        )
    return shop


async def get_current_user_id(
    x_user_id: Optional[str] = Header(None, alias=USER_HEADER),
) -> uuid.UUID:
    """Id of the acting user, used for audit fields."""
    return _parse_uuid(x_user_id, USER_HEADER)
