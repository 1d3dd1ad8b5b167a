"""
ShopLedger - Common Schemas
"""

from typing import Optional

from pydantic import BaseModel


class MessageResponse(BaseModel):
    """Generic message response."""
    message: str
    success: bool = True


class ItemError(BaseModel):
    """Failure of one item of a batch request."""
    field: Optional[str] = None
    message: str
    code: Optional[str] = None
