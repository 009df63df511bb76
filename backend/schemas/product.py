# backend/schemas/product.py
from pydantic import Field
from typing import Optional

from schemas.base import ORMBase, RequestBase


# Catalog view; price fields stay empty unless the caller may see pricing
class PartOut(ORMBase):
    id: int
    item_code: str
    pipe_size: str
    description: str
    type: str
    in_stock: Optional[int] = 0
    is_popular: Optional[bool] = False
    image: Optional[str] = None
    price_t1: Optional[float] = None
    price_t2: Optional[float] = None
    price_t3: Optional[float] = None


# Catalog view priced at one business tier
class TierPartOut(ORMBase):
    id: int
    item_code: str
    pipe_size: str
    description: str
    type: str
    in_stock: Optional[int] = 0
    is_popular: Optional[bool] = False
    image: Optional[str] = None
    price: float
    price_tier: str


# Schema for creating a new part
class PartCreate(RequestBase):
    item_code: str = Field(min_length=1)
    pipe_size: str
    description: str
    type: str
    price_t1: float = Field(ge=0)
    price_t2: float = Field(ge=0)
    price_t3: float = Field(ge=0)
    in_stock: int = Field(default=0, ge=0)
    is_popular: bool = False
    image: Optional[str] = None


# Schema for partial part updates
class PartUpdate(RequestBase):
    """All fields optional."""
    item_code: Optional[str] = None
    pipe_size: Optional[str] = None
    description: Optional[str] = None
    type: Optional[str] = None
    price_t1: Optional[float] = Field(None, ge=0)
    price_t2: Optional[float] = Field(None, ge=0)
    price_t3: Optional[float] = Field(None, ge=0)
    in_stock: Optional[int] = Field(None, ge=0)
    is_popular: Optional[bool] = None
    image: Optional[str] = None


class FavoriteCreate(RequestBase):
    part_id: int
