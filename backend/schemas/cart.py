from pydantic import Field
from typing import List, Optional

from schemas.base import ORMBase, RequestBase
from schemas.product import PartOut


# Request schema for adding an item to the cart
class CartAddItem(RequestBase):
    part_id: int
    job_id: Optional[int] = None
    quantity: int = Field(default=1, gt=0)


# Request schema for updating cart item quantity; 0 removes the line, negatives are refused in the route
class CartUpdateItem(RequestBase):
    quantity: int


# Response schema for a single cart line item
class CartItemOut(ORMBase):
    id: int
    part_id: int
    job_id: Optional[int] = None
    quantity: int
    part: Optional[PartOut] = None


class CartOut(ORMBase):
    items: List[CartItemOut]
    count: int
