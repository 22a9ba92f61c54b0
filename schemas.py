from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_serializer

# a double holds any 15 significant digits exactly, so prices survive the JSON number round trip
PRICE_MAX_DIGITS = 15


class ProductDraft(BaseModel):
    """Product fields as submitted by an editor or an import file; `id` may be missing."""

    model_config = ConfigDict(frozen=True)

    id: Optional[str] = None
    barcode: str = Field(..., description="Barcode value")
    name: str
    price: Decimal = Field(..., ge=0, max_digits=PRICE_MAX_DIGITS)
    stock: int = Field(..., ge=0)


class Product(ProductDraft):
    id: str

    @field_serializer("price", when_used="json")
    def _price_as_number(self, price: Decimal):
        # backup files carry prices as JSON numbers
        return float(price)


class OrderItem(Product):
    quantity: int = Field(1, ge=1)


class Receipt(BaseModel):
    items: List[OrderItem]
    total: Decimal


class CartView(BaseModel):
    items: List[OrderItem]
    total: Decimal
    display_total: str


class CartItemIn(BaseModel):
    product_id: str


class QuantityDelta(BaseModel):
    delta: int


class ScanQuery(BaseModel):
    code: str


class ScanStatus(BaseModel):
    state: str
    close_on_match: bool


class ScanResponse(BaseModel):
    accepted: bool
    state: str
    item: Optional[OrderItem] = None


class ImportResponse(BaseModel):
    ok: bool
    count: int


class ShareResponse(BaseModel):
    ok: bool
    method: Optional[str] = None
    error: Optional[str] = None
