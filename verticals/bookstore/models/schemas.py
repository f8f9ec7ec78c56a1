"""Pydantic schemas for the discount API.

Prices cross the wire as decimal amounts in major units and are converted
to integer cents at the boundary; the engine never sees a float price.
"""

from decimal import ROUND_HALF_UP, Decimal
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from patterns.rules_engine import Book, CustomerType, Discount

CENT = Decimal("1")


def to_cents(amount: float | Decimal) -> int:
    """Major units -> cents, rounding half up."""
    return int((Decimal(str(amount)) * 100).quantize(CENT, rounding=ROUND_HALF_UP))


def from_cents(cents: int) -> float:
    return float(Decimal(cents) / 100)


# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------

class BookLine(BaseModel):
    id: str = Field(..., min_length=1)
    price: float = Field(..., gt=0)

    @field_validator("price")
    @classmethod
    def price_has_a_cent(cls, value: float) -> float:
        if to_cents(value) < 1:
            raise ValueError("price must be at least 0.01 after rounding to cents")
        return value

    def to_domain(self) -> Book:
        return Book(id=self.id, price=to_cents(self.price))


class DiscountRequest(BaseModel):
    customer_id: Optional[str] = None
    customer_type: CustomerType
    cash_register_id: Optional[str] = None
    books: list[BookLine] = Field(..., min_length=1)

    def books_as_domain(self) -> list[Book]:
        return [line.to_domain() for line in self.books]


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------

class DiscountResponse(BaseModel):
    original_amount: float
    discount_percent: float
    discount_amount: float
    final_amount: float

    @classmethod
    def from_domain(cls, discount: Discount) -> "DiscountResponse":
        return cls(
            original_amount=from_cents(discount.cart_amount),
            discount_percent=discount.discount_percent,
            discount_amount=from_cents(discount.discount_amount),
            final_amount=from_cents(discount.total_cost),
        )


class ErrorResponse(BaseModel):
    error: str
