"""Bookstore discount rules.

Three policies built on the rules engine pattern:
- BulkSameBookRule: every second copy of a title bought in bulk is discounted
- FridayRule: flat discount on everything left, ends the calculation
- VolumeDiscountRule: rate picked by customer type and remaining book count

Each rule is a frozen dataclass holding only its validated parameters.
Parameters arrive as untyped config bags and are checked by pydantic
schemas inside the factories registered in ``default_registry()``.
"""

from __future__ import annotations

import calendar
from dataclasses import dataclass
from typing import Any, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, StrictInt, model_validator
from pydantic import ValidationError as PydanticValidationError

from patterns.errors import InvalidParameterError, NoMatchingRangeError
from patterns.rule_registry import RuleRegistry
from patterns.rules_engine import (
    CustomerType,
    DiscountRule,
    RuleContext,
    RuleResult,
    group_by_id,
    percent_of,
    percent_of_each,
    validate_books,
)

BULK_SAME_BOOK = "BulkSameBookRule"
FRIDAY = "FridayRule"
VOLUME_DISCOUNT = "VolumeDiscountRule"

DEFAULT_MIN_BOOKS_FOR_BULK_DISCOUNT = 5
DEFAULT_BULK_DISCOUNT_RATE = 40
DEFAULT_FRIDAY_DISCOUNT_RATE = 5


# ---------------------------------------------------------------------------
# Parameter schemas
# ---------------------------------------------------------------------------

class _Params(BaseModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True)


class BulkSameBookParams(_Params):
    min_books: StrictInt = Field(..., alias="minBooks", ge=0)
    discount_rate: StrictInt = Field(..., alias="discountRate", ge=0, le=100)


class FridayParams(_Params):
    discount_rate: StrictInt = Field(..., alias="discountRate", ge=0, le=100)


class VolumeRange(_Params):
    """One tier. ``max_books=None`` means unbounded."""

    customer_type: CustomerType = Field(..., alias="customerType")
    min_books: StrictInt = Field(..., alias="minBooks", ge=0)
    max_books: Optional[StrictInt] = Field(None, alias="maxBooks")
    discount_rate: StrictInt = Field(..., alias="discountRate", ge=0, le=100)

    @model_validator(mode="after")
    def _max_not_below_min(self) -> "VolumeRange":
        if self.max_books is not None and self.max_books < self.min_books:
            raise ValueError(
                f"maxBooks ({self.max_books}) must be >= minBooks ({self.min_books})"
            )
        return self

    def matches(self, customer_type: CustomerType, count: int) -> bool:
        if self.customer_type != customer_type:
            return False
        if count < self.min_books:
            return False
        return self.max_books is None or count <= self.max_books


class VolumeDiscountParams(_Params):
    ranges: list[VolumeRange] = Field(..., min_length=1)


def _parse_params(rule_name: str, schema: type[BaseModel], params: Mapping[str, Any]):
    try:
        return schema.model_validate(dict(params))
    except PydanticValidationError as exc:
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err['loc']) or 'params'}: {err['msg']}"
            for err in exc.errors()
        )
        raise InvalidParameterError(rule_name, problems) from exc


# ---------------------------------------------------------------------------
# Rules
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class BulkSameBookRule(DiscountRule):
    """Every second copy of a title gets ``discount_rate`` percent off.

    A title qualifies when the cart holds strictly more than ``min_books``
    copies of it. All copies of a qualifying title are claimed, discounted or
    not; other titles pass through untouched. Titles are visited in ascending
    id order so the output never depends on cart order.
    """

    name = BULK_SAME_BOOK
    blocks_other_rules = False

    min_books: int = DEFAULT_MIN_BOOKS_FOR_BULK_DISCOUNT
    discount_rate: int = DEFAULT_BULK_DISCOUNT_RATE

    def can_apply(self, ctx: RuleContext) -> bool:
        if not ctx.books:
            return False
        return any(len(group) > self.min_books for group in group_by_id(ctx.books).values())

    def apply(self, ctx: RuleContext) -> RuleResult:
        validate_books(ctx.books)

        applied = []
        remaining = []
        discount = 0

        for group in group_by_id(ctx.books).values():
            if len(group) > self.min_books:
                discount += sum(
                    percent_of(book.price, self.discount_rate) for book in group[1::2]
                )
                applied.extend(group)
            else:
                remaining.extend(group)

        return RuleResult(
            applied_books=tuple(applied),
            remaining_books=tuple(remaining),
            discount_amount=discount,
            rule_name=self.name,
        )


@dataclass(frozen=True)
class FridayRule(DiscountRule):
    """Flat ``discount_rate`` on every remaining book, Fridays only.

    Claims everything and blocks lower-priority rules, so its priority decides
    which rules still get a chance before it.
    """

    name = FRIDAY
    blocks_other_rules = True

    discount_rate: int = DEFAULT_FRIDAY_DISCOUNT_RATE

    def can_apply(self, ctx: RuleContext) -> bool:
        return ctx.now.weekday() == calendar.FRIDAY

    def apply(self, ctx: RuleContext) -> RuleResult:
        validate_books(ctx.books)
        return RuleResult(
            applied_books=tuple(ctx.books),
            remaining_books=(),
            discount_amount=percent_of_each(ctx.books, self.discount_rate),
            rule_name=self.name,
        )


@dataclass(frozen=True)
class VolumeDiscountRule(DiscountRule):
    """Rate chosen by customer type and how many books are left.

    Ranges are checked in configured order and the first match wins.
    """

    name = VOLUME_DISCOUNT
    blocks_other_rules = False

    ranges: tuple[VolumeRange, ...] = ()

    def can_apply(self, ctx: RuleContext) -> bool:
        return self.match(ctx.customer_type, len(ctx.books or ())) is not None

    def apply(self, ctx: RuleContext) -> RuleResult:
        validate_books(ctx.books)

        count = len(ctx.books)
        tier = self.match(ctx.customer_type, count)
        if tier is None:
            raise NoMatchingRangeError(
                f"no matching discount range for customer type "
                f"{ctx.customer_type.value} and {count} books"
            )

        return RuleResult(
            applied_books=tuple(ctx.books),
            remaining_books=(),
            discount_amount=percent_of_each(ctx.books, tier.discount_rate),
            rule_name=self.name,
        )

    def match(self, customer_type: CustomerType, count: int) -> Optional[VolumeRange]:
        for tier in self.ranges:
            if tier.matches(customer_type, count):
                return tier
        return None


# ---------------------------------------------------------------------------
# Factories
# ---------------------------------------------------------------------------

def create_bulk_same_book_rule(params: Mapping[str, Any]) -> BulkSameBookRule:
    p = _parse_params(BULK_SAME_BOOK, BulkSameBookParams, params)
    return BulkSameBookRule(min_books=p.min_books, discount_rate=p.discount_rate)


def create_friday_rule(params: Mapping[str, Any]) -> FridayRule:
    p = _parse_params(FRIDAY, FridayParams, params)
    return FridayRule(discount_rate=p.discount_rate)


def create_volume_discount_rule(params: Mapping[str, Any]) -> VolumeDiscountRule:
    p = _parse_params(VOLUME_DISCOUNT, VolumeDiscountParams, params)
    return VolumeDiscountRule(ranges=tuple(p.ranges))


def default_registry() -> RuleRegistry:
    """Registry with the three bookstore rules."""
    return (
        RuleRegistry()
        .register(BULK_SAME_BOOK, create_bulk_same_book_rule)
        .register(FRIDAY, create_friday_rule)
        .register(VOLUME_DISCOUNT, create_volume_discount_rule)
    )
