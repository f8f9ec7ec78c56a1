"""Test the sequential claiming rules engine."""
import calendar
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

import pytest

from patterns.domain_config import DiscountConfig, RuleConfig
from patterns.errors import (
    ConfigurationError,
    InvalidParameterError,
    NoMatchingRangeError,
    RuleApplicationError,
    RuleConstructionError,
    UnknownRuleError,
    ValidationError,
)
from patterns.rule_registry import RuleRegistry
from patterns.rules_engine import (
    Book,
    CustomerType,
    Discount,
    DiscountRule,
    RuleContext,
    RuleEngine,
    RuleResult,
    Termination,
)
from patterns.time_source import FixedClock
from verticals.bookstore.config import default_config
from verticals.bookstore.rules import default_registry

MONDAY = datetime(2025, 1, 13, 12, 0, tzinfo=timezone.utc)


def clock(weekday: int = calendar.MONDAY) -> FixedClock:
    return FixedClock(MONDAY + timedelta(days=weekday))


def engine_on(weekday: int) -> RuleEngine:
    return RuleEngine.build(default_config(), clock(weekday), default_registry())


def copies(book_id: str, n: int, price: int = 1000) -> list[Book]:
    return [Book(book_id, price) for _ in range(n)]


def distinct(n: int, price: int = 1000) -> list[Book]:
    return [Book(str(i), price) for i in range(n)]


# ---------------------------------------------------------------------------
# Default configuration scenarios
# ---------------------------------------------------------------------------

def test_empty_cart_is_zero_discount():
    engine = engine_on(calendar.MONDAY)
    assert engine.calculate(CustomerType.NEW, []) == Discount.zero()
    assert engine.calculate(CustomerType.NEW, None) == Discount.zero()

    run = engine.evaluate("old", [])
    assert run.termination == Termination.EMPTY_CART
    assert run.applied == []


def test_new_customer_three_books_volume_tier():
    discount = engine_on(calendar.MONDAY).calculate(CustomerType.NEW, distinct(3))
    assert discount.cart_amount == 3000
    assert discount.discount_amount == 600
    assert discount.total_cost == 2400
    assert discount.discount_percent == pytest.approx(0.2)


def test_old_customer_six_identical_books_bulk_claims_all():
    run = engine_on(calendar.MONDAY).evaluate(CustomerType.OLD, copies("1", 6))
    assert run.discount.discount_amount == 1200
    assert run.discount.total_cost == 4800
    assert [r.rule_name for r in run.applied] == ["BulkSameBookRule"]
    assert run.termination == Termination.BOOKS_EXHAUSTED


def test_friday_single_book():
    for customer in CustomerType:
        run = engine_on(calendar.FRIDAY).evaluate(customer, [Book("1", 1000)])
        assert run.discount.discount_amount == 50
        assert run.termination == Termination.BLOCKED


def test_friday_blocks_volume_tier():
    run = engine_on(calendar.FRIDAY).evaluate(CustomerType.NEW, distinct(4))
    assert run.discount.cart_amount == 4000
    assert run.discount.discount_amount == 200
    assert run.discount.discount_percent == pytest.approx(0.05)
    assert [r.rule_name for r in run.applied] == ["FridayRule"]
    assert run.termination == Termination.BLOCKED


def test_old_customer_fifteen_books_unbounded_tier():
    discount = engine_on(calendar.MONDAY).calculate(CustomerType.OLD, distinct(15, price=999))
    assert discount.cart_amount == 15 * 999
    assert discount.discount_amount == 15 * 19


def test_bulk_then_volume_on_remaining_books():
    books = copies("1", 6) + [Book("2", 500), Book("3", 500), Book("4", 500)]
    run = engine_on(calendar.MONDAY).evaluate(CustomerType.NEW, books)
    assert run.discount.cart_amount == 7500
    assert run.discount.discount_amount == 1500
    assert run.discount.total_cost == 6000
    assert run.discount.discount_percent == pytest.approx(0.2)
    assert [r.rule_name for r in run.applied] == ["BulkSameBookRule", "VolumeDiscountRule"]


def test_friday_after_bulk_claims_the_rest():
    books = copies("1", 6) + [Book("2", 500), Book("3", 500), Book("4", 500)]
    discount = engine_on(calendar.FRIDAY).calculate(CustomerType.NEW, books)
    assert discount.cart_amount == 7500
    assert discount.discount_amount == 1275
    assert discount.total_cost == 6225
    assert discount.discount_percent == pytest.approx(0.17)


def test_friday_does_not_block_earlier_bulk_rule():
    books = copies("hp", 6) + [Book("lotr", 1000), Book("dune", 1000)]
    discount = engine_on(calendar.FRIDAY).calculate(CustomerType.NEW, books)
    assert discount.cart_amount == 8000
    assert discount.discount_amount == 1300
    assert discount.discount_percent == pytest.approx(0.1625)


def test_no_rule_applies():
    run = engine_on(calendar.MONDAY).evaluate(CustomerType.NEW, distinct(1))
    assert run.discount == Discount(cart_amount=1000, discount_percent=0.0, discount_amount=0, total_cost=1000)
    assert run.termination == Termination.RULES_EXHAUSTED


def test_zero_priced_cart_has_zero_percent():
    discount = engine_on(calendar.MONDAY).calculate(CustomerType.NEW, distinct(2, price=0))
    assert discount == Discount.zero()


@pytest.mark.parametrize("weekday", [calendar.MONDAY, calendar.FRIDAY])
@pytest.mark.parametrize(
    "customer, books",
    [
        (CustomerType.NEW, distinct(3, price=333)),
        (CustomerType.OLD, copies("a", 7, 1999) + distinct(4, 1234)),
        (CustomerType.OLD, distinct(12, 777)),
        (CustomerType.NEW, copies("x", 9, 101) + copies("y", 6, 3)),
    ],
)
def test_total_plus_discount_equals_cart(weekday, customer, books):
    discount = engine_on(weekday).calculate(customer, books)
    assert discount.total_cost + discount.discount_amount == discount.cart_amount
    assert discount.cart_amount == sum(b.price for b in books)


def test_calculation_is_deterministic_and_order_independent():
    books = copies("b", 6, 1250) + copies("a", 7, 999) + distinct(3, 450)
    engine = engine_on(calendar.MONDAY)
    first = engine.calculate(CustomerType.OLD, books)
    assert engine.calculate(CustomerType.OLD, books) == first
    assert engine.calculate(CustomerType.OLD, list(reversed(books))) == first


def test_customer_type_accepts_string():
    engine = engine_on(calendar.MONDAY)
    assert engine.calculate("new", distinct(3)) == engine.calculate(CustomerType.NEW, distinct(3))


def test_unknown_customer_type():
    with pytest.raises(ValidationError, match="'vip'"):
        engine_on(calendar.MONDAY).calculate("vip", distinct(3))


@pytest.mark.parametrize(
    "books, message",
    [
        ([Book("", 1000)], "book ID cannot be empty"),
        ([Book("1", -500)], "book 1 price cannot be negative"),
        (distinct(5) + [Book("x", -9000)], "book x price cannot be negative"),
        ([Book("1", 1000), Book("2", -5), Book("3", 1000)], "book 2 price"),
    ],
)
def test_invalid_cart_rejected_before_any_rule(books, message):
    engine = engine_on(calendar.MONDAY)
    with pytest.raises(ValidationError, match=message):
        engine.calculate(CustomerType.NEW, books)


def test_invalid_cart_rejected_when_no_rule_is_eligible():
    engine = RuleEngine([], clock())
    with pytest.raises(ValidationError, match="cannot be empty"):
        engine.evaluate(CustomerType.OLD, [Book("", 1000)])


# ---------------------------------------------------------------------------
# Custom configurations
# ---------------------------------------------------------------------------

def volume_entry(priority: int, rate: int, enabled: bool = True) -> RuleConfig:
    return RuleConfig(
        name="VolumeDiscountRule",
        enabled=enabled,
        priority=priority,
        params={"ranges": [{"customerType": "new", "minBooks": 2, "maxBooks": 5, "discountRate": rate}]},
    )


def test_disabled_rule_is_not_built():
    config = DiscountConfig(rules=[
        RuleConfig(name="BulkSameBookRule", enabled=False, priority=1,
                   params={"minBooks": 5, "discountRate": 40}),
        volume_entry(20, 20),
    ])
    engine = RuleEngine.build(config, clock(), default_registry())
    assert engine.rule_names == ["VolumeDiscountRule"]

    discount = engine.calculate(CustomerType.NEW, copies("1", 6))
    assert discount.cart_amount == 6000
    assert discount.discount_amount == 0


def test_modified_parameters():
    config = DiscountConfig(rules=[volume_entry(1, 30)])
    discount = RuleEngine.build(config, clock(), default_registry()).calculate("new", distinct(3))
    assert discount.discount_amount == 900
    assert discount.discount_percent == pytest.approx(0.3)


def test_rules_built_in_priority_order():
    config = DiscountConfig(rules=list(reversed(default_config().rules)))
    engine = RuleEngine.build(config, clock(), default_registry())
    assert engine.rule_names == ["BulkSameBookRule", "FridayRule", "VolumeDiscountRule"]


def test_build_unknown_enabled_rule():
    config = DiscountConfig(rules=[RuleConfig(name="HalloweenRule", priority=1)])
    with pytest.raises(RuleConstructionError, match="failed to create rule HalloweenRule: unknown rule") as exc_info:
        RuleEngine.build(config, clock(), default_registry())

    err = exc_info.value
    assert err.rule_name == "HalloweenRule"
    assert isinstance(err.cause, UnknownRuleError)
    assert err.__cause__ is err.cause


def test_build_ignores_unknown_disabled_rule():
    config = DiscountConfig(rules=[
        RuleConfig(name="HalloweenRule", enabled=False, priority=1),
        volume_entry(2, 20),
    ])
    assert RuleEngine.build(config, clock(), default_registry()).rule_names == ["VolumeDiscountRule"]


def test_build_invalid_params():
    config = DiscountConfig(rules=[RuleConfig(name="FridayRule", priority=1, params={"discountRate": 500})])
    with pytest.raises(RuleConstructionError, match="failed to create rule FridayRule: rule FridayRule") as exc_info:
        RuleEngine.build(config, clock(), default_registry())
    assert isinstance(exc_info.value.cause, InvalidParameterError)


def test_build_wraps_unexpected_factory_failure():
    def broken(params):
        return params["missing"]

    registry = RuleRegistry().register("Broken", broken)
    config = DiscountConfig(rules=[RuleConfig(name="Broken", priority=1)])
    with pytest.raises(RuleConstructionError, match="failed to create rule Broken") as exc_info:
        RuleEngine.build(config, clock(), registry)
    assert isinstance(exc_info.value, ConfigurationError)
    assert isinstance(exc_info.value.cause, KeyError)


def test_build_requires_collaborators():
    with pytest.raises(ConfigurationError, match="time source"):
        RuleEngine.build(default_config(), None, default_registry())
    with pytest.raises(ConfigurationError, match="registry"):
        RuleEngine.build(default_config(), clock(), None)


# ---------------------------------------------------------------------------
# Engine mechanics with stub rules
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class TakeFirst(DiscountRule):
    """Claims the first remaining book for a flat amount."""

    name = "TakeFirst"

    amount: int = 1
    seen: list = None

    def can_apply(self, ctx: RuleContext) -> bool:
        return True

    def apply(self, ctx: RuleContext) -> RuleResult:
        if self.seen is not None:
            self.seen.append(ctx)
        return RuleResult(ctx.books[:1], ctx.books[1:], self.amount, self.name)


@dataclass(frozen=True)
class LosesBooks(DiscountRule):
    name = "LosesBooks"

    def can_apply(self, ctx: RuleContext) -> bool:
        return True

    def apply(self, ctx: RuleContext) -> RuleResult:
        return RuleResult((), (), 0, self.name)


@dataclass(frozen=True)
class Raises(DiscountRule):
    name = "Raises"

    error: Exception = None

    def can_apply(self, ctx: RuleContext) -> bool:
        return True

    def apply(self, ctx: RuleContext) -> RuleResult:
        raise self.error


@pytest.mark.parametrize(
    "error, client_error",
    [
        (ValidationError("book ID cannot be empty"), True),
        (NoMatchingRangeError("no matching discount range"), False),
    ],
)
def test_rule_failure_aborts_with_rule_name(error, client_error):
    engine = RuleEngine([TakeFirst(), Raises(error=error)], clock())
    with pytest.raises(RuleApplicationError, match="rule Raises failed") as exc_info:
        engine.calculate(CustomerType.NEW, distinct(3))

    err = exc_info.value
    assert err.rule_name == "Raises"
    assert err.cause is error
    assert err.__cause__ is err.cause
    assert err.client_error is client_error


def test_each_rule_sees_a_fresh_smaller_snapshot():
    seen = []
    engine = RuleEngine([TakeFirst(seen=seen), TakeFirst(seen=seen), TakeFirst(seen=seen)], clock())
    run = engine.evaluate(CustomerType.OLD, distinct(2))

    assert [len(c.books) for c in seen] == [2, 1]
    assert all(c.now == clock().now() for c in seen)
    assert run.discount.discount_amount == 2
    assert run.termination == Termination.BOOKS_EXHAUSTED


def test_partition_violation_is_reported():
    engine = RuleEngine([LosesBooks()], clock())
    with pytest.raises(RuleApplicationError, match="partition holds 0 book"):
        engine.calculate(CustomerType.NEW, distinct(2))


def test_build_logs_rule_order(caplog):
    caplog.set_level(logging.INFO, logger="patterns.rules_engine")
    engine_on(calendar.MONDAY)
    assert "BulkSameBookRule -> FridayRule -> VolumeDiscountRule" in caplog.text
