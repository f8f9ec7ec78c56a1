"""Sequential claiming rules engine.

Rules are small immutable value objects: (RuleContext) -> RuleResult.
No database, no I/O, no shared mutable state. Each rule may claim part of
the cart; whatever it leaves unclaimed flows on to the next rule in priority
order. This makes them:
- Trivially testable (pure input/output, injected clock)
- Composable (any ordered list of rules)
- Auditable (EngineRun records every applied rule and why iteration stopped)

Example domain: a bookstore computing a checkout discount.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING, ClassVar, Iterable, Optional, Sequence

from patterns.errors import (
    ConfigurationError,
    DiscountError,
    RuleApplicationError,
    RuleConstructionError,
    ValidationError,
)

if TYPE_CHECKING:
    from patterns.domain_config import DiscountConfig
    from patterns.rule_registry import RuleRegistry
    from patterns.time_source import TimeSource

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Cart types
# ---------------------------------------------------------------------------

class CustomerType(str, Enum):
    NEW = "new"
    OLD = "old"

    @classmethod
    def parse(cls, value: "CustomerType | str") -> "CustomerType":
        """Coerce a raw string into a CustomerType or raise ValidationError."""
        try:
            return cls(value)
        except ValueError:
            raise ValidationError(
                f"customer type must be 'new' or 'old', got {value!r}"
            ) from None


@dataclass(frozen=True)
class Book:
    """One cart line. ``id`` identifies the title, not the copy."""

    id: str
    price: int  # minor currency units (cents)


@dataclass(frozen=True)
class Discount:
    """Final outcome of a calculation, all money in cents."""

    cart_amount: int = 0
    discount_percent: float = 0.0
    discount_amount: int = 0
    total_cost: int = 0

    @classmethod
    def zero(cls) -> "Discount":
        return cls()


# ---------------------------------------------------------------------------
# Rule contract
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class RuleContext:
    """Snapshot handed to a single rule invocation."""

    customer_type: CustomerType
    books: Optional[tuple[Book, ...]]
    now: datetime


@dataclass(frozen=True)
class RuleResult:
    """Partition of a rule's input books plus the discount it produced."""

    applied_books: tuple[Book, ...]
    remaining_books: tuple[Book, ...]
    discount_amount: int
    rule_name: str


class DiscountRule(ABC):
    """A single discount policy.

    ``name`` matches the configuration entry that builds the rule and
    ``blocks_other_rules`` declares whether a successful application ends
    the calculation. Both are fixed per rule type.
    """

    name: ClassVar[str]
    blocks_other_rules: ClassVar[bool] = False

    @abstractmethod
    def can_apply(self, ctx: RuleContext) -> bool:
        """Pure eligibility predicate."""

    @abstractmethod
    def apply(self, ctx: RuleContext) -> RuleResult:
        """Compute the discount. Raises ValidationError on malformed books."""


# ---------------------------------------------------------------------------
# Shared helpers for rule implementations
# ---------------------------------------------------------------------------

def validate_books(books: Optional[Sequence[Book]]) -> None:
    """Reject an unset book list, empty ids and negative prices.

    Zero-priced books are valid.
    """
    if books is None:
        raise ValidationError("books cannot be None")
    for book in books:
        if not book.id:
            raise ValidationError("book ID cannot be empty")
        if book.price < 0:
            raise ValidationError(f"book {book.id} price cannot be negative")


def percent_of(price: int, rate: int) -> int:
    """Integer percentage of a single price, truncated."""
    return price * rate // 100


def percent_of_each(books: Iterable[Book], rate: int) -> int:
    """Sum of per-book truncated percentages (never computed on the total)."""
    return sum(percent_of(book.price, rate) for book in books)


def group_by_id(books: Iterable[Book]) -> dict[str, list[Book]]:
    """Group books by id, keyed in ascending id order."""
    groups: dict[str, list[Book]] = {}
    for book in books:
        groups.setdefault(book.id, []).append(book)
    return {book_id: groups[book_id] for book_id in sorted(groups)}


# ---------------------------------------------------------------------------
# Engine
# ---------------------------------------------------------------------------

class Termination(str, Enum):
    """Why the engine stopped iterating."""

    EMPTY_CART = "empty_cart"
    BLOCKED = "blocked"
    BOOKS_EXHAUSTED = "books_exhausted"
    RULES_EXHAUSTED = "rules_exhausted"


@dataclass(frozen=True)
class EngineRun:
    """Discount plus the audit trail of one calculation."""

    discount: Discount
    applied: list[RuleResult] = field(default_factory=list)
    termination: Termination = Termination.RULES_EXHAUSTED


class RuleEngine:
    """Applies an ordered list of rules to a cart.

    Build once, call ``calculate`` many times; instances hold no per-call
    state and may be shared between threads.

    Usage::

        engine = RuleEngine.build(config, SystemClock(), registry)
        discount = engine.calculate("new", [Book("1", 1000), Book("2", 1000)])
    """

    def __init__(self, rules: Sequence[DiscountRule], time_source: "TimeSource"):
        if time_source is None:
            raise ConfigurationError("time source cannot be None")
        self._rules = tuple(rules)
        self._time_source = time_source

    @classmethod
    def build(
        cls,
        config: "DiscountConfig",
        time_source: "TimeSource",
        registry: "RuleRegistry",
    ) -> "RuleEngine":
        """Instantiate every enabled rule of ``config`` in priority order."""
        if config is None:
            raise ConfigurationError("config cannot be None")
        if registry is None:
            raise ConfigurationError("registry cannot be None")

        rules: list[DiscountRule] = []
        for entry in config.sorted_rules():
            if not entry.enabled:
                logger.debug("rule %s disabled, skipping", entry.name)
                continue
            try:
                rule = registry.create(entry.name, entry.params)
            except Exception as exc:
                raise RuleConstructionError(entry.name, exc) from exc
            rules.append(rule)

        engine = cls(rules, time_source)
        logger.info("rule engine ready: %s", " -> ".join(engine.rule_names) or "(no rules)")
        return engine

    @property
    def rule_names(self) -> list[str]:
        return [rule.name for rule in self._rules]

    def calculate(
        self, customer_type: CustomerType | str, books: Optional[Sequence[Book]]
    ) -> Discount:
        return self.evaluate(customer_type, books).discount

    def evaluate(
        self, customer_type: CustomerType | str, books: Optional[Sequence[Book]]
    ) -> EngineRun:
        """Run every eligible rule and report what happened."""
        if not books:
            return EngineRun(discount=Discount.zero(), termination=Termination.EMPTY_CART)

        customer_type = CustomerType.parse(customer_type)
        books = tuple(books)
        validate_books(books)
        now = self._time_source.now()

        cart_amount = sum(book.price for book in books)
        total_discount = 0
        remaining = books
        applied: list[RuleResult] = []
        blocked = False

        for rule in self._rules:
            if not remaining:
                break

            ctx = RuleContext(customer_type=customer_type, books=remaining, now=now)
            if not rule.can_apply(ctx):
                logger.debug("rule %s not applicable", rule.name)
                continue

            try:
                result = rule.apply(ctx)
            except Exception as exc:
                raise RuleApplicationError(rule.name, exc) from exc
            _check_partition(rule.name, ctx, result)

            logger.debug(
                "rule %s claimed %d book(s) for %d off, %d left",
                rule.name,
                len(result.applied_books),
                result.discount_amount,
                len(result.remaining_books),
            )
            total_discount += result.discount_amount
            remaining = result.remaining_books
            applied.append(result)

            if rule.blocks_other_rules:
                blocked = True
                break

        if blocked:
            termination = Termination.BLOCKED
        elif not remaining:
            termination = Termination.BOOKS_EXHAUSTED
        else:
            termination = Termination.RULES_EXHAUSTED

        discount = Discount(
            cart_amount=cart_amount,
            discount_percent=total_discount / cart_amount if cart_amount > 0 else 0.0,
            discount_amount=total_discount,
            total_cost=cart_amount - total_discount,
        )
        return EngineRun(discount=discount, applied=applied, termination=termination)


def _check_partition(rule_name: str, ctx: RuleContext, result: RuleResult) -> None:
    """A rule must neither create nor lose books, nor add money."""
    expected = len(ctx.books or ())
    got = len(result.applied_books) + len(result.remaining_books)
    if got != expected:
        raise RuleApplicationError(
            rule_name,
            DiscountError(f"partition holds {got} book(s), expected {expected}"),
        )
    if result.discount_amount < 0:
        raise RuleApplicationError(
            rule_name,
            DiscountError(f"negative discount amount {result.discount_amount}"),
        )
