"""Bookstore discount service.

Thin facade that owns one RuleEngine for the life of the process and
exposes ``calculate`` to callers such as the HTTP router.
"""

from typing import Optional, Sequence

from patterns.domain_config import DiscountConfig
from patterns.rule_registry import RuleRegistry
from patterns.rules_engine import Book, CustomerType, Discount, EngineRun, RuleEngine
from patterns.time_source import SystemClock, TimeSource
from verticals.bookstore.config import load_config
from verticals.bookstore.rules import default_registry


class DiscountService:
    """Computes checkout discounts with the configured bookstore rules."""

    def __init__(
        self,
        time_source: Optional[TimeSource] = None,
        config: Optional[DiscountConfig] = None,
        registry: Optional[RuleRegistry] = None,
    ):
        registry = registry or default_registry()
        if config is None:
            config = load_config(registry=registry)
        else:
            config.validate(registry)
        self._engine = RuleEngine.build(config, time_source or SystemClock(), registry)

    @property
    def engine(self) -> RuleEngine:
        return self._engine

    def calculate(
        self, customer_type: CustomerType | str, books: Sequence[Book]
    ) -> Discount:
        return self._engine.calculate(customer_type, books)

    def explain(
        self, customer_type: CustomerType | str, books: Sequence[Book]
    ) -> EngineRun:
        """Same as ``calculate`` but keeps the per-rule audit trail."""
        return self._engine.evaluate(customer_type, books)
