"""
Rule Registry: name -> factory mapping for configurable rules

Registries are explicit objects, built at application start and handed to
the engine. Nothing registers itself on import.
"""
from __future__ import annotations
from typing import TYPE_CHECKING, Any, Callable, Mapping

from patterns.errors import UnknownRuleError

if TYPE_CHECKING:
    from patterns.rules_engine import DiscountRule

RuleFactory = Callable[[Mapping[str, Any]], "DiscountRule"]


class RuleRegistry:
    """Maps a rule's configured name to the factory that builds it."""

    def __init__(self):
        self._factories: dict[str, RuleFactory] = {}

    def register(self, name: str, factory: RuleFactory) -> "RuleRegistry":
        """Register (or replace) a factory. Returns self for chaining."""
        self._factories[name] = factory
        return self

    def deregister(self, name: str):
        self._factories.pop(name, None)

    def create(self, name: str, params: Mapping[str, Any] | None = None) -> "DiscountRule":
        """Build a configured rule.

        Raises UnknownRuleError for unregistered names; factories raise
        InvalidParameterError for bad params.
        """
        factory = self._factories.get(name)
        if factory is None:
            raise UnknownRuleError(name)
        return factory(params or {})

    def knows(self, name: str) -> bool:
        return name in self._factories

    @property
    def names(self) -> list[str]:
        return sorted(self._factories)

    @property
    def rule_count(self) -> int:
        return len(self._factories)
