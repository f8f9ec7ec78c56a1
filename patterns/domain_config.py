"""Dataclass-based rule configuration pattern.

A discount configuration is an ordered list of rule entries:
- name: which registered rule type to build (unique)
- enabled: disabled entries are skipped at engine construction
- priority: application order, ascending (unique)
- params: untyped bag, checked by the rule's own factory

Configuration is validated and sorted once, at startup. It can come from
code (defaults, tests), a JSON or YAML file, or a file named by an env var.

Example file (discounts.yaml)::

    rules:
      - name: FridayRule
        enabled: true
        priority: 10
        params:
          discountRate: 5
"""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Any, Optional

import yaml
from pydantic import TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from patterns.errors import ConfigurationError

if TYPE_CHECKING:
    from patterns.rule_registry import RuleRegistry

logger = logging.getLogger(__name__)

YAML_SUFFIXES = (".yaml", ".yml")


# ---------------------------------------------------------------------------
# Entries
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class RuleConfig:
    """One configured rule."""

    name: str
    enabled: bool = True
    priority: int = 0
    params: dict[str, Any] = field(default_factory=dict)


# ---------------------------------------------------------------------------
# Top-level config
# ---------------------------------------------------------------------------

@dataclass
class DiscountConfig:
    """Ordered set of rule entries.

    Usage::

        config = DiscountConfig(rules=[...])
        config.validate(registry)
        config.sort()
        engine = RuleEngine.build(config, SystemClock(), registry)
    """

    rules: list[RuleConfig] = field(default_factory=list)

    def validate(self, registry: "RuleRegistry") -> None:
        """Raise ConfigurationError unless the entries are consistent.

        Names and priorities must be unique. Every entry whose name the
        registry knows is built once so its factory can reject bad params.
        Unknown names are left for engine construction to report.
        """
        if registry is None:
            raise ConfigurationError("registry cannot be None")
        if not self.rules:
            raise ConfigurationError("config must have at least one rule")

        names: set[str] = set()
        priorities: dict[int, str] = {}

        for i, rule in enumerate(self.rules):
            if not rule.name:
                raise ConfigurationError(f"rule {i}: name cannot be empty")

            if rule.name in names:
                raise ConfigurationError(f"duplicate rule name: {rule.name}")
            names.add(rule.name)

            if rule.priority in priorities:
                raise ConfigurationError(
                    f"duplicate priority {rule.priority}: "
                    f"rules {priorities[rule.priority]} and {rule.name}"
                )
            priorities[rule.priority] = rule.name

            if registry.knows(rule.name):
                registry.create(rule.name, rule.params)

    def sort(self) -> None:
        """Stable in-place sort, ascending by priority."""
        self.rules.sort(key=lambda r: r.priority)

    def sorted_rules(self) -> list[RuleConfig]:
        return sorted(self.rules, key=lambda r: r.priority)

    @property
    def enabled_rules(self) -> list[RuleConfig]:
        return [r for r in self.sorted_rules() if r.enabled]

    # -- Loading ------------------------------------------------------------

    @classmethod
    def from_json(cls, text: str | bytes, registry: "RuleRegistry") -> "DiscountConfig":
        """Parse, validate and sort a JSON document."""
        try:
            config = _CONFIG_ADAPTER.validate_json(text)
        except PydanticValidationError as exc:
            raise ConfigurationError(f"failed to parse config: {exc}") from exc
        return config._checked(registry)

    @classmethod
    def from_yaml(cls, text: str | bytes, registry: "RuleRegistry") -> "DiscountConfig":
        """Parse, validate and sort a YAML document."""
        try:
            config = _CONFIG_ADAPTER.validate_python(yaml.safe_load(text))
        except (yaml.YAMLError, PydanticValidationError) as exc:
            raise ConfigurationError(f"failed to parse config: {exc}") from exc
        return config._checked(registry)

    @classmethod
    def from_file(cls, path: str | Path, registry: "RuleRegistry") -> "DiscountConfig":
        """Load a config file; ``.yaml``/``.yml`` are read as YAML, anything else as JSON."""
        try:
            text = Path(path).read_text(encoding="utf-8")
        except OSError as exc:
            raise ConfigurationError(f"failed to read config file {path}: {exc}") from exc

        if Path(path).suffix.lower() in YAML_SUFFIXES:
            config = cls.from_yaml(text, registry)
        else:
            config = cls.from_json(text, registry)
        logger.info("loaded %d rule(s) from %s", len(config.rules), path)
        return config

    @classmethod
    def from_env(
        cls, registry: "RuleRegistry", prefix: str = "BOOKSTORE_"
    ) -> Optional["DiscountConfig"]:
        """Load the file named by ``{prefix}DISCOUNT_CONFIG``, if set.

        Example: BOOKSTORE_DISCOUNT_CONFIG=/etc/bookstore/discounts.yaml
        """
        path = os.getenv(f"{prefix}DISCOUNT_CONFIG")
        if not path:
            return None
        return cls.from_file(path, registry)

    def _checked(self, registry: "RuleRegistry") -> "DiscountConfig":
        self.validate(registry)
        self.sort()
        return self


_CONFIG_ADAPTER = TypeAdapter(DiscountConfig)
