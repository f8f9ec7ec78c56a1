"""Bookstore discount configuration.

Builds on the DiscountConfig pattern: a hard-coded default rule set plus
resolution from an explicit file or the BOOKSTORE_DISCOUNT_CONFIG env var.
"""

import logging
from pathlib import Path
from typing import Optional

from patterns.domain_config import DiscountConfig, RuleConfig
from patterns.rule_registry import RuleRegistry
from verticals.bookstore.rules import (
    BULK_SAME_BOOK,
    DEFAULT_BULK_DISCOUNT_RATE,
    DEFAULT_FRIDAY_DISCOUNT_RATE,
    DEFAULT_MIN_BOOKS_FOR_BULK_DISCOUNT,
    FRIDAY,
    VOLUME_DISCOUNT,
    default_registry,
)

logger = logging.getLogger(__name__)

ENV_PREFIX = "BOOKSTORE_"


def default_config() -> DiscountConfig:
    """Bulk first, then Friday, then volume tiers."""
    config = DiscountConfig(
        rules=[
            RuleConfig(
                name=BULK_SAME_BOOK,
                enabled=True,
                priority=1,
                params={
                    "minBooks": DEFAULT_MIN_BOOKS_FOR_BULK_DISCOUNT,
                    "discountRate": DEFAULT_BULK_DISCOUNT_RATE,
                },
            ),
            RuleConfig(
                name=FRIDAY,
                enabled=True,
                priority=10,
                params={"discountRate": DEFAULT_FRIDAY_DISCOUNT_RATE},
            ),
            RuleConfig(
                name=VOLUME_DISCOUNT,
                enabled=True,
                priority=20,
                params={
                    "ranges": [
                        {"customerType": "new", "minBooks": 2, "maxBooks": 5, "discountRate": 20},
                        {"customerType": "old", "minBooks": 2, "maxBooks": 5, "discountRate": 10},
                        {"customerType": "old", "minBooks": 6, "maxBooks": 10, "discountRate": 5},
                        {"customerType": "old", "minBooks": 11, "maxBooks": None, "discountRate": 2},
                    ],
                },
            ),
        ]
    )
    config.sort()
    return config


def load_config(
    path: Optional[str | Path] = None,
    registry: Optional[RuleRegistry] = None,
) -> DiscountConfig:
    """Resolve the active config: explicit path, then env var, then defaults.

    The result is always validated against ``registry`` and sorted.
    """
    registry = registry or default_registry()

    if path is not None:
        return DiscountConfig.from_file(path, registry)

    config = DiscountConfig.from_env(registry, ENV_PREFIX)
    if config is not None:
        return config

    logger.info("no discount config supplied, using defaults")
    config = default_config()
    config.validate(registry)
    return config
