"""Error taxonomy for the discount rule engine.

Every failure carries a stable ``error_code`` and a ``client_error`` flag so
an outer layer (the HTTP router) can map it without string matching:

- Construction-time failures (ConfigurationError and its subclasses) are
  fatal and surface from ``RuleEngine.build`` / config loading.
- Per-call failures (ValidationError) are the caller's fault and recoverable.
- NoMatchingRangeError signals a can_apply/apply disagreement inside a rule.
"""

from __future__ import annotations


class DiscountError(Exception):
    """Base class for all discount engine errors."""

    error_code = "DISCOUNT"
    client_error = False

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class ConfigurationError(DiscountError):
    """Rule configuration is empty, inconsistent, or unreadable."""

    error_code = "CONFIGURATION"


class UnknownRuleError(ConfigurationError):
    """No factory is registered under the requested rule name."""

    error_code = "UNKNOWN_RULE"

    def __init__(self, rule_name: str):
        self.rule_name = rule_name
        super().__init__(f"unknown rule: {rule_name}")


class InvalidParameterError(ConfigurationError):
    """A rule factory rejected its parameters."""

    error_code = "INVALID_PARAMETER"

    def __init__(self, rule_name: str, message: str):
        self.rule_name = rule_name
        super().__init__(f"rule {rule_name}: {message}")


class RuleConstructionError(ConfigurationError):
    """A rule factory failed while the engine was being built.

    The factory's exception (often UnknownRuleError or InvalidParameterError)
    is chained as ``__cause__`` and kept on ``cause``.
    """

    error_code = "RULE_CONSTRUCTION"

    def __init__(self, rule_name: str, cause: Exception):
        self.rule_name = rule_name
        self.cause = cause
        super().__init__(f"failed to create rule {rule_name}: {cause}")


class ValidationError(DiscountError):
    """Cart input is malformed (unset book list, empty id, negative price)."""

    error_code = "VALIDATION"
    client_error = True


class NoMatchingRangeError(DiscountError):
    """A volume rule was applied to a cart none of its ranges match."""

    error_code = "NO_MATCHING_RANGE"


class RuleApplicationError(DiscountError):
    """A rule failed while the engine was applying it.

    The original exception is chained as ``__cause__`` and kept on ``cause``.
    """

    error_code = "RULE_FAILED"

    def __init__(self, rule_name: str, cause: Exception):
        self.rule_name = rule_name
        self.cause = cause
        super().__init__(f"rule {rule_name} failed: {cause}")

    @property
    def client_error(self) -> bool:
        return getattr(self.cause, "client_error", False)
