"""
Custom exceptions for the automation engine.
"""


class AutomationError(Exception):
    """Base exception for all automation engine errors."""


class ConfigError(AutomationError):
    """Raised for configuration-related errors."""


class ValidationError(AutomationError):
    """Raised when an owner address or a scenario record is malformed."""


class DataFetchError(AutomationError):
    """Raised when an external account, opportunity or advisor call fails or times out."""


class ComputationError(AutomationError):
    """Raised for unexpected failures inside metrics, risk or rebalance logic."""


class TransactionBuildError(ComputationError):
    """Raised when building a transaction descriptor for an action fails."""


class ContextNotFoundError(AutomationError):
    """Raised when an operation needs an automation context that is not registered."""
