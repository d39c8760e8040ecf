from typing import Optional


class GiftExchangeError(Exception):
    """Base class for everything this package raises on purpose."""


class ValidationError(GiftExchangeError, ValueError):
    """Input did not meet a precondition (signup fields, participant list, history text)."""


class InfeasibleError(GiftExchangeError, RuntimeError):
    """
    No assignment could be produced under the current constraints.

    reason is "no-candidates" when some giver has nobody they may draw or
    some receiver may be drawn by nobody, "no-matching" when the exclusions
    leave no one-to-one drawing at all, or "exhausted" when the search gave
    up. attempts counts the searches actually run.
    """

    def __init__(
        self,
        message: str,
        reason: str,
        attempts: int = 0,
        giver: Optional[str] = None,
        receiver: Optional[str] = None,
    ):
        super().__init__(message)
        self.reason = reason
        self.attempts = attempts
        self.giver = giver
        self.receiver = receiver


class DeliveryError(GiftExchangeError, RuntimeError):
    """Sending one (or, on connect/login failure, every) notification failed."""


class ConfigError(GiftExchangeError, RuntimeError):
    pass


class StoreError(GiftExchangeError, RuntimeError):
    pass
