"""
Typed exception hierarchy for the earnings kernel.

Every error has a typed class (catch by type, not by message), a ``code``
attribute (machine-readable, API-safe) and structured data attributes.

    EarningsKernelError (base)
    |
    +-- CalculationError
    |   +-- MissingRateError
    |   +-- InvalidExchangeRateError
    |   +-- UnsupportedCurrencyError
    |   +-- UnknownPlatformError
    |
    +-- InvalidPeriodError
    |
    +-- LiveValueError
    |   +-- NegativeAmountError
    |   +-- FrozenPlatformError
    |   +-- PeriodNotOpenError
    |
    +-- LifecycleError                 (informational: caller re-polls status)
    |   +-- LockHeldError
    |   +-- PrecedenceError
    |
    +-- PartialArchiveError
    +-- ValidationError
    +-- RestoreNotConfirmedError

Handling pattern for lifecycle calls::

    try:
        manager.archive(period_date, actor_id)
    except LifecycleError as e:
        # Not a failure of the caller: someone else is doing / has done it.
        return {"code": e.code, "status": manager.status(period_date)}
    except PartialArchiveError as e:
        return {"code": e.code, "failed_models": e.failed_models}
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Any


class EarningsKernelError(Exception):
    """Base exception for all earnings kernel errors."""

    code: str = "EARNINGS_KERNEL_ERROR"
    informational: bool = False

    def __init__(self, message: str):
        super().__init__(message)


# =============================================================================
# Calculation errors
# =============================================================================


class CalculationError(EarningsKernelError):
    """Base for errors raised by the calculation engines."""

    code: str = "CALCULATION_ERROR"


class MissingRateError(CalculationError):
    """No exchange rates are available for the period being calculated."""

    code: str = "MISSING_RATES"

    def __init__(self, period_code: str | None = None, missing: tuple[str, ...] = ()):
        self.period_code = period_code
        self.missing = missing
        detail = f" ({', '.join(missing)})" if missing else ""
        where = f" for period {period_code}" if period_code else ""
        super().__init__(f"Exchange rates missing{where}{detail}")


class InvalidExchangeRateError(CalculationError):
    """A supplied rate is zero, negative or not a number."""

    code: str = "INVALID_EXCHANGE_RATE"

    def __init__(self, rate_name: str, value: Any):
        self.rate_name = rate_name
        self.value = str(value)
        super().__init__(f"Invalid exchange rate {rate_name}={value}: must be positive")


class UnsupportedCurrencyError(CalculationError):
    """Platform currency is not one of USD / EUR / GBP."""

    code: str = "UNSUPPORTED_CURRENCY"

    def __init__(self, platform_id: str, currency: str):
        self.platform_id = platform_id
        self.currency = currency
        super().__init__(
            f"Platform {platform_id} declares unsupported currency {currency}"
        )


class UnknownPlatformError(CalculationError):
    """A raw value references a platform missing from the catalog."""

    code: str = "UNKNOWN_PLATFORM"

    def __init__(self, platform_id: str):
        self.platform_id = platform_id
        super().__init__(f"Platform {platform_id} is not in the platform catalog")


# =============================================================================
# Period errors
# =============================================================================


class InvalidPeriodError(EarningsKernelError):
    """Period date or type does not describe a half-month billing period."""

    code: str = "INVALID_PERIOD"

    def __init__(self, period_date: date | str, reason: str):
        self.period_date = str(period_date)
        self.reason = reason
        super().__init__(f"Invalid period {period_date}: {reason}")


# =============================================================================
# Live value errors
# =============================================================================


class LiveValueError(EarningsKernelError):
    """Base for rejected raw value writes."""

    code: str = "LIVE_VALUE_ERROR"


class NegativeAmountError(LiveValueError):
    """Raw amounts are never negative."""

    code: str = "NEGATIVE_AMOUNT"

    def __init__(self, platform_id: str, amount: Any):
        self.platform_id = platform_id
        self.amount = str(amount)
        super().__init__(f"Amount for {platform_id} cannot be negative: {amount}")


class FrozenPlatformError(LiveValueError):
    """The platform's connection window is closed for this model and period."""

    code: str = "PLATFORM_FROZEN"

    def __init__(self, model_id: str, platform_id: str, period_code: str):
        self.model_id = model_id
        self.platform_id = platform_id
        self.period_code = period_code
        super().__init__(
            f"Platform {platform_id} is frozen for model {model_id} "
            f"in period {period_code}"
        )


class PeriodNotOpenError(LiveValueError):
    """Raw values can only be written while the period is OPEN."""

    code: str = "PERIOD_NOT_OPEN"

    def __init__(self, period_code: str, state: str):
        self.period_code = period_code
        self.state = state
        super().__init__(
            f"Period {period_code} does not accept values (state: {state})"
        )


# =============================================================================
# Lifecycle errors
# =============================================================================


class LifecycleError(EarningsKernelError):
    """
    Non-fatal lifecycle rejection.

    The requested transition is already running or already done.
    Callers re-poll status instead of treating this as a hard failure.
    """

    code: str = "LIFECYCLE_ERROR"
    informational: bool = True


class LockHeldError(LifecycleError):
    """Another session holds the lock for this period operation."""

    code: str = "LOCK_HELD"

    def __init__(
        self,
        period_code: str,
        operation: str,
        locked_by: str | None = None,
        locked_at: datetime | None = None,
    ):
        self.period_code = period_code
        self.operation = operation
        self.locked_by = locked_by
        self.locked_at = locked_at
        who = f" by {locked_by}" if locked_by else ""
        super().__init__(
            f"{operation} of period {period_code} already in progress{who}"
        )


class PrecedenceError(LifecycleError):
    """The period is not in a state that allows the operation."""

    code: str = "PRECEDENCE_VIOLATION"

    def __init__(
        self,
        period_code: str,
        operation: str,
        current_state: str,
        required_states: tuple[str, ...],
    ):
        self.period_code = period_code
        self.operation = operation
        self.current_state = current_state
        self.required_states = required_states
        super().__init__(
            f"Cannot {operation} period {period_code} in state {current_state} "
            f"(requires {' or '.join(required_states)})"
        )


class PartialArchiveError(EarningsKernelError):
    """
    Archive could not produce a self-consistent snapshot.

    The period stays ARCHIVING and the archive may be retried.
    ``failed_models`` maps model id to the last error message.
    """

    code: str = "PARTIAL_ARCHIVE"

    def __init__(self, period_code: str, failed_models: dict[str, str]):
        self.period_code = period_code
        self.failed_models = failed_models
        super().__init__(
            f"Archive of period {period_code} failed for "
            f"{len(failed_models)} model(s)"
        )


class ValidationError(EarningsKernelError):
    """Cleanup pre-checks failed; nothing was mutated."""

    code: str = "CLEANUP_VALIDATION_FAILED"

    def __init__(self, period_code: str, errors: list[str]):
        self.period_code = period_code
        self.errors = errors
        super().__init__(
            f"Cleanup of period {period_code} rejected: {'; '.join(errors)}"
        )


class RestoreNotConfirmedError(EarningsKernelError):
    """Emergency restore requires explicit operator confirmation."""

    code: str = "RESTORE_NOT_CONFIRMED"

    def __init__(self, period_code: str):
        self.period_code = period_code
        super().__init__(
            f"Restore of period {period_code} rewrites closed history and "
            f"must be confirmed explicitly"
        )
