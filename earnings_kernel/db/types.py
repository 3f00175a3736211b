"""
Module: earnings_kernel.db.types
Responsibility: Decimal constants and rounding helpers.  Centralizes
    rounding so every model, engine and service uses identical definitions.
Architecture position: Kernel > DB.  May be imported by models/, domain/,
    services/, selectors/ and earnings_engines.  MUST NOT import from any of
    those layers.

Invariants enforced:
    - No floats anywhere in the earnings kernel.  All amounts and rates are
      Decimal with explicit precision.
    - Intermediates are never rounded.  round_usd() and round_cop() are the
      only sanctioned rounding functions and are applied at presentation
      boundaries only.
"""

from decimal import Decimal, ROUND_HALF_UP


USD_DECIMAL_PLACES = 2
COP_DECIMAL_PLACES = 0
DEFAULT_ROUNDING = ROUND_HALF_UP

ZERO = Decimal("0")
HUNDRED = Decimal("100")

SUPPORTED_CURRENCIES: frozenset[str] = frozenset({"USD", "EUR", "GBP"})


def round_money(
    value: Decimal,
    decimal_places: int = USD_DECIMAL_PLACES,
    rounding: str = DEFAULT_ROUNDING,
) -> Decimal:
    """Quantize a Decimal to ``decimal_places`` using ``rounding``."""
    if decimal_places == 0:
        return value.quantize(Decimal("1"), rounding=rounding)
    quantize_str = "0." + "0" * decimal_places
    return value.quantize(Decimal(quantize_str), rounding=rounding)


def round_usd(value: Decimal) -> Decimal:
    """Presentation rounding for USD amounts (2 places)."""
    return round_money(value, USD_DECIMAL_PLACES)


def round_cop(value: Decimal) -> Decimal:
    """Presentation rounding for COP amounts (whole pesos)."""
    return round_money(value, COP_DECIMAL_PLACES)


def to_decimal(value) -> Decimal:
    """
    Coerce an int / str / Decimal into Decimal.

    Floats go through ``str`` so that ``0.84`` becomes ``Decimal("0.84")``
    rather than its binary expansion.

    Raises:
        ValueError: If value is not numeric.
    """
    if isinstance(value, Decimal):
        return value
    if isinstance(value, bool):
        raise ValueError(f"Not a numeric amount: {value!r}")
    if isinstance(value, float):
        return Decimal(str(value))
    try:
        return Decimal(value)
    except (ArithmeticError, TypeError) as exc:
        raise ValueError(f"Not a numeric amount: {value!r}") from exc
