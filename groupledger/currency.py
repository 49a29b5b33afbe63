"""
Currency Module

Fixed-point money helpers and ISO 4217 currency validation.

Features:
    - Decimal coercion and half-up rounding to 2 decimal places
    - Conversion between amounts and integer minor units (cents)
    - Supported currency codes and their decimal places
    - Currency-aware display formatting

Functions:
    to_money: Coerce a value to a Decimal rounded to 2 places.
    to_cents: Convert a money amount to integer minor units.
    from_cents: Convert integer minor units back to a Decimal amount.
    validate_currency_code: Check a code against the supported list.
    normalize_currency: Upper-case and validate a currency code.
    currency_decimal_places: Number of decimal places used by a currency.
    format_currency: Format an amount for display.

Notes:
    - Every amount is stored and split in units of 0.01, whatever the
      currency. currency_decimal_places only affects display: a JPY or
      KRW expense can still have a share of 33.34.
    - format_currency rounds to the currency's decimal places, so such a
      share is shown as "33 JPY" while the ledger keeps 33.34.
"""

from decimal import Decimal, ROUND_HALF_UP, InvalidOperation

# Smallest amount considered non-zero when comparing balances and sums
TOLERANCE = Decimal("0.01")

CENT = Decimal("0.01")

SUPPORTED_CURRENCIES = frozenset({
    # Major world currencies
    "USD", "EUR", "GBP", "JPY", "CHF", "CAD", "AUD", "NZD", "SEK", "NOK",
    "DKK", "PLN", "CZK", "HUF", "RUB", "CNY", "HKD", "SGD", "KRW",
    # Asia
    "THB", "MYR", "IDR", "PHP", "VND", "INR", "PKR", "BDT", "LKR", "NPR",
    "MMK", "LAK", "KHR", "BND", "TWD", "MOP",
    # Americas
    "BRL", "ARS", "CLP", "COP", "PEN", "MXN",
    # Africa
    "ZAR", "EGP", "MAD", "TND", "NGN", "KES", "GHS", "XOF", "XAF", "ETB",
    "UGX", "TZS", "RWF", "MWK", "ZMW", "BWP", "SZL", "LSL", "NAD", "MZN", "AOA",
    # Middle East
    "BHD", "IQD", "JOD", "KWD", "LYD", "OMR",
    # Special drawing rights and metals
    "XDR", "XAU", "XAG", "XPT", "XPD",
})

_ZERO_DECIMAL_CURRENCIES = frozenset({
    "JPY", "KRW", "VND", "IDR", "CLP", "PYG", "UGX", "RWF", "KMF", "GNF", "MGA", "XOF", "XAF",
})

_THREE_DECIMAL_CURRENCIES = frozenset({"BHD", "IQD", "JOD", "KWD", "LYD", "OMR", "TND"})


def to_money(value) -> Decimal:
    """
    Coerce a value to a Decimal rounded half-up to 2 decimal places.

    Floats go through str() first so 0.1 becomes Decimal("0.10"), not its
    binary expansion.

    Args:
        value: Decimal, int, str or float.

    Returns:
        Decimal: The quantized amount.

    Raises:
        ValueError: If the value is not a finite number, or has too many
            digits to hold with 2 decimal places.
    """
    if isinstance(value, bool):
        raise ValueError(f"amount must be a number, got: {value!r}")
    try:
        amount = value if isinstance(value, Decimal) else Decimal(str(value))
    except (InvalidOperation, TypeError, ValueError):
        raise ValueError(f"amount must be a number, got: {value!r}")
    if not amount.is_finite():
        raise ValueError(f"amount must be finite, got: {value!r}")
    try:
        return amount.quantize(CENT, rounding=ROUND_HALF_UP)
    except InvalidOperation:
        # more digits than the decimal context can hold at 2 places
        raise ValueError(f"amount is too large: {value!r}")


def to_cents(amount: Decimal) -> int:
    """Convert a money amount to integer minor units."""
    return int(to_money(amount) * 100)


def from_cents(cents: int) -> Decimal:
    """Convert integer minor units to a Decimal amount."""
    return (Decimal(cents) / 100).quantize(CENT)


def validate_currency_code(code) -> bool:
    """
    Check whether a currency code is a supported ISO 4217 code.

    Surrounding whitespace and lower case are accepted.
    """
    if not isinstance(code, str) or len(code.strip()) != 3:
        return False
    return code.strip().upper() in SUPPORTED_CURRENCIES


def normalize_currency(code) -> str:
    """
    Return the upper-cased currency code.

    Raises:
        ValueError: If the code is not supported.
    """
    if not validate_currency_code(code):
        raise ValueError(f"unsupported currency code: {code!r}")
    return code.strip().upper()


def currency_decimal_places(code: str) -> int:
    """
    Number of decimal places a currency is displayed with.

    Raises:
        ValueError: If the code is not supported.
    """
    code = normalize_currency(code)
    if code in _ZERO_DECIMAL_CURRENCIES:
        return 0
    if code in _THREE_DECIMAL_CURRENCIES:
        return 3
    return 2


def format_currency(amount, currency: str) -> str:
    """
    Format a monetary amount with its currency code.

    Args:
        amount: The amount to format.
        currency: ISO 4217 code.

    Returns:
        str: Formatted string like "1,234.56 USD" or "-1,235 JPY".
    """
    places = currency_decimal_places(currency)
    exponent = Decimal(1).scaleb(-places)
    value = Decimal(str(amount)).quantize(exponent, rounding=ROUND_HALF_UP)
    return f"{value:,.{places}f} {normalize_currency(currency)}"
