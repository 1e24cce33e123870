"""Display helpers for prices and subscription statuses."""

from decimal import Decimal, ROUND_HALF_UP

from microsaas.billing.plans import BillingInterval

# en-US rendering of currency symbols
_CURRENCY_SYMBOLS = {
    "USD": "$",
    "EUR": "€",
    "GBP": "£",
    "JPY": "¥",
    "CAD": "CA$",
    "AUD": "A$",
    "NZD": "NZ$",
    "MXN": "MX$",
    "BRL": "R$",
    "INR": "₹",
    "CNY": "CN¥",
    "KRW": "₩",
    "ILS": "₪",
    "VND": "₫",
}

_ZERO_DECIMAL_CURRENCIES = {"JPY", "KRW", "VND", "CLP", "ISK", "UGX", "XAF", "XOF"}

_STATUS_LABELS = {
    "active": "Active",
    "trialing": "Trial",
    "past_due": "Past Due",
    "canceled": "Canceled",
    "incomplete": "Incomplete",
    "incomplete_expired": "Expired",
    "unpaid": "Unpaid",
}

_STATUS_COLORS = {
    "active": "green",
    "trialing": "blue",
    "past_due": "yellow",
    "canceled": "red",
    "incomplete": "gray",
    "incomplete_expired": "gray",
    "unpaid": "red",
}

NEUTRAL_COLOR = "gray"


def format_price(
    amount: int | float | Decimal,
    currency: str = "USD",
    interval: BillingInterval | None = None,
) -> str:
    """Format an amount in en-US currency style without forced decimals.

    ``format_price(19)`` -> ``"$19"``, ``format_price(190, interval="year")``
    -> ``"$190/year"``, ``format_price(19.5)`` -> ``"$19.5"``.
    """
    code = currency.upper()
    max_digits = 0 if code in _ZERO_DECIMAL_CURRENCIES else 2
    value = Decimal(str(amount))
    if not value.is_finite():
        raise ValueError(f"Cannot format non-finite amount: {amount!r}")
    value = value.quantize(Decimal(1).scaleb(-max_digits), rounding=ROUND_HALF_UP)

    sign = "-" if value < 0 else ""
    whole, _, fraction = f"{abs(value):f}".partition(".")
    fraction = fraction.rstrip("0")
    number = f"{int(whole):,}" + (f".{fraction}" if fraction else "")

    symbol = _CURRENCY_SYMBOLS.get(code)
    formatted = f"{sign}{symbol}{number}" if symbol else f"{sign}{code} {number}"

    if interval:
        return f"{formatted}/{interval}"
    return formatted


def status_label(status: str) -> str:
    """Human label for a subscription status; unknown values pass through."""
    return _STATUS_LABELS.get(status, status)


def status_color(status: str) -> str:
    """Badge color token for a subscription status."""
    return _STATUS_COLORS.get(status, NEUTRAL_COLOR)
