"""
Unified money formatting for notification texts.

Usage:
    from flowmoney.utils.money import format_money

    format_money(15000, "JPY")     -> "JPY 15,000"
    format_money(1200.50, "PHP")   -> "₱1,200.50"
"""
from decimal import Decimal

_CURRENCY_PREFIX = {
    "PHP": "₱",
    "USD": "$",
    "EUR": "€",
    "GBP": "£",
}


def currency_label(code: str) -> str:
    return _CURRENCY_PREFIX.get(code, f"{code} ")


def format_money(amount, currency: str = "USD") -> str:
    """
    Thousands separators, 2 decimals only when there are cents.
    """
    if not isinstance(amount, Decimal):
        amount = Decimal(str(amount))
    decimals = 0 if amount == amount.to_integral_value() else 2
    formatted = f"{amount:,.{decimals}f}"
    return f"{currency_label(currency)}{formatted}"
