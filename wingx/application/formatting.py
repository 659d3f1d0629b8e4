"""Display helpers matching the dashboard's es-VE formatting."""


def format_amount(value: float, min_fraction_digits: int = 0, max_fraction_digits: int = 3) -> str:
    """Format like `Number.toLocaleString('es-VE')`: `1234.5` -> `"1.234,5"`."""
    max_fraction_digits = max(max_fraction_digits, min_fraction_digits)
    integer, _, fraction = f"{value:,.{max_fraction_digits}f}".partition(".")
    fraction = fraction.rstrip("0").ljust(min_fraction_digits, "0")
    integer = integer.replace(",", ".")
    return f"{integer},{fraction}" if fraction else integer


def short_order_id(order_id: str) -> str:
    return order_id[:8].upper()
