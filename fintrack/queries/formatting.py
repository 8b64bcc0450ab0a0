"""Display formatting for amounts and periods in query descriptions."""

from fintrack.models.finance import ALL, PeriodScope, PeriodSelector
from fintrack.periods import format_financial_year_short, month_start


def format_indian_number(amount: int) -> str:
    """
    Group digits the Indian way: last three, then pairs.

    1234567 -> "12,34,567"
    """
    sign = "-" if amount < 0 else ""
    digits = str(abs(int(amount)))
    if len(digits) <= 3:
        return sign + digits

    head, tail = digits[:-3], digits[-3:]
    groups = []
    while len(head) > 2:
        groups.insert(0, head[-2:])
        head = head[:-2]
    if head:
        groups.insert(0, head)
    return sign + ",".join(groups + [tail])


def format_amount(amount: int, currency_symbol: str = "₹") -> str:
    return f"{currency_symbol}{format_indian_number(amount)}"


def format_financial_year_label(bucket: str) -> str:
    """Picker label for a financial year: "2024-2025" -> "FY 24-25"."""
    return f"FY {format_financial_year_short(bucket)}"


def format_period(selector: PeriodSelector) -> str:
    if selector.scope is PeriodScope.MONTH:
        return month_start(selector.value).strftime("%B %Y")
    if selector.scope is PeriodScope.FINANCIAL_YEAR and selector.value != ALL:
        return format_financial_year_label(selector.value)
    return "all time"
