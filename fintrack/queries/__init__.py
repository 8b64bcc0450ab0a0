"""Statement query package."""

from fintrack.queries.executor import QueryExecutionError, QueryExecutor
from fintrack.queries.formatting import format_amount, format_indian_number

__all__ = [
    "QueryExecutionError",
    "QueryExecutor",
    "format_amount",
    "format_indian_number",
]
