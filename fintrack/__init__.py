"""
fintrack - Personal Finance Ledger

Income, spend, investment and receivable tracking with monthly and
Indian financial-year (April to March) aggregation.

DESIGN PRINCIPLES:
1. Aggregation is pure: it only ever sees a snapshot handed to it
2. The selected period is an explicit argument, never ambient state
3. Cascading deletes are all-or-nothing
4. Every write is auditable
5. Storage layer is swappable
"""

__version__ = "1.0.0"
