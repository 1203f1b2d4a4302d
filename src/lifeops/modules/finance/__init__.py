"""Personal finance: expenses, income and spending reports."""

from lifeops.modules.finance.ledger import (
    add_income,
    delete_expense,
    get_current_balance,
    get_expense_report,
    get_spending_by_category,
    log_expense,
    update_expense,
)
from lifeops.modules.finance.models import Expense, ExpensePatch, Income

__all__ = [
    "Expense",
    "ExpensePatch",
    "Income",
    "add_income",
    "delete_expense",
    "get_current_balance",
    "get_expense_report",
    "get_spending_by_category",
    "log_expense",
    "update_expense",
]
