from app.models.audit_log import AuditLog
from app.models.company_expense import CompanyExpense
from app.models.expense import Expense, ExpenseStatus
from app.models.time_entry import TimeEntry, TimeEntryStatus

__all__ = [
    "AuditLog",
    "CompanyExpense",
    "Expense",
    "ExpenseStatus",
    "TimeEntry",
    "TimeEntryStatus",
]
