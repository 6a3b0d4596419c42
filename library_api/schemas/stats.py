from typing import List

from library_api.schemas.common import CamelModel
from library_api.schemas.loan import LoanActivity


class DashboardSummary(CamelModel):
    total_books: int
    available_books: int
    borrowed_books: int
    total_authors: int
    total_users: int
    active_borrows: int
    overdue_count: int


class DashboardSnapshot(CamelModel):
    summary: DashboardSummary
    recent_activity: List[LoanActivity]
    overdue_books: List[LoanActivity]
