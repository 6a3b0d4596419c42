from concurrent.futures import ThreadPoolExecutor
from datetime import datetime
from typing import Any, Callable, Dict

from sqlalchemy import func
from sqlalchemy.orm import Session, joinedload

from library_api.core.config import settings
from library_api.core.logging import get_logger
from library_api.db.models import Author, Book, Loan, User
from library_api.schemas.loan import LoanActivity
from library_api.schemas.stats import DashboardSnapshot, DashboardSummary
from library_api.services.loan_service import open_loans, overdue_loans, utcnow

logger = get_logger("services.dashboard")

Read = Callable[[Session], Any]


def _activity_query(db: Session):
    return db.query(Loan).options(joinedload(Loan.book), joinedload(Loan.user))


def _count(model, *criteria) -> Read:
    def read(db: Session) -> int:
        return db.query(func.count(model.id)).filter(*criteria).scalar() or 0

    return read


def _recent_activity(limit: int) -> Read:
    def read(db: Session) -> list[LoanActivity]:
        loans = _activity_query(db).order_by(Loan.borrowed_at.desc()).limit(limit).all()
        return [LoanActivity.model_validate(loan) for loan in loans]

    return read


def _overdue(now: datetime) -> Read:
    def read(db: Session) -> list[LoanActivity]:
        loans = overdue_loans(_activity_query(db), now).order_by(Loan.due_date.asc()).all()
        return [LoanActivity.model_validate(loan) for loan in loans]

    return read


def _run_read(db: Session, read: Read) -> Any:
    # Each worker gets its own session on the request's engine
    with Session(bind=db.get_bind()) as worker_session:
        return read(worker_session)


def build_dashboard_snapshot(db: Session) -> DashboardSnapshot:
    """
    Collect the dashboard counters and activity lists.

    The seven reads are independent and run concurrently, one session each.
    They are not wrapped in a common transaction, so the snapshot is only as
    consistent as the moment each read happened to run.
    """
    now = utcnow()

    reads: Dict[str, Read] = {
        "total_books": _count(Book),
        "available_books": _count(Book, Book.available.is_(True)),
        "total_authors": _count(Author),
        "total_users": _count(User),
        "active_borrows": lambda s: open_loans(s.query(Loan)).count(),
        "recent_activity": _recent_activity(settings.RECENT_ACTIVITY_LIMIT),
        "overdue_books": _overdue(now),
    }

    with ThreadPoolExecutor(max_workers=len(reads)) as pool:
        futures = {name: pool.submit(_run_read, db, read) for name, read in reads.items()}
        results = {name: future.result() for name, future in futures.items()}

    summary = DashboardSummary(
        total_books=results["total_books"],
        available_books=results["available_books"],
        borrowed_books=results["total_books"] - results["available_books"],
        total_authors=results["total_authors"],
        total_users=results["total_users"],
        active_borrows=results["active_borrows"],
        overdue_count=len(results["overdue_books"]),
    )

    logger.info(
        "dashboard_snapshot",
        extra={
            "operation": "dashboard_snapshot",
            "resource": "stats",
            "active_borrows": summary.active_borrows,
            "overdue_count": summary.overdue_count,
        },
    )

    return DashboardSnapshot(
        summary=summary,
        recent_activity=results["recent_activity"],
        overdue_books=results["overdue_books"],
    )
