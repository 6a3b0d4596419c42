from datetime import datetime, timedelta, timezone
from typing import Optional

from sqlalchemy import exists, select
from sqlalchemy.orm import Query, Session, joinedload

from library_api.core.config import settings
from library_api.core.errors import InvalidStateError, NotFoundError, ensure_uuid
from library_api.core.logging import get_logger
from library_api.db.models import Author, Book, Loan, User

logger = get_logger("services.loans")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def to_utc(value: datetime) -> datetime:
    """Naive datetimes are taken as UTC; aware ones are converted."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


# ======================
# Query builders (shared with the dashboard)
# ======================

def loans_with_details(db: Session) -> Query:
    return db.query(Loan).options(
        joinedload(Loan.book).joinedload(Book.author),
        joinedload(Loan.user),
    )


def open_loans(query: Query) -> Query:
    return query.filter(Loan.returned_at.is_(None))


def overdue_loans(query: Query, now: datetime) -> Query:
    return open_loans(query).filter(Loan.due_date < now)


# ======================
# Lookups
# ======================

def get_loan(db: Session, loan_id: str) -> Loan:
    loan_id = ensure_uuid(loan_id, "loanId")
    loan = loans_with_details(db).filter(Loan.id == loan_id).first()
    if not loan:
        raise NotFoundError(f"Borrowed book record with ID {loan_id} not found")
    return loan


def _get_user(db: Session, user_id: str) -> User:
    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise NotFoundError(f"User with ID {user_id} not found")
    return user


# ======================
# Ledger operations
# ======================

def borrow_book(
    db: Session,
    book_id: str,
    user_id: str,
    due_date: Optional[datetime] = None,
) -> Loan:
    """
    Lend a book to a user.

    The availability flag is claimed with a conditional UPDATE inside the same
    transaction that inserts the loan, so of several concurrent borrowers of
    one book exactly one succeeds and the others get InvalidStateError.
    """
    book_id = ensure_uuid(book_id, "bookId")
    user_id = ensure_uuid(user_id, "userId")

    book = db.query(Book).filter(Book.id == book_id).first()
    if not book:
        raise NotFoundError(f"Book with ID {book_id} not found")

    if not book.available:
        raise InvalidStateError("This book is currently not available for borrowing")

    now = utcnow()
    if due_date is None:
        due = now + timedelta(days=settings.LOAN_PERIOD_DAYS)
    else:
        due = to_utc(due_date)

    try:
        claimed = (
            db.query(Book)
            .filter(Book.id == book_id, Book.available.is_(True))
            .update({Book.available: False}, synchronize_session=False)
        )
        if claimed != 1:
            raise InvalidStateError("This book is currently not available for borrowing")

        # Checked under a row lock so a concurrent user deletion cannot slip
        # between the check and the insert
        borrower = (
            db.query(User.id).filter(User.id == user_id).with_for_update().first()
        )
        if borrower is None:
            raise NotFoundError(f"User with ID {user_id} not found")

        loan = Loan(book_id=book_id, user_id=user_id, borrowed_at=now, due_date=due)
        db.add(loan)
        db.commit()
    except Exception:
        db.rollback()
        raise

    logger.info(
        "loan_borrowed",
        extra={
            "operation": "loan_create",
            "resource": "loan",
            "loan_id": loan.id,
            "book_id": book_id,
            "borrower_id": user_id,
            "due_date": due.isoformat(),
        },
    )

    return get_loan(db, loan.id)


def return_loan(db: Session, loan_id: str) -> Loan:
    loan = get_loan(db, loan_id)

    if loan.returned_at is not None:
        raise InvalidStateError("This book has already been returned")

    now = utcnow()
    try:
        closed = (
            db.query(Loan)
            .filter(Loan.id == loan.id, Loan.returned_at.is_(None))
            .update({Loan.returned_at: now}, synchronize_session=False)
        )
        if closed != 1:
            raise InvalidStateError("This book has already been returned")

        db.query(Book).filter(Book.id == loan.book_id).update(
            {Book.available: True},
            synchronize_session=False,
        )
        db.commit()
    except Exception:
        db.rollback()
        raise

    logger.info(
        "loan_returned",
        extra={
            "operation": "loan_return",
            "resource": "loan",
            "loan_id": loan.id,
            "book_id": loan.book_id,
            "borrower_id": loan.user_id,
        },
    )

    return get_loan(db, loan.id)


def list_open_loans_for_user(db: Session, user_id: str) -> list[Loan]:
    user_id = ensure_uuid(user_id, "userId")
    _get_user(db, user_id)

    return (
        open_loans(loans_with_details(db))
        .filter(Loan.user_id == user_id)
        .order_by(Loan.borrowed_at.desc())
        .all()
    )


def list_all_loans(db: Session) -> list[Loan]:
    return loans_with_details(db).order_by(Loan.borrowed_at.desc()).all()


# ======================
# Guarded deletions
# ======================
# Each removal is one conditional DELETE: a loan opened after the caller
# loaded the row still blocks it. The FOR UPDATE lock orders it against
# borrow_book where the database has row locks.

def _open_loan_exists(*criteria):
    return exists().where(Loan.returned_at.is_(None), *criteria)


def book_has_open_loan(db: Session, book_id: str) -> bool:
    return db.query(_open_loan_exists(Loan.book_id == book_id)).scalar()


def delete_user(db: Session, user_id: str) -> None:
    """Delete a user and their returned-loan history unless a loan is open."""
    try:
        db.query(User.id).filter(User.id == user_id).with_for_update().first()
        deleted = (
            db.query(User)
            .filter(User.id == user_id, ~_open_loan_exists(Loan.user_id == user_id))
            .delete(synchronize_session=False)
        )
        if deleted != 1:
            raise InvalidStateError("Cannot delete a user with books currently borrowed")

        db.query(Loan).filter(Loan.user_id == user_id).delete(synchronize_session=False)
        db.commit()
    except Exception:
        db.rollback()
        raise


def delete_book(db: Session, book_id: str) -> None:
    try:
        db.query(Book.id).filter(Book.id == book_id).with_for_update().first()
        deleted = (
            db.query(Book)
            .filter(Book.id == book_id, ~_open_loan_exists(Loan.book_id == book_id))
            .delete(synchronize_session=False)
        )
        if deleted != 1:
            raise InvalidStateError("Cannot delete a book that is currently borrowed")

        db.query(Loan).filter(Loan.book_id == book_id).delete(synchronize_session=False)
        db.commit()
    except Exception:
        db.rollback()
        raise


def delete_author(db: Session, author_id: str) -> int:
    """
    Delete an author with all of their books and the books' loan history.

    Refused as a whole while any of the books is on loan. Returns the number
    of books removed.
    """
    author_books = select(Book.id).where(Book.author_id == author_id)
    try:
        db.query(Book.id).filter(Book.author_id == author_id).with_for_update().all()
        deleted = (
            db.query(Author)
            .filter(
                Author.id == author_id,
                ~_open_loan_exists(Loan.book_id.in_(author_books)),
            )
            .delete(synchronize_session=False)
        )
        if deleted != 1:
            raise InvalidStateError("Cannot delete books that are currently borrowed")

        db.query(Loan).filter(Loan.book_id.in_(author_books)).delete(synchronize_session=False)
        removed = (
            db.query(Book)
            .filter(Book.author_id == author_id)
            .delete(synchronize_session=False)
        )
        db.commit()
    except Exception:
        db.rollback()
        raise

    return removed
