from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, joinedload

from library_api.api.v1.dependencies import get_db
from library_api.api.v1.dependencies_auth import require_operation
from library_api.core.errors import ConflictError, InvalidStateError, NotFoundError, ensure_uuid
from library_api.core.logging import get_logger
from library_api.core.policy import Operation
from library_api.db.models import Author, Book
from library_api.schemas.book import BookCreate, BookUpdate, BookWithAuthor
from library_api.schemas.loan import BookWithLoans
from library_api.services import loan_service

logger = get_logger("api.books")

router = APIRouter(
    prefix="/api/v1/books",
    tags=["books"],
)


def _get_book_or_404(db: Session, book_id: str) -> Book:
    book_id = ensure_uuid(book_id, "bookId")
    book = (
        db.query(Book)
        .options(joinedload(Book.author))
        .filter(Book.id == book_id)
        .first()
    )
    if not book:
        raise NotFoundError(f"Book with ID {book_id} not found")
    return book


def _ensure_author_exists(db: Session, author_id: str) -> None:
    if not db.query(Author.id).filter(Author.id == author_id).first():
        raise NotFoundError(f"Author with ID {author_id} not found")


def _ensure_isbn_free(db: Session, isbn: str) -> None:
    if db.query(Book.id).filter(Book.isbn == isbn).first():
        raise ConflictError("Book with this ISBN already exists")


@router.get("/", response_model=List[BookWithAuthor])
def list_books(
    author_id: Optional[str] = Query(None, alias="authorId"),
    available: Optional[bool] = Query(None),
    search: Optional[str] = Query(None),
    db: Session = Depends(get_db),
):
    query = db.query(Book).options(joinedload(Book.author))

    if author_id:
        query = query.filter(Book.author_id == ensure_uuid(author_id, "authorId"))
    if available is not None:
        query = query.filter(Book.available.is_(available))
    if search:
        pattern = f"%{search}%"
        query = query.filter(or_(Book.title.ilike(pattern), Book.isbn.ilike(pattern)))

    return query.order_by(Book.created_at.desc()).all()


@router.get("/{book_id}", response_model=BookWithLoans)
def get_book(book_id: str, db: Session = Depends(get_db)):
    return _get_book_or_404(db, book_id)


@router.post(
    "/",
    response_model=BookWithAuthor,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_operation(Operation.BOOK_WRITE))],
)
def create_book(payload: BookCreate, db: Session = Depends(get_db)):
    author_id = str(payload.author_id)
    _ensure_author_exists(db, author_id)
    _ensure_isbn_free(db, payload.isbn)

    book = Book(
        title=payload.title,
        isbn=payload.isbn,
        published_date=payload.published_date,
        author_id=author_id,
        available=True,
    )
    db.add(book)
    try:
        db.commit()
    except IntegrityError:
        # Lost a race against another insert with the same ISBN
        db.rollback()
        raise ConflictError("Book with this ISBN already exists")

    logger.info(
        "book_created",
        extra={"operation": "book_create", "resource": "book", "book_id": book.id, "isbn": book.isbn},
    )
    return _get_book_or_404(db, book.id)


@router.patch(
    "/{book_id}",
    response_model=BookWithAuthor,
    dependencies=[Depends(require_operation(Operation.BOOK_WRITE))],
)
def update_book(book_id: str, payload: BookUpdate, db: Session = Depends(get_db)):
    book = _get_book_or_404(db, book_id)
    update_data = payload.model_dump(exclude_unset=True)

    if update_data.get("author_id") is not None:
        update_data["author_id"] = str(update_data["author_id"])
        _ensure_author_exists(db, update_data["author_id"])

    if update_data.get("isbn") and update_data["isbn"] != book.isbn:
        _ensure_isbn_free(db, update_data["isbn"])

    # The availability flag mirrors the loan ledger; an override is only
    # accepted when it agrees with it.
    if update_data.get("available") is not None:
        on_loan = loan_service.book_has_open_loan(db, book.id)
        if update_data["available"] == on_loan:
            raise InvalidStateError("Book availability is managed by borrowing and returning")

    for field, value in update_data.items():
        if value is None:
            continue
        setattr(book, field, value)

    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise ConflictError("Book with this ISBN already exists")
    return _get_book_or_404(db, book.id)


@router.delete(
    "/{book_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    dependencies=[Depends(require_operation(Operation.BOOK_WRITE))],
)
def delete_book(book_id: str, db: Session = Depends(get_db)):
    book = _get_book_or_404(db, book_id)
    loan_service.delete_book(db, book.id)

    logger.info(
        "book_deleted",
        extra={"operation": "book_delete", "resource": "book", "book_id": book_id},
    )
    return None
