from typing import List

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session, selectinload

from library_api.api.v1.dependencies import get_db
from library_api.api.v1.dependencies_auth import require_operation
from library_api.core.errors import InvalidStateError, NotFoundError, ensure_uuid
from library_api.core.logging import get_logger
from library_api.core.policy import Operation
from library_api.db.models import Author, Book
from library_api.schemas.author import (
    AuthorBook,
    AuthorCreate,
    AuthorListItem,
    AuthorRead,
    AuthorUpdate,
    AuthorWithBooks,
)
from library_api.services import loan_service

logger = get_logger("api.authors")

router = APIRouter(
    prefix="/api/v1/authors",
    tags=["authors"],
)


def _get_author_or_404(db: Session, author_id: str) -> Author:
    author_id = ensure_uuid(author_id, "authorId")
    author = db.query(Author).filter(Author.id == author_id).first()
    if not author:
        raise NotFoundError(f"Author with ID {author_id} not found")
    return author


@router.get("/", response_model=List[AuthorListItem])
def list_authors(db: Session = Depends(get_db)):
    return (
        db.query(Author)
        .options(selectinload(Author.books))
        .order_by(Author.name.asc())
        .all()
    )


@router.get("/{author_id}", response_model=AuthorWithBooks)
def get_author(author_id: str, db: Session = Depends(get_db)):
    author = _get_author_or_404(db, author_id)
    books = (
        db.query(Book)
        .filter(Book.author_id == author.id)
        .order_by(Book.published_date.desc().nulls_last())
        .all()
    )
    return AuthorWithBooks(
        **AuthorRead.model_validate(author).model_dump(),
        books=[AuthorBook.model_validate(book) for book in books],
    )


@router.post(
    "/",
    response_model=AuthorRead,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_operation(Operation.AUTHOR_WRITE))],
)
def create_author(payload: AuthorCreate, db: Session = Depends(get_db)):
    author = Author(
        name=payload.name,
        bio=payload.bio,
        birth_date=payload.birth_date,
    )
    db.add(author)
    db.commit()
    db.refresh(author)

    logger.info(
        "author_created",
        extra={"operation": "author_create", "resource": "author", "author_id": author.id},
    )
    return author


@router.patch(
    "/{author_id}",
    response_model=AuthorRead,
    dependencies=[Depends(require_operation(Operation.AUTHOR_WRITE))],
)
def update_author(author_id: str, payload: AuthorUpdate, db: Session = Depends(get_db)):
    author = _get_author_or_404(db, author_id)

    for field, value in payload.model_dump(exclude_unset=True).items():
        setattr(author, field, value)

    db.commit()
    db.refresh(author)
    return author


@router.delete(
    "/{author_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    dependencies=[Depends(require_operation(Operation.AUTHOR_WRITE))],
)
def delete_author(
    author_id: str,
    confirm: bool = Query(False, description="Required when the author still has books"),
    db: Session = Depends(get_db),
):
    """
    Delete an author together with all of their books.

    Removing books is irreversible, so an author who still has books is only
    deleted when ``confirm=true`` is passed, and never while one of those
    books is on loan.
    """
    author = _get_author_or_404(db, author_id)
    book_ids = [book_id for (book_id,) in db.query(Book.id).filter(Book.author_id == author.id)]

    if book_ids and not confirm:
        raise InvalidStateError(
            f"Author has {len(book_ids)} book(s); pass confirm=true to delete them as well"
        )

    deleted_books = loan_service.delete_author(db, author.id)

    logger.info(
        "author_deleted",
        extra={
            "operation": "author_delete",
            "resource": "author",
            "author_id": author_id,
            "deleted_books": deleted_books,
        },
    )
    return None
