from datetime import datetime
from typing import List, Optional
from uuid import UUID

from library_api.schemas.book import BookSummary, BookWithAuthor
from library_api.schemas.common import CamelModel
from library_api.schemas.user import UserRead, UserSummary


class LoanCreate(CamelModel):
    book_id: UUID
    user_id: UUID
    due_date: Optional[datetime] = None


class LoanRead(CamelModel):
    id: str
    book_id: str
    user_id: str
    borrowed_at: datetime
    due_date: datetime
    returned_at: Optional[datetime] = None


class LoanWithBook(LoanRead):
    book: BookWithAuthor


class LoanWithUser(LoanRead):
    user: UserSummary


class LoanDetail(LoanRead):
    book: BookWithAuthor
    user: UserSummary


class LoanActivity(LoanRead):
    """Dashboard row: reduced book and reduced user."""

    book: BookSummary
    user: UserSummary


class UserWithLoans(UserRead):
    borrowed_books: List[LoanWithBook] = []


class BookWithLoans(BookWithAuthor):
    borrowed_books: List[LoanWithUser] = []
