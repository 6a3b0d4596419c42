from datetime import date, datetime
from typing import List, Optional

from pydantic import Field

from library_api.schemas.common import CamelModel


class AuthorCreate(CamelModel):
    name: str = Field(min_length=2)
    bio: Optional[str] = None
    birth_date: Optional[date] = None


class AuthorUpdate(CamelModel):
    name: Optional[str] = Field(default=None, min_length=2)
    bio: Optional[str] = None
    birth_date: Optional[date] = None


class AuthorRead(CamelModel):
    id: str
    name: str
    bio: Optional[str] = None
    birth_date: Optional[date] = None
    created_at: datetime
    updated_at: datetime


class AuthorListItem(AuthorRead):
    book_count: int = 0


class AuthorBook(CamelModel):
    id: str
    title: str
    isbn: str
    published_date: Optional[date] = None
    available: bool


class AuthorWithBooks(AuthorRead):
    books: List[AuthorBook] = []
