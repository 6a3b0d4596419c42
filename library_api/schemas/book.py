from datetime import date, datetime
from typing import Optional
from uuid import UUID

from pydantic import Field

from library_api.schemas.author import AuthorRead
from library_api.schemas.common import CamelModel


class BookCreate(CamelModel):
    title: str = Field(min_length=1)
    isbn: str = Field(min_length=10, max_length=20)
    published_date: Optional[date] = None
    author_id: UUID


class BookUpdate(CamelModel):
    title: Optional[str] = Field(default=None, min_length=1)
    isbn: Optional[str] = Field(default=None, min_length=10, max_length=20)
    published_date: Optional[date] = None
    author_id: Optional[UUID] = None
    available: Optional[bool] = None


class BookSummary(CamelModel):
    id: str
    title: str
    isbn: str


class BookRead(BookSummary):
    published_date: Optional[date] = None
    author_id: str
    available: bool
    created_at: datetime
    updated_at: datetime


class BookWithAuthor(BookRead):
    author: AuthorRead
