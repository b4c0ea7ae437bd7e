"""
Book and tag models.

Books reference tags through the ``book_tags`` link table; tags form a global
registry unique on ``(type, name)`` and are never deleted when detached.
"""

from datetime import date, datetime, timezone
from enum import Enum
from typing import List, Optional
from uuid import uuid4

from sqlalchemy import UniqueConstraint
from sqlmodel import Field, Relationship, SQLModel


class BookState(str, Enum):
    """Lifecycle state of a book. Deletion removes the row instead of storing a state."""

    DRAFT = "DRAFT"
    UNAPPROVED = "UNAPPROVED"
    VISIBLE = "VISIBLE"
    ARCHIVED = "ARCHIVED"


class TagType(str, Enum):
    """Tag type enumeration."""

    AUTHOR = "AUTHOR"
    GENRE = "GENRE"


class BookTagLink(SQLModel, table=True):
    __tablename__ = "book_tags"  # type: ignore

    book_id: Optional[str] = Field(default=None, foreign_key="books.id", primary_key=True)
    tag_id: Optional[int] = Field(default=None, foreign_key="tags.id", primary_key=True)


class Tag(SQLModel, table=True):
    """A (type, name) label shared by many books."""

    __tablename__ = "tags"  # type: ignore
    __table_args__ = (UniqueConstraint("type", "name", name="uq_tags_type_name"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    type: TagType
    name: str = Field(max_length=255)

    books: List["Book"] = Relationship(back_populates="tags", link_model=BookTagLink)

    @property
    def key(self) -> tuple[str, str]:
        return (TagType(self.type).value, self.name)


class Book(SQLModel, table=True):
    """
    A catalog entry.

    ``user_id`` is the owner and is ``None`` for system-seeded books.
    ``cover_file`` and ``content_file`` hold stored blob filenames.
    """

    __tablename__ = "books"  # type: ignore

    id: str = Field(default_factory=lambda: str(uuid4()), primary_key=True)
    title: str = Field(max_length=512)
    description: str = Field(default="")
    published_date: Optional[date] = None
    user_id: Optional[int] = Field(default=None, foreign_key="users.id", index=True)
    state: BookState = Field(default=BookState.DRAFT, index=True)

    cover_file: Optional[str] = None
    content_file: Optional[str] = None

    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    tags: List[Tag] = Relationship(
        back_populates="books",
        link_model=BookTagLink,
        sa_relationship_kwargs={"lazy": "selectin"},
    )
