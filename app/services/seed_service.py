"""
Bulk import of catalog records into published, ownerless books.
"""

from datetime import date
from typing import Any, Iterable, List, Optional

from pydantic import BaseModel, field_validator
from sqlmodel import Session, select

from app.core.logging import get_logger
from app.models.book import Book, BookState, TagType
from app.schemas.book import TagIn
from app.services.book_service import BookService

logger = get_logger(__name__)


class SeedRecord(BaseModel):
    """One catalog record; ``genres`` may be a list or a comma-separated string."""

    title: str
    description: str = ""
    author: Optional[str] = None
    genres: List[str] = []
    published_date: Optional[date] = None

    @field_validator("title")
    @classmethod
    def strip_title(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Title must not be blank")
        return v

    @field_validator("genres", mode="before")
    @classmethod
    def split_genres(cls, v: Any) -> Any:
        if v is None:
            return []
        if isinstance(v, str):
            return [g.strip() for g in v.split(",") if g.strip()]
        return v

    def tags(self) -> List[TagIn]:
        tags = []
        if self.author and self.author.strip():
            tags.append(TagIn(type=TagType.AUTHOR, name=self.author))
        tags.extend(TagIn(type=TagType.GENRE, name=g) for g in self.genres if g.strip())
        return tags


def seed_books(session: Session, records: Iterable[Any]) -> int:
    """
    Insert every record whose title is not in the catalog yet.

    Records with a title already present (or repeated in ``records``) are
    skipped. Seeded books are VISIBLE and have no owner.

    Returns:
        Number of books created
    """
    service = BookService(session)
    existing = set(session.exec(select(Book.title)))
    created = 0

    for raw in records:
        record = raw if isinstance(raw, SeedRecord) else SeedRecord.model_validate(raw)
        if record.title in existing:
            logger.debug(f"Skipping existing title: {record.title}")
            continue

        book = Book(
            title=record.title,
            description=record.description,
            published_date=record.published_date,
            state=BookState.VISIBLE,
            user_id=None,
        )
        session.add(book)
        service.apply_tags(book, record.tags())
        session.commit()

        existing.add(record.title)
        created += 1

    logger.info(f"Seeded {created} books")
    return created
