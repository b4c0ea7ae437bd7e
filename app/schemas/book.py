"""
Book schemas for API request/response validation.
"""

from datetime import date, datetime
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator

from app.models.book import BookState, TagType


class TagIn(BaseModel):
    """A (type, name) tag as sent by clients."""

    type: TagType
    name: str = Field(min_length=1, max_length=255)

    @field_validator("name")
    @classmethod
    def strip_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Tag name must not be blank")
        return v

    @property
    def key(self) -> tuple[str, str]:
        return (self.type.value, self.name)


class TagResponse(BaseModel):
    type: TagType
    name: str

    model_config = {"from_attributes": True}


class BookCreate(BaseModel):
    """Schema for creating a book. State, owner and files are set by the server."""

    title: str = Field(min_length=1, max_length=512)
    description: str = ""
    published_date: Optional[date] = None
    tags: List[TagIn] = Field(default_factory=list)


class BookUpdate(BaseModel):
    """
    Partial update of a book.

    ``tags`` replaces the tag set when present and leaves it alone when omitted.
    """

    title: Optional[str] = Field(default=None, min_length=1, max_length=512)
    description: Optional[str] = None
    published_date: Optional[date] = None
    tags: Optional[List[TagIn]] = None


class BookResponse(BaseModel):
    """Schema for book data in API responses."""

    id: str
    title: str
    description: str
    published_date: Optional[date] = None
    user_id: Optional[int] = None
    state: BookState
    cover_file: Optional[str] = None
    content_file: Optional[str] = None
    tags: List[TagResponse]
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}
