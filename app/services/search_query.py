"""
Parser for the public book search syntax.

A query is a ``;``-separated list of segments, all of which must match:

* ``key:value`` with ``key`` a tag type (``AUTHOR``, ``GENRE``): the book has
  a tag of that type whose name equals ``value`` ignoring case
* ``desc:words``: every word occurs in the description, ignoring case
* anything else: every word occurs in the title, ignoring case

Words are the letter runs of a segment; digits and punctuation separate them.
"""

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

from app.core.exceptions import ValidationError
from app.models.book import TagType

DESCRIPTION_KEY = "DESC"

_LETTER_RUN = re.compile(r"[^\W\d_]+")


class TextField(str, Enum):
    TITLE = "title"
    DESCRIPTION = "description"


@dataclass(frozen=True)
class TextFilter:
    """Case-insensitive substring match of ``token`` against ``field``."""

    field: TextField
    token: str


@dataclass(frozen=True)
class TagFilter:
    """Case-insensitive exact match of a tag on the book."""

    type: TagType
    name: str


@dataclass
class SearchQuery:
    text_filters: List[TextFilter] = field(default_factory=list)
    tag_filters: List[TagFilter] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.text_filters and not self.tag_filters


def tokenize(text: str) -> List[str]:
    """Lower-cased letter runs of ``text``."""
    return _LETTER_RUN.findall(text.lower())


def _parse_keyed_segment(segment: str, query: SearchQuery) -> None:
    parts = segment.split(":")
    if len(parts) != 2:
        raise ValidationError(
            f"Invalid search segment '{segment}': expected key:value",
            field="query",
        )

    key, value = parts[0].strip().upper(), parts[1].strip().lower()
    if key == DESCRIPTION_KEY:
        query.text_filters.extend(TextFilter(TextField.DESCRIPTION, token) for token in tokenize(value))
        return

    try:
        tag_type = TagType(key)
    except ValueError:
        allowed = [t.value for t in TagType] + [DESCRIPTION_KEY]
        raise ValidationError(
            f"Unknown search key '{parts[0].strip()}'",
            field="query",
            context={"allowed_keys": allowed},
        )
    query.tag_filters.append(TagFilter(tag_type, value))


def parse_search_query(raw: Optional[str]) -> SearchQuery:
    """
    Parse a search string into filters.

    Raises:
        ValidationError: If a keyed segment names an unknown key
    """
    query = SearchQuery()
    if not raw:
        return query

    for segment in (s.strip() for s in raw.split(";")):
        if not segment:
            continue
        if ":" in segment:
            _parse_keyed_segment(segment, query)
        else:
            query.text_filters.extend(TextFilter(TextField.TITLE, token) for token in tokenize(segment))

    return query
