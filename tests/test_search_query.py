"""
Tests for the search query parser.
"""

import pytest

from app.core.exceptions import ValidationError
from app.models.book import TagType
from app.services.search_query import TagFilter, TextField, TextFilter, parse_search_query, tokenize


def test_empty_query() -> None:
    assert parse_search_query(None).is_empty
    assert parse_search_query("").is_empty
    assert parse_search_query(" ;  ; ").is_empty


def test_title_and_genre() -> None:
    query = parse_search_query("dune;GENRE:sci-fi")
    assert query.text_filters == [TextFilter(TextField.TITLE, "dune")]
    assert query.tag_filters == [TagFilter(TagType.GENRE, "sci-fi")]


def test_description_key_is_case_insensitive() -> None:
    query = parse_search_query("desc:lonely wizard")
    assert query.text_filters == [
        TextFilter(TextField.DESCRIPTION, "lonely"),
        TextFilter(TextField.DESCRIPTION, "wizard"),
    ]
    assert query.tag_filters == []


def test_tag_value_is_lowered_and_trimmed() -> None:
    query = parse_search_query("  author :  Frank Herbert ")
    assert query.tag_filters == [TagFilter(TagType.AUTHOR, "frank herbert")]


def test_unknown_key_is_rejected() -> None:
    with pytest.raises(ValidationError) as exc_info:
        parse_search_query("FOO:bar")
    assert exc_info.value.field == "query"
    assert "FOO" in exc_info.value.message


def test_segment_with_two_colons_is_rejected() -> None:
    with pytest.raises(ValidationError):
        parse_search_query("GENRE:a:b")


def test_title_words_are_letter_runs() -> None:
    query = parse_search_query("The Left-Hand of 1969 Darkness")
    assert [f.token for f in query.text_filters] == ["the", "left", "hand", "of", "darkness"]
    assert all(f.field is TextField.TITLE for f in query.text_filters)


def test_tokenize_keeps_non_ascii_letters() -> None:
    assert tokenize("Кобзар, Шевченко!") == ["кобзар", "шевченко"]
