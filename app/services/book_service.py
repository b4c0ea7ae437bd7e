"""
Book service: lifecycle transitions, listings, tag maintenance and attachments.

Lifecycle::

    create ─> DRAFT ──submit──> UNAPPROVED ──approve──> VISIBLE ──archive──> ARCHIVED ──delete──> (removed)
                ^                   │                      ^                    │
                └──────reject───────┘                      └─────unarchive──────┘

Every state change is a conditional UPDATE/DELETE guarded on the state read
just before it. Zero affected rows means another request won the race and
``StaleStateError`` is raised; nothing is written.
"""

from dataclasses import dataclass, replace
from datetime import datetime, timezone
from typing import Any, BinaryIO, Dict, Iterable, List, Optional, Sequence

from sqlalchemy import and_, delete, false, func, or_, true, update
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, col, select

from app.core.exceptions import ConflictError, InvalidStateError, NotFoundError, StaleStateError
from app.core.logging import get_logger
from app.models.book import Book, BookState, BookTagLink, Tag
from app.policy import Actor, BookAction, Decision, SubjectProxy, book_policy
from app.schemas.book import BookCreate, BookUpdate, TagIn
from app.services.file_storage_service import FileSlot, FileStorageService, StoredBlob, file_storage_service
from app.services.search_query import SearchQuery, TextField, parse_search_query

logger = get_logger(__name__)


@dataclass(frozen=True)
class Transition:
    operation: str
    action: BookAction
    source: BookState
    target: BookState


SUBMIT = Transition("submitted for approval", BookAction.CREATE, BookState.DRAFT, BookState.UNAPPROVED)
APPROVE = Transition("approved", BookAction.APPROVE, BookState.UNAPPROVED, BookState.VISIBLE)
REJECT = Transition("rejected", BookAction.APPROVE, BookState.UNAPPROVED, BookState.DRAFT)
ARCHIVE = Transition("archived", BookAction.ARCHIVE, BookState.VISIBLE, BookState.ARCHIVED)
UNARCHIVE = Transition("unarchived", BookAction.UNARCHIVE, BookState.ARCHIVED, BookState.VISIBLE)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _dedupe_tags(tags: Iterable[TagIn]) -> List[TagIn]:
    unique: Dict[tuple, TagIn] = {}
    for tag in tags:
        unique.setdefault(tag.key, tag)
    return list(unique.values())


class BookService:
    """
    Coordinates the policy engine, the database and the blob store for books.
    """

    def __init__(self, session: Session, storage: Optional[FileStorageService] = None):
        self.session = session
        self.storage = storage or file_storage_service

    # ── Lookup ────────────────────────────────────────────────────────────

    def get_by_id(self, book_id: str) -> Book:
        book = self.session.get(Book, book_id)
        if book is None:
            raise NotFoundError("Book", book_id)
        return book

    def proxy(self, book_id: str) -> SubjectProxy:
        """Deferred handle used as policy subject; the row is fetched only if needed."""
        return SubjectProxy(lambda: self.get_by_id(book_id))

    def _authorized(self, book_id: str, actor: Actor, action: BookAction) -> Book:
        subject = self.proxy(book_id)
        book_policy.authorize(actor, action, subject)
        return subject.get()

    def _read_current(self, book_id: str) -> Book:
        """Re-read the row right before a conditional write."""
        book = self.get_by_id(book_id)
        self.session.refresh(book)
        return book

    def get(self, book_id: str, actor: Actor) -> Book:
        return self._authorized(book_id, actor, BookAction.READ)

    # ── Listings ──────────────────────────────────────────────────────────

    def _policy_filter(self, actor: Actor, action: BookAction) -> Any:
        """The grants of ``actor`` for ``action`` as a SQL condition."""
        clauses = []
        for conditions in book_policy.conditions_for(actor, action):
            if not conditions:
                return true()
            clauses.append(and_(*(getattr(Book, name) == value for name, value in conditions.items())))
        return or_(*clauses) if clauses else false()

    def _list(self, *conditions: Any) -> List[Book]:
        statement = select(Book).where(*conditions).order_by(col(Book.created_at).desc())
        return list(self.session.exec(statement))

    def list_visible(self, query: Optional[str] = None) -> List[Book]:
        """
        Public listing of VISIBLE books filtered by the search syntax.

        Raises:
            ValidationError: If the query names an unknown key
        """
        parsed = parse_search_query(query)
        if parsed.is_empty:
            return self._list(Book.state == BookState.VISIBLE)
        logger.debug(
            f"Searching books with {len(parsed.text_filters)} text and {len(parsed.tag_filters)} tag filters"
        )
        return self._list(Book.state == BookState.VISIBLE, *self._search_conditions(parsed))

    def _search_conditions(self, query: SearchQuery) -> List[Any]:
        conditions: List[Any] = []
        for text_filter in query.text_filters:
            column = Book.title if text_filter.field is TextField.TITLE else Book.description
            conditions.append(col(column).ilike(f"%{text_filter.token}%"))
        for tag_filter in query.tag_filters:
            conditions.append(
                col(Book.tags).any(
                    and_(Tag.type == tag_filter.type, func.lower(Tag.name) == tag_filter.name)
                )
            )
        return conditions

    def list_drafts(self, actor: Actor) -> List[Book]:
        """The actor's own books that are not yet published (DRAFT and UNAPPROVED)."""
        book_policy.authorize(actor, BookAction.READ, {"state": BookState.DRAFT, "user_id": actor.id})
        return self._list(
            Book.user_id == actor.id,
            col(Book.state).in_([BookState.DRAFT, BookState.UNAPPROVED]),
        )

    def list_pending(self, actor: Actor) -> List[Book]:
        """Books waiting for approval."""
        book_policy.authorize(actor, BookAction.READ, {"state": BookState.UNAPPROVED})
        return self._list(Book.state == BookState.UNAPPROVED, self._policy_filter(actor, BookAction.READ))

    def list_archived(self, actor: Actor) -> List[Book]:
        book_policy.authorize(actor, BookAction.READ, {"state": BookState.ARCHIVED})
        return self._list(Book.state == BookState.ARCHIVED, self._policy_filter(actor, BookAction.READ))

    # ── Tags ──────────────────────────────────────────────────────────────

    def _upsert_tag(self, tag_in: TagIn) -> Tag:
        statement = select(Tag).where(Tag.type == tag_in.type, Tag.name == tag_in.name)
        tag = self.session.exec(statement).first()
        if tag is None:
            tag = Tag(type=tag_in.type, name=tag_in.name)
            self.session.add(tag)
        return tag

    def apply_tags(self, book: Book, tags: Sequence[TagIn]) -> None:
        """
        Make the book's tag set equal to ``tags``.

        Tags already attached stay attached, new ones are upserted and
        attached, missing ones are detached (the tag itself is kept).
        """
        wanted = _dedupe_tags(tags)
        wanted_keys = {tag.key for tag in wanted}
        current = {tag.key: tag for tag in book.tags}

        for tag_in in wanted:
            if tag_in.key not in current:
                book.tags.append(self._upsert_tag(tag_in))
        for key, tag in current.items():
            if key not in wanted_keys:
                book.tags.remove(tag)

    def _flush(self) -> None:
        try:
            self.session.flush()
        except IntegrityError as e:
            self.session.rollback()
            logger.warning(f"Integrity error while saving book: {e.orig}")
            raise ConflictError("Tag already exists, please retry")

    def _commit(self) -> None:
        try:
            self.session.commit()
        except IntegrityError as e:
            self.session.rollback()
            logger.warning(f"Integrity error while saving book: {e.orig}")
            raise ConflictError("Tag already exists, please retry")

    # ── Create / update ───────────────────────────────────────────────────

    def create(self, book_in: BookCreate, actor: Actor) -> Book:
        """Create a DRAFT book owned by ``actor``."""
        book_policy.authorize(actor, BookAction.CREATE, {"state": BookState.DRAFT, "user_id": actor.id})

        book = Book(
            title=book_in.title,
            description=book_in.description,
            published_date=book_in.published_date,
            state=BookState.DRAFT,
            user_id=actor.id,
        )
        self.session.add(book)
        self.apply_tags(book, book_in.tags)
        self._commit()
        self.session.refresh(book)

        logger.info(f"Created book {book.id} for user {actor.id}")
        return book

    def _guard_state(
        self,
        book_id: str,
        expected_state: BookState,
        values: Optional[Dict[str, Any]] = None,
        unchanged: Optional[Dict[str, Any]] = None,
    ) -> None:
        """
        Conditional write that fails unless the book is still in ``expected_state``.

        ``unchanged`` names further columns that must still hold the value read
        before the write.
        """
        conditions = [col(Book.id) == book_id, col(Book.state) == expected_state]
        for name, value in (unchanged or {}).items():
            conditions.append(col(getattr(Book, name)) == value)
        statement = (
            update(Book)
            .where(*conditions)
            .values(updated_at=_utcnow(), **(values or {}))
            .execution_options(synchronize_session=False)
        )
        if self.session.exec(statement).rowcount != 1:  # type: ignore[attr-defined]
            self.session.rollback()
            logger.warning(f"Book {book_id} changed during a write (expected state {expected_state.value})")
            context = {"book_id": book_id, "expected_state": expected_state.value}
            context.update(unchanged or {})
            raise StaleStateError(context=context)

    def update(self, book_id: str, book_in: BookUpdate, actor: Actor) -> Book:
        """
        Edit title, description, published date and tags.

        ``tags`` replaces the tag set as a set difference when present.
        """
        book = self._authorized(book_id, actor, BookAction.UPDATE)
        observed_state = BookState(book.state)

        changes = book_in.model_dump(exclude_unset=True, exclude={"tags"})
        for name, value in changes.items():
            if name == "title" and value is None:
                continue
            if name == "description" and value is None:
                value = ""
            setattr(book, name, value)
        if book_in.tags is not None:
            self.apply_tags(book, book_in.tags)

        self.session.add(book)
        self._flush()
        self._guard_state(book_id, observed_state)
        self._commit()
        self.session.refresh(book)

        logger.info(f"Updated book {book_id} ({', '.join(sorted(book_in.model_fields_set)) or 'no fields'})")
        return book

    # ── Transitions ───────────────────────────────────────────────────────

    def _read_for_transition(
        self, book_id: str, actor: Actor, action: BookAction, operation: str, source: BookState
    ) -> Book:
        """
        Read the book and check ``action`` against it, or against it as if it were in ``source``.

        Grants depend on the state, so checking only the real state would turn
        a wrong-state request into a 403. An actor who could act on the book in
        ``source`` gets a conflict instead.
        """
        book = self._read_current(book_id)
        if book_policy.evaluate(actor, action, book) is Decision.DENY:
            book_policy.authorize(actor, action, {"state": source, "user_id": book.user_id})
        if book.state != source:
            raise InvalidStateError(operation, source, book.state)
        return book

    def _transition(self, book_id: str, actor: Actor, transition: Transition) -> Book:
        book = self._read_for_transition(
            book_id, actor, transition.action, transition.operation, transition.source
        )

        self._guard_state(book_id, transition.source, values={"state": transition.target})
        self.session.commit()
        self.session.refresh(book)

        logger.info(
            f"Book {book_id} {transition.operation}: {transition.source.value} -> {transition.target.value}"
        )
        return book

    def submit(self, book_id: str, actor: Actor) -> Book:
        return self._transition(book_id, actor, SUBMIT)

    def approve(self, book_id: str, actor: Actor) -> Book:
        return self._transition(book_id, actor, APPROVE)

    def reject(self, book_id: str, actor: Actor) -> Book:
        return self._transition(book_id, actor, REJECT)

    def archive(self, book_id: str, actor: Actor) -> Book:
        return self._transition(book_id, actor, ARCHIVE)

    def unarchive(self, book_id: str, actor: Actor) -> Book:
        return self._transition(book_id, actor, UNARCHIVE)

    def delete(self, book_id: str, actor: Actor) -> None:
        """
        Remove an ARCHIVED book, its tag links and its stored files.

        The row goes first so no committed book ever references a deleted blob.
        """
        book = self._read_for_transition(book_id, actor, BookAction.DELETE, "deleted", BookState.ARCHIVED)

        self.session.exec(delete(BookTagLink).where(col(BookTagLink.book_id) == book_id))
        statement = (
            delete(Book)
            .where(col(Book.id) == book_id, col(Book.state) == BookState.ARCHIVED)
            .execution_options(synchronize_session=False)
        )
        if self.session.exec(statement).rowcount != 1:  # type: ignore[attr-defined]
            self.session.rollback()
            logger.warning(f"Book {book_id} left state ARCHIVED before it could be deleted")
            raise StaleStateError(context={"book_id": book_id, "expected_state": BookState.ARCHIVED.value})
        self.session.commit()
        self.session.expunge(book)

        self.storage.delete_book_files(book_id)
        logger.info(f"Deleted book {book_id}")

    # ── Attachments ───────────────────────────────────────────────────────

    def _set_attachment(
        self,
        book_id: str,
        actor: Actor,
        slot: FileSlot,
        source: BinaryIO,
        original_filename: Optional[str],
    ) -> Book:
        book = self._authorized(book_id, actor, BookAction.UPDATE)
        observed_state = BookState(book.state)
        column = "cover_file" if slot is FileSlot.COVER else "content_file"
        previous = getattr(book, column)

        filename = self.storage.save_blob(book_id, slot, source, original_filename)
        try:
            self._guard_state(book_id, observed_state, values={column: filename}, unchanged={column: previous})
            self.session.commit()
        except Exception:
            self.session.rollback()
            if filename != self._committed_file(book_id, column):
                self.storage.remove_blob(book_id, filename)
            raise

        self.session.refresh(book)
        # A later upload may have committed since; keep whatever the row references now
        self.storage.prune_slot(book_id, slot, keep=getattr(book, column))
        logger.info(f"Set {slot.value} of book {book_id} to {filename}")
        return book

    def _committed_file(self, book_id: str, column: str) -> Optional[str]:
        statement = select(getattr(Book, column)).where(col(Book.id) == book_id)
        return self.session.exec(statement).first()

    def set_cover(self, book_id: str, actor: Actor, source: BinaryIO, original_filename: Optional[str]) -> Book:
        return self._set_attachment(book_id, actor, FileSlot.COVER, source, original_filename)

    def set_content(self, book_id: str, actor: Actor, source: BinaryIO, original_filename: Optional[str]) -> Book:
        return self._set_attachment(book_id, actor, FileSlot.CONTENT, source, original_filename)

    def get_cover(self, book_id: str, actor: Actor) -> StoredBlob:
        book = self._authorized(book_id, actor, BookAction.READ)
        return self.storage.get_blob(book_id, book.cover_file)

    def get_content(self, book_id: str, actor: Actor) -> StoredBlob:
        """The content blob, offered for download under the book title."""
        book = self._authorized(book_id, actor, BookAction.READ)
        blob = self.storage.get_blob(book_id, book.content_file)
        return replace(blob, download_name=download_name(book.title, blob.path.suffix))


def download_name(title: str, suffix: str) -> str:
    safe = "".join(c if c.isalnum() or c in " ._-" else "_" for c in title).strip() or "book"
    return f"{safe}{suffix}"
