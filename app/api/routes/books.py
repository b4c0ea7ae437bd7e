"""
Book routes: catalog listings, authoring, lifecycle transitions and attachments.

Routes only translate HTTP to ``BookService`` calls; authorization and state
checks happen in the service and surface through the application error handler.
"""

from typing import Annotated, List, Optional

from fastapi import APIRouter, Depends, File, Query, UploadFile, status
from fastapi.responses import FileResponse

from app.api.deps import get_book_service, get_current_actor, get_optional_actor
from app.policy import Actor
from app.schemas.book import BookCreate, BookResponse, BookUpdate
from app.services.book_service import BookService
from app.services.file_storage_service import StoredBlob

router = APIRouter(prefix="/books", tags=["books"])

Service = Annotated[BookService, Depends(get_book_service)]
CurrentActor = Annotated[Actor, Depends(get_current_actor)]
OptionalActor = Annotated[Actor, Depends(get_optional_actor)]


def _file_response(blob: StoredBlob) -> FileResponse:
    return FileResponse(blob.path, media_type=blob.media_type, filename=blob.download_name or blob.filename)


@router.get("", response_model=List[BookResponse])
def list_books(
    service: Service,
    query: Annotated[Optional[str], Query(description="e.g. 'dune; AUTHOR:Frank Herbert; DESC:desert'")] = None,
) -> List[BookResponse]:
    """
    Public catalog of VISIBLE books.

    Args:
        query: ``;``-separated segments; ``KEY:value`` filters by tag or
            description (``DESC``), bare words search the title

    Raises:
        ValidationError: If the query uses an unknown key
    """
    return [BookResponse.model_validate(book) for book in service.list_visible(query)]


@router.get("/drafts", response_model=List[BookResponse])
def list_drafts(service: Service, actor: CurrentActor) -> List[BookResponse]:
    """The current user's unpublished books."""
    return [BookResponse.model_validate(book) for book in service.list_drafts(actor)]


@router.get("/pending", response_model=List[BookResponse])
def list_pending(service: Service, actor: CurrentActor) -> List[BookResponse]:
    return [BookResponse.model_validate(book) for book in service.list_pending(actor)]


@router.get("/archived", response_model=List[BookResponse])
def list_archived(service: Service, actor: CurrentActor) -> List[BookResponse]:
    return [BookResponse.model_validate(book) for book in service.list_archived(actor)]


@router.post("", response_model=BookResponse, status_code=status.HTTP_201_CREATED)
def create_book(book_in: BookCreate, service: Service, actor: CurrentActor) -> BookResponse:
    """
    Create a DRAFT book owned by the current user.

    Raises:
        ForbiddenError: If the user lacks the CREATE permission
    """
    return BookResponse.model_validate(service.create(book_in, actor))


@router.get("/{book_id}", response_model=BookResponse)
def get_book(book_id: str, service: Service, actor: OptionalActor) -> BookResponse:
    """
    Get a single book. Anonymous callers only see VISIBLE books.

    Raises:
        NotFoundError: If the book does not exist
        UnauthenticatedError: If an anonymous caller asks for a non-VISIBLE book
        ForbiddenError: If the current user may not read this book
    """
    return BookResponse.model_validate(service.get(book_id, actor))


@router.patch("/{book_id}", response_model=BookResponse)
def update_book(book_id: str, book_in: BookUpdate, service: Service, actor: CurrentActor) -> BookResponse:
    return BookResponse.model_validate(service.update(book_id, book_in, actor))


@router.delete("/{book_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_book(book_id: str, service: Service, actor: CurrentActor) -> None:
    """
    Delete an ARCHIVED book together with its files.

    Raises:
        InvalidStateError: If the book is not ARCHIVED
    """
    service.delete(book_id, actor)


# Lifecycle transitions


@router.post("/{book_id}/submit", response_model=BookResponse)
def submit_book(book_id: str, service: Service, actor: CurrentActor) -> BookResponse:
    return BookResponse.model_validate(service.submit(book_id, actor))


@router.post("/{book_id}/approve", response_model=BookResponse)
def approve_book(book_id: str, service: Service, actor: CurrentActor) -> BookResponse:
    return BookResponse.model_validate(service.approve(book_id, actor))


@router.post("/{book_id}/reject", response_model=BookResponse)
def reject_book(book_id: str, service: Service, actor: CurrentActor) -> BookResponse:
    return BookResponse.model_validate(service.reject(book_id, actor))


@router.post("/{book_id}/archive", response_model=BookResponse)
def archive_book(book_id: str, service: Service, actor: CurrentActor) -> BookResponse:
    return BookResponse.model_validate(service.archive(book_id, actor))


@router.post("/{book_id}/unarchive", response_model=BookResponse)
def unarchive_book(book_id: str, service: Service, actor: CurrentActor) -> BookResponse:
    return BookResponse.model_validate(service.unarchive(book_id, actor))


# Attachments


@router.get("/{book_id}/cover")
def get_cover(book_id: str, service: Service, actor: OptionalActor) -> FileResponse:
    return _file_response(service.get_cover(book_id, actor))


@router.post("/{book_id}/cover", response_model=BookResponse)
def upload_cover(
    book_id: str,
    service: Service,
    actor: CurrentActor,
    file: UploadFile = File(...),
) -> BookResponse:
    """
    Replace the cover image of a book.

    Raises:
        ValidationError: If the upload is empty or too large
    """
    book = service.set_cover(book_id, actor, file.file, file.filename)
    return BookResponse.model_validate(book)


@router.get("/{book_id}/content")
def get_content(book_id: str, service: Service, actor: OptionalActor) -> FileResponse:
    """Download the book's content file, named after its title."""
    return _file_response(service.get_content(book_id, actor))


@router.post("/{book_id}/content", response_model=BookResponse)
def upload_content(
    book_id: str,
    service: Service,
    actor: CurrentActor,
    file: UploadFile = File(...),
) -> BookResponse:
    book = service.set_content(book_id, actor, file.file, file.filename)
    return BookResponse.model_validate(book)
