"""Shared route dependencies."""

from typing import Annotated
from uuid import uuid4

from fastapi import Depends, Request, Response

from queueline.core.config import settings
from queueline.db.session import DbSession
from queueline.services.queue_service import QueueService
from queueline.services.saved_entry_service import SavedEntryService


def get_queue_service(request: Request) -> QueueService:
    """The QueueService built by the application lifespan."""
    return request.app.state.queue_service


def get_client_id(request: Request, response: Response) -> str:
    """Identify the browser by cookie, issuing a new id on first visit."""
    client_id = request.cookies.get(settings.client_cookie_name)
    if not client_id:
        client_id = uuid4().hex

    # Refresh cookie on every request
    response.set_cookie(
        key=settings.client_cookie_name,
        value=client_id,
        httponly=True,
        samesite="lax",
        max_age=settings.client_cookie_max_age,
    )
    return client_id


def get_saved_entries(db: DbSession) -> SavedEntryService:
    return SavedEntryService(db)


QueueServiceDep = Annotated[QueueService, Depends(get_queue_service)]
ClientId = Annotated[str, Depends(get_client_id)]
SavedEntries = Annotated[SavedEntryService, Depends(get_saved_entries)]
