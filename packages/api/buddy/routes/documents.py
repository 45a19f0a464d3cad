# This project was developed with assistance from AI tools.
"""Deal document routes."""

import asyncio
import logging
import uuid

from buddy_db import get_db
from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from ..middleware.auth import CurrentUser, require_roles
from ..schemas import Pagination
from ..schemas.document import (
    DocumentChecklistKeyUpdate,
    DocumentListResponse,
    DocumentRegister,
    DocumentResponse,
)
from ..services import document as doc_service
from ..services.deal import DealNotFoundError
from ..services.document import DocumentValidationError, get_processing_service
from ._roles import ALL_AUTHENTICATED, BANK_WRITE, UPLOAD

logger = logging.getLogger(__name__)

# Track background processing tasks so exceptions aren't silently lost
_processing_tasks: set[asyncio.Task] = set()

router = APIRouter()


@router.post(
    "/{deal_id}/documents",
    response_model=DocumentResponse,
    status_code=201,
    dependencies=[Depends(require_roles(*UPLOAD))],
)
async def register_document(
    deal_id: uuid.UUID,
    body: DocumentRegister,
    user: CurrentUser,
    session: AsyncSession = Depends(get_db),
) -> DocumentResponse:
    """Register an uploaded document and start classification in the background."""
    try:
        doc = await doc_service.register_document(
            session,
            user,
            deal_id,
            original_filename=body.original_filename,
            mime_type=body.mime_type,
            storage_path=body.storage_path,
            size_bytes=body.size_bytes,
            text_excerpt=body.text_excerpt,
            source=body.source,
        )
    except DocumentValidationError as exc:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=str(exc),
        ) from exc
    except DealNotFoundError as exc:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Deal not found",
        ) from exc

    # Fire background processing (retain reference for error handling)
    task = asyncio.create_task(
        get_processing_service().process_document(doc.id),
        name=f"process-doc-{doc.id}",
    )
    _processing_tasks.add(task)
    task.add_done_callback(_processing_tasks.discard)

    return DocumentResponse.model_validate(doc)


@router.get(
    "/{deal_id}/documents",
    response_model=DocumentListResponse,
    dependencies=[Depends(require_roles(*ALL_AUTHENTICATED))],
)
async def list_documents(
    deal_id: uuid.UUID,
    user: CurrentUser,
    session: AsyncSession = Depends(get_db),
    offset: int = Query(default=0, ge=0),
    limit: int = Query(default=20, ge=1, le=100),
) -> DocumentListResponse:
    documents, total = await doc_service.list_documents(
        session, user, deal_id, offset=offset, limit=limit
    )
    return DocumentListResponse(
        data=[DocumentResponse.model_validate(d) for d in documents],
        pagination=Pagination(
            total=total,
            offset=offset,
            limit=limit,
            has_more=(offset + limit < total),
        ),
    )


@router.get(
    "/{deal_id}/documents/{document_id}",
    response_model=DocumentResponse,
    dependencies=[Depends(require_roles(*ALL_AUTHENTICATED))],
)
async def get_document(
    deal_id: uuid.UUID,
    document_id: uuid.UUID,
    user: CurrentUser,
    session: AsyncSession = Depends(get_db),
) -> DocumentResponse:
    doc = await doc_service.get_document(session, user, document_id)
    if doc is None or doc.deal_id != deal_id:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Document not found",
        )
    return DocumentResponse.model_validate(doc)


@router.patch(
    "/{deal_id}/documents/{document_id}/checklist-key",
    response_model=DocumentResponse,
    dependencies=[Depends(require_roles(*BANK_WRITE))],
)
async def set_checklist_key(
    deal_id: uuid.UUID,
    document_id: uuid.UUID,
    body: DocumentChecklistKeyUpdate,
    user: CurrentUser,
    session: AsyncSession = Depends(get_db),
) -> DocumentResponse:
    """Manually link (or unlink) a document to a checklist item."""
    existing = await doc_service.get_document(session, user, document_id)
    if existing is None or existing.deal_id != deal_id:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Document not found",
        )
    doc = await doc_service.set_document_checklist_key(
        session, user, document_id, body.checklist_key, tax_year=body.tax_year
    )
    return DocumentResponse.model_validate(doc)
