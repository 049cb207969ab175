"""
Document API.
POST /api/{tenant}/documents/upload - multipart upload, then best-effort mock parse.
GET  /api/{tenant}/documents?caseId= - list documents.
"""
from __future__ import annotations

import logging
import uuid
from pathlib import Path
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile, status
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.concurrency import run_in_threadpool

from caseflow.api.errors import ok
from caseflow.core.config import settings
from caseflow.core.database import get_session
from caseflow.core.errors import DomainError, ValidationError
from caseflow.core.security import Principal, get_tenant_principal
from caseflow.models.base_models import Case as CaseORM
from caseflow.models.base_models import Document
from caseflow.modules.ai.parsing import DocumentType
from caseflow.modules.ai.service import AIService

logger = logging.getLogger("caseflow.documents")

router = APIRouter(prefix="/{tenant}/documents", tags=["documents"])


def document_view(document: Document) -> dict:
    return {
        "id": document.id,
        "caseId": document.case_id,
        "borrowerId": document.borrower_id,
        "fileName": document.file_name,
        "filePath": document.file_path,
        "fileType": document.file_type,
        "fileSize": document.file_size,
        "documentType": document.document_type,
        "uploadedBy": document.uploaded_by,
        "createdAt": document.created_at.isoformat() if document.created_at else None,
    }


_CHUNK_BYTES = 64 * 1024


async def _read_limited(file: UploadFile, limit: int) -> bytes:
    """Read the upload in chunks, refusing it as soon as it passes ``limit``."""
    chunks: list[bytes] = []
    size = 0
    while True:
        chunk = await file.read(_CHUNK_BYTES)
        if not chunk:
            break
        size += len(chunk)
        if size > limit:
            raise ValidationError(f"File exceeds {limit} bytes")
        chunks.append(chunk)
    return b"".join(chunks)


def _store(tenant_id: str, file_name: str, content: bytes) -> Path:
    target_dir = Path(settings.UPLOAD_DIR) / tenant_id
    target_dir.mkdir(parents=True, exist_ok=True)
    target = target_dir / f"{uuid.uuid4()}{Path(file_name).suffix}"
    target.write_bytes(content)
    return target


async def _parse_best_effort(db: AsyncSession, principal: Principal, document: Document) -> Optional[dict]:
    """Parsing failures are logged and never fail the upload."""
    try:
        document_type = DocumentType(document.document_type)
    except ValueError:
        logger.info(f"document {document.id} has no parseable type ({document.document_type}); skipping parse")
        return None
    try:
        run, extracted, confidence = await AIService.parse(
            db,
            tenant_id=principal.tenant_id,
            document_id=document.id,
            document_type=document_type,
            file_url=document.file_path,
        )
        await db.commit()
    except (DomainError, SQLAlchemyError) as exc:
        await db.rollback()
        logger.warning(f"document parse failed document_id={document.id}: {exc}")
        return None
    return {"modelRunId": run.id, "confidence": confidence, "extractedData": extracted}


@router.post("/upload", status_code=status.HTTP_201_CREATED)
async def upload_document(
    file: UploadFile = File(...),
    caseId: Optional[str] = Form(default=None),
    borrowerId: Optional[str] = Form(default=None),
    documentType: Optional[str] = Form(default=None),
    principal: Principal = Depends(get_tenant_principal),
    db: AsyncSession = Depends(get_session),
):
    if caseId:
        owned = await db.execute(
            select(CaseORM.id).where(CaseORM.id == caseId, CaseORM.tenant_id == principal.tenant_id)
        )
        if owned.scalar_one_or_none() is None:
            raise ValidationError("Invalid case ID or access denied")

    content = await _read_limited(file, settings.MAX_UPLOAD_BYTES)
    if not content:
        raise ValidationError("No file uploaded")

    file_name = file.filename or "upload"
    path = await run_in_threadpool(_store, principal.tenant_id, file_name, content)
    document = Document(
        id=str(uuid.uuid4()),
        tenant_id=principal.tenant_id,
        case_id=caseId,
        borrower_id=borrowerId,
        file_name=file_name,
        file_path=str(path),
        file_type=file.content_type,
        file_size=len(content),
        document_type=documentType,
        uploaded_by=principal.user_id,
    )
    db.add(document)
    try:
        await db.commit()
    except SQLAlchemyError:
        # no row points at the file; drop it
        await run_in_threadpool(path.unlink, True)
        raise
    logger.info(f"document uploaded document_id={document.id} case_id={caseId} size={len(content)}")

    view = document_view(document)
    view["parse"] = await _parse_best_effort(db, principal, document)
    return ok(view, message="Document uploaded successfully")


@router.get("")
async def list_documents(
    case_id: Optional[str] = Query(default=None, alias="caseId"),
    principal: Principal = Depends(get_tenant_principal),
    db: AsyncSession = Depends(get_session),
):
    stmt = select(Document).where(Document.tenant_id == principal.tenant_id)
    if case_id:
        stmt = stmt.where(Document.case_id == case_id)
    result = await db.execute(stmt.order_by(Document.created_at.desc()))
    return ok([document_view(d) for d in result.scalars()])
