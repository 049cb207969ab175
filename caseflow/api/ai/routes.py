"""
Mock AI API.
POST /api/{tenant}/ai/score - credit score with explainability.
POST /api/{tenant}/ai/parse - canned document extraction.
"""
from __future__ import annotations

import random
from typing import Any, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from caseflow.api.errors import ok
from caseflow.core.database import get_session
from caseflow.core.security import Principal, get_tenant_principal
from caseflow.modules.ai.parsing import DocumentType, quality_score
from caseflow.modules.ai.service import AIService

router = APIRouter(prefix="/{tenant}/ai", tags=["ai"])


class ScoreRequest(BaseModel):
    caseId: str = Field(min_length=1)
    borrowerData: dict[str, Any] = Field(default_factory=dict)
    loanData: dict[str, Any] = Field(default_factory=dict)


class ParseRequest(BaseModel):
    documentId: str = Field(min_length=1)
    documentType: DocumentType
    fileUrl: Optional[str] = None


@router.post("/score")
async def score(
    req: ScoreRequest,
    principal: Principal = Depends(get_tenant_principal),
    db: AsyncSession = Depends(get_session),
):
    rng = random.Random()
    run, credit = await AIService.score(
        db,
        tenant_id=principal.tenant_id,
        case_id=req.caseId,
        borrower=req.borrowerData,
        loan=req.loanData,
        rng=rng,
    )
    await db.commit()
    return ok({
        "model_run_id": run.id,
        "pd_score": credit.pd_score,
        "confidence": credit.confidence,
        "explainability": credit.explainability,
        "recommendation": credit.recommendation,
        "risk_grade": credit.risk_grade,
        "processing_time": rng.randint(500, 3499),
    })


@router.post("/parse")
async def parse(
    req: ParseRequest,
    principal: Principal = Depends(get_tenant_principal),
    db: AsyncSession = Depends(get_session),
):
    run, extracted, confidence = await AIService.parse(
        db,
        tenant_id=principal.tenant_id,
        document_id=req.documentId,
        document_type=req.documentType,
        file_url=req.fileUrl,
    )
    await db.commit()
    return ok({
        "model_run_id": run.id,
        "extracted_data": extracted,
        "confidence": confidence,
        "processing_time": extracted["processing_metadata"]["processing_time_ms"],
        "quality_score": quality_score(confidence),
    })
