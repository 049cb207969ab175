"""Runs the mock models and records every run in model_runs."""
from __future__ import annotations

import logging
import random
import uuid
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from caseflow.core.errors import ValidationError
from caseflow.models.base_models import Case as CaseORM
from caseflow.models.base_models import Document, DocumentExtraction, ModelRun
from caseflow.modules.ai import parsing, scoring

logger = logging.getLogger("caseflow.ai")


class AIService:

    @staticmethod
    async def score(
        db: AsyncSession,
        *,
        tenant_id: str,
        case_id: str,
        borrower: dict[str, Any],
        loan: dict[str, Any],
        rng: random.Random | None = None,
    ) -> tuple[ModelRun, scoring.CreditScore]:
        result = await db.execute(
            select(CaseORM.id).where(CaseORM.id == case_id, CaseORM.tenant_id == tenant_id)
        )
        if result.scalar_one_or_none() is None:
            raise ValidationError("Invalid case ID or access denied")

        credit = scoring.score_credit(borrower, loan, rng)
        run = ModelRun(
            id=str(uuid.uuid4()),
            tenant_id=tenant_id,
            model_name=scoring.MODEL_NAME,
            model_version=scoring.MODEL_VERSION,
            input={
                "borrowerData": borrower,
                "loanData": loan,
                "timestamp": datetime.now(timezone.utc).isoformat(),
                "modelVersion": "credit_scoring_v1.2",
            },
            output=credit.output(),
            confidence=credit.confidence,
            explainability=credit.explainability,
            case_id=case_id,
        )
        db.add(run)
        await db.flush()
        logger.info(f"credit scored case_id={case_id} pd={credit.pd_score:.4f} grade={credit.risk_grade}")
        return run, credit

    @staticmethod
    async def parse(
        db: AsyncSession,
        *,
        tenant_id: str,
        document_id: str,
        document_type: parsing.DocumentType,
        file_url: str | None = None,
        rng: random.Random | None = None,
    ) -> tuple[ModelRun, dict[str, Any], float]:
        result = await db.execute(
            select(Document.id).where(Document.id == document_id, Document.tenant_id == tenant_id)
        )
        if result.scalar_one_or_none() is None:
            raise ValidationError("Invalid document ID or access denied")

        extracted, confidence = parsing.parse_document(document_type, rng)
        db.add(DocumentExtraction(
            id=str(uuid.uuid4()),
            document_id=document_id,
            extracted_data=extracted,
            confidence_score=confidence,
            model_used=parsing.MODEL_USED,
        ))
        run = ModelRun(
            id=str(uuid.uuid4()),
            tenant_id=tenant_id,
            model_name=parsing.MODEL_NAME,
            model_version=parsing.MODEL_VERSION,
            input={"documentId": document_id, "documentType": document_type.value, "fileUrl": file_url},
            output=extracted,
            confidence=confidence,
        )
        db.add(run)
        await db.flush()
        logger.info(f"document parsed document_id={document_id} type={document_type.value} confidence={confidence:.3f}")
        return run, extracted, confidence
