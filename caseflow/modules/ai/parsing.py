"""Mock document parser returning canned fields per document type."""
from __future__ import annotations

import copy
import random
from enum import Enum
from typing import Any

MODEL_NAME = "document_parser_v1"
MODEL_VERSION = "1.3.0"
MODEL_USED = "document_ai_v1.3"


class DocumentType(str, Enum):
    PAN_CARD = "pan_card"
    BANK_STATEMENT = "bank_statement"
    SALARY_SLIP = "salary_slip"
    AADHAR_CARD = "aadhar_card"


_EXTRACTED_FIELDS: dict[DocumentType, dict[str, Any]] = {
    DocumentType.PAN_CARD: {
        "pan_number": "ABCDE1234F",
        "name": "John Doe",
        "father_name": "Robert Doe",
        "date_of_birth": "01/01/1990",
        "confidence_scores": {"pan_number": 0.98, "name": 0.95, "father_name": 0.92, "date_of_birth": 0.89},
    },
    DocumentType.BANK_STATEMENT: {
        "account_number": "1234567890",
        "account_holder": "John Doe",
        "bank_name": "ABC Bank",
        "average_balance": 75000,
        "transactions_count": 45,
        "statement_period": "6 months",
        "confidence_scores": {"account_number": 0.99, "account_holder": 0.96, "bank_name": 0.94, "average_balance": 0.91},
    },
    DocumentType.SALARY_SLIP: {
        "employee_name": "John Doe",
        "employer": "XYZ Corporation",
        "designation": "Software Engineer",
        "gross_salary": 60000,
        "net_salary": 48000,
        "month_year": "December 2024",
        "confidence_scores": {"employee_name": 0.97, "gross_salary": 0.93, "net_salary": 0.95},
    },
    DocumentType.AADHAR_CARD: {
        "aadhar_number": "1234-5678-9012",
        "name": "John Doe",
        "date_of_birth": "01/01/1990",
        "address": "123 Main Street, City, State - 123456",
        "confidence_scores": {"aadhar_number": 0.96, "name": 0.94, "address": 0.88},
    },
}


def quality_score(confidence: float) -> str:
    if confidence > 0.9:
        return "Excellent"
    if confidence > 0.7:
        return "Good"
    return "Fair"


def parse_document(document_type: DocumentType, rng: random.Random | None = None) -> tuple[dict[str, Any], float]:
    """Returns (extracted_data, confidence)."""
    rng = rng or random.Random()
    extracted = {
        "document_type": document_type.value,
        "extracted_fields": copy.deepcopy(_EXTRACTED_FIELDS[document_type]),
        "processing_metadata": {
            "pages_processed": 1,
            "text_regions_detected": 15,
            "processing_time_ms": rng.randint(1000, 5999),
        },
    }
    confidence = rng.random() * 0.3 + 0.7
    return extracted, confidence
