"""Mock credit scoring: a fixed probability-of-default formula plus a random confidence."""
from __future__ import annotations

import random
from dataclasses import dataclass, field
from typing import Any, Mapping

MODEL_NAME = "credit_scoring_v1"
MODEL_VERSION = "1.2.0"

PD_FLOOR = 0.01
PD_CEILING = 0.5
LOW_RISK_PD = 0.05
MEDIUM_RISK_PD = 0.15


@dataclass(frozen=True)
class CreditScore:
    pd_score: float
    risk_grade: str
    recommendation: str
    confidence: float
    confidence_level: str
    explainability: dict[str, Any] = field(default_factory=dict)

    def output(self) -> dict[str, Any]:
        return {
            "pd_score": self.pd_score,
            "risk_grade": self.risk_grade,
            "recommendation": self.recommendation,
            "confidence_level": self.confidence_level,
        }


def _number(mapping: Mapping[str, Any], key: str, default: float) -> float:
    value = mapping.get(key)
    if isinstance(value, bool) or not isinstance(value, (int, float)) or not value:
        return default
    return float(value)


def probability_of_default(
    credit_score: float,
    monthly_income: float,
    requested_amount: float,
    existing_loans: float,
    employment_stability: float,
) -> float:
    pd_score = 0.1

    if credit_score > 750:
        pd_score -= 0.05
    elif credit_score < 600:
        pd_score += 0.1

    income_ratio = requested_amount / (monthly_income * 12)
    if income_ratio > 0.5:
        pd_score += 0.08
    elif income_ratio < 0.2:
        pd_score -= 0.03

    pd_score += existing_loans * 0.02
    pd_score -= (employment_stability - 0.5) * 0.1
    return max(PD_FLOOR, min(PD_CEILING, pd_score))


def risk_grade(pd_score: float) -> str:
    if pd_score < LOW_RISK_PD:
        return "Low"
    if pd_score < MEDIUM_RISK_PD:
        return "Medium"
    return "High"


def recommendation(pd_score: float) -> str:
    if pd_score < LOW_RISK_PD:
        return "Auto Approve"
    if pd_score < MEDIUM_RISK_PD:
        return "Manual Review"
    return "Reject"


def confidence_level(confidence: float) -> str:
    if confidence > 0.9:
        return "High"
    if confidence > 0.7:
        return "Medium"
    return "Low"


def score_credit(
    borrower: Mapping[str, Any],
    loan: Mapping[str, Any],
    rng: random.Random | None = None,
) -> CreditScore:
    rng = rng or random.Random()
    credit_score = _number(borrower, "creditScore", 650)
    monthly_income = _number(borrower, "monthlyIncome", 50000)
    requested_amount = _number(loan, "requestedAmount", 100000)
    existing_loans = _number(borrower, "existingLoans", 0)
    employment_stability = 1.0 if borrower.get("employmentType") == "Salaried" else 0.7

    pd_score = probability_of_default(
        credit_score, monthly_income, requested_amount, existing_loans, employment_stability
    )
    income_ratio = requested_amount / (monthly_income * 12)
    confidence = rng.random() * 0.3 + 0.7

    explainability = {
        "top_features": [
            {"feature": "credit_score", "importance": 0.35, "value": credit_score,
             "impact": "Positive" if credit_score > 700 else "Negative"},
            {"feature": "monthly_income", "importance": 0.25, "value": monthly_income, "impact": "Positive"},
            {"feature": "income_to_loan_ratio", "importance": 0.20, "value": f"{income_ratio:.2f}",
             "impact": "Positive" if income_ratio < 0.3 else "Negative"},
            {"feature": "employment_stability", "importance": 0.15, "value": employment_stability,
             "impact": "Positive"},
            {"feature": "existing_loans", "importance": 0.05, "value": existing_loans,
             "impact": "Positive" if existing_loans == 0 else "Negative"},
        ],
        "model_confidence": confidence,
        "data_quality_score": 0.95,
    }
    return CreditScore(
        pd_score=pd_score,
        risk_grade=risk_grade(pd_score),
        recommendation=recommendation(pd_score),
        confidence=confidence,
        confidence_level=confidence_level(confidence),
        explainability=explainability,
    )
