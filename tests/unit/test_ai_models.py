import random

import pytest

from caseflow.modules.ai.parsing import DocumentType, parse_document, quality_score
from caseflow.modules.ai.scoring import (
    confidence_level,
    probability_of_default,
    recommendation,
    risk_grade,
    score_credit,
)


# ── Credit scoring ───────────────────────────────────────

class TestProbabilityOfDefault:
    def test_baseline(self):
        # 650 score, ratio 100000/600000 < 0.2, no loans, stability 0.7
        pd_score = probability_of_default(650, 50000, 100000, 0, 0.7)
        assert pd_score == pytest.approx(0.1 - 0.03 - 0.02)

    def test_salaried_stability(self):
        pd_score = probability_of_default(650, 100000, 100000, 0, 1.0)
        assert pd_score == pytest.approx(0.1 - 0.03 - 0.05)

    def test_poor_credit_high_ratio(self):
        # ratio 400000 / 600000 > 0.5
        pd_score = probability_of_default(580, 50000, 400000, 0, 0.7)
        assert pd_score == pytest.approx(0.1 + 0.1 + 0.08 - 0.02)

    def test_clamped_to_floor(self):
        assert probability_of_default(800, 1_000_000, 1000, 0, 1.0) == 0.01

    def test_clamped_to_ceiling(self):
        assert probability_of_default(500, 1000, 1_000_000, 20, 0.0) == 0.5

    def test_existing_loans_add_risk(self):
        base = probability_of_default(700, 50000, 200000, 0, 0.7)
        assert probability_of_default(700, 50000, 200000, 2, 0.7) == pytest.approx(base + 0.04)


class TestGrades:
    @pytest.mark.parametrize("pd_score,grade,advice", [
        (0.01, "Low", "Auto Approve"),
        (0.049, "Low", "Auto Approve"),
        (0.05, "Medium", "Manual Review"),
        (0.149, "Medium", "Manual Review"),
        (0.15, "High", "Reject"),
        (0.5, "High", "Reject"),
    ])
    def test_boundaries(self, pd_score, grade, advice):
        assert risk_grade(pd_score) == grade
        assert recommendation(pd_score) == advice

    @pytest.mark.parametrize("confidence,level", [(0.95, "High"), (0.8, "Medium"), (0.7, "Low")])
    def test_confidence_level(self, confidence, level):
        assert confidence_level(confidence) == level


class TestScoreCredit:
    def test_defaults_for_missing_inputs(self):
        score = score_credit({}, {}, random.Random(7))
        assert score.pd_score == pytest.approx(probability_of_default(650, 50000, 100000, 0, 0.7))
        assert 0.7 <= score.confidence < 1.0

    def test_salaried_borrower(self):
        borrower = {"creditScore": 780, "monthlyIncome": 80000, "employmentType": "Salaried"}
        score = score_credit(borrower, {"requestedAmount": 50000}, random.Random(1))
        assert score.risk_grade == "Low"
        assert score.recommendation == "Auto Approve"

    def test_explainability_features(self):
        score = score_credit({"creditScore": 720, "existingLoans": 1}, {"requestedAmount": 100000}, random.Random(3))
        features = {f["feature"]: f for f in score.explainability["top_features"]}
        assert set(features) == {
            "credit_score", "monthly_income", "income_to_loan_ratio", "employment_stability", "existing_loans",
        }
        assert features["credit_score"]["impact"] == "Positive"
        assert features["existing_loans"]["impact"] == "Negative"
        assert score.explainability["model_confidence"] == score.confidence

    def test_output_shape(self):
        output = score_credit({}, {}, random.Random(0)).output()
        assert set(output) == {"pd_score", "risk_grade", "recommendation", "confidence_level"}


# ── Document parsing ─────────────────────────────────────

class TestParseDocument:
    @pytest.mark.parametrize("document_type,field", [
        (DocumentType.PAN_CARD, "pan_number"),
        (DocumentType.BANK_STATEMENT, "account_number"),
        (DocumentType.SALARY_SLIP, "net_salary"),
        (DocumentType.AADHAR_CARD, "aadhar_number"),
    ])
    def test_canned_fields(self, document_type, field):
        extracted, confidence = parse_document(document_type, random.Random(5))
        assert extracted["document_type"] == document_type.value
        assert field in extracted["extracted_fields"]
        assert 1000 <= extracted["processing_metadata"]["processing_time_ms"] < 6000
        assert 0.7 <= confidence < 1.0

    def test_results_do_not_share_state(self):
        first, _ = parse_document(DocumentType.PAN_CARD)
        first["extracted_fields"]["name"] = "changed"
        second, _ = parse_document(DocumentType.PAN_CARD)
        assert second["extracted_fields"]["name"] == "John Doe"

    @pytest.mark.parametrize("confidence,label", [(0.95, "Excellent"), (0.8, "Good"), (0.7, "Fair")])
    def test_quality_score(self, confidence, label):
        assert quality_score(confidence) == label
