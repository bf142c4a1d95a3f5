from datetime import date

import pytest

from financeflow.modules.transactions.dto import CandidateTransaction
from financeflow.modules.transactions.scorer import ConfidenceScorer, ScoringWeights, categorize
from financeflow.modules.transactions.types import ReviewReason, TransactionDirection


def candidate(**overrides) -> CandidateTransaction:
    fields = {
        "message_id": "m-1",
        "merchant": "Swiggy",
        "amount_minor": 49900,
        "transaction_date": date(2025, 1, 10),
        "date_from_body": True,
        "reference_id": "REF123",
        "account_mask": "1234",
    }
    fields.update(overrides)
    return CandidateTransaction(**fields)


@pytest.fixture
def scorer() -> ConfidenceScorer:
    return ConfidenceScorer(ScoringWeights())


class TestConfidence:
    def test_complete_candidate_is_fully_confident(self, scorer):
        result = scorer.score(candidate())
        assert result.confidence == 1.0
        assert result.needs_review is False
        assert result.review_reason is None

    def test_exactly_threshold_does_not_need_review(self, scorer):
        # 1.0 - 0.20 (date) - 0.10 (merchant) == 0.7
        result = scorer.score(candidate(date_from_body=False, merchant=None))
        assert result.confidence == 0.7
        assert result.needs_review is False

    def test_below_threshold_names_weakest_signal(self, scorer):
        result = scorer.score(candidate(reference_id=None, account_mask=None))
        assert result.confidence == 0.6
        assert result.needs_review is True
        assert result.review_reason == ReviewReason.MISSING_REFERENCE_ID.value

    def test_ambiguous_merchant_reason(self):
        weights = ScoringWeights(missing_merchant=0.5)
        result = ConfidenceScorer(weights).score(candidate(merchant=None))
        assert result.needs_review is True
        assert result.review_reason == "ambiguous merchant"

    @pytest.mark.parametrize("weight, needs_review", [(0.30, False), (0.31, True)])
    def test_threshold_boundary_with_custom_weights(self, weight, needs_review):
        weights = ScoringWeights(missing_reference_id=weight)
        result = ConfidenceScorer(weights).score(candidate(reference_id=None))
        assert result.needs_review is needs_review

    def test_confidence_is_clamped(self):
        weights = ScoringWeights(missing_reference_id=0.9, missing_account_mask=0.9)
        result = ConfidenceScorer(weights).score(candidate(reference_id=None, account_mask=None))
        assert result.confidence == 0.0


class TestCategorize:
    def test_known_merchant(self):
        assert categorize(candidate(merchant="Swiggy")) == "Food & Dining"

    def test_keyword_rule(self):
        assert categorize(candidate(merchant="Shell Petrol Pump")) == "Fuel"

    def test_unknown_debit_is_other(self):
        assert categorize(candidate(merchant="Croma")) == "Other"

    def test_unknown_credit_is_income(self):
        result = categorize(candidate(merchant="Acme Corp", direction=TransactionDirection.CREDIT))
        assert result == "Income"

    def test_unknown_category_never_forces_review(self, scorer):
        assert scorer.score(candidate(merchant="Croma")).needs_review is False

    def test_salary_keyword_only_applies_to_credits(self):
        assert categorize(candidate(merchant="Acme Payroll Services")) == "Other"
        credit = candidate(merchant="Acme Payroll Services", direction=TransactionDirection.CREDIT)
        assert categorize(credit) == "Income"
