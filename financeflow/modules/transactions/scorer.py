"""Confidence scoring and rule-based categorization of candidate transactions."""

import re
import logging
from dataclasses import dataclass
from typing import List, Optional, Tuple

from financeflow.core.config import config
from financeflow.modules.transactions.constants import (
    CATEGORY_RULES,
    CREDIT_CATEGORY_RULES,
    DEFAULT_CATEGORY,
    INCOME_CATEGORY,
    MERCHANT_RULES,
)
from financeflow.modules.transactions.dto import CandidateTransaction, ScoreResult
from financeflow.modules.transactions.types import ReviewReason, TransactionDirection

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ScoringWeights:
    missing_reference_id: float = 0.25
    missing_account_mask: float = 0.15
    missing_date: float = 0.20
    missing_merchant: float = 0.10
    threshold: float = 0.7

    @classmethod
    def from_config(cls) -> "ScoringWeights":
        return cls(
            missing_reference_id=config.weight_missing_reference_id,
            missing_account_mask=config.weight_missing_account_mask,
            missing_date=config.weight_missing_date,
            missing_merchant=config.weight_missing_merchant,
            threshold=config.review_confidence_threshold,
        )


def categorize(candidate: CandidateTransaction) -> str:
    """First matching merchant or keyword rule wins."""
    haystacks = [candidate.merchant or "", candidate.subject, candidate.raw_text or ""]
    is_credit = candidate.direction == TransactionDirection.CREDIT
    keyword_rules = {**CREDIT_CATEGORY_RULES, **CATEGORY_RULES} if is_credit else CATEGORY_RULES

    for text in haystacks:
        if not text:
            continue
        for pattern, (_name, category) in MERCHANT_RULES.items():
            if re.search(pattern, text, re.IGNORECASE):
                return category
        for pattern, category in keyword_rules.items():
            if re.search(pattern, text, re.IGNORECASE):
                return category

    if is_credit:
        return INCOME_CATEGORY
    return DEFAULT_CATEGORY


class ConfidenceScorer:
    """Scores how much of a candidate was extracted with certainty."""

    def __init__(self, weights: Optional[ScoringWeights] = None):
        self.weights = weights or ScoringWeights.from_config()

    def _penalties(self, candidate: CandidateTransaction) -> List[Tuple[float, ReviewReason]]:
        penalties = []
        if not candidate.reference_id:
            penalties.append((self.weights.missing_reference_id, ReviewReason.MISSING_REFERENCE_ID))
        if not candidate.account_mask:
            penalties.append((self.weights.missing_account_mask, ReviewReason.MISSING_ACCOUNT_MASK))
        if not candidate.date_from_body:
            penalties.append((self.weights.missing_date, ReviewReason.MISSING_DATE))
        if not candidate.merchant:
            penalties.append((self.weights.missing_merchant, ReviewReason.AMBIGUOUS_MERCHANT))
        return penalties

    def score(self, candidate: CandidateTransaction) -> ScoreResult:
        penalties = self._penalties(candidate)

        confidence = 1.0 - sum(weight for weight, _ in penalties)
        confidence = min(1.0, max(0.0, round(confidence, 4)))

        needs_review = confidence < self.weights.threshold
        review_reason = None
        if needs_review and penalties:
            # Weakest signal is the one that cost the most; ties keep check order
            _, reason = max(penalties, key=lambda p: p[0])
            review_reason = reason.value

        category = categorize(candidate)
        logger.debug(
            f"Scored message {candidate.message_id}: confidence={confidence}, "
            f"category={category}, needs_review={needs_review}"
        )
        return ScoreResult(
            confidence=confidence,
            category=category,
            review_reason=review_reason,
            needs_review=needs_review,
        )
