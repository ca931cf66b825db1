"""Risk policy: maps a predicted lesion class and confidence to a risk level.

Low-confidence predictions are treated as inconclusive and escalated to at
least MEDIUM, so an uncertain BENIGN call is never reported as LOW risk.
"""

from typing import Dict

from core.utils import (
    DISCLAIMER,
    CancerType,
    DiagnosisResult,
    RawScores,
    RiskLevel,
)

LOW_CONFIDENCE_THRESHOLD = 0.5

BASE_RISK: Dict[CancerType, RiskLevel] = {
    CancerType.BENIGN: RiskLevel.LOW,
    CancerType.MELANOMA: RiskLevel.VERY_HIGH,
    CancerType.BASAL_CELL_CARCINOMA: RiskLevel.HIGH,
    CancerType.SQUAMOUS_CELL_CARCINOMA: RiskLevel.HIGH,
    CancerType.UNKNOWN: RiskLevel.MEDIUM,
}

INCONCLUSIVE_FLOOR = RiskLevel.MEDIUM

CANCER_TYPE_LABELS: Dict[CancerType, str] = {
    CancerType.MELANOMA: "Melanoma",
    CancerType.BASAL_CELL_CARCINOMA: "Basal Cell Carcinoma",
    CancerType.SQUAMOUS_CELL_CARCINOMA: "Squamous Cell Carcinoma",
    CancerType.BENIGN: "Benign",
    CancerType.UNKNOWN: "Unknown",
}

RISK_LEVEL_LABELS: Dict[RiskLevel, str] = {
    RiskLevel.LOW: "Low Risk",
    RiskLevel.MEDIUM: "Medium Risk",
    RiskLevel.HIGH: "High Risk",
    RiskLevel.VERY_HIGH: "Very High Risk",
}

RISK_LEVEL_COLORS: Dict[RiskLevel, str] = {
    RiskLevel.LOW: "#10B981",
    RiskLevel.MEDIUM: "#FFA000",
    RiskLevel.HIGH: "#F57C00",
    RiskLevel.VERY_HIGH: "#DC2626",
}

RECOMMENDATIONS: Dict[RiskLevel, str] = {
    RiskLevel.LOW: (
        "Features are most consistent with a benign lesion. Keep monitoring it "
        "and see a dermatologist if it changes in size, shape, or color."
    ),
    RiskLevel.MEDIUM: (
        "The result is uncertain. Photograph the lesion now and schedule a "
        "dermatology appointment within the next few weeks."
    ),
    RiskLevel.HIGH: (
        "The lesion shows features that should be evaluated promptly. "
        "Book a dermatology appointment within 1-2 weeks."
    ),
    RiskLevel.VERY_HIGH: (
        "The lesion shows features associated with melanoma. "
        "Seek a dermatologist as soon as possible."
    ),
}


def stratify(
    cancer_type: CancerType,
    confidence: float,
    threshold: float = LOW_CONFIDENCE_THRESHOLD,
) -> RiskLevel:
    """Map (cancer_type, confidence) to a risk level. Pure and deterministic."""
    if not 0.0 <= confidence <= 1.0:
        raise ValueError(f"confidence must be within [0, 1], got {confidence}")

    risk = BASE_RISK[cancer_type]
    if confidence < threshold and risk.rank < INCONCLUSIVE_FLOOR.rank:
        return INCONCLUSIVE_FLOOR
    return risk


class RiskStratifier:
    """Applies the risk policy with a configurable low-confidence threshold."""

    def __init__(self, threshold: float = LOW_CONFIDENCE_THRESHOLD):
        if not 0.0 <= threshold <= 1.0:
            raise ValueError(f"threshold must be within [0, 1], got {threshold}")
        self.threshold = threshold

    def stratify(self, cancer_type: CancerType, confidence: float) -> RiskLevel:
        return stratify(cancer_type, confidence, self.threshold)

    def is_inconclusive(self, confidence: float) -> bool:
        return confidence < self.threshold

    def diagnose(
        self,
        scores: RawScores,
        model_name: str = "",
        processing_time_ms: int = 0,
    ) -> DiagnosisResult:
        """Pick the most probable class and attach its risk level."""
        if not scores:
            raise ValueError("scores must not be empty")

        cancer_type = max(scores, key=scores.get)
        # float32 softmax can land a hair above 1.0
        confidence = min(max(float(scores[cancer_type]), 0.0), 1.0)

        return DiagnosisResult(
            cancer_type=cancer_type,
            confidence=confidence,
            risk_level=self.stratify(cancer_type, confidence),
            scores=dict(scores),
            model_name=model_name,
            processing_time_ms=processing_time_ms,
            disclaimer=DISCLAIMER,
        )

    @staticmethod
    def label_for(cancer_type: CancerType) -> str:
        return CANCER_TYPE_LABELS[cancer_type]

    @staticmethod
    def recommendation_for(risk_level: RiskLevel) -> str:
        return RECOMMENDATIONS[risk_level]
