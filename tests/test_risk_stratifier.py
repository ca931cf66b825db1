"""Tests for core.risk_stratifier module."""

import pytest

from core.risk_stratifier import (
    BASE_RISK,
    CANCER_TYPE_LABELS,
    LOW_CONFIDENCE_THRESHOLD,
    RECOMMENDATIONS,
    RISK_LEVEL_LABELS,
    RiskStratifier,
    stratify,
)
from core.utils import CLASS_ORDER, CancerType, RiskLevel

CONFIDENCE_GRID = [i / 20 for i in range(21)]


class TestStratify:
    def test_base_table(self):
        assert stratify(CancerType.BENIGN, 0.9) == RiskLevel.LOW
        assert stratify(CancerType.MELANOMA, 0.9) == RiskLevel.VERY_HIGH
        assert stratify(CancerType.BASAL_CELL_CARCINOMA, 0.9) == RiskLevel.HIGH
        assert stratify(CancerType.SQUAMOUS_CELL_CARCINOMA, 0.9) == RiskLevel.HIGH
        assert stratify(CancerType.UNKNOWN, 0.9) == RiskLevel.MEDIUM

    def test_confident_benign_is_low(self):
        for confidence in CONFIDENCE_GRID:
            if confidence >= 0.5:
                assert stratify(CancerType.BENIGN, confidence) == RiskLevel.LOW

    def test_melanoma_never_low(self):
        for confidence in CONFIDENCE_GRID:
            assert stratify(CancerType.MELANOMA, confidence) == RiskLevel.VERY_HIGH

    def test_low_confidence_at_least_medium(self):
        for cancer_type in CancerType:
            for confidence in CONFIDENCE_GRID:
                if confidence < 0.5:
                    risk = stratify(cancer_type, confidence)
                    assert risk.rank >= RiskLevel.MEDIUM.rank

    def test_low_confidence_keeps_higher_base(self):
        assert stratify(CancerType.BASAL_CELL_CARCINOMA, 0.3) == RiskLevel.HIGH

    def test_threshold_boundary(self):
        assert stratify(CancerType.BENIGN, 0.49) == RiskLevel.MEDIUM
        assert stratify(CancerType.BENIGN, 0.5) == RiskLevel.LOW

    def test_deterministic(self):
        for cancer_type in CancerType:
            results = {stratify(cancer_type, 0.37) for _ in range(50)}
            assert len(results) == 1

    @pytest.mark.parametrize("confidence", [-0.01, 1.01])
    def test_out_of_range(self, confidence):
        with pytest.raises(ValueError):
            stratify(CancerType.BENIGN, confidence)

    def test_every_class_has_base_risk(self):
        assert set(BASE_RISK) == set(CancerType)


class TestRiskStratifier:
    def test_default_threshold(self):
        assert RiskStratifier().threshold == LOW_CONFIDENCE_THRESHOLD == 0.5

    def test_custom_threshold(self):
        stratifier = RiskStratifier(threshold=0.8)
        assert stratifier.stratify(CancerType.BENIGN, 0.7) == RiskLevel.MEDIUM
        assert stratifier.is_inconclusive(0.7)
        assert not stratifier.is_inconclusive(0.8)

    def test_invalid_threshold(self):
        with pytest.raises(ValueError):
            RiskStratifier(threshold=1.5)

    def test_diagnose_picks_top_class(self):
        scores = {
            CancerType.MELANOMA: 0.92,
            CancerType.BASAL_CELL_CARCINOMA: 0.02,
            CancerType.SQUAMOUS_CELL_CARCINOMA: 0.02,
            CancerType.BENIGN: 0.02,
            CancerType.UNKNOWN: 0.02,
        }
        result = RiskStratifier().diagnose(scores, model_name="m", processing_time_ms=5)
        assert result.cancer_type == CancerType.MELANOMA
        assert result.confidence == pytest.approx(0.92)
        assert result.risk_level == RiskLevel.VERY_HIGH
        assert result.scores == scores
        assert result.model_name == "m"
        assert "NOT a diagnosis" in result.disclaimer

    def test_diagnose_uncertain_benign(self):
        scores = {c: 0.1 for c in CLASS_ORDER}
        scores[CancerType.BENIGN] = 0.4
        result = RiskStratifier().diagnose(scores)
        assert result.cancer_type == CancerType.BENIGN
        assert result.risk_level == RiskLevel.MEDIUM

    def test_diagnose_clamps_rounding(self):
        scores = {c: 0.0 for c in CLASS_ORDER}
        scores[CancerType.BENIGN] = 1.0000001
        result = RiskStratifier().diagnose(scores)
        assert result.confidence == 1.0

    def test_diagnose_empty(self):
        with pytest.raises(ValueError):
            RiskStratifier().diagnose({})


class TestLookupTables:
    def test_labels_cover_enums(self):
        assert set(CANCER_TYPE_LABELS) == set(CancerType)
        assert set(RISK_LEVEL_LABELS) == set(RiskLevel)
        assert set(RECOMMENDATIONS) == set(RiskLevel)

    def test_label_for(self):
        assert RiskStratifier.label_for(CancerType.BASAL_CELL_CARCINOMA) == "Basal Cell Carcinoma"
