"""Shared enums, dataclasses, configuration, and platform-specific paths."""

import os
import sys
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Callable, Dict, List, Optional

from core.errors import ConfigError


# --- Type aliases ---

ProgressCallback = Callable[[int, int, str], None]  # (step, total, message)
CancelCheck = Callable[[], bool]  # Returns True if cancelled


DISCLAIMER = (
    "This is a preliminary screening aid, NOT a diagnosis. "
    "Always consult a dermatologist about any skin lesion."
)


# --- Enums ---

class CancerType(Enum):
    MELANOMA = "melanoma"
    BASAL_CELL_CARCINOMA = "basal_cell_carcinoma"
    SQUAMOUS_CELL_CARCINOMA = "squamous_cell_carcinoma"
    BENIGN = "benign"
    UNKNOWN = "unknown"


class RiskLevel(Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    VERY_HIGH = "very_high"

    @property
    def rank(self) -> int:
        return list(RiskLevel).index(self)


class ReportState(Enum):
    DRAFT = "draft"
    ANALYZING = "analyzing"
    ANALYZED = "analyzed"
    SAVED = "saved"
    SHARED = "shared"
    FEEDBACK = "feedback"

    @property
    def rank(self) -> int:
        return list(ReportState).index(self)


# Order of the model's output logits.
CLASS_ORDER: List[CancerType] = [
    CancerType.MELANOMA,
    CancerType.BASAL_CELL_CARCINOMA,
    CancerType.SQUAMOUS_CELL_CARCINOMA,
    CancerType.BENIGN,
    CancerType.UNKNOWN,
]

RawScores = Dict[CancerType, float]


# --- Dataclasses ---

@dataclass(frozen=True)
class DiagnosisResult:
    """Structured outcome of one lesion classification."""
    cancer_type: CancerType
    confidence: float
    risk_level: RiskLevel
    scores: Dict[CancerType, float] = field(default_factory=dict, compare=False)
    model_name: str = field(default="", compare=False)
    processing_time_ms: int = field(default=0, compare=False)
    disclaimer: str = field(default=DISCLAIMER, compare=False)

    def __post_init__(self):
        if not 0.0 <= self.confidence <= 1.0:
            raise ValueError(f"confidence must be within [0, 1], got {self.confidence}")

    def to_dict(self) -> dict:
        return {
            "cancer_type": self.cancer_type.value,
            "confidence": self.confidence,
            "risk_level": self.risk_level.value,
            "scores": {k.value: v for k, v in self.scores.items()},
            "model_name": self.model_name,
            "processing_time_ms": self.processing_time_ms,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "DiagnosisResult":
        return cls(
            cancer_type=CancerType(data["cancer_type"]),
            confidence=float(data["confidence"]),
            risk_level=RiskLevel(data["risk_level"]),
            scores={CancerType(k): float(v) for k, v in data.get("scores", {}).items()},
            model_name=data.get("model_name", ""),
            processing_time_ms=int(data.get("processing_time_ms", 0)),
        )


@dataclass
class Report:
    """A lesion screening report.

    Mutated only through ReportLifecycle; ``id`` stays empty until the
    report store assigns one.
    """
    user_id: str
    image_ref: str
    id: str = ""
    diagnosis: Optional[DiagnosisResult] = None
    created_at: str = field(default_factory=lambda: datetime.now().isoformat())
    shared_with_doctors: List[str] = field(default_factory=list)
    doctor_feedback: Optional[str] = None
    state: ReportState = ReportState.DRAFT
    last_error: Optional[Exception] = field(default=None, compare=False, repr=False)

    @property
    def is_persisted(self) -> bool:
        return bool(self.id)


@dataclass
class ScreeningConfig:
    """Configuration for the screening pipeline."""
    model_name: str = "skin-efficientnet-b0"
    low_confidence_threshold: float = 0.5
    analysis_timeout_s: Optional[float] = None
    max_workers: int = 1
    generate_thumbnail: bool = True

    @classmethod
    def from_env(cls) -> "ScreeningConfig":
        """Build a config from LESIONSCAN_* environment variables."""
        config = cls()
        if os.environ.get("LESIONSCAN_MODEL"):
            config.model_name = os.environ["LESIONSCAN_MODEL"]
        if os.environ.get("LESIONSCAN_LOW_CONFIDENCE"):
            config.low_confidence_threshold = _env_float("LESIONSCAN_LOW_CONFIDENCE")
        if os.environ.get("LESIONSCAN_TIMEOUT"):
            config.analysis_timeout_s = _env_float("LESIONSCAN_TIMEOUT")
        return config


def _env_float(name: str) -> float:
    value = os.environ[name]
    try:
        return float(value)
    except ValueError as e:
        raise ConfigError(f"{name} must be a number, got {value!r}") from e


# --- Platform-specific paths ---

def get_data_dir() -> Path:
    """Get the platform-specific application data directory."""
    if sys.platform == "darwin":
        base = Path.home() / "Library" / "Application Support" / "LesionScan"
    elif sys.platform == "win32":
        base = Path(os.environ.get("APPDATA", Path.home())) / "LesionScan"
    else:
        base = Path(os.environ.get("XDG_CONFIG_HOME", Path.home() / ".config")) / "lesionscan"
    base.mkdir(parents=True, exist_ok=True)
    return base


def get_models_dir() -> Path:
    """Get the directory for downloaded model weights."""
    models_dir = get_data_dir() / "models"
    models_dir.mkdir(parents=True, exist_ok=True)
    return models_dir


def get_reports_db_path() -> Path:
    """Get the path to the SQLite report database."""
    return get_data_dir() / "reports.db"


# --- Formatting ---

def format_confidence(confidence: float) -> str:
    """Format a probability as a percentage string."""
    return f"{confidence * 100:.1f}%"
