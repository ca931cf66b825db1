"""Shared test fixtures for LesionScan."""

import struct
import tempfile
import zlib
from pathlib import Path

import numpy as np
import pytest
from PIL import Image

from core.inference_engine import InferenceEngine
from core.pipeline import ScreeningPipeline
from core.report_store import ReportStore
from core.utils import (
    CLASS_ORDER,
    CancerType,
    DiagnosisResult,
    Report,
    ReportState,
    RiskLevel,
    ScreeningConfig,
)
from helpers import FixedScoresModel, probabilities_for


@pytest.fixture(autouse=True)
def _isolated_data_dir(tmp_path, monkeypatch):
    """Keep platform data directories inside the test's tmp path."""
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "config"))
    monkeypatch.setenv("APPDATA", str(tmp_path / "config"))


@pytest.fixture
def tmp_dir():
    """Provide a temporary directory that is cleaned up after the test."""
    with tempfile.TemporaryDirectory() as d:
        yield Path(d)


@pytest.fixture
def sample_lesion_image(tmp_dir):
    """Create a sample 256x256 RGB image (simulates a lesion photograph)."""
    img = Image.fromarray(np.random.randint(0, 255, (256, 256, 3), dtype=np.uint8))
    path = tmp_dir / "lesion.png"
    img.save(path)
    return str(path)


@pytest.fixture
def sample_grayscale_image(tmp_dir):
    img = Image.fromarray(np.random.randint(0, 255, (128, 128), dtype=np.uint8))
    path = tmp_dir / "lesion_gray.png"
    img.save(path)
    return str(path)


@pytest.fixture
def corrupt_image(tmp_dir):
    path = tmp_dir / "broken.jpg"
    path.write_bytes(b"this is not a jpeg")
    return str(path)


@pytest.fixture
def oversized_image(tmp_dir):
    """A PNG whose header declares 20000x20000 pixels, past Pillow's bomb limit."""
    def chunk(kind, data):
        return struct.pack(">I", len(data)) + kind + data + struct.pack(">I", zlib.crc32(kind + data))

    header = struct.pack(">IIBBBBB", 20000, 20000, 8, 2, 0, 0, 0)
    path = tmp_dir / "huge.png"
    path.write_bytes(
        b"\x89PNG\r\n\x1a\n"
        + chunk(b"IHDR", header)
        + chunk(b"IDAT", zlib.compress(b""))
        + chunk(b"IEND", b"")
    )
    return str(path)


@pytest.fixture
def store(tmp_dir):
    return ReportStore(db_path=str(tmp_dir / "reports.db"))


@pytest.fixture
def melanoma_model():
    return FixedScoresModel(probabilities_for(CancerType.MELANOMA, 0.92))


@pytest.fixture
def engine(melanoma_model):
    engine = InferenceEngine(model_name="test-model", model=melanoma_model)
    yield engine
    engine.close()


@pytest.fixture
def pipeline(engine, store):
    pipeline = ScreeningPipeline(ScreeningConfig(model_name="test-model"), engine=engine, store=store)
    yield pipeline
    pipeline.close()


@pytest.fixture
def melanoma_diagnosis():
    return DiagnosisResult(
        cancer_type=CancerType.MELANOMA,
        confidence=0.92,
        risk_level=RiskLevel.VERY_HIGH,
        scores={c: p for c, p in zip(CLASS_ORDER, probabilities_for(CancerType.MELANOMA, 0.92))},
        model_name="test-model",
        processing_time_ms=42,
    )


@pytest.fixture
def analyzed_report(melanoma_diagnosis):
    return Report(
        user_id="u1",
        image_ref="/fake/lesion.png",
        diagnosis=melanoma_diagnosis,
        state=ReportState.ANALYZED,
    )
